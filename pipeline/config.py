"""
Analysis Configuration

Per-analysis parameter defaults, loadable from and savable to YAML.

The configuration is a plain value: it is passed to the engine with each
call and never stored in module state.
"""

from dataclasses import dataclass, field, fields, asdict
from typing import List, Dict, Optional, Any
from pathlib import Path
import warnings
import yaml


@dataclass
class AnalysisConfig:
    """Configuration for the analysis engine."""

    # Descriptive statistics
    histogram_bins: int = 10
    std_ddof: int = 0
    time_interval: str = 'day'

    # Correlation
    correlation_method: str = 'pearson'

    # Change points
    changepoint_algorithm: str = 'moving_average'
    ma_short_window: Optional[int] = None  # None = adapt to series length
    ma_long_window: Optional[int] = None
    ma_threshold: float = 1.0
    cusum_k: float = 0.5
    cusum_h: float = 5.0
    ewma_lambda: float = 0.2
    ewma_k: float = 3.0
    binseg_min_segment: int = 3
    binseg_threshold: float = 0.3
    binseg_max_change_points: Optional[int] = None

    # Factor analysis / canonical correlation
    n_factors: Optional[int] = None
    factor_scale_data: bool = False
    cca_exact_p_values: bool = False
    cca_min_samples: int = 10
    eigen_tolerance: float = 1e-10
    eigen_max_iterations: int = 1000

    # Mutual information
    mi_bin_count: int = 10
    mi_strategy: str = 'uniform'
    mi_normalization: str = 'arithmetic'
    mi_threshold: float = 0.1

    # Association rules
    ar_min_support: float = 0.1
    ar_min_confidence: float = 0.5
    ar_max_itemset_size: int = 3

    # Text analysis
    text_word_limit: int = 20
    text_character_limit: int = 20
    text_min_word_length: int = 2

    # Missing values in projections
    treat_empty_as_missing: bool = False
    treat_zero_as_missing: bool = False

    # Missing-data event detection
    missing_data_include_empty: bool = True
    missing_data_include_zero: bool = True

    # Batch runs and export
    analyses: List[Dict[str, Any]] = field(default_factory=list)
    output_dir: str = "results"
    export_format: str = 'excel'  # or 'csv'

    @classmethod
    def from_dict(cls, values: Dict[str, Any]) -> 'AnalysisConfig':
        """
        Build a configuration from a mapping; unknown keys are ignored with a warning.
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(values) - known)
        if unknown:
            warnings.warn(f"Ignoring unknown configuration keys: {', '.join(unknown)}")

        config = cls(**{k: v for k, v in values.items() if k in known})
        config.validate()
        return config

    @classmethod
    def from_yaml(cls, filepath: str) -> 'AnalysisConfig':
        """Load configuration from YAML file."""
        filepath = Path(filepath)
        if not filepath.exists():
            raise FileNotFoundError(f"Config file not found: {filepath}")

        with open(filepath, 'r', encoding='utf-8') as f:
            values = yaml.safe_load(f) or {}

        if not isinstance(values, dict):
            raise ValueError(f"Config file must contain a mapping: {filepath}")

        return cls.from_dict(values)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def to_yaml(self, filepath: str) -> None:
        """Save configuration to YAML file."""
        filepath = Path(filepath)
        filepath.parent.mkdir(parents=True, exist_ok=True)
        with open(filepath, 'w', encoding='utf-8') as f:
            yaml.safe_dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)

    def validate(self) -> None:
        """
        Validate configuration parameters.

        Raises:
            ValueError: On the first out-of-range value
        """
        checks = [
            (self.histogram_bins >= 1, "histogram_bins must be >= 1"),
            (self.std_ddof in (0, 1), "std_ddof must be 0 or 1"),
            (self.time_interval in ('hour', 'day', 'week', 'month'),
             "time_interval must be one of hour, day, week, month"),
            (self.correlation_method in ('pearson', 'spearman'),
             "correlation_method must be 'pearson' or 'spearman'"),
            (self.changepoint_algorithm in ('moving_average', 'cusum', 'ewma', 'binary_segmentation'),
             "changepoint_algorithm must be one of moving_average, cusum, ewma, binary_segmentation"),
            (self.ma_short_window is None or self.ma_short_window >= 1, "ma_short_window must be >= 1"),
            (self.ma_long_window is None or self.ma_long_window >= 1, "ma_long_window must be >= 1"),
            (self.ma_threshold > 0, "ma_threshold must be > 0"),
            (self.cusum_k >= 0, "cusum_k must be >= 0"),
            (self.cusum_h > 0, "cusum_h must be > 0"),
            (0 < self.ewma_lambda <= 1, "ewma_lambda must be in (0, 1]"),
            (self.ewma_k > 0, "ewma_k must be > 0"),
            (self.binseg_min_segment >= 1, "binseg_min_segment must be >= 1"),
            (0 < self.binseg_threshold <= 1, "binseg_threshold must be in (0, 1]"),
            (self.binseg_max_change_points is None or self.binseg_max_change_points >= 1,
             "binseg_max_change_points must be >= 1"),
            (self.n_factors is None or self.n_factors >= 1, "n_factors must be >= 1"),
            (self.cca_min_samples >= 2, "cca_min_samples must be >= 2"),
            (self.eigen_tolerance > 0, "eigen_tolerance must be > 0"),
            (self.eigen_max_iterations >= 1, "eigen_max_iterations must be >= 1"),
            (self.mi_bin_count >= 2, "mi_bin_count must be >= 2"),
            (self.mi_strategy in ('uniform', 'quantile'), "mi_strategy must be 'uniform' or 'quantile'"),
            (self.mi_normalization in ('arithmetic', 'geometric', 'max'),
             "mi_normalization must be one of arithmetic, geometric, max"),
            (0 < self.ar_min_support <= 1, "ar_min_support must be in (0, 1]"),
            (0 <= self.ar_min_confidence <= 1, "ar_min_confidence must be in [0, 1]"),
            (self.ar_max_itemset_size >= 2, "ar_max_itemset_size must be >= 2"),
            (self.text_word_limit >= 1, "text_word_limit must be >= 1"),
            (self.text_character_limit >= 1, "text_character_limit must be >= 1"),
            (self.text_min_word_length >= 1, "text_min_word_length must be >= 1"),
            (self.export_format in ('excel', 'csv'), "export_format must be 'excel' or 'csv'"),
        ]

        for ok, message in checks:
            if not ok:
                raise ValueError(message)

        for i, entry in enumerate(self.analyses):
            if not isinstance(entry, dict) or 'type' not in entry or 'columns' not in entry:
                raise ValueError(f"analyses[{i}] must be a mapping with 'type' and 'columns'")

    def analyzer_config(self) -> Dict[str, Any]:
        """
        Nested configuration read by the analyzer classes.

        Returns:
            {'analysis': {<section>: {...}}}
        """
        return {
            'analysis': {
                'statistical': {
                    'histogram_bins': self.histogram_bins,
                    'ddof': self.std_ddof,
                    'time_interval': self.time_interval,
                },
                'correlation': {
                    'method': self.correlation_method,
                },
                'changepoint': {
                    'algorithm': self.changepoint_algorithm,
                    'moving_average': {
                        'short_window': self.ma_short_window,
                        'long_window': self.ma_long_window,
                        'threshold': self.ma_threshold,
                    },
                    'cusum': {'k': self.cusum_k, 'h': self.cusum_h},
                    'ewma': {'lam': self.ewma_lambda, 'k': self.ewma_k},
                    'binary_segmentation': {
                        'min_segment': self.binseg_min_segment,
                        'threshold': self.binseg_threshold,
                        'max_change_points': self.binseg_max_change_points,
                    },
                },
                'factor': {
                    'n_factors': self.n_factors,
                    'scale_data': self.factor_scale_data,
                    'eigen_tolerance': self.eigen_tolerance,
                    'eigen_max_iterations': self.eigen_max_iterations,
                },
                'canonical': {
                    'exact_p_values': self.cca_exact_p_values,
                    'min_samples': self.cca_min_samples,
                    'eigen_tolerance': self.eigen_tolerance,
                    'eigen_max_iterations': self.eigen_max_iterations,
                },
                'mutual_information': {
                    'bin_count': self.mi_bin_count,
                    'strategy': self.mi_strategy,
                    'normalization': self.mi_normalization,
                    'threshold': self.mi_threshold,
                },
                'association_rules': {
                    'min_support': self.ar_min_support,
                    'min_confidence': self.ar_min_confidence,
                    'max_itemset_size': self.ar_max_itemset_size,
                },
                'text': {
                    'word_limit': self.text_word_limit,
                    'character_limit': self.text_character_limit,
                    'min_word_length': self.text_min_word_length,
                },
                'missing_data': {
                    'treat_empty_as_missing': self.missing_data_include_empty,
                    'treat_zero_as_missing': self.missing_data_include_zero,
                },
            }
        }
