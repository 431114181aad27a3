"""
Analysis Engine

Single entry point routing an analysis request to the matching module.

For every call the engine:
1. validates the analysis type and the column-count bounds of that type
2. fetches the filtered projection from the table
3. checks that numeric analyses receive convertible columns
4. delegates to the analysis module
5. re-raises internal algebra failures as AnalysisFailed with context

The engine keeps no state between calls; configuration is an injected
value and per-call parameters override it.
"""

from typing import List, Dict, Optional, Any, Sequence, Callable
from dataclasses import dataclass
import copy
import pandas as pd

from analysis.errors import (
    AnalysisError, ValidationError, InvalidColumn,
    DimensionMismatch, SingularMatrix, AnalysisFailed,
)
from analysis.results import AnalysisResult
from analysis.statistical import StatisticalAnalyzer, CorrelationAnalyzer, to_numeric
from analysis.dimensionality import FactorAnalyzer
from analysis.canonical import CanonicalCorrelationAnalyzer
from analysis.changepoint import ChangePointAnalyzer
from analysis.information import MutualInformationAnalyzer
from analysis.association import AprioriMiner
from analysis.profiling import ColumnProfiler, MissingDataDetector
from analysis.text import TextAnalyzer
from data.filters import FilterPredicate, MissingDataOptions
from data.table import MemoryTable
from .config import AnalysisConfig


@dataclass(frozen=True)
class ColumnBounds:
    minimum: int
    maximum: int

    def contains(self, n: int) -> bool:
        return self.minimum <= n <= self.maximum

    def __str__(self) -> str:
        if self.minimum == self.maximum:
            return f"exactly {self.minimum}"
        return f"{self.minimum}-{self.maximum}"


COLUMN_BOUNDS: Dict[str, ColumnBounds] = {
    'basic': ColumnBounds(1, 10),
    'correlation': ColumnBounds(2, 10),
    'changepoint': ColumnBounds(1, 1),
    'factor': ColumnBounds(2, 10),
    'histogram': ColumnBounds(1, 1),
    'timeseries': ColumnBounds(1, 1),
    'canonical': ColumnBounds(2, 10),  # per side
    'mutual_information': ColumnBounds(2, 10),
    'association_rules': ColumnBounds(2, 10),
    'column_profile': ColumnBounds(1, 10),
    'missing_data': ColumnBounds(1, 10),
    'text': ColumnBounds(1, 1),
}

ANALYSIS_TYPES = tuple(COLUMN_BOUNDS)

# Minimum numeric non-null values per column for canonical correlation
CANONICAL_MIN_VALUES = 10


# Per-call parameters that must be numbers, with their target type
NUMERIC_PARAMETERS: Dict[str, type] = {
    'bins': int,
    'ddof': int,
    'n_factors': int,
    'bin_count': int,
    'max_itemset_size': int,
    'short_window': int,
    'long_window': int,
    'baseline': int,
    'min_segment': int,
    'max_change_points': int,
    'word_limit': int,
    'character_limit': int,
    'min_word_length': int,
    'threshold': float,
    'min_support': float,
    'min_confidence': float,
    'k': float,
    'h': float,
    'target': float,
    'lam': float,
    'lambda': float,
}


def coerce_parameters(parameters: Dict[str, Any]) -> Dict[str, Any]:
    """
    Convert numeric per-call parameters to their numeric type.

    Numeric strings such as '5' (common in YAML and CLI input) are accepted;
    anything else raises ValidationError naming the parameter.

    Args:
        parameters: Raw per-call parameters

    Returns:
        A new dict with numeric parameters converted
    """
    coerced = dict(parameters)
    for name, kind in NUMERIC_PARAMETERS.items():
        value = coerced.get(name)
        if value is None:
            continue
        if isinstance(value, bool):
            raise ValidationError(f"Parameter '{name}' must be a number, got {value!r}")
        try:
            number = float(value)
        except (TypeError, ValueError):
            raise ValidationError(f"Parameter '{name}' must be a number, got {value!r}") from None
        if kind is int:
            if not number.is_integer():
                raise ValidationError(f"Parameter '{name}' must be an integer, got {value!r}")
            number = int(number)
        coerced[name] = number

    right = coerced.get('right_columns')
    if isinstance(right, str):
        coerced['right_columns'] = [right]
    return coerced


@dataclass(frozen=True)
class AnalysisOutcome:
    """Either a result or the error that prevented it."""
    analysis_type: str
    columns: tuple
    result: Optional[AnalysisResult] = None
    error: Optional[AnalysisError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class AnalysisEngine:
    """
    Dispatch facade over the analysis modules.

    Example:
        >>> engine = AnalysisEngine()
        >>> result = engine.run('correlation', table, ['x', 'y'])
        >>> result.get('x', 'y')
    """

    def __init__(self, config: Optional[AnalysisConfig] = None):
        """
        Initialize engine.

        Args:
            config: Parameter defaults (None = AnalysisConfig())
        """
        self.config = config or AnalysisConfig()
        self.config.validate()

        self._handlers: Dict[str, Callable] = {
            'basic': self._run_basic,
            'correlation': self._run_correlation,
            'changepoint': self._run_changepoint,
            'factor': self._run_factor,
            'histogram': self._run_histogram,
            'timeseries': self._run_timeseries,
            'canonical': self._run_canonical,
            'mutual_information': self._run_mutual_information,
            'association_rules': self._run_association_rules,
            'column_profile': self._run_column_profile,
            'missing_data': self._run_missing_data,
            'text': self._run_text,
        }

    def run(
        self,
        analysis_type: str,
        table: MemoryTable,
        columns: Sequence[str],
        parameters: Optional[Dict[str, Any]] = None,
        filters: Optional[Sequence[FilterPredicate]] = None
    ) -> AnalysisResult:
        """
        Run one analysis.

        Args:
            analysis_type: One of ANALYSIS_TYPES
            table: Table supplying the projection
            columns: Selected columns (the left set for 'canonical')
            parameters: Per-call parameters overriding the configuration
            filters: Active row predicates

        Returns:
            The typed result of the analysis

        Raises:
            AnalysisError: Exactly one typed failure (ValidationError,
                InsufficientData, InsufficientVariables, InvalidColumn,
                AnalysisFailed)
        """
        if analysis_type not in self._handlers:
            raise ValidationError(
                f"Unknown analysis type '{analysis_type}'. Valid options: {', '.join(ANALYSIS_TYPES)}"
            )

        columns = list(columns)
        parameters = coerce_parameters(parameters or {})
        filters = list(filters or [])

        self._check_bounds(analysis_type, columns, 'columns')

        try:
            return self._handlers[analysis_type](table, columns, parameters, filters)
        except (DimensionMismatch, SingularMatrix) as exc:
            raise AnalysisFailed(str(exc), module=analysis_type, columns=columns) from exc
        except (TypeError, ValueError) as exc:
            # Parameter values the analyzers cannot use (wrong kind, out of range)
            raise ValidationError(f"Invalid parameters for '{analysis_type}': {exc}") from exc

    def try_run(
        self,
        analysis_type: str,
        table: MemoryTable,
        columns: Sequence[str],
        parameters: Optional[Dict[str, Any]] = None,
        filters: Optional[Sequence[FilterPredicate]] = None
    ) -> AnalysisOutcome:
        """Like run(), but return the failure inside an AnalysisOutcome instead of raising it."""
        try:
            result = self.run(analysis_type, table, columns, parameters, filters)
        except AnalysisError as error:
            return AnalysisOutcome(analysis_type, tuple(columns), error=error)
        return AnalysisOutcome(analysis_type, tuple(columns), result=result)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _check_bounds(analysis_type: str, columns: List[str], label: str) -> None:
        bounds = COLUMN_BOUNDS[analysis_type]
        if not bounds.contains(len(columns)):
            raise ValidationError(
                f"'{analysis_type}' requires {bounds} {label}, got {len(columns)}"
            )
        duplicates = sorted({c for c in columns if columns.count(c) > 1})
        if duplicates:
            raise ValidationError(f"Duplicate columns selected: {', '.join(duplicates)}")

    def _analyzer_config(self, section: str, overrides: Dict[str, Any]) -> Dict:
        """Configured analyzer sections with per-call overrides applied to one section."""
        config = copy.deepcopy(self.config.analyzer_config())
        config['analysis'].setdefault(section, {}).update(
            {k: v for k, v in overrides.items() if v is not None}
        )
        return config

    def _missing_options(self, parameters: Dict[str, Any]) -> MissingDataOptions:
        return MissingDataOptions(
            treat_empty_as_missing=parameters.get('treat_empty_as_missing', self.config.treat_empty_as_missing),
            treat_zero_as_missing=parameters.get('treat_zero_as_missing', self.config.treat_zero_as_missing)
        )

    def _projection(
        self,
        table: MemoryTable,
        columns: List[str],
        parameters: Dict[str, Any],
        filters: List[FilterPredicate]
    ) -> pd.DataFrame:
        return table.get_column_data(columns, filters, self._missing_options(parameters))

    @staticmethod
    def _require_numeric(data: pd.DataFrame, columns: List[str], min_values: int = 1) -> None:
        """Raise InvalidColumn naming every column with fewer than ``min_values`` numeric values."""
        invalid = [c for c in columns if int(to_numeric(data[c]).notna().sum()) < min_values]
        if invalid:
            raise InvalidColumn(f"Invalid data for columns {' and '.join(invalid)}", columns=invalid)

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def _run_basic(self, table, columns, parameters, filters):
        data = self._projection(table, columns, parameters, filters)
        self._require_numeric(data, columns)
        analyzer = StatisticalAnalyzer(config=self._analyzer_config('statistical', {
            'ddof': parameters.get('ddof'),
        }))
        return analyzer.compute_basic_stats(data, columns)

    def _run_correlation(self, table, columns, parameters, filters):
        # Each pair uses its own complete rows, so rows are not dropped across all columns here
        data = table.get_rows(columns, filters)
        self._require_numeric(data, columns)
        analyzer = CorrelationAnalyzer(config=self._analyzer_config('correlation', {
            'method': parameters.get('method'),
        }))
        return analyzer.compute_feature_correlations(data, columns)

    def _run_histogram(self, table, columns, parameters, filters):
        column = columns[0]
        data = self._projection(table, columns, parameters, filters)
        self._require_numeric(data, columns)
        analyzer = StatisticalAnalyzer(config=self._analyzer_config('statistical', {
            'histogram_bins': parameters.get('bins'),
        }))
        return analyzer.compute_histogram(data[column], column)

    def _run_timeseries(self, table, columns, parameters, filters):
        column = columns[0]
        x_axis = parameters.get('x_axis')
        selected = [column] if x_axis is None or x_axis == column else [column, x_axis]

        data = self._projection(table, selected, parameters, filters)
        self._require_numeric(data, [column])
        analyzer = StatisticalAnalyzer(config=self._analyzer_config('statistical', {
            'time_interval': parameters.get('interval'),
        }))
        return analyzer.compute_time_series(
            data[column],
            column,
            time_values=data[x_axis] if x_axis is not None else None,
            time_column=x_axis
        )

    def _run_changepoint(self, table, columns, parameters, filters):
        column = columns[0]
        x_axis = parameters.get('x_axis')
        selected = [column] if x_axis is None or x_axis == column else [column, x_axis]

        data = self._projection(table, selected, parameters, filters)
        self._require_numeric(data, [column])

        reserved = {'x_axis', 'algorithm', 'treat_empty_as_missing', 'treat_zero_as_missing'}
        detector_params = {k: v for k, v in parameters.items() if k not in reserved}

        analyzer = ChangePointAnalyzer(config=self._analyzer_config('changepoint', {
            'algorithm': parameters.get('algorithm'),
        }))
        return analyzer.detect(
            data[column],
            column,
            order_values=data[x_axis] if x_axis is not None else None,
            order_column=x_axis,
            params=detector_params
        )

    def _run_factor(self, table, columns, parameters, filters):
        data = self._projection(table, columns, parameters, filters)
        self._require_numeric(data, columns)
        analyzer = FactorAnalyzer(config=self._analyzer_config('factor', {
            'n_factors': parameters.get('n_factors'),
            'scale_data': parameters.get('scale_data'),
        }))
        return analyzer.analyze(data, columns)

    def _run_canonical(self, table, columns, parameters, filters):
        right = list(parameters.get('right_columns') or [])
        self._check_bounds('canonical', right, 'right columns')

        overlap = sorted(set(columns) & set(right))
        if overlap:
            raise ValidationError(f"Column sets must be disjoint; both contain: {', '.join(overlap)}")

        selected = columns + right
        rows = table.get_rows(selected, filters)
        self._require_numeric(rows, selected, min_values=CANONICAL_MIN_VALUES)

        data = self._projection(table, selected, parameters, filters)
        analyzer = CanonicalCorrelationAnalyzer(config=self._analyzer_config('canonical', {
            'exact_p_values': parameters.get('exact_p_values'),
        }))
        return analyzer.analyze(data, columns, right)

    def _run_mutual_information(self, table, columns, parameters, filters):
        # Pairs use their own complete rows
        data = table.get_rows(columns, filters)
        analyzer = MutualInformationAnalyzer(config=self._analyzer_config('mutual_information', {
            'bin_count': parameters.get('bin_count'),
            'strategy': parameters.get('strategy'),
            'normalization': parameters.get('normalization'),
            'threshold': parameters.get('threshold'),
        }))
        return analyzer.analyze(data, columns)

    def _run_association_rules(self, table, columns, parameters, filters):
        # Missing cells simply contribute no item
        data = table.get_rows(columns, filters)
        miner = AprioriMiner(config=self._analyzer_config('association_rules', {
            'min_support': parameters.get('min_support'),
            'min_confidence': parameters.get('min_confidence'),
            'max_itemset_size': parameters.get('max_itemset_size'),
        }))
        return miner.analyze(data, columns)

    def _run_column_profile(self, table, columns, parameters, filters):
        data = table.get_rows(columns, filters)
        return ColumnProfiler(config=self._analyzer_config('column_profile', {})).profile(data, columns)

    def _run_missing_data(self, table, columns, parameters, filters):
        data = table.get_rows(columns, filters)
        detector = MissingDataDetector(config=self._analyzer_config('missing_data', {
            'treat_empty_as_missing': parameters.get('include_empty'),
            'treat_zero_as_missing': parameters.get('include_zero'),
        }))
        return detector.detect(data, columns)

    def _run_text(self, table, columns, parameters, filters):
        column = columns[0]
        data = table.get_rows(columns, filters)
        analyzer = TextAnalyzer(config=self._analyzer_config('text', {
            'word_limit': parameters.get('word_limit'),
            'character_limit': parameters.get('character_limit'),
            'min_word_length': parameters.get('min_word_length'),
        }))
        return analyzer.analyze(data[column], column)
