"""
Mutual Information

Pairwise mutual information between columns in bits.

Numeric columns are discretized into equal-width bins (or quantile bins)
with KBinsDiscretizer; non-numeric columns are used as categories. Each
pair is computed on its own complete rows.

Interpretation of the normalized MI:
- Strong:      > 0.7
- Moderate:    > 0.3
- Weak:        > 0.1
- Independent: otherwise
"""

from typing import List, Optional, Tuple, Dict, Any
import itertools
import numpy as np
import pandas as pd
import warnings
from scipy import stats
from sklearn.preprocessing import KBinsDiscretizer

from .errors import InsufficientData, ValidationError
from .results import MutualInfoPair, MutualInfoSummary, MutualInfoResult
from .statistical import to_numeric


NORMALIZATIONS = ('arithmetic', 'geometric', 'max')
BIN_STRATEGIES = ('uniform', 'quantile')
MIN_PAIR_ROWS = 3


def entropy_bits(codes: np.ndarray) -> float:
    """Shannon entropy (bits) of a discrete sample."""
    if len(codes) == 0:
        return 0.0
    _, counts = np.unique(codes, return_counts=True)
    return float(stats.entropy(counts, base=2))


def joint_entropy_bits(codes_x: np.ndarray, codes_y: np.ndarray) -> float:
    """Shannon entropy (bits) of the joint distribution of two aligned samples."""
    if len(codes_x) == 0:
        return 0.0
    pairs = np.stack([codes_x, codes_y], axis=1)
    _, counts = np.unique(pairs, axis=0, return_counts=True)
    return float(stats.entropy(counts, base=2))


def interpret(normalized_mi: float) -> str:
    if normalized_mi > 0.7:
        return 'Strong'
    elif normalized_mi > 0.3:
        return 'Moderate'
    elif normalized_mi > 0.1:
        return 'Weak'
    return 'Independent'


class MutualInformationAnalyzer:
    """
    Compute mutual information for every column pair.

    Results are ranked by mutual information, descending.
    """

    def __init__(
        self,
        bin_count: int = 10,
        strategy: str = 'uniform',
        normalization: str = 'arithmetic',
        threshold: float = 0.1,
        config: Optional[Dict] = None
    ):
        """
        Initialize mutual information analyzer.

        Args:
            bin_count: Number of bins for numeric columns
            strategy: 'uniform' (equal width) or 'quantile'
            normalization: 'arithmetic', 'geometric' or 'max'
            threshold: MI (bits) above which a pair is listed as strongly related
            config: Optional configuration dictionary
        """
        self.config = config or {}

        mi_config = self.config.get('analysis', {}).get('mutual_information', {})
        self.bin_count = mi_config.get('bin_count', bin_count)
        self.strategy = mi_config.get('strategy', strategy)
        self.normalization = mi_config.get('normalization', normalization)
        self.threshold = mi_config.get('threshold', threshold)

        self._validate()

    def _validate(self):
        if self.bin_count < 2:
            raise ValidationError(f"bin_count must be at least 2, got {self.bin_count}")
        if self.strategy not in BIN_STRATEGIES:
            raise ValidationError(
                f"Unknown binning strategy '{self.strategy}'. Valid options: {', '.join(BIN_STRATEGIES)}"
            )
        if self.normalization not in NORMALIZATIONS:
            raise ValidationError(
                f"Unknown normalization '{self.normalization}'. Valid options: {', '.join(NORMALIZATIONS)}"
            )

    def discretize(self, values: pd.Series) -> np.ndarray:
        """
        Map non-missing values to integer codes.

        Args:
            values: Column values without missing entries

        Returns:
            Integer code per value
        """
        numeric = to_numeric(values)
        if len(values) > 0 and numeric.notna().all():
            x = numeric.to_numpy().reshape(-1, 1)
            if np.all(x == x[0]):
                return np.zeros(len(x), dtype=int)

            discretizer = KBinsDiscretizer(
                n_bins=self.bin_count, encode='ordinal', strategy=self.strategy
            )
            with warnings.catch_warnings():
                # Quantile bins collapse on repeated values
                warnings.simplefilter('ignore')
                codes = discretizer.fit_transform(x)
            return codes.ravel().astype(int)

        codes, _ = pd.factorize(values.astype(str))
        return codes

    def _normalize(self, mi: float, h1: float, h2: float) -> float:
        if self.normalization == 'geometric':
            denominator = np.sqrt(h1 * h2)
        elif self.normalization == 'max':
            denominator = max(h1, h2)
        else:
            denominator = (h1 + h2) / 2.0
        return float(mi / denominator) if denominator > 0 else 0.0

    def compute_pair(self, data: pd.DataFrame, column1: str, column2: str) -> Optional[MutualInfoPair]:
        """
        Mutual information of one column pair on its complete rows.

        Returns:
            MutualInfoPair, or None when fewer than 3 complete rows remain
        """
        pair = data[[column1, column2]].dropna()
        if column1 == column2:
            pair = data[[column1]].dropna()
        n = len(pair)

        if n < MIN_PAIR_ROWS:
            warnings.warn(
                f"Skipping pair ({column1}, {column2}): {n} complete rows, need at least {MIN_PAIR_ROWS}"
            )
            return None

        codes1 = self.discretize(pair.iloc[:, 0])
        codes2 = self.discretize(pair.iloc[:, -1])

        h1 = entropy_bits(codes1)
        h2 = entropy_bits(codes2)
        h12 = joint_entropy_bits(codes1, codes2)
        mi = max(0.0, h1 + h2 - h12)
        normalized = self._normalize(mi, h1, h2)

        return MutualInfoPair(
            column1=column1,
            column2=column2,
            mutual_information=mi,
            normalized_mi=normalized,
            joint_entropy=h12,
            entropy1=h1,
            entropy2=h2,
            conditional_entropy12=max(0.0, h12 - h1),
            conditional_entropy21=max(0.0, h12 - h2),
            interpretation=interpret(normalized),
            n_samples=n
        )

    def analyze(self, data: pd.DataFrame, columns: Optional[List[str]] = None) -> MutualInfoResult:
        """
        Compute mutual information for all column pairs.

        Args:
            data: Projection holding the requested columns
            columns: Columns to analyze (None = all columns of data)

        Returns:
            MutualInfoResult with pairs ranked by MI

        Raises:
            InsufficientData: If no pair has enough complete rows
        """
        columns = list(columns) if columns is not None else list(data.columns)
        if len(columns) < 2:
            raise ValidationError("Mutual information requires at least 2 columns")

        pairs = []
        for column1, column2 in itertools.combinations(columns, 2):
            result = self.compute_pair(data, column1, column2)
            if result is not None:
                pairs.append(result)

        if len(pairs) == 0:
            raise InsufficientData(
                f"No column pair has at least {MIN_PAIR_ROWS} complete rows",
                n_rows=len(data),
                required=MIN_PAIR_ROWS
            )

        pairs.sort(key=lambda p: p.mutual_information, reverse=True)
        mi_values = np.array([p.mutual_information for p in pairs])

        summary = MutualInfoSummary(
            total_pairs=len(pairs),
            average_mi=float(np.mean(mi_values)),
            max_mi=float(np.max(mi_values)),
            min_mi=float(np.min(mi_values)),
            strongly_related_pairs=tuple(p for p in pairs if p.mutual_information > self.threshold)
        )

        return MutualInfoResult(
            columns=tuple(columns),
            pairs=tuple(pairs),
            summary=summary,
            samples_analyzed=int(len(data[columns].dropna(how='all'))),
            normalization=self.normalization
        )
