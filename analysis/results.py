"""
Analysis Results

Typed result structures returned by the analysis engine.

``AnalysisResult`` is a closed union with one frozen dataclass per analysis
type. Every variant carries a ``kind`` tag and a ``to_frame()`` method that
flattens it into a DataFrame for rendering or export. Results are created
fresh per call and never mutated afterwards.
"""

from typing import List, Dict, Optional, Tuple, Union, ClassVar, Any
from dataclasses import dataclass, field

import numpy as np
import pandas as pd


# ---------------------------------------------------------------------------
# Descriptive statistics
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ColumnStats:
    """Summary statistics of a single numeric column."""
    column: str
    count: int
    mean: float
    std: float
    min: float
    max: float
    q1: float
    q2: float
    q3: float

    @property
    def quartiles(self) -> Dict[str, float]:
        return {'q1': self.q1, 'q2': self.q2, 'q3': self.q3}


@dataclass(frozen=True)
class BasicStatsResult:
    kind: ClassVar[str] = 'basic'

    columns: Tuple[ColumnStats, ...]

    def get(self, column: str) -> ColumnStats:
        for stats in self.columns:
            if stats.column == column:
                return stats
        raise KeyError(column)

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame([
            {
                'column': s.column, 'count': s.count, 'mean': s.mean, 'std': s.std,
                'min': s.min, 'q1': s.q1, 'median': s.q2, 'q3': s.q3, 'max': s.max
            }
            for s in self.columns
        ])


# ---------------------------------------------------------------------------
# Correlation
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CorrelationPair:
    column1: str
    column2: str
    correlation: float
    p_value: float
    n: int


@dataclass(frozen=True)
class CorrelationMatrixResult:
    """
    Pairwise Pearson correlations.

    ``pairs`` holds the upper triangle in selection order; ``matrix`` is the
    full symmetric matrix (ones on the diagonal, NaN for skipped pairs).
    """
    kind: ClassVar[str] = 'correlation'

    columns: Tuple[str, ...]
    pairs: Tuple[CorrelationPair, ...]
    matrix: np.ndarray = field(repr=False, compare=False)

    def get(self, column1: str, column2: str) -> float:
        i = self.columns.index(column1)
        j = self.columns.index(column2)
        return float(self.matrix[i, j])

    def matrix_frame(self) -> pd.DataFrame:
        return pd.DataFrame(self.matrix, index=list(self.columns), columns=list(self.columns))

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            [(p.column1, p.column2, p.correlation, p.p_value, p.n) for p in self.pairs],
            columns=['column1', 'column2', 'correlation', 'p_value', 'n']
        )


# ---------------------------------------------------------------------------
# Histogram / time series
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class HistogramBin:
    label: str
    lower: float
    upper: float
    count: int
    frequency: float  # percent of total


@dataclass(frozen=True)
class HistogramResult:
    kind: ClassVar[str] = 'histogram'

    column: str
    bins: Tuple[HistogramBin, ...]
    total_count: int

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            [(b.label, b.lower, b.upper, b.count, b.frequency) for b in self.bins],
            columns=['bin', 'lower', 'upper', 'count', 'frequency']
        )


@dataclass(frozen=True)
class TimeSeriesPoint:
    time: str
    value: float
    count: int


@dataclass(frozen=True)
class TimeSeriesResult:
    kind: ClassVar[str] = 'timeseries'

    column: str
    time_column: Optional[str]
    interval: Optional[str]
    points: Tuple[TimeSeriesPoint, ...]

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            [(p.time, p.value, p.count) for p in self.points],
            columns=['time', 'value', 'count']
        )


# ---------------------------------------------------------------------------
# Change points
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ChangePoint:
    """
    A detected change in an ordered series.

    Attributes:
        index: Position in the ordered series
        value: Series value at that position
        confidence: Detection strength in [0, 1]
        algorithm: Name of the detector that produced it
    """
    index: int
    value: float
    confidence: float
    algorithm: str


@dataclass(frozen=True)
class ChangePointSet:
    kind: ClassVar[str] = 'changepoint'

    column: str
    algorithm: str
    points: Tuple[ChangePoint, ...]
    series_length: int
    order_column: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return len(self.points) == 0

    @property
    def indices(self) -> List[int]:
        return [p.index for p in self.points]

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            [(p.index, p.value, p.confidence, p.algorithm) for p in self.points],
            columns=['index', 'value', 'confidence', 'algorithm']
        )


# ---------------------------------------------------------------------------
# Factor analysis
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Factor:
    name: str
    eigenvalue: float
    variance: float  # ratio of total variance, 0-1
    loadings: Dict[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class FactorResult:
    kind: ClassVar[str] = 'factor'

    variables: Tuple[str, ...]
    factors: Tuple[Factor, ...]
    eigenvalues: Tuple[float, ...]
    cumulative_variance: Tuple[float, ...]
    n_samples: int
    scaled: bool = False

    @property
    def explained_variance(self) -> Tuple[float, ...]:
        return tuple(f.variance for f in self.factors)

    def loadings_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            {f.name: [f.loadings[v] for v in self.variables] for f in self.factors},
            index=list(self.variables)
        )

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame({
            'factor': [f.name for f in self.factors],
            'eigenvalue': [f.eigenvalue for f in self.factors],
            'variance': [f.variance for f in self.factors],
            'cumulative_variance': list(self.cumulative_variance[:len(self.factors)]),
        })


# ---------------------------------------------------------------------------
# Canonical correlation
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CanonicalVariate:
    variate: int
    coefficients: Dict[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class CanonicalResult:
    kind: ClassVar[str] = 'canonical'

    left_variables: Tuple[str, ...]
    right_variables: Tuple[str, ...]
    canonical_correlations: Tuple[float, ...]
    variance_explained: Tuple[float, ...]  # percent, sums to 100
    cumulative_variance: Tuple[float, ...]
    left_variates: Tuple[CanonicalVariate, ...]
    right_variates: Tuple[CanonicalVariate, ...]
    wilks_lambda: Tuple[float, ...]
    chi_square: Tuple[float, ...]
    p_values: Tuple[float, ...]
    n_samples: int
    p_value_method: str = 'approximate'

    def loadings(self) -> List[Dict[str, Any]]:
        """Coefficient of every variable on every variate of its own side."""
        rows = []
        for variable in self.left_variables:
            rows.append({
                'variable': variable,
                'left_loadings': [v.coefficients[variable] for v in self.left_variates],
                'right_loadings': [],
            })
        for variable in self.right_variables:
            rows.append({
                'variable': variable,
                'left_loadings': [],
                'right_loadings': [v.coefficients[variable] for v in self.right_variates],
            })
        return rows

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame({
            'variate': list(range(1, len(self.canonical_correlations) + 1)),
            'canonical_correlation': list(self.canonical_correlations),
            'variance_explained': list(self.variance_explained),
            'cumulative_variance': list(self.cumulative_variance),
            'wilks_lambda': list(self.wilks_lambda),
            'chi_square': list(self.chi_square),
            'p_value': list(self.p_values),
        })


# ---------------------------------------------------------------------------
# Mutual information
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class MutualInfoPair:
    column1: str
    column2: str
    mutual_information: float
    normalized_mi: float
    joint_entropy: float
    entropy1: float
    entropy2: float
    conditional_entropy12: float  # H(Y|X)
    conditional_entropy21: float  # H(X|Y)
    interpretation: str
    n_samples: int


@dataclass(frozen=True)
class MutualInfoSummary:
    total_pairs: int
    average_mi: float
    max_mi: float
    min_mi: float
    strongly_related_pairs: Tuple[MutualInfoPair, ...]


@dataclass(frozen=True)
class MutualInfoResult:
    kind: ClassVar[str] = 'mutual_information'

    columns: Tuple[str, ...]
    pairs: Tuple[MutualInfoPair, ...]  # ranked by MI, descending
    summary: MutualInfoSummary
    samples_analyzed: int
    normalization: str

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame([
            {
                'column1': p.column1, 'column2': p.column2,
                'mutual_information': p.mutual_information,
                'normalized_mi': p.normalized_mi,
                'entropy1': p.entropy1, 'entropy2': p.entropy2,
                'joint_entropy': p.joint_entropy,
                'interpretation': p.interpretation, 'n': p.n_samples,
            }
            for p in self.pairs
        ], columns=['column1', 'column2', 'mutual_information', 'normalized_mi',
                    'entropy1', 'entropy2', 'joint_entropy', 'interpretation', 'n'])


# ---------------------------------------------------------------------------
# Association rules
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class AssociationRule:
    """
    Rule ``antecedent -> consequent``.

    ``conviction`` is ``math.inf`` when confidence equals 1.
    """
    antecedent: Tuple[str, ...]
    consequent: Tuple[str, ...]
    support: float
    confidence: float
    lift: float
    conviction: float

    def __str__(self) -> str:
        return f"{{{', '.join(self.antecedent)}}} => {{{', '.join(self.consequent)}}}"


@dataclass(frozen=True)
class AssociationRuleSet:
    kind: ClassVar[str] = 'association_rules'

    columns: Tuple[str, ...]
    rules: Tuple[AssociationRule, ...]
    total_transactions: int
    item_frequency: Dict[str, int]
    frequent_itemsets: int
    min_support: float
    min_confidence: float

    @property
    def is_empty(self) -> bool:
        return len(self.rules) == 0

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame([
            {
                'antecedent': ', '.join(r.antecedent),
                'consequent': ', '.join(r.consequent),
                'support': r.support, 'confidence': r.confidence,
                'lift': r.lift, 'conviction': r.conviction,
            }
            for r in self.rules
        ], columns=['antecedent', 'consequent', 'support', 'confidence', 'lift', 'conviction'])


# ---------------------------------------------------------------------------
# Column profiling / missing data
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ColumnProfile:
    column: str
    total_rows: int
    unique_values: int
    null_count: int
    null_percentage: float
    empty_string_count: int
    empty_string_percentage: float
    data_type: str
    sample_values: Tuple[str, ...]
    top_values: Tuple[Tuple[str, int, float], ...]  # (value, count, percentage)
    numeric_stats: Optional[Dict[str, float]] = None


@dataclass(frozen=True)
class ColumnProfileResult:
    kind: ClassVar[str] = 'column_profile'

    profiles: Tuple[ColumnProfile, ...]

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame([
            {
                'column': p.column, 'data_type': p.data_type, 'total_rows': p.total_rows,
                'unique_values': p.unique_values, 'null_count': p.null_count,
                'null_percentage': p.null_percentage,
                'empty_string_count': p.empty_string_count,
                'empty_string_percentage': p.empty_string_percentage,
            }
            for p in self.profiles
        ])


@dataclass(frozen=True)
class MissingDataEvent:
    row_index: int
    column: str
    event_type: str  # 'missing_start' or 'missing_end'
    value: Any
    previous_value: Any = None
    missing_length: Optional[int] = None
    confidence: float = 1.0


@dataclass(frozen=True)
class MissingColumnStats:
    total_missing_events: int
    average_missing_length: float
    max_missing_length: int
    missing_percentage: float


@dataclass(frozen=True)
class MissingDataResult:
    kind: ClassVar[str] = 'missing_data'

    events: Tuple[MissingDataEvent, ...]
    column_stats: Dict[str, MissingColumnStats]
    longest_missing_streak: int

    @property
    def affected_columns(self) -> List[str]:
        return [c for c, s in self.column_stats.items() if s.total_missing_events > 0]

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            [(e.row_index, e.column, e.event_type, e.missing_length) for e in self.events],
            columns=['row_index', 'column', 'event_type', 'missing_length']
        )


# ---------------------------------------------------------------------------
# Text analysis
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FrequencyEntry:
    """A labelled count with its share of the total in percent."""
    label: str
    count: int
    percentage: float


@dataclass(frozen=True)
class TextPattern:
    pattern: str
    description: str
    count: int
    percentage: float
    examples: Tuple[str, ...]


@dataclass(frozen=True)
class LanguageShare:
    language: str
    count: int
    percentage: float
    confidence: float  # mean detection confidence of the records


@dataclass(frozen=True)
class TextStatistics:
    total_records: int
    total_characters: int
    total_words: int
    total_sentences: int
    total_paragraphs: int
    average_characters_per_record: float
    average_words_per_record: float
    average_sentences_per_record: float
    average_words_per_sentence: float
    median_characters_per_record: int
    median_words_per_record: int
    min_characters: int
    max_characters: int
    min_words: int
    max_words: int
    empty_records: int
    empty_percentage: float
    unique_records: int
    unique_percentage: float


@dataclass(frozen=True)
class TextAnalysisResult:
    """
    Text statistics, frequencies, patterns, language mix, sentence shape
    and readability of one column.
    """
    kind: ClassVar[str] = 'text'

    column: str
    statistics: TextStatistics
    word_frequencies: Tuple[FrequencyEntry, ...]
    character_frequencies: Tuple[FrequencyEntry, ...]
    patterns: Tuple[TextPattern, ...]
    languages: Tuple[LanguageShare, ...]
    character_types: Tuple[FrequencyEntry, ...]
    average_sentence_length: float
    sentence_length_distribution: Tuple[FrequencyEntry, ...]
    punctuation_usage: Tuple[FrequencyEntry, ...]
    average_characters_per_word: float
    readability_score: float
    complexity_level: str
    recommendations: Tuple[str, ...]

    def to_frame(self) -> pd.DataFrame:
        rows = [(name, value) for name, value in vars(self.statistics).items()]
        rows += [
            ('average_sentence_length', self.average_sentence_length),
            ('average_characters_per_word', self.average_characters_per_word),
            ('readability_score', self.readability_score),
            ('complexity_level', self.complexity_level),
        ]
        return pd.DataFrame(rows, columns=['metric', 'value'])

    def words_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            [(w.label, w.count, w.percentage) for w in self.word_frequencies],
            columns=['word', 'count', 'percentage']
        )


AnalysisResult = Union[
    BasicStatsResult,
    CorrelationMatrixResult,
    HistogramResult,
    TimeSeriesResult,
    ChangePointSet,
    FactorResult,
    CanonicalResult,
    MutualInfoResult,
    AssociationRuleSet,
    ColumnProfileResult,
    MissingDataResult,
    TextAnalysisResult,
]
