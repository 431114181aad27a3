"""
Analysis Layer

Descriptive statistics, correlation, factor and canonical correlation
analysis, change-point detection, mutual information, association rules,
column profiling and text analysis.
"""

from .errors import (
    AnalysisError,
    ValidationError,
    InsufficientData,
    InsufficientVariables,
    InvalidColumn,
    DimensionMismatch,
    SingularMatrix,
    AnalysisFailed
)
from .statistical import (
    StatisticalAnalyzer,
    CorrelationAnalyzer
)
from .dimensionality import (
    FactorAnalyzer,
    create_factor_analyzer_from_config
)
from .canonical import CanonicalCorrelationAnalyzer
from .changepoint import (
    ChangePointAnalyzer,
    ChangePointDetector,
    available_detectors,
    get_detector
)
from .information import MutualInformationAnalyzer
from .association import AprioriMiner
from .text import TextAnalyzer
from .profiling import (
    ColumnProfiler,
    MissingDataDetector
)

__all__ = [
    # Errors
    'AnalysisError',
    'ValidationError',
    'InsufficientData',
    'InsufficientVariables',
    'InvalidColumn',
    'DimensionMismatch',
    'SingularMatrix',
    'AnalysisFailed',

    # Statistical
    'StatisticalAnalyzer',
    'CorrelationAnalyzer',

    # Multivariate
    'FactorAnalyzer',
    'create_factor_analyzer_from_config',
    'CanonicalCorrelationAnalyzer',

    # Change points
    'ChangePointAnalyzer',
    'ChangePointDetector',
    'available_detectors',
    'get_detector',

    # Information and patterns
    'MutualInformationAnalyzer',
    'AprioriMiner',

    # Profiling
    'ColumnProfiler',
    'MissingDataDetector',

    # Text
    'TextAnalyzer',
]
