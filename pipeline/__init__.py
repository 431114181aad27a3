"""Pipeline Package - Orchestration and configuration"""

from .config import AnalysisConfig
from .engine import (
    AnalysisEngine,
    AnalysisOutcome,
    ColumnBounds,
    COLUMN_BOUNDS,
    ANALYSIS_TYPES
)

__all__ = [
    'AnalysisConfig',
    'AnalysisEngine',
    'AnalysisOutcome',
    'ColumnBounds',
    'COLUMN_BOUNDS',
    'ANALYSIS_TYPES',
]
