"""
Data Layer

Handles loading tables, filtering rows, and exporting analysis results.
"""

from .table import MemoryTable
from .filters import (
    FilterPredicate,
    MissingDataOptions,
    apply_filters,
    OPERATORS
)
from .loaders import (
    DataLoader,
    CSVDataLoader,
    ExcelDataLoader,
    load_table
)
from .exporters import (
    ExcelExporter,
    CSVExporter,
    ResultsExporter
)

__all__ = [
    # Core data structures
    'MemoryTable',

    # Filters
    'FilterPredicate',
    'MissingDataOptions',
    'apply_filters',
    'OPERATORS',

    # Loaders
    'DataLoader',
    'CSVDataLoader',
    'ExcelDataLoader',
    'load_table',

    # Exporters
    'ExcelExporter',
    'CSVExporter',
    'ResultsExporter',
]
