"""
Analysis Errors

Exception taxonomy shared by the matrix kernel, the analysis modules and
the dispatch facade.

An empty outcome (e.g. no association rule clears the support threshold)
is not an error: results expose ``is_empty`` instead.
"""

from typing import List, Optional


class AnalysisError(Exception):
    """Base class for every failure raised by the analysis engine."""


class ValidationError(AnalysisError):
    """Request does not satisfy the analysis type's contract (column count, parameters)."""


class InsufficientData(AnalysisError):
    """Fewer rows than the algorithm needs."""

    def __init__(self, message: str, n_rows: Optional[int] = None, required: Optional[int] = None):
        super().__init__(message)
        self.n_rows = n_rows
        self.required = required


class InsufficientVariables(AnalysisError):
    """Fewer usable variables than the algorithm needs."""


class InvalidColumn(AnalysisError):
    """Column is missing, non-numeric where numeric data is required, or has no convertible values."""

    def __init__(self, message: str, columns: Optional[List[str]] = None):
        super().__init__(message)
        self.columns = list(columns or [])


class DimensionMismatch(AnalysisError):
    """Matrix operands have incompatible shapes."""


class SingularMatrix(AnalysisError):
    """Matrix cannot be inverted (pivot below tolerance)."""


class AnalysisFailed(AnalysisError):
    """
    Internal algebra failure re-raised with module and column context.

    The original kernel exception is chained as ``__cause__``.
    """

    def __init__(self, message: str, module: str, columns: Optional[List[str]] = None):
        super().__init__(f"{module}: {message}")
        self.module = module
        self.columns = list(columns or [])
