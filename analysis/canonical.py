"""
Canonical Correlation Analysis

Finds paired linear combinations of two variable sets (left X, right Y) with
maximal correlation.

The canonical correlations are the square roots of the eigenvalues of

    A = Sxx^-1 Sxy Syy^-1 Syx

with left coefficients taken from the eigenvectors of A and right
coefficients from the eigenvectors of B = Syy^-1 Syx Sxx^-1 Sxy. Each
variate pair is tested with Bartlett's chi-square on Wilks' lambda.
"""

from typing import List, Dict, Optional, Tuple, Union
import math
import numpy as np
import pandas as pd
from scipy import stats
import warnings

from . import matrix
from .errors import InsufficientData, InsufficientVariables
from .results import CanonicalVariate, CanonicalResult
from .statistical import to_numeric


MIN_SAMPLES = 10

# Chi-square values above this map to p = 0 in the approximate test
CHI_SQUARE_CUTOFF = 50.0


def wilks_lambda(correlations: np.ndarray) -> np.ndarray:
    """
    Wilks' lambda for each variate: lambda_i = prod_{j >= i} (1 - r_j^2).

    Args:
        correlations: Canonical correlations in descending order

    Returns:
        Array of the same length
    """
    r2 = 1.0 - np.asarray(correlations, dtype=float) ** 2
    # Reverse cumulative product
    return np.cumprod(r2[::-1])[::-1].copy()


def bartlett_chi_square(lambdas: np.ndarray, n: int, p: int, q: int) -> np.ndarray:
    """Bartlett's statistic -(n - 1 - (p + q + 1) / 2) * ln(lambda)."""
    factor = n - 1 - (p + q + 1) / 2.0
    chi = []
    for lam in lambdas:
        if lam <= 0:
            chi.append(math.inf)
        else:
            chi.append(-factor * math.log(lam))
    return np.asarray(chi, dtype=float)


def approximate_p_values(chi_square: np.ndarray) -> np.ndarray:
    """
    Approximate p-values: exp(-chi / 2), 1 for chi < 0 and 0 for chi > 50.

    This is a coarse approximation, not the chi-square survival function.
    """
    p_values = []
    for chi in chi_square:
        if chi < 0:
            p_values.append(1.0)
        elif chi > CHI_SQUARE_CUTOFF:
            p_values.append(0.0)
        else:
            p_values.append(math.exp(-chi / 2.0))
    return np.asarray(p_values, dtype=float)


def exact_p_values(chi_square: np.ndarray, p: int, q: int) -> np.ndarray:
    """Chi-square survival function with (p - i)(q - i) degrees of freedom for variate i."""
    p_values = []
    for i, chi in enumerate(chi_square):
        df = (p - i) * (q - i)
        if chi < 0:
            p_values.append(1.0)
        else:
            p_values.append(float(stats.chi2.sf(chi, df)))
    return np.asarray(p_values, dtype=float)


class CanonicalCorrelationAnalyzer:
    """
    Canonical correlation analysis between two column sets.

    The result reports min(p, q) variates in descending order of
    correlation; coefficient vectors are keyed by variable name in the
    original column order.
    """

    def __init__(
        self,
        exact_p_values: bool = False,
        min_samples: int = MIN_SAMPLES,
        tol: float = matrix.EIGEN_TOLERANCE,
        max_iter: int = matrix.EIGEN_MAX_ITERATIONS,
        config: Optional[Dict] = None
    ):
        """
        Initialize canonical correlation analyzer.

        Args:
            exact_p_values: Use the chi-square survival function instead of
                            the exp(-chi/2) approximation
            min_samples: Minimum number of complete rows
            tol: Eigen iteration convergence tolerance
            max_iter: Eigen iteration cap
            config: Optional configuration dictionary
        """
        self.config = config or {}

        cca_config = self.config.get('analysis', {}).get('canonical', {})
        self.exact_p_values = cca_config.get('exact_p_values', exact_p_values)
        self.min_samples = cca_config.get('min_samples', min_samples)
        self.tol = cca_config.get('eigen_tolerance', tol)
        self.max_iter = cca_config.get('eigen_max_iterations', max_iter)

    def _prepare_data(
        self,
        data: pd.DataFrame,
        left_columns: List[str],
        right_columns: List[str]
    ) -> Tuple[np.ndarray, np.ndarray]:
        if len(left_columns) == 0 or len(right_columns) == 0:
            raise InsufficientVariables("Both variable sets need at least one column")

        columns = list(left_columns) + list(right_columns)
        X_all = np.column_stack([to_numeric(data[c]).to_numpy() for c in columns])

        complete = ~np.any(np.isnan(X_all), axis=1)
        n_dropped = int(np.sum(~complete))
        if n_dropped > 0:
            warnings.warn(f"{n_dropped} rows with missing values excluded from canonical correlation")
        X_all = X_all[complete]

        if X_all.shape[0] < self.min_samples:
            raise InsufficientData(
                f"Canonical correlation requires at least {self.min_samples} complete rows, "
                f"got {X_all.shape[0]}",
                n_rows=X_all.shape[0],
                required=self.min_samples
            )

        p = len(left_columns)
        return X_all[:, :p], X_all[:, p:]

    def analyze(
        self,
        data: pd.DataFrame,
        left_columns: List[str],
        right_columns: List[str]
    ) -> CanonicalResult:
        """
        Run canonical correlation analysis.

        Args:
            data: Projection holding both column sets
            left_columns: Left variable set (X)
            right_columns: Right variable set (Y)

        Returns:
            CanonicalResult

        Raises:
            InsufficientData: Fewer than ``min_samples`` complete rows
            SingularMatrix: A within-set covariance matrix is not invertible
        """
        X, Y = self._prepare_data(data, left_columns, right_columns)
        return self.fit_arrays(X, Y, list(left_columns), list(right_columns))

    def fit_arrays(
        self,
        X: Union[np.ndarray, pd.DataFrame],
        Y: Union[np.ndarray, pd.DataFrame],
        left_names: Optional[List[str]] = None,
        right_names: Optional[List[str]] = None
    ) -> CanonicalResult:
        """
        Canonical correlation on two complete-row matrices.

        Args:
            X: Left data (n, p)
            Y: Right data (n, q)
            left_names: Names of the p left variables
            right_names: Names of the q right variables

        Returns:
            CanonicalResult
        """
        X = matrix.as_matrix(X)
        Y = matrix.as_matrix(Y)
        n, p = X.shape
        q = Y.shape[1]

        if n < self.min_samples:
            raise InsufficientData(
                f"Canonical correlation requires at least {self.min_samples} rows, got {n}",
                n_rows=n,
                required=self.min_samples
            )

        left_names = left_names or [f"x{i+1}" for i in range(p)]
        right_names = right_names or [f"y{i+1}" for i in range(q)]

        Sxx = matrix.covariance(X)
        Syy = matrix.covariance(Y)
        Sxy = matrix.cross_covariance(X, Y)
        Syx = matrix.transpose(Sxy)

        Sxx_inv = matrix.inverse(Sxx)
        Syy_inv = matrix.inverse(Syy)

        A = matrix.multiply(matrix.multiply(Sxx_inv, Sxy), matrix.multiply(Syy_inv, Syx))
        B = matrix.multiply(matrix.multiply(Syy_inv, Syx), matrix.multiply(Sxx_inv, Sxy))

        eigen_a = matrix.eigen(A, tol=self.tol, max_iter=self.max_iter)
        eigen_b = matrix.eigen(B, tol=self.tol, max_iter=self.max_iter)

        k = min(p, q)
        correlations = np.sqrt(np.clip(eigen_a.values[:k], 0.0, None))
        correlations = np.minimum(correlations, 1.0)

        r2 = correlations ** 2
        total = float(np.sum(r2))
        if total > 0:
            variance_explained = r2 / total * 100.0
        else:
            variance_explained = np.full(k, 100.0 / k)
        cumulative = np.cumsum(variance_explained)

        left_variates = self._variates(eigen_a.vectors[:, :k], left_names)
        right_variates = self._variates(eigen_b.vectors[:, :k], right_names)

        lambdas = wilks_lambda(correlations)
        chi_square = bartlett_chi_square(lambdas, n, p, q)
        if self.exact_p_values:
            p_values = exact_p_values(chi_square, p, q)
        else:
            p_values = approximate_p_values(chi_square)

        return CanonicalResult(
            left_variables=tuple(left_names),
            right_variables=tuple(right_names),
            canonical_correlations=tuple(float(r) for r in correlations),
            variance_explained=tuple(float(v) for v in variance_explained),
            cumulative_variance=tuple(float(v) for v in cumulative),
            left_variates=left_variates,
            right_variates=right_variates,
            wilks_lambda=tuple(float(v) for v in lambdas),
            chi_square=tuple(float(v) for v in chi_square),
            p_values=tuple(float(v) for v in p_values),
            n_samples=n,
            p_value_method='exact' if self.exact_p_values else 'approximate'
        )

    @staticmethod
    def _variates(vectors: np.ndarray, names: List[str]) -> Tuple[CanonicalVariate, ...]:
        variates = []
        for i in range(vectors.shape[1]):
            v = vectors[:, i]
            # Largest-magnitude coefficient positive
            if v[int(np.argmax(np.abs(v)))] < 0:
                v = -v
            variates.append(CanonicalVariate(
                variate=i + 1,
                coefficients={name: float(v[j]) for j, name in enumerate(names)}
            ))
        return tuple(variates)
