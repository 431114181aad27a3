"""
Dimensionality Reduction

Principal component / factor analysis of numeric columns.

The covariance (or, with ``scale_data=True``, correlation) matrix is
decomposed with the QR-iteration kernel in ``analysis.matrix``; components
are ranked by descending eigenvalue.
"""

from typing import Optional, Tuple, List, Dict, Union
import numpy as np
import pandas as pd
import warnings
from sklearn.preprocessing import StandardScaler

from . import matrix
from .errors import InsufficientData, InsufficientVariables
from .results import Factor, FactorResult
from .statistical import to_numeric


MIN_VARIABLES = 2
MIN_SAMPLES = 3


class FactorAnalyzer:
    """
    Principal Component Analysis via eigen-decomposition.

    Provides:
    - Eigenvalues and explained variance ratios
    - Cumulative explained variance
    - Variable loadings (eigenvector components) per component
    - Component scores for new data via transform()

    Loadings are sign-normalized: in every component the loading with the
    largest magnitude is positive, so repeated runs report the same signs.
    """

    def __init__(
        self,
        n_factors: Optional[int] = None,
        scale_data: bool = False,
        tol: float = matrix.EIGEN_TOLERANCE,
        max_iter: int = matrix.EIGEN_MAX_ITERATIONS,
        config: Optional[Dict] = None
    ):
        """
        Initialize factor analyzer.

        Args:
            n_factors: Number of components to report (None = all)
            scale_data: Standardize columns first (correlation-matrix PCA)
            tol: Eigen iteration convergence tolerance
            max_iter: Eigen iteration cap
            config: Optional configuration dictionary
        """
        self.config = config or {}

        dim_config = self.config.get('analysis', {}).get('factor', {})
        self.n_factors = dim_config.get('n_factors', n_factors)
        self.scale_data = dim_config.get('scale_data', scale_data)
        self.tol = dim_config.get('eigen_tolerance', tol)
        self.max_iter = dim_config.get('eigen_max_iterations', max_iter)

        self._scaler = None
        self._mean = None
        self._vectors = None
        self._feature_names = None
        self._result = None
        self._is_fitted = False

    def _prepare_data(
        self,
        X: Union[np.ndarray, pd.DataFrame],
        columns: Optional[List[str]] = None
    ) -> Tuple[np.ndarray, List[str]]:
        """
        Convert input to a float matrix of complete rows.

        Args:
            X: Input data
            columns: Columns to use when X is a DataFrame (None = all)

        Returns:
            Tuple of (data, feature_names)
        """
        if isinstance(X, pd.DataFrame):
            feature_names = list(columns) if columns is not None else list(X.columns)
            X_array = np.column_stack([to_numeric(X[c]).to_numpy() for c in feature_names]) \
                if feature_names else np.zeros((len(X), 0))
        else:
            X_array = matrix.as_matrix(X)
            feature_names = list(columns) if columns is not None \
                else [f"feature_{i}" for i in range(X_array.shape[1])]

        X_array = np.asarray(X_array, dtype=float)

        # Drop columns without a single numeric value
        keep = [i for i in range(X_array.shape[1]) if not np.all(np.isnan(X_array[:, i]))]
        if len(keep) < X_array.shape[1]:
            dropped = [feature_names[i] for i in range(X_array.shape[1]) if i not in keep]
            warnings.warn(f"Non-numeric columns excluded from factor analysis: {', '.join(dropped)}")
            X_array = X_array[:, keep]
            feature_names = [feature_names[i] for i in keep]

        if X_array.shape[1] < MIN_VARIABLES:
            raise InsufficientVariables(
                f"Factor analysis requires at least {MIN_VARIABLES} numeric columns, "
                f"got {X_array.shape[1]}"
            )

        # Check for NaN rows
        nan_rows = np.any(np.isnan(X_array), axis=1)
        if np.any(nan_rows):
            warnings.warn(
                f"{int(np.sum(nan_rows))} rows contain missing values and are excluded from factor analysis"
            )
            X_array = X_array[~nan_rows]

        if X_array.shape[0] < MIN_SAMPLES:
            raise InsufficientData(
                f"Factor analysis requires at least {MIN_SAMPLES} complete rows, got {X_array.shape[0]}",
                n_rows=X_array.shape[0],
                required=MIN_SAMPLES
            )

        return X_array, feature_names

    def fit(
        self,
        X: Union[np.ndarray, pd.DataFrame],
        columns: Optional[List[str]] = None
    ) -> 'FactorAnalyzer':
        """
        Fit components to data.

        Args:
            X: Data matrix or DataFrame
            columns: Columns to use (None = all)

        Returns:
            self
        """
        X_array, self._feature_names = self._prepare_data(X, columns)
        n, k = X_array.shape

        if self.scale_data:
            self._scaler = StandardScaler()
            X_work = self._scaler.fit_transform(X_array)
            # Rescale population z-scores so the n-1 covariance is the correlation matrix
            C = matrix.covariance(X_work) * (n - 1) / n
        else:
            self._scaler = None
            X_work = X_array
            C = matrix.covariance(X_work)

        self._mean = X_work.mean(axis=0)

        decomposition = matrix.eigen(C, tol=self.tol, max_iter=self.max_iter)
        eigenvalues = decomposition.values
        vectors = self._normalize_signs(decomposition.vectors)

        positive = np.clip(eigenvalues, 0.0, None)
        total = float(np.sum(positive))
        ratios = positive / total if total > 0 else np.zeros(k)
        cumulative = np.cumsum(ratios)

        n_keep = k if self.n_factors is None else max(1, min(int(self.n_factors), k))
        self._vectors = vectors[:, :n_keep]

        factors = tuple(
            Factor(
                name=name,
                eigenvalue=float(eigenvalues[i]),
                variance=float(ratios[i]),
                loadings={v: float(vectors[j, i]) for j, v in enumerate(self._feature_names)}
            )
            for i, name in enumerate(self.get_component_names(n_keep))
        )

        self._result = FactorResult(
            variables=tuple(self._feature_names),
            factors=factors,
            eigenvalues=tuple(float(v) for v in eigenvalues),
            cumulative_variance=tuple(float(v) for v in cumulative),
            n_samples=n,
            scaled=bool(self.scale_data)
        )
        self._is_fitted = True

        return self

    @staticmethod
    def _normalize_signs(vectors: np.ndarray) -> np.ndarray:
        """Flip each column so its largest-magnitude entry is positive."""
        vectors = vectors.copy()
        for i in range(vectors.shape[1]):
            j = int(np.argmax(np.abs(vectors[:, i])))
            if vectors[j, i] < 0:
                vectors[:, i] = -vectors[:, i]
        return vectors

    def analyze(
        self,
        X: Union[np.ndarray, pd.DataFrame],
        columns: Optional[List[str]] = None
    ) -> FactorResult:
        """Fit and return the FactorResult."""
        return self.fit(X, columns).result

    @property
    def result(self) -> FactorResult:
        if not self._is_fitted:
            raise ValueError("FactorAnalyzer must be fitted first")
        return self._result

    def transform(self, X: Union[np.ndarray, pd.DataFrame]) -> np.ndarray:
        """
        Project data onto the fitted components.

        Args:
            X: Data with the fitted columns (rows with missing values are dropped)

        Returns:
            Component scores (n_samples, n_factors)
        """
        if not self._is_fitted:
            raise ValueError("FactorAnalyzer must be fitted first")

        if isinstance(X, pd.DataFrame):
            X_array = np.column_stack([to_numeric(X[c]).to_numpy() for c in self._feature_names])
        else:
            X_array = matrix.as_matrix(X)

        X_array = X_array[~np.any(np.isnan(X_array), axis=1)]
        if self._scaler is not None:
            X_array = self._scaler.transform(X_array)

        return (X_array - self._mean) @ self._vectors

    def fit_transform(
        self,
        X: Union[np.ndarray, pd.DataFrame],
        columns: Optional[List[str]] = None
    ) -> np.ndarray:
        self.fit(X, columns)
        return self.transform(X)

    def get_component_names(self, n: Optional[int] = None) -> List[str]:
        """Get component names (PC1, PC2, ...)."""
        if n is None:
            n = len(self.result.factors)
        return [f"PC{i+1}" for i in range(n)]

    def get_explained_variance(self) -> np.ndarray:
        """Explained variance ratio of each reported component."""
        return np.asarray(self.result.explained_variance)

    def get_cumulative_variance(self) -> np.ndarray:
        """Cumulative explained variance over all components."""
        return np.asarray(self.result.cumulative_variance)

    def get_loadings(self) -> pd.DataFrame:
        """
        Get variable loadings for each component.

        Returns:
            DataFrame with variables as rows, components as columns
        """
        return self.result.loadings_frame()

    def get_top_features_per_component(self, n_features: int = 5) -> Dict[str, List[Tuple[str, float]]]:
        """
        Get top contributing variables for each component.

        Args:
            n_features: Number of top variables per component

        Returns:
            Dict mapping component name -> list of (variable, loading) tuples
        """
        loadings_df = self.get_loadings()

        result = {}
        for component in loadings_df.columns:
            # Sort by absolute loading
            sorted_loadings = loadings_df[component].abs().sort_values(ascending=False)
            result[component] = [
                (feat, float(loadings_df.loc[feat, component]))
                for feat in sorted_loadings.head(n_features).index
            ]

        return result

    def select_n_components(self, variance_threshold: float = 0.95) -> int:
        """
        Number of components needed to reach a cumulative variance threshold.

        Args:
            variance_threshold: Desired cumulative variance ratio (e.g. 0.95)
        """
        cumvar = self.get_cumulative_variance()
        n_components = int(np.searchsorted(cumvar, variance_threshold - 1e-12) + 1)
        return min(n_components, len(cumvar))

    def summary(self) -> str:
        """Generate summary of factor analysis results."""
        if not self._is_fitted:
            return "FactorAnalyzer: Not fitted yet"

        result = self.result
        lines = [
            "Factor Analysis Summary",
            "=" * 40,
            f"Variables: {', '.join(result.variables)}",
            f"Samples: {result.n_samples}",
            f"Data scaled: {result.scaled}",
            "",
            "Explained Variance:",
        ]

        for factor, cum in zip(result.factors, result.cumulative_variance):
            lines.append(
                f"  {factor.name}: eigenvalue={factor.eigenvalue:.4f} "
                f"({factor.variance*100:.1f}%) | Cumulative: {cum*100:.1f}%"
            )

        return "\n".join(lines)


def create_factor_analyzer_from_config(config: Dict) -> FactorAnalyzer:
    """
    Create a factor analyzer from a configuration dictionary.

    Args:
        config: Configuration dictionary (reads ``analysis.factor``)

    Returns:
        Configured FactorAnalyzer
    """
    return FactorAnalyzer(config=config)
