"""
Matrix Algebra Kernel

Small dense linear-algebra routines used by factor analysis and canonical
correlation analysis:
- Sample covariance and cross-covariance
- Transpose and checked multiplication
- Gauss-Jordan inversion with partial pivoting
- Gram-Schmidt QR decomposition
- Unshifted QR-iteration eigen-decomposition

The routines are deliberately explicit rather than delegating to LAPACK so
that tolerances, pivoting and convergence follow the documented algorithm.
All functions are pure: inputs are never modified.
"""

from typing import Union, Sequence
from dataclasses import dataclass
import warnings

import numpy as np
import pandas as pd

from .errors import DimensionMismatch, SingularMatrix, InsufficientData


PIVOT_TOLERANCE = 1e-10
NORM_TOLERANCE = 1e-10
EIGEN_TOLERANCE = 1e-10
EIGEN_MAX_ITERATIONS = 1000

MatrixLike = Union[np.ndarray, pd.DataFrame, Sequence[Sequence[float]]]


@dataclass(frozen=True)
class EigenDecomposition:
    """
    Result of :func:`eigen`.

    Attributes:
        values: Eigenvalues sorted in descending order
        vectors: Matrix whose column ``i`` is the eigenvector of ``values[i]``
        iterations: Number of QR iterations performed
        converged: Whether the sub-diagonal fell below tolerance
    """
    values: np.ndarray
    vectors: np.ndarray
    iterations: int
    converged: bool


def as_matrix(A: MatrixLike) -> np.ndarray:
    """Convert input to a 2-D float array (a 1-D input becomes a single column)."""
    if isinstance(A, pd.DataFrame):
        M = A.to_numpy(dtype=float)
    else:
        M = np.array(A, dtype=float)

    if M.ndim == 1:
        M = M.reshape(-1, 1)
    if M.ndim != 2:
        raise DimensionMismatch(f"Expected a 2-D matrix, got {M.ndim} dimensions")
    return M


def _as_square(A: MatrixLike) -> np.ndarray:
    M = as_matrix(A)
    if M.shape[0] != M.shape[1]:
        raise DimensionMismatch(f"Expected a square matrix, got shape {M.shape}")
    return M


def covariance(X: MatrixLike) -> np.ndarray:
    """
    Sample covariance matrix of the columns of X.

    Args:
        X: Data matrix (n_samples, n_variables)

    Returns:
        Symmetric (n_variables, n_variables) matrix with (n-1) denominator
    """
    M = as_matrix(X)
    n = M.shape[0]
    if n < 2:
        raise InsufficientData(f"Covariance requires at least 2 rows, got {n}", n_rows=n, required=2)

    centered = M - M.mean(axis=0)
    cov = centered.T @ centered / (n - 1)
    # Exact symmetry regardless of summation order
    return (cov + cov.T) / 2.0


def cross_covariance(X: MatrixLike, Y: MatrixLike) -> np.ndarray:
    """
    Sample cross-covariance between the columns of X and the columns of Y.

    Args:
        X: Data matrix (n_samples, p)
        Y: Data matrix (n_samples, q)

    Returns:
        (p, q) matrix with (n-1) denominator
    """
    MX = as_matrix(X)
    MY = as_matrix(Y)
    if MX.shape[0] != MY.shape[0]:
        raise DimensionMismatch(
            f"Row counts differ: X has {MX.shape[0]} rows, Y has {MY.shape[0]}"
        )
    n = MX.shape[0]
    if n < 2:
        raise InsufficientData(f"Cross-covariance requires at least 2 rows, got {n}", n_rows=n, required=2)

    centered_x = MX - MX.mean(axis=0)
    centered_y = MY - MY.mean(axis=0)
    return centered_x.T @ centered_y / (n - 1)


def transpose(A: MatrixLike) -> np.ndarray:
    """Return a transposed copy of A."""
    return as_matrix(A).T.copy()


def multiply(A: MatrixLike, B: MatrixLike) -> np.ndarray:
    """
    Matrix product A @ B.

    Raises:
        DimensionMismatch: If the inner dimensions differ
    """
    MA = as_matrix(A)
    MB = as_matrix(B)
    if MA.shape[1] != MB.shape[0]:
        raise DimensionMismatch(
            f"Cannot multiply {MA.shape} by {MB.shape}: inner dimensions differ"
        )
    return MA @ MB


def inverse(A: MatrixLike, tol: float = PIVOT_TOLERANCE) -> np.ndarray:
    """
    Invert a square matrix by Gauss-Jordan elimination with partial pivoting.

    Args:
        A: Square matrix
        tol: Minimum pivot magnitude after row interchange

    Returns:
        Inverse of A

    Raises:
        DimensionMismatch: If A is not square
        SingularMatrix: If a pivot smaller than ``tol`` is encountered
    """
    M = _as_square(A)
    n = M.shape[0]
    augmented = np.hstack([M, np.eye(n)])

    for i in range(n):
        # Largest |value| in the current column at or below the diagonal
        max_row = i + int(np.argmax(np.abs(augmented[i:, i])))
        if max_row != i:
            augmented[[i, max_row]] = augmented[[max_row, i]]

        pivot = augmented[i, i]
        if abs(pivot) < tol:
            raise SingularMatrix(
                f"Matrix is singular: pivot {pivot:.3e} in column {i} is below {tol:.0e}"
            )

        augmented[i] = augmented[i] / pivot

        for k in range(n):
            if k != i:
                factor = augmented[k, i]
                if factor != 0.0:
                    augmented[k] = augmented[k] - factor * augmented[i]

    return augmented[:, n:].copy()


def qr_decomposition(A: MatrixLike, tol: float = NORM_TOLERANCE):
    """
    QR decomposition by (modified) Gram-Schmidt orthogonalization.

    A column whose residual norm is at most ``tol`` is linearly dependent on
    the previous ones; its Q column is completed with a unit vector orthogonal
    to the columns built so far, so Q stays orthonormal.

    Args:
        A: Square matrix
        tol: Norm below which a column is treated as dependent

    Returns:
        Tuple of (Q, R) with A ~= Q @ R
    """
    M = _as_square(A)
    n = M.shape[0]
    Q = np.zeros((n, n))
    R = np.zeros((n, n))

    for j in range(n):
        v = M[:, j].copy()
        for k in range(j):
            R[k, j] = Q[:, k] @ v
            v = v - R[k, j] * Q[:, k]

        norm = float(np.sqrt(v @ v))
        R[j, j] = norm

        if norm > tol:
            Q[:, j] = v / norm
        else:
            Q[:, j] = _orthogonal_complement_vector(Q[:, :j], n)

    return Q, R


def _orthogonal_complement_vector(basis: np.ndarray, n: int) -> np.ndarray:
    """Unit vector orthogonal to the columns of ``basis`` (built from the standard basis)."""
    best = None
    best_norm = 0.0
    for m in range(n):
        candidate = np.zeros(n)
        candidate[m] = 1.0
        if basis.shape[1] > 0:
            candidate = candidate - basis @ (basis.T @ candidate)
        candidate_norm = float(np.sqrt(candidate @ candidate))
        if candidate_norm > best_norm:
            best, best_norm = candidate, candidate_norm
    return best / best_norm


def _lower_off_diagonal_max(T: np.ndarray) -> float:
    if T.shape[0] < 2:
        return 0.0
    return float(np.max(np.abs(np.tril(T, k=-1))))


def _triangular_eigenvectors(T: np.ndarray, tol: float) -> np.ndarray:
    """
    Eigenvectors of an upper-triangular matrix by back-substitution.

    Column k solves (T - T[k, k] I) y = 0 with y[k] = 1 and y[j] = 0 for j > k.
    """
    n = T.shape[0]
    Y = np.zeros((n, n))
    for k in range(n):
        lam = T[k, k]
        Y[k, k] = 1.0
        for i in range(k - 1, -1, -1):
            denom = T[i, i] - lam
            s = T[i, i + 1:k + 1] @ Y[i + 1:k + 1, k]
            Y[i, k] = 0.0 if abs(denom) < tol else -s / denom
        Y[:, k] /= np.sqrt(Y[:, k] @ Y[:, k])
    return Y


def eigen(
    A: MatrixLike,
    tol: float = EIGEN_TOLERANCE,
    max_iter: int = EIGEN_MAX_ITERATIONS,
    accumulate_vectors: bool = True
) -> EigenDecomposition:
    """
    Eigen-decomposition by unshifted QR iteration.

    Repeatedly factors A = QR and sets A <- RQ until every sub-diagonal entry
    is below ``tol`` or ``max_iter`` iterations elapse. Eigenvalues are read
    off the diagonal of the (quasi-)triangular limit.

    Eigenvectors: the orthogonal factors are accumulated (Q_1 Q_2 ... Q_k);
    eigenvectors of the triangular limit are recovered by back-substitution
    and rotated back by the accumulated product. For symmetric input this
    yields orthonormal eigenvectors. With ``accumulate_vectors=False`` the
    identity matrix is returned as placeholder vectors instead.

    Args:
        A: Square matrix
        tol: Convergence tolerance on sub-diagonal entries
        max_iter: Iteration cap
        accumulate_vectors: Compute eigenvectors (True) or return the identity placeholder

    Returns:
        EigenDecomposition with values sorted in descending order
    """
    M = _as_square(A)
    n = M.shape[0]

    if n == 0:
        return EigenDecomposition(np.zeros(0), np.zeros((0, 0)), 0, True)
    if n == 1:
        return EigenDecomposition(M[0].copy(), np.ones((1, 1)), 0, True)

    T = M.copy()
    Q_total = np.eye(n)
    converged = _lower_off_diagonal_max(T) < tol
    iterations = 0

    while not converged and iterations < max_iter:
        Q, R = qr_decomposition(T)
        T = R @ Q
        Q_total = Q_total @ Q
        iterations += 1
        converged = _lower_off_diagonal_max(T) < tol

    if not converged:
        warnings.warn(
            f"QR iteration did not converge within {max_iter} iterations "
            f"(largest sub-diagonal entry {_lower_off_diagonal_max(T):.3e}); "
            f"eigenvalues are read from the unconverged diagonal."
        )

    values = np.diag(T).copy()

    if not accumulate_vectors:
        order = np.argsort(-values, kind='stable')
        return EigenDecomposition(values[order], np.eye(n), iterations, converged)

    scale = max(1.0, float(np.max(np.abs(values))))
    Y = _triangular_eigenvectors(np.triu(T), tol * scale)
    vectors = Q_total @ Y
    norms = np.sqrt(np.sum(vectors ** 2, axis=0))
    vectors = vectors / np.where(norms > 0, norms, 1.0)

    order = np.argsort(-values, kind='stable')
    return EigenDecomposition(values[order], vectors[:, order], iterations, converged)
