import unittest
import warnings
import numpy as np
from analysis import matrix
from analysis.errors import DimensionMismatch, SingularMatrix, InsufficientData


class TestMatrixKernel(unittest.TestCase):

    def setUp(self):
        np.random.seed(42)
        self.X = np.random.normal(0, 1, (50, 4))

        # Symmetric matrix with known, well separated eigenvalues
        Q, _ = np.linalg.qr(np.random.normal(0, 1, (4, 4)))
        self.known_values = np.array([5.0, 3.0, 2.0, 1.0])
        self.S = Q @ np.diag(self.known_values) @ Q.T

    def test_covariance_symmetric_with_sample_variance_diagonal(self):
        """Covariance is symmetric and its diagonal is the n-1 variance."""
        C = matrix.covariance(self.X)

        self.assertEqual(C.shape, (4, 4))
        np.testing.assert_array_equal(C, C.T)
        np.testing.assert_allclose(np.diag(C), np.var(self.X, axis=0, ddof=1), atol=1e-12)
        np.testing.assert_allclose(C, np.cov(self.X, rowvar=False), atol=1e-12)

    def test_covariance_needs_two_rows(self):
        with self.assertRaises(InsufficientData):
            matrix.covariance([[1.0, 2.0]])

    def test_cross_covariance(self):
        Y = self.X[:, :2] * 2.0
        C = matrix.cross_covariance(self.X, Y)

        self.assertEqual(C.shape, (4, 2))
        np.testing.assert_allclose(C, np.cov(self.X, Y, rowvar=False)[:4, 4:], atol=1e-12)

        with self.assertRaises(DimensionMismatch):
            matrix.cross_covariance(self.X, Y[:10])

    def test_transpose_and_multiply(self):
        A = np.arange(6, dtype=float).reshape(2, 3)
        np.testing.assert_array_equal(matrix.transpose(A), A.T)
        np.testing.assert_allclose(matrix.multiply(A, A.T), A @ A.T)

        with self.assertRaises(DimensionMismatch):
            matrix.multiply(A, A)

    def test_inverse_times_matrix_is_identity(self):
        """A^-1 A equals the identity within 1e-6."""
        A = np.random.normal(0, 1, (5, 5)) + 5 * np.eye(5)
        A_inv = matrix.inverse(A)

        np.testing.assert_allclose(A_inv @ A, np.eye(5), atol=1e-6)
        np.testing.assert_allclose(A @ A_inv, np.eye(5), atol=1e-6)

    def test_inverse_uses_row_interchange(self):
        """A zero leading entry is handled by pivoting."""
        A = np.array([[0.0, 1.0], [2.0, 3.0]])
        np.testing.assert_allclose(matrix.inverse(A) @ A, np.eye(2), atol=1e-12)

    def test_inverse_singular(self):
        """A zero row or repeated row raises SingularMatrix."""
        with self.assertRaises(SingularMatrix):
            matrix.inverse([[1.0, 2.0], [0.0, 0.0]])

        with self.assertRaises(SingularMatrix):
            matrix.inverse([[1.0, 2.0], [2.0, 4.0]])

    def test_inverse_not_square(self):
        with self.assertRaises(DimensionMismatch):
            matrix.inverse(np.ones((2, 3)))

    def test_qr_decomposition(self):
        A = np.random.normal(0, 1, (4, 4))
        Q, R = matrix.qr_decomposition(A)

        np.testing.assert_allclose(Q @ R, A, atol=1e-10)
        np.testing.assert_allclose(Q.T @ Q, np.eye(4), atol=1e-10)
        np.testing.assert_allclose(R, np.triu(R), atol=1e-12)

    def test_qr_dependent_column_keeps_q_orthonormal(self):
        A = np.array([[1.0, 2.0], [1.0, 2.0]])
        Q, R = matrix.qr_decomposition(A)

        self.assertAlmostEqual(R[1, 1], 0.0, places=12)
        np.testing.assert_allclose(Q.T @ Q, np.eye(2), atol=1e-10)
        np.testing.assert_allclose(Q @ R, A, atol=1e-10)

    def test_eigen_symmetric(self):
        """Eigenvalues match the construction and A v = lambda v."""
        decomposition = matrix.eigen(self.S)

        self.assertTrue(decomposition.converged)
        np.testing.assert_allclose(decomposition.values, self.known_values, atol=1e-6)

        for i, value in enumerate(decomposition.values):
            v = decomposition.vectors[:, i]
            self.assertAlmostEqual(float(np.linalg.norm(v)), 1.0, places=8)
            np.testing.assert_allclose(self.S @ v, value * v, atol=1e-6)

    def test_eigen_small_matrix(self):
        decomposition = matrix.eigen([[2.0, 1.0], [1.0, 2.0]])

        np.testing.assert_allclose(decomposition.values, [3.0, 1.0], atol=1e-8)
        first = decomposition.vectors[:, 0]
        self.assertAlmostEqual(abs(first[0]), abs(first[1]), places=6)

    def test_eigen_already_triangular(self):
        decomposition = matrix.eigen(np.diag([1.0, 4.0, 2.0]))

        self.assertEqual(decomposition.iterations, 0)
        np.testing.assert_allclose(decomposition.values, [4.0, 2.0, 1.0])

    def test_eigen_identity_placeholder_vectors(self):
        decomposition = matrix.eigen(self.S, accumulate_vectors=False)

        np.testing.assert_allclose(decomposition.values, self.known_values, atol=1e-6)
        np.testing.assert_array_equal(decomposition.vectors, np.eye(4))

    def test_eigen_not_converged_warns(self):
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter('always')
            decomposition = matrix.eigen([[2.0, 1.0], [1.0, 2.0]], max_iter=1)

        self.assertFalse(decomposition.converged)
        self.assertEqual(decomposition.iterations, 1)
        self.assertTrue(any('did not converge' in str(w.message) for w in caught))

    def test_inputs_not_modified(self):
        S_copy = self.S.copy()
        matrix.eigen(self.S)
        matrix.inverse(self.S)
        np.testing.assert_array_equal(self.S, S_copy)


if __name__ == '__main__':
    unittest.main()
