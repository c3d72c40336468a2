"""Tests for assembling state functions and their Jacobians."""

import numpy as np
import pytest
from scipy import sparse

from tracerbox.state import (
    local_jacobian_diagonals,
    parameter_jacobian,
    split_state,
    state_function_and_jacobian,
)


class TestSplitState:
    """Tests for splitting stacked state vectors."""

    def test_split(self):
        xs = split_state(np.arange(6.0), 2)
        np.testing.assert_array_equal(xs[0], [0.0, 1.0, 2.0])
        np.testing.assert_array_equal(xs[1], [3.0, 4.0, 5.0])

    def test_uneven_split_raises(self):
        with pytest.raises(ValueError, match="cannot be split"):
            split_state(np.zeros(5), 2)

    def test_no_tracers_raises(self):
        with pytest.raises(ValueError, match="positive"):
            split_state(np.zeros(4), 0)


class TestSingleTracer:
    """Tests for one tracer on a 3-box ring."""

    def test_state_function(self, ring_T, Restoring, restoring_sources):
        """Test F(x, p) = G(x, p) - T x."""
        F, _ = state_function_and_jacobian(lambda p: ring_T, restoring_sources)
        p = Restoring()
        np.testing.assert_allclose(F(np.zeros(3), p), [0.5, 0.5, 0.5])
        x = np.array([1.0, 2.0, 3.0])
        expected = restoring_sources(x, p) - ring_T @ x
        np.testing.assert_allclose(F(x, p), expected)

    def test_jacobian(self, ring_T, Restoring, restoring_sources):
        """Test ∇ₓF = diag(∂G/∂x) - T."""
        _, jac = state_function_and_jacobian(lambda p: ring_T, restoring_sources)
        J = jac(np.array([0.1, 0.2, 0.3]), Restoring())
        assert sparse.issparse(J)
        assert J.format == "csc"
        np.testing.assert_allclose(J.toarray(), -np.eye(3) - ring_T.toarray())

    def test_jacobian_depends_on_parameters(self, ring_T, Restoring, restoring_sources):
        """Test the Jacobian is evaluated at the given parameters."""
        _, jac = state_function_and_jacobian(lambda p: ring_T, restoring_sources)
        J = jac(np.zeros(3), Restoring(k=1.5))
        np.testing.assert_allclose(J.diagonal(), -2.0 - ring_T.diagonal())

    def test_transport_may_depend_on_parameters(self, ring_T, Restoring, restoring_sources):
        """Test transport operators are called with the parameters."""
        F, jac = state_function_and_jacobian(lambda p: p.k * ring_T, restoring_sources)
        p = Restoring(k=2.0)
        x = np.array([1.0, 0.0, 0.0])
        np.testing.assert_allclose(F(x, p), restoring_sources(x, p) - 2.0 * (ring_T @ x))
        np.testing.assert_allclose(jac(x, p).toarray(), np.diag([-2.5] * 3) - 2.0 * ring_T.toarray())

    def test_parameter_jacobian(self, Restoring, restoring_sources):
        """Test ∇ₚF has one column per optimizable parameter."""
        dFdp = parameter_jacobian(restoring_sources)
        p = Restoring()
        np.testing.assert_allclose(dFdp(np.zeros(3), p), np.ones((3, 1)))
        np.testing.assert_allclose(dFdp(np.full(3, 0.25), p), np.full((3, 1), 0.75))


class TestMultipleTracers:
    """Tests for coupled tracers."""

    @staticmethod
    def G(x1, x2, p):
        return -x1 * x2, x1 - x2

    def test_state_function(self, ring_T, Restoring):
        """Test the stacked state function."""
        F, _ = state_function_and_jacobian([lambda p: ring_T, lambda p: sparse.csr_matrix((3, 3))], self.G)
        x1, x2 = np.array([1.0, 2.0, 3.0]), np.array([4.0, 5.0, 6.0])
        np.testing.assert_allclose(
            F(np.concatenate([x1, x2]), Restoring()),
            [-3.0, -9.0, -20.0, -3.0, -3.0, -3.0],
        )

    def test_block_jacobian(self, ring_T, Restoring):
        """Test every block of the Jacobian."""
        _, jac = state_function_and_jacobian([lambda p: ring_T, lambda p: sparse.csr_matrix((3, 3))], self.G)
        x1, x2 = np.array([1.0, 2.0, 3.0]), np.array([4.0, 5.0, 6.0])
        J = jac(np.concatenate([x1, x2]), Restoring()).toarray()
        expected = np.block([
            [np.diag(-x2) - ring_T.toarray(), np.diag(-x1)],
            [np.eye(3), -np.eye(3)],
        ])
        np.testing.assert_allclose(J, expected)

    def test_local_jacobian_diagonals(self, Restoring):
        """Test the [i][j] layout of the local diagonals."""
        x = np.array([1.0, 2.0, 3.0, 4.0])
        d = local_jacobian_diagonals(self.G, x, Restoring(), nt=2)
        np.testing.assert_allclose(d[0][0], [-3.0, -4.0])
        np.testing.assert_allclose(d[0][1], [-1.0, -2.0])
        np.testing.assert_allclose(d[1][0], [1.0, 1.0])
        np.testing.assert_allclose(d[1][1], [-1.0, -1.0])

    def test_wrong_number_of_sources_raises(self, ring_T, Restoring):
        """Test G must return one source term per tracer."""
        F, _ = state_function_and_jacobian([lambda p: ring_T] * 2, lambda x1, x2, p: (x1,))
        with pytest.raises(ValueError, match="1 source terms for 2 tracers"):
            F(np.zeros(6), Restoring())


class TestOperatorValidation:
    """Tests for transport operator arguments."""

    def test_no_operators_raises(self, restoring_sources):
        with pytest.raises(ValueError, match="At least one"):
            state_function_and_jacobian([], restoring_sources)

    def test_matrix_instead_of_function_raises(self, ring_T, restoring_sources):
        """Test operators must be functions of the parameters."""
        with pytest.raises(TypeError, match="T\\(p\\)"):
            state_function_and_jacobian([ring_T], restoring_sources)
