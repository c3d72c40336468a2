"""Steady-state and transient solvers for assembled state functions.

Both solvers consume ``(F, ∇ₓF, x0, p)`` as built by
``state_function_and_jacobian``:

- ``solve`` finds ``x`` with ``F(x, p) = 0`` by Newton iteration, factorizing
  the sparse Jacobian with SuperLU at every step.
- ``simulate`` integrates ``dx/dt = F(x, p)`` with scipy's stiff integrators,
  handing them the sparse Jacobian.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Sequence, Tuple

import numpy as np
from scipy import sparse
from scipy.integrate import solve_ivp
from scipy.sparse.linalg import splu

from .errors import ConvergenceError
from .parameters import Parameters

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SteadyStateProblem:
    """Steady-state problem ``F(x, p) = 0``.

    Attributes:
        F: State function
        jac: Jacobian ``∇ₓF(x, p)`` returning a sparse matrix
        x0: Initial guess
        p: Parameters instance
    """
    F: Callable
    jac: Callable
    x0: np.ndarray
    p: Parameters


@dataclass(frozen=True)
class SteadyStateSolution:
    """Converged steady state.

    Attributes:
        u: Solution vector
        iterations: Newton iterations taken
        residual_norm: Max-norm of ``F(u, p)``
    """
    u: np.ndarray
    iterations: int
    residual_norm: float


def _max_norm(v) -> float:
    return float(np.max(np.abs(v))) if v.size else 0.0


def solve(problem: SteadyStateProblem, tol: float = 1e-10, maxiter: int = 50) -> SteadyStateSolution:
    """Solve a steady-state problem by Newton iteration.

    Convergence is judged on the Newton step relative to the state, so it
    does not depend on the time unit of ``F``. The iteration stops once
    ``max|dx| <= tol * max(max|x|, 1)``, or immediately if ``F(x0, p)`` is
    exactly zero.

    Raises:
        ConvergenceError: If not converged within ``maxiter`` iterations,
            or if the Jacobian is singular
    """
    x = np.array(problem.x0, dtype=np.float64)
    p = problem.p
    r = np.asarray(problem.F(x, p))
    norm = _max_norm(r)
    logger.debug(f"Newton iteration 0: |F| = {norm:.3e}")
    if norm == 0.0:
        logger.info("Initial guess is a steady state")
        return SteadyStateSolution(x, 0, norm)

    step = np.inf
    for k in range(1, maxiter + 1):
        J = sparse.csc_matrix(problem.jac(x, p))
        try:
            dx = splu(J).solve(-r)
        except RuntimeError as e:
            raise ConvergenceError(f"Jacobian is singular at Newton iteration {k}: {e}") from e
        x = x + dx
        r = np.asarray(problem.F(x, p))
        norm = _max_norm(r)
        step = _max_norm(dx)
        logger.debug(f"Newton iteration {k}: |dx| = {step:.3e}, |F| = {norm:.3e}")
        if step <= tol * max(_max_norm(x), 1.0):
            logger.info(f"Steady state reached after {k} iterations (|dx| = {step:.3e}, |F| = {norm:.3e})")
            return SteadyStateSolution(x, k, norm)

    raise ConvergenceError(
        f"Newton did not converge in {maxiter} iterations (|dx| = {step:.3e}, |F| = {norm:.3e}, tol = {tol:.1e})"
    )


def simulate(
    F: Callable,
    jac: Callable,
    x0: np.ndarray,
    p: Parameters,
    t_span: Tuple[float, float],
    t_eval: Optional[Sequence[float]] = None,
    method: str = "BDF",
    **kwargs,
):
    """Integrate ``dx/dt = F(x, p)`` over ``t_span`` (seconds).

    Args:
        F: State function
        jac: Jacobian ``∇ₓF(x, p)``
        x0: Initial state
        p: Parameters instance (held constant)
        t_span: Start and end times
        t_eval: Times at which to store the solution
        method: Implicit method accepting a Jacobian ("BDF", "Radau", "LSODA")
        **kwargs: Passed to ``scipy.integrate.solve_ivp`` (e.g. rtol, atol)

    Returns:
        The ``solve_ivp`` result, with ``t`` and ``y`` (one column per time)

    Raises:
        ConvergenceError: If the integrator fails
    """
    logger.info(f"Integrating {len(x0)} state variables over t = {t_span} with {method}")
    result = solve_ivp(
        lambda t, x: F(x, p),
        t_span,
        np.asarray(x0, dtype=np.float64),
        method=method,
        t_eval=t_eval,
        jac=lambda t, x: jac(x, p),
        **kwargs,
    )
    if not result.success:
        raise ConvergenceError(f"Time integration failed: {result.message}")
    return result
