"""Assembly of the state function and its Jacobians.

A model of ``nt`` tracers is the system

    ∂x/∂t = F(x, p) = G(x, p) - T(p) x

where ``T(p)`` is the block diagonal of per-tracer transport operators and
``G`` holds the local sources minus sinks. Because ``G`` is local (box ``i``
of each output only depends on box ``i`` of each tracer), every block of its
Jacobian is diagonal and is obtained from one forward-mode jax JVP per
tracer.

``G`` must be written with arithmetic operators and ``jax.numpy`` functions
so jax can trace it; it receives plain numpy arrays when ``F`` is
evaluated.
"""

import logging
from typing import Callable, List, Sequence, Tuple, Union

import jax
import jax.numpy as jnp
import numpy as np
from scipy import sparse

from .parameters import Parameters

logger = logging.getLogger(__name__)

TransportOperator = Callable[[Parameters], sparse.spmatrix]
StateFunction = Callable[[np.ndarray, Parameters], np.ndarray]


def split_state(x, nt: int) -> List:
    """Split a stacked state vector into ``nt`` tracer vectors of equal size."""
    if nt < 1:
        raise ValueError(f"Number of tracers must be positive, got {nt}")
    n = x.shape[0]
    if n % nt != 0:
        raise ValueError(f"State vector of length {n} cannot be split into {nt} tracers")
    nb = n // nt
    return [x[i * nb:(i + 1) * nb] for i in range(nt)]


def _operators(Ts: Union[TransportOperator, Sequence[TransportOperator]]) -> List[TransportOperator]:
    operators = [Ts] if callable(Ts) else list(Ts)
    if not operators:
        raise ValueError("At least one transport operator is required")
    for i, T in enumerate(operators):
        if not callable(T):
            raise TypeError(f"Transport operator {i} must be callable as T(p), got {type(T).__name__}")
    return operators


def _sources(G: Callable, xs: Sequence, p: Parameters) -> Tuple:
    """Evaluate G, always returning one array per tracer."""
    if len(xs) == 1:
        return (G(xs[0], p),)
    out = tuple(G(*xs, p))
    if len(out) != len(xs):
        raise ValueError(f"G returned {len(out)} source terms for {len(xs)} tracers")
    return out


def local_jacobian_diagonals(G: Callable, x, p: Parameters, nt: int = 1) -> List[List[np.ndarray]]:
    """Diagonals of ∂G_i/∂x_j for all tracer pairs, as ``[i][j]`` nested lists."""
    xs = tuple(jnp.asarray(xi, dtype=jnp.float64) for xi in split_state(np.asarray(x, dtype=np.float64), nt))

    def g(*args):
        return _sources(G, args, p)

    columns = []
    for j in range(nt):
        tangents = tuple(jnp.ones_like(xi) if k == j else jnp.zeros_like(xi) for k, xi in enumerate(xs))
        _, dG = jax.jvp(g, xs, tangents)
        columns.append([np.broadcast_to(np.asarray(d, dtype=np.float64), xs[0].shape) for d in dG])

    return [[columns[j][i] for j in range(nt)] for i in range(nt)]


def state_function_and_jacobian(
    Ts: Union[TransportOperator, Sequence[TransportOperator]],
    G: Callable,
) -> Tuple[StateFunction, Callable[[np.ndarray, Parameters], sparse.csc_matrix]]:
    """Build ``F(x, p)`` and its Jacobian ``∇ₓF(x, p)``.

    Args:
        Ts: Transport operator ``p -> T`` (one tracer) or a sequence of them
        G: Local sources minus sinks, ``G(x, p)`` for one tracer or
            ``G(x1, ..., xn, p) -> (g1, ..., gn)`` for several

    Returns:
        Tuple of the state function and its sparse (CSC) Jacobian

    Example:
        >>> F, dFdx = state_function_and_jacobian(lambda p: T, G)
        >>> x = np.zeros(T.shape[0])
        >>> F(x, p)
    """
    operators = _operators(Ts)
    nt = len(operators)

    def F(x, p: Parameters) -> np.ndarray:
        xs = split_state(np.asarray(x), nt)
        gs = _sources(G, xs, p)
        return np.concatenate([
            np.broadcast_to(np.asarray(g), xi.shape) - T(p) @ xi
            for g, T, xi in zip(gs, operators, xs)
        ])

    def jacobian(x, p: Parameters) -> sparse.csc_matrix:
        diagonals = local_jacobian_diagonals(G, x, p, nt)
        local = sparse.bmat([[sparse.diags(d) for d in row] for row in diagonals])
        transport = sparse.block_diag([sparse.csc_matrix(T(p)) for T in operators])
        logger.debug(f"Assembled Jacobian of {nt} tracer(s), shape {local.shape}")
        return (local - transport).tocsc()

    return F, jacobian


def parameter_jacobian(G: Callable, nt: int = 1) -> Callable[[np.ndarray, Parameters], np.ndarray]:
    """Build ``∇ₚF(x, p)``, the Jacobian with respect to ``p.optvec()``.

    Only the local source term contributes: transport operators are taken
    as independent of the parameters. The result has one column per
    optimizable parameter.
    """

    def jacobian(x, p: Parameters) -> np.ndarray:
        xs = split_state(jnp.asarray(x, dtype=jnp.float64), nt)

        def sources(v):
            q = p.reconstruct(v)
            return jnp.concatenate([
                jnp.broadcast_to(jnp.asarray(g), xi.shape) for g, xi in zip(_sources(G, xs, q), xs)
            ])

        v = jnp.asarray(p.optvec(), dtype=jnp.float64)
        return np.asarray(jax.jacfwd(sources)(v))

    return jacobian
