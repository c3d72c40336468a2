"""Shared fixtures for tracerbox tests."""

import math

import numpy as np
import pytest
from scipy import sparse

from tracerbox.parameters import (
    ParametersRegistry,
    Quantity,
    empty_parameter_table,
    generate_parameters_type,
)


@pytest.fixture
def registry():
    """Fresh registry so tests never touch the process-wide one."""
    return ParametersRegistry()


@pytest.fixture
def c14_table():
    """Radiocarbon table: two fixed parameters."""
    t = empty_parameter_table()
    t.add("τ", Quantity(5730, "yr") / math.log(2), description="radioactive decay e-folding timescale")
    t.add("λ", Quantity(5, "m/yr"), description="piston velocity")
    return t


@pytest.fixture
def mixed_table():
    """Alternating optimizable (a, c) and fixed (b, d) parameters."""
    t = empty_parameter_table()
    t.add("a", 1.0, optimizable=True)
    t.add("b", "2 m")
    t.add("c", 3.0, optimizable=True, mean_obs=2.5, variance_obs=0.25)
    t.add("d", "4 s")
    return t


@pytest.fixture
def Mixed(mixed_table, registry):
    """Parameters type generated from mixed_table."""
    return generate_parameters_type(mixed_table, "Mixed", registry=registry)


@pytest.fixture
def ring_T():
    """Transport operator of a 3-box ring (rows sum to zero)."""
    return sparse.csr_matrix(np.array([
        [1.0, -1.0, 0.0],
        [0.0, 1.0, -1.0],
        [-1.0, 0.0, 1.0],
    ]))


@pytest.fixture
def Restoring(registry):
    """Parameters of a restoring model: rate k (optimizable), timescale τ (fixed)."""
    t = empty_parameter_table()
    t.add("k", 0.5, optimizable=True)
    t.add("τ", 2.0)
    return generate_parameters_type(t, "Restoring", registry=registry)


@pytest.fixture
def restoring_sources():
    """Restoring toward 1 at rate k with decay on timescale τ."""

    def G(x, p):
        return p.k * (1 - x) - x / p.τ

    return G
