"""Unit-aware display of parameter values.

Values are split into a primal part and zero or more perturbation parts by
a single dispatch on the value type: plain reals have none, complex numbers
(complex-step differentiation) carry an imaginary part, and jax
forward-mode tracers carry a tangent. The primal part is converted to the
display unit; perturbations are scaled by the conversion slope.
"""

import numbers
from functools import singledispatch
from typing import Optional, Tuple

import jax
import numpy as np
from jax.core import Tracer

from .units import UnitLike, conversion_factor, pretty_unit, to_display

Components = Tuple[float, Tuple[Tuple[Optional[float], str], ...]]


@singledispatch
def components(value) -> Optional[Components]:
    """Split a value into ``(primal, ((perturbation, symbol), ...))``.

    Returns None for abstract values (e.g. tracers under ``jax.jit``)
    that have no concrete number to show. A perturbation of None is a
    tangent without a concrete value, such as the batched tangent under
    ``jax.jacfwd``.
    """
    raise TypeError(f"Cannot display parameter value of type {type(value).__name__}")


@components.register(numbers.Real)
def _(value) -> Components:
    return float(value), ()


@components.register(numbers.Complex)
def _(value) -> Components:
    return float(value.real), ((float(value.imag), "i"),)


@components.register(np.ndarray)
@components.register(jax.Array)
def _(value) -> Optional[Components]:
    if value.ndim != 0:
        raise TypeError(f"Parameter values must be scalars, got array of shape {value.shape}")
    return components(value.item())


@components.register(Tracer)
def _(value) -> Optional[Components]:
    primal = getattr(value, "primal", None)
    tangent = getattr(value, "tangent", None)
    if primal is None or tangent is None:
        return None
    inner = components(primal)
    if inner is None:
        return None
    if isinstance(tangent, Tracer):
        dual = components(tangent)
        coef = dual[0] if dual is not None else None
    elif isinstance(tangent, (numbers.Number, jax.Array)):
        coef = components(tangent)[0]
    else:
        # symbolic zero
        coef = 0.0
    base, perturbations = inner
    return base, perturbations + ((coef, "ε"),)


def format_value(value, unit: UnitLike, display_unit: UnitLike) -> str:
    """Format a value given in ``unit`` as a number in ``display_unit``."""
    parts = components(value)
    if parts is None:
        return "<traced>"
    primal, perturbations = parts
    text = f"{to_display(primal, unit, display_unit):8.2e}"
    if perturbations:
        factor = conversion_factor(unit, display_unit)
        for coef, symbol in perturbations:
            if coef is None:
                text += f" + ?{symbol}"
                continue
            coef *= factor
            sign = "-" if coef < 0 else "+"
            text += f" {sign} {abs(coef):8.2e}{symbol}"
    return text


def format_field(name: str, value, unit: UnitLike, display_unit: UnitLike, fixed: bool = False) -> str:
    """One display line: ``name = value [unit] (fixed)``."""
    line = f"{name:>6} = {format_value(value, unit, display_unit)} [{pretty_unit(display_unit)}]"
    if fixed:
        line += " (fixed)"
    return line
