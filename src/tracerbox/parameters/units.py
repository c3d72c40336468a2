"""Unit normalization for parameter values.

Every parameter is stored as a plain float in a canonical unit (the SI base
reduction of whatever unit the user supplied) and carries a separate display
unit that is only used for formatting. Computation never sees units.

pint is used for all unit handling; a single registry is shared by the
whole package so quantities can be compared and converted freely.
"""

import numbers
from typing import NamedTuple, Union

import pint

from ..errors import UnitError

ureg = pint.UnitRegistry()
Quantity = ureg.Quantity

UnitLike = Union[str, pint.Unit]
QuantityLike = Union[pint.Quantity, numbers.Real, str]


class Normalized(NamedTuple):
    """Canonical storage form of a quantity.

    Attributes:
        value: Magnitude expressed in ``unit``
        unit: SI base-unit reduction of the input unit
        display_unit: Unit the caller originally used
    """
    value: float
    unit: str
    display_unit: str


def as_unit(unit: UnitLike) -> pint.Unit:
    """Parse a unit expression into a registry unit.

    Raises:
        UnitError: If the expression is not a known unit
    """
    if isinstance(unit, pint.Unit):
        return ureg.Unit(str(unit))
    try:
        return ureg.Unit(unit)
    except (pint.errors.PintError, ValueError, TypeError) as e:
        raise UnitError(f"Unknown unit expression {unit!r}: {e}") from e


def as_quantity(x: QuantityLike) -> pint.Quantity:
    """Coerce a value into a quantity of the shared registry.

    Plain real numbers are dimensionless. Strings are parsed, e.g.
    ``"5 m/yr"``. Quantities from other registries are re-created here.

    Raises:
        UnitError: If ``x`` cannot be interpreted as a scalar quantity
    """
    if isinstance(x, bool):
        raise UnitError(f"Expected a quantity, got bool {x!r}")

    if isinstance(x, pint.Quantity):
        if x._REGISTRY is ureg:
            q = x
        else:
            q = Quantity(x.magnitude, str(x.units))
    elif isinstance(x, numbers.Real):
        q = Quantity(float(x), ureg.dimensionless)
    elif isinstance(x, str):
        try:
            q = Quantity(x)
        except (pint.errors.PintError, ValueError, TypeError, SyntaxError) as e:
            raise UnitError(f"Cannot parse quantity {x!r}: {e}") from e
        if not isinstance(q, pint.Quantity):
            q = Quantity(float(q), ureg.dimensionless)
    else:
        raise UnitError(f"Expected a quantity, number or string, got {type(x).__name__}")

    if not isinstance(q.magnitude, numbers.Real):
        raise UnitError(f"Parameter quantities must be real scalars, got {q!r}")
    return q


def normalize(quantity: QuantityLike) -> Normalized:
    """Reduce a quantity to its canonical storage form.

    The canonical unit is the SI base reduction of the input unit, so the
    same input unit always reduces to the same canonical unit.

    Example:
        >>> normalize("5 m/yr")
        Normalized(value=1.58...e-07, unit='meter / second', display_unit='meter / year')
    """
    q = as_quantity(quantity)
    base = q.to_base_units()
    return Normalized(float(base.magnitude), str(base.units), str(q.units))


def strip(quantity: QuantityLike, unit: UnitLike) -> float:
    """Convert a quantity to ``unit`` and drop the unit."""
    q = as_quantity(quantity)
    try:
        return float(q.to(as_unit(unit)).magnitude)
    except pint.errors.DimensionalityError as e:
        raise UnitError(f"Cannot convert {q} to {unit}: {e}") from e


def to_display(value: float, unit: UnitLike, display_unit: UnitLike) -> float:
    """Convert a real magnitude from ``unit`` to ``display_unit``.

    Offset units (e.g. kelvin to degree Celsius) are handled.
    """
    src, dst = as_unit(unit), as_unit(display_unit)
    if src == dst:
        return value
    try:
        return float(Quantity(value, src).to(dst).magnitude)
    except pint.errors.DimensionalityError as e:
        raise UnitError(f"Cannot display {unit} as {display_unit}: {e}") from e


def conversion_factor(unit: UnitLike, display_unit: UnitLike) -> float:
    """Multiplicative factor taking magnitudes (or perturbations) between units.

    For offset units this is the slope of the conversion, which is what
    derivative components must be scaled by.
    """
    src, dst = as_unit(unit), as_unit(display_unit)
    if src == dst:
        return 1.0
    return to_display(1.0, src, dst) - to_display(0.0, src, dst)


def pretty_unit(unit: UnitLike) -> str:
    """Compact unicode rendering of a unit, e.g. ``mol/m³``.

    Dimensionless units render as an empty string.
    """
    u = as_unit(unit)
    if u == ureg.dimensionless:
        return ""
    return format(u, "~P")
