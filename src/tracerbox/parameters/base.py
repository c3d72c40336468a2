"""Base class for generated Parameters types.

A Parameters instance has two views:

- Struct view: one attribute per table row, in table order. Values may be
  plain floats, complex numbers or jax arrays/tracers.
- Vector view: a dense vector of the optimizable fields only, in table
  order. This is what solvers and optimizers manipulate.

``optvec`` and ``reconstruct`` map between the two views. Fixed fields are
carried through unchanged by every vector-view operation, so
``p.reconstruct(p.optvec()) == p`` and
``p.reconstruct(v).optvec() == v`` for any ``v`` of length ``len(p)``.

Concrete classes are synthesized by ``generate_parameters_type``; this base
class only reads the ``schema`` class attribute they carry.
"""

import math
import numbers
import operator
from typing import TYPE_CHECKING, Any, Callable, ClassVar, Dict, Iterator, Optional, Sequence

import jax
import jax.numpy as jnp
import numpy as np

from ..errors import IndexOutOfBoundsError, UnknownParameterError
from .display import format_field
from .units import Quantity

if TYPE_CHECKING:
    from .generator import ParametersSchema

# Default relative tolerance of isapprox: sqrt of float64 machine epsilon
DEFAULT_RTOL = math.sqrt(np.finfo(np.float64).eps)


def _as_vector(values: Sequence[Any]):
    """Stack scalars into a 1-d vector, as a jax array if any value is one."""
    values = list(values)
    if any(isinstance(x, jax.Array) for x in values):
        return jnp.stack([jnp.asarray(x) for x in values])
    return np.asarray(values) if values else np.zeros(0)


def _is_scalar(s: Any) -> bool:
    if isinstance(s, bool):
        return False
    if isinstance(s, numbers.Number):
        return True
    return isinstance(s, (np.ndarray, jax.Array)) and s.ndim == 0


class Parameters:
    """Record of model parameters with a vector view over optimizable fields.

    Do not instantiate directly: call ``generate_parameters_type`` on a
    parameter table to obtain a concrete subclass.

    Instances are mutable only through ``set`` (and attribute assignment);
    every other operation returns a new instance.
    """

    __slots__ = ()

    schema: ClassVar[Optional["ParametersSchema"]] = None

    # numpy must defer `array + params` to our reflected operators
    __array_ufunc__ = None

    # mutable records are not hashable
    __hash__ = None  # type: ignore[assignment]

    def __init__(self, *values: Any, **overrides: Any):
        """Build an instance from table defaults.

        Args:
            *values: Either nothing (use table defaults) or one value per
                field, in table order
            **overrides: Field values by name, applied last

        Raises:
            TypeError: If the number of positional values is wrong
            UnknownParameterError: If an override names no field
        """
        schema = self._require_schema()
        if values and len(values) != schema.n_fields:
            raise TypeError(
                f"{type(self).__name__} takes {schema.n_fields} positional values "
                f"(one per parameter), got {len(values)}"
            )
        unknown = [k for k in overrides if k not in schema.names]
        if unknown:
            raise UnknownParameterError(f"Unknown parameters: {sorted(unknown)}. Available: {list(schema.names)}")

        assigned = dict(zip(schema.names, values or schema.values))
        assigned.update(overrides)
        for name in schema.names:
            setattr(self, name, assigned[name])

    @classmethod
    def _require_schema(cls) -> "ParametersSchema":
        if cls.schema is None:
            raise TypeError(
                "Parameters is abstract; use generate_parameters_type(table) to create a concrete type"
            )
        return cls.schema

    @classmethod
    def _blank(cls) -> "Parameters":
        """Allocate an instance without running __init__."""
        cls._require_schema()
        return object.__new__(cls)

    @classmethod
    def from_optvec(cls, v) -> "Parameters":
        """Reconstruct from the table defaults and an optimizable vector."""
        return cls().reconstruct(v)

    # ------------------------------------------------------------------
    # Struct view
    # ------------------------------------------------------------------

    def __iter__(self) -> Iterator[Any]:
        """Iterate over all fields, optimizable and fixed, in table order."""
        return (getattr(self, name) for name in self.schema.names)

    def __len__(self) -> int:
        """Number of optimizable fields (the size of the vector view)."""
        return self.schema.n_optimizable

    def __getitem__(self, name: str) -> Any:
        if not isinstance(name, str):
            raise TypeError(
                f"{type(self).__name__} is indexed by field name; "
                f"use get(i) for 1-based positional access"
            )
        if name not in self.schema.index:
            raise UnknownParameterError(f"Unknown parameter: {name}. Available: {list(self.schema.names)}")
        return getattr(self, name)

    def to_dict(self) -> Dict[str, Any]:
        """All fields as an ordered ``{name: value}`` dict."""
        return dict(zip(self.schema.names, self))

    def quantity(self, name: str, display: bool = False):
        """Field value as a pint quantity, in its canonical or display unit."""
        i = self.schema.index.get(name)
        if i is None:
            raise UnknownParameterError(f"Unknown parameter: {name}. Available: {list(self.schema.names)}")
        q = Quantity(getattr(self, name), self.schema.units[i])
        return q.to(self.schema.display_units[i]) if display else q

    # ------------------------------------------------------------------
    # Vector view
    # ------------------------------------------------------------------

    def vec(self):
        """Dense vector of all fields in table order."""
        return _as_vector(self)

    def optvec(self):
        """Dense vector of the optimizable fields in table order."""
        return _as_vector([getattr(self, name) for name in self.schema.optimizable_names])

    def reconstruct(self, v) -> "Parameters":
        """New instance with optimizable fields from ``v``, fixed fields from self.

        Raises:
            ValueError: If ``v`` is not a vector of length ``len(self)``
        """
        if not isinstance(v, (np.ndarray, jax.Array)):
            v = _as_vector(v)
        if v.ndim != 1 or v.shape[0] != len(self):
            raise ValueError(
                f"{type(self).__name__} expects a vector of {len(self)} optimizable values, got shape {v.shape}"
            )
        new = self.copy()
        for name, x in zip(self.schema.optimizable_names, v):
            setattr(new, name, x)
        return new

    def _check_index(self, i: int) -> str:
        if isinstance(i, bool) or not isinstance(i, numbers.Integral):
            raise TypeError(f"Parameter index must be an int, got {type(i).__name__}")
        if not 1 <= i <= len(self):
            raise IndexOutOfBoundsError(
                f"Index {i} out of bounds! {type(self).__name__} has {len(self)} optimizable parameters"
            )
        return self.schema.optimizable_names[i - 1]

    def get(self, i: int) -> Any:
        """Value of the i-th optimizable field (1-based)."""
        return getattr(self, self._check_index(i))

    def set(self, i: int, value: Any) -> None:
        """Set the i-th optimizable field (1-based) in place."""
        setattr(self, self._check_index(i), value)

    # ------------------------------------------------------------------
    # Conversion
    # ------------------------------------------------------------------

    def copy(self) -> "Parameters":
        new = self._blank()
        for name, value in zip(self.schema.names, self):
            setattr(new, name, value)
        return new

    __copy__ = copy

    def astype(self, dtype) -> "Parameters":
        """Convert every field to ``dtype``, e.g. ``complex`` for complex-step derivatives."""
        convert = np.dtype(dtype).type
        return type(self)(*(convert(value).item() for value in self))

    def mean_obs(self) -> np.ndarray:
        """Observational means of the optimizable fields."""
        return np.array([self.schema.mean_obs[self.schema.index[n]] for n in self.schema.optimizable_names])

    def variance_obs(self) -> np.ndarray:
        """Observational variances of the optimizable fields."""
        return np.array([self.schema.variance_obs[self.schema.index[n]] for n in self.schema.optimizable_names])

    # ------------------------------------------------------------------
    # Arithmetic on the vector view
    # ------------------------------------------------------------------

    def _operand(self, other: Any):
        if isinstance(other, Parameters):
            if type(other) is not type(self):
                raise TypeError(
                    f"Cannot combine {type(self).__name__} with {type(other).__name__}"
                )
            return other.optvec()
        if isinstance(other, (np.ndarray, jax.Array, list, tuple)):
            return other if isinstance(other, (np.ndarray, jax.Array)) else _as_vector(other)
        return None

    def _lift(self, other: Any, op: Callable, reflected: bool = False):
        w = self._operand(other)
        if w is None:
            return NotImplemented
        v = self.optvec()
        if w.shape != v.shape:
            raise ValueError(f"Shape mismatch: {type(self).__name__} has {v.shape[0]} optimizable values, got {w.shape}")
        return self.reconstruct(op(w, v) if reflected else op(v, w))

    def __add__(self, other):
        return self._lift(other, operator.add)

    def __radd__(self, other):
        return self._lift(other, operator.add, reflected=True)

    def __sub__(self, other):
        return self._lift(other, operator.sub)

    def __rsub__(self, other):
        return self._lift(other, operator.sub, reflected=True)

    def __mul__(self, s):
        if not _is_scalar(s):
            return NotImplemented
        return self.reconstruct(self.optvec() * s)

    def __rmul__(self, s):
        if not _is_scalar(s):
            return NotImplemented
        return self.reconstruct(s * self.optvec())

    def __neg__(self):
        return self.reconstruct(-self.optvec())

    # ------------------------------------------------------------------
    # Equality
    # ------------------------------------------------------------------

    def __eq__(self, other):
        """Exact equality over all fields; instances of other types are unequal."""
        if not isinstance(other, Parameters):
            return NotImplemented
        if type(other) is not type(self):
            return False
        return bool(np.array_equal(self.vec(), other.vec()))

    def isapprox(self, other: "Parameters", rtol: float = DEFAULT_RTOL, atol: float = 0.0) -> bool:
        """Approximate equality over all fields."""
        if type(other) is not type(self):
            return False
        return bool(np.allclose(self.vec(), other.vec(), rtol=rtol, atol=atol))

    # ------------------------------------------------------------------
    # Display
    # ------------------------------------------------------------------

    def __repr__(self) -> str:
        schema = self.schema
        lines = [type(self).__name__]
        for i, (name, value) in enumerate(zip(schema.names, self)):
            lines.append(
                format_field(name, value, schema.units[i], schema.display_units[i], fixed=not schema.optimizable[i])
            )
        return "\n".join(lines)


def optvec(p):
    """Vector view of ``p``; vectors pass through unchanged."""
    if isinstance(p, Parameters):
        return p.optvec()
    return p if isinstance(p, (np.ndarray, jax.Array)) else _as_vector(p)


def reconstruct(p: Parameters, v) -> Parameters:
    """New instance with optimizable fields from ``v`` and fixed fields from ``p``."""
    return p.reconstruct(v)


def isapprox(p: Parameters, q: Parameters, **kwargs) -> bool:
    return p.isapprox(q, **kwargs)
