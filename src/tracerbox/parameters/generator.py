"""Generation of Parameters types from parameter tables.

``generate_parameters_type`` freezes a ParameterTable into a
ParametersSchema and synthesizes a Parameters subclass whose slots are the
table's parameter names. The class is:

- registered in a ParametersRegistry under its name (the default registry
  unless one is given), warning when a name is reused;
- registered as a jax pytree whose leaves are the optimizable fields and
  whose static auxiliary data are the fixed fields, so jax transformations
  (``jacfwd``, ``grad``, ``jit``) see exactly the vector view.

Generation is a one-time step: changing the table afterwards does not affect
the generated type. Generate a new type instead.
"""

import logging
import warnings
from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Tuple, Type

import jax

from ..errors import EmptyParameterTableError, TypeRedefinitionWarning, UnknownParameterError
from .base import Parameters
from .table import ParameterTable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ParametersSchema:
    """Immutable description of a generated Parameters type.

    All tuples are aligned with ``names`` (table order).

    Attributes:
        names: Field names
        optimizable: Optimizability flag per field
        values: Default values in canonical units
        units: Canonical units
        display_units: Units used for display
        mean_obs: Observational means (NaN for fixed fields)
        variance_obs: Observational variances (NaN for fixed fields)
        descriptions: Free-text descriptions
    """
    names: Tuple[str, ...]
    optimizable: Tuple[bool, ...]
    values: Tuple[float, ...]
    units: Tuple[str, ...]
    display_units: Tuple[str, ...]
    mean_obs: Tuple[float, ...]
    variance_obs: Tuple[float, ...]
    descriptions: Tuple[str, ...]

    def __post_init__(self):
        """Validate alignment and build lookup structures."""
        if not self.names:
            raise EmptyParameterTableError("Cannot generate a Parameters type from an empty parameter table")

        n = len(self.names)
        for attr in ("optimizable", "values", "units", "display_units", "mean_obs", "variance_obs", "descriptions"):
            if len(getattr(self, attr)) != n:
                raise ValueError(f"Schema column {attr} has {len(getattr(self, attr))} entries, expected {n}")

        if len(set(self.names)) != n:
            duplicates = sorted({x for x in self.names if self.names.count(x) > 1})
            raise ValueError(f"Duplicate parameter names: {duplicates}")

        object.__setattr__(self, "index", MappingProxyType({name: i for i, name in enumerate(self.names)}))
        object.__setattr__(
            self, "optimizable_names", tuple(x for x, opt in zip(self.names, self.optimizable) if opt)
        )
        object.__setattr__(
            self, "fixed_names", tuple(x for x, opt in zip(self.names, self.optimizable) if not opt)
        )

    @classmethod
    def from_table(cls, table: ParameterTable) -> "ParametersSchema":
        records = list(table)
        return cls(
            names=tuple(r.name for r in records),
            optimizable=tuple(r.optimizable for r in records),
            values=tuple(r.value for r in records),
            units=tuple(r.unit for r in records),
            display_units=tuple(r.display_unit for r in records),
            mean_obs=tuple(r.mean_obs for r in records),
            variance_obs=tuple(r.variance_obs for r in records),
            descriptions=tuple(r.description for r in records),
        )

    @property
    def n_fields(self) -> int:
        return len(self.names)

    @property
    def n_optimizable(self) -> int:
        return len(self.optimizable_names)


class ParametersRegistry:
    """Explicit mapping from type names to generated Parameters types.

    Registering a name twice replaces the entry and emits a
    TypeRedefinitionWarning: instances of the old type keep working but are
    stale and never compare equal to instances of the new one.
    """

    def __init__(self):
        self._types: Dict[str, Type[Parameters]] = {}

    def register(self, cls: Type[Parameters]) -> None:
        name = cls.__name__
        previous = self._types.get(name)
        if previous is not None:
            changed = previous.schema.names != cls.schema.names
            warnings.warn(
                f"The name `{name}` is already used by a Parameters type. "
                f"{'Its set of parameters changed, so existing ' if changed else 'Existing '}"
                f"`{name}` instances are now stale. Pass a different type_name to "
                f"generate_parameters_type to keep both.",
                TypeRedefinitionWarning,
                stacklevel=3,
            )
        self._types[name] = cls

    def get(self, name: str) -> Type[Parameters]:
        if name not in self._types:
            raise UnknownParameterError(f"Unknown Parameters type: {name}. Available: {sorted(self._types)}")
        return self._types[name]

    def unregister(self, name: str) -> Type[Parameters]:
        cls = self.get(name)
        del self._types[name]
        return cls

    def names(self) -> List[str]:
        return list(self._types)

    def __contains__(self, name: str) -> bool:
        return name in self._types

    def __len__(self) -> int:
        return len(self._types)

    def __repr__(self) -> str:
        return f"ParametersRegistry({sorted(self._types)})"


default_registry = ParametersRegistry()


def _register_pytree(cls: Type[Parameters]) -> None:
    """Optimizable fields are pytree leaves; fixed fields are static aux data."""
    opt_names = cls.schema.optimizable_names
    fixed_names = cls.schema.fixed_names

    def flatten(p):
        children = [getattr(p, name) for name in opt_names]
        aux = tuple(getattr(p, name) for name in fixed_names)
        return children, aux

    def unflatten(aux, children):
        p = cls._blank()
        for name, value in zip(opt_names, children):
            setattr(p, name, value)
        for name, value in zip(fixed_names, aux):
            setattr(p, name, value)
        return p

    jax.tree_util.register_pytree_node(cls, flatten, unflatten)


def _docstring(type_name: str, schema: ParametersSchema) -> str:
    lines = [f"{type_name}: parameters generated from a parameter table.", "", "Fields:"]
    for name, opt, unit, doc in zip(schema.names, schema.optimizable, schema.units, schema.descriptions):
        status = "optimizable" if opt else "fixed"
        lines.append(f"    {name} [{unit}, {status}]{': ' + doc if doc else ''}")
    return "\n".join(lines)


def generate_parameters_type(
    table: ParameterTable,
    type_name: str = "Parameters",
    registry: Optional[ParametersRegistry] = None,
) -> Type[Parameters]:
    """Generate a Parameters type from a parameter table.

    Upper camel case is recommended for ``type_name``, as for any class.

    Args:
        table: Finalized parameter table (not modified)
        type_name: Name of the new type
        registry: Registry to record the type in (default: ``default_registry``)

    Returns:
        The generated Parameters subclass

    Raises:
        EmptyParameterTableError: If the table has no rows
        ValueError: If ``type_name`` is not an identifier or a parameter
            name collides with a Parameters attribute

    Example:
        >>> t = empty_parameter_table()
        >>> t.add("τ", Quantity(5730, "yr") / math.log(2))
        >>> C14Params = generate_parameters_type(t, "C14Params")
        >>> p = C14Params()
    """
    if not isinstance(type_name, str) or not type_name.isidentifier():
        raise ValueError(f"type_name must be a valid identifier, got {type_name!r}")

    schema = ParametersSchema.from_table(table)

    reserved = [name for name in schema.names if hasattr(Parameters, name)]
    if reserved:
        raise ValueError(f"Parameter names {reserved} collide with Parameters attributes; rename them")

    namespace: Mapping[str, object] = {
        "__slots__": schema.names,
        "__module__": __name__,
        "__qualname__": type_name,
        "__doc__": _docstring(type_name, schema),
        "schema": schema,
    }
    cls = type(type_name, (Parameters,), dict(namespace))
    _register_pytree(cls)

    if registry is None:
        registry = default_registry
    registry.register(cls)

    logger.info(
        f"Generated {type_name} with {schema.n_fields} parameters "
        f"({schema.n_optimizable} optimizable: {list(schema.optimizable_names)})"
    )
    return cls
