"""Parameter system for tracerbox models.

Build a ParameterTable of unit-attached values, then generate a Parameters
type from it. Instances of the generated type expose a struct view (one
attribute per parameter) and a vector view over the optimizable parameters
that solvers, optimizers and jax transformations operate on.
"""

from .units import (
    ureg,
    Quantity,
    Normalized,
    normalize,
    pretty_unit,
)
from .table import (
    ParameterRecord,
    ParameterTable,
    empty_parameter_table,
    create_empty_table,
    new_parameter,
    add_parameter,
    delete_parameter,
)
from .base import (
    Parameters,
    optvec,
    reconstruct,
    isapprox,
)
from .generator import (
    ParametersSchema,
    ParametersRegistry,
    default_registry,
    generate_parameters_type,
)
from .io import read_parameter_table, write_parameter_table

__all__ = [
    # Units
    "ureg",
    "Quantity",
    "Normalized",
    "normalize",
    "pretty_unit",
    # Table
    "ParameterRecord",
    "ParameterTable",
    "empty_parameter_table",
    "create_empty_table",
    "new_parameter",
    "add_parameter",
    "delete_parameter",
    # Parameters
    "Parameters",
    "optvec",
    "reconstruct",
    "isapprox",
    # Generation
    "ParametersSchema",
    "ParametersRegistry",
    "default_registry",
    "generate_parameters_type",
    # Files
    "read_parameter_table",
    "write_parameter_table",
]
