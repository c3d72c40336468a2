"""tracerbox: tracer transport modeling for ocean biogeochemistry.

Define parameters in a unit-aware table, generate a Parameters type from
it, assemble a state function ``F(x, p) = G(x, p) - T(p) x`` with its
Jacobian, and solve for steady states or integrate in time.
"""

import jax

# Parameters and state vectors are float64 throughout
jax.config.update("jax_enable_x64", True)

from .errors import (  # noqa: E402
    TracerboxError,
    DuplicateParameterError,
    UnknownParameterError,
    IndexOutOfBoundsError,
    EmptyParameterTableError,
    UnitError,
    ConvergenceError,
    DataIntegrityError,
    TypeRedefinitionWarning,
)
from .parameters import (  # noqa: E402
    ureg,
    Quantity,
    ParameterRecord,
    ParameterTable,
    empty_parameter_table,
    create_empty_table,
    new_parameter,
    add_parameter,
    delete_parameter,
    Parameters,
    ParametersSchema,
    ParametersRegistry,
    default_registry,
    generate_parameters_type,
    optvec,
    reconstruct,
    isapprox,
    read_parameter_table,
    write_parameter_table,
)
from .state import state_function_and_jacobian, parameter_jacobian, split_state  # noqa: E402
from .solvers import SteadyStateProblem, SteadyStateSolution, solve, simulate  # noqa: E402
from .circulations import Grid, Circulation, DataSource, load, load_archive, save_archive  # noqa: E402

try:
    from importlib.metadata import version
    __version__ = version("tracerbox")
except Exception:
    __version__ = "0.1.0"

__all__ = [
    # Errors
    "TracerboxError",
    "DuplicateParameterError",
    "UnknownParameterError",
    "IndexOutOfBoundsError",
    "EmptyParameterTableError",
    "UnitError",
    "ConvergenceError",
    "DataIntegrityError",
    "TypeRedefinitionWarning",
    # Parameters
    "ureg",
    "Quantity",
    "ParameterRecord",
    "ParameterTable",
    "empty_parameter_table",
    "create_empty_table",
    "new_parameter",
    "add_parameter",
    "delete_parameter",
    "Parameters",
    "ParametersSchema",
    "ParametersRegistry",
    "default_registry",
    "generate_parameters_type",
    "optvec",
    "reconstruct",
    "isapprox",
    "read_parameter_table",
    "write_parameter_table",
    # State
    "state_function_and_jacobian",
    "parameter_jacobian",
    "split_state",
    # Solvers
    "SteadyStateProblem",
    "SteadyStateSolution",
    "solve",
    "simulate",
    # Circulations
    "Grid",
    "Circulation",
    "DataSource",
    "load",
    "load_archive",
    "save_archive",
    # Version
    "__version__",
]
