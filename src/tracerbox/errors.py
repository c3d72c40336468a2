"""Error taxonomy for tracerbox.

All table and type errors indicate programmer-level misuse (duplicate
names, bad indices, unknown parameters) and are raised synchronously to the
caller. None of them are retried internally.
"""


class TracerboxError(Exception):
    """Base class for all tracerbox errors."""


class DuplicateParameterError(TracerboxError, ValueError):
    """A parameter with the same name already exists in the table."""


class UnknownParameterError(TracerboxError, KeyError):
    """No parameter matches the requested name or row."""

    def __str__(self) -> str:
        # KeyError quotes its argument; keep messages readable
        return str(self.args[0]) if self.args else ""


class IndexOutOfBoundsError(TracerboxError, IndexError):
    """Positional access outside the optimizable-field range."""


class EmptyParameterTableError(TracerboxError, ValueError):
    """A Parameters type cannot be generated from an empty table."""


class UnitError(TracerboxError, ValueError):
    """A quantity or unit could not be parsed or converted."""


class ConvergenceError(TracerboxError, RuntimeError):
    """A solver or integrator failed to converge."""


class DataIntegrityError(TracerboxError, ValueError):
    """A downloaded or archived dataset failed validation."""


class TypeRedefinitionWarning(UserWarning):
    """A Parameters type name was reused.

    Instances of the previously generated type remain usable but are stale:
    they no longer compare equal to instances of the new type.
    """
