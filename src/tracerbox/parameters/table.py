"""Parameter tables.

A ParameterTable is the mutable, insertion-ordered list of parameter
metadata from which a Parameters type is generated. Row order is meaningful:
it fixes the field order of the generated type and of its vector view.

The table is backed by a polars DataFrame with a fixed column schema.
"""

import keyword
import logging
import math
import numbers
import unicodedata
from dataclasses import dataclass, astuple
from typing import Iterator, List, Optional, Union

import pint
import polars as pl

from ..errors import DuplicateParameterError, UnknownParameterError
from .units import QuantityLike, as_unit, normalize, strip

logger = logging.getLogger(__name__)

SCHEMA = {
    "name": pl.Utf8,
    "value": pl.Float64,
    "unit": pl.Utf8,
    "display_unit": pl.Utf8,
    "mean_obs": pl.Float64,
    "variance_obs": pl.Float64,
    "optimizable": pl.Boolean,
    "description": pl.Utf8,
    "latex": pl.Utf8,
}


@dataclass(frozen=True)
class ParameterRecord:
    """One row of a parameter table.

    Attributes:
        name: Parameter identifier (becomes a field name)
        value: Magnitude in the canonical unit
        unit: Canonical (SI base) unit the value is stored in
        display_unit: Unit used only for formatting
        mean_obs: Observational mean, NaN when not optimizable
        variance_obs: Observational variance, NaN when not optimizable
        optimizable: Whether the parameter is part of the vector view
        description: Free-text description
        latex: LaTeX symbol for documentation and plots
    """
    name: str
    value: float
    unit: str
    display_unit: str
    mean_obs: float
    variance_obs: float
    optimizable: bool = False
    description: str = ""
    latex: str = ""


def _check_name(name: str) -> str:
    """Validate a parameter name and return its NFKC form (as Python normalizes identifiers)."""
    if not isinstance(name, str) or not name.isidentifier() or keyword.iskeyword(name):
        raise ValueError(f"Parameter name must be a valid identifier, got {name!r}")
    return unicodedata.normalize("NFKC", name)


def _observed(x, unit: str, default: float) -> float:
    """Strip an observational statistic, converting quantities to ``unit``."""
    if x is None:
        return default
    if isinstance(x, (pint.Quantity, str)):
        return strip(x, unit)
    if isinstance(x, numbers.Real) and not isinstance(x, bool):
        return float(x)
    raise TypeError(f"Observational statistics must be numbers, quantities or quantity strings, got {type(x).__name__}")


def new_parameter(
    name: str,
    quantity: QuantityLike,
    *,
    mean_obs=None,
    variance_obs=None,
    optimizable: bool = False,
    description: str = "",
    latex: str = "",
) -> ParameterRecord:
    """Create a parameter record (to be added to a parameter table).

    ``quantity`` is converted to its canonical unit and stripped. If
    ``optimizable`` is false, the observational mean and variance are NaN
    whatever was passed. Otherwise they default to the canonical value and
    its square. Quantities passed as ``mean_obs``/``variance_obs`` are first
    converted to the canonical unit (and its square).

    Example:
        >>> new_parameter("λ", "50 m / (10 yr)", optimizable=True)
        ParameterRecord(name='λ', value=1.58...e-07, unit='meter / second', ...)
    """
    name = _check_name(name)
    value, unit, display_unit = normalize(quantity)

    if optimizable:
        squared = str(as_unit(unit) ** 2)
        mean = _observed(mean_obs, unit, value)
        variance = _observed(variance_obs, squared, value ** 2)
    else:
        mean = variance = math.nan

    return ParameterRecord(
        name=name,
        value=value,
        unit=unit,
        display_unit=display_unit,
        mean_obs=mean,
        variance_obs=variance,
        optimizable=bool(optimizable),
        description=description,
        latex=latex,
    )


class ParameterTable:
    """Ordered, mutable table of parameter records.

    All mutation happens in place. Adding an existing name or deleting a
    missing one fails and leaves the table unchanged.
    """

    def __init__(self, frame: Optional[pl.DataFrame] = None):
        if frame is None:
            frame = pl.DataFrame(schema=SCHEMA)
        elif frame.columns != list(SCHEMA) or dict(frame.schema) != SCHEMA:
            raise ValueError(f"Parameter table frame must have schema {SCHEMA}, got {dict(frame.schema)}")
        self._frame = frame

    def add(self, name: str, quantity: QuantityLike, **kwargs) -> ParameterRecord:
        """Add a parameter; see ``new_parameter`` for the keyword arguments.

        Raises:
            DuplicateParameterError: If ``name`` is already in the table
        """
        record = new_parameter(name, quantity, **kwargs)
        if record.name in self:
            raise DuplicateParameterError(f"Parameter {record.name} already exists! (Maybe delete it first?)")
        row = pl.DataFrame([astuple(record)], schema=SCHEMA, orient="row")
        self._frame = pl.concat([self._frame, row], how="vertical")
        logger.debug(f"Added parameter {record.name} = {record.value} [{record.unit}]")
        return record

    def delete(self, key: Union[str, int]) -> ParameterRecord:
        """Remove a row by name or by 1-based row position (as ``get``/``set``).

        Raises:
            UnknownParameterError: If no row matches
        """
        if isinstance(key, bool):
            raise TypeError("Parameter rows are selected by name or int position, got bool")
        if isinstance(key, numbers.Integral):
            if not 1 <= key <= len(self):
                raise UnknownParameterError(
                    f"Row {key} does not exist in a table of {len(self)} parameters (rows are numbered from 1)"
                )
            index = int(key) - 1
        else:
            names = self.names()
            if key not in names:
                raise UnknownParameterError(f"Parameter {key} does not exist in that table. Available: {names}")
            index = names.index(key)

        record = self._record_at(index)
        self._frame = pl.concat([self._frame.slice(0, index), self._frame.slice(index + 1)], how="vertical")
        logger.debug(f"Deleted parameter {record.name}")
        return record

    def names(self) -> List[str]:
        """Parameter names in table order."""
        return self._frame["name"].to_list()

    def record(self, name: str) -> ParameterRecord:
        """Get the record for a parameter name."""
        names = self.names()
        if name not in names:
            raise UnknownParameterError(f"Unknown parameter: {name}. Available: {names}")
        return self._record_at(names.index(name))

    def _record_at(self, index: int) -> ParameterRecord:
        return ParameterRecord(**self._frame.row(index, named=True))

    def to_polars(self) -> pl.DataFrame:
        """Copy of the underlying frame."""
        return self._frame.clone()

    def __iter__(self) -> Iterator[ParameterRecord]:
        for row in self._frame.iter_rows(named=True):
            yield ParameterRecord(**row)

    def __len__(self) -> int:
        return self._frame.height

    def __contains__(self, name: str) -> bool:
        return name in self.names()

    def __repr__(self) -> str:
        return repr(self._frame)


def empty_parameter_table() -> ParameterTable:
    """Create an empty parameter table with the fixed column schema."""
    return ParameterTable()


create_empty_table = empty_parameter_table


def add_parameter(table: ParameterTable, name: str, quantity: QuantityLike, **kwargs) -> ParameterRecord:
    """Add a parameter to ``table`` in place.

    If ``optimizable=False`` (the default), the observational mean and
    variance are stored as NaN. Otherwise they default to the canonical
    value and its square unless given.

    Raises:
        DuplicateParameterError: If the name already exists
    """
    return table.add(name, quantity, **kwargs)


def delete_parameter(table: ParameterTable, key: Union[str, int]) -> ParameterRecord:
    """Delete a parameter from ``table`` in place.

    ``key`` is a parameter name or a 1-based row position, counted like the
    1-based ``get``/``set`` of generated Parameters types.

    Raises:
        UnknownParameterError: If no row matches; the table is unchanged
    """
    return table.delete(key)
