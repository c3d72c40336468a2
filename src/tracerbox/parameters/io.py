"""Reading and writing parameter tables as TOML files.

A parameter file holds one ``[[parameter]]`` table per row, in table order::

    [[parameter]]
    name = "τ"
    value = 8266.64
    unit = "yr"
    description = "radioactive decay e-folding timescale"

    [[parameter]]
    name = "λ"
    value = "50 m / (10 yr)"
    optimizable = true

``value`` is a number (with an optional ``unit``) or a quantity string.
``mean_obs`` and ``variance_obs`` are numbers in canonical (SI base) units or
quantity strings.
Written files store each value in its display unit, so a round trip keeps
the display unit and the canonical value (up to rounding).
"""

import logging
import tomllib
from pathlib import Path
from typing import Any, Dict, Union

import toml

from .table import ParameterTable, empty_parameter_table
from .units import Quantity, to_display

logger = logging.getLogger(__name__)

_OPTIONAL_KEYS = ("mean_obs", "variance_obs", "optimizable", "description", "latex")


def _entry_to_kwargs(entry: Dict[str, Any], position: int) -> Dict[str, Any]:
    if "name" not in entry or "value" not in entry:
        raise ValueError(f"parameter[{position}] requires 'name' and 'value'")
    unknown = set(entry) - {"name", "value", "unit", *_OPTIONAL_KEYS}
    if unknown:
        raise ValueError(f"parameter[{position}] has unknown keys: {sorted(unknown)}")

    value = entry["value"]
    if "unit" in entry:
        if isinstance(value, str):
            raise ValueError(f"parameter[{position}] gives a unit for a quantity string {value!r}")
        value = Quantity(value, entry["unit"])
    return {"quantity": value, **{k: entry[k] for k in _OPTIONAL_KEYS if k in entry}}


def read_parameter_table(path: Union[str, Path]) -> ParameterTable:
    """Read a parameter table from a TOML file.

    Raises:
        FileNotFoundError: If the file doesn't exist
        tomllib.TOMLDecodeError: If TOML is malformed
        ValueError: If an entry is invalid
    """
    path = Path(path)
    with open(path, "rb") as f:
        data = tomllib.load(f)

    entries = data.get("parameter", [])
    if not isinstance(entries, list):
        raise ValueError(f"{path}: 'parameter' must be an array of tables ([[parameter]])")

    table = empty_parameter_table()
    for i, entry in enumerate(entries):
        kwargs = _entry_to_kwargs(entry, i)
        table.add(entry["name"], **kwargs)

    logger.info(f"Read {len(table)} parameters from {path}")
    return table


def write_parameter_table(table: ParameterTable, path: Union[str, Path]) -> None:
    """Write a parameter table to a TOML file, values in their display units."""
    entries = []
    for record in table:
        entry: Dict[str, Any] = {
            "name": record.name,
            "value": to_display(record.value, record.unit, record.display_unit),
            "unit": record.display_unit,
            "optimizable": record.optimizable,
        }
        if record.optimizable:
            # plain numbers are read back as canonical units
            entry["mean_obs"] = record.mean_obs
            entry["variance_obs"] = record.variance_obs
        if record.description:
            entry["description"] = record.description
        if record.latex:
            entry["latex"] = record.latex
        entries.append(entry)

    with open(path, "w", encoding="utf-8") as f:
        toml.dump({"parameter": entries}, f)
    logger.info(f"Wrote {len(entries)} parameters to {path}")
