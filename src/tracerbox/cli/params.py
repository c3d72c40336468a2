"""Parameter file commands."""

import tomllib
from pathlib import Path
from typing import Optional

import polars as pl
import typer

from ..config import load_settings
from ..errors import TracerboxError
from ..parameters import ParametersRegistry, generate_parameters_type, read_parameter_table


def show_command(
    path: Path = typer.Argument(..., help="TOML parameter file ([[parameter]] tables)"),
    name: Optional[str] = typer.Option(
        None, "--name", "-n", help="Name of the generated Parameters type (default from [tool.tracerbox])"
    ),
):
    """Show a parameter table and the default instance generated from it."""
    try:
        type_name = name or load_settings().default_type_name
        table = read_parameter_table(path)
        # keep CLI types out of the process-wide registry
        cls = generate_parameters_type(table, type_name, registry=ParametersRegistry())
    except FileNotFoundError:
        typer.echo(f"Error: {path} not found", err=True)
        raise typer.Exit(1)
    except (tomllib.TOMLDecodeError, TracerboxError, ValueError) as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(1)

    frame = table.to_polars().select("name", "value", "unit", "display_unit", "optimizable", "description")
    with pl.Config(tbl_rows=-1, fmt_str_lengths=40):
        typer.echo(str(frame))

    p = cls()
    typer.echo("")
    typer.echo(repr(p))
    typer.echo(f"\n{len(p)} optimizable of {cls.schema.n_fields} parameters")
