"""tb: command line tools for tracerbox models.

    tb params show params.toml --name C14Params
    tb version
"""

import logging
import sys
from importlib.metadata import PackageNotFoundError, version as dist_version

import typer

from .params import show_command

app = typer.Typer(
    name="tb",
    help="Inspect tracerbox parameter tables and the Parameters types generated from them",
    invoke_without_command=True,
)

params_app = typer.Typer(help="Parameter tables stored as TOML ([[parameter]] tables)")
app.add_typer(params_app, name="params")

params_app.command("show")(show_command)

# Libraries whose versions affect numerical results
_STACK = ("jax", "numpy", "scipy", "pint", "polars")


@app.command("version")
def version():
    """Show tracerbox and numerical stack versions."""
    from .. import __version__
    typer.echo(f"tracerbox {__version__}")
    for name in _STACK:
        try:
            typer.echo(f"  {name} {dist_version(name)}")
        except PackageNotFoundError:
            typer.echo(f"  {name} (not installed)")


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log table reads and type generation"),
):
    """Inspect tracerbox parameter tables and generated Parameters types."""
    if verbose:
        logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        typer.echo("\nError: Missing command. Try 'tb params show FILE'.", err=True)
        raise typer.Exit(1)


def cli_main():
    """Console script entry point."""
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("\nInterrupted", err=True)
        sys.exit(130)


if __name__ == "__main__":
    cli_main()
