"""dots CLI commands."""

from __future__ import annotations

import logging

import typer

from dots import __version__

from ._helpers import SortedGroup

app = typer.Typer(
    help="dots - a lightweight issue tracker with first-class dependency support",
    no_args_is_help=True,
    cls=SortedGroup,
)


@app.callback(invoke_without_command=True)
def _global_options(
    ctx: typer.Context,
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output as JSON for all commands",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Log storage activity to stderr",
    ),
    version: bool = typer.Option(
        False,
        "--version",
        help="Show the version and exit",
    ),
) -> None:
    from ._json_state import set_json_flag

    if version:
        typer.echo(f"dots {__version__}")
        raise typer.Exit(0)

    set_json_flag(json_output)
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(levelname)s %(name)s: %(message)s",
        )
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit(0)


from . import (  # noqa: E402
    _cmd_archive,
    _cmd_close,
    _cmd_create,
    _cmd_dep,
    _cmd_init,
    _cmd_read,
    _cmd_workflow,
)

for _mod in (
    _cmd_archive,
    _cmd_close,
    _cmd_create,
    _cmd_dep,
    _cmd_init,
    _cmd_read,
    _cmd_workflow,
):
    _mod.register(app)


def main() -> None:
    """Run the dots CLI application."""
    app()
