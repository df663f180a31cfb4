"""Dependency commands for the dots CLI."""

from __future__ import annotations

import typer

from dots.constants import DOTS_DIRNAME
from dots.errors import DotsError

from ._helpers import DOTS_DIR_HELP, get_storage
from ._json_state import echo_json, fail, is_json_output


def register(app: typer.Typer) -> None:
    """Register block and unblock commands."""

    @app.command()
    def block(
        issue_id: str = typer.Argument(..., help="Dot that is blocked"),
        blocker_id: str = typer.Argument(..., help="Dot it waits on"),
        json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
        dots_dir: str = typer.Option(DOTS_DIRNAME, help=DOTS_DIR_HELP),
    ) -> None:
        """Mark a dot as blocked by another dot."""
        try:
            storage = get_storage(dots_dir)
            resolved = storage.resolve_id(issue_id)
            resolved_blocker = storage.resolve_id(blocker_id)
            storage.add_dependency(resolved, resolved_blocker)
        except DotsError as e:
            fail(str(e))

        if is_json_output(json_output):
            echo_json({"issue_id": resolved, "blocker_id": resolved_blocker})
        else:
            typer.echo(f"{resolved} is now blocked by {resolved_blocker}")

    @app.command()
    def unblock(
        issue_id: str = typer.Argument(..., help="Dot that is blocked"),
        blocker_id: str = typer.Argument(..., help="Blocker to remove"),
        json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
        dots_dir: str = typer.Option(DOTS_DIRNAME, help=DOTS_DIR_HELP),
    ) -> None:
        """Remove a blocking relationship."""
        try:
            storage = get_storage(dots_dir)
            resolved = storage.resolve_id(issue_id)
            resolved_blocker = storage.resolve_id(blocker_id)
            storage.remove_dependency(resolved, resolved_blocker)
        except DotsError as e:
            fail(str(e))

        if is_json_output(json_output):
            echo_json({"issue_id": resolved, "blocker_id": resolved_blocker})
        else:
            typer.echo(f"{resolved} is no longer blocked by {resolved_blocker}")
