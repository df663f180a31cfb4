"""Archive commands for the dots CLI."""

from __future__ import annotations

import typer

from dots.constants import DOTS_DIRNAME
from dots.errors import DotsError
from dots.models import Status

from ._helpers import DOTS_DIR_HELP, get_storage
from ._json_state import echo_json, fail, is_json_output


def register(app: typer.Typer) -> None:
    """Register archive and purge commands."""

    @app.command()
    def archive(
        json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
        dots_dir: str = typer.Option(DOTS_DIRNAME, help=DOTS_DIR_HELP),
    ) -> None:
        """Move closed dots that are still in the active tree into the archive.

        Closing a dot archives it automatically; this only tidies up stores
        where closed records were left in place.
        """
        try:
            storage = get_storage(dots_dir)
            moved = [issue.id for issue in storage.list(Status.CLOSED)]
            for issue_id in moved:
                storage.archive_issue(issue_id)
        except DotsError as e:
            fail(str(e))

        if is_json_output(json_output):
            echo_json({"archived": moved})
        elif not moved:
            typer.echo("Nothing to archive")
        else:
            for issue_id in moved:
                typer.echo(f"✓ Archived {issue_id}")

    @app.command()
    def purge(
        yes: bool = typer.Option(
            False,
            "--yes",
            "-y",
            help="Skip confirmation prompt",
        ),
        json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
        dots_dir: str = typer.Option(DOTS_DIRNAME, help=DOTS_DIR_HELP),
    ) -> None:
        """Delete all archived (closed) dots."""
        json_mode = is_json_output(json_output)
        if not yes and not json_mode:
            typer.confirm("Delete all archived dots?", abort=True)

        try:
            storage = get_storage(dots_dir)
            storage.purge_archive()
        except DotsError as e:
            fail(str(e))

        if json_mode:
            echo_json({"status": "purged"})
        else:
            typer.echo("Archive purged")
