"""Workflow and status commands for the dots CLI."""

from __future__ import annotations

from typing import TYPE_CHECKING

import typer

from dots.constants import DOTS_DIRNAME
from dots.deps import get_blocked_issues
from dots.errors import DotsError
from dots.models import Status, issue_to_dict, now_timestamp

from ._formatting import format_issue_brief
from ._helpers import DOTS_DIR_HELP, get_storage, resolve_many
from ._json_state import echo_json, fail, is_json_output

if TYPE_CHECKING:
    from dots.models import Issue
    from dots.storage import DotsStorage


def _warn_open_blockers(storage: DotsStorage, issue_id: str) -> None:
    """Print the open or active blockers of an issue that is being started."""
    issue = storage.get(issue_id)
    if issue is None:
        return

    warned = False
    for blocker_id in issue.blockers:
        blocker = storage.get(blocker_id)
        if blocker is None or not blocker.status.is_pending():
            continue
        if not warned:
            typer.echo(f"Warning: {issue_id} is blocked by:")
            warned = True
        typer.echo(f"  {blocker.id} ({blocker.status.display}) - {blocker.title}")


def register(app: typer.Typer) -> None:
    """Register workflow/status commands."""

    @app.command()
    def ready(
        json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
        dots_dir: str = typer.Option(DOTS_DIRNAME, help=DOTS_DIR_HELP),
    ) -> None:
        """Show open dots with no open or active blocker."""
        try:
            storage = get_storage(dots_dir)
            ready_issues = storage.get_ready_issues()
        except DotsError as e:
            fail(str(e))

        if is_json_output(json_output):
            echo_json([issue_to_dict(issue) for issue in ready_issues])
        else:
            for issue in ready_issues:
                typer.echo(format_issue_brief(issue))

    @app.command()
    def blocked(
        json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
        dots_dir: str = typer.Option(DOTS_DIRNAME, help=DOTS_DIR_HELP),
    ) -> None:
        """Show dots that wait on an open or active blocker."""
        try:
            storage = get_storage(dots_dir)
            blocked_issues = get_blocked_issues(storage)
        except DotsError as e:
            fail(str(e))

        if is_json_output(json_output):
            echo_json(
                [
                    {
                        "issue_id": bi.issue_id,
                        "blocking_ids": bi.blocking_ids,
                        "reason": bi.reason,
                    }
                    for bi in blocked_issues
                ],
            )
        elif not blocked_issues:
            typer.echo("No blocked dots")
        else:
            for bi in blocked_issues:
                typer.echo(f"{bi.issue_id}: blocked by {', '.join(bi.blocking_ids)}")

    @app.command()
    def start(
        issue_ids: list[str] = typer.Argument(  # noqa: B008
            ...,
            help="Dot ID(s) to start",
        ),
        json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
        dots_dir: str = typer.Option(DOTS_DIRNAME, help=DOTS_DIR_HELP),
    ) -> None:
        """Start working on one or more dots (status becomes active).

        Starting a dot that still has open blockers prints a warning but
        goes ahead.
        """
        json_mode = is_json_output(json_output)
        try:
            storage = get_storage(dots_dir)
            started: list[Issue] = []
            for issue_id in resolve_many(storage, issue_ids):
                if not json_mode:
                    _warn_open_blockers(storage, issue_id)
                started.append(storage.start(issue_id))
        except (DotsError, ValueError) as e:
            fail(str(e))

        if json_mode:
            echo_json([issue_to_dict(issue) for issue in started])
        else:
            for issue in started:
                typer.echo(f"✓ Started {issue.id}: {issue.title}")

    @app.command()
    def update(
        issue_id: str = typer.Argument(..., help="Dot ID or unique prefix"),
        status: str = typer.Option(
            ...,
            "--status",
            help="New status (open, active, closed or done)",
        ),
        json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
        dots_dir: str = typer.Option(DOTS_DIRNAME, help=DOTS_DIR_HELP),
    ) -> None:
        """Set the status of a dot."""
        try:
            new_status = Status.parse(status)
            storage = get_storage(dots_dir)
            resolved = storage.resolve_id(issue_id)
            closed_at = now_timestamp() if new_status == Status.CLOSED else None
            issue = storage.update_status(resolved, new_status, closed_at)
        except DotsError as e:
            fail(str(e))

        if is_json_output(json_output):
            echo_json(issue_to_dict(issue))
        else:
            typer.echo(f"✓ Updated {issue.id}: {issue.status.display}")
