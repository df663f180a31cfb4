"""Close, reopen and remove commands for the dots CLI."""

from __future__ import annotations

from typing import TYPE_CHECKING

import typer

from dots.constants import DOTS_DIRNAME
from dots.errors import DotsError
from dots.idgen import extract_scope
from dots.models import issue_to_dict, now_timestamp

from ._helpers import DOTS_DIR_HELP, _make_alias, get_storage, resolve_many
from ._json_state import echo_error, echo_json, fail, is_json_output

if TYPE_CHECKING:
    from dots.models import Issue
    from dots.storage import DotsStorage


def _close_target(
    storage: DotsStorage,
    target: str,
    reason: str | None,
    now: str,
) -> list[Issue]:
    """Close one ID (or prefix), or every open dot of a scope.

    Arguments that don't look like ``{scope}-{number}`` are scope names.
    """
    if extract_scope(target) is None:
        return storage.close_scope(target, reason=reason)
    resolved = storage.resolve_id(target)
    return [storage.close(resolved, reason=reason, closed_at=now)]


def register(app: typer.Typer) -> None:
    """Register close, reopen, rm and delete commands."""

    @app.command()
    def close(
        targets: list[str] = typer.Argument(  # noqa: B008
            ...,
            help="Dot ID(s) or scope name(s) to close",
        ),
        reason: str | None = typer.Option(
            None,
            "--reason",
            "-r",
            help="Reason for closing",
        ),
        json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
        dots_dir: str = typer.Option(DOTS_DIRNAME, help=DOTS_DIR_HELP),
    ) -> None:
        """Close dots by ID, or every open dot of a scope.

        Closed dots move into .dots/archive/.
        """
        storage = get_storage(dots_dir)
        now = now_timestamp()
        json_mode = is_json_output(json_output)
        closed: list[Issue] = []
        has_errors = False

        for target in targets:
            try:
                closed.extend(_close_target(storage, target, reason, now))
            except DotsError as e:
                echo_error(f"closing {target}: {e}")
                has_errors = True

        if json_mode:
            echo_json([issue_to_dict(issue) for issue in closed])
        else:
            for issue in closed:
                typer.echo(f"✓ Closed {issue.id}: {issue.title}")

        if has_errors:
            raise typer.Exit(1)

    @app.command()
    def reopen(
        issue_ids: list[str] = typer.Argument(  # noqa: B008
            ...,
            help="Dot ID(s) to reopen",
        ),
        json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
        dots_dir: str = typer.Option(DOTS_DIRNAME, help=DOTS_DIR_HELP),
    ) -> None:
        """Reopen closed dots, moving them out of the archive."""
        storage = get_storage(dots_dir)
        json_mode = is_json_output(json_output)
        has_errors = False

        for issue_id in issue_ids:
            try:
                issue = storage.reopen(storage.resolve_id(issue_id))
            except DotsError as e:
                echo_error(f"reopening {issue_id}: {e}")
                has_errors = True
                continue

            if json_mode:
                echo_json(issue_to_dict(issue))
            else:
                typer.echo(f"✓ Reopened {issue.id}: {issue.title}")

        if has_errors:
            raise typer.Exit(1)

    @app.command("rm")
    def remove(
        issue_ids: list[str] = typer.Argument(  # noqa: B008
            ...,
            help="Dot ID(s) to remove",
        ),
        json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
        dots_dir: str = typer.Option(DOTS_DIRNAME, help=DOTS_DIR_HELP),
    ) -> None:
        """Remove dots for good.

        Other dots that were blocked by a removed dot lose that blocker.
        """
        try:
            storage = get_storage(dots_dir)
            resolved = resolve_many(storage, issue_ids)
            for issue_id in resolved:
                storage.delete(issue_id)
        except (DotsError, ValueError) as e:
            fail(str(e))

        if is_json_output(json_output):
            echo_json({"deleted": resolved})
        else:
            for issue_id in resolved:
                typer.echo(f"✓ Removed {issue_id}")

    app.command("delete")(
        _make_alias(remove, doc="Remove dots for good (alias for 'rm')."),
    )
