"""Create command for the dots CLI."""

from __future__ import annotations

import typer

from dots.config import get_default_scope
from dots.constants import DEFAULT_PRIORITY, DOTS_DIRNAME
from dots.errors import DotsError
from dots.idgen import next_id
from dots.models import Issue, issue_to_dict, now_timestamp

from ._helpers import DOTS_DIR_HELP, _make_alias, clamp_priority, get_storage
from ._json_state import echo_json, fail, is_json_output


def register(app: typer.Typer) -> None:
    """Register open and create commands."""

    @app.command("open")
    def open_issue(
        title: str = typer.Argument(..., help="Title of the new dot"),
        priority: int = typer.Option(
            DEFAULT_PRIORITY,
            "--priority",
            "-p",
            help="Priority (0 = most urgent, clamped to 0-9)",
        ),
        description: str = typer.Option(
            "",
            "--description",
            "-d",
            help="Free text description",
        ),
        scope: str | None = typer.Option(
            None,
            "--scope",
            "-s",
            help="Scope for the new ID (default: DOTS_DEFAULT_SCOPE or config)",
        ),
        json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
        dots_dir: str = typer.Option(DOTS_DIRNAME, help=DOTS_DIR_HELP),
    ) -> None:
        """Open a new dot and print its ID."""
        if not title.strip():
            fail("title required")

        try:
            storage = get_storage(dots_dir)
            resolved_scope = get_default_scope(storage.root, scope)
            if resolved_scope is None:
                fail("scope required (-s <scope> or DOTS_DEFAULT_SCOPE)")

            issue = Issue(
                id=next_id(storage.root, resolved_scope),
                title=title,
                description=description,
                priority=clamp_priority(priority),
                created_at=now_timestamp(),
            )
            storage.create(issue)
        except DotsError as e:
            fail(str(e))

        if is_json_output(json_output):
            echo_json(issue_to_dict(issue))
        else:
            typer.echo(issue.id)

    app.command("create")(
        _make_alias(open_issue, doc="Open a new dot (alias for 'open')."),
    )
