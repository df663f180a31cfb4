"""Read/display commands for the dots CLI."""

from __future__ import annotations

import typer

from dots.constants import DOTS_DIRNAME
from dots.errors import DotsError
from dots.idgen import extract_scope
from dots.models import Issue, Status, issue_to_dict

from ._formatting import (
    format_issue_brief,
    format_issue_full,
    format_relation_section,
    format_scope_tree,
)
from ._helpers import DOTS_DIR_HELP, _make_alias, get_storage
from ._json_state import echo_json, fail, is_json_output


def register(app: typer.Typer) -> None:
    """Register list, show and search commands."""

    @app.command("list")
    def list_issues(
        scope: str | None = typer.Argument(None, help="Only show this scope"),
        status: str | None = typer.Option(
            None,
            "--status",
            help="Flat list of dots with this status (open, active, closed)",
        ),
        json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
        dots_dir: str = typer.Option(DOTS_DIRNAME, help=DOTS_DIR_HELP),
    ) -> None:
        """Show scopes and their open dots as a tree.

        A dot's blockers are shown nested beneath it. With --status the
        output is a flat list instead.
        """
        try:
            storage = get_storage(dots_dir)

            if status is not None:
                issues = storage.list(Status.parse(status))
                if scope is not None:
                    issues = [i for i in issues if extract_scope(i.id) == scope]
                if is_json_output(json_output):
                    echo_json([issue_to_dict(i) for i in issues])
                else:
                    for issue in issues:
                        typer.echo(format_issue_brief(issue))
                return

            scopes = storage.list_scopes()
            if scope is not None:
                if scope not in scopes:
                    fail(f"Unknown scope: {scope}")
                scopes = [scope]

            pending = [i for i in storage.list() if i.status.is_pending()]
            by_scope: dict[str, list[Issue]] = {s: [] for s in scopes}
            for issue in pending:
                issue_scope = extract_scope(issue.id)
                if issue_scope in by_scope:
                    by_scope[issue_scope].append(issue)
        except DotsError as e:
            fail(str(e))

        if is_json_output(json_output):
            echo_json(
                {s: [issue_to_dict(i) for i in items] for s, items in by_scope.items()},
            )
        else:
            for scope_name, items in by_scope.items():
                typer.echo(format_scope_tree(scope_name, items))

    app.command("ls")(
        _make_alias(list_issues, doc="Show scopes and their dots (alias for 'list')."),
    )

    @app.command()
    def show(
        issue_id: str = typer.Argument(..., help="Dot ID or unique prefix"),
        json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
        dots_dir: str = typer.Option(DOTS_DIRNAME, help=DOTS_DIR_HELP),
    ) -> None:
        """Show details of a dot, what blocks it and what it blocks."""
        try:
            storage = get_storage(dots_dir)
            resolved = storage.resolve_id(issue_id)
            issue = storage.get(resolved)
            if issue is None:
                fail(f"Issue not found: {issue_id}")

            blocked_by = [(b, storage.get(b)) for b in issue.blockers]
            dependents = storage.get_dependents(issue.id)
        except DotsError as e:
            fail(str(e))

        if is_json_output(json_output):
            output = issue_to_dict(issue)
            output["blocks"] = [d.id for d in dependents]
            echo_json(output)
            return

        lines = format_issue_full(issue).split("\n")
        lines.extend(format_relation_section("Blocked by", blocked_by))
        lines.extend(
            format_relation_section("Blocks", [(d.id, d) for d in dependents]),
        )
        typer.echo("\n".join(lines))

    @app.command()
    def search(
        query: str = typer.Argument(..., help="Text to look for"),
        json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
        dots_dir: str = typer.Option(DOTS_DIRNAME, help=DOTS_DIR_HELP),
    ) -> None:
        """Search dots, archived ones included (case-insensitive)."""
        try:
            storage = get_storage(dots_dir)
            results = storage.search(query)
        except DotsError as e:
            fail(str(e))

        if is_json_output(json_output):
            echo_json([issue_to_dict(i) for i in results])
        elif not results:
            typer.echo("No matches")
        else:
            for issue in results:
                typer.echo(format_issue_brief(issue))
