"""Display and formatting functions for the dots CLI."""

from __future__ import annotations

from typing import TYPE_CHECKING

import typer

from dots.constants import PRIORITY_COLORS, STATUS_COLORS
from dots.models import Status

if TYPE_CHECKING:
    from dots.models import Issue


def format_issue_brief(issue: Issue) -> str:
    """Format issue for one-line display: ``[id] <status char> title``."""
    status_color = STATUS_COLORS.get(issue.status.value, "white")
    status_str = typer.style(issue.status.char, fg=status_color)
    return f"[{issue.id}] {status_str} {issue.title}"


def _styled_key(label: str) -> str:
    """Style a field label, padded so values line up."""
    return typer.style(f"{label:<10}", bold=True)


def format_issue_full(issue: Issue) -> str:
    """Format issue for full display."""
    key = _styled_key
    priority_color = PRIORITY_COLORS.get(issue.priority, "white")
    lines = [
        f"{key('ID:')}{typer.style(issue.id, fg='cyan')}",
        f"{key('Title:')}{issue.title}",
        f"{key('Status:')}{issue.status.display}",
        f"{key('Priority:')}{typer.style(str(issue.priority), fg=priority_color)}",
    ]
    if issue.description:
        lines.append(f"{key('Desc:')}{issue.description}")
    lines.append(f"{key('Created:')}{issue.created_at}")
    if issue.closed_at:
        lines.append(f"{key('Closed:')}{issue.closed_at}")
    if issue.close_reason:
        lines.append(f"{key('Reason:')}{issue.close_reason}")
    return "\n".join(lines)


def format_relation_section(
    heading: str,
    entries: list[tuple[str, Issue | None]],
) -> list[str]:
    """Format a "Blocked by" / "Blocks" section with tree connectors.

    Args:
        heading: Section title
        entries: (issue id, issue or None when it no longer exists) pairs

    Returns:
        Lines of the section, empty if there are no entries
    """
    if not entries:
        return []

    lines = ["", f"{heading}:"]
    for idx, (issue_id, issue) in enumerate(entries):
        connector = "  └─" if idx + 1 == len(entries) else "  ├─"
        if issue is None:
            lines.append(f"{connector} {issue_id} (not found)")
        else:
            lines.append(
                f"{connector} {issue_id} ({issue.status.display}) - {issue.title}",
            )
    return lines


def format_scope_tree(scope: str, issues: list[Issue]) -> str:
    """Format the open and active issues of one scope as a tree.

    An issue's blockers are nested beneath it; issues that block nothing
    else in the scope are the roots.

    Args:
        scope: Scope name for the heading
        issues: Open and active issues of the scope, in listing order

    Returns:
        Formatted tree string
    """
    by_id = {issue.id: issue for issue in issues}
    children: dict[str, list[Issue]] = {}
    nested: set[str] = set()
    for issue in issues:
        for blocker_id in issue.blockers:
            blocker = by_id.get(blocker_id)
            if blocker is None:
                continue
            children.setdefault(issue.id, []).append(blocker)
            nested.add(blocker_id)

    lines = [f"{scope} ({len(issues)} open)"]

    def render(issue: Issue, prefix: str, is_last: bool) -> None:
        """Append one node and its subtree."""
        connector = "└─" if is_last else "├─"
        text = f"{issue.id} {issue.status.symbol} {issue.title}"
        if issue.status == Status.ACTIVE:
            text = typer.style(text, fg="cyan")
        lines.append(f"{prefix}{connector} {text}")

        kids = children.get(issue.id, [])
        child_prefix = prefix + ("   " if is_last else "│  ")
        for k, child in enumerate(kids):
            render(child, child_prefix, k + 1 == len(kids))

    roots = [issue for issue in issues if issue.id not in nested]
    for j, root in enumerate(roots):
        render(root, "  ", j + 1 == len(roots))

    return "\n".join(lines)
