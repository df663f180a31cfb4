"""Dependency tracking and ready work detection."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import TYPE_CHECKING

from dots.models import Issue, Status

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from dots.storage import DotsStorage


@dataclass
class BlockedIssue:
    """An issue that is blocked by dependencies."""

    issue_id: str
    blocking_ids: list[str]
    reason: str


def build_status_map(issues: Iterable[Issue]) -> dict[str, Status]:
    """Map each issue id to its status."""
    return {issue.id: issue.status for issue in issues}


def open_blockers(issue: Issue, status_by_id: dict[str, Status]) -> list[str]:
    """Return the blockers of ``issue`` that are still open or active.

    Blockers missing from the map (deleted or archived) do not block.
    """
    blocking: list[str] = []
    for blocker_id in issue.blockers:
        status = status_by_id.get(blocker_id)
        if status is not None and status.is_pending():
            blocking.append(blocker_id)
    return blocking


def get_ready_work(storage: DotsStorage) -> list[Issue]:
    """Get issues ready to work (open, with no open or active blocker).

    Args:
        storage: The storage instance

    Returns:
        Ready issues in listing order (priority, then creation time)
    """
    # One scan of the active tree; archived blockers are closed and absent
    all_issues = storage.list()
    status_by_id = build_status_map(all_issues)

    return [
        issue
        for issue in all_issues
        if issue.status == Status.OPEN and not open_blockers(issue, status_by_id)
    ]


def get_blocked_issues(storage: DotsStorage) -> list[BlockedIssue]:
    """Get all open or active issues that still wait on a blocker.

    Args:
        storage: The storage instance

    Returns:
        List of blocked issues with blocking IDs
    """
    all_issues = storage.list()
    status_by_id = build_status_map(all_issues)

    blocked_list: list[BlockedIssue] = []
    for issue in all_issues:
        if not issue.status.is_pending():
            continue

        blocking_ids = open_blockers(issue, status_by_id)
        if blocking_ids:
            reason = f"Blocked by {len(blocking_ids)} issue(s)"
            blocked_list.append(
                BlockedIssue(
                    issue_id=issue.id,
                    blocking_ids=blocking_ids,
                    reason=reason,
                ),
            )

    return blocked_list


def would_create_cycle(
    issue_id: str,
    blocker_id: str,
    blockers_of: Callable[[str], list[str] | None],
) -> bool:
    """Check if making ``blocker_id`` a blocker of ``issue_id`` closes a cycle.

    Breadth-first search from the proposed blocker along existing blocker
    edges. Reaching ``issue_id`` means the new edge would close a loop; a
    self-edge is therefore always a cycle.

    Args:
        issue_id: The issue that would gain the blocker
        blocker_id: The issue it would be blocked by
        blockers_of: Returns the blocker ids of an issue, or None when the
            issue does not exist (it then contributes no edges)

    Returns:
        True if adding this dependency would create a cycle, False otherwise
    """
    visited: set[str] = set()
    queue = deque([blocker_id])

    while queue:
        current = queue.popleft()
        if current == issue_id:
            return True
        if current in visited:
            continue
        visited.add(current)

        for next_id in blockers_of(current) or []:
            if next_id not in visited:
                queue.append(next_id)

    return False
