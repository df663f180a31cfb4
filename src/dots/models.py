"""Data models for dots issues using dataclasses."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from dots.constants import DEFAULT_PRIORITY
from dots.errors import InvalidStatusError


class Status(str, Enum):
    """Issue status enumeration."""

    OPEN = "open"
    ACTIVE = "active"
    CLOSED = "closed"

    @classmethod
    def parse(cls, value: str) -> Status:
        """Parse a status string, accepting ``done`` as an alias for closed.

        Raises:
            InvalidStatusError: If the value is not a known status
        """
        try:
            return _STATUS_ALIASES[value]
        except KeyError:
            msg = f"Invalid status '{value}'. Valid statuses: open, active, closed"
            raise InvalidStatusError(msg) from None

    @property
    def display(self) -> str:
        """Human-facing label (closed issues read as 'done')."""
        return "done" if self is Status.CLOSED else self.value

    @property
    def char(self) -> str:
        """Single character marker used in compact listings."""
        return _STATUS_CHARS[self]

    @property
    def symbol(self) -> str:
        """Symbol used in tree listings."""
        return _STATUS_SYMBOLS[self]

    def is_pending(self) -> bool:
        """Open and active issues still block the issues that depend on them."""
        return self in (Status.OPEN, Status.ACTIVE)


_STATUS_ALIASES: dict[str, Status] = {
    "open": Status.OPEN,
    "active": Status.ACTIVE,
    "closed": Status.CLOSED,
    "done": Status.CLOSED,
}

_STATUS_CHARS = {Status.OPEN: "o", Status.ACTIVE: ">", Status.CLOSED: "x"}

_STATUS_SYMBOLS = {Status.OPEN: "○", Status.ACTIVE: ">", Status.CLOSED: "✓"}


class RelocationAction(str, Enum):
    """File move required to keep archive placement in line with status."""

    NONE = "none"
    ARCHIVE = "archive"
    UNARCHIVE = "unarchive"


def relocation_for(status: Status, *, archived: bool) -> RelocationAction:
    """Decide where a record must live after its status became ``status``.

    Closed issues belong in the archive, everything else in the active tree.

    Args:
        status: The status just written to the record
        archived: Whether the record currently sits under the archive

    Returns:
        The move needed to restore the placement invariant
    """
    if status == Status.CLOSED and not archived:
        return RelocationAction.ARCHIVE
    if status != Status.CLOSED and archived:
        return RelocationAction.UNARCHIVE
    return RelocationAction.NONE


def now_timestamp() -> str:
    """Current UTC time as ``YYYY-MM-DDTHH:MM:SSZ``."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


@dataclass
class Issue:
    """An issue in the tracking system."""

    id: str  # Full id including scope (e.g., "app-001")
    title: str
    created_at: str  # Opaque timestamp, compared as a string
    description: str = ""
    status: Status = Status.OPEN
    priority: int = DEFAULT_PRIORITY  # Lower is more urgent
    closed_at: str | None = None
    close_reason: str | None = None
    blockers: list[str] = field(default_factory=list[str])

    def is_closed(self) -> bool:
        """Check if the issue is closed."""
        return self.status == Status.CLOSED

    def sort_key(self) -> tuple[int, str]:
        """Listing order: priority first, then creation time."""
        return (self.priority, self.created_at)

    def with_status(
        self,
        status: Status,
        closed_at: str | None,
        close_reason: str | None,
    ) -> Issue:
        """Return a copy with new status fields."""
        return dataclasses.replace(
            self,
            status=status,
            closed_at=closed_at,
            close_reason=close_reason,
        )

    def with_blockers(self, blockers: list[str]) -> Issue:
        """Return a copy with a new blocker list."""
        return dataclasses.replace(self, blockers=list(blockers))


def issue_to_dict(issue: Issue) -> dict[str, object]:
    """Convert an Issue to a plain dictionary (for JSON output)."""
    return {
        "id": issue.id,
        "title": issue.title,
        "description": issue.description,
        "status": issue.status.value,
        "priority": issue.priority,
        "created_at": issue.created_at,
        "closed_at": issue.closed_at,
        "close_reason": issue.close_reason,
        "blockers": list(issue.blockers),
    }
