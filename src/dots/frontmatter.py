"""Frontmatter codec: one issue per Markdown file with a structured header.

A record looks like::

    ---
    title: Fix the login form
    status: open
    priority: 2
    created-at: 2024-01-01T00:00:00Z
    blockers:
      - app-001
    ---

    Free text description.

Scalars that could be misread (colons, quotes, newlines, surrounding
whitespace, empty strings) are written double-quoted with backslash escapes.
Parsing accepts LF or CRLF line endings and ignores unknown keys.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from dots.constants import (
    DEFAULT_PRIORITY,
    KEY_BLOCKERS,
    KEY_CLOSE_REASON,
    KEY_CLOSED_AT,
    KEY_CREATED_AT,
    KEY_PRIORITY,
    KEY_STATUS,
    KEY_TITLE,
    QUOTE_TRIGGER_CHARS,
)
from dots.errors import InvalidFrontmatterError, InvalidIdError
from dots.idgen import validate_id
from dots.models import Issue, Status

DELIMITER = "---"

_UNESCAPES = {"n": "\n", "r": "\r", "t": "\t", '"': '"', "\\": "\\"}
_ESCAPES = {"\\": "\\\\", '"': '\\"', "\n": "\\n", "\r": "\\r", "\t": "\\t"}


@dataclass
class ParsedRecord:
    """Field values read from one record, before an id is attached."""

    title: str = ""
    status: Status = Status.OPEN
    priority: int = DEFAULT_PRIORITY
    created_at: str = ""
    closed_at: str | None = None
    close_reason: str | None = None
    blockers: list[str] = field(default_factory=list[str])
    description: str = ""

    def to_issue(self, issue_id: str) -> Issue:
        """Attach an id and build the Issue."""
        return Issue(
            id=issue_id,
            title=self.title,
            description=self.description,
            status=self.status,
            priority=self.priority,
            created_at=self.created_at,
            closed_at=self.closed_at,
            close_reason=self.close_reason,
            blockers=self.blockers,
        )


def parse_scalar(value: str) -> str:
    """Decode a header value, unescaping it if it is double-quoted."""
    if len(value) < 2 or value[0] != '"' or value[-1] != '"':
        return value

    inner = value[1:-1]
    out: list[str] = []
    i = 0
    while i < len(inner):
        c = inner[i]
        if c == "\\" and i + 1 < len(inner):
            nxt = inner[i + 1]
            out.append(_UNESCAPES.get(nxt, c + nxt))
            i += 2
        else:
            out.append(c)
            i += 1
    return "".join(out)


def needs_quoting(value: str) -> bool:
    """Return True if a scalar must be double-quoted to survive a round-trip."""
    if not value:
        return True
    if any(c in QUOTE_TRIGGER_CHARS for c in value):
        return True
    return value[0] in " \t" or value[-1] in " \t"


def format_scalar(value: str) -> str:
    """Encode a scalar for the header, quoting and escaping when needed."""
    if not needs_quoting(value):
        return value
    return '"' + "".join(_ESCAPES.get(c, c) for c in value) + '"'


def _split_body(content: str) -> tuple[str, str]:
    """Split a record into header text and description text."""
    if content.startswith(DELIMITER + "\r\n"):
        start = len(DELIMITER) + 2
    elif content.startswith(DELIMITER + "\n"):
        start = len(DELIMITER) + 1
    else:
        msg = "Record does not start with a '---' delimiter"
        raise InvalidFrontmatterError(msg)

    end = content.find("\n" + DELIMITER, start)
    if end == -1:
        msg = "Record has no closing '---' delimiter"
        raise InvalidFrontmatterError(msg)

    header = content[start:end]

    # Skip the closing delimiter and the rest of its line ending
    pos = end + 1 + len(DELIMITER)
    if content.startswith("\r", pos):
        pos += 1
    if content.startswith("\n", pos):
        pos += 1

    body = content[pos:]
    # One blank separator line is part of the format, not the description
    if body.startswith("\r\n"):
        body = body[2:]
    elif body.startswith("\n"):
        body = body[1:]
    return header, body.rstrip()


def parse_frontmatter(content: str) -> ParsedRecord:
    """Parse a record into its field values.

    Args:
        content: Full text of the record file

    Returns:
        The parsed fields and description

    Raises:
        InvalidFrontmatterError: If delimiters are missing, the priority is
            not an integer, a blocker id is invalid, or title/created-at are
            missing
        InvalidStatusError: If the status value is unknown
    """
    header, description = _split_body(content)
    record = ParsedRecord(description=description)

    in_blockers = False
    for line in header.split("\n"):
        trimmed = line.strip("\r\t ")

        if in_blockers:
            if trimmed.startswith("- "):
                blocker_id = trimmed[2:].strip(" ")
                try:
                    validate_id(blocker_id)
                except InvalidIdError as e:
                    msg = f"Invalid blocker id in record: {e}"
                    raise InvalidFrontmatterError(msg) from e
                record.blockers.append(blocker_id)
                continue
            if not trimmed:
                continue
            in_blockers = False

        key, sep, raw_value = trimmed.partition(":")
        if not sep:
            continue
        key = key.strip(" ")
        value = raw_value.strip(" ")

        if key == KEY_TITLE:
            record.title = parse_scalar(value)
        elif key == KEY_STATUS:
            record.status = Status.parse(parse_scalar(value))
        elif key == KEY_PRIORITY:
            try:
                record.priority = int(value)
            except ValueError:
                msg = f"Invalid priority {value!r}: must be an integer"
                raise InvalidFrontmatterError(msg) from None
        elif key == KEY_CREATED_AT:
            record.created_at = parse_scalar(value)
        elif key == KEY_CLOSED_AT:
            record.closed_at = parse_scalar(value) or None
        elif key == KEY_CLOSE_REASON:
            record.close_reason = parse_scalar(value) or None
        elif key == KEY_BLOCKERS:
            in_blockers = True

    if not record.title or not record.created_at:
        msg = "Record is missing a required field (title, created-at)"
        raise InvalidFrontmatterError(msg)

    return record


def parse_issue(issue_id: str, content: str) -> Issue:
    """Parse a record and attach its id (taken from the file name)."""
    return parse_frontmatter(content).to_issue(issue_id)


def serialize_frontmatter(issue: Issue) -> str:
    """Serialize an issue into record text.

    Header fields are written in a fixed order; optional fields are omitted
    when unset, and the description follows after one blank line.
    """
    lines = [
        DELIMITER,
        f"{KEY_TITLE}: {format_scalar(issue.title)}",
        f"{KEY_STATUS}: {issue.status.value}",
        f"{KEY_PRIORITY}: {issue.priority}",
        f"{KEY_CREATED_AT}: {format_scalar(issue.created_at)}",
    ]
    if issue.closed_at:
        lines.append(f"{KEY_CLOSED_AT}: {format_scalar(issue.closed_at)}")
    if issue.close_reason:
        lines.append(f"{KEY_CLOSE_REASON}: {format_scalar(issue.close_reason)}")
    if issue.blockers:
        lines.append(f"{KEY_BLOCKERS}:")
        lines.extend(f"  - {blocker_id}" for blocker_id in issue.blockers)
    lines.append(DELIMITER)

    text = "\n".join(lines) + "\n"
    if issue.description:
        text += f"\n{issue.description}\n"
    return text
