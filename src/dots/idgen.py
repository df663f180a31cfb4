"""Identifier validation, scoping and sequential ID generation."""

from __future__ import annotations

from pathlib import Path

from dots.constants import (
    ARCHIVE_DIRNAME,
    ID_FORBIDDEN_CHARS,
    ID_FORBIDDEN_SUBSTRINGS,
    ID_NUMBER_WIDE_THRESHOLD,
    ID_NUMBER_WIDE_WIDTH,
    ID_NUMBER_WIDTH,
    ISSUE_SUFFIX,
    MAX_ID_LENGTH,
)
from dots.errors import InvalidIdError


def validate_id(issue_id: str) -> None:
    """Validate that an ID is safe to use in a file path and a record header.

    Args:
        issue_id: The identifier to check

    Raises:
        InvalidIdError: If the ID is empty, too long, could traverse paths,
            or contains control or header-sensitive characters
    """
    if not issue_id:
        msg = "Issue ID must not be empty"
        raise InvalidIdError(msg)
    if len(issue_id.encode("utf-8", "surrogatepass")) > MAX_ID_LENGTH:
        msg = f"Issue ID is longer than {MAX_ID_LENGTH} bytes: {issue_id[:20]}..."
        raise InvalidIdError(msg)
    if issue_id == "." or any(s in issue_id for s in ID_FORBIDDEN_SUBSTRINGS):
        msg = f"Invalid issue ID {issue_id!r}: path separators and '..' are not allowed"
        raise InvalidIdError(msg)
    for c in issue_id:
        if ord(c) < 0x20 or 0x7F <= ord(c) <= 0x9F:
            msg = f"Invalid issue ID {issue_id!r}: control characters are not allowed"
            raise InvalidIdError(msg)
        if c in ID_FORBIDDEN_CHARS:
            msg = f"Invalid issue ID {issue_id!r}: character {c!r} is not allowed"
            raise InvalidIdError(msg)


def _is_digits(value: str) -> bool:
    """ASCII-only digit check (str.isdigit accepts superscripts and such)."""
    return bool(value) and all("0" <= c <= "9" for c in value)


def extract_scope(issue_id: str) -> str | None:
    """Extract the scope from an ID such as ``app-001`` or ``my-scope-042``.

    The scope is everything before the last hyphen, and the part after it
    must be all digits.

    Args:
        issue_id: Issue ID like "app-001"

    Returns:
        Scope part, or None if the ID doesn't match ``{scope}-{digits}``
    """
    dash = issue_id.rfind("-")
    if dash <= 0:
        return None
    if not _is_digits(issue_id[dash + 1 :]):
        return None
    return issue_id[:dash]


def extract_scope_number(issue_id: str, scope: str) -> int | None:
    """Extract the sequence number from an ID known to belong to ``scope``.

    Args:
        issue_id: Issue ID like "app-007"
        scope: Expected scope like "app"

    Returns:
        The parsed number, or None if the ID is not ``{scope}-{digits}``
    """
    prefix = f"{scope}-"
    if not issue_id.startswith(prefix):
        return None
    suffix = issue_id[len(prefix) :]
    if not _is_digits(suffix):
        return None
    return int(suffix)


def format_scoped_id(scope: str, number: int) -> str:
    """Format ``{scope}-{number}`` with 3-digit padding, 4 past 999."""
    width = ID_NUMBER_WIDTH
    if number > ID_NUMBER_WIDE_THRESHOLD:
        width = ID_NUMBER_WIDE_WIDTH
    return f"{scope}-{number:0{width}d}"


def _highest_in_dir(directory: Path, scope: str) -> int:
    """Highest sequence number among ``{scope}-N.md`` files in a directory."""
    highest = 0
    if not directory.is_dir():
        return highest
    for entry in directory.iterdir():
        if not entry.name.endswith(ISSUE_SUFFIX) or not entry.is_file():
            continue
        num = extract_scope_number(entry.name[: -len(ISSUE_SUFFIX)], scope)
        if num is not None and num > highest:
            highest = num
    return highest


def next_id(root: str | Path, scope: str) -> str:
    """Generate the next sequential ID for a scope.

    Scans both the active scope directory and its archive mirror so that
    IDs of closed issues are never reused.

    Args:
        root: The store root (the .dots directory)
        scope: Scope to allocate in

    Returns:
        The next free ID, e.g. "app-004"

    Raises:
        InvalidIdError: If the scope itself is not a valid identifier
    """
    validate_id(scope)
    root = Path(root)
    highest = max(
        _highest_in_dir(root / scope, scope),
        _highest_in_dir(root / ARCHIVE_DIRNAME / scope, scope),
    )
    return format_scoped_id(scope, highest + 1)
