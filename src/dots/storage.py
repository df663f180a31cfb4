"""Markdown file storage for issues with atomic writes.

Layout under the store root::

    {root}/{scope}/{id}.md            open and active issues
    {root}/archive/{scope}/{id}.md    closed issues

Every query re-scans the tree; there is no in-memory cache.
"""

from __future__ import annotations

import logging
import os
import secrets
import shutil
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

from dots.constants import (
    ARCHIVE_DIRNAME,
    DEP_TYPE_BLOCKERS,
    DOTS_DIRNAME,
    ISSUE_SUFFIX,
    VALID_DEP_TYPES,
)
from dots.deps import get_ready_work, would_create_cycle
from dots.errors import (
    AmbiguousIdError,
    DependencyCycleError,
    DependencyNotFoundError,
    InvalidDependencyTypeError,
    InvalidFrontmatterError,
    InvalidIdError,
    InvalidStatusError,
    IssueAlreadyExistsError,
    IssueNotFoundError,
    StorageIOError,
)
from dots.frontmatter import parse_issue, serialize_frontmatter
from dots.idgen import extract_scope, validate_id
from dots.models import (
    Issue,
    RelocationAction,
    Status,
    now_timestamp,
    relocation_for,
)

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = logging.getLogger(__name__)


class ResolveStatus(str, Enum):
    """Outcome of resolving one id prefix."""

    OK = "ok"
    NOT_FOUND = "not_found"
    AMBIGUOUS = "ambiguous"


@dataclass
class ResolveResult:
    """Result of resolving one prefix in a batch."""

    prefix: str
    status: ResolveStatus
    issue_id: str | None = None


@dataclass
class _ResolveState:
    prefix: str
    match: str | None = None
    ambiguous: bool = False

    def add(self, issue_id: str) -> None:
        if self.ambiguous:
            return
        if self.match is not None:
            self.match = None
            self.ambiguous = True
            return
        self.match = issue_id

    def result(self) -> ResolveResult:
        if self.ambiguous:
            return ResolveResult(self.prefix, ResolveStatus.AMBIGUOUS)
        if self.match is None:
            return ResolveResult(self.prefix, ResolveStatus.NOT_FOUND)
        return ResolveResult(self.prefix, ResolveStatus.OK, self.match)


class DotsStorage:
    """Manages a directory of Markdown issue records."""

    def __init__(self, root: str | Path = DOTS_DIRNAME) -> None:
        """Open the store, creating the root and archive directories if needed.

        Args:
            root: Path to the store directory (default: .dots)

        Raises:
            StorageIOError: If the directories cannot be created
        """
        self.root = Path(root)
        self.archive_dir = self.root / ARCHIVE_DIRNAME
        try:
            self.archive_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            msg = f"Failed to create store at {self.root}: {e}"
            raise StorageIOError(msg) from e

    # ------------------------------------------------------------------
    # Paths and low-level I/O

    def _is_archived(self, path: Path) -> bool:
        return path.is_relative_to(self.archive_dir)

    def find_issue_path(self, issue_id: str) -> Path:
        """Locate the record file of an issue, active tree first.

        Args:
            issue_id: Full issue ID (e.g. "app-001")

        Returns:
            Path of the record, under the scope or the archive scope directory

        Raises:
            InvalidIdError: If the ID is not valid
            IssueNotFoundError: If no record exists, or the ID has no scope
        """
        validate_id(issue_id)
        scope = extract_scope(issue_id)
        if scope is not None:
            filename = f"{issue_id}{ISSUE_SUFFIX}"
            for candidate in (
                self.root / scope / filename,
                self.archive_dir / scope / filename,
            ):
                if candidate.is_file():
                    return candidate

        msg = f"Issue {issue_id} not found"
        raise IssueNotFoundError(msg)

    def issue_exists(self, issue_id: str) -> bool:
        """Check whether a record exists for the ID (active or archived)."""
        try:
            self.find_issue_path(issue_id)
        except IssueNotFoundError:
            return False
        return True

    def _entries(self, directory: Path) -> list[Path]:
        """Directory listing in name order; a missing directory is empty."""
        try:
            return sorted(directory.iterdir())
        except FileNotFoundError:
            return []
        except OSError as e:
            msg = f"Failed to list {directory}: {e}"
            raise StorageIOError(msg) from e

    def _read(self, path: Path, issue_id: str) -> Issue:
        try:
            content = path.read_text(encoding="utf-8")
        except OSError as e:
            msg = f"Failed to read issue {issue_id} from {path}: {e}"
            raise StorageIOError(msg) from e
        return parse_issue(issue_id, content)

    def _write_atomic(self, path: Path, content: str) -> None:
        """Replace ``path`` with ``content`` so readers never see a partial file.

        The content goes to a uniquely named temporary file in the same
        directory, is flushed and fsynced, then renamed over the target.

        Raises:
            StorageIOError: If writing or renaming fails (the temporary file
                is removed)
        """
        tmp_path = path.with_name(f"{path.name}.{secrets.token_hex(4)}.tmp")
        try:
            with tmp_path.open("w", encoding="utf-8", newline="") as tmp_file:
                tmp_file.write(content)
                tmp_file.flush()
                os.fsync(tmp_file.fileno())
        except OSError as e:
            tmp_path.unlink(missing_ok=True)
            msg = f"Failed to write temporary file for {path}: {e}"
            raise StorageIOError(msg) from e

        try:
            os.replace(tmp_path, path)
        except OSError as e:
            tmp_path.unlink(missing_ok=True)
            msg = f"Failed to write issue file {path}: {e}"
            raise StorageIOError(msg) from e

    def _remove_if_empty(self, directory: Path) -> None:
        try:
            directory.rmdir()
        except OSError as e:
            logger.debug("Keeping directory %s: %s", directory, e)

    def _move(self, source: Path, target: Path) -> None:
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            source.replace(target)
        except OSError as e:
            msg = f"Failed to move {source} to {target}: {e}"
            raise StorageIOError(msg) from e
        logger.debug("Moved %s -> %s", source, target)
        if source.parent not in (self.root, self.archive_dir):
            self._remove_if_empty(source.parent)

    def _relocate(self, issue_id: str, path: Path, status: Status) -> Path:
        """Move a record so that its placement matches ``status``.

        Returns:
            The path of the record after the move
        """
        action = relocation_for(status, archived=self._is_archived(path))
        if action == RelocationAction.NONE:
            return path

        scope = extract_scope(issue_id)
        if scope is None:
            msg = f"Issue ID {issue_id!r} has no scope"
            raise InvalidIdError(msg)

        if action == RelocationAction.ARCHIVE:
            target = self.archive_dir / scope / path.name
        else:
            target = self.root / scope / path.name
        self._move(path, target)
        return target

    # ------------------------------------------------------------------
    # Scanning

    def _collect(
        self,
        directory: Path,
        found: list[tuple[Path, Issue]],
    ) -> None:
        """Recursively load every record below ``directory``.

        Directories named ``archive`` are never entered. Records that fail
        to parse are skipped with a warning; I/O errors abort the scan.
        """
        for entry in self._entries(directory):
            if entry.is_dir():
                if entry.name != ARCHIVE_DIRNAME:
                    self._collect(entry, found)
                continue
            if not entry.name.endswith(ISSUE_SUFFIX) or not entry.is_file():
                continue

            issue_id = entry.name[: -len(ISSUE_SUFFIX)]
            try:
                issue = self._read(entry, issue_id)
            except (InvalidFrontmatterError, InvalidStatusError) as e:
                logger.warning("Skipping unreadable issue file %s: %s", entry, e)
                continue
            found.append((entry, issue))

    def _scan_active(self) -> list[tuple[Path, Issue]]:
        found: list[tuple[Path, Issue]] = []
        self._collect(self.root, found)
        return found

    def _scan_all(self) -> list[tuple[Path, Issue]]:
        found = self._scan_active()
        self._collect(self.archive_dir, found)
        return found

    def _walk_ids(self, directory: Path, states: list[_ResolveState]) -> None:
        for entry in self._entries(directory):
            if entry.is_dir():
                if entry.name != ARCHIVE_DIRNAME:
                    self._walk_ids(entry, states)
                continue
            if not entry.name.endswith(ISSUE_SUFFIX) or not entry.is_file():
                continue

            issue_id = entry.name[: -len(ISSUE_SUFFIX)]
            for state in states:
                if issue_id.startswith(state.prefix):
                    state.add(issue_id)

    # ------------------------------------------------------------------
    # Prefix resolution

    def resolve_ids(
        self,
        prefixes: Iterable[str],
        *,
        include_archive: bool = True,
    ) -> list[ResolveResult]:
        """Resolve several ID prefixes with a single walk of the store.

        Args:
            prefixes: ID prefixes, e.g. ["app-00", "web-012"]
            include_archive: Also match archived (closed) issues

        Returns:
            One ResolveResult per prefix, in input order
        """
        states = [_ResolveState(prefix) for prefix in prefixes]
        self._walk_ids(self.root, states)
        if include_archive:
            self._walk_ids(self.archive_dir, states)
        return [state.result() for state in states]

    def _resolve_one(self, prefix: str, *, include_archive: bool) -> str:
        result = self.resolve_ids([prefix], include_archive=include_archive)[0]
        if result.status == ResolveStatus.AMBIGUOUS:
            msg = f"Ambiguous ID '{prefix}' matches more than one issue"
            raise AmbiguousIdError(msg)
        if result.issue_id is None:
            msg = f"Issue {prefix} not found"
            raise IssueNotFoundError(msg)
        return result.issue_id

    def resolve_id(self, prefix: str) -> str:
        """Resolve an ID prefix against active and archived issues.

        Args:
            prefix: Full ID or a unique prefix of one

        Returns:
            The full issue ID

        Raises:
            IssueNotFoundError: If no stored ID starts with the prefix
            AmbiguousIdError: If more than one stored ID starts with it
        """
        return self._resolve_one(prefix, include_archive=True)

    def resolve_id_active(self, prefix: str) -> str:
        """Like :meth:`resolve_id`, but only considers the active tree."""
        return self._resolve_one(prefix, include_archive=False)

    # ------------------------------------------------------------------
    # Single-record operations

    def get(self, issue_id: str) -> Issue | None:
        """Get an issue by its full ID.

        Args:
            issue_id: The ID of the issue to retrieve

        Returns:
            The issue, or None if not found

        Raises:
            InvalidIdError: If the ID is not valid
            InvalidFrontmatterError: If the record is malformed
            InvalidStatusError: If the record has an unknown status
        """
        validate_id(issue_id)
        try:
            path = self.find_issue_path(issue_id)
        except IssueNotFoundError:
            return None
        return self._read(path, issue_id)

    def create(self, issue: Issue) -> Issue:
        """Create a new issue.

        The record is written into the directory of the issue's scope (or
        the archive, if the issue is created closed).

        Args:
            issue: The issue to create

        Returns:
            The created issue

        Raises:
            InvalidIdError: If the ID or a blocker ID is invalid, or the ID
                has no scope
            InvalidFrontmatterError: If title or created_at is empty
            IssueAlreadyExistsError: If the ID is already stored
        """
        validate_id(issue.id)
        for blocker_id in issue.blockers:
            validate_id(blocker_id)

        if not issue.title:
            msg = "Issue must have a non-empty title"
            raise InvalidFrontmatterError(msg)
        if not issue.created_at:
            msg = "Issue must have a creation timestamp"
            raise InvalidFrontmatterError(msg)

        # Best effort: two concurrent creates of one ID both pass this check
        if self.issue_exists(issue.id):
            msg = f"Issue with ID {issue.id} already exists"
            raise IssueAlreadyExistsError(msg)

        scope = extract_scope(issue.id)
        if scope is None:
            msg = f"Issue ID {issue.id!r} must have the form <scope>-<number>"
            raise InvalidIdError(msg)
        if scope in (ARCHIVE_DIRNAME, "."):
            msg = f"Scope {scope!r} is reserved"
            raise InvalidIdError(msg)

        if issue.is_closed():
            issue = issue.with_status(
                Status.CLOSED,
                issue.closed_at or now_timestamp(),
                issue.close_reason,
            )
        else:
            issue = issue.with_status(issue.status, None, None)

        scope_dir = self.root / scope
        try:
            scope_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            msg = f"Failed to create scope directory {scope_dir}: {e}"
            raise StorageIOError(msg) from e

        path = scope_dir / f"{issue.id}{ISSUE_SUFFIX}"
        self._write_atomic(path, serialize_frontmatter(issue))
        self._relocate(issue.id, path, issue.status)
        return issue

    def update_status(
        self,
        issue_id: str,
        status: Status | str,
        closed_at: str | None = None,
        close_reason: str | None = None,
    ) -> Issue:
        """Change the status of an issue and move its record accordingly.

        Closing keeps an existing ``closed_at``/``close_reason`` unless new
        values are given (``closed_at`` falls back to the current time).
        Any other status clears both. Closing moves the record into the
        archive; leaving closed moves it back out.

        Args:
            issue_id: Full issue ID
            status: New status (``done`` is accepted for closed)
            closed_at: Close timestamp, only used when closing
            close_reason: Close reason, only used when closing

        Returns:
            The updated issue

        Raises:
            IssueNotFoundError: If the issue does not exist
            InvalidStatusError: If the status string is unknown
        """
        if not isinstance(status, Status):
            status = Status.parse(status)

        path = self.find_issue_path(issue_id)
        issue = self._read(path, issue_id)

        if status == Status.CLOSED:
            effective_closed_at = closed_at or issue.closed_at or now_timestamp()
            effective_reason = (
                close_reason if close_reason is not None else issue.close_reason
            )
        else:
            effective_closed_at = None
            effective_reason = None

        updated = issue.with_status(status, effective_closed_at, effective_reason)
        self._write_atomic(path, serialize_frontmatter(updated))
        self._relocate(issue_id, path, status)
        return updated

    def start(self, issue_id: str) -> Issue:
        """Mark an issue as active."""
        return self.update_status(issue_id, Status.ACTIVE)

    def close(
        self,
        issue_id: str,
        reason: str | None = None,
        closed_at: str | None = None,
    ) -> Issue:
        """Close an issue and move it into the archive.

        Args:
            issue_id: Full issue ID
            reason: Optional reason for closing
            closed_at: Close timestamp (default: now)

        Returns:
            The closed issue
        """
        return self.update_status(
            issue_id,
            Status.CLOSED,
            closed_at or now_timestamp(),
            reason,
        )

    def reopen(self, issue_id: str) -> Issue:
        """Reopen an issue, moving it out of the archive if it was closed."""
        return self.update_status(issue_id, Status.OPEN)

    def close_scope(self, scope: str, reason: str | None = None) -> list[Issue]:
        """Close every open or active issue of a scope.

        Args:
            scope: Scope name, e.g. "app"
            reason: Optional reason recorded on each issue

        Returns:
            The issues that were closed

        Raises:
            IssueNotFoundError: If the scope has no open or active issues
        """
        now = now_timestamp()
        closed: list[Issue] = []
        for issue in self.list():
            if issue.is_closed() or extract_scope(issue.id) != scope:
                continue
            closed.append(self.update_status(issue.id, Status.CLOSED, now, reason))

        if not closed:
            msg = f"No open issues found in scope: {scope}"
            raise IssueNotFoundError(msg)
        return closed

    def archive_issue(self, issue_id: str) -> Path:
        """Move a closed issue that still sits in the active tree to the archive.

        Stores written before closing implied archiving can hold such
        records. Already archived issues are left alone.

        Returns:
            The path of the record after the move

        Raises:
            IssueNotFoundError: If the issue does not exist
            InvalidStatusError: If the issue is not closed
        """
        path = self.find_issue_path(issue_id)
        issue = self._read(path, issue_id)
        if not issue.is_closed():
            msg = f"Issue {issue_id} is not closed and cannot be archived"
            raise InvalidStatusError(msg)
        return self._relocate(issue_id, path, issue.status)

    def delete(self, issue_id: str) -> None:
        """Delete an issue and strip it from every other issue's blockers.

        Args:
            issue_id: Full issue ID

        Raises:
            IssueNotFoundError: If the issue does not exist
        """
        path = self.find_issue_path(issue_id)

        for other_path, other in self._scan_all():
            if issue_id not in other.blockers:
                continue
            remaining = [b for b in other.blockers if b != issue_id]
            self._write_atomic(
                other_path,
                serialize_frontmatter(other.with_blockers(remaining)),
            )
            logger.debug("Removed %s from blockers of %s", issue_id, other.id)

        try:
            path.unlink()
        except OSError as e:
            msg = f"Failed to delete issue {issue_id}: {e}"
            raise StorageIOError(msg) from e

    # ------------------------------------------------------------------
    # Dependencies

    def _blockers_of(self, issue_id: str) -> list[str] | None:
        issue = self.get(issue_id)
        if issue is None:
            return None
        return issue.blockers

    def add_dependency(
        self,
        issue_id: str,
        blocker_id: str,
        dep_type: str = DEP_TYPE_BLOCKERS,
    ) -> None:
        """Make ``blocker_id`` a blocker of ``issue_id``.

        Adding an edge that already exists is a no-op.

        Args:
            issue_id: The issue that is blocked
            blocker_id: The issue it waits on
            dep_type: Dependency type, only "blockers" is supported

        Raises:
            InvalidIdError: If either ID is invalid
            DependencyNotFoundError: If the blocker does not exist
            InvalidDependencyTypeError: If dep_type is not supported
            DependencyCycleError: If the edge would create a cycle
            IssueNotFoundError: If the blocked issue does not exist
        """
        validate_id(issue_id)
        validate_id(blocker_id)

        if not self.issue_exists(blocker_id):
            msg = f"Blocker {blocker_id} not found"
            raise DependencyNotFoundError(msg)

        if dep_type not in VALID_DEP_TYPES:
            msg = f"Invalid dependency type '{dep_type}'"
            raise InvalidDependencyTypeError(msg)

        if would_create_cycle(issue_id, blocker_id, self._blockers_of):
            msg = f"Adding {blocker_id} as a blocker of {issue_id} would create a cycle"
            raise DependencyCycleError(msg)

        path = self.find_issue_path(issue_id)
        issue = self._read(path, issue_id)
        if blocker_id in issue.blockers:
            return

        updated = issue.with_blockers([*issue.blockers, blocker_id])
        self._write_atomic(path, serialize_frontmatter(updated))

    def remove_dependency(self, issue_id: str, blocker_id: str) -> None:
        """Remove ``blocker_id`` from the blockers of ``issue_id``.

        Raises:
            IssueNotFoundError: If the blocked issue does not exist
            DependencyNotFoundError: If the blocker is not in its list
        """
        validate_id(issue_id)
        validate_id(blocker_id)

        path = self.find_issue_path(issue_id)
        issue = self._read(path, issue_id)
        if blocker_id not in issue.blockers:
            msg = f"{issue_id} is not blocked by {blocker_id}"
            raise DependencyNotFoundError(msg)

        remaining = [b for b in issue.blockers if b != blocker_id]
        self._write_atomic(path, serialize_frontmatter(issue.with_blockers(remaining)))

    def get_dependents(self, issue_id: str) -> list[Issue]:
        """Active issues that list ``issue_id`` as a blocker."""
        return [issue for issue in self.list() if issue_id in issue.blockers]

    # ------------------------------------------------------------------
    # Queries

    def list(self, status: Status | str | None = None) -> list[Issue]:
        """List active (non-archived) issues.

        Args:
            status: Only return issues with this status

        Returns:
            Issues sorted by priority, then creation time
        """
        if status is not None and not isinstance(status, Status):
            status = Status.parse(status)

        issues = [issue for _, issue in self._scan_active()]
        if status is not None:
            issues = [issue for issue in issues if issue.status == status]
        issues.sort(key=Issue.sort_key)
        return issues

    def list_all(self) -> list[Issue]:
        """List every issue, active tree first, then the archive."""
        return [issue for _, issue in self._scan_all()]

    def list_scopes(self) -> list[str]:
        """Sorted names of the scope directories in the active tree."""
        return sorted(
            entry.name
            for entry in self._entries(self.root)
            if entry.is_dir() and entry.name != ARCHIVE_DIRNAME
        )

    def get_ready_issues(self) -> list[Issue]:
        """Open issues with no open or active blocker."""
        return get_ready_work(self)

    def search(self, query: str) -> list[Issue]:
        """Case-insensitive substring search over active and archived issues.

        Matches title, description, close reason and both timestamps. An
        empty query matches every issue.
        """
        needle = query.lower()
        results: list[Issue] = []
        for issue in self.list_all():
            haystack = (
                issue.title,
                issue.description,
                issue.close_reason or "",
                issue.created_at,
                issue.closed_at or "",
            )
            if any(needle in field.lower() for field in haystack):
                results.append(issue)
        return results

    def purge_archive(self) -> None:
        """Delete every archived issue and leave an empty archive directory."""
        try:
            if self.archive_dir.exists():
                shutil.rmtree(self.archive_dir)
            self.archive_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            msg = f"Failed to purge archive {self.archive_dir}: {e}"
            raise StorageIOError(msg) from e
