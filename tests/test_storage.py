"""Tests for the Markdown file storage."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest
from conftest import TS, make_issue

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
)
from dots.frontmatter import serialize_frontmatter
from dots.models import Status
from dots.storage import DotsStorage, ResolveStatus


def _write_record(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


class TestStorageInitialization:
    """Test storage initialization."""

    def test_creates_root_and_archive(self, tmp_path: Path) -> None:
        """Opening a store creates the root and archive directories."""
        root = tmp_path / "nested" / ".dots"
        storage = DotsStorage(root)
        assert root.is_dir()
        assert (root / "archive").is_dir()
        assert storage.list() == []

    def test_reopening_keeps_existing_records(self, storage: DotsStorage) -> None:
        """A second instance sees what the first wrote."""
        storage.create(make_issue("app-001"))
        assert DotsStorage(storage.root).get("app-001") is not None


class TestCreate:
    """Test creating issues."""

    def test_create_writes_scope_file(self, storage: DotsStorage) -> None:
        """The record lands in the scope directory."""
        storage.create(make_issue("app-001", "Design API", description="REST"))
        path = storage.root / "app" / "app-001.md"
        assert path.is_file()
        text = path.read_text()
        assert text.startswith("---\ntitle: Design API\nstatus: open\n")
        assert text.endswith("---\n\nREST\n")

    def test_get_round_trip(self, storage: DotsStorage) -> None:
        """get returns what create stored."""
        issue = make_issue("app-001", 'Fix "quoted: title"', priority=0)
        storage.create(issue)
        assert storage.get("app-001") == issue

    def test_get_missing(self, storage: DotsStorage) -> None:
        """A missing issue reads as None."""
        assert storage.get("app-404") is None

    def test_get_invalid_id(self, storage: DotsStorage) -> None:
        """IDs that could escape the store are rejected."""
        with pytest.raises(InvalidIdError):
            storage.get("../etc/passwd")

    def test_duplicate_rejected(self, storage: DotsStorage) -> None:
        """An ID can only be created once."""
        storage.create(make_issue("app-001"))
        with pytest.raises(IssueAlreadyExistsError):
            storage.create(make_issue("app-001"))

    def test_duplicate_of_archived_rejected(self, storage: DotsStorage) -> None:
        """Archived IDs are still taken."""
        storage.create(make_issue("app-001"))
        storage.close("app-001")
        with pytest.raises(IssueAlreadyExistsError):
            storage.create(make_issue("app-001"))

    @pytest.mark.parametrize(
        "issue_id",
        ["noscope", "app-", "archive-001", ".-001", "a/b-001"],
    )
    def test_unusable_ids(self, storage: DotsStorage, issue_id: str) -> None:
        """IDs need a scope, and the archive and dot scopes are reserved."""
        with pytest.raises(InvalidIdError):
            storage.create(make_issue(issue_id))

    def test_invalid_blocker_id(self, storage: DotsStorage) -> None:
        """Blocker IDs are validated on create."""
        with pytest.raises(InvalidIdError):
            storage.create(make_issue("app-001", blockers=["bad:id"]))

    def test_empty_title(self, storage: DotsStorage) -> None:
        """A record without a title could not be read back."""
        issue = make_issue("app-001")
        issue.title = ""
        with pytest.raises(InvalidFrontmatterError):
            storage.create(issue)
        assert not (storage.root / "app").exists()

    def test_create_closed_goes_to_archive(self, storage: DotsStorage) -> None:
        """Issues created closed are archived straight away."""
        created = storage.create(make_issue("app-001", status=Status.CLOSED))
        assert created.closed_at is not None
        assert (storage.root / "archive" / "app" / "app-001.md").is_file()
        assert not (storage.root / "app").exists()

    def test_create_open_drops_close_fields(self, storage: DotsStorage) -> None:
        """Closing fields only exist on closed issues."""
        issue = make_issue("app-001")
        issue.closed_at = TS
        issue.close_reason = "stale"
        created = storage.create(issue)
        assert created.closed_at is None
        assert storage.get("app-001").close_reason is None


class TestResolve:
    """Test prefix resolution."""

    def test_exact_and_unique_prefix(self, storage: DotsStorage) -> None:
        """A unique prefix resolves to the full ID."""
        storage.create(make_issue("abc123def456-1"))
        storage.create(make_issue("abc123xyz-1"))
        assert storage.resolve_id("abc123d") == "abc123def456-1"
        assert storage.resolve_id("abc123x") == "abc123xyz-1"
        assert storage.resolve_id("abc123xyz-1") == "abc123xyz-1"

    def test_ambiguous_prefix(self, storage: DotsStorage) -> None:
        """A shared prefix is ambiguous."""
        storage.create(make_issue("abc123def456-1"))
        storage.create(make_issue("abc123xyz-1"))
        with pytest.raises(AmbiguousIdError):
            storage.resolve_id("abc123")

    def test_exact_match_can_still_be_ambiguous(self, storage: DotsStorage) -> None:
        """A full ID that prefixes another ID is ambiguous too."""
        storage.create(make_issue("app-001"))
        storage.create(make_issue("app-0010"))
        with pytest.raises(AmbiguousIdError):
            storage.resolve_id("app-001")

    def test_not_found(self, storage: DotsStorage) -> None:
        """Unknown prefixes raise IssueNotFoundError."""
        with pytest.raises(IssueNotFoundError):
            storage.resolve_id("zzz")

    def test_archive_included_by_default(self, storage: DotsStorage) -> None:
        """resolve_id sees archived issues, resolve_id_active does not."""
        storage.create(make_issue("app-001"))
        storage.close("app-001")
        assert storage.resolve_id("app-00") == "app-001"
        with pytest.raises(IssueNotFoundError):
            storage.resolve_id_active("app-00")

    def test_batch_results_in_order(self, storage: DotsStorage) -> None:
        """One walk resolves several prefixes."""
        storage.create(make_issue("app-001"))
        storage.create(make_issue("app-002"))
        storage.create(make_issue("web-001"))
        results = storage.resolve_ids(["web", "app", "app-002", "nope"])
        assert [r.status for r in results] == [
            ResolveStatus.OK,
            ResolveStatus.AMBIGUOUS,
            ResolveStatus.OK,
            ResolveStatus.NOT_FOUND,
        ]
        assert results[0].issue_id == "web-001"
        assert results[1].issue_id is None
        assert results[2].prefix == "app-002"


class TestStatusTransitions:
    """Test status changes and archive placement."""

    def test_close_moves_to_archive(self, storage: DotsStorage) -> None:
        """Closing archives the record and removes the emptied scope dir."""
        storage.create(make_issue("app-001"))
        closed = storage.close("app-001", "shipped")
        assert closed.status == Status.CLOSED
        assert closed.close_reason == "shipped"
        assert closed.closed_at is not None
        assert (storage.root / "archive" / "app" / "app-001.md").is_file()
        assert not (storage.root / "app").exists()
        assert storage.find_issue_path("app-001").parent.parent == storage.archive_dir

    def test_close_keeps_other_scope_files(self, storage: DotsStorage) -> None:
        """The scope dir stays while it still holds records."""
        storage.create(make_issue("app-001"))
        storage.create(make_issue("app-002"))
        storage.close("app-001")
        assert (storage.root / "app" / "app-002.md").is_file()

    def test_reopen_moves_back(self, storage: DotsStorage) -> None:
        """Reopening clears closing fields and unarchives."""
        storage.create(make_issue("app-001"))
        storage.close("app-001", "oops")
        reopened = storage.reopen("app-001")
        assert reopened.status == Status.OPEN
        assert reopened.closed_at is None
        assert reopened.close_reason is None
        assert (storage.root / "app" / "app-001.md").is_file()
        assert not (storage.root / "archive" / "app").exists()
        assert "closed-at" not in (storage.root / "app" / "app-001.md").read_text()

    def test_start(self, storage: DotsStorage) -> None:
        """start marks an issue active in place."""
        storage.create(make_issue("app-001"))
        assert storage.start("app-001").status == Status.ACTIVE
        assert storage.get("app-001").status == Status.ACTIVE

    def test_start_archived_unarchives(self, storage: DotsStorage) -> None:
        """Any non-closed status moves the record out of the archive."""
        storage.create(make_issue("app-001"))
        storage.close("app-001")
        storage.start("app-001")
        assert (storage.root / "app" / "app-001.md").is_file()

    def test_dot_scope_record_leaves_archive(self, storage: DotsStorage) -> None:
        """A record filed as archive/.-001.md still counts as archived."""
        issue = make_issue(".-001", status=Status.CLOSED)
        issue.closed_at = TS
        (storage.archive_dir / ".-001.md").write_text(serialize_frontmatter(issue))

        reopened = storage.reopen(".-001")
        assert reopened.status == Status.OPEN
        path = storage.find_issue_path(".-001")
        assert path == storage.root / ".-001.md"
        assert not path.is_relative_to(storage.archive_dir)
        assert [i.id for i in storage.list()] == [".-001"]
        assert storage.archive_dir.is_dir()

    def test_update_status_done_alias(self, storage: DotsStorage) -> None:
        """done is accepted as closed."""
        storage.create(make_issue("app-001"))
        updated = storage.update_status("app-001", "done")
        assert updated.status == Status.CLOSED
        assert "status: closed" in storage.find_issue_path("app-001").read_text()

    def test_update_status_invalid(self, storage: DotsStorage) -> None:
        """Unknown statuses are rejected before touching the record."""
        storage.create(make_issue("app-001"))
        with pytest.raises(InvalidStatusError):
            storage.update_status("app-001", "blocked")

    def test_update_status_missing_issue(self, storage: DotsStorage) -> None:
        """Updating a missing issue raises IssueNotFoundError."""
        with pytest.raises(IssueNotFoundError):
            storage.update_status("app-001", Status.ACTIVE)

    def test_reclose_keeps_closing_fields(self, storage: DotsStorage) -> None:
        """Closing again without new values keeps the old ones."""
        storage.create(make_issue("app-001"))
        storage.update_status("app-001", Status.CLOSED, "2024-02-02T00:00:00Z", "dup")
        again = storage.update_status("app-001", Status.CLOSED)
        assert again.closed_at == "2024-02-02T00:00:00Z"
        assert again.close_reason == "dup"

    def test_reclose_with_new_reason(self, storage: DotsStorage) -> None:
        """New closing values replace the old ones."""
        storage.create(make_issue("app-001"))
        storage.close("app-001", "first", closed_at="2024-02-02T00:00:00Z")
        again = storage.close("app-001", "second", closed_at="2024-03-03T00:00:00Z")
        assert again.close_reason == "second"
        assert storage.get("app-001").closed_at == "2024-03-03T00:00:00Z"

    def test_close_scope(self, storage: DotsStorage) -> None:
        """close_scope closes every pending issue of exactly that scope."""
        storage.create(make_issue("app-001"))
        storage.create(make_issue("app-002"))
        storage.create(make_issue("app-x-001"))
        storage.start("app-002")
        closed = storage.close_scope("app", "sprint over")
        assert sorted(i.id for i in closed) == ["app-001", "app-002"]
        assert all(i.close_reason == "sprint over" for i in closed)
        assert [i.id for i in storage.list()] == ["app-x-001"]

    def test_close_scope_empty(self, storage: DotsStorage) -> None:
        """A scope with nothing pending is an error."""
        with pytest.raises(IssueNotFoundError):
            storage.close_scope("app")

    def test_archive_issue_legacy_closed_record(self, storage: DotsStorage) -> None:
        """Closed records left in the active tree can be archived."""
        issue = make_issue("app-001", status=Status.CLOSED)
        issue.closed_at = TS
        _write_record(storage.root / "app" / "app-001.md", serialize_frontmatter(issue))

        target = storage.archive_issue("app-001")
        assert target == storage.archive_dir / "app" / "app-001.md"
        assert target.is_file()
        assert not (storage.root / "app").exists()

    def test_archive_issue_not_closed(self, storage: DotsStorage) -> None:
        """Only closed issues can be archived."""
        storage.create(make_issue("app-001"))
        with pytest.raises(InvalidStatusError):
            storage.archive_issue("app-001")


class TestDelete:
    """Test deleting issues."""

    def test_delete_removes_file(self, storage: DotsStorage) -> None:
        """The record is gone after delete."""
        storage.create(make_issue("app-001"))
        storage.delete("app-001")
        assert storage.get("app-001") is None

    def test_delete_strips_references(self, storage: DotsStorage) -> None:
        """Active and archived issues lose the deleted blocker."""
        storage.create(make_issue("app-001"))
        storage.create(make_issue("app-002", blockers=["app-001", "web-001"]))
        storage.create(make_issue("app-003", blockers=["app-001"]))
        storage.close("app-003")

        storage.delete("app-001")

        assert storage.get("app-002").blockers == ["web-001"]
        assert storage.get("app-003").blockers == []
        assert storage.get("app-003").status == Status.CLOSED

    def test_delete_archived(self, storage: DotsStorage) -> None:
        """Archived issues can be deleted too."""
        storage.create(make_issue("app-001"))
        storage.close("app-001")
        storage.delete("app-001")
        assert not storage.issue_exists("app-001")

    def test_delete_missing(self, storage: DotsStorage) -> None:
        """Deleting a missing issue raises IssueNotFoundError."""
        with pytest.raises(IssueNotFoundError):
            storage.delete("app-001")


class TestDependencies:
    """Test adding and removing blockers."""

    def test_add_dependency(self, storage: DotsStorage) -> None:
        """The blocker is appended to the blocked issue's list."""
        storage.create(make_issue("app-001"))
        storage.create(make_issue("app-002"))
        storage.add_dependency("app-002", "app-001")
        assert storage.get("app-002").blockers == ["app-001"]
        assert [i.id for i in storage.get_dependents("app-001")] == ["app-002"]

    def test_add_dependency_is_idempotent(self, storage: DotsStorage) -> None:
        """Adding an existing edge changes nothing."""
        storage.create(make_issue("app-001"))
        storage.create(make_issue("app-002"))
        storage.add_dependency("app-002", "app-001")
        storage.add_dependency("app-002", "app-001")
        assert storage.get("app-002").blockers == ["app-001"]

    def test_missing_blocker(self, storage: DotsStorage) -> None:
        """The blocker must exist."""
        storage.create(make_issue("app-001"))
        with pytest.raises(DependencyNotFoundError):
            storage.add_dependency("app-001", "app-999")

    def test_missing_blocked_issue(self, storage: DotsStorage) -> None:
        """The blocked issue must exist."""
        storage.create(make_issue("app-001"))
        with pytest.raises(IssueNotFoundError):
            storage.add_dependency("app-999", "app-001")

    def test_archived_blocker_allowed(self, storage: DotsStorage) -> None:
        """Closed issues can still be named as blockers."""
        storage.create(make_issue("app-001"))
        storage.create(make_issue("app-002"))
        storage.close("app-001")
        storage.add_dependency("app-002", "app-001")
        assert storage.get("app-002").blockers == ["app-001"]

    def test_self_dependency(self, storage: DotsStorage) -> None:
        """An issue cannot block itself."""
        storage.create(make_issue("app-001"))
        with pytest.raises(DependencyCycleError):
            storage.add_dependency("app-001", "app-001")

    def test_cycle_rejected(self, storage: DotsStorage) -> None:
        """Edges closing a loop are rejected and nothing is written."""
        for n in range(1, 4):
            storage.create(make_issue(f"app-00{n}"))
        storage.add_dependency("app-002", "app-001")
        storage.add_dependency("app-003", "app-002")
        with pytest.raises(DependencyCycleError):
            storage.add_dependency("app-001", "app-003")
        assert storage.get("app-001").blockers == []

    def test_invalid_dep_type(self, storage: DotsStorage) -> None:
        """Only the blockers type exists."""
        storage.create(make_issue("app-001"))
        storage.create(make_issue("app-002"))
        with pytest.raises(InvalidDependencyTypeError):
            storage.add_dependency("app-002", "app-001", "related")

    def test_remove_dependency(self, storage: DotsStorage) -> None:
        """Removing drops only that blocker."""
        storage.create(make_issue("app-001"))
        storage.create(make_issue("app-002"))
        storage.create(make_issue("app-003", blockers=["app-001", "app-002"]))
        storage.remove_dependency("app-003", "app-001")
        assert storage.get("app-003").blockers == ["app-002"]

    def test_remove_absent_dependency(self, storage: DotsStorage) -> None:
        """Removing an edge that is not there is an error."""
        storage.create(make_issue("app-001"))
        with pytest.raises(DependencyNotFoundError):
            storage.remove_dependency("app-001", "app-002")


class TestQueries:
    """Test listing and searching."""

    def test_list_sorted_and_excludes_archive(self, storage: DotsStorage) -> None:
        """list returns active issues by priority, then creation time."""
        storage.create(make_issue("app-001", priority=2, created_at="2024-01-02"))
        storage.create(make_issue("app-002", priority=1, created_at="2024-01-03"))
        storage.create(make_issue("web-001", priority=2, created_at="2024-01-01"))
        storage.create(make_issue("web-002"))
        storage.close("web-002")
        assert [i.id for i in storage.list()] == ["app-002", "web-001", "app-001"]

    def test_list_status_filter(self, storage: DotsStorage) -> None:
        """list can filter by status."""
        storage.create(make_issue("app-001"))
        storage.create(make_issue("app-002"))
        storage.start("app-002")
        assert [i.id for i in storage.list(status="active")] == ["app-002"]
        assert [i.id for i in storage.list(Status.OPEN)] == ["app-001"]

    def test_list_all_includes_archive(self, storage: DotsStorage) -> None:
        """list_all returns active issues first, then archived ones."""
        storage.create(make_issue("app-001"))
        storage.create(make_issue("app-002"))
        storage.close("app-001")
        assert [i.id for i in storage.list_all()] == ["app-002", "app-001"]

    def test_list_scopes(self, storage: DotsStorage) -> None:
        """Scopes are the directories of the active tree."""
        storage.create(make_issue("web-001"))
        storage.create(make_issue("app-001"))
        storage.create(make_issue("old-001", status=Status.CLOSED))
        assert storage.list_scopes() == ["app", "web"]

    def test_nested_archive_dirs_skipped(self, storage: DotsStorage) -> None:
        """Directories named archive are never scanned as active."""
        issue = make_issue("app-005")
        _write_record(
            storage.root / "app" / "archive" / "app-005.md",
            serialize_frontmatter(issue),
        )
        assert storage.list() == []

    def test_unreadable_records_skipped(
        self,
        storage: DotsStorage,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        """Malformed records are skipped with a warning."""
        storage.create(make_issue("app-001"))
        _write_record(storage.root / "app" / "app-002.md", "not a record\n")
        _write_record(
            storage.root / "app" / "app-003.md",
            "---\ntitle: T\nstatus: wip\ncreated-at: t\n---\n",
        )
        _write_record(storage.root / "app" / "notes.txt", "ignored")

        with caplog.at_level(logging.WARNING, logger="dots.storage"):
            issues = storage.list()

        assert [i.id for i in issues] == ["app-001"]
        assert "app-002.md" in caplog.text
        assert "app-003.md" in caplog.text

    def test_get_malformed_raises(self, storage: DotsStorage) -> None:
        """Direct reads surface parse errors."""
        _write_record(storage.root / "app" / "app-001.md", "---\ntitle: T\n")
        with pytest.raises(InvalidFrontmatterError):
            storage.get("app-001")

    def test_search(self, storage: DotsStorage) -> None:
        """Search is case-insensitive and covers the archive."""
        storage.create(make_issue("app-001", "Login form", description="OAuth flow"))
        storage.create(make_issue("app-002", "Logout"))
        storage.create(make_issue("app-003", "Other"))
        storage.close("app-003", "Duplicate of LOGIN work")

        assert [i.id for i in storage.search("oauth")] == ["app-001"]
        assert {i.id for i in storage.search("login")} == {"app-001", "app-003"}
        assert storage.search("nothing-like-this") == []
        assert len(storage.search("")) == 3

    def test_purge_archive(self, storage: DotsStorage) -> None:
        """Purging deletes archived records and keeps an empty archive."""
        storage.create(make_issue("app-001"))
        storage.create(make_issue("app-002"))
        storage.close("app-001")
        storage.purge_archive()
        assert storage.archive_dir.is_dir()
        assert list(storage.archive_dir.iterdir()) == []
        assert [i.id for i in storage.list_all()] == ["app-002"]


class TestWorkflow:
    """End-to-end storage scenario."""

    def test_design_then_implement(self, storage: DotsStorage) -> None:
        """A blocked issue becomes ready once its blocker is closed."""
        storage.create(make_issue("app-001", "Design API", priority=1))
        storage.create(make_issue("app-002", "Implement API", blockers=["app-001"]))

        assert [i.id for i in storage.get_ready_issues()] == ["app-001"]

        storage.start("app-001")
        assert storage.get_ready_issues() == []

        storage.close("app-001", "done")
        assert (storage.root / "archive" / "app" / "app-001.md").is_file()
        assert [i.id for i in storage.get_ready_issues()] == ["app-002"]
        assert [i.id for i in storage.list()] == ["app-002"]
