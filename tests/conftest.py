"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest

from dots.constants import DEFAULT_SCOPE_ENV
from dots.models import Issue, Status
from dots.storage import DotsStorage

TS = "2024-01-01T00:00:00Z"


@pytest.fixture(autouse=True)
def _clear_default_scope(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep a DOTS_DEFAULT_SCOPE from the developer's shell out of tests."""
    monkeypatch.delenv(DEFAULT_SCOPE_ENV, raising=False)


@pytest.fixture
def temp_dots_dir(tmp_path: Path) -> Path:
    """Create a temporary .dots directory for testing."""
    dots_path = tmp_path / ".dots"
    dots_path.mkdir()
    return dots_path


@pytest.fixture
def storage(temp_dots_dir: Path) -> DotsStorage:
    """Create a storage instance in a temporary directory."""
    return DotsStorage(temp_dots_dir)


def make_issue(
    issue_id: str,
    title: str | None = None,
    *,
    status: Status = Status.OPEN,
    priority: int = 2,
    created_at: str = TS,
    blockers: list[str] | None = None,
    description: str = "",
) -> Issue:
    """Build an issue with sensible defaults."""
    return Issue(
        id=issue_id,
        title=title or f"Issue {issue_id}",
        created_at=created_at,
        description=description,
        status=status,
        priority=priority,
        blockers=list(blockers or []),
    )
