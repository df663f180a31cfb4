"""Shared infrastructure for dots CLI commands."""

from __future__ import annotations

import inspect
import subprocess
from pathlib import Path
from typing import TYPE_CHECKING, Any

import typer
from typer.core import TyperGroup

from dots.config import find_dots_dir
from dots.constants import DOTS_DIRNAME, MAX_PRIORITY, MIN_PRIORITY
from dots.storage import DotsStorage, ResolveStatus

if TYPE_CHECKING:
    from collections.abc import Callable

    import click

DOTS_DIR_HELP = "Path to .dots directory"


def _make_alias(
    source_fn: Callable[..., Any],
    *,
    doc: str,
) -> Callable[..., Any]:
    """Create a CLI command alias by cloning a source function's signature.

    Typer infers CLI parameters from function signatures, so the alias gets
    the same options as the command it points to.
    """
    sig = inspect.signature(source_fn)

    def wrapper(**kwargs: Any) -> Any:
        return source_fn(**kwargs)

    wrapper.__signature__ = sig  # type: ignore[attr-defined]
    wrapper.__doc__ = doc
    wrapper.__module__ = source_fn.__module__
    # Copy string annotations so typing.get_type_hints() resolves them
    # correctly (required when using `from __future__ import annotations`).
    wrapper.__annotations__ = dict(source_fn.__annotations__)
    return wrapper


class SortedGroup(TyperGroup):
    """Typer group that lists commands in alphabetical order."""

    def list_commands(self, ctx: click.Context) -> list[str]:
        """Return commands sorted alphabetically."""
        return sorted(super().list_commands(ctx))


def get_storage(
    dots_dir: str = DOTS_DIRNAME,
    create_dir: bool = False,
) -> DotsStorage:
    """Get a storage instance.

    If dots_dir doesn't exist in the current directory, searches upward
    to find it (similar to how git finds .git).

    Args:
        dots_dir: Path to .dots directory.
        create_dir: If True, use dots_dir as given (used by init).

    Returns:
        DotsStorage instance
    """
    if not create_dir and not Path(dots_dir).is_dir():
        dots_dir = find_dots_dir()
    return DotsStorage(dots_dir)


def resolve_many(storage: DotsStorage, prefixes: list[str]) -> list[str]:
    """Resolve ID prefixes with one walk of the store.

    Raises:
        ValueError: Naming the first prefix that is unknown or ambiguous
    """
    resolved: list[str] = []
    for result in storage.resolve_ids(prefixes):
        if result.status == ResolveStatus.AMBIGUOUS:
            msg = f"Ambiguous ID: {result.prefix}"
            raise ValueError(msg)
        if result.issue_id is None:
            msg = f"Issue not found: {result.prefix}"
            raise ValueError(msg)
        resolved.append(result.issue_id)
    return resolved


def clamp_priority(priority: int) -> int:
    """Clamp a priority into the range the CLI accepts."""
    return max(MIN_PRIORITY, min(MAX_PRIORITY, priority))


def git_add_store(dots_path: Path) -> bool:
    """Stage the store with ``git add`` when it sits in a git work tree.

    Args:
        dots_path: Path to .dots directory

    Returns:
        True if git add ran successfully, False if skipped or failed
    """
    project_dir = dots_path.resolve().parent
    if not (project_dir / ".git").exists():
        return False

    try:
        result = subprocess.run(
            ["git", "add", str(dots_path.resolve())],
            cwd=project_dir,
            capture_output=True,
            text=True,
            check=False,
        )
    except (FileNotFoundError, OSError) as e:
        typer.echo(f"Warning: git add failed: {e}", err=True)
        return False

    if result.returncode != 0:
        typer.echo(
            f"Warning: git add failed with exit code {result.returncode}",
            err=True,
        )
        return False
    return True
