"""Exception types raised by the dots storage engine.

Validation and graph errors derive from ``ValueError`` so that callers which
only care about "the request was bad" can keep catching ``ValueError``.
Filesystem failures are wrapped in :class:`StorageIOError`.
"""

from __future__ import annotations


class DotsError(Exception):
    """Base class for all dots errors."""


class InvalidIdError(DotsError, ValueError):
    """An identifier is empty, too long, or contains forbidden characters."""


class InvalidStatusError(DotsError, ValueError):
    """A status string is not one of open/active/closed (or done)."""


class InvalidFrontmatterError(DotsError, ValueError):
    """A record is malformed or misses a required field."""


class IssueNotFoundError(DotsError, ValueError):
    """No issue matches the given id or prefix."""


class IssueAlreadyExistsError(DotsError, ValueError):
    """An issue with the same id is already stored."""


class AmbiguousIdError(DotsError, ValueError):
    """A prefix matches more than one stored issue."""


class DependencyNotFoundError(DotsError, ValueError):
    """The blocker of a dependency does not exist or is not present."""


class DependencyCycleError(DotsError, ValueError):
    """Adding the dependency would create a cycle."""


class InvalidDependencyTypeError(DotsError, ValueError):
    """The dependency type is not supported."""


class StorageIOError(DotsError, RuntimeError):
    """Reading, writing or moving a record failed at the OS level."""
