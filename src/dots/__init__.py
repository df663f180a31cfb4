"""dots - a file-backed issue store with a dependency graph."""

from dots._version import version as __version__

__all__ = ["__version__"]
