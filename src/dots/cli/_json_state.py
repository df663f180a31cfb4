"""Output mode shared by the dots commands.

``--json`` may be given before the command (``dot --json ls``) or after it
(``dot ls --json``). Either way the whole invocation prints JSON on stdout
and reports errors on stderr as ``{"error": "..."}``.
"""

from __future__ import annotations

from typing import Any, NoReturn

import orjson
import typer

_json_mode: bool = False


def set_json_flag(value: bool) -> None:
    """Record the global ``--json`` flag for this invocation."""
    global _json_mode  # noqa: PLW0603
    _json_mode = value


def is_json_output(local_flag: bool = False) -> bool:
    """Whether the current command should print JSON.

    A per-command ``--json`` switches the whole invocation, so errors raised
    after this call are reported as JSON too.
    """
    global _json_mode  # noqa: PLW0603
    _json_mode = _json_mode or local_flag
    return _json_mode


def echo_json(data: Any) -> None:
    """Write a value to stdout as one line of JSON."""
    typer.echo(orjson.dumps(data).decode())


def echo_error(message: str) -> None:
    """Report an error on stderr in the active output mode."""
    if _json_mode:
        typer.echo(orjson.dumps({"error": message}).decode(), err=True)
    else:
        typer.echo(f"Error: {message}", err=True)


def fail(message: str) -> NoReturn:
    """Report ``message`` and end the command with exit status 1."""
    echo_error(message)
    raise typer.Exit(1)
