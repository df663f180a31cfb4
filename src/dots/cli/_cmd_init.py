"""Initialization command for the dots CLI."""

from __future__ import annotations

import typer

from dots.config import git_add_enabled, set_default_scope
from dots.constants import DOTS_DIRNAME
from dots.errors import DotsError
from dots.idgen import validate_id

from ._helpers import DOTS_DIR_HELP, get_storage, git_add_store
from ._json_state import echo_json, fail, is_json_output


def register(app: typer.Typer) -> None:
    """Register init command."""

    @app.command()
    def init(
        scope: str | None = typer.Option(
            None,
            "--scope",
            "-s",
            help="Default scope for new dots (saved in config.toml)",
        ),
        no_git: bool = typer.Option(
            False,
            "--no-git",
            help="Do not run 'git add' on the new store",
        ),
        json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
        dots_dir: str = typer.Option(DOTS_DIRNAME, help=DOTS_DIR_HELP),
    ) -> None:
        """Initialize a .dots directory.

        When the project is a git work tree the store is staged with
        'git add' unless --no-git is given or git_add = false is set in
        .dots/config.toml.
        """
        try:
            storage = get_storage(dots_dir, create_dir=True)
            if scope is not None:
                validate_id(scope)
                set_default_scope(storage.root, scope)
        except DotsError as e:
            fail(str(e))

        git_added = False
        if not no_git and git_add_enabled(storage.root):
            git_added = git_add_store(storage.root)

        if is_json_output(json_output):
            echo_json(
                {
                    "status": "initialized",
                    "path": str(storage.root.resolve()),
                    "default_scope": scope,
                    "git_added": git_added,
                },
            )
        else:
            typer.echo(f"✓ Initialized dots in {storage.root}")
            if scope is not None:
                typer.echo(f"✓ Default scope: {scope}")
            if git_added:
                typer.echo(f"✓ Staged {storage.root} with git")
