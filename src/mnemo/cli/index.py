"""mnemo index: build the memory index for a workspace.

Usage:
  mnemo index            # reindex changed files
  mnemo index --full     # drop the identity's rows and reindex everything
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from mnemo.build import build_memory_index
from mnemo.cli.common import console, load_cli_config, resolve_identity
from mnemo.cli.errors import err_conflicting_modes, err_storage, warn_no_memory_dir
from mnemo.errors import StorageError
from mnemo.paths import index_path, memory_dir


def index_cmd(
    full: Annotated[
        bool,
        typer.Option("--full", help="Clear this identity's index and rebuild it from scratch."),
    ] = False,
    dirty: Annotated[
        bool,
        typer.Option("--dirty", help="Only reindex files that changed (default)."),
    ] = False,
    workspace: Annotated[
        Path,
        typer.Option("--workspace", "-w", help="Workspace directory (identity is derived from it)."),
    ] = Path("."),
    identity: Annotated[
        str | None,
        typer.Option("--identity", help="Use this identity instead of deriving one."),
    ] = None,
) -> None:
    """Index the memory notes of the current workspace."""
    if full and dirty:
        console.print(err_conflicting_modes())
        raise typer.Exit(1)

    workspace = workspace.resolve()
    cfg = load_cli_config(workspace)
    ident = resolve_identity(workspace, identity)

    notes = memory_dir(ident)
    if not notes.exists():
        console.print(warn_no_memory_dir(str(notes)))

    try:
        result = build_memory_index(workspace, "full" if full else "dirty", cfg, identity=ident)
    except StorageError as exc:
        console.print(err_storage(exc, str(index_path(ident))))
        raise typer.Exit(1) from exc

    if not result.ok:
        console.print(f"[red]Error:[/] {result.message}")
        raise typer.Exit(1)
    console.print(f"[green]✓[/] {result.message}")
