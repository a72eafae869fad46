"""mnemo status: index counts, capabilities, and freshness."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.panel import Panel

from mnemo.build import one_shot_config
from mnemo.cli.common import console, load_cli_config, open_manager, resolve_identity
from mnemo.manager.multi import MultiIdentityManager
from mnemo.types import IndexStatus


def status_cmd(
    all_identities: Annotated[
        bool,
        typer.Option("--all-identities", help="Show every identity under ~/.mnemo/agents."),
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
    """Show the memory index status."""
    workspace = workspace.resolve()
    cfg = load_cli_config(workspace)

    if all_identities:
        multi = MultiIdentityManager(workspace, one_shot_config(cfg))
        try:
            statuses = multi.status()
        finally:
            multi.close()
        if not statuses:
            console.print("[yellow]No identities found.[/]")
        for status in statuses:
            _show_status(status)
        return

    manager = open_manager(workspace, resolve_identity(workspace, identity), cfg)
    try:
        _show_status(manager.status())
    finally:
        manager.close()


def _capability(available: bool, reason: str | None) -> str:
    return "[green]✓[/]" if available else f"[yellow]✗[/] {reason or ''}".rstrip()


def _show_status(status: IndexStatus) -> None:
    lines = [
        f"Identity:  [bold]{status.identity}[/]",
        f"Memory:    {status.memory_dir}",
        f"Index:     {status.db_path}",
        f"Files: [bold]{status.files}[/]  |  Chunks: [bold]{status.chunks:,}[/]  |  "
        f"FTS rows: {status.fts_rows:,}  |  Vectors: {status.vector_rows:,}",
        f"Keyword:   {_capability(status.fts_available, status.fts_reason)}",
        f"Vector:    {_capability(status.vector_available, status.vector_reason)}",
        f"Embedding: {status.provider or 'none'} {status.model or ''}".rstrip(),
        f"Dirty:     {'[yellow]yes[/]' if status.dirty else '[green]no[/]'}",
    ]
    console.print(Panel("\n".join(lines), title="[bold]Memory index[/]", expand=False))
