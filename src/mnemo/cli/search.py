"""mnemo search / mnemo get: query the memory index and read notes."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Annotated

import typer
from rich.table import Table

from mnemo.build import one_shot_config
from mnemo.cli.common import console, load_cli_config, open_manager, resolve_identity
from mnemo.cli.errors import err_file_not_found, warn_keyword_only
from mnemo.manager.multi import MultiIdentityManager
from mnemo.types import QueryOptions, SearchResult


def search_cmd(
    query: Annotated[str, typer.Argument(help="Words to look for.")],
    max_results: Annotated[
        int | None,
        typer.Option("--max-results", "-n", help="Maximum results (default from config)."),
    ] = None,
    min_score: Annotated[
        float | None,
        typer.Option("--min-score", help="Drop results scoring below this (default from config)."),
    ] = None,
    all_identities: Annotated[
        bool,
        typer.Option("--all-identities", help="Search every identity under ~/.mnemo/agents."),
    ] = False,
    workspace: Annotated[
        Path,
        typer.Option("--workspace", "-w", help="Workspace directory (identity is derived from it)."),
    ] = Path("."),
    identity: Annotated[
        str | None,
        typer.Option("--identity", help="Use this identity instead of deriving one."),
    ] = None,
    as_json: Annotated[
        bool,
        typer.Option("--json", help="Print results as JSON."),
    ] = False,
) -> None:
    """Search memory notes by keyword and meaning."""
    workspace = workspace.resolve()
    cfg = load_cli_config(workspace)
    opts = QueryOptions(max_results=max_results, min_score=min_score)

    if all_identities:
        multi = MultiIdentityManager(workspace, one_shot_config(cfg))
        try:
            results = multi.search(query, QueryOptions(max_results=max_results, min_score=min_score, scope="all"))
        finally:
            multi.close()
    else:
        manager = open_manager(workspace, resolve_identity(workspace, identity), cfg)
        try:
            results = manager.search(query, opts)
            vector = manager.vector
        finally:
            manager.close()
        if not as_json and not vector.available and cfg.embedding.provider != "none":
            console.print(warn_keyword_only(vector.reason))

    if as_json:
        typer.echo(json.dumps([r.to_dict() for r in results], indent=2))
        return
    _print_results(results, show_identity=all_identities)


def _print_results(results: list[SearchResult], show_identity: bool) -> None:
    if not results:
        console.print("[yellow]No matching notes.[/]")
        return
    table = Table(show_header=True, header_style="bold")
    table.add_column("Score", justify="right")
    table.add_column("Location")
    if show_identity:
        table.add_column("Identity")
    table.add_column("Snippet")
    for r in results:
        row = [f"{r.score:.3f}", f"{r.path}:{r.start_line}-{r.end_line}"]
        if show_identity:
            row.append(r.identity or "")
        row.append(r.snippet.replace("\n", " ")[:160])
        table.add_row(*row)
    console.print(table)


def get_cmd(
    path: Annotated[str, typer.Argument(help="Memory file path (absolute, or relative to the memory dir).")],
    from_line: Annotated[
        int | None,
        typer.Option("--from", help="First line to print (1-indexed)."),
    ] = None,
    lines: Annotated[
        int | None,
        typer.Option("--lines", help="Number of lines to print."),
    ] = None,
    workspace: Annotated[
        Path,
        typer.Option("--workspace", "-w", help="Workspace directory (identity is derived from it)."),
    ] = Path("."),
    identity: Annotated[
        str | None,
        typer.Option("--identity", help="Use this identity instead of deriving one."),
    ] = None,
) -> None:
    """Print lines of a memory note."""
    workspace = workspace.resolve()
    cfg = load_cli_config(workspace)
    manager = open_manager(workspace, resolve_identity(workspace, identity), cfg)
    try:
        result = manager.get(path, from_line, lines)
    except FileNotFoundError as exc:
        console.print(err_file_not_found(path))
        raise typer.Exit(1) from exc
    finally:
        manager.close()
    typer.echo(result.text)
