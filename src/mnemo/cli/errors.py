"""mnemo rich error messages: actionable feedback.

Every error shown to the user must contain:
  1. What went wrong (clear cause)
  2. The exact action the user should take to fix it

Usage:
    from mnemo.cli.errors import err_config
    console.print(err_config(exc))
    raise typer.Exit(1)
"""

from __future__ import annotations


def err_config(exc: Exception) -> str:
    """Config file could not be loaded."""
    return (
        f"[red]Error:[/] Invalid configuration.\n"
        f"  {exc}\n"
        "  Fix mnemo.yaml or ~/.mnemo/config.yaml and retry."
    )


def err_disabled(reason: str) -> str:
    """Memory search is switched off by config."""
    return (
        f"[red]Error:[/] Memory search is unavailable: {reason}.\n"
        "  Set  enabled: true  and include 'memory' under  sources:  in mnemo.yaml."
    )


def err_storage(exc: Exception, db_path: str) -> str:
    """The index database could not be opened."""
    return (
        f"[red]Error:[/] Cannot open memory index '{db_path}'.\n"
        f"  {exc}\n"
        "  Check the directory is writable, or rebuild it with:  mnemo index --full"
    )


def err_file_not_found(path: str) -> str:
    return (
        f"[red]Error:[/] File not found: '{path}'.\n"
        "  Use a path printed by  mnemo search  or a file under the memory directory."
    )


def err_conflicting_modes() -> str:
    return (
        "[red]Error:[/] --full and --dirty cannot be used together.\n"
        "  Run either  mnemo index --full  or  mnemo index --dirty."
    )


def warn_no_memory_dir(path: str) -> str:
    """Memory directory missing; nothing to index yet."""
    return (
        f"[yellow]Warning:[/] Memory directory '{path}' does not exist yet.\n"
        f"  Create it and add notes:  mkdir -p '{path}'"
    )


def warn_keyword_only(reason: str | None) -> str:
    return (
        f"[yellow]Warning:[/] Vector search unavailable ({reason or 'no embedding provider'}); "
        "results use keyword search only.\n"
        "  Install local embeddings with:  pip install 'mnemo[local]'"
    )
