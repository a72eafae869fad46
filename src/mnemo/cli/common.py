"""Helpers shared by CLI commands: config loading and manager construction."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console

from mnemo.build import one_shot_config
from mnemo.cli.errors import err_config, err_disabled, err_storage
from mnemo.config import MemoryConfig, load_config
from mnemo.errors import ConfigError, StorageError
from mnemo.manager.index_manager import MemoryIndexManager
from mnemo.manager.registry import MemoryRegistry
from mnemo.paths import derive_identity, index_path

console = Console()


def load_cli_config(workspace: Path) -> MemoryConfig:
    """Load config for *workspace* or exit with an actionable message."""
    try:
        return load_config(workspace)
    except ConfigError as exc:
        console.print(err_config(exc))
        raise typer.Exit(1) from exc


def resolve_identity(workspace: Path, identity: str | None) -> str:
    return identity or derive_identity(workspace)


def open_manager(workspace: Path, identity: str, config: MemoryConfig) -> MemoryIndexManager:
    """In-process manager without watcher or timers (one command, one pass)."""
    availability = MemoryRegistry(config).availability()
    if not availability.available:
        console.print(err_disabled(availability.reason or "unknown"))
        raise typer.Exit(1)
    try:
        return MemoryIndexManager(identity, workspace, one_shot_config(config))
    except StorageError as exc:
        console.print(err_storage(exc, str(index_path(identity))))
        raise typer.Exit(1) from exc
