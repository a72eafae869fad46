"""Filesystem layout for memory files, indexes, and logs.

Everything lives under ``~/.mnemo`` unless ``MNEMO_HOME`` points elsewhere:

    ~/.mnemo/config.yaml
    ~/.mnemo/agents/<identity>/memory/*.md
    ~/.mnemo/agents/<identity>/index.sqlite
    ~/.mnemo/logs/memory.YYYY-MM-DD.log
"""

from __future__ import annotations

import os
from datetime import date
from pathlib import Path

_HOME_ENV = "MNEMO_HOME"


def mnemo_home() -> Path:
    """Return the root directory for all mnemo state."""
    override = os.environ.get(_HOME_ENV)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".mnemo"


def agents_dir() -> Path:
    return mnemo_home() / "agents"


def identity_dir(identity: str) -> Path:
    return agents_dir() / identity


def memory_dir(identity: str) -> Path:
    """Directory holding the markdown notes indexed for *identity*."""
    return identity_dir(identity) / "memory"


def index_path(identity: str) -> Path:
    """SQLite index file for *identity* (one database per identity)."""
    return identity_dir(identity) / "index.sqlite"


def logs_dir() -> Path:
    return mnemo_home() / "logs"


def log_path(day: date | None = None) -> Path:
    stamp = (day or date.today()).isoformat()
    return logs_dir() / f"memory.{stamp}.log"


def derive_identity(cwd: Path | str) -> str:
    """Derive a stable identity from a project path.

    Examples:
        "/Users/alice/foo" -> "-Users-alice-foo--"
    """
    resolved = Path(cwd).expanduser().resolve().as_posix()
    return f"-{resolved.replace('/', '-')}--"


def list_identities() -> list[str]:
    """Return the identities that have a directory under the agents root, sorted."""
    base = agents_dir()
    try:
        entries = list(base.iterdir())
    except OSError:
        return []
    return sorted(e.name for e in entries if e.is_dir())
