"""Messages exchanged between WorkerMemoryProxy and the worker process.

Host -> worker: ``Request``. Worker -> host: ``Response`` (matched by id) or
``Notification`` (unsolicited). All payloads are plain dicts and lists so they
pickle across the spawn boundary without importing result classes twice.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

REQUEST_TYPES: tuple[str, ...] = ("search", "sync", "sync_dirty", "status", "close")

NOTIFY_READY = "ready"
NOTIFY_DIRTY = "dirty"


@dataclass
class Request:
    id: int
    type: str
    payload: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.type not in REQUEST_TYPES:
            raise ValueError(f"unknown request type '{self.type}'")


@dataclass
class Response:
    """Reply to the request with the same id. ``error`` is set when ``ok`` is False."""

    id: int
    ok: bool
    data: Any = None
    error: str | None = None


@dataclass
class Notification:
    """``ready`` once the manager exists; ``dirty`` with the new flag value."""

    type: str
    value: Any = None


@dataclass
class WorkerInit:
    """Everything the worker needs to build its manager.

    Attributes:
        identity: Identity served by the worker.
        workspace_dir: Workspace for relative extra paths.
        config: ``config_to_dict()`` output.
        memory_dir: Optional memory dir override.
        index_path: Optional index file override.
        manager_factory: Picklable ``(init, on_dirty) -> manager``; None
            builds a MemoryIndexManager, or a MultiIdentityManager for
            scope 'all'.
        log_level: Level for the worker's file log.
    """

    identity: str
    workspace_dir: str | None
    config: dict[str, Any]
    memory_dir: str | None = None
    index_path: str | None = None
    manager_factory: Callable[..., Any] | None = None
    log_level: str = "INFO"
