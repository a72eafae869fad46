"""Host-owned registry of memory managers, one per identity.

The host integration layer creates one registry, asks it for managers by
identity (created on first request), and calls ``close_all()`` on shutdown.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Any

from mnemo.config import MemoryConfig
from mnemo.db.connection import Capability
from mnemo.errors import MnemoError
from mnemo.manager.index_manager import MemoryIndexManager
from mnemo.manager.multi import MultiIdentityManager
from mnemo.worker.proxy import WorkerMemoryProxy

logger = logging.getLogger(__name__)


class MemoryRegistry:
    """Create-if-absent map from identity to manager.

    Args:
        config: Resolved configuration shared by every manager.
        workspace_dir: Workspace passed to each manager.
        isolated: Run each manager in a worker process (WorkerMemoryProxy).
            In-process managers are used when False.
        factory: Replaces the manager constructor; called with the identity.
    """

    def __init__(
        self,
        config: MemoryConfig | None = None,
        workspace_dir: Path | str | None = None,
        *,
        isolated: bool = True,
        factory: Callable[[str], Any] | None = None,
    ) -> None:
        self.config = config or MemoryConfig()
        self.workspace_dir = Path(workspace_dir) if workspace_dir else None
        self.isolated = isolated
        self._factory = factory or self._create
        self._managers: dict[str, Any] = {}
        self._lock = threading.Lock()
        self._executor: ThreadPoolExecutor | None = None

    def availability(self) -> Capability:
        """Whether this configuration allows memory search at all."""
        if not self.config.enabled:
            return Capability.unavailable("memory search is disabled in config")
        if "memory" not in self.config.sources:
            return Capability.unavailable("config sources do not include 'memory'")
        return Capability.ok()

    def _create(self, identity: str) -> Any:
        if self.isolated:
            return WorkerMemoryProxy(identity, self.workspace_dir, self.config)
        if self.config.scope == "all":
            return MultiIdentityManager(self.workspace_dir, self.config)
        return MemoryIndexManager(identity, self.workspace_dir, self.config)

    def get(self, identity: str) -> Any | None:
        """Return the manager for *identity*, creating it on first use.

        Returns None when memory search is unavailable (see availability())
        or the manager cannot be created; the reason is logged.
        """
        capability = self.availability()
        if not capability.available:
            logger.debug("memory unavailable: %s", capability.reason)
            return None
        with self._lock:
            existing = self._managers.get(identity)
            if existing is not None:
                return existing
            try:
                manager = self._factory(identity)
            except MnemoError as exc:
                logger.warning("cannot start memory manager for %s: %s", identity, exc)
                return None
            self._managers[identity] = manager
            return manager

    def peek(self, identity: str) -> Any | None:
        """Return the existing manager for *identity* without creating one."""
        with self._lock:
            return self._managers.get(identity)

    def identities(self) -> list[str]:
        with self._lock:
            return list(self._managers)

    def submit(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Future:
        """Run *fn* on the registry's background pool (host-triggered syncs)."""
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="mnemo-host")
            executor = self._executor
        return executor.submit(fn, *args, **kwargs)

    def release(self, identity: str) -> None:
        """Close and forget the manager for *identity*, if any."""
        with self._lock:
            manager = self._managers.pop(identity, None)
        if manager is not None:
            manager.close()

    def close_all(self) -> None:
        """Close every manager and the background pool. The registry stays usable."""
        with self._lock:
            managers = list(self._managers.values())
            self._managers.clear()
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=False, cancel_futures=True)
        for manager in managers:
            try:
                manager.close()
            except MnemoError as exc:
                logger.warning("error closing memory manager: %s", exc)
