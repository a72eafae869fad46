"""Cross-identity search: one MemoryIndexManager per identity, results merged."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from pathlib import Path

from mnemo import paths
from mnemo.config import MemoryConfig
from mnemo.errors import StorageError
from mnemo.indexing.files import read_slice
from mnemo.manager.index_manager import MemoryIndexManager
from mnemo.search.hybrid import rank
from mnemo.types import GetResult, IndexStatus, QueryOptions, SearchResult, SyncReport

logger = logging.getLogger(__name__)

ManagerFactory = Callable[[str], MemoryIndexManager]


class MultiIdentityManager:
    """Fan queries out over every identity under the agents root.

    Identities are listed on each call, so a new identity directory is picked
    up without a restart. Managers are created on first use and kept.

    Args:
        workspace_dir: Passed to each manager for relative extra paths.
        config: Shared configuration.
        manager_factory: Builds the manager for an identity (tests inject
            managers with custom directories).
        list_identities: Returns the identities to search.
        on_dirty: Called with the aggregate flag when it flips.
    """

    def __init__(
        self,
        workspace_dir: Path | str | None = None,
        config: MemoryConfig | None = None,
        *,
        manager_factory: ManagerFactory | None = None,
        list_identities: Callable[[], list[str]] = paths.list_identities,
        on_dirty: Callable[[bool], None] | None = None,
    ) -> None:
        self.workspace_dir = Path(workspace_dir) if workspace_dir else None
        self.config = config or MemoryConfig()
        self._factory = manager_factory or self._default_factory
        self._list_identities = list_identities
        self._on_dirty = on_dirty
        self._managers: dict[str, MemoryIndexManager] = {}
        self._lock = threading.Lock()
        self._last_dirty = True

    def _default_factory(self, identity: str) -> MemoryIndexManager:
        return MemoryIndexManager(
            identity,
            self.workspace_dir,
            self.config,
            on_dirty=lambda _value: self._notify_dirty(),
        )

    def manager(self, identity: str) -> MemoryIndexManager | None:
        """Return the manager for *identity*, creating it if absent."""
        with self._lock:
            existing = self._managers.get(identity)
            if existing is not None:
                return existing
            try:
                created = self._factory(identity)
            except StorageError as exc:
                logger.warning("skipping identity %s: %s", identity, exc)
                return None
            self._managers[identity] = created
            return created

    def identities(self) -> list[str]:
        return self._list_identities()

    # ------------------------------------------------------------------
    # Search / get
    # ------------------------------------------------------------------

    def search(self, query: str, opts: QueryOptions | None = None) -> list[SearchResult]:
        """Search every identity (scope 'all') or one (scope 'agent').

        Scope 'agent' without ``target_identity`` is an invalid request and
        returns ``[]``.
        """
        opts = opts or QueryOptions()
        if opts.scope == "agent":
            if not opts.target_identity:
                logger.debug("scope 'agent' without target identity; returning no results")
                return []
            identities = [opts.target_identity]
        else:
            identities = self.identities()

        results: list[SearchResult] = []
        for identity in identities:
            manager = self.manager(identity)
            if manager is None:
                continue
            for result in manager.search(query, opts):
                result.identity = identity
                results.append(result)

        min_score = self.config.query.min_score if opts.min_score is None else opts.min_score
        max_results = opts.max_results or self.config.query.max_results
        return rank(results, min_score, max_results)

    def get(self, path: str, from_line: int | None = None, line_count: int | None = None) -> GetResult:
        return read_slice(path, from_line, line_count)

    # ------------------------------------------------------------------
    # Sync
    # ------------------------------------------------------------------

    def sync(self, reason: str = "multi-identity", force: bool = False) -> list[SyncReport]:
        reports = []
        for identity in self.identities():
            manager = self.manager(identity)
            if manager is not None:
                reports.append(manager.sync(reason=reason, force=force))
        return reports

    def sync_dirty(self) -> list[str]:
        """Sync the managers that are dirty; return their identities."""
        synced: list[str] = []
        for identity in self.identities():
            manager = self.manager(identity)
            if manager is not None:
                synced.extend(manager.sync_dirty())
        return synced

    def is_dirty(self) -> bool:
        with self._lock:
            managers = list(self._managers.values())
        if not managers:
            return True
        return any(m.is_dirty() for m in managers)

    def _notify_dirty(self) -> None:
        value = self.is_dirty()
        if value == self._last_dirty:
            return
        self._last_dirty = value
        if self._on_dirty is not None:
            self._on_dirty(value)

    def status(self) -> list[IndexStatus]:
        statuses = []
        for identity in self.identities():
            manager = self.manager(identity)
            if manager is not None:
                statuses.append(manager.status())
        return statuses

    def close(self) -> None:
        with self._lock:
            managers = list(self._managers.values())
            self._managers.clear()
        for manager in managers:
            manager.close()
