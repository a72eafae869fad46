"""Index Manager: owns one identity's index and keeps it in sync with its files.

State: initializing -> idle | dirty, and dirty -> syncing -> idle | dirty.
The dirty flag starts True, so the first search or trigger does a full pass.

Threads:
  - watcher: ``watchfiles.watch`` over the memory dir and extra paths; every
    event marks the index dirty and restarts the debounce timer.
  - debounce timer: ``threading.Timer`` that runs sync(reason="watch").
  - interval: waits ``sync.interval_minutes`` between sync(reason="interval").

All database access goes through one lock. sync() is single-flight: a call
made while another pass is running returns at once with ``ran=False``.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from collections.abc import Callable
from pathlib import Path

import watchfiles

from mnemo import paths
from mnemo.config import MemoryConfig
from mnemo.db.connection import Capability, Database
from mnemo.db.repository import Repository
from mnemo.db.schema import get_meta, initialize, set_meta
from mnemo.db.vectors import ensure_vec_table
from mnemo.embeddings.base import EmbeddingProvider
from mnemo.embeddings.provider import create_embedding_provider
from mnemo.errors import EmbeddingError, StorageError, SyncError
from mnemo.indexing.chunker import hash_text
from mnemo.indexing.files import (
    FileEntry,
    build_file_entry,
    list_memory_files,
    read_slice,
    resolve_extra_paths,
)
from mnemo.indexing.indexer import KEYWORD_ONLY_MODEL, EmbeddingContext, index_memory_file
from mnemo.search.fts import search_fts
from mnemo.search.hybrid import (
    apply_rank_extensions,
    candidate_limit,
    merge_hybrid_results,
    rank,
    to_results,
)
from mnemo.search.text import SNIPPET_MAX_CHARS
from mnemo.search.vector import search_vector
from mnemo.types import GetResult, IndexStatus, QueryOptions, SearchResult, SyncReport

logger = logging.getLogger(__name__)

SOURCE = "memory"
_MODEL_META_KEY = "index_model"
_WATCH_STEP_MS = 50


def _is_memory_change(change: watchfiles.Change, path: str) -> bool:
    # Deleted directories carry no suffix but may have held notes.
    return path.endswith(".md") or change == watchfiles.Change.deleted


class MemoryIndexManager:
    """Index, search and watch the memory files of one identity.

    Args:
        identity: Partition key; selects the memory dir and index file.
        workspace_dir: Base for relative ``extra_paths``.
        config: Resolved configuration (defaults when None).
        memory_dir: Override the memory directory (tests, custom layouts).
        index_path: Override the SQLite file location.
        provider: Use this embedding provider instead of creating one from
            ``config.embedding``.
        on_dirty: Called with the new value whenever the dirty flag flips.

    Raises:
        StorageError: If the database cannot be opened or its schema created.
    """

    def __init__(
        self,
        identity: str,
        workspace_dir: Path | str | None = None,
        config: MemoryConfig | None = None,
        *,
        memory_dir: Path | str | None = None,
        index_path: Path | str | None = None,
        provider: EmbeddingProvider | None = None,
        on_dirty: Callable[[bool], None] | None = None,
    ) -> None:
        self.identity = identity
        self.workspace_dir = Path(workspace_dir) if workspace_dir else None
        self.config = config or MemoryConfig()
        self.memory_dir = Path(memory_dir) if memory_dir else paths.memory_dir(identity)
        self.index_path = Path(index_path) if index_path else paths.index_path(identity)
        self._on_dirty = on_dirty

        self._db_lock = threading.RLock()
        self._sync_lock = threading.Lock()
        self._state_lock = threading.Lock()
        self._timer_lock = threading.Lock()
        self._stop = threading.Event()
        self._cancel = threading.Event()

        self._closed = False
        self._syncing = False
        self._dirty = True
        self._dirty_generation = 0
        self._state = "initializing"

        self._provider = provider
        self._provider_resolved = provider is not None
        self._watch_timer: threading.Timer | None = None
        self._watcher: threading.Thread | None = None
        self._interval: threading.Thread | None = None

        store = self.config.store
        self._db = Database(
            self.index_path,
            vector_enabled=store.vector_enabled,
            extension_path=store.extension_path,
        )
        try:
            conn = self._db.connect()
            self.fts = initialize(conn, fts_enabled=store.fts_enabled)
        except sqlite3.Error as exc:
            self._db.close()
            raise StorageError(f"cannot open memory index {self.index_path}: {exc}") from exc
        self.vector: Capability = self._db.vector
        self._repo = Repository(conn)

        self._state = "dirty"
        self._start_watcher()
        self._start_interval()

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> str:
        if self._closed:
            return "closed"
        if self._syncing:
            return "syncing"
        return self._state

    @property
    def closed(self) -> bool:
        return self._closed

    def is_dirty(self) -> bool:
        return self._dirty

    def mark_dirty(self) -> None:
        """Flag the index as stale; the next trigger reindexes."""
        with self._state_lock:
            self._dirty_generation += 1
        self._set_dirty(True)

    def _set_dirty(self, value: bool) -> None:
        with self._state_lock:
            changed = self._dirty != value
            self._dirty = value
            self._state = "dirty" if value else "idle"
        if changed and self._on_dirty is not None:
            try:
                self._on_dirty(value)
            except Exception:
                logger.exception("dirty callback failed for %s", self.identity)

    # ------------------------------------------------------------------
    # Provider + vector readiness
    # ------------------------------------------------------------------

    def _get_provider(self) -> EmbeddingProvider | None:
        if self._provider_resolved:
            return self._provider
        self._provider_resolved = True
        try:
            self._provider = create_embedding_provider(self.config.embedding, cancel=self._cancel)
        except EmbeddingError as exc:
            logger.warning(
                "embedding provider unavailable for %s, using keyword search only: %s",
                self.identity,
                exc,
            )
            self._provider = None
        return self._provider

    def _ensure_vector_ready(self, dimensions: int) -> bool:
        """Create or resize chunks_vec for *dimensions*. Does not commit.

        A failure disables vector search for the rest of this manager's life.
        """
        if not self.vector.available or dimensions <= 0:
            return False
        try:
            ensure_vec_table(self._repo.conn, dimensions)
        except sqlite3.Error as exc:
            logger.warning("sqlite-vec unusable for %s, disabling vector search: %s", self.identity, exc)
            self.vector = Capability.unavailable(str(exc))
            return False
        return True

    # ------------------------------------------------------------------
    # Sync
    # ------------------------------------------------------------------

    def sync(self, reason: str = "manual", force: bool = False) -> SyncReport:
        """Bring the index up to date with the files on disk.

        Never raises: a failed pass is logged, reported in ``error`` and
        leaves the index dirty so a later trigger retries.
        """
        report = SyncReport(reason=reason)
        if self._closed:
            report.ran = False
            return report
        if not self._sync_lock.acquire(blocking=False):
            logger.debug("sync (%s) skipped for %s: already running", reason, self.identity)
            report.ran = False
            return report

        try:
            self._syncing = True
            with self._state_lock:
                generation = self._dirty_generation
            try:
                with self._db_lock:
                    if self._closed:
                        report.ran = False
                        return report
                    self._run_sync(report, force)
            except Exception as exc:
                error = SyncError(f"memory sync failed ({reason}) for {self.identity}: {exc}")
                logger.warning("%s", error, exc_info=True)
                report.error = str(exc)
                self._set_dirty(True)
            else:
                with self._state_lock:
                    unchanged = generation == self._dirty_generation
                # An event that arrived mid-pass keeps the index dirty.
                self._set_dirty(not unchanged)
                logger.info(
                    "memory sync (%s) for %s: %d indexed, %d unchanged, %d removed",
                    reason,
                    self.identity,
                    len(report.indexed),
                    report.skipped,
                    len(report.removed),
                )
            return report
        finally:
            self._syncing = False
            self._sync_lock.release()

    def _embedding_context(self, provider: EmbeddingProvider | None) -> EmbeddingContext | None:
        if provider is None:
            return None
        return EmbeddingContext(
            provider=provider,
            provider_key=hash_text(provider.model),
            cache=self.config.cache,
            ensure_ready=self._ensure_vector_ready,
            batch_size=self.config.embedding.batch_size,
            concurrency=self.config.embedding.concurrency,
        )

    def _drop_provider(self, exc: EmbeddingError) -> None:
        """Switch this manager to keyword-only after an inference failure."""
        logger.warning(
            "embedding failed for %s, using keyword search only: %s", self.identity, exc
        )
        provider, self._provider = self._provider, None
        self._provider_resolved = True
        if provider is not None:
            try:
                provider.dispose()
            except Exception:
                logger.warning("embedding provider dispose failed for %s", self.identity, exc_info=True)

    def _run_sync(self, report: SyncReport, force: bool) -> None:
        repo = self._repo
        provider = self._get_provider()
        model = provider.model if provider else KEYWORD_ONLY_MODEL

        previous_model = get_meta(repo.conn, _MODEL_META_KEY)
        if previous_model is not None and previous_model != model:
            logger.info("embedding model changed (%s -> %s); reindexing all files", previous_model, model)
            force = True

        files = list_memory_files(self.memory_dir, self.config.extra_paths, self.workspace_dir)
        entries = [e for e in (build_file_entry(f) for f in files) if e is not None]
        active = {e.path for e in entries}

        try:
            self._index_entries(entries, active, report, self._embedding_context(provider), force)
        except EmbeddingError as exc:
            self._drop_provider(exc)
            # Files embedded earlier in this pass carry the old model tag.
            model = KEYWORD_ONLY_MODEL
            report.indexed = []
            report.skipped = 0
            self._index_entries(entries, active, report, None, True)

        for stale in repo.list_file_paths(SOURCE, self.identity):
            if stale in active:
                continue
            with repo.transaction():
                repo.delete_path_rows(stale, SOURCE, self.identity, fts=self.fts.available)
                repo.delete_file(stale, SOURCE, self.identity)
            report.removed.append(stale)

        if previous_model != model:
            with repo.transaction():
                set_meta(repo.conn, _MODEL_META_KEY, model)

    def _index_entries(
        self,
        entries: list[FileEntry],
        active: set[str],
        report: SyncReport,
        embeddings: EmbeddingContext | None,
        force: bool,
    ) -> None:
        repo = self._repo
        for entry in entries:
            record = repo.get_file(entry.path, SOURCE, self.identity)
            if not force and record is not None and record.hash == entry.hash:
                report.skipped += 1
                continue
            try:
                index_memory_file(
                    repo,
                    entry,
                    SOURCE,
                    self.identity,
                    self.config.chunking,
                    self.fts.available,
                    embeddings,
                )
            except FileNotFoundError:
                logger.debug("%s vanished during sync", entry.path)
                active.discard(entry.path)
                continue
            report.indexed.append(entry.path)

    def sync_dirty(self) -> list[str]:
        """Sync only if dirty. Returns ``[identity]`` when a pass succeeded."""
        if not self._dirty:
            return []
        report = self.sync(reason="build-dirty")
        return [self.identity] if report.ran and report.error is None else []

    def reset(self) -> int:
        """Delete every row of this identity's partition and mark it dirty."""
        with self._db_lock, self._repo.transaction():
            removed = self._repo.clear_identity(self.identity, fts=self.fts.available)
        self.mark_dirty()
        return removed

    # ------------------------------------------------------------------
    # Search / get
    # ------------------------------------------------------------------

    def search(self, query: str, opts: QueryOptions | None = None) -> list[SearchResult]:
        """Ranked snippets for *query*; never raises for backend failures.

        Mode: hybrid when a provider, sqlite-vec and FTS5 are all usable and
        hybrid is enabled; vector-only without FTS5 or with hybrid off;
        keyword-only without a provider or after a vector failure.
        """
        opts = opts or QueryOptions()
        cleaned = query.strip()
        if not cleaned or self._closed:
            return []
        if self.config.sync.on_search and self._dirty:
            self.sync(reason="search")

        max_results = opts.max_results or self.config.query.max_results
        min_score = self.config.query.min_score if opts.min_score is None else opts.min_score

        with self._db_lock:
            if self._closed:
                return []
            provider = self._get_provider()
            if provider is not None and self.vector.available:
                try:
                    results = self._search_vectors(provider, cleaned, max_results, min_score)
                except (EmbeddingError, sqlite3.Error) as exc:
                    logger.warning("vector search failed for %s, using keyword search: %s", self.identity, exc)
                else:
                    if results is not None:
                        return results

            if not self.fts.available:
                return []
            hits = search_fts(
                self._repo,
                cleaned,
                max_results,
                min_score,
                SNIPPET_MAX_CHARS,
                model=provider.model if provider else None,
            )
            return to_results(hits, SOURCE)

    def _search_vectors(
        self,
        provider: EmbeddingProvider,
        query: str,
        max_results: int,
        min_score: float,
    ) -> list[SearchResult] | None:
        query_vec = provider.embed_query(query)
        with self._repo.transaction():
            ready = self._ensure_vector_ready(len(query_vec))
        if not ready:
            return None

        hybrid = self.config.query.hybrid
        candidates = candidate_limit(max_results, hybrid.candidate_multiplier)
        vector_hits = search_vector(
            self._repo,
            query_vec,
            candidates if hybrid.enabled else max_results,
            SNIPPET_MAX_CHARS,
            model=provider.model,
        )
        if not hybrid.enabled or not self.fts.available:
            return rank(to_results(vector_hits, SOURCE), min_score, max_results)

        keyword_hits = search_fts(
            self._repo, query, candidates, 0.0, SNIPPET_MAX_CHARS, model=provider.model
        )
        merged = merge_hybrid_results(
            vector_hits, keyword_hits, hybrid.vector_weight, hybrid.text_weight, SOURCE
        )
        return apply_rank_extensions(rank(merged, min_score, max_results), hybrid)

    def get(self, path: str, from_line: int | None = None, line_count: int | None = None) -> GetResult:
        """Read lines of a memory file directly from disk (no index access).

        Relative paths are resolved against the memory directory.

        Raises:
            FileNotFoundError: If the file does not exist.
        """
        target = Path(path).expanduser()
        if not target.is_absolute():
            target = self.memory_dir / target
        result = read_slice(target, from_line, line_count)
        return GetResult(path=path, text=result.text)

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def status(self) -> IndexStatus:
        with self._db_lock:
            counts = {} if self._closed else self._repo.count_rows(fts=self.fts.available)
        if self._provider_resolved:
            provider = self._provider.id if self._provider else None
            model = self._provider.model if self._provider else None
        else:
            provider = self.config.embedding.provider
            model = self.config.embedding.model
        return IndexStatus(
            identity=self.identity,
            db_path=str(self.index_path),
            memory_dir=str(self.memory_dir),
            dirty=self._dirty,
            files=counts.get("files", 0),
            chunks=counts.get("chunks", 0),
            fts_rows=counts.get("chunks_fts", 0),
            vector_rows=counts.get("chunks_vec", 0),
            fts_available=self.fts.available,
            fts_reason=self.fts.reason,
            vector_available=self.vector.available,
            vector_reason=self.vector.reason,
            provider=provider,
            model=model,
        )

    # ------------------------------------------------------------------
    # Watch + interval
    # ------------------------------------------------------------------

    def _watch_roots(self) -> list[Path]:
        roots = [self.memory_dir]
        for extra in resolve_extra_paths(self.workspace_dir, self.config.extra_paths):
            if extra.exists() and extra not in roots:
                roots.append(extra)
        return roots

    def _start_watcher(self) -> None:
        if not self.config.sync.watch:
            return
        try:
            self.memory_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            logger.warning("cannot create memory dir %s, not watching: %s", self.memory_dir, exc)
            return
        self._watcher = threading.Thread(
            target=self._watch_loop,
            args=(self._watch_roots(),),
            name=f"mnemo-watch-{self.identity}",
            daemon=True,
        )
        self._watcher.start()

    def _watch_loop(self, roots: list[Path]) -> None:
        try:
            for _changes in watchfiles.watch(
                *roots,
                watch_filter=_is_memory_change,
                debounce=_WATCH_STEP_MS,
                step=_WATCH_STEP_MS,
                stop_event=self._stop,
                raise_interrupt=False,
            ):
                if self._closed:
                    break
                self.mark_dirty()
                self._schedule_watch_sync()
        except (OSError, RuntimeError) as exc:
            logger.warning("file watcher stopped for %s: %s", self.identity, exc)

    def _schedule_watch_sync(self) -> None:
        with self._timer_lock:
            if self._watch_timer is not None:
                self._watch_timer.cancel()
            if self._closed:
                self._watch_timer = None
                return
            timer = threading.Timer(self.config.sync.watch_debounce_ms / 1000, self._on_watch_timer)
            timer.daemon = True
            self._watch_timer = timer
            timer.start()

    def _on_watch_timer(self) -> None:
        with self._timer_lock:
            self._watch_timer = None
        self.sync(reason="watch")

    def _start_interval(self) -> None:
        if self.config.sync.interval_minutes <= 0:
            return
        self._interval = threading.Thread(
            target=self._interval_loop,
            name=f"mnemo-interval-{self.identity}",
            daemon=True,
        )
        self._interval.start()

    def _interval_loop(self) -> None:
        seconds = self.config.sync.interval_minutes * 60
        while not self._stop.wait(seconds):
            self.sync(reason="interval")

    # ------------------------------------------------------------------
    # Close
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Stop timers and the watcher, dispose the provider, close the DB.

        Safe to call more than once; only the first call does anything.
        """
        with self._state_lock:
            if self._closed:
                return
            self._closed = True

        self._stop.set()
        self._cancel.set()
        with self._timer_lock:
            if self._watch_timer is not None:
                self._watch_timer.cancel()
                self._watch_timer = None
        for thread in (self._watcher, self._interval):
            if thread is not None and thread is not threading.current_thread():
                thread.join(timeout=2.0)

        if self._provider is not None:
            try:
                self._provider.dispose()
            except Exception:
                logger.warning("embedding provider dispose failed for %s", self.identity, exc_info=True)
            self._provider = None

        with self._db_lock:
            self._db.close()
        logger.debug("closed memory index manager for %s", self.identity)

    def __enter__(self) -> MemoryIndexManager:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()
