"""Host-side handle to a MemoryIndexManager running in its own process.

Indexing and embedding inference are CPU- and IO-heavy; running them in a
spawned process keeps the host's interactive loop responsive. The proxy
exposes the manager contract over a pipe:

  - every call gets a monotonically increasing request id and a
    ``concurrent.futures.Future`` resolved by a reader thread;
  - calls made before the worker's ``ready`` notification are queued and sent
    once it arrives;
  - ``dirty`` notifications keep ``is_dirty()`` answerable without a round trip;
  - if the worker dies, every pending and queued call fails with
    IsolationError and the proxy stays failed (no respawn).
"""

from __future__ import annotations

import logging
import multiprocessing
import threading
from collections.abc import Callable
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeoutError
from pathlib import Path
from typing import Any

from mnemo import paths
from mnemo.config import MemoryConfig, config_to_dict
from mnemo.errors import IsolationError, MnemoError
from mnemo.indexing.files import read_slice
from mnemo.types import GetResult, IndexStatus, QueryOptions, SearchResult, SyncReport
from mnemo.worker.process import run_worker
from mnemo.worker.protocol import NOTIFY_DIRTY, NOTIFY_READY, Notification, Request, Response, WorkerInit

logger = logging.getLogger(__name__)

CLOSE_TIMEOUT_S = 3.0


class WorkerRequestError(MnemoError):
    """The worker ran the request and reported an error."""


class WorkerMemoryProxy:
    """Run one identity's manager in a spawned process.

    Args:
        identity: Identity served by the worker.
        workspace_dir: Workspace for relative extra paths.
        config: Resolved configuration, sent to the worker as a dict.
        memory_dir: Optional memory dir override (also used by get()).
        index_path: Optional index file override.
        manager_factory: Picklable ``(init, on_dirty) -> manager`` run in
            the worker instead of the default.
        close_timeout: Seconds close() waits for the worker to acknowledge.
    """

    def __init__(
        self,
        identity: str,
        workspace_dir: Path | str | None = None,
        config: MemoryConfig | None = None,
        *,
        memory_dir: Path | str | None = None,
        index_path: Path | str | None = None,
        manager_factory: Callable[..., Any] | None = None,
        close_timeout: float = CLOSE_TIMEOUT_S,
    ) -> None:
        self.identity = identity
        self.config = config or MemoryConfig()
        self.memory_dir = Path(memory_dir) if memory_dir else paths.memory_dir(identity)
        self.close_timeout = close_timeout

        self._state_lock = threading.Lock()
        self._send_lock = threading.Lock()
        self._pending: dict[int, Future] = {}
        self._queued: list[Request] = []
        self._next_id = 1
        self._ready = False
        self._dirty = True
        self._closed = False
        self._failure: IsolationError | None = None

        init = WorkerInit(
            identity=identity,
            workspace_dir=str(workspace_dir) if workspace_dir else None,
            config=config_to_dict(self.config),
            memory_dir=str(memory_dir) if memory_dir else None,
            index_path=str(index_path) if index_path else None,
            manager_factory=manager_factory,
            log_level=logging.getLevelName(logging.getLogger("mnemo").getEffectiveLevel()),
        )
        ctx = multiprocessing.get_context("spawn")
        self._conn, child_conn = ctx.Pipe(duplex=True)
        self._process = ctx.Process(
            target=run_worker,
            args=(child_conn, init),
            name=f"mnemo-worker-{identity}",
            daemon=True,
        )
        self._process.start()
        child_conn.close()

        self._reader = threading.Thread(
            target=self._read_loop, name=f"mnemo-proxy-{identity}", daemon=True
        )
        self._reader.start()

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def ready(self) -> bool:
        return self._ready

    @property
    def pid(self) -> int | None:
        return self._process.pid

    @property
    def failed(self) -> bool:
        return self._failure is not None

    def is_dirty(self) -> bool:
        """Last value pushed by the worker (True until the first notification)."""
        return self._dirty

    # ------------------------------------------------------------------
    # Request plumbing
    # ------------------------------------------------------------------

    def submit(self, request_type: str, payload: dict[str, Any] | None = None) -> Future:
        """Send a request and return a Future for its response data."""
        future: Future = Future()
        with self._state_lock:
            if self._failure is not None:
                future.set_exception(self._failure)
                return future
            if self._closed and request_type != "close":
                future.set_exception(IsolationError(f"memory proxy for {self.identity} is closed"))
                return future
            request = Request(self._next_id, request_type, payload or {})
            self._next_id += 1
            self._pending[request.id] = future
            send_now = self._ready
            if not send_now:
                self._queued.append(request)
        if send_now:
            self._send(request)
        return future

    def _send(self, request: Request) -> None:
        try:
            with self._send_lock:
                self._conn.send(request)
        except (BrokenPipeError, OSError) as exc:
            with self._state_lock:
                future = self._pending.pop(request.id, None)
            if future is not None and not future.done():
                future.set_exception(IsolationError(f"memory worker for {self.identity} unreachable: {exc}"))

    def _read_loop(self) -> None:
        while True:
            try:
                message = self._conn.recv()
            except (EOFError, OSError):
                break
            if isinstance(message, Notification):
                self._on_notification(message)
            elif isinstance(message, Response):
                self._on_response(message)

        self._process.join(timeout=1.0)
        code = self._process.exitcode
        self._fail_all(IsolationError(f"memory worker for {self.identity} exited (exit code {code})"))

    def _on_notification(self, message: Notification) -> None:
        if message.type == NOTIFY_DIRTY:
            self._dirty = bool(message.value)
            return
        if message.type == NOTIFY_READY:
            with self._state_lock:
                self._ready = True
                queued, self._queued = self._queued, []
            for request in queued:
                self._send(request)

    def _on_response(self, message: Response) -> None:
        with self._state_lock:
            future = self._pending.pop(message.id, None)
        if future is None or future.done():
            return
        if message.ok:
            future.set_result(message.data)
        else:
            future.set_exception(WorkerRequestError(message.error or "memory worker request failed"))

    def _fail_all(self, error: IsolationError) -> None:
        with self._state_lock:
            if self._failure is None:
                self._failure = error
            pending = list(self._pending.values())
            self._pending.clear()
            self._queued.clear()
        for future in pending:
            if not future.done():
                future.set_exception(error)
        if pending:
            logger.warning("%s; rejected %d pending call(s)", error, len(pending))

    # ------------------------------------------------------------------
    # Manager contract
    # ------------------------------------------------------------------

    def submit_search(self, query: str, opts: QueryOptions | None = None) -> Future:
        return self.submit("search", {"query": query, "opts": (opts or QueryOptions()).to_dict()})

    def search(
        self, query: str, opts: QueryOptions | None = None, timeout: float | None = None
    ) -> list[SearchResult]:
        """Blocking search; waits for ``ready`` if the worker is still starting.

        Raises:
            IsolationError: If the worker is gone.
            WorkerRequestError: If the search raised inside the worker.
        """
        data = self.submit_search(query, opts).result(timeout)
        return [SearchResult.from_dict(item) for item in data]

    def sync(
        self, reason: str = "manual", force: bool = False, timeout: float | None = None
    ) -> SyncReport | list[SyncReport]:
        data = self.submit("sync", {"reason": reason, "force": force}).result(timeout)
        if isinstance(data, list):
            return [SyncReport.from_dict(item) for item in data]
        return SyncReport.from_dict(data)

    def sync_dirty(self, timeout: float | None = None) -> list[str]:
        return list(self.submit("sync_dirty").result(timeout))

    def status(self, timeout: float | None = None) -> IndexStatus | list[IndexStatus]:
        data = self.submit("status").result(timeout)
        if isinstance(data, list):
            return [IndexStatus.from_dict(item) for item in data]
        return IndexStatus.from_dict(data)

    def get(self, path: str, from_line: int | None = None, line_count: int | None = None) -> GetResult:
        """Read a memory file in the host process; the worker is not involved."""
        target = Path(path).expanduser()
        if not target.is_absolute():
            target = self.memory_dir / target
        result = read_slice(target, from_line, line_count)
        return GetResult(path=path, text=result.text)

    def close(self) -> None:
        """Ask the worker to close, then terminate it regardless of the answer.

        Never blocks for more than ``close_timeout`` plus a short join.
        """
        with self._state_lock:
            if self._closed:
                return
            self._closed = True

        if self._failure is None and self._process.is_alive():
            try:
                self.submit("close").result(self.close_timeout)
            except (FutureTimeoutError, MnemoError) as exc:
                logger.debug("memory worker close for %s did not complete: %s", self.identity, exc)

        self._process.join(timeout=0.5)
        if self._process.is_alive():
            self._process.terminate()
            self._process.join(timeout=1.0)
        if self._process.is_alive():
            self._process.kill()
            self._process.join(timeout=1.0)

        if self._reader is not threading.current_thread():
            self._reader.join(timeout=1.0)
        self._conn.close()
        self._fail_all(IsolationError(f"memory proxy for {self.identity} is closed"))

    def __enter__(self) -> WorkerMemoryProxy:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()
