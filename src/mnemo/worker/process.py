"""Worker process entry point: owns one manager and serves requests."""

from __future__ import annotations

import logging
import threading
from multiprocessing.connection import Connection
from typing import Any

from mnemo.config import config_from_dict
from mnemo.logging_config import configure_logging
from mnemo.manager.index_manager import MemoryIndexManager
from mnemo.manager.multi import MultiIdentityManager
from mnemo.types import QueryOptions
from mnemo.worker.protocol import NOTIFY_DIRTY, NOTIFY_READY, Notification, Request, Response, WorkerInit

logger = logging.getLogger(__name__)


def build_manager(init: WorkerInit, on_dirty) -> Any:
    """Default factory: MultiIdentityManager for scope 'all', else MemoryIndexManager."""
    config = config_from_dict(init.config)
    if config.scope == "all":
        return MultiIdentityManager(init.workspace_dir, config, on_dirty=on_dirty)
    return MemoryIndexManager(
        init.identity,
        init.workspace_dir,
        config,
        memory_dir=init.memory_dir,
        index_path=init.index_path,
        on_dirty=on_dirty,
    )


def _plain(value: Any) -> Any:
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if isinstance(value, list):
        return [_plain(v) for v in value]
    return value


def handle_request(manager: Any, request: Request) -> Response:
    """Run *request* against *manager*; any exception becomes an error response."""
    payload = request.payload
    try:
        if request.type == "search":
            data = manager.search(payload.get("query", ""), QueryOptions.from_dict(payload.get("opts")))
        elif request.type == "sync":
            data = manager.sync(reason=payload.get("reason", "manual"), force=bool(payload.get("force")))
        elif request.type == "sync_dirty":
            data = manager.sync_dirty()
        elif request.type == "status":
            data = manager.status()
        else:
            manager.close()
            data = None
    except Exception as exc:
        logger.exception("memory worker request %s (%s) failed", request.id, request.type)
        return Response(request.id, ok=False, error=f"{type(exc).__name__}: {exc}")
    return Response(request.id, ok=True, data=_plain(data))


def run_worker(conn: Connection, init: WorkerInit) -> None:
    """Serve requests on *conn* until ``close`` arrives or the host goes away.

    Initialization failures are logged and re-raised, so the process exits
    non-zero and the proxy fails every pending call.
    """
    configure_logging(init.log_level)
    send_lock = threading.Lock()

    def post(message: Notification | Response) -> None:
        with send_lock:
            try:
                conn.send(message)
            except (BrokenPipeError, OSError):
                logger.debug("host pipe closed; dropping %s", message)

    def on_dirty(value: bool) -> None:
        post(Notification(NOTIFY_DIRTY, bool(value)))

    factory = init.manager_factory or build_manager
    try:
        manager = factory(init, on_dirty)
    except Exception:
        logger.exception("memory worker init failed for %s", init.identity)
        raise

    post(Notification(NOTIFY_READY))
    post(Notification(NOTIFY_DIRTY, bool(manager.is_dirty())))
    logger.info("memory worker ready for %s", init.identity)

    try:
        while True:
            try:
                request = conn.recv()
            except (EOFError, OSError):
                logger.info("host went away; memory worker for %s exiting", init.identity)
                break
            response = handle_request(manager, request)
            post(response)
            if request.type == "close":
                return
    finally:
        manager.close()
        conn.close()
