"""Host lifecycle hooks.

The host agent calls these from its session events. Both return a Future for
the background sync they started, or None when there was nothing to do; the
host never blocks on indexing.

Session compaction is handled outside mnemo: the transcript-capture
collaborator writes new notes into the memory directory, and the watcher
picks them up like any other edit.
"""

from __future__ import annotations

import logging
from concurrent.futures import Future

from mnemo.manager.registry import MemoryRegistry

logger = logging.getLogger(__name__)


def on_session_start(registry: MemoryRegistry, identity: str) -> Future | None:
    """Create the identity's manager and start a warm sync if configured."""
    manager = registry.get(identity)
    if manager is None:
        return None
    if not registry.config.sync.on_session_start:
        return None
    logger.debug("session start: warm sync for %s", identity)
    return registry.submit(manager.sync, reason="session-start")


def on_turn(registry: MemoryRegistry, identity: str) -> Future | None:
    """Sync in the background if the identity's index is dirty."""
    manager = registry.peek(identity)
    if manager is None or not manager.is_dirty():
        return None
    return registry.submit(manager.sync, reason="turn")
