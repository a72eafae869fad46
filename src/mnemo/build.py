"""Explicit index builds (``mnemo index``).

full:  drop the identity's partition and reindex every file.
dirty: sync only if the index is stale.
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass, field
from pathlib import Path

from mnemo.config import MemoryConfig
from mnemo.manager.index_manager import MemoryIndexManager
from mnemo.manager.registry import MemoryRegistry
from mnemo.paths import derive_identity

logger = logging.getLogger(__name__)

BUILD_MODES: tuple[str, ...] = ("full", "dirty")


@dataclass
class BuildResult:
    ok: bool
    message: str
    identities: list[str] = field(default_factory=list)


def one_shot_config(config: MemoryConfig) -> MemoryConfig:
    """Copy of *config* without the watcher and periodic timer."""
    sync = dataclasses.replace(config.sync, watch=False, interval_minutes=0)
    return dataclasses.replace(config, sync=sync)


def build_memory_index(
    workspace_dir: Path,
    mode: str,
    config: MemoryConfig,
    *,
    registry: MemoryRegistry | None = None,
    identity: str | None = None,
    memory_dir: Path | None = None,
    index_path: Path | None = None,
) -> BuildResult:
    """Build the index for the identity derived from *workspace_dir*.

    With a *registry*, a full build first releases the identity's live
    manager so the index file is not shared, and a dirty build goes through
    the live manager (nothing to do if there is none). Without one, a
    temporary in-process manager is used.
    """
    if mode not in BUILD_MODES:
        raise ValueError(f"mode must be one of {', '.join(BUILD_MODES)}; got '{mode}'")
    if not config.enabled:
        return BuildResult(False, "Memory search is disabled in config.")
    if "memory" not in config.sources:
        return BuildResult(False, "Config sources do not include 'memory'.")

    identity = identity or derive_identity(workspace_dir)
    logger.info("build %s start for %s", mode, identity)

    if mode == "dirty" and registry is not None:
        manager = registry.peek(identity)
        if manager is None:
            return BuildResult(True, "No active memory manager found. Nothing to sync.")
        if not manager.is_dirty():
            return BuildResult(True, "Memory index is up to date (not dirty).")
        synced = manager.sync_dirty()
        logger.info("build dirty complete for %s: %d synced", identity, len(synced))
        message = "Dirty sync completed." if synced else "Dirty sync did not complete; see the log."
        return BuildResult(bool(synced), message, synced)

    if mode == "full" and registry is not None:
        registry.release(identity)

    manager = MemoryIndexManager(
        identity,
        workspace_dir,
        one_shot_config(config),
        memory_dir=memory_dir,
        index_path=index_path,
    )
    try:
        if mode == "full":
            manager.reset()
            report = manager.sync(reason="build-full", force=True)
        else:
            report = manager.sync(reason="build-dirty")
    finally:
        manager.close()

    if report.error:
        return BuildResult(False, f"Index build failed: {report.error}", [identity])
    logger.info("build %s complete for %s", mode, identity)
    return BuildResult(
        True,
        f"{mode.capitalize()} build for {identity}: {len(report.indexed)} indexed, "
        f"{report.skipped} unchanged, {len(report.removed)} removed.",
        [identity],
    )
