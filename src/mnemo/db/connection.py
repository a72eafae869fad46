"""SQLite connection layer with an optional sqlite-vec extension."""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from pathlib import Path

import sqlite_vec

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Capability:
    """Result of a startup probe for an optional storage feature.

    Attributes:
        available: True if the feature can be used for the lifetime of the handle.
        reason: Why the feature is unavailable (None when available).
    """

    available: bool
    reason: str | None = None

    @classmethod
    def ok(cls) -> Capability:
        return cls(True)

    @classmethod
    def unavailable(cls, reason: str) -> Capability:
        return cls(False, reason)


class Database:
    """Per-identity SQLite index database.

    sqlite-vec is loaded at connect() time when ``vector_enabled`` is set.
    A load failure is recorded in ``vector`` and logged; it never raises.
    """

    def __init__(
        self,
        db_path: Path | str,
        *,
        vector_enabled: bool = True,
        extension_path: str = "",
    ) -> None:
        """Store the database path. Call connect() to open the connection.

        Args:
            db_path: Path to the SQLite database file (created if missing).
            vector_enabled: Try to load sqlite-vec on connect.
            extension_path: Custom sqlite-vec loadable path ('' = bundled).
        """
        self.db_path = Path(db_path)
        self.vector_enabled = vector_enabled
        self.extension_path = extension_path.strip()
        self.vector = Capability.unavailable("not probed")
        self._conn: sqlite3.Connection | None = None

    def connect(self) -> sqlite3.Connection:
        """Open a connection, probe sqlite-vec, and return the connection.

        The connection may be used from the manager's watcher and timer
        threads; callers serialize access with their own lock.
        """
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self.db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode = WAL")
        conn.execute("PRAGMA busy_timeout = 5000")
        self.vector = self._probe_vector(conn)
        self._conn = conn
        return conn

    def _probe_vector(self, conn: sqlite3.Connection) -> Capability:
        if not self.vector_enabled:
            return Capability.unavailable("disabled in config")
        try:
            conn.enable_load_extension(True)
            if self.extension_path:
                conn.load_extension(self.extension_path)
            else:
                sqlite_vec.load(conn)
            conn.enable_load_extension(False)
        except (sqlite3.Error, AttributeError, OSError) as exc:
            # AttributeError: interpreter built without extension loading.
            logger.warning("sqlite-vec unavailable for %s: %s", self.db_path, exc)
            return Capability.unavailable(str(exc))
        return Capability.ok()

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __enter__(self) -> sqlite3.Connection:
        """Open the database and return the connection (context manager support)."""
        return self.connect()

    def __exit__(self, *args: object) -> None:
        """Close the connection when leaving the context manager."""
        self.close()
