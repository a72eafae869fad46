"""Shared pytest fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest

from memory_fakes import FakeEmbeddingProvider
from mnemo.config import MemoryConfig, resolve_config
from mnemo.db.connection import Database
from mnemo.db.schema import initialize
from mnemo.manager.index_manager import MemoryIndexManager


@pytest.fixture(autouse=True)
def _isolated_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point MNEMO_HOME at tmp_path and keep logs off disk for every test."""
    home = tmp_path / "mnemo-home"
    monkeypatch.setenv("MNEMO_HOME", str(home))
    monkeypatch.setenv("MNEMO_NO_LOG_FILE", "1")
    monkeypatch.delenv("MNEMO_EMBEDDING_PROVIDER", raising=False)
    monkeypatch.delenv("MNEMO_EMBEDDING_MODEL", raising=False)
    return home


@pytest.fixture
def tmp_db(tmp_path):
    """File-based DB in tmp_path with schema initialized, closed after test."""
    db = Database(tmp_path / "index.sqlite")
    conn = db.connect()
    initialize(conn)
    yield conn
    conn.close()


@pytest.fixture
def memory_config() -> MemoryConfig:
    """Keyword-only config without watcher or interval timer."""
    return resolve_config(
        {
            "embedding": {"provider": "none"},
            "chunking": {"tokens": 20, "overlap": 0},
            "sync": {"watch": False, "interval_minutes": 0},
        }
    )


@pytest.fixture
def memory_dir(tmp_path: Path) -> Path:
    path = tmp_path / "memory"
    path.mkdir()
    return path


@pytest.fixture
def fake_provider() -> FakeEmbeddingProvider:
    return FakeEmbeddingProvider()


@pytest.fixture
def make_manager(tmp_path: Path, memory_dir: Path, memory_config: MemoryConfig):
    """Factory for managers over tmp_path; all are closed after the test."""
    created: list[MemoryIndexManager] = []

    def _make(
        config: MemoryConfig | None = None,
        provider=None,
        identity: str = "test-agent",
        index_name: str = "index.sqlite",
    ) -> MemoryIndexManager:
        manager = MemoryIndexManager(
            identity,
            tmp_path,
            config or memory_config,
            memory_dir=memory_dir,
            index_path=tmp_path / index_name,
            provider=provider,
        )
        created.append(manager)
        return manager

    yield _make
    for manager in created:
        manager.close()
