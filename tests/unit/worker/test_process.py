"""Tests for request handling inside the worker."""

from __future__ import annotations

from pathlib import Path

import pytest

from mnemo.config import config_to_dict
from mnemo.manager.index_manager import MemoryIndexManager
from mnemo.manager.multi import MultiIdentityManager
from mnemo.worker.process import build_manager, handle_request
from mnemo.worker.protocol import Request, WorkerInit


@pytest.fixture
def init(tmp_path: Path, memory_dir: Path, memory_config) -> WorkerInit:
    (memory_dir / "notes.md").write_text("The canary runs for an hour.", encoding="utf-8")
    return WorkerInit(
        identity="agent",
        workspace_dir=str(tmp_path),
        config=config_to_dict(memory_config),
        memory_dir=str(memory_dir),
        index_path=str(tmp_path / "index.sqlite"),
    )


@pytest.fixture
def manager(init):
    m = build_manager(init, on_dirty=lambda value: None)
    yield m
    m.close()


def test_build_manager_single_identity(manager, init):
    assert isinstance(manager, MemoryIndexManager)
    assert str(manager.memory_dir) == init.memory_dir


def test_build_manager_scope_all(init):
    init.config["scope"] = "all"
    m = build_manager(init, on_dirty=lambda value: None)
    try:
        assert isinstance(m, MultiIdentityManager)
    finally:
        m.close()


def test_search_request_returns_plain_dicts(manager):
    response = handle_request(manager, Request(1, "search", {"query": "canary", "opts": {"max_results": 2}}))
    assert response.ok is True
    assert response.id == 1
    assert isinstance(response.data[0], dict)
    assert "canary" in response.data[0]["snippet"]


def test_sync_and_status_requests(manager):
    sync = handle_request(manager, Request(2, "sync", {"reason": "manual", "force": True}))
    assert sync.ok and sync.data["reason"] == "manual"
    assert len(sync.data["indexed"]) == 1

    status = handle_request(manager, Request(3, "status"))
    assert status.data["files"] == 1
    assert status.data["dirty"] is False


def test_sync_dirty_request(manager):
    assert handle_request(manager, Request(4, "sync_dirty")).data == ["agent"]


def test_failing_request_becomes_error_response():
    class Broken:
        def search(self, query, opts):
            raise RuntimeError("index corrupted")

    response = handle_request(Broken(), Request(5, "search", {"query": "x"}))
    assert response.ok is False
    assert "index corrupted" in response.error


def test_close_request_closes_manager(manager):
    response = handle_request(manager, Request(6, "close"))
    assert response.ok is True
    assert manager.closed is True
