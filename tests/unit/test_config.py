"""Tests for the mnemo config loader."""

from __future__ import annotations

import stat
import warnings
from pathlib import Path

import pytest
import yaml

from mnemo.config import (
    MemoryConfig,
    config_from_dict,
    config_to_dict,
    ensure_global_config,
    load_config,
    resolve_config,
)
from mnemo.errors import ConfigError


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _write_yaml(path: Path, data: dict) -> None:
    path.write_text(yaml.dump(data), encoding="utf-8")


# ---------------------------------------------------------------------------
# resolve_config
# ---------------------------------------------------------------------------


def test_resolve_config_defaults() -> None:
    cfg = resolve_config({})
    assert cfg.enabled is True
    assert cfg.scope == "self"
    assert cfg.sources == ["memory"]
    assert cfg.embedding.provider == "local"
    assert cfg.chunking.tokens == 400
    assert cfg.chunking.overlap == 80
    assert cfg.query.max_results == 6
    assert cfg.query.min_score == 0.35
    assert cfg.query.hybrid.vector_weight == 0.7
    assert cfg.query.hybrid.text_weight == 0.3
    assert cfg.query.hybrid.candidate_multiplier == 4
    assert cfg.query.hybrid.mmr.lambda_ == 0.7
    assert cfg.sync.watch_debounce_ms == 1500
    assert cfg.cache.max_entries == 0


def test_resolve_config_none_equals_empty() -> None:
    assert resolve_config(None) == resolve_config({})


def test_resolve_config_partial_nested_override() -> None:
    cfg = resolve_config({"query": {"hybrid": {"vector_weight": 0.5}}})
    assert cfg.query.hybrid.vector_weight == 0.5
    # Siblings keep their defaults
    assert cfg.query.hybrid.text_weight == 0.3
    assert cfg.query.max_results == 6


def test_resolve_config_does_not_share_mutable_defaults() -> None:
    a = resolve_config({})
    b = resolve_config({})
    a.extra_paths.append("notes")
    assert b.extra_paths == []


def test_resolve_config_accepts_mmr_lambda_key() -> None:
    cfg = resolve_config({"query": {"hybrid": {"mmr": {"enabled": True, "lambda": 0.4}}}})
    assert cfg.query.hybrid.mmr.enabled is True
    assert cfg.query.hybrid.mmr.lambda_ == 0.4


@pytest.mark.parametrize(
    "raw",
    [
        {"embedding": {"provider": "openai"}},
        {"scope": "team"},
        {"sources": ["memory", "web"]},
    ],
)
def test_resolve_config_rejects_unknown_choices(raw: dict) -> None:
    with pytest.raises(ConfigError):
        resolve_config(raw)


@pytest.mark.parametrize(
    "raw",
    [
        {"chunking": {"tokens": -1}},
        {"query": {"hybrid": {"text_weight": -0.1}}},
        {"sync": {"interval_minutes": -5}},
        {"cache": {"max_entries": -1}},
    ],
)
def test_resolve_config_rejects_negative_numbers(raw: dict) -> None:
    with pytest.raises(ConfigError):
        resolve_config(raw)


def test_resolve_config_section_must_be_mapping() -> None:
    with pytest.raises(ConfigError, match="mapping"):
        resolve_config({"query": ["max_results"]})


def test_config_error_is_value_error() -> None:
    with pytest.raises(ValueError):
        resolve_config({"scope": "nobody"})


def test_config_dict_round_trip() -> None:
    cfg = resolve_config(
        {
            "scope": "all",
            "extra_paths": ["docs/notes"],
            "query": {"hybrid": {"mmr": {"lambda": 0.2}}},
        }
    )
    raw = config_to_dict(cfg)
    assert raw["query"]["hybrid"]["mmr"]["lambda"] == 0.2
    assert config_from_dict(raw) == cfg


# ---------------------------------------------------------------------------
# load_config layering
# ---------------------------------------------------------------------------


def test_load_config_defaults_no_files(tmp_path: Path) -> None:
    missing_global = tmp_path / "nonexistent" / "config.yaml"
    cfg = load_config(tmp_path, global_config=missing_global)
    assert cfg == MemoryConfig()


def test_load_config_global_overrides_defaults(tmp_path: Path) -> None:
    global_cfg = tmp_path / "config.yaml"
    _write_yaml(global_cfg, {"embedding": {"provider": "litellm", "model": "openai/text-embedding-3-small"}})

    cfg = load_config(tmp_path, global_config=global_cfg)
    assert cfg.embedding.provider == "litellm"
    assert cfg.embedding.model == "openai/text-embedding-3-small"
    assert cfg.query.max_results == 6


def test_load_config_project_overrides_global(tmp_path: Path) -> None:
    global_cfg = tmp_path / "config.yaml"
    _write_yaml(global_cfg, {"query": {"max_results": 10, "min_score": 0.5}})
    project = tmp_path / "project"
    project.mkdir()
    _write_yaml(project / "mnemo.yaml", {"query": {"max_results": 3}})

    cfg = load_config(project, global_config=global_cfg)
    assert cfg.query.max_results == 3
    # Deep merge keeps the global value for untouched keys
    assert cfg.query.min_score == 0.5


def test_load_config_empty_files(tmp_path: Path) -> None:
    global_cfg = tmp_path / "config.yaml"
    global_cfg.write_text("", encoding="utf-8")
    (tmp_path / "mnemo.yaml").write_text("# nothing\n", encoding="utf-8")

    cfg = load_config(tmp_path, global_config=global_cfg)
    assert cfg == MemoryConfig()


def test_load_config_non_mapping_raises(tmp_path: Path) -> None:
    (tmp_path / "mnemo.yaml").write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ConfigError, match="mapping"):
        load_config(tmp_path, global_config=tmp_path / "missing.yaml")


@pytest.mark.parametrize("bad_key", ["api_key", "openai_api_key", "token", "auth_token", "password"])
def test_config_rejects_api_key_fields(tmp_path: Path, bad_key: str) -> None:
    global_cfg = tmp_path / "config.yaml"
    _write_yaml(global_cfg, {bad_key: "sk-secret"})
    with pytest.raises(ConfigError, match="forbidden"):
        load_config(tmp_path, global_config=global_cfg)


def test_config_rejects_nested_api_key(tmp_path: Path) -> None:
    _write_yaml(tmp_path / "mnemo.yaml", {"embedding": {"api_key": "sk-secret"}})
    with pytest.raises(ConfigError, match="embedding.api_key"):
        load_config(tmp_path, global_config=tmp_path / "missing.yaml")


def test_max_entries_is_not_mistaken_for_secret(tmp_path: Path) -> None:
    _write_yaml(tmp_path / "mnemo.yaml", {"cache": {"max_entries": 100}})
    cfg = load_config(tmp_path, global_config=tmp_path / "missing.yaml")
    assert cfg.cache.max_entries == 100


def test_unknown_top_level_key_warns(tmp_path: Path) -> None:
    _write_yaml(tmp_path / "mnemo.yaml", {"mystery": True})
    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        load_config(tmp_path, global_config=tmp_path / "missing.yaml")
    assert any("mystery" in str(w.message) for w in caught)


def test_env_var_overrides_files(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _write_yaml(tmp_path / "mnemo.yaml", {"embedding": {"provider": "local"}})
    monkeypatch.setenv("MNEMO_EMBEDDING_PROVIDER", "none")
    monkeypatch.setenv("MNEMO_EMBEDDING_MODEL", "custom-model")

    cfg = load_config(tmp_path, global_config=tmp_path / "missing.yaml")
    assert cfg.embedding.provider == "none"
    assert cfg.embedding.model == "custom-model"


def test_env_var_invalid_provider_raises(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MNEMO_EMBEDDING_PROVIDER", "telepathy")
    with pytest.raises(ConfigError):
        load_config(tmp_path, global_config=tmp_path / "missing.yaml")


# ---------------------------------------------------------------------------
# ensure_global_config
# ---------------------------------------------------------------------------


def test_ensure_global_config_creates_file(tmp_path: Path) -> None:
    target = tmp_path / "home" / "config.yaml"
    result = ensure_global_config(target)
    assert result == target
    assert target.exists()
    data = yaml.safe_load(target.read_text(encoding="utf-8"))
    assert data["embedding"]["provider"] == "local"


def test_ensure_global_config_file_mode(tmp_path: Path) -> None:
    target = tmp_path / "home" / "config.yaml"
    ensure_global_config(target)
    assert stat.S_IMODE(target.stat().st_mode) == 0o600


def test_ensure_global_config_idempotent(tmp_path: Path) -> None:
    target = tmp_path / "config.yaml"
    target.write_text("query:\n  max_results: 2\n", encoding="utf-8")
    ensure_global_config(target)
    assert "max_results: 2" in target.read_text(encoding="utf-8")


def test_generated_global_config_loads(tmp_path: Path) -> None:
    target = ensure_global_config(tmp_path / "config.yaml")
    cfg = load_config(tmp_path / "workspace", global_config=target)
    assert cfg.query.min_score == 0.35
