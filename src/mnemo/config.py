"""mnemo configuration loader.

Priority (high → low):
  1. Environment variables  (MNEMO_EMBEDDING_PROVIDER, MNEMO_EMBEDDING_MODEL)
  2. Per-workspace mnemo.yaml
  3. Global ~/.mnemo/config.yaml
  4. Hardcoded defaults

Every layer is optional and partial. Layers are deep-merged into one raw dict,
then ``resolve_config()`` turns that dict into a fully defaulted
``MemoryConfig`` with no optional leaves.

Config files must never contain API keys; use environment variables instead.
All YAML reads use yaml.safe_load() — never yaml.load().
"""

from __future__ import annotations

import dataclasses
import os
import re
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from mnemo.errors import ConfigError
from mnemo.paths import mnemo_home

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_GLOBAL_CONFIG_NAME: str = "config.yaml"
_PROJECT_CONFIG_NAME: str = "mnemo.yaml"

# Matches api_key, apikey, api-key, api_secret, *_token, token, *_secret,
# secret, password, passwd, credential(s). Does NOT match max_entries etc.
_API_KEY_RE: re.Pattern[str] = re.compile(
    r"api[_\-]?(?:key|secret)"
    r"|_token$"
    r"|^token$"
    r"|_secret$"
    r"|^secret$"
    r"|passw(?:ord|d)"
    r"|credential",
    re.IGNORECASE,
)

_KNOWN_SECTIONS: frozenset[str] = frozenset(
    [
        "enabled",
        "scope",
        "sources",
        "extra_paths",
        "embedding",
        "store",
        "chunking",
        "query",
        "sync",
        "cache",
    ]
)

SCOPES: tuple[str, ...] = ("self", "agent", "all")
SOURCES: tuple[str, ...] = ("memory", "sessions")
PROVIDERS: tuple[str, ...] = ("local", "litellm", "none")


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class EmbeddingCfg:
    """Embedding provider configuration (config.yaml: embedding:).

    Attributes:
        provider: 'local' (fastembed), 'litellm', or 'none' (keyword-only).
        model: Model name passed to the provider.
        cache_dir: Model download directory for the local provider ('' = library default).
        batch_size: Maximum texts per embed_batch() call.
        concurrency: Maximum batches in flight at once.
    """

    provider: str = "local"
    model: str = "BAAI/bge-small-en-v1.5"
    cache_dir: str = ""
    batch_size: int = 16
    concurrency: int = 2


@dataclass
class StoreCfg:
    """Storage capabilities (config.yaml: store:)."""

    vector_enabled: bool = True
    extension_path: str = ""  # custom sqlite-vec loadable; '' = bundled
    fts_enabled: bool = True


@dataclass
class ChunkingCfg:
    """Chunk size and overlap, in approximate tokens (4 chars ≈ 1 token)."""

    tokens: int = 400
    overlap: int = 80


@dataclass
class MmrCfg:
    """Diversity re-ranking knobs. Accepted but not applied to ranking."""

    enabled: bool = False
    lambda_: float = 0.7


@dataclass
class TemporalDecayCfg:
    """Recency decay knobs. Accepted but not applied to ranking."""

    enabled: bool = False
    half_life_days: float = 30.0


@dataclass
class HybridCfg:
    """Weighted keyword + vector fusion (config.yaml: query.hybrid:)."""

    enabled: bool = True
    vector_weight: float = 0.7
    text_weight: float = 0.3
    candidate_multiplier: float = 4.0
    mmr: MmrCfg = field(default_factory=MmrCfg)
    temporal_decay: TemporalDecayCfg = field(default_factory=TemporalDecayCfg)


@dataclass
class QueryCfg:
    """Query defaults (config.yaml: query:)."""

    max_results: int = 6
    min_score: float = 0.35
    hybrid: HybridCfg = field(default_factory=HybridCfg)


@dataclass
class SyncCfg:
    """When the index is brought up to date (config.yaml: sync:)."""

    on_session_start: bool = True
    on_search: bool = True
    watch: bool = True
    watch_debounce_ms: int = 1500
    interval_minutes: float = 10


@dataclass
class CacheCfg:
    """Embedding cache policy (config.yaml: cache:). max_entries 0 = unbounded."""

    enabled: bool = True
    max_entries: int = 0


@dataclass
class MemoryConfig:
    """Root configuration object, built by resolve_config() from merged layers."""

    enabled: bool = True
    scope: str = "self"
    sources: list[str] = field(default_factory=lambda: ["memory"])
    extra_paths: list[str] = field(default_factory=list)
    embedding: EmbeddingCfg = field(default_factory=EmbeddingCfg)
    store: StoreCfg = field(default_factory=StoreCfg)
    chunking: ChunkingCfg = field(default_factory=ChunkingCfg)
    query: QueryCfg = field(default_factory=QueryCfg)
    sync: SyncCfg = field(default_factory=SyncCfg)
    cache: CacheCfg = field(default_factory=CacheCfg)


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _check_no_api_keys(data: dict[str, Any], source: Path) -> None:
    """Raise ConfigError if *data* contains any API-key-like key names."""

    def _scan(obj: Any, path: str) -> None:
        if isinstance(obj, dict):
            for k, v in obj.items():
                full = f"{path}.{k}" if path else k
                if _API_KEY_RE.search(str(k)):
                    raise ConfigError(
                        f"Config '{source}' contains a forbidden key '{full}'.\n"
                        f"  API keys must be set via environment variables, not config files.\n"
                        f"  Remove '{full}' from {source.name} and use:\n"
                        f"    export {str(k).upper().replace('-', '_')}=<value>"
                    )
                _scan(v, full)

    _scan(data, "")


def _warn_unknown_keys(data: dict[str, Any], source: Path) -> None:
    """Emit a UserWarning for unrecognised top-level keys."""
    for key in data:
        if key not in _KNOWN_SECTIONS:
            warnings.warn(
                f"Unknown config key '{key}' in '{source}' — ignored.",
                UserWarning,
                stacklevel=4,
            )


def _choice(value: Any, allowed: tuple[str, ...], name: str) -> str:
    text = str(value)
    if text not in allowed:
        raise ConfigError(
            f"{name} must be one of {', '.join(allowed)}; got '{text}'."
        )
    return text


def _non_negative(value: Any, name: str, cast: type = float) -> Any:
    try:
        number = cast(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{name} must be a number; got {value!r}.") from exc
    if number < 0:
        raise ConfigError(f"{name} must be >= 0; got {number}.")
    return number


# ---------------------------------------------------------------------------
# Merge + build
# ---------------------------------------------------------------------------


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return a new dict that is *base* deep-merged with *override*."""
    result = dict(base)
    for k, v in override.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


def _section(data: dict[str, Any], key: str) -> dict[str, Any]:
    value = data.get(key) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"'{key}' must be a mapping; got {type(value).__name__}.")
    return value


def resolve_config(overrides: dict[str, Any] | None = None) -> MemoryConfig:
    """Build a fully defaulted *MemoryConfig* from a partial raw dict.

    Pure: no file or environment access, and the result shares no mutable
    state with the module defaults.

    Raises:
        ConfigError: If an enum-like field has an unknown value or a numeric
            field is negative.
    """
    data = overrides or {}
    d = MemoryConfig()

    e = _section(data, "embedding")
    embedding = EmbeddingCfg(
        provider=_choice(e.get("provider", d.embedding.provider), PROVIDERS, "embedding.provider"),
        model=str(e.get("model", d.embedding.model)),
        cache_dir=str(e.get("cache_dir", d.embedding.cache_dir) or ""),
        batch_size=max(1, int(e.get("batch_size", d.embedding.batch_size))),
        concurrency=max(1, int(e.get("concurrency", d.embedding.concurrency))),
    )

    st = _section(data, "store")
    store = StoreCfg(
        vector_enabled=bool(st.get("vector_enabled", d.store.vector_enabled)),
        extension_path=str(st.get("extension_path", d.store.extension_path) or ""),
        fts_enabled=bool(st.get("fts_enabled", d.store.fts_enabled)),
    )

    ch = _section(data, "chunking")
    chunking = ChunkingCfg(
        tokens=_non_negative(ch.get("tokens", d.chunking.tokens), "chunking.tokens", int),
        overlap=_non_negative(ch.get("overlap", d.chunking.overlap), "chunking.overlap", int),
    )

    q = _section(data, "query")
    h = _section(q, "hybrid")
    mmr = _section(h, "mmr")
    decay = _section(h, "temporal_decay")
    dh = d.query.hybrid
    query = QueryCfg(
        max_results=max(1, int(q.get("max_results", d.query.max_results))),
        min_score=float(q.get("min_score", d.query.min_score)),
        hybrid=HybridCfg(
            enabled=bool(h.get("enabled", dh.enabled)),
            vector_weight=_non_negative(h.get("vector_weight", dh.vector_weight), "query.hybrid.vector_weight"),
            text_weight=_non_negative(h.get("text_weight", dh.text_weight), "query.hybrid.text_weight"),
            candidate_multiplier=_non_negative(
                h.get("candidate_multiplier", dh.candidate_multiplier),
                "query.hybrid.candidate_multiplier",
            ),
            mmr=MmrCfg(
                enabled=bool(mmr.get("enabled", dh.mmr.enabled)),
                lambda_=float(mmr.get("lambda", mmr.get("lambda_", dh.mmr.lambda_))),
            ),
            temporal_decay=TemporalDecayCfg(
                enabled=bool(decay.get("enabled", dh.temporal_decay.enabled)),
                half_life_days=float(decay.get("half_life_days", dh.temporal_decay.half_life_days)),
            ),
        ),
    )

    sy = _section(data, "sync")
    sync = SyncCfg(
        on_session_start=bool(sy.get("on_session_start", d.sync.on_session_start)),
        on_search=bool(sy.get("on_search", d.sync.on_search)),
        watch=bool(sy.get("watch", d.sync.watch)),
        watch_debounce_ms=_non_negative(
            sy.get("watch_debounce_ms", d.sync.watch_debounce_ms), "sync.watch_debounce_ms", int
        ),
        interval_minutes=_non_negative(
            sy.get("interval_minutes", d.sync.interval_minutes), "sync.interval_minutes"
        ),
    )

    ca = _section(data, "cache")
    cache = CacheCfg(
        enabled=bool(ca.get("enabled", d.cache.enabled)),
        max_entries=_non_negative(ca.get("max_entries", d.cache.max_entries), "cache.max_entries", int),
    )

    sources = [_choice(s, SOURCES, "sources[]") for s in data.get("sources", d.sources)]
    extra_paths = [str(p) for p in data.get("extra_paths", d.extra_paths)]

    return MemoryConfig(
        enabled=bool(data.get("enabled", d.enabled)),
        scope=_choice(data.get("scope", d.scope), SCOPES, "scope"),
        sources=sources,
        extra_paths=extra_paths,
        embedding=embedding,
        store=store,
        chunking=chunking,
        query=query,
        sync=sync,
        cache=cache,
    )


def config_to_dict(cfg: MemoryConfig) -> dict[str, Any]:
    """Serialise *cfg* to the raw dict form accepted by resolve_config()."""
    raw = dataclasses.asdict(cfg)
    mmr = raw["query"]["hybrid"]["mmr"]
    mmr["lambda"] = mmr.pop("lambda_")
    return raw


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    """Apply MNEMO_* environment variable overrides (highest layer)."""
    env: dict[str, Any] = {}
    if provider := os.environ.get("MNEMO_EMBEDDING_PROVIDER"):
        env.setdefault("embedding", {})["provider"] = provider
    if model := os.environ.get("MNEMO_EMBEDDING_MODEL"):
        env.setdefault("embedding", {})["model"] = model
    return _deep_merge(data, env) if env else data


def _read_yaml(path: Path) -> dict[str, Any]:
    raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(raw, dict):
        raise ConfigError(f"Config '{path}' must contain a YAML mapping at the top level.")
    return raw


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def global_config_path() -> Path:
    return mnemo_home() / _GLOBAL_CONFIG_NAME


def load_config(
    workspace_dir: Path | None = None,
    *,
    global_config: Path | None = None,
) -> MemoryConfig:
    """Load and return a merged *MemoryConfig*.

    Applies layers in order: global → per-workspace → env vars.

    Args:
        workspace_dir: Directory to search for *mnemo.yaml*. Defaults to CWD.
        global_config: Override the global config path (for testing).

    Raises:
        ConfigError: If a config file contains API-key-like fields or invalid values.
    """
    global_path = global_config if global_config is not None else global_config_path()
    search_dir = workspace_dir if workspace_dir is not None else Path.cwd()

    merged: dict[str, Any] = {}

    for path in (global_path, search_dir / _PROJECT_CONFIG_NAME):
        if path.exists():
            raw = _read_yaml(path)
            _check_no_api_keys(raw, path)
            _warn_unknown_keys(raw, path)
            merged = _deep_merge(merged, raw)

    return resolve_config(_apply_env_overrides(merged))


def ensure_global_config(global_config: Path | None = None) -> Path:
    """Create ``~/.mnemo/config.yaml`` with defaults if it does not exist.

    Creates the parent directory with mode 0o700 and the file with 0o600.
    """
    target = global_config if global_config is not None else global_config_path()
    target.parent.mkdir(mode=0o700, parents=True, exist_ok=True)

    if not target.exists():
        content = (
            "# mnemo global configuration.\n"
            "# NEVER store API keys here — use environment variables:\n"
            "#   export OPENAI_API_KEY=sk-...\n"
            "\n"
            "embedding:\n"
            "  provider: local\n"
            "  model: BAAI/bge-small-en-v1.5\n"
            "\n"
            "query:\n"
            "  max_results: 6\n"
            "  min_score: 0.35\n"
        )
        target.write_text(content, encoding="utf-8")
        target.chmod(0o600)

    return target


def config_from_dict(raw: dict[str, Any]) -> MemoryConfig:
    """Inverse of config_to_dict(); used to rebuild the config in the worker."""
    return resolve_config(raw)
