"""Embedding provider factory."""

from __future__ import annotations

import threading

from mnemo.config import EmbeddingCfg
from mnemo.embeddings.base import EmbeddingProvider
from mnemo.embeddings.litellm_provider import LiteLLMEmbeddingProvider
from mnemo.embeddings.local import LocalEmbeddingProvider


def create_embedding_provider(
    config: EmbeddingCfg,
    *,
    cancel: threading.Event | None = None,
) -> EmbeddingProvider | None:
    """Build the provider named by ``config.provider``.

    Returns:
        None for provider 'none' (keyword-only index).

    Raises:
        EmbeddingError: If the provider cannot be created (missing extra).
    """
    if config.provider == "none":
        return None
    if config.provider == "litellm":
        return LiteLLMEmbeddingProvider(config.model, cancel=cancel)
    return LocalEmbeddingProvider(config.model, cache_dir=config.cache_dir)
