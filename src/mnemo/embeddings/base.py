"""Embedding provider contract."""

from __future__ import annotations

from abc import ABC, abstractmethod


class EmbeddingProvider(ABC):
    """Turns text into fixed-width float vectors.

    Attributes:
        id: Provider family ('local', 'litellm'); part of the cache key.
        model: Model name; part of the cache key and of every chunk id.
        max_input_tokens: Largest input the model accepts, or None for the
            default budget (see mnemo.embeddings.pipeline).
    """

    id: str = ""
    model: str = ""
    max_input_tokens: int | None = None

    @abstractmethod
    def embed_query(self, text: str) -> list[float]:
        """Embed a single search query."""

    @abstractmethod
    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Embed *texts*, returning one vector per input in the same order."""

    def dispose(self) -> None:
        """Release model memory or network clients. Safe to call twice."""
