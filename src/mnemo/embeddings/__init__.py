"""Embedding providers, batching, and the content-hash cache."""

from mnemo.embeddings.base import EmbeddingProvider
from mnemo.embeddings.pipeline import embed_chunks, enforce_max_input
from mnemo.embeddings.provider import create_embedding_provider

__all__ = [
    "EmbeddingProvider",
    "create_embedding_provider",
    "embed_chunks",
    "enforce_max_input",
]
