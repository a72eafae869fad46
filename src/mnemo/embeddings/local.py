"""In-process embeddings with fastembed (ONNX, no server, no API key).

fastembed is an optional extra (``pip install 'mnemo[local]'``). The model is
downloaded and loaded on first use, not at construction.
"""

from __future__ import annotations

import logging
import math
import threading

from mnemo.embeddings.base import EmbeddingProvider
from mnemo.errors import EmbeddingError

logger = logging.getLogger(__name__)


def normalize_embedding(vector: list[float]) -> list[float]:
    """L2-normalise *vector*, replacing non-finite values with 0.

    A (near) zero vector is returned sanitised but unscaled.
    """
    sanitized = [v if math.isfinite(v) else 0.0 for v in vector]
    magnitude = math.sqrt(sum(v * v for v in sanitized))
    if magnitude < 1e-10:
        return sanitized
    return [v / magnitude for v in sanitized]


class LocalEmbeddingProvider(EmbeddingProvider):
    """fastembed ``TextEmbedding`` wrapper.

    Args:
        model: fastembed model name, e.g. ``BAAI/bge-small-en-v1.5``.
        cache_dir: Model download directory ('' = fastembed default).

    Raises:
        EmbeddingError: If fastembed is not installed.
    """

    id = "local"

    def __init__(self, model: str, cache_dir: str = "", max_input_tokens: int | None = None) -> None:
        try:
            from fastembed import TextEmbedding
        except ImportError as exc:
            raise EmbeddingError(
                "fastembed is not installed; install it with: pip install 'mnemo[local]'"
            ) from exc

        self.model = model
        self.max_input_tokens = max_input_tokens
        self._cache_dir = cache_dir or None
        self._factory = TextEmbedding
        self._model = None
        self._lock = threading.Lock()

    def _ensure_model(self):
        with self._lock:
            if self._model is None:
                logger.info("loading local embedding model %s", self.model)
                try:
                    self._model = self._factory(model_name=self.model, cache_dir=self._cache_dir)
                except Exception as exc:
                    raise EmbeddingError(f"cannot load embedding model '{self.model}': {exc}") from exc
            return self._model

    def embed_query(self, text: str) -> list[float]:
        return self.embed_batch([text])[0]

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        model = self._ensure_model()
        # fastembed yields numpy arrays lazily
        return [normalize_embedding(vec.tolist()) for vec in model.embed(texts)]

    def dispose(self) -> None:
        with self._lock:
            self._model = None
