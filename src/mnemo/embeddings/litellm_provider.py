"""Remote embeddings through LiteLLM (OpenAI, Cohere, Ollama, ...).

API keys come from the environment only, as LiteLLM expects
(e.g. OPENAI_API_KEY); config files never carry them.
"""

from __future__ import annotations

import logging
import threading

import litellm

from mnemo.embeddings.base import EmbeddingProvider
from mnemo.errors import EmbeddingError

logger = logging.getLogger(__name__)


class LiteLLMEmbeddingProvider(EmbeddingProvider):
    """``litellm.embedding()`` wrapper.

    Args:
        model: LiteLLM model string in provider/model form,
            e.g. ``openai/text-embedding-3-small``.
        cancel: Optional event; once set, further requests raise EmbeddingError
            instead of going to the network. A request already sent is not
            interrupted.
    """

    id = "litellm"

    def __init__(
        self,
        model: str,
        *,
        cancel: threading.Event | None = None,
        max_input_tokens: int | None = None,
    ) -> None:
        self.model = model
        self.max_input_tokens = max_input_tokens
        self._cancel = cancel or threading.Event()

    def cancel(self) -> None:
        self._cancel.set()

    def embed_query(self, text: str) -> list[float]:
        return self.embed_batch([text])[0]

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        if self._cancel.is_set():
            raise EmbeddingError("embedding request cancelled")
        try:
            response = litellm.embedding(model=self.model, input=texts)
        except Exception as exc:
            raise EmbeddingError(f"litellm embedding failed for '{self.model}': {exc}") from exc
        return [list(item["embedding"]) for item in response.data]

    def dispose(self) -> None:
        self._cancel.set()
