"""Tests for the LiteLLM embedding provider."""

from __future__ import annotations

import threading
from unittest.mock import MagicMock, patch

import pytest

from mnemo.embeddings.litellm_provider import LiteLLMEmbeddingProvider
from mnemo.errors import EmbeddingError

MODEL = "openai/text-embedding-3-small"


def _response(vectors: list[list[float]]) -> MagicMock:
    response = MagicMock()
    response.data = [{"embedding": v} for v in vectors]
    return response


def test_embed_batch_calls_litellm():
    provider = LiteLLMEmbeddingProvider(MODEL)
    with patch(
        "mnemo.embeddings.litellm_provider.litellm.embedding",
        return_value=_response([[0.1, 0.2], [0.3, 0.4]]),
    ) as mock_embed:
        vectors = provider.embed_batch(["a", "b"])
    mock_embed.assert_called_once_with(model=MODEL, input=["a", "b"])
    assert vectors == [[0.1, 0.2], [0.3, 0.4]]


def test_embed_query_returns_single_vector():
    provider = LiteLLMEmbeddingProvider(MODEL)
    with patch(
        "mnemo.embeddings.litellm_provider.litellm.embedding",
        return_value=_response([[1.0, 0.0]]),
    ):
        assert provider.embed_query("deploy") == [1.0, 0.0]


def test_empty_batch_skips_network():
    provider = LiteLLMEmbeddingProvider(MODEL)
    with patch("mnemo.embeddings.litellm_provider.litellm.embedding") as mock_embed:
        assert provider.embed_batch([]) == []
    mock_embed.assert_not_called()


def test_errors_are_wrapped():
    provider = LiteLLMEmbeddingProvider(MODEL)
    with patch(
        "mnemo.embeddings.litellm_provider.litellm.embedding",
        side_effect=RuntimeError("rate limited"),
    ):
        with pytest.raises(EmbeddingError, match="rate limited"):
            provider.embed_batch(["a"])


def test_cancelled_provider_does_not_call_litellm():
    cancel = threading.Event()
    provider = LiteLLMEmbeddingProvider(MODEL, cancel=cancel)
    cancel.set()
    with patch("mnemo.embeddings.litellm_provider.litellm.embedding") as mock_embed:
        with pytest.raises(EmbeddingError, match="cancelled"):
            provider.embed_batch(["a"])
    mock_embed.assert_not_called()


def test_dispose_cancels():
    provider = LiteLLMEmbeddingProvider(MODEL)
    provider.dispose()
    with pytest.raises(EmbeddingError):
        provider.embed_batch(["a"])


def test_identity_attributes():
    provider = LiteLLMEmbeddingProvider(MODEL, max_input_tokens=8191)
    assert provider.id == "litellm"
    assert provider.model == MODEL
    assert provider.max_input_tokens == 8191
