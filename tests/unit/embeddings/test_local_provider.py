"""Tests for the fastembed provider and vector normalisation."""

from __future__ import annotations

import math
import sys
from unittest.mock import MagicMock, patch

import pytest

from mnemo.embeddings.local import LocalEmbeddingProvider, normalize_embedding
from mnemo.errors import EmbeddingError


def test_normalize_embedding_unit_length():
    vec = normalize_embedding([3.0, 4.0])
    assert vec == pytest.approx([0.6, 0.8])
    assert math.isclose(sum(v * v for v in vec), 1.0)


def test_normalize_embedding_sanitizes_non_finite():
    assert normalize_embedding([float("nan"), 2.0, float("inf")]) == [0.0, 1.0, 0.0]


def test_normalize_embedding_zero_vector():
    assert normalize_embedding([0.0, 0.0]) == [0.0, 0.0]


def _fake_fastembed(vectors):
    module = MagicMock()
    model = MagicMock()
    model.embed.return_value = iter([MagicMock(tolist=MagicMock(return_value=v)) for v in vectors])
    module.TextEmbedding.return_value = model
    return module


def test_model_loads_lazily_and_normalizes():
    fake = _fake_fastembed([[0.0, 2.0]])
    with patch.dict(sys.modules, {"fastembed": fake}):
        provider = LocalEmbeddingProvider("BAAI/bge-small-en-v1.5", cache_dir="/tmp/models")
        fake.TextEmbedding.assert_not_called()
        assert provider.embed_batch(["hello"]) == [[0.0, 1.0]]
    fake.TextEmbedding.assert_called_once_with(model_name="BAAI/bge-small-en-v1.5", cache_dir="/tmp/models")


def test_missing_fastembed_raises_embedding_error():
    with patch.dict(sys.modules, {"fastembed": None}):
        with pytest.raises(EmbeddingError, match="mnemo\\[local\\]"):
            LocalEmbeddingProvider("BAAI/bge-small-en-v1.5")


def test_model_load_failure_raises_embedding_error():
    fake = MagicMock()
    fake.TextEmbedding.side_effect = RuntimeError("download failed")
    with patch.dict(sys.modules, {"fastembed": fake}):
        provider = LocalEmbeddingProvider("BAAI/bge-small-en-v1.5")
        with pytest.raises(EmbeddingError, match="download failed"):
            provider.embed_query("hello")
