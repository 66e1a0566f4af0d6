"""Tests pour les générateurs d'embeddings et leur validation."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import Mock, patch

import pytest

from scholarqa.domain.errors import DimensionMismatch, EmbeddingUnavailable
from scholarqa.infra.embeddings.local_embedder import LocalEmbedder
from scholarqa.infra.embeddings.openai_embedder import OpenAIEmbedder
from tests.fakes import FakeEmbeddings

DIM = 3
TEXTS = ["graph neural networks", "compilers", "", "quantum computing"]


def test_batch_equals_individual_calls() -> None:
    """Teste que le batching ne change pas les vecteurs individuels."""
    emb = FakeEmbeddings()
    assert emb.embed_batch(TEXTS) == [emb.embed(t) for t in TEXTS]


def test_empty_batch_does_not_call_backend() -> None:
    """Teste qu'un lot vide ne sollicite pas le backend."""
    emb = FakeEmbeddings()
    assert emb.embed_batch([]) == []
    assert emb.calls == []


def test_wrong_dimension_raises_dimension_mismatch() -> None:
    """Teste qu'un vecteur de mauvaise taille lève DimensionMismatch."""
    emb = FakeEmbeddings(dimension=DIM, vectors={"x": [1.0, 2.0]})
    with pytest.raises(DimensionMismatch):
        emb.embed("x")


def test_count_mismatch_is_malformed() -> None:
    """Teste qu'un nombre de vecteurs incohérent lève EmbeddingUnavailable."""
    emb = FakeEmbeddings(dimension=DIM)
    with pytest.raises(EmbeddingUnavailable):
        emb.validate([[1.0, 2.0, 3.0]], expected_count=2)


def test_non_numeric_vector_is_malformed() -> None:
    """Teste qu'un vecteur non numérique lève EmbeddingUnavailable."""
    emb = FakeEmbeddings(dimension=DIM)
    with pytest.raises(EmbeddingUnavailable):
        emb.validate([["a", "b", "c"]], expected_count=1)


def test_openai_embedder_orders_by_index() -> None:
    """Teste que la réponse OpenAI est réordonnée selon `index`."""
    client = Mock()
    client.embeddings.create.return_value = SimpleNamespace(
        data=[
            SimpleNamespace(index=1, embedding=[0.0, 1.0, 0.0]),
            SimpleNamespace(index=0, embedding=[1.0, 0.0, 0.0]),
        ]
    )
    emb = OpenAIEmbedder(api_key="sk-test", dimension=DIM, client=client)
    assert emb.embed_batch(["a", "b"]) == [[1.0, 0.0, 0.0], [0.0, 1.0, 0.0]]
    client.embeddings.create.assert_called_once_with(model=emb.model, input=["a", "b"])


def test_openai_embedder_without_key_is_unavailable() -> None:
    """Teste qu'un embedder sans clé lève EmbeddingUnavailable."""
    emb = OpenAIEmbedder(api_key=None)
    with pytest.raises(EmbeddingUnavailable):
        emb.embed("hello")


def test_openai_backend_error_is_wrapped() -> None:
    """Teste qu'une erreur vendor est convertie en EmbeddingUnavailable."""
    client = Mock()
    client.embeddings.create.side_effect = TimeoutError("read timeout")
    emb = OpenAIEmbedder(api_key="sk-test", dimension=DIM, client=client)
    with pytest.raises(EmbeddingUnavailable):
        emb.embed("hello")


def test_local_embedder_loads_model_once() -> None:
    """Teste que le modèle local est chargé une seule fois et normalisé."""
    model = Mock()
    model.encode.return_value = Mock(tolist=Mock(return_value=[[0.6, 0.8, 0.0]]))
    factory = Mock(return_value=model)
    with patch("scholarqa.infra.embeddings.local_embedder.SentenceTransformer", factory):
        emb = LocalEmbedder(model_name="test-model-load-once", dimension=DIM)
        emb.embed("a")
        emb.embed("b")
    factory.assert_called_once_with("test-model-load-once")
    kwargs = model.encode.call_args.kwargs
    assert kwargs["normalize_embeddings"] is True
    LocalEmbedder._models.pop("test-model-load-once", None)


def test_local_embedder_without_library_is_unavailable() -> None:
    """Teste l'absence de sentence-transformers."""
    with patch("scholarqa.infra.embeddings.local_embedder.SentenceTransformer", None):
        emb = LocalEmbedder(model_name="test-model-missing-lib", dimension=DIM)
        with pytest.raises(EmbeddingUnavailable):
            emb.embed("a")
