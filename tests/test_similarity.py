"""Tests pour la similarité cosinus en mémoire."""

from __future__ import annotations

import pytest

from scholarqa.domain.errors import DimensionMismatch
from scholarqa.domain.similarity import cosine_similarity, rank_by_cosine

TOP_K = 2


@pytest.mark.parametrize("vec", [[1.0, 2.0, 3.0], [0.5, -0.5], [1e-3, 4.0, 0.0, 2.0]])
def test_cosine_of_vector_with_itself_is_one(vec) -> None:
    """Teste cos(v, v) == 1 pour v non nul."""
    assert cosine_similarity(vec, vec) == pytest.approx(1.0)


def test_cosine_zero_or_empty_vector_is_zero() -> None:
    """Teste qu'un vecteur nul ou vide donne 0."""
    assert cosine_similarity([0.0, 0.0], [1.0, 1.0]) == 0.0
    assert cosine_similarity([], [1.0]) == 0.0


def test_cosine_dimension_mismatch() -> None:
    """Teste qu'une dimension différente lève DimensionMismatch."""
    with pytest.raises(DimensionMismatch):
        cosine_similarity([1.0, 0.0], [1.0, 0.0, 0.0])


def test_rank_sorted_descending_with_stable_ties() -> None:
    """Teste le tri décroissant et la stabilité des ex aequo."""
    docs = [
        {"id": "a", "vector": [1.0, 0.0]},
        {"id": "b", "vector": [0.0, 1.0]},
        {"id": "c", "vector": [2.0, 0.0]},
    ]
    ranked = rank_by_cosine([1.0, 0.0], docs, "vector", k=3)
    assert [d["id"] for d, _ in ranked] == ["a", "c", "b"]
    scores = [s for _, s in ranked]
    assert scores == sorted(scores, reverse=True)


def test_rank_unusable_vector_scores_zero() -> None:
    """Teste qu'un vecteur inexploitable reçoit 0 au lieu d'échouer."""
    docs = [
        {"id": "bad", "vector": "not-a-vector"},
        {"id": "good", "vector": [1.0, 1.0]},
    ]
    ranked = rank_by_cosine([1.0, 1.0], docs, "vector", k=TOP_K)
    assert ranked[0][0]["id"] == "good"
    assert ranked[1] == (docs[0], 0.0)


def test_rank_wrong_dimension_raises() -> None:
    """Teste qu'un vecteur stocké de mauvaise dimension est fatal."""
    with pytest.raises(DimensionMismatch):
        rank_by_cosine([1.0, 0.0], [{"vector": [1.0, 0.0, 0.0]}], "vector", k=1)
