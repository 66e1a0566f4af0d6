"""Similarité cosinus pour le tier de repli en mémoire."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

import numpy as np  # type: ignore

from scholarqa.domain.errors import DimensionMismatch


def cosine_similarity(a: list[float], b: list[float]) -> float:
    """dot(a, b) / (|a|·|b|); 0.0 si l'un des vecteurs est nul ou vide."""
    va = np.asarray(a, dtype="float64")
    vb = np.asarray(b, dtype="float64")
    if va.size == 0 or vb.size == 0:
        return 0.0
    if va.shape != vb.shape:
        raise DimensionMismatch(va.size, vb.size)
    denom = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if denom == 0.0:
        return 0.0
    return float(np.dot(va, vb) / denom)


def _usable(vec: Any) -> bool:
    if not isinstance(vec, list | tuple) or not vec:
        return False
    return all(isinstance(x, int | float) and not isinstance(x, bool) for x in vec)


def rank_by_cosine(
    query: list[float],
    docs: Iterable[dict[str, Any]],
    field: str,
    k: int,
) -> list[tuple[dict[str, Any], float]]:
    """Classe des documents par similarité décroissante (tri stable), top-k.

    Un document sans vecteur exploitable reçoit le score 0; un vecteur de dimension différente de
    la requête lève `DimensionMismatch`.
    """
    scored: list[tuple[dict[str, Any], float]] = []
    for doc in docs:
        vec = doc.get(field)
        if not _usable(vec):
            scored.append((doc, 0.0))
            continue
        if len(vec) != len(query):
            raise DimensionMismatch(len(query), len(vec))
        scored.append((doc, cosine_similarity(query, vec)))
    scored.sort(key=lambda item: item[1], reverse=True)
    return scored[:k]
