"""
Interface de base pour les générateurs d'embeddings.

Ce module définit l'interface abstraite que doivent implémenter tous les générateurs d'embeddings
vectoriels, ainsi que la validation commune des vecteurs produits.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence

from scholarqa.domain.errors import DimensionMismatch, EmbeddingUnavailable


class Embeddings(ABC):
    """Interface abstraite pour les générateurs d'embeddings.

    La dimension est fixe pour une instance donnée; `embed_batch` doit produire pour chaque texte
    le même vecteur qu'un appel individuel à `embed`.
    """

    name = "base"

    @property
    @abstractmethod
    def dimension(self) -> int:
        """Dimension fixe des vecteurs produits."""
        ...

    @abstractmethod
    def _encode(self, texts: list[str]) -> Sequence[Sequence[float]]:
        """Appelle le backend pour une liste de textes (sans validation)."""
        ...

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Génère des embeddings vectoriels pour une liste de textes.

        Raises:
            EmbeddingUnavailable: backend injoignable ou sortie malformée.
            DimensionMismatch: vecteur de taille différente de `dimension`.
        """
        if not texts:
            return []
        try:
            raw = self._encode(list(texts))
        except (EmbeddingUnavailable, DimensionMismatch):
            raise
        except Exception as exc:
            raise EmbeddingUnavailable(f"{self.name} embedding failed: {exc}") from exc
        return self.validate(raw, expected_count=len(texts))

    def embed(self, text: str) -> list[float]:
        """Génère l'embedding d'un seul texte."""
        return self.embed_batch([text])[0]

    def validate(
        self, raw: Sequence[Sequence[float]] | None, expected_count: int
    ) -> list[list[float]]:
        """Vérifie le nombre et la dimension des vecteurs et les convertit en flottants."""
        if raw is None or len(raw) != expected_count:
            got = 0 if raw is None else len(raw)
            raise EmbeddingUnavailable(
                f"{self.name} returned {got} vectors for {expected_count} texts"
            )
        out: list[list[float]] = []
        for vec in raw:
            try:
                floats = [float(x) for x in vec]
            except (TypeError, ValueError) as exc:
                raise EmbeddingUnavailable(f"{self.name} returned a malformed vector") from exc
            if not floats:
                raise EmbeddingUnavailable(f"{self.name} returned an empty vector")
            if len(floats) != self.dimension:
                raise DimensionMismatch(self.dimension, len(floats))
            out.append(floats)
        return out
