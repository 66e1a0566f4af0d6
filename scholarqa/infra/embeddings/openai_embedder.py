"""
Embedder OpenAI pour la génération d'embeddings.

Ce module implémente un embedder utilisant l'API OpenAI pour générer des embeddings vectoriels.
Toute erreur du SDK (réseau, auth, timeout) devient `EmbeddingUnavailable`.
"""

from __future__ import annotations

try:
    from openai import OpenAI  # type: ignore
except Exception:  # pragma: no cover - optional dependency
    OpenAI = None  # type: ignore

from scholarqa.domain.errors import EmbeddingUnavailable
from scholarqa.infra.embeddings.base import Embeddings

# Dimensions natives des modèles d'embedding OpenAI connus
MODEL_DIMENSIONS = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
}


class OpenAIEmbedder(Embeddings):
    """
    Embedder OpenAI pour la génération d'embeddings.

    Utilise l'API OpenAI `embeddings.create`; l'ordre des vecteurs renvoyés est rétabli via
    l'attribut `index` de chaque élément.
    """

    name = "openai"

    def __init__(
        self,
        api_key: str | None,
        model: str = "text-embedding-3-small",
        timeout: float = 30.0,
        dimension: int | None = None,
        client=None,
    ):
        """
        Initialise l'embedder OpenAI avec la clé API.

        Args:
            api_key: Clé API OpenAI.
            model: Modèle d'embedding.
            timeout: Délai maximal d'un appel, en secondes.
            dimension: Dimension attendue (déduite du modèle si absente).
            client: Client OpenAI injecté (tests).
        """
        self.model = model
        self._dimension = dimension or MODEL_DIMENSIONS.get(model, 1536)
        if client is not None:
            self.client = client
        elif OpenAI is not None and api_key:
            self.client = OpenAI(api_key=api_key, timeout=timeout, max_retries=0)
        else:
            self.client = None

    @property
    def dimension(self) -> int:
        """Dimension fixe des vecteurs produits."""
        return self._dimension

    def _encode(self, texts: list[str]) -> list[list[float]]:
        if self.client is None:
            raise EmbeddingUnavailable("openai client not configured (missing SDK or API key)")
        resp = self.client.embeddings.create(model=self.model, input=texts)
        data = sorted(resp.data, key=lambda d: getattr(d, "index", 0))
        return [d.embedding for d in data]
