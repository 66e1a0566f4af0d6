"""Embedder local utilisant Sentence Transformers.

Ce module implémente un embedder local (all-MiniLM-L6-v2 par défaut) avec mean pooling et
normalisation L2. Le modèle est chargé une seule fois par processus, au premier appel.
"""

from __future__ import annotations

import threading

try:
    from sentence_transformers import SentenceTransformer  # type: ignore
except Exception:  # pragma: no cover - optional dependency
    SentenceTransformer = None  # type: ignore

import structlog

from scholarqa.domain.errors import EmbeddingUnavailable
from scholarqa.infra.embeddings.base import Embeddings

MINILM_DIMENSION = 384


class LocalEmbedder(Embeddings):
    """Embedder local utilisant Sentence Transformers.

    Le modèle est partagé au niveau de la classe et chargé paresseusement sous verrou, pour
    qu'un premier usage concurrent ne le charge qu'une fois.
    """

    name = "local"

    _models: dict[str, object] = {}
    _lock = threading.Lock()

    def __init__(
        self,
        model_name: str = "all-MiniLM-L6-v2",
        dimension: int = MINILM_DIMENSION,
        batch_size: int = 32,
    ):
        """Initialise l'embedder local avec le modèle spécifié.

        Args:
            model_name: Nom du modèle Sentence Transformers à utiliser.
            dimension: Dimension attendue des vecteurs.
            batch_size: Taille de lot interne passée à `encode`.
        """
        self.model_name = model_name
        self._dimension = dimension
        self.batch_size = batch_size
        self._log = structlog.get_logger(__name__).bind(component="local_embedder")

    @property
    def dimension(self) -> int:
        """Dimension fixe des vecteurs produits."""
        return self._dimension

    def _get_model(self):
        model = LocalEmbedder._models.get(self.model_name)
        if model is not None:
            return model
        if SentenceTransformer is None:
            raise EmbeddingUnavailable("sentence-transformers is not installed")
        with LocalEmbedder._lock:
            model = LocalEmbedder._models.get(self.model_name)
            if model is None:
                self._log.info("embedding_model_loading", model=self.model_name)
                try:
                    model = SentenceTransformer(self.model_name)
                except Exception as exc:
                    raise EmbeddingUnavailable(
                        f"cannot load embedding model {self.model_name}: {exc}"
                    ) from exc
                LocalEmbedder._models[self.model_name] = model
                self._log.info("embedding_model_ready", model=self.model_name)
        return model

    def _encode(self, texts: list[str]) -> list[list[float]]:
        model = self._get_model()
        return model.encode(
            texts,
            batch_size=self.batch_size,
            convert_to_numpy=True,
            normalize_embeddings=True,
        ).tolist()
