"""Interface de base pour les stores de contenus.

Ce module définit l'interface abstraite que doivent implémenter les stores de contenus
(une collection par type d'entité), ainsi que les helpers de correspondance mot-clé partagés par
les implémentations en mémoire.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable
from typing import Any

from scholarqa.domain.errors import VectorSearchUnsupported
from scholarqa.domain.records import EntityType

ScoredRecord = tuple[dict[str, Any], float]


class ContentStore(ABC):
    """Interface abstraite pour les stores de contenus.

    La présence d'un champ `vector` sur un enregistrement est le seul indicateur « indexé ».
    """

    backend = "base"

    @abstractmethod
    def find_by_dedupe_keys(self, entity_type: EntityType, keys: Iterable[str]) -> set[str]:
        """Retourne, en une requête, les clés parmi `keys` qui portent déjà un vecteur."""
        raise NotImplementedError

    @abstractmethod
    def upsert(self, entity_type: EntityType, key: str, record: dict[str, Any]) -> None:
        """Insère ou remplace l'enregistrement identifié par sa clé de déduplication."""
        raise NotImplementedError

    def query_vector(
        self,
        entity_type: EntityType,
        index_name: str,
        field: str,
        vector: list[float],
        k: int,
    ) -> list[ScoredRecord]:
        """Recherche ANN; lève `IndexNotFound` ou `VectorSearchUnsupported`."""
        raise VectorSearchUnsupported(f"{self.backend} store has no vector search")

    @abstractmethod
    def query_keyword(
        self, entity_type: EntityType, fields: Iterable[str], substring: str, k: int
    ) -> list[dict[str, Any]]:
        """Correspondance sous-chaîne insensible à la casse, ordre du store préservé."""
        raise NotImplementedError

    @abstractmethod
    def query_recent(self, entity_type: EntityType, k: int) -> list[dict[str, Any]]:
        """Retourne les `k` enregistrements les plus récents."""
        raise NotImplementedError

    @abstractmethod
    def iter_vectorized(self, entity_type: EntityType, field: str) -> Iterable[dict[str, Any]]:
        """Itère sur les enregistrements portant un vecteur dans `field`."""
        raise NotImplementedError

    @abstractmethod
    def has_vector_field(self, entity_type: EntityType, field: str) -> bool:
        """Indique si au moins un enregistrement porte un tableau dans `field`."""
        raise NotImplementedError

    def stored_dimension(self, entity_type: EntityType, field: str = "vector") -> int | None:
        """Dimension d'un vecteur déjà stocké dans `field`, ou None si la collection n'en a pas."""
        for doc in self.iter_vectorized(entity_type, field):
            return len(doc[field])
        return None

    def flush(self, entity_type: EntityType) -> None:  # noqa: B027 - hook optionnel
        """Persiste l'état si le store le nécessite (no-op par défaut)."""


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, list | tuple):
        return " ".join(_as_text(v) for v in value)
    return str(value)


def keyword_match(record: dict[str, Any], fields: Iterable[str], substring: str) -> bool:
    """Vrai si `substring` apparaît (casse ignorée) dans l'un des champs."""
    needle = substring.lower()
    return any(needle in _as_text(record.get(f)).lower() for f in fields)
