"""
Store de contenus en mémoire.

Implémente ContentStore pour le dev et les tests: une collection par type d'entité, ordre
d'insertion conservé, pas de recherche ANN (le moteur bascule alors sur le tier similarité en
mémoire).
"""

from __future__ import annotations

import copy
import itertools
import threading
from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Any

from scholarqa.domain.records import CREATED_TIME_FIELD, DEDUPE_KEY_FIELD, EntityType
from scholarqa.infra.stores.base import ContentStore, keyword_match


class MemoryContentStore(ContentStore):
    """Store en mémoire, thread-safe, avec upsert par clé de déduplication."""

    backend = "memory"

    def __init__(self) -> None:
        """Initialise des collections vides."""
        self._docs: dict[EntityType, dict[str, dict[str, Any]]] = {t: {} for t in EntityType}
        self._seq = itertools.count()
        self._lock = threading.RLock()

    def find_by_dedupe_keys(self, entity_type: EntityType, keys: Iterable[str]) -> set[str]:
        """Retourne les clés déjà vectorisées parmi `keys`."""
        wanted = set(keys)
        with self._lock:
            coll = self._docs[entity_type]
            return {k for k in wanted if k in coll and coll[k].get("vector") is not None}

    def upsert(self, entity_type: EntityType, key: str, record: dict[str, Any]) -> None:
        """Insère ou remplace l'enregistrement `key` (created_time conservé)."""
        with self._lock:
            coll = self._docs[entity_type]
            previous = coll.get(key)
            doc = {k: v for k, v in record.items() if k not in ("_id", CREATED_TIME_FIELD)}
            doc[DEDUPE_KEY_FIELD] = key
            if previous is None:
                doc["_seq"] = next(self._seq)
                doc[CREATED_TIME_FIELD] = datetime.now(UTC).isoformat()
            else:
                doc["_seq"] = previous["_seq"]
                doc[CREATED_TIME_FIELD] = previous[CREATED_TIME_FIELD]
            coll[key] = doc

    def get(self, entity_type: EntityType, key: str) -> dict[str, Any] | None:
        """Retourne une copie de l'enregistrement `key`, s'il existe."""
        with self._lock:
            doc = self._docs[entity_type].get(key)
            return _public(doc) if doc is not None else None

    def count(self, entity_type: EntityType) -> int:
        """Nombre d'enregistrements de la collection."""
        with self._lock:
            return len(self._docs[entity_type])

    def _snapshot(self, entity_type: EntityType) -> list[dict[str, Any]]:
        with self._lock:
            return sorted(self._docs[entity_type].values(), key=lambda d: d["_seq"])

    def query_keyword(
        self, entity_type: EntityType, fields: Iterable[str], substring: str, k: int
    ) -> list[dict[str, Any]]:
        """Correspondance sous-chaîne, dans l'ordre d'insertion."""
        fields = tuple(fields)
        out: list[dict[str, Any]] = []
        for doc in self._snapshot(entity_type):
            if keyword_match(doc, fields, substring):
                out.append(_public(doc))
                if len(out) >= k:
                    break
        return out

    def query_recent(self, entity_type: EntityType, k: int) -> list[dict[str, Any]]:
        """Derniers enregistrements insérés d'abord."""
        docs = self._snapshot(entity_type)
        return [_public(d) for d in reversed(docs[-k:])] if k > 0 else []

    def iter_vectorized(self, entity_type: EntityType, field: str) -> Iterable[dict[str, Any]]:
        """Enregistrements portant une liste dans `field`, ordre d'insertion."""
        for doc in self._snapshot(entity_type):
            if isinstance(doc.get(field), list):
                yield _public(doc)

    def has_vector_field(self, entity_type: EntityType, field: str) -> bool:
        """Vrai si un enregistrement porte une liste dans `field`."""
        return any(isinstance(d.get(field), list) for d in self._snapshot(entity_type))


def _public(doc: dict[str, Any]) -> dict[str, Any]:
    out = copy.deepcopy(doc)
    out.pop("_seq", None)
    return out
