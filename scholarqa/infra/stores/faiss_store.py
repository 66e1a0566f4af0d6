"""
Store de contenus local avec recherche ANN FAISS.

Étend le store en mémoire avec un index FAISS (IndexFlatIP sur vecteurs normalisés, donc score
cosinus) par type d'entité, nommé `{entity}_vector_index`. Persistance optionnelle des
enregistrements dans FAISS_DATA_DIR/<entity>/records.json (renommage atomique); l'index est
reconstruit depuis les enregistrements au chargement.
"""

from __future__ import annotations

import json
import os
import threading

import faiss  # type: ignore
import numpy as np  # type: ignore
import structlog

from scholarqa.domain.errors import DimensionMismatch, IndexNotFound
from scholarqa.domain.records import DEDUPE_KEY_FIELD, EntityType, project_record
from scholarqa.infra.stores.base import ScoredRecord
from scholarqa.infra.stores.memory_store import MemoryContentStore


class FaissContentStore(MemoryContentStore):
    """
    Store local avec index FAISS par type d'entité.

    L'index est reconstruit paresseusement à la première requête suivant une écriture; des vecteurs
    de dimensions différentes dans une même collection lèvent `DimensionMismatch`.
    """

    backend = "faiss"

    def __init__(self, data_dir: str | None = None) -> None:
        """Initialize FAISS content store with optional persistence."""
        super().__init__()
        self._dir = data_dir
        self._indexes: dict[EntityType, tuple[faiss.IndexFlatIP, list[str], str]] = {}
        self._dirty: set[EntityType] = set()
        self._index_lock = threading.Lock()
        self._log = structlog.get_logger(__name__).bind(component="faiss_store")
        if self._dir:
            os.makedirs(self._dir, exist_ok=True)
            for entity_type in EntityType:
                self._load(entity_type)

    @staticmethod
    def index_name(entity_type: EntityType) -> str:
        """Nom de l'index FAISS servi pour un type d'entité."""
        return f"{entity_type.value}_vector_index"

    def upsert(self, entity_type: EntityType, key: str, record: dict) -> None:
        """Upsert puis marque l'index du type comme à reconstruire."""
        super().upsert(entity_type, key, record)
        with self._index_lock:
            self._dirty.add(entity_type)

    def _build(self, entity_type: EntityType, field: str) -> tuple[faiss.IndexFlatIP, list[str]]:
        keys: list[str] = []
        rows: list[list[float]] = []
        dim: int | None = None
        for doc in self.iter_vectorized(entity_type, field):
            vec = doc[field]
            if dim is None:
                dim = len(vec)
            elif len(vec) != dim:
                raise DimensionMismatch(dim, len(vec))
            keys.append(doc[DEDUPE_KEY_FIELD])
            rows.append(vec)
        index = faiss.IndexFlatIP(dim or 1)
        if rows:
            xb = np.array(rows, dtype="float32")
            faiss.normalize_L2(xb)
            index.add(xb)
        return index, keys

    def _get_index(self, entity_type: EntityType, field: str):
        with self._index_lock:
            cached = self._indexes.get(entity_type)
            if cached is None or entity_type in self._dirty or cached[2] != field:
                index, keys = self._build(entity_type, field)
                self._indexes[entity_type] = (index, keys, field)
                self._dirty.discard(entity_type)
            return self._indexes[entity_type]

    def query_vector(
        self,
        entity_type: EntityType,
        index_name: str,
        field: str,
        vector: list[float],
        k: int,
    ) -> list[ScoredRecord]:
        """Recherche ANN (produit scalaire sur vecteurs normalisés)."""
        if index_name != self.index_name(entity_type):
            raise IndexNotFound(index_name)
        index, keys, _ = self._get_index(entity_type, field)
        if not keys:
            return []
        if len(vector) != index.d:
            raise DimensionMismatch(index.d, len(vector))
        qx = np.array([vector], dtype="float32")
        faiss.normalize_L2(qx)
        scores, ids = index.search(qx, min(k, len(keys)))
        out: list[ScoredRecord] = []
        for score, idx in zip(scores[0], ids[0], strict=True):
            if idx == -1:
                continue
            doc = self.get(entity_type, keys[idx])
            if doc is not None:
                out.append((project_record(doc), float(score)))
        return out

    def _path(self, entity_type: EntityType) -> str:
        edir = os.path.join(self._dir or ".", entity_type.value)
        os.makedirs(edir, exist_ok=True)
        return os.path.join(edir, "records.json")

    def flush(self, entity_type: EntityType) -> None:
        """Écrit les enregistrements du type sur disque (renommage atomique)."""
        if not self._dir:
            return
        records_path = self._path(entity_type)
        docs = self._snapshot(entity_type)
        tmp = records_path + ".tmp"
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(docs, f, ensure_ascii=False)
        os.replace(tmp, records_path)
        self._log.info("faiss_store_flushed", entity=entity_type.value, records=len(docs))

    def _load(self, entity_type: EntityType) -> None:
        records_path = self._path(entity_type)
        if not os.path.exists(records_path):
            return
        with open(records_path, encoding="utf-8") as f:
            raw = json.load(f)
        with self._lock:
            coll = self._docs[entity_type]
            for doc in raw:
                doc["_seq"] = next(self._seq)
                coll[doc[DEDUPE_KEY_FIELD]] = doc
        with self._index_lock:
            self._dirty.add(entity_type)
