# ============================================================
# Module : scholarqa/infra/stores/mongo_store.py
# Objet  : Store de contenus MongoDB (Atlas Vector Search).
# Invariants :
#  - Une collection par type d'entité, clé d'upsert `_key`.
#  - Jamais de suppression depuis ce module.
# ============================================================
"""Store de contenus adossé à MongoDB.

Les recherches ANN passent par l'étape `$vectorSearch` d'Atlas. Un serveur sans Atlas Search lève
`VectorSearchUnsupported`; un index absent ou invalide lève `IndexNotFound`.
"""

from __future__ import annotations

import re
import threading
from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Any

import structlog
from pymongo import MongoClient
from pymongo.errors import ConnectionFailure, OperationFailure, PyMongoError

from scholarqa.core.constants import CANDIDATE_MULTIPLIER, MIN_NUM_CANDIDATES
from scholarqa.domain.errors import IndexNotFound, StoreUnavailable, VectorSearchUnsupported
from scholarqa.domain.records import (
    CREATED_TIME_FIELD,
    DEDUPE_KEY_FIELD,
    VECTOR_FIELD_CANDIDATES,
    EntityType,
)
from scholarqa.infra.stores.base import ContentStore, ScoredRecord

# Code serveur "Unrecognized pipeline stage name"
_UNRECOGNIZED_STAGE = 40324
_HIDDEN = {f: 0 for f in (*VECTOR_FIELD_CANDIDATES, "updated_time")}


class MongoContentStore(ContentStore):
    """Store MongoDB; le client est créé une fois, au premier accès, sous verrou."""

    backend = "mongo"

    def __init__(
        self,
        uri: str | None,
        db_name: str = "rpa",
        timeout_ms: int = 10000,
        client: MongoClient | None = None,
    ) -> None:
        """Initialise le store sans ouvrir de connexion.

        Args:
            uri: URI MongoDB (obligatoire hors tests).
            db_name: Nom de la base.
            timeout_ms: Délai de sélection serveur et de socket.
            client: Client injecté (tests).
        """
        self.uri = uri
        self.db_name = db_name
        self.timeout_ms = timeout_ms
        self._client = client
        self._lock = threading.Lock()
        self._log = structlog.get_logger(__name__).bind(component="mongo_store", db=db_name)

    def _db(self):
        if self._client is None:
            with self._lock:
                if self._client is None:
                    if not self.uri:
                        raise StoreUnavailable("MONGODB_URI is not set")
                    self._client = MongoClient(
                        self.uri,
                        serverSelectionTimeoutMS=self.timeout_ms,
                        socketTimeoutMS=self.timeout_ms,
                    )
                    self._log.info("mongo_client_created")
        return self._client[self.db_name]

    def _coll(self, entity_type: EntityType):
        return self._db()[entity_type.value]

    def close(self) -> None:
        """Ferme le client s'il a été créé."""
        with self._lock:
            if self._client is not None:
                self._client.close()
                self._client = None

    def find_by_dedupe_keys(self, entity_type: EntityType, keys: Iterable[str]) -> set[str]:
        """Une seule requête `$in` sur les clés portant un vecteur."""
        wanted = list(dict.fromkeys(keys))
        if not wanted:
            return set()
        try:
            cursor = self._coll(entity_type).find(
                {DEDUPE_KEY_FIELD: {"$in": wanted}, "vector": {"$exists": True}},
                projection={DEDUPE_KEY_FIELD: 1, "_id": 0},
            )
            return {doc[DEDUPE_KEY_FIELD] for doc in cursor}
        except PyMongoError as exc:
            raise StoreUnavailable(str(exc)) from exc

    def upsert(self, entity_type: EntityType, key: str, record: dict[str, Any]) -> None:
        """Upsert par `_key`; created_time fixé à l'insertion uniquement."""
        now = datetime.now(UTC)
        doc = {k: v for k, v in record.items() if k not in ("_id", CREATED_TIME_FIELD)}
        doc[DEDUPE_KEY_FIELD] = key
        doc["updated_time"] = now
        try:
            self._coll(entity_type).update_one(
                {DEDUPE_KEY_FIELD: key},
                {"$set": doc, "$setOnInsert": {CREATED_TIME_FIELD: now}},
                upsert=True,
            )
        except PyMongoError as exc:
            raise StoreUnavailable(str(exc)) from exc

    def query_vector(
        self,
        entity_type: EntityType,
        index_name: str,
        field: str,
        vector: list[float],
        k: int,
    ) -> list[ScoredRecord]:
        """Exécute `$vectorSearch` et retourne (enregistrement, score)."""
        pipeline = [
            {
                "$vectorSearch": {
                    "index": index_name,
                    "path": field,
                    "queryVector": vector,
                    "numCandidates": max(MIN_NUM_CANDIDATES, k * CANDIDATE_MULTIPLIER),
                    "limit": k,
                }
            },
            {"$addFields": {"score": {"$meta": "vectorSearchScore"}}},
            {"$project": {**_HIDDEN, CREATED_TIME_FIELD: 0, "_id": 0}},
        ]
        try:
            docs = list(self._coll(entity_type).aggregate(pipeline))
        except OperationFailure as exc:
            if exc.code == _UNRECOGNIZED_STAGE or "Unrecognized pipeline stage" in str(exc):
                raise VectorSearchUnsupported(str(exc)) from exc
            raise IndexNotFound(index_name) from exc
        except ConnectionFailure as exc:
            raise StoreUnavailable(str(exc)) from exc
        out: list[ScoredRecord] = []
        for doc in docs:
            score = float(doc.pop("score", 0.0) or 0.0)
            out.append((doc, score))
        return out

    def query_keyword(
        self, entity_type: EntityType, fields: Iterable[str], substring: str, k: int
    ) -> list[dict[str, Any]]:
        """Filtre `$or` de regex échappées, insensibles à la casse, ordre naturel."""
        pattern = {"$regex": re.escape(substring), "$options": "i"}
        query = {"$or": [{f: pattern} for f in fields]}
        try:
            cursor = self._coll(entity_type).find(query, projection=_HIDDEN).limit(k)
            return list(cursor)
        except PyMongoError as exc:
            raise StoreUnavailable(str(exc)) from exc

    def query_recent(self, entity_type: EntityType, k: int) -> list[dict[str, Any]]:
        """Derniers documents par `_id` décroissant (ordre de création)."""
        try:
            cursor = (
                self._coll(entity_type).find({}, projection=_HIDDEN).sort("_id", -1).limit(k)
            )
            return list(cursor)
        except PyMongoError as exc:
            raise StoreUnavailable(str(exc)) from exc

    def iter_vectorized(self, entity_type: EntityType, field: str) -> Iterable[dict[str, Any]]:
        """Itère sur les documents dont `field` est un tableau."""
        try:
            yield from self._coll(entity_type).find({field: {"$type": "array"}})
        except PyMongoError as exc:
            raise StoreUnavailable(str(exc)) from exc

    def has_vector_field(self, entity_type: EntityType, field: str) -> bool:
        """Sonde un document portant un tableau dans `field`."""
        try:
            hit = self._coll(entity_type).find_one(
                {field: {"$type": "array"}}, projection={"_id": 1}
            )
        except PyMongoError as exc:
            raise StoreUnavailable(str(exc)) from exc
        return hit is not None

    def stored_dimension(self, entity_type: EntityType, field: str = "vector") -> int | None:
        """Longueur du tableau `field` d'un document déjà vectorisé."""
        try:
            hit = self._coll(entity_type).find_one(
                {field: {"$type": "array"}}, projection={"_id": 0, "dim": {"$size": f"${field}"}}
            )
        except PyMongoError as exc:
            raise StoreUnavailable(str(exc)) from exc
        return int(hit["dim"]) if hit else None
