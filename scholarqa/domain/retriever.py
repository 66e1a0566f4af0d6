"""Moteur de récupération hybride (vecteur → similarité en mémoire → mot-clé).

Ce module implémente la récupération par tiers successifs: recherche ANN avec découverte du champ
vectoriel et du nom d'index, repli cosinus en mémoire, puis correspondance mot-clé. Le premier
tier qui produit un résultat non vide l'emporte.
"""

from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeout
from dataclasses import dataclass, field

import structlog

from scholarqa.app.metrics import (
    RETRIEVAL_ERRORS,
    RETRIEVAL_FALLBACKS,
    RETRIEVAL_LATENCY,
    RETRIEVAL_REQUESTS,
)
from scholarqa.core.constants import DEFAULT_TOP_K, MAX_TOP_K, MIN_TOP_K
from scholarqa.domain.errors import (
    EmbeddingUnavailable,
    IndexNotFound,
    ScholarQAError,
    VectorSearchUnsupported,
)
from scholarqa.domain.records import (
    KEYWORD_FIELDS,
    VECTOR_FIELD_CANDIDATES,
    EntityType,
    RetrievalDiagnostic,
    RetrievalResponse,
    SearchResult,
    project_record,
)
from scholarqa.domain.similarity import rank_by_cosine
from scholarqa.infra.embeddings.base import Embeddings
from scholarqa.infra.stores.base import ContentStore

TIER_RECENT = "recent"
TIER_VECTOR = "vector"
TIER_SIMILARITY = "similarity"
TIER_KEYWORD = "keyword"


def clamp_top_k(top_k: int | None, ceiling: int = MAX_TOP_K) -> int:
    """Borne top_k dans [1, ceiling]; None ou valeur invalide → défaut."""
    try:
        k = int(top_k) if top_k is not None else DEFAULT_TOP_K
    except (TypeError, ValueError):
        k = DEFAULT_TOP_K
    return max(MIN_TOP_K, min(k, ceiling))


def _sorted(results: list[SearchResult]) -> list[SearchResult]:
    # tri stable: les ex aequo conservent l'ordre d'entrée
    return sorted(results, key=lambda r: r.score, reverse=True)


@dataclass
class VectorTarget:
    """Champ vectoriel et noms d'index candidats résolus pour un type d'entité."""

    field: str
    indexes: list[str] = field(default_factory=list)


class VectorTargetResolver:
    """Résout et mémorise (champ, index) par type d'entité.

    Le champ est sondé dans l'ordre de `VECTOR_FIELD_CANDIDATES` (défaut `vector`). Les index
    candidats: nom configuré, puis `{entity}_vector_index`, puis `vector_index`. Un index ayant
    produit des résultats passe en tête; `invalidate` force un nouveau sondage.
    """

    def __init__(
        self,
        store: ContentStore,
        configured_indexes: dict[EntityType, str] | None = None,
        field_candidates: tuple[str, ...] = VECTOR_FIELD_CANDIDATES,
    ) -> None:
        """Initialise le résolveur pour un store donné."""
        self.store = store
        self.configured = configured_indexes or {}
        self.field_candidates = field_candidates
        self._cache: dict[EntityType, VectorTarget] = {}
        self._lock = threading.Lock()

    def candidate_indexes(self, entity_type: EntityType) -> list[str]:
        """Noms d'index candidats, dans l'ordre, sans doublons."""
        names = [
            (self.configured.get(entity_type) or "").strip(),
            f"{entity_type.value}_vector_index",
            "vector_index",
        ]
        return list(dict.fromkeys(n for n in names if n))

    def _probe_field(self, entity_type: EntityType) -> str:
        for candidate in self.field_candidates:
            if self.store.has_vector_field(entity_type, candidate):
                return candidate
        return self.field_candidates[0]

    def resolve(self, entity_type: EntityType) -> VectorTarget:
        """Retourne la cible mémorisée, ou la résout."""
        with self._lock:
            cached = self._cache.get(entity_type)
        if cached is not None:
            return cached
        target = VectorTarget(
            field=self._probe_field(entity_type),
            indexes=self.candidate_indexes(entity_type),
        )
        with self._lock:
            self._cache.setdefault(entity_type, target)
            return self._cache[entity_type]

    def remember_index(self, entity_type: EntityType, index_name: str) -> None:
        """Place en tête l'index qui a produit des résultats."""
        with self._lock:
            target = self._cache.get(entity_type)
            if target is None or not target.indexes or target.indexes[0] == index_name:
                return
            rest = [n for n in target.indexes if n != index_name]
            self._cache[entity_type] = VectorTarget(field=target.field, indexes=[index_name, *rest])

    def invalidate(self, entity_type: EntityType) -> None:
        """Oublie la résolution d'un type d'entité."""
        with self._lock:
            self._cache.pop(entity_type, None)


class RetrievalEngine:
    """Récupération ordonnée par score décroissant, avec repli par tiers.

    Args:
        store: Store de contenus.
        embedder: Générateur d'embeddings pour la requête.
        resolver: Résolveur champ/index (créé depuis le store si absent).
        vector_only: Si vrai, aucun repli après le tier vectoriel.
        max_top_k: Plafond dur de top_k.
        timeout_s: Délai maximal par type d'entité dans `retrieve_all`.
    """

    def __init__(
        self,
        store: ContentStore,
        embedder: Embeddings,
        resolver: VectorTargetResolver | None = None,
        *,
        vector_only: bool = False,
        max_top_k: int = MAX_TOP_K,
        timeout_s: float = 30.0,
    ) -> None:
        """Initialise le moteur avec ses collaborateurs injectés."""
        self.store = store
        self.embedder = embedder
        self.resolver = resolver or VectorTargetResolver(store)
        self.vector_only = vector_only
        self.max_top_k = max_top_k
        self.timeout_s = timeout_s
        self._pool = ThreadPoolExecutor(
            max_workers=len(EntityType) * 4, thread_name_prefix="retrieval"
        )
        self._log = structlog.get_logger(__name__).bind(component="retrieval_engine")

    def retrieve(
        self, entity_type: EntityType, query: str, top_k: int | None
    ) -> list[SearchResult]:
        """Retourne les résultats ordonnés pour un type d'entité."""
        results, _ = self.search(entity_type, query, top_k)
        return results

    def search(
        self, entity_type: EntityType, query: str, top_k: int | None
    ) -> tuple[list[SearchResult], str]:
        """Retourne (résultats ordonnés, tier gagnant)."""
        entity_type = EntityType(entity_type)
        k = clamp_top_k(top_k, self.max_top_k)
        q = (query or "").strip()
        start = time.perf_counter()
        try:
            results, tier = self._search(entity_type, q, k)
        finally:
            RETRIEVAL_LATENCY.labels(entity=entity_type.value).observe(
                time.perf_counter() - start
            )
        RETRIEVAL_REQUESTS.labels(entity=entity_type.value, tier=tier).inc()
        return results, tier

    def _search(
        self, entity_type: EntityType, q: str, k: int
    ) -> tuple[list[SearchResult], str]:
        if not q:
            docs = self.store.query_recent(entity_type, k)
            return [SearchResult(record=project_record(d)) for d in docs], TIER_RECENT

        query_vector = self._embed_query(entity_type, q)
        if query_vector is not None:
            target = self.resolver.resolve(entity_type)
            results = self._vector_tier(entity_type, target, query_vector, k)
            if results:
                return results, TIER_VECTOR
            if self.vector_only:
                return [], TIER_VECTOR
            results = self._similarity_tier(entity_type, target, query_vector, k)
            if results:
                return results, TIER_SIMILARITY
        elif self.vector_only:
            return [], TIER_VECTOR

        self._log.warning("retrieval_keyword_fallback", entity=entity_type.value)
        RETRIEVAL_FALLBACKS.labels(entity=entity_type.value, reason="keyword").inc()
        return self._keyword_tier(entity_type, q, k), TIER_KEYWORD

    def _embed_query(self, entity_type: EntityType, q: str) -> list[float] | None:
        try:
            return self.embedder.embed(q)
        except EmbeddingUnavailable as exc:
            self._log.error(
                "retrieval_embedding_unavailable", entity=entity_type.value, error=str(exc)
            )
            RETRIEVAL_FALLBACKS.labels(entity=entity_type.value, reason="embedding").inc()
            return None

    def _vector_tier(
        self, entity_type: EntityType, target: VectorTarget, query_vector: list[float], k: int
    ) -> list[SearchResult]:
        for index_name in target.indexes:
            try:
                hits = self.store.query_vector(
                    entity_type, index_name, target.field, query_vector, k
                )
            except VectorSearchUnsupported:
                RETRIEVAL_FALLBACKS.labels(entity=entity_type.value, reason="unsupported").inc()
                return []
            except IndexNotFound:
                self._log.debug(
                    "retrieval_index_missing", entity=entity_type.value, index=index_name
                )
                continue
            if hits:
                self.resolver.remember_index(entity_type, index_name)
                results = [
                    SearchResult(record=project_record(doc), score=score) for doc, score in hits
                ]
                return _sorted(results)[:k]
        # zéro résultat sur tous les index: la résolution sera refaite au prochain appel
        self.resolver.invalidate(entity_type)
        RETRIEVAL_FALLBACKS.labels(entity=entity_type.value, reason="vector_empty").inc()
        return []

    def _similarity_tier(
        self, entity_type: EntityType, target: VectorTarget, query_vector: list[float], k: int
    ) -> list[SearchResult]:
        docs = self.store.iter_vectorized(entity_type, target.field)
        ranked = rank_by_cosine(query_vector, docs, target.field, k)
        if ranked:
            self._log.info(
                "retrieval_similarity_fallback", entity=entity_type.value, hits=len(ranked)
            )
        return [SearchResult(record=project_record(doc), score=score) for doc, score in ranked]

    def _keyword_tier(self, entity_type: EntityType, q: str, k: int) -> list[SearchResult]:
        docs = self.store.query_keyword(entity_type, KEYWORD_FIELDS[entity_type], q, k)
        return [SearchResult(record=project_record(d), score=1.0) for d in docs[:k]]

    def retrieve_all(self, query: str, top_k: int | None) -> RetrievalResponse:
        """Récupère conférences et journaux en parallèle, chaque type échouant isolément."""
        futures = {t: self._pool.submit(self.search, t, query, top_k) for t in EntityType}
        response = RetrievalResponse()
        for entity_type, future in futures.items():
            try:
                results, tier = future.result(timeout=self.timeout_s)
            except FuturesTimeout:
                results, diag = [], RetrievalDiagnostic(error="TIMEOUT")
                self._log.error("retrieval_timeout", entity=entity_type.value)
                RETRIEVAL_ERRORS.labels(entity=entity_type.value, code="TIMEOUT").inc()
            except Exception as exc:
                code = exc.code if isinstance(exc, ScholarQAError) else type(exc).__name__
                results, diag = [], RetrievalDiagnostic(error=code)
                self._log.error("retrieval_failed", entity=entity_type.value, error=str(exc))
                RETRIEVAL_ERRORS.labels(entity=entity_type.value, code=code).inc()
            else:
                diag = RetrievalDiagnostic(tier=tier)
            setattr(response, entity_type.value, results)
            response.diagnostics[entity_type.value] = diag
        return response
