# ============================================================
# Module : scholarqa/services/ingestion.py
# Objet  : Pipeline d'ingestion (fetch → dédup → embedding → upsert).
# Invariants :
#  - Un enregistrement portant un vecteur n'est jamais ré-embeddé sauf run forcé.
#  - Les chunks d'embedding sont traités dans l'ordre; un chunk est upserté dès que ses
#    vecteurs sont connus, donc un échec au chunk N laisse les chunks < N en base.
#  - Une seule exécution par type d'entité à la fois (rejet, pas de file d'attente).
#  - Un run non forcé n'écrit rien si les vecteurs stockés ont une autre dimension que l'embedder.
# ============================================================
"""Pipeline d'ingestion des conférences et journaux."""

from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any

import structlog
from pydantic import BaseModel

from scholarqa.app.metrics import (
    INGEST_IN_FLIGHT,
    INGEST_LATENCY,
    INGEST_RECORDS,
    INGEST_RUNS,
)
from scholarqa.core.constants import DEFAULT_EMBEDDING_BATCH_SIZE, DEFAULT_UPSERT_WORKERS
from scholarqa.domain.errors import DimensionMismatch, IngestionAlreadyRunning, ScholarQAError
from scholarqa.domain.records import (
    DEDUPE_KEY_FIELD,
    EntityType,
    compute_dedupe_key,
    embedding_text,
)
from scholarqa.infra.embeddings.base import Embeddings
from scholarqa.infra.locks import SingleFlight
from scholarqa.infra.sources import SourceClient
from scholarqa.infra.stores.base import ContentStore

STATUS_OK = "ok"
STATUS_SKIPPED = "skipped"
STATUS_FAILED = "failed"


class IngestionReport(BaseModel):
    """Bilan d'une exécution d'ingestion pour un type d'entité."""

    entity_type: EntityType
    total: int = 0
    new: int = 0
    upserted: int = 0
    status: str = STATUS_OK
    error: str | None = None
    duration_s: float = 0.0


class IngestionPipeline:
    """Ingestion dédupliquée et embeddée, par type d'entité.

    Args:
        store: Store de contenus cible.
        embedder: Générateur d'embeddings.
        sources: URL source par type d'entité.
        source_client: Client de téléchargement.
        lock: Verrou single-flight.
        batch_size: Taille des chunks d'embedding.
        upsert_workers: Taille du pool d'upsert.
    """

    def __init__(
        self,
        store: ContentStore,
        embedder: Embeddings,
        sources: dict[EntityType, str],
        source_client: SourceClient | None = None,
        lock: SingleFlight | None = None,
        batch_size: int = DEFAULT_EMBEDDING_BATCH_SIZE,
        upsert_workers: int = DEFAULT_UPSERT_WORKERS,
    ) -> None:
        """Initialise le pipeline avec ses collaborateurs injectés."""
        self.store = store
        self.embedder = embedder
        self.sources = sources
        self.source_client = source_client or SourceClient()
        self.lock = lock or SingleFlight()
        self.batch_size = max(1, int(batch_size))
        self.upsert_workers = max(1, int(upsert_workers))
        self._log = structlog.get_logger(__name__).bind(component="ingestion")

    def fetch(self, entity_type: EntityType) -> list[dict[str, Any]]:
        """Télécharge les enregistrements bruts du type; lève `FetchFailed`."""
        return self.source_client.fetch(self.sources[entity_type])

    def compute_dedupe_key(self, entity_type: EntityType, record: dict[str, Any]) -> str:
        """Clé de déduplication selon la règle du type d'entité."""
        return compute_dedupe_key(entity_type, record)

    def keyed(self, entity_type: EntityType, records: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Attache `_key` et réduit les doublons du lot (la dernière occurrence gagne)."""
        by_key: dict[str, dict[str, Any]] = {}
        dropped = 0
        for raw in records:
            if not isinstance(raw, dict):
                dropped += 1
                continue
            key = self.compute_dedupe_key(entity_type, raw)
            if not key:
                dropped += 1
                continue
            by_key[key] = {**raw, DEDUPE_KEY_FIELD: key}
        if dropped:
            self._log.warning("ingestion_records_dropped", entity=entity_type.value, count=dropped)
            INGEST_RECORDS.labels(entity=entity_type.value, outcome="dropped").inc(dropped)
        return list(by_key.values())

    def filter_unindexed(
        self, entity_type: EntityType, records: list[dict[str, Any]], force: bool = False
    ) -> list[dict[str, Any]]:
        """Exclut, en une requête store, les clés portant déjà un vecteur."""
        keyed = self.keyed(entity_type, records)
        if force:
            return keyed
        indexed = self.store.find_by_dedupe_keys(
            entity_type, [r[DEDUPE_KEY_FIELD] for r in keyed]
        )
        return [r for r in keyed if r[DEDUPE_KEY_FIELD] not in indexed]

    def check_dimension(self, entity_type: EntityType) -> None:
        """Lève `DimensionMismatch` si les vecteurs stockés n'ont pas la dimension de l'embedder.

        Un run forcé ré-embedde toute la collection et sert de migration entre dimensions.
        """
        stored = self.store.stored_dimension(entity_type)
        if stored is not None and stored != self.embedder.dimension:
            self._log.error(
                "ingestion_dimension_mismatch",
                entity=entity_type.value,
                stored=stored,
                embedder=self.embedder.dimension,
            )
            raise DimensionMismatch(stored, self.embedder.dimension)

    def embed_and_upsert(
        self,
        entity_type: EntityType,
        records: list[dict[str, Any]],
        report: IngestionReport | None = None,
    ) -> int:
        """Embedde par chunks ordonnés et upserte chaque chunk sur le pool.

        Returns:
            int: Nombre d'enregistrements upsertés.
        """
        done = 0
        with ThreadPoolExecutor(
            max_workers=self.upsert_workers, thread_name_prefix="ingest-upsert"
        ) as pool:
            for start in range(0, len(records), self.batch_size):
                chunk = records[start : start + self.batch_size]
                vectors = self.embedder.embed_batch([embedding_text(r) for r in chunk])
                docs = [{**rec, "vector": vec} for rec, vec in zip(chunk, vectors, strict=True)]
                list(
                    pool.map(
                        lambda d: self.store.upsert(entity_type, d[DEDUPE_KEY_FIELD], d), docs
                    )
                )
                done += len(docs)
                if report is not None:
                    report.upserted = done
                INGEST_RECORDS.labels(entity=entity_type.value, outcome="upserted").inc(len(docs))
                self._log.debug(
                    "ingestion_chunk_upserted",
                    entity=entity_type.value,
                    done=done,
                    total=len(records),
                )
        return done

    def run(self, entity_type: EntityType, force: bool = False) -> IngestionReport:
        """Exécute l'ingestion d'un type; ne lève jamais, le statut est dans le rapport."""
        entity_type = EntityType(entity_type)
        report = IngestionReport(entity_type=entity_type)
        start = time.perf_counter()
        try:
            with self.lock.hold(entity_type.value):
                INGEST_IN_FLIGHT.labels(entity=entity_type.value).inc()
                try:
                    self._run_locked(entity_type, force, report)
                finally:
                    INGEST_IN_FLIGHT.labels(entity=entity_type.value).dec()
        except IngestionAlreadyRunning as exc:
            report.status, report.error = STATUS_SKIPPED, exc.code
            self._log.info("ingestion_skipped", entity=entity_type.value)
        except ScholarQAError as exc:
            report.status, report.error = STATUS_FAILED, exc.code
            self._log.error(
                "ingestion_failed",
                entity=entity_type.value,
                error=str(exc),
                upserted=report.upserted,
            )
        except Exception as exc:
            report.status, report.error = STATUS_FAILED, type(exc).__name__
            self._log.exception(
                "ingestion_failed", entity=entity_type.value, upserted=report.upserted
            )
        report.duration_s = round(time.perf_counter() - start, 3)
        INGEST_LATENCY.labels(entity=entity_type.value).observe(report.duration_s)
        INGEST_RUNS.labels(entity=entity_type.value, status=report.status).inc()
        return report

    def _run_locked(self, entity_type: EntityType, force: bool, report: IngestionReport) -> None:
        raw = self.fetch(entity_type)
        report.total = len(raw)
        fresh = self.filter_unindexed(entity_type, raw, force=force)
        report.new = len(fresh)
        self._log.info(
            "ingestion_started",
            entity=entity_type.value,
            total=report.total,
            new=report.new,
            force=force,
        )
        if not fresh:
            return
        if not force:
            self.check_dimension(entity_type)
        try:
            self.embed_and_upsert(entity_type, fresh, report)
        finally:
            if report.upserted:
                self.store.flush(entity_type)
        self._log.info("ingestion_finished", entity=entity_type.value, upserted=report.upserted)

    def run_all(self, force: bool = False) -> list[IngestionReport]:
        """Ingestion des conférences puis des journaux, chaque type isolément."""
        return [self.run(entity_type, force=force) for entity_type in EntityType]
