"""Tests pour le pipeline d'ingestion (dédup, idempotence, chunks, single-flight)."""

from __future__ import annotations

from unittest.mock import Mock

from scholarqa.domain.errors import FetchFailed
from scholarqa.domain.records import EntityType
from scholarqa.infra.locks import SingleFlight
from scholarqa.infra.stores.memory_store import MemoryContentStore
from scholarqa.services.ingestion import (
    STATUS_FAILED,
    STATUS_OK,
    STATUS_SKIPPED,
    IngestionPipeline,
)
from tests.fakes import FakeEmbeddings

CONF = EntityType.CONFERENCE
JOUR = EntityType.JOURNAL
CONF_URL = "http://sources.test/conferences"
JOUR_URL = "http://sources.test/journals"

CONFERENCES = [
    {"acronym": "ICML", "name": "Machine Learning", "publisher": "PMLR"},
    {"acronym": "CVPR", "name": "Vision"},
    {"acronym": "PLDI", "name": "Languages"},
]


def _pipeline(records, embedder=None, store=None, **kwargs) -> IngestionPipeline:
    source_client = Mock()
    source_client.fetch.return_value = records
    return IngestionPipeline(
        store=store or MemoryContentStore(),
        embedder=embedder or FakeEmbeddings(),
        sources={CONF: CONF_URL, JOUR: JOUR_URL},
        source_client=source_client,
        **kwargs,
    )


def test_first_run_embeds_and_upserts_everything() -> None:
    """Teste un premier run: chaque enregistrement est embeddé et upserté."""
    pipeline = _pipeline(CONFERENCES)
    report = pipeline.run(CONF)
    assert report.status == STATUS_OK
    assert (report.total, report.new, report.upserted) == (3, 3, 3)
    assert pipeline.store.count(CONF) == 3
    assert pipeline.store.get(CONF, "ICML Machine Learning")["vector"]
    pipeline.source_client.fetch.assert_called_once_with(CONF_URL)


def test_rerun_is_idempotent() -> None:
    """Teste qu'un second run ne ré-embedde rien et ne modifie pas les vecteurs."""
    embedder = FakeEmbeddings()
    pipeline = _pipeline(CONFERENCES, embedder=embedder)
    pipeline.run(CONF)
    before = pipeline.store.get(CONF, "CVPR Vision")["vector"]
    calls = len(embedder.calls)

    report = pipeline.run(CONF)
    assert report.status == STATUS_OK
    assert (report.new, report.upserted) == (0, 0)
    assert len(embedder.calls) == calls
    assert pipeline.store.get(CONF, "CVPR Vision")["vector"] == before


def test_forced_run_reembeds() -> None:
    """Teste qu'un run forcé ré-embedde les enregistrements déjà indexés."""
    pipeline = _pipeline(CONFERENCES)
    pipeline.run(CONF)
    report = pipeline.run(CONF, force=True)
    assert report.new == 3
    assert report.upserted == 3


def test_duplicates_in_batch_last_occurrence_wins() -> None:
    """Teste la réduction des doublons d'un lot: la dernière occurrence gagne."""
    records = [
        {"title": "Nature", "publisher": "old"},
        {"title": "Science"},
        {"title": "Nature", "publisher": "new"},
    ]
    pipeline = _pipeline(records)
    report = pipeline.run(JOUR)
    assert report.new == 2
    assert pipeline.store.get(JOUR, "Nature")["publisher"] == "new"


def test_records_without_key_are_dropped() -> None:
    """Teste que les enregistrements sans clé (ou non objets) sont ignorés."""
    pipeline = _pipeline([{"title": ""}, "garbage", {"title": "Cell"}])
    report = pipeline.run(JOUR)
    assert report.total == 3
    assert report.new == 1
    assert pipeline.store.count(JOUR) == 1


def test_failed_chunk_keeps_previous_chunks() -> None:
    """Teste qu'un échec au chunk N laisse les chunks précédents en base."""
    records = [{"title": f"Journal {i}"} for i in range(5)]
    embedder = FakeEmbeddings(fail_on_call=2)
    pipeline = _pipeline(records, embedder=embedder, batch_size=2)
    report = pipeline.run(JOUR)
    assert report.status == STATUS_FAILED
    assert report.error == "EMBEDDING_UNAVAILABLE"
    assert report.upserted == 2
    assert pipeline.store.count(JOUR) == 2

    # un run suivant reprend uniquement ce qui manque
    embedder.fail_on_call = None
    resumed = pipeline.run(JOUR)
    assert resumed.status == STATUS_OK
    assert resumed.new == 3
    assert pipeline.store.count(JOUR) == 5


def test_concurrent_run_is_skipped() -> None:
    """Teste qu'une exécution concurrente du même type est rejetée."""
    lock = SingleFlight()
    pipeline = _pipeline(CONFERENCES, lock=lock)
    with lock.hold(CONF.value):
        report = pipeline.run(CONF)
    assert report.status == STATUS_SKIPPED
    assert report.error == "INGESTION_ALREADY_RUNNING"
    assert pipeline.store.count(CONF) == 0
    pipeline.source_client.fetch.assert_not_called()


def test_other_entity_type_is_not_blocked() -> None:
    """Teste que le verrou d'un type ne bloque pas l'autre."""
    lock = SingleFlight()
    pipeline = _pipeline([{"title": "Nature"}], lock=lock)
    with lock.hold(CONF.value):
        report = pipeline.run(JOUR)
    assert report.status == STATUS_OK


def test_fetch_failure_is_reported() -> None:
    """Teste qu'un échec de téléchargement donne un rapport `failed`."""
    pipeline = _pipeline([])
    pipeline.source_client.fetch.side_effect = FetchFailed(CONF_URL, 3)
    report = pipeline.run(CONF)
    assert report.status == STATUS_FAILED
    assert report.error == "FETCH_FAILED"
    assert pipeline.lock.is_running(CONF.value) is False


def test_run_all_processes_each_type() -> None:
    """Teste run_all: un rapport par type d'entité, conférences d'abord."""
    pipeline = _pipeline([{"title": "Nature", "acronym": "N", "name": "Nature"}])
    reports = pipeline.run_all()
    assert [r.entity_type for r in reports] == [CONF, JOUR]
    assert all(r.status == STATUS_OK for r in reports)


def test_dimension_mismatch_blocks_non_forced_run() -> None:
    """Teste qu'un embedder d'une autre dimension que la collection n'écrit rien."""
    store = MemoryContentStore()
    store.upsert(CONF, "OLD A", {"acronym": "OLD", "name": "A", "vector": [0.1] * 4})
    embedder = FakeEmbeddings(dimension=8)
    report = _pipeline(CONFERENCES, embedder=embedder, store=store).run(CONF)
    assert report.status == STATUS_FAILED
    assert report.error == "DIMENSION_MISMATCH"
    assert report.upserted == 0
    assert store.count(CONF) == 1
    assert store.get(CONF, "ICML Machine Learning") is None
    assert embedder.calls == []


def test_forced_run_migrates_dimension() -> None:
    """Vérifie qu'un run forcé ré-embedde malgré une dimension stockée différente."""
    store = MemoryContentStore()
    store.upsert(CONF, "OLD A", {"acronym": "OLD", "name": "A", "vector": [0.1] * 4})
    report = _pipeline(CONFERENCES, embedder=FakeEmbeddings(dimension=8), store=store).run(
        CONF, force=True
    )
    assert report.status == STATUS_OK
    assert report.upserted == 3
    assert len(store.get(CONF, "ICML Machine Learning")["vector"]) == 8
