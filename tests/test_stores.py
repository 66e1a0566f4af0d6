"""Tests pour les stores de contenus en mémoire et FAISS."""

from __future__ import annotations

import pytest

from scholarqa.domain.errors import DimensionMismatch, IndexNotFound, VectorSearchUnsupported
from scholarqa.domain.records import KEYWORD_FIELDS, EntityType
from scholarqa.infra.stores.faiss_store import FaissContentStore
from scholarqa.infra.stores.memory_store import MemoryContentStore

CONF = EntityType.CONFERENCE
JOUR = EntityType.JOURNAL
TOP_K = 10
EXPECTED_MATCHES = 2


def _seed(store: MemoryContentStore) -> None:
    store.upsert(CONF, "ICML Machine Learning", {"name": "Machine Learning", "topics": ["AI"]})
    store.upsert(CONF, "CVPR Vision", {"name": "Vision", "topics": ["Deep Learning"]})
    store.upsert(CONF, "PLDI Languages", {"name": "Languages", "topics": ["compilers"]})


def test_upsert_replaces_and_keeps_created_time() -> None:
    """Teste qu'un upsert remplace le contenu mais conserve created_time."""
    store = MemoryContentStore()
    store.upsert(JOUR, "Nature", {"title": "Nature", "publisher": "NPG"})
    first = store.get(JOUR, "Nature")
    store.upsert(JOUR, "Nature", {"title": "Nature", "publisher": "Springer"})
    second = store.get(JOUR, "Nature")
    assert store.count(JOUR) == 1
    assert second["publisher"] == "Springer"
    assert second["created_time"] == first["created_time"]


def test_find_by_dedupe_keys_only_reports_vectorized() -> None:
    """Teste que seules les clés portant un vecteur sont considérées indexées."""
    store = MemoryContentStore()
    store.upsert(JOUR, "A", {"title": "A", "vector": [0.1, 0.2]})
    store.upsert(JOUR, "B", {"title": "B"})
    assert store.find_by_dedupe_keys(JOUR, ["A", "B", "C"]) == {"A"}


def test_keyword_is_case_insensitive_over_lists() -> None:
    """Teste la correspondance mot-clé insensible à la casse, listes incluses."""
    store = MemoryContentStore()
    _seed(store)
    docs = store.query_keyword(CONF, KEYWORD_FIELDS[CONF], "LEARNING", TOP_K)
    assert [d["name"] for d in docs] == ["Machine Learning", "Vision"]


def test_query_recent_newest_first() -> None:
    """Teste l'ordre « plus récent d'abord »."""
    store = MemoryContentStore()
    _seed(store)
    docs = store.query_recent(CONF, EXPECTED_MATCHES)
    assert [d["name"] for d in docs] == ["Languages", "Vision"]


def test_memory_store_has_no_vector_search() -> None:
    """Teste que le store mémoire signale l'absence d'ANN."""
    store = MemoryContentStore()
    with pytest.raises(VectorSearchUnsupported):
        store.query_vector(CONF, "conference_vector_index", "vector", [1.0], 1)


def test_iter_vectorized_and_probe() -> None:
    """Teste le sondage du champ vectoriel."""
    store = MemoryContentStore()
    store.upsert(CONF, "k1", {"name": "n1", "embedding": [1.0, 0.0]})
    store.upsert(CONF, "k2", {"name": "n2"})
    assert store.has_vector_field(CONF, "embedding") is True
    assert store.has_vector_field(CONF, "vector") is False
    assert [d["_key"] for d in store.iter_vectorized(CONF, "embedding")] == ["k1"]


def test_faiss_store_ranks_by_cosine() -> None:
    """Teste la recherche ANN FAISS (meilleur score d'abord)."""
    store = FaissContentStore()
    store.upsert(CONF, "a", {"name": "a", "vector": [1.0, 0.0]})
    store.upsert(CONF, "b", {"name": "b", "vector": [0.0, 1.0]})
    store.upsert(CONF, "c", {"name": "c", "vector": [0.7, 0.7]})
    hits = store.query_vector(
        CONF, "conference_vector_index", "vector", [1.0, 0.1], EXPECTED_MATCHES
    )
    assert [doc["name"] for doc, _ in hits] == ["a", "c"]
    assert hits[0][1] >= hits[1][1]
    assert "vector" not in hits[0][0]


def test_faiss_store_unknown_index_and_dimension() -> None:
    """Teste IndexNotFound et DimensionMismatch côté FAISS."""
    store = FaissContentStore()
    store.upsert(CONF, "a", {"name": "a", "vector": [1.0, 0.0]})
    with pytest.raises(IndexNotFound):
        store.query_vector(CONF, "vector_index", "vector", [1.0, 0.0], 1)
    with pytest.raises(DimensionMismatch):
        store.query_vector(CONF, "conference_vector_index", "vector", [1.0, 0.0, 0.0], 1)


def test_faiss_store_persists_records(tmp_path) -> None:
    """Teste la persistance des enregistrements et la reconstruction de l'index."""
    store = FaissContentStore(data_dir=str(tmp_path))
    store.upsert(JOUR, "Nature", {"title": "Nature", "vector": [1.0, 0.0]})
    store.flush(JOUR)

    reloaded = FaissContentStore(data_dir=str(tmp_path))
    assert reloaded.find_by_dedupe_keys(JOUR, ["Nature"]) == {"Nature"}
    hits = reloaded.query_vector(JOUR, "journal_vector_index", "vector", [1.0, 0.0], 1)
    assert hits[0][0]["title"] == "Nature"
