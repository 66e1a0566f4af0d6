"""Configuration de test pour pytest avec gestion des chemins.

Ce module ajoute la racine du projet au sys.path et isole le conteneur du processus: chaque test
part d'un conteneur neuf (store en mémoire, embeddings et providers factices).
"""

import os
import sys

import pytest

# Ensure project root is on sys.path so that
# imports like `from scholarqa...` resolve.
CURRENT_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from scholarqa.core.container import Container, set_container  # noqa: E402
from scholarqa.core.settings import Settings  # noqa: E402
from scholarqa.infra.stores.memory_store import MemoryContentStore  # noqa: E402
from tests.fakes import FakeEmbeddings, FakeProvider  # noqa: E402

TEST_SOURCE_CONFERENCE = "http://sources.test/conferences"
TEST_SOURCE_JOURNAL = "http://sources.test/journals"


def make_settings(**overrides) -> Settings:
    """Settings de test: store mémoire, aucun service externe."""
    base = {
        "CONTENT_BACKEND": "memory",
        "EMBEDDINGS_PROVIDER": "local",
        "REDIS_URL": None,
        "OTLP_ENDPOINT": None,
        "INGEST_ON_BOOT": False,
        "API_RESEARCH": TEST_SOURCE_CONFERENCE,
        "API_JOURNAL": TEST_SOURCE_JOURNAL,
        "FETCH_RETRY_DELAY_S": 0.0,
        "LLM_FALLBACK_ORDER": "gemini,qwen,openai",
        "DEFAULT_LLM_PROVIDER": "gemini",
        "INTERNAL_API_TOKEN": None,
        "TOKEN_COUNT_STRATEGY": "words",
    }
    base.update(overrides)
    return Settings(**base)


@pytest.fixture
def settings() -> Settings:
    """Settings de test."""
    return make_settings()


@pytest.fixture
def fake_embeddings() -> FakeEmbeddings:
    """Embeddings factices déterministes."""
    return FakeEmbeddings()


@pytest.fixture
def fake_providers() -> dict[str, FakeProvider]:
    """Providers factices: gemini répond, les autres aussi par défaut."""
    return {
        "gemini": FakeProvider("gemini", answer="gemini answer"),
        "qwen": FakeProvider("qwen", answer="qwen answer"),
        "openai": FakeProvider("openai", answer="openai answer"),
    }


@pytest.fixture
def container(settings, fake_embeddings, fake_providers):
    """Conteneur de test installé comme conteneur du processus."""
    c = Container(settings)
    c._store = MemoryContentStore()
    c._embedder = fake_embeddings
    c._providers = dict(fake_providers)
    set_container(c)
    yield c
    set_container(None)


@pytest.fixture(autouse=True)
def reset_container():
    """Garantit qu'aucun conteneur ne fuit d'un test à l'autre."""
    yield
    set_container(None)
