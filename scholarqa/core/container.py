"""
Conteneur d'injection de dépendances.

Détient les ressources partagées du processus (store, embedder, providers, moteur de
récupération, pipeline d'ingestion). Chaque ressource est créée paresseusement au premier accès,
sous verrou, puis réutilisée; un premier accès concurrent ne crée qu'une instance.
"""

from __future__ import annotations

import os
import threading

import structlog

from scholarqa.core.settings import Settings, get_settings
from scholarqa.domain.chat_orchestrator import ChatOrchestrator
from scholarqa.domain.generation import GenerationOrchestrator
from scholarqa.domain.records import EntityType
from scholarqa.domain.retriever import RetrievalEngine, VectorTargetResolver
from scholarqa.infra.embeddings.base import Embeddings
from scholarqa.infra.embeddings.local_embedder import LocalEmbedder
from scholarqa.infra.embeddings.openai_embedder import OpenAIEmbedder
from scholarqa.infra.llm.base import CompletionProvider
from scholarqa.infra.llm.registry import build_providers
from scholarqa.infra.locks import SingleFlight
from scholarqa.infra.sources import SourceClient
from scholarqa.infra.stores.base import ContentStore
from scholarqa.infra.stores.faiss_store import FaissContentStore
from scholarqa.infra.stores.memory_store import MemoryContentStore
from scholarqa.infra.stores.mongo_store import MongoContentStore
from scholarqa.services.ingestion import IngestionPipeline

log = structlog.get_logger(__name__).bind(component="container")


class Container:
    """Fabrique paresseuse et thread-safe des composants applicatifs."""

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()
        self._lock = threading.RLock()
        self._store: ContentStore | None = None
        self._embedder: Embeddings | None = None
        self._providers: dict[str, CompletionProvider] | None = None
        self._engine: RetrievalEngine | None = None
        self._pipeline: IngestionPipeline | None = None
        self._orchestrator: ChatOrchestrator | None = None

    def resolve_secret(self, key: str) -> str:
        """Résolution d'un secret: env → settings. Ne journalise jamais la valeur."""
        env_val = os.getenv(key)
        if env_val:
            return env_val
        return getattr(self.settings, key, "") or ""

    def _build_store(self) -> ContentStore:
        backend = (self.settings.CONTENT_BACKEND or "mongo").lower()
        if backend == "memory":
            return MemoryContentStore()
        if backend == "faiss":
            return FaissContentStore(data_dir=self.settings.FAISS_DATA_DIR)
        return MongoContentStore(
            uri=self.resolve_secret("MONGODB_URI"),
            db_name=self.settings.MONGODB_DB,
            timeout_ms=self.settings.MONGODB_TIMEOUT_MS,
        )

    def _build_embedder(self) -> Embeddings:
        if (self.settings.EMBEDDINGS_PROVIDER or "local").lower() == "openai":
            return OpenAIEmbedder(
                api_key=self.resolve_secret("OPENAI_API_KEY"),
                model=self.settings.EMBEDDINGS_MODEL,
                timeout=self.settings.EMBEDDINGS_TIMEOUT_S,
            )
        return LocalEmbedder(model_name=self.settings.LOCAL_EMBEDDINGS_MODEL)

    @property
    def store(self) -> ContentStore:
        """Store de contenus du processus."""
        if self._store is None:
            with self._lock:
                if self._store is None:
                    self._store = self._build_store()
                    log.info("store_ready", backend=self._store.backend)
        return self._store

    @property
    def embedder(self) -> Embeddings:
        """Embedder du processus."""
        if self._embedder is None:
            with self._lock:
                if self._embedder is None:
                    self._embedder = self._build_embedder()
                    log.info("embedder_ready", provider=self._embedder.name)
        return self._embedder

    @property
    def providers(self) -> dict[str, CompletionProvider]:
        """Providers de complétion indexés par nom."""
        if self._providers is None:
            with self._lock:
                if self._providers is None:
                    self._providers = build_providers(self.settings, self.resolve_secret)
        return self._providers

    @property
    def engine(self) -> RetrievalEngine:
        """Moteur de récupération hybride."""
        if self._engine is None:
            with self._lock:
                if self._engine is None:
                    resolver = VectorTargetResolver(
                        self.store,
                        configured_indexes={
                            EntityType.CONFERENCE: self.settings.CONFERENCE_VECTOR_INDEX,
                            EntityType.JOURNAL: self.settings.JOURNAL_VECTOR_INDEX,
                        },
                    )
                    self._engine = RetrievalEngine(
                        self.store,
                        self.embedder,
                        resolver,
                        vector_only=self.settings.RETRIEVAL_VECTOR_ONLY,
                        max_top_k=self.settings.RETRIEVAL_MAX_TOP_K,
                        timeout_s=self.settings.RETRIEVAL_TIMEOUT_S,
                    )
        return self._engine

    @property
    def pipeline(self) -> IngestionPipeline:
        """Pipeline d'ingestion."""
        if self._pipeline is None:
            with self._lock:
                if self._pipeline is None:
                    s = self.settings
                    self._pipeline = IngestionPipeline(
                        self.store,
                        self.embedder,
                        sources={
                            EntityType.CONFERENCE: s.API_RESEARCH,
                            EntityType.JOURNAL: s.API_JOURNAL,
                        },
                        source_client=SourceClient(
                            retries=s.FETCH_RETRIES,
                            retry_delay_s=s.FETCH_RETRY_DELAY_S,
                            timeout_s=s.FETCH_TIMEOUT_S,
                        ),
                        lock=SingleFlight(redis_url=s.REDIS_URL, ttl_s=s.INGEST_LOCK_TTL_S),
                        batch_size=s.EMBEDDING_BATCH_SIZE,
                        upsert_workers=s.INGEST_UPSERT_WORKERS,
                    )
        return self._pipeline

    @property
    def orchestrator(self) -> ChatOrchestrator:
        """Orchestrateur de l'agent."""
        if self._orchestrator is None:
            with self._lock:
                if self._orchestrator is None:
                    generator = GenerationOrchestrator(
                        self.providers, fallback_order=self.settings.LLM_FALLBACK_ORDER
                    )
                    self._orchestrator = ChatOrchestrator(self.engine, generator)
        return self._orchestrator


_container: Container | None = None
_container_lock = threading.Lock()


def get_container() -> Container:
    """Retourne le conteneur du processus (créé au premier appel)."""
    global _container
    if _container is None:
        with _container_lock:
            if _container is None:
                _container = Container()
    return _container


def set_container(container: Container | None) -> None:
    """Remplace le conteneur du processus (tests)."""
    global _container
    with _container_lock:
        _container = container
