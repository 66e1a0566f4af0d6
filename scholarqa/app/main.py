"""
Application principale FastAPI.

Ce module assemble les composants de l'application: middlewares, routes, gestion d'erreurs,
métriques et ingestion au démarrage.

Responsabilités du module:
- Initialiser le logging structuré et le tracing
- Construire l'application FastAPI avec son titre/debug
- Ajouter les middlewares (CORS, request id, métriques, timing)
- Monter les routers (santé, recherche, agent, ingestion interne, métriques)
- Lancer l'ingestion en arrière-plan au démarrage si INGEST_ON_BOOT
"""

from __future__ import annotations

import threading
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from scholarqa.api.errors import register_error_handlers
from scholarqa.api.routes_agent import router as agent_router
from scholarqa.api.routes_health import router as health_router
from scholarqa.api.routes_ingest import router as ingest_router
from scholarqa.api.routes_search import router as search_router
from scholarqa.app.metrics import PrometheusMiddleware, metrics_router
from scholarqa.app.tracing import setup_tracing
from scholarqa.core.container import Container, get_container
from scholarqa.core.logging import setup_logging
from scholarqa.middlewares.request_id import RequestIDMiddleware
from scholarqa.middlewares.timing import TimingMiddleware

log = structlog.get_logger(__name__).bind(component="app")


def parse_origins(raw: str | None) -> list[str]:
    """Découpe CORS_ORIGINS (CSV); vide ou absent → toutes origines."""
    origins = [o.strip() for o in (raw or "").split(",") if o.strip()]
    return origins or ["*"]


def _boot_ingestion(container: Container) -> threading.Thread:
    def _run() -> None:
        reports = container.pipeline.run_all()
        log.info("boot_ingestion_done", reports=[r.model_dump(mode="json") for r in reports])

    thread = threading.Thread(target=_run, name="boot-ingestion", daemon=True)
    thread.start()
    return thread


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Démarre l'ingestion initiale sans bloquer le démarrage du serveur."""
    container = get_container()
    if container.settings.INGEST_ON_BOOT:
        app.state.boot_ingestion = _boot_ingestion(container)
    yield


def create_app() -> FastAPI:
    """
    Construit et retourne l'application FastAPI prête à l'usage.

    Étapes:
    - Configure le logging structuré (structlog) et le tracing OTLP
    - Lit les paramètres d'exécution
    - Ajoute les middlewares utiles au debug/traçabilité
    - Publie les routes
    """
    settings = get_container().settings
    setup_logging(debug=settings.APP_DEBUG)
    setup_tracing(settings)
    app = FastAPI(title=settings.APP_NAME, debug=settings.APP_DEBUG, lifespan=lifespan)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(PrometheusMiddleware)
    app.add_middleware(TimingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=parse_origins(settings.CORS_ORIGINS),
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )
    register_error_handlers(app)
    app.include_router(health_router)
    app.include_router(search_router)
    app.include_router(agent_router)
    app.include_router(ingest_router)
    app.include_router(metrics_router)
    return app


app = create_app()
