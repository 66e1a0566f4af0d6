"""
Métriques Prometheus pour l'application.

Ce module définit les métriques Prometheus utilisées pour le monitoring du retrieval, de
l'ingestion et de la génération, ainsi que la route `/metrics` et le middleware HTTP.
"""

import time

from fastapi import APIRouter, Request
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

metrics_router = APIRouter()

REQUEST_COUNT = Counter(
    "http_requests_total", "Total HTTP requests", ["method", "route", "status"]
)
REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds", "Latency of HTTP requests", ["route"]
)

# Retrieval-specific metrics
RETRIEVAL_REQUESTS = Counter(
    "retrieval_requests_total",
    "Total retrieval operations by winning tier",
    ["entity", "tier"],
)
RETRIEVAL_FALLBACKS = Counter(
    "retrieval_fallbacks_total",
    "Retrieval tier fallbacks",
    ["entity", "reason"],
)
RETRIEVAL_ERRORS = Counter(
    "retrieval_errors_total",
    "Retrieval calls that failed for an entity type",
    ["entity", "code"],
)
RETRIEVAL_LATENCY = Histogram(
    "retrieval_latency_seconds",
    "Latency of retrieval operations",
    ["entity"],
)

# Ingestion metrics
INGEST_RUNS = Counter(
    "ingest_runs_total",
    "Ingestion runs per entity type and final status",
    ["entity", "status"],
)
INGEST_RECORDS = Counter(
    "ingest_records_total",
    "Records processed by ingestion",
    ["entity", "outcome"],
)
INGEST_IN_FLIGHT = Gauge(
    "ingest_in_flight",
    "Ingestion runs currently in flight",
    ["entity"],
)
INGEST_LATENCY = Histogram(
    "ingest_run_duration_seconds",
    "Duration of ingestion runs",
    ["entity"],
    buckets=[1, 5, 15, 30, 60, 120, 300, 600, 1800],
)

# Generation metrics
LLM_ATTEMPTS = Counter(
    "llm_attempts_total",
    "Completion provider attempts",
    ["provider", "result"],
)
LLM_LATENCY = Histogram(
    "llm_latency_seconds",
    "Latency of completion provider calls",
    ["provider"],
)
LLM_TOKENS_TOTAL = Counter(
    "llm_tokens_total",
    "Accumulated LLM tokens (prompt + answer, estimated)",
    ["provider"],
)

# Token counting strategy info (for debugging)
TOKEN_COUNT_STRATEGY_INFO = Gauge(
    "token_count_strategy_info",
    "Active token counting strategy for this process",
    ["strategy"],
)


@metrics_router.get("/metrics")
def metrics():
    """
    Expose les métriques Prometheus au format texte.

    Returns:
        Response: Réponse HTTP contenant les métriques au format Prometheus.
    """
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


class PrometheusMiddleware(BaseHTTPMiddleware):
    """
    Middleware Prometheus pour mesurer les métriques HTTP.

    Collecte les métriques de comptage des requêtes et de latence par route pour l'exposition
    Prometheus.
    """

    async def dispatch(self, request: Request, call_next):
        """
        Traite une requête HTTP et collecte les métriques.

        Args:
            request: Requête HTTP entrante.
            call_next: Fonction pour appeler le middleware suivant.

        Returns:
            Response: Réponse HTTP avec métriques collectées.
        """
        start = time.perf_counter()
        response: Response = await call_next(request)
        route = request.scope.get("path", "unknown")
        REQUEST_COUNT.labels(request.method, route, str(response.status_code)).inc()
        REQUEST_LATENCY.labels(route).observe(time.perf_counter() - start)
        return response
