"""Gestion standardisée des erreurs API avec enveloppes d'erreur.

Toute erreur renvoyée au client suit l'enveloppe `{code, message, trace_id, details}`. Les erreurs
du domaine (`ScholarQAError`) sont converties selon leur `code`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import structlog
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from scholarqa.core.constants import (
    HTTP_STATUS_BAD_GATEWAY,
    HTTP_STATUS_BAD_REQUEST,
    HTTP_STATUS_CONFLICT,
    HTTP_STATUS_INTERNAL_ERROR,
    HTTP_STATUS_SERVICE_UNAVAILABLE,
)
from scholarqa.domain.errors import (
    AllProvidersExhausted,
    EmbeddingUnavailable,
    FetchFailed,
    IngestionAlreadyRunning,
    ScholarQAError,
    StoreUnavailable,
)

log = structlog.get_logger(__name__).bind(component="api_errors")


@dataclass
class ErrorEnvelope:
    """Enveloppe d'erreur standard des réponses API."""

    code: str
    message: str
    trace_id: str | None = None
    details: dict[str, Any] | None = None


class ErrorCodes:
    """Codes d'erreur HTTP génériques."""

    BAD_REQUEST = "BAD_REQUEST"
    NOT_FOUND = "NOT_FOUND"
    METHOD_NOT_ALLOWED = "METHOD_NOT_ALLOWED"
    CONFLICT = "CONFLICT"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    BAD_GATEWAY = "BAD_GATEWAY"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"


_HTTP_CODES = {
    400: ErrorCodes.BAD_REQUEST,
    404: ErrorCodes.NOT_FOUND,
    405: ErrorCodes.METHOD_NOT_ALLOWED,
    409: ErrorCodes.CONFLICT,
    422: ErrorCodes.VALIDATION_ERROR,
    500: ErrorCodes.INTERNAL_ERROR,
    502: ErrorCodes.BAD_GATEWAY,
    503: ErrorCodes.SERVICE_UNAVAILABLE,
}

# Statut HTTP par type d'erreur du domaine; défaut 500
_DOMAIN_STATUS: list[tuple[type[ScholarQAError], int]] = [
    (AllProvidersExhausted, HTTP_STATUS_BAD_GATEWAY),
    (FetchFailed, HTTP_STATUS_BAD_GATEWAY),
    (IngestionAlreadyRunning, HTTP_STATUS_CONFLICT),
    (StoreUnavailable, HTTP_STATUS_SERVICE_UNAVAILABLE),
    (EmbeddingUnavailable, HTTP_STATUS_SERVICE_UNAVAILABLE),
]


class APIError(HTTPException):
    """Erreur API portant l'enveloppe standard."""

    def __init__(
        self,
        status_code: int,
        code: str,
        message: str,
        trace_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialise une erreur API."""
        super().__init__(status_code=status_code, detail=message)
        self.code = code
        self.message = message
        self.trace_id = trace_id
        self.details = details


def create_error_response(
    status_code: int,
    code: str,
    message: str,
    trace_id: str | None = None,
    details: dict[str, Any] | None = None,
) -> JSONResponse:
    """Crée une réponse d'erreur standardisée."""
    envelope = ErrorEnvelope(code=code, message=message, trace_id=trace_id, details=details)
    return JSONResponse(
        status_code=status_code,
        content={
            "code": envelope.code,
            "message": envelope.message,
            "trace_id": envelope.trace_id,
            **({"details": envelope.details} if envelope.details else {}),
        },
    )


def extract_trace_id(request: Request) -> str | None:
    """Retourne l'identifiant de trace (en-tête X-Trace-ID, sinon état de requête)."""
    trace_id = request.headers.get("X-Trace-ID")
    if trace_id:
        return trace_id
    return getattr(request.state, "trace_id", None)


def bad_request(message: str, details: dict[str, Any] | None = None) -> APIError:
    """Crée une erreur 400."""
    return APIError(HTTP_STATUS_BAD_REQUEST, ErrorCodes.BAD_REQUEST, message, details=details)


def domain_status(exc: ScholarQAError) -> int:
    """Statut HTTP associé à une erreur du domaine."""
    for cls, status in _DOMAIN_STATUS:
        if isinstance(exc, cls):
            return status
    return HTTP_STATUS_INTERNAL_ERROR


def domain_details(exc: ScholarQAError) -> dict[str, Any] | None:
    """Détails publics d'une erreur du domaine (jamais de secret)."""
    if isinstance(exc, AllProvidersExhausted):
        return {
            "last_error": str(exc.last_error) if exc.last_error else None,
            "attempts": exc.attempts,
        }
    if isinstance(exc, FetchFailed):
        return {"url": exc.url, "attempts": exc.attempts}
    if isinstance(exc, IngestionAlreadyRunning):
        return {"entity_type": exc.entity_type}
    return None


def handle_api_error(request: Request, exc: APIError) -> JSONResponse:
    """Gère les `APIError`."""
    trace_id = extract_trace_id(request) or exc.trace_id
    log.warning("api_error", code=exc.code, status_code=exc.status_code, trace_id=trace_id)
    return create_error_response(exc.status_code, exc.code, exc.message, trace_id, exc.details)


def handle_domain_error(request: Request, exc: ScholarQAError) -> JSONResponse:
    """Gère les erreurs du domaine."""
    trace_id = extract_trace_id(request)
    status = domain_status(exc)
    log.error("domain_error", code=exc.code, status_code=status, error=str(exc), trace_id=trace_id)
    return create_error_response(status, exc.code, str(exc), trace_id, domain_details(exc))


def handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Gère les `HTTPException` FastAPI."""
    trace_id = extract_trace_id(request)
    code = _HTTP_CODES.get(exc.status_code, "HTTP_ERROR")
    return create_error_response(exc.status_code, code, str(exc.detail), trace_id)


def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Gère les erreurs de validation de requête (400)."""
    trace_id = extract_trace_id(request)
    return create_error_response(
        HTTP_STATUS_BAD_REQUEST,
        ErrorCodes.VALIDATION_ERROR,
        "Invalid request",
        trace_id,
        {"errors": [{"loc": list(e.get("loc", ())), "msg": e.get("msg")} for e in exc.errors()]},
    )


def handle_generic_exception(request: Request, exc: Exception) -> JSONResponse:
    """Gère toute autre exception (500, sans fuite de détails)."""
    trace_id = extract_trace_id(request)
    log.exception("unexpected_error", exception_type=type(exc).__name__, trace_id=trace_id)
    return create_error_response(
        HTTP_STATUS_INTERNAL_ERROR,
        ErrorCodes.INTERNAL_ERROR,
        "An unexpected error occurred",
        trace_id,
    )


def register_error_handlers(app: FastAPI) -> None:
    """Enregistre les gestionnaires d'erreurs sur l'application."""
    app.add_exception_handler(APIError, handle_api_error)
    app.add_exception_handler(ScholarQAError, handle_domain_error)
    app.add_exception_handler(StarletteHTTPException, handle_http_exception)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(Exception, handle_generic_exception)
