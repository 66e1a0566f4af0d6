"""Déclenchement manuel de l'ingestion.

`POST /internal/ingest` lance l'ingestion en tâche de fond (202) ou, avec `wait=true`, l'exécute
et renvoie les rapports. Si `INTERNAL_API_TOKEN` est défini, l'en-tête `X-Internal-Token` doit le
porter.
"""

from __future__ import annotations

import hmac

from fastapi import APIRouter, BackgroundTasks, Body, Depends, Header, Query
from fastapi.responses import JSONResponse

from scholarqa.api.errors import APIError
from scholarqa.api.schemas import IngestRequest
from scholarqa.core.container import Container, get_container
from scholarqa.domain.errors import IngestionAlreadyRunning
from scholarqa.domain.records import EntityType

HTTP_STATUS_ACCEPTED = 202
HTTP_STATUS_FORBIDDEN = 403

router = APIRouter(prefix="/internal", tags=["internal"])
_container_dep = Depends(get_container)


def _check_token(container: Container, token: str | None) -> None:
    expected = container.resolve_secret("INTERNAL_API_TOKEN")
    if expected and not hmac.compare_digest(expected, token or ""):
        raise APIError(HTTP_STATUS_FORBIDDEN, "FORBIDDEN", "invalid internal token")


@router.post("/ingest")
def trigger_ingest(
    background: BackgroundTasks,
    body: IngestRequest | None = Body(default=None),
    wait: bool = Query(default=False),
    x_internal_token: str | None = Header(default=None),
    container: Container = _container_dep,
):
    """Déclenche l'ingestion d'un type d'entité, ou des deux."""
    _check_token(container, x_internal_token)
    body = body or IngestRequest()
    targets = [body.entity_type] if body.entity_type else list(EntityType)
    pipeline = container.pipeline
    for entity_type in targets:
        if pipeline.lock.is_running(entity_type.value):
            raise IngestionAlreadyRunning(entity_type.value)
    if wait:
        reports = [pipeline.run(t, force=body.force) for t in targets]
        return {"reports": [r.model_dump(mode="json") for r in reports]}
    for entity_type in targets:
        background.add_task(pipeline.run, entity_type, body.force)
    return JSONResponse(
        status_code=HTTP_STATUS_ACCEPTED,
        content={"status": "accepted", "entity_types": [t.value for t in targets]},
    )
