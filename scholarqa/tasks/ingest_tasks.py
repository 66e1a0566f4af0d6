"""
Tâches Celery d'ingestion.

Exécute le pipeline d'ingestion pour un type d'entité, ou pour tous. Le single-flight (verrou
Redis si configuré) rejette un run concurrent, rapporté avec le statut `skipped`.
"""

from __future__ import annotations

from scholarqa.app.celery_app import INGEST_TASK_NAME, celery_app
from scholarqa.core.container import get_container
from scholarqa.domain.records import EntityType


@celery_app.task(name=INGEST_TASK_NAME)
def run_ingestion(entity_type: str | None = None, force: bool = False) -> list[dict]:
    pipeline = get_container().pipeline
    if entity_type:
        reports = [pipeline.run(EntityType(entity_type), force=force)]
    else:
        reports = pipeline.run_all(force=force)
    return [r.model_dump(mode="json") for r in reports]
