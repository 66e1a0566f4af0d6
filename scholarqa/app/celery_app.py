"""
Module: celery_app.

But: Initialiser l'instance Celery, charger la config runtime et publier le planning beat de
l'ingestion dérivé de `INGEST_SCHEDULE_CRON`.
"""

from __future__ import annotations

from celery import Celery
from celery.schedules import crontab

from scholarqa.core.settings import get_settings

CRON_FIELDS = 5
INGEST_TASK_NAME = "scholarqa.tasks.ingest_tasks.run_ingestion"


def crontab_from_expr(expr: str) -> crontab:
    """Convertit une expression cron à 5 champs en `crontab` Celery.

    Raises:
        ValueError: Si l'expression n'a pas exactement 5 champs.
    """
    parts = (expr or "").split()
    if len(parts) != CRON_FIELDS:
        raise ValueError(f"invalid cron expression: {expr!r}")
    minute, hour, day_of_month, month_of_year, day_of_week = parts
    return crontab(
        minute=minute,
        hour=hour,
        day_of_month=day_of_month,
        month_of_year=month_of_year,
        day_of_week=day_of_week,
    )


settings = get_settings()

celery_app = Celery(
    "scholarqa",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=["scholarqa.tasks.ingest_tasks"],
)
celery_app.config_from_object("scholarqa.app.celeryconfig")
celery_app.conf.task_routes = {"scholarqa.tasks.*": {"queue": "default"}}
celery_app.conf.beat_schedule = {
    "scheduled-ingestion": {
        "task": INGEST_TASK_NAME,
        "schedule": crontab_from_expr(settings.INGEST_SCHEDULE_CRON),
        "kwargs": {"force": False},
    }
}

__all__ = ["celery_app", "crontab_from_expr"]
