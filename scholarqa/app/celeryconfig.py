"""Configuration centralisée Celery pour les tâches d'ingestion.

Ce module définit la configuration globale de Celery: acquittements tardifs, timeouts et limites
de connexion au broker.
"""

# ============================================================
# Module : scholarqa/app/celeryconfig.py
# Objet  : Configuration centralisée Celery (acks, timeouts).
# ============================================================

from __future__ import annotations

# Acks
task_acks_late = True
task_reject_on_worker_lost = True
worker_prefetch_multiplier = 1
broker_pool_limit = 10

# Une ingestion complète (fetch + embedding) peut durer longtemps
task_time_limit = 3600  # secondes
task_soft_time_limit = 3300  # secondes

timezone = "UTC"
enable_utc = True
