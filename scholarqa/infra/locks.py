"""Verrous single-flight pour l'ingestion.

Un verrou local (threading) par type d'entité protège le processus; si `REDIS_URL` est configuré,
un verrou Redis (`SET NX` avec TTL) protège aussi entre processus (API et worker Celery).
Une exécution concurrente est rejetée, jamais mise en file.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager

import redis
import structlog
from redis.exceptions import ConnectionError, LockError, TimeoutError

from scholarqa.domain.errors import IngestionAlreadyRunning

LOCK_PREFIX = "scholarqa:ingest:"


class SingleFlight:
    """Verrou non bloquant par clé (process-local + Redis optionnel)."""

    def __init__(self, redis_url: str | None = None, ttl_s: int = 3600, client=None) -> None:
        """Initialise les verrous; le client Redis est créé paresseusement."""
        self.redis_url = redis_url
        self.ttl_s = ttl_s
        self._redis = client
        self._locks: dict[str, threading.Lock] = {}
        self._guard = threading.Lock()
        self._log = structlog.get_logger(__name__).bind(component="single_flight")

    def _local(self, key: str) -> threading.Lock:
        with self._guard:
            return self._locks.setdefault(key, threading.Lock())

    def _get_redis(self):
        if self._redis is None and self.redis_url:
            self._redis = redis.from_url(
                self.redis_url, socket_connect_timeout=2, socket_timeout=2
            )
        return self._redis

    def is_running(self, key: str) -> bool:
        """Indique si une exécution locale est en cours pour `key`."""
        return self._local(key).locked()

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        """Détient le verrou de `key` le temps du bloc; lève `IngestionAlreadyRunning` sinon."""
        local = self._local(key)
        if not local.acquire(blocking=False):
            raise IngestionAlreadyRunning(key)
        remote = None
        try:
            client = self._get_redis()
            if client is not None:
                remote = client.lock(LOCK_PREFIX + key, timeout=self.ttl_s, blocking=False)
                try:
                    acquired = remote.acquire(blocking=False)
                except (ConnectionError, TimeoutError) as exc:
                    # Redis indisponible: seul le verrou local s'applique
                    self._log.warning("redis_lock_unavailable", key=key, error=str(exc))
                    remote, acquired = None, True
                if not acquired:
                    raise IngestionAlreadyRunning(key)
            yield
        finally:
            try:
                if remote is not None and remote.owned():
                    remote.release()
            except (ConnectionError, TimeoutError, LockError) as exc:
                # la clé distante expire avec son TTL
                self._log.warning("redis_lock_release_failed", key=key, error=str(exc))
            finally:
                local.release()
