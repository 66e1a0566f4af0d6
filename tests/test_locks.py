"""Tests pour le verrou single-flight."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from redis.exceptions import ConnectionError, LockNotOwnedError

from scholarqa.domain.errors import IngestionAlreadyRunning
from scholarqa.infra.locks import LOCK_PREFIX, SingleFlight

KEY = "conference"
TTL = 60


def test_local_lock_rejects_second_holder() -> None:
    """Teste qu'une seconde acquisition de la même clé est rejetée."""
    lock = SingleFlight()
    with lock.hold(KEY):
        assert lock.is_running(KEY)
        with pytest.raises(IngestionAlreadyRunning):
            with lock.hold(KEY):
                pass
    assert not lock.is_running(KEY)


def test_keys_are_independent() -> None:
    """Teste que deux clés différentes se verrouillent indépendamment."""
    lock = SingleFlight()
    with lock.hold(KEY), lock.hold("journal"):
        assert lock.is_running("journal")


def test_redis_lock_acquired_and_released() -> None:
    """Teste l'acquisition et la libération du verrou Redis."""
    client = MagicMock()
    remote = client.lock.return_value
    remote.acquire.return_value = True
    remote.owned.return_value = True
    lock = SingleFlight(redis_url="redis://test", ttl_s=TTL, client=client)
    with lock.hold(KEY):
        pass
    client.lock.assert_called_once_with(LOCK_PREFIX + KEY, timeout=TTL, blocking=False)
    remote.release.assert_called_once()


def test_redis_lock_held_elsewhere_is_rejected() -> None:
    """Teste le rejet quand un autre processus détient le verrou Redis."""
    client = MagicMock()
    remote = client.lock.return_value
    remote.acquire.return_value = False
    remote.owned.return_value = False
    lock = SingleFlight(redis_url="redis://test", client=client)
    with pytest.raises(IngestionAlreadyRunning):
        with lock.hold(KEY):
            pass
    remote.release.assert_not_called()
    assert not lock.is_running(KEY)


def test_redis_unreachable_falls_back_to_local_lock() -> None:
    """Teste qu'un Redis injoignable laisse s'appliquer le seul verrou local."""
    client = MagicMock()
    client.lock.return_value.acquire.side_effect = ConnectionError("down")
    lock = SingleFlight(redis_url="redis://test", client=client)
    entered = False
    with lock.hold(KEY):
        entered = True
    assert entered
    client.lock.return_value.release.assert_not_called()


def test_redis_error_on_release_still_frees_local_lock() -> None:
    """Teste qu'une panne Redis à la libération ne laisse pas la clé bloquée localement."""
    client = MagicMock()
    remote = client.lock.return_value
    remote.acquire.return_value = True
    remote.owned.side_effect = ConnectionError("down")
    lock = SingleFlight(redis_url="redis://test", client=client)
    with lock.hold(KEY):
        pass
    assert not lock.is_running(KEY)
    remote.owned.side_effect = None
    remote.owned.return_value = False
    with lock.hold(KEY):
        assert lock.is_running(KEY)


def test_expired_redis_lock_on_release_is_logged_not_raised() -> None:
    """Vérifie qu'un verrou Redis expiré avant la libération ne fait pas échouer le run."""
    client = MagicMock()
    remote = client.lock.return_value
    remote.acquire.return_value = True
    remote.owned.return_value = True
    remote.release.side_effect = LockNotOwnedError("expired")
    lock = SingleFlight(redis_url="redis://test", client=client)
    with lock.hold(KEY):
        pass
    assert not lock.is_running(KEY)
