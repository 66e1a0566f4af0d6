"""Tests pour le client des sources externes."""

from __future__ import annotations

import httpx
import pytest

from scholarqa.domain.errors import FetchFailed
from scholarqa.infra.sources import SourceClient

URL = "http://sources.test/journals"
RETRIES = 3
DELAY = 5.0


def _client(handler, retries=RETRIES):
    sleeps: list[float] = []
    client = SourceClient(
        retries=retries,
        retry_delay_s=DELAY,
        client=httpx.Client(transport=httpx.MockTransport(handler)),
        sleep=sleeps.append,
    )
    return client, sleeps


def test_fetch_returns_json_array() -> None:
    """Teste le téléchargement d'un tableau JSON."""
    client, sleeps = _client(lambda request: httpx.Response(200, json=[{"title": "Nature"}]))
    assert client.fetch(URL) == [{"title": "Nature"}]
    assert sleeps == []


def test_fetch_retries_then_succeeds() -> None:
    """Teste qu'un échec transitoire est réessayé après le délai fixe."""
    calls = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        if calls["n"] < RETRIES:
            return httpx.Response(503)
        return httpx.Response(200, json=[])

    client, sleeps = _client(handler)
    assert client.fetch(URL) == []
    assert calls["n"] == RETRIES
    assert sleeps == [DELAY, DELAY]


def test_fetch_exhaustion_raises_fetch_failed() -> None:
    """Teste FetchFailed après épuisement, sans attente après la dernière tentative."""

    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    client, sleeps = _client(handler)
    with pytest.raises(FetchFailed) as info:
        client.fetch(URL)
    assert info.value.attempts == RETRIES
    assert info.value.url == URL
    assert len(sleeps) == RETRIES - 1


@pytest.mark.parametrize("body", [b'{"not": "a list"}', b"not json"])
def test_fetch_rejects_non_array_payload(body) -> None:
    """Teste qu'une charge utile qui n'est pas un tableau JSON est un échec."""
    client, _ = _client(lambda request: httpx.Response(200, content=body), retries=1)
    with pytest.raises(FetchFailed):
        client.fetch(URL)
