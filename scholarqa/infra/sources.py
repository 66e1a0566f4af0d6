"""Client HTTP des sources externes (listes de conférences et de journaux).

Objectif du module
------------------
- Télécharger un tableau JSON complet avec tentatives bornées et délai fixe entre tentatives.
- Convertir l'épuisement des tentatives en `FetchFailed`.
"""

from __future__ import annotations

import json
import time
from collections.abc import Callable
from typing import Any

import httpx
import structlog

from scholarqa.domain.errors import FetchFailed


class SourceClient:
    """Client de téléchargement des sources d'ingestion.

    Args:
        retries: Nombre total de tentatives (>= 1).
        retry_delay_s: Délai fixe entre deux tentatives.
        timeout_s: Délai maximal d'une tentative.
        client: Client httpx injecté (tests).
        sleep: Fonction d'attente injectée (tests).
    """

    def __init__(
        self,
        retries: int = 3,
        retry_delay_s: float = 5.0,
        timeout_s: float = 60.0,
        client: httpx.Client | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialise le client avec sa politique de tentatives."""
        self.retries = max(1, int(retries))
        self.retry_delay_s = retry_delay_s
        self._client = client or httpx.Client(timeout=httpx.Timeout(timeout_s))
        self._sleep = sleep
        self._log = structlog.get_logger(__name__).bind(component="source_client")

    def _download(self, url: str) -> list[dict[str, Any]]:
        size = 0
        chunks: list[bytes] = []
        start = time.perf_counter()
        with self._client.stream("GET", url) as resp:
            resp.raise_for_status()
            for chunk in resp.iter_bytes():
                size += len(chunk)
                chunks.append(chunk)
        payload = json.loads(b"".join(chunks).decode("utf-8"))
        if not isinstance(payload, list):
            raise ValueError(f"expected a JSON array, got {type(payload).__name__}")
        self._log.info(
            "source_downloaded",
            url=url,
            bytes=size,
            records=len(payload),
            elapsed_s=round(time.perf_counter() - start, 3),
        )
        return payload

    def fetch(self, url: str) -> list[dict[str, Any]]:
        """Télécharge `url`; lève `FetchFailed` après épuisement des tentatives."""
        last_error: Exception | None = None
        for attempt in range(1, self.retries + 1):
            try:
                return self._download(url)
            except (httpx.HTTPError, ValueError) as exc:
                # ValueError couvre aussi json.JSONDecodeError et UnicodeDecodeError
                last_error = exc
                self._log.warning("source_fetch_failed", url=url, attempt=attempt, error=str(exc))
                if attempt < self.retries:
                    self._sleep(self.retry_delay_s)
        raise FetchFailed(url, self.retries, last_error)

    def close(self) -> None:
        """Ferme le client HTTP sous-jacent."""
        self._client.close()
