"""Provider Gemini via l'API REST `generateContent` (httpx)."""

from __future__ import annotations

import httpx

from scholarqa.domain.errors import CompletionFailed
from scholarqa.infra.llm.base import CompletionProvider


class GeminiProvider(CompletionProvider):
    """Provider Gemini (Google Generative Language API).

    Variables utilisées: `GEMINI_API_KEY`, `GEMINI_MODEL`, `GEMINI_BASE_URL`.
    """

    name = "gemini"

    def __init__(
        self,
        api_key: str | None,
        model: str = "gemini-1.5-flash",
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        timeout: float = 60.0,
        client: httpx.Client | None = None,
    ) -> None:
        """Initialize Gemini provider with a reusable HTTP client."""
        self.api_key = api_key or ""
        self.model = model
        self.base_url = base_url.rstrip("/")
        self._client = client or httpx.Client(
            headers={"Content-Type": "application/json"},
            timeout=httpx.Timeout(timeout, connect=5.0),
        )

    def _call(self, prompt: str) -> str | None:
        if not self.api_key:
            raise CompletionFailed(self.name, "GEMINI_API_KEY not configured")
        url = f"{self.base_url}/models/{self.model}:generateContent"
        payload = {"contents": [{"parts": [{"text": prompt}]}]}
        resp = self._client.post(url, params={"key": self.api_key}, json=payload)
        if resp.status_code >= 400:
            raise CompletionFailed(self.name, _error_message(resp))
        data = resp.json()
        try:
            return data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError):
            return None


def _error_message(resp: httpx.Response) -> str:
    try:
        return str(resp.json()["error"]["message"])
    except Exception:
        return f"http {resp.status_code}"
