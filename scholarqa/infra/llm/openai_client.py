"""
Providers de complétion basés sur le SDK OpenAI.

Implémente l'interface CompletionProvider pour:
- OpenAI (chat.completions)
- tout endpoint compatible OpenAI, dont Qwen/DashScope (base_url dédiée)
"""

from __future__ import annotations

from typing import Any

try:
    from openai import OpenAI  # type: ignore
except Exception:  # pragma: no cover - dépendance optionnelle
    OpenAI = None  # type: ignore

from scholarqa.domain.errors import CompletionFailed
from scholarqa.infra.llm.base import CompletionProvider


class OpenAIChatProvider(CompletionProvider):
    """
    Provider basé sur `chat.completions` du SDK OpenAI.

    Le même client sert pour OpenAI et pour les APIs compatibles (Qwen), seuls `name`, `base_url`
    et la clé changent. Les retries internes du SDK sont désactivés: l'orchestrateur passe au
    provider suivant au lieu de réessayer.
    """

    def __init__(
        self,
        api_key: str | None,
        model: str = "gpt-4o-mini",
        *,
        name: str = "openai",
        base_url: str | None = None,
        timeout: float = 60.0,
        client: Any = None,
    ) -> None:
        """Initialize the OpenAI-compatible client."""
        self.name = name
        self.model = model
        if client is not None:
            self.client = client
        elif OpenAI is not None and api_key:
            self.client = OpenAI(
                api_key=api_key, base_url=base_url, timeout=timeout, max_retries=0
            )
        else:
            self.client = None

    def _call(self, prompt: str) -> str | None:
        if self.client is None:
            raise CompletionFailed(self.name, "client not configured (missing SDK or API key)")
        resp = self.client.chat.completions.create(
            model=self.model,
            messages=[{"role": "user", "content": prompt}],
        )
        choices = getattr(resp, "choices", None) or []
        if not choices:
            return None
        message = getattr(choices[0], "message", None)
        return getattr(message, "content", None)
