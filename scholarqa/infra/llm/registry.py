"""Construction des providers de complétion configurés, indexés par nom."""

from __future__ import annotations

from collections.abc import Callable

from scholarqa.core.settings import Settings
from scholarqa.infra.llm.base import CompletionProvider
from scholarqa.infra.llm.gemini_client import GeminiProvider
from scholarqa.infra.llm.local_llm import LocalLLMProvider
from scholarqa.infra.llm.openai_client import OpenAIChatProvider


def build_providers(
    settings: Settings, secret: Callable[[str], str | None] | None = None
) -> dict[str, CompletionProvider]:
    """Instancie un provider par vendor connu.

    Un provider sans clé reste enregistré: son appel échoue proprement et l'orchestrateur passe au
    suivant.
    """
    secret = secret or (lambda key: getattr(settings, key, None))
    timeout = float(settings.LLM_TIMEOUT_S)
    providers: list[CompletionProvider] = [
        GeminiProvider(
            api_key=secret("GEMINI_API_KEY"),
            model=settings.GEMINI_MODEL,
            base_url=settings.GEMINI_BASE_URL,
            timeout=timeout,
        ),
        OpenAIChatProvider(
            api_key=secret("QWEN_API_KEY"),
            model=settings.QWEN_MODEL,
            name="qwen",
            base_url=settings.QWEN_BASE_URL,
            timeout=timeout,
        ),
        OpenAIChatProvider(
            api_key=secret("OPENAI_API_KEY"),
            model=settings.OPENAI_MODEL,
            timeout=timeout,
        ),
        LocalLLMProvider(
            model=settings.LOCAL_LLM_MODEL,
            max_new_tokens=settings.LOCAL_LLM_MAX_NEW_TOKENS,
        ),
    ]
    return {p.name: p for p in providers}


def parse_order(raw: str | list[str] | None) -> list[str]:
    """Normalise une liste CSV de noms de providers (minuscules, sans doublons)."""
    if raw is None:
        return []
    items = raw.split(",") if isinstance(raw, str) else raw
    out: list[str] = []
    for item in items:
        name = (item or "").strip().lower()
        if name and name not in out:
            out.append(name)
    return out
