"""Orchestration de la génération avec repli ordonné entre providers."""

from __future__ import annotations

import time
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

import structlog

from scholarqa.app.metrics import LLM_ATTEMPTS, LLM_LATENCY
from scholarqa.domain.errors import AllProvidersExhausted, CompletionFailed
from scholarqa.infra.llm.base import CompletionProvider
from scholarqa.infra.llm.registry import parse_order

UNKNOWN_PROVIDER = "unknown_provider"


@dataclass
class GenerationResult:
    """Réponse complète et provider qui l'a produite."""

    answer: str
    provider: str
    attempts: list[dict[str, str]] = field(default_factory=list)


def provider_order(requested: str | None, fallback: str | list[str] | None) -> list[str]:
    """Provider demandé d'abord, puis l'ordre de repli configuré, sans doublons."""
    return parse_order([*parse_order(requested), *parse_order(fallback)])


class GenerationOrchestrator:
    """Essaie les providers dans l'ordre et s'arrête au premier succès.

    Chaque provider est tenté au plus une fois; un nom inconnu est journalisé comme tentative
    échouée.
    """

    def __init__(
        self,
        providers: Mapping[str, CompletionProvider],
        fallback_order: str | list[str] | None = None,
    ) -> None:
        """Initialise l'orchestrateur avec le registre de providers."""
        self.providers = dict(providers)
        self.fallback_order = fallback_order
        self._log = structlog.get_logger(__name__).bind(component="generation")

    def order_for(self, requested: str | None) -> list[str]:
        """Ordre effectif pour un provider demandé."""
        return provider_order(requested, self.fallback_order)

    def generate(self, prompt: str, order: Iterable[str]) -> GenerationResult:
        """Génère une réponse; lève `AllProvidersExhausted` si tous échouent."""
        attempts: list[dict[str, str]] = []
        last_error: Exception | None = None
        for name in parse_order(list(order)):
            provider = self.providers.get(name)
            if provider is None:
                last_error = CompletionFailed(name, UNKNOWN_PROVIDER)
                attempts.append({"provider": name, "status": "failed", "error": UNKNOWN_PROVIDER})
                LLM_ATTEMPTS.labels(provider=name, result=UNKNOWN_PROVIDER).inc()
                self._log.warning("provider_unknown", provider=name)
                continue
            start = time.perf_counter()
            try:
                answer = provider.complete(prompt)
            except Exception as exc:
                last_error = exc
                attempts.append({"provider": name, "status": "failed", "error": str(exc)})
                LLM_ATTEMPTS.labels(provider=name, result="failed").inc()
                self._log.warning("provider_attempt_failed", provider=name, error=str(exc))
                continue
            finally:
                LLM_LATENCY.labels(provider=name).observe(time.perf_counter() - start)
            attempts.append({"provider": name, "status": "ok"})
            LLM_ATTEMPTS.labels(provider=name, result="ok").inc()
            self._log.info("provider_attempt_succeeded", provider=name, attempts=len(attempts))
            return GenerationResult(answer=answer, provider=name, attempts=attempts)
        self._log.error("providers_exhausted", attempts=len(attempts))
        raise AllProvidersExhausted(last_error, attempts)
