"""Route de l'agent question/réponse.

Ce module expose `POST /agent`: récupération parallèle, composition du prompt, génération avec
repli entre providers, et comptage estimé des tokens.
"""

from __future__ import annotations

import time

import tiktoken
from fastapi import APIRouter, Depends

from scholarqa.api.errors import bad_request
from scholarqa.api.schemas import AgentRequest, AgentResponse
from scholarqa.app.metrics import LLM_TOKENS_TOTAL, TOKEN_COUNT_STRATEGY_INFO
from scholarqa.app.tracing import tracer
from scholarqa.core.container import Container, get_container

DEFAULT_MODEL_ENCODING = "cl100k_base"

router = APIRouter(tags=["agent"])
_container_dep = Depends(get_container)


def estimate_tokens(text: str, strategy: str = "auto") -> int:
    """Estime le nombre de tokens: auto|tiktoken|words.

    Ne journalise jamais le texte; seul le compte est produit.
    """
    strategy = (strategy or "auto").lower()
    TOKEN_COUNT_STRATEGY_INFO.labels(strategy=strategy).set(1)

    def _from_tiktoken() -> int | None:
        try:
            enc = tiktoken.get_encoding(DEFAULT_MODEL_ENCODING)
            return len(enc.encode(text or ""))
        except Exception:
            return None

    def _from_words() -> int:
        return max(0, len((text or "").split()))

    if strategy == "words":
        return _from_words()
    # auto et tiktoken: repli sur les mots si l'encodage est indisponible
    return _from_tiktoken() or _from_words()


@router.post("/agent", response_model=AgentResponse)
def agent(payload: AgentRequest, container: Container = _container_dep):
    """Répond à une question à partir des conférences et journaux récupérés."""
    question = (payload.question or "").strip()
    if not question:
        raise bad_request("Missing question")
    requested = payload.provider or container.settings.DEFAULT_LLM_PROVIDER
    start = time.perf_counter()
    with tracer.start_as_current_span("agent.answer") as span:
        span.set_attribute("agent.requested_provider", requested)
        result = container.orchestrator.answer(question, provider=requested, top_k=payload.topk)
        span.set_attribute("agent.provider", result.generation.provider)
    tokens = estimate_tokens(
        result.prompt + result.generation.answer, container.settings.TOKEN_COUNT_STRATEGY
    )
    LLM_TOKENS_TOTAL.labels(provider=result.generation.provider).inc(tokens)
    diagnostics = {
        name: diag.model_dump() for name, diag in result.retrieved.diagnostics.items()
    }
    diagnostics["attempts"] = result.generation.attempts
    diagnostics["latency_ms"] = int((time.perf_counter() - start) * 1000)
    return AgentResponse(
        provider=result.generation.provider,
        answer=result.generation.answer,
        retrieved={
            "conference": [r.to_public() for r in result.retrieved.conference],
            "journal": [r.to_public() for r in result.retrieved.journal],
        },
        diagnostics=diagnostics,
    )
