"""Orchestrateur de l'agent question/réponse.

Ce module coordonne la récupération parallèle des conférences et journaux, la composition du
prompt et la génération multi-providers.
"""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from scholarqa.domain.generation import GenerationOrchestrator, GenerationResult
from scholarqa.domain.prompt_composer import compose
from scholarqa.domain.retriever import RetrievalEngine
from scholarqa.domain.records import RetrievalResponse


@dataclass
class AgentAnswer:
    """Réponse de l'agent avec les preuves utilisées."""

    generation: GenerationResult
    retrieved: RetrievalResponse
    prompt: str


class ChatOrchestrator:
    """Orchestrateur pour les questions sur les conférences et journaux."""

    def __init__(self, engine: RetrievalEngine, generator: GenerationOrchestrator):
        """Initialise l'orchestrateur avec un moteur de récupération et un générateur."""
        self.engine = engine
        self.generator = generator
        self._log = structlog.get_logger(__name__).bind(component="chat_orchestrator")

    def answer(
        self, question: str, provider: str | None = None, top_k: int | None = None
    ) -> AgentAnswer:
        """Récupère, compose puis génère; `AllProvidersExhausted` remonte tel quel."""
        retrieved = self.engine.retrieve_all(question, top_k)
        prompt = compose(question, retrieved.conference, retrieved.journal)
        generation = self.generator.generate(prompt, self.generator.order_for(provider))
        self._log.info(
            "agent_answered",
            provider=generation.provider,
            conferences=len(retrieved.conference),
            journals=len(retrieved.journal),
        )
        return AgentAnswer(generation=generation, retrieved=retrieved, prompt=prompt)
