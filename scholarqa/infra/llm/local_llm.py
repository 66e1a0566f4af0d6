"""Provider de génération locale via un pipeline `transformers` text-generation."""

from __future__ import annotations

import threading

try:
    from transformers import pipeline  # type: ignore
except Exception:  # pragma: no cover - optional dependency
    pipeline = None  # type: ignore

import structlog

from scholarqa.domain.errors import CompletionFailed
from scholarqa.infra.llm.base import CompletionProvider


class LocalLLMProvider(CompletionProvider):
    """Génération locale; le pipeline est chargé une fois, au premier appel."""

    name = "local"

    _pipelines: dict[str, object] = {}
    _lock = threading.Lock()

    def __init__(self, model: str, max_new_tokens: int = 200) -> None:
        """Initialise le provider avec le modèle et la limite de tokens générés."""
        self.model = model
        self.max_new_tokens = max_new_tokens
        self._log = structlog.get_logger(__name__).bind(component="local_llm")

    def _get_pipeline(self):
        pipe = LocalLLMProvider._pipelines.get(self.model)
        if pipe is not None:
            return pipe
        if pipeline is None:
            raise CompletionFailed(self.name, "transformers is not installed")
        with LocalLLMProvider._lock:
            pipe = LocalLLMProvider._pipelines.get(self.model)
            if pipe is None:
                self._log.info("local_model_loading", model=self.model)
                pipe = pipeline("text-generation", model=self.model)
                LocalLLMProvider._pipelines[self.model] = pipe
                self._log.info("local_model_ready", model=self.model)
        return pipe

    def _call(self, prompt: str) -> str | None:
        out = self._get_pipeline()(
            prompt, max_new_tokens=self.max_new_tokens, return_full_text=False
        )
        if not out:
            return None
        return out[0].get("generated_text")
