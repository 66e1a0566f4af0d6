"""Interface de base pour les providers de complétion."""

from __future__ import annotations

from abc import ABC, abstractmethod

from scholarqa.domain.errors import CompletionFailed


class CompletionProvider(ABC):
    """Interface abstraite: un prompt en entrée, une réponse complète en sortie.

    Les erreurs spécifiques au vendor sont converties en `CompletionFailed`; une réponse vide est
    un échec, jamais une réponse partielle.
    """

    name = "base"

    @abstractmethod
    def _call(self, prompt: str) -> str | None:
        """Appelle le vendor et retourne le texte brut."""
        ...

    def complete(self, prompt: str) -> str:
        """Génère une réponse à partir d'un prompt."""
        try:
            text = self._call(prompt)
        except CompletionFailed:
            raise
        except Exception as exc:
            raise CompletionFailed(self.name, str(exc) or type(exc).__name__) from exc
        if not isinstance(text, str) or not text.strip():
            raise CompletionFailed(self.name, "empty or malformed response")
        return text
