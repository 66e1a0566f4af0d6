# Schémas Pydantic exposés par l'API (requêtes et réponses).

from typing import Any

from pydantic import BaseModel, Field

from scholarqa.core.constants import DEFAULT_TOP_K
from scholarqa.domain.records import EntityType


class SearchAllRequest(BaseModel):
    """Corps optionnel de `POST /search/all` (les paramètres de requête priment)."""

    q: str | None = None
    limit: int | None = None


class SearchAllResponse(BaseModel):
    """Résultats combinés conférences + journaux.

    Champs:
    - query: requête reçue
    - limit: top-k effectif (borné)
    - journals / conferences: résultats ordonnés par score décroissant
    - total: somme des deux listes
    """

    query: str
    limit: int
    journals: list[dict[str, Any]] = Field(default_factory=list)
    conferences: list[dict[str, Any]] = Field(default_factory=list)
    total: int = 0
    diagnostics: dict[str, Any] = Field(default_factory=dict)


class AgentRequest(BaseModel):
    """Question posée à l'agent.

    Champs:
    - question: texte non vide
    - provider: provider préféré (sinon DEFAULT_LLM_PROVIDER)
    - topk: nombre de résultats par type d'entité
    """

    question: str
    provider: str | None = None
    topk: int = DEFAULT_TOP_K


class AgentResponse(BaseModel):
    """Réponse de l'agent: provider effectif, réponse et preuves."""

    provider: str
    answer: str
    retrieved: dict[str, list[dict[str, Any]]]
    diagnostics: dict[str, Any] = Field(default_factory=dict)


class IngestRequest(BaseModel):
    """Déclenchement manuel de l'ingestion."""

    entity_type: EntityType | None = None
    force: bool = False
