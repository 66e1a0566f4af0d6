"""
Types de données pour les corpus conférences/journaux et les résultats de recherche.

Ce module définit les types d'entités, la règle de clé de déduplication, ainsi que les modèles
Pydantic des résultats de recherche renvoyés par le moteur de récupération.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

DEDUPE_KEY_FIELD = "_key"
CREATED_TIME_FIELD = "created_time"
VECTOR_FIELD_CANDIDATES = ("vector", "embedding")

# Champs internes jamais exposés dans un résultat de recherche
INTERNAL_FIELDS = frozenset(
    {"_id", CREATED_TIME_FIELD, "updated_time", *VECTOR_FIELD_CANDIDATES}
)


class EntityType(str, Enum):
    """Types d'entités indexés; la valeur sert aussi de nom de collection."""

    CONFERENCE = "conference"
    JOURNAL = "journal"


# Champs concaténés pour construire le texte à embedder
EMBEDDING_FIELDS: tuple[str, ...] = (DEDUPE_KEY_FIELD, "publisher", "description")

# Champs parcourus par le tier mot-clé
KEYWORD_FIELDS: dict[EntityType, tuple[str, ...]] = {
    EntityType.CONFERENCE: ("title", "name", "acronym", "topics", "location", "country"),
    EntityType.JOURNAL: ("title", "categories", "areas", "publisher", "issn"),
}


def compute_dedupe_key(entity_type: EntityType, record: dict[str, Any]) -> str:
    """Calcule la clé de déduplication d'un enregistrement.

    - conférence: "acronym name" (parties manquantes vides, résultat strippé)
    - journal: titre

    Args:
        entity_type: Type d'entité de l'enregistrement.
        record: Champs bruts de l'enregistrement.

    Returns:
        str: Clé déterministe, fonction pure des champs identifiants.
    """
    if entity_type is EntityType.CONFERENCE:
        acronym = record.get("acronym") or ""
        name = record.get("name") or ""
        return f"{acronym} {name}".strip()
    return str(record.get("title") or "")


def embedding_text(record: dict[str, Any], fields: tuple[str, ...] = EMBEDDING_FIELDS) -> str:
    """Construit le texte d'entrée de l'embedder à partir d'une liste fixe de champs.

    Les valeurs liste sont jointes par des espaces, les champs vides ignorés.
    """
    parts: list[str] = []
    for f in fields:
        val = record.get(f)
        if isinstance(val, list | tuple):
            val = " ".join(str(v) for v in val if v not in (None, ""))
        if val in (None, ""):
            continue
        parts.append(str(val))
    return " ".join(parts)


def project_record(record: dict[str, Any], extra: tuple[str, ...] = ()) -> dict[str, Any]:
    """Retourne une copie de l'enregistrement sans vecteur ni champs internes."""
    hidden = INTERNAL_FIELDS.union(extra)
    return {k: v for k, v in record.items() if k not in hidden}


class SearchResult(BaseModel):
    """Projection d'un enregistrement avec son score de similarité (plus haut = plus pertinent)."""

    record: dict[str, Any] = Field(default_factory=dict)
    score: float = 0.0

    def to_public(self) -> dict[str, Any]:
        """Aplatit le résultat pour les réponses API."""
        return {**self.record, "score": self.score}


class RetrievalDiagnostic(BaseModel):
    """Diagnostic optionnel: tier utilisé et éventuelle erreur pour un type d'entité."""

    tier: str | None = None
    error: str | None = None


class RetrievalResponse(BaseModel):
    """Résultats par type d'entité, bornés au top-k demandé."""

    conference: list[SearchResult] = Field(default_factory=list)
    journal: list[SearchResult] = Field(default_factory=list)
    diagnostics: dict[str, RetrievalDiagnostic] = Field(default_factory=dict)

    def results_for(self, entity_type: EntityType) -> list[SearchResult]:
        """Retourne la liste de résultats d'un type d'entité."""
        return self.conference if entity_type is EntityType.CONFERENCE else self.journal
