"""Taxonomie des erreurs du cœur retrieval/génération.

Chaque erreur porte un `code` stable utilisé dans l'enveloppe d'erreur API et les labels de
métriques. Les erreurs récupérables (embedding, index, provider) sont traitées localement par les
tiers de repli; seules les erreurs d'épuisement remontent à l'appelant.
"""

from __future__ import annotations


class ScholarQAError(RuntimeError):
    """Erreur de base du domaine."""

    code = "INTERNAL_ERROR"


class FetchFailed(ScholarQAError):
    """Source externe injoignable après épuisement des tentatives."""

    code = "FETCH_FAILED"

    def __init__(self, url: str, attempts: int, last_error: Exception | None = None) -> None:
        """Initialise l'erreur avec l'URL, le nombre de tentatives et la dernière cause."""
        self.url = url
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"fetch failed after {attempts} attempts: {url} ({last_error!r})")


class EmbeddingUnavailable(ScholarQAError):
    """Backend d'embedding injoignable ou réponse malformée."""

    code = "EMBEDDING_UNAVAILABLE"


class DimensionMismatch(ScholarQAError):
    """Vecteur de dimension inattendue (erreur d'intégrité fatale)."""

    code = "DIMENSION_MISMATCH"

    def __init__(self, expected: int, actual: int) -> None:
        """Initialise l'erreur avec les dimensions attendue et observée."""
        self.expected = expected
        self.actual = actual
        super().__init__(f"vector dimension mismatch: expected {expected}, got {actual}")


class IndexNotFound(ScholarQAError):
    """Index vectoriel absent côté store."""

    code = "INDEX_NOT_FOUND"

    def __init__(self, index_name: str) -> None:
        """Initialise l'erreur avec le nom d'index introuvable."""
        self.index_name = index_name
        super().__init__(f"vector index not found: {index_name}")


class VectorSearchUnsupported(ScholarQAError):
    """Le store ne sait pas exécuter de recherche ANN."""

    code = "VECTOR_SEARCH_UNSUPPORTED"


class StoreUnavailable(ScholarQAError):
    """Store de contenus injoignable ou mal configuré."""

    code = "STORE_UNAVAILABLE"


class CompletionFailed(ScholarQAError):
    """Échec d'un provider de complétion (timeout, auth, réponse vide ou malformée)."""

    code = "COMPLETION_FAILED"

    def __init__(self, provider: str, message: str) -> None:
        """Initialise l'erreur avec l'identité du provider."""
        self.provider = provider
        super().__init__(f"{provider} error: {message}")


class AllProvidersExhausted(ScholarQAError):
    """Aucun provider de la chaîne n'a produit de réponse."""

    code = "ALL_PROVIDERS_EXHAUSTED"

    def __init__(
        self,
        last_error: Exception | None,
        attempts: list[dict[str, str]] | None = None,
    ) -> None:
        """Initialise l'erreur avec la dernière cause et le journal des tentatives."""
        self.last_error = last_error
        self.attempts = attempts or []
        super().__init__(f"all completion providers failed; last error: {last_error}")


class IngestionAlreadyRunning(ScholarQAError):
    """Une ingestion est déjà en cours pour ce type d'entité."""

    code = "INGESTION_ALREADY_RUNNING"

    def __init__(self, entity_type: str) -> None:
        """Initialise l'erreur avec le type d'entité verrouillé."""
        self.entity_type = entity_type
        super().__init__(f"ingestion already running for {entity_type}")
