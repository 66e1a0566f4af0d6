"""
Endpoint de santé pour vérifier la disponibilité de l'API.

Expose `/health` avec le backend de stockage, l'embedder et les providers configurés, sans ouvrir
de connexion réseau.
"""

from fastapi import APIRouter, Depends

from scholarqa.core.container import Container, get_container

router = APIRouter(tags=["health"])
_container_dep = Depends(get_container)


@router.get("/health")
def health(container: Container = _container_dep):
    """Vérifie la disponibilité de l'API et rappelle la configuration active."""
    settings = container.settings
    return {
        "status": "ok",
        "storage": (settings.CONTENT_BACKEND or "mongo").lower(),
        "embeddings": (settings.EMBEDDINGS_PROVIDER or "local").lower(),
        "default_provider": settings.DEFAULT_LLM_PROVIDER,
        "redis_url": bool(settings.REDIS_URL),
    }
