"""Définition et chargement des paramètres de configuration applicative.

Objectif du module
------------------
- Centraliser les paramètres (env/.env) via Pydantic Settings
- Résoudre le fichier `.env` à utiliser selon la stratégie: ENV_FILE > .env.{APP_ENV} > .env
"""

import os
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

# Détermination du fichier .env à utiliser avec priorité:
# 1) ENV_FILE (chemin explicite)
# 2) .env.{APP_ENV} si présent
# 3) .env (défaut)
_cwd = Path.cwd()
_env_file_from_env = os.getenv("ENV_FILE")
if _env_file_from_env:
    _ENV_FILE_PATH = _env_file_from_env
else:
    _app_env = os.getenv("APP_ENV", "dev")
    _candidate_specific = _cwd / f".env.{_app_env}"
    _candidate_default = _cwd / ".env"
    if _candidate_specific.exists():
        _ENV_FILE_PATH = _candidate_specific
    else:
        _ENV_FILE_PATH = _candidate_default


class Settings(BaseSettings):
    """Modèle de configuration chargé depuis l'environnement et .env."""

    model_config = SettingsConfigDict(
        env_file=_ENV_FILE_PATH,
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        case_sensitive=False,
    )
    APP_NAME: str = "scholarqa-backend"
    APP_ENV: str = "dev"
    APP_DEBUG: bool = True
    APP_HOST: str = "0.0.0.0"
    APP_PORT: int = 3000

    # CSV via .env; "*" autorise toutes les origines
    CORS_ORIGINS: str = "*"

    # Content store
    CONTENT_BACKEND: str = "mongo"  # "mongo" | "faiss" | "memory"
    MONGODB_URI: str | None = None
    MONGODB_DB: str = "rpa"
    MONGODB_TIMEOUT_MS: int = 10000
    FAISS_DATA_DIR: str = "./var/faiss"
    REDIS_URL: str | None = None

    # Vector search
    CONFERENCE_VECTOR_INDEX: str = ""
    JOURNAL_VECTOR_INDEX: str = ""
    RETRIEVAL_DEFAULT_TOP_K: int = 5
    RETRIEVAL_MAX_TOP_K: int = 500
    RETRIEVAL_VECTOR_ONLY: bool = False
    RETRIEVAL_TIMEOUT_S: float = 30.0

    # Embeddings
    OPENAI_API_KEY: str | None = None
    EMBEDDINGS_PROVIDER: str = "local"  # "openai" | "local"
    EMBEDDINGS_MODEL: str = "text-embedding-3-small"
    LOCAL_EMBEDDINGS_MODEL: str = "all-MiniLM-L6-v2"
    EMBEDDINGS_TIMEOUT_S: float = 30.0
    EMBEDDING_BATCH_SIZE: int = 25

    # Ingestion
    API_RESEARCH: str = "https://api.rpa4edu.shop/api_research.php"
    API_JOURNAL: str = "https://api.rpa4edu.shop/api_journal.php"
    FETCH_RETRIES: int = 3
    FETCH_RETRY_DELAY_S: float = 5.0
    FETCH_TIMEOUT_S: float = 60.0
    INGEST_UPSERT_WORKERS: int = 10
    INGEST_ON_BOOT: bool = False
    INGEST_SCHEDULE_CRON: str = "0 0 * * *"
    INGEST_LOCK_TTL_S: int = 3600
    # Jeton partagé exigé par POST /internal/ingest (en-tête X-Internal-Token) si défini
    INTERNAL_API_TOKEN: str | None = None

    # Completion providers
    DEFAULT_LLM_PROVIDER: str = "gemini"
    # CSV via .env
    LLM_FALLBACK_ORDER: str = "gemini,qwen,openai"
    LLM_TIMEOUT_S: float = 60.0
    OPENAI_MODEL: str = "gpt-4o-mini"
    QWEN_API_KEY: str | None = None
    QWEN_MODEL: str = "qwen-plus"
    QWEN_BASE_URL: str = "https://dashscope.aliyuncs.com/compatible-mode/v1"
    GEMINI_API_KEY: str | None = None
    GEMINI_MODEL: str = "gemini-1.5-flash"
    GEMINI_BASE_URL: str = "https://generativelanguage.googleapis.com/v1beta"
    LOCAL_LLM_MODEL: str = "Qwen/Qwen2.5-0.5B-Instruct"
    LOCAL_LLM_MAX_NEW_TOKENS: int = 200
    # Token counting strategy: auto | tiktoken | words
    TOKEN_COUNT_STRATEGY: str = "auto"

    # Observabilité / tâches
    OTLP_ENDPOINT: str | None = None
    CELERY_BROKER_URL: str = "redis://redis:6379/0"
    CELERY_RESULT_BACKEND: str = "redis://redis:6379/1"


def get_settings() -> Settings:
    """Construit et retourne la configuration de l'application."""
    return Settings()
