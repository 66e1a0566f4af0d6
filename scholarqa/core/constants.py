"""Constantes partagées pour éviter les valeurs magiques dans le code."""

# Codes de statut HTTP courants
HTTP_STATUS_BAD_REQUEST = 400
HTTP_STATUS_CONFLICT = 409
HTTP_STATUS_INTERNAL_ERROR = 500
HTTP_STATUS_BAD_GATEWAY = 502
HTTP_STATUS_SERVICE_UNAVAILABLE = 503

# Retrieval
MIN_TOP_K = 1
MAX_TOP_K = 500
DEFAULT_TOP_K = 5
MIN_NUM_CANDIDATES = 100
CANDIDATE_MULTIPLIER = 5

# Prompt
MAX_PROMPT_ENTRIES = 10

# Ingestion
DEFAULT_EMBEDDING_BATCH_SIZE = 25
DEFAULT_UPSERT_WORKERS = 10
