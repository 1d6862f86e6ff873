import os
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

_SUPABASE_URL = os.getenv('SUPABASE_URL')
_SUPABASE_KEY = os.getenv('SUPABASE_KEY')

_OPENAI_API_KEY = os.getenv('OPENAI_API_KEY')
_ANTHROPIC_API_KEY = os.getenv('ANTHROPIC_API_KEY') or os.getenv('CLAUDE_API_KEY')

_CLAUDE_MODEL_PRIMARY = os.getenv('CLAUDE_MODEL_PRIMARY') or os.getenv('CLAUDE_MODEL', 'claude-sonnet-4-5-20250929')
_CLAUDE_MODEL_FALLBACKS = [
    model.strip()
    for model in os.getenv('CLAUDE_MODEL_FALLBACKS', 'claude-3-5-haiku-20241022').split(',')
    if model.strip()
]
_CLAUDE_MODEL_OPTIONS = [_CLAUDE_MODEL_PRIMARY] + [m for m in _CLAUDE_MODEL_FALLBACKS if m and m != _CLAUDE_MODEL_PRIMARY]


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value else default


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    return float(value) if value else default


class Config:
    """Central configuration for the knowledge service."""

    SERVICE_NAME = os.getenv('SERVICE_NAME', 'himind-knowledge-service')

    SUPABASE_URL = _SUPABASE_URL
    SUPABASE_KEY = _SUPABASE_KEY
    DEFAULT_ORGANIZATION_ID = os.getenv('DEFAULT_ORGANIZATION_ID')

    OPENAI_API_KEY = _OPENAI_API_KEY
    ANTHROPIC_API_KEY = _ANTHROPIC_API_KEY

    CLAUDE_MODEL_PRIMARY = _CLAUDE_MODEL_PRIMARY
    CLAUDE_MODEL_FALLBACKS = _CLAUDE_MODEL_FALLBACKS
    CLAUDE_MODEL_OPTIONS = _CLAUDE_MODEL_OPTIONS

    # Embeddings
    EMBEDDING_MODEL = os.getenv('EMBEDDING_MODEL', 'text-embedding-3-small')
    EMBEDDING_DIMENSION = _env_int('EMBEDDING_DIMENSION', 1536)
    EMBEDDING_TIMEOUT_SECONDS = _env_float('EMBEDDING_TIMEOUT_SECONDS', 30.0)

    # "pattern" or "claude"
    CONTENT_EXTRACTOR = os.getenv('CONTENT_EXTRACTOR', 'pattern').lower()

    # Processing orchestrator
    ORCHESTRATOR_ENABLED = os.getenv('ORCHESTRATOR_ENABLED', 'true').lower() == 'true'
    ORCHESTRATOR_CONCURRENCY = _env_int('ORCHESTRATOR_CONCURRENCY', 3)
    ORCHESTRATOR_POLL_INTERVAL = _env_float('ORCHESTRATOR_POLL_INTERVAL', 1.0)
    ORCHESTRATOR_ERROR_BACKOFF = _env_float('ORCHESTRATOR_ERROR_BACKOFF', 5.0)
    JOB_MAX_RETRIES = _env_int('JOB_MAX_RETRIES', 3)
    JOB_RETRY_BASE_DELAY = _env_float('JOB_RETRY_BASE_DELAY', 30.0)
    JOB_TIMEOUT_SECONDS = _env_float('JOB_TIMEOUT_SECONDS', 300.0)

    # Topic discovery defaults
    DISCOVERY_MIN_CLUSTER_SIZE = _env_int('DISCOVERY_MIN_CLUSTER_SIZE', 3)
    DISCOVERY_MAX_CLUSTERS = _env_int('DISCOVERY_MAX_CLUSTERS', 20)
    DISCOVERY_SIMILARITY_THRESHOLD = _env_float('DISCOVERY_SIMILARITY_THRESHOLD', 0.7)
    DISCOVERY_MAX_ITERATIONS = _env_int('DISCOVERY_MAX_ITERATIONS', 20)

    # Search
    SEARCH_SIMILARITY_FLOOR = _env_float('SEARCH_SIMILARITY_FLOOR', 0.7)
    SEARCH_RESULT_LIMIT = _env_int('SEARCH_RESULT_LIMIT', 10)
    POTENTIAL_ANSWER_THRESHOLD = _env_float('POTENTIAL_ANSWER_THRESHOLD', 0.75)
    DIRECT_ANSWER_THRESHOLD = _env_float('DIRECT_ANSWER_THRESHOLD', 0.8)
    TOPIC_MATCH_THRESHOLD = _env_float('TOPIC_MATCH_THRESHOLD', 0.6)


settings = Config()
