from pathlib import Path

DEFAULT_DATA_DIR = (Path(__file__).parent.parent.resolve() / "data").absolute().resolve()

# Cache namespaces
LLM_NAMESPACE = "llm"  # Expensive classification / automation results
DATA_NAMESPACE = "data"  # Short-lived API data
UI_NAMESPACE = "ui"  # UI state, mirrored to disk

LLM_CACHE_TTL = 3600  # 1 hour
DATA_CACHE_TTL = 300  # 5 minutes
UI_CACHE_TTL = 86400  # 24 hours

LLM_CACHE_MAX_ENTRIES = 100
DATA_CACHE_MAX_ENTRIES = 200
UI_CACHE_MAX_ENTRIES = 50

CACHE_SWEEP_INTERVAL_SECONDS = 60
CACHE_REVALIDATE_FRACTION = 0.75  # Revalidate once 75% of the TTL window has elapsed
UI_CACHE_FILE = DEFAULT_DATA_DIR / "cache" / "ui_cache.json"

# Cache key prefixes inside the llm namespace
CLASSIFICATION_KEY_PREFIX = "classify:"
AUTOMATION_KEY_PREFIX = "automation:"

# Classification thresholds
RULE_ACCEPT_THRESHOLD = 0.8  # Rule results must be strictly above this
CLASSIFIER_ACCEPT_THRESHOLD = 0.6  # Probabilistic results must be at least this
SEMANTIC_ESCALATION_THRESHOLD = 0.8  # Keyword results below this go to the semantic classifier
KEYWORD_BASE_CONFIDENCE = 0.7
KEYWORD_MATCH_BONUS = 0.1
KEYWORD_MAX_CONFIDENCE = 0.9
FALLBACK_CONFIDENCE = 0.5
EXPLICIT_REQUEST_CONFIDENCE = 0.95
PATTERN_MATCH_CONFIDENCE = 0.9

# Providers
SAFE_DEFAULT_PROVIDER = "OPENAI"
PROVIDER_AVAILABLE_STATUS = "available"

# External semantic classifier
SEMANTIC_CLASSIFIER_TIMEOUT_SECONDS = 5.0
SEMANTIC_CLASSIFIER_DEFAULT_URL = "https://api.openai.com/v1"
SEMANTIC_CLASSIFIER_DEFAULT_MODEL = "gpt-4o-mini"
SEMANTIC_CLASSIFIER_URL_ENV = "QUERY_ROUTER_SEMANTIC_URL"
SEMANTIC_CLASSIFIER_API_KEY_ENV = "QUERY_ROUTER_SEMANTIC_API_KEY"
SEMANTIC_CLASSIFIER_MODEL_ENV = "QUERY_ROUTER_SEMANTIC_MODEL"

# Query key derivation
CACHE_KEY_MIN_TOKEN_LENGTH = 4  # Shorter tokens are dropped unless they contain a digit
