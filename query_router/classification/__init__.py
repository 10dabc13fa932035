"""Request classification: keyword scoring, semantic escalation and key derivation."""

from query_router.classification.keywords import (
    CATEGORY_KEYWORDS,
    PROVIDER_CATEGORIES,
    SEMANTIC_CATEGORIES,
    explicit_provider,
    provider_for_category,
)
from query_router.classification.probabilistic import ProbabilisticClassifier
from query_router.classification.semantic import HttpSemanticClassifier, SemanticClassifier
from query_router.classification.tokenize import derive_cache_key

__all__ = [
    # Tables
    "CATEGORY_KEYWORDS",
    "PROVIDER_CATEGORIES",
    "SEMANTIC_CATEGORIES",
    "explicit_provider",
    "provider_for_category",
    # Classifiers
    "HttpSemanticClassifier",
    "ProbabilisticClassifier",
    "SemanticClassifier",
    # Keys
    "derive_cache_key",
]
