"""Pydantic models for query-router."""

from query_router.models.model_automation import (
    AutomationMatch,
    AutomationTemplate,
    AutomationValidation,
    ParamSpec,
    SemanticAutomationVerdict,
)
from query_router.models.model_cache import (
    CacheEntry,
    EvictionPolicy,
    NamespaceConfig,
)
from query_router.models.model_classification import (
    ClassificationContext,
    ClassificationRequest,
    ClassificationResult,
    ClassificationSource,
    KeywordScore,
    RequestKind,
    RouteDecision,
    SemanticVerdict,
)

__all__ = [
    # Automation models
    "AutomationMatch",
    "AutomationTemplate",
    "AutomationValidation",
    "ParamSpec",
    "SemanticAutomationVerdict",
    # Cache models
    "CacheEntry",
    "EvictionPolicy",
    "NamespaceConfig",
    # Classification models
    "ClassificationContext",
    "ClassificationRequest",
    "ClassificationResult",
    "ClassificationSource",
    "KeywordScore",
    "RequestKind",
    "RouteDecision",
    "SemanticVerdict",
]
