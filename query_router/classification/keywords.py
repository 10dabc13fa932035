"""Category, keyword and provider tables for request classification.

Declaration order matters: keyword categories are scored in this order and
ties go to the earlier one; providers are scanned in this order when picking
the first available provider.
"""

import re
from typing import Final

from query_router.consts import SAFE_DEFAULT_PROVIDER

# Pseudo-categories produced by the router rather than by scoring
AUTOMATION: Final[str] = "AUTOMATION"
EXPLICIT_REQUEST: Final[str] = "EXPLICIT_REQUEST"
FALLBACK: Final[str] = "FALLBACK"

# Provider -> categories it is best suited for
PROVIDER_CATEGORIES: Final[dict[str, tuple[str, ...]]] = {
    "CLAUDE": ("CODING", "REASONING", "EXPLANATION"),
    "PERPLEXITY": ("SEARCH", "RESEARCH", "CURRENT_EVENTS"),
    "OPENAI": ("CREATIVE", "SUMMARIZATION", "EMOTIONAL"),
    "DEEPSEEK": ("TECHNICAL", "PROGRAMMING", "DOCUMENTATION"),
}

PROVIDERS: Final[tuple[str, ...]] = tuple(PROVIDER_CATEGORIES)

# Categories offered to the external semantic classifier
SEMANTIC_CATEGORIES: Final[tuple[str, ...]] = (
    "CODING",
    "REASONING",
    "EXPLANATION",
    "SEARCH",
    "RESEARCH",
    "CURRENT_EVENTS",
    "CREATIVE",
    "SUMMARIZATION",
    "EMOTIONAL",
    "TECHNICAL",
    "PROGRAMMING",
    "DOCUMENTATION",
)

CATEGORY_DESCRIPTIONS: Final[dict[str, str]] = {
    "CODING": "Programming tasks, code generation, debugging",
    "REASONING": "Complex reasoning, logical analysis, multi-step thinking",
    "EXPLANATION": "Detailed explanations of complex concepts",
    "SEARCH": "Information retrieval, factual questions, lookup tasks",
    "RESEARCH": "In-depth research questions requiring synthesis",
    "CURRENT_EVENTS": "Recent news, events, or developments",
    "CREATIVE": "Creative writing, ideation, artistic content",
    "SUMMARIZATION": "Content summarization, extraction",
    "EMOTIONAL": "Empathetic responses, subjective content",
    "TECHNICAL": "Specialized technical documentation or analysis",
    "PROGRAMMING": "Specialized programming tasks",
    "DOCUMENTATION": "Creating technical documentation",
}

# Keywords for stage-1 scoring. Multi-word entries match as phrases.
CATEGORY_KEYWORDS: Final[dict[str, tuple[str, ...]]] = {
    "CODING": (
        "code",
        "function",
        "algorithm",
        "program",
        "script",
        "programming",
        "python",
        "javascript",
        "java",
        "class",
        "method",
    ),
    "SEARCH": (
        "find",
        "search",
        "locate",
        "where",
        "when",
        "latest",
        "discover",
        "lookup",
        "info about",
        "information on",
    ),
    "CREATIVE": (
        "write",
        "story",
        "poem",
        "creative",
        "imagine",
        "fiction",
        "compose",
        "design",
        "art",
        "invent",
    ),
    "TECHNICAL": (
        "technical",
        "documentation",
        "specification",
        "architecture",
        "system",
        "protocol",
        "analysis",
        "deep dive",
        "explain how",
    ),
    "REASONING": (
        "reason",
        "logic",
        "analyze",
        "philosophy",
        "ethics",
        "argument",
        "debate",
        "implications",
        "consequences",
    ),
    "CURRENT_EVENTS": (
        "news",
        "current",
        "today",
        "recent",
        "latest",
        "event",
        "update",
        "happening",
    ),
}

# Explicit "use <provider>" requests, checked before any scoring
EXPLICIT_PROVIDER_PATTERNS: Final[tuple[tuple[re.Pattern[str], str], ...]] = (
    (re.compile(r"\b(?:use|with|via|through|using)\s+(?:claude|anthropic)\b", re.I), "CLAUDE"),
    (re.compile(r"\b(?:use|with|via|through|using)\s+perplexity\b", re.I), "PERPLEXITY"),
    (re.compile(r"\b(?:use|with|via|through|using)\s+(?:gpt|openai|chatgpt)\b", re.I), "OPENAI"),
    (re.compile(r"\b(?:use|with|via|through|using)\s+deepseek\b", re.I), "DEEPSEEK"),
)

_CATEGORY_TO_PROVIDER: Final[dict[str, str]] = {
    category: provider
    for provider, categories in PROVIDER_CATEGORIES.items()
    for category in categories
}


def provider_for_category(category: str | None) -> str:
    """Map a category to its provider. Unmapped categories get the safe default."""
    if category is None:
        return SAFE_DEFAULT_PROVIDER
    return _CATEGORY_TO_PROVIDER.get(category.upper(), SAFE_DEFAULT_PROVIDER)


def explicit_provider(text: str) -> str | None:
    """Return the provider the user asked for by name, if any."""
    for pattern, provider in EXPLICIT_PROVIDER_PATTERNS:
        if pattern.search(text):
            return provider
    return None


def is_known_provider(provider: str | None) -> bool:
    return provider is not None and provider in PROVIDER_CATEGORIES
