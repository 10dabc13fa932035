"""Tokenizing, stemming and cache-key derivation for request text."""

import re
from functools import lru_cache
from typing import Final

from nltk.stem import PorterStemmer

from query_router.consts import CACHE_KEY_MIN_TOKEN_LENGTH

_TOKEN_RE = re.compile(r"[a-z0-9_]+")
_WHITESPACE_RE = re.compile(r"\s+")

STOP_WORDS: Final[frozenset[str]] = frozenset(
    {
        "the", "and", "a", "an", "to", "of", "for", "in", "on", "by", "at",
        "with", "about", "as", "is", "are", "was", "were", "be", "been",
        "have", "has", "had", "do", "does", "did", "but", "not", "what",
        "when", "where", "why", "how", "who", "which", "this", "that", "it",
    }
)  # fmt: skip

_stemmer = PorterStemmer()


def normalize(text: str) -> str:
    """Lowercase and collapse whitespace."""
    return _WHITESPACE_RE.sub(" ", text.lower()).strip()


def tokenize(text: str) -> list[str]:
    """Split text into lowercase word tokens."""
    return _TOKEN_RE.findall(text.lower())


@lru_cache(maxsize=4096)
def stem(token: str) -> str:
    """Porter-stem a single lowercase token."""
    return _stemmer.stem(token)


def stems(text: str) -> list[str]:
    """Tokenize and stem text."""
    return [stem(token) for token in tokenize(text)]


def derive_cache_key(text: str) -> str:
    """Derive an order-insensitive cache key for a request.

    Keeps tokens longer than three characters (or containing a digit, so
    amounts and times stay distinct), drops stop words, stems and sorts.
    Falls back to the normalized text when no token survives.

    Example:
        "Find the latest news" and "latest news, find" share one key.
    """
    normalized = normalize(text)
    terms = [
        stem(token)
        for token in tokenize(normalized)
        if (len(token) >= CACHE_KEY_MIN_TOKEN_LENGTH or any(c.isdigit() for c in token))
        and token not in STOP_WORDS
    ]
    return "_".join(sorted(terms)) or normalized
