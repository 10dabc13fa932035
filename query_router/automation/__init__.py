"""Automation detection: template matching, confirmation rendering and validation."""

from query_router.automation.confirmation import render
from query_router.automation.connections import ConnectionOracle, StaticConnectionOracle
from query_router.automation.pattern_matcher import (
    PatternMatcher,
    build_match,
    is_likely_automation,
)
from query_router.automation.templates import DEFAULT_TEMPLATES
from query_router.automation.validation import ensure_executable, validate_automation

__all__ = [
    # Matching
    "DEFAULT_TEMPLATES",
    "PatternMatcher",
    "build_match",
    "is_likely_automation",
    # Rendering
    "render",
    # Validation
    "ensure_executable",
    "validate_automation",
    # Connections
    "ConnectionOracle",
    "StaticConnectionOracle",
]
