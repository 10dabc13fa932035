"""Rule-based automation detection over an ordered template table."""

import logging
from collections.abc import Iterable

from query_router.automation.confirmation import render
from query_router.automation.templates import ACTION_WORDS, DEFAULT_TEMPLATES
from query_router.classification.tokenize import tokenize
from query_router.consts import PATTERN_MATCH_CONFIDENCE
from query_router.models import AutomationMatch, AutomationTemplate

logger = logging.getLogger(__name__)


class PatternMatcher:
    """Matches request text against automation templates.

    Templates are tried in order and the first hit wins. Every hit carries the
    same fixed confidence since a syntactic match is treated as certain.
    """

    def __init__(self, templates: Iterable[AutomationTemplate] | None = None):
        """Initialize PatternMatcher.

        Args:
            templates: Ordered templates. Defaults to DEFAULT_TEMPLATES.
        """
        self.templates: tuple[AutomationTemplate, ...] = (
            tuple(templates) if templates is not None else DEFAULT_TEMPLATES
        )

    def template_for(self, automation_type: str, service: str) -> AutomationTemplate | None:
        """Find the template that produces a given (type, service) pair."""
        for template in self.templates:
            if template.type == automation_type and template.service == service:
                return template
        return None

    def match(self, text: str) -> AutomationMatch | None:
        """Match text against the templates.

        Args:
            text: Raw request text.

        Returns:
            AutomationMatch for the first matching template, None if nothing matched.
        """
        stripped = text.strip()
        for template in self.templates:
            found = template.pattern.search(stripped)
            if found is None:
                continue

            logger.debug(f"Matched automation template {template.type}/{template.service}")
            return build_match(
                template, template.extract(found.groups()), PATTERN_MATCH_CONFIDENCE, text
            )
        return None


def build_match(
    template: AutomationTemplate,
    params: dict[str, str],
    confidence: float,
    text: str,
) -> AutomationMatch:
    """Build a match for a template, rendering its confirmation message.

    Args:
        template: Template the match belongs to.
        params: Raw parameters, cleaned through the template's param specs.
        confidence: Detection confidence.
        text: Original request text.

    Returns:
        AutomationMatch.
    """
    resolved = template.resolve_params(params)
    return AutomationMatch(
        type=template.type,
        service=template.service,
        params=resolved,
        required_services=list(template.required_services),
        confidence=confidence,
        confirmation_message=render(template.confirmation_template, resolved),
        original_text=text,
    )


def is_likely_automation(text: str) -> bool:
    """Whether the first word of the text is an automation action word."""
    tokens = tokenize(text)
    return bool(tokens) and tokens[0] in ACTION_WORDS
