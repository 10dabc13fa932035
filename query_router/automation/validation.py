"""Parameter validation for detected automations."""

import logging

from query_router.automation.templates import DEFAULT_TEMPLATES
from query_router.errors import AutomationValidationError
from query_router.models import AutomationMatch, AutomationTemplate, AutomationValidation

logger = logging.getLogger(__name__)


def _required_groups(
    match: AutomationMatch,
    templates: tuple[AutomationTemplate, ...],
) -> tuple[tuple[str, ...], ...]:
    for template in templates:
        if template.type == match.type and template.service == match.service:
            return template.required_params
    return ()


def validate_automation(
    match: AutomationMatch,
    templates: tuple[AutomationTemplate, ...] = DEFAULT_TEMPLATES,
) -> AutomationValidation:
    """Check that a match carries every parameter its template requires.

    Each required group is satisfied when any one of its fields is non-empty.
    An unsatisfied group reports all of its fields as missing.

    Args:
        match: Detected automation.
        templates: Templates to look the requirements up in.

    Returns:
        AutomationValidation with missing fields and human-readable errors.
    """
    missing: list[str] = []
    errors: list[str] = []
    for group in _required_groups(match, templates):
        if any(match.params.get(name) for name in group):
            continue
        missing.extend(group)
        errors.append(f"{' or '.join(group).capitalize()} is required")

    return AutomationValidation(valid=not missing, missing_fields=missing, errors=errors)


def ensure_executable(
    match: AutomationMatch,
    templates: tuple[AutomationTemplate, ...] = DEFAULT_TEMPLATES,
) -> None:
    """Raise if a match may not be executed.

    Raises:
        AutomationValidationError: If required parameters are missing.
    """
    validation = validate_automation(match, templates)
    if not validation.valid:
        logger.debug(f"Automation {match.type} is not executable: {validation.errors}")
        raise AutomationValidationError(match.type, validation.missing_fields)
