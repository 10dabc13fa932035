"""Confirmation message rendering for automation templates.

Templates support two constructs:

    {{field}}                  replaced by params[field], or "" when absent
    {{#field}}...{{/field}}    inner text kept only when params[field] is truthy

Conditional blocks are resolved first, then placeholders, so placeholders
inside a block are filled after the block is kept. Nested conditional blocks
are not supported.
"""

import re
from collections.abc import Mapping

_BLOCK_RE = re.compile(r"\{\{#(\w+)\}\}(.*?)\{\{/\1\}\}", re.DOTALL)
_PLACEHOLDER_RE = re.compile(r"\{\{(\w+)\}\}")


def render(template: str, params: Mapping[str, object]) -> str:
    """Render a confirmation template.

    Args:
        template: Template text.
        params: Values for blocks and placeholders.

    Returns:
        Rendered text with every block and placeholder resolved.

    Example:
        >>> render('Play "{{track}}"{{#artist}} by {{artist}}{{/artist}}', {"track": "Hey Jude"})
        'Play "Hey Jude"'
    """
    text = _BLOCK_RE.sub(lambda m: m.group(2) if params.get(m.group(1)) else "", template)
    return _PLACEHOLDER_RE.sub(lambda m: _as_text(params.get(m.group(1))), text)


def _as_text(value: object) -> str:
    if value is None:
        return ""
    return str(value)
