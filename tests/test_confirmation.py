"""Tests for confirmation template rendering."""

import re

import pytest

from query_router.automation.confirmation import render
from query_router.automation.templates import DEFAULT_TEMPLATES

PLACEHOLDER = re.compile(r"\{\{[#/]?\w+\}\}")


class TestRender:
    """Tests for render()."""

    def test_placeholders(self) -> None:
        params = {"content": "hi", "recipient": "Ann"}
        assert render("Send {{content}} to {{recipient}}", params) == "Send hi to Ann"

    def test_missing_placeholder_is_empty(self) -> None:
        assert render("Hello {{name}}!", {}) == "Hello !"

    def test_block_kept_when_truthy(self) -> None:
        template = 'Play "{{track}}"{{#artist}} by {{artist}}{{/artist}}'
        assert render(template, {"track": "Hey Jude", "artist": "The Beatles"}) == (
            'Play "Hey Jude" by The Beatles'
        )

    def test_block_dropped_when_falsy(self) -> None:
        template = 'Play "{{track}}"{{#artist}} by {{artist}}{{/artist}}'
        assert render(template, {"track": "Hey Jude", "artist": ""}) == 'Play "Hey Jude"'
        assert render(template, {"track": "Hey Jude"}) == 'Play "Hey Jude"'

    def test_block_spanning_lines(self) -> None:
        template = "Pay{{#note}}\nnote: {{note}}\n{{/note}}"
        assert render(template, {"note": "rent"}) == "Pay\nnote: rent\n"

    def test_several_blocks(self) -> None:
        template = "{{#a}}A{{/a}}{{#b}}B{{/b}}{{#c}}C{{/c}}"
        assert render(template, {"a": "x", "b": "", "c": "y"}) == "AC"

    def test_non_string_values(self) -> None:
        assert render("{{count}} items", {"count": 3}) == "3 items"

    @pytest.mark.parametrize("template", [t.confirmation_template for t in DEFAULT_TEMPLATES])
    def test_no_residual_placeholders(self, template: str) -> None:
        """Test every standard template renders fully with and without optional fields."""
        names = {name for name in re.findall(r"\{\{[#/]?(\w+)\}\}", template)}
        filled = render(template, {name: "x" for name in names})
        empty = render(template, {})

        assert PLACEHOLDER.search(filled) is None
        assert PLACEHOLDER.search(empty) is None
