"""Tests for prompt templates and variable substitution."""

import pytest

from scriptflow.planning.prompts.loader import (
    extract_variables,
    format_prompt,
    load_prompt,
    render_prompt,
)

PROMPT_NAMES = [
    "clarify_system",
    "clarify_request",
    "plan_system",
    "plan_request",
    "fix_system",
    "fix_request",
]


@pytest.mark.parametrize("name", PROMPT_NAMES)
def test_prompts_load_without_title(name):
    content = load_prompt(name)

    assert content
    assert not content.startswith("#")


def test_missing_prompt():
    with pytest.raises(FileNotFoundError):
        load_prompt("no_such_prompt")


@pytest.mark.parametrize(
    "name, expected",
    [
        ("clarify_request", {"goal", "max_questions", "capabilities"}),
        ("plan_request", {"goal", "answers", "capabilities"}),
        ("fix_request", {"graph", "errors"}),
    ],
)
def test_request_template_variables(name, expected):
    assert extract_variables(load_prompt(name)) == expected


def test_graph_placeholder_examples_are_not_variables():
    template = load_prompt("plan_system")

    assert "{{search.messages}}" in template
    assert extract_variables(template) == set()


class TestFormatPrompt:
    def test_fills_every_slot(self):
        assert format_prompt("{{a}} and {{b}}", {"a": 1, "b": "two"}) == "1 and two"

    def test_extra_variable_raises_value_error(self):
        with pytest.raises(ValueError, match="not in template"):
            format_prompt("{{a}}", {"a": 1, "b": 2})

    def test_missing_variable_raises_key_error(self):
        with pytest.raises(KeyError, match="Missing required variables"):
            format_prompt("{{a}} {{b}}", {"a": 1})

    def test_values_are_not_expanded_again(self):
        rendered = format_prompt("{{graph}}\n{{errors}}", {"graph": "uses {{errors}} literally", "errors": "E1"})
        assert rendered == "uses {{errors}} literally\nE1"

    def test_dotted_placeholders_survive(self):
        rendered = format_prompt("{{goal}}: {{search.messages}}", {"goal": "digest"})
        assert rendered == "digest: {{search.messages}}"


def test_render_fix_request():
    rendered = render_prompt("fix_request", graph='{"nodes": []}', errors="- $: Graph has no nodes")

    assert '{"nodes": []}' in rendered
    assert "- $: Graph has no nodes" in rendered
