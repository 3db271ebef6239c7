"""Tests for model output parsing helpers."""

import pytest

from agents.common.prompts import fill_template
from agents.common.utils import (
    clamp_score,
    optional_text,
    parse_json_response,
    sanitize_integer,
    sanitize_string_list,
)


class TestParseJsonResponse:
    """Recovering a JSON object from model text."""

    def test_plain_object(self):
        assert parse_json_response('{"matchScore": 80}') == {"matchScore": 80}

    def test_markdown_fence(self):
        text = '```json\n{"firstName": "Alice"}\n```'
        assert parse_json_response(text) == {"firstName": "Alice"}

    def test_surrounding_prose(self):
        text = 'Here is the analysis: {"matchScore": 42} Hope this helps!'
        assert parse_json_response(text) == {"matchScore": 42}

    def test_array_yields_first_element(self):
        assert parse_json_response('[{"a": 1}, {"a": 2}]') == {"a": 1}

    @pytest.mark.parametrize("text", [
        "",
        "no json at all",
        "[]",
        '"just a string"',
        '{"unterminated": ',
    ])
    def test_unrecoverable(self, text):
        with pytest.raises(ValueError):
            parse_json_response(text)


class TestSanitizeInteger:

    @pytest.mark.parametrize("value,expected", [
        (5, 5),
        (2.7, 2),
        ("3.5", 3),
        (" 7 ", 7),
        (-1.5, -2),
        ("ten", 0),
        (None, 0),
        (True, 0),
        (float("nan"), 0),
        (float("inf"), 0),
        ([3], 0),
    ])
    def test_values(self, value, expected):
        assert sanitize_integer(value) == expected


class TestClampScore:

    @pytest.mark.parametrize("value,expected", [
        (49.9, 49.9),
        (150, 100),
        (-5, 0),
        ("88", 88),
        ("high", 0),
        (None, 0),
        (False, 0),
        (float("nan"), 0),
    ])
    def test_values(self, value, expected):
        assert clamp_score(value) == expected


class TestStringHelpers:

    def test_sanitize_string_list(self):
        assert sanitize_string_list(["Python", " ", None, 3]) == ["Python", "3"]
        assert sanitize_string_list("SQL") == ["SQL"]
        assert sanitize_string_list("") == []
        assert sanitize_string_list({"a": 1}) == []

    def test_optional_text(self):
        assert optional_text(None) == ""
        assert optional_text("  Berlin ") == "Berlin"
        assert optional_text(5) == "5"


class TestFillTemplate:

    def test_replaces_known_placeholders(self):
        result = fill_template("Job: {JOB_TITLE} for {CANDIDATE_NAME}", {
            "JOB_TITLE": "Backend Engineer",
            "CANDIDATE_NAME": "Alice Smith",
        })
        assert result == "Job: Backend Engineer for Alice Smith"

    def test_leaves_other_braces(self):
        """JSON examples inside prompts survive untouched."""
        template = 'Return {"matchScore": <number>} for {JOB_TITLE}'
        assert fill_template(template, {"JOB_TITLE": "Designer"}) == (
            'Return {"matchScore": <number>} for Designer'
        )

    def test_value_containing_placeholder_is_not_reexpanded_for_earlier_keys(self):
        result = fill_template("{A} {B}", {"A": "x", "B": "{A}"})
        assert result == "x {A}"
