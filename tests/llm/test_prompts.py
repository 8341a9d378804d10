"""Tests for the prompt registry."""

import pytest

from tutoring.prompts import PromptError, clear_cache, get_prompt, template_variables


class TestPromptRegistry:
    """Tests for template loading and substitution."""

    def test_template_variables(self):
        """Placeholders are discovered per template."""
        assert template_variables("analysis/user") == {"worksheet_text", "answer_key_text"}
        assert template_variables("analysis/user_no_key") == {"worksheet_text"}
        assert template_variables("questions/user") == {"topics"}
        assert template_variables("analysis/system") == set()

    def test_substitutes_variables(self):
        """{var} placeholders are replaced."""
        prompt = get_prompt("analysis/user", worksheet_text="2+2=5", answer_key_text="2+2=4")
        assert "2+2=5" in prompt
        assert "2+2=4" in prompt
        assert "{worksheet_text}" not in prompt

    def test_values_are_not_substituted_again(self):
        """Placeholder-like text inside a value is kept as is."""
        prompt = get_prompt("analysis/user", worksheet_text="see {answer_key_text}", answer_key_text="KEY")
        assert "see {answer_key_text}" in prompt

    def test_json_braces_untouched(self):
        """JSON examples in templates survive substitution."""
        prompt = get_prompt("analysis/system")
        assert '"weakTopics"' in prompt
        assert "{" in prompt

    def test_missing_variable(self):
        """Rendering without a required variable raises."""
        with pytest.raises(PromptError, match="answer_key_text"):
            get_prompt("analysis/user", worksheet_text="x")

    def test_missing_prompt(self):
        """Unknown keys raise PromptError."""
        with pytest.raises(PromptError, match="Prompt not found"):
            get_prompt("nope/missing")

    def test_cache_clear(self):
        """Clearing the cache does not change content."""
        first = get_prompt("questions/system")
        clear_cache()
        assert get_prompt("questions/system") == first
