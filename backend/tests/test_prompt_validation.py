"""
Unit tests for prompt validation rules.
"""

import pytest

from ask_relay.core.config import Settings
from ask_relay.core.exceptions import ValidationError
from ask_relay.services.prompt_validation import (
    PROMPT_REQUIRED_MESSAGE,
    PromptRules,
    parse_relay_request,
)

RULES = PromptRules()


# ===== Missing / Invalid Prompt =====


class TestPromptRequired:
    """Prompts must be non-empty strings."""

    @pytest.mark.parametrize(
        "body",
        [
            {},
            {"prompt": None},
            {"prompt": ""},
            {"prompt": "   \n\t"},
            {"prompt": 42},
            {"prompt": ["hello"]},
            [],
            "hello",
            None,
        ],
    )
    def test_rejected(self, body):
        with pytest.raises(ValidationError) as exc_info:
            parse_relay_request(body, RULES)

        assert exc_info.value.message == PROMPT_REQUIRED_MESSAGE
        assert exc_info.value.status_code == 400


# ===== Length Bound =====


class TestPromptLength:
    """Prompt length is bounded by configuration."""

    def test_at_limit_accepted(self):
        request = parse_relay_request({"prompt": "a" * 10_000}, RULES)
        assert len(request.prompt) == 10_000

    def test_over_limit_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_relay_request({"prompt": "a" * 10_001}, RULES)

        assert (
            exc_info.value.message
            == "Prompt is too long. Maximum 10,000 characters allowed."
        )
        assert exc_info.value.context["prompt_length"] == 10_001

    def test_length_counts_surrounding_whitespace(self):
        """The bound applies to the prompt as sent, before trimming."""
        with pytest.raises(ValidationError):
            parse_relay_request({"prompt": " " * 5 + "a" * 9_999}, RULES)

    def test_custom_rules(self):
        rules = PromptRules(max_length=5)

        assert parse_relay_request({"prompt": "hello"}, rules).prompt == "hello"
        with pytest.raises(ValidationError) as exc_info:
            parse_relay_request({"prompt": "hello!"}, rules)
        assert "Maximum 5 characters" in exc_info.value.message

    def test_rules_from_settings(self):
        settings = Settings(_env_file=None, max_prompt_length=1_234)
        rules = PromptRules.from_settings(settings)

        assert rules.max_length == 1_234
        assert rules.too_long_message.endswith("Maximum 1,234 characters allowed.")


# ===== Accepted Requests =====


class TestAcceptedRequest:
    """Normalization of valid bodies."""

    def test_prompt_trimmed(self):
        request = parse_relay_request({"prompt": "  What is FastAPI?  "}, RULES)
        assert request.prompt == "What is FastAPI?"
        assert request.previous_response is None

    def test_previous_response_kept(self):
        request = parse_relay_request(
            {"prompt": "And Flask?", "previousC1Response": "FastAPI is..."}, RULES
        )
        assert request.previous_response == "FastAPI is..."

    @pytest.mark.parametrize("previous", ["", None, 7, {"text": "x"}])
    def test_unusable_previous_response_ignored(self, previous):
        request = parse_relay_request(
            {"prompt": "hi", "previousC1Response": previous}, RULES
        )
        assert request.previous_response is None

    def test_unknown_fields_ignored(self):
        request = parse_relay_request({"prompt": "hi", "model": "other"}, RULES)
        assert request.prompt == "hi"
