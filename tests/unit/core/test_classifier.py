"""Tests for creative-request detection."""

import pytest

from rewind.core.cache.classifier import extract_message_text, is_creative_request
from rewind.schemas.chat import Message


def _user(content) -> dict:
    return {"role": "user", "content": content}


@pytest.mark.unit
class TestIsCreativeRequest:
    def test_poem_is_creative(self) -> None:
        assert is_creative_request([_user("Write a poem about the sea")]) is True

    def test_factual_question_is_not_creative(self) -> None:
        assert is_creative_request([_user("What is the capital of France?")]) is False

    def test_factual_keyword_wins(self) -> None:
        # "write" is creative, "function" is factual
        assert is_creative_request([_user("Write a function that sorts a list")]) is False

    def test_concept_counts_as_factual(self) -> None:
        assert is_creative_request([_user("Brainstorm a concept for a game")]) is False

    def test_case_insensitive(self) -> None:
        assert is_creative_request([_user("TELL ME A JOKE")]) is True

    def test_substring_match(self) -> None:
        # "new" is found inside "news"
        assert is_creative_request([_user("any news today?")]) is True

    def test_no_keywords(self) -> None:
        assert is_creative_request([_user("Hello there")]) is False

    def test_only_last_message_counts(self) -> None:
        messages = [
            _user("Write me a story"),
            {"role": "assistant", "content": "Once upon a time..."},
            _user("Thanks!"),
        ]
        assert is_creative_request(messages) is False

    def test_content_parts(self) -> None:
        messages = [
            _user(
                [
                    {"type": "image", "image": "aGVsbG8="},
                    {"type": "text", "text": "Imagine a"},
                    {"type": "text", "text": "dragon"},
                ]
            )
        ]
        assert is_creative_request(messages) is True

    def test_pydantic_messages(self) -> None:
        assert is_creative_request([Message(role="user", content="Compose some song lyrics")]) is True

    @pytest.mark.parametrize("value", [None, [], "write a poem", 42, {"role": "user"}])
    def test_invalid_input_is_not_creative(self, value) -> None:
        assert is_creative_request(value) is False

    def test_last_message_without_content(self) -> None:
        assert is_creative_request([{"role": "user"}]) is False


@pytest.mark.unit
class TestExtractMessageText:
    def test_string_content(self) -> None:
        assert extract_message_text(_user("hi")) == "hi"

    def test_joins_text_parts_with_spaces(self) -> None:
        message = _user([{"type": "text", "text": "a"}, {"type": "file"}, {"type": "text", "text": "b"}])
        assert extract_message_text(message) == "a b"

    def test_missing_content(self) -> None:
        assert extract_message_text({"role": "user"}) == ""
