"""
Creative-request detection.

A request is "creative" when the user most likely wants fresh output every
time (a poem, a story, a brainstorm). Those requests must not be served
from the replay cache. Only the last message is inspected: the newest turn
decides what kind of answer is expected.

Factual keywords win over creative ones, so "explain how to write a
function" is not creative.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

CREATIVE_KEYWORDS: tuple[str, ...] = (
    "write",
    "story",
    "poem",
    "creative",
    "generate",
    "create",
    "invent",
    "imagine",
    "fiction",
    "novel",
    "character",
    "plot",
    "narrative",
    "joke",
    "riddle",
    "song",
    "lyrics",
    "essay",
    "letter",
    "email",
    "unique",
    "original",
    "fresh",
    "new",
    "different",
    "random",
    "brainstorm",
    "idea",
    "concept",
    "design",
    "art",
    "creative writing",
)

FACTUAL_KEYWORDS: tuple[str, ...] = (
    "explain",
    "what is",
    "how does",
    "definition",
    "meaning",
    "concept",
    "tutorial",
    "guide",
    "documentation",
    "error",
    "debug",
    "fix",
    "code",
    "function",
    "api",
    "database",
    "algorithm",
    "syntax",
)


def _field(obj: Any, name: str) -> Any:
    if isinstance(obj, Mapping):
        return obj.get(name)
    return getattr(obj, name, None)


def extract_message_text(message: Any) -> str:
    """
    Return the plain text of a message.

    String content is returned as is; a list of content parts contributes
    the ``text`` of its ``type == "text"`` parts, joined by spaces. Works on
    pydantic ``Message`` objects and plain dicts alike.
    """
    content = _field(message, "content")
    if isinstance(content, str):
        return content
    if isinstance(content, Sequence):
        texts = [
            _field(part, "text") or ""
            for part in content
            if _field(part, "type") == "text"
        ]
        return " ".join(texts)
    return ""


def is_creative_request(messages: Any) -> bool:
    """Classify the latest message as creative (True) or factual/neutral (False)."""
    if isinstance(messages, (str, bytes)) or not isinstance(messages, Sequence):
        return False
    if not messages:
        return False

    last = messages[-1]
    if last is None:
        return False

    text = extract_message_text(last).lower()

    if any(keyword in text for keyword in FACTUAL_KEYWORDS):
        return False

    return any(keyword in text for keyword in CREATIVE_KEYWORDS)
