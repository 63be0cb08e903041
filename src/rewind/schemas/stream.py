"""
Stream part schemas: the events a model emits while streaming.

Parts are a tagged union on ``type``. Every variant keeps unknown provider
fields (``extra="allow"``) so a part survives a store → replay round trip
unchanged.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class _Part(BaseModel):
    model_config = ConfigDict(extra="allow", frozen=True)


class TextDeltaPart(_Part):
    type: Literal["text-delta"] = "text-delta"
    text_delta: str


class ReasoningPart(_Part):
    type: Literal["reasoning"] = "reasoning"
    text_delta: str


class ReasoningSignaturePart(_Part):
    type: Literal["reasoning-signature"] = "reasoning-signature"
    signature: str


class RedactedReasoningPart(_Part):
    type: Literal["redacted-reasoning"] = "redacted-reasoning"
    data: str


class SourcePart(_Part):
    type: Literal["source"] = "source"
    source: dict[str, Any]


class FilePart(_Part):
    type: Literal["file"] = "file"
    mime_type: str
    data: str  # base64


class ToolCallPart(_Part):
    type: Literal["tool-call"] = "tool-call"
    tool_call_type: Literal["function"] = "function"
    tool_call_id: str
    tool_name: str
    args: str  # JSON-encoded arguments


class ToolCallDeltaPart(_Part):
    type: Literal["tool-call-delta"] = "tool-call-delta"
    tool_call_type: Literal["function"] = "function"
    tool_call_id: str
    tool_name: str
    args_text_delta: str


class ResponseMetadataPart(_Part):
    type: Literal["response-metadata"] = "response-metadata"
    id: str | None = None
    timestamp: datetime | None = None
    model_id: str | None = None


class Usage(_Part):
    prompt_tokens: int = 0
    completion_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens


FinishReason = Literal[
    "stop", "length", "content-filter", "tool-calls", "error", "other", "unknown"
]


class FinishPart(_Part):
    type: Literal["finish"] = "finish"
    finish_reason: FinishReason
    usage: Usage = Field(default_factory=Usage)
    provider_metadata: dict[str, Any] | None = None


class ErrorPart(_Part):
    type: Literal["error"] = "error"
    error: str | dict[str, Any]


StreamPart = Annotated[
    Union[
        TextDeltaPart,
        ReasoningPart,
        ReasoningSignaturePart,
        RedactedReasoningPart,
        SourcePart,
        FilePart,
        ToolCallPart,
        ToolCallDeltaPart,
        ResponseMetadataPart,
        FinishPart,
        ErrorPart,
    ],
    Field(discriminator="type"),
]

_PART_ADAPTER: TypeAdapter[StreamPart] = TypeAdapter(StreamPart)
_PARTS_ADAPTER: TypeAdapter[list[StreamPart]] = TypeAdapter(list[StreamPart])


def parse_part(data: dict[str, Any]) -> StreamPart:
    return _PART_ADAPTER.validate_python(data)


def dump_parts(parts: list[StreamPart]) -> list[dict[str, Any]]:
    """Serialize parts to JSON-compatible dicts (for JSON columns)."""
    return _PARTS_ADAPTER.dump_python(parts, mode="json")


def load_parts(data: list[dict[str, Any]]) -> list[StreamPart]:
    return _PARTS_ADAPTER.validate_python(data)
