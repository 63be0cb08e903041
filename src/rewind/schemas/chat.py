"""Chat message and invocation schemas."""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class TextContentPart(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: Literal["text"] = "text"
    text: str


class OtherContentPart(BaseModel):
    """Any non-text content part (image, file, tool-result, ...), kept as sent."""

    model_config = ConfigDict(extra="allow")

    type: str


ContentPart = Annotated[
    Union[TextContentPart, OtherContentPart], Field(union_mode="left_to_right")
]


class Message(BaseModel):
    model_config = ConfigDict(extra="allow")

    role: Literal["system", "user", "assistant", "tool"]
    content: str | list[ContentPart] = Field(union_mode="left_to_right")


class InvocationParams(BaseModel):
    """Prompt and generation parameters handed to a model invoker."""

    model_config = ConfigDict(populate_by_name=True)

    prompt: list[Message] = Field(default_factory=list)
    temperature: float | None = None
    max_tokens: int | None = Field(None, alias="maxTokens", ge=1)
    top_p: float | None = None
    stop: list[str] | None = None
    model: str | None = None


class ChatStreamRequest(BaseModel):
    model: str | None = None
    messages: list[Message] = Field(..., min_length=1)
    temperature: float | None = Field(None, ge=0, le=2)
    max_tokens: int | None = Field(None, ge=1)
    top_p: float | None = Field(None, ge=0, le=1)
    stop: list[str] | None = None

    def to_invocation(self) -> InvocationParams:
        return InvocationParams(
            prompt=self.messages,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            top_p=self.top_p,
            stop=self.stop,
            model=self.model,
        )
