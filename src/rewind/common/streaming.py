"""
Server-Sent Events (SSE) streaming utilities.

Handles the delivery side of a part stream:
  1. Format stream parts as SSE lines
  2. Accumulate text, usage and finish reason across parts
  3. Always terminate with ``data: [DONE]``
"""

from __future__ import annotations

import json
import time
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any

import structlog

from rewind.schemas.stream import (
    ErrorPart,
    FinishPart,
    StreamPart,
    TextDeltaPart,
)

logger = structlog.stdlib.get_logger()


@dataclass
class StreamAccumulator:
    """Accumulates metadata across streamed parts for post-stream logging."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    finish_reason: str | None = None
    first_part_at: float | None = None
    parts_sent: int = 0
    errored: bool = False
    full_content: list[str] = field(default_factory=list)

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens

    def record(self, part: StreamPart) -> None:
        self.parts_sent += 1
        if self.first_part_at is None:
            self.first_part_at = time.perf_counter()

        if isinstance(part, TextDeltaPart):
            self.full_content.append(part.text_delta)
        elif isinstance(part, FinishPart):
            self.finish_reason = part.finish_reason
            self.prompt_tokens = part.usage.prompt_tokens
            self.completion_tokens = part.usage.completion_tokens
        elif isinstance(part, ErrorPart):
            self.errored = True

    @property
    def assembled_content(self) -> str:
        return "".join(self.full_content)


def format_sse(data: dict[str, Any] | str) -> str:
    """Format a single SSE event line."""
    if isinstance(data, dict):
        payload = json.dumps(data, separators=(",", ":"), ensure_ascii=False)
    else:
        payload = data
    return f"data: {payload}\n\n"


SSE_DONE = "data: [DONE]\n\n"


async def stream_sse_response(
    parts: AsyncIterator[StreamPart],
    accumulator: StreamAccumulator,
) -> AsyncIterator[str]:
    """
    Consume stream parts and yield SSE-formatted strings.

    The accumulator is mutated in-place so the caller can inspect usage and
    content after the stream completes. A failure mid-stream becomes a final
    ``error`` event. If the consumer stops early, ``parts`` is closed so the
    producer can release its resources.
    """
    try:
        async for part in parts:
            accumulator.record(part)
            yield format_sse(part.model_dump(mode="json", exclude_none=True))
    except Exception as exc:
        await logger.aerror("stream.error", error=str(exc), error_type=type(exc).__name__)
        accumulator.errored = True
        error_part = ErrorPart(error={"message": f"Stream interrupted: {exc}", "type": "stream_error"})
        yield format_sse(error_part.model_dump(mode="json"))
    finally:
        aclose = getattr(parts, "aclose", None)
        if aclose is not None:
            await aclose()

    yield SSE_DONE
