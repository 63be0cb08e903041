"""Tests for SSE formatting and stream accumulation."""

from __future__ import annotations

import json
from collections.abc import AsyncIterator

import pytest

from rewind.common.streaming import (
    SSE_DONE,
    StreamAccumulator,
    format_sse,
    stream_sse_response,
)
from rewind.schemas.stream import ErrorPart, StreamPart, TextDeltaPart
from tests.factories import iterate, text_parts


def _payloads(lines: list[str]) -> list[dict]:
    return [json.loads(line[len("data: "):]) for line in lines if line != SSE_DONE]


@pytest.mark.unit
class TestFormatSSE:
    def test_dict(self) -> None:
        assert format_sse({"a": 1, "b": "é"}) == 'data: {"a":1,"b":"é"}\n\n'

    def test_string(self) -> None:
        assert format_sse("[DONE]") == SSE_DONE


@pytest.mark.unit
class TestStreamAccumulator:
    def test_records_text_and_usage(self) -> None:
        acc = StreamAccumulator()
        for part in text_parts("Hel", "lo"):
            acc.record(part)

        assert acc.assembled_content == "Hello"
        assert acc.finish_reason == "stop"
        assert acc.prompt_tokens == 10
        assert acc.completion_tokens == 2
        assert acc.total_tokens == 12
        assert acc.parts_sent == 3
        assert acc.first_part_at is not None
        assert acc.errored is False

    def test_error_part_marks_errored(self) -> None:
        acc = StreamAccumulator()
        acc.record(ErrorPart(error="bad"))
        assert acc.errored is True


@pytest.mark.unit
class TestStreamSSEResponse:
    async def test_emits_parts_then_done(self) -> None:
        acc = StreamAccumulator()
        lines = [line async for line in stream_sse_response(iterate(text_parts("a")), acc)]

        assert lines[-1] == SSE_DONE
        assert _payloads(lines) == [
            {"type": "text-delta", "text_delta": "a"},
            {
                "type": "finish",
                "finish_reason": "stop",
                "usage": {"prompt_tokens": 10, "completion_tokens": 1},
            },
        ]

    async def test_mid_stream_failure_becomes_error_event(self) -> None:
        async def broken() -> AsyncIterator[StreamPart]:
            yield TextDeltaPart(text_delta="a")
            raise ConnectionError("reset")

        acc = StreamAccumulator()
        lines = [line async for line in stream_sse_response(broken(), acc)]

        payloads = _payloads(lines)
        assert payloads[-1]["type"] == "error"
        assert payloads[-1]["error"]["type"] == "stream_error"
        assert "reset" in payloads[-1]["error"]["message"]
        assert lines[-1] == SSE_DONE
        assert acc.errored is True

    async def test_closing_early_closes_source(self) -> None:
        closed = False

        async def source() -> AsyncIterator[StreamPart]:
            nonlocal closed
            try:
                for part in text_parts("a", "b"):
                    yield part
            finally:
                closed = True

        sse = stream_sse_response(source(), StreamAccumulator())
        await sse.__anext__()
        await sse.aclose()
        assert closed is True
