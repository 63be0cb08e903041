"""
Chat stream service: runs one streaming chat request through the cache.

  Request → InvocationParams → StreamCacheMiddleware(owner) → [invoker] → SSE → Log
"""

from __future__ import annotations

import time
from collections.abc import AsyncIterator
from dataclasses import dataclass

import structlog

from rewind.common.errors import InvokerUnavailableError, RewindError, UpstreamError
from rewind.common.streaming import StreamAccumulator, stream_sse_response
from rewind.common.tasks import TaskSupervisor
from rewind.config import CacheSettings
from rewind.core.cache.middleware import StreamCacheMiddleware
from rewind.core.cache.store import StreamStore
from rewind.providers.base import ModelInvoker, StreamResult
from rewind.schemas.chat import ChatStreamRequest

logger = structlog.stdlib.get_logger()


@dataclass
class ChatStream:
    """An opened chat stream, ready to hand to a StreamingResponse."""

    events: AsyncIterator[str]
    cached: bool

    @property
    def headers(self) -> dict[str, str]:
        return {"x-rewind-cache": "HIT" if self.cached else "MISS"}


class ChatStreamService:
    def __init__(
        self,
        store: StreamStore,
        invoker: ModelInvoker | None,
        settings: CacheSettings,
        tasks: TaskSupervisor,
    ) -> None:
        self.store = store
        self.invoker = invoker
        self.settings = settings
        self.tasks = tasks

    async def open_stream(
        self,
        request: ChatStreamRequest,
        owner_id: str | None,
        request_id: str,
    ) -> ChatStream:
        invoker = self.invoker
        if invoker is None:
            raise InvokerUnavailableError("No model invoker is configured")

        params = request.to_invocation()

        async def do_invoke() -> StreamResult:
            return await invoker.stream(params)

        start = time.perf_counter()
        try:
            if self.settings.enabled:
                middleware = StreamCacheMiddleware.from_settings(
                    self.store, owner_id, self.settings, self.tasks
                )
                result = await middleware.wrap_stream(params, do_invoke)
            else:
                result = await do_invoke()
        except RewindError:
            raise
        except Exception as e:
            await logger.awarning(
                "chat.stream.upstream_failed",
                provider=invoker.provider_name,
                error=str(e),
            )
            raise UpstreamError(
                f"Model invocation failed: {e}",
                details={"provider": invoker.provider_name},
            ) from e

        events = self._deliver(result, request_id=request_id, owner_id=owner_id, start=start)
        return ChatStream(events=events, cached=result.cached)

    async def _deliver(
        self,
        result: StreamResult,
        *,
        request_id: str,
        owner_id: str | None,
        start: float,
    ) -> AsyncIterator[str]:
        accumulator = StreamAccumulator()

        async for line in stream_sse_response(result.stream, accumulator):
            yield line

        ttfp_ms = (
            int((accumulator.first_part_at - start) * 1000)
            if accumulator.first_part_at is not None
            else None
        )
        await logger.ainfo(
            "chat.stream.completed",
            request_id=request_id,
            owner_id=owner_id,
            cached=result.cached,
            parts=accumulator.parts_sent,
            finish_reason=accumulator.finish_reason,
            prompt_tokens=accumulator.prompt_tokens,
            completion_tokens=accumulator.completion_tokens,
            errored=accumulator.errored,
            time_to_first_part_ms=ttfp_ms,
            latency_ms=int((time.perf_counter() - start) * 1000),
        )
