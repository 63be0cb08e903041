"""
POST /v1/chat/stream: streaming chat through the replay cache.

Each SSE event carries one stream part as JSON; the stream ends with
``data: [DONE]``. ``x-rewind-cache`` tells whether the parts are a replay.
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Request
from fastapi.responses import StreamingResponse

from rewind.api.deps import ChatService, OwnerId
from rewind.schemas.chat import ChatStreamRequest

logger = structlog.stdlib.get_logger()

router = APIRouter()


@router.post(
    "/chat/stream",
    summary="Stream a chat completion",
    description=(
        "Streams model output as Server-Sent Events. Identical non-creative "
        "requests are replayed from the cache instead of calling the model."
    ),
    response_class=StreamingResponse,
)
async def stream_chat(
    body: ChatStreamRequest,
    request: Request,
    owner_id: OwnerId,
    service: ChatService,
) -> StreamingResponse:
    request_id = getattr(request.state, "request_id", "unknown")

    await logger.ainfo(
        "chat.stream.request",
        model=body.model,
        messages_count=len(body.messages),
        owner_id=owner_id,
    )

    chat_stream = await service.open_stream(body, owner_id=owner_id, request_id=request_id)

    return StreamingResponse(
        content=chat_stream.events,
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",  # Disable nginx buffering
            "x-rewind-request-id": request_id,
            **chat_stream.headers,
        },
    )
