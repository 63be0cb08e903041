"""Model invoker interface: the call that actually produces a live stream."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from rewind.schemas.chat import InvocationParams
from rewind.schemas.stream import StreamPart


@dataclass
class StreamResult:
    """A stream of parts plus whatever call metadata the invoker reports."""

    stream: AsyncIterator[StreamPart]
    raw_call: dict[str, Any] = field(default_factory=dict)
    cached: bool = False


DoInvoke = Callable[[], Awaitable[StreamResult]]


class ModelInvoker(ABC):
    """
    Base class for model invokers.

    Provider integrations live outside this package; they subclass this and
    are handed to ``create_app(invoker=...)``. ``stream()`` may raise before
    returning (request rejected) or from inside the iterator (stream broke
    mid-way); both propagate to the caller untouched.
    """

    provider_name: str = "unknown"

    @abstractmethod
    async def stream(self, params: InvocationParams) -> StreamResult:
        """Start a streaming call and return its live part stream."""
        ...

    async def close(self) -> None:
        return None
