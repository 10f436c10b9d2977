from __future__ import annotations

import math
from typing import AsyncIterator

import anyio
from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream

from diploma.app.events.emitter import PipelineEventEmitter
from diploma.app.events.models import TERMINAL_EVENT_TYPES, PipelineEvent


class MemoryQueueEventEmitter(PipelineEventEmitter):
    """
    In-memory emitter backed by an anyio memory object stream.

    Single consumer, events delivered in emission order. The stream ends
    after a terminal event or an explicit close(). Once the consumer stops
    reading, further events are dropped.
    """

    def __init__(self) -> None:
        send, receive = anyio.create_memory_object_stream(math.inf)
        self._send: MemoryObjectSendStream[PipelineEvent] = send
        self._receive: MemoryObjectReceiveStream[PipelineEvent] = receive
        self._closed = False

    async def emit(self, event: PipelineEvent) -> None:
        if self._closed:
            return

        try:
            await self._send.send(event)
        except (anyio.BrokenResourceError, anyio.ClosedResourceError):
            # Consumer has gone away; drop this and every later event.
            await self.close()
            return

        if event.event_type in TERMINAL_EVENT_TYPES:
            await self.close()

    async def close(self) -> None:
        if not self._closed:
            self._closed = True
            await self._send.aclose()

    async def stream(self) -> AsyncIterator[PipelineEvent]:
        """Yield emitted events in order until the emitter closes."""
        async with self._receive:
            async for event in self._receive:
                yield event
