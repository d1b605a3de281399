"""Server-Sent Events transport for the streaming protocol."""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from collections.abc import AsyncIterator, Awaitable, Callable, Mapping
from typing import Any

from fastapi.responses import StreamingResponse

from modelgate.domain.events import StreamEvent
from modelgate.providers.base import TextResult, TextStream
from modelgate.streaming.writer import EventSink, write_text_stream

log = logging.getLogger(__name__)

SSE_HEADERS = {"Cache-Control": "no-cache", "Connection": "keep-alive", "X-Accel-Buffering": "no"}
# Frames buffered ahead of a slow client before the writer waits.
SSE_QUEUE_SIZE = 64


class SinkClosedError(RuntimeError):
    pass


def encode_sse(event: StreamEvent) -> bytes:
    return ("data: " + json.dumps(event.to_wire(), ensure_ascii=False) + "\n\n").encode("utf-8")


class SSEEventSink:
    """Queue-backed sink; the HTTP response drains it with `iter_bytes()`."""

    def __init__(self) -> None:
        self._queue: asyncio.Queue[bytes | None] = asyncio.Queue(maxsize=SSE_QUEUE_SIZE)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def write(self, event: StreamEvent) -> None:
        if self._closed:
            raise SinkClosedError("stream already closed")
        await self._queue.put(encode_sse(event))

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._queue.put(None)

    def disconnect(self) -> None:
        # Client went away: stop accepting events; the reader is gone too.
        self._closed = True

    async def iter_bytes(self) -> AsyncIterator[bytes]:
        while True:
            item = await self._queue.get()
            if item is None:
                return
            yield item


StreamWriter = Callable[[EventSink], Awaitable[None]]


async def run_sse(writer: StreamWriter) -> AsyncIterator[bytes]:
    """Run `writer` against a fresh sink and yield its frames until it closes."""
    sink = SSEEventSink()
    task = asyncio.create_task(writer(sink))
    try:
        async for frame in sink.iter_bytes():
            yield frame
        await task
    finally:
        if not task.done():
            log.info("stream.cancelled")
            sink.disconnect()
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task


def sse_response(
    source: TextStream | TextResult | None,
    *,
    provider: str,
    model: str,
    extra_done: Mapping[str, Any] | None = None,
) -> StreamingResponse:
    async def writer(sink: EventSink) -> None:
        await write_text_stream(sink, source, provider=provider, model=model, extra_done=extra_done)

    return StreamingResponse(run_sse(writer), media_type="text/event-stream", headers=SSE_HEADERS)
