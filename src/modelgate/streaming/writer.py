from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Protocol

from modelgate.domain.events import (
    STREAMING_UNSUPPORTED_MESSAGE,
    ChunkEvent,
    DoneEvent,
    ErrorEvent,
    StreamEvent,
)
from modelgate.domain.usage import normalize_usage
from modelgate.providers.base import TextResult, TextStream

log = logging.getLogger(__name__)


class EventSink(Protocol):
    @property
    def closed(self) -> bool: ...

    async def write(self, event: StreamEvent) -> None: ...

    async def close(self) -> None: ...


async def _aclose(fragments: Any) -> None:
    aclose = getattr(fragments, "aclose", None)
    if aclose is None:
        return
    try:
        await aclose()
    except Exception:
        log.warning("stream.fragments_close_failed", exc_info=True)


async def write_text_stream(
    sink: EventSink,
    source: TextStream | TextResult | None,
    *,
    provider: str | None = None,
    model: str | None = None,
    extra_done: Mapping[str, Any] | None = None,
) -> None:
    """
    Drive `source` into `sink` as chunk events followed by one terminal event.

    Errors never escape: they become a single error event. The sink is closed exactly
    once, and nothing is written after it reports closed.
    """
    fragments = source.fragments if isinstance(source, TextStream) else None
    try:
        if fragments is None:
            await sink.write(ErrorEvent(message=STREAMING_UNSUPPORTED_MESSAGE))
            return

        async for fragment in fragments:
            if sink.closed:
                log.info("stream.client_disconnected", extra={"provider": provider, "model": model})
                return
            await sink.write(ChunkEvent(text=fragment, provider=provider, model=model))

        native_usage = await source.usage if source.usage is not None else None
        if sink.closed:
            return
        await sink.write(
            DoneEvent(
                usage=normalize_usage(native_usage),
                provider=provider,
                model=model,
                extra=dict(extra_done or {}),
            )
        )
    except Exception as e:
        log.warning("stream.error", extra={"provider": provider, "model": model, "error": str(e)})
        if not sink.closed:
            try:
                await sink.write(ErrorEvent(message=str(e) or "Streaming error"))
            except Exception:
                log.exception("stream.error_event_failed")
    finally:
        if fragments is not None:
            await _aclose(fragments)
        try:
            await sink.close()
        except Exception:
            log.exception("stream.close_failed")
