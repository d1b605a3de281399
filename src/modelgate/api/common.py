from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from modelgate.domain.envelope import LLMConfig, ResponseEnvelope, StreamEnvelope
from modelgate.streaming.sse import sse_response


class EnvelopeRequest(BaseModel):
    """`{"payload": {...}, "config": {...}}`; endpoints narrow `payload`."""

    config: LLMConfig = Field(default_factory=LLMConfig)


def respond(
    response: ResponseEnvelope | StreamEnvelope,
    result_field: str,
    *,
    extra_done: Mapping[str, Any] | None = None,
) -> dict[str, Any] | StreamingResponse:
    if isinstance(response, StreamEnvelope):
        return sse_response(response.source, provider=response.provider, model=response.model, extra_done=extra_done)
    return response.to_body(result_field)
