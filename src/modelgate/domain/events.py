"""Events of the streaming protocol: zero or more chunks, then exactly one done or error."""

from __future__ import annotations

from typing import Any, Literal, Union

from pydantic import BaseModel, Field

from modelgate.domain.usage import UsageRecord

STREAMING_UNSUPPORTED_MESSAGE = "Streaming not supported for this provider/model"


class ChunkEvent(BaseModel):
    kind: Literal["chunk"] = "chunk"
    text: str
    provider: str | None = None
    model: str | None = None

    def to_wire(self) -> dict[str, Any]:
        return {"chunk": self.text, "provider": self.provider, "model": self.model}


class DoneEvent(BaseModel):
    kind: Literal["done"] = "done"
    usage: UsageRecord = Field(default_factory=UsageRecord)
    provider: str | None = None
    model: str | None = None
    extra: dict[str, Any] = Field(default_factory=dict)

    def to_wire(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "done": True,
            "usage": self.usage.model_dump(),
            "provider": self.provider,
            "model": self.model,
        }
        for key, value in self.extra.items():
            payload.setdefault(key, value)
        return payload


class ErrorEvent(BaseModel):
    kind: Literal["error"] = "error"
    message: str

    def to_wire(self) -> dict[str, Any]:
        return {"error": self.message, "done": True}


StreamEvent = Union[ChunkEvent, DoneEvent, ErrorEvent]
