from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from modelgate.domain.usage import UsageRecord
from modelgate.providers.base import TextResult, TextStream


class LLMConfig(BaseModel):
    """Provider selection shared by every endpoint."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    provider: str | None = Field(default=None, description="Provider name; the primary provider when omitted")
    model: str | None = None
    stream: bool = False
    temperature: float | None = Field(default=None, ge=0, le=2)
    use_agent: bool = Field(default=False, alias="useAgent")


class DispatchPayload(BaseModel):
    """Prompt-level payload handed to the dispatcher once an endpoint has built its prompt."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    prompt: str = ""
    json_schema: dict[str, Any] | None = Field(default=None, alias="schema")
    images: tuple[str, ...] = ()
    instruction_prompt: str | None = None
    task: Literal["describe", "ocr"] = "describe"


class RequestEnvelope(BaseModel):
    model_config = ConfigDict(frozen=True)

    payload: DispatchPayload
    config: LLMConfig = Field(default_factory=LLMConfig)


class ResponseEnvelope(BaseModel):
    result: Any
    provider: str
    model: str
    usage: UsageRecord = Field(default_factory=UsageRecord)

    def to_body(self, result_field: str = "result", **extra: Any) -> dict[str, Any]:
        return {
            result_field: self.result,
            **extra,
            "provider": self.provider,
            "model": self.model,
            "usage": self.usage.model_dump(),
        }


@dataclass(frozen=True)
class StreamEnvelope:
    """A streaming call resolved to its provider; events are produced by the stream writer."""

    source: TextStream | TextResult | None
    provider: str
    model: str
