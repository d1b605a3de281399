from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from typing import Any

import httpx

from modelgate.domain.providers import ProviderDescriptor
from modelgate.prompts import schema_instructions
from modelgate.providers.base import (
    DeferredUsage,
    ProviderAdapter,
    StructuredResult,
    TextResult,
    TextStream,
    as_dict,
    parse_json_object,
)
from modelgate.structured.validator import validate_structured

log = logging.getLogger(__name__)

ANTHROPIC_VERSION = "2023-06-01"
MAX_OUTPUT_TOKENS = 4096


def anthropic_headers(api_key: str) -> dict[str, str]:
    return {"x-api-key": api_key, "anthropic-version": ANTHROPIC_VERSION}


def _joined_text(content: Any) -> str:
    if not isinstance(content, list):
        return ""
    return "".join(
        str(block.get("text") or "") for block in content if isinstance(block, dict) and block.get("type") == "text"
    )


class AnthropicAdapter(ProviderAdapter):
    """Anthropic Messages API. No native JSON mode: structured output is prompted and then validated."""

    def __init__(self, descriptor: ProviderDescriptor, *, client: httpx.AsyncClient) -> None:
        super().__init__(descriptor)
        self._client = client

    def _payload(self, prompt: str, model: str | None, temperature: float | None) -> dict[str, Any]:
        return {
            "model": model or self.descriptor.default_model,
            "max_tokens": MAX_OUTPUT_TOKENS,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": self._temperature(temperature),
        }

    async def list_models(self) -> list[str]:
        try:
            resp = await self._client.get("/v1/models")
            resp.raise_for_status()
        except httpx.HTTPError as e:
            log.warning("provider.models_failed", extra={"provider": self.name, "error": str(e)})
            return []
        items = as_dict(parse_json_object(resp.text)).get("data")
        if not isinstance(items, list):
            log.warning("provider.models_failed", extra={"provider": self.name, "error": "unexpected body"})
            return []
        return [str(item["id"]) for item in items if isinstance(item, dict) and item.get("id")]

    async def _complete(self, payload: dict[str, Any]) -> TextResult:
        try:
            resp = await self._client.post("/v1/messages", json=payload)
        except httpx.TimeoutException as e:
            log.exception("provider.timeout", extra={"provider": self.name})
            raise self._transport_error(e, timeout=True) from e
        except httpx.HTTPError as e:
            log.exception("provider.request_failed", extra={"provider": self.name})
            raise self._transport_error(e) from e

        if resp.status_code >= 400:
            raise self._transport_error(f"returned {resp.status_code}: {resp.text[:500]}", status_code=resp.status_code)

        data = self._json_body(resp.text)
        return TextResult(text=_joined_text(data.get("content")), usage=data.get("usage"))

    async def _stream(self, payload: dict[str, Any], usage: DeferredUsage) -> AsyncIterator[str]:
        payload = {**payload, "stream": True}
        counters: dict[str, Any] = {}
        try:
            async with self._client.stream("POST", "/v1/messages", json=payload) as resp:
                if resp.status_code >= 400:
                    body = await resp.aread()
                    raise self._transport_error(
                        f"returned {resp.status_code}: {body.decode('utf-8', errors='replace')[:500]}",
                        status_code=resp.status_code,
                    )

                async for line in resp.aiter_lines():
                    if not line.startswith("data:"):
                        continue
                    event = parse_json_object(line[5:].strip())
                    if event is None:
                        continue

                    kind = event.get("type")
                    if kind == "message_start":
                        counters.update(as_dict(as_dict(event.get("message")).get("usage")))
                    elif kind == "content_block_delta":
                        delta = as_dict(event.get("delta"))
                        if delta.get("type") == "text_delta" and isinstance(delta.get("text"), str) and delta["text"]:
                            yield delta["text"]
                    elif kind == "message_delta":
                        counters.update(as_dict(event.get("usage")))
                    elif kind == "error":
                        error = event.get("error")
                        message = as_dict(error).get("message") or (error if isinstance(error, str) else None)
                        raise self._transport_error(str(message or "stream error"))
                    elif kind == "message_stop":
                        break
        except httpx.TimeoutException as e:
            log.exception("provider.stream_timeout", extra={"provider": self.name})
            raise self._transport_error(e, timeout=True) from e
        except httpx.HTTPError as e:
            log.exception("provider.stream_failed", extra={"provider": self.name})
            raise self._transport_error(e) from e
        finally:
            usage.resolve(counters or None)

    async def generate_text(
        self, prompt: str, model: str | None = None, temperature: float | None = None
    ) -> TextResult:
        return await self._complete(self._payload(prompt, model, temperature))

    async def generate_text_stream(
        self, prompt: str, model: str | None = None, temperature: float | None = None
    ) -> TextStream:
        usage = DeferredUsage()
        return TextStream(fragments=self._stream(self._payload(prompt, model, temperature), usage), usage=usage)

    async def generate_structured(
        self,
        prompt: str,
        schema: dict[str, Any] | None,
        model: str | None = None,
        temperature: float | None = None,
    ) -> StructuredResult:
        augmented = f"{prompt}\n\n{schema_instructions(schema)}"
        result = await self._complete(self._payload(augmented, model, 0 if temperature is None else temperature))
        validation = validate_structured(result.text, schema)
        return StructuredResult.from_validation(validation, usage=result.usage, raw_text=result.text)

    async def aclose(self) -> None:
        await self._client.aclose()
