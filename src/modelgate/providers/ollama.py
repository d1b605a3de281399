from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from typing import Any

import httpx

from modelgate.domain.providers import ProviderDescriptor
from modelgate.prompts import describe_image_prompt
from modelgate.providers.base import (
    DESCRIBE_TEMPERATURE,
    DeferredUsage,
    StructuredResult,
    TextResult,
    TextStream,
    VisionAdapter,
    as_dict,
    parse_json_object,
    strip_data_url,
)
from modelgate.structured.validator import validate_structured

log = logging.getLogger(__name__)


def _counters(data: dict[str, Any]) -> dict[str, Any] | None:
    usage = {k: data[k] for k in ("prompt_eval_count", "eval_count") if k in data}
    return usage or None


class OllamaAdapter(VisionAdapter):
    """Local Ollama server via its native `/api/chat` endpoint."""

    def __init__(self, descriptor: ProviderDescriptor, *, client: httpx.AsyncClient) -> None:
        super().__init__(descriptor)
        self._client = client

    def _payload(
        self,
        prompt: str,
        model: str | None,
        temperature: float | None,
        *,
        images: list[str] | None = None,
        stream: bool = False,
    ) -> dict[str, Any]:
        message: dict[str, Any] = {"role": "user", "content": prompt}
        if images:
            # Ollama wants bare base64, without the data URL prefix.
            message["images"] = [strip_data_url(image) for image in images]
        return {
            "model": model or self.descriptor.default_model,
            "messages": [message],
            "stream": stream,
            "options": {"temperature": self._temperature(temperature)},
        }

    async def list_models(self) -> list[str]:
        try:
            resp = await self._client.get("/api/tags")
            resp.raise_for_status()
        except httpx.HTTPError as e:
            log.warning("provider.models_failed", extra={"provider": self.name, "error": str(e)})
            return []
        items = as_dict(parse_json_object(resp.text)).get("models")
        if not isinstance(items, list):
            log.warning("provider.models_failed", extra={"provider": self.name, "error": "unexpected body"})
            return []
        return [str(item["name"]) for item in items if isinstance(item, dict) and item.get("name")]

    async def _complete(self, payload: dict[str, Any]) -> TextResult:
        try:
            resp = await self._client.post("/api/chat", json=payload)
        except httpx.TimeoutException as e:
            log.exception("provider.timeout", extra={"provider": self.name})
            raise self._transport_error(e, timeout=True) from e
        except httpx.HTTPError as e:
            log.exception("provider.request_failed", extra={"provider": self.name})
            raise self._transport_error(e) from e

        if resp.status_code >= 400:
            raise self._transport_error(f"returned {resp.status_code}: {resp.text[:500]}", status_code=resp.status_code)

        data = self._json_body(resp.text)
        text = as_dict(data.get("message")).get("content") or ""
        return TextResult(text=str(text), usage=_counters(data))

    async def _stream(self, payload: dict[str, Any], usage: DeferredUsage) -> AsyncIterator[str]:
        native_usage: dict[str, Any] | None = None
        try:
            async with self._client.stream("POST", "/api/chat", json=payload) as resp:
                if resp.status_code >= 400:
                    body = await resp.aread()
                    raise self._transport_error(
                        f"returned {resp.status_code}: {body.decode('utf-8', errors='replace')[:500]}",
                        status_code=resp.status_code,
                    )

                async for line in resp.aiter_lines():
                    if not line.strip():
                        continue
                    obj = parse_json_object(line)
                    if obj is None:
                        continue
                    if obj.get("error"):
                        raise self._transport_error(str(obj["error"]))
                    text = as_dict(obj.get("message")).get("content")
                    if isinstance(text, str) and text:
                        yield text
                    if obj.get("done"):
                        native_usage = _counters(obj)
                        break
        except httpx.TimeoutException as e:
            log.exception("provider.stream_timeout", extra={"provider": self.name})
            raise self._transport_error(e, timeout=True) from e
        except httpx.HTTPError as e:
            log.exception("provider.stream_failed", extra={"provider": self.name})
            raise self._transport_error(e) from e
        finally:
            usage.resolve(native_usage)

    async def generate_text(
        self, prompt: str, model: str | None = None, temperature: float | None = None
    ) -> TextResult:
        return await self._complete(self._payload(prompt, model, temperature))

    async def generate_text_stream(
        self, prompt: str, model: str | None = None, temperature: float | None = None
    ) -> TextStream:
        usage = DeferredUsage()
        payload = self._payload(prompt, model, temperature, stream=True)
        return TextStream(fragments=self._stream(payload, usage), usage=usage)

    async def generate_structured(
        self,
        prompt: str,
        schema: dict[str, Any] | None,
        model: str | None = None,
        temperature: float | None = None,
    ) -> StructuredResult:
        payload = self._payload(prompt, model, 0 if temperature is None else temperature)
        payload["format"] = schema or "json"
        result = await self._complete(payload)
        validation = validate_structured(result.text, schema)
        return StructuredResult.from_validation(validation, usage=result.usage, raw_text=result.text)

    async def describe_image(
        self,
        images: list[str],
        model: str | None = None,
        stream: bool = False,
        temperature: float | None = None,
        instruction_prompt: str | None = None,
    ) -> TextResult | TextStream:
        # Image calls are always answered in one piece; a stream request gets a TextResult back.
        if stream:
            log.info("provider.vision_stream_ignored", extra={"provider": self.name})
        payload = self._payload(
            instruction_prompt or describe_image_prompt(),
            model or self.descriptor.vision_model,
            DESCRIBE_TEMPERATURE if temperature is None else temperature,
            images=images,
        )
        return await self._complete(payload)

    async def aclose(self) -> None:
        await self._client.aclose()
