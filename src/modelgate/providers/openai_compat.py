from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from typing import Any

import httpx

from modelgate.domain.providers import ProviderDescriptor
from modelgate.prompts import describe_image_prompt, schema_instructions
from modelgate.providers.base import (
    DESCRIBE_TEMPERATURE,
    DeferredUsage,
    ProviderAdapter,
    StructuredResult,
    TextResult,
    TextStream,
    VisionAdapter,
    as_data_url,
    as_dict,
    parse_json_object,
)
from modelgate.structured.validator import validate_structured

log = logging.getLogger(__name__)

JSON_KEYWORD_INSTRUCTION = "Respond with a valid JSON object."


def _safe_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return str(value)


def _truncate(detail: str, limit: int = 500) -> str:
    return detail if len(detail) <= limit else detail[:limit] + "..."


def ensure_json_keyword(prompt: str) -> str:
    # json_object mode is rejected by some backends unless the prompt mentions JSON.
    if "json" in prompt.lower():
        return prompt
    return f"{prompt}\n\n{JSON_KEYWORD_INSTRUCTION}"


class OpenAICompatibleAdapter(ProviderAdapter):
    """Any backend speaking the OpenAI `/chat/completions` wire format over plain httpx."""

    def __init__(self, descriptor: ProviderDescriptor, *, client: httpx.AsyncClient) -> None:
        super().__init__(descriptor)
        self._client = client

    async def list_models(self) -> list[str]:
        try:
            resp = await self._client.get("/models")
        except httpx.HTTPError as e:
            log.warning("provider.models_failed", extra={"provider": self.name, "error": str(e)})
            return []

        if resp.status_code >= 400:
            log.warning("provider.models_failed", extra={"provider": self.name, "status_code": resp.status_code})
            return []

        items = as_dict(parse_json_object(resp.text)).get("data")
        if not isinstance(items, list):
            log.warning("provider.models_failed", extra={"provider": self.name, "error": "unexpected body"})
            return []
        return [str(item["id"]) for item in items if isinstance(item, dict) and item.get("id")]

    def _payload(
        self, content: str | list[dict[str, Any]], model: str | None, temperature: float | None
    ) -> dict[str, Any]:
        return {
            "model": model or self.descriptor.default_model,
            "messages": [{"role": "user", "content": content}],
            "temperature": self._temperature(temperature),
        }

    async def _complete(self, payload: dict[str, Any]) -> TextResult:
        try:
            resp = await self._client.post("/chat/completions", json=payload)
        except httpx.TimeoutException as e:
            log.exception("provider.timeout", extra={"provider": self.name})
            raise self._transport_error(e, timeout=True) from e
        except httpx.HTTPError as e:
            log.exception("provider.request_failed", extra={"provider": self.name})
            raise self._transport_error(e) from e

        if resp.status_code >= 400:
            detail = _truncate(_safe_text(resp.text))
            raise self._transport_error(f"returned {resp.status_code}: {detail}", status_code=resp.status_code)

        data = self._json_body(resp.text)
        choices = data.get("choices")
        if not isinstance(choices, list) or not choices:
            raise self._transport_error(f"returned no choices: {_truncate(json.dumps(data))}")

        message = as_dict(as_dict(choices[0]).get("message"))
        return TextResult(text=_safe_text(message.get("content")), usage=data.get("usage"))

    async def _stream(self, payload: dict[str, Any], usage: DeferredUsage) -> AsyncIterator[str]:
        payload = {**payload, "stream": True, "stream_options": {"include_usage": True}}
        native_usage: Any = None
        try:
            async with self._client.stream("POST", "/chat/completions", json=payload) as resp:
                if resp.status_code >= 400:
                    body = await resp.aread()
                    detail = _truncate(body.decode("utf-8", errors="replace"))
                    raise self._transport_error(
                        f"returned {resp.status_code}: {detail}", status_code=resp.status_code
                    )

                async for line in resp.aiter_lines():
                    if not line.startswith("data:"):
                        continue
                    data_part = line[5:].strip()
                    if data_part == "[DONE]":
                        break
                    obj = parse_json_object(data_part)
                    if obj is None:
                        log.debug("provider.stream_bad_line", extra={"provider": self.name})
                        continue
                    error = obj.get("error")
                    if error:
                        raise self._transport_error(_safe_text(as_dict(error).get("message") or error))
                    if obj.get("usage"):
                        native_usage = obj["usage"]
                    choices = obj.get("choices")
                    for choice in choices if isinstance(choices, list) else []:
                        text = as_dict(as_dict(choice).get("delta")).get("content")
                        if isinstance(text, str) and text:
                            yield text
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
        return TextStream(fragments=self._stream(self._payload(prompt, model, temperature), usage), usage=usage)

    async def generate_structured(
        self,
        prompt: str,
        schema: dict[str, Any] | None,
        model: str | None = None,
        temperature: float | None = None,
    ) -> StructuredResult:
        mode = self.descriptor.structured_mode
        if mode == "json_schema" and schema:
            payload = self._payload(prompt, model, 0 if temperature is None else temperature)
            payload["response_format"] = {
                "type": "json_schema",
                "json_schema": {"name": "response", "schema": schema, "strict": False},
            }
        elif mode == "prompt":
            payload = self._payload(
                f"{prompt}\n\n{schema_instructions(schema)}", model, 0 if temperature is None else temperature
            )
        else:
            payload = self._payload(ensure_json_keyword(prompt), model, 0 if temperature is None else temperature)
            payload["response_format"] = {"type": "json_object"}

        result = await self._complete(payload)
        validation = validate_structured(result.text, schema)
        return StructuredResult.from_validation(validation, usage=result.usage, raw_text=result.text)

    async def aclose(self) -> None:
        await self._client.aclose()


class OpenAICompatibleVisionAdapter(OpenAICompatibleAdapter, VisionAdapter):
    """OpenAI-compatible backend that also accepts `image_url` content parts."""

    async def describe_image(
        self,
        images: list[str],
        model: str | None = None,
        stream: bool = False,
        temperature: float | None = None,
        instruction_prompt: str | None = None,
    ) -> TextResult | TextStream:
        content: list[dict[str, Any]] = [{"type": "text", "text": instruction_prompt or describe_image_prompt()}]
        content.extend({"type": "image_url", "image_url": {"url": as_data_url(image)}} for image in images)

        payload = self._payload(
            content,
            model or self.descriptor.vision_model,
            DESCRIBE_TEMPERATURE if temperature is None else temperature,
        )
        if stream:
            usage = DeferredUsage()
            return TextStream(fragments=self._stream(payload, usage), usage=usage)
        return await self._complete(payload)
