from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from typing import Any

import openai
from openai import AsyncOpenAI

from modelgate.core.errors import ProviderTransportError
from modelgate.domain.providers import ProviderDescriptor
from modelgate.providers.base import DeferredUsage, ProviderAdapter, StructuredResult, TextResult, TextStream
from modelgate.providers.openai_compat import ensure_json_keyword
from modelgate.structured.validator import validate_structured

log = logging.getLogger(__name__)


class OpenAIAdapter(ProviderAdapter):
    """OpenAI through the official SDK. The client is built with `max_retries=0`: no retries here."""

    def __init__(self, descriptor: ProviderDescriptor, *, client: AsyncOpenAI) -> None:
        super().__init__(descriptor)
        self._client = client

    def _map_error(self, e: openai.OpenAIError) -> ProviderTransportError:
        if isinstance(e, openai.APITimeoutError):
            return self._transport_error(e, timeout=True)
        if isinstance(e, openai.APIStatusError):
            return self._transport_error(e, status_code=e.status_code)
        return self._transport_error(e)

    def _kwargs(self, prompt: str, model: str | None, temperature: float | None) -> dict[str, Any]:
        return {
            "model": model or self.descriptor.default_model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": self._temperature(temperature),
        }

    async def _complete(self, **kwargs: Any) -> TextResult:
        try:
            response = await self._client.chat.completions.create(**kwargs)
        except openai.OpenAIError as e:
            log.exception("provider.request_failed", extra={"provider": self.name})
            raise self._map_error(e) from e

        # The SDK hands back the raw text when the body is not JSON.
        try:
            choices = response.choices
            text = choices[0].message.content if choices else None
            usage = response.usage
        except (AttributeError, TypeError, IndexError) as e:
            raise self._transport_error(f"returned an unexpected body: {str(response)[:200]}") from e
        if not choices:
            raise self._transport_error("returned no choices")
        return TextResult(text=text or "", usage=usage)

    async def _stream(self, kwargs: dict[str, Any], usage: DeferredUsage) -> AsyncIterator[str]:
        native_usage: Any = None
        stream = None
        try:
            stream = await self._client.chat.completions.create(
                **kwargs, stream=True, stream_options={"include_usage": True}
            )
            async for chunk in stream:
                if chunk.usage is not None:
                    native_usage = chunk.usage
                for choice in chunk.choices:
                    if choice.delta and choice.delta.content:
                        yield choice.delta.content
        except openai.OpenAIError as e:
            log.exception("provider.stream_failed", extra={"provider": self.name})
            raise self._map_error(e) from e
        finally:
            usage.resolve(native_usage)
            if stream is not None:
                await stream.close()

    async def generate_text(
        self, prompt: str, model: str | None = None, temperature: float | None = None
    ) -> TextResult:
        return await self._complete(**self._kwargs(prompt, model, temperature))

    async def generate_text_stream(
        self, prompt: str, model: str | None = None, temperature: float | None = None
    ) -> TextStream:
        usage = DeferredUsage()
        return TextStream(fragments=self._stream(self._kwargs(prompt, model, temperature), usage), usage=usage)

    async def generate_structured(
        self,
        prompt: str,
        schema: dict[str, Any] | None,
        model: str | None = None,
        temperature: float | None = None,
    ) -> StructuredResult:
        temperature = 0 if temperature is None else temperature
        if schema:
            kwargs = self._kwargs(prompt, model, temperature)
            kwargs["response_format"] = {
                "type": "json_schema",
                "json_schema": {"name": "response", "schema": schema, "strict": False},
            }
        else:
            kwargs = self._kwargs(ensure_json_keyword(prompt), model, temperature)
            kwargs["response_format"] = {"type": "json_object"}

        result = await self._complete(**kwargs)
        validation = validate_structured(result.text, schema)
        return StructuredResult.from_validation(validation, usage=result.usage, raw_text=result.text)

    async def list_models(self) -> list[str]:
        try:
            return [model.id async for model in self._client.models.list()]
        except (openai.OpenAIError, AttributeError, TypeError) as e:
            log.warning("provider.models_failed", extra={"provider": self.name, "error": str(e)})
            return []

    async def aclose(self) -> None:
        await self._client.close()
