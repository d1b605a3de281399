from __future__ import annotations

import logging
import time
from typing import Any, cast

from modelgate.core.errors import CapabilityNotSupported, GatewayError, ProviderNotRegistered
from modelgate.core.logging import LogContext, with_context
from modelgate.core.metrics import (
    modelgate_errors_total,
    modelgate_request_duration_seconds,
    modelgate_requests_total,
    modelgate_structured_invalid_total,
    modelgate_tokens_total,
)
from modelgate.domain.envelope import (
    DispatchPayload,
    LLMConfig,
    RequestEnvelope,
    ResponseEnvelope,
    StreamEnvelope,
)
from modelgate.domain.providers import Capability
from modelgate.domain.usage import UsageRecord, normalize_usage
from modelgate.prompts import ocr_extraction_prompt, ocr_prompt
from modelgate.providers.base import ProviderAdapter, StructuredResult, TextResult, VisionAdapter
from modelgate.providers.registry import ProviderRegistry
from modelgate.structured.validator import ValidationResult, validate_structured

log = logging.getLogger(__name__)


class Dispatcher:
    """
    Provider-agnostic entry point.

    Resolves the provider for a request, rejects unsupported capabilities before any
    network call, invokes the adapter and normalizes usage on the way out.
    """

    def __init__(self, registry: ProviderRegistry, *, request_id: str | None = None) -> None:
        self.registry = registry
        self.request_id = request_id

    def resolve(self, provider: str | None) -> ProviderAdapter:
        if provider:
            adapter = self.registry.get(provider)
        else:
            adapter = self.registry.primary_provider()
        if adapter is None:
            log.warning("dispatch.unknown_provider", extra={"provider": provider})
            raise ProviderNotRegistered(provider)
        return adapter

    def _check(self, adapter: ProviderAdapter, capability: Capability) -> None:
        # Streamed text needs text generation too; a missing STREAMING capability is
        # reported on the stream itself.
        needed = Capability.TEXT if capability is Capability.STREAMING else capability
        if not adapter.supports(needed):
            raise CapabilityNotSupported(adapter.name, needed.value)
        if capability is Capability.VISION and not isinstance(adapter, VisionAdapter):
            raise CapabilityNotSupported(adapter.name, capability.value)

    async def invoke(self, capability: Capability, envelope: RequestEnvelope) -> ResponseEnvelope | StreamEnvelope:
        config = envelope.config
        payload = envelope.payload
        # Structured output is always delivered whole.
        stream = capability is Capability.STREAMING or (config.stream and capability is not Capability.STRUCTURED)

        try:
            adapter = self.resolve(config.provider)
            self._check(adapter, capability)
        except GatewayError as e:
            modelgate_errors_total.labels(
                provider=config.provider or "", capability=capability.value, code=e.code
            ).inc()
            raise

        model = config.model or adapter.default_model_for(capability)
        clog = with_context(
            log,
            LogContext(request_id=self.request_id, provider=adapter.name, model=model, capability=capability.value),
        )
        if config.use_agent:
            clog.info("dispatch.agent_ignored")

        if stream and not adapter.supports(Capability.STREAMING):
            # No provider call; the stream writer answers with the unsupported error event.
            modelgate_errors_total.labels(
                provider=adapter.name, capability=capability.value, code="streaming_unsupported"
            ).inc()
            clog.info("dispatch.streaming_unsupported")
            return StreamEnvelope(source=None, provider=adapter.name, model=model)

        clog.info("dispatch.request", extra={"stream": stream})

        started = time.perf_counter()
        status = "ok"
        try:
            if capability in (Capability.TEXT, Capability.STREAMING):
                if stream:
                    source = await adapter.generate_text_stream(payload.prompt, model=model, temperature=config.temperature)
                    return StreamEnvelope(source=source, provider=adapter.name, model=model)
                text_result = await adapter.generate_text(payload.prompt, model=model, temperature=config.temperature)
                return self._respond(text_result.text, text_result.usage, adapter, model)

            if capability is Capability.STRUCTURED:
                structured = await adapter.generate_structured(
                    payload.prompt, payload.json_schema, model=model, temperature=config.temperature
                )
                if not structured.valid:
                    modelgate_structured_invalid_total.labels(provider=adapter.name).inc()
                    clog.info("dispatch.structured_invalid", extra={"parse_error": structured.parse_error})
                return self._respond(_validation_of(structured), structured.usage, adapter, model)

            if capability is Capability.VISION:
                return await self._vision(cast(VisionAdapter, adapter), payload, config, model, stream)

            raise CapabilityNotSupported(adapter.name, capability.value)
        except GatewayError as e:
            status = "error"
            modelgate_errors_total.labels(provider=adapter.name, capability=capability.value, code=e.code).inc()
            clog.warning("dispatch.failed", extra={"code": e.code, "error": str(e)})
            raise
        finally:
            elapsed = time.perf_counter() - started
            modelgate_requests_total.labels(
                provider=adapter.name, capability=capability.value, stream=str(stream).lower(), status=status
            ).inc()
            if not stream:
                modelgate_request_duration_seconds.labels(provider=adapter.name, capability=capability.value).observe(
                    elapsed
                )
            clog.info("dispatch.done", extra={"status": status, "latency_ms": int(elapsed * 1000)})

    async def _vision(
        self,
        adapter: VisionAdapter,
        payload: DispatchPayload,
        config: LLMConfig,
        model: str,
        stream: bool,
    ) -> ResponseEnvelope | StreamEnvelope:
        images = list(payload.images)
        temperature = config.temperature

        if payload.task == "ocr":
            if payload.json_schema is not None:
                instruction = ocr_extraction_prompt(payload.instruction_prompt or ocr_prompt(), payload.json_schema)
                stream = False
            else:
                instruction = payload.instruction_prompt or ocr_prompt()
            temperature = 0 if temperature is None else temperature
        else:
            instruction = payload.instruction_prompt or payload.prompt or None

        result = await adapter.describe_image(
            images, model=model, stream=stream, temperature=temperature, instruction_prompt=instruction
        )
        if stream:
            return StreamEnvelope(source=result, provider=adapter.name, model=model)
        if not isinstance(result, TextResult):
            # Adapter streamed anyway; drain it into a single text.
            parts = [fragment async for fragment in result.fragments]
            usage = await result.usage if result.usage is not None else None
            result = TextResult(text="".join(parts), usage=usage)

        if payload.task == "ocr" and payload.json_schema is not None:
            return self._respond(validate_structured(result.text, payload.json_schema), result.usage, adapter, model)
        return self._respond(result.text, result.usage, adapter, model)

    def _respond(self, result: Any, native_usage: Any, adapter: ProviderAdapter, model: str) -> ResponseEnvelope:
        usage = normalize_usage(native_usage)
        _count_tokens(adapter.name, usage)
        return ResponseEnvelope(result=result, provider=adapter.name, model=model, usage=usage)

    # Convenience wrappers

    async def generate_text(self, prompt: str, config: LLMConfig | None = None) -> ResponseEnvelope | StreamEnvelope:
        envelope = RequestEnvelope(payload=DispatchPayload(prompt=prompt), config=config or LLMConfig())
        return await self.invoke(Capability.TEXT, envelope)

    async def generate_structured(
        self, prompt: str, schema: dict[str, Any] | None, config: LLMConfig | None = None
    ) -> ResponseEnvelope:
        envelope = RequestEnvelope(
            payload=DispatchPayload(prompt=prompt, json_schema=schema), config=config or LLMConfig()
        )
        return cast(ResponseEnvelope, await self.invoke(Capability.STRUCTURED, envelope))

    async def describe_image(
        self,
        images: list[str],
        config: LLMConfig | None = None,
        *,
        task: str = "describe",
        instruction_prompt: str | None = None,
        schema: dict[str, Any] | None = None,
    ) -> ResponseEnvelope | StreamEnvelope:
        envelope = RequestEnvelope(
            payload=DispatchPayload(
                images=tuple(images), task=task, instruction_prompt=instruction_prompt, json_schema=schema
            ),
            config=config or LLMConfig(),
        )
        return await self.invoke(Capability.VISION, envelope)


def _validation_of(result: StructuredResult) -> ValidationResult:
    return ValidationResult(
        data=result.object,
        valid=result.valid,
        parse_error=result.parse_error,
        schema_error=result.schema_error,
    )


def _count_tokens(provider: str, usage: UsageRecord) -> None:
    if usage.input_tokens:
        modelgate_tokens_total.labels(provider=provider, kind="input").inc(usage.input_tokens)
    if usage.output_tokens:
        modelgate_tokens_total.labels(provider=provider, kind="output").inc(usage.output_tokens)
