"""Builds adapters and their pooled HTTP transports from provider descriptors."""

from __future__ import annotations

import logging

import httpx
from openai import AsyncOpenAI

from modelgate.core.config import Settings, provider_descriptors
from modelgate.domain.providers import Capability, ProviderDescriptor, ProviderName
from modelgate.providers.anthropic import AnthropicAdapter, anthropic_headers
from modelgate.providers.base import ProviderAdapter
from modelgate.providers.ollama import OllamaAdapter
from modelgate.providers.openai_adapter import OpenAIAdapter
from modelgate.providers.openai_compat import OpenAICompatibleAdapter, OpenAICompatibleVisionAdapter
from modelgate.providers.registry import ProviderRegistry

log = logging.getLogger(__name__)

CONNECT_TIMEOUT_SECONDS = 10.0


def _timeout(descriptor: ProviderDescriptor) -> httpx.Timeout:
    return httpx.Timeout(descriptor.timeout_seconds, connect=min(CONNECT_TIMEOUT_SECONDS, descriptor.timeout_seconds))


def build_http_client(
    descriptor: ProviderDescriptor, *, transport: httpx.AsyncBaseTransport | None = None
) -> httpx.AsyncClient:
    headers = dict(descriptor.headers)
    if descriptor.name == ProviderName.ANTHROPIC.value:
        headers.update(anthropic_headers(descriptor.api_key or ""))
    elif descriptor.api_key:
        headers["Authorization"] = f"Bearer {descriptor.api_key}"
    return httpx.AsyncClient(
        base_url=descriptor.base_url,
        headers=headers,
        timeout=_timeout(descriptor),
        transport=transport,
    )


def build_adapter(
    descriptor: ProviderDescriptor, *, transport: httpx.AsyncBaseTransport | None = None
) -> ProviderAdapter:
    """`transport` replaces the network layer, e.g. with `httpx.MockTransport` in tests."""
    name = descriptor.name
    if name == ProviderName.OPENAI.value:
        http_client = httpx.AsyncClient(transport=transport) if transport is not None else None
        client = AsyncOpenAI(
            api_key=descriptor.api_key,
            base_url=descriptor.base_url,
            timeout=_timeout(descriptor),
            max_retries=0,
            default_headers=dict(descriptor.headers) or None,
            http_client=http_client,
        )
        return OpenAIAdapter(descriptor, client=client)

    client = build_http_client(descriptor, transport=transport)
    if name == ProviderName.ANTHROPIC.value:
        return AnthropicAdapter(descriptor, client=client)
    if name == ProviderName.OLLAMA.value:
        return OllamaAdapter(descriptor, client=client)
    if descriptor.supports(Capability.VISION):
        return OpenAICompatibleVisionAdapter(descriptor, client=client)
    return OpenAICompatibleAdapter(descriptor, client=client)


def build_registry(settings: Settings) -> ProviderRegistry:
    registry = ProviderRegistry()
    for descriptor in provider_descriptors(settings):
        if not descriptor.enabled:
            continue
        registry.register(build_adapter(descriptor))
        log.info(
            "provider.registered",
            extra={"provider": descriptor.name, "model": descriptor.default_model, "priority": descriptor.priority},
        )
    return registry
