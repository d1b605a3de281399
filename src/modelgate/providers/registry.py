from __future__ import annotations

import logging
from dataclasses import dataclass, field

from modelgate.providers.base import ProviderAdapter

log = logging.getLogger(__name__)


@dataclass
class ProviderRegistry:
    _providers: dict[str, ProviderAdapter] = field(default_factory=dict)

    def register(self, adapter: ProviderAdapter) -> None:
        self._providers[adapter.name] = adapter

    def unregister(self, provider: str) -> None:
        self._providers.pop(provider, None)

    def get(self, provider: str) -> ProviderAdapter | None:
        adapter = self._providers.get(provider)
        if adapter is None or not adapter.enabled:
            return None
        return adapter

    def all(self) -> dict[str, ProviderAdapter]:
        return dict(self._providers)

    def list_providers(self) -> list[str]:
        return sorted(name for name, adapter in self._providers.items() if adapter.enabled)

    def primary_provider(self) -> ProviderAdapter | None:
        enabled = [a for a in self._providers.values() if a.enabled]
        if not enabled:
            return None
        return min(enabled, key=lambda a: a.descriptor.priority)

    async def list_models(self, provider: str | None = None) -> dict[str, list[str]]:
        names = [provider] if provider else self.list_providers()
        out: dict[str, list[str]] = {}
        for name in names:
            adapter = self.get(name)
            if adapter is None:
                continue
            out[name] = await adapter.list_models()
        return out

    async def aclose(self) -> None:
        for adapter in self._providers.values():
            try:
                await adapter.aclose()
            except Exception:
                log.exception("registry.close_failed", extra={"provider": adapter.name})

    # Test helpers
    def clear(self) -> None:
        self._providers.clear()

    def replace(self, other: ProviderRegistry) -> None:
        self._providers = other.all()
