from __future__ import annotations

from fastapi import Depends, Request

from modelgate.providers.registry import ProviderRegistry
from modelgate.routing.dispatcher import Dispatcher


def get_provider_registry(request: Request) -> ProviderRegistry:
    registry = getattr(request.app.state, "provider_registry", None)
    if registry is None:
        # App started without lifespan (e.g. a bare TestClient): nothing is registered.
        return ProviderRegistry()
    return registry


def get_dispatcher(request: Request, registry: ProviderRegistry = Depends(get_provider_registry)) -> Dispatcher:
    return Dispatcher(registry, request_id=getattr(request.state, "request_id", None))
