from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from modelgate.core.deps import get_provider_registry
from modelgate.core.errors import ProviderNotRegistered
from modelgate.providers.registry import ProviderRegistry

router = APIRouter()
log = logging.getLogger(__name__)


class ProviderStatus(BaseModel):
    name: str
    enabled: bool
    priority: int
    default_model: str
    vision_model: str | None = None
    capabilities: list[str]
    has_api_key: bool


class ProvidersResponse(BaseModel):
    primary: str | None
    providers: list[ProviderStatus]


@router.get("/providers", response_model=ProvidersResponse)
def list_providers(registry: ProviderRegistry = Depends(get_provider_registry)) -> ProvidersResponse:
    adapters = sorted(registry.all().values(), key=lambda a: a.descriptor.priority)
    primary = registry.primary_provider()
    return ProvidersResponse(
        primary=primary.name if primary else None,
        providers=[
            ProviderStatus(
                name=a.name,
                enabled=a.enabled,
                priority=a.descriptor.priority,
                default_model=a.descriptor.default_model,
                vision_model=a.descriptor.vision_model,
                capabilities=sorted(c.value for c in a.capabilities),
                has_api_key=bool(a.descriptor.api_key),
            )
            for a in adapters
        ],
    )


@router.get("/models")
async def list_models(
    provider: str | None = Query(default=None),
    registry: ProviderRegistry = Depends(get_provider_registry),
) -> dict[str, list[str]]:
    if provider and registry.get(provider) is None:
        raise ProviderNotRegistered(provider)
    models = await registry.list_models(provider)
    log.info("models.listed", extra={"provider": provider, "count": sum(len(v) for v in models.values())})
    return models
