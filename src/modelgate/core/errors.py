from __future__ import annotations

from fastapi import HTTPException


class GatewayError(Exception):
    """Base class for errors raised by the dispatch layer."""

    code = "gateway_error"


class ProviderNotRegistered(GatewayError):
    code = "provider_not_registered"

    def __init__(self, provider: str | None) -> None:
        self.provider = provider
        if provider:
            super().__init__(f"Provider not registered: {provider}")
        else:
            super().__init__("No enabled provider is registered")


class CapabilityNotSupported(GatewayError):
    code = "capability_not_supported"

    def __init__(self, provider: str, capability: str) -> None:
        self.provider = provider
        self.capability = capability
        super().__init__(f"Capability '{capability}' is not supported by provider: {provider}")


class ProviderTransportError(GatewayError):
    """Network, auth or rate-limit failure reported by a provider backend."""

    code = "provider_transport_error"

    def __init__(
        self,
        provider: str,
        cause: BaseException | str,
        *,
        status_code: int | None = None,
        timeout: bool = False,
    ) -> None:
        self.provider = provider
        self.cause = cause
        self.status_code = status_code
        self.timeout = timeout
        super().__init__(f"{provider} request failed: {cause}")


def bad_request(detail: str) -> HTTPException:
    return HTTPException(status_code=400, detail=detail)


def bad_gateway(detail: str = "Bad gateway") -> HTTPException:
    return HTTPException(status_code=502, detail=detail)


def gateway_timeout(detail: str = "Gateway timeout") -> HTTPException:
    return HTTPException(status_code=504, detail=detail)


def to_http_exception(exc: GatewayError) -> HTTPException:
    if isinstance(exc, ProviderTransportError):
        if exc.timeout:
            return gateway_timeout(str(exc))
        return bad_gateway(str(exc))
    if isinstance(exc, (ProviderNotRegistered, CapabilityNotSupported)):
        return bad_request(str(exc))
    return bad_gateway(str(exc))
