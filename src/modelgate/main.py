from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from modelgate import __version__
from modelgate.api import api_router
from modelgate.core.config import get_settings
from modelgate.core.errors import GatewayError, to_http_exception
from modelgate.core.logging import configure_logging
from modelgate.core.middleware import RequestIdMiddleware
from modelgate.providers.factory import build_registry

log = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    configure_logging(level=settings.modelgate_log_level)
    registry = build_registry(settings)
    app.state.provider_registry = registry
    primary = registry.primary_provider()
    log.info(
        "app.start",
        extra={"providers": registry.list_providers(), "primary": primary.name if primary else None},
    )
    yield
    await registry.aclose()
    log.info("app.stop")


async def gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
    http_exc = to_http_exception(exc)
    return JSONResponse(status_code=http_exc.status_code, content={"detail": http_exc.detail, "code": exc.code})


def create_app() -> FastAPI:
    app = FastAPI(title="modelgate", version=__version__, lifespan=lifespan)
    app.add_middleware(RequestIdMiddleware)
    app.add_exception_handler(GatewayError, gateway_error_handler)
    app.include_router(api_router)
    return app


app = create_app()
