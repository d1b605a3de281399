from __future__ import annotations

import logging
import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from modelgate.core.config import get_settings

log = logging.getLogger(__name__)


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Tags every request with an id (echoed back in the configured header) and logs one access line."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        header = get_settings().modelgate_request_id_header
        request_id = request.headers.get(header) or uuid.uuid4().hex
        request.state.request_id = request_id

        started = time.perf_counter()
        response = await call_next(request)
        # For SSE responses this is time to first byte, not stream duration.
        latency_ms = int((time.perf_counter() - started) * 1000)

        response.headers[header] = request_id
        response.headers["X-Response-Time-Ms"] = str(latency_ms)
        log.info(
            "http.request",
            extra={
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "latency_ms": latency_ms,
            },
        )
        return response
