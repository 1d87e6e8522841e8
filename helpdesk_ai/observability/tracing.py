from __future__ import annotations

import logging
import time
from contextvars import ContextVar
from typing import Awaitable, Callable, Optional
from uuid import uuid4

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from helpdesk_ai.settings import settings

logger = logging.getLogger(__name__)

correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)

# Inbound ids longer than this are replaced rather than echoed back.
MAX_CORRELATION_ID_LENGTH = 128


def _inbound_correlation_id(request: Request) -> Optional[str]:
    value = (request.headers.get(settings.correlation_id_header) or "").strip()
    if not value or len(value) > MAX_CORRELATION_ID_LENGTH:
        return None
    return value


class CorrelationContext(BaseHTTPMiddleware):
    """Bind a correlation id to the request, log its outcome and echo the id back."""

    async def dispatch(self, request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        correlation_id = _inbound_correlation_id(request) or str(uuid4())
        token = correlation_id_var.set(correlation_id)
        request.state.correlation_id = correlation_id
        start = time.perf_counter()
        status_code = 500

        try:
            response = await call_next(request)
            status_code = response.status_code
        finally:
            logger.info(
                "http.request",
                extra={
                    "correlation_id": correlation_id,
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": status_code,
                    "latency_ms": round((time.perf_counter() - start) * 1000, 2),
                },
            )
            correlation_id_var.reset(token)

        response.headers[settings.correlation_id_header] = correlation_id
        return response


def get_correlation_id(default: Optional[str] = None) -> Optional[str]:
    return correlation_id_var.get() or default


def set_correlation_id(value: str) -> None:
    """Bind an id outside a request, e.g. for one run of a maintenance script."""
    correlation_id_var.set(value)
