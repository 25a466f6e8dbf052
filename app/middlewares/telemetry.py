from __future__ import annotations

import time
from collections.abc import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from app.core.logging import clear_request_context, get_logger, set_request_id


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Propaga X-Request-ID e loga início/fim de cada request."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        # contexto de request anterior não vaza para este
        clear_request_context()
        rid = set_request_id(request.headers.get("X-Request-ID"))

        log = get_logger().bind(path=request.url.path, method=request.method)
        log.info("request.start")

        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            log.exception("request.error")
            raise
        finally:
            duration_ms = (time.perf_counter() - started) * 1000.0

        response.headers["X-Request-ID"] = rid

        log.bind(
            status_code=response.status_code, duration_ms=round(duration_ms, 2)
        ).info("request.end")
        return response
