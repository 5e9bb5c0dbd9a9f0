"""
Access Logging Middleware

One line per handled request, in the order the fields are read by ops:

    <request id> <METHOD> <path> -> <status> (<route name>) <ms>ms from <client>

Query strings are left out of the line since hook senders put tokens
there. Each response carries ``X-Request-ID`` (echoed when the caller
sent one) and ``X-Process-Time`` in seconds.
"""

import logging
import time
import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger("webhook_server.access")

REQUEST_ID_HEADER = "X-Request-ID"


def get_client_ip(request: Request) -> str:
    """Client address, preferring what a reverse proxy reports."""
    forwarded_for = request.headers.get("X-Forwarded-For", "")
    # first entry is the original client
    first_hop = forwarded_for.split(",")[0].strip()
    if first_hop:
        return first_hop

    real_ip = request.headers.get("X-Real-IP", "").strip()
    if real_ip:
        return real_ip

    return request.client.host if request.client else "unknown"


def route_name(request: Request) -> str:
    route = request.scope.get("route")
    return getattr(route, "name", None) or "-"


class LoggingMiddleware(BaseHTTPMiddleware):

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex[:12]
        started = time.perf_counter()

        response = await call_next(request)

        elapsed = time.perf_counter() - started
        logger.info(
            "%s %s %s -> %d (%s) %.2fms from %s",
            request_id,
            request.method,
            request.url.path,
            response.status_code,
            route_name(request),
            elapsed * 1000,
            get_client_ip(request),
        )

        response.headers[REQUEST_ID_HEADER] = request_id
        response.headers["X-Process-Time"] = f"{elapsed:.6f}"
        return response


def add_logging_middleware(app):
    app.add_middleware(LoggingMiddleware)
