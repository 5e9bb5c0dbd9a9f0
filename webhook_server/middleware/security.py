"""
Security Headers Middleware

Applies the server's default security headers to every response.

A response that already carries its own Content-Security-Policy has
opted into a different framing policy (the embeddable stats page), so it
is left alone and does not receive X-Frame-Options.
"""

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

DEFAULT_CSP = "; ".join([
    "default-src 'self'",
    "script-src 'self'",
    "style-src 'self' 'unsafe-inline'",
    "img-src 'self' data:",
    "connect-src 'self'",
    "font-src 'self' data:",
    "object-src 'none'",
    "frame-ancestors 'self'",
    "base-uri 'self'",
])


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Adds CSP, X-Frame-Options and related headers unless the route set its own CSP."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)

        headers = response.headers
        headers.setdefault("X-Content-Type-Options", "nosniff")
        headers.setdefault("Referrer-Policy", "no-referrer")
        if "content-security-policy" not in headers:
            headers["Content-Security-Policy"] = DEFAULT_CSP
            headers["X-Frame-Options"] = "SAMEORIGIN"

        return response


def add_security_headers_middleware(app):
    """
    Add security headers middleware to FastAPI app.

    Args:
        app: FastAPI application instance
    """
    app.add_middleware(SecurityHeadersMiddleware)
