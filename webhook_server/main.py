"""
FastAPI Application Entry Point

This module builds the webhook server application:
- Routes declared in the routes document (config.json)
- Middleware (logging, security headers, CORS)
- Rate limiting and error responses

Run with ``python -m webhook_server`` or
``uvicorn webhook_server.main:app``.
"""

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from webhook_server.api.handlers import HandlerRegistry, default_registry
from webhook_server.api.router import build_router
from webhook_server.api.schemas import ErrorResponse
from webhook_server.core.rate_limit import limiter
from webhook_server.core.routes_config import RoutesDocument, load_routes_document
from webhook_server.core.setting import Settings, settings as default_settings
from webhook_server.middleware.logging import add_logging_middleware
from webhook_server.middleware.security import add_security_headers_middleware
from webhook_server.services.factory import AppServices, build_services

logger = logging.getLogger(__name__)

VERSION = "1.0.0"


async def not_found_handler(request: Request, exc: StarletteHTTPException):
    """
    JSON 404 for unknown routes; other HTTP errors keep FastAPI's format.

    A known path called with an undeclared method is an unknown route too.
    """
    unmatched = (
        (exc.status_code == 404 and exc.detail == "Not Found")
        or (exc.status_code == 405 and exc.detail == "Method Not Allowed")
    )
    if unmatched:
        error = ErrorResponse(message="Route not found", path=request.url.path, method=request.method)
        return JSONResponse(error.model_dump(exclude_none=True), status_code=404)
    return await http_exception_handler(request, exc)


def create_app(
    settings: Optional[Settings] = None,
    routes_document: Optional[RoutesDocument] = None,
    services: Optional[AppServices] = None,
    registry: Optional[HandlerRegistry] = None,
) -> FastAPI:
    """
    Build the application.

    Args:
        settings: Process settings (defaults to the environment)
        routes_document: Routes to serve (defaults to ROUTES_CONFIG_PATH)
        services: Pre-built services (tests inject clocks this way)
        registry: Handler registry (defaults to the built-in handlers)

    Raises:
        ConfigError: If the routes document cannot be loaded
    """
    settings = settings or default_settings
    if routes_document is None:
        routes_document = load_routes_document(settings.ROUTES_CONFIG_PATH)
    services = services or build_services(settings)
    registry = registry or default_registry()

    app = FastAPI(
        title="Webhook Server",
        description="Configuration-driven webhook receiver with document visit statistics",
        version=VERSION,
    )
    app.state.settings = settings
    app.state.services = services
    app.state.routes_document = routes_document

    limiter.enabled = settings.RATE_LIMIT_ENABLED
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_exception_handler(StarletteHTTPException, not_found_handler)

    add_security_headers_middleware(app)
    add_logging_middleware(app)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(build_router(routes_document, registry, services))

    @app.on_event("startup")
    async def startup_event():
        logger.info(
            "Webhook server started: %d routes, storage=%s",
            len(routes_document.routes), settings.STORAGE_DIR,
        )

    @app.on_event("shutdown")
    async def shutdown_event():
        logger.info("Shutting down webhook server")

    return app


app = create_app()
