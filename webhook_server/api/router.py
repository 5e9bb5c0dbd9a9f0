"""
Route Registration from the Routes Document

Every entry of the routes document becomes one FastAPI route serving the
declared methods. Each route:
- is rate limited per client IP (limit chosen by handler id)
- catches handler failures and answers with a JSON 500 instead of
  letting the exception escape
"""

import logging
import re

from fastapi import APIRouter, HTTPException, Request, status
from fastapi.responses import JSONResponse
from starlette.responses import Response

from webhook_server.api.handlers import HandlerContext, HandlerRegistry
from webhook_server.api.schemas import ErrorResponse
from webhook_server.core.rate_limit import limiter, rate_limit_for
from webhook_server.core.routes_config import RouteConfig, RoutesDocument
from webhook_server.services.factory import AppServices

logger = logging.getLogger(__name__)


def _endpoint_name(route_name: str) -> str:
    return "webhook_" + re.sub(r'\W', '_', route_name)


def make_endpoint(route_name: str, route: RouteConfig, registry: HandlerRegistry, services: AppServices):
    handler = registry.resolve(route.handler_id, route.handler)
    context = HandlerContext(route_name=route_name, handler_id=route.handler_id, services=services)

    async def endpoint(request: Request) -> Response:
        try:
            return await handler(request, context)
        except HTTPException:
            raise
        except Exception as e:
            logger.error("Handler error for %s: %s", route.path, e, exc_info=True)
            error = ErrorResponse(message="Internal server error", error=str(e))
            return JSONResponse(
                error.model_dump(exclude_none=True),
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )

    # slowapi keys its limits by function name
    endpoint.__name__ = _endpoint_name(route_name)
    endpoint.__qualname__ = endpoint.__name__
    return limiter.limit(rate_limit_for(route.handler_id))(endpoint)


def build_router(document: RoutesDocument, registry: HandlerRegistry, services: AppServices) -> APIRouter:
    """Create the router holding every route declared in ``document``."""
    router = APIRouter()

    for route_name, route in document.routes.items():
        logger.info(
            "Registering route %s: path=%s methods=%s handler=%s",
            route_name, route.path, ", ".join(route.methods), route.handler,
        )
        router.add_api_route(
            route.path,
            make_endpoint(route_name, route, registry, services),
            methods=route.methods,
            name=route_name,
        )

    return router
