"""
Webhook Handlers

Routes in the routes document name a handler id; this module maps those
ids to coroutine functions taking ``(request, context)`` and returning a
Response.

Handlers stay thin: they parse the request, delegate to a service, and
shape the response. A route naming an unknown handler still works: it
gets the echo handler, which answers with everything it received.
"""

import json
import logging
import platform
import sys
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional
from urllib.parse import parse_qs

import psutil
from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from starlette.responses import Response

from webhook_server.api.schemas import (
    AckResponse,
    EchoResponse,
    HealthResponse,
    Memory,
    RequestInfo,
    Uptime,
)
from webhook_server.core.exceptions import InvalidDocumentIdError, MissingFieldsError
from webhook_server.core.validators import sanitize_document_id
from webhook_server.services.factory import AppServices
from webhook_server.services.ingestion_service import parse_payload

logger = logging.getLogger(__name__)


@dataclass
class HandlerContext:
    """What a handler knows about the route it is serving."""
    route_name: str
    handler_id: str
    services: AppServices


Handler = Callable[[Request, HandlerContext], Awaitable[Response]]


def local_timestamp() -> str:
    return datetime.now().strftime("%Y/%m/%d %H:%M:%S")


async def read_body(request: Request) -> Any:
    """
    Parse the request body according to its content type.

    JSON and url-encoded forms are decoded into objects, anything else is
    returned as text. An empty body is ``{}``.
    """
    raw = await request.body()
    if not raw:
        return {}

    content_type = request.headers.get("content-type", "").split(";")[0].strip().lower()
    text = raw.decode("utf-8", errors="replace")

    if content_type == "application/json" or content_type.endswith("+json"):
        try:
            return json.loads(text)
        except ValueError:
            return text
    if content_type == "application/x-www-form-urlencoded":
        return {k: v[0] if len(v) == 1 else v for k, v in parse_qs(text, keep_blank_values=True).items()}
    return text


def _body_size(body: Any) -> int:
    return len(json.dumps(body, ensure_ascii=False, default=str))


def request_info(request: Request, body: Any) -> RequestInfo:
    return RequestInfo(
        method=request.method,
        path=request.url.path,
        userAgent=request.headers.get("user-agent"),
        contentType=request.headers.get("content-type"),
        bodySize=_body_size(body),
        body=body,
    )


def document_id_from(request: Request) -> str:
    """
    Extract and validate the document id path parameter.

    Raises:
        HTTPException 400: If the id is missing or unsafe
    """
    params = request.path_params
    raw = params.get("docId")
    if raw is None and len(params) == 1:
        raw = next(iter(params.values()))

    document_id = sanitize_document_id(raw) if raw is not None else None
    if document_id is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(InvalidDocumentIdError(raw or "")),
        )
    return document_id


async def listen_handler(request: Request, context: HandlerContext) -> Response:
    """Acknowledge any webhook call."""
    logger.info("[%s] Received %s request to %s", context.handler_id, request.method, request.url.path)
    body = await read_body(request)
    ack = AckResponse(timestamp=local_timestamp(), requestInfo=request_info(request, body))
    return JSONResponse(ack.model_dump(exclude_none=True))


def _megabytes(value: int) -> str:
    return f"{round(value / 1024 / 1024)}MB"


async def health_handler(request: Request, context: HandlerContext) -> Response:
    """Process uptime and memory usage."""
    uptime = int(time.time() - context.services.started_at)
    memory = psutil.Process().memory_info()

    health = HealthResponse(
        timestamp=local_timestamp(),
        uptime=Uptime(
            seconds=uptime,
            readable=f"{uptime // 3600}h {(uptime % 3600) // 60}m {uptime % 60}s",
        ),
        memory=Memory(rss=_megabytes(memory.rss), vms=_megabytes(memory.vms)),
        python=sys.version.split()[0],
        platform=sys.platform,
        arch=platform.machine(),
    )
    logger.info("[%s] Health check requested", context.handler_id)
    return JSONResponse(health.model_dump())


async def doc_hook_handler(request: Request, context: HandlerContext) -> Response:
    """Store document content and read events sent by the document platform."""
    logger.info("[%s] Received %s request to %s", context.handler_id, request.method, request.url.path)
    body = await read_body(request)
    info = request_info(request, body)

    try:
        payload = parse_payload(body)
    except MissingFieldsError as e:
        error = AckResponse(
            code=1,
            status="error",
            message="Missing required fields",
            timestamp=local_timestamp(),
            requestInfo=info,
            missing=e.fields,
        )
        return JSONResponse(error.model_dump(exclude_none=True), status_code=status.HTTP_400_BAD_REQUEST)
    except InvalidDocumentIdError as e:
        error = AckResponse(
            code=1,
            status="error",
            message=str(e),
            timestamp=local_timestamp(),
            requestInfo=info,
        )
        return JSONResponse(error.model_dump(exclude_none=True), status_code=status.HTTP_400_BAD_REQUEST)

    await context.services.ingestion.ingest(payload)

    ack = AckResponse(timestamp=local_timestamp(), requestInfo=info)
    return JSONResponse(ack.model_dump(exclude_none=True))


def stats_handler(view_name: str) -> Handler:
    """Handler serving one stats variant (JSON with ?format=json, HTML otherwise)."""

    async def handler(request: Request, context: HandlerContext) -> Response:
        document_id = document_id_from(request)
        service = context.services.stats[view_name]
        return await service.handle(
            document_id,
            refresh=request.query_params.get("refresh"),
            output_format=request.query_params.get("format"),
        )

    handler.__name__ = f"stats_{view_name}_handler"
    return handler


def echo_handler(handler_name: str) -> Handler:
    """Fallback for routes whose handler id is not registered."""

    async def handler(request: Request, context: HandlerContext) -> Response:
        body = await read_body(request)
        echo = EchoResponse(
            message=f"Webhook received at {request.url.path}",
            handler=handler_name,
            timestamp=datetime.now(timezone.utc).isoformat(),
            method=request.method,
            headers=dict(request.headers),
            query=dict(request.query_params),
            params=dict(request.path_params),
            body=body,
        )
        return JSONResponse(echo.model_dump())

    return handler


class HandlerRegistry:
    """Maps handler ids from the routes document to handler functions."""

    def __init__(self, handlers: Optional[Dict[str, Handler]] = None):
        self._handlers: Dict[str, Handler] = dict(handlers or {})

    def register(self, handler_id: str, handler: Handler) -> None:
        self._handlers[handler_id] = handler

    def __contains__(self, handler_id: str) -> bool:
        return handler_id in self._handlers

    def resolve(self, handler_id: str, handler_name: Optional[str] = None) -> Handler:
        handler = self._handlers.get(handler_id)
        if handler is None:
            logger.warning("Handler '%s' not found, using echo handler", handler_name or handler_id)
            return echo_handler(handler_name or handler_id)
        return handler


def default_registry() -> HandlerRegistry:
    return HandlerRegistry({
        "listen": listen_handler,
        "health": health_handler,
        "doc-hook": doc_hook_handler,
        "doc-status": stats_handler("history"),
        "doc-status-window": stats_handler("window"),
    })
