"""
Statistics Service

Request-facing side of the document analytics:
- decides whether a manual refresh is honored (RefreshCooldown)
- fetches statistics through the StatsCache
- answers with JSON or with the embeddable HTML page

A refresh request inside the cooldown is not an error: it is quietly
served from the cache like a normal lookup.
"""

import logging
import time
from typing import Callable, Dict, Optional

from fastapi.responses import HTMLResponse, JSONResponse
from starlette.responses import Response

from webhook_server.api.schemas import StatsResponse
from webhook_server.core.setting import RefreshScope
from webhook_server.services.aggregator import AggregateResult
from webhook_server.services.renderer import StatsRenderer, ViewConfig, build_embed_csp
from webhook_server.services.stats_cache import StatsCache

logger = logging.getLogger(__name__)

DEFAULT_COOLDOWN_SECONDS = 30 * 60

_GLOBAL_KEY = "*"


def is_refresh_requested(value: Optional[str]) -> bool:
    """Only the literal query value '1' asks for a refresh."""
    return value == "1"


def wants_json(output_format: Optional[str]) -> bool:
    return (output_format or "").strip().lower() == "json"


class RefreshCooldown:
    """
    Rate limiter for forced recomputation.

    With the default ``global`` scope, one honored refresh for any document
    starts the cooldown for all documents. With ``document`` scope each
    document has its own timer.
    """

    def __init__(
        self,
        cooldown_seconds: float = DEFAULT_COOLDOWN_SECONDS,
        scope: RefreshScope = RefreshScope.global_,
        clock: Callable[[], float] = time.time,
    ):
        self.cooldown_seconds = cooldown_seconds
        self.scope = RefreshScope(scope)
        self.clock = clock
        self._last_refresh: Dict[str, float] = {}

    def _key(self, document_id: str) -> str:
        return document_id if self.scope is RefreshScope.document else _GLOBAL_KEY

    def try_acquire(self, document_id: str) -> bool:
        """Return True and start a new cooldown if a refresh is allowed now."""
        key = self._key(document_id)
        now = self.clock()
        last = self._last_refresh.get(key)
        if last is not None and now - last < self.cooldown_seconds:
            return False
        self._last_refresh[key] = now
        return True


class StatsService:
    """
    Serves one presentation variant of the document statistics.

    Args:
        cache: Cache wrapping the aggregator for this variant
        cooldown: Refresh limiter, shared between variants
        view: Which cards and window this variant shows
        renderer: HTML renderer
    """

    def __init__(
        self,
        cache: StatsCache,
        cooldown: RefreshCooldown,
        view: ViewConfig,
        renderer: StatsRenderer,
    ):
        self.cache = cache
        self.cooldown = cooldown
        self.view = view
        self.renderer = renderer

    async def get_stats(self, document_id: str, refresh_requested: bool = False) -> AggregateResult:
        force = False
        if refresh_requested:
            force = self.cooldown.try_acquire(document_id)
            if not force:
                logger.info("Refresh for document %s ignored: cooldown active", document_id)
        return await self.cache.get(document_id, force)

    async def handle(
        self,
        document_id: str,
        refresh: Optional[str] = None,
        output_format: Optional[str] = None,
    ) -> Response:
        """
        Build the HTTP response for a stats request.

        Args:
            document_id: Validated document identifier
            refresh: Raw ``refresh`` query value
            output_format: Raw ``format`` query value
        """
        result = await self.get_stats(document_id, is_refresh_requested(refresh))

        if wants_json(output_format):
            return JSONResponse(StatsResponse(**result.to_payload()).model_dump(exclude_none=True))

        html = self.renderer.render(document_id, result, self.view)
        response = HTMLResponse(html, media_type="text/html; charset=utf-8")
        response.headers["Content-Security-Policy"] = build_embed_csp(self.renderer.chart_library_url)
        return response
