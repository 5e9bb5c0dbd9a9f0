"""
Service Wiring

Builds the services shared by all handlers of one application instance.
Both stats variants read the same store and share one refresh cooldown,
but each keeps its own cache since their results differ.
"""

import time
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Dict

from webhook_server.core.setting import Settings
from webhook_server.services.aggregator import Aggregator
from webhook_server.services.ingestion_service import IngestionService
from webhook_server.services.read_log import ReadLogStore
from webhook_server.services.renderer import HISTORY_VIEW, WINDOW_VIEW, StatsRenderer, with_window
from webhook_server.services.stats_cache import StatsCache
from webhook_server.services.stats_service import RefreshCooldown, StatsService


@dataclass
class AppServices:
    store: ReadLogStore
    ingestion: IngestionService
    cooldown: RefreshCooldown
    stats: Dict[str, StatsService]
    started_at: float = field(default_factory=time.time)


def build_services(
    settings: Settings,
    today: Callable[[], date] = date.today,
    clock: Callable[[], float] = time.time,
) -> AppServices:
    """
    Create the store, ingestion and stats services from settings.

    Args:
        settings: Process settings
        today: Current local date (tests pin it)
        clock: Wall clock in seconds used by the refresh cooldown
    """
    store = ReadLogStore(settings.STORAGE_DIR)
    renderer = StatsRenderer(settings.CHART_LIBRARY_URL, poll_minutes=settings.STATS_POLL_MINUTES)
    cooldown = RefreshCooldown(
        cooldown_seconds=settings.STATS_REFRESH_COOLDOWN_SECONDS,
        scope=settings.STATS_REFRESH_SCOPE,
        clock=clock,
    )

    def today_label() -> str:
        return today().strftime("%Y-%m-%d")

    stats = {}
    for view in (HISTORY_VIEW, with_window(WINDOW_VIEW, settings.STATS_WINDOW_DAYS)):
        aggregator = Aggregator(
            store,
            window_days=view.window_days,
            wau_days=settings.STATS_WAU_DAYS,
            today=today,
        )
        cache = StatsCache(aggregator.compute, today=today_label, max_entries=settings.STATS_CACHE_MAX_ENTRIES)
        stats[view.name] = StatsService(cache, cooldown, view, renderer)

    return AppServices(
        store=store,
        ingestion=IngestionService(store),
        cooldown=cooldown,
        stats=stats,
    )
