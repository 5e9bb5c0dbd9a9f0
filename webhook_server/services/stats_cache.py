"""
Stats Cache

Keeps one computed ``AggregateResult`` per document and reuses it for the
rest of the calendar day it was computed on. Freshness is by date, not by
age: an entry computed at 23:59 goes stale at midnight, an entry computed
at 00:01 lives for almost a day.

The cache knows nothing about request rates. Rate limiting of forced
refreshes is the caller's job (see stats_service.RefreshCooldown).

Memory is bounded by ``max_entries`` with least-recently-used eviction.
Recomputation for one document is single-flight: concurrent misses for the
same document wait for the first computation instead of repeating it.
"""

import logging
from collections import OrderedDict
from dataclasses import dataclass
from datetime import date
from typing import Awaitable, Callable, Optional

from webhook_server.services.aggregator import AggregateResult
from webhook_server.services.locks import KeyedLocks

logger = logging.getLogger(__name__)

DEFAULT_MAX_ENTRIES = 1024


@dataclass(frozen=True)
class CacheEntry:
    document_id: str
    computed_for_date: str
    result: AggregateResult


def today_label() -> str:
    return date.today().strftime("%Y-%m-%d")


class StatsCache:
    """
    Date-based cache of per-document statistics.

    Args:
        compute: Coroutine function producing a fresh result for a document
        today: Returns today's calendar-day label (injectable for tests)
        max_entries: LRU bound on the number of cached documents
    """

    def __init__(
        self,
        compute: Callable[[str], Awaitable[AggregateResult]],
        today: Callable[[], str] = today_label,
        max_entries: int = DEFAULT_MAX_ENTRIES,
    ):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self._compute = compute
        self._today = today
        self.max_entries = max_entries
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._locks = KeyedLocks()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, document_id: str) -> bool:
        return document_id in self._entries

    def peek(self, document_id: str) -> Optional[CacheEntry]:
        """Return the entry for a document without touching LRU order."""
        return self._entries.get(document_id)

    def invalidate(self, document_id: str) -> None:
        self._entries.pop(document_id, None)

    def clear(self) -> None:
        self._entries.clear()

    def _fresh(self, document_id: str, today: str) -> Optional[CacheEntry]:
        entry = self._entries.get(document_id)
        if entry is not None and entry.computed_for_date == today:
            self._entries.move_to_end(document_id)
            return entry
        return None

    def _store(self, entry: CacheEntry) -> None:
        self._entries[entry.document_id] = entry
        self._entries.move_to_end(entry.document_id)
        while len(self._entries) > self.max_entries:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug("Evicted stats for document %s", evicted)

    async def get(self, document_id: str, force_refresh: bool = False) -> AggregateResult:
        """
        Return statistics for a document.

        A cached result computed today is returned as-is unless
        ``force_refresh`` is set; anything else triggers a recomputation
        stored under today's date.
        """
        today = self._today()
        if not force_refresh:
            entry = self._fresh(document_id, today)
            if entry is not None:
                return entry.result

        async with self._locks.hold(document_id):
            # Another request may have recomputed while we waited.
            if not force_refresh:
                entry = self._fresh(document_id, today)
                if entry is not None:
                    return entry.result

            result = await self._compute(document_id)
            self._store(CacheEntry(document_id, today, result))

        return result
