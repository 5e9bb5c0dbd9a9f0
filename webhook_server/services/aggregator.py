"""
Day-Bucketed Aggregator

Turns a document's read log into daily page-view (PV) and unique-visitor
(UV) series.

Days are labelled ``YYYY-MM-DD`` in the local calendar of the process (or
an explicit tzinfo). Labels are fixed width and zero padded, so sorting
them as strings sorts them chronologically.

Two views are produced from the same buckets:
- all-history: one point per day with at least one read
- trailing window: exactly N points ending today, plus yesterday's DAU
  and the weekly active users
Totals are always computed over the whole history.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, tzinfo
from typing import Callable, Dict, Iterable, List, Optional, Set, Tuple

from webhook_server.services.read_log import ReadEvent, ReadLogStore

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_DAYS = 10
DEFAULT_WAU_DAYS = 7


def parse_timestamp(value) -> Optional[float]:
    """Return ``value`` as positive finite epoch millis, or None if it is not one."""
    if isinstance(value, bool) or value is None:
        return None
    try:
        millis = float(value)
    except (TypeError, ValueError, OverflowError):
        # integers too large for a float count as non-finite
        return None
    if not math.isfinite(millis) or millis <= 0:
        return None
    return millis


def day_label(millis: float, tz: Optional[tzinfo] = None) -> str:
    """Calendar day of an epoch-millis timestamp as ``YYYY-MM-DD``."""
    return datetime.fromtimestamp(millis / 1000.0, tz).strftime("%Y-%m-%d")


def date_label(day: date) -> str:
    return day.strftime("%Y-%m-%d")


@dataclass
class DailyBucket:
    """Reads of one calendar day."""
    page_view_count: int = 0
    unique_visitors: Set[str] = field(default_factory=set)

    @property
    def unique_visitor_count(self) -> int:
        return len(self.unique_visitors)


@dataclass
class AggregateResult:
    """Computed statistics for one document."""
    days: List[str]
    pv_series: List[int]
    uv_series: List[int]
    total_page_views: int
    total_unique_visitors: int
    yesterday_dau: Optional[int] = None
    weekly_active_users: Optional[int] = None

    def to_payload(self) -> dict:
        """JSON shape served by the stats endpoint."""
        payload = {
            "days": list(self.days),
            "pvSeries": list(self.pv_series),
            "uvSeries": list(self.uv_series),
            "totalPv": self.total_page_views,
            "totalUv": self.total_unique_visitors,
        }
        if self.yesterday_dau is not None:
            payload["yesterdayDau"] = self.yesterday_dau
        if self.weekly_active_users is not None:
            payload["wau"] = self.weekly_active_users
        return payload


def bucket_events(
    records: Iterable[dict],
    tz: Optional[tzinfo] = None,
) -> Tuple[Dict[str, DailyBucket], int, Set[str]]:
    """
    Group read records by calendar day.

    Records without a positive finite ``lastTs`` are dropped.

    Returns:
        (buckets by day label, total page views, all visitor ids)
    """
    buckets: Dict[str, DailyBucket] = {}
    total_pv = 0
    visitors: Set[str] = set()

    for record in records:
        event = ReadEvent.from_record(record)
        millis = parse_timestamp(event.last_ts)
        if millis is None:
            continue
        try:
            label = day_label(millis, tz)
        except (OverflowError, OSError, ValueError):
            # beyond the platform's representable dates
            continue

        bucket = buckets.get(label)
        if bucket is None:
            bucket = buckets[label] = DailyBucket()
        subject = str(event.subject_id)
        bucket.page_view_count += 1
        bucket.unique_visitors.add(subject)
        total_pv += 1
        visitors.add(subject)

    return buckets, total_pv, visitors


def aggregate_all_history(records: Iterable[dict], tz: Optional[tzinfo] = None) -> AggregateResult:
    """One point per day that has any reads, oldest first."""
    buckets, total_pv, visitors = bucket_events(records, tz)
    days = sorted(buckets)
    return AggregateResult(
        days=days,
        pv_series=[buckets[d].page_view_count for d in days],
        uv_series=[buckets[d].unique_visitor_count for d in days],
        total_page_views=total_pv,
        total_unique_visitors=len(visitors),
    )


def aggregate_trailing_window(
    records: Iterable[dict],
    today: date,
    window_days: int = DEFAULT_WINDOW_DAYS,
    wau_days: int = DEFAULT_WAU_DAYS,
    tz: Optional[tzinfo] = None,
) -> AggregateResult:
    """
    Exactly ``window_days`` points ending at ``today``, oldest first.

    Days without reads contribute zero, so the chart width never changes.
    """
    buckets, total_pv, visitors = bucket_events(records, tz)
    empty = DailyBucket()

    days = [date_label(today - timedelta(days=offset)) for offset in range(window_days - 1, -1, -1)]
    yesterday = buckets.get(date_label(today - timedelta(days=1)), empty)

    weekly: Set[str] = set()
    for offset in range(wau_days):
        weekly |= buckets.get(date_label(today - timedelta(days=offset)), empty).unique_visitors

    return AggregateResult(
        days=days,
        pv_series=[buckets.get(d, empty).page_view_count for d in days],
        uv_series=[buckets.get(d, empty).unique_visitor_count for d in days],
        total_page_views=total_pv,
        total_unique_visitors=len(visitors),
        yesterday_dau=yesterday.unique_visitor_count,
        weekly_active_users=len(weekly),
    )


class Aggregator:
    """
    Computes an ``AggregateResult`` for a document from its read log.

    Args:
        store: Where read logs are read from
        window_days: None for the all-history view, N for an N-day window
        wau_days: Days counted as "weekly" in the window view
        today: Returns the current date (injectable for tests). Defaults
            to today in ``tz`` so the window and the buckets share a calendar.
        tz: Calendar used for day labels (None = process local time)
    """

    def __init__(
        self,
        store: ReadLogStore,
        window_days: Optional[int] = None,
        wau_days: int = DEFAULT_WAU_DAYS,
        today: Optional[Callable[[], date]] = None,
        tz: Optional[tzinfo] = None,
    ):
        self.store = store
        self.window_days = window_days
        self.wau_days = wau_days
        self.tz = tz
        self.today = today or self._today_in_tz

    def _today_in_tz(self) -> date:
        return datetime.now(self.tz).date()

    async def compute(self, document_id: str) -> AggregateResult:
        records = await self.store.load_events(document_id)
        if self.window_days is None:
            result = aggregate_all_history(records, self.tz)
        else:
            result = aggregate_trailing_window(
                records,
                self.today(),
                window_days=self.window_days,
                wau_days=self.wau_days,
                tz=self.tz,
            )
        logger.info(
            "Aggregated %d reads for document %s (%d days, uv=%d)",
            result.total_page_views, document_id, len(result.days), result.total_unique_visitors,
        )
        return result
