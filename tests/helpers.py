"""
Test helpers.

Timestamps are built from naive local datetimes so they land on the same
calendar day the aggregator computes with ``datetime.fromtimestamp``.
"""

import json
import os
from datetime import date, datetime
from pathlib import Path


def ms(year: int, month: int, day: int, hour: int = 12, minute: int = 0) -> int:
    """Epoch milliseconds of a local wall-clock time."""
    return int(datetime(year, month, day, hour, minute).timestamp() * 1000)


def label(year: int, month: int, day: int) -> str:
    return date(year, month, day).strftime("%Y-%m-%d")


def write_log(storage: Path, file_name: str, records, mtime: float = None) -> Path:
    """Write a read log file (records may be any JSON value)."""
    storage.mkdir(parents=True, exist_ok=True)
    path = storage / file_name
    path.write_text(json.dumps(records), encoding="utf-8")
    if mtime is not None:
        os.utime(path, (mtime, mtime))
    return path


class FakeClock:
    """Manually advanced wall clock (seconds)."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeToday:
    """Manually advanced calendar day."""

    def __init__(self, today: date):
        self.today = today

    def __call__(self) -> date:
        return self.today

    def label(self) -> str:
        return self.today.strftime("%Y-%m-%d")
