"""Builders shared across test modules."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Iterable

from neflo.models import Interval, IntervalKind
from neflo.storage import IntervalStore

T0 = datetime(2023, 1, 1, 10, 0, 0, tzinfo=timezone.utc)


class RecordingStore(IntervalStore):
    """Interval store that remembers every saved log."""

    def __init__(self, path) -> None:
        super().__init__(path)
        self.saves: list[list[Interval]] = []

    def save(self, intervals: Iterable[Interval]) -> None:
        snapshot = [interval.copy() for interval in intervals]
        self.saves.append(snapshot)
        super().save(snapshot)


def local_time(year: int, month: int, day: int, hour: int = 12, minute: int = 0) -> datetime:
    """Aware UTC timestamp for a wall-clock time in the local timezone."""
    return datetime(year, month, day, hour, minute).astimezone().astimezone(timezone.utc)


def focus(start: datetime, minutes: float) -> Interval:
    return Interval(start=start, end=start + timedelta(minutes=minutes), kind=IntervalKind.FOCUS)


def idle(start: datetime, minutes: float) -> Interval:
    return Interval(start=start, end=start + timedelta(minutes=minutes), kind=IntervalKind.IDLE)
