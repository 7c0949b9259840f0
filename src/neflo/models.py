"""Domain models for recorded focus and idle time."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Iterable


class IntervalKind(str, Enum):
    """Classification of a span of time."""

    FOCUS = "Focus"
    IDLE = "Idle"


@dataclass(slots=True)
class Interval:
    """Represents a contiguous block of time with a single classification."""

    start: datetime
    end: datetime
    kind: IntervalKind

    @classmethod
    def starting_at(cls, kind: IntervalKind, timestamp: datetime) -> "Interval":
        return cls(start=timestamp, end=timestamp, kind=kind)

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    @property
    def duration_seconds(self) -> float:
        return self.duration.total_seconds()

    def copy(self) -> "Interval":
        return Interval(start=self.start, end=self.end, kind=self.kind)


def prune_expired(
    intervals: Iterable[Interval], now: datetime, retention: timedelta
) -> list[Interval]:
    """Drop intervals whose end lies before ``now - retention``."""
    horizon = now - retention
    return [interval for interval in intervals if interval.end >= horizon]
