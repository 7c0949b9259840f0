"""Summary statistics derived from the interval log."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Iterable, Optional

from .models import Interval, IntervalKind

IntervalPredicate = Callable[[Interval], bool]


@dataclass(slots=True)
class DayStats:
    total_focus: timedelta = timedelta(0)
    total_idle: timedelta = timedelta(0)
    focus_sessions: int = 0
    idle_sessions: int = 0


@dataclass(slots=True)
class SummaryStats:
    """Totals plus the longest and shortest single interval per kind."""

    total_focus: timedelta = timedelta(0)
    total_idle: timedelta = timedelta(0)
    focus_count: int = 0
    idle_count: int = 0
    max_focus: Optional[timedelta] = None
    min_focus: Optional[timedelta] = None
    max_idle: Optional[timedelta] = None
    min_idle: Optional[timedelta] = None

    def add(self, kind: IntervalKind, duration: timedelta) -> None:
        if kind is IntervalKind.FOCUS:
            self.total_focus += duration
            self.focus_count += 1
            self.max_focus = duration if self.max_focus is None else max(self.max_focus, duration)
            self.min_focus = duration if self.min_focus is None else min(self.min_focus, duration)
        else:
            self.total_idle += duration
            self.idle_count += 1
            self.max_idle = duration if self.max_idle is None else max(self.max_idle, duration)
            self.min_idle = duration if self.min_idle is None else min(self.min_idle, duration)


@dataclass(slots=True)
class Stats:
    daily: dict[date, DayStats]
    session: SummaryStats
    today: SummaryStats
    week: SummaryStats
    today_date: date
    week_start: date
    run_start: Optional[datetime] = None


def local_date(timestamp: datetime) -> date:
    return timestamp.astimezone().date()


def week_start_for(day: date) -> date:
    """Return the Monday of the ISO week containing ``day``."""
    return day - timedelta(days=day.weekday())


def summarize(
    intervals: Iterable[Interval], predicate: Optional[IntervalPredicate] = None
) -> SummaryStats:
    summary = SummaryStats()
    for interval in intervals:
        if interval.end < interval.start:
            continue
        if predicate is not None and not predicate(interval):
            continue
        summary.add(interval.kind, interval.duration)
    return summary


def daily_breakdown(intervals: Iterable[Interval]) -> dict[date, DayStats]:
    """Bucket intervals by the local calendar day they start on."""
    buckets: dict[date, DayStats] = {}
    for interval in intervals:
        if interval.end < interval.start:
            continue
        stats = buckets.setdefault(local_date(interval.start), DayStats())
        if interval.kind is IntervalKind.FOCUS:
            stats.total_focus += interval.duration
            stats.focus_sessions += 1
        else:
            stats.total_idle += interval.duration
            stats.idle_sessions += 1
    return dict(sorted(buckets.items()))


def calculate_stats(
    intervals: Iterable[Interval],
    run_start: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> Stats:
    """Compute daily, session, today and week views of the log.

    ``now`` pins "today" and the week boundary; it defaults to the wall clock.
    Without ``run_start`` the session summary is empty.
    """
    snapshot = tuple(intervals)
    now = now or datetime.now(timezone.utc)
    today = local_date(now)
    week_start = week_start_for(today)
    week_end = week_start + timedelta(days=6)

    def in_session(interval: Interval) -> bool:
        return run_start is not None and interval.start >= run_start

    def in_today(interval: Interval) -> bool:
        return local_date(interval.start) == today

    def in_week(interval: Interval) -> bool:
        return week_start <= local_date(interval.start) <= week_end

    return Stats(
        daily=daily_breakdown(snapshot),
        session=summarize(snapshot, in_session),
        today=summarize(snapshot, in_today),
        week=summarize(snapshot, in_week),
        today_date=today,
        week_start=week_start,
        run_start=run_start,
    )
