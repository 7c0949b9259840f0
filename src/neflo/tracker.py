"""Interval state machine that turns idle-time samples into a focus log."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from .config import TrackerSettings
from .models import Interval, IntervalKind, prune_expired
from .storage import IntervalStore

logger = logging.getLogger(__name__)

EARLIEST_TIMESTAMP = datetime.min.replace(tzinfo=timezone.utc)


@dataclass(slots=True)
class SessionContext:
    """Process-local state for one tracking run."""

    threshold: timedelta
    run_start: datetime
    state_start: datetime
    last_save: datetime
    last_kind: Optional[IntervalKind] = None

    @classmethod
    def begin(cls, threshold: timedelta, now: datetime) -> "SessionContext":
        return cls(threshold=threshold, run_start=now, state_start=now, last_save=now)


def backdate(now: datetime, idle_seconds: float) -> datetime:
    """Return ``now - idle_seconds`` in whole seconds, saturating at the earliest timestamp."""
    try:
        return now - timedelta(seconds=int(idle_seconds))
    except (OverflowError, ValueError):
        return EARLIEST_TIMESTAMP


class IntervalTracker:
    """Owns the interval log for an active tracking session."""

    def __init__(
        self,
        store: IntervalStore,
        settings: TrackerSettings,
        context: SessionContext,
        intervals: Optional[list[Interval]] = None,
    ) -> None:
        self.store = store
        self.settings = settings
        self.context = context
        self.intervals: list[Interval] = list(intervals or [])

    @classmethod
    def open(
        cls, store: IntervalStore, settings: TrackerSettings, now: datetime
    ) -> "IntervalTracker":
        intervals = store.load()
        logger.info("Loaded %d intervals from %s", len(intervals), store.path)
        context = SessionContext.begin(settings.idle_threshold, now)
        return cls(store, settings, context, intervals)

    def classify(self, idle_seconds: float) -> IntervalKind:
        if idle_seconds >= self.context.threshold.total_seconds():
            return IntervalKind.IDLE
        return IntervalKind.FOCUS

    def tick(self, idle_seconds: float, now: datetime) -> None:
        current_kind = self.classify(idle_seconds)
        self.update_log(current_kind, idle_seconds, now)

        context = self.context
        if current_kind != context.last_kind:
            logger.info(
                "State changed: %s -> %s",
                context.last_kind.value if context.last_kind else "start",
                current_kind.value,
            )
            context.state_start = now
            context.last_kind = current_kind
            self.save(now)

        if now - context.last_save > self.settings.save_interval:
            self.save(now)

    def update_log(
        self, current_kind: IntervalKind, idle_seconds: float, now: datetime
    ) -> None:
        intervals = self.intervals
        if not intervals:
            intervals.append(Interval.starting_at(current_kind, now))
            return

        last = intervals[-1]
        if now - last.end > self.settings.gap_threshold:
            logger.debug("Sampling gap of %s; starting a new interval.", now - last.end)
            intervals.append(Interval.starting_at(current_kind, now))
            return

        if last.kind == current_kind:
            last.end = now
        elif current_kind is IntervalKind.IDLE:
            idle_start = backdate(now, idle_seconds)
            if idle_start <= last.start:
                last.kind = IntervalKind.IDLE
                last.end = now
            else:
                last.end = idle_start
                intervals.append(
                    Interval(start=idle_start, end=now, kind=IntervalKind.IDLE)
                )
        else:
            last.end = now
            intervals.append(Interval.starting_at(IntervalKind.FOCUS, now))

        dropped = [interval for interval in intervals if interval.end < interval.start]
        if dropped:
            logger.warning("Dropping %d negative-duration intervals.", len(dropped))
            intervals[:] = [
                interval for interval in intervals if interval.end >= interval.start
            ]

    def save(self, now: datetime) -> None:
        """Prune expired intervals and persist the log."""
        kept = prune_expired(self.intervals, now, self.settings.retention)
        if len(kept) != len(self.intervals):
            logger.info("Pruned %d expired intervals.", len(self.intervals) - len(kept))
            self.intervals[:] = kept
        self.store.save(self.intervals)
        self.context.last_save = now

    def reset(self, now: datetime) -> None:
        logger.info("Resetting interval log (%d intervals).", len(self.intervals))
        self.intervals.clear()
        self.save(now)

    def snapshot(self) -> tuple[Interval, ...]:
        return tuple(interval.copy() for interval in self.intervals)
