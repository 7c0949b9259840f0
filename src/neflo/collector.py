"""Sampling loop that drives the interval tracker once per second."""

from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from enum import Enum
from typing import Callable, Optional

from .config import TrackerSettings
from .idle import IdleDetector
from .models import Interval, IntervalKind
from .tracker import IntervalTracker

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class StopReason(str, Enum):
    REQUESTED = "requested"
    END_TIME = "end_time"
    TIMEOUT = "timeout"


class Command(str, Enum):
    RESET = "reset"
    STOP = "stop"


def _local_occurrence(day: date, clock_time: time) -> datetime:
    return datetime.combine(day, clock_time).astimezone()


@dataclass(slots=True)
class RunWindow:
    """Optional start/end wall-clock bounds and maximum duration for one run."""

    run_start: datetime
    start_at: Optional[datetime] = None
    end_at: Optional[datetime] = None
    timeout: Optional[timedelta] = None

    @classmethod
    def from_settings(cls, settings: TrackerSettings, run_start: datetime) -> "RunWindow":
        """Resolve the clock bounds against the run's local start day.

        ``end_at`` is the first end occurrence after ``run_start``; ``start_at``
        is the last start occurrence before it, so overnight windows span two days.
        """
        launch_day = run_start.astimezone().date()
        end_at = None
        end_day = launch_day
        if settings.end_time is not None:
            end_at = _local_occurrence(end_day, settings.end_time)
            if end_at <= run_start:
                end_day += timedelta(days=1)
                end_at = _local_occurrence(end_day, settings.end_time)
        start_at = None
        if settings.start_time is not None:
            start_day = launch_day
            if end_at is not None:
                start_day = end_day
                if settings.start_time >= settings.end_time:
                    start_day -= timedelta(days=1)
            start_at = _local_occurrence(start_day, settings.start_time)
        return cls(
            run_start=run_start, start_at=start_at, end_at=end_at, timeout=settings.timeout
        )

    def should_track(self, now: datetime) -> bool:
        return self.start_at is None or now >= self.start_at

    def stop_reason(self, now: datetime) -> Optional[StopReason]:
        if self.end_at is not None and now >= self.end_at:
            return StopReason.END_TIME
        if self.timeout is not None and now - self.run_start >= self.timeout:
            return StopReason.TIMEOUT
        return None

    def remaining(self, now: datetime) -> Optional[timedelta]:
        if self.timeout is None:
            return None
        return max(self.timeout - (now - self.run_start), timedelta(0))


@dataclass(slots=True, frozen=True)
class LoopSnapshot:
    """Read-only view published after every loop step."""

    intervals: tuple[Interval, ...]
    run_start: datetime
    state: Optional[IntervalKind]
    state_start: datetime
    waiting: bool
    taken_at: datetime


class TrackingLoop:
    """Samples the idle oracle and feeds the tracker until stopped."""

    def __init__(
        self,
        tracker: IntervalTracker,
        detector: IdleDetector,
        window: Optional[RunWindow] = None,
        clock: Clock = utc_now,
    ) -> None:
        self.tracker = tracker
        self.detector = detector
        self.window = window or RunWindow(run_start=tracker.context.run_start)
        self.clock = clock
        self.stop_reason: Optional[StopReason] = None
        self._commands: "queue.Queue[Command]" = queue.Queue()
        self._started = False
        self._snapshot = self._take_snapshot(tracker.context.run_start)

    @property
    def snapshot(self) -> LoopSnapshot:
        return self._snapshot

    def request_reset(self) -> None:
        self._commands.put(Command.RESET)

    def request_stop(self) -> None:
        self._commands.put(Command.STOP)

    def step(self, now: datetime) -> bool:
        """Run one iteration. Returns ``False`` once the loop should end."""
        while True:
            try:
                command = self._commands.get_nowait()
            except queue.Empty:
                break
            if command is Command.RESET:
                self.tracker.reset(now)
            elif command is Command.STOP:
                self.stop_reason = StopReason.REQUESTED

        if self.stop_reason is None:
            self.stop_reason = self.window.stop_reason(now)
        if self.stop_reason is not None:
            return False

        if self.window.should_track(now):
            self._sample(now)
        self._snapshot = self._take_snapshot(now)
        return True

    def run_until_stopped(self, stop_event: threading.Event) -> StopReason:
        """Run the loop until the provided event is set or the window closes."""
        logger.info("Starting tracker; writing to %s", self.tracker.store.path)
        interval = self.tracker.settings.sample_interval.total_seconds()
        try:
            while not stop_event.is_set():
                if not self.step(self.clock()):
                    break
                # Sleep in an interruptible manner.
                stop_event.wait(interval)
            else:
                self.stop_reason = StopReason.REQUESTED
        finally:
            self._shutdown()
        return self.stop_reason or StopReason.REQUESTED

    def run_forever(self) -> StopReason:
        stop_event = threading.Event()
        try:
            return self.run_until_stopped(stop_event)
        except KeyboardInterrupt:
            logger.info("Tracker interrupted; saving final state.")
            return StopReason.REQUESTED

    def _sample(self, now: datetime) -> None:
        idle_seconds = self.detector.seconds_since_input()
        self.tracker.tick(idle_seconds, now)
        self._started = True

    def _shutdown(self) -> None:
        now = self.clock()
        if self._started:
            self._sample(now)
        self.tracker.save(now)
        self._snapshot = self._take_snapshot(now)
        logger.info(
            "Tracker stopped (%s).",
            self.stop_reason.value if self.stop_reason else StopReason.REQUESTED.value,
        )

    def _take_snapshot(self, now: datetime) -> LoopSnapshot:
        context = self.tracker.context
        return LoopSnapshot(
            intervals=self.tracker.snapshot(),
            run_start=context.run_start,
            state=context.last_kind,
            state_start=context.state_start,
            waiting=not self.window.should_track(now),
            taken_at=now,
        )
