"""Tests for the interval state machine."""

import random
from datetime import datetime, timedelta, timezone

import pytest

from helpers import T0, RecordingStore
from neflo.models import Interval, IntervalKind
from neflo.storage import StorageError
from neflo.tracker import EARLIEST_TIMESTAMP, IntervalTracker, backdate


def seconds(value: float) -> timedelta:
    return timedelta(seconds=value)


def focus_for(tracker: IntervalTracker, start: datetime, total_seconds: int, step: int = 5) -> datetime:
    """Feed focus samples every ``step`` seconds; returns the next sample time."""
    now = start
    for _ in range(total_seconds // step):
        tracker.tick(0.0, now)
        now += seconds(step)
    return now


class TestClassification:
    def test_below_threshold_is_focus(self, tracker):
        assert tracker.classify(299.0) is IntervalKind.FOCUS

    def test_threshold_is_idle(self, tracker):
        assert tracker.classify(300.0) is IntervalKind.IDLE

    def test_negative_idle_is_focus(self, tracker):
        assert tracker.classify(-3.0) is IntervalKind.FOCUS


class TestUpdateLog:
    """Interval bookkeeping for a single sample."""

    def test_initial_sample_creates_zero_length_interval(self, tracker):
        tracker.tick(0.0, T0)

        assert tracker.intervals == [Interval(T0, T0, IntervalKind.FOCUS)]

    def test_initial_idle_sample_is_not_backdated(self, tracker):
        tracker.tick(600.0, T0)

        assert tracker.intervals == [Interval(T0, T0, IntervalKind.IDLE)]

    def test_continuation_only_extends_end(self, tracker):
        t2 = T0 + seconds(5)
        tracker.tick(0.0, T0)
        tracker.tick(1.0, t2)

        assert len(tracker.intervals) == 1
        assert tracker.intervals[0].start == T0
        assert tracker.intervals[0].end == t2

    def test_repeated_continuation_keeps_length(self, tracker):
        end = focus_for(tracker, T0, 120, step=1)

        assert len(tracker.intervals) == 1
        assert tracker.intervals[0].end == end - seconds(1)

    def test_gap_starts_new_interval_for_same_kind(self, tracker):
        t2 = T0 + seconds(60)
        tracker.tick(0.0, T0)
        tracker.tick(0.0, t2)

        assert [i.start for i in tracker.intervals] == [T0, t2]
        assert tracker.intervals[0].end == T0

    def test_gap_starts_new_interval_for_other_kind(self, tracker):
        t2 = T0 + seconds(11)
        tracker.tick(0.0, T0)
        tracker.tick(400.0, t2)

        assert len(tracker.intervals) == 2
        assert tracker.intervals[1] == Interval(t2, t2, IntervalKind.IDLE)
        assert tracker.intervals[0].kind is IntervalKind.FOCUS

    def test_exactly_gap_threshold_extends(self, tracker):
        t2 = T0 + seconds(10)
        tracker.tick(0.0, T0)
        tracker.tick(0.0, t2)

        assert len(tracker.intervals) == 1
        assert tracker.intervals[0].end == t2

    def test_focus_to_idle_collapses_when_idle_since_start(self, tracker):
        now = focus_for(tracker, T0, 300)
        assert now == T0 + seconds(300)

        tracker.tick(300.0, now)

        assert tracker.intervals == [Interval(T0, now, IntervalKind.IDLE)]

    def test_focus_to_idle_collapses_when_idle_precedes_start(self, tracker):
        now = focus_for(tracker, T0, 60)

        tracker.tick(900.0, now)

        assert tracker.intervals == [Interval(T0, now, IntervalKind.IDLE)]

    def test_focus_to_idle_splits_at_backdated_boundary(self, tracker):
        now = focus_for(tracker, T0, 600)
        assert now == T0 + seconds(600)

        tracker.tick(300.0, now)

        assert tracker.intervals == [
            Interval(T0, T0 + seconds(300), IntervalKind.FOCUS),
            Interval(T0 + seconds(300), now, IntervalKind.IDLE),
        ]

    def test_backdating_truncates_fractional_seconds(self, tracker):
        now = focus_for(tracker, T0, 600)

        tracker.tick(300.9, now)

        assert tracker.intervals[0].end == T0 + seconds(300)
        assert tracker.intervals[1].start == T0 + seconds(300)

    def test_idle_to_focus_closes_and_opens(self, tracker):
        t2 = T0 + seconds(5)
        tracker.tick(300.0, T0)
        tracker.tick(0.0, t2)

        assert tracker.intervals == [
            Interval(T0, t2, IntervalKind.IDLE),
            Interval(t2, t2, IntervalKind.FOCUS),
        ]

    def test_idle_to_focus_never_merges_with_earlier_focus(self, tracker):
        now = focus_for(tracker, T0, 600)
        tracker.tick(300.0, now)
        tracker.tick(0.0, now + seconds(1))

        kinds = [interval.kind for interval in tracker.intervals]
        assert kinds == [IntervalKind.FOCUS, IntervalKind.IDLE, IntervalKind.FOCUS]

    def test_negative_duration_intervals_are_dropped(self, tracker):
        broken = Interval(T0 + seconds(20), T0 + seconds(10), IntervalKind.IDLE)
        tracker.intervals.extend([broken, Interval(T0 + seconds(30), T0 + seconds(30), IntervalKind.FOCUS)])

        tracker.tick(0.0, T0 + seconds(35))

        assert broken not in tracker.intervals
        assert len(tracker.intervals) == 1

    def test_huge_idle_value_saturates(self, tracker):
        now = focus_for(tracker, T0, 30)

        tracker.tick(float("inf"), now)

        assert tracker.intervals == [Interval(T0, now, IntervalKind.IDLE)]


class TestBackdate:
    def test_subtracts_whole_seconds(self):
        assert backdate(T0, 12.7) == T0 - seconds(12)

    def test_underflow_saturates(self):
        assert backdate(T0, 1e15) == EARLIEST_TIMESTAMP

    def test_nan_saturates(self):
        assert backdate(T0, float("nan")) == EARLIEST_TIMESTAMP


class TestOrderingProperty:
    @pytest.mark.parametrize("seed", range(10))
    def test_log_stays_sorted_and_non_overlapping(self, tracker, seed):
        rng = random.Random(seed)
        now = T0
        for _ in range(500):
            now += seconds(rng.randint(1, 10))
            if rng.random() < 0.3:
                idle_seconds = float(rng.randint(300, 1200))
            else:
                idle_seconds = float(rng.randint(0, 299))
            tracker.tick(idle_seconds, now)

        intervals = tracker.intervals
        assert all(interval.end >= interval.start for interval in intervals)
        for previous, current in zip(intervals, intervals[1:]):
            assert previous.start <= current.start
            assert previous.end <= current.start


class TestPersistenceTriggers:
    """Saves on transitions and on the periodic timer."""

    def test_first_tick_saves(self, tracker, store):
        tracker.tick(0.0, T0)

        assert len(store.saves) == 1
        assert tracker.context.last_kind is IntervalKind.FOCUS
        assert tracker.context.state_start == T0

    def test_continuation_does_not_save_within_interval(self, tracker, store):
        focus_for(tracker, T0, 30, step=1)

        assert len(store.saves) == 1

    def test_periodic_save_after_thirty_seconds(self, tracker, store):
        focus_for(tracker, T0, 32, step=1)

        assert len(store.saves) == 2
        assert tracker.context.last_save == T0 + seconds(31)

    def test_transition_saves_and_resets_state_start(self, tracker, store):
        tracker.tick(0.0, T0)
        tracker.tick(400.0, T0 + seconds(5))

        assert len(store.saves) == 2
        assert tracker.context.state_start == T0 + seconds(5)
        assert tracker.context.last_kind is IntervalKind.IDLE
        assert store.load()[-1].kind is IntervalKind.IDLE

    def test_storage_errors_propagate(self, tmp_path, settings):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        store = RecordingStore(blocker / "intervals.json")
        tracker = IntervalTracker.open(store, settings, T0)

        with pytest.raises(StorageError):
            tracker.tick(0.0, T0)


class TestRetention:
    def test_save_prunes_intervals_older_than_thirty_days(self, tracker, store):
        now = T0 + timedelta(days=40)
        old = Interval(now - timedelta(days=31, hours=1), now - timedelta(days=31), IntervalKind.FOCUS)
        recent = Interval(now - timedelta(days=29, hours=1), now - timedelta(days=29), IntervalKind.IDLE)
        tracker.intervals.extend([old, recent])

        tracker.save(now)

        assert tracker.intervals == [recent]
        assert store.load() == [recent]


class TestResetAndOpen:
    def test_reset_clears_and_persists(self, tracker, store):
        focus_for(tracker, T0, 20)

        tracker.reset(T0 + seconds(30))

        assert tracker.intervals == []
        assert store.load() == []

    def test_open_loads_existing_log(self, store, settings):
        existing = [Interval(T0, T0 + seconds(60), IntervalKind.FOCUS)]
        store.save(existing)
        now = datetime(2023, 1, 2, tzinfo=timezone.utc)

        tracker = IntervalTracker.open(store, settings, now)

        assert tracker.intervals == existing
        assert tracker.context.run_start == now
        assert tracker.context.last_kind is None

    def test_snapshot_is_detached(self, tracker):
        tracker.tick(0.0, T0)
        snapshot = tracker.snapshot()

        tracker.tick(0.0, T0 + seconds(5))

        assert snapshot[0].end == T0
