"""Shared fixtures for the neflo test suite."""

from __future__ import annotations

from datetime import timedelta

import pytest

from helpers import T0, RecordingStore
from neflo.config import TrackerSettings
from neflo.tracker import IntervalTracker, SessionContext


@pytest.fixture
def settings() -> TrackerSettings:
    return TrackerSettings(idle_threshold=timedelta(minutes=5))


@pytest.fixture
def store(tmp_path) -> RecordingStore:
    return RecordingStore(tmp_path / "intervals.json")


@pytest.fixture
def tracker(store, settings) -> IntervalTracker:
    context = SessionContext.begin(settings.idle_threshold, T0)
    return IntervalTracker(store, settings, context)
