"""Tests for the per-log instance lock."""

import pytest

from neflo.locking import AlreadyRunningError, InstanceLock
from neflo.paths import get_lock_path


def test_second_lock_is_rejected(tmp_path):
    path = get_lock_path(tmp_path / "intervals.json")
    with InstanceLock(path) as first:
        assert first.held
        with pytest.raises(AlreadyRunningError):
            InstanceLock(path).acquire()


def test_lock_can_be_reacquired_after_release(tmp_path):
    path = tmp_path / "intervals.lock"
    lock = InstanceLock(path)
    lock.acquire()
    lock.release()

    with InstanceLock(path) as again:
        assert again.held
    assert not again.held


def test_lock_path_sits_next_to_log(tmp_path):
    assert get_lock_path(tmp_path / "intervals.json") == tmp_path / "intervals.lock"
