"""Exclusive per-log instance lock."""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path
from typing import IO, Optional

logger = logging.getLogger(__name__)


class AlreadyRunningError(RuntimeError):
    """Another process holds the lock for this interval log."""


class InstanceLock:
    """Non-blocking OS file lock held for a whole tracking session.

    Usage::

        with InstanceLock(get_lock_path(db_path)):
            ...
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._file: Optional[IO[str]] = None

    @property
    def held(self) -> bool:
        return self._file is not None

    def acquire(self) -> None:
        if self._file is not None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        handle = open(self.path, "a+", encoding="utf-8")
        try:
            _lock(handle)
        except OSError as exc:
            handle.close()
            raise AlreadyRunningError(
                f"Another neflo instance is already tracking ({self.path}). "
                "Close it before starting a new one."
            ) from exc
        handle.seek(0)
        handle.truncate()
        handle.write(str(os.getpid()))
        handle.flush()
        self._file = handle
        logger.debug("Acquired instance lock %s", self.path)

    def release(self) -> None:
        if self._file is None:
            return
        try:
            _unlock(self._file)
        finally:
            self._file.close()
            self._file = None
            logger.debug("Released instance lock %s", self.path)

    def __enter__(self) -> "InstanceLock":
        self.acquire()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.release()


if sys.platform.startswith("win"):
    import msvcrt

    def _lock(handle: IO[str]) -> None:
        handle.seek(0)
        msvcrt.locking(handle.fileno(), msvcrt.LK_NBLCK, 1)

    def _unlock(handle: IO[str]) -> None:
        handle.seek(0)
        msvcrt.locking(handle.fileno(), msvcrt.LK_UNLCK, 1)

else:
    import fcntl

    def _lock(handle: IO[str]) -> None:
        fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)

    def _unlock(handle: IO[str]) -> None:
        fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
