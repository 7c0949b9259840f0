"""JSON persistence for the interval log."""

from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from .models import Interval, IntervalKind

logger = logging.getLogger(__name__)


class StorageError(OSError):
    """Raised when the interval log cannot be read or written."""


class IntervalRecord(BaseModel):
    start: datetime
    end: datetime
    kind: IntervalKind

    model_config = ConfigDict(extra="forbid")

    @field_validator("start", "end")
    @classmethod
    def _as_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class IntervalDocument(BaseModel):
    intervals: list[IntervalRecord] = []


class IntervalStore:
    """Loads and atomically saves the interval log."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    @property
    def temp_path(self) -> Path:
        return self.path.with_suffix(self.path.suffix + ".tmp")

    def load(self) -> list[Interval]:
        if not self.path.exists():
            logger.debug("No interval log at %s; starting fresh.", self.path)
            return []
        try:
            payload = self.path.read_text(encoding="utf-8")
            document = IntervalDocument.model_validate_json(payload)
        except OSError as exc:
            raise StorageError(f"Unable to read {self.path}: {exc}") from exc
        except ValidationError as exc:
            raise StorageError(f"Corrupt interval log {self.path}: {exc}") from exc
        return [
            Interval(start=record.start, end=record.end, kind=record.kind)
            for record in document.intervals
        ]

    def save(self, intervals: Iterable[Interval]) -> None:
        document = IntervalDocument(
            intervals=[
                IntervalRecord(start=item.start, end=item.end, kind=item.kind)
                for item in intervals
            ]
        )
        data = document.model_dump_json(indent=2)
        tmp_path = self.temp_path
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as handle:
                handle.write(data)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_path, self.path)
        except OSError as exc:
            raise StorageError(f"Unable to write {self.path}: {exc}") from exc
        logger.debug("Saved %d intervals to %s", len(document.intervals), self.path)
