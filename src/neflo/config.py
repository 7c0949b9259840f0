"""Configuration models and helpers for the focus tracker."""

from __future__ import annotations

import json
import logging
import math
import re
from dataclasses import dataclass
from datetime import time, timedelta
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

logger = logging.getLogger(__name__)

_DURATION_PATTERN = re.compile(
    r"^\s*(?:(?P<hours>\d+)\s*h)?\s*(?:(?P<minutes>\d+)\s*m)?\s*(?:(?P<seconds>\d+)\s*s)?\s*$",
    re.IGNORECASE,
)


class ConfigError(ValueError):
    """Raised for malformed thresholds, time windows or config files."""


def parse_clock_time(value: str) -> time:
    """Parse a local wall-clock time in ``HH:MM`` form."""
    try:
        hours_text, minutes_text = value.strip().split(":")
        return time(hour=int(hours_text), minute=int(minutes_text))
    except ValueError as exc:
        raise ConfigError(f"Invalid time {value!r}; expected HH:MM.") from exc


def parse_duration(value: str) -> timedelta:
    """Parse durations such as ``8h``, ``30m``, ``1h30m`` or ``45s``."""
    match = _DURATION_PATTERN.match(value or "")
    if not match or not any(match.groupdict().values()):
        raise ConfigError(f"Invalid duration {value!r}; expected e.g. 8h, 30m or 1h30m.")
    parts = {name: int(amount) for name, amount in match.groupdict().items() if amount}
    duration = timedelta(**parts)
    if duration <= timedelta(0):
        raise ConfigError(f"Duration {value!r} must be positive.")
    return duration


@dataclass(slots=True)
class TrackerSettings:
    """Runtime configuration for the tracker and its sampling loop."""

    idle_threshold: timedelta = timedelta(minutes=5)
    sample_interval: timedelta = timedelta(seconds=1)
    gap_threshold: timedelta = timedelta(seconds=10)
    save_interval: timedelta = timedelta(seconds=30)
    retention: timedelta = timedelta(days=30)
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    timeout: Optional[timedelta] = None

    @classmethod
    def from_options(
        cls,
        idle_minutes: float,
        start_time: str | None = None,
        end_time: str | None = None,
        timeout: str | None = None,
    ) -> "TrackerSettings":
        if not math.isfinite(idle_minutes) or idle_minutes <= 0:
            raise ConfigError("Idle threshold must be a finite number of minutes above zero.")
        try:
            idle_threshold = timedelta(minutes=idle_minutes)
        except OverflowError as exc:
            raise ConfigError(f"Idle threshold {idle_minutes} minutes is too large.") from exc
        return cls(
            idle_threshold=idle_threshold,
            start_time=parse_clock_time(start_time) if start_time else None,
            end_time=parse_clock_time(end_time) if end_time else None,
            timeout=parse_duration(timeout) if timeout else None,
        )


class NefloConfig(BaseModel):
    """User configuration stored as JSON in the config directory."""

    default_threshold_mins: float = 5
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    timeout: Optional[str] = None

    model_config = ConfigDict(extra="forbid")

    @field_validator("default_threshold_mins")
    @classmethod
    def _positive_threshold(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("default_threshold_mins must be greater than zero")
        return value

    @field_validator("start_time", "end_time")
    @classmethod
    def _clock_time(cls, value: Optional[str]) -> Optional[str]:
        if value is not None:
            parse_clock_time(value)
        return value

    @field_validator("timeout")
    @classmethod
    def _duration(cls, value: Optional[str]) -> Optional[str]:
        if value is not None:
            parse_duration(value)
        return value


def load_config(path: Path) -> NefloConfig:
    """Load the config file, writing the defaults on first use."""
    path = Path(path)
    if not path.exists():
        config = NefloConfig()
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(config.model_dump_json(indent=2), encoding="utf-8")
        logger.info("Wrote default configuration to %s", path)
        return config

    try:
        return NefloConfig.model_validate_json(path.read_text(encoding="utf-8"))
    except (ValidationError, json.JSONDecodeError) as exc:
        raise ConfigError(f"Invalid configuration in {path}: {exc}") from exc
