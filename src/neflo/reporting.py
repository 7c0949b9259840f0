"""Simple reporting utilities for CLI output."""

from __future__ import annotations

from datetime import datetime, timedelta
from pathlib import Path
from typing import Optional

import typer

from .stats import DayStats, Stats, calculate_stats
from .storage import IntervalStore

BAR_WIDTH = 40


class ReportPrinter:
    """Render the weekly focus report in the console."""

    def __init__(self, db_path: Path) -> None:
        self.store = IntervalStore(Path(db_path))

    def print_report(self, now: Optional[datetime] = None) -> None:
        stats = calculate_stats(self.store.load(), now=now)
        if not stats.daily:
            typer.echo("No data recorded yet.")
            return

        typer.secho("Neflo Report", bold=True)
        typer.echo("============")

        week_days = {day: s for day, s in stats.daily.items() if day >= stats.week_start}
        max_duration = max(
            (max(s.total_focus, s.total_idle) for s in stats.daily.values()),
            default=timedelta(hours=1),
        )
        for day, day_stats in week_days.items():
            label = f"{day} (Today)" if day == stats.today_date else str(day)
            typer.echo()
            typer.secho(f"Date: {label}", bold=True)
            _print_day(day_stats, max_duration)

        _print_week(stats, week_days)


def _print_day(stats: DayStats, max_duration: timedelta) -> None:
    typer.secho(
        f"  Focus: [{make_bar(stats.total_focus, max_duration)}] "
        f"{format_duration(stats.total_focus.total_seconds())}",
        fg=typer.colors.GREEN,
    )
    typer.secho(
        f"  Idle:  [{make_bar(stats.total_idle, max_duration)}] "
        f"{format_duration(stats.total_idle.total_seconds())}",
        fg=typer.colors.YELLOW,
    )
    typer.echo(f"  Interruptions: {stats.idle_sessions}")
    if stats.focus_sessions:
        average = stats.total_focus / stats.focus_sessions
        typer.echo(f"  Avg Focus Session: {format_duration(average.total_seconds())}")
    if stats.idle_sessions:
        average = stats.total_idle / stats.idle_sessions
        typer.echo(f"  Avg Interruption:  {format_duration(average.total_seconds())}")


def _print_week(stats: Stats, week_days: dict) -> None:
    total_focus = sum((s.total_focus for s in week_days.values()), timedelta(0))
    total_idle = sum((s.total_idle for s in week_days.values()), timedelta(0))
    focus_sessions = sum(s.focus_sessions for s in week_days.values())
    idle_sessions = sum(s.idle_sessions for s in week_days.values())

    typer.echo()
    typer.secho(f"Weekly Summary (Starting Monday {stats.week_start})", bold=True)
    typer.echo("-------------------------------------------")
    week_max = max(total_focus, total_idle)
    typer.secho(
        f"Total Focus: [{make_bar(total_focus, week_max)}] "
        f"{format_duration(total_focus.total_seconds())}",
        fg=typer.colors.GREEN,
    )
    typer.secho(
        f"Total Idle:  [{make_bar(total_idle, week_max)}] "
        f"{format_duration(total_idle.total_seconds())}",
        fg=typer.colors.YELLOW,
    )
    typer.echo(f"Total Interruptions: {idle_sessions}")
    if focus_sessions:
        average = total_focus / focus_sessions
        typer.echo(f"Avg Focus Session:   {format_duration(average.total_seconds())}")
    if idle_sessions:
        average = total_idle / idle_sessions
        typer.echo(f"Avg Interruption:    {format_duration(average.total_seconds())}")


def make_bar(value: timedelta, max_value: timedelta, width: int = BAR_WIDTH) -> str:
    max_seconds = int(max_value.total_seconds())
    if max_seconds <= 0:
        filled = 0
    else:
        filled = min(width, round(int(value.total_seconds()) / max_seconds * width))
    return "█" * filled + "░" * (width - filled)


def format_duration(seconds: float) -> str:
    """Format seconds as ``1d 2h 3m 4s``, omitting zero units."""
    total = int(seconds)
    days, remainder = divmod(total, 86400)
    hours, remainder = divmod(remainder, 3600)
    minutes, secs = divmod(remainder, 60)

    parts = []
    if days:
        parts.append(f"{days}d")
    if hours:
        parts.append(f"{hours}h")
    if minutes:
        parts.append(f"{minutes}m")
    if secs or not parts:
        parts.append(f"{secs}s")
    return " ".join(parts)
