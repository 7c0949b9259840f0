"""Command-line interface for neflo."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer

from .config import ConfigError, TrackerSettings, load_config
from .locking import AlreadyRunningError, InstanceLock
from .paths import get_config_path, get_db_path, get_lock_path
from .storage import StorageError

app = typer.Typer(help="Focus and idle time tracker.")

logger = logging.getLogger(__name__)


@app.callback(no_args_is_help=True)
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logs.")) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


def _resolve_settings(
    config_path: Optional[Path],
    idle_minutes: Optional[float],
    start_time: Optional[str],
    end_time: Optional[str],
    timeout: Optional[str],
) -> TrackerSettings:
    try:
        config = load_config(config_path or get_config_path())
        return TrackerSettings.from_options(
            idle_minutes=idle_minutes if idle_minutes is not None else config.default_threshold_mins,
            start_time=start_time or config.start_time,
            end_time=end_time or config.end_time,
            timeout=timeout or config.timeout,
        )
    except ConfigError as exc:
        raise typer.BadParameter(str(exc)) from exc


@app.command()
def start(
    db_path: Optional[Path] = typer.Option(
        None,
        "--db",
        path_type=Path,
        help="Location of the interval log.",
    ),
    config_path: Optional[Path] = typer.Option(
        None,
        "--config",
        path_type=Path,
        help="Location of the JSON config file.",
    ),
    idle_minutes: Optional[float] = typer.Option(
        None,
        "--idle-threshold",
        "-t",
        help="Minutes of inactivity before counting time as idle.",
    ),
    start_time: Optional[str] = typer.Option(
        None, "--start-time", help="Local time (HH:MM) to begin tracking."
    ),
    end_time: Optional[str] = typer.Option(
        None, "--end-time", help="Local time (HH:MM) to stop tracking."
    ),
    timeout: Optional[str] = typer.Option(
        None, "--timeout", help="Maximum run duration, e.g. 8h or 30m."
    ),
) -> None:
    """Track focus and idle time until interrupted."""
    from .collector import RunWindow, TrackingLoop, utc_now
    from .idle import get_idle_detector
    from .reporting import ReportPrinter
    from .storage import IntervalStore
    from .tracker import IntervalTracker

    settings = _resolve_settings(config_path, idle_minutes, start_time, end_time, timeout)
    db_path = db_path or get_db_path()
    try:
        with InstanceLock(get_lock_path(db_path)):
            now = utc_now()
            tracker = IntervalTracker.open(IntervalStore(db_path), settings, now)
            loop = TrackingLoop(
                tracker, get_idle_detector(), RunWindow.from_settings(settings, now)
            )
            reason = loop.run_forever()
    except AlreadyRunningError as exc:
        typer.secho(str(exc), fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from exc
    except StorageError as exc:
        typer.secho(f"Storage error: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from exc

    typer.echo(f"\nSession ended ({reason.value}).")
    ReportPrinter(db_path=db_path).print_report()


@app.command()
def report(
    db_path: Optional[Path] = typer.Option(
        None,
        "--db",
        path_type=Path,
        help="Location of the interval log.",
    ),
) -> None:
    """Print the focus report for the current week."""
    from .reporting import ReportPrinter

    try:
        ReportPrinter(db_path=db_path or get_db_path()).print_report()
    except StorageError as exc:
        typer.secho(f"Storage error: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from exc


@app.command()
def reset(
    db_path: Optional[Path] = typer.Option(
        None,
        "--db",
        path_type=Path,
        help="Location of the interval log.",
    ),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt."),
) -> None:
    """Delete every recorded interval."""
    from .storage import IntervalStore

    db_path = db_path or get_db_path()
    if not yes:
        typer.confirm("Delete all recorded intervals?", abort=True)
    try:
        with InstanceLock(get_lock_path(db_path)):
            IntervalStore(db_path).save([])
    except AlreadyRunningError as exc:
        typer.secho(str(exc), fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from exc
    except StorageError as exc:
        typer.secho(f"Storage error: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from exc
    logger.info("Cleared interval log %s", db_path)
    typer.echo("Interval log cleared.")


@app.command()
def web(
    host: str = typer.Option("127.0.0.1", "--host", help="Interface to bind the dashboard."),
    port: int = typer.Option(
        8765, "--port", min=1, max=65535, help="TCP port for the dashboard."
    ),
    db_path: Optional[Path] = typer.Option(
        None, "--db", path_type=Path, help="Location of the interval log."
    ),
    config_path: Optional[Path] = typer.Option(
        None, "--config", path_type=Path, help="Location of the JSON config file."
    ),
    idle_minutes: Optional[float] = typer.Option(
        None,
        "--idle-threshold",
        "-t",
        help="Minutes of inactivity before counting time as idle.",
    ),
    open_browser: bool = typer.Option(
        True,
        "--open-browser/--no-open-browser",
        help="Automatically launch the dashboard in your default browser.",
    ),
) -> None:
    """Start the local dashboard with the tracker running in the background."""
    from .webapp import run_dashboard

    settings = _resolve_settings(config_path, idle_minutes, None, None, None)
    run_dashboard(
        host=host,
        port=port,
        db_path=db_path or get_db_path(),
        settings=settings,
        open_browser=open_browser,
    )
