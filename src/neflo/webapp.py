"""FastAPI application that exposes a local dashboard API for the tracker."""

from __future__ import annotations

import logging
import threading
import webbrowser
from contextlib import asynccontextmanager
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Any, AsyncIterator, Dict, Optional

import uvicorn
from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware

from .collector import LoopSnapshot, RunWindow, TrackingLoop, utc_now
from .config import TrackerSettings
from .idle import IdleDetector, get_idle_detector
from .locking import AlreadyRunningError, InstanceLock
from .models import Interval
from .paths import get_db_path, get_lock_path
from .stats import SummaryStats, calculate_stats, local_date
from .storage import IntervalStore
from .tracker import IntervalTracker

logger = logging.getLogger(__name__)


class CollectorRunner:
    """Manage the tracking loop in a background thread."""

    def __init__(
        self,
        db_path: Path,
        settings: TrackerSettings,
        detector: Optional[IdleDetector] = None,
    ) -> None:
        self._db_path = Path(db_path)
        self._settings = settings
        self._detector = detector
        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._stop_event: Optional[threading.Event] = None
        self._loop: Optional[TrackingLoop] = None

    def start(self) -> None:
        with self._lock:
            if self._thread and self._thread.is_alive():
                return
            instance_lock = InstanceLock(get_lock_path(self._db_path))
            try:
                instance_lock.acquire()
            except AlreadyRunningError:
                logger.exception("Tracker not started.")
                return
            try:
                now = utc_now()
                tracker = IntervalTracker.open(
                    IntervalStore(self._db_path), self._settings, now
                )
            except Exception:
                instance_lock.release()
                raise
            loop = TrackingLoop(
                tracker,
                self._detector or get_idle_detector(),
                RunWindow.from_settings(self._settings, now),
            )
            stop_event = threading.Event()
            thread = threading.Thread(
                target=self._run_loop,
                args=(loop, stop_event, instance_lock),
                daemon=True,
            )
            self._thread = thread
            self._stop_event = stop_event
            self._loop = loop
            thread.start()
            logger.info("Tracker background thread started.")

    def stop(self) -> None:
        thread: Optional[threading.Thread] = None
        with self._lock:
            if not self._thread or not self._thread.is_alive() or not self._stop_event:
                return
            self._stop_event.set()
            thread = self._thread
            self._thread = None
            self._stop_event = None
        if thread:
            thread.join(timeout=10)
            logger.info("Tracker background thread stopped.")

    def is_running(self) -> bool:
        with self._lock:
            return bool(self._thread and self._thread.is_alive())

    @property
    def loop(self) -> Optional[TrackingLoop]:
        return self._loop

    @staticmethod
    def _run_loop(
        loop: TrackingLoop, stop_event: threading.Event, instance_lock: InstanceLock
    ) -> None:
        try:
            loop.run_until_stopped(stop_event)
        except Exception:
            logger.exception("Tracker loop failed.")
        finally:
            instance_lock.release()


def create_app(
    *,
    db_path: Optional[Path] = None,
    settings: Optional[TrackerSettings] = None,
    detector: Optional[IdleDetector] = None,
) -> FastAPI:
    """Instantiate the FastAPI application."""
    resolved_db_path = Path(db_path or get_db_path())
    resolved_settings = settings or TrackerSettings()
    runner = CollectorRunner(resolved_db_path, resolved_settings, detector)
    store = IntervalStore(resolved_db_path)

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        runner.start()
        try:
            yield
        finally:
            runner.stop()

    app = FastAPI(title="Neflo", version="0.3.0", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.db_path = resolved_db_path
    app.state.collector_runner = runner

    def current_snapshot() -> Optional[LoopSnapshot]:
        loop = runner.loop
        if loop is not None and runner.is_running():
            return loop.snapshot
        return None

    def current_intervals() -> tuple[Interval, ...]:
        snapshot = current_snapshot()
        if snapshot is not None:
            return snapshot.intervals
        try:
            return tuple(store.load())
        except OSError as exc:
            raise HTTPException(status_code=500, detail=str(exc)) from exc

    @app.get("/api/status")
    def status(request: Request) -> Dict[str, Any]:
        snapshot = current_snapshot()
        now = utc_now()
        payload: Dict[str, Any] = {
            "collector_running": request.app.state.collector_runner.is_running(),
            "database_path": str(request.app.state.db_path),
            "idle_minutes": resolved_settings.idle_threshold.total_seconds() / 60.0,
            "state": None,
            "state_seconds": None,
            "run_start": None,
            "waiting": False,
            "remaining_seconds": None,
        }
        if snapshot is not None:
            payload.update(
                state=snapshot.state.value if snapshot.state else None,
                state_seconds=(now - snapshot.state_start).total_seconds(),
                run_start=snapshot.run_start.isoformat(),
                waiting=snapshot.waiting,
            )
            remaining = runner.loop.window.remaining(now) if runner.loop else None
            if remaining is not None:
                payload["remaining_seconds"] = remaining.total_seconds()
        return payload

    @app.get("/api/stats")
    def stats() -> Dict[str, Any]:
        snapshot = current_snapshot()
        result = calculate_stats(
            current_intervals(),
            run_start=snapshot.run_start if snapshot else None,
        )
        return {
            "today": result.today_date.isoformat(),
            "week_start": result.week_start.isoformat(),
            "session": _summary_payload(result.session),
            "today_summary": _summary_payload(result.today),
            "week_summary": _summary_payload(result.week),
            "daily": [
                {
                    "date": day.isoformat(),
                    "focus_seconds": day_stats.total_focus.total_seconds(),
                    "idle_seconds": day_stats.total_idle.total_seconds(),
                    "focus_sessions": day_stats.focus_sessions,
                    "idle_sessions": day_stats.idle_sessions,
                }
                for day, day_stats in result.daily.items()
            ],
        }

    @app.get("/api/intervals")
    def intervals(
        date: Optional[str] = Query(
            default=None,
            description="Target date in YYYY-MM-DD format.",
        ),
    ) -> Dict[str, Any]:
        target_day = _parse_date(date)
        return {
            "date": target_day.isoformat(),
            "intervals": [
                {
                    "start": item.start.isoformat(),
                    "end": item.end.isoformat(),
                    "kind": item.kind.value,
                    "duration_seconds": item.duration_seconds,
                }
                for item in current_intervals()
                if local_date(item.start) == target_day
            ],
        }

    @app.post("/api/reset")
    def reset() -> Dict[str, Any]:
        loop = runner.loop
        if loop is not None and runner.is_running():
            loop.request_reset()
            return {"status": "scheduled"}
        try:
            with InstanceLock(get_lock_path(resolved_db_path)):
                store.save([])
        except AlreadyRunningError as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc
        except OSError as exc:
            raise HTTPException(status_code=500, detail=str(exc)) from exc
        return {"status": "cleared"}

    @app.post("/api/stop")
    def stop() -> Dict[str, Any]:
        loop = runner.loop
        if loop is None or not runner.is_running():
            raise HTTPException(status_code=409, detail="Tracker is not running")
        loop.request_stop()
        return {"status": "stopping"}

    return app


def _parse_date(value: Optional[str]) -> date:
    if not value:
        return datetime.now().date()
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Invalid date format") from exc


def _seconds(value: Optional[timedelta]) -> Optional[float]:
    return value.total_seconds() if value is not None else None


def _summary_payload(summary: SummaryStats) -> Dict[str, Any]:
    return {
        "focus_seconds": summary.total_focus.total_seconds(),
        "idle_seconds": summary.total_idle.total_seconds(),
        "focus_count": summary.focus_count,
        "idle_count": summary.idle_count,
        "max_focus_seconds": _seconds(summary.max_focus),
        "min_focus_seconds": _seconds(summary.min_focus),
        "max_idle_seconds": _seconds(summary.max_idle),
        "min_idle_seconds": _seconds(summary.min_idle),
    }


def run_dashboard(
    *,
    host: str = "127.0.0.1",
    port: int = 8765,
    db_path: Optional[Path] = None,
    settings: Optional[TrackerSettings] = None,
    open_browser: bool = True,
    log_level: str = "info",
) -> None:
    """Serve the dashboard API with the tracker running in the background."""
    app = create_app(db_path=db_path, settings=settings)
    if open_browser:
        threading.Timer(1.0, _open_docs, args=(f"http://{host}:{port}/docs",)).start()
    logging.getLogger("uvicorn.error").setLevel(log_level.upper())
    uvicorn.run(app, host=host, port=port, log_level=log_level)


def _open_docs(url: str) -> None:
    try:
        webbrowser.open(url)
    except webbrowser.Error:
        logger.exception("Failed to launch browser for %s", url)
