"""Platform probes reporting seconds since the last user input."""

from __future__ import annotations

import ctypes
import ctypes.util
import logging
import sys
from typing import Protocol

logger = logging.getLogger(__name__)

# kCGEventSourceStateCombinedSessionState / kCGAnyInputEventType
_CG_COMBINED_SESSION_STATE = 0
_CG_ANY_INPUT_EVENT_TYPE = 0xFFFFFFFF


class IdleDetector(Protocol):
    def seconds_since_input(self) -> float: ...


class WindowsIdleDetector:
    """Detects idle time using Win32 APIs."""

    def __init__(self) -> None:
        from ctypes import wintypes

        class LASTINPUTINFO(ctypes.Structure):
            _fields_ = [("cbSize", wintypes.UINT), ("dwTime", wintypes.DWORD)]

        self._info_type = LASTINPUTINFO
        self._user32 = ctypes.windll.user32  # type: ignore[attr-defined]
        self._kernel32 = ctypes.windll.kernel32  # type: ignore[attr-defined]
        self._kernel32.GetTickCount64.restype = ctypes.c_uint64

    def seconds_since_input(self) -> float:
        last_input = self._info_type()
        last_input.cbSize = ctypes.sizeof(last_input)
        try:
            if not self._user32.GetLastInputInfo(ctypes.byref(last_input)):
                raise ctypes.WinError()  # type: ignore[attr-defined]
        except OSError:  # pragma: no cover - defensive log path
            logger.exception("Failed to query idle time; assuming active.")
            return 0.0
        # dwTime is a 32-bit tick count and wraps every ~49.7 days.
        tick = self._kernel32.GetTickCount64() & 0xFFFFFFFF
        elapsed_ms = (tick - last_input.dwTime) & 0xFFFFFFFF
        return elapsed_ms / 1000.0


class MacIdleDetector:
    """Reads the combined-session idle time from CoreGraphics."""

    def __init__(self) -> None:
        library = ctypes.util.find_library("CoreGraphics") or (
            "/System/Library/Frameworks/CoreGraphics.framework/CoreGraphics"
        )
        self._cg = ctypes.cdll.LoadLibrary(library)
        self._cg.CGEventSourceSecondsSinceLastEventType.restype = ctypes.c_double
        self._cg.CGEventSourceSecondsSinceLastEventType.argtypes = [
            ctypes.c_int32,
            ctypes.c_uint32,
        ]

    def seconds_since_input(self) -> float:
        return float(
            self._cg.CGEventSourceSecondsSinceLastEventType(
                _CG_COMBINED_SESSION_STATE, _CG_ANY_INPUT_EVENT_TYPE
            )
        )


class NullIdleDetector:
    """Fallback for platforms without a probe; always reports activity."""

    def seconds_since_input(self) -> float:
        return 0.0


def get_idle_detector(platform: str | None = None) -> IdleDetector:
    platform = platform or sys.platform
    try:
        if platform.startswith("win"):
            return WindowsIdleDetector()
        if platform == "darwin":
            return MacIdleDetector()
    except (OSError, AttributeError):
        logger.exception("Idle probe unavailable on %s; using null detector.", platform)
        return NullIdleDetector()
    logger.warning("No idle probe for %s; all time will count as focus.", platform)
    return NullIdleDetector()
