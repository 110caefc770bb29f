"""
System Clock Module

Process-wide simulated time. Every accrual and maturity computation reads
"now" through a SystemClock so admin tooling and tests can pin or shift time
deterministically.
"""

import threading
from dataclasses import dataclass
from datetime import datetime, timezone, timedelta
from typing import Callable, Optional

from .logging_config import get_logger, log_action


logger = get_logger("deposit_core.clock")


@dataclass(frozen=True)
class ClockState:
    """Snapshot of the clock for reporting"""
    now: datetime
    offset_seconds: int
    frozen: bool

    def to_dict(self) -> dict:
        return {
            "system_time": self.now.isoformat(),
            "offset_seconds": self.offset_seconds,
            "frozen": self.frozen
        }


@dataclass(frozen=True)
class _ClockValue:
    offset_seconds: int = 0
    frozen_at: Optional[datetime] = None


def _ensure_utc(instant: datetime) -> datetime:
    if instant.tzinfo is None:
        return instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(timezone.utc)


class SystemClock:
    """
    Wall clock plus offset, or a frozen absolute instant.

    The state is a single immutable value replaced under a lock, so readers
    always see either the old or the new state.
    """

    def __init__(self, wall_clock: Optional[Callable[[], datetime]] = None):
        self._wall_clock = wall_clock or (lambda: datetime.now(timezone.utc))
        self._lock = threading.Lock()
        self._value = _ClockValue()

    def _read(self, value: _ClockValue) -> datetime:
        if value.frozen_at is not None:
            return value.frozen_at
        return _ensure_utc(self._wall_clock()) + timedelta(seconds=value.offset_seconds)

    def now(self) -> datetime:
        return self._read(self._value)

    def set_absolute(self, instant: datetime) -> None:
        """Pin the clock at an absolute instant"""
        instant = _ensure_utc(instant)
        with self._lock:
            self._value = _ClockValue(self._value.offset_seconds, instant)
        log_action(logger, "info", "System time pinned",
                   action="set_absolute", resource="clock",
                   extra={"system_time": instant.isoformat()})

    def advance(self, seconds: int) -> None:
        """
        Shift the clock by `seconds` (negative moves backward). A pinned
        clock moves its pinned instant by the same amount and keeps its offset.
        """
        seconds = int(seconds)
        with self._lock:
            value = self._value
            if value.frozen_at is not None:
                self._value = _ClockValue(
                    value.offset_seconds, value.frozen_at + timedelta(seconds=seconds)
                )
            else:
                self._value = _ClockValue(value.offset_seconds + seconds, None)
        log_action(logger, "info", "System time advanced",
                   action="advance", resource="clock",
                   extra={"seconds": seconds})

    def reset(self) -> None:
        """Return to real time"""
        with self._lock:
            self._value = _ClockValue()
        log_action(logger, "info", "System time reset", action="reset", resource="clock")

    def state(self) -> ClockState:
        value = self._value
        return ClockState(
            now=self._read(value),
            offset_seconds=value.offset_seconds,
            frozen=value.frozen_at is not None
        )


# Process-wide default clock
_default_clock = SystemClock()


def get_clock() -> SystemClock:
    """Get the process-wide clock"""
    return _default_clock
