"""
Tests for the system clock

Validates pinning, offsets, reset, and thread-safe state replacement.
"""

import threading
from datetime import datetime, timezone, timedelta

from deposit_core.clock import SystemClock, get_clock


WALL = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)


def fixed_wall():
    return WALL


class TestSystemClock:
    """Test SystemClock operations"""

    def setup_method(self):
        self.clock = SystemClock(wall_clock=fixed_wall)

    def test_now_follows_wall_clock(self):
        assert self.clock.now() == WALL

    def test_real_clock_is_utc_aware(self):
        now = SystemClock().now()
        assert now.tzinfo is not None

    def test_set_absolute_pins_time(self):
        pinned = datetime(2030, 6, 15, tzinfo=timezone.utc)
        self.clock.set_absolute(pinned)
        assert self.clock.now() == pinned
        assert self.clock.state().frozen is True

    def test_naive_instant_is_treated_as_utc(self):
        self.clock.set_absolute(datetime(2030, 6, 15))
        assert self.clock.now() == datetime(2030, 6, 15, tzinfo=timezone.utc)

    def test_advance_adds_offset(self):
        self.clock.advance(3600)
        assert self.clock.now() == WALL + timedelta(hours=1)
        assert self.clock.state().offset_seconds == 3600

    def test_advance_backwards(self):
        self.clock.advance(-86400)
        assert self.clock.now() == WALL - timedelta(days=1)

    def test_advance_moves_pinned_instant(self):
        pinned = datetime(2030, 1, 1, tzinfo=timezone.utc)
        self.clock.set_absolute(pinned)
        self.clock.advance(86400 * 10)
        assert self.clock.now() == pinned + timedelta(days=10)

    def test_advance_while_pinned_keeps_offset(self):
        self.clock.advance(120)
        pinned = datetime(2030, 1, 1, tzinfo=timezone.utc)
        self.clock.set_absolute(pinned)
        self.clock.advance(3600)
        state = self.clock.state()
        assert state.offset_seconds == 120
        assert state.frozen is True
        assert self.clock.now() == pinned + timedelta(hours=1)

    def test_reset_returns_to_real_time(self):
        self.clock.set_absolute(datetime(2030, 1, 1, tzinfo=timezone.utc))
        self.clock.advance(500)
        self.clock.reset()
        state = self.clock.state()
        assert self.clock.now() == WALL
        assert state.offset_seconds == 0
        assert state.frozen is False

    def test_state_to_dict(self):
        self.clock.advance(60)
        data = self.clock.state().to_dict()
        assert data["offset_seconds"] == 60
        assert data["frozen"] is False
        assert data["system_time"] == (WALL + timedelta(seconds=60)).isoformat()

    def test_concurrent_advances_are_not_lost(self):
        def worker():
            for _ in range(100):
                self.clock.advance(1)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert self.clock.state().offset_seconds == 800

    def test_default_clock_is_shared(self):
        assert get_clock() is get_clock()
