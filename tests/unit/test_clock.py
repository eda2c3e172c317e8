"""Test WallClock and FixedClock."""

from datetime import datetime, timedelta, timezone

import pytest

from conftest import T0
from tokenops.core.clock import FixedClock, WallClock


class TestWallClock:
    def test_now_returns_utc(self):
        now = WallClock().now()
        assert now.tzinfo == timezone.utc

    def test_now_is_recent(self):
        diff = abs((datetime.now(timezone.utc) - WallClock().now()).total_seconds())
        assert diff < 1.0


class TestFixedClock:
    def test_default_start(self):
        assert FixedClock().now() == datetime(2025, 1, 1, tzinfo=timezone.utc)

    def test_fixture_start(self, fixed_clock):
        assert fixed_clock.now() == T0

    def test_does_not_move_by_itself(self, fixed_clock):
        assert fixed_clock.now() == fixed_clock.now()

    def test_set_time_advances(self, fixed_clock):
        later = T0 + timedelta(days=1)
        fixed_clock.set_time(later)
        assert fixed_clock.now() == later

    def test_set_time_cannot_go_backwards(self, fixed_clock):
        with pytest.raises(ValueError, match="cannot go backwards"):
            fixed_clock.set_time(T0 - timedelta(seconds=1))

    def test_advance(self, fixed_clock):
        fixed_clock.advance(10)
        fixed_clock.advance(0.5)
        assert (fixed_clock.now() - T0).total_seconds() == pytest.approx(10.5)
