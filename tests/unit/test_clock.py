"""Tests for the service clock."""

from datetime import datetime, timedelta, timezone

import pytest

from iyzico_subscriptions.services.clock import Clock, utc_now

T0 = datetime(2026, 2, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock():
    """Clock frozen at a known instant."""
    return Clock(frozen_at=T0)


class TestClock:
    """Test frozen and real-time behavior."""

    def test_frozen_time(self, clock):
        assert clock.is_frozen
        assert clock.now() == T0
        assert clock() == T0

    def test_real_time_is_aware(self):
        clock = Clock()

        assert not clock.is_frozen
        assert clock.now().tzinfo is not None
        assert abs(clock.now() - utc_now()) < timedelta(seconds=5)

    def test_naive_start_treated_as_utc(self):
        clock = Clock(frozen_at=datetime(2026, 2, 1, 12, 0))

        assert clock.now() == T0


class TestAdvance:
    """Test moving time forward."""

    def test_advance_days(self, clock):
        result = clock.advance(days=31)

        assert clock.now() == T0 + timedelta(days=31)
        assert result["old_time"] == T0
        assert result["advanced_seconds"] == 31 * 86400

    def test_advance_is_cumulative(self, clock):
        clock.advance(hours=1)
        clock.advance(minutes=30)

        assert clock.now() == T0 + timedelta(hours=1, minutes=30)

    def test_negative_rejected(self, clock):
        with pytest.raises(ValueError, match="backwards"):
            clock.advance(days=-1)

    def test_set_time(self, clock):
        target = T0 + timedelta(days=3)

        clock.set_time(target)

        assert clock.now() == target

    def test_set_time_backwards_rejected(self, clock):
        with pytest.raises(ValueError, match="backwards"):
            clock.set_time(T0 - timedelta(seconds=1))

    def test_reset(self, clock):
        clock.advance(days=400)
        clock.reset()

        assert not clock.is_frozen
        assert abs(clock.now() - utc_now()) < timedelta(seconds=5)
