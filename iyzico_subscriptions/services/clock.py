"""Service clock with optional freezing and fast-forwarding.

Responsibilities:
- Provide the current UTC time to the subscription service and expiry sweep
- Optionally freeze time at a fixed instant
- Advance time (days, hours, minutes) so time-based expiry can be exercised
"""

import threading
from datetime import datetime, timedelta, timezone
from typing import Optional

from iyzico_subscriptions.logging_config import get_logger

logger = get_logger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Clock:
    """Thread-safe clock.

    Follows real time unless frozen with a start time; an offset can be
    added on top in either mode.

    Args:
        frozen_at: optional fixed instant to report instead of real time
    """

    def __init__(self, frozen_at: Optional[datetime] = None) -> None:
        self._lock = threading.RLock()
        self._frozen_at = self._ensure_aware(frozen_at) if frozen_at else None
        self._offset = timedelta(0)

    @staticmethod
    def _ensure_aware(value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    @property
    def is_frozen(self) -> bool:
        return self._frozen_at is not None

    def now(self) -> datetime:
        """Current time (UTC, timezone-aware)."""
        with self._lock:
            base = self._frozen_at if self._frozen_at is not None else utc_now()
            return base + self._offset

    def __call__(self) -> datetime:
        return self.now()

    def advance(self, days: int = 0, hours: int = 0, minutes: int = 0) -> dict:
        """Move the clock forward.

        Returns:
            Dictionary with old_time, new_time and advanced_seconds

        Raises:
            ValueError: if any value is negative
        """
        if days < 0 or hours < 0 or minutes < 0:
            raise ValueError("Cannot advance time backwards, negative values are not allowed")

        delta = timedelta(days=days, hours=hours, minutes=minutes)
        with self._lock:
            old_time = self.now()
            self._offset += delta
            new_time = self.now()

        logger.info(
            "clock_advanced",
            old_time=old_time.isoformat(),
            new_time=new_time.isoformat(),
            days=days,
            hours=hours,
            minutes=minutes,
        )
        return {
            "old_time": old_time,
            "new_time": new_time,
            "advanced_seconds": delta.total_seconds(),
        }

    def set_time(self, timestamp: datetime) -> dict:
        """Jump to a specific instant.

        Raises:
            ValueError: If the instant is before the current time
        """
        timestamp = self._ensure_aware(timestamp)
        with self._lock:
            old_time = self.now()
            if timestamp < old_time:
                raise ValueError(
                    f"cannot set time backwards, current: {old_time.isoformat()}, "
                    f"requested: {timestamp.isoformat()}"
                )
            self._offset += timestamp - old_time

        logger.info("clock_set", old_time=old_time.isoformat(), new_time=timestamp.isoformat())
        return {"old_time": old_time, "new_time": timestamp}

    def reset(self) -> None:
        """Drop any offset and unfreeze, back to real time."""
        with self._lock:
            self._frozen_at = None
            self._offset = timedelta(0)
        logger.info("clock_reset")
