"""Billing period utilities.

Converts the payment interval reported by iyzico pricing plans
(WEEKLY / MONTHLY / YEARLY + interval count) into subscription durations.
"""

from datetime import datetime, timedelta
from typing import Any, Optional

from iyzico_subscriptions.models.events import PeriodUnit

# Days in each billing unit
DAYS_PER_WEEK = 7
DAYS_PER_MONTH = 30  # Standard approximation for billing
DAYS_PER_YEAR = 365  # Standard approximation for billing

# Longest billing period accepted; keeps end dates well inside datetime's range
MAX_PERIOD_DAYS = 100 * DAYS_PER_YEAR

_UNIT_DAYS = {
    PeriodUnit.WEEKLY: DAYS_PER_WEEK,
    PeriodUnit.MONTHLY: DAYS_PER_MONTH,
    PeriodUnit.YEARLY: DAYS_PER_YEAR,
}


class PeriodOutOfRangeError(ValueError):
    """Raised when a billing period is too long to represent."""

    pass


def parse_period_unit(value: Any) -> PeriodUnit:
    """Parse a payment interval name into a PeriodUnit.

    Unrecognised or missing values fall back to MONTHLY, which is what
    iyzico plans default to.

    Examples:
        >>> parse_period_unit("yearly")
        <PeriodUnit.YEARLY: 'YEARLY'>

        >>> parse_period_unit(None)
        <PeriodUnit.MONTHLY: 'MONTHLY'>
    """
    if isinstance(value, PeriodUnit):
        return value
    if not value or not isinstance(value, str):
        return PeriodUnit.MONTHLY
    try:
        return PeriodUnit(value.strip().upper())
    except ValueError:
        return PeriodUnit.MONTHLY


def parse_period_count(value: Any) -> int:
    """Parse a payment interval count; anything absent or non-positive is 1.

    Raises:
        PeriodOutOfRangeError: For infinite counts
    """
    if isinstance(value, bool):
        return 1
    try:
        count = int(value)
    except (TypeError, ValueError):
        return 1
    except OverflowError:
        raise PeriodOutOfRangeError(f"Payment interval count {value!r} is out of range")
    return count if count > 0 else 1


def period_to_days(unit: PeriodUnit, count: Optional[int] = 1) -> int:
    """Number of days covered by ``count`` billing units.

    Args:
        unit: Billing unit
        count: Number of units (values below 1 are treated as 1)

    Returns:
        Duration in days

    Examples:
        >>> period_to_days(PeriodUnit.WEEKLY, 2)
        14

        >>> period_to_days(PeriodUnit.YEARLY)
        365
    """
    return _UNIT_DAYS[parse_period_unit(unit)] * parse_period_count(count)


def period_to_timedelta(unit: PeriodUnit, count: Optional[int] = 1) -> timedelta:
    """Convert a billing unit and count to a timedelta."""
    return timedelta(days=period_to_days(unit, count))


def compute_end_date(start: datetime, unit: PeriodUnit, count: Optional[int] = 1) -> datetime:
    """Compute the end of a billing period starting at ``start``.

    Always relative to ``start``; never added on top of a previous end date.
    """
    return start + period_to_timedelta(unit, count)


def check_period(unit: PeriodUnit, count: int) -> None:
    """Reject billing periods longer than MAX_PERIOD_DAYS.

    Raises:
        PeriodOutOfRangeError: If the period is too long
    """
    days = period_to_days(unit, count)
    if days > MAX_PERIOD_DAYS:
        raise PeriodOutOfRangeError(
            f"Billing period of {count} x {parse_period_unit(unit).value} exceeds {MAX_PERIOD_DAYS} days"
        )
