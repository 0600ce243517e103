"""Utility functions and helpers for the subscription service."""

from iyzico_subscriptions.utils.billing_period import (
    DAYS_PER_MONTH,
    DAYS_PER_WEEK,
    DAYS_PER_YEAR,
    MAX_PERIOD_DAYS,
    PeriodOutOfRangeError,
    check_period,
    compute_end_date,
    parse_period_count,
    parse_period_unit,
    period_to_days,
    period_to_timedelta,
)

__all__ = [
    # Billing period constants
    "DAYS_PER_WEEK",
    "DAYS_PER_MONTH",
    "DAYS_PER_YEAR",
    "MAX_PERIOD_DAYS",
    "PeriodOutOfRangeError",
    # Billing period parsing
    "parse_period_unit",
    "parse_period_count",
    # Duration math
    "period_to_days",
    "period_to_timedelta",
    "compute_end_date",
    "check_period",
]
