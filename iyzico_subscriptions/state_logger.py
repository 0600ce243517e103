"""State change logging for user subscription records.

Tracks transitions with before/after values for debugging and auditing.
"""

from datetime import datetime
from typing import Any, Optional

from iyzico_subscriptions.logging_config import get_logger, mask_email

logger = get_logger(__name__)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def log_subscription_state_change(
    email: str,
    old_state: Any,
    new_state: Any,
    reason: Optional[str] = None,
    **extra_context: Any,
) -> None:
    """Log a lifecycle state change.

    Args:
        email: Account email
        old_state: Previous lifecycle state
        new_state: New lifecycle state
        reason: Reason for state change (event kind, sweep, ...)
        **extra_context: Additional context (record_id, reference_code, etc.)
    """
    logger.info(
        "subscription_state_changed",
        email=mask_email(email),
        old_state=str(getattr(old_state, "value", old_state)),
        new_state=str(getattr(new_state, "value", new_state)),
        reason=reason,
        **extra_context,
    )


def log_entitlement_change(
    email: str,
    old_value: bool,
    new_value: bool,
    reason: Optional[str] = None,
    **extra_context: Any,
) -> None:
    """Log a change of the is_active entitlement flag."""
    logger.info(
        "entitlement_changed",
        email=mask_email(email),
        old_value=old_value,
        new_value=new_value,
        reason=reason,
        **extra_context,
    )


def log_end_date_change(
    email: str,
    old_end_date: Optional[datetime],
    new_end_date: Optional[datetime],
    reason: str,
    **extra_context: Any,
) -> None:
    """Log a subscription end date change.

    Args:
        email: Account email
        old_end_date: Previous end date (None when not subscribed)
        new_end_date: New end date (None when cleared)
        reason: Reason for change (activation, renewal, expiry)
        **extra_context: Additional context
    """
    extension_days = None
    if old_end_date and new_end_date:
        extension_days = (new_end_date - old_end_date).total_seconds() / 86400

    logger.info(
        "end_date_changed",
        email=mask_email(email),
        old_end_date=_iso(old_end_date),
        new_end_date=_iso(new_end_date),
        extension_days=extension_days,
        reason=reason,
        **extra_context,
    )
