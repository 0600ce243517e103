"""Subscription lifecycle state machine.

Pure functions only: given the current record, an event and the current
time, compute the full replacement record plus the notification the
transition calls for. Persisting the record and sending the notification is
the subscription service's job.

States: FREE, ACTIVE, CANCELED_PENDING_EXPIRY, EXPIRED
- STARTED / RENEWED (any state)        -> ACTIVE, payment_success mail
- CANCELLED (ACTIVE)                   -> CANCELED_PENDING_EXPIRY, no mail
- EXPIRED / PAYMENT_FAILED (any state) -> FREE, subscription_ended mail
- time-based expiry (sweep)            -> same as EXPIRED
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from iyzico_subscriptions.models.events import EventKind, SubscriptionEvent
from iyzico_subscriptions.models.user import (
    DEFAULT_PACKAGE_NAME,
    FREE_PACKAGE_NAME,
    PROVIDER_NAME,
    LastPurchase,
    LifecycleState,
    SubscriptionDetails,
    SubscriptionStatus,
    UserSubscriptionRecord,
    derive_state,
)
from iyzico_subscriptions.utils.billing_period import compute_end_date


_LEGACY_PAID_STATES = {
    SubscriptionStatus.ACTIVE: LifecycleState.ACTIVE,
    SubscriptionStatus.CANCELED: LifecycleState.CANCELED_PENDING_EXPIRY,
}


class InvalidTransitionError(ValueError):
    """Raised when an event cannot be applied to a record at all."""

    pass


@dataclass(frozen=True)
class NotificationIntent:
    """Email a transition asks to send once it has been committed."""

    template: str
    recipient: str
    context: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class TransitionResult:
    """Outcome of applying an event to a record."""

    record: UserSubscriptionRecord
    previous_state: LifecycleState
    new_state: LifecycleState
    changed: bool
    reason: str
    notification: Optional[NotificationIntent] = None


def activate(
        record: UserSubscriptionRecord,
        event: SubscriptionEvent,
        now: datetime,
) -> TransitionResult:
    """STARTED / RENEWED: start a fresh period ending at now + plan duration.

    The end date is always recomputed from ``now``; replaying the same event
    moves the end date, it never stacks periods.
    """
    end_date = compute_end_date(now, event.period_unit, event.period_count)
    reference_code = event.reference_code or record.provider_subscription_ref

    new_record = record.model_copy(
        update={
            "is_active": True,
            "subscription_status": SubscriptionStatus.ACTIVE,
            "package_status": SubscriptionStatus.ACTIVE,
            "package_name": event.plan_name,
            "provider_subscription_ref": reference_code,
            "subscription": SubscriptionDetails(
                package_name=event.plan_name,
                start_date=now,
                end_date=end_date,
                provider=PROVIDER_NAME,
                reference_code=reference_code,
            ),
            "subscription_end_date": end_date,
            "usage_today": 0,
            "api_counter": 0,
            "last_purchase": LastPurchase(
                provider=PROVIDER_NAME,
                package_name=event.plan_name,
                date=now,
                amount=event.paid_amount,
                reference_code=reference_code,
            ),
        },
        deep=True,
    )

    return TransitionResult(
        record=new_record,
        previous_state=derive_state(record),
        new_state=LifecycleState.ACTIVE,
        changed=True,
        reason=event.kind.value,
        notification=NotificationIntent(
            template="payment_success",
            recipient=record.email,
            context={
                "user_name": record.display_name,
                "package_name": event.plan_name,
                "end_date": end_date,
            },
        ),
    )


def cancel(record: UserSubscriptionRecord, reason: str = EventKind.CANCELLED.value) -> TransitionResult:
    """CANCELLED: flip the status fields only; entitlements run to the end date."""
    previous_state = derive_state(record)

    if previous_state != LifecycleState.ACTIVE:
        return TransitionResult(
            record=record,
            previous_state=previous_state,
            new_state=previous_state,
            changed=False,
            reason=reason,
        )

    new_record = record.model_copy(
        update={
            "subscription_status": SubscriptionStatus.CANCELED,
            "package_status": SubscriptionStatus.CANCELED,
        },
        deep=True,
    )
    return TransitionResult(
        record=new_record,
        previous_state=previous_state,
        new_state=LifecycleState.CANCELED_PENDING_EXPIRY,
        changed=True,
        reason=reason,
    )


def expire(record: UserSubscriptionRecord, reason: str) -> TransitionResult:
    """EXPIRED / PAYMENT_FAILED / time-based expiry: drop to the Free plan.

    The plan name for the notification is captured before it is cleared. The
    provider reference is kept for audit. Already-free records are left as is.
    A paid legacy package_status counts as paid even when subscription_status
    already says free.
    """
    previous_state = derive_state(record)
    if previous_state in (LifecycleState.FREE, LifecycleState.EXPIRED):
        previous_state = _LEGACY_PAID_STATES.get(record.package_status, previous_state)

    if previous_state in (LifecycleState.FREE, LifecycleState.EXPIRED) and record.is_consistent():
        return TransitionResult(
            record=record,
            previous_state=previous_state,
            new_state=previous_state,
            changed=False,
            reason=reason,
        )

    previous_package = record.package_name
    if not previous_package or previous_package == FREE_PACKAGE_NAME:
        previous_package = DEFAULT_PACKAGE_NAME

    new_record = record.model_copy(
        update={
            "is_active": False,
            "subscription_status": SubscriptionStatus.FREE,
            "package_status": SubscriptionStatus.FREE,
            "package_name": FREE_PACKAGE_NAME,
            "subscription": None,
            "subscription_end_date": None,
        },
        deep=True,
    )

    notification = None
    # Stale plan fields on a free record are cleared silently
    if previous_state in (LifecycleState.ACTIVE, LifecycleState.CANCELED_PENDING_EXPIRY):
        notification = NotificationIntent(
            template="subscription_ended",
            recipient=record.email,
            context={
                "user_name": record.display_name,
                "package_name": previous_package,
            },
        )

    return TransitionResult(
        record=new_record,
        previous_state=previous_state,
        new_state=derive_state(new_record),
        changed=True,
        reason=reason,
        notification=notification,
    )


def apply_transition(
        record: UserSubscriptionRecord,
        event: SubscriptionEvent,
        now: datetime,
) -> TransitionResult:
    """Apply a canonical event to a record.

    Args:
        record: Current stored record
        event: Normalized event
        now: Event processing time (UTC)

    Returns:
        TransitionResult holding the full replacement record

    Raises:
        InvalidTransitionError: For UNKNOWN events, which callers acknowledge
            without dispatching
    """
    if event.is_activation:
        return activate(record, event, now)
    if event.kind == EventKind.CANCELLED:
        return cancel(record)
    if event.is_termination:
        return expire(record, reason=event.kind.value)
    raise InvalidTransitionError(f"No transition for event kind '{event.kind.value}'")
