"""Normalizes raw iyzico webhook payloads into SubscriptionEvent.

iyzico has shipped several payload shapes over time, so each concept is
looked up through an ordered list of candidate fields; the first non-empty
value wins.

Field precedence:
- event type:      eventType, iyziEventType
- customer email:  customerEmail, customer.email
- reference code:  subscriptionReferenceCode, referenceCode
- plan name:       pricingPlanName, pricingPlan.name (default "Premium")
- period unit:     pricingPlan.paymentInterval, paymentInterval (default MONTHLY)
- period count:    pricingPlan.paymentIntervalCount, paymentIntervalCount (default 1)
- paid amount:     paidPrice (default 0)
"""

from collections.abc import Mapping
from typing import Any, Optional

from iyzico_subscriptions.models.events import PROVIDER_EVENT_KINDS, EventKind, PeriodUnit, SubscriptionEvent
from iyzico_subscriptions.models.user import DEFAULT_PACKAGE_NAME
from iyzico_subscriptions.utils.billing_period import (
    PeriodOutOfRangeError,
    check_period,
    parse_period_count,
    parse_period_unit,
)

EVENT_TYPE_FIELDS = ("eventType", "iyziEventType")
CUSTOMER_EMAIL_FIELDS = ("customerEmail", "customer.email")
REFERENCE_CODE_FIELDS = ("subscriptionReferenceCode", "referenceCode")
PLAN_NAME_FIELDS = ("pricingPlanName", "pricingPlan.name")
PERIOD_UNIT_FIELDS = ("pricingPlan.paymentInterval", "paymentInterval")
PERIOD_COUNT_FIELDS = ("pricingPlan.paymentIntervalCount", "paymentIntervalCount")
PAID_AMOUNT_FIELDS = ("paidPrice",)


class ValidationError(ValueError):
    """Raised when a payload is missing data required for its event kind."""

    pass


def _lookup(payload: Mapping, path: str) -> Any:
    """Resolve a dotted path (``customer.email``) in nested mappings."""
    value: Any = payload
    for part in path.split("."):
        if not isinstance(value, Mapping):
            return None
        value = value.get(part)
    return value


def first_present(payload: Mapping, fields: tuple[str, ...]) -> Any:
    """Return the first field value that is neither None nor an empty string."""
    for field in fields:
        value = _lookup(payload, field)
        if value is None:
            continue
        if isinstance(value, str):
            value = value.strip()
            if not value:
                continue
        return value
    return None


def _as_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value)


def _as_amount(value: Any) -> float:
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _parse_period(payload: Mapping, kind: EventKind) -> tuple[PeriodUnit, int]:
    unit = parse_period_unit(first_present(payload, PERIOD_UNIT_FIELDS))
    try:
        count = parse_period_count(first_present(payload, PERIOD_COUNT_FIELDS))
        check_period(unit, count)
    except PeriodOutOfRangeError as e:
        # Only activations turn the period into an end date
        if kind in (EventKind.STARTED, EventKind.RENEWED):
            raise ValidationError(str(e)) from e
        count = 1
    return unit, count


def resolve_event_kind(event_type: Optional[str]) -> EventKind:
    """Map a provider event type string to an EventKind (UNKNOWN if unmapped)."""
    if not event_type:
        return EventKind.UNKNOWN
    return PROVIDER_EVENT_KINDS.get(event_type.strip().lower(), EventKind.UNKNOWN)


def normalize_event(payload: Any) -> SubscriptionEvent:
    """Build a canonical SubscriptionEvent from a decoded webhook body.

    Args:
        payload: Decoded JSON body

    Returns:
        SubscriptionEvent; unrecognised event types yield kind UNKNOWN

    Raises:
        ValidationError: If the payload is not an object, the customer
            email is missing for any kind other than UNKNOWN, or an
            activation carries a billing period too long to represent
    """
    if not isinstance(payload, Mapping):
        raise ValidationError("Webhook payload must be a JSON object")

    raw_event_type = _as_text(first_present(payload, EVENT_TYPE_FIELDS))
    kind = resolve_event_kind(raw_event_type)
    customer_email = _as_text(first_present(payload, CUSTOMER_EMAIL_FIELDS))

    if kind != EventKind.UNKNOWN and not customer_email:
        raise ValidationError("Missing customer email")

    period_unit, period_count = _parse_period(payload, kind)

    return SubscriptionEvent(
        kind=kind,
        customer_email=customer_email,
        reference_code=_as_text(first_present(payload, REFERENCE_CODE_FIELDS)),
        plan_name=_as_text(first_present(payload, PLAN_NAME_FIELDS)) or DEFAULT_PACKAGE_NAME,
        period_unit=period_unit,
        period_count=period_count,
        paid_amount=_as_amount(first_present(payload, PAID_AMOUNT_FIELDS)),
        raw_event_type=raw_event_type,
    )
