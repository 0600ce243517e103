"""Canonical subscription event models.

Provider payloads are normalized into SubscriptionEvent before they reach
the state machine; nothing downstream sees the raw webhook body.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class EventKind(str, Enum):
    """Kinds of subscription events understood by the state machine."""

    STARTED = "started"
    RENEWED = "renewed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"
    PAYMENT_FAILED = "payment_failed"
    UNKNOWN = "unknown"  # Acknowledged and ignored


class PeriodUnit(str, Enum):
    """Pricing plan payment intervals."""

    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    YEARLY = "YEARLY"


# iyzico event type strings
PROVIDER_EVENT_KINDS = {
    "subscription.started": EventKind.STARTED,
    "subscription.renewed": EventKind.RENEWED,
    "subscription.cancelled": EventKind.CANCELLED,
    "subscription.canceled": EventKind.CANCELLED,
    "subscription.expired": EventKind.EXPIRED,
    "subscription.payment.failed": EventKind.PAYMENT_FAILED,
}


class SubscriptionEvent(BaseModel):
    """Provider-agnostic subscription notification."""

    kind: EventKind = Field(..., description="Event kind")
    customer_email: Optional[str] = Field(None, description="Email of the subscribing user")
    reference_code: Optional[str] = Field(None, description="Provider subscription reference code")
    plan_name: str = Field(default="Premium", description="Human-readable plan name")
    period_unit: PeriodUnit = Field(default=PeriodUnit.MONTHLY, description="Billing interval unit")
    period_count: int = Field(default=1, ge=1, description="Number of interval units per period")
    paid_amount: float = Field(default=0.0, description="Amount paid for this period")
    raw_event_type: Optional[str] = Field(None, description="Event type string as sent by the provider")

    @property
    def is_activation(self) -> bool:
        return self.kind in (EventKind.STARTED, EventKind.RENEWED)

    @property
    def is_termination(self) -> bool:
        return self.kind in (EventKind.EXPIRED, EventKind.PAYMENT_FAILED)

    class Config:
        json_schema_extra = {
            "example": {
                "kind": "started",
                "customer_email": "a@x.com",
                "reference_code": "sub-ref-123",
                "plan_name": "Pro",
                "period_unit": "MONTHLY",
                "period_count": 1,
                "paid_amount": 149.9,
                "raw_event_type": "subscription.started",
            }
        }
