"""User subscription record and lifecycle states.

The record mirrors the user collection of the account store, including the
legacy duplicated status field (package_status) that must always agree with
subscription_status.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator

FREE_PACKAGE_NAME = "Free"
DEFAULT_PACKAGE_NAME = "Premium"
PROVIDER_NAME = "iyzico"


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize a timestamp to aware UTC; naive values are taken as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class SubscriptionStatus(str, Enum):
    """Stored subscription status values."""

    ACTIVE = "active"
    CANCELED = "canceled"  # Will not renew, entitlements kept until end date
    FREE = "free"


class LifecycleState(str, Enum):
    """Lifecycle state derived from a stored record."""

    FREE = "free"
    ACTIVE = "active"
    CANCELED_PENDING_EXPIRY = "canceled_pending_expiry"
    EXPIRED = "expired"


class SubscriptionDetails(BaseModel):
    """Current paid subscription period."""

    package_name: str = Field(..., description="Plan name")
    start_date: datetime = Field(..., description="Period start (UTC)")
    end_date: datetime = Field(..., description="Period end (UTC)")
    provider: str = Field(default=PROVIDER_NAME, description="Payment provider")
    reference_code: Optional[str] = Field(None, description="Provider subscription reference code")

    @field_validator("start_date", "end_date")
    @classmethod
    def validate_dates(cls, value: datetime) -> datetime:
        return as_utc(value)


class LastPurchase(BaseModel):
    """Audit entry for the most recent successful payment."""

    provider: str = Field(default=PROVIDER_NAME, description="Payment provider")
    package_name: str = Field(..., description="Plan name")
    date: datetime = Field(..., description="Payment time (UTC)")
    amount: float = Field(default=0.0, description="Amount paid")
    reference_code: Optional[str] = Field(None, description="Provider subscription reference code")

    @field_validator("date")
    @classmethod
    def validate_date(cls, value: datetime) -> datetime:
        return as_utc(value)


class UserSubscriptionRecord(BaseModel):
    """User account record as far as subscriptions are concerned."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex, description="Store record ID")
    email: str = Field(..., description="Unique email, used to correlate provider events")
    name: Optional[str] = Field(None, description="Display name")

    is_active: bool = Field(default=False, description="Whether paid entitlements are granted")
    subscription_status: SubscriptionStatus = Field(default=SubscriptionStatus.FREE)
    package_status: SubscriptionStatus = Field(
        default=SubscriptionStatus.FREE, description="Legacy duplicate of subscription_status"
    )
    package_name: str = Field(default=FREE_PACKAGE_NAME, description="Plan name, 'Free' when not subscribed")
    provider_subscription_ref: Optional[str] = Field(
        None, description="Provider subscription reference, kept for audit after expiry"
    )

    subscription: Optional[SubscriptionDetails] = Field(None, description="Current subscription period")
    subscription_end_date: Optional[datetime] = Field(
        None, description="Copy of subscription.end_date used by the expiry sweep"
    )

    usage_today: int = Field(default=0, description="Usage counter for the current day")
    api_counter: int = Field(default=0, description="API usage counter")
    last_purchase: Optional[LastPurchase] = Field(None, description="Most recent successful payment")

    @field_validator("subscription_end_date")
    @classmethod
    def validate_end_date(cls, value: Optional[datetime]) -> Optional[datetime]:
        # Stores and seed files may hold timestamps without an offset
        return as_utc(value)

    @property
    def display_name(self) -> str:
        """Name used in emails, falls back to the email local part."""
        return self.name or self.email.split("@")[0]

    def consistency_errors(self) -> list[str]:
        """List the record invariants that do not hold (empty when consistent)."""
        errors = []
        status = self.subscription_status

        if status != self.package_status:
            errors.append("subscription_status and package_status differ")

        if (self.subscription is None) != (self.subscription_end_date is None):
            errors.append("subscription and subscription_end_date must be set together")
        elif self.subscription is not None and self.subscription.end_date != self.subscription_end_date:
            errors.append("subscription_end_date does not match subscription.end_date")

        if status in (SubscriptionStatus.ACTIVE, SubscriptionStatus.CANCELED):
            if not self.is_active:
                errors.append(f"{status.value} record must be active")
            if self.subscription is None:
                errors.append(f"{status.value} record must carry a subscription")
        else:
            if self.is_active:
                errors.append("free record must not be active")
            if self.subscription is not None:
                errors.append("free record must not carry a subscription")
            if self.package_name != FREE_PACKAGE_NAME:
                errors.append("free record must use the Free package name")

        return errors

    def is_consistent(self) -> bool:
        return not self.consistency_errors()

    class Config:
        json_schema_extra = {
            "example": {
                "id": "4f1c2a9b8e7d4c3b",
                "email": "a@x.com",
                "name": "Ayse",
                "is_active": True,
                "subscription_status": "active",
                "package_status": "active",
                "package_name": "Pro",
                "provider_subscription_ref": "sub-ref-123",
                "subscription": {
                    "package_name": "Pro",
                    "start_date": "2026-10-19T00:00:00Z",
                    "end_date": "2026-11-18T00:00:00Z",
                    "provider": "iyzico",
                    "reference_code": "sub-ref-123",
                },
                "subscription_end_date": "2026-11-18T00:00:00Z",
                "usage_today": 0,
                "api_counter": 0,
            }
        }


def derive_state(record: UserSubscriptionRecord) -> LifecycleState:
    """Derive the lifecycle state of a stored record.

    A free record with a provider reference on file has completed at least
    one paid cycle and is reported as EXPIRED.
    """
    status = record.subscription_status
    if status == SubscriptionStatus.ACTIVE:
        return LifecycleState.ACTIVE
    if status == SubscriptionStatus.CANCELED:
        return LifecycleState.CANCELED_PENDING_EXPIRY
    if record.provider_subscription_ref:
        return LifecycleState.EXPIRED
    return LifecycleState.FREE
