"""Pydantic models for records, events, settings and API responses."""

# User record models
from .user import (
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

# Event models
from .events import (
    PROVIDER_EVENT_KINDS,
    EventKind,
    PeriodUnit,
    SubscriptionEvent,
)

# Settings models
from .settings import (
    AppSettings,
    LinkSettings,
    NotifierSettings,
    SmtpSettings,
    StoreSettings,
    SweepSettings,
    WebhookSettings,
)

# API response models
from .api_response import (
    HealthResponse,
    WebhookResponse,
)

__all__ = [
    # User records
    "DEFAULT_PACKAGE_NAME",
    "FREE_PACKAGE_NAME",
    "PROVIDER_NAME",
    "LastPurchase",
    "LifecycleState",
    "SubscriptionDetails",
    "SubscriptionStatus",
    "UserSubscriptionRecord",
    "derive_state",
    # Events
    "PROVIDER_EVENT_KINDS",
    "EventKind",
    "PeriodUnit",
    "SubscriptionEvent",
    # Settings
    "AppSettings",
    "LinkSettings",
    "NotifierSettings",
    "SmtpSettings",
    "StoreSettings",
    "SweepSettings",
    "WebhookSettings",
    # API responses
    "HealthResponse",
    "WebhookResponse",
]
