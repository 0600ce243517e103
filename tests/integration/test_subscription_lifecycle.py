"""Integration tests for complete subscription lifecycle scenarios."""

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from iyzico_subscriptions.config import Config
from iyzico_subscriptions.main import create_app
from iyzico_subscriptions.models.user import LifecycleState, SubscriptionStatus, UserSubscriptionRecord, derive_state
from iyzico_subscriptions.repositories.user_store import InMemoryUserStore
from iyzico_subscriptions.services.clock import Clock
from iyzico_subscriptions.services.notifier import LoggingNotifier

SETTINGS_PATH = Path(__file__).resolve().parents[2] / "config" / "settings.yaml"
T0 = datetime(2026, 1, 15, 9, 0, tzinfo=timezone.utc)
WEBHOOK_URL = "/api/iyzico-webhook"


@pytest.fixture
def clock():
    return Clock(frozen_at=T0)


@pytest.fixture
def store():
    store = InMemoryUserStore()
    store.add(UserSubscriptionRecord(email="a@x.com", name="Ayse"))
    return store


@pytest.fixture
def notifier():
    return LoggingNotifier()


@pytest.fixture
def app(store, notifier, clock):
    return create_app(
        config=Config(str(SETTINGS_PATH), iyzico_secret_key="test-secret"),
        store=store,
        notifier=notifier,
        clock=clock,
        enable_scheduler=False,
    )


@pytest.fixture
def client(app):
    return TestClient(app)


def send(client, event_type: str, email: str = "a@x.com", **fields):
    response = client.post(WEBHOOK_URL, json={"eventType": event_type, "customerEmail": email, **fields})
    assert response.status_code == 200, response.text
    return response.json()


class TestCancelThenLapse:
    """Started, cancelled, then expired by the sweep."""

    def test_full_lifecycle(self, app, client, store, notifier, clock):
        send(
            client,
            "subscription.started",
            pricingPlanName="Pro",
            pricingPlan={"paymentInterval": "MONTHLY", "paymentIntervalCount": 1},
        )
        record = store.find_by_email("a@x.com")
        assert record.is_active is True
        assert record.subscription_end_date == T0 + timedelta(days=30)

        clock.advance(days=10)
        send(client, "subscription.cancelled")
        record = store.find_by_email("a@x.com")
        assert record.subscription_status == SubscriptionStatus.CANCELED
        assert record.is_active is True
        assert record.subscription_end_date == T0 + timedelta(days=30)

        # Sweep before the end date leaves the record alone
        summary = app.state.expiry_sweep.run_once()
        assert summary.matched == 0

        clock.advance(days=21)
        summary = app.state.expiry_sweep.run_once()

        assert summary.processed == 1
        record = store.find_by_email("a@x.com")
        assert record.is_active is False
        assert record.package_name == "Free"
        assert record.subscription is None
        assert derive_state(record) == LifecycleState.EXPIRED
        assert [m["subject"] for m in notifier.sent] == [
            "Your Pro subscription is active!",
            "Your Pro subscription has ended",
        ]


class TestRenewal:
    """Renewals keep the subscription out of the sweep."""

    def test_renewal_before_end_date(self, app, client, store, clock):
        send(client, "subscription.started")
        clock.advance(days=30)
        send(client, "subscription.renewed")
        clock.advance(days=1)

        summary = app.state.expiry_sweep.run_once()

        assert summary.matched == 0
        record = store.find_by_email("a@x.com")
        assert record.is_active is True
        assert record.subscription_end_date == T0 + timedelta(days=60)

    def test_resubscribe_after_expiry(self, app, client, store, clock):
        send(client, "subscription.started")
        clock.advance(days=31)
        app.state.expiry_sweep.run_once()

        send(client, "subscription.started", subscriptionReferenceCode="sub-ref-2")

        record = store.find_by_email("a@x.com")
        assert record.is_active is True
        assert record.provider_subscription_ref == "sub-ref-2"
        assert record.subscription_end_date == T0 + timedelta(days=61)


class TestPaymentFailure:
    """Failed renewal payments drop the user immediately."""

    def test_payment_failed(self, client, store, notifier):
        send(client, "subscription.started", pricingPlanName="Pro")
        send(client, "subscription.payment.failed")

        record = store.find_by_email("a@x.com")
        assert record.is_active is False
        assert record.subscription_status == SubscriptionStatus.FREE
        assert record.package_status == SubscriptionStatus.FREE
        assert notifier.sent[-1]["subject"] == "Your Pro subscription has ended"

    def test_repeated_expiry_sends_one_mail(self, client, notifier):
        send(client, "subscription.started")
        send(client, "subscription.expired")
        send(client, "subscription.expired")

        assert len(notifier.sent) == 2


class TestSeededStore:
    """Users loaded from the seed file."""

    def test_seed_users_loaded(self, tmp_path, notifier):
        settings = tmp_path / "settings.yaml"
        settings.write_text("store:\n  seed_users_path: users.yaml\nsweep:\n  enabled: false\n")
        (tmp_path / "users.yaml").write_text("users:\n  - email: seeded@x.com\n")

        app = create_app(config=Config(str(settings), iyzico_secret_key="test-secret"), notifier=notifier)

        assert app.state.store.find_by_email("seeded@x.com") is not None
        assert app.state.sweep_scheduler is None
