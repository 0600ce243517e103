"""Tests for SubscriptionService - commit and notify around the state machine."""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from iyzico_subscriptions.models.events import EventKind, SubscriptionEvent
from iyzico_subscriptions.models.user import LifecycleState, SubscriptionStatus, UserSubscriptionRecord
from iyzico_subscriptions.repositories.user_store import (
    ConcurrentUpdateError,
    InMemoryUserStore,
    StoreError,
    UserNotFoundError,
)
from iyzico_subscriptions.services.clock import Clock
from iyzico_subscriptions.services.notifier import LoggingNotifier, NotificationService
from iyzico_subscriptions.services.subscription_service import SubscriptionService

T0 = datetime(2026, 4, 10, 8, 0, tzinfo=timezone.utc)


def make_event(kind: EventKind, email: str = "a@x.com", **overrides) -> SubscriptionEvent:
    return SubscriptionEvent(kind=kind, customer_email=email, plan_name="Pro", reference_code="ref-1", **overrides)


@pytest.fixture
def store():
    store = InMemoryUserStore()
    store.add(UserSubscriptionRecord(email="a@x.com", name="Ayse"))
    return store


@pytest.fixture
def notifier():
    return LoggingNotifier()


@pytest.fixture
def clock():
    return Clock(frozen_at=T0)


@pytest.fixture
def service(store, notifier, clock):
    return SubscriptionService(store=store, notifications=NotificationService(notifier), clock=clock)


class TestProcessEvent:
    """Test applying provider events."""

    def test_started_commits_and_notifies(self, service, store, notifier):
        outcome = service.process_event(make_event(EventKind.STARTED))

        stored = store.find_by_email("a@x.com")
        assert outcome.changed
        assert outcome.notified
        assert outcome.event_kind == EventKind.STARTED
        assert stored.is_active is True
        assert stored.subscription_end_date == T0 + timedelta(days=30)
        assert len(notifier.sent) == 1
        assert notifier.sent[0]["to"] == "a@x.com"
        assert "Pro" in notifier.sent[0]["subject"]

    def test_cancel_keeps_access(self, service, store, notifier):
        service.process_event(make_event(EventKind.STARTED))
        outcome = service.process_event(make_event(EventKind.CANCELLED))

        stored = store.find_by_email("a@x.com")
        assert outcome.changed
        assert stored.subscription_status == SubscriptionStatus.CANCELED
        assert stored.is_active is True
        assert len(notifier.sent) == 1

    def test_cancel_without_subscription_is_noop(self, service, store, notifier):
        before = store.find_by_email("a@x.com")

        outcome = service.process_event(make_event(EventKind.CANCELLED))

        assert outcome.changed is False
        assert outcome.notified is False
        assert store.find_by_email("a@x.com") == before
        assert notifier.sent == []

    def test_expired_sends_subscription_ended(self, service, store, notifier):
        service.process_event(make_event(EventKind.STARTED))
        outcome = service.process_event(make_event(EventKind.EXPIRED))

        assert outcome.record.package_name == "Free"
        assert store.find_by_email("a@x.com").is_active is False
        assert "ended" in notifier.sent[-1]["subject"]

    def test_repeated_expiry_sends_single_mail(self, service, notifier):
        service.process_event(make_event(EventKind.STARTED))
        service.process_event(make_event(EventKind.EXPIRED))
        outcome = service.process_event(make_event(EventKind.EXPIRED))

        assert outcome.changed is False
        assert len(notifier.sent) == 2

    def test_unknown_user(self, service):
        with pytest.raises(UserNotFoundError):
            service.process_event(make_event(EventKind.STARTED, email="nobody@x.com"))

    def test_event_without_email(self, service):
        with pytest.raises(ValueError):
            service.process_event(SubscriptionEvent(kind=EventKind.STARTED))

    def test_notification_failure_keeps_state(self, store, clock):
        failing = MagicMock()
        failing.send.side_effect = RuntimeError("smtp down")
        service = SubscriptionService(store=store, notifications=NotificationService(failing), clock=clock)

        outcome = service.process_event(make_event(EventKind.STARTED))

        assert outcome.changed
        assert outcome.notified is False
        assert store.find_by_email("a@x.com").is_active is True

    def test_lookup_failure_wrapped(self, clock):
        broken = MagicMock()
        broken.find_by_email.side_effect = RuntimeError("connection reset")
        service = SubscriptionService(store=broken, notifications=NotificationService(LoggingNotifier()), clock=clock)

        with pytest.raises(StoreError, match="lookup failed"):
            service.process_event(make_event(EventKind.STARTED))


class TestWriteConflicts:
    """Test conditional write retries."""

    def test_retries_after_conflict(self, store, clock):
        real_update = store.update
        calls = {"count": 0}

        def flaky_update(record, expected=None):
            calls["count"] += 1
            if calls["count"] == 1:
                raise ConcurrentUpdateError("changed")
            return real_update(record, expected=expected)

        store.update = flaky_update
        service = SubscriptionService(store=store, notifications=NotificationService(LoggingNotifier()), clock=clock)

        outcome = service.process_event(make_event(EventKind.STARTED))

        assert calls["count"] == 2
        assert outcome.changed
        assert store.find_by_email("a@x.com").is_active is True

    def test_persistent_conflict_raises_store_error(self, clock):
        record = UserSubscriptionRecord(email="a@x.com")
        conflicted = MagicMock()
        conflicted.find_by_email.return_value = record
        conflicted.update.side_effect = ConcurrentUpdateError("changed")
        notifier = LoggingNotifier()
        service = SubscriptionService(
            store=conflicted,
            notifications=NotificationService(notifier),
            clock=clock,
            max_write_attempts=3,
        )

        with pytest.raises(StoreError):
            service.process_event(make_event(EventKind.STARTED))

        assert conflicted.update.call_count == 3
        assert notifier.sent == []

    def test_invalid_attempts(self, store):
        with pytest.raises(ValueError):
            SubscriptionService(store=store, notifications=NotificationService(LoggingNotifier()), max_write_attempts=0)


class TestExpireRecord:
    """Test sweep-driven expiry."""

    def test_expire_record(self, service, store, notifier):
        service.process_event(make_event(EventKind.STARTED))
        snapshot = store.find_by_email("a@x.com")

        outcome = service.expire_record(snapshot)

        assert outcome.changed
        assert outcome.event_kind is None
        assert outcome.result.reason == "end_date_passed"
        assert outcome.result.new_state == LifecycleState.EXPIRED
        assert store.find_by_email("a@x.com").is_active is False
        assert "ended" in notifier.sent[-1]["subject"]

    def test_expire_record_conflict_propagates(self, service, store, clock):
        service.process_event(make_event(EventKind.STARTED))
        snapshot = store.find_by_email("a@x.com")
        clock.advance(days=29)
        service.process_event(make_event(EventKind.RENEWED))

        with pytest.raises(ConcurrentUpdateError):
            service.expire_record(snapshot)

        assert store.find_by_email("a@x.com").is_active is True


class TestRegisterUser:
    """Test user registration."""

    def test_register_sends_welcome(self, service, store, notifier):
        record = service.register_user("new@x.com", name="Deniz")

        assert store.find_by_email("new@x.com").id == record.id
        assert record.package_name == "Free"
        assert notifier.sent[-1]["to"] == "new@x.com"
        assert "Welcome" in notifier.sent[-1]["subject"]

    def test_register_without_mail(self, service, notifier):
        service.register_user("quiet@x.com", notify=False)

        assert notifier.sent == []

    def test_register_duplicate(self, service):
        with pytest.raises(ValueError):
            service.register_user("a@x.com")
