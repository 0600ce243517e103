"""Subscription service - commits state machine transitions and notifies.

Responsibilities:
- Resolve the target user record by email
- Apply the pure state machine and persist the replacement record with a
  conditional write
- Send the transition's notification after the write is committed
- Register new users and send the welcome mail
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from iyzico_subscriptions.logging_config import get_logger, mask_email
from iyzico_subscriptions.models.events import EventKind, SubscriptionEvent
from iyzico_subscriptions.models.user import UserSubscriptionRecord
from iyzico_subscriptions.repositories.user_store import (
    ConcurrentUpdateError,
    StoreError,
    UserNotFoundError,
    UserStore,
)
from iyzico_subscriptions.services.clock import utc_now
from iyzico_subscriptions.services.notifier import NotificationService
from iyzico_subscriptions.services.state_machine import (
    TransitionResult,
    apply_transition,
    expire,
)
from iyzico_subscriptions.state_logger import (
    log_end_date_change,
    log_entitlement_change,
    log_subscription_state_change,
)

logger = get_logger(__name__)

SWEEP_EXPIRY_REASON = "end_date_passed"


@dataclass(frozen=True)
class TransitionOutcome:
    """Committed transition plus whether its notification went out."""

    event_kind: Optional[EventKind]
    result: TransitionResult
    notified: bool = False

    @property
    def record(self) -> UserSubscriptionRecord:
        return self.result.record

    @property
    def changed(self) -> bool:
        return self.result.changed


class SubscriptionService:
    """Applies subscription events to user records.

    Integrates the record store, the pure state machine and the
    notification service. All times come from the injected clock.
    """

    def __init__(
            self,
            store: UserStore,
            notifications: NotificationService,
            clock: Optional[Callable[[], datetime]] = None,
            max_write_attempts: int = 3,
    ):
        """Initialize subscription service.

        Args:
            store: User record store
            notifications: Best-effort notification sender
            clock: Callable returning the current UTC time (defaults to real time)
            max_write_attempts: Read-modify-write attempts when a concurrent
                writer changes the record between read and write
        """
        if max_write_attempts < 1:
            raise ValueError("max_write_attempts must be at least 1")
        self.store = store
        self.notifications = notifications
        self.clock = clock or utc_now
        self.max_write_attempts = max_write_attempts

    def find_user(self, email: str) -> UserSubscriptionRecord:
        """Resolve a user record by exact email match.

        Raises:
            UserNotFoundError: If no record matches
            StoreError: If the lookup itself fails
        """
        try:
            record = self.store.find_by_email(email)
        except StoreError:
            raise
        except Exception as e:
            raise StoreError(f"User lookup failed: {e}") from e

        if record is None:
            raise UserNotFoundError(f"User not found: {email}")
        return record

    def _commit(
            self,
            result: TransitionResult,
            snapshot: UserSubscriptionRecord,
    ) -> None:
        try:
            self.store.update(result.record, expected=snapshot)
        except StoreError:
            raise
        except UserNotFoundError:
            raise
        except Exception as e:
            raise StoreError(f"User update failed: {e}") from e

        self._log_transition(snapshot, result)

    def _log_transition(self, before: UserSubscriptionRecord, result: TransitionResult) -> None:
        after = result.record
        log_subscription_state_change(
            email=after.email,
            old_state=result.previous_state,
            new_state=result.new_state,
            reason=result.reason,
            record_id=after.id,
            reference_code=after.provider_subscription_ref,
        )
        if before.is_active != after.is_active:
            log_entitlement_change(
                email=after.email,
                old_value=before.is_active,
                new_value=after.is_active,
                reason=result.reason,
            )
        if before.subscription_end_date != after.subscription_end_date:
            log_end_date_change(
                email=after.email,
                old_end_date=before.subscription_end_date,
                new_end_date=after.subscription_end_date,
                reason=result.reason,
            )

    def _notify(self, result: TransitionResult) -> bool:
        if result.notification is None:
            return False
        return self.notifications.notify(result.notification)

    def process_event(self, event: SubscriptionEvent) -> TransitionOutcome:
        """Apply a provider event to the user it targets.

        The record is read, transitioned and written back conditionally; when
        another writer got there first the cycle is repeated against the fresh
        record, up to max_write_attempts times.

        Args:
            event: Normalized event (not UNKNOWN)

        Returns:
            TransitionOutcome for the committed (or no-op) transition

        Raises:
            ValueError: If the event has no customer email
            UserNotFoundError: If no record matches the customer email
            StoreError: If the store fails or conflicts persist
        """
        if not event.customer_email:
            raise ValueError("Event has no customer email")

        now = self.clock()
        for attempt in range(1, self.max_write_attempts + 1):
            snapshot = self.find_user(event.customer_email)
            result = apply_transition(snapshot, event, now)

            if not result.changed:
                logger.info(
                    "subscription_event_noop",
                    event_kind=event.kind.value,
                    email=mask_email(event.customer_email),
                    state=result.previous_state.value,
                )
                return TransitionOutcome(event_kind=event.kind, result=result)

            try:
                self._commit(result, snapshot)
                break
            except ConcurrentUpdateError:
                logger.warning(
                    "subscription_write_conflict",
                    event_kind=event.kind.value,
                    email=mask_email(event.customer_email),
                    attempt=attempt,
                    max_attempts=self.max_write_attempts,
                )
                if attempt == self.max_write_attempts:
                    raise StoreError(
                        f"User {mask_email(event.customer_email)} kept changing during update"
                    )

        logger.info(
            "subscription_event_applied",
            event_kind=event.kind.value,
            email=mask_email(event.customer_email),
            new_state=result.new_state.value,
            package_name=result.record.package_name,
            end_date=(
                result.record.subscription_end_date.isoformat()
                if result.record.subscription_end_date
                else None
            ),
        )

        notified = self._notify(result)
        return TransitionOutcome(event_kind=event.kind, result=result, notified=notified)

    def expire_record(self, record: UserSubscriptionRecord) -> TransitionOutcome:
        """Expire a record found by the sweep.

        The write is conditional on the swept snapshot, so a record renewed
        or already expired in the meantime is never overwritten.

        Raises:
            ConcurrentUpdateError: If the record changed since the sweep read it
            UserNotFoundError: If the record disappeared
            StoreError: If the write fails
        """
        result = expire(record, reason=SWEEP_EXPIRY_REASON)
        if not result.changed:
            return TransitionOutcome(event_kind=None, result=result)

        self._commit(result, record)
        notified = self._notify(result)
        return TransitionOutcome(event_kind=None, result=result, notified=notified)

    def register_user(
            self,
            email: str,
            name: Optional[str] = None,
            notify: bool = True,
    ) -> UserSubscriptionRecord:
        """Create a free user record and optionally send the welcome mail.

        Account sign-up lives in the host application; it calls this after
        creating the account so the welcome mail goes out. Seed records are
        written straight to the store and get no welcome mail.

        Raises:
            ValueError: If the email is empty or already registered
        """
        if not email:
            raise ValueError("email is required")

        record = self.store.add(UserSubscriptionRecord(email=email, name=name))
        logger.info("user_registered", email=mask_email(email), record_id=record.id)

        if notify:
            self.notifications.send_template(
                "welcome",
                record.email,
                user_name=record.display_name,
            )
        return record
