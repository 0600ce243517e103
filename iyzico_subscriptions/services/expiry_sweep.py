"""Expiry sweep - time-based reconciliation of lapsed subscriptions.

Responsibilities:
- Find records whose subscription end date has passed
- Drive each one through the same Free transition as an expiry event
- Isolate per-record failures and report a summary per tick
- Run once a day at a fixed local time, never overlapping a running tick
"""

import threading
from dataclasses import asdict, dataclass
from datetime import datetime, time, timedelta
from typing import Callable, Optional
from zoneinfo import ZoneInfo

from iyzico_subscriptions.logging_config import get_logger, mask_email
from iyzico_subscriptions.models.user import SubscriptionStatus, UserSubscriptionRecord, as_utc
from iyzico_subscriptions.repositories.user_store import ConcurrentUpdateError, UserStore
from iyzico_subscriptions.services.clock import utc_now
from iyzico_subscriptions.services.subscription_service import SubscriptionService

logger = get_logger(__name__)

SWEEPABLE_STATUSES = (SubscriptionStatus.ACTIVE, SubscriptionStatus.CANCELED)


def is_sweep_candidate(record: UserSubscriptionRecord, now: datetime) -> bool:
    """Whether a record's subscription has lapsed by time.

    Matches records with an end date strictly before ``now`` whose current
    or legacy status is active or canceled. Canceled records are included:
    cancellation only stops renewal. Free records never match, even with a
    stale end date.
    """
    end_date = as_utc(record.subscription_end_date)
    if end_date is None or end_date >= as_utc(now):
        return False
    return (
        record.subscription_status in SWEEPABLE_STATUSES
        or record.package_status in SWEEPABLE_STATUSES
    )


@dataclass
class SweepSummary:
    """Counters for one sweep tick."""

    started_at: datetime
    matched: int = 0
    processed: int = 0
    skipped: int = 0
    errored: int = 0
    notification_failures: int = 0
    already_running: bool = False

    def to_dict(self) -> dict:
        data = asdict(self)
        data["started_at"] = self.started_at.isoformat()
        return data


class ExpirySweep:
    """Expires lapsed subscriptions in bounded pages.

    Args:
        store: User record store
        service: Subscription service used to apply and commit the expiry
        batch_size: Maximum records handled per tick; the rest wait for the next tick
        clock: Callable returning the current UTC time
    """

    def __init__(
            self,
            store: UserStore,
            service: SubscriptionService,
            batch_size: int = 500,
            clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.store = store
        self.service = service
        self.batch_size = batch_size
        self.clock = clock or utc_now
        self._run_lock = threading.Lock()

    def find_candidates(self, now: datetime) -> list[UserSubscriptionRecord]:
        """Most overdue records first, at most batch_size of them."""
        return self.store.find(
            predicate=lambda record: is_sweep_candidate(record, now),
            order_by="subscription_end_date",
            limit=self.batch_size,
        )

    def run_once(self) -> SweepSummary:
        """Run a single sweep tick.

        Returns immediately with ``already_running=True`` if another tick is
        still in flight. Failures on one record never stop the rest of the
        page; a failed candidate query is logged and ends the tick.
        """
        started_at = self.clock()
        summary = SweepSummary(started_at=started_at)

        if not self._run_lock.acquire(blocking=False):
            summary.already_running = True
            logger.warning("sweep_already_running", started_at=started_at.isoformat())
            return summary

        try:
            logger.info("sweep_started", started_at=started_at.isoformat(), batch_size=self.batch_size)

            try:
                candidates = self.find_candidates(started_at)
            except Exception as e:
                summary.errored += 1
                logger.error(
                    "sweep_query_failed",
                    error=str(e),
                    error_type=type(e).__name__,
                    exc_info=True,
                )
                return summary

            summary.matched = len(candidates)
            logger.info("sweep_candidates_found", count=summary.matched)

            for record in candidates:
                self._expire_one(record, summary)

            return summary
        finally:
            self._run_lock.release()
            logger.info("sweep_completed", **summary.to_dict())

    def _expire_one(self, record: UserSubscriptionRecord, summary: SweepSummary) -> None:
        try:
            outcome = self.service.expire_record(record)
        except ConcurrentUpdateError:
            summary.skipped += 1
            logger.info(
                "sweep_record_changed",
                record_id=record.id,
                email=mask_email(record.email),
            )
            return
        except Exception as e:
            summary.errored += 1
            logger.error(
                "sweep_record_failed",
                record_id=record.id,
                email=mask_email(record.email),
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )
            return

        if not outcome.changed:
            summary.skipped += 1
            return

        summary.processed += 1
        if outcome.result.notification is not None and not outcome.notified:
            summary.notification_failures += 1

        logger.info(
            "sweep_record_expired",
            record_id=record.id,
            email=mask_email(record.email),
            end_date=record.subscription_end_date.isoformat() if record.subscription_end_date else None,
        )


class SweepScheduler:
    """Background thread firing the sweep once a day at a fixed local time.

    Args:
        sweep: Sweep to run
        run_at: Local time of day
        timezone: IANA timezone name for run_at
    """

    def __init__(self, sweep: ExpirySweep, run_at: time, timezone: str = "Europe/Istanbul") -> None:
        self.sweep = sweep
        self.run_at = run_at
        self.tz = ZoneInfo(timezone)
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.last_summary: Optional[SweepSummary] = None

    def next_run_after(self, now: datetime) -> datetime:
        """Next scheduled run strictly after ``now``, as an aware datetime in the schedule's zone."""
        local_now = now.astimezone(self.tz)
        candidate = datetime.combine(local_now.date(), self.run_at, tzinfo=self.tz)
        if candidate <= local_now:
            candidate = datetime.combine(local_now.date() + timedelta(days=1), self.run_at, tzinfo=self.tz)
        return candidate

    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="expiry-sweep", daemon=True)
        self._thread.start()
        logger.info(
            "sweep_scheduler_started",
            run_at=self.run_at.strftime("%H:%M"),
            timezone=str(self.tz),
        )

    def stop(self, timeout: float = 5.0) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None
        logger.info("sweep_scheduler_stopped")

    def _run(self) -> None:
        while not self._stop_event.is_set():
            now = utc_now()
            next_run = self.next_run_after(now)
            wait_seconds = max((next_run - now).total_seconds(), 0)
            logger.info("sweep_scheduled", next_run=next_run.isoformat(), wait_seconds=round(wait_seconds))

            if self._stop_event.wait(wait_seconds):
                break

            try:
                self.last_summary = self.sweep.run_once()
            except Exception as e:
                logger.error(
                    "sweep_tick_failed",
                    error=str(e),
                    error_type=type(e).__name__,
                    exc_info=True,
                )
