"""User store - record store for user subscription state.

Defines the store contract used by the subscription service and the expiry
sweep, plus a thread-safe in-memory implementation.
"""

import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, List, Optional

import yaml
from pydantic import ValidationError

from iyzico_subscriptions.models.user import UserSubscriptionRecord

RecordPredicate = Callable[[UserSubscriptionRecord], bool]

_MIN_DATETIME = datetime.min.replace(tzinfo=timezone.utc)


class StoreError(Exception):
    """Raised when the store cannot be queried or written."""

    pass


class ConcurrentUpdateError(StoreError):
    """Raised when a conditional write finds the record changed since it was read."""

    pass


class UserNotFoundError(Exception):
    """Raised when no user record matches."""

    pass


def _fingerprint(record: UserSubscriptionRecord) -> tuple:
    """Fields a conditional write compares against the caller's snapshot."""
    return (
        record.subscription_status,
        record.package_status,
        record.subscription_end_date,
    )


def _sort_key(field: str) -> Callable[[UserSubscriptionRecord], tuple]:
    def key(record: UserSubscriptionRecord) -> tuple:
        value = getattr(record, field)
        # None sorts last in ascending order
        if value is None:
            return (1, _MIN_DATETIME if field.endswith("date") else "")
        return (0, value)

    return key


class UserStore(ABC):
    """Record store contract.

    Updates are last-write-wins per record unless an ``expected`` snapshot is
    given, in which case the write only succeeds if the record's status fields
    and end date are unchanged since that snapshot was read.
    """

    @abstractmethod
    def add(self, record: UserSubscriptionRecord) -> UserSubscriptionRecord:
        """Insert a new record; email must be unique."""

    @abstractmethod
    def get(self, record_id: str) -> UserSubscriptionRecord:
        """Get a record by ID, raising UserNotFoundError if absent."""

    @abstractmethod
    def find_by_email(self, email: str) -> Optional[UserSubscriptionRecord]:
        """Find a record by exact email match."""

    @abstractmethod
    def find(
        self,
        predicate: Optional[RecordPredicate] = None,
        order_by: Optional[str] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[UserSubscriptionRecord]:
        """Filter records.

        Args:
            predicate: Filter applied to each record (all records when None)
            order_by: Field name to sort by, prefixed with '-' for descending
            limit: Maximum number of records to return
            offset: Number of matching records to skip
        """

    @abstractmethod
    def update(
        self,
        record: UserSubscriptionRecord,
        expected: Optional[UserSubscriptionRecord] = None,
    ) -> UserSubscriptionRecord:
        """Replace a stored record.

        Raises:
            UserNotFoundError: If the record does not exist
            ConcurrentUpdateError: If ``expected`` no longer matches the stored record
        """

    @abstractmethod
    def count(self) -> int:
        """Number of stored records."""


class InMemoryUserStore(UserStore):
    """In-memory user store.

    Thread-safe storage keyed by record ID with a unique email index. Records
    are copied on the way in and out so callers never share stored state.
    """

    def __init__(self):
        """Initialize user store with empty storage."""
        self._records: dict[str, UserSubscriptionRecord] = {}
        self._email_index: dict[str, str] = {}
        self._lock = threading.RLock()

    def add(self, record: UserSubscriptionRecord) -> UserSubscriptionRecord:
        """Add a record to the store.

        Raises:
            ValueError: If the record ID or email already exists
        """
        with self._lock:
            if record.id in self._records:
                raise ValueError(f"User with id '{record.id}' already exists")
            if record.email in self._email_index:
                raise ValueError(f"User with email '{record.email}' already exists")
            self._records[record.id] = record.model_copy(deep=True)
            self._email_index[record.email] = record.id
            return record.model_copy(deep=True)

    def get(self, record_id: str) -> UserSubscriptionRecord:
        with self._lock:
            record = self._records.get(record_id)
            if record is None:
                raise UserNotFoundError(f"User not found for id: {record_id}")
            return record.model_copy(deep=True)

    def find_by_email(self, email: str) -> Optional[UserSubscriptionRecord]:
        with self._lock:
            record_id = self._email_index.get(email)
            if record_id is None:
                return None
            return self._records[record_id].model_copy(deep=True)

    def find(
        self,
        predicate: Optional[RecordPredicate] = None,
        order_by: Optional[str] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[UserSubscriptionRecord]:
        if offset < 0:
            raise ValueError("offset must be non-negative")
        if limit is not None and limit < 0:
            raise ValueError("limit must be non-negative")

        with self._lock:
            matches = [r for r in self._records.values() if predicate is None or predicate(r)]

            if order_by:
                descending = order_by.startswith("-")
                field = order_by.lstrip("-")
                if field not in UserSubscriptionRecord.model_fields:
                    raise ValueError(f"Unknown order_by field: '{field}'")
                present = [r for r in matches if getattr(r, field) is not None]
                missing = [r for r in matches if getattr(r, field) is None]
                present.sort(key=_sort_key(field), reverse=descending)
                matches = present + missing

            end = None if limit is None else offset + limit
            return [r.model_copy(deep=True) for r in matches[offset:end]]

    def update(
        self,
        record: UserSubscriptionRecord,
        expected: Optional[UserSubscriptionRecord] = None,
    ) -> UserSubscriptionRecord:
        with self._lock:
            current = self._records.get(record.id)
            if current is None:
                raise UserNotFoundError(f"User not found for id: {record.id}")

            if expected is not None and _fingerprint(current) != _fingerprint(expected):
                raise ConcurrentUpdateError(
                    f"User {record.id} changed since it was read"
                )

            if record.email != current.email:
                if record.email in self._email_index:
                    raise ValueError(f"User with email '{record.email}' already exists")
                del self._email_index[current.email]
                self._email_index[record.email] = record.id

            self._records[record.id] = record.model_copy(deep=True)
            return record.model_copy(deep=True)

    def count(self) -> int:
        with self._lock:
            return len(self._records)

    def clear(self) -> None:
        """Clear all records from the store.

        Warning: This removes all data. Use with caution.
        """
        with self._lock:
            self._records.clear()
            self._email_index.clear()

    def __len__(self) -> int:
        return self.count()

    def __contains__(self, email: str) -> bool:
        with self._lock:
            return email in self._email_index

    def __repr__(self) -> str:
        return f"InMemoryUserStore(users={self.count()})"


def load_seed_users(path: Path) -> List[UserSubscriptionRecord]:
    """Load user records from a YAML file.

    The file holds either a list of users or a mapping with a ``users`` key.

    Raises:
        StoreError: If the file cannot be read or a record is invalid
    """
    try:
        with open(path, encoding="utf-8") as f:
            raw = yaml.safe_load(f) or []
    except (OSError, yaml.YAMLError) as e:
        raise StoreError(f"Failed to read seed users from {path}: {e}")

    if isinstance(raw, dict):
        raw = raw.get("users") or []
    if not isinstance(raw, list):
        raise StoreError(f"Seed users file must contain a list of users: {path}")

    try:
        return [UserSubscriptionRecord(**item) for item in raw]
    except (TypeError, ValidationError) as e:
        raise StoreError(f"Invalid seed user in {path}: {e}")
