"""Submission idempotency.

The field platform retries notifications and a device can resubmit the
same form, so each physical submission is admitted exactly once.  A record
is inserted before any processing happens (at-most-once delivery): a
retry after a failed run is still a duplicate.
"""

from __future__ import annotations

import logging
import threading
from datetime import UTC, datetime
from enum import StrEnum
from typing import Protocol

from jobtrack.models.notification import NotificationRecord

_logger = logging.getLogger(__name__)


class AdmitResult(StrEnum):
    ADMITTED = "admitted"
    DUPLICATE = "duplicate"


class NotificationLog(Protocol):
    def insert_if_absent(self, record: NotificationRecord) -> bool:
        """Insert *record* unless its submission id exists.  Returns ``True`` on insert."""
        ...

    def get(self, submission_id: str) -> NotificationRecord | None:
        ...


class InMemoryNotificationLog:
    """Process-local :class:`NotificationLog`.

    The check and the insert happen under one lock, so concurrent
    deliveries of the same submission (threads or tasks) admit exactly one.
    Records never expire.
    """

    def __init__(self) -> None:
        self._records: dict[str, NotificationRecord] = {}
        self._lock = threading.Lock()

    def insert_if_absent(self, record: NotificationRecord) -> bool:
        with self._lock:
            if record.submission_id in self._records:
                return False
            self._records[record.submission_id] = record
            return True

    def get(self, submission_id: str) -> NotificationRecord | None:
        with self._lock:
            return self._records.get(submission_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)


class IdempotencyGuard:
    """Admit each submission id once."""

    def __init__(self, log: NotificationLog | None = None) -> None:
        self._log = log if log is not None else InMemoryNotificationLog()

    @property
    def log(self) -> NotificationLog:
        return self._log

    def admit(self, submission_id: str, form_id: str, *, now: datetime | None = None) -> AdmitResult:
        record = NotificationRecord(
            submission_id=submission_id,
            form_id=form_id,
            processed_at=now or datetime.now(UTC),
        )
        if self._log.insert_if_absent(record):
            return AdmitResult.ADMITTED
        _logger.debug("Submission %s already processed", submission_id)
        return AdmitResult.DUPLICATE
