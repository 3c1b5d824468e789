"""Per-call ingestion metrics."""

from __future__ import annotations

import dataclasses
from collections import Counter
from collections.abc import Iterable


@dataclasses.dataclass(frozen=True)
class IngestionMetrics:
    """Counters for one or more ingested notifications.

    Values are returned with each result and summed by the caller; there is
    no process-wide registry.
    """

    received: int = 0
    processed: int = 0
    unchanged: int = 0
    duplicates: int = 0
    ignored: int = 0
    malformed: int = 0
    rejected: int = 0
    scope_violations: int = 0
    errors: int = 0
    per_form: Counter[str] = dataclasses.field(default_factory=Counter)
    processing_times: tuple[float, ...] = ()

    def __add__(self, other: IngestionMetrics) -> IngestionMetrics:
        if not isinstance(other, IngestionMetrics):
            return NotImplemented
        return IngestionMetrics(
            received=self.received + other.received,
            processed=self.processed + other.processed,
            unchanged=self.unchanged + other.unchanged,
            duplicates=self.duplicates + other.duplicates,
            ignored=self.ignored + other.ignored,
            malformed=self.malformed + other.malformed,
            rejected=self.rejected + other.rejected,
            scope_violations=self.scope_violations + other.scope_violations,
            errors=self.errors + other.errors,
            per_form=self.per_form + other.per_form,
            processing_times=self.processing_times + other.processing_times,
        )

    @classmethod
    def combine(cls, items: Iterable[IngestionMetrics]) -> IngestionMetrics:
        total = cls()
        for item in items:
            total = total + item
        return total

    @property
    def average_processing_time(self) -> float | None:
        if not self.processing_times:
            return None
        return sum(self.processing_times) / len(self.processing_times)
