"""Job timeline events.

Every accepted transition is recorded as a :class:`JobEvent`, as are the
comments and part rows a submission carries.  Events are append-only; they
are never merged or rewritten.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from jobtrack.models.job import JobState


class JobEventType(StrEnum):
    CREATED = "created"
    STATE_CHANGE = "state_change"
    COMMENT = "comment"
    PART_UPDATE = "part_update"


class JobEvent(BaseModel):
    """A single entry in a job's timeline."""

    model_config = ConfigDict(frozen=True)

    job_id: str = Field(..., description="Job the event belongs to")
    event_type: JobEventType
    previous_state: JobState | None = None
    new_state: JobState
    occurred_at: datetime = Field(description="Event time after timezone normalization")
    recorded_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    actor: str = "system"
    metadata: dict[str, str] = Field(default_factory=dict)

    @field_validator("job_id")
    @classmethod
    def _normalize_job_id(cls, value: str) -> str:
        job_id = value.strip()
        if not job_id:
            raise ValueError("job_id must be non-empty")
        return job_id

    @field_validator("occurred_at", "recorded_at")
    @classmethod
    def _ensure_tz_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value
