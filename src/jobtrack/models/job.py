"""Job model and lifecycle states."""

from __future__ import annotations

from datetime import datetime, timedelta
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from jobtrack.models._base import ensure_utc


class JobState(StrEnum):
    """Lifecycle states of a job, in lifecycle order.

    After ``service_complete`` the path splits: the customer either
    collects the parts (``ready_for_pickup`` -> ``picked_up_from_shop``)
    or they are sent back (``queued_for_delivery`` -> ``outbound_shipment``
    -> ``delivered``).
    """

    QUEUED_FOR_PICKUP = "queued_for_pickup"
    PICKED_UP = "picked_up"
    SHIPMENT_INBOUND = "shipment_inbound"
    AT_SHOP = "at_shop"
    IN_SERVICE = "in_service"
    SERVICE_COMPLETE = "service_complete"
    READY_FOR_PICKUP = "ready_for_pickup"
    PICKED_UP_FROM_SHOP = "picked_up_from_shop"
    QUEUED_FOR_DELIVERY = "queued_for_delivery"
    OUTBOUND_SHIPMENT = "outbound_shipment"
    DELIVERED = "delivered"


class Job(BaseModel):
    """A tracked job.

    Only :mod:`jobtrack.state.machine` produces new ``Job`` values; every
    other component reads jobs or proposes transitions.

    Parameters
    ----------
    job_id : str
        Globally unique, immutable job id (e.g. ``"ECS-20250826-01"``).
    state : JobState
        Current lifecycle state.
    initiated_at : datetime
        When the job entered the system.
    handoff_at : datetime or None
        When the job was first handed to the shop (first reach of
        ``at_shop``).
    completed_at : datetime or None
        When the job reached a terminal state.
    turnaround_time : timedelta or None
        ``completed_at - initiated_at``; computed once.
    updated_at : datetime or None
        Time of the last accepted transition.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    job_id: str
    state: JobState = JobState.QUEUED_FOR_PICKUP
    initiated_at: datetime
    handoff_at: datetime | None = None
    completed_at: datetime | None = None
    turnaround_time: timedelta | None = None
    updated_at: datetime | None = None
    metadata: dict[str, str] = Field(default_factory=dict)

    @field_validator("job_id")
    @classmethod
    def _normalize_job_id(cls, value: str) -> str:
        job_id = value.strip()
        if not job_id:
            raise ValueError("job_id must be non-empty")
        return job_id

    @field_validator("initiated_at", "handoff_at", "completed_at", "updated_at")
    @classmethod
    def _ensure_tz_aware(cls, value: datetime | None) -> datetime | None:
        if value is None:
            return value
        return ensure_utc(value)

    @property
    def turnaround_minutes(self) -> int | None:
        """Turnaround in whole minutes, as shown on portal reports."""
        if self.turnaround_time is None:
            return None
        return round(self.turnaround_time.total_seconds() / 60)

    @property
    def is_complete(self) -> bool:
        return self.completed_at is not None
