"""GPS fix and timezone models."""

from __future__ import annotations

from datetime import datetime, timedelta
from enum import StrEnum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from jobtrack.ingestion.normalize import safe_float
from jobtrack.models._base import ensure_utc


class GpsFix(BaseModel):
    """A single device GPS reading attached to a submission.

    Never persisted on its own; it only annotates the job transition it
    arrived with.

    Parameters
    ----------
    latitude : float
        Latitude in degrees.
    longitude : float
        Longitude in degrees.
    accuracy : float
        Reported accuracy (``Acc``); ``0.0`` when absent.
    timestamp : datetime or None
        Device ``Time`` value as a UTC instant.  ``None`` only when the
        value was rejected as corrupt.
    raw : str
        Telemetry string as received.
    """

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    latitude: float = Field(validation_alias=AliasChoices("latitude", "lat", "Lat"))
    longitude: float = Field(validation_alias=AliasChoices("longitude", "lon", "lng", "Lon"))
    accuracy: float = Field(default=0.0, validation_alias=AliasChoices("accuracy", "acc", "Acc"))
    timestamp: datetime | None = None
    raw: str = ""

    @field_validator("latitude", "longitude", mode="before")
    @classmethod
    def _coerce_coordinate(cls, value: Any) -> float:
        parsed = safe_float(value)
        if parsed is None:
            raise ValueError(f"not a coordinate: {value!r}")
        return parsed

    @field_validator("latitude")
    @classmethod
    def _check_latitude(cls, value: float) -> float:
        if not -90.0 <= value <= 90.0:
            raise ValueError(f"latitude out of range: {value}")
        return value

    @field_validator("longitude")
    @classmethod
    def _check_longitude(cls, value: float) -> float:
        if not -180.0 <= value <= 180.0:
            raise ValueError(f"longitude out of range: {value}")
        return value

    @field_validator("accuracy", mode="before")
    @classmethod
    def _coerce_accuracy(cls, value: Any) -> float:
        parsed = safe_float(value)
        return 0.0 if parsed is None else parsed

    @field_validator("timestamp")
    @classmethod
    def _ensure_tz_aware(cls, value: datetime | None) -> datetime | None:
        if value is None:
            return value
        return ensure_utc(value)


class TimezoneInfo(BaseModel):
    """Timezone resolved for a coordinate pair."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    zone_id: str
    zone_name: str = ""
    utc_offset_seconds: int = 0
    dst_offset_seconds: int = 0

    @property
    def total_offset(self) -> timedelta:
        return timedelta(seconds=self.utc_offset_seconds + self.dst_offset_seconds)


class TimeSource(StrEnum):
    """Where a normalized event time came from."""

    GPS = "gps"
    """Device GPS ``Time`` value (already an instant)."""
    LOCAL = "local"
    """Local wall-clock fields converted with the resolved timezone,
    or taken as UTC when the timezone is unknown."""
    SUBMITTED = "submitted"
    """Submission time reported by the field platform."""
    RECEIVED = "received"
    """Time the notification was received; used when nothing else is usable."""


class NormalizedTime(BaseModel):
    """An event time after timezone normalization.

    ``timezone_known`` is ``False`` when a local wall-clock value was taken
    as UTC because the timezone lookup was unavailable.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    instant: datetime
    source: TimeSource
    zone_id: str | None = None
    timezone_known: bool = True
    fix: GpsFix | None = None

    @field_validator("instant")
    @classmethod
    def _ensure_tz_aware(cls, value: datetime) -> datetime:
        return ensure_utc(value)
