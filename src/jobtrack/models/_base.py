"""Base model for field-platform payloads.

Every model parsed from the field-service platform inherits from
:class:`PlatformBaseModel` which provides:

* A ``model_validator(mode="before")`` that strips placeholder values
  (``""``, ``"--"``, NaN) so the field default is used.
* A ``raw`` dict that captures the original payload.

:data:`PlatformTimestamp` coerces epoch seconds, epoch milliseconds and
ISO-8601 strings to aware UTC datetimes.
"""

from __future__ import annotations

import math
from datetime import UTC, datetime
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, model_validator

from jobtrack.ingestion.normalize import normalize_timestamp_seconds

# Placeholder strings the platform uses for "not answered".
_SENTINELS = frozenset({"", "--", "NaN", "nan"})


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes; convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def parse_platform_timestamp(value: Any) -> datetime | None:
    """Convert a platform timestamp to a UTC datetime.

    Accepts epoch seconds or milliseconds (numeric or numeric string) and
    ISO-8601 strings.  Returns ``None`` when the value is ``None``.
    """
    if value is None:
        return value
    if isinstance(value, datetime):
        return ensure_utc(value)
    seconds = normalize_timestamp_seconds(value)
    if seconds is not None:
        return datetime.fromtimestamp(seconds, tz=UTC)
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return ensure_utc(datetime.fromisoformat(text))
    except ValueError as exc:
        raise ValueError(f"unrecognised timestamp: {value!r}") from exc


PlatformTimestamp = Annotated[datetime | None, BeforeValidator(parse_platform_timestamp)]
"""Annotated type that coerces platform timestamps to UTC datetimes."""


class PlatformBaseModel(BaseModel):
    """Base for field-platform payload models.

    Handles:
    * placeholder values (``""``, ``"--"``, NaN) -> dropped so the field
      default is used instead
    * Stashes the original payload dict in ``raw``
    """

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
    )

    raw: dict[str, Any] = Field(default_factory=dict)
    """Original payload dict."""

    @staticmethod
    def _clean_dict(values: dict[str, Any]) -> dict[str, Any]:
        cleaned: dict[str, Any] = {}
        for key, value in values.items():
            if value is None:
                continue
            if isinstance(value, str) and value.strip() in _SENTINELS:
                continue
            if isinstance(value, float) and math.isnan(value):
                continue
            cleaned[key] = value
        return cleaned

    @model_validator(mode="before")
    @classmethod
    def _clean_platform_values(cls, values: Any) -> Any:
        """Strip placeholder values and stash the raw payload."""
        if not isinstance(values, dict):
            return values
        original = dict(values)
        cleaned = PlatformBaseModel._clean_dict(original)

        # Only auto-stash raw when not explicitly provided.
        if "raw" not in values:
            cleaned["raw"] = original
        return cleaned
