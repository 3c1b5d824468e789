"""Inbound notification and submission models."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from jobtrack.ingestion.normalize import safe_str
from jobtrack.models._base import PlatformBaseModel, PlatformTimestamp


class SubmissionNotification(BaseModel):
    """A parsed ``submission-notification`` webhook body."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    form_id: str
    submission_id: str
    submission_guid: str | None = None
    form_name: str | None = None
    form_guid: str | None = None
    dispatch_item_id: str | None = None

    @property
    def idempotency_key(self) -> str:
        """Unique key of the physical submission.

        The guid is preferred; older notifications without one fall back
        to the numeric submission id.
        """
        return self.submission_guid or self.submission_id


class NotificationRecord(BaseModel):
    """Proof that a submission was admitted.  Inserted once, never updated."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    submission_id: str
    form_id: str
    processed_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class SubmissionResponse(PlatformBaseModel):
    """One answered field of a submission.

    ``multi_key`` is set when the answer belongs to a repeated line-item
    row; all answers of one row share the same key.
    """

    entry_id: str = Field(default="", validation_alias=AliasChoices("entry_id", "entryId", "id"))
    label: str = ""
    value: str = ""
    type: str | None = None
    multi_key: str | None = Field(default=None, validation_alias=AliasChoices("multi_key", "multiKey"))

    @field_validator("entry_id", "value", mode="before")
    @classmethod
    def _coerce_str(cls, value: Any) -> str:
        return safe_str(value) or ""

    @field_validator("label", mode="before")
    @classmethod
    def _strip_label(cls, value: Any) -> str:
        return safe_str(value) or ""


class Submission(PlatformBaseModel):
    """A full submission fetched from the field platform."""

    id: str = ""
    form_id: str | None = None
    submitted_at: PlatformTimestamp = None
    user_id: str | None = None
    responses: tuple[SubmissionResponse, ...] = ()

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> str:
        return safe_str(value) or ""

    @field_validator("form_id", "user_id", mode="before")
    @classmethod
    def _coerce_optional_ids(cls, value: Any) -> str | None:
        return safe_str(value)
