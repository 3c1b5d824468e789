"""Form version and field map models."""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from jobtrack._constants import MAX_FORM_HISTORY
from jobtrack.models._base import PlatformTimestamp


class FormType(StrEnum):
    """Logical form categories submitted from the field."""

    PICKUP = "pickup"
    EMISSIONS = "emissions"
    DELIVERY = "delivery"


class FieldScope(StrEnum):
    """Which of a form's two disjoint field catalogues an id belongs to."""

    JOB = "job"
    """Coarse job-level data (check-in screen)."""
    LINE_ITEM = "line_item"
    """Repeated line-item data (loop screen, one row per part)."""


class FormVersion(BaseModel):
    """Current and superseded form ids for one form type.

    ``history`` is most-recent-first.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    form_type: FormType
    current: str
    history: tuple[str, ...] = ()

    @field_validator("current")
    @classmethod
    def _strip_current(cls, value: str) -> str:
        form_id = value.strip()
        if not form_id:
            raise ValueError("current form id must be non-empty")
        return form_id

    @field_validator("history", mode="before")
    @classmethod
    def _coerce_history(cls, value: Any) -> tuple[str, ...]:
        if value is None:
            return ()
        return tuple(str(item).strip() for item in value if str(item).strip())

    def all_ids(self) -> tuple[str, ...]:
        return (self.current, *self.history)

    def remapped(self, new_id: str, *, max_history: int = MAX_FORM_HISTORY) -> FormVersion:
        """Return a copy with *new_id* current and the old id pushed to history."""
        new_id = new_id.strip()
        if new_id == self.current:
            return self
        history = [self.current, *(form_id for form_id in self.history if form_id != new_id)]
        return FormVersion(form_type=self.form_type, current=new_id, history=tuple(history[:max_history]))


class FieldMapEntry(BaseModel):
    """One field of one form version."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    id: str = Field(validation_alias=AliasChoices("id", "entry_id"))
    """Opaque identifier assigned by the field platform."""
    label: str
    """Human-readable label shown on the form."""
    required: bool = False
    type: str = Field(default="Text")
    """Primitive kind (``Text``, ``Date``, ``Time``, ``GPS``, ...)."""
    scope: FieldScope = FieldScope.JOB

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> str:
        # Field maps exported from the platform use integer ids.
        return str(value).strip()


class FieldMap(BaseModel):
    """A field map document for one form version."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    form_id: str
    version: int | None = None
    updated_at: PlatformTimestamp = None
    entries: tuple[FieldMapEntry, ...] = ()

    @field_validator("form_id", mode="before")
    @classmethod
    def _coerce_form_id(cls, value: Any) -> str:
        return str(value).strip()

    @property
    def total_fields(self) -> int:
        return len(self.entries)
