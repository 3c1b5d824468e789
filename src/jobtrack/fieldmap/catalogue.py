"""Scope-partitioned field catalogues.

Every form version exposes two disjoint catalogues: job-level fields and
repeated line-item fields.  A :class:`FieldCatalogue` holds both and
refuses to be built if an id appears twice within a scope or in both.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from jobtrack.exceptions import FieldScopeViolationError, JobTrackConfigError
from jobtrack.models.forms import FieldMapEntry, FieldScope, FormType


@dataclass(frozen=True)
class FieldCatalogue:
    """Read-only field reference data for one ``(form_type, version)``."""

    form_type: FormType
    version: str
    entries: tuple[FieldMapEntry, ...]
    provisional: bool = False
    _by_id: dict[str, FieldMapEntry] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        by_id: dict[str, FieldMapEntry] = {}
        for entry in self.entries:
            existing = by_id.get(entry.id)
            if existing is None:
                by_id[entry.id] = entry
                continue
            if existing.scope != entry.scope:
                raise JobTrackConfigError(
                    f"Field id {entry.id} of {self.form_type} v{self.version} "
                    f"is in both the {existing.scope} and {entry.scope} catalogues"
                )
            raise JobTrackConfigError(
                f"Field id {entry.id} is duplicated in the {entry.scope} catalogue "
                f"of {self.form_type} v{self.version}"
            )
        object.__setattr__(self, "_by_id", by_id)

    @classmethod
    def build(
        cls,
        form_type: FormType,
        version: str,
        entries: Iterable[FieldMapEntry],
        *,
        provisional: bool = False,
    ) -> FieldCatalogue:
        return cls(form_type=form_type, version=str(version), entries=tuple(entries), provisional=provisional)

    def get(self, field_id: str) -> FieldMapEntry | None:
        return self._by_id.get(str(field_id).strip())

    def in_scope(self, scope: FieldScope) -> Sequence[FieldMapEntry]:
        return [entry for entry in self.entries if entry.scope == scope]

    def required(self, scope: FieldScope | None = None) -> list[FieldMapEntry]:
        return [entry for entry in self.entries if entry.required and (scope is None or entry.scope == scope)]


def classify_field(catalogue: FieldCatalogue, field_id: str) -> FieldScope | None:
    """Return which catalogue *field_id* belongs to, or ``None`` if unmapped."""
    entry = catalogue.get(field_id)
    return entry.scope if entry is not None else None


def assert_scope(catalogue: FieldCatalogue, field_id: str, expected: FieldScope) -> FieldMapEntry:
    """Return the entry for *field_id*, raising unless it is in *expected* scope."""
    entry = catalogue.get(field_id)
    if entry is None:
        raise FieldScopeViolationError(
            f"Field id {field_id} is not in any catalogue of {catalogue.form_type} v{catalogue.version}",
            field_id=str(field_id),
            expected_scope=expected.value,
        )
    if entry.scope != expected:
        raise FieldScopeViolationError(
            f"Field id {field_id} ({entry.label!r}) belongs to the {entry.scope} catalogue, "
            f"expected {expected}",
            field_id=entry.id,
            expected_scope=expected.value,
            actual_scope=entry.scope.value,
        )
    return entry
