"""Field map resolution between opaque field ids and semantic fields.

Inbound, :meth:`FieldMapResolver.decode_inbound` turns submission answers
into a :class:`SemanticRecord`.  Outbound, :meth:`FieldMapResolver.encode_outbound`
turns semantic values into dispatch responses.  Both directions check the
job-level / line-item partition before any value is accepted or returned.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from jobtrack._constants import EMPTY_VALUE_PLACEHOLDER, LINE_ITEM_KEY_PREFIX
from jobtrack.exceptions import FieldScopeViolationError, JobTrackConfigError
from jobtrack.fieldmap.candidates import FieldCandidates, SemanticField, candidates_for, fields_for
from jobtrack.fieldmap.catalogue import FieldCatalogue, assert_scope, classify_field
from jobtrack.fieldmap.loader import FieldMapLoader
from jobtrack.models.forms import FieldMapEntry, FieldScope, FormType
from jobtrack.models.notification import SubmissionResponse

_logger = logging.getLogger(__name__)


def match_candidates(entries: Sequence[FieldMapEntry], labels: Sequence[str]) -> FieldMapEntry | None:
    """Find the entry for the first matching candidate label.

    All exact matches (in candidate order) are tried before any
    case-insensitive substring match.
    """
    for label in labels:
        for entry in entries:
            if entry.label == label:
                return entry
    for label in labels:
        needle = label.lower()
        for entry in entries:
            if needle in entry.label.lower():
                return entry
    return None


def _match_in_scope(catalogue: FieldCatalogue, candidates: FieldCandidates) -> FieldMapEntry | None:
    return match_candidates(catalogue.in_scope(candidates.scope), candidates.labels)


def resolve_in_catalogue(catalogue: FieldCatalogue, candidates: FieldCandidates) -> FieldMapEntry | None:
    """Resolve a semantic field within its declared scope.

    Raises :class:`FieldScopeViolationError` when the only matching field
    lives in the other catalogue.
    """
    entry = _match_in_scope(catalogue, candidates)
    if entry is not None:
        return entry

    other_scope = FieldScope.LINE_ITEM if candidates.scope == FieldScope.JOB else FieldScope.JOB
    stray = match_candidates(catalogue.in_scope(other_scope), candidates.labels)
    if stray is not None:
        raise FieldScopeViolationError(
            f"{candidates.field} is a {candidates.scope} field but only resolves to "
            f"{stray.id} ({stray.label!r}) in the {other_scope} catalogue of "
            f"{catalogue.form_type} v{catalogue.version}",
            field_id=stray.id,
            expected_scope=candidates.scope.value,
            actual_scope=other_scope.value,
        )
    return None


def provisional_catalogue(
    form_type: FormType,
    version: str,
    responses: Iterable[SubmissionResponse],
) -> FieldCatalogue:
    """Build a catalogue from submission answers when no field map exists.

    Answers carrying a ``multi_key`` are line-item fields.  The first
    occurrence of an id decides its scope.
    """
    entries: dict[str, FieldMapEntry] = {}
    for response in responses:
        if not response.entry_id or response.entry_id in entries:
            continue
        entries[response.entry_id] = FieldMapEntry(
            id=response.entry_id,
            label=response.label,
            type=response.type or "Text",
            scope=FieldScope.LINE_ITEM if response.multi_key else FieldScope.JOB,
        )
    return FieldCatalogue.build(form_type, version, entries.values(), provisional=True)


@dataclass(frozen=True)
class SemanticRecord:
    """Semantic values extracted from one submission."""

    form_type: FormType
    version: str
    values: Mapping[SemanticField, str] = field(default_factory=dict)
    line_items: tuple[Mapping[SemanticField, str], ...] = ()
    unmapped: tuple[str, ...] = ()
    provisional: bool = False

    def get(self, name: SemanticField) -> str | None:
        return self.values.get(name)


class FieldMapResolver:
    """Map between opaque field ids and semantic fields per form version."""

    def __init__(self, loader: FieldMapLoader | None = None) -> None:
        self._loader = loader
        self._catalogues: dict[tuple[FormType, str], FieldCatalogue] = {}

    def register(self, catalogue: FieldCatalogue) -> None:
        """Register reference data for one ``(form_type, version)``."""
        self._catalogues[(catalogue.form_type, catalogue.version)] = catalogue

    def catalogue(self, form_type: FormType, version: str) -> FieldCatalogue | None:
        key = (form_type, str(version))
        catalogue = self._catalogues.get(key)
        if catalogue is not None or self._loader is None:
            return catalogue
        field_map = self._loader.load(str(version))
        if field_map is None:
            return None
        catalogue = FieldCatalogue.build(form_type, str(version), field_map.entries)
        self._catalogues[key] = catalogue
        return catalogue

    def _require_catalogue(self, form_type: FormType, version: str) -> FieldCatalogue:
        catalogue = self.catalogue(form_type, version)
        if catalogue is None:
            raise JobTrackConfigError(f"No field map for {form_type} v{version}")
        return catalogue

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def label_for(self, form_type: FormType, version: str, field_id: str) -> str | None:
        """Return the label of *field_id*, or ``None`` when unmapped."""
        catalogue = self.catalogue(form_type, version)
        if catalogue is None:
            return None
        entry = catalogue.get(field_id)
        return entry.label if entry is not None else None

    def field_id_for(self, form_type: FormType, version: str, label: str) -> str | None:
        """Return the id carrying *label* exactly, or ``None``."""
        catalogue = self.catalogue(form_type, version)
        if catalogue is None:
            return None
        entry = next((e for e in catalogue.entries if e.label == label), None)
        return entry.id if entry is not None else None

    def classify(self, form_type: FormType, version: str, field_id: str) -> FieldScope | None:
        catalogue = self.catalogue(form_type, version)
        if catalogue is None:
            return None
        return classify_field(catalogue, field_id)

    def resolve(self, form_type: FormType, version: str, semantic: SemanticField) -> FieldMapEntry | None:
        """Resolve *semantic* to a field of the given version, or ``None``."""
        return resolve_in_catalogue(self._require_catalogue(form_type, version), candidates_for(semantic))

    # ------------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------------

    def decode_inbound(
        self,
        form_type: FormType,
        version: str,
        responses: Sequence[SubmissionResponse],
    ) -> SemanticRecord:
        """Extract semantic values from submission answers.

        Raises :class:`FieldScopeViolationError` when a job-level answer
        arrives inside a line-item row or a line-item answer arrives
        outside one.
        """
        catalogue = self.catalogue(form_type, version)
        if catalogue is None:
            _logger.warning(
                "No field map for %s v%s; resolving by submitted labels",
                form_type.value,
                version,
            )
            catalogue = provisional_catalogue(form_type, version, responses)

        unmapped: list[str] = []
        for response in responses:
            scope = classify_field(catalogue, response.entry_id)
            if scope is None:
                unmapped.append(response.entry_id)
                continue
            if response.multi_key and scope == FieldScope.JOB:
                raise FieldScopeViolationError(
                    f"Job-level field {response.entry_id} ({response.label!r}) arrived in line-item row "
                    f"{response.multi_key!r}",
                    field_id=response.entry_id,
                    expected_scope=FieldScope.LINE_ITEM.value,
                    actual_scope=FieldScope.JOB.value,
                )
            if not response.multi_key and scope == FieldScope.LINE_ITEM:
                raise FieldScopeViolationError(
                    f"Line-item field {response.entry_id} ({response.label!r}) arrived outside a row",
                    field_id=response.entry_id,
                    expected_scope=FieldScope.JOB.value,
                    actual_scope=FieldScope.LINE_ITEM.value,
                )

        # Answers were checked against their scope above.  A semantic field
        # whose only match is in the other catalogue has no value here.
        values: dict[SemanticField, str] = {}
        job_answers = {r.entry_id: r.value for r in responses if not r.multi_key}
        for semantic in fields_for(form_type, FieldScope.JOB):
            entry = _match_in_scope(catalogue, candidates_for(semantic))
            if entry is None:
                continue
            value = job_answers.get(entry.id)
            if value:
                values[semantic] = value

        line_ids: dict[str, SemanticField] = {}
        for semantic in fields_for(form_type, FieldScope.LINE_ITEM):
            entry = _match_in_scope(catalogue, candidates_for(semantic))
            if entry is not None:
                line_ids.setdefault(entry.id, semantic)

        rows: dict[str, dict[SemanticField, str]] = {}
        for response in responses:
            if not response.multi_key:
                continue
            row = rows.setdefault(response.multi_key, {})
            semantic = line_ids.get(response.entry_id)
            if semantic is not None and response.value:
                row[semantic] = response.value

        return SemanticRecord(
            form_type=form_type,
            version=str(version),
            values=values,
            line_items=tuple(row for row in rows.values() if row),
            unmapped=tuple(unmapped),
            provisional=catalogue.provisional,
        )

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------

    def encode_outbound(
        self,
        form_type: FormType,
        version: str,
        job_values: Mapping[SemanticField, Any],
        line_items: Sequence[Mapping[SemanticField, Any]] = (),
    ) -> list[dict[str, str]]:
        """Build dispatch responses for one form version.

        Job-level values never carry a ``multi_key``; each line item gets
        its own.  Every id is checked against its catalogue before the
        list is returned, so a scope error means nothing is sent.
        """
        catalogue = self._require_catalogue(form_type, version)
        responses: list[dict[str, str]] = []

        for semantic, value in job_values.items():
            if value is None:
                continue
            candidates = candidates_for(SemanticField(semantic))
            if candidates.scope != FieldScope.JOB:
                raise FieldScopeViolationError(
                    f"{candidates.field} is a line-item field and cannot be sent as a job value",
                    expected_scope=FieldScope.JOB.value,
                    actual_scope=candidates.scope.value,
                )
            entry = resolve_in_catalogue(catalogue, candidates)
            if entry is None:
                _logger.debug("No field for %s in %s v%s; skipping", candidates.field, form_type.value, version)
                continue
            assert_scope(catalogue, entry.id, FieldScope.JOB)
            text = str(value)
            responses.append({"entry_id": entry.id, "value": text if text else EMPTY_VALUE_PLACEHOLDER})

        for index, item in enumerate(line_items):
            multi_key = f"{LINE_ITEM_KEY_PREFIX}{index}"
            for semantic, value in item.items():
                if value is None or value == "":
                    continue
                candidates = candidates_for(SemanticField(semantic))
                if candidates.scope != FieldScope.LINE_ITEM:
                    raise FieldScopeViolationError(
                        f"{candidates.field} is a job-level field and cannot be sent in line item {index}",
                        expected_scope=FieldScope.LINE_ITEM.value,
                        actual_scope=candidates.scope.value,
                    )
                entry = resolve_in_catalogue(catalogue, candidates)
                if entry is None:
                    _logger.debug("No field for %s in %s v%s; skipping", candidates.field, form_type.value, version)
                    continue
                assert_scope(catalogue, entry.id, FieldScope.LINE_ITEM)
                responses.append({"entry_id": entry.id, "value": str(value), "multi_key": multi_key})

        return responses
