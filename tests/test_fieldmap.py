from __future__ import annotations

import json

import pytest

from jobtrack.exceptions import FieldScopeViolationError, JobTrackConfigError
from jobtrack.fieldmap.candidates import SemanticField
from jobtrack.fieldmap.catalogue import FieldCatalogue, assert_scope, classify_field
from jobtrack.fieldmap.loader import FieldMapLoader
from jobtrack.fieldmap.resolver import FieldMapResolver, match_candidates
from jobtrack.models.forms import FieldMapEntry, FieldScope, FormType
from jobtrack.models.notification import SubmissionResponse

VERSION = "5695685"


def _job(entry_id: str, label: str) -> FieldMapEntry:
    return FieldMapEntry(id=entry_id, label=label, scope=FieldScope.JOB)


def _line(entry_id: str, label: str) -> FieldMapEntry:
    return FieldMapEntry(id=entry_id, label=label, scope=FieldScope.LINE_ITEM)


def _catalogue() -> FieldCatalogue:
    return FieldCatalogue.build(
        FormType.EMISSIONS,
        VERSION,
        [
            _job("100", "Job ID"),
            _job("101", "PO Number (Check In)"),
            _job("102", "Customer Name"),
            _job("103", "New GPS"),
            _job("104", "Handoff Date"),
            _job("105", "Handoff Time"),
            _job("106", "Submission Status"),
            _job("107", "Shop Name"),
            _line("200", "Part"),
            _line("201", "ECS Serial Number"),
            _line("202", "PO Number"),
        ],
    )


def _resolver() -> FieldMapResolver:
    resolver = FieldMapResolver()
    resolver.register(_catalogue())
    return resolver


def _response(entry_id: str, label: str, value: str, multi_key: str | None = None) -> SubmissionResponse:
    return SubmissionResponse(entry_id=entry_id, label=label, value=value, multi_key=multi_key)


# ------------------------------------------------------------------
# Catalogue
# ------------------------------------------------------------------


def test_classify_field_is_scope_membership() -> None:
    catalogue = _catalogue()

    assert classify_field(catalogue, "100") == FieldScope.JOB
    assert classify_field(catalogue, "200") == FieldScope.LINE_ITEM
    assert classify_field(catalogue, "999") is None


def test_catalogue_rejects_id_in_both_scopes() -> None:
    with pytest.raises(JobTrackConfigError):
        FieldCatalogue.build(FormType.PICKUP, "1", [_job("1", "Job ID"), _line("1", "Part")])


def test_catalogue_rejects_duplicate_id_within_scope() -> None:
    with pytest.raises(JobTrackConfigError):
        FieldCatalogue.build(FormType.PICKUP, "1", [_job("1", "Job ID"), _job("1", "Job Number")])


def test_assert_scope_raises_for_line_item_id() -> None:
    with pytest.raises(FieldScopeViolationError) as exc_info:
        assert_scope(_catalogue(), "202", FieldScope.JOB)

    assert exc_info.value.field_id == "202"
    assert exc_info.value.actual_scope == "line_item"


# ------------------------------------------------------------------
# Candidate precedence
# ------------------------------------------------------------------


def test_exact_match_beats_earlier_substring_match() -> None:
    entries = [_job("1", "Customer PO Number (Check In) Notes"), _job("2", "PO Number")]

    entry = match_candidates(entries, ("PO Number (Check In)", "PO Number"))

    assert entry is not None
    assert entry.id == "2"


def test_substring_match_is_case_insensitive() -> None:
    entry = match_candidates([_job("1", "ECS JOB ID (portal)")], ("Job ID",))

    assert entry is not None
    assert entry.id == "1"


def test_job_field_resolves_within_its_own_scope() -> None:
    entry = _resolver().resolve(FormType.EMISSIONS, VERSION, SemanticField.PO_NUMBER)

    assert entry is not None
    assert entry.id == "101"


def test_job_field_resolving_only_to_line_item_raises() -> None:
    resolver = FieldMapResolver()
    resolver.register(
        FieldCatalogue.build(FormType.EMISSIONS, VERSION, [_job("100", "Job ID"), _line("202", "PO Number")])
    )

    with pytest.raises(FieldScopeViolationError) as exc_info:
        resolver.resolve(FormType.EMISSIONS, VERSION, SemanticField.PO_NUMBER)

    assert exc_info.value.field_id == "202"
    assert exc_info.value.expected_scope == "job"


def test_unmapped_semantic_field_is_none() -> None:
    assert _resolver().resolve(FormType.EMISSIONS, VERSION, SemanticField.DELIVERED_TO) is None


def test_label_lookups_in_both_directions() -> None:
    resolver = _resolver()

    assert resolver.label_for(FormType.EMISSIONS, VERSION, "104") == "Handoff Date"
    assert resolver.label_for(FormType.EMISSIONS, VERSION, "999") is None
    assert resolver.field_id_for(FormType.EMISSIONS, VERSION, "Handoff Time") == "105"
    assert resolver.classify(FormType.EMISSIONS, VERSION, "201") == FieldScope.LINE_ITEM


# ------------------------------------------------------------------
# Inbound
# ------------------------------------------------------------------


def test_decode_inbound_splits_job_values_and_line_items() -> None:
    responses = [
        _response("100", "Job ID", "ECS-20250826-01"),
        _response("106", "Submission Status", "Check In"),
        _response("200", "Part", "DPF", "r1"),
        _response("201", "ECS Serial Number", "SN-1", "r1"),
        _response("200", "Part", "DOC", "r2"),
        _response("999", "Photo", "img.jpg"),
    ]

    record = _resolver().decode_inbound(FormType.EMISSIONS, VERSION, responses)

    assert record.get(SemanticField.JOB_ID) == "ECS-20250826-01"
    assert record.get(SemanticField.WORKFLOW_STATUS) == "Check In"
    assert record.line_items == (
        {SemanticField.PART: "DPF", SemanticField.ECS_SERIAL: "SN-1"},
        {SemanticField.PART: "DOC"},
    )
    assert record.unmapped == ("999",)
    assert record.provisional is False


def test_decode_inbound_rejects_job_field_inside_row() -> None:
    responses = [_response("100", "Job ID", "ECS-1", "r1")]

    with pytest.raises(FieldScopeViolationError):
        _resolver().decode_inbound(FormType.EMISSIONS, VERSION, responses)


def test_decode_inbound_rejects_line_item_field_outside_row() -> None:
    responses = [_response("100", "Job ID", "ECS-1"), _response("200", "Part", "DPF")]

    with pytest.raises(FieldScopeViolationError):
        _resolver().decode_inbound(FormType.EMISSIONS, VERSION, responses)


def test_decode_inbound_ignores_semantic_field_only_mapped_in_rows() -> None:
    resolver = FieldMapResolver()
    resolver.register(
        FieldCatalogue.build(
            FormType.EMISSIONS,
            VERSION,
            [_job("100", "Job ID"), _job("106", "Submission Status"), _line("200", "Part"), _line("202", "PO Number")],
        )
    )
    responses = [
        _response("100", "Job ID", "ECS-1"),
        _response("106", "Submission Status", "Check In"),
        _response("200", "Part", "DPF", "r1"),
        _response("202", "PO Number", "PO-77", "r1"),
    ]

    record = resolver.decode_inbound(FormType.EMISSIONS, VERSION, responses)

    assert record.get(SemanticField.JOB_ID) == "ECS-1"
    assert record.get(SemanticField.WORKFLOW_STATUS) == "Check In"
    assert record.get(SemanticField.PO_NUMBER) is None
    assert record.line_items == ({SemanticField.PART: "DPF"},)


def test_decode_inbound_without_field_map_tolerates_row_only_labels() -> None:
    responses = [
        _response("7001", "Job ID", "ECS-9"),
        _response("7003", "PO Number", "PO-77", "r1"),
    ]

    record = FieldMapResolver().decode_inbound(FormType.EMISSIONS, "6000000", responses)

    assert record.get(SemanticField.JOB_ID) == "ECS-9"
    assert record.get(SemanticField.PO_NUMBER) is None


def test_decode_inbound_without_field_map_matches_by_label() -> None:
    responses = [
        _response("7001", "Job ID", "ECS-9"),
        _response("7002", "Part", "DPF", "r1"),
    ]

    record = FieldMapResolver().decode_inbound(FormType.EMISSIONS, "6000000", responses)

    assert record.provisional is True
    assert record.get(SemanticField.JOB_ID) == "ECS-9"
    assert record.line_items == ({SemanticField.PART: "DPF"},)


# ------------------------------------------------------------------
# Outbound
# ------------------------------------------------------------------


def test_encode_outbound_keeps_job_values_out_of_rows() -> None:
    payload = _resolver().encode_outbound(
        FormType.EMISSIONS,
        VERSION,
        {
            SemanticField.JOB_ID: "ECS-1",
            SemanticField.CUSTOMER_NAME: "",
            SemanticField.SHOP_NAME: None,
        },
        [{SemanticField.PART: "DPF", SemanticField.ECS_SERIAL: "SN-1"}, {SemanticField.PART: "DOC"}],
    )

    assert payload == [
        {"entry_id": "100", "value": "ECS-1"},
        {"entry_id": "102", "value": "N/A"},
        {"entry_id": "200", "value": "DPF", "multi_key": "part_0"},
        {"entry_id": "201", "value": "SN-1", "multi_key": "part_0"},
        {"entry_id": "200", "value": "DOC", "multi_key": "part_1"},
    ]
    assert all("multi_key" not in item for item in payload if item["entry_id"] in {"100", "102"})


def test_encode_outbound_refuses_line_item_field_as_job_value() -> None:
    with pytest.raises(FieldScopeViolationError):
        _resolver().encode_outbound(FormType.EMISSIONS, VERSION, {SemanticField.PART: "DPF"})


def test_encode_outbound_refuses_ghost_line_item() -> None:
    resolver = FieldMapResolver()
    resolver.register(
        FieldCatalogue.build(FormType.EMISSIONS, VERSION, [_job("100", "Job ID"), _line("202", "PO Number")])
    )

    with pytest.raises(FieldScopeViolationError):
        resolver.encode_outbound(
            FormType.EMISSIONS,
            VERSION,
            {SemanticField.JOB_ID: "ECS-1", SemanticField.PO_NUMBER: "PO-77"},
        )


def test_encode_outbound_requires_field_map() -> None:
    with pytest.raises(JobTrackConfigError):
        FieldMapResolver().encode_outbound(FormType.PICKUP, "1", {SemanticField.JOB_ID: "ECS-1"})


# ------------------------------------------------------------------
# Loader
# ------------------------------------------------------------------


def test_loader_reads_and_caches_field_map(tmp_path) -> None:
    (tmp_path / f"{VERSION}.json").write_text(
        json.dumps(
            {
                "form_id": VERSION,
                "version": 3,
                "updated_at": "2025-08-26T10:00:00Z",
                "entries": [
                    {"id": 100, "label": "Job ID", "required": True, "type": "Text"},
                    {"id": 200, "label": "Part", "type": "Text", "scope": "line_item"},
                ],
            }
        ),
        encoding="utf-8",
    )
    loader = FieldMapLoader(tmp_path)
    resolver = FieldMapResolver(loader)

    entry = resolver.resolve(FormType.EMISSIONS, VERSION, SemanticField.JOB_ID)

    assert entry is not None
    assert entry.id == "100"
    assert entry.required is True
    assert resolver.classify(FormType.EMISSIONS, VERSION, "200") == FieldScope.LINE_ITEM
    assert loader.loaded_form_ids() == [VERSION]


def test_loader_missing_file_is_none(tmp_path) -> None:
    assert FieldMapLoader(tmp_path).load("123") is None


def test_loader_rejects_mismatched_form_id(tmp_path) -> None:
    (tmp_path / "123.json").write_text(json.dumps({"form_id": "456", "entries": []}), encoding="utf-8")

    with pytest.raises(JobTrackConfigError):
        FieldMapLoader(tmp_path).load("123")
