"""Semantic field candidate tables.

Each semantic field lists the form labels that may carry it, in priority
order.  Resolution tries exact matches across the whole list before any
case-insensitive substring match, so an earlier candidate always beats a
later one and an exact label always beats a partial one.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import StrEnum
from types import MappingProxyType

from jobtrack.models.forms import FieldScope, FormType


class SemanticField(StrEnum):
    # Job-level
    JOB_ID = "job_id"
    PO_NUMBER = "po_number"
    CUSTOMER_NAME = "customer_name"
    SHOP_NAME = "shop_name"
    CONTACT_NAME = "contact_name"
    CONTACT_NUMBER = "contact_number"
    GPS = "gps"
    HANDOFF_GPS = "handoff_gps"
    HANDOFF_DATE = "handoff_date"
    HANDOFF_TIME = "handoff_time"
    WORKFLOW_STATUS = "workflow_status"
    DRIVER_NOTES = "driver_notes"
    DELIVERED_TO = "delivered_to"
    ADDITIONAL_COMMENTS = "additional_comments"
    # Line-item (one row per part)
    PART = "part"
    PROCESS = "process"
    ECS_SERIAL = "ecs_serial"
    FILTER_PART_NUMBER = "filter_part_number"
    ECS_PART_NUMBER = "ecs_part_number"
    PART_DESCRIPTION = "part_description"
    PASS_OR_FAIL = "pass_or_fail"
    REQUIRE_REPAIRS = "require_repairs"
    FAILED_REASON = "failed_reason"
    REPAIRS_PERFORMED = "repairs_performed"


@dataclass(frozen=True, slots=True)
class FieldCandidates:
    field: SemanticField
    scope: FieldScope
    labels: tuple[str, ...]


def _job(field: SemanticField, *labels: str) -> FieldCandidates:
    return FieldCandidates(field=field, scope=FieldScope.JOB, labels=labels)


def _line(field: SemanticField, *labels: str) -> FieldCandidates:
    return FieldCandidates(field=field, scope=FieldScope.LINE_ITEM, labels=labels)


CANDIDATES: Mapping[SemanticField, FieldCandidates] = MappingProxyType(
    {
        c.field: c
        for c in (
            _job(SemanticField.JOB_ID, "Job ID", "ECS Job ID", "Job Id", "Job Number"),
            # "PO Number" alone also exists on the parts loop; the check-in label wins.
            _job(SemanticField.PO_NUMBER, "PO Number (Check In)", "PO Number"),
            _job(SemanticField.CUSTOMER_NAME, "Customer Name"),
            _job(SemanticField.SHOP_NAME, "Shop Name"),
            _job(SemanticField.CONTACT_NAME, "Contact Name"),
            _job(SemanticField.CONTACT_NUMBER, "Contact Number"),
            _job(SemanticField.GPS, "GPS"),
            _job(SemanticField.HANDOFF_GPS, "New GPS", "Handoff GPS"),
            _job(SemanticField.HANDOFF_DATE, "Handoff Date", "Hand Off Date"),
            _job(SemanticField.HANDOFF_TIME, "Handoff Time", "Hand Off Time"),
            _job(SemanticField.WORKFLOW_STATUS, "Submission Status", "Workflow Status", "Job Status"),
            _job(SemanticField.DRIVER_NOTES, "Driver Notes"),
            _job(SemanticField.DELIVERED_TO, "Delivered To"),
            _job(SemanticField.ADDITIONAL_COMMENTS, "Additional Comments"),
            _line(SemanticField.PART, "Part"),
            _line(SemanticField.PROCESS, "Process Being Performed"),
            _line(SemanticField.ECS_SERIAL, "ECS Serial Number"),
            _line(SemanticField.FILTER_PART_NUMBER, "Filter Part Number"),
            _line(SemanticField.ECS_PART_NUMBER, "ECS Part Number"),
            _line(SemanticField.PART_DESCRIPTION, "Part Description"),
            _line(SemanticField.PASS_OR_FAIL, "Did the Part Pass or Fail?"),
            _line(SemanticField.REQUIRE_REPAIRS, "Did the Part Require Repairs?"),
            _line(SemanticField.FAILED_REASON, "Failed Reason"),
            _line(SemanticField.REPAIRS_PERFORMED, "Which Repairs Were Performed"),
        )
    }
)

_COMMON: tuple[SemanticField, ...] = (
    SemanticField.JOB_ID,
    SemanticField.WORKFLOW_STATUS,
)

FORM_FIELDS: Mapping[FormType, tuple[SemanticField, ...]] = MappingProxyType(
    {
        FormType.PICKUP: (
            *_COMMON,
            SemanticField.PO_NUMBER,
            SemanticField.CONTACT_NAME,
            SemanticField.CONTACT_NUMBER,
            SemanticField.GPS,
            SemanticField.DRIVER_NOTES,
        ),
        FormType.EMISSIONS: (
            *_COMMON,
            SemanticField.PO_NUMBER,
            SemanticField.CUSTOMER_NAME,
            SemanticField.SHOP_NAME,
            SemanticField.HANDOFF_GPS,
            SemanticField.HANDOFF_DATE,
            SemanticField.HANDOFF_TIME,
            SemanticField.ADDITIONAL_COMMENTS,
            SemanticField.PART,
            SemanticField.PROCESS,
            SemanticField.ECS_SERIAL,
            SemanticField.FILTER_PART_NUMBER,
            SemanticField.ECS_PART_NUMBER,
            SemanticField.PART_DESCRIPTION,
            SemanticField.PASS_OR_FAIL,
            SemanticField.REQUIRE_REPAIRS,
            SemanticField.FAILED_REASON,
            SemanticField.REPAIRS_PERFORMED,
        ),
        FormType.DELIVERY: (
            *_COMMON,
            SemanticField.GPS,
            SemanticField.DRIVER_NOTES,
            SemanticField.DELIVERED_TO,
        ),
    }
)


def candidates_for(field: SemanticField) -> FieldCandidates:
    return CANDIDATES[field]


def fields_for(form_type: FormType, scope: FieldScope | None = None) -> tuple[SemanticField, ...]:
    fields = FORM_FIELDS[form_type]
    if scope is None:
        return fields
    return tuple(f for f in fields if CANDIDATES[f].scope == scope)
