"""Pure extraction helpers for decoded submissions."""

from __future__ import annotations

import re
from collections.abc import Iterable
from datetime import datetime

from jobtrack.fieldmap.candidates import SemanticField
from jobtrack.fieldmap.resolver import SemanticRecord
from jobtrack.models.forms import FormType
from jobtrack.models.job import JobState
from jobtrack.models.notification import SubmissionResponse
from jobtrack.state.lifecycle import TERMINAL_STATES

_HANDOFF_WORDS = ("check in", "checked in", "check-in", "checkin", "handoff", "hand off", "hand-off")

#: States stamped with the submission time rather than the handoff time.
COMPLETION_STATES = frozenset({JobState.SERVICE_COMPLETE, *TERMINAL_STATES})

_COMMENT_FIELDS = (
    (SemanticField.DRIVER_NOTES, "Driver Notes"),
    (SemanticField.ADDITIONAL_COMMENTS, "Additional Comments"),
)

_FORM_DEFAULTS: dict[FormType, JobState] = {
    FormType.PICKUP: JobState.PICKED_UP,
    FormType.DELIVERY: JobState.DELIVERED,
    FormType.EMISSIONS: JobState.SERVICE_COMPLETE,
}


def _as_state_name(text: str) -> str:
    return re.sub(r"[\s\-]+", "_", text.strip().lower())


def state_from_status(status: str | None) -> JobState | None:
    """Return the lifecycle state a workflow status names, if any."""
    if not status:
        return None
    try:
        return JobState(_as_state_name(status))
    except ValueError:
        return None


def is_handoff_status(status: str | None) -> bool:
    if not status:
        return False
    lowered = status.lower()
    return any(word in lowered for word in _HANDOFF_WORDS)


def derive_candidate(form_type: FormType, status: str | None = None) -> JobState:
    """Map a submitted form to the lifecycle state it reports.

    An explicit status naming a state wins.  Otherwise pickup forms report
    ``picked_up`` and delivery forms ``delivered``; the service log reports
    ``at_shop`` for a check-in/handoff and ``service_complete`` otherwise.
    """
    explicit = state_from_status(status)
    if explicit is not None:
        return explicit
    if form_type == FormType.EMISSIONS and is_handoff_status(status):
        return JobState.AT_SHOP
    return _FORM_DEFAULTS[form_type]


def extract_job_id(
    record: SemanticRecord,
    responses: Iterable[SubmissionResponse] = (),
    *,
    prefix: str = "",
) -> str | None:
    """Return the job id of a submission.

    Falls back to any job-level answer whose label mentions "job" and whose
    value carries the portal prefix.
    """
    job_id = record.get(SemanticField.JOB_ID)
    if job_id:
        return job_id.strip()
    if not prefix:
        return None
    for response in responses:
        if response.multi_key or "job" not in response.label.lower():
            continue
        if response.value.startswith(prefix):
            return response.value.strip()
    return None


def transition_plan(
    form_type: FormType,
    candidate: JobState,
    *,
    event_at: datetime,
    completed_at: datetime,
) -> list[tuple[JobState, datetime]]:
    """Return the ``(state, time)`` steps that report *candidate*.

    Completion states are stamped with *completed_at*; everything else with
    *event_at*.  A completed service log first passes through
    ``in_service`` at the handoff time, so the shop's intake and completion
    each keep their own time.
    """
    if candidate not in COMPLETION_STATES:
        return [(candidate, event_at)]
    if form_type == FormType.EMISSIONS and candidate == JobState.SERVICE_COMPLETE:
        return [(JobState.IN_SERVICE, event_at), (candidate, completed_at)]
    return [(candidate, completed_at)]


def submission_comments(record: SemanticRecord) -> list[str]:
    """Free-text answers to keep as job comments, tagged by their source."""
    comments: list[str] = []
    for semantic, title in _COMMENT_FIELDS:
        text = (record.get(semantic) or "").strip()
        if text:
            comments.append(f"[{title}] {text}")
    return comments


def part_rows(record: SemanticRecord) -> list[dict[str, str]]:
    return [{semantic.value: value for semantic, value in row.items()} for row in record.line_items]
