"""Inbound notification ingestion.

:class:`NotificationIngester` runs one webhook body through the pipeline::

    parse -> registry -> guard -> fetch -> resolve -> extract -> normalize -> transition -> annotate

Completion states are stamped with the submission time; intake states with
the normalized handoff time.  Comments and part rows are kept on the job
timeline even when the transition itself is rejected.

Each call is isolated: whatever goes wrong is reported on the returned
:class:`IngestionResult` and the sender is always acknowledged.  Submissions
are admitted before they are processed, so a submission that fails after
admission is not retried (at-most-once delivery).
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import time
from collections import Counter
from collections.abc import Callable, Iterable, Mapping, MutableMapping
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any, Protocol

from jobtrack._redact import redact_for_log
from jobtrack.config import JobTrackConfig
from jobtrack.exceptions import (
    FieldScopeViolationError,
    JobNotFoundError,
    JobTrackError,
    MalformedPayloadError,
    OutOfOrderTransitionError,
    UnknownFormVersionError,
)
from jobtrack.fieldmap.candidates import SemanticField
from jobtrack.fieldmap.resolver import FieldMapResolver, SemanticRecord
from jobtrack.geo.normalizer import GeoTimeNormalizer
from jobtrack.ingestion.extract import (
    COMPLETION_STATES,
    derive_candidate,
    extract_job_id,
    part_rows,
    submission_comments,
    transition_plan,
)
from jobtrack.ingestion.idempotency import AdmitResult, IdempotencyGuard
from jobtrack.ingestion.metrics import IngestionMetrics
from jobtrack.ingestion.normalize import prune_record
from jobtrack.ingestion.payload import parse_notification
from jobtrack.models.forms import FormType
from jobtrack.models.gps import NormalizedTime, TimeSource
from jobtrack.models.job import Job, JobState
from jobtrack.models.notification import Submission, SubmissionNotification
from jobtrack.registry.forms import FormVersionRegistry
from jobtrack.state.machine import JobStateMachine

_logger = logging.getLogger(__name__)


class IngestionOutcome(StrEnum):
    APPLIED = "applied"
    UNCHANGED = "unchanged"
    DUPLICATE = "duplicate"
    IGNORED = "ignored"
    MALFORMED = "malformed"
    REJECTED = "rejected"
    SCOPE_VIOLATION = "scope_violation"
    FAILED = "failed"


class Stage(StrEnum):
    PARSE = "parse"
    REGISTRY = "registry"
    GUARD = "guard"
    FETCH = "fetch"
    RESOLVE = "resolve"
    EXTRACT = "extract"
    NORMALIZE = "normalize"
    TRANSITION = "transition"
    ANNOTATE = "annotate"


@dataclasses.dataclass(frozen=True)
class StageEvent:
    """A diagnostic emitted by one pipeline stage for one notification."""

    notification_id: str
    stage: Stage
    level: int
    message: str
    data: Mapping[str, Any] = dataclasses.field(default_factory=dict)


@dataclasses.dataclass(frozen=True)
class IngestionResult:
    outcome: IngestionOutcome
    metrics: IngestionMetrics
    notification: SubmissionNotification | None = None
    form_type: FormType | None = None
    job_id: str | None = None
    candidate: JobState | None = None
    job: Job | None = None
    event_time: NormalizedTime | None = None
    events: tuple[StageEvent, ...] = ()

    @property
    def acknowledge(self) -> bool:
        """The sender is acknowledged for every outcome so it stops retrying."""
        return True

    def events_for(self, stage: Stage) -> list[StageEvent]:
        return [event for event in self.events if event.stage == stage]


class SubmissionSource(Protocol):
    """Fetches the full submission a notification refers to."""

    async def fetch_submission(self, submission_id: str) -> Submission:
        ...


class NotificationLogAdapter(logging.LoggerAdapter):
    """Prefix records with the notification id and expose it in ``extra``."""

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> tuple[Any, MutableMapping[str, Any]]:
        extra = dict(self.extra or {})
        extra.update(kwargs.get("extra") or {})
        kwargs["extra"] = extra
        return f"[{extra.get('notification_id', '-')}] {msg}", kwargs


class _Trace:
    """Collects :class:`StageEvent` values and mirrors them to the log."""

    def __init__(self, notification_id: str = "-") -> None:
        self.notification_id = notification_id
        self.events: list[StageEvent] = []

    def emit(self, stage: Stage, level: int, message: str, **data: Any) -> None:
        self.events.append(
            StageEvent(
                notification_id=self.notification_id,
                stage=stage,
                level=level,
                message=message,
                data=data,
            )
        )
        adapter = NotificationLogAdapter(_logger, {"notification_id": self.notification_id, "stage": stage.value})
        adapter.log(level, "%s: %s", stage.value, message)


# Which answer carries the position and local time for each form.
_GPS_FIELDS: dict[FormType, tuple[SemanticField, ...]] = {
    FormType.PICKUP: (SemanticField.GPS,),
    FormType.EMISSIONS: (SemanticField.HANDOFF_GPS, SemanticField.GPS),
    FormType.DELIVERY: (SemanticField.GPS,),
}


def _first_value(record: SemanticRecord, fields: Iterable[SemanticField]) -> str | None:
    for semantic in fields:
        value = record.get(semantic)
        if value:
            return value
    return None


class NotificationIngester:
    """Reconcile inbound submission notifications into job state."""

    def __init__(
        self,
        *,
        registry: FormVersionRegistry,
        guard: IdempotencyGuard,
        source: SubmissionSource,
        resolver: FieldMapResolver,
        normalizer: GeoTimeNormalizer,
        machine: JobStateMachine,
        config: JobTrackConfig | None = None,
    ) -> None:
        self._registry = registry
        self._guard = guard
        self._source = source
        self._resolver = resolver
        self._normalizer = normalizer
        self._machine = machine
        self._config = config or JobTrackConfig()

    async def ingest_many(
        self,
        bodies: Iterable[str | bytes],
        *,
        received_at: datetime | None = None,
    ) -> tuple[list[IngestionResult], IngestionMetrics]:
        """Ingest independent deliveries concurrently."""
        results = await asyncio.gather(*(self.ingest(body, received_at=received_at) for body in bodies))
        return list(results), IngestionMetrics.combine(result.metrics for result in results)

    async def ingest(self, body: str | bytes, *, received_at: datetime | None = None) -> IngestionResult:
        """Run one notification through the pipeline.  Never raises."""
        started = time.perf_counter()
        received_at = received_at or datetime.now(UTC)
        trace = _Trace()
        partial: dict[str, Any] = {}

        def finish(outcome: IngestionOutcome) -> IngestionResult:
            elapsed = time.perf_counter() - started
            notification: SubmissionNotification | None = partial.get("notification")
            form_type: FormType | None = partial.get("form_type")
            metrics = IngestionMetrics(
                received=1,
                processed=int(outcome == IngestionOutcome.APPLIED),
                unchanged=int(outcome == IngestionOutcome.UNCHANGED),
                duplicates=int(outcome == IngestionOutcome.DUPLICATE),
                ignored=int(outcome == IngestionOutcome.IGNORED),
                malformed=int(outcome == IngestionOutcome.MALFORMED),
                rejected=int(outcome == IngestionOutcome.REJECTED),
                scope_violations=int(outcome == IngestionOutcome.SCOPE_VIOLATION),
                errors=int(outcome == IngestionOutcome.FAILED),
                per_form=Counter({form_type.value: 1}) if form_type is not None else Counter(),
                processing_times=(elapsed,),
            )
            return IngestionResult(
                outcome=outcome,
                metrics=metrics,
                notification=notification,
                form_type=form_type,
                job_id=partial.get("job_id"),
                candidate=partial.get("candidate"),
                job=partial.get("job"),
                event_time=partial.get("event_time"),
                events=tuple(trace.events),
            )

        try:
            return await self._run(body, received_at, trace, partial, finish)
        except Exception as exc:  # noqa: BLE001
            trace.emit(Stage.TRANSITION, logging.ERROR, f"unexpected failure: {exc}", error=type(exc).__name__)
            _logger.debug("Ingestion failure detail", exc_info=True)
            return finish(IngestionOutcome.FAILED)

    async def _run(
        self,
        body: str | bytes,
        received_at: datetime,
        trace: _Trace,
        partial: dict[str, Any],
        finish: Callable[[IngestionOutcome], IngestionResult],
    ) -> IngestionResult:
        try:
            notification = parse_notification(body)
        except MalformedPayloadError as exc:
            trace.emit(Stage.PARSE, logging.WARNING, f"discarded: {exc}")
            return finish(IngestionOutcome.MALFORMED)
        partial["notification"] = notification
        trace.notification_id = notification.idempotency_key

        resolution = self._registry.resolve_version(notification.form_id)
        if resolution is None:
            exc = UnknownFormVersionError(
                f"Form {notification.form_id} is not a known form version",
                form_id=notification.form_id,
            )
            trace.emit(Stage.REGISTRY, logging.WARNING, f"discarded: {exc}", form_id=notification.form_id)
            return finish(IngestionOutcome.IGNORED)
        partial["form_type"] = resolution.form_type
        if not resolution.is_current:
            trace.emit(
                Stage.REGISTRY,
                logging.INFO,
                f"form {resolution.form_id} is a superseded {resolution.form_type.value} version",
            )

        if self._guard.admit(notification.idempotency_key, notification.form_id) is AdmitResult.DUPLICATE:
            trace.emit(Stage.GUARD, logging.INFO, "duplicate submission; acknowledged without change")
            return finish(IngestionOutcome.DUPLICATE)

        try:
            submission = await self._source.fetch_submission(notification.submission_id)
        except JobTrackError as exc:
            trace.emit(Stage.FETCH, logging.ERROR, f"fetch failed: {exc}")
            return finish(IngestionOutcome.FAILED)
        if self._config.trace_payloads:
            _logger.debug(
                "Submission %s payload: %s",
                notification.submission_id,
                redact_for_log(prune_record(submission.raw)),
            )

        try:
            record = self._resolver.decode_inbound(resolution.form_type, resolution.form_id, submission.responses)
        except FieldScopeViolationError as exc:
            trace.emit(Stage.RESOLVE, logging.ERROR, f"refused: {exc}", field_id=exc.field_id)
            return finish(IngestionOutcome.SCOPE_VIOLATION)
        if record.provisional:
            trace.emit(Stage.RESOLVE, logging.WARNING, "no field map for this version; matched by label")
        if record.unmapped:
            trace.emit(Stage.RESOLVE, logging.DEBUG, f"{len(record.unmapped)} unmapped field(s)")

        job_id = extract_job_id(record, submission.responses, prefix=self._config.job_id_prefix)
        if job_id is None:
            trace.emit(Stage.EXTRACT, logging.WARNING, "submission carries no job id")
            return finish(IngestionOutcome.IGNORED)
        partial["job_id"] = job_id

        candidate = derive_candidate(resolution.form_type, record.get(SemanticField.WORKFLOW_STATUS))
        partial["candidate"] = candidate

        event_time = await self._normalizer.normalize(
            _first_value(record, _GPS_FIELDS[resolution.form_type]),
            record.get(SemanticField.HANDOFF_DATE),
            record.get(SemanticField.HANDOFF_TIME),
            received_at=received_at,
        )
        partial["event_time"] = event_time
        trace.emit(
            Stage.NORMALIZE,
            logging.DEBUG if event_time.timezone_known else logging.WARNING,
            f"event time {event_time.instant.isoformat()} from {event_time.source.value}"
            + ("" if event_time.timezone_known else " (timezone unknown)"),
            source=event_time.source.value,
            timezone_known=event_time.timezone_known,
        )

        completed_at = submission.submitted_at or received_at
        plan = transition_plan(
            resolution.form_type,
            candidate,
            event_at=event_time.instant,
            completed_at=completed_at,
        )
        actor = f"form:{resolution.form_type.value}"
        metadata = {
            "submission_id": notification.submission_id,
            "form_id": notification.form_id,
            "timezone_known": str(event_time.timezone_known).lower(),
        }
        if submission.user_id:
            metadata["user_id"] = submission.user_id
        delivered_to = record.get(SemanticField.DELIVERED_TO)
        if delivered_to:
            metadata["delivered_to"] = delivered_to

        def step_metadata(state: JobState) -> dict[str, str]:
            if state in COMPLETION_STATES:
                source = TimeSource.SUBMITTED if submission.submitted_at is not None else TimeSource.RECEIVED
                return {**metadata, "time_source": source.value}
            return {**metadata, "time_source": event_time.source.value}

        changed = False
        try:
            for state, at in plan[:-1]:
                try:
                    step = await self._machine.transition(
                        job_id, state, at=at, actor=actor, metadata=step_metadata(state)
                    )
                except OutOfOrderTransitionError:
                    trace.emit(Stage.TRANSITION, logging.DEBUG, f"job {job_id} already past {state.value}")
                    continue
                changed = changed or step.changed
            final_state, final_at = plan[-1]
            result = await self._machine.transition(
                job_id, final_state, at=final_at, actor=actor, metadata=step_metadata(final_state)
            )
        except JobNotFoundError as exc:
            trace.emit(Stage.TRANSITION, logging.WARNING, f"discarded: {exc}")
            return finish(IngestionOutcome.IGNORED)
        except OutOfOrderTransitionError as exc:
            trace.emit(
                Stage.TRANSITION,
                logging.INFO,
                f"rejected: {exc}",
                current_state=exc.current_state,
                candidate_state=exc.candidate_state,
            )
            await self._annotate(job_id, record, submission, at=completed_at, actor=actor, trace=trace)
            return finish(IngestionOutcome.REJECTED)

        partial["job"] = result.job
        await self._annotate(job_id, record, submission, at=completed_at, actor=actor, trace=trace)
        if not (changed or result.changed):
            trace.emit(Stage.TRANSITION, logging.INFO, f"job {job_id} already {candidate.value}")
            return finish(IngestionOutcome.UNCHANGED)
        trace.emit(Stage.TRANSITION, logging.INFO, f"job {job_id} -> {result.job.state.value}")
        return finish(IngestionOutcome.APPLIED)

    async def _annotate(
        self,
        job_id: str,
        record: SemanticRecord,
        submission: Submission,
        *,
        at: datetime,
        actor: str,
        trace: _Trace,
    ) -> None:
        comments = submission_comments(record)
        parts = part_rows(record)
        if not comments and not parts:
            return
        events = await self._machine.annotate(
            job_id,
            comments=comments,
            parts=parts,
            at=at,
            actor=f"user:{submission.user_id}" if submission.user_id else actor,
            metadata={"submission_id": submission.id or trace.notification_id},
        )
        trace.emit(
            Stage.ANNOTATE,
            logging.DEBUG,
            f"recorded {len(comments)} comment(s) and {len(parts)} part row(s)",
            events=len(events),
        )
