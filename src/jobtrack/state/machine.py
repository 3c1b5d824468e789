"""Job state machine.

:func:`apply_event` is the pure transition rule; :class:`JobStateMachine`
wraps it with per-job serialization and persistence.  Nothing else in the
package produces new :class:`~jobtrack.models.job.Job` values.
"""

from __future__ import annotations

import asyncio
import logging
import weakref
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime

from jobtrack.exceptions import JobNotFoundError, JobTrackError, OutOfOrderTransitionError
from jobtrack.models._base import ensure_utc
from jobtrack.models.job import Job, JobState
from jobtrack.state.events import JobEvent, JobEventType
from jobtrack.state.lifecycle import is_downstream, is_terminal, passes_through
from jobtrack.state.store import JobStore

_logger = logging.getLogger(__name__)

OUT_OF_ORDER = "out-of-order"


@dataclass(frozen=True, slots=True)
class Rejected:
    """A transition that was not applied."""

    reason: str
    current_state: JobState
    candidate_state: JobState


@dataclass(frozen=True, slots=True)
class TransitionResult:
    job: Job
    changed: bool


def _not_before(value: datetime, *floors: datetime | None) -> datetime:
    """Clamp *value* so it never precedes any of *floors*."""
    present = [floor for floor in floors if floor is not None]
    return max([value, *present]) if present else value


def apply_event(job: Job, candidate: JobState, *, at: datetime) -> Job | Rejected:
    """Apply *candidate* to *job* at event time *at*.

    Returns the same job when *candidate* is the current state, a new job
    when it is downstream, and :class:`Rejected` otherwise.  Milestones are
    written at most once and clamped so they never precede an earlier one.
    """
    if candidate == job.state:
        return job
    if not is_downstream(job.state, candidate):
        return Rejected(reason=OUT_OF_ORDER, current_state=job.state, candidate_state=candidate)

    at = ensure_utc(at)
    update: dict[str, object] = {
        "state": candidate,
        "updated_at": _not_before(at, job.initiated_at, job.updated_at),
    }

    handoff_at = job.handoff_at
    if handoff_at is None and passes_through(job.state, candidate, JobState.AT_SHOP):
        handoff_at = _not_before(at, job.initiated_at)
        update["handoff_at"] = handoff_at

    if job.completed_at is None and is_terminal(candidate):
        completed_at = _not_before(at, job.initiated_at, handoff_at)
        update["completed_at"] = completed_at
        update["turnaround_time"] = completed_at - job.initiated_at

    return job.model_copy(update=update)


class JobStateMachine:
    """Serialized, persisted job transitions.

    Transitions for one job run one at a time; different jobs proceed
    concurrently.
    """

    def __init__(self, store: JobStore) -> None:
        self._store = store
        # Entries vanish once no transition for the job holds the lock.
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    @property
    def store(self) -> JobStore:
        return self._store

    def _lock_for(self, job_id: str) -> asyncio.Lock:
        lock = self._locks.get(job_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[job_id] = lock
        return lock

    async def create_job(
        self,
        job_id: str,
        *,
        state: JobState = JobState.QUEUED_FOR_PICKUP,
        initiated_at: datetime | None = None,
        actor: str = "system",
    ) -> Job:
        """Register a new job.  Raises :class:`JobTrackError` if the id exists."""
        initiated_at = ensure_utc(initiated_at) if initiated_at else datetime.now(UTC)
        job = Job(job_id=job_id, state=state, initiated_at=initiated_at, updated_at=initiated_at)
        async with self._lock_for(job.job_id):
            if await self._store.get(job.job_id) is not None:
                raise JobTrackError(f"Job {job.job_id} already exists")
            await self._store.add(job)
            await self._store.record_event(
                JobEvent(
                    job_id=job.job_id,
                    event_type=JobEventType.CREATED,
                    new_state=state,
                    occurred_at=initiated_at,
                    actor=actor,
                )
            )
        _logger.info("Created job %s in %s", job.job_id, state.value)
        return job

    async def transition(
        self,
        job_id: str,
        candidate: JobState,
        *,
        at: datetime,
        actor: str = "system",
        metadata: Mapping[str, str] | None = None,
    ) -> TransitionResult:
        """Move *job_id* to *candidate*.

        Raises
        ------
        JobNotFoundError
            No job has this id.
        OutOfOrderTransitionError
            *candidate* is not downstream of the current state.
        """
        async with self._lock_for(job_id):
            job = await self._store.get(job_id)
            if job is None:
                raise JobNotFoundError(f"Job {job_id} not found", job_id=job_id)

            outcome = apply_event(job, candidate, at=at)
            if isinstance(outcome, Rejected):
                _logger.info(
                    "Rejected %s -> %s for job %s (%s)",
                    outcome.current_state.value,
                    outcome.candidate_state.value,
                    job_id,
                    outcome.reason,
                )
                raise OutOfOrderTransitionError(
                    f"Job {job_id} is {outcome.current_state.value}; "
                    f"{outcome.candidate_state.value} is not downstream",
                    job_id=job_id,
                    current_state=outcome.current_state.value,
                    candidate_state=outcome.candidate_state.value,
                )
            if outcome is job:
                _logger.debug("Job %s already %s", job_id, job.state.value)
                return TransitionResult(job=job, changed=False)

            await self._store.save(outcome)
            await self._store.record_event(
                JobEvent(
                    job_id=job_id,
                    event_type=JobEventType.STATE_CHANGE,
                    previous_state=job.state,
                    new_state=outcome.state,
                    occurred_at=outcome.updated_at or ensure_utc(at),
                    actor=actor,
                    metadata=dict(metadata or {}),
                )
            )

        _logger.info("Job %s: %s -> %s", job_id, job.state.value, outcome.state.value)
        return TransitionResult(job=outcome, changed=True)

    async def annotate(
        self,
        job_id: str,
        *,
        comments: Sequence[str] = (),
        parts: Sequence[Mapping[str, str]] = (),
        at: datetime,
        actor: str = "system",
        metadata: Mapping[str, str] | None = None,
    ) -> list[JobEvent]:
        """Record submitted comments and part rows on the job timeline.

        Annotations never change the job itself, so they are recorded
        whatever state the job is in.  Raises :class:`JobNotFoundError` for
        an unknown job.
        """
        base = dict(metadata or {})
        occurred_at = ensure_utc(at)
        async with self._lock_for(job_id):
            job = await self._store.get(job_id)
            if job is None:
                raise JobNotFoundError(f"Job {job_id} not found", job_id=job_id)

            events = [
                JobEvent(
                    job_id=job_id,
                    event_type=JobEventType.COMMENT,
                    new_state=job.state,
                    occurred_at=occurred_at,
                    actor=actor,
                    metadata={**base, "text": text},
                )
                for text in comments
            ]
            events.extend(
                JobEvent(
                    job_id=job_id,
                    event_type=JobEventType.PART_UPDATE,
                    new_state=job.state,
                    occurred_at=occurred_at,
                    actor=actor,
                    metadata={**base, **row},
                )
                for row in parts
            )
            for event in events:
                await self._store.record_event(event)

        if events:
            _logger.info("Job %s: recorded %d comment(s), %d part row(s)", job_id, len(comments), len(parts))
        return events
