from __future__ import annotations

import asyncio
import gc
import itertools
from datetime import UTC, datetime, timedelta

import pytest

from jobtrack.exceptions import JobNotFoundError, JobTrackError, OutOfOrderTransitionError
from jobtrack.models.job import Job, JobState
from jobtrack.state.events import JobEventType
from jobtrack.state.lifecycle import TRUNK, is_downstream, reachable_from
from jobtrack.state.machine import JobStateMachine, Rejected, apply_event
from jobtrack.state.store import InMemoryJobStore

T0 = datetime(2025, 8, 1, 9, 0, tzinfo=UTC)


def _job(state: JobState = JobState.QUEUED_FOR_PICKUP, **kwargs: object) -> Job:
    return Job(job_id="ECS-20250801-01", state=state, initiated_at=T0, **kwargs)


# ------------------------------------------------------------------
# Lifecycle graph
# ------------------------------------------------------------------


def test_downstream_follows_trunk_and_branches() -> None:
    assert is_downstream(JobState.QUEUED_FOR_PICKUP, JobState.AT_SHOP)
    assert is_downstream(JobState.SERVICE_COMPLETE, JobState.READY_FOR_PICKUP)
    assert is_downstream(JobState.IN_SERVICE, JobState.DELIVERED)
    assert not is_downstream(JobState.AT_SHOP, JobState.PICKED_UP)
    assert not is_downstream(JobState.AT_SHOP, JobState.AT_SHOP)


def test_branches_are_mutually_exclusive() -> None:
    assert not is_downstream(JobState.READY_FOR_PICKUP, JobState.QUEUED_FOR_DELIVERY)
    assert not is_downstream(JobState.OUTBOUND_SHIPMENT, JobState.PICKED_UP_FROM_SHOP)


def test_terminal_states_have_no_successors() -> None:
    assert reachable_from(JobState.DELIVERED) == frozenset()
    assert reachable_from(JobState.PICKED_UP_FROM_SHOP) == frozenset()


# ------------------------------------------------------------------
# apply_event
# ------------------------------------------------------------------


def test_same_state_is_idempotent_noop() -> None:
    job = _job(JobState.AT_SHOP)

    assert apply_event(job, JobState.AT_SHOP, at=T0 + timedelta(hours=1)) is job


def test_at_shop_after_delivered_is_rejected() -> None:
    result = apply_event(_job(JobState.DELIVERED), JobState.AT_SHOP, at=T0)

    assert isinstance(result, Rejected)
    assert result.reason == "out-of-order"


def test_state_never_moves_backwards_under_any_arrival_order() -> None:
    for order in itertools.permutations(TRUNK[1:]):
        job = _job()
        for candidate in order:
            before = job.state
            result = apply_event(job, candidate, at=T0 + timedelta(hours=1))
            if isinstance(result, Rejected):
                continue
            assert result.state == before or is_downstream(before, result.state)
            job = result
        assert job.state == JobState.SERVICE_COMPLETE


def test_first_reach_of_at_shop_stamps_handoff_once() -> None:
    first = apply_event(_job(JobState.SHIPMENT_INBOUND), JobState.AT_SHOP, at=T0 + timedelta(days=1))
    assert isinstance(first, Job)
    assert first.handoff_at == T0 + timedelta(days=1)

    later = apply_event(first, JobState.IN_SERVICE, at=T0 + timedelta(days=2))
    assert isinstance(later, Job)
    assert later.handoff_at == T0 + timedelta(days=1)


def test_jumping_past_at_shop_stamps_handoff() -> None:
    result = apply_event(_job(JobState.PICKED_UP), JobState.IN_SERVICE, at=T0 + timedelta(days=1))

    assert isinstance(result, Job)
    assert result.handoff_at == T0 + timedelta(days=1)


def test_terminal_state_computes_turnaround() -> None:
    job = _job(JobState.OUTBOUND_SHIPMENT, handoff_at=T0 + timedelta(days=1))

    result = apply_event(job, JobState.DELIVERED, at=T0 + timedelta(days=3, minutes=30))

    assert isinstance(result, Job)
    assert result.completed_at == T0 + timedelta(days=3, minutes=30)
    assert result.turnaround_time == timedelta(days=3, minutes=30)
    assert result.turnaround_minutes == 3 * 24 * 60 + 30
    assert result.is_complete


def test_milestones_are_clamped_to_earlier_milestones() -> None:
    before_start = T0 - timedelta(hours=5)

    result = apply_event(_job(JobState.SHIPMENT_INBOUND), JobState.DELIVERED, at=before_start)

    assert isinstance(result, Job)
    assert result.handoff_at == T0
    assert result.completed_at == T0
    assert result.turnaround_time == timedelta(0)


# ------------------------------------------------------------------
# JobStateMachine
# ------------------------------------------------------------------


@pytest.mark.asyncio
async def test_transition_persists_and_records_event() -> None:
    store = InMemoryJobStore([_job(JobState.SHIPMENT_INBOUND)])
    machine = JobStateMachine(store)

    result = await machine.transition(
        "ECS-20250801-01",
        JobState.AT_SHOP,
        at=T0 + timedelta(days=1),
        actor="form:emissions",
        metadata={"submission_id": "42"},
    )

    assert result.changed is True
    stored = await store.get("ECS-20250801-01")
    assert stored is not None
    assert stored.state == JobState.AT_SHOP
    events = await store.events_for("ECS-20250801-01")
    assert [e.event_type for e in events] == [JobEventType.STATE_CHANGE]
    assert events[0].previous_state == JobState.SHIPMENT_INBOUND
    assert events[0].metadata == {"submission_id": "42"}


@pytest.mark.asyncio
async def test_transition_to_current_state_is_unchanged() -> None:
    store = InMemoryJobStore([_job(JobState.AT_SHOP)])
    machine = JobStateMachine(store)

    result = await machine.transition("ECS-20250801-01", JobState.AT_SHOP, at=T0)

    assert result.changed is False
    assert await store.events_for("ECS-20250801-01") == []


@pytest.mark.asyncio
async def test_transition_out_of_order_raises() -> None:
    machine = JobStateMachine(InMemoryJobStore([_job(JobState.DELIVERED)]))

    with pytest.raises(OutOfOrderTransitionError) as exc_info:
        await machine.transition("ECS-20250801-01", JobState.AT_SHOP, at=T0)

    assert exc_info.value.current_state == "delivered"
    assert exc_info.value.candidate_state == "at_shop"


@pytest.mark.asyncio
async def test_transition_unknown_job_raises() -> None:
    machine = JobStateMachine(InMemoryJobStore())

    with pytest.raises(JobNotFoundError):
        await machine.transition("ECS-missing", JobState.AT_SHOP, at=T0)


@pytest.mark.asyncio
async def test_concurrent_transitions_for_one_job_apply_once() -> None:
    store = InMemoryJobStore([_job(JobState.SHIPMENT_INBOUND)])
    machine = JobStateMachine(store)

    results = await asyncio.gather(
        *(machine.transition("ECS-20250801-01", JobState.AT_SHOP, at=T0 + timedelta(days=1)) for _ in range(10))
    )

    assert sum(result.changed for result in results) == 1
    assert len(await store.events_for("ECS-20250801-01")) == 1


@pytest.mark.asyncio
async def test_create_job_rejects_duplicate_id() -> None:
    machine = JobStateMachine(InMemoryJobStore())

    job = await machine.create_job("ECS-1", initiated_at=T0)

    assert job.state == JobState.QUEUED_FOR_PICKUP
    with pytest.raises(JobTrackError):
        await machine.create_job("ECS-1", initiated_at=T0)


@pytest.mark.asyncio
async def test_job_lock_is_released_after_transition() -> None:
    machine = JobStateMachine(InMemoryJobStore([_job()]))

    await machine.transition("ECS-20250801-01", JobState.PICKED_UP, at=T0 + timedelta(hours=1))
    gc.collect()

    assert "ECS-20250801-01" not in machine._locks


# ------------------------------------------------------------------
# annotate
# ------------------------------------------------------------------


@pytest.mark.asyncio
async def test_annotate_records_comments_and_parts_without_changing_state() -> None:
    store = InMemoryJobStore([_job(JobState.AT_SHOP)])
    machine = JobStateMachine(store)
    at = T0 + timedelta(days=1)

    events = await machine.annotate(
        "ECS-20250801-01",
        comments=["[Driver Notes] Left at dock 4"],
        parts=[{"part": "DPF", "ecs_serial": "SN-1"}],
        at=at,
        actor="user:u-7",
        metadata={"submission_id": "42"},
    )

    assert [e.event_type for e in events] == [JobEventType.COMMENT, JobEventType.PART_UPDATE]
    assert all(e.new_state == JobState.AT_SHOP and e.occurred_at == at for e in events)
    assert events[0].metadata == {"submission_id": "42", "text": "[Driver Notes] Left at dock 4"}
    assert events[1].metadata == {"submission_id": "42", "part": "DPF", "ecs_serial": "SN-1"}
    assert await store.events_for("ECS-20250801-01") == events
    job = await store.get("ECS-20250801-01")
    assert job is not None
    assert job.state == JobState.AT_SHOP


@pytest.mark.asyncio
async def test_annotate_unknown_job_raises() -> None:
    machine = JobStateMachine(InMemoryJobStore())

    with pytest.raises(JobNotFoundError):
        await machine.annotate("ECS-missing", comments=["hello"], at=T0)
