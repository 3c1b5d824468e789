"""Job lifecycle graph.

The lifecycle is a DAG: a linear trunk up to ``service_complete`` and two
terminal branches after it (customer pickup or outbound delivery).
A transition is accepted only when the candidate is reachable from the
current state, which keeps state monotonic regardless of arrival order.
"""

from __future__ import annotations

from collections.abc import Mapping
from functools import cache
from types import MappingProxyType

from jobtrack.models.job import JobState

TRUNK: tuple[JobState, ...] = (
    JobState.QUEUED_FOR_PICKUP,
    JobState.PICKED_UP,
    JobState.SHIPMENT_INBOUND,
    JobState.AT_SHOP,
    JobState.IN_SERVICE,
    JobState.SERVICE_COMPLETE,
)

PICKUP_BRANCH: tuple[JobState, ...] = (
    JobState.READY_FOR_PICKUP,
    JobState.PICKED_UP_FROM_SHOP,
)

DELIVERY_BRANCH: tuple[JobState, ...] = (
    JobState.QUEUED_FOR_DELIVERY,
    JobState.OUTBOUND_SHIPMENT,
    JobState.DELIVERED,
)

TERMINAL_STATES: frozenset[JobState] = frozenset({JobState.PICKED_UP_FROM_SHOP, JobState.DELIVERED})


def _chain(states: tuple[JobState, ...]) -> dict[JobState, set[JobState]]:
    return {a: {b} for a, b in zip(states, states[1:])}


def _build_edges() -> Mapping[JobState, frozenset[JobState]]:
    edges: dict[JobState, set[JobState]] = {state: set() for state in JobState}
    for chain in (TRUNK, PICKUP_BRANCH, DELIVERY_BRANCH):
        for state, successors in _chain(chain).items():
            edges[state] |= successors
    edges[JobState.SERVICE_COMPLETE] |= {PICKUP_BRANCH[0], DELIVERY_BRANCH[0]}
    return MappingProxyType({state: frozenset(successors) for state, successors in edges.items()})


EDGES: Mapping[JobState, frozenset[JobState]] = _build_edges()


@cache
def reachable_from(state: JobState) -> frozenset[JobState]:
    """All states strictly downstream of *state*."""
    seen: set[JobState] = set()
    stack = list(EDGES[state])
    while stack:
        current = stack.pop()
        if current in seen:
            continue
        seen.add(current)
        stack.extend(EDGES[current])
    return frozenset(seen)


def is_downstream(current: JobState, candidate: JobState) -> bool:
    """True when *candidate* can follow *current* (directly or by skipping states)."""
    return candidate in reachable_from(current)


def passes_through(current: JobState, candidate: JobState, milestone: JobState) -> bool:
    """True when moving from *current* to *candidate* reaches or jumps past *milestone*."""
    if candidate == milestone:
        return True
    return is_downstream(current, milestone) and is_downstream(milestone, candidate)


def is_terminal(state: JobState) -> bool:
    return state in TERMINAL_STATES
