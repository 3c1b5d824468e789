"""Job lifecycle state."""

from jobtrack.state.events import JobEvent, JobEventType
from jobtrack.state.lifecycle import TERMINAL_STATES, is_downstream, reachable_from
from jobtrack.state.machine import JobStateMachine, Rejected, TransitionResult, apply_event
from jobtrack.state.store import InMemoryJobStore, JobStore

__all__ = [
    "TERMINAL_STATES",
    "InMemoryJobStore",
    "JobEvent",
    "JobEventType",
    "JobStateMachine",
    "JobStore",
    "Rejected",
    "TransitionResult",
    "apply_event",
    "is_downstream",
    "reachable_from",
]
