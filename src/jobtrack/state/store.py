"""Job persistence.

The state machine is the only component allowed to write jobs; everything
else reads through :class:`JobStore`.
"""

from __future__ import annotations

from typing import Protocol

from jobtrack.exceptions import JobTrackError
from jobtrack.models.job import Job
from jobtrack.state.events import JobEvent


class JobStore(Protocol):
    async def get(self, job_id: str) -> Job | None:
        ...

    async def add(self, job: Job) -> None:
        ...

    async def save(self, job: Job) -> None:
        ...

    async def record_event(self, event: JobEvent) -> None:
        ...

    async def events_for(self, job_id: str) -> list[JobEvent]:
        ...


class InMemoryJobStore:
    """In-memory :class:`JobStore`.

    Jobs are immutable values, so ``get`` hands out the stored instance
    without copying.
    """

    def __init__(self, jobs: list[Job] | None = None) -> None:
        self._jobs: dict[str, Job] = {job.job_id: job for job in jobs or ()}
        self._events: dict[str, list[JobEvent]] = {}

    async def get(self, job_id: str) -> Job | None:
        return self._jobs.get(job_id)

    async def add(self, job: Job) -> None:
        if job.job_id in self._jobs:
            raise JobTrackError(f"Job {job.job_id} already exists")
        self._jobs[job.job_id] = job

    async def save(self, job: Job) -> None:
        self._jobs[job.job_id] = job

    async def record_event(self, event: JobEvent) -> None:
        self._events.setdefault(event.job_id, []).append(event)

    async def events_for(self, job_id: str) -> list[JobEvent]:
        return list(self._events.get(job_id, ()))

    def __len__(self) -> int:
        return len(self._jobs)
