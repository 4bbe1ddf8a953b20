"""In-memory job registry."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from vwiz.jobs.models import Job


class JobRegistry:
    """Maps job ids to their current snapshot.

    Writes replace the whole snapshot (last writer wins). The registry is
    only touched from the event loop thread, so it needs no locking.
    """

    def __init__(self) -> None:
        self._jobs: dict[str, Job] = {}

    def get(self, job_id: str) -> Job | None:
        """Get a job by ID."""
        return self._jobs.get(job_id)

    def set(self, job_id: str, job: Job) -> None:
        """Replace the snapshot stored for ``job_id``."""
        self._jobs[job_id] = job

    def delete(self, job_id: str) -> Job | None:
        return self._jobs.pop(job_id, None)

    def list_jobs(self) -> list[Job]:
        """List all jobs, most recent first."""
        return sorted(self._jobs.values(), key=lambda j: j.created_at, reverse=True)

    def prune(self, max_age: timedelta, now: datetime | None = None) -> list[Job]:
        """Remove terminal jobs that finished more than ``max_age`` ago.

        Returns:
            The evicted jobs.
        """
        now = now or datetime.now(timezone.utc)
        expired = [
            job
            for job in self._jobs.values()
            if job.status.is_terminal
            and job.completed_at is not None
            and now - job.completed_at > max_age
        ]
        for job in expired:
            del self._jobs[job.id]
        return expired

    def __contains__(self, job_id: object) -> bool:
        return job_id in self._jobs

    def __len__(self) -> int:
        return len(self._jobs)
