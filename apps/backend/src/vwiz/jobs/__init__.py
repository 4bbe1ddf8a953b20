"""Render job management."""

from vwiz.jobs.cancellation import CancelToken
from vwiz.jobs.models import Job, JobError, JobStatus, RenderRequest
from vwiz.jobs.queue import RenderQueue
from vwiz.jobs.registry import JobRegistry

__all__ = [
    "CancelToken",
    "Job",
    "JobError",
    "JobRegistry",
    "JobStatus",
    "RenderQueue",
    "RenderRequest",
]
