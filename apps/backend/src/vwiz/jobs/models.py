"""Render job domain models.

Jobs are immutable snapshots. Every state transition builds a new ``Job``
which the queue writes back to the registry in one piece.
"""

from __future__ import annotations

import copy
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import uuid4


def _now() -> datetime:
    return datetime.now(timezone.utc)


class JobStatus(str, Enum):
    """Status of a render job."""

    QUEUED = "queued"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


@dataclass(frozen=True)
class RenderRequest:
    """Composition id plus the open-ended input props handed to the engine."""

    composition_id: str
    input_props: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def create(cls, composition_id: str, input_props: dict[str, Any]) -> RenderRequest:
        """Build a request that owns a private copy of ``input_props``."""
        return cls(composition_id=composition_id, input_props=copy.deepcopy(input_props))


@dataclass(frozen=True)
class JobError:
    """Captured failure of a render job."""

    message: str
    name: str = "Error"
    cause: str | None = None

    @classmethod
    def from_exception(cls, exc: BaseException) -> JobError:
        cause = exc.__cause__
        return cls(
            message=str(exc) or type(exc).__name__,
            name=type(exc).__name__,
            cause=(str(cause) or type(cause).__name__) if cause is not None else None,
        )


@dataclass(frozen=True)
class Job:
    """Snapshot of a render job.

    ``progress`` is only set while in progress, ``video_url`` only when
    completed and ``error`` only when failed. ``cancel`` is the job's
    cancellation handle and is dropped once the job is terminal.
    """

    request: RenderRequest
    id: str = field(default_factory=lambda: str(uuid4()))
    status: JobStatus = JobStatus.QUEUED
    progress: float | None = None
    video_url: str | None = None
    error: JobError | None = None
    cancel: Callable[[], None] | None = field(default=None, compare=False, repr=False)
    created_at: datetime = field(default_factory=_now)
    started_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def cancellable(self) -> bool:
        return self.cancel is not None and not self.status.is_terminal

    def start(self, cancel: Callable[[], None]) -> Job:
        return replace(
            self,
            status=JobStatus.IN_PROGRESS,
            progress=0.0,
            cancel=cancel,
            started_at=_now(),
        )

    def with_progress(self, progress: float) -> Job:
        return replace(self, progress=progress)

    def complete(self, video_url: str) -> Job:
        return replace(
            self,
            status=JobStatus.COMPLETED,
            progress=None,
            video_url=video_url,
            cancel=None,
            completed_at=_now(),
        )

    def fail(self, error: JobError) -> Job:
        return replace(
            self,
            status=JobStatus.FAILED,
            progress=None,
            error=error,
            cancel=None,
            completed_at=_now(),
        )
