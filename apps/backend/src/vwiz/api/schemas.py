"""Request and response schemas for the render API.

Wire names are camelCase to match the render clients.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, StrictStr
from pydantic.alias_generators import to_camel

from vwiz.jobs.models import Job


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ------------------------------------------------------------------
# Render creation
# ------------------------------------------------------------------


class RenderInputProps(CamelModel):
    """Input props. Only the fields every composition needs are checked."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    video_url: StrictStr = Field(..., min_length=1, description="Source video URL")
    subtitles: list[Any] = Field(..., description="Ordered subtitle segments")


class RenderCreateRequest(CamelModel):
    composition_id: StrictStr = Field(..., min_length=1, description="Composition to render")
    input_props: RenderInputProps


class RenderCreateResponse(CamelModel):
    job_id: str


# ------------------------------------------------------------------
# Job snapshots
# ------------------------------------------------------------------


class JobErrorResponse(CamelModel):
    message: str
    name: str
    cause: str | None = None


class RenderJobData(CamelModel):
    composition_id: str
    input_props: dict[str, Any] = Field(default_factory=dict)


class RenderJobResponse(CamelModel):
    job_id: str
    status: str
    data: RenderJobData
    progress: float | None = None
    video_url: str | None = None
    error: JobErrorResponse | None = None
    created_at: datetime
    started_at: datetime | None = None
    completed_at: datetime | None = None

    @classmethod
    def from_job(cls, job: Job) -> RenderJobResponse:
        error = None
        if job.error is not None:
            error = JobErrorResponse(
                message=job.error.message,
                name=job.error.name,
                cause=job.error.cause,
            )

        return cls(
            job_id=job.id,
            status=job.status.value,
            data=RenderJobData(
                composition_id=job.request.composition_id,
                input_props=job.request.input_props,
            ),
            progress=job.progress,
            video_url=job.video_url,
            error=error,
            created_at=job.created_at,
            started_at=job.started_at,
            completed_at=job.completed_at,
        )


class MessageResponse(BaseModel):
    message: str
