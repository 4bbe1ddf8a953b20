"""Render job endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException

from vwiz.api.deps import get_render_queue
from vwiz.api.schemas import (
    MessageResponse,
    RenderCreateRequest,
    RenderCreateResponse,
    RenderJobResponse,
)
from vwiz.errors import JobNotCancellableError, JobNotFoundError
from vwiz.jobs.queue import RenderQueue

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/renders", tags=["renders"])


@router.post("", response_model=RenderCreateResponse)
async def create_render(
    req: RenderCreateRequest,
    queue: RenderQueue = Depends(get_render_queue),
) -> RenderCreateResponse:
    job_id = queue.create_job(
        req.composition_id,
        req.input_props.model_dump(by_alias=True),
    )
    logger.info("Created render job: %s", job_id)
    return RenderCreateResponse(job_id=job_id)


@router.get(
    "",
    response_model=list[RenderJobResponse],
    response_model_exclude_none=True,
)
async def list_renders(
    queue: RenderQueue = Depends(get_render_queue),
) -> list[RenderJobResponse]:
    return [RenderJobResponse.from_job(job) for job in queue.list_jobs()]


@router.get(
    "/{job_id}",
    response_model=RenderJobResponse,
    response_model_exclude_none=True,
)
async def get_render(
    job_id: str,
    queue: RenderQueue = Depends(get_render_queue),
) -> RenderJobResponse:
    job = queue.get_job(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return RenderJobResponse.from_job(job)


@router.delete("/{job_id}", response_model=MessageResponse)
async def cancel_render(
    job_id: str,
    queue: RenderQueue = Depends(get_render_queue),
) -> MessageResponse:
    try:
        queue.cancel(job_id)
    except JobNotFoundError:
        raise HTTPException(status_code=404, detail="Job not found")
    except JobNotCancellableError:
        raise HTTPException(status_code=400, detail="Job is not cancellable")

    logger.info("Cancelled render job: %s", job_id)
    return MessageResponse(message="Job cancelled")
