"""FastAPI dependencies."""

from __future__ import annotations

from fastapi import Request

from vwiz.jobs.queue import RenderQueue


def get_render_queue(request: Request) -> RenderQueue:
    """Dependency that provides the app's RenderQueue."""
    queue: RenderQueue | None = getattr(request.app.state, "render_queue", None)
    if queue is None:
        raise RuntimeError("RenderQueue not initialized; the app lifespan has not run")
    return queue
