"""Client for the render server.

Used by the content pipeline to render a clip with captions: it creates a
``VideoWithSubtitles`` job and polls it until the video is ready.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import httpx

from vwiz.compositions import VIDEO_WITH_SUBTITLES
from vwiz.config import settings
from vwiz.errors import RenderClientError
from vwiz.subtitles import normalize_subtitles

logger = logging.getLogger(__name__)

# Progress callback type: (progress: float 0-1, status: str) -> None
ProgressCallback = Callable[[float, str], None]


@dataclass
class RenderResult:
    """A finished render."""

    job_id: str
    video_url: str


def _error_message(response: httpx.Response, default: str) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text or default
    if isinstance(data, dict):
        return data.get("detail") or data.get("message") or default
    return default


class RenderClient:
    """HTTP client for render jobs with polling."""

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float = 30.0,
        poll_interval: float | None = None,
        max_poll_attempts: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the render client.

        Args:
            base_url: Render server URL. Defaults to RENDER_SERVER_URL.
            timeout: HTTP request timeout in seconds.
            poll_interval: Seconds between status checks.
            max_poll_attempts: Status checks before giving up.
            transport: Optional httpx transport (used by tests).
        """
        self.base_url = (base_url or settings.render_server_url).rstrip("/")
        self.timeout = timeout
        self.poll_interval = (
            settings.poll_interval_seconds if poll_interval is None else poll_interval
        )
        self.max_poll_attempts = (
            settings.max_poll_attempts if max_poll_attempts is None else max_poll_attempts
        )
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self._transport,
        )

    async def health_check(self) -> bool:
        """Check if the render server is available."""
        async with self._client() as client:
            try:
                response = await client.get("/health")
                return response.status_code == 200
            except httpx.RequestError:
                return False

    async def create_render(self, composition_id: str, input_props: dict[str, Any]) -> str:
        """Create a render job.

        Returns:
            The job id.

        Raises:
            RenderClientError: If the server rejects the request.
        """
        async with self._client() as client:
            try:
                response = await client.post(
                    "/renders",
                    json={"compositionId": composition_id, "inputProps": input_props},
                )
            except httpx.RequestError as e:
                raise RenderClientError(f"Failed to connect to render server: {e}") from e

        if not response.is_success:
            raise RenderClientError(
                _error_message(response, "Failed to create render job"),
                status_code=response.status_code,
            )

        job_id = response.json().get("jobId")
        if not job_id:
            raise RenderClientError("Render server did not return a jobId")
        return job_id

    async def get_render(self, job_id: str) -> dict[str, Any]:
        """Fetch the current job snapshot."""
        async with self._client() as client:
            try:
                response = await client.get(f"/renders/{job_id}")
            except httpx.RequestError as e:
                raise RenderClientError(
                    f"Failed to check render status: {e}", job_id=job_id
                ) from e

        if not response.is_success:
            raise RenderClientError(
                _error_message(response, "Failed to check render status"),
                status_code=response.status_code,
                job_id=job_id,
            )
        return response.json()

    async def cancel_render(self, job_id: str) -> None:
        """Cancel a queued or running job."""
        async with self._client() as client:
            try:
                response = await client.delete(f"/renders/{job_id}")
            except httpx.RequestError as e:
                raise RenderClientError(
                    f"Failed to cancel render: {e}", job_id=job_id
                ) from e

        if not response.is_success:
            raise RenderClientError(
                _error_message(response, "Failed to cancel render"),
                status_code=response.status_code,
                job_id=job_id,
            )

    async def wait_for_render(
        self,
        job_id: str,
        progress_callback: ProgressCallback | None = None,
    ) -> RenderResult:
        """Poll a job until it completes.

        Raises:
            RenderClientError: If the job fails or polling runs out of attempts.
        """
        for _ in range(self.max_poll_attempts):
            await asyncio.sleep(self.poll_interval)

            job = await self.get_render(job_id)
            status = job.get("status")

            if status == "completed":
                logger.info("Render completed: %s", job.get("videoUrl"))
                return RenderResult(job_id=job_id, video_url=job["videoUrl"])

            if status == "failed":
                error = job.get("error") or {}
                raise RenderClientError(
                    error.get("message") or "Render job failed", job_id=job_id
                )

            if status == "in-progress":
                progress = job.get("progress") or 0.0
                logger.info("Render progress: %d%%", round(progress * 100))
                if progress_callback:
                    progress_callback(progress, status)

        raise RenderClientError("Render job timed out", job_id=job_id)

    async def render_with_subtitles(
        self,
        video_url: str,
        subtitles: list[dict[str, Any]],
        template: str = "viral",
        background_color: str = "#000000",
        progress_callback: ProgressCallback | None = None,
    ) -> RenderResult:
        """Render a clip with captions and wait for the result.

        Args:
            video_url: Source clip URL.
            subtitles: ``{start, end, text}`` entries, times in seconds.
            template: Caption template.
            background_color: Background behind the video.
            progress_callback: Optional callback for progress updates.
        """
        formatted = normalize_subtitles(subtitles)
        logger.info(
            "Creating render job: video=%s subtitles=%d template=%s",
            video_url, len(formatted), template,
        )

        job_id = await self.create_render(
            VIDEO_WITH_SUBTITLES,
            {
                "videoUrl": video_url,
                "subtitles": formatted,
                "template": template,
                "backgroundColor": background_color,
            },
        )
        logger.info("Render job created: %s", job_id)

        return await self.wait_for_render(job_id, progress_callback)
