"""Render queue: serialises render jobs onto a single engine."""

from __future__ import annotations

import asyncio
import copy
import logging
from datetime import timedelta
from functools import partial
from pathlib import Path
from typing import TYPE_CHECKING, Any
from uuid import uuid4

from vwiz.errors import (
    JobNotCancellableError,
    JobNotFoundError,
    RenderCancelledError,
    RenderTimeoutError,
)
from vwiz.jobs.cancellation import CancelToken
from vwiz.jobs.models import Job, JobError, JobStatus, RenderRequest
from vwiz.jobs.registry import JobRegistry

if TYPE_CHECKING:
    from vwiz.services.interfaces import ICompositionEngine

logger = logging.getLogger(__name__)


class RenderQueue:
    """Accepts render jobs and executes them one at a time, in creation order.

    A single worker task reads job ids from a FIFO channel. Each job runs to
    completion (or failure) before the next one is picked up, so at most one
    engine call is ever in flight. Failures are absorbed into the job's
    state and never stop the worker.
    """

    def __init__(
        self,
        registry: JobRegistry,
        engine: ICompositionEngine,
        renders_dir: Path,
        public_url: str,
        files_path: str = "/files",
        render_timeout: float | None = None,
        retention: timedelta | None = None,
        sweep_interval: float = 60.0,
    ) -> None:
        self.registry = registry
        self.engine = engine
        self.renders_dir = Path(renders_dir)
        self.public_url = public_url.rstrip("/")
        self.files_path = files_path
        self.render_timeout = render_timeout
        self.retention = retention
        self.sweep_interval = sweep_interval

        self._pending: asyncio.Queue[str] = asyncio.Queue()
        self._tokens: dict[str, CancelToken] = {}
        self._worker: asyncio.Task[None] | None = None
        self._sweeper: asyncio.Task[None] | None = None
        self._active_job_id: str | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the worker (and the retention sweeper, if configured)."""
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._run(), name="render-queue-worker")
        if self.retention is not None and (self._sweeper is None or self._sweeper.done()):
            self._sweeper = asyncio.create_task(self._sweep(), name="render-queue-sweeper")

    async def stop(self) -> None:
        """Stop background tasks. Jobs still pending stay queued."""
        for task in (self._worker, self._sweeper):
            if task is not None and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._worker = None
        self._sweeper = None

    async def join(self) -> None:
        """Wait until every job queued so far has settled."""
        await self._pending.join()

    @property
    def pending_count(self) -> int:
        """Jobs waiting for their turn, not counting the active one."""
        return self._pending.qsize()

    @property
    def active_job_id(self) -> str | None:
        return self._active_job_id

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def create_job(self, composition_id: str, input_props: dict[str, Any]) -> str:
        """Register a queued job and schedule it. Never waits on rendering.

        Args:
            composition_id: Composition to render.
            input_props: Props for the composition (copied, never mutated).

        Returns:
            The new job id.
        """
        job_id = str(uuid4())
        token = CancelToken()
        job = Job(
            id=job_id,
            request=RenderRequest.create(composition_id, input_props),
            cancel=partial(self._cancel_queued, job_id, token),
        )

        self._tokens[job_id] = token
        self.registry.set(job_id, job)
        self._pending.put_nowait(job_id)

        logger.info("[%s] Queued render of %s", job_id, composition_id)
        return job_id

    def get_job(self, job_id: str) -> Job | None:
        """Get a job snapshot by ID, or None if unknown."""
        return self.registry.get(job_id)

    def list_jobs(self) -> list[Job]:
        """List all jobs, most recent first."""
        return self.registry.list_jobs()

    def cancel(self, job_id: str) -> Job:
        """Request cancellation of a queued or in-progress job.

        A queued job is dropped from the registry and never starts. For an
        in-progress job the engine's cancel token is signalled; the job
        settles as ``failed`` once the engine gives up.

        Returns:
            The snapshot the cancellation was applied to.

        Raises:
            JobNotFoundError: If the job is unknown.
            JobNotCancellableError: If the job is already terminal.
        """
        job = self.registry.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        if not job.cancellable:
            raise JobNotCancellableError(job_id, job.status.value)

        job.cancel()
        logger.info("[%s] Cancellation requested while %s", job_id, job.status.value)
        return job

    def output_path(self, job_id: str) -> Path:
        """Location of the artifact rendered for ``job_id``."""
        return self.renders_dir / f"{job_id}.mp4"

    def result_url(self, job_id: str) -> str:
        return f"{self.public_url}{self.files_path}/{job_id}.mp4"

    def prune(self) -> list[Job]:
        """Evict terminal jobs past the retention age and delete their files."""
        if self.retention is None:
            return []

        evicted = self.registry.prune(self.retention)
        for job in evicted:
            self.output_path(job.id).unlink(missing_ok=True)
        if evicted:
            logger.info("Evicted %d expired render jobs", len(evicted))
        return evicted

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def _cancel_queued(self, job_id: str, token: CancelToken) -> None:
        """Cancel handle of a job that has not started yet."""
        token.cancel()
        self.registry.delete(job_id)

    async def _run(self) -> None:
        logger.info("Render queue worker started")
        while True:
            job_id = await self._pending.get()
            try:
                await self._process(job_id)
            except Exception:
                logger.exception("[%s] Unexpected error while processing render job", job_id)
            finally:
                self._active_job_id = None
                self._pending.task_done()

    async def _process(self, job_id: str) -> None:
        token = self._tokens.pop(job_id, None)
        job = self.registry.get(job_id)
        if job is None or token is None or token.cancelled:
            logger.info("[%s] Skipping cancelled render job", job_id)
            return

        self._active_job_id = job_id
        job = job.start(cancel=token.cancel)
        self.registry.set(job_id, job)

        try:
            if self.render_timeout is None:
                await self._execute(job, token)
            else:
                try:
                    await asyncio.wait_for(self._execute(job, token), timeout=self.render_timeout)
                except asyncio.TimeoutError as exc:
                    token.cancel()
                    raise RenderTimeoutError(
                        f"Render exceeded the {self.render_timeout}s timeout"
                    ) from exc
        except Exception as e:
            logger.exception("[%s] Render failed", job_id)
            self.registry.set(job_id, job.fail(JobError.from_exception(e)))
            return

        logger.info("[%s] Render completed successfully", job_id)
        self.registry.set(job_id, job.complete(self.result_url(job_id)))

    async def _execute(self, job: Job, token: CancelToken) -> None:
        """Run the engine calls in a child task.

        A ``CancelledError`` raised by the engine ends that task only and is
        reported as ``RenderCancelledError``. Cancellation of the worker
        itself still propagates.
        """
        render = asyncio.create_task(self._render(job, token), name=f"render-{job.id}")
        try:
            await asyncio.wait({render})
        except asyncio.CancelledError:
            render.cancel()
            await asyncio.wait({render})
            raise

        if render.cancelled():
            raise RenderCancelledError("Render was aborted by the engine")
        render.result()

    async def _render(self, job: Job, token: CancelToken) -> None:
        request = job.request
        input_props = copy.deepcopy(request.input_props)

        logger.info("[%s] Selecting composition: %s", job.id, request.composition_id)
        composition = await self.engine.select_composition(request.composition_id, input_props)
        token.raise_if_cancelled()

        logger.info("[%s] Starting render...", job.id)
        await self.engine.render_media(
            composition,
            input_props,
            self.output_path(job.id),
            token,
            partial(self._on_progress, job.id),
        )

    def _on_progress(self, job_id: str, progress: float) -> None:
        job = self.registry.get(job_id)
        if job is None or job.status is not JobStatus.IN_PROGRESS:
            return
        logger.debug("[%s] Render progress: %d%%", job_id, round(progress * 100))
        self.registry.set(job_id, job.with_progress(progress))

    async def _sweep(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval)
            try:
                self.prune()
            except OSError:
                logger.exception("Failed to prune expired render jobs")
