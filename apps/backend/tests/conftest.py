"""Shared fixtures: a stub frame-composition engine and a running queue."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any

import pytest
import pytest_asyncio

from vwiz.compositions import Composition
from vwiz.errors import CompositionNotFoundError, RenderFailedError
from vwiz.jobs.cancellation import CancelToken
from vwiz.jobs.queue import RenderQueue
from vwiz.jobs.registry import JobRegistry
from vwiz.services.interfaces import ProgressCallback

PUBLIC_URL = "http://render.test"


class StubEngine:
    """Engine double that records calls and honours cancel tokens.

    Input props steer behaviour: ``fail`` makes the render raise and
    ``hang`` makes it wait until cancelled. ``abort`` waits for the token
    and then raises ``asyncio.CancelledError``.
    """

    def __init__(self, render_time: float = 0.02, steps: int = 4) -> None:
        self.render_time = render_time
        self.steps = steps
        self.selected: list[str] = []
        self.rendered: list[str] = []
        self.events: list[tuple[str, str, float]] = []
        self.active = 0
        self.max_active = 0

    async def select_composition(self, composition_id: str, input_props: dict[str, Any]) -> Composition:
        await asyncio.sleep(0)
        self.selected.append(composition_id)
        if composition_id == "Missing":
            raise CompositionNotFoundError(f"Could not find composition with ID {composition_id}")
        return Composition(id=composition_id, props=input_props)

    async def render_media(
        self,
        composition: Composition,
        input_props: dict[str, Any],
        output_location: Path,
        cancel_token: CancelToken,
        on_progress: ProgressCallback,
    ) -> Path:
        job_id = output_location.stem
        loop = asyncio.get_running_loop()
        self.rendered.append(job_id)
        self.events.append((job_id, "start", loop.time()))
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if input_props.get("abort"):
                await cancel_token.wait()
                raise asyncio.CancelledError
            if input_props.get("hang"):
                await cancel_token.wait()
                cancel_token.raise_if_cancelled()

            for step in range(1, self.steps + 1):
                try:
                    await asyncio.wait_for(cancel_token.wait(), timeout=self.render_time / self.steps)
                except asyncio.TimeoutError:
                    pass
                cancel_token.raise_if_cancelled()
                on_progress(step / self.steps)

            if input_props.get("fail"):
                raise RenderFailedError("encoder exploded")

            output_location.parent.mkdir(parents=True, exist_ok=True)
            output_location.write_bytes(b"fake-mp4")
            return output_location
        finally:
            self.active -= 1
            self.events.append((job_id, "end", loop.time()))

    def times(self, job_id: str, kind: str) -> float:
        return next(t for jid, k, t in self.events if jid == job_id and k == kind)


def make_props(**extra: Any) -> dict[str, Any]:
    props: dict[str, Any] = {
        "videoUrl": "https://cdn.example.com/clip.mp4",
        "subtitles": [
            {"id": 1, "start": 0.0, "end": 1.5, "text": "Hello there"},
            {"id": 2, "start": 1.5, "end": 3.0, "text": "General Kenobi"},
        ],
        "template": "viral",
        "backgroundColor": "#000000",
    }
    props.update(extra)
    return props


async def wait_until(predicate, timeout: float = 2.0, interval: float = 0.005) -> None:
    """Poll ``predicate`` until it returns truthy or the timeout expires."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(interval)


@pytest.fixture
def engine() -> StubEngine:
    return StubEngine()


@pytest.fixture
def renders_dir(tmp_path: Path) -> Path:
    return tmp_path / "renders"


@pytest_asyncio.fixture
async def render_queue(engine: StubEngine, renders_dir: Path):
    queue = RenderQueue(
        registry=JobRegistry(),
        engine=engine,
        renders_dir=renders_dir,
        public_url=PUBLIC_URL,
    )
    queue.start()
    yield queue
    await queue.stop()
