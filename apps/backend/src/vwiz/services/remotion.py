"""Frame-composition engine backed by the Remotion CLI."""

from __future__ import annotations

import asyncio
import json
import logging
import os
import re
import signal
import subprocess
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from vwiz.compositions import Composition, get_composition_spec
from vwiz.config import Settings
from vwiz.errors import (
    BundleError,
    CompositionNotFoundError,
    EngineError,
    RenderCancelledError,
    RenderFailedError,
)
from vwiz.jobs.cancellation import CancelToken
from vwiz.services.interfaces import ProgressCallback

logger = logging.getLogger(__name__)

# e.g. "Rendered 120/300" and "Encoded 96/300"
_PROGRESS_RE = re.compile(r"\b(Rendered|Encoded)\s+(\d+)/(\d+)")
_LINE_SPLIT_RE = re.compile(r"[\r\n]")


class RenderProgressParser:
    """Turns Remotion CLI progress lines into a 0-1 fraction.

    Rendering and encoding each account for half of the total.
    """

    def __init__(self) -> None:
        self.rendered = 0
        self.encoded = 0
        self.total: int | None = None

    def feed(self, line: str) -> float | None:
        """Parse one output line.

        Returns:
            Updated progress, or None if the line carries no progress.
        """
        match = _PROGRESS_RE.search(line)
        if match is None:
            return None

        stage, done, total = match.group(1), int(match.group(2)), int(match.group(3))
        if total <= 0:
            return None

        if stage == "Rendered":
            self.rendered = max(self.rendered, done)
        else:
            self.encoded = max(self.encoded, done)
        self.total = total

        return min(1.0, (self.rendered + self.encoded) / (2 * total))


@contextmanager
def _props_file(input_props: dict[str, Any]) -> Iterator[Path]:
    """Write input props to a temporary JSON file for ``--props``."""
    fd, name = tempfile.mkstemp(prefix="vwiz-props-", suffix=".json")
    path = Path(name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(input_props, f)
        yield path
    finally:
        path.unlink(missing_ok=True)


async def ensure_browser(npx_bin: str = "npx") -> None:
    """Make sure Remotion's headless browser is installed."""
    cmd = [npx_bin, "remotion", "browser", "ensure"]
    result = await asyncio.to_thread(
        subprocess.run, cmd, capture_output=True, text=True
    )
    if result.returncode != 0:
        raise EngineError(f"remotion browser ensure failed: {result.stderr}")


async def bundle(entry_point: Path, out_dir: Path, npx_bin: str = "npx") -> str:
    """Bundle the composition entry point.

    Returns:
        Serve URL (the bundle directory) for render calls.
    """
    out_dir = Path(out_dir)
    out_dir.parent.mkdir(parents=True, exist_ok=True)

    cmd = [
        npx_bin, "remotion", "bundle",
        str(entry_point),
        f"--out-dir={out_dir}",
    ]

    result = await asyncio.to_thread(
        subprocess.run, cmd, capture_output=True, text=True
    )

    if result.returncode != 0:
        raise BundleError(f"remotion bundle failed: {result.stderr}")

    return str(out_dir.resolve())


class RemotionEngine:
    """Renders compositions by driving ``npx remotion``.

    Each render runs in its own subprocess. Cancellation terminates the
    subprocess, so the engine honours its token within ``terminate_grace``
    seconds.
    """

    def __init__(
        self,
        serve_url: str,
        npx_bin: str = "npx",
        codec: str = "h264",
        terminate_grace: float = 5.0,
    ) -> None:
        self.serve_url = serve_url
        self.npx_bin = npx_bin
        self.codec = codec
        self.terminate_grace = terminate_grace

    @classmethod
    async def prepare(cls, settings: Settings) -> RemotionEngine:
        """Create an engine ready to render, bundling if needed."""
        if settings.ensure_browser:
            logger.info("Ensuring browser is installed...")
            await ensure_browser(settings.npx_bin)

        if settings.remotion_serve_url:
            logger.info("Using pre-bundled Remotion project: %s", settings.remotion_serve_url)
            serve_url = settings.remotion_serve_url
        else:
            logger.info("Bundling Remotion compositions from %s", settings.remotion_entry_point)
            serve_url = await bundle(
                settings.remotion_entry_point.resolve(),
                settings.bundle_dir,
                npx_bin=settings.npx_bin,
            )
            logger.info("Bundling complete: %s", serve_url)

        return cls(serve_url=serve_url, npx_bin=settings.npx_bin, codec=settings.codec)

    async def list_compositions(self, input_props: dict[str, Any]) -> list[str]:
        """List composition ids available in the bundle."""
        with _props_file(input_props) as props_path:
            cmd = [
                self.npx_bin, "remotion", "compositions",
                self.serve_url,
                f"--props={props_path}",
                "--quiet",
            ]
            result = await asyncio.to_thread(
                subprocess.run, cmd, capture_output=True, text=True
            )

        if result.returncode != 0:
            raise EngineError(f"remotion compositions failed: {result.stderr}")

        return result.stdout.split()

    async def select_composition(
        self,
        composition_id: str,
        input_props: dict[str, Any],
    ) -> Composition:
        available = await self.list_compositions(input_props)
        if composition_id not in available:
            raise CompositionNotFoundError(
                f"Could not find composition with ID {composition_id}. "
                f"Available: {', '.join(available) or 'none'}"
            )

        spec = get_composition_spec(composition_id)
        if spec is None:
            # Not described locally; the bundle computes its own metadata
            return Composition(id=composition_id, props=input_props)
        return spec.resolve(input_props)

    async def render_media(
        self,
        composition: Composition,
        input_props: dict[str, Any],
        output_location: Path,
        cancel_token: CancelToken,
        on_progress: ProgressCallback,
    ) -> Path:
        cancel_token.raise_if_cancelled()

        output_location = Path(output_location)
        output_location.parent.mkdir(parents=True, exist_ok=True)

        with _props_file(input_props) as props_path:
            cmd = [
                self.npx_bin, "remotion", "render",
                self.serve_url,
                composition.id,
                str(output_location),
                f"--props={props_path}",
                f"--codec={self.codec}",
                "--overwrite",
            ]
            cmd += composition.render_flags()
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                start_new_session=True,
            )
            try:
                returncode, stderr = await self._supervise(process, cancel_token, on_progress)
            except BaseException:
                await self._terminate(process)
                output_location.unlink(missing_ok=True)
                raise

        if returncode != 0:
            output_location.unlink(missing_ok=True)
            raise RenderFailedError(
                f"remotion render failed (exit {returncode}): {stderr[-1000:]}"
            )
        if not output_location.exists():
            raise RenderFailedError(f"remotion render produced no output: {output_location}")

        return output_location

    async def _supervise(
        self,
        process: asyncio.subprocess.Process,
        cancel_token: CancelToken,
        on_progress: ProgressCallback,
    ) -> tuple[int, str]:
        """Wait for the render process or the cancel token, whichever is first."""
        progress_task = asyncio.create_task(self._pump_progress(process.stdout, on_progress))
        stderr_task = asyncio.create_task(process.stderr.read())
        wait_task = asyncio.create_task(process.wait())
        cancel_task = asyncio.create_task(cancel_token.wait())
        tasks = (progress_task, stderr_task, wait_task, cancel_task)

        try:
            done, _ = await asyncio.wait(
                {wait_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED
            )
            if wait_task not in done:
                raise RenderCancelledError("Render was cancelled")

            await progress_task
            stderr = await stderr_task
            return wait_task.result(), stderr.decode("utf-8", errors="replace")
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()

    async def _pump_progress(
        self,
        stream: asyncio.StreamReader,
        on_progress: ProgressCallback,
    ) -> None:
        """Read render output and forward parsed progress."""
        parser = RenderProgressParser()
        buffer = ""
        while True:
            chunk = await stream.read(4096)
            if not chunk:
                break
            buffer += chunk.decode("utf-8", errors="replace")
            *lines, buffer = _LINE_SPLIT_RE.split(buffer)
            for line in lines:
                progress = parser.feed(line)
                if progress is not None:
                    on_progress(progress)

        if buffer:
            progress = parser.feed(buffer)
            if progress is not None:
                on_progress(progress)

    async def _terminate(self, process: asyncio.subprocess.Process) -> None:
        """Stop the render process group, escalating to kill after the grace period."""
        if process.returncode is not None:
            return
        _signal_group(process, signal.SIGTERM)
        try:
            await asyncio.wait_for(process.wait(), timeout=self.terminate_grace)
        except asyncio.TimeoutError:
            logger.warning("Render process %s ignored SIGTERM, killing", process.pid)
            _signal_group(process, signal.SIGKILL)
            await process.wait()


def _signal_group(process: asyncio.subprocess.Process, sig: int) -> None:
    """Signal the render process and the browser processes it spawned."""
    try:
        os.killpg(process.pid, sig)
    except ProcessLookupError:
        pass
