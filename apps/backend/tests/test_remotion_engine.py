"""Tests for the Remotion CLI engine, driven by a fake ``npx`` script."""

from __future__ import annotations

import asyncio
import stat
import sys
from pathlib import Path

import pytest

from vwiz.compositions import Composition
from vwiz.config import Settings
from vwiz.errors import (
    BundleError,
    CompositionNotFoundError,
    InvalidInputPropsError,
    RenderCancelledError,
    RenderFailedError,
)
from vwiz.jobs.cancellation import CancelToken
from vwiz.services.remotion import RemotionEngine, RenderProgressParser, bundle

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="needs a POSIX shell")

# Argument layout: remotion <command> <serve-url|entry> <composition> <output> ...
FAKE_NPX = """\
#!/bin/sh
case "$2" in
  compositions)
    echo "VideoWithSubtitles OtherComposition"
    ;;
  bundle)
    case "$3" in
      *broken*) echo "syntax error" >&2; exit 1 ;;
    esac
    ;;
  browser)
    ;;
  render)
    case "$4" in
      Failing)
        echo "Chrome crashed" >&2
        exit 1
        ;;
      Slow)
        printf 'Rendered 1/4\\n'
        exec sleep 30
        ;;
    esac
    printf 'Rendered 1/4\\rRendered 2/4\\rRendered 4/4\\n'
    printf 'Encoded 2/4\\nEncoded 4/4\\n'
    printf '%s\\n' "$@" > "$5.args"
    printf 'video' > "$5"
    ;;
esac
"""

PROPS = {
    "videoUrl": "https://cdn.example.com/clip.mp4",
    "subtitles": [{"id": 1, "start": 0.0, "end": 1.0, "text": "hi"}],
    "template": "default",
}


@pytest.fixture
def npx(tmp_path: Path) -> str:
    script = tmp_path / "fake-npx"
    script.write_text(FAKE_NPX)
    script.chmod(script.stat().st_mode | stat.S_IXUSR)
    return str(script)


@pytest.fixture
def engine(npx: str, tmp_path: Path) -> RemotionEngine:
    return RemotionEngine(serve_url=str(tmp_path / "bundle"), npx_bin=npx, terminate_grace=2.0)


class TestRenderProgressParser:
    def test_ignores_other_lines(self):
        parser = RenderProgressParser()
        assert parser.feed("Bundling 50%") is None

    def test_rendering_and_encoding_halves(self):
        parser = RenderProgressParser()
        assert parser.feed("Rendered 50/100") == 0.25
        assert parser.feed("Rendered 100/100") == 0.5
        assert parser.feed("Encoded 50/100, time remaining: 2s") == 0.75
        assert parser.feed("Encoded 100/100") == 1.0

    def test_never_goes_backwards(self):
        parser = RenderProgressParser()
        parser.feed("Rendered 80/100")
        assert parser.feed("Rendered 10/100") == 0.4

    def test_zero_total(self):
        assert RenderProgressParser().feed("Rendered 0/0") is None


class TestSelectComposition:
    @pytest.mark.asyncio
    async def test_known_composition_is_resolved(self, engine: RemotionEngine):
        composition = await engine.select_composition("VideoWithSubtitles", PROPS)
        assert composition.id == "VideoWithSubtitles"
        assert composition.duration_in_frames == 30

    @pytest.mark.asyncio
    async def test_unregistered_composition_in_bundle(self, engine: RemotionEngine):
        composition = await engine.select_composition("OtherComposition", {})
        assert composition.id == "OtherComposition"

    @pytest.mark.asyncio
    async def test_missing_composition(self, engine: RemotionEngine):
        with pytest.raises(CompositionNotFoundError, match="Nope"):
            await engine.select_composition("Nope", PROPS)

    @pytest.mark.asyncio
    async def test_invalid_props(self, engine: RemotionEngine):
        with pytest.raises(InvalidInputPropsError):
            await engine.select_composition("VideoWithSubtitles", {**PROPS, "template": "bogus"})


class TestRenderMedia:
    @pytest.mark.asyncio
    async def test_render_reports_progress_and_writes_output(
        self, engine: RemotionEngine, tmp_path: Path
    ):
        output = tmp_path / "out" / "job.mp4"
        progress: list[float] = []

        result = await engine.render_media(
            Composition(id="VideoWithSubtitles"), PROPS, output, CancelToken(), progress.append
        )

        assert result == output
        assert output.read_text() == "video"
        assert progress == sorted(progress)
        assert progress[-1] == 1.0

    @pytest.mark.asyncio
    async def test_resolved_metadata_is_passed_to_render(
        self, engine: RemotionEngine, tmp_path: Path
    ):
        composition = await engine.select_composition("VideoWithSubtitles", PROPS)
        output = tmp_path / "job.mp4"

        await engine.render_media(composition, PROPS, output, CancelToken(), lambda p: None)

        args = Path(f"{output}.args").read_text().split()
        assert args[:5] == ["remotion", "render", engine.serve_url, "VideoWithSubtitles", str(output)]
        assert "--width=1080" in args
        assert "--height=1920" in args
        assert "--frames=0-29" in args

    @pytest.mark.asyncio
    async def test_render_failure(self, engine: RemotionEngine, tmp_path: Path):
        output = tmp_path / "job.mp4"
        with pytest.raises(RenderFailedError, match="Chrome crashed"):
            await engine.render_media(
                Composition(id="Failing"), PROPS, output, CancelToken(), lambda p: None
            )
        assert not output.exists()

    @pytest.mark.asyncio
    async def test_cancel_terminates_render(self, engine: RemotionEngine, tmp_path: Path):
        token = CancelToken()
        progress: list[float] = []

        render = asyncio.create_task(
            engine.render_media(
                Composition(id="Slow"), PROPS, tmp_path / "job.mp4", token, progress.append
            )
        )
        loop = asyncio.get_running_loop()
        deadline = loop.time() + 5
        while not progress and loop.time() < deadline:
            await asyncio.sleep(0.01)

        token.cancel()
        with pytest.raises(RenderCancelledError):
            await asyncio.wait_for(render, timeout=5)
        assert progress == [0.125]

    @pytest.mark.asyncio
    async def test_already_cancelled_token(self, engine: RemotionEngine, tmp_path: Path):
        token = CancelToken()
        token.cancel()
        with pytest.raises(RenderCancelledError):
            await engine.render_media(
                Composition(id="VideoWithSubtitles"), PROPS, tmp_path / "job.mp4", token, lambda p: None
            )


class TestPrepare:
    @pytest.mark.asyncio
    async def test_prebundled_serve_url(self, npx: str):
        settings = Settings(npx_bin=npx, remotion_serve_url="https://bundles.example.com/v1")
        engine = await RemotionEngine.prepare(settings)
        assert engine.serve_url == "https://bundles.example.com/v1"

    @pytest.mark.asyncio
    async def test_bundles_when_no_serve_url(self, npx: str, tmp_path: Path):
        settings = Settings(
            npx_bin=npx,
            remotion_serve_url=None,
            remotion_entry_point=tmp_path / "index.ts",
            bundle_dir=tmp_path / "bundle",
        )
        engine = await RemotionEngine.prepare(settings)
        assert engine.serve_url == str((tmp_path / "bundle").resolve())

    @pytest.mark.asyncio
    async def test_bundle_failure(self, npx: str, tmp_path: Path):
        with pytest.raises(BundleError, match="syntax error"):
            await bundle(tmp_path / "broken.ts", tmp_path / "bundle", npx_bin=npx)
