"""Compositions registered in the Remotion bundle and their prop schemas."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, HttpUrl, ValidationError

from vwiz.errors import InvalidInputPropsError

VIDEO_WITH_SUBTITLES = "VideoWithSubtitles"

_HEX_COLOR = r"^#(?:[0-9a-fA-F]{3,4}|[0-9a-fA-F]{6}|[0-9a-fA-F]{8})$"


class CaptionTemplate(str, Enum):
    """Caption styles understood by the composition."""

    DEFAULT = "default"
    VIRAL = "viral"
    MINIMAL = "minimal"
    MODERN = "modern"
    HIGHLIGHT = "highlight"
    COLORSHIFT = "colorshift"
    HORMOZI = "hormozi"
    MRBEAST = "mrbeast"
    MRBEAST_EMOJI = "mrbeastemoji"


class WordTiming(BaseModel):
    word: str
    start: float
    end: float


class SubtitleSegment(BaseModel):
    """A subtitle entry. Times are in seconds."""

    id: int
    start: float
    end: float
    text: str
    words: list[WordTiming] | None = None


class VideoWithSubtitlesProps(BaseModel):
    """Input props of the ``VideoWithSubtitles`` composition."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    video_url: HttpUrl = Field(..., alias="videoUrl")
    subtitles: list[SubtitleSegment]
    template: CaptionTemplate
    background_color: str | None = Field(None, alias="backgroundColor", pattern=_HEX_COLOR)
    video_start_time: float | None = Field(None, alias="videoStartTime")
    duration_in_frames: int | None = Field(None, alias="durationInFrames", gt=0)
    language: str | None = None


@dataclass(frozen=True)
class Composition:
    """Composition metadata handed to the renderer.

    Dimensions and duration are None when the bundle computes them itself.
    """

    id: str
    fps: int = 30
    width: int | None = None
    height: int | None = None
    duration_in_frames: int | None = None
    props: dict[str, Any] = field(default_factory=dict)

    def render_flags(self) -> list[str]:
        """CLI overrides pinning the render to the resolved metadata."""
        flags = []
        if self.width is not None and self.height is not None:
            flags += [f"--width={self.width}", f"--height={self.height}"]
        if self.duration_in_frames is not None:
            flags.append(f"--frames=0-{self.duration_in_frames - 1}")
        return flags


@dataclass(frozen=True)
class CompositionSpec:
    """Static definition of a registered composition."""

    id: str
    schema: type[BaseModel]
    fps: int = 30
    width: int = 1080
    height: int = 1920
    default_duration_in_frames: int = 300

    def resolve(self, input_props: dict[str, Any]) -> Composition:
        """Validate ``input_props`` and calculate the composition metadata.

        Raises:
            InvalidInputPropsError: If the props do not match the schema.
        """
        try:
            props = self.schema.model_validate(input_props)
        except ValidationError as exc:
            raise InvalidInputPropsError(
                f"Invalid input props for composition {self.id}: {exc}"
            ) from exc

        return Composition(
            id=self.id,
            fps=self.fps,
            width=self.width,
            height=self.height,
            duration_in_frames=self.calculate_duration(props),
            props=input_props,
        )

    def calculate_duration(self, props: BaseModel) -> int:
        # Explicit duration wins, then the last subtitle's end (seconds)
        explicit = getattr(props, "duration_in_frames", None)
        if explicit:
            return explicit

        subtitles = getattr(props, "subtitles", None)
        if subtitles:
            frames = math.ceil(subtitles[-1].end * self.fps)
            if frames > 0:
                return frames

        return self.default_duration_in_frames


COMPOSITIONS: dict[str, CompositionSpec] = {
    VIDEO_WITH_SUBTITLES: CompositionSpec(
        id=VIDEO_WITH_SUBTITLES,
        schema=VideoWithSubtitlesProps,
    ),
}


def get_composition_spec(composition_id: str) -> CompositionSpec | None:
    """Get a registered composition by id."""
    return COMPOSITIONS.get(composition_id)
