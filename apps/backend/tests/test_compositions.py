"""Tests for the composition registry and prop schemas."""

import pytest

from vwiz.compositions import (
    VIDEO_WITH_SUBTITLES,
    CaptionTemplate,
    Composition,
    get_composition_spec,
)
from vwiz.errors import InvalidInputPropsError


def _props(**overrides) -> dict:
    props = {
        "videoUrl": "https://cdn.example.com/clip.mp4",
        "subtitles": [
            {"id": 1, "start": 0.0, "end": 2.0, "text": "Welcome"},
            {"id": 2, "start": 2.0, "end": 4.5, "text": "to the show"},
        ],
        "template": "hormozi",
    }
    props.update(overrides)
    return props


@pytest.fixture
def spec():
    return get_composition_spec(VIDEO_WITH_SUBTITLES)


def test_unknown_composition() -> None:
    assert get_composition_spec("Nope") is None


def test_templates() -> None:
    assert CaptionTemplate("mrbeastemoji") is CaptionTemplate.MRBEAST_EMOJI
    assert len(CaptionTemplate) == 9


def test_resolve_metadata(spec) -> None:
    composition = spec.resolve(_props())
    assert composition.id == VIDEO_WITH_SUBTITLES
    assert composition.fps == 30
    assert (composition.width, composition.height) == (1080, 1920)
    # ceil(4.5s * 30fps)
    assert composition.duration_in_frames == 135


def test_explicit_duration_wins(spec) -> None:
    composition = spec.resolve(_props(durationInFrames=90))
    assert composition.duration_in_frames == 90
    assert composition.render_flags() == ["--width=1080", "--height=1920", "--frames=0-89"]


def test_default_duration_without_subtitles(spec) -> None:
    composition = spec.resolve(_props(subtitles=[]))
    assert composition.duration_in_frames == 300


def test_word_timings_and_extras_accepted(spec) -> None:
    subtitles = [
        {
            "id": 1,
            "start": 0.0,
            "end": 1.0,
            "text": "Hi all",
            "words": [{"word": "Hi", "start": 0.0, "end": 0.4}, {"word": "all", "start": 0.4, "end": 1.0}],
        }
    ]
    composition = spec.resolve(_props(subtitles=subtitles, backgroundColor="#1a1a1a", brand={"font": "Inter"}))
    assert composition.duration_in_frames == 30
    assert composition.props["brand"] == {"font": "Inter"}


@pytest.mark.parametrize(
    "overrides",
    [
        {"template": "comic-sans"},
        {"videoUrl": "not a url"},
        {"backgroundColor": "black"},
        {"subtitles": [{"id": 1, "start": 0, "end": 1}]},
        {"durationInFrames": 0},
    ],
)
def test_invalid_props(spec, overrides) -> None:
    with pytest.raises(InvalidInputPropsError):
        spec.resolve(_props(**overrides))


def test_unresolved_composition_has_no_render_flags() -> None:
    assert Composition(id="OtherComposition").render_flags() == []
