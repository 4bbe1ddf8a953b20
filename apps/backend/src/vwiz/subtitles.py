"""Subtitle loading for render requests.

Parses SRT files (or JSON subtitle lists) into the segment format the
``VideoWithSubtitles`` composition expects: ids from 1, times in seconds.
"""

import json
import re
from pathlib import Path
from typing import Any

from vwiz.compositions import SubtitleSegment
from vwiz.errors import VWizError


class SubtitleParseError(VWizError):
    """Subtitle file parsing failed."""

    pass


# SRT timestamp format: HH:MM:SS,mmm --> HH:MM:SS,mmm
_TIMESTAMP_RE = re.compile(
    r"(\d{2}):(\d{2}):(\d{2})[,.](\d{3})\s*-->\s*(\d{2}):(\d{2}):(\d{2})[,.](\d{3})"
)

# HTML tag stripper
_HTML_TAG_RE = re.compile(r"<[^>]+>")


def _timestamp_to_seconds(hours: str, minutes: str, seconds: str, millis: str) -> float:
    """Convert SRT timestamp components to seconds."""
    total_ms = (
        int(hours) * 3_600_000
        + int(minutes) * 60_000
        + int(seconds) * 1_000
        + int(millis)
    )
    return total_ms / 1000.0


def _strip_bom(text: str) -> str:
    """Remove UTF-8 BOM if present."""
    if text.startswith("\ufeff"):
        return text[1:]
    return text


class SRTParser:
    """Parser for SRT subtitle files."""

    def parse(self, srt_path: Path) -> list[SubtitleSegment]:
        """Parse an SRT file into subtitle segments.

        Args:
            srt_path: Path to the .srt file

        Returns:
            Segments ordered by start time, numbered from 1

        Raises:
            SubtitleParseError: If the file cannot be read or has no valid entries
            FileNotFoundError: If the file does not exist
        """
        srt_path = Path(srt_path)
        if not srt_path.exists():
            raise FileNotFoundError(f"SRT file not found: {srt_path}")

        try:
            content = srt_path.read_text(encoding="utf-8")
        except UnicodeDecodeError as exc:
            raise SubtitleParseError(f"Failed to decode SRT file as UTF-8: {srt_path}") from exc

        entries = self.parse_text(_strip_bom(content))
        if not entries:
            raise SubtitleParseError(f"No valid subtitle entries found in: {srt_path}")
        return entries

    def parse_text(self, content: str) -> list[SubtitleSegment]:
        """Parse SRT content. Malformed blocks are skipped."""
        content = content.replace("\r\n", "\n").replace("\r", "\n")
        blocks = re.split(r"\n\n+", content.strip())

        timed: list[tuple[float, float, str]] = []
        for block in blocks:
            entry = self._parse_block(block)
            if entry is not None:
                timed.append(entry)

        timed.sort(key=lambda e: e[0])
        return [
            SubtitleSegment(id=i, start=start, end=end, text=text)
            for i, (start, end, text) in enumerate(timed, 1)
        ]

    def _parse_block(self, block: str) -> tuple[float, float, str] | None:
        lines = block.strip().split("\n")
        if len(lines) < 2:
            return None

        # The index line before the timestamp is optional
        for i, line in enumerate(lines):
            match = _TIMESTAMP_RE.search(line)
            if match is not None:
                break
        else:
            return None

        start = _timestamp_to_seconds(*match.group(1, 2, 3, 4))
        end = _timestamp_to_seconds(*match.group(5, 6, 7, 8))

        raw_text = " ".join(line.strip() for line in lines[i + 1 :] if line.strip())
        text = _HTML_TAG_RE.sub("", raw_text).strip()

        if not text or end <= start:
            return None
        return start, end, text


def normalize_subtitles(subtitles: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Renumber ``{start, end, text}`` entries from 1 for the composition."""
    return [
        {
            "id": index,
            "start": sub["start"],
            "end": sub["end"],
            "text": sub["text"],
        }
        for index, sub in enumerate(subtitles, 1)
    ]


def load_subtitles(path: Path) -> list[dict[str, Any]]:
    """Load subtitles from an ``.srt`` file or a JSON list.

    Raises:
        SubtitleParseError: If the file is not a usable subtitle source
    """
    path = Path(path)
    if path.suffix.lower() == ".srt":
        return [seg.model_dump(exclude_none=True) for seg in SRTParser().parse(path)]

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise SubtitleParseError(f"Invalid subtitle JSON: {path}") from exc

    if not isinstance(data, list):
        raise SubtitleParseError(f"Subtitle JSON must be a list: {path}")
    try:
        return normalize_subtitles(data)
    except (KeyError, TypeError) as exc:
        raise SubtitleParseError(f"Subtitle entries need start, end and text: {path}") from exc
