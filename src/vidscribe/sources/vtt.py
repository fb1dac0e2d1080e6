"""Minimal WebVTT cue parser."""

from __future__ import annotations

import re

from vidscribe.models.transcript import TimedSegment

_TIMING = re.compile(
    r"(?P<start>(?:\d+:)?\d{1,2}:\d{2}[.,]\d{1,3})\s*-->\s*(?P<end>(?:\d+:)?\d{1,2}:\d{2}[.,]\d{1,3})"
)
_TAG = re.compile(r"<[^>]+>")


def parse_timestamp(value: str) -> float:
    """Convert ``HH:MM:SS.mmm`` or ``MM:SS.mmm`` to seconds."""
    parts = value.replace(",", ".").split(":")
    seconds = float(parts[-1])
    minutes = int(parts[-2]) if len(parts) >= 2 else 0
    hours = int(parts[-3]) if len(parts) >= 3 else 0
    return hours * 3600 + minutes * 60 + seconds


def parse_vtt(content: str) -> list[TimedSegment]:
    """Parse WebVTT text into timed segments.

    Styling tags are stripped, NOTE/STYLE blocks skipped, and a cue repeating
    the previous cue's text (rolling auto-captions) is merged into it.
    """
    segments: list[TimedSegment] = []
    blocks = re.split(r"\n\s*\n", content.replace("\r\n", "\n").replace("\r", "\n"))

    for block in blocks:
        lines = [line.strip() for line in block.strip().split("\n") if line.strip()]
        if not lines:
            continue
        if lines[0].startswith(("WEBVTT", "NOTE", "STYLE", "REGION")):
            continue

        timing_idx = next((i for i, line in enumerate(lines) if _TIMING.search(line)), None)
        if timing_idx is None:
            continue

        match = _TIMING.search(lines[timing_idx])
        start = parse_timestamp(match.group("start"))
        end = parse_timestamp(match.group("end"))
        text = " ".join(_TAG.sub("", line) for line in lines[timing_idx + 1 :]).strip()
        if not text:
            continue

        if segments and segments[-1].text == text:
            prev = segments[-1]
            segments[-1] = TimedSegment(text=text, start=prev.start, duration=end - prev.start)
            continue
        segments.append(TimedSegment(text=text, start=start, duration=max(0.0, end - start)))

    return segments
