"""Source classification: family + reference → ordered provider candidates."""

from __future__ import annotations

import re
from dataclasses import dataclass

from vidscribe.errors import UnknownSourceFamily
from vidscribe.models.video import SourceFamily

_YOUTUBE_PATTERNS = [
    re.compile(r"(?:youtube\.com/watch\?v=|youtube\.com/watch\?.*&v=)([^&\n?#]+)"),
    re.compile(r"youtu\.be/([^&\n?#]+)"),
    re.compile(r"youtube\.com/embed/([^&\n?#]+)"),
    re.compile(r"youtube\.com/v/([^&\n?#]+)"),
    re.compile(r"youtube\.com/shorts/([^&\n?#]+)"),
]
_YOUTUBE_ID = re.compile(r"^[A-Za-z0-9_-]{11}$")

_LOOM_PATTERN = re.compile(r"(?:www\.)?loom\.com/(?:share|embed)/([a-f0-9]+)", re.IGNORECASE)
_LOOM_ID = re.compile(r"^[a-f0-9]{32}$", re.IGNORECASE)

_MUX_STREAM = re.compile(r"stream\.mux\.com/([^/.?#]+)")
_MUX_ID = re.compile(r"^[A-Za-z0-9_-]+$")


def youtube_video_id(reference: str) -> str | None:
    """Extract an 11-character YouTube id from a URL or bare id."""
    ref = reference.strip()
    if _YOUTUBE_ID.match(ref):
        return ref
    for pattern in _YOUTUBE_PATTERNS:
        match = pattern.search(ref)
        if match and _YOUTUBE_ID.match(match.group(1)):
            return match.group(1)
    return None


def loom_video_id(reference: str) -> str | None:
    ref = reference.strip()
    if _LOOM_ID.match(ref):
        return ref.lower()
    match = _LOOM_PATTERN.search(ref)
    return match.group(1).lower() if match else None


def mux_asset_id(reference: str) -> str | None:
    ref = reference.strip()
    match = _MUX_STREAM.search(ref)
    if match:
        return match.group(1)
    return ref if _MUX_ID.match(ref) else None


@dataclass(frozen=True)
class Candidate:
    """A provider eligible for a source, plus the identifiers it needs."""

    provider: str
    required_fields: tuple[str, ...]


YOUTUBE = Candidate("youtube", ("youtube_video_id",))
LOOM = Candidate("loom", ("loom_video_id", "LOOM_API_KEY"))
MUX = Candidate("mux", ("mux_asset_id", "MUX_TOKEN_ID", "MUX_TOKEN_SECRET"))
WHISPER = Candidate("whisper", ("media_locator", "OPENAI_API_KEY"))

# Cheapest first. The paid backstop closes every list.
CANDIDATES: dict[SourceFamily, tuple[Candidate, ...]] = {
    SourceFamily.EMBED_FREE: (YOUTUBE, LOOM, WHISPER),
    SourceFamily.EMBED_OPTIONAL_CAPTION: (MUX, WHISPER),
    SourceFamily.RAW_FILE: (WHISPER,),
}

_REFERENCE_MATCHERS = {
    "youtube": youtube_video_id,
    "loom": loom_video_id,
}


def classify(family: SourceFamily | str, reference: str) -> list[Candidate]:
    """Return the ordered provider candidates for a video source.

    For embed-free sources a free platform provider is only offered when the
    reference actually belongs to that platform.

    Raises:
        UnknownSourceFamily: `family` is not a known source family.
    """
    try:
        family = SourceFamily(family)
    except ValueError:
        raise UnknownSourceFamily(family) from None

    candidates = CANDIDATES.get(family)
    if candidates is None:
        raise UnknownSourceFamily(family)

    if family is not SourceFamily.EMBED_FREE:
        return list(candidates)

    return [
        c
        for c in candidates
        if c.provider not in _REFERENCE_MATCHERS or _REFERENCE_MATCHERS[c.provider](reference)
    ]

