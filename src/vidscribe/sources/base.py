"""Provider contract: one `extract` call returning a tagged Outcome."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol, Union

from vidscribe.models.transcript import TimedSegment
from vidscribe.models.video import SourceFamily


@dataclass(frozen=True)
class VideoSource:
    """What a provider needs to know about a video."""

    video_id: str
    family: SourceFamily
    reference: str


@dataclass(frozen=True)
class Success:
    transcript_text: str
    timestamped_segments: list[TimedSegment] = field(default_factory=list)
    cost_usd: float = 0.0
    duration_seconds: float | None = None
    language: str | None = None

    outcome = "success"


@dataclass(frozen=True)
class Declined:
    """The source has no transcript via this method. Not an error."""

    reason: str
    cost_usd: float = 0.0

    outcome = "declined"


@dataclass(frozen=True)
class TransientFailure:
    """Network, rate-limit or timeout trouble; worth retrying."""

    reason: str
    cost_usd: float = 0.0

    outcome = "transient"


@dataclass(frozen=True)
class FatalInput:
    """Malformed identifier or unreachable resource; retrying will not help."""

    reason: str
    cost_usd: float = 0.0

    outcome = "fatal"


Outcome = Union[Success, Declined, TransientFailure, FatalInput]


class TranscriptProvider(Protocol):
    """Protocol that all transcript providers must implement."""

    name: str
    paid: bool

    def extract(self, source: VideoSource) -> Outcome: ...
