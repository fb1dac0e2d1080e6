"""Pydantic data models for vidscribe."""

from vidscribe.models.config import Settings
from vidscribe.models.transcript import TimedSegment, TranscriptResult
from vidscribe.models.video import SourceFamily, VideoRecord, VideoStatus

__all__ = [
    "Settings",
    "SourceFamily",
    "TimedSegment",
    "TranscriptResult",
    "VideoRecord",
    "VideoStatus",
]
