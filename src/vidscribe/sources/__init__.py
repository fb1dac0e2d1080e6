"""Transcript sources: classification and provider adapters."""

from vidscribe.sources.base import (
    Declined,
    FatalInput,
    Outcome,
    Success,
    TranscriptProvider,
    TransientFailure,
    VideoSource,
)
from vidscribe.sources.classifier import Candidate, classify

__all__ = [
    "Candidate",
    "Declined",
    "FatalInput",
    "Outcome",
    "Success",
    "TranscriptProvider",
    "TransientFailure",
    "VideoSource",
    "classify",
]
