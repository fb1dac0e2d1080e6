"""Transcript data models."""

from __future__ import annotations

from pydantic import BaseModel, Field


class TimedSegment(BaseModel):
    """A caption cue or speech-to-text segment with timing."""

    text: str
    start: float
    duration: float = 0.0

    @property
    def end(self) -> float:
        return self.start + self.duration


class ProviderAttempt(BaseModel):
    """One provider invocation as seen by the router."""

    provider: str
    outcome: str  # success | declined | transient | fatal
    reason: str | None = None
    attempts: int = 1
    cost_usd: float = 0.0


class TranscriptResult(BaseModel):
    """Normalized output of the transcript router. Never persisted as its own row."""

    method_used: str
    transcript_text: str
    timestamped_segments: list[TimedSegment] = Field(default_factory=list)
    cost_usd: float = 0.0
    duration_seconds: float | None = None
    language: str | None = None
    attempts: list[ProviderAttempt] = Field(default_factory=list)

    @property
    def word_count(self) -> int:
        return len(self.transcript_text.split())

    @property
    def is_free(self) -> bool:
        return self.cost_usd == 0
