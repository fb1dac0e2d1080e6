"""Exception hierarchy for vidscribe."""

from __future__ import annotations


class VidscribeError(Exception):
    """Base class for all vidscribe errors."""


class ConfigError(VidscribeError):
    """Configuration file could not be parsed or validated."""


class VideoNotFound(VidscribeError):
    def __init__(self, video_id: str):
        self.video_id = video_id
        super().__init__(f"Video not found: {video_id}")


class InvariantViolation(VidscribeError):
    """A data or programming defect. Never retried, never swallowed."""


class UnknownSourceFamily(InvariantViolation):
    def __init__(self, family: object):
        self.family = family
        super().__init__(f"Unrecognized source family: {family!r}")


class ChunkSequenceError(InvariantViolation):
    """Chunk sequence indices for a video are not exactly 0..n-1."""


class StateTransitionError(InvariantViolation):
    def __init__(self, current: str, attempted: str):
        self.current = current
        self.attempted = attempted
        super().__init__(f"Illegal status transition: {current} → {attempted}")


class StaleStatusError(VidscribeError):
    """A compare-and-set status update lost the race to another writer."""

    def __init__(self, video_id: str, expected: str, actual: str | None):
        self.video_id = video_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Video {video_id} status changed concurrently "
            f"(expected {expected}, found {actual})"
        )


class RouterError(VidscribeError):
    """Every transcript provider candidate was exhausted without success."""

    NO_TRANSCRIPT_AVAILABLE = "NO_TRANSCRIPT_AVAILABLE"

    def __init__(
        self,
        message: str,
        *,
        code: str = NO_TRANSCRIPT_AVAILABLE,
        attempts: list | None = None,
        cost_usd: float = 0.0,
    ):
        self.code = code
        self.attempts = attempts or []
        self.cost_usd = cost_usd
        super().__init__(message)

    @property
    def transient(self) -> bool:
        """True when at least one provider failed only transiently."""
        return any(a.outcome == "transient" for a in self.attempts)


class EmbeddingError(VidscribeError):
    """A batch embedding request failed; the batch is retried as a unit."""


class StepFailed(VidscribeError):
    """A pipeline step failed terminally; the video is marked failed."""

    def __init__(self, step: str, message: str):
        self.step = step
        super().__init__(message)
