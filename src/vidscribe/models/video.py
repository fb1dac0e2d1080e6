"""Video and chunk models shared between the stores and the pipeline."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from vidscribe.models.transcript import TimedSegment


class SourceFamily(str, Enum):
    """Origin category of a video; decides which transcript providers apply."""

    EMBED_FREE = "embed-free"
    EMBED_OPTIONAL_CAPTION = "embed-optional-caption"
    RAW_FILE = "raw-file"


class VideoStatus(str, Enum):
    """Processing status persisted on the video row."""

    PENDING = "pending"
    UPLOADING = "uploading"
    TRANSCRIBING = "transcribing"
    PROCESSING = "processing"
    EMBEDDING = "embedding"
    COMPLETED = "completed"
    FAILED = "failed"


class VideoRecord(BaseModel):
    """Read-only snapshot of a video row."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    creator_id: str
    title: str = ""
    source_family: SourceFamily
    source_reference: str
    status: VideoStatus = VideoStatus.PENDING
    transcript: str | None = None
    transcript_segments: list[TimedSegment] | None = None
    transcript_method: str | None = None
    error_message: str | None = None
    cost_usd_accum: float = 0.0
    duration_seconds: float | None = None
    recovery_attempts: int = 0
    last_recovery_at: datetime | None = None
    processing_started_at: datetime | None = None
    processing_completed_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ChunkRecord(BaseModel):
    """Read-only snapshot of a transcript chunk row."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    video_id: str
    sequence_index: int
    text: str
    word_count: int = 0
    start_seconds: float | None = None
    end_seconds: float | None = None
    has_overlap: bool = False
    embedding: list[float] | None = Field(default=None, repr=False)

    @property
    def is_embedded(self) -> bool:
        return self.embedding is not None
