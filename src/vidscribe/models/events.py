"""Events crossing the pipeline boundary."""

from __future__ import annotations

from pydantic import BaseModel, Field

from vidscribe.models.video import SourceFamily, VideoStatus


class ProcessVideo(BaseModel):
    """Inbound trigger: start a pipeline run at `transcribing`."""

    video_id: str
    creator_id: str
    source_family: SourceFamily


class ReprocessVideos(BaseModel):
    """Inbound administrative trigger: re-run each video independently."""

    video_ids: list[str]
    reason: str = "manual"


class ProcessingFinished(BaseModel):
    """Completion signal emitted when a run reaches `completed` or `failed`."""

    video_id: str
    status: VideoStatus
    error_message: str | None = None


class ReprocessItem(BaseModel):
    video_id: str
    status: VideoStatus | None = None
    error_message: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == VideoStatus.COMPLETED


class ReprocessReport(BaseModel):
    """Per-video outcome of a bulk reprocess request."""

    reason: str
    items: list[ReprocessItem] = Field(default_factory=list)

    @property
    def succeeded(self) -> list[ReprocessItem]:
        return [i for i in self.items if i.succeeded]

    @property
    def failed(self) -> list[ReprocessItem]:
        return [i for i in self.items if not i.succeeded]
