"""SQLAlchemy declarative tables.

Timestamps are naive UTC so SQLite and PostgreSQL round-trip them identically.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Base(DeclarativeBase):
    pass


class TimestampMixin:
    """created_at on insert, updated_at on every update."""

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow, nullable=False
    )


class VideoRow(Base, TimestampMixin):
    """A video and its processing state. Only the orchestrator mutates `status`."""

    __tablename__ = "videos"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    creator_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(500), default="")

    source_family: Mapped[str] = mapped_column(String(32), nullable=False)
    source_reference: Mapped[str] = mapped_column(String(1024), nullable=False)

    status: Mapped[str] = mapped_column(String(20), default="pending", nullable=False)
    transcript: Mapped[str | None] = mapped_column(Text)
    transcript_segments: Mapped[list[dict] | None] = mapped_column(JSON(none_as_null=True))
    transcript_method: Mapped[str | None] = mapped_column(String(50))
    error_message: Mapped[str | None] = mapped_column(Text)
    cost_usd_accum: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    duration_seconds: Mapped[float | None] = mapped_column(Float)

    recovery_attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_recovery_at: Mapped[datetime | None] = mapped_column(DateTime)
    processing_started_at: Mapped[datetime | None] = mapped_column(DateTime)
    processing_completed_at: Mapped[datetime | None] = mapped_column(DateTime)

    __table_args__ = (Index("idx_videos_status_updated", "status", "updated_at"),)

    def __repr__(self) -> str:
        return f"<VideoRow(id='{self.id}', status='{self.status}')>"


class ChunkRow(Base):
    """One overlapping transcript window and, once embedded, its vector."""

    __tablename__ = "transcript_chunks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    video_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("videos.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    sequence_index: Mapped[int] = mapped_column(Integer, nullable=False)
    text: Mapped[str] = mapped_column(Text, nullable=False)
    word_count: Mapped[int] = mapped_column(Integer, default=0)
    start_seconds: Mapped[float | None] = mapped_column(Float)
    end_seconds: Mapped[float | None] = mapped_column(Float)
    has_overlap: Mapped[bool] = mapped_column(Boolean, default=False)
    embedding: Mapped[list[float] | None] = mapped_column(JSON(none_as_null=True))

    __table_args__ = (
        UniqueConstraint("video_id", "sequence_index", name="uq_chunks_video_sequence"),
    )

    def __repr__(self) -> str:
        return f"<ChunkRow(video_id='{self.video_id}', index={self.sequence_index})>"


class CostLedgerRow(Base):
    """Append-only transcript spend record. Rows are never updated or deleted."""

    __tablename__ = "cost_ledger"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    video_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    creator_id: Mapped[str] = mapped_column(String(64), nullable=False)
    method_used: Mapped[str] = mapped_column(String(50), nullable=False)
    cost_usd: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    duration_seconds: Mapped[float | None] = mapped_column(Float)
    note: Mapped[str | None] = mapped_column(String(500))
    occurred_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (Index("idx_ledger_creator_time", "creator_id", "occurred_at"),)
