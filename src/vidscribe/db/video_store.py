"""Video store: reads, compare-and-set status updates, transcript/cost writes."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import datetime

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from vidscribe.db.connection import Database
from vidscribe.db.tables import VideoRow, utcnow
from vidscribe.errors import StaleStatusError, VideoNotFound
from vidscribe.models.transcript import TimedSegment
from vidscribe.models.video import SourceFamily, VideoRecord, VideoStatus


def _as_values(expected: VideoStatus | Iterable[VideoStatus]) -> list[str]:
    if isinstance(expected, VideoStatus):
        return [expected.value]
    return [s.value for s in expected]


class VideoStore:
    """Keyed access to video rows.

    Every status write goes through `compare_and_set_status`, which only
    succeeds while the row still holds one of the expected statuses. Two runs
    racing on the same video therefore cannot both advance it.
    """

    def __init__(self, db: Database):
        self.db = db

    def create(
        self,
        video_id: str,
        *,
        creator_id: str,
        source_family: SourceFamily,
        source_reference: str,
        title: str = "",
    ) -> VideoRecord:
        """Insert a new video in `pending`. Used by the import flow and tests."""
        with self.db.session() as session:
            row = VideoRow(
                id=video_id,
                creator_id=creator_id,
                title=title,
                source_family=SourceFamily(source_family).value,
                source_reference=source_reference,
                status=VideoStatus.PENDING.value,
            )
            session.add(row)
            session.flush()
            return VideoRecord.model_validate(row)

    def exists(self, video_id: str) -> bool:
        with self.db.session() as session:
            return session.get(VideoRow, video_id) is not None

    def get(self, video_id: str, *, session: Session | None = None) -> VideoRecord:
        with self.db.scope(session) as s:
            row = s.get(VideoRow, video_id, populate_existing=True)
            if row is None:
                raise VideoNotFound(video_id)
            return VideoRecord.model_validate(row)

    def get_status(self, video_id: str, *, session: Session | None = None) -> VideoStatus:
        with self.db.scope(session) as s:
            status = s.scalar(select(VideoRow.status).where(VideoRow.id == video_id))
            if status is None:
                raise VideoNotFound(video_id)
            return VideoStatus(status)

    def compare_and_set_status(
        self,
        video_id: str,
        expected: VideoStatus | Iterable[VideoStatus],
        new: VideoStatus,
        *,
        session: Session | None = None,
        **fields,
    ) -> None:
        """Set `status` to `new` (plus any extra column values) iff it is still `expected`.

        Raises:
            VideoNotFound: No such video.
            StaleStatusError: The row's status is no longer one of `expected`.
        """
        allowed = _as_values(expected)
        with self.db.scope(session) as s:
            result = s.execute(
                update(VideoRow)
                .where(VideoRow.id == video_id, VideoRow.status.in_(allowed))
                .values(status=new.value, **fields)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 1:
                return
            actual = s.scalar(select(VideoRow.status).where(VideoRow.id == video_id))
            if actual is None:
                raise VideoNotFound(video_id)
            raise StaleStatusError(video_id, "|".join(allowed), actual)

    def save_transcript(
        self,
        video_id: str,
        *,
        transcript: str,
        method_used: str,
        duration_seconds: float | None,
        segments: Sequence[TimedSegment] = (),
        session: Session | None = None,
    ) -> None:
        """Overwrite the transcript and its timed segments wholesale. Status is moved separately."""
        with self.db.scope(session) as s:
            s.execute(
                update(VideoRow)
                .where(VideoRow.id == video_id)
                .values(
                    transcript=transcript,
                    transcript_segments=[seg.model_dump() for seg in segments] or None,
                    transcript_method=method_used,
                    duration_seconds=duration_seconds,
                )
                .execution_options(synchronize_session=False)
            )

    def add_cost(self, video_id: str, amount: float, *, session: Session | None = None) -> None:
        """Increase `cost_usd_accum`. Negative amounts are refused; it never decreases."""
        if amount < 0:
            raise ValueError(f"cost_usd_accum cannot decrease (amount={amount})")
        if amount == 0:
            return
        with self.db.scope(session) as s:
            s.execute(
                update(VideoRow)
                .where(VideoRow.id == video_id)
                .values(cost_usd_accum=VideoRow.cost_usd_accum + amount)
                .execution_options(synchronize_session=False)
            )

    def record_recovery_attempt(
        self, video_id: str, *, at: datetime | None = None, session: Session | None = None
    ) -> None:
        with self.db.scope(session) as s:
            s.execute(
                update(VideoRow)
                .where(VideoRow.id == video_id)
                .values(
                    recovery_attempts=VideoRow.recovery_attempts + 1,
                    last_recovery_at=at or utcnow(),
                )
                .execution_options(synchronize_session=False)
            )

    def list_videos(
        self,
        *,
        creator_id: str | None = None,
        statuses: Iterable[VideoStatus] | None = None,
        limit: int | None = None,
    ) -> list[VideoRecord]:
        stmt = select(VideoRow).order_by(VideoRow.updated_at.desc())
        if creator_id is not None:
            stmt = stmt.where(VideoRow.creator_id == creator_id)
        if statuses is not None:
            stmt = stmt.where(VideoRow.status.in_(_as_values(statuses)))
        if limit is not None:
            stmt = stmt.limit(limit)
        with self.db.session() as session:
            return [VideoRecord.model_validate(r) for r in session.scalars(stmt)]

    def list_stale(self, status: VideoStatus, updated_before: datetime) -> list[VideoRecord]:
        """Videos sitting in `status` without an update since `updated_before`."""
        stmt = (
            select(VideoRow)
            .where(VideoRow.status == status.value, VideoRow.updated_at < updated_before)
            .order_by(VideoRow.updated_at)
        )
        with self.db.session() as session:
            return [VideoRecord.model_validate(r) for r in session.scalars(stmt)]

    def count_by_status(self, creator_id: str | None = None) -> dict[VideoStatus, int]:
        stmt = select(VideoRow.status, func.count()).group_by(VideoRow.status)
        if creator_id is not None:
            stmt = stmt.where(VideoRow.creator_id == creator_id)
        with self.db.session() as session:
            return {VideoStatus(status): n for status, n in session.execute(stmt)}
