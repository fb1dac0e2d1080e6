"""Chunk store: atomic per-video replacement and embedding bookkeeping."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session

from vidscribe.db.connection import Database
from vidscribe.db.tables import ChunkRow
from vidscribe.models.video import ChunkRecord

if TYPE_CHECKING:
    from vidscribe.chunking import Chunk


class ChunkStore:
    """Persisted transcript chunks, owned by their video."""

    def __init__(self, db: Database):
        self.db = db

    def replace_chunks(
        self,
        video_id: str,
        chunks: Sequence[Chunk],
        *,
        session: Session | None = None,
    ) -> int:
        """Delete every chunk of `video_id` and insert `chunks`, in one transaction."""
        with self.db.scope(session) as s:
            s.execute(delete(ChunkRow).where(ChunkRow.video_id == video_id))
            s.add_all(
                ChunkRow(
                    video_id=video_id,
                    sequence_index=c.index,
                    text=c.text,
                    word_count=c.word_count,
                    start_seconds=c.start_seconds,
                    end_seconds=c.end_seconds,
                    has_overlap=c.has_overlap,
                    embedding=None,
                )
                for c in chunks
            )
            s.flush()
        return len(chunks)

    def list_chunks(self, video_id: str) -> list[ChunkRecord]:
        stmt = (
            select(ChunkRow)
            .where(ChunkRow.video_id == video_id)
            .order_by(ChunkRow.sequence_index)
        )
        with self.db.session() as session:
            return [ChunkRecord.model_validate(r) for r in session.scalars(stmt)]

    def list_missing_embeddings(self, video_id: str) -> list[ChunkRecord]:
        """Chunks of `video_id` that have no vector yet, in reading order."""
        stmt = (
            select(ChunkRow)
            .where(ChunkRow.video_id == video_id, ChunkRow.embedding.is_(None))
            .order_by(ChunkRow.sequence_index)
        )
        with self.db.session() as session:
            return [ChunkRecord.model_validate(r) for r in session.scalars(stmt)]

    def sequence_indices(self, video_id: str, *, session: Session | None = None) -> list[int]:
        stmt = (
            select(ChunkRow.sequence_index)
            .where(ChunkRow.video_id == video_id)
            .order_by(ChunkRow.sequence_index)
        )
        with self.db.scope(session) as s:
            return list(s.scalars(stmt))

    def save_embeddings(self, vectors: Mapping[int, list[float]]) -> None:
        """Store vectors keyed by chunk row id. All or nothing."""
        if not vectors:
            return
        with self.db.session() as session:
            for chunk_id, vector in vectors.items():
                session.execute(
                    update(ChunkRow)
                    .where(ChunkRow.id == chunk_id)
                    .values(embedding=list(vector))
                    .execution_options(synchronize_session=False)
                )

    def count(self, video_id: str) -> tuple[int, int]:
        """Return (total chunks, chunks with a vector) for `video_id`."""
        stmt = select(
            func.count(ChunkRow.id),
            func.count(ChunkRow.embedding),
        ).where(ChunkRow.video_id == video_id)
        with self.db.session() as session:
            total, embedded = session.execute(stmt).one()
            return int(total), int(embedded)
