"""Pipeline step handlers: transcribe, chunk, embed.

Each step runs while the video holds `status`, commits its own writes, and
moves the video to `next_status` in the same transaction.
"""

from __future__ import annotations

from typing import Protocol

from vidscribe.chunking import Chunk, Chunker, validate_chunks
from vidscribe.db.chunk_store import ChunkStore
from vidscribe.db.connection import Database
from vidscribe.db.tables import utcnow
from vidscribe.db.video_store import VideoStore
from vidscribe.embedding import EmbeddingGenerator
from vidscribe.errors import ChunkSequenceError, EmbeddingError, RouterError, StepFailed
from vidscribe.ledger.store import CostLedger
from vidscribe.models.video import VideoRecord, VideoStatus
from vidscribe.pipeline.states import advance
from vidscribe.router import TranscriptRouter
from vidscribe.utils.progress import log_step, log_warning


class PipelineStep(Protocol):
    """Protocol that all pipeline steps must implement."""

    name: str
    status: VideoStatus
    next_status: VideoStatus

    def validate_inputs(self, video: VideoRecord) -> list[str]: ...
    def run(self, video: VideoRecord) -> None: ...
    def is_retryable(self, error: BaseException) -> bool: ...


class TranscribeStep:
    name = "transcribe"
    status = VideoStatus.TRANSCRIBING
    next_status = VideoStatus.PROCESSING

    def __init__(self, db: Database, videos: VideoStore, ledger: CostLedger, router: TranscriptRouter):
        self.db = db
        self.videos = videos
        self.ledger = ledger
        self.router = router

    def validate_inputs(self, video: VideoRecord) -> list[str]:
        if not video.source_reference.strip():
            return ["Video has no source reference"]
        return []

    def run(self, video: VideoRecord) -> None:
        try:
            result = self.router.route(video)
        except RouterError as e:
            if e.cost_usd > 0:
                self._bill_failure(video, e)
            raise

        with self.db.session() as session:
            self.videos.save_transcript(
                video.id,
                transcript=result.transcript_text,
                method_used=result.method_used,
                duration_seconds=result.duration_seconds,
                segments=result.timestamped_segments,
                session=session,
            )
            self.videos.add_cost(video.id, result.cost_usd, session=session)
            self.ledger.append(
                video_id=video.id,
                creator_id=video.creator_id,
                method_used=result.method_used,
                cost_usd=result.cost_usd,
                duration_seconds=result.duration_seconds,
                session=session,
            )
            advance(self.videos, video.id, self.status, self.next_status, session=session)

        log_step(self.name, f"{video.id}: {result.word_count} words via {result.method_used}")

    def _bill_failure(self, video: VideoRecord, error: RouterError) -> None:
        """Provider work billed during a failed attempt still lands in the ledger."""
        method = next((a.provider for a in error.attempts if a.cost_usd > 0), "unknown")
        with self.db.session() as session:
            self.videos.add_cost(video.id, error.cost_usd, session=session)
            self.ledger.append(
                video_id=video.id,
                creator_id=video.creator_id,
                method_used=method,
                cost_usd=error.cost_usd,
                note=f"billed on failed attempt: {error.code}",
                session=session,
            )

    def is_retryable(self, error: BaseException) -> bool:
        return isinstance(error, RouterError) and error.transient


class ChunkStep:
    """Deterministic; never retried."""

    name = "chunk"
    status = VideoStatus.PROCESSING
    next_status = VideoStatus.EMBEDDING

    def __init__(self, db: Database, videos: VideoStore, chunks: ChunkStore, chunker: Chunker):
        self.db = db
        self.videos = videos
        self.chunks = chunks
        self.chunker = chunker

    def validate_inputs(self, video: VideoRecord) -> list[str]:
        if not (video.transcript or "").strip():
            return ["Video has no transcript to chunk"]
        return []

    def run(self, video: VideoRecord) -> None:
        chunks = self._chunk(video)
        if not chunks:
            raise StepFailed(self.name, "Transcript produced no chunks")
        for warning in validate_chunks(chunks):
            log_warning(f"{video.id}: {warning}")

        with self.db.session() as session:
            self.chunks.replace_chunks(video.id, chunks, session=session)
            indices = self.chunks.sequence_indices(video.id, session=session)
            if indices != list(range(len(chunks))):
                raise ChunkSequenceError(
                    f"Chunk indices for {video.id} are not contiguous from 0: {indices[:10]}"
                )
            advance(self.videos, video.id, self.status, self.next_status, session=session)

        log_step(self.name, f"{video.id}: {len(chunks)} chunks")

    def _chunk(self, video: VideoRecord) -> list[Chunk]:
        """Chunk from timed segments when they carry exactly the transcript's words."""
        text = video.transcript or ""
        segments = video.transcript_segments or []
        if segments and " ".join(seg.text for seg in segments).split() == text.split():
            return self.chunker.chunk_segments(segments)
        return self.chunker.chunk(text)

    def is_retryable(self, error: BaseException) -> bool:
        return False


class EmbedStep:
    """Embeds only chunks still lacking a vector, so a retry never redoes finished batches."""

    name = "embed"
    status = VideoStatus.EMBEDDING
    next_status = VideoStatus.COMPLETED

    def __init__(self, db: Database, videos: VideoStore, chunks: ChunkStore, generator: EmbeddingGenerator):
        self.db = db
        self.videos = videos
        self.chunks = chunks
        self.generator = generator

    def validate_inputs(self, video: VideoRecord) -> list[str]:
        total, _ = self.chunks.count(video.id)
        if total == 0:
            return ["Video has no chunks to embed"]
        return []

    def run(self, video: VideoRecord) -> None:
        missing = self.chunks.list_missing_embeddings(video.id)
        if missing:
            log_step(self.name, f"{video.id}: embedding {len(missing)} chunk(s)")

        tokens = 0
        for batch in self.generator.iter_batches([c.text for c in missing]):
            self.chunks.save_embeddings(
                {missing[batch.start + i].id: vector for i, vector in enumerate(batch.vectors)}
            )
            tokens += batch.total_tokens

        total, embedded = self.chunks.count(video.id)
        if embedded != total:
            raise EmbeddingError(f"{total - embedded} of {total} chunks still lack vectors")

        advance(
            self.videos,
            video.id,
            self.status,
            self.next_status,
            processing_completed_at=utcnow(),
        )
        log_step(
            self.name,
            f"{video.id}: {total} vectors stored ({tokens} tokens, "
            f"${self.generator.cost_for_tokens(tokens):.6f})",
        )

    def is_retryable(self, error: BaseException) -> bool:
        return isinstance(error, EmbeddingError)
