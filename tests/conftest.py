"""Shared pytest fixtures: in-memory database, fake providers, fake embedder."""

from __future__ import annotations

import threading
from collections.abc import Callable

import pytest

from vidscribe.chunking import Chunker
from vidscribe.db.chunk_store import ChunkStore
from vidscribe.db.connection import Database
from vidscribe.db.video_store import VideoStore
from vidscribe.embedding import EmbeddingGenerator, EmbeddingResponse
from vidscribe.errors import EmbeddingError
from vidscribe.ledger.store import CostLedger
from vidscribe.models.config import (
    ChunkingConfig,
    EmbeddingConfig,
    PipelineConfig,
    RecoveryConfig,
    RetryPolicy,
    RouterConfig,
)
from vidscribe.models.video import SourceFamily
from vidscribe.pipeline.events import EventBus
from vidscribe.pipeline.orchestrator import JobOrchestrator
from vidscribe.pipeline.steps import ChunkStep, EmbedStep, TranscribeStep
from vidscribe.router import TranscriptRouter
from vidscribe.sources.base import Outcome, VideoSource

DIMENSION = 8
YOUTUBE_URL = "https://www.youtube.com/watch?v=dQw4w9WgXcQ"


def make_transcript(words: int, per_sentence: int = 10) -> str:
    """Sentences of `per_sentence` distinct words: ``w0 w1 ... w9. w10 ...``."""
    sentences = []
    for start in range(0, words, per_sentence):
        end = min(start + per_sentence, words)
        sentences.append(" ".join(f"w{i}" for i in range(start, end)) + ".")
    return " ".join(sentences)


class FakeProvider:
    """Transcript provider returning scripted outcomes.

    `outcomes` is either a list (one entry per call; the last one repeats) or
    a callable taking the VideoSource.
    """

    def __init__(self, name: str, outcomes: list[Outcome] | Callable[[VideoSource], Outcome], *, paid: bool = False):
        self.name = name
        self.paid = paid
        self._outcomes = outcomes
        self.calls: list[VideoSource] = []
        self._lock = threading.Lock()

    def extract(self, source: VideoSource) -> Outcome:
        with self._lock:
            self.calls.append(source)
            n = len(self.calls)
        if callable(self._outcomes):
            return self._outcomes(source)
        return self._outcomes[min(n, len(self._outcomes)) - 1]


class FakeEmbeddingClient:
    """Vector for text ``t`` is ``[len(t), 0, 0, ...]``; vector for ``"t<n>"`` starts with n.

    `fail_on_calls` holds 1-based call numbers that raise EmbeddingError.
    """

    def __init__(self, dimension: int = DIMENSION, fail_on_calls: set[int] | None = None):
        self.dimension = dimension
        self.fail_on_calls = fail_on_calls or set()
        self.calls = 0
        self.embedded: list[str] = []

    def embed_batch(self, texts: list[str]) -> EmbeddingResponse:
        self.calls += 1
        if self.calls in self.fail_on_calls:
            raise EmbeddingError(f"scripted failure on call {self.calls}")
        self.embedded.extend(texts)
        vectors = []
        for text in texts:
            head = float(text[1:]) if text.startswith("t") and text[1:].isdigit() else float(len(text))
            vectors.append([head] + [0.0] * (self.dimension - 1))
        return EmbeddingResponse(vectors=vectors, total_tokens=sum(len(t.split()) for t in texts))


@pytest.fixture
def db():
    database = Database("sqlite://")
    database.create_all()
    yield database
    database.dispose()


@pytest.fixture
def videos(db) -> VideoStore:
    return VideoStore(db)


@pytest.fixture
def chunks(db) -> ChunkStore:
    return ChunkStore(db)


@pytest.fixture
def ledger(db) -> CostLedger:
    return CostLedger(db, paid_rate_per_minute=0.006)


@pytest.fixture
def router_config() -> RouterConfig:
    return RouterConfig(
        free_retry=RetryPolicy(max_attempts=3, backoff_seconds=0),
        paid_retry=RetryPolicy(max_attempts=2, backoff_seconds=0),
    )


@pytest.fixture
def pipeline_config() -> PipelineConfig:
    return PipelineConfig(step_retries=2, step_backoff_seconds=0)


@pytest.fixture
def embedding_config() -> EmbeddingConfig:
    return EmbeddingConfig(dimension=DIMENSION, batch_size=20)


@pytest.fixture
def recovery_config() -> RecoveryConfig:
    return RecoveryConfig(max_attempts=3, min_interval_minutes=60)


@pytest.fixture
def add_video(videos):
    """Create a pending video; defaults to an embed-free YouTube source."""

    def _add(
        video_id: str = "vid-1",
        *,
        creator_id: str = "creator-1",
        family: SourceFamily = SourceFamily.EMBED_FREE,
        reference: str = YOUTUBE_URL,
    ):
        return videos.create(
            video_id,
            creator_id=creator_id,
            source_family=family,
            source_reference=reference,
            title=f"Video {video_id}",
        )

    return _add


@pytest.fixture
def make_orchestrator(db, videos, chunks, ledger, router_config, pipeline_config, embedding_config):
    """Build an orchestrator around the given providers and embedding client."""

    def _make(
        providers: dict,
        *,
        embedder: FakeEmbeddingClient | None = None,
        chunking: ChunkingConfig | None = None,
        embedding: EmbeddingConfig | None = None,
        events: EventBus | None = None,
    ) -> JobOrchestrator:
        router = TranscriptRouter(providers, router_config)
        steps = [
            TranscribeStep(db, videos, ledger, router),
            ChunkStep(db, videos, chunks, Chunker(chunking or ChunkingConfig())),
            EmbedStep(
                db,
                videos,
                chunks,
                EmbeddingGenerator(embedder or FakeEmbeddingClient(), embedding or embedding_config),
            ),
        ]
        return JobOrchestrator(videos, steps, config=pipeline_config, events=events or EventBus())

    return _make
