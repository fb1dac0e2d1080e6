"""Startup wiring: build every component from Settings and inject the step registry."""

from __future__ import annotations

import os
from collections.abc import Mapping
from concurrent.futures import Future
from dataclasses import dataclass

import httpx

from vidscribe.chunking import Chunker
from vidscribe.db.chunk_store import ChunkStore
from vidscribe.db.connection import Database
from vidscribe.db.video_store import VideoStore
from vidscribe.embedding import EmbeddingClient, EmbeddingGenerator, OpenAIEmbeddingClient
from vidscribe.ledger.store import CostLedger
from vidscribe.models.config import Settings
from vidscribe.models.events import ProcessVideo, ReprocessReport, ReprocessVideos
from vidscribe.models.video import VideoRecord
from vidscribe.pipeline.events import EventBus
from vidscribe.pipeline.orchestrator import JobOrchestrator
from vidscribe.pipeline.queue import WorkerPool, orchestrator_handler
from vidscribe.pipeline.recovery import StuckVideoRecovery
from vidscribe.pipeline.steps import ChunkStep, EmbedStep, TranscribeStep
from vidscribe.router import TranscriptRouter
from vidscribe.sources.base import TranscriptProvider
from vidscribe.sources.loom import LoomTranscriptProvider
from vidscribe.sources.media import MediaResolver
from vidscribe.sources.mux import MuxCaptionProvider
from vidscribe.sources.rest import make_client
from vidscribe.sources.whisper import WhisperProvider
from vidscribe.sources.youtube import YouTubeCaptionProvider


@dataclass
class Pipeline:
    """Every long-lived component of a running vidscribe process."""

    settings: Settings
    db: Database
    videos: VideoStore
    chunks: ChunkStore
    ledger: CostLedger
    router: TranscriptRouter
    orchestrator: JobOrchestrator
    pool: WorkerPool
    events: EventBus
    recovery: StuckVideoRecovery
    http: httpx.Client | None = None

    def submit(self, video_id: str) -> Future:
        """Queue an intake run for an imported video."""
        video = self.videos.get(video_id)
        return self.pool.submit_process(
            ProcessVideo(video_id=video.id, creator_id=video.creator_id, source_family=video.source_family)
        )

    def reprocess(self, video_ids: list[str], reason: str = "manual") -> ReprocessReport:
        creators = {}
        for video_id in video_ids:
            if self.videos.exists(video_id):
                creators[video_id] = self.videos.get(video_id).creator_id
        return self.pool.reprocess(ReprocessVideos(video_ids=video_ids, reason=reason), creators)

    def close(self) -> None:
        self.pool.shutdown()
        if self.http is not None:
            self.http.close()
        self.db.dispose()


def build_providers(
    settings: Settings,
    client: httpx.Client,
    env: Mapping[str, str],
) -> dict[str, TranscriptProvider]:
    cfg = settings.router
    mux = MuxCaptionProvider(
        client,
        api_base=cfg.mux_api_base,
        stream_base=cfg.mux_stream_base,
        token_id=env.get("MUX_TOKEN_ID"),
        token_secret=env.get("MUX_TOKEN_SECRET"),
    )
    media = MediaResolver(
        storage_root=cfg.storage_root,
        cache_dir=cfg.media_cache_dir,
        client=client,
        mux_stream_base=cfg.mux_stream_base,
        mux=mux,
        download_timeout_seconds=cfg.request_timeout_seconds * 10,
    )
    providers: list[TranscriptProvider] = [
        YouTubeCaptionProvider(cfg.caption_languages),
        LoomTranscriptProvider(client, api_base=cfg.loom_api_base, api_key=env.get("LOOM_API_KEY")),
        mux,
        WhisperProvider(
            client,
            media,
            api_base=cfg.whisper_api_base,
            api_key=env.get("OPENAI_API_KEY"),
            model=cfg.whisper_model,
            rate_per_minute=cfg.whisper_rate_per_minute,
            max_upload_mb=cfg.whisper_max_upload_mb,
        ),
    ]
    return {p.name: p for p in providers}


def build_pipeline(
    settings: Settings,
    *,
    env: Mapping[str, str] | None = None,
    providers: Mapping[str, TranscriptProvider] | None = None,
    embedding_client: EmbeddingClient | None = None,
    db: Database | None = None,
) -> Pipeline:
    """Construct the full pipeline. Tests inject providers, embedding client and database."""
    env = os.environ if env is None else env
    db = db or Database(settings.database.url, echo=settings.database.echo)
    db.create_all()

    http = None
    if providers is None or embedding_client is None:
        http = make_client(settings.router.request_timeout_seconds)
    if providers is None:
        providers = build_providers(settings, http, env)
    if embedding_client is None:
        embedding_client = OpenAIEmbeddingClient(
            http,
            api_base=settings.embedding.api_base,
            api_key=env.get("OPENAI_API_KEY"),
            model=settings.embedding.model,
        )

    videos = VideoStore(db)
    chunks = ChunkStore(db)
    ledger = CostLedger(db, paid_rate_per_minute=settings.router.whisper_rate_per_minute)
    router = TranscriptRouter(providers, settings.router)
    events = EventBus()

    steps = [
        TranscribeStep(db, videos, ledger, router),
        ChunkStep(db, videos, chunks, Chunker(settings.chunking)),
        EmbedStep(db, videos, chunks, EmbeddingGenerator(embedding_client, settings.embedding)),
    ]
    orchestrator = JobOrchestrator(videos, steps, config=settings.pipeline, events=events)
    pool = WorkerPool(
        orchestrator_handler(orchestrator),
        max_workers=settings.pipeline.max_workers,
        per_creator_concurrency=settings.pipeline.per_creator_concurrency,
    )

    def resubmit(video: VideoRecord) -> Future:
        return pool.submit_reprocess(video.id, video.creator_id, "auto-recovery")

    recovery = StuckVideoRecovery(videos, resubmit, settings.recovery)

    return Pipeline(
        settings=settings,
        db=db,
        videos=videos,
        chunks=chunks,
        ledger=ledger,
        router=router,
        orchestrator=orchestrator,
        pool=pool,
        events=events,
        recovery=recovery,
        http=http,
    )
