"""Configuration models for each pipeline component."""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from vidscribe.errors import ConfigError


class RetryPolicy(BaseModel):
    """Attempt budget and exponential backoff for one kind of remote call."""

    max_attempts: int = Field(default=3, ge=1, le=10)
    backoff_seconds: float = Field(default=0.5, ge=0.0, le=60.0)
    max_backoff_seconds: float = Field(default=30.0, ge=0.0, le=600.0)


class RouterConfig(BaseModel):
    """Configuration for transcript providers and the router."""

    free_retry: RetryPolicy = Field(
        default_factory=lambda: RetryPolicy(max_attempts=3, backoff_seconds=0.5)
    )
    paid_retry: RetryPolicy = Field(
        default_factory=lambda: RetryPolicy(max_attempts=2, backoff_seconds=2.0)
    )
    caption_languages: list[str] = Field(default_factory=lambda: ["en", "en-US", "en-GB"])
    request_timeout_seconds: float = Field(default=60.0, ge=1.0, le=900.0)
    loom_api_base: str = "https://api.loom.com/v1"
    mux_api_base: str = "https://api.mux.com/video/v1"
    mux_stream_base: str = "https://stream.mux.com"
    whisper_api_base: str = "https://api.openai.com/v1"
    whisper_model: str = "whisper-1"
    whisper_rate_per_minute: float = Field(default=0.006, ge=0.0)
    whisper_max_upload_mb: int = Field(default=25, ge=1, le=500)
    storage_root: str = "storage"
    media_cache_dir: str = ".vidscribe/media"


class ChunkingConfig(BaseModel):
    """Configuration for transcript chunking."""

    min_words: int = Field(default=500, ge=1)
    max_words: int = Field(default=1000, ge=1)
    overlap_words: int = Field(default=100, ge=0)


class EmbeddingConfig(BaseModel):
    """Configuration for the embedding generator."""

    model: str = "text-embedding-ada-002"
    dimension: int = Field(default=1536, ge=1)
    batch_size: int = Field(default=20, ge=1, le=2048)
    api_base: str = "https://api.openai.com/v1"
    request_timeout_seconds: float = Field(default=60.0, ge=1.0, le=900.0)
    cost_per_1k_tokens: float = Field(default=0.0001, ge=0.0)


class PipelineConfig(BaseModel):
    """Configuration for the job orchestrator and its worker pool."""

    step_retries: int = Field(default=2, ge=0, le=5)
    step_backoff_seconds: float = Field(default=1.0, ge=0.0, le=60.0)
    max_workers: int = Field(default=8, ge=1, le=128)
    per_creator_concurrency: int = Field(default=20, ge=1, le=500)


class RecoveryConfig(BaseModel):
    """Configuration for stuck-video recovery."""

    max_attempts: int = Field(default=3, ge=1, le=10)
    min_interval_minutes: int = Field(default=60, ge=0)
    stage_timeout_minutes: dict[str, int] = Field(
        default_factory=lambda: {
            "uploading": 30,
            "transcribing": 60,
            "processing": 15,
            "embedding": 30,
        }
    )


class DatabaseConfig(BaseModel):
    url: str = "sqlite:///vidscribe.db"
    echo: bool = False


class Settings(BaseModel):
    """All component configurations, as stored in vidscribe.yaml."""

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    router: RouterConfig = Field(default_factory=RouterConfig)
    chunking: ChunkingConfig = Field(default_factory=ChunkingConfig)
    embedding: EmbeddingConfig = Field(default_factory=EmbeddingConfig)
    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)
    recovery: RecoveryConfig = Field(default_factory=RecoveryConfig)
    reports_dir: str = "reports"


def load_settings(path: Path | str | None) -> Settings:
    """Load settings from a YAML file; a missing path yields defaults."""
    from vidscribe.utils.io import read_yaml

    if path is None or not Path(path).exists():
        return Settings()
    try:
        return Settings(**read_yaml(path))
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {path}: {e}") from e
