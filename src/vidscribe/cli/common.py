"""Shared helpers for CLI commands."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

import click

from vidscribe.errors import ConfigError
from vidscribe.models.config import Settings, load_settings
from vidscribe.models.video import VideoStatus
from vidscribe.pipeline.factory import Pipeline, build_pipeline
from vidscribe.utils.progress import log_error

STATUS_ICONS = {
    VideoStatus.PENDING: "[dim]○[/dim]",
    VideoStatus.UPLOADING: "[blue]↑[/blue]",
    VideoStatus.TRANSCRIBING: "[yellow]◔[/yellow]",
    VideoStatus.PROCESSING: "[yellow]◑[/yellow]",
    VideoStatus.EMBEDDING: "[yellow]◕[/yellow]",
    VideoStatus.COMPLETED: "[green]●[/green]",
    VideoStatus.FAILED: "[red]✗[/red]",
}


def settings_from(ctx: click.Context) -> Settings:
    try:
        return load_settings(ctx.obj["config_path"])
    except ConfigError as e:
        log_error(str(e))
        raise SystemExit(1)


@contextmanager
def open_pipeline(ctx: click.Context) -> Iterator[Pipeline]:
    """Build the pipeline for one command and shut it down afterwards."""
    pipeline = build_pipeline(settings_from(ctx))
    try:
        yield pipeline
    finally:
        pipeline.close()
