"""vidscribe add — import a video in `pending`."""

from __future__ import annotations

import click

from vidscribe.cli.common import settings_from
from vidscribe.db.connection import Database
from vidscribe.db.video_store import VideoStore
from vidscribe.models.video import SourceFamily
from vidscribe.utils.progress import log_error, log_success


@click.command()
@click.argument("video_id")
@click.option("--creator", "creator_id", required=True, help="Owning creator id")
@click.option(
    "--family",
    required=True,
    type=click.Choice([f.value for f in SourceFamily]),
    help="Source family of the video",
)
@click.option("--reference", required=True, help="Embed URL, Mux asset id or storage path")
@click.option("--title", default="", help="Video title")
@click.pass_context
def add_cmd(
    ctx: click.Context,
    video_id: str,
    creator_id: str,
    family: str,
    reference: str,
    title: str,
) -> None:
    """Register a video so it can be processed."""
    settings = settings_from(ctx)
    db = Database(settings.database.url)
    db.create_all()
    videos = VideoStore(db)
    try:
        if videos.exists(video_id):
            log_error(f"Video already exists: {video_id}")
            raise SystemExit(1)
        videos.create(
            video_id,
            creator_id=creator_id,
            source_family=SourceFamily(family),
            source_reference=reference,
            title=title,
        )
    finally:
        db.dispose()
    log_success(f"Added {video_id} ({family}) for {creator_id}")
