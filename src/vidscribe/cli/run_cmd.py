"""vidscribe process / reprocess — run videos through the pipeline."""

from __future__ import annotations

from concurrent.futures import Future, wait

import click
from rich.console import Console
from rich.table import Table

from vidscribe.cli.common import STATUS_ICONS, open_pipeline
from vidscribe.errors import VideoNotFound
from vidscribe.ledger.report import format_cost
from vidscribe.models.video import VideoStatus
from vidscribe.pipeline.factory import Pipeline
from vidscribe.utils.progress import log, log_error, show_run_summary

console = Console()


def _summarize(pipeline: Pipeline, video_id: str) -> None:
    video = pipeline.videos.get(video_id)
    total, embedded = pipeline.chunks.count(video_id)
    details = {
        "Creator": video.creator_id,
        "Method": video.transcript_method or "—",
        "Cost": format_cost(video.cost_usd_accum),
        "Chunks": f"{embedded}/{total} embedded",
    }
    if video.error_message:
        details["Error"] = video.error_message
    show_run_summary(video_id, video.status.value, details)


@click.command()
@click.argument("video_ids", nargs=-1)
@click.option("--pending", "all_pending", is_flag=True, help="Process every pending video")
@click.pass_context
def process_cmd(ctx: click.Context, video_ids: tuple[str, ...], all_pending: bool) -> None:
    """Transcribe, chunk and embed videos."""
    with open_pipeline(ctx) as pipeline:
        ids = list(video_ids)
        if all_pending:
            ids += [v.id for v in pipeline.videos.list_videos(statuses=[VideoStatus.PENDING])]
        if not ids:
            log_error("Nothing to process: pass video ids or --pending")
            raise SystemExit(1)

        futures: dict[str, Future] = {}
        for video_id in dict.fromkeys(ids):
            try:
                futures[video_id] = pipeline.submit(video_id)
            except VideoNotFound as e:
                log_error(str(e))
        log(f"Submitted {len(futures)} video(s)")
        wait(futures.values())

        failed = 0
        for video_id, future in futures.items():
            if future.exception() is not None:
                log_error(f"{video_id}: {future.exception()}")
                failed += 1
                continue
            _summarize(pipeline, video_id)
            if pipeline.videos.get_status(video_id) is not VideoStatus.COMPLETED:
                failed += 1

    if failed:
        raise SystemExit(1)


@click.command()
@click.argument("video_ids", nargs=-1)
@click.option("--failed", "all_failed", is_flag=True, help="Reprocess every failed video")
@click.option("--creator", "creator_id", default=None, help="Limit --failed to one creator")
@click.option("--reason", default="manual", help="Reason recorded in the logs")
@click.pass_context
def reprocess_cmd(
    ctx: click.Context,
    video_ids: tuple[str, ...],
    all_failed: bool,
    creator_id: str | None,
    reason: str,
) -> None:
    """Re-run videos from transcription, whatever their current status."""
    with open_pipeline(ctx) as pipeline:
        ids = list(video_ids)
        if all_failed:
            ids += [
                v.id
                for v in pipeline.videos.list_videos(creator_id=creator_id, statuses=[VideoStatus.FAILED])
            ]
        if not ids:
            log_error("Nothing to reprocess: pass video ids or --failed")
            raise SystemExit(1)

        report = pipeline.reprocess(list(dict.fromkeys(ids)), reason=reason)

    table = Table(title=f"Reprocess ({reason})", show_lines=False)
    table.add_column("Video", style="bold")
    table.add_column("Status")
    table.add_column("Error")
    for item in report.items:
        status = f"{STATUS_ICONS[item.status]} {item.status.value}" if item.status else "[dim]—[/dim]"
        table.add_row(item.video_id, status, f"[red]{item.error_message}[/red]" if item.error_message else "")
    console.print(table)
    console.print(f"{len(report.succeeded)} succeeded, {len(report.failed)} failed")

    if report.failed:
        raise SystemExit(1)
