"""vidscribe status — show video processing state."""

from __future__ import annotations

import click
from rich.console import Console
from rich.table import Table

from vidscribe.cli.common import STATUS_ICONS, settings_from
from vidscribe.db.connection import Database
from vidscribe.db.video_store import VideoStore
from vidscribe.ledger.report import format_cost
from vidscribe.models.video import VideoStatus

console = Console()


@click.command()
@click.option("--creator", "creator_id", default=None, help="Only this creator's videos")
@click.option(
    "--status", "statuses",
    multiple=True,
    type=click.Choice([s.value for s in VideoStatus]),
    help="Only videos in these statuses",
)
@click.option("--limit", default=50, type=int, help="Maximum rows to show")
@click.pass_context
def status_cmd(ctx: click.Context, creator_id: str | None, statuses: tuple[str, ...], limit: int) -> None:
    """Show pipeline status per video."""
    db = Database(settings_from(ctx).database.url)
    db.create_all()
    videos = VideoStore(db)
    try:
        counts = videos.count_by_status(creator_id)
        rows = videos.list_videos(
            creator_id=creator_id,
            statuses=[VideoStatus(s) for s in statuses] or None,
            limit=limit,
        )
    finally:
        db.dispose()

    summary = "  ".join(
        f"{STATUS_ICONS[s]} {s.value}: {counts[s]}" for s in VideoStatus if counts.get(s)
    )
    console.print(f"\n{summary or '[dim]No videos[/dim]'}\n")
    if not rows:
        return

    table = Table(title="Videos", show_lines=True)
    table.add_column("Video", style="bold")
    table.add_column("Creator")
    table.add_column("Family")
    table.add_column("Status")
    table.add_column("Method")
    table.add_column("Cost", justify="right")
    table.add_column("Updated")
    table.add_column("Notes")

    for v in rows:
        notes = ""
        if v.error_message:
            notes = f"[red]{v.error_message[:60]}[/red]"
        elif v.recovery_attempts:
            notes = f"recovered {v.recovery_attempts}x"
        table.add_row(
            v.id,
            v.creator_id,
            v.source_family.value,
            f"{STATUS_ICONS[v.status]} {v.status.value}",
            v.transcript_method or "—",
            format_cost(v.cost_usd_accum),
            v.updated_at.strftime("%Y-%m-%d %H:%M") if v.updated_at else "—",
            notes,
        )

    console.print(table)
    console.print()
