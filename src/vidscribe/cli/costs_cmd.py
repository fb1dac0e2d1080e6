"""vidscribe costs — per-creator transcription spend."""

from __future__ import annotations

import click
from rich.console import Console
from rich.table import Table

from vidscribe.cli.common import settings_from
from vidscribe.db.connection import Database
from vidscribe.db.tables import utcnow
from vidscribe.ledger.report import DATE_RANGES, format_cost, format_minutes, range_bounds
from vidscribe.ledger.store import CostLedger

console = Console()


@click.command()
@click.argument("creator_ids", nargs=-1)
@click.option(
    "--range", "date_range",
    default="last_30_days",
    type=click.Choice(list(DATE_RANGES)),
    help="Reporting window",
)
@click.option("--top", default=5, type=int, help="Number of most expensive videos to list")
@click.pass_context
def costs_cmd(ctx: click.Context, creator_ids: tuple[str, ...], date_range: str, top: int) -> None:
    """Show spend by transcript method. Defaults to every creator in the ledger."""
    settings = settings_from(ctx)
    db = Database(settings.database.url)
    db.create_all()
    ledger = CostLedger(db, paid_rate_per_minute=settings.router.whisper_rate_per_minute)
    now = utcnow()
    start, end = range_bounds(date_range, now)

    try:
        for creator_id in creator_ids or ledger.creators():
            breakdown = ledger.breakdown(creator_id, start, end)
            efficiency = ledger.efficiency(creator_id, start, end, now=now)

            table = Table(title=f"{creator_id} — {date_range.replace('_', ' ')}", show_lines=False)
            table.add_column("Method", style="bold")
            table.add_column("Videos", justify="right")
            table.add_column("Minutes", justify="right")
            table.add_column("Cost", justify="right")
            for method, m in sorted(breakdown.by_method.items()):
                table.add_row(method, str(m.count), format_minutes(m.total_minutes), format_cost(m.total_cost))
            table.add_row(
                "[bold]total[/bold]",
                str(breakdown.count),
                format_minutes(breakdown.total_minutes),
                f"[bold]{format_cost(breakdown.total_cost)}[/bold]",
            )
            console.print(table)
            console.print(
                f"Free: {efficiency.free_percentage:.0f}%  "
                f"Saved: [green]{format_cost(max(efficiency.cost_savings, 0.0))}[/green]  "
                f"(~{format_cost(max(efficiency.monthly_savings, 0.0))}/month)"
            )

            expensive = ledger.top_videos(creator_id, top, start, end)
            if expensive:
                console.print("[dim]Most expensive:[/dim]")
                for v in expensive:
                    console.print(f"  {v.video_id}  {v.method}  {format_minutes(v.duration_minutes)}  {format_cost(v.cost)}")
            console.print()
    finally:
        db.dispose()
