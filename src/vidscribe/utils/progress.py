"""Console reporting for pipeline runs, built on Rich."""

from __future__ import annotations

from datetime import datetime

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

console = Console(stderr=True)


def _stamp() -> str:
    return datetime.now().strftime("%H:%M:%S")


def log(message: str, *, style: str = "bold") -> None:
    """Log a timestamped message."""
    console.print(f"[dim]\\[{_stamp()}][/dim] {message}", style=style, highlight=False)


def log_step(step: str, message: str) -> None:
    """Log a message scoped to a pipeline step or provider."""
    console.print(
        f"[dim]\\[{_stamp()}][/dim] [bold cyan]{step}[/bold cyan] {message}",
        highlight=False,
    )


def log_success(message: str) -> None:
    log(f"[green]✓[/green] {message}", style="")


def log_warning(message: str) -> None:
    log(f"[yellow]⚠[/yellow] {message}", style="")


def log_error(message: str) -> None:
    log(f"[red]✗[/red] {message}", style="")


def show_run_summary(video_id: str, status: str, details: dict) -> None:
    """Show a summary panel for a finished pipeline run."""
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold")
    table.add_column()

    for key, value in details.items():
        table.add_row(key, str(value))

    border = "green" if status == "completed" else "red"
    console.print(
        Panel(table, title=f"[bold]{video_id}[/bold] — {status}", border_style=border)
    )
