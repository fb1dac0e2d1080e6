"""vidscribe recover / rollup — scheduled maintenance tasks."""

from __future__ import annotations

import time

import click

from vidscribe.cli.common import open_pipeline, settings_from
from vidscribe.db.connection import Database
from vidscribe.ledger.rollup import RollupScheduler, run_rollup
from vidscribe.ledger.store import CostLedger
from vidscribe.pipeline.recovery import FAILED, RECOVERED
from vidscribe.utils.progress import log, log_success


@click.command()
@click.pass_context
def recover_cmd(ctx: click.Context) -> None:
    """Re-enter videos stuck in an in-progress status."""
    with open_pipeline(ctx) as pipeline:
        results = pipeline.recovery.sweep()
        recovered = sum(1 for r in results if r.status == RECOVERED)
        if recovered:
            log(f"Waiting for {recovered} recovered run(s)")
    # open_pipeline shuts the pool down, which waits for the resubmitted runs
    failed = sum(1 for r in results if r.status == FAILED)
    log_success(f"Recovery finished: {recovered} re-run, {failed} marked failed")


@click.command()
@click.option("--reports-dir", default=None, type=click.Path(), help="Output directory for JSON reports")
@click.option("--every", "interval_hours", default=None, type=float, help="Keep running, every N hours")
@click.pass_context
def rollup_cmd(ctx: click.Context, reports_dir: str | None, interval_hours: float | None) -> None:
    """Write per-creator cost reports for every date range."""
    settings = settings_from(ctx)
    db = Database(settings.database.url)
    db.create_all()
    ledger = CostLedger(db, paid_rate_per_minute=settings.router.whisper_rate_per_minute)
    out = reports_dir or settings.reports_dir

    try:
        if interval_hours is None:
            run_rollup(ledger, out)
            return

        scheduler = RollupScheduler(ledger, out, interval_seconds=interval_hours * 3600)
        scheduler.start()
        log(f"Rolling up every {interval_hours:g}h; Ctrl-C to stop")
        try:
            while True:
                time.sleep(1)
        except KeyboardInterrupt:
            scheduler.stop(timeout=5)
    finally:
        db.dispose()
