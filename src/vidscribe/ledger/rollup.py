"""Scheduled ledger rollup, decoupled from the per-video pipeline."""

from __future__ import annotations

import threading
from pathlib import Path

from vidscribe.db.tables import utcnow
from vidscribe.ledger.report import DATE_RANGES, creator_report, range_bounds
from vidscribe.ledger.store import CostLedger
from vidscribe.utils.io import write_json
from vidscribe.utils.progress import log, log_error, log_success


def run_rollup(ledger: CostLedger, reports_dir: Path | str, *, now=None) -> list[Path]:
    """Write ``<creator>/<range>.json`` for every creator with ledger entries."""
    now = now or utcnow()
    reports_dir = Path(reports_dir)
    written = []

    creators = ledger.creators()
    log(f"Rolling up costs for {len(creators)} creator(s)")
    for creator_id in creators:
        for name in DATE_RANGES:
            start, end = range_bounds(name, now)
            report = creator_report(
                ledger.breakdown(creator_id, start, end),
                ledger.efficiency(creator_id, start, end, now=now),
                date_range=name,
                generated_at=now,
            )
            path = reports_dir / creator_id / f"{name}.json"
            write_json(path, report)
            written.append(path)

    log_success(f"Wrote {len(written)} cost report(s) to {reports_dir}")
    return written


class RollupScheduler:
    """Runs `run_rollup` every `interval_seconds` on a daemon thread."""

    def __init__(self, ledger: CostLedger, reports_dir: Path | str, *, interval_seconds: float = 6 * 3600):
        self.ledger = ledger
        self.reports_dir = Path(reports_dir)
        self.interval_seconds = interval_seconds
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self._loop, name="ledger-rollup", daemon=True)
        self._thread.start()

    def stop(self, timeout: float | None = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def run_once(self) -> list[Path]:
        return run_rollup(self.ledger, self.reports_dir)

    def _loop(self) -> None:
        while not self._stop.is_set():
            try:
                self.run_once()
            except Exception as e:
                # The next tick retries; a failed rollup never touches video state.
                log_error(f"Cost rollup failed: {e}")
            self._stop.wait(self.interval_seconds)
