"""Append-only cost ledger and its read-side queries."""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime

from sqlalchemy import Select, func, select
from sqlalchemy.orm import Session

from vidscribe.db.connection import Database
from vidscribe.db.tables import CostLedgerRow, utcnow
from vidscribe.models.ledger import (
    CostBreakdown,
    DailyCost,
    EfficiencyReport,
    MethodCost,
    VideoCost,
)


class LedgerError(ValueError):
    """An entry would break the ledger's append-only rules."""


class CostLedger:
    """Transcript spend, one row per transcript step that cost or could have cost money.

    Rows are only ever inserted. A mistaken amount is corrected with
    `compensate`, which appends a signed difference carrying a note.
    """

    def __init__(self, db: Database, *, paid_rate_per_minute: float = 0.006):
        self.db = db
        self.paid_rate_per_minute = paid_rate_per_minute

    # -- write side ---------------------------------------------------------

    def append(
        self,
        *,
        video_id: str,
        creator_id: str,
        method_used: str,
        cost_usd: float,
        duration_seconds: float | None = None,
        note: str | None = None,
        occurred_at: datetime | None = None,
        session: Session | None = None,
    ) -> int:
        if cost_usd < 0 and not note:
            raise LedgerError("Negative ledger amounts are only allowed on noted compensating entries")
        with self.db.scope(session) as s:
            row = CostLedgerRow(
                video_id=video_id,
                creator_id=creator_id,
                method_used=method_used,
                cost_usd=cost_usd,
                duration_seconds=duration_seconds,
                note=note,
            )
            if occurred_at is not None:
                row.occurred_at = occurred_at
            s.add(row)
            s.flush()
            return row.id

    def compensate(self, entry_id: int, *, corrected_cost: float, note: str) -> int:
        """Append the difference needed to bring entry `entry_id` to `corrected_cost`."""
        if not note:
            raise LedgerError("Compensating entries require a note")
        with self.db.session() as session:
            original = session.get(CostLedgerRow, entry_id)
            if original is None:
                raise LedgerError(f"Ledger entry {entry_id} does not exist")
            return self.append(
                video_id=original.video_id,
                creator_id=original.creator_id,
                method_used=original.method_used,
                cost_usd=corrected_cost - original.cost_usd,
                note=f"correction of #{entry_id}: {note}",
                session=session,
            )

    # -- read side ----------------------------------------------------------

    def entries(self, video_id: str) -> list[CostLedgerRow]:
        stmt = select(CostLedgerRow).where(CostLedgerRow.video_id == video_id).order_by(CostLedgerRow.id)
        with self.db.session() as session:
            return list(session.scalars(stmt))

    def video_total(self, video_id: str) -> float:
        stmt = select(func.coalesce(func.sum(CostLedgerRow.cost_usd), 0.0)).where(
            CostLedgerRow.video_id == video_id
        )
        with self.db.session() as session:
            return float(session.scalar(stmt))

    def breakdown(
        self,
        creator_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> CostBreakdown:
        """Per-method totals; compensations adjust cost but not counts or minutes."""
        original_col = CostLedgerRow.note.is_(None).label("original")
        paid_col = (CostLedgerRow.cost_usd > 0).label("paid")
        stmt = _in_range(
            select(
                CostLedgerRow.method_used,
                original_col,
                func.count(),
                func.coalesce(func.sum(CostLedgerRow.cost_usd), 0.0),
                func.coalesce(func.sum(CostLedgerRow.duration_seconds), 0.0),
            ).where(CostLedgerRow.creator_id == creator_id),
            start,
            end,
        ).group_by(CostLedgerRow.method_used, original_col)

        free_stmt = _in_range(
            select(
                paid_col,
                func.count(),
            ).where(CostLedgerRow.creator_id == creator_id, CostLedgerRow.note.is_(None)),
            start,
            end,
        ).group_by(paid_col)

        report = CostBreakdown(creator_id=creator_id)
        with self.db.session() as session:
            for method, original, count, cost, seconds in session.execute(stmt):
                entry = report.by_method.setdefault(method, MethodCost())
                entry.total_cost += float(cost)
                if original:
                    entry.count += int(count)
                    entry.total_minutes += float(seconds) / 60
            for paid, count in session.execute(free_stmt):
                if paid:
                    report.paid_count += int(count)
                else:
                    report.free_count += int(count)

        report.count = sum(m.count for m in report.by_method.values())
        report.total_cost = round(sum(m.total_cost for m in report.by_method.values()), 6)
        report.total_minutes = sum(m.total_minutes for m in report.by_method.values())
        report.cost_savings = round(
            report.total_minutes * self.paid_rate_per_minute - report.total_cost, 6
        )
        return report

    def efficiency(
        self,
        creator_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
        *,
        now: datetime | None = None,
    ) -> EfficiencyReport:
        """Free vs paid split and savings against transcribing everything at the paid rate."""
        b = self.breakdown(creator_id, start, end)
        report = EfficiencyReport(
            creator_id=creator_id,
            total_videos=b.count,
            free_videos=b.free_count,
            paid_videos=b.paid_count,
            total_cost=b.total_cost,
            cost_savings=b.cost_savings,
        )
        if b.count == 0:
            return report

        report.free_percentage = b.free_count / b.count * 100
        report.paid_percentage = b.paid_count / b.count * 100
        report.avg_cost_per_video = b.total_cost / b.count

        first = start or self._first_entry_at(creator_id)
        last = end or now or utcnow()
        days = max(1.0, (last - first).total_seconds() / 86400) if first else 1.0
        report.monthly_savings = b.cost_savings / days * 30
        return report

    def daily(
        self,
        creator_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[DailyCost]:
        stmt = _in_range(
            select(CostLedgerRow).where(CostLedgerRow.creator_id == creator_id),
            start,
            end,
        ).order_by(CostLedgerRow.occurred_at)

        days: dict = {}
        with self.db.session() as session:
            for row in session.scalars(stmt):
                day = row.occurred_at.date()
                summary = days.setdefault(day, DailyCost(day=day))
                summary.total_cost += row.cost_usd
                if row.note is not None:
                    continue
                summary.transcriptions += 1
                summary.total_minutes += (row.duration_seconds or 0.0) / 60
                if row.cost_usd > 0:
                    summary.paid_transcriptions += 1
                else:
                    summary.free_transcriptions += 1
                summary.by_method[row.method_used] = summary.by_method.get(row.method_used, 0) + 1
        return [days[d] for d in sorted(days, reverse=True)]

    def monthly_spend(self, creator_id: str, year: int, month: int) -> float:
        start = datetime(year, month, 1)
        end = datetime(year + 1, 1, 1) if month == 12 else datetime(year, month + 1, 1)
        stmt = _in_range(
            select(func.coalesce(func.sum(CostLedgerRow.cost_usd), 0.0)).where(
                CostLedgerRow.creator_id == creator_id
            ),
            start,
            end,
        )
        with self.db.session() as session:
            return round(float(session.scalar(stmt)), 6)

    def top_videos(
        self,
        creator_id: str,
        limit: int = 10,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[VideoCost]:
        """Most expensive videos first; free-only videos are left out."""
        stmt = _in_range(
            select(CostLedgerRow).where(CostLedgerRow.creator_id == creator_id),
            start,
            end,
        ).order_by(CostLedgerRow.id)

        totals: dict[str, dict] = defaultdict(lambda: {"cost": 0.0, "seconds": 0.0})
        with self.db.session() as session:
            for row in session.scalars(stmt):
                t = totals[row.video_id]
                t["cost"] += row.cost_usd
                if row.note is None:
                    t["method"] = row.method_used
                    t["seconds"] += row.duration_seconds or 0.0
                    t["at"] = row.occurred_at
                t.setdefault("at", row.occurred_at)
                t.setdefault("method", row.method_used)

        ranked = sorted(
            ((vid, t) for vid, t in totals.items() if t["cost"] > 0),
            key=lambda item: item[1]["cost"],
            reverse=True,
        )
        return [
            VideoCost(
                video_id=vid,
                method=t["method"],
                cost=round(t["cost"], 6),
                duration_minutes=t["seconds"] / 60,
                occurred_at=t["at"],
            )
            for vid, t in ranked[:limit]
        ]

    def creators(self) -> list[str]:
        stmt = select(CostLedgerRow.creator_id).distinct().order_by(CostLedgerRow.creator_id)
        with self.db.session() as session:
            return list(session.scalars(stmt))

    def _first_entry_at(self, creator_id: str) -> datetime | None:
        stmt = select(func.min(CostLedgerRow.occurred_at)).where(CostLedgerRow.creator_id == creator_id)
        with self.db.session() as session:
            return session.scalar(stmt)


def _in_range(stmt: Select, start: datetime | None, end: datetime | None) -> Select:
    if start is not None:
        stmt = stmt.where(CostLedgerRow.occurred_at >= start)
    if end is not None:
        stmt = stmt.where(CostLedgerRow.occurred_at < end)
    return stmt
