"""Presentation helpers for ledger figures."""

from __future__ import annotations

from datetime import datetime, timedelta

from vidscribe.models.ledger import CostBreakdown, EfficiencyReport

DATE_RANGES: dict[str, int | None] = {
    "last_7_days": 7,
    "last_30_days": 30,
    "last_90_days": 90,
    "all_time": None,
}


def format_cost(cost: float) -> str:
    """``FREE`` for zero, four decimals under a cent, otherwise two."""
    if cost == 0:
        return "FREE"
    if abs(cost) < 0.01:
        return f"${cost:.4f}"
    return f"${cost:.2f}"


def format_minutes(minutes: float) -> str:
    if minutes < 60:
        return f"{minutes:.1f} min"
    hours, rest = divmod(minutes, 60)
    return f"{int(hours)}h {rest:.0f}m"


def range_bounds(name: str, now: datetime) -> tuple[datetime | None, datetime]:
    """Resolve a named date range to ``(start, end)``; ``all_time`` has no start."""
    if name not in DATE_RANGES:
        raise ValueError(f"Unknown date range: {name} (choose from {', '.join(DATE_RANGES)})")
    days = DATE_RANGES[name]
    return (now - timedelta(days=days) if days is not None else None, now)


def creator_report(
    breakdown: CostBreakdown,
    efficiency: EfficiencyReport,
    *,
    date_range: str,
    generated_at: datetime,
) -> dict:
    """JSON-ready snapshot of one creator's spend over one date range."""
    return {
        "creator_id": breakdown.creator_id,
        "date_range": date_range,
        "generated_at": generated_at.isoformat(),
        "totals": {
            "transcriptions": breakdown.count,
            "total_minutes": round(breakdown.total_minutes, 2),
            "total_cost": breakdown.total_cost,
            "total_cost_display": format_cost(breakdown.total_cost),
            "cost_savings": breakdown.cost_savings,
        },
        "by_method": {
            method: {**m.model_dump(), "avg_minutes": round(m.avg_minutes, 2)}
            for method, m in sorted(breakdown.by_method.items())
        },
        "efficiency": efficiency.model_dump(exclude={"creator_id"}),
    }
