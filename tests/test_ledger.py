"""Tests for the append-only cost ledger, its reports and the rollup task."""

from datetime import datetime, timedelta

import pytest

from vidscribe.ledger.report import creator_report, format_cost, format_minutes, range_bounds
from vidscribe.ledger.rollup import run_rollup
from vidscribe.ledger.store import LedgerError
from vidscribe.utils.io import read_json

NOW = datetime(2026, 3, 31, 12, 0, 0)


@pytest.fixture
def seeded(ledger):
    """creator-1: one free and two paid transcriptions this week, one paid a long time ago."""
    ledger.append(video_id="v1", creator_id="creator-1", method_used="youtube", cost_usd=0.0,
                  duration_seconds=600, occurred_at=NOW - timedelta(days=1))
    ledger.append(video_id="v2", creator_id="creator-1", method_used="whisper", cost_usd=0.06,
                  duration_seconds=600, occurred_at=NOW - timedelta(days=2))
    ledger.append(video_id="v3", creator_id="creator-1", method_used="whisper", cost_usd=0.12,
                  duration_seconds=1200, occurred_at=NOW - timedelta(days=2, hours=3))
    ledger.append(video_id="v4", creator_id="creator-1", method_used="whisper", cost_usd=0.30,
                  duration_seconds=3000, occurred_at=NOW - timedelta(days=100))
    ledger.append(video_id="x1", creator_id="creator-2", method_used="mux", cost_usd=0.0,
                  duration_seconds=60, occurred_at=NOW - timedelta(days=1))
    return ledger


class TestAppend:
    def test_negative_amount_needs_a_note(self, ledger):
        with pytest.raises(LedgerError):
            ledger.append(video_id="v", creator_id="c", method_used="whisper", cost_usd=-0.01)

    def test_compensate_appends_signed_difference(self, ledger):
        entry = ledger.append(video_id="v", creator_id="c", method_used="whisper", cost_usd=0.06)

        ledger.compensate(entry, corrected_cost=0.05, note="provider refund")

        rows = ledger.entries("v")
        assert len(rows) == 2
        assert rows[0].cost_usd == pytest.approx(0.06)
        assert rows[1].cost_usd == pytest.approx(-0.01)
        assert rows[1].note == f"correction of #{entry}: provider refund"
        assert ledger.video_total("v") == pytest.approx(0.05)

    def test_compensate_requires_note_and_existing_entry(self, ledger):
        entry = ledger.append(video_id="v", creator_id="c", method_used="whisper", cost_usd=0.06)
        with pytest.raises(LedgerError):
            ledger.compensate(entry, corrected_cost=0.0, note="")
        with pytest.raises(LedgerError):
            ledger.compensate(9999, corrected_cost=0.0, note="typo")


class TestQueries:
    def test_breakdown_for_range(self, seeded):
        start, end = range_bounds("last_30_days", NOW)
        b = seeded.breakdown("creator-1", start, end)

        assert b.count == 3
        assert b.free_count == 1
        assert b.paid_count == 2
        assert b.total_cost == pytest.approx(0.18)
        assert b.total_minutes == pytest.approx(40.0)
        assert b.by_method["whisper"].count == 2
        assert b.by_method["whisper"].avg_minutes == pytest.approx(15.0)
        # 40 minutes at the paid rate would have cost $0.24
        assert b.cost_savings == pytest.approx(0.06)

    def test_all_time_includes_old_entries(self, seeded):
        b = seeded.breakdown("creator-1")
        assert b.count == 4
        assert b.total_cost == pytest.approx(0.48)

    def test_compensation_adjusts_cost_not_counts(self, seeded):
        entry = seeded.entries("v2")[0].id
        seeded.compensate(entry, corrected_cost=0.0, note="duplicate charge")

        b = seeded.breakdown("creator-1")
        assert b.count == 4
        assert b.total_cost == pytest.approx(0.42)

    def test_efficiency(self, seeded):
        start, end = range_bounds("last_30_days", NOW)
        report = seeded.efficiency("creator-1", start, end, now=NOW)

        assert report.total_videos == 3
        assert report.free_percentage == pytest.approx(100 / 3)
        assert report.avg_cost_per_video == pytest.approx(0.06)
        assert report.monthly_savings == pytest.approx(0.06)

    def test_efficiency_without_entries(self, ledger):
        report = ledger.efficiency("nobody")
        assert report.total_videos == 0
        assert report.monthly_savings == 0

    def test_daily_newest_first(self, seeded):
        days = seeded.daily("creator-1", NOW - timedelta(days=7), NOW)

        assert [d.day for d in days] == [(NOW - timedelta(days=1)).date(), (NOW - timedelta(days=2)).date()]
        assert days[1].paid_transcriptions == 2
        assert days[1].by_method == {"whisper": 2}

    def test_monthly_spend(self, seeded):
        assert seeded.monthly_spend("creator-1", 2026, 3) == pytest.approx(0.18)

    def test_top_videos(self, seeded):
        top = seeded.top_videos("creator-1", limit=2)
        assert [v.video_id for v in top] == ["v4", "v3"]
        assert top[0].duration_minutes == pytest.approx(50.0)

    def test_creators(self, seeded):
        assert seeded.creators() == ["creator-1", "creator-2"]


class TestFormatting:
    @pytest.mark.parametrize(
        "cost, expected",
        [(0, "FREE"), (0.004, "$0.0040"), (0.06, "$0.06"), (1.5, "$1.50")],
    )
    def test_format_cost(self, cost, expected):
        assert format_cost(cost) == expected

    def test_format_minutes(self):
        assert format_minutes(12.34) == "12.3 min"
        assert format_minutes(125) == "2h 5m"

    def test_unknown_range(self):
        with pytest.raises(ValueError):
            range_bounds("last_year", NOW)

    def test_creator_report_shape(self, seeded):
        report = creator_report(
            seeded.breakdown("creator-1"),
            seeded.efficiency("creator-1", now=NOW),
            date_range="all_time",
            generated_at=NOW,
        )
        assert report["totals"]["transcriptions"] == 4
        assert report["totals"]["total_cost_display"] == "$0.48"
        assert set(report["by_method"]) == {"whisper", "youtube"}


class TestRollup:
    def test_writes_one_report_per_creator_and_range(self, seeded, tmp_path):
        written = run_rollup(seeded, tmp_path, now=NOW)

        assert len(written) == 8
        week = read_json(tmp_path / "creator-1" / "last_7_days.json")
        assert week["totals"]["transcriptions"] == 3
        assert week["date_range"] == "last_7_days"
        all_time = read_json(tmp_path / "creator-1" / "all_time.json")
        assert all_time["totals"]["transcriptions"] == 4
