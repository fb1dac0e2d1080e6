"""Tests for the click command group."""

import pytest
from click.testing import CliRunner

from vidscribe.cli.main import cli
from vidscribe.db.connection import Database
from vidscribe.db.tables import utcnow
from vidscribe.ledger.store import CostLedger
from vidscribe.utils.io import read_yaml


@pytest.fixture
def project(tmp_path):
    config = tmp_path / "vidscribe.yaml"
    url = f"sqlite:///{tmp_path / 'vidscribe.db'}"
    result = CliRunner().invoke(cli, ["--config", str(config), "init", "--database", url])
    assert result.exit_code == 0, result.output
    return config, url


def run(config, *args):
    return CliRunner().invoke(cli, ["--config", str(config), *args])


class TestCli:
    def test_init_writes_config(self, project):
        config, url = project
        assert read_yaml(config)["database"]["url"] == url

    def test_add_then_status(self, project):
        config, _ = project

        added = run(config, "add", "vid-1", "--creator", "c1", "--family", "raw-file", "--reference", "talk.mp4")
        status = run(config, "status")

        assert added.exit_code == 0, added.output
        assert status.exit_code == 0, status.output
        assert "vid-1" in status.output
        assert "pending" in status.output

    def test_add_duplicate_fails(self, project):
        config, _ = project
        args = ("add", "vid-1", "--creator", "c1", "--family", "raw-file", "--reference", "talk.mp4")

        assert run(config, *args).exit_code == 0
        assert run(config, *args).exit_code == 1

    def test_unknown_family_is_rejected(self, project):
        config, _ = project
        result = run(config, "add", "vid-1", "--creator", "c1", "--family", "betamax", "--reference", "x")
        assert result.exit_code == 2

    def test_costs_table(self, project):
        config, url = project
        db = Database(url)
        CostLedger(db).append(
            video_id="vid-1",
            creator_id="c1",
            method_used="whisper",
            cost_usd=0.06,
            duration_seconds=600,
            occurred_at=utcnow(),
        )
        db.dispose()

        result = run(config, "costs", "c1", "--range", "all_time")

        assert result.exit_code == 0, result.output
        assert "whisper" in result.output
        assert "$0.06" in result.output

    def test_rollup_writes_reports(self, project, tmp_path):
        config, url = project
        db = Database(url)
        CostLedger(db).append(video_id="v", creator_id="c1", method_used="youtube", cost_usd=0.0)
        db.dispose()

        result = run(config, "rollup", "--reports-dir", str(tmp_path / "reports"))

        assert result.exit_code == 0, result.output
        assert (tmp_path / "reports" / "c1" / "all_time.json").exists()
