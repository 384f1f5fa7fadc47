"""Unit tests for the git-ai-metrics CLI."""

import json
import os
from unittest.mock import patch

from git_ai_metrics import cli
from git_ai_metrics.config import constants as c
from git_ai_metrics.metrics.models import PendingBatch
from git_ai_metrics.scheduler.pipelines import FlushOutcome, FlushResult
from git_ai_metrics.sinks.fallback import PersistenceFallback


def isolated_env(monkeypatch, tmp_path):
    """Point the CLI at temp files and clear any GIT_AI_* settings."""
    for key in list(os.environ):
        if key.startswith("GIT_AI_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv(c.ENV_CONFIG_FILE, str(tmp_path / "config.json"))
    monkeypatch.setenv(c.ENV_FALLBACK_DB, str(tmp_path / "metrics.db"))


class TestCli:
    """Test CLI commands."""

    def test_config_masks_secrets(self, monkeypatch, tmp_path, capsys):
        isolated_env(monkeypatch, tmp_path)
        monkeypatch.setenv(c.ENV_API_KEY, "super-secret")

        assert cli.main(["config"]) == 0

        output = json.loads(capsys.readouterr().out)
        assert output["api_key"] == "***"
        assert output["fallback_db_path"] == str(tmp_path / "metrics.db")
        assert "super-secret" not in json.dumps(output)

    def test_status_counts_pending_batches(self, monkeypatch, tmp_path, capsys):
        isolated_env(monkeypatch, tmp_path)
        store = PersistenceFallback(tmp_path / "metrics.db")
        store.store(PendingBatch())
        store.store(PendingBatch())

        assert cli.main(["status"]) == 0

        assert "Pending batches: 2" in capsys.readouterr().out

    def test_flush_reports_outcome(self, monkeypatch, tmp_path, capsys):
        isolated_env(monkeypatch, tmp_path)

        async def fake_flush(self):
            return FlushResult(outcome=FlushOutcome.DELIVERED, delivered=1, replayed=2)

        with patch("git_ai_metrics.pipeline.MetricsPipeline.flush_once", fake_flush):
            assert cli.main(["flush"]) == 0

        output = capsys.readouterr().out
        assert "Outcome: delivered" in output
        assert "Replayed: 2" in output

    def test_no_command_prints_help(self, monkeypatch, tmp_path, capsys):
        isolated_env(monkeypatch, tmp_path)

        assert cli.main([]) == 0

        assert "usage" in capsys.readouterr().out.lower()
