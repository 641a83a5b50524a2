"""Tests for the command-line interface."""

from __future__ import annotations

import tempfile
from pathlib import Path

import pytest
from typer.testing import CliRunner

from learner_analytics.cli import app
from learner_analytics.config.loader import OVERRIDES_ENV

runner = CliRunner()


@pytest.fixture
def config_file(monkeypatch):
    """Config with JSON storage in a temporary directory so state survives between commands."""
    monkeypatch.delenv(OVERRIDES_ENV, raising=False)
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "settings.yaml"
        path.write_text(
            f"storage:\n  data_dir: {Path(tmpdir) / 'learners'}\nlogging:\n  level: WARNING\n",
            encoding="utf-8",
        )
        yield str(path)


def test_record_and_report(config_file):
    result = runner.invoke(
        app,
        [
            "record", "student123", "q1",
            "--category", "addition",
            "--correct",
            "--response-ms", "4200",
            "--config", config_file,
        ],
    )
    assert result.exit_code == 0, result.output
    assert "Recorded" in result.output

    result = runner.invoke(app, ["report", "student123", "--json", "--config", config_file])
    assert result.exit_code == 0, result.output
    assert "overall_progress" in result.output
    assert "100.0" in result.output


def test_record_rejects_unknown_category(config_file):
    result = runner.invoke(
        app,
        [
            "record", "student123", "q1",
            "--category", "astrology",
            "--incorrect",
            "--response-ms", "4200",
            "--config", config_file,
        ],
    )
    assert result.exit_code == 1


def test_session_commands(config_file):
    result = runner.invoke(
        app, ["start-session", "student123", "--topic", "fractions", "--config", config_file]
    )
    assert result.exit_code == 0, result.output
    session_id = result.output.strip().splitlines()[-1]

    result = runner.invoke(
        app,
        ["end-session", "student123", session_id, "--answered", "4", "--correct", "3", "--config", config_file],
    )
    assert result.exit_code == 0, result.output
    assert f"Closed {session_id}" in result.output

    result = runner.invoke(
        app,
        ["end-session", "student123", session_id, "--answered", "4", "--correct", "3", "--config", config_file],
    )
    assert result.exit_code == 1


def test_seed_then_report(config_file):
    result = runner.invoke(app, ["seed", "newcomer", "--config", config_file])
    assert result.exit_code == 0, result.output
    assert "Seeded starter history" in result.output

    result = runner.invoke(app, ["seed", "newcomer", "--config", config_file])
    assert "No seeding needed" in result.output

    result = runner.invoke(app, ["report", "newcomer", "--config", config_file])
    assert result.exit_code == 0, result.output
    assert "Topic mastery" in result.output


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
