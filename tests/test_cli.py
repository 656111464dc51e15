from __future__ import annotations

from pathlib import Path

import pytest
from typer.testing import CliRunner

from deliberator.interfaces.cli import app


@pytest.fixture(autouse=True)
def isolated_cwd(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("DELIBERATOR_MAX_SAMPLING_TIME", "5.0")
    monkeypatch.setenv("DELIBERATOR_PLANNER_TIMEOUT", "30.0")


def test_plan_lookahead_domain() -> None:
    runner = CliRunner()
    result = runner.invoke(app, ["plan", "--horizon", "2", "--samples", "100", "--seed", "42"])

    assert result.exit_code == 0
    assert "Q-values" in result.stdout
    assert '"action": "a_m=yes"' in result.stdout
    assert '"defaulted": false' in result.stdout


def test_learn_prints_posterior() -> None:
    runner = CliRunner()
    result = runner.invoke(app, ["learn", "--turns", "2", "--samples", "100", "--seed", "3"])

    assert result.exit_code == 0
    assert "Turn 1: a_m=yes -> reward 0.8" in result.stdout
    assert "Posterior over" in result.stdout
    assert "0.5" in result.stdout


def test_config_dump(tmp_path: Path) -> None:
    path = tmp_path / "custom.yaml"
    path.write_text("planning:\n  horizon: 3\n", encoding="utf-8")

    runner = CliRunner()
    result = runner.invoke(app, ["config", "--config", str(path)])

    assert result.exit_code == 0
    assert '"horizon": 3' in result.stdout
    assert '"timeout": 30.0' in result.stdout


def test_missing_config_file_exits_with_error(tmp_path: Path) -> None:
    runner = CliRunner()
    result = runner.invoke(app, ["config", "--config", str(tmp_path / "absent.yaml")])

    assert result.exit_code == 1
    assert "Configuration error" in result.stdout


def test_parse_prints_canonical_form() -> None:
    runner = CliRunner()
    result = runner.invoke(app, ["parse", "x=1 ^ a_m=yes"])

    assert result.exit_code == 0
    assert result.stdout.strip() == "a_m=yes ^ x=1"


def test_parse_rejects_malformed_assignment() -> None:
    runner = CliRunner()
    result = runner.invoke(app, ["parse", "a_m=(yes"])

    assert result.exit_code == 1
    assert "Invalid assignment" in result.stdout
