# SPDX-License-Identifier: MPL-2.0
# Copyright (c) 2025 Daniel Schmidt

"""CLI tests for roomcheck.

Runs the typer app through CliRunner against the simulated backend and
checks exit codes, console output and the JSON report.
"""

import json
import logging
from collections.abc import Generator
from pathlib import Path
from typing import Any

import pytest
from typer.testing import CliRunner

import roomcheck
import roomcheck.cli.main
from roomcheck.core.constants import EXIT_SCENARIO_ERROR, REPORT_FILENAME

pytestmark = pytest.mark.integration

SCENARIOS = Path(__file__).parent / "fixtures" / "scenarios"


@pytest.fixture(autouse=True)
def restore_root_logger() -> Generator[None, None, None]:
    """Remove the CLI's log handler, which is bound to the runner's stderr."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


def invoke(*args: str) -> Any:
    runner = CliRunner()
    return runner.invoke(roomcheck.cli.main.app, list(args))


def load_report(output: Path) -> dict[str, Any]:
    with open(output / REPORT_FILENAME, encoding="utf-8") as f:
        return json.load(f)


def test_passing_scenario_exits_zero(tmp_path: Path) -> None:
    result = invoke(str(SCENARIOS / "create_room.yaml"), "-o", str(tmp_path))

    assert result.exit_code == 0, (
        f"Passing scenario should exit 0, got {result.exit_code}: {result.output}"
    )
    assert "Scenario: create, join and move (3 steps, unattended mode)" in result.output
    assert "3 steps, 3 passed, 0 failed, 0 skipped." in result.output
    assert "[ID:2/3]" in result.output

    report = load_report(tmp_path)
    assert report["scenario"] == "create, join and move"
    assert report["mode"] == "unattended"
    assert report["summary"]["passed"] == 3
    assert [step["status"] for step in report["steps"]] == ["passed"] * 3
    assert report["failures"] == []


def test_failing_scenario_exits_with_failure_count(tmp_path: Path) -> None:
    result = invoke(str(SCENARIOS / "failing.yaml"), "-o", str(tmp_path))

    assert result.exit_code == 1, result.output
    assert "3 steps, 1 passed, 1 failed, 1 skipped." in result.output
    assert "Step 2 (nobody else shows up)" in result.output

    report = load_report(tmp_path)
    assert [step["status"] for step in report["steps"]] == [
        "passed",
        "failed",
        "skipped",
    ]
    assert len(report["failures"]) == 1


def test_continue_on_failure(tmp_path: Path) -> None:
    result = invoke(
        str(SCENARIOS / "failing.yaml"),
        "-o",
        str(tmp_path),
        "--continue-on-failure",
    )

    assert result.exit_code == 1, result.output
    report = load_report(tmp_path)
    assert [step["status"] for step in report["steps"]] == [
        "passed",
        "failed",
        "passed",
    ]


def test_settings_from_environment(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("ROOMCHECK_CONTINUE_ON_FAILURE", "true")
    monkeypatch.setenv("ROOMCHECK_VALIDATION_TIMEOUT", "0.1")

    result = invoke(str(SCENARIOS / "failing.yaml"), "-o", str(tmp_path))

    assert result.exit_code == 1, result.output
    report = load_report(tmp_path)
    assert report["summary"]["skipped"] == 0
    assert "within 0.10s" in report["failures"][0]


def test_malformed_scenario_exits_two(tmp_path: Path) -> None:
    result = invoke(str(SCENARIOS / "malformed.yaml"), "-o", str(tmp_path))

    assert result.exit_code == EXIT_SCENARIO_ERROR
    assert "Invalid scenario" in result.output
    assert "room 'lobby' is not created by an earlier step" in result.output
    assert not (tmp_path / REPORT_FILENAME).exists()


def test_missing_scenario_file(tmp_path: Path) -> None:
    result = invoke(str(tmp_path / "nope.yaml"), "-o", str(tmp_path))

    assert result.exit_code == 2


def test_http_backend_requires_server_url(tmp_path: Path) -> None:
    result = invoke(
        str(SCENARIOS / "create_room.yaml"), "-o", str(tmp_path), "--backend", "http"
    )

    assert result.exit_code == 2
    assert "--server-url" in result.output


def test_version() -> None:
    result = invoke("--version")

    assert result.exit_code == 0
    assert f"roomcheck, version {roomcheck.__version__}" in result.output
