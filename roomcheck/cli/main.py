# SPDX-License-Identifier: MPL-2.0
# Copyright (c) 2025 Daniel Schmidt

import asyncio
import json
import logging
from enum import Enum
from pathlib import Path
from typing import Annotated

import errorhandler
import typer

import roomcheck
from roomcheck.clients.http_backend import HttpGameBackend
from roomcheck.core.constants import (
    DEFAULT_REPLICATION_DELAY,
    EXIT_ERROR,
    EXIT_SCENARIO_ERROR,
    REPORT_FILENAME,
)
from roomcheck.core.errors import ScenarioError
from roomcheck.core.settings import RunSettings
from roomcheck.core.types import RunMode, TestReport
from roomcheck.execution.gates import PromptGate
from roomcheck.execution.orchestrator import StepOrchestrator
from roomcheck.reporting.progress import ProgressReporter
from roomcheck.scenario.loader import ScenarioLoader
from roomcheck.scenario.plan import Scenario
from roomcheck.simulation.server import SimulatedRoomServer
from roomcheck.utils.logging import VerbosityLevel, configure_logging
from roomcheck.utils.terminal import terminal

app = typer.Typer(add_completion=False)

logger = logging.getLogger(__name__)

error_handler = errorhandler.ErrorHandler()


class Backend(str, Enum):
    SIMULATED = "simulated"
    HTTP = "http"


def version_callback(value: bool) -> None:
    if value:
        typer.echo(f"roomcheck, version {roomcheck.__version__}")
        raise typer.Exit()


Verbosity = Annotated[
    VerbosityLevel,
    typer.Option(
        "-v",
        "--verbosity",
        help="Verbosity level.",
        envvar="ROOMCHECK_VERBOSITY",
        is_eager=True,
    ),
]


ScenarioFile = Annotated[
    Path,
    typer.Argument(
        exists=True,
        dir_okay=False,
        file_okay=True,
        help="Path to the scenario YAML file.",
    ),
]


Output = Annotated[
    Path,
    typer.Option(
        "-o",
        "--output",
        exists=False,
        dir_okay=True,
        file_okay=False,
        help="Path to output directory.",
        envvar="ROOMCHECK_OUTPUT",
    ),
]


Mode = Annotated[
    RunMode | None,
    typer.Option(
        "--mode",
        help="Run unattended or wait for Enter between steps (overrides the scenario).",
        envvar="ROOMCHECK_MODE",
    ),
]


ContinueOnFailure = Annotated[
    bool | None,
    typer.Option(
        "--continue-on-failure/--stop-on-failure",
        help="Keep running steps after a failed step (overrides the scenario).",
        envvar="ROOMCHECK_CONTINUE_ON_FAILURE",
        show_default=False,
    ),
]


PollInterval = Annotated[
    float | None,
    typer.Option(
        "--poll-interval",
        help="Seconds between validation polls.",
        envvar="ROOMCHECK_POLL_INTERVAL",
        min=0.001,
    ),
]


ValidationTimeout = Annotated[
    float | None,
    typer.Option(
        "--validation-timeout",
        help="Seconds a step's validations may take to hold.",
        envvar="ROOMCHECK_VALIDATION_TIMEOUT",
        min=0,
    ),
]


ActionTimeout = Annotated[
    float | None,
    typer.Option(
        "--action-timeout",
        help="Seconds an action may take (0 disables the timeout).",
        envvar="ROOMCHECK_ACTION_TIMEOUT",
        min=0,
    ),
]


BackendOption = Annotated[
    Backend,
    typer.Option(
        "--backend",
        help="Run against the in-memory simulated server or a game server over HTTP.",
        envvar="ROOMCHECK_BACKEND",
    ),
]


ServerUrl = Annotated[
    str | None,
    typer.Option(
        "--server-url",
        help="Base URL of the game server's test API (required with --backend http).",
        envvar="ROOMCHECK_SERVER_URL",
    ),
]


ReplicationDelay = Annotated[
    float,
    typer.Option(
        "--replication-delay",
        help="Replication delay of the simulated server in seconds.",
        envvar="ROOMCHECK_REPLICATION_DELAY",
        min=0,
    ),
]


Version = Annotated[
    bool,
    typer.Option(
        "--version",
        callback=version_callback,
        help="Display version number.",
        is_eager=True,
    ),
]


@app.command()
def main(
    scenario: ScenarioFile,
    output: Output,
    mode: Mode = None,
    continue_on_failure: ContinueOnFailure = None,
    poll_interval: PollInterval = None,
    validation_timeout: ValidationTimeout = None,
    action_timeout: ActionTimeout = None,
    backend: BackendOption = Backend.SIMULATED,
    server_url: ServerUrl = None,
    replication_delay: ReplicationDelay = DEFAULT_REPLICATION_DELAY,
    verbosity: Verbosity = VerbosityLevel.WARNING,
    version: Version = False,
) -> None:
    """Run a scripted multi-client room scenario and report the outcome."""
    configure_logging(verbosity, error_handler)

    if backend == Backend.HTTP and not server_url:
        raise typer.BadParameter(
            "--server-url is required with --backend http", param_hint="--server-url"
        )

    try:
        loaded = ScenarioLoader.load(scenario)
        settings = loaded.settings.merged(
            {
                "mode": mode,
                "continue_on_failure": continue_on_failure,
                "poll_interval": poll_interval,
                "validation_timeout": validation_timeout,
                "action_timeout": action_timeout,
            }
        )
    except ScenarioError as e:
        typer.echo(terminal.error(f"Invalid scenario: {e}"), err=True)
        raise typer.Exit(EXIT_SCENARIO_ERROR) from e

    output.mkdir(parents=True, exist_ok=True)
    typer.echo(
        terminal.header(
            f"Scenario: {loaded.name} "
            f"({len(loaded.steps)} steps, {settings.mode.value} mode)"
        )
    )
    report = asyncio.run(
        run_scenario(loaded, settings, backend, server_url, replication_delay)
    )
    write_report(report, output)

    typer.echo(terminal.format_run_summary(report))
    failures = terminal.format_failures(report)
    if failures:
        typer.echo(failures)
    exit(report)


async def run_scenario(
    scenario: Scenario,
    settings: RunSettings,
    backend: Backend,
    server_url: str | None,
    replication_delay: float,
) -> TestReport:
    """Run ``scenario`` against the selected backend."""
    gate = PromptGate() if settings.mode == RunMode.STEPPED else None
    listener = ProgressReporter(total_steps=len(scenario.steps))

    if backend == Backend.HTTP:
        assert server_url is not None
        logger.info(f"Running against game server at {server_url}")
        async with HttpGameBackend(server_url) as http_backend:
            orchestrator = StepOrchestrator(
                http_backend, http_backend, settings, gate=gate, listener=listener
            )
            return await orchestrator.run_scenario(scenario)

    server = SimulatedRoomServer(replication_delay=replication_delay)
    orchestrator = StepOrchestrator(server, server, settings, gate=gate, listener=listener)
    return await orchestrator.run_scenario(scenario)


def write_report(report: TestReport, output: Path) -> Path:
    path = output / REPORT_FILENAME
    with open(path, "w", encoding="utf-8") as f:
        json.dump(report.to_dict(), f, indent=2)
    logger.info(f"Report written to {path}")
    return path


def exit(report: TestReport) -> None:
    if report.exit_code:
        raise typer.Exit(report.exit_code)
    if error_handler.fired:
        raise typer.Exit(EXIT_ERROR)
    raise typer.Exit(0)
