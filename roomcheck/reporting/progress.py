# SPDX-License-Identifier: MPL-2.0
# Copyright (c) 2025 Daniel Schmidt

"""Live step progress on the console, one line per step transition."""

import logging
from datetime import datetime

from colorama import Fore, Style, init

from roomcheck.core.types import StepStatus
from roomcheck.scenario.plan import TestStep

init()  # Initialize colorama for cross-platform color support

logger = logging.getLogger(__name__)

STATUS_COLORS = {
    StepStatus.PASSED: Fore.GREEN,
    StepStatus.FAILED: Fore.RED,
    StepStatus.SKIPPED: Fore.YELLOW,
}


class ProgressReporter:
    """Prints step progress in a Robot Framework-like format.

    Format: 2025-06-27 18:26:16.834 [ID:4] PASSED join all clients in 3.2 seconds
    """

    def __init__(self, total_steps: int = 0, use_color: bool = True):
        self.total_steps = total_steps
        self.use_color = use_color
        self.step_status: dict[int, str] = {}

    def step_started(self, step: TestStep) -> None:
        """Report that a step has started executing"""
        self.step_status[step.index] = "EXECUTING"
        print(f"{self._prefix(step)} {self._colored('EXECUTING', Fore.YELLOW)} {step.name}")

    def step_finished(self, step: TestStep) -> None:
        status = step.status.value.upper()
        self.step_status[step.index] = status
        color = STATUS_COLORS.get(step.status, Fore.WHITE)
        line = f"{self._prefix(step)} {self._colored(status, color)} {step.name}"
        if step.duration is not None:
            line += f" in {step.duration:.1f} seconds"
        if step.status == StepStatus.FAILED and step.reason:
            line += f"\n    {step.reason}"
        print(line)

    def _prefix(self, step: TestStep) -> str:
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]
        if self.total_steps:
            return f"{timestamp} [ID:{step.index}/{self.total_steps}]"
        return f"{timestamp} [ID:{step.index}]"

    def _colored(self, text: str, color: str) -> str:
        if not self.use_color:
            return text
        return f"{color}{text}{Style.RESET_ALL}"
