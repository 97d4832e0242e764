# SPDX-License-Identifier: MPL-2.0
# Copyright (c) 2025 Daniel Schmidt

"""Centralized terminal formatting utilities for roomcheck."""

import os
import re

from colorama import Fore, Style, init

from roomcheck.core.types import TestReport

# autoreset=True means colors reset after each print
init(autoreset=True)


class TerminalColors:
    """Semantic color scheme for consistent terminal output."""

    ERROR = Fore.RED
    WARNING = Fore.YELLOW
    SUCCESS = Fore.GREEN
    INFO = Fore.CYAN
    RESET = Style.RESET_ALL
    BOLD = Style.BRIGHT

    # Check if colors should be disabled (for CI/CD environments)
    NO_COLOR = os.environ.get("NO_COLOR") is not None

    ANSI_ESCAPE_PATTERN = re.compile(r"\x1b\[[0-9;]*m")

    @classmethod
    def strip_ansi(cls, text: str) -> str:
        """Remove all ANSI escape sequences from text."""
        return cls.ANSI_ESCAPE_PATTERN.sub("", text)

    @classmethod
    def _wrap(cls, color: str, text: str) -> str:
        if cls.NO_COLOR:
            return text
        return f"{color}{text}{cls.RESET}"

    @classmethod
    def error(cls, text: str) -> str:
        return cls._wrap(cls.ERROR, text)

    @classmethod
    def warning(cls, text: str) -> str:
        return cls._wrap(cls.WARNING, text)

    @classmethod
    def info(cls, text: str) -> str:
        return cls._wrap(cls.INFO, text)

    @classmethod
    def bold(cls, text: str) -> str:
        return cls._wrap(cls.BOLD, text)

    @classmethod
    def header(cls, text: str, width: int = 70, char: str = "=") -> str:
        """Format a header between two separator lines."""
        separator = char * width
        return "\n".join(
            [cls.info(separator), cls.bold(text), cls.info(separator)]
        )

    @classmethod
    def format_run_summary(cls, report: TestReport) -> str:
        """One-line summary: 'N steps, N passed, N failed, N skipped.'

        Counts are colored only when greater than zero; labels never are.
        """

        def count(value: int, color: str) -> str:
            return cls._wrap(color, str(value)) if value > 0 else str(value)

        return (
            f"{report.total} steps, "
            f"{count(report.passed, cls.SUCCESS)} passed, "
            f"{count(report.failed, cls.ERROR)} failed, "
            f"{count(report.skipped, cls.WARNING)} skipped."
        )

    @classmethod
    def format_failures(cls, report: TestReport) -> str:
        """Failure causes of a report, one per line, or an empty string."""
        if not report.failures:
            return ""
        lines = [cls.error("Failures:")]
        lines.extend(f"  {cls.warning('-')} {failure}" for failure in report.failures)
        return "\n".join(lines)


# Single instance for use across the codebase
terminal = TerminalColors()
