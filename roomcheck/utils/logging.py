# SPDX-License-Identifier: MPL-2.0
# Copyright (c) 2025 Daniel Schmidt

import logging
import sys
from enum import Enum

import errorhandler

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"
HANDLER_NAME = "roomcheck"


class VerbosityLevel(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


def configure_logging(
    level: VerbosityLevel | str,
    error_handler: errorhandler.ErrorHandler | None = None,
) -> None:
    """Configure the root logger for a CLI run.

    Installs a single stderr handler (replacing one installed by an
    earlier call) and resets ``error_handler`` so that it only reports
    errors logged from now on.
    """
    lev = getattr(logging, VerbosityLevel(level).value)

    root = logging.getLogger()
    for handler in list(root.handlers):
        if handler.get_name() == HANDLER_NAME:
            root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.set_name(HANDLER_NAME)
    root.addHandler(handler)
    root.setLevel(lev)

    if error_handler is not None:
        error_handler.reset()
