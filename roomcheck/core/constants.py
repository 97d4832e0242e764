# SPDX-License-Identifier: MPL-2.0
# Copyright (c) 2025 Daniel Schmidt

"""Core constants shared across the roomcheck framework."""

# Validation polling
DEFAULT_POLL_INTERVAL = 0.1  # seconds between evaluation passes
DEFAULT_VALIDATION_TIMEOUT = 5.0  # seconds until a validation set fails

# Action execution
DEFAULT_ACTION_TIMEOUT = 10.0  # seconds, Move actions add their own duration
DEFAULT_TEARDOWN_TIMEOUT = 5.0  # seconds to drain in-flight operations at run end

# Room lifecycle (observed, never enforced by the orchestrator)
DEFAULT_MAX_MEMBERS = 32
JOIN_CODE_LENGTH = 6
JOIN_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"

# Simulated backend
DEFAULT_REPLICATION_DELAY = 0.05  # seconds
DEFAULT_OPERATION_DELAY = 0.0  # seconds
DEFAULT_MOVE_SPEED = 5.0  # units per second
DEFAULT_SEED = 1337

# Retry configuration - HTTP backend
RETRY_MAX_ATTEMPTS = 3
RETRY_INITIAL_DELAY = 0.5
RETRY_MAX_DELAY = 10.0
RETRY_EXPONENTIAL_BASE = 2.0
HTTP_REQUEST_TIMEOUT = 10.0  # seconds

# Avatar colors assigned in join order
AVATAR_PALETTE = (
    "red",
    "blue",
    "green",
    "yellow",
    "purple",
    "orange",
    "cyan",
    "magenta",
)

# Report output
REPORT_FILENAME = "report.json"

# CLI exit codes (1-250 otherwise carry the number of failed steps)
EXIT_ERROR = 1  # an error was logged during the run
EXIT_SCENARIO_ERROR = 2  # malformed scenario or invalid arguments
EXIT_FAILURE_CAP = 250
