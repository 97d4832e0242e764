# SPDX-License-Identifier: MPL-2.0
# Copyright (c) 2025 Daniel Schmidt

"""Metrics, progress output and report generation."""

from roomcheck.reporting.metrics import MetricSample, MetricsCollector
from roomcheck.reporting.progress import ProgressReporter
from roomcheck.reporting.report_generator import ReportGenerator

__all__ = [
    "MetricSample",
    "MetricsCollector",
    "ProgressReporter",
    "ReportGenerator",
]
