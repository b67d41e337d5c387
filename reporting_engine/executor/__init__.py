"""Execution of individual report requests."""

from __future__ import annotations

from reporting_engine.executor.base import DefinitionEvaluator, ProgressCallback
from reporting_engine.executor.engine import ReportExecutor

__all__ = [
    "DefinitionEvaluator",
    "ProgressCallback",
    "ReportExecutor",
]
