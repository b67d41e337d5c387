"""Queueing, admission, retention and background task supervision."""

from __future__ import annotations

from reporting_engine.scheduler.queue import PendingQueue
from reporting_engine.scheduler.retention import RetentionManager
from reporting_engine.scheduler.scheduler import ReportScheduler
from reporting_engine.scheduler.supervisor import PeriodicTask, TaskSupervisor

__all__ = [
    "PendingQueue",
    "PeriodicTask",
    "ReportScheduler",
    "RetentionManager",
    "TaskSupervisor",
]
