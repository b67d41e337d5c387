"""Shared fixtures and fakes for the reporting engine test suite."""

from __future__ import annotations

import threading
import time
from collections.abc import Callable, Iterator
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from reporting_engine.errors import EvaluationError
from reporting_engine.executor.engine import ReportExecutor
from reporting_engine.models.definition import ReportDefinition
from reporting_engine.models.report import ReportData
from reporting_engine.models.request import Priority, RenderingModeRef, ReportRequest
from reporting_engine.renderers.builtin import create_default_registry
from reporting_engine.renderers.registry import RendererRegistry
from reporting_engine.scheduler.scheduler import ReportScheduler
from reporting_engine.state.memory import InMemoryHistoryStore

T0 = datetime(2025, 5, 15, 12, 0, tzinfo=UTC)

SAMPLE_ROWS = [
    {"patient_id": 1, "name": "Alice", "visits": 3},
    {"patient_id": 2, "name": "Bob", "visits": 1},
]


def wait_until(predicate: Callable[[], bool], timeout: float = 5.0) -> bool:
    """Poll *predicate* until it holds or *timeout* seconds pass."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start: datetime = T0) -> None:
        self.now = start
        self._lock = threading.Lock()

    def __call__(self) -> datetime:
        with self._lock:
            return self.now

    def advance(self, **kwargs: float) -> datetime:
        with self._lock:
            self.now = self.now + timedelta(**kwargs)
            return self.now


class FakeEvaluator:
    """Returns a fixed data set and records every call."""

    def __init__(self, rows: list[dict[str, Any]] | None = None, error: Exception | None = None) -> None:
        self.rows = rows if rows is not None else SAMPLE_ROWS
        self.error = error
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self._lock = threading.Lock()

    def evaluate(self, definition: ReportDefinition, context: dict[str, Any]) -> ReportData:
        with self._lock:
            self.calls.append((definition.uuid, dict(context)))
        if self.error is not None:
            raise self.error
        return ReportData(
            definition_uuid=definition.uuid,
            data_sets={"patients": [dict(row) for row in self.rows]},
            context=context,
        )


class BlockingEvaluator(FakeEvaluator):
    """Blocks every evaluation until released and tracks peak concurrency."""

    def __init__(self) -> None:
        super().__init__()
        self.release = threading.Event()
        self.started = threading.Semaphore(0)
        self.active = 0
        self.peak = 0
        self.order: list[str] = []

    def evaluate(self, definition: ReportDefinition, context: dict[str, Any]) -> ReportData:
        with self._lock:
            self.active += 1
            self.peak = max(self.peak, self.active)
            self.order.append(str(context.get("label", definition.name)))
        self.started.release()
        try:
            if not self.release.wait(timeout=10):
                raise EvaluationError("evaluation was never released")
            return super().evaluate(definition, context)
        finally:
            with self._lock:
                self.active -= 1


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def definition() -> ReportDefinition:
    return ReportDefinition(
        uuid="def-patient-summary",
        name="Patient summary",
        parameters={"location": "all", "label": "default"},
    )


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def registry() -> RendererRegistry:
    return create_default_registry()


@pytest.fixture()
def history() -> InMemoryHistoryStore:
    return InMemoryHistoryStore()


@pytest.fixture()
def evaluator() -> FakeEvaluator:
    return FakeEvaluator()


@pytest.fixture()
def blocking_evaluator() -> Iterator[BlockingEvaluator]:
    evaluator = BlockingEvaluator()
    yield evaluator
    evaluator.release.set()


@pytest.fixture()
def make_request(definition: ReportDefinition):
    """Factory for report requests against the ``definition`` fixture."""

    def _make(
        priority: Priority = Priority.NORMAL,
        renderer: str | None = "csv",
        argument: str = "",
        requested_on: datetime | None = None,
        **parameters: Any,
    ) -> ReportRequest:
        return ReportRequest(
            report_definition=definition,
            parameters=parameters,
            rendering_mode=RenderingModeRef(renderer_type=renderer, argument=argument) if renderer else None,
            priority=priority,
            requested_on=requested_on,
            requested_by="admin",
        )

    return _make


@pytest.fixture()
def make_scheduler(registry: RendererRegistry, history: InMemoryHistoryStore, clock: FakeClock):
    """Factory for schedulers that are shut down after the test."""
    created: list[ReportScheduler] = []

    def _make(evaluator: Any, max_parallel_reports: int = 1) -> ReportScheduler:
        executor = ReportExecutor(evaluator, registry, clock=clock)
        scheduler = ReportScheduler(executor, history, max_parallel_reports=max_parallel_reports, clock=clock)
        created.append(scheduler)
        return scheduler

    yield _make

    for scheduler in created:
        scheduler.shutdown(wait=True)
