"""Public facade of the reporting engine.

:class:`ReportService` wires the scheduler, the execution engine, the
renderer registry, the retention manager and the task supervisor together
behind one object.  :func:`create_report_service` builds a service from
:class:`~reporting_engine.config.Settings`.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime

from sqlalchemy import Engine

from reporting_engine.config import Settings, load_settings
from reporting_engine.errors import NotFoundError
from reporting_engine.executor.base import DefinitionEvaluator
from reporting_engine.executor.engine import ReportExecutor
from reporting_engine.models.definition import ReportDefinition
from reporting_engine.models.design import ReportDesign
from reporting_engine.models.report import Report
from reporting_engine.models.request import ReportRequest
from reporting_engine.renderers.base import RenderingMode, ReportRenderer
from reporting_engine.renderers.builtin import create_default_registry
from reporting_engine.renderers.registry import RendererRegistry
from reporting_engine.scheduler.retention import RetentionManager
from reporting_engine.scheduler.scheduler import ReportScheduler
from reporting_engine.scheduler.supervisor import TaskSupervisor
from reporting_engine.state.base import ReportDesignStore, ReportHistoryStore
from reporting_engine.state.database import create_tables, get_engine, get_session_factory
from reporting_engine.state.memory import InMemoryDesignStore, InMemoryHistoryStore
from reporting_engine.state.repository import SqlDesignStore, SqlHistoryStore

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class ReportService:
    """Run, queue, track and retain report requests.

    Parameters
    ----------
    scheduler:
        Owns the pending queue and the in-progress set.
    history:
        Durable record of requests and reports.
    designs:
        Storage for report designs.
    registry:
        Renderers available to this service.
    retention:
        Deletes old, unsaved history.
    supervisor:
        Runs the pump and the sweep in the background.
    engine:
        SQLAlchemy engine to dispose on shutdown, if the service owns one.
    """

    def __init__(
        self,
        scheduler: ReportScheduler,
        history: ReportHistoryStore,
        designs: ReportDesignStore,
        registry: RendererRegistry,
        retention: RetentionManager,
        supervisor: TaskSupervisor,
        engine: Engine | None = None,
    ) -> None:
        self._scheduler = scheduler
        self._history = history
        self._designs = designs
        self._registry = registry
        self._retention = retention
        self._supervisor = supervisor
        self._engine = engine

    @property
    def scheduler(self) -> ReportScheduler:
        return self._scheduler

    @property
    def registry(self) -> RendererRegistry:
        return self._registry

    # -- Running reports ------------------------------------------------------

    def run_report(self, request: ReportRequest) -> Report:
        """Run *request* synchronously at HIGHEST priority.

        Raises :class:`~reporting_engine.errors.EvaluationError` if the
        definition could not be evaluated.
        """
        return self._scheduler.run_report(request)

    def queue_report(self, request: ReportRequest) -> ReportRequest:
        """Queue *request* for background execution and return it.

        The returned request is a QUEUED snapshot; use
        :meth:`get_report_request_by_uuid` to follow its progress.
        """
        return self._scheduler.queue_report(request)

    def requeue_report_request(self, uuid: str) -> ReportRequest:
        """Send a stored, already processed request back to the queue."""
        request = self.get_report_request_by_uuid(uuid)
        return self._scheduler.requeue_report(request)

    def maybe_run_next_queued_report(self) -> ReportRequest | None:
        return self._scheduler.maybe_run_next_queued_report()

    def get_in_progress(self) -> tuple[ReportRequest, ...]:
        return self._scheduler.get_in_progress()

    # -- History --------------------------------------------------------------

    def get_report(self, request: ReportRequest) -> Report | None:
        """Return the stored report for *request*; never re-executes."""
        if request.uuid is None:
            return None
        return self._history.get_report(request.uuid)

    def archive_report_request(self, request: ReportRequest) -> ReportRequest | None:
        """Mark a stored request as saved so retention never removes it.

        Returns the updated request, or ``None`` if it is not in history.
        """
        if request.uuid is None:
            return None
        archived = self._scheduler.archive_request(request.uuid, description=request.description)
        if archived is not None:
            request.saved = True
        return archived

    def add_to_history(self, request: ReportRequest) -> ReportRequest:
        """Record *request* in history without scheduling it."""
        return self._scheduler.save_request(request)

    def save_report_request(self, request: ReportRequest) -> ReportRequest:
        """Insert or update *request* in history.

        The stored status and run timestamps always win over the copy being
        saved, and the ``saved`` flag is sticky: saving a stale copy never
        rewinds a request or clears its flag.
        """
        return self._scheduler.save_request(request)

    def delete_from_history(self, uuid: str) -> bool:
        """Remove a request, its report and its artifact.

        A queued request is cancelled.  Returns ``False`` for unknown uuids.

        Raises
        ------
        InvalidStateError
            If the request is running.
        """
        return self._scheduler.delete_request(uuid)

    def get_report_request_by_uuid(self, uuid: str) -> ReportRequest:
        request = self._history.get_request(uuid)
        if request is None:
            raise NotFoundError(f"No report request with uuid {uuid}.")
        return request

    def get_report_by_uuid(self, uuid: str) -> Report | None:
        """Return the report of a known request.

        Returns ``None`` while the request has not finished.

        Raises
        ------
        NotFoundError
            If no request with *uuid* exists.
        """
        report = self._history.get_report(uuid)
        if report is not None:
            return report
        if self._history.get_request(uuid) is None:
            raise NotFoundError(f"No report request with uuid {uuid}.")
        return None

    def get_last_report_requests_by_report(self) -> dict[str, ReportRequest]:
        """Map each definition uuid to its most recently requested request."""
        return self._history.get_last_requests_by_definition()

    def get_completed_report_requests(self) -> list[ReportRequest]:
        return self._history.get_completed_requests()

    def get_queued_report_requests(self) -> list[ReportRequest]:
        """QUEUED requests in the order the scheduler will dispatch them.

        Requests queued in history but not yet restored into the scheduler
        follow, in the store's priority and age order.
        """
        stored = {r.uuid: r for r in self._history.get_queued_requests()}
        ordered = [stored.pop(r.uuid) for r in self._scheduler.get_pending() if r.uuid in stored]
        return ordered + list(stored.values())

    def get_saved_report_requests(self) -> list[ReportRequest]:
        return self._history.get_saved_requests()

    def delete_old_report_requests(self) -> int:
        return self._retention.delete_old_report_requests()

    # -- Background tasks -----------------------------------------------------

    def ensure_scheduled_tasks_running(self) -> int:
        """Start the pump and sweep tasks if they are not alive.

        The first call restores queued work from history; a failure to read
        the store propagates.
        """
        return self._supervisor.ensure_running()

    def shutdown(self, wait: bool = True) -> None:
        """Stop background tasks and the worker pool."""
        self._supervisor.stop()
        self._scheduler.shutdown(wait=wait)
        if self._engine is not None:
            self._engine.dispose()

    # -- Report designs -------------------------------------------------------

    def get_report_design_by_uuid(self, uuid: str) -> ReportDesign | None:
        return self._designs.get_design_by_uuid(uuid)

    def get_report_design(self, design_id: int) -> ReportDesign | None:
        return self._designs.get_design(design_id)

    def get_all_report_designs(self, include_retired: bool = False) -> list[ReportDesign]:
        return self._designs.get_designs(include_retired=include_retired)

    def get_report_designs(
        self,
        definition: ReportDefinition | None = None,
        renderer_type: str | None = None,
        include_retired: bool = False,
    ) -> list[ReportDesign]:
        """Return designs for *definition* and/or *renderer_type*."""
        return self._designs.get_designs(
            report_definition_uuid=definition.uuid if definition is not None else None,
            renderer_type=renderer_type,
            include_retired=include_retired,
        )

    def save_report_design(self, design: ReportDesign) -> ReportDesign:
        saved = self._designs.save_design(design)
        logger.info("Saved report design %s (%s)", saved.name, saved.uuid)
        return saved

    def purge_report_design(self, design: ReportDesign) -> bool:
        purged = self._designs.purge_design(design.uuid)
        if purged:
            logger.info("Purged report design %s", design.uuid)
        return purged

    # -- Renderers ------------------------------------------------------------

    def get_report_renderers(self) -> list[ReportRenderer]:
        return self._registry.get_report_renderers()

    def get_report_renderer(self, name: str) -> ReportRenderer | None:
        return self._registry.get_report_renderer(name)

    def get_preferred_report_renderer(self, object_type: type) -> ReportRenderer | None:
        return self._registry.get_preferred_report_renderer(object_type)

    def get_rendering_modes(self, definition: ReportDefinition) -> list[RenderingMode]:
        return self._registry.get_rendering_modes(definition)


def create_report_service(
    settings: Settings | None = None,
    evaluator: DefinitionEvaluator | None = None,
    *,
    registry: RendererRegistry | None = None,
    history: ReportHistoryStore | None = None,
    designs: ReportDesignStore | None = None,
    clock: Callable[[], datetime] = _utcnow,
) -> ReportService:
    """Build a fully wired :class:`ReportService`.

    Stores not passed in are created from ``settings.database_url``: a SQL
    store when it is set, in-memory stores otherwise.
    """
    if evaluator is None:
        raise ValueError("A definition evaluator is required.")
    settings = settings or load_settings()
    registry = registry or create_default_registry()

    engine: Engine | None = None
    if settings.database_url and (history is None or designs is None):
        engine = get_engine(settings.database_url, echo=settings.database_echo)
        create_tables(engine)
        factory = get_session_factory(engine)
        history = history or SqlHistoryStore(factory)
        designs = designs or SqlDesignStore(factory)
    history = history or InMemoryHistoryStore()
    designs = designs or InMemoryDesignStore()

    executor = ReportExecutor(evaluator, registry, clock=clock)
    scheduler = ReportScheduler(
        executor,
        history,
        max_parallel_reports=settings.max_parallel_reports,
        clock=clock,
    )
    retention = RetentionManager(
        history,
        settings.delete_reports_age_in_hours,
        scheduler=scheduler,
        clock=clock,
    )
    supervisor = TaskSupervisor(
        pump=scheduler.run_queued_reports,
        sweep=retention.delete_old_report_requests,
        pump_interval_seconds=settings.pump_interval_seconds,
        sweep_interval_seconds=settings.sweep_interval_seconds,
        startup_check=scheduler.restore_pending,
    )
    logger.info(
        "Report service created (max_parallel=%d, retention=%dh, store=%s)",
        settings.max_parallel_reports,
        settings.delete_reports_age_in_hours,
        type(history).__name__,
    )
    return ReportService(
        scheduler,
        history,
        designs,
        registry,
        retention,
        supervisor,
        engine=engine,
    )
