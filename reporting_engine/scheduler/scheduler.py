"""Admission control and dispatch of report requests.

The :class:`ReportScheduler` owns the transient view of scheduling state:
the pending priority queue and the map of in-progress requests.  A single
lock guards both, and every state change is written to the history store
while that lock is held so the store never lags behind the view.

Dispatched requests run on a bounded :class:`ThreadPoolExecutor` whose
size equals ``max_parallel_reports``.  Synchronous runs execute on the
caller's thread but still count toward the in-progress set.
"""

from __future__ import annotations

import logging
import threading
import traceback
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from datetime import UTC, datetime

from reporting_engine.errors import ConfigurationError, EvaluationError, InvalidStateError
from reporting_engine.executor.engine import ReportExecutor
from reporting_engine.models.report import ErrorDetail, ErrorStage, Report
from reporting_engine.models.request import Priority, ReportRequest, RequestStatus
from reporting_engine.scheduler.queue import PendingQueue
from reporting_engine.state.base import ReportHistoryStore

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


_SCHEDULED_STATUSES = frozenset({RequestStatus.QUEUED, RequestStatus.PROCESSING})

# Fields only the scheduler may change once a request is in history.
_LIFECYCLE_FIELDS = (
    "status",
    "priority",
    "requested_on",
    "evaluate_start_datetime",
    "evaluate_complete_datetime",
    "render_complete_datetime",
)

# A queued or running request also keeps what it was submitted with.
_EXECUTION_FIELDS = _LIFECYCLE_FIELDS + ("report_definition", "parameters", "rendering_mode")


class ReportScheduler:
    """Queue, prioritise and run report requests with bounded parallelism.

    Parameters
    ----------
    executor:
        Runs the evaluation and rendering stages of one request.
    history:
        Durable record of every request and result.
    max_parallel_reports:
        Upper bound on in-progress requests admitted from the queue.
    clock:
        Source of ``requested_on`` stamps.
    """

    def __init__(
        self,
        executor: ReportExecutor,
        history: ReportHistoryStore,
        max_parallel_reports: int = 1,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if max_parallel_reports < 1:
            raise ConfigurationError(f"max_parallel_reports must be at least 1, got {max_parallel_reports}.")
        self._executor = executor
        self._history = history
        self._max_parallel = max_parallel_reports
        self._clock = clock
        self._lock = threading.Lock()
        self._pending = PendingQueue()
        self._in_progress: dict[str, ReportRequest] = {}
        self._pool = ThreadPoolExecutor(max_workers=max_parallel_reports, thread_name_prefix="report-worker")
        self._closed = False

    @property
    def max_parallel_reports(self) -> int:
        return self._max_parallel

    # -- Submission -----------------------------------------------------------

    def queue_report(self, request: ReportRequest) -> ReportRequest:
        """Place *request* on the pending queue and return immediately.

        A uuid and ``requested_on`` are assigned if missing.  Nothing is
        dispatched here; admission happens in
        :meth:`maybe_run_next_queued_report`.

        The queue holds its own copy, so the returned request stays a QUEUED
        snapshot and is not updated when the run starts or finishes.  Read
        the current state back from history; saving the snapshot later does
        not rewind the stored status (see :meth:`save_request`).

        Raises
        ------
        InvalidRequestError
            If the request violates the execution contract.
        InvalidStateError
            If the request is already queued or running, or has already been
            processed (use :meth:`requeue_report` for that).
        """
        self._executor.validate(request)
        with self._lock:
            self._ensure_open()
            uuid = request.ensure_uuid()
            self._ensure_not_scheduled(uuid)
            if request.status == RequestStatus.REQUESTED:
                request.transition_to(RequestStatus.QUEUED)
            elif request.status != RequestStatus.QUEUED:
                raise InvalidStateError(
                    f"Report request {uuid} is {request.status.value}; re-queue it explicitly to run it again."
                )
            request.ensure_requested_on(self._clock())
            self._persist(request)
            self._pending.push(request.model_copy(deep=True))
            depth = len(self._pending)
        logger.info("Queued report request %s with priority %s (queue depth %d)", uuid, request.priority.value, depth)
        return request

    def requeue_report(self, request: ReportRequest) -> ReportRequest:
        """Send an already processed request back to the queue.

        The previous run's timestamps are cleared and any stored report is
        kept until the new run replaces it.
        """
        self._executor.validate(request)
        with self._lock:
            self._ensure_open()
            uuid = request.ensure_uuid()
            self._ensure_not_scheduled(uuid)
            request.requeue()
            request.ensure_requested_on(self._clock())
            self._persist(request)
            self._pending.push(request.model_copy(deep=True))
        logger.info("Re-queued report request %s", uuid)
        return request

    def run_report(self, request: ReportRequest) -> Report:
        """Execute *request* on the calling thread and return its report.

        The request runs at HIGHEST priority, bypasses the worker pool and the
        parallelism cap, and is visible in :meth:`get_in_progress` while it
        runs.  It is never placed on the pending queue.

        Raises
        ------
        EvaluationError
            If evaluation failed.  The FAILED state and the failed report are
            recorded before the error is raised.
        InvalidRequestError
            If the request violates the execution contract.
        """
        self._executor.validate(request)
        with self._lock:
            self._ensure_open()
            uuid = request.ensure_uuid()
            self._ensure_not_scheduled(uuid)
            if request.status != RequestStatus.REQUESTED:
                raise InvalidStateError(
                    f"Report request {uuid} is {request.status.value}; only new requests can be run."
                )
            request.priority = Priority.HIGHEST
            request.ensure_requested_on(self._clock())
            request.transition_to(RequestStatus.PROCESSING)
            self._persist(request)
            self._in_progress[uuid] = request.model_copy(deep=True)

        logger.info("Running report request %s synchronously", uuid)
        report = self._execute(request)

        if report.error is not None and report.error.stage == ErrorStage.EVALUATION:
            raise EvaluationError(report.error.message, request_uuid=uuid)
        return report

    # -- Admission ------------------------------------------------------------

    def maybe_run_next_queued_report(self) -> ReportRequest | None:
        """Dispatch the head of the queue if a slot is free.

        Never blocks on running work and is safe to call from any thread at
        any time.  Returns a copy of the dispatched request, or ``None`` when
        nothing was admitted.
        """
        with self._lock:
            if self._closed or len(self._in_progress) >= self._max_parallel:
                return None
            request = self._pending.pop()
            if request is None:
                return None
            assert request.uuid is not None
            queued = request.model_copy(deep=True)
            request.transition_to(RequestStatus.PROCESSING)
            self._in_progress[request.uuid] = request.model_copy(deep=True)
            try:
                self._persist(request)
                self._pool.submit(self._execute, request)
            except Exception:
                del self._in_progress[request.uuid]
                self._pending.push(queued)
                raise
            running = len(self._in_progress)
        logger.info("Dispatched report request %s (%d of %d slots in use)", request.uuid, running, self._max_parallel)
        return request.model_copy(deep=True)

    def run_queued_reports(self) -> int:
        """Admit queued requests until the slots or the queue run out."""
        dispatched = 0
        while self.maybe_run_next_queued_report() is not None:
            dispatched += 1
        return dispatched

    # -- Views ----------------------------------------------------------------

    def get_in_progress(self) -> tuple[ReportRequest, ...]:
        """Point-in-time snapshot of the requests currently running."""
        with self._lock:
            return tuple(r.model_copy(deep=True) for r in self._in_progress.values())

    def get_pending(self) -> list[ReportRequest]:
        """Queued requests in dequeue order."""
        with self._lock:
            return [r.model_copy(deep=True) for r in self._pending.snapshot()]

    def is_in_progress(self, uuid: str) -> bool:
        with self._lock:
            return uuid in self._in_progress

    # -- Maintenance ----------------------------------------------------------

    def cancel_queued(self, uuid: str) -> ReportRequest | None:
        """Take a QUEUED request off the pending queue.

        Returns the removed request, or ``None`` if it was not queued.
        """
        with self._lock:
            removed = self._pending.remove(uuid)
        if removed is not None:
            logger.info("Cancelled queued report request %s", uuid)
        return removed

    def save_request(self, request: ReportRequest) -> ReportRequest:
        """Write *request* to history outside the scheduling flow.

        Assigns a uuid if missing.  The lifecycle of a stored request belongs
        to the scheduler: its status, priority and run timestamps are kept
        from history and copied onto *request*, and a request that is queued
        or running also keeps what it runs with.  A stored ``saved`` flag is
        never cleared.

        Raises
        ------
        InvalidStateError
            If a request unknown to history claims to be QUEUED or
            PROCESSING.
        """
        with self._lock:
            uuid = request.ensure_uuid()
            stored = self._history.get_request(uuid)
            if stored is None:
                if request.status in _SCHEDULED_STATUSES:
                    raise InvalidStateError(
                        f"Report request {uuid} is {request.status.value} but was never scheduled; queue it instead."
                    )
            else:
                scheduled = uuid in self._pending or uuid in self._in_progress
                for name in _EXECUTION_FIELDS if scheduled else _LIFECYCLE_FIELDS:
                    setattr(request, name, getattr(stored, name))
            self._persist(request)
        return request

    def archive_request(self, uuid: str, description: str | None = None) -> ReportRequest | None:
        """Set ``saved`` on the stored request so retention keeps it.

        Returns the stored request, or ``None`` if *uuid* is not in history.
        """
        with self._lock:
            stored = self._history.get_request(uuid)
            if stored is None:
                return None
            stored.saved = True
            if description is not None:
                stored.description = description
            self._persist(stored)
        logger.info("Archived report request %s", uuid)
        return stored

    def delete_request(self, uuid: str) -> bool:
        """Remove a request and its report from history.

        A queued request is taken off the pending queue first.

        Raises
        ------
        InvalidStateError
            If the request is currently running.
        """
        with self._lock:
            if uuid in self._in_progress:
                raise InvalidStateError(f"Report request {uuid} is running and can not be deleted.")
            cancelled = self._pending.remove(uuid) is not None
            deleted = self._history.delete(uuid)
        if cancelled:
            logger.info("Cancelled queued report request %s", uuid)
        return deleted or cancelled

    def restore_pending(self) -> int:
        """Reload queued work from history after a restart.

        Requests a previous process left PROCESSING are re-queued explicitly;
        QUEUED requests are put back on the pending queue.  Returns the number
        of requests added to the queue.
        """
        restored = 0
        with self._lock:
            for request in self._history.get_in_progress_requests():
                if request.uuid is None or request.uuid in self._in_progress:
                    continue
                request.requeue()
                self._persist(request)
                logger.warning("Re-queued report request %s interrupted by a previous shutdown", request.uuid)
            for request in self._history.get_queued_requests():
                if request.uuid is None or request.uuid in self._pending or request.uuid in self._in_progress:
                    continue
                self._pending.push(request)
                restored += 1
        if restored:
            logger.info("Restored %d queued report request(s) from history", restored)
        return restored

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting work and shut down the worker pool.

        Queued requests stay QUEUED in history and are picked up again by
        :meth:`restore_pending` in the next process.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
        self._pool.shutdown(wait=wait)
        logger.info("Report scheduler shut down")

    @property
    def closed(self) -> bool:
        return self._closed

    # -- Internals ------------------------------------------------------------

    def _ensure_open(self) -> None:
        if self._closed:
            raise InvalidStateError("The report scheduler has been shut down.")

    def _ensure_not_scheduled(self, uuid: str) -> None:
        if uuid in self._pending or uuid in self._in_progress:
            raise InvalidStateError(f"Report request {uuid} is already queued or running.")

    def _execute(self, request: ReportRequest) -> Report:
        """Run *request*, record the outcome and release its slot."""
        assert request.uuid is not None
        try:
            try:
                report = self._executor.execute(request, on_progress=self._record_progress)
            except Exception as exc:
                logger.error("Unexpected error while running report request %s", request.uuid, exc_info=True)
                report = self._unexpected_failure(request, exc)
            self._record_completion(report)
            return report
        finally:
            with self._lock:
                self._in_progress.pop(request.uuid, None)
            self._admit_next()

    def _admit_next(self) -> None:
        try:
            self.maybe_run_next_queued_report()
        except Exception:
            logger.error("Could not dispatch the next queued report request", exc_info=True)

    def _persist(self, request: ReportRequest) -> None:
        """Write *request* to history, keeping a stored ``saved`` flag set.

        Must be called with the lock held.
        """
        assert request.uuid is not None
        if not request.saved:
            stored = self._history.get_request(request.uuid)
            if stored is not None and stored.saved:
                request.saved = True
        self._history.save_request(request)

    def _record_progress(self, request: ReportRequest) -> None:
        assert request.uuid is not None
        with self._lock:
            if request.uuid in self._in_progress:
                self._in_progress[request.uuid] = request.model_copy(deep=True)
            self._persist(request)

    def _record_completion(self, report: Report) -> None:
        final = report.request.model_copy(deep=True)
        try:
            with self._lock:
                self._history.save_report(report)
                self._persist(final)
        except Exception:
            logger.error("Could not record the result of report request %s", final.uuid, exc_info=True)
            return
        logger.info("Report request %s finished with status %s", final.uuid, final.status.value)

    @staticmethod
    def _unexpected_failure(request: ReportRequest, exc: Exception) -> Report:
        if not request.status.is_terminal:
            if request.status != RequestStatus.PROCESSING:
                request.transition_to(RequestStatus.PROCESSING)
            request.transition_to(RequestStatus.FAILED)
        stage = ErrorStage.RENDERING if request.evaluate_complete_datetime is not None else ErrorStage.EVALUATION
        error = ErrorDetail.from_exception(stage, exc, traceback=traceback.format_exc())
        return Report(request=request.model_copy(deep=True), error=error)
