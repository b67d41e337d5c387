"""Thread-safe in-memory implementations of the persistence contracts.

Used when no ``database_url`` is configured and throughout the test suite.
Objects are deep-copied on the way in and on the way out so callers never
share mutable state with the store.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Sequence
from datetime import UTC, datetime

from reporting_engine.models.design import ReportDesign
from reporting_engine.models.report import Report
from reporting_engine.models.request import ReportRequest, RequestStatus, queue_sort_key
from reporting_engine.state.base import TERMINAL_STATUSES

logger = logging.getLogger(__name__)

_EPOCH = datetime.min.replace(tzinfo=UTC)


def _newest_first(requests: list[ReportRequest]) -> list[ReportRequest]:
    return sorted(requests, key=lambda r: (r.requested_on or _EPOCH, r.uuid or ""), reverse=True)


class InMemoryHistoryStore:
    """Report history held in process memory."""

    def __init__(self) -> None:
        self._requests: dict[str, ReportRequest] = {}
        self._reports: dict[str, Report] = {}
        self._lock = threading.RLock()

    def save_request(self, request: ReportRequest) -> None:
        if request.uuid is None:
            raise ValueError("Only requests with a uuid can be stored.")
        with self._lock:
            self._requests[request.uuid] = request.model_copy(deep=True)

    def get_request(self, uuid: str) -> ReportRequest | None:
        with self._lock:
            request = self._requests.get(uuid)
            return request.model_copy(deep=True) if request is not None else None

    def save_report(self, report: Report) -> None:
        if report.uuid is None:
            raise ValueError("Only reports of requests with a uuid can be stored.")
        with self._lock:
            self._reports[report.uuid] = report.model_copy(deep=True)

    def get_report(self, uuid: str) -> Report | None:
        with self._lock:
            report = self._reports.get(uuid)
            return report.model_copy(deep=True) if report is not None else None

    def delete(self, uuid: str) -> bool:
        with self._lock:
            removed_request = self._requests.pop(uuid, None)
            removed_report = self._reports.pop(uuid, None)
        removed = removed_request is not None or removed_report is not None
        if removed:
            logger.debug("Deleted report request %s from history", uuid)
        return removed

    def _select(self, predicate: Callable[[ReportRequest], bool]) -> list[ReportRequest]:
        with self._lock:
            return [r.model_copy(deep=True) for r in self._requests.values() if predicate(r)]

    def get_requests(self, statuses: Sequence[RequestStatus] | None = None) -> list[ReportRequest]:
        wanted = set(statuses) if statuses is not None else None
        return _newest_first(self._select(lambda r: wanted is None or r.status in wanted))

    def get_completed_requests(self) -> list[ReportRequest]:
        return self.get_requests(TERMINAL_STATUSES)

    def get_queued_requests(self) -> list[ReportRequest]:
        return sorted(self._select(lambda r: r.status == RequestStatus.QUEUED), key=queue_sort_key)

    def get_saved_requests(self) -> list[ReportRequest]:
        return _newest_first(self._select(lambda r: r.saved))

    def get_in_progress_requests(self) -> list[ReportRequest]:
        return self.get_requests([RequestStatus.PROCESSING])

    def get_last_requests_by_definition(self) -> dict[str, ReportRequest]:
        latest: dict[str, ReportRequest] = {}
        for request in reversed(self.get_requests()):
            definition_uuid = request.definition_uuid
            if definition_uuid is not None:
                latest[definition_uuid] = request
        return latest

    def get_expired_requests(self, cutoff: datetime) -> list[ReportRequest]:
        return _newest_first(
            self._select(
                lambda r: r.status in TERMINAL_STATUSES
                and not r.saved
                and r.requested_on is not None
                and r.requested_on < cutoff
            )
        )

    def __len__(self) -> int:
        with self._lock:
            return len(self._requests)


class InMemoryDesignStore:
    """Report designs held in process memory."""

    def __init__(self) -> None:
        self._designs: dict[str, ReportDesign] = {}
        self._next_id = 1
        self._lock = threading.Lock()

    def save_design(self, design: ReportDesign) -> ReportDesign:
        with self._lock:
            stored = design.model_copy(deep=True)
            existing = self._designs.get(stored.uuid)
            if existing is not None:
                stored.id = existing.id
            elif stored.id is None:
                stored.id = self._next_id
                self._next_id += 1
            else:
                self._next_id = max(self._next_id, stored.id + 1)
            self._designs[stored.uuid] = stored
            return stored.model_copy(deep=True)

    def get_design_by_uuid(self, uuid: str) -> ReportDesign | None:
        with self._lock:
            design = self._designs.get(uuid)
            return design.model_copy(deep=True) if design is not None else None

    def get_design(self, design_id: int) -> ReportDesign | None:
        with self._lock:
            for design in self._designs.values():
                if design.id == design_id:
                    return design.model_copy(deep=True)
        return None

    def get_designs(
        self,
        report_definition_uuid: str | None = None,
        renderer_type: str | None = None,
        include_retired: bool = False,
    ) -> list[ReportDesign]:
        with self._lock:
            matches = [
                d.model_copy(deep=True)
                for d in self._designs.values()
                if (report_definition_uuid is None or d.report_definition_uuid == report_definition_uuid)
                and (renderer_type is None or d.renderer_type == renderer_type)
                and (include_retired or not d.retired)
            ]
        return sorted(matches, key=lambda d: d.id or 0)

    def purge_design(self, uuid: str) -> bool:
        with self._lock:
            return self._designs.pop(uuid, None) is not None
