"""Persistence contracts for report history and report designs.

The scheduler only talks to these protocols.  Every read returns copies
that stay valid regardless of later writes, and every write stores a copy of
the object passed in.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from typing import Protocol

from reporting_engine.models.design import ReportDesign
from reporting_engine.models.report import Report
from reporting_engine.models.request import ReportRequest, RequestStatus

TERMINAL_STATUSES: tuple[RequestStatus, ...] = (RequestStatus.COMPLETED, RequestStatus.FAILED)


class ReportHistoryStore(Protocol):
    """Durable record of report requests and their results."""

    def save_request(self, request: ReportRequest) -> None:
        """Insert or update a request keyed by its uuid."""
        ...

    def get_request(self, uuid: str) -> ReportRequest | None:
        ...

    def save_report(self, report: Report) -> None:
        """Store the result of a request, replacing any previous result."""
        ...

    def get_report(self, uuid: str) -> Report | None:
        ...

    def delete(self, uuid: str) -> bool:
        """Remove a request together with its report and artifact.

        Returns ``True`` if anything was removed.
        """
        ...

    def get_requests(self, statuses: Sequence[RequestStatus] | None = None) -> list[ReportRequest]:
        """Return requests, optionally filtered by status, newest first."""
        ...

    def get_completed_requests(self) -> list[ReportRequest]:
        """Terminal (COMPLETED or FAILED) requests, newest first."""
        ...

    def get_queued_requests(self) -> list[ReportRequest]:
        """QUEUED requests in dequeue order."""
        ...

    def get_saved_requests(self) -> list[ReportRequest]:
        ...

    def get_in_progress_requests(self) -> list[ReportRequest]:
        ...

    def get_last_requests_by_definition(self) -> dict[str, ReportRequest]:
        """Map each definition uuid to its most recently requested request."""
        ...

    def get_expired_requests(self, cutoff: datetime) -> list[ReportRequest]:
        """Terminal, unsaved requests requested strictly before *cutoff*."""
        ...


class ReportDesignStore(Protocol):
    """Administrative storage for report designs."""

    def save_design(self, design: ReportDesign) -> ReportDesign:
        """Insert or update a design; the returned copy carries its ``id``."""
        ...

    def get_design_by_uuid(self, uuid: str) -> ReportDesign | None:
        ...

    def get_design(self, design_id: int) -> ReportDesign | None:
        ...

    def get_designs(
        self,
        report_definition_uuid: str | None = None,
        renderer_type: str | None = None,
        include_retired: bool = False,
    ) -> list[ReportDesign]:
        """Return designs matching every criterion that is not ``None``."""
        ...

    def purge_design(self, uuid: str) -> bool:
        ...
