"""Contract tests run against both history store implementations."""

from __future__ import annotations

from collections.abc import Iterator
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from reporting_engine.models import (
    ErrorDetail,
    ErrorStage,
    Priority,
    RenderedArtifact,
    RenderingModeRef,
    Report,
    ReportData,
    ReportDefinition,
    ReportRequest,
    RequestStatus,
)
from reporting_engine.state import (
    InMemoryHistoryStore,
    SqlHistoryStore,
    create_tables,
    get_engine,
    get_session_factory,
)

T0 = datetime(2025, 5, 15, 12, 0, tzinfo=UTC)
VISITS = ReportDefinition(uuid="def-visits", name="Visits", parameters={"location": "all"})
ADMISSIONS = ReportDefinition(uuid="def-admissions", name="Admissions")


@pytest.fixture(params=["memory", "sqlite"])
def store(request: pytest.FixtureRequest, tmp_path: Path) -> Iterator[InMemoryHistoryStore | SqlHistoryStore]:
    if request.param == "memory":
        yield InMemoryHistoryStore()
        return
    engine = get_engine(f"sqlite:///{tmp_path / 'history.db'}")
    create_tables(engine)
    yield SqlHistoryStore(get_session_factory(engine))
    engine.dispose()


def _request(
    uuid: str,
    status: RequestStatus = RequestStatus.COMPLETED,
    hours_ago: float = 0,
    priority: Priority = Priority.NORMAL,
    definition: ReportDefinition = VISITS,
    saved: bool = False,
) -> ReportRequest:
    return ReportRequest(
        uuid=uuid,
        report_definition=definition,
        parameters={"location": "ward-b", "year": 2025},
        rendering_mode=RenderingModeRef(renderer_type="csv", argument="patients"),
        priority=priority,
        status=status,
        requested_by="admin",
        requested_on=T0 - timedelta(hours=hours_ago),
        saved=saved,
    )


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class TestRequests:
    def test_save_and_get_preserves_fields(self, store) -> None:
        request = _request("r-1", saved=True)
        request.description = "Monthly visits"
        request.evaluate_start_datetime = T0
        store.save_request(request)
        assert store.get_request("r-1") == request

    def test_get_unknown(self, store) -> None:
        assert store.get_request("missing") is None

    def test_save_updates(self, store) -> None:
        request = _request("r-1", status=RequestStatus.QUEUED)
        store.save_request(request)
        request.transition_to(RequestStatus.PROCESSING)
        store.save_request(request)
        assert store.get_request("r-1").status == RequestStatus.PROCESSING
        assert len(store.get_requests()) == 1

    def test_requires_uuid(self, store) -> None:
        with pytest.raises(ValueError):
            store.save_request(ReportRequest(report_definition=VISITS))

    def test_returned_copies_are_detached(self, store) -> None:
        store.save_request(_request("r-1"))
        copy = store.get_request("r-1")
        copy.description = "changed"
        assert store.get_request("r-1").description is None

    def test_request_without_definition_or_mode(self, store) -> None:
        request = ReportRequest(uuid="r-bare", requested_on=T0)
        store.save_request(request)
        assert store.get_request("r-bare") == request


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------


class TestReports:
    def test_save_and_get_report(self, store) -> None:
        request = _request("r-1")
        store.save_request(request)
        report = Report(
            request=request,
            data=ReportData(
                definition_uuid=VISITS.uuid,
                data_sets={"patients": [{"id": 1}]},
                evaluated_at=T0,
            ),
            artifact=RenderedArtifact(content=b"id\n1\n", media_type="text/csv", filename="patients.csv"),
        )
        store.save_report(report)
        assert store.get_report("r-1") == report

    def test_failed_report(self, store) -> None:
        request = _request("r-1", status=RequestStatus.FAILED)
        error = ErrorDetail(stage=ErrorStage.RENDERING, error_type="RenderError", message="bad")
        store.save_report(Report(request=request, error=error))
        stored = store.get_report("r-1")
        assert stored.error == error
        assert stored.artifact is None

    def test_missing_report(self, store) -> None:
        store.save_request(_request("r-1"))
        assert store.get_report("r-1") is None

    def test_delete_removes_request_and_report(self, store) -> None:
        request = _request("r-1")
        store.save_request(request)
        store.save_report(
            Report(request=request, artifact=RenderedArtifact(content=b"x", media_type="text/plain"))
        )
        assert store.delete("r-1") is True
        assert store.get_request("r-1") is None
        assert store.get_report("r-1") is None
        assert store.delete("r-1") is False


# ---------------------------------------------------------------------------
# Query shapes
# ---------------------------------------------------------------------------


class TestQueries:
    @pytest.fixture()
    def populated(self, store):
        store.save_request(_request("done-old", RequestStatus.COMPLETED, hours_ago=5))
        store.save_request(_request("failed", RequestStatus.FAILED, hours_ago=3))
        store.save_request(_request("done-new", RequestStatus.COMPLETED, hours_ago=1, saved=True))
        store.save_request(_request("q-low", RequestStatus.QUEUED, hours_ago=4, priority=Priority.LOW))
        store.save_request(_request("q-high-late", RequestStatus.QUEUED, hours_ago=1, priority=Priority.HIGH))
        store.save_request(_request("q-high-early", RequestStatus.QUEUED, hours_ago=2, priority=Priority.HIGH))
        store.save_request(_request("running", RequestStatus.PROCESSING, hours_ago=0.5, definition=ADMISSIONS))
        return store

    def test_completed_newest_first(self, populated) -> None:
        assert [r.uuid for r in populated.get_completed_requests()] == ["done-new", "failed", "done-old"]

    def test_queued_in_dequeue_order(self, populated) -> None:
        assert [r.uuid for r in populated.get_queued_requests()] == ["q-high-early", "q-high-late", "q-low"]

    def test_saved(self, populated) -> None:
        assert [r.uuid for r in populated.get_saved_requests()] == ["done-new"]

    def test_in_progress(self, populated) -> None:
        assert [r.uuid for r in populated.get_in_progress_requests()] == ["running"]

    def test_filter_by_status(self, populated) -> None:
        result = populated.get_requests([RequestStatus.FAILED, RequestStatus.PROCESSING])
        assert [r.uuid for r in result] == ["running", "failed"]

    def test_last_requests_by_definition(self, populated) -> None:
        latest = populated.get_last_requests_by_definition()
        # Equal timestamps fall back to the uuid, highest first.
        assert latest[VISITS.uuid].uuid == "q-high-late"
        assert latest[VISITS.uuid].requested_on == T0 - timedelta(hours=1)
        assert latest[ADMISSIONS.uuid].uuid == "running"

    def test_expired_requests(self, populated) -> None:
        cutoff = T0 - timedelta(hours=2)
        expired = populated.get_expired_requests(cutoff)
        assert [r.uuid for r in expired] == ["failed", "done-old"]
