"""SQL-backed implementations of the persistence contracts.

Each store takes a session factory and opens one short transaction per
call via :func:`~reporting_engine.state.database.session_scope`, so the
stores can be shared freely between scheduler worker threads.  Rows are
converted to and from the pydantic models at the boundary; callers never
see ORM instances.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload, sessionmaker

from reporting_engine.models.definition import ReportDefinition
from reporting_engine.models.design import ReportDesign, ReportDesignResource
from reporting_engine.models.report import ErrorDetail, RenderedArtifact, Report, ReportData
from reporting_engine.models.request import (
    Priority,
    RenderingModeRef,
    ReportRequest,
    RequestStatus,
)
from reporting_engine.state.base import TERMINAL_STATUSES
from reporting_engine.state.database import session_scope
from reporting_engine.state.tables import (
    ReportDesignResourceTable,
    ReportDesignTable,
    ReportRequestTable,
    ReportTable,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Row conversion
# ---------------------------------------------------------------------------


def _apply_request(row: ReportRequestTable, request: ReportRequest) -> None:
    definition = request.report_definition
    row.definition_uuid = request.definition_uuid
    row.definition_json = definition.model_dump(mode="json") if definition is not None else None
    row.parameters_json = request.model_dump(mode="json", include={"parameters"})["parameters"]
    row.rendering_mode = request.rendering_mode.descriptor if request.rendering_mode is not None else None
    row.priority = request.priority.value
    row.priority_rank = request.priority.rank
    row.status = request.status.value
    row.requested_by = request.requested_by
    row.requested_on = request.requested_on
    row.evaluate_start_datetime = request.evaluate_start_datetime
    row.evaluate_complete_datetime = request.evaluate_complete_datetime
    row.render_complete_datetime = request.render_complete_datetime
    row.saved = request.saved
    row.description = request.description


def _request_from_row(row: ReportRequestTable) -> ReportRequest:
    return ReportRequest(
        uuid=row.uuid,
        report_definition=(
            ReportDefinition.model_validate(row.definition_json) if row.definition_json is not None else None
        ),
        parameters=dict(row.parameters_json or {}),
        rendering_mode=(
            RenderingModeRef.from_descriptor(row.rendering_mode) if row.rendering_mode is not None else None
        ),
        priority=Priority(row.priority),
        status=RequestStatus(row.status),
        requested_by=row.requested_by,
        requested_on=row.requested_on,
        evaluate_start_datetime=row.evaluate_start_datetime,
        evaluate_complete_datetime=row.evaluate_complete_datetime,
        render_complete_datetime=row.render_complete_datetime,
        saved=row.saved,
        description=row.description,
    )


def _report_from_row(row: ReportTable) -> Report:
    artifact = None
    if row.artifact_content is not None and row.artifact_media_type is not None:
        artifact = RenderedArtifact(
            content=row.artifact_content,
            media_type=row.artifact_media_type,
            filename=row.artifact_filename,
        )
    return Report(
        request=ReportRequest.model_validate(row.request_json),
        data=ReportData.model_validate(row.data_json) if row.data_json is not None else None,
        artifact=artifact,
        error=ErrorDetail.model_validate(row.error_json) if row.error_json is not None else None,
    )


def _design_from_row(row: ReportDesignTable) -> ReportDesign:
    return ReportDesign(
        id=row.id,
        uuid=row.uuid,
        name=row.name,
        description=row.description,
        report_definition_uuid=row.report_definition_uuid,
        renderer_type=row.renderer_type,
        properties=dict(row.properties_json or {}),
        resources=[
            ReportDesignResource(
                name=r.name,
                extension=r.extension,
                content_type=r.content_type,
                contents=r.contents,
            )
            for r in row.resources
        ],
        retired=row.retired,
    )


# ---------------------------------------------------------------------------
# History store
# ---------------------------------------------------------------------------


class SqlHistoryStore:
    """Report history persisted through SQLAlchemy."""

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def save_request(self, request: ReportRequest) -> None:
        if request.uuid is None:
            raise ValueError("Only requests with a uuid can be stored.")
        with session_scope(self._session_factory) as session:
            self._upsert_request(session, request)

    @staticmethod
    def _upsert_request(session: Session, request: ReportRequest) -> ReportRequestTable:
        row = session.get(ReportRequestTable, request.uuid)
        if row is None:
            row = ReportRequestTable(uuid=request.uuid)
            session.add(row)
        _apply_request(row, request)
        session.flush()
        return row

    def get_request(self, uuid: str) -> ReportRequest | None:
        with session_scope(self._session_factory) as session:
            row = session.get(ReportRequestTable, uuid)
            return _request_from_row(row) if row is not None else None

    def save_report(self, report: Report) -> None:
        if report.uuid is None:
            raise ValueError("Only reports of requests with a uuid can be stored.")
        with session_scope(self._session_factory) as session:
            if session.get(ReportRequestTable, report.uuid) is None:
                self._upsert_request(session, report.request)

            row = session.get(ReportTable, report.uuid)
            if row is None:
                row = ReportTable(request_uuid=report.uuid)
                session.add(row)
            row.request_json = report.request.model_dump(mode="json")
            row.data_json = report.data.model_dump(mode="json") if report.data is not None else None
            row.error_json = report.error.model_dump(mode="json") if report.error is not None else None
            if report.artifact is not None:
                row.artifact_content = report.artifact.content
                row.artifact_media_type = report.artifact.media_type
                row.artifact_filename = report.artifact.filename
            else:
                row.artifact_content = None
                row.artifact_media_type = None
                row.artifact_filename = None

    def get_report(self, uuid: str) -> Report | None:
        with session_scope(self._session_factory) as session:
            row = session.get(ReportTable, uuid)
            return _report_from_row(row) if row is not None else None

    def delete(self, uuid: str) -> bool:
        with session_scope(self._session_factory) as session:
            request_row = session.get(ReportRequestTable, uuid)
            if request_row is not None:
                session.delete(request_row)
                logger.debug("Deleted report request %s from history", uuid)
                return True
            report_row = session.get(ReportTable, uuid)
            if report_row is not None:
                session.delete(report_row)
                return True
        return False

    def _query(self, *criteria: object, dequeue_order: bool = False) -> list[ReportRequest]:
        stmt = select(ReportRequestTable)
        for criterion in criteria:
            stmt = stmt.where(criterion)  # type: ignore[arg-type]
        if dequeue_order:
            stmt = stmt.order_by(
                ReportRequestTable.priority_rank.asc(),
                ReportRequestTable.requested_on.asc(),
                ReportRequestTable.uuid.asc(),
            )
        else:
            stmt = stmt.order_by(
                ReportRequestTable.requested_on.desc(),
                ReportRequestTable.uuid.desc(),
            )
        with session_scope(self._session_factory) as session:
            rows = session.execute(stmt).scalars().all()
            return [_request_from_row(row) for row in rows]

    def get_requests(self, statuses: Sequence[RequestStatus] | None = None) -> list[ReportRequest]:
        if statuses is None:
            return self._query()
        return self._query(ReportRequestTable.status.in_([s.value for s in statuses]))

    def get_completed_requests(self) -> list[ReportRequest]:
        return self.get_requests(TERMINAL_STATUSES)

    def get_queued_requests(self) -> list[ReportRequest]:
        return self._query(ReportRequestTable.status == RequestStatus.QUEUED.value, dequeue_order=True)

    def get_saved_requests(self) -> list[ReportRequest]:
        return self._query(ReportRequestTable.saved.is_(True))

    def get_in_progress_requests(self) -> list[ReportRequest]:
        return self.get_requests([RequestStatus.PROCESSING])

    def get_last_requests_by_definition(self) -> dict[str, ReportRequest]:
        latest: dict[str, ReportRequest] = {}
        for request in self._query(ReportRequestTable.definition_uuid.is_not(None)):
            # Rows arrive newest first; keep the first seen per definition.
            latest.setdefault(request.definition_uuid, request)  # type: ignore[arg-type]
        return latest

    def get_expired_requests(self, cutoff: datetime) -> list[ReportRequest]:
        return self._query(
            ReportRequestTable.status.in_([s.value for s in TERMINAL_STATUSES]),
            ReportRequestTable.saved.is_(False),
            ReportRequestTable.requested_on.is_not(None),
            ReportRequestTable.requested_on < cutoff,
        )


# ---------------------------------------------------------------------------
# Design store
# ---------------------------------------------------------------------------


class SqlDesignStore:
    """Report designs persisted through SQLAlchemy."""

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def save_design(self, design: ReportDesign) -> ReportDesign:
        with session_scope(self._session_factory) as session:
            row = session.execute(
                select(ReportDesignTable).where(ReportDesignTable.uuid == design.uuid)
            ).scalar_one_or_none()
            if row is None:
                row = ReportDesignTable(uuid=design.uuid)
                if design.id is not None:
                    row.id = design.id
                session.add(row)
            row.name = design.name
            row.description = design.description
            row.report_definition_uuid = design.report_definition_uuid
            row.renderer_type = design.renderer_type
            row.properties_json = dict(design.properties)
            row.retired = design.retired
            row.resources = [
                ReportDesignResourceTable(
                    name=r.name,
                    extension=r.extension,
                    content_type=r.content_type,
                    contents=r.contents,
                )
                for r in design.resources
            ]
            session.flush()
            logger.debug("Saved report design %s (id=%d)", row.uuid, row.id)
            return _design_from_row(row)

    def get_design_by_uuid(self, uuid: str) -> ReportDesign | None:
        stmt = (
            select(ReportDesignTable)
            .where(ReportDesignTable.uuid == uuid)
            .options(selectinload(ReportDesignTable.resources))
        )
        with session_scope(self._session_factory) as session:
            row = session.execute(stmt).scalar_one_or_none()
            return _design_from_row(row) if row is not None else None

    def get_design(self, design_id: int) -> ReportDesign | None:
        with session_scope(self._session_factory) as session:
            row = session.get(ReportDesignTable, design_id)
            return _design_from_row(row) if row is not None else None

    def get_designs(
        self,
        report_definition_uuid: str | None = None,
        renderer_type: str | None = None,
        include_retired: bool = False,
    ) -> list[ReportDesign]:
        stmt = select(ReportDesignTable).options(selectinload(ReportDesignTable.resources))
        if report_definition_uuid is not None:
            stmt = stmt.where(ReportDesignTable.report_definition_uuid == report_definition_uuid)
        if renderer_type is not None:
            stmt = stmt.where(ReportDesignTable.renderer_type == renderer_type)
        if not include_retired:
            stmt = stmt.where(ReportDesignTable.retired.is_(False))
        stmt = stmt.order_by(ReportDesignTable.id.asc())
        with session_scope(self._session_factory) as session:
            return [_design_from_row(row) for row in session.execute(stmt).scalars().all()]

    def purge_design(self, uuid: str) -> bool:
        with session_scope(self._session_factory) as session:
            row = session.execute(
                select(ReportDesignTable).where(ReportDesignTable.uuid == uuid)
            ).scalar_one_or_none()
            if row is None:
                return False
            session.delete(row)
            return True
