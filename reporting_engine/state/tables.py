"""SQLAlchemy 2.0 ORM table definitions for the report history store.

All tables use the ``Mapped`` / ``mapped_column`` declaration style.  The
``Base`` declarative base is exported for the repository layer and for
``create_tables``.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    LargeBinary,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.types import TypeDecorator


class UTCDateTime(TypeDecorator[datetime]):
    """Timezone aware DateTime that always returns UTC-aware values.

    SQLite drops timezone information; values read back are tagged as UTC.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Any) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is not None:
            value = value.astimezone(UTC)
            if dialect.name == "sqlite":
                return value.replace(tzinfo=None)
        return value

    def process_result_value(self, value: datetime | None, dialect: Any) -> datetime | None:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value


class Base(DeclarativeBase):
    """Shared declarative base for all reporting tables."""


# ---------------------------------------------------------------------------
# Report requests
# ---------------------------------------------------------------------------


class ReportRequestTable(Base):
    """One row per submitted report request."""

    __tablename__ = "report_requests"

    uuid: Mapped[str] = mapped_column(String(64), primary_key=True)
    definition_uuid: Mapped[str | None] = mapped_column(String(64), nullable=True)
    definition_json: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    parameters_json: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    rendering_mode: Mapped[str | None] = mapped_column(String(512), nullable=True)
    priority: Mapped[str] = mapped_column(String(16), nullable=False)
    priority_rank: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    requested_by: Mapped[str | None] = mapped_column(String(256), nullable=True)
    requested_on: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    evaluate_start_datetime: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    evaluate_complete_datetime: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    render_complete_datetime: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    saved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    report: Mapped[ReportTable | None] = relationship(
        back_populates="request",
        cascade="all, delete-orphan",
        passive_deletes=True,
        uselist=False,
    )

    __table_args__ = (
        Index("ix_report_requests_status", "status"),
        Index("ix_report_requests_definition", "definition_uuid"),
        Index("ix_report_requests_requested_on", "requested_on"),
    )


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------


class ReportTable(Base):
    """Result of a finished request, including any rendered artifact."""

    __tablename__ = "reports"

    request_uuid: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("report_requests.uuid", ondelete="CASCADE"),
        primary_key=True,
    )
    request_json: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    data_json: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    error_json: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    artifact_content: Mapped[bytes | None] = mapped_column(LargeBinary, nullable=True)
    artifact_media_type: Mapped[str | None] = mapped_column(String(256), nullable=True)
    artifact_filename: Mapped[str | None] = mapped_column(String(512), nullable=True)

    request: Mapped[ReportRequestTable] = relationship(back_populates="report")


# ---------------------------------------------------------------------------
# Report designs
# ---------------------------------------------------------------------------


class ReportDesignTable(Base):
    """Binding of a report definition to a renderer type."""

    __tablename__ = "report_designs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    uuid: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(256), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    report_definition_uuid: Mapped[str] = mapped_column(String(64), nullable=False)
    renderer_type: Mapped[str] = mapped_column(String(256), nullable=False)
    properties_json: Mapped[dict[str, str]] = mapped_column(JSON, nullable=False, default=dict)
    retired: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    resources: Mapped[list[ReportDesignResourceTable]] = relationship(
        back_populates="design",
        cascade="all, delete-orphan",
        order_by="ReportDesignResourceTable.id",
    )

    __table_args__ = (
        Index("ix_report_designs_definition", "report_definition_uuid"),
        Index("ix_report_designs_renderer", "renderer_type"),
    )


class ReportDesignResourceTable(Base):
    """A file attached to a report design."""

    __tablename__ = "report_design_resources"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    design_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("report_designs.id", ondelete="CASCADE"),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(String(256), nullable=False)
    extension: Mapped[str | None] = mapped_column(String(32), nullable=True)
    content_type: Mapped[str | None] = mapped_column(String(256), nullable=True)
    contents: Mapped[bytes] = mapped_column(LargeBinary, nullable=False, default=b"")

    design: Mapped[ReportDesignTable] = relationship(back_populates="resources")
