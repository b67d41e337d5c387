"""Report result models.

A :class:`Report` is produced by the execution engine once a request has
finished, successfully or not, and is never modified afterwards.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from reporting_engine.models.request import ReportRequest, RequestStatus


class ReportData(BaseModel):
    """Renderer independent output of evaluating a report definition."""

    model_config = ConfigDict(frozen=True)

    definition_uuid: str = Field(..., min_length=1)
    data_sets: dict[str, list[dict[str, Any]]] = Field(
        default_factory=dict,
        description="Named tabular data sets, each a list of row mappings.",
    )
    context: dict[str, Any] = Field(
        default_factory=dict,
        description="Parameter values the definition was evaluated with.",
    )
    evaluated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class RenderedArtifact(BaseModel):
    """Binary output of a renderer plus its declared media type."""

    model_config = ConfigDict(frozen=True, ser_json_bytes="base64", val_json_bytes="base64")

    content: bytes
    media_type: str = Field(..., min_length=1)
    filename: str | None = None


class ErrorStage(str, Enum):
    """Execution stage at which a report failed."""

    EVALUATION = "evaluation"
    RENDERING = "rendering"


class ErrorDetail(BaseModel):
    """Structured description of a failed evaluation or rendering."""

    model_config = ConfigDict(frozen=True)

    stage: ErrorStage
    error_type: str
    message: str
    traceback: str | None = None

    @classmethod
    def from_exception(cls, stage: ErrorStage, exc: BaseException, traceback: str | None = None) -> ErrorDetail:
        return cls(
            stage=stage,
            error_type=type(exc).__name__,
            message=str(exc),
            traceback=traceback,
        )


class Report(BaseModel):
    """The result of executing one :class:`ReportRequest`."""

    model_config = ConfigDict(frozen=True)

    request: ReportRequest = Field(..., description="Snapshot of the request at completion.")
    data: ReportData | None = Field(default=None)
    artifact: RenderedArtifact | None = Field(default=None)
    error: ErrorDetail | None = Field(default=None)

    @property
    def uuid(self) -> str | None:
        return self.request.uuid

    @property
    def succeeded(self) -> bool:
        return self.error is None and self.request.status == RequestStatus.COMPLETED
