"""Domain models for report requests, results and designs."""

from reporting_engine.models.definition import ReportDefinition
from reporting_engine.models.design import ReportDesign, ReportDesignResource
from reporting_engine.models.report import ErrorDetail, ErrorStage, RenderedArtifact, Report, ReportData
from reporting_engine.models.request import (
    Priority,
    RenderingModeRef,
    ReportRequest,
    RequestStatus,
    queue_sort_key,
)

__all__ = [
    "ErrorDetail",
    "ErrorStage",
    "Priority",
    "RenderedArtifact",
    "RenderingModeRef",
    "Report",
    "ReportData",
    "ReportDefinition",
    "ReportDesign",
    "ReportDesignResource",
    "ReportRequest",
    "RequestStatus",
    "queue_sort_key",
]
