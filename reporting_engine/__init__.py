"""Report execution scheduling: queueing, admission, rendering and retention."""

from __future__ import annotations

from reporting_engine.config import Settings, load_settings
from reporting_engine.errors import (
    CapacityRejectedError,
    ConfigurationError,
    EvaluationError,
    InvalidRequestError,
    InvalidStateError,
    NotFoundError,
    RenderError,
    ReportingError,
)
from reporting_engine.models import (
    Priority,
    RenderingModeRef,
    Report,
    ReportData,
    ReportDefinition,
    ReportDesign,
    ReportRequest,
    RequestStatus,
)
from reporting_engine.service import ReportService, create_report_service

__version__ = "0.1.0"

__all__ = [
    "CapacityRejectedError",
    "ConfigurationError",
    "EvaluationError",
    "InvalidRequestError",
    "InvalidStateError",
    "NotFoundError",
    "Priority",
    "RenderError",
    "RenderingModeRef",
    "Report",
    "ReportData",
    "ReportDefinition",
    "ReportDesign",
    "ReportRequest",
    "ReportService",
    "ReportingError",
    "RequestStatus",
    "Settings",
    "create_report_service",
    "load_settings",
]
