"""Data-only renderer backing the interactive browser view."""

from __future__ import annotations

from reporting_engine.errors import RenderError
from reporting_engine.models.report import RenderedArtifact, ReportData
from reporting_engine.renderers.base import BaseReportRenderer


class WebReportRenderer(BaseReportRenderer):
    """Exposes evaluated data to a web page instead of producing a file.

    Requests using this renderer are evaluated but never rendered.
    """

    renderer_type = "web"
    label = "Web"
    data_only = True
    sort_weight = 0

    def render(self, data: ReportData, argument: str) -> RenderedArtifact:
        raise RenderError("The web renderer displays raw data and does not produce artifacts.")
