"""JSON renderer that serialises the complete evaluated data."""

from __future__ import annotations

from reporting_engine.models.report import RenderedArtifact, ReportData
from reporting_engine.renderers.base import BaseReportRenderer


class JsonReportRenderer(BaseReportRenderer):
    renderer_type = "json"
    label = "JSON"
    sort_weight = 20

    def render(self, data: ReportData, argument: str) -> RenderedArtifact:
        indent = int(argument) if argument.isdigit() else None
        return RenderedArtifact(
            content=data.model_dump_json(indent=indent).encode("utf-8"),
            media_type="application/json",
            filename=f"{data.definition_uuid}.json",
        )
