"""Comma separated values renderer."""

from __future__ import annotations

import csv
import io
import logging

from reporting_engine.errors import RenderError
from reporting_engine.models.report import RenderedArtifact, ReportData
from reporting_engine.renderers.base import BaseReportRenderer

logger = logging.getLogger(__name__)


class CsvReportRenderer(BaseReportRenderer):
    """Render one data set as CSV.

    The rendering argument names the data set; an empty argument selects
    the first data set.  Columns follow the key order of the first row,
    with keys first seen in later rows appended.
    """

    renderer_type = "csv"
    label = "CSV"
    sort_weight = 10

    def render(self, data: ReportData, argument: str) -> RenderedArtifact:
        if not data.data_sets:
            raise RenderError(f"Report {data.definition_uuid} has no data sets to render.")

        name = argument or next(iter(data.data_sets))
        if name not in data.data_sets:
            raise RenderError(f"Data set {name!r} not found; available: {sorted(data.data_sets)}.")
        rows = data.data_sets[name]

        columns: list[str] = []
        for row in rows:
            for key in row:
                if key not in columns:
                    columns.append(key)

        buffer = io.StringIO()
        writer = csv.DictWriter(buffer, fieldnames=columns, lineterminator="\n")
        writer.writeheader()
        for row in rows:
            writer.writerow(row)

        logger.debug("Rendered %d rows of data set %s as CSV", len(rows), name)
        return RenderedArtifact(
            content=buffer.getvalue().encode("utf-8"),
            media_type="text/csv",
            filename=f"{name}.csv",
        )
