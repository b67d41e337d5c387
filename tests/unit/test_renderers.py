"""Tests for the built-in renderers."""

from __future__ import annotations

import csv
import io
import json

import pytest

from reporting_engine.errors import RenderError
from reporting_engine.models.definition import ReportDefinition
from reporting_engine.models.report import ReportData
from reporting_engine.renderers.builtin import CsvReportRenderer, JsonReportRenderer, WebReportRenderer


@pytest.fixture()
def data() -> ReportData:
    return ReportData(
        definition_uuid="d-1",
        data_sets={
            "patients": [{"id": 1, "name": "Alice"}, {"id": 2, "name": "Bob", "ward": "B"}],
            "wards": [{"ward": "B", "beds": 12}],
        },
        context={"location": "all"},
    )


class TestCsvRenderer:
    def test_first_data_set_by_default(self, data: ReportData) -> None:
        artifact = CsvReportRenderer().render(data, "")
        assert artifact.media_type == "text/csv"
        assert artifact.filename == "patients.csv"
        rows = list(csv.DictReader(io.StringIO(artifact.content.decode("utf-8"))))
        assert [r["name"] for r in rows] == ["Alice", "Bob"]

    def test_columns_are_union_in_first_seen_order(self, data: ReportData) -> None:
        artifact = CsvReportRenderer().render(data, "patients")
        header = artifact.content.decode("utf-8").splitlines()[0]
        assert header == "id,name,ward"

    def test_named_data_set(self, data: ReportData) -> None:
        artifact = CsvReportRenderer().render(data, "wards")
        assert artifact.content.decode("utf-8") == "ward,beds\nB,12\n"

    def test_unknown_data_set(self, data: ReportData) -> None:
        with pytest.raises(RenderError, match="not found"):
            CsvReportRenderer().render(data, "missing")

    def test_no_data_sets(self) -> None:
        with pytest.raises(RenderError):
            CsvReportRenderer().render(ReportData(definition_uuid="d-1"), "")


class TestJsonRenderer:
    def test_renders_whole_report_data(self, data: ReportData) -> None:
        artifact = JsonReportRenderer().render(data, "")
        payload = json.loads(artifact.content)
        assert artifact.media_type == "application/json"
        assert payload["definition_uuid"] == "d-1"
        assert set(payload["data_sets"]) == {"patients", "wards"}

    def test_indent_argument(self, data: ReportData) -> None:
        artifact = JsonReportRenderer().render(data, "2")
        assert b"\n  " in artifact.content


class TestWebRenderer:
    def test_is_data_only(self) -> None:
        assert WebReportRenderer.data_only is True

    def test_render_refused(self, data: ReportData) -> None:
        with pytest.raises(RenderError):
            WebReportRenderer().render(data, "")

    def test_offers_single_mode(self) -> None:
        renderer = WebReportRenderer()
        modes = renderer.get_rendering_modes(ReportDefinition(name="Visits"))
        assert len(modes) == 1
        assert modes[0].renderer is renderer

    def test_no_modes_for_other_output_types(self) -> None:
        definition = ReportDefinition(name="Cohort", output_type="cohort")
        assert WebReportRenderer().get_rendering_modes(definition) == []
