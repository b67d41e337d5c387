"""Unit tests for reporting_engine.renderers.registry."""

from __future__ import annotations

from typing import ClassVar

import pytest

from reporting_engine.errors import InvalidRequestError
from reporting_engine.models.definition import ReportDefinition
from reporting_engine.models.report import RenderedArtifact, ReportData
from reporting_engine.models.request import RenderingModeRef
from reporting_engine.renderers.base import BaseReportRenderer, RenderingMode
from reporting_engine.renderers.builtin import create_default_registry
from reporting_engine.renderers.registry import RendererRegistry


class CohortDefinition(ReportDefinition):
    """Specialised definition used to exercise type matching."""


class _StubRenderer(BaseReportRenderer):
    def render(self, data: ReportData, argument: str) -> RenderedArtifact:
        return RenderedArtifact(content=b"stub", media_type="text/plain")


class GenericRenderer(_StubRenderer):
    renderer_type = "generic"
    label = "Generic"
    sort_weight = 5


class CohortRenderer(_StubRenderer):
    renderer_type = "cohort"
    label = "Cohort"
    supported_types: ClassVar[tuple[type, ...]] = (CohortDefinition,)
    supported_output_types = frozenset({"cohort"})


class PreferredGenericRenderer(_StubRenderer):
    renderer_type = "preferred"
    label = "Preferred"
    order = -1
    sort_weight = 5


class MultiModeRenderer(_StubRenderer):
    renderer_type = "multi"
    label = "Multi"

    def get_rendering_modes(self, definition: ReportDefinition) -> list[RenderingMode]:
        return [
            RenderingMode(renderer=self, label="Zeta", argument="z", sort_weight=1),
            RenderingMode(renderer=self, label="Alpha", argument="a", sort_weight=1),
        ]


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


class TestRegistration:
    def test_register_and_lookup(self) -> None:
        registry = RendererRegistry()
        renderer = GenericRenderer()
        registry.register(renderer)
        assert registry.get_report_renderer("generic") is renderer
        assert "generic" in registry
        assert len(registry) == 1

    def test_duplicate_rejected(self) -> None:
        registry = RendererRegistry([GenericRenderer()])
        with pytest.raises(ValueError, match="already registered"):
            registry.register(GenericRenderer())

    def test_unregister(self) -> None:
        registry = RendererRegistry([GenericRenderer()])
        registry.unregister("generic")
        assert registry.get_report_renderer("generic") is None

    def test_unregister_unknown(self) -> None:
        with pytest.raises(KeyError):
            RendererRegistry().unregister("missing")

    def test_registration_order_preserved(self) -> None:
        registry = create_default_registry()
        assert [r.renderer_type for r in registry.get_report_renderers()] == ["web", "csv", "json"]


# ---------------------------------------------------------------------------
# Preferred renderer
# ---------------------------------------------------------------------------


class TestPreferredRenderer:
    def test_most_specific_match_wins(self) -> None:
        registry = RendererRegistry([GenericRenderer(), CohortRenderer()])
        assert registry.get_preferred_report_renderer(CohortDefinition).renderer_type == "cohort"
        assert registry.get_preferred_report_renderer(ReportDefinition).renderer_type == "generic"

    def test_ties_broken_by_registration_order(self) -> None:
        registry = create_default_registry()
        assert registry.get_preferred_report_renderer(ReportDefinition).renderer_type == "web"

    def test_ties_broken_by_order_first(self) -> None:
        registry = RendererRegistry([GenericRenderer(), PreferredGenericRenderer()])
        assert registry.get_preferred_report_renderer(ReportDefinition).renderer_type == "preferred"

    def test_no_match(self) -> None:
        registry = RendererRegistry([CohortRenderer()])
        assert registry.get_preferred_report_renderer(ReportDefinition) is None
        assert registry.get_preferred_report_renderer(int) is None


# ---------------------------------------------------------------------------
# Rendering modes
# ---------------------------------------------------------------------------


class TestRenderingModes:
    def test_default_modes_sorted_by_weight(self) -> None:
        registry = create_default_registry()
        definition = ReportDefinition(name="Visits")
        modes = registry.get_rendering_modes(definition)
        assert [m.ref.descriptor for m in modes] == ["web!", "csv!", "json!"]

    def test_incapable_renderers_skipped(self) -> None:
        registry = RendererRegistry([CohortRenderer(), GenericRenderer()])
        modes = registry.get_rendering_modes(ReportDefinition(name="Visits"))
        assert [m.renderer.renderer_type for m in modes] == ["generic"]

    def test_ties_broken_by_registration_then_label(self) -> None:
        registry = RendererRegistry([MultiModeRenderer(), GenericRenderer(), PreferredGenericRenderer()])
        modes = registry.get_rendering_modes(ReportDefinition(name="Visits"))
        assert [m.label for m in modes] == ["Alpha", "Zeta", "Generic", "Preferred"]

    def test_stable_across_calls(self) -> None:
        registry = create_default_registry()
        definition = ReportDefinition(name="Visits")
        assert registry.get_rendering_modes(definition) == registry.get_rendering_modes(definition)


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------


class TestResolve:
    def test_resolve_known(self) -> None:
        registry = create_default_registry()
        assert registry.resolve(RenderingModeRef(renderer_type="csv")).renderer_type == "csv"

    def test_resolve_unknown(self) -> None:
        with pytest.raises(InvalidRequestError):
            create_default_registry().resolve(RenderingModeRef(renderer_type="pdf"))

    def test_is_data_only(self) -> None:
        registry = create_default_registry()
        assert registry.is_data_only(RenderingModeRef(renderer_type="web"))
        assert not registry.is_data_only(RenderingModeRef(renderer_type="csv"))
        assert registry.is_data_only(None)
