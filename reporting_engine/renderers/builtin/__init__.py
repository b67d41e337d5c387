"""Reference renderers shipped with the engine."""

from reporting_engine.renderers.builtin.csv_renderer import CsvReportRenderer
from reporting_engine.renderers.builtin.json_renderer import JsonReportRenderer
from reporting_engine.renderers.builtin.web import WebReportRenderer
from reporting_engine.renderers.registry import RendererRegistry


def create_default_registry() -> RendererRegistry:
    """Create a registry holding the web, CSV and JSON renderers."""
    return RendererRegistry([WebReportRenderer(), CsvReportRenderer(), JsonReportRenderer()])


__all__ = [
    "CsvReportRenderer",
    "JsonReportRenderer",
    "WebReportRenderer",
    "create_default_registry",
]
