"""Renderer capability contract, registry and reference renderers."""

from reporting_engine.renderers.base import BaseReportRenderer, RenderingMode, ReportRenderer
from reporting_engine.renderers.registry import RendererRegistry

__all__ = [
    "BaseReportRenderer",
    "RendererRegistry",
    "RenderingMode",
    "ReportRenderer",
]
