"""Renderer capability contract and the rendering mode value type.

Every renderer, whether it produces a downloadable file or only exposes
the raw data to a browser view, must satisfy the :class:`ReportRenderer`
protocol so that the registry and the execution engine stay agnostic of
output formats.
"""

from __future__ import annotations

import abc
from dataclasses import dataclass, field
from typing import ClassVar, Protocol

from reporting_engine.models.definition import ReportDefinition
from reporting_engine.models.report import RenderedArtifact, ReportData
from reporting_engine.models.request import RenderingModeRef


@dataclass(frozen=True)
class RenderingMode:
    """A renderer plus output argument offered for one report definition.

    Rendering modes are recomputed on every query and never persisted; a
    request stores only :attr:`ref`.
    """

    renderer: ReportRenderer = field(compare=False)
    label: str
    argument: str = ""
    sort_weight: int = 0

    @property
    def ref(self) -> RenderingModeRef:
        return RenderingModeRef(renderer_type=self.renderer.renderer_type, argument=self.argument)


class ReportRenderer(Protocol):
    """Structural interface for renderers.

    Implementations are **not** required to subclass this protocol; they only
    need to expose matching attributes and methods.
    """

    renderer_type: str
    label: str
    data_only: bool
    supported_types: tuple[type, ...]
    order: int

    def get_rendering_modes(self, definition: ReportDefinition) -> list[RenderingMode]:
        """Return the modes this renderer offers for *definition*.

        An empty list means the renderer can not handle the definition.
        """
        ...

    def render(self, data: ReportData, argument: str) -> RenderedArtifact:
        """Render evaluated data into an artifact.

        Raises
        ------
        RenderError
            If the artifact could not be produced.
        """
        ...


class BaseReportRenderer(abc.ABC):
    """Convenience base for renderers that offer a single rendering mode.

    Subclasses set the class attributes and implement :meth:`render`.
    """

    renderer_type: ClassVar[str]
    label: ClassVar[str]
    data_only: ClassVar[bool] = False
    supported_types: ClassVar[tuple[type, ...]] = (ReportDefinition,)
    supported_output_types: ClassVar[frozenset[str]] = frozenset({"tabular"})
    order: ClassVar[int] = 0
    sort_weight: ClassVar[int] = 0
    default_argument: ClassVar[str] = ""

    def can_render(self, definition: ReportDefinition) -> bool:
        return definition.output_type in self.supported_output_types

    def get_rendering_modes(self, definition: ReportDefinition) -> list[RenderingMode]:
        if not self.can_render(definition):
            return []
        return [
            RenderingMode(
                renderer=self,
                label=self.label,
                argument=self.default_argument,
                sort_weight=self.sort_weight,
            )
        ]

    @abc.abstractmethod
    def render(self, data: ReportData, argument: str) -> RenderedArtifact:
        """Render *data* using *argument*."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(renderer_type={self.renderer_type!r})"
