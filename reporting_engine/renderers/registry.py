"""Renderer registry for discovering and ranking report renderers.

Renderers are stored in a table keyed by their declared ``renderer_type``.
Resolution never relies on the renderers' class hierarchy: the preferred
renderer for a runtime type is the registration whose ``supported_types``
match that type most specifically.
"""

from __future__ import annotations

import logging
import threading

from reporting_engine.errors import InvalidRequestError
from reporting_engine.models.definition import ReportDefinition
from reporting_engine.models.request import RenderingModeRef
from reporting_engine.renderers.base import RenderingMode, ReportRenderer

logger = logging.getLogger(__name__)


def _mro_distance(object_type: type, supported: tuple[type, ...]) -> int | None:
    """Return how far up *object_type*'s MRO the closest supported type sits."""
    best: int | None = None
    for supported_type in supported:
        try:
            distance = object_type.__mro__.index(supported_type)
        except ValueError:
            continue
        if best is None or distance < best:
            best = distance
    return best


class RendererRegistry:
    """Registry of available renderers.

    Registration order is remembered and used as the final tie-breaker so
    that every query is deterministic.
    """

    def __init__(self, renderers: list[ReportRenderer] | None = None) -> None:
        self._renderers: dict[str, ReportRenderer] = {}
        self._lock = threading.Lock()
        for renderer in renderers or []:
            self.register(renderer)

    def register(self, renderer: ReportRenderer) -> None:
        """Register a renderer under its ``renderer_type``.

        Raises
        ------
        ValueError
            If a renderer with the same type name is already registered.
        """
        with self._lock:
            if renderer.renderer_type in self._renderers:
                raise ValueError(
                    f"Renderer type {renderer.renderer_type!r} is already registered. "
                    f"Unregister the existing renderer first."
                )
            self._renderers[renderer.renderer_type] = renderer
        logger.debug("Registered renderer: %s", renderer.renderer_type)

    def unregister(self, renderer_type: str) -> None:
        """Remove a renderer.

        Raises
        ------
        KeyError
            If the renderer type is not registered.
        """
        with self._lock:
            if renderer_type not in self._renderers:
                raise KeyError(f"Renderer type {renderer_type!r} is not registered.")
            del self._renderers[renderer_type]
        logger.debug("Unregistered renderer: %s", renderer_type)

    def _snapshot(self) -> list[ReportRenderer]:
        with self._lock:
            return list(self._renderers.values())

    def get_report_renderers(self) -> list[ReportRenderer]:
        """Return all registered renderers in registration order."""
        return self._snapshot()

    def get_report_renderer(self, name: str) -> ReportRenderer | None:
        """Look up a renderer by its declared type name."""
        with self._lock:
            return self._renderers.get(name)

    def get_preferred_report_renderer(self, object_type: type) -> ReportRenderer | None:
        """Return the renderer that best handles instances of *object_type*.

        The most specific match wins: a renderer supporting the type itself
        beats one supporting a base class.  Ties are broken by the renderer's
        ``order`` and then by registration order.
        """
        candidates: list[tuple[int, int, int, ReportRenderer]] = []
        for index, renderer in enumerate(self._snapshot()):
            distance = _mro_distance(object_type, tuple(renderer.supported_types))
            if distance is not None:
                candidates.append((distance, renderer.order, index, renderer))
        if not candidates:
            return None
        candidates.sort(key=lambda c: c[:3])
        return candidates[0][3]

    def get_rendering_modes(self, definition: ReportDefinition) -> list[RenderingMode]:
        """Return every mode offered for *definition*, most preferred first.

        Modes are sorted by ``sort_weight``, then by renderer registration
        order, then by label.  The result depends only on the current
        registrations and the definition.
        """
        ranked: list[tuple[int, int, str, RenderingMode]] = []
        for index, renderer in enumerate(self._snapshot()):
            for mode in renderer.get_rendering_modes(definition):
                ranked.append((mode.sort_weight, index, mode.label, mode))
        ranked.sort(key=lambda r: r[:3])
        return [r[3] for r in ranked]

    def resolve(self, ref: RenderingModeRef) -> ReportRenderer:
        """Return the renderer named by *ref*.

        Raises
        ------
        InvalidRequestError
            If no renderer with that type name is registered.
        """
        renderer = self.get_report_renderer(ref.renderer_type)
        if renderer is None:
            raise InvalidRequestError(f"No renderer registered for type {ref.renderer_type!r}.")
        return renderer

    def is_data_only(self, ref: RenderingModeRef | None) -> bool:
        """Whether *ref* only exposes raw data instead of producing an artifact."""
        if ref is None:
            return True
        return bool(self.resolve(ref).data_only)

    def __len__(self) -> int:
        with self._lock:
            return len(self._renderers)

    def __contains__(self, renderer_type: str) -> bool:
        with self._lock:
            return renderer_type in self._renderers
