"""Evaluate-then-render execution of a single report request.

The engine runs entirely on the calling thread.  Ordinary evaluation and
rendering failures are captured into a FAILED :class:`Report` rather than
raised; only contract violations (no definition, unknown renderer) raise
:class:`InvalidRequestError`.
"""

from __future__ import annotations

import logging
import traceback
from collections.abc import Callable
from datetime import UTC, datetime

from reporting_engine.errors import InvalidRequestError
from reporting_engine.executor.base import DefinitionEvaluator, ProgressCallback
from reporting_engine.models.report import ErrorDetail, ErrorStage, Report, ReportData
from reporting_engine.models.request import ReportRequest, RequestStatus
from reporting_engine.renderers.base import ReportRenderer
from reporting_engine.renderers.registry import RendererRegistry

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class ReportExecutor:
    """Run the evaluation and rendering stages for one request.

    Parameters
    ----------
    evaluator:
        Produces :class:`ReportData` for a definition.
    registry:
        Resolves the request's rendering mode to a renderer.
    clock:
        Source of the stage timestamps.  Defaults to the current UTC time.
    """

    def __init__(
        self,
        evaluator: DefinitionEvaluator,
        registry: RendererRegistry,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._evaluator = evaluator
        self._registry = registry
        self._clock = clock

    @property
    def registry(self) -> RendererRegistry:
        return self._registry

    def validate(self, request: ReportRequest) -> ReportRenderer | None:
        """Check the request against the execution contract.

        Returns the renderer named by the rendering mode, or ``None`` when the
        request has no rendering mode.

        Raises
        ------
        InvalidRequestError
            If the request has no definition or names an unregistered renderer.
        """
        if request.report_definition is None:
            raise InvalidRequestError(f"Report request {request.uuid} has no report definition.")
        if request.rendering_mode is None:
            return None
        return self._registry.resolve(request.rendering_mode)

    def execute(self, request: ReportRequest, on_progress: ProgressCallback | None = None) -> Report:
        """Evaluate and, unless the mode is data-only, render *request*.

        The request is updated in place: it is moved to PROCESSING if it is
        not there yet, its stage timestamps are set and it ends COMPLETED or
        FAILED.  The returned report carries a snapshot of it.
        """
        renderer = self.validate(request)
        definition = request.report_definition
        assert definition is not None

        if request.status != RequestStatus.PROCESSING:
            request.transition_to(RequestStatus.PROCESSING)

        context = {**definition.parameters, **request.parameters}
        request.evaluate_start_datetime = self._clock()
        self._notify(request, on_progress)

        logger.info("Evaluating report request %s (definition %s)", request.uuid, definition.uuid)
        try:
            data = self._evaluator.evaluate(definition, context)
        except Exception as exc:
            logger.warning("Evaluation of report request %s failed: %s", request.uuid, exc)
            return self._fail(request, ErrorStage.EVALUATION, exc, data=None)

        request.evaluate_complete_datetime = self._clock()
        self._notify(request, on_progress)

        if renderer is None or renderer.data_only:
            request.transition_to(RequestStatus.COMPLETED)
            logger.info("Report request %s completed with data only", request.uuid)
            return Report(request=request.model_copy(deep=True), data=data)

        argument = request.rendering_mode.argument if request.rendering_mode is not None else ""
        try:
            artifact = renderer.render(data, argument)
        except Exception as exc:
            logger.warning(
                "Rendering of report request %s with %s failed: %s",
                request.uuid,
                renderer.renderer_type,
                exc,
            )
            return self._fail(request, ErrorStage.RENDERING, exc, data=data)

        request.render_complete_datetime = self._clock()
        request.transition_to(RequestStatus.COMPLETED)
        logger.info(
            "Report request %s rendered as %s (%d bytes)",
            request.uuid,
            artifact.media_type,
            len(artifact.content),
        )
        return Report(request=request.model_copy(deep=True), data=data, artifact=artifact)

    @staticmethod
    def _notify(request: ReportRequest, on_progress: ProgressCallback | None) -> None:
        if on_progress is None:
            return
        try:
            on_progress(request.model_copy(deep=True))
        except Exception:
            logger.warning("Progress callback failed for report request %s", request.uuid, exc_info=True)

    @staticmethod
    def _fail(
        request: ReportRequest,
        stage: ErrorStage,
        exc: Exception,
        data: ReportData | None,
    ) -> Report:
        request.transition_to(RequestStatus.FAILED)
        error = ErrorDetail.from_exception(stage, exc, traceback=traceback.format_exc())
        return Report(request=request.model_copy(deep=True), data=data, error=error)
