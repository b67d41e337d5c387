"""Collaborator interfaces for the execution engine.

The engine never evaluates a definition itself.  Any object that
satisfies :class:`DefinitionEvaluator` can be plugged in, such as a query
layer or a stub in tests.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, Protocol

from reporting_engine.models.definition import ReportDefinition
from reporting_engine.models.report import ReportData
from reporting_engine.models.request import ReportRequest

ProgressCallback = Callable[[ReportRequest], None]
"""Invoked with a copy of the request each time a stage timestamp is set."""


class DefinitionEvaluator(Protocol):
    """Structural interface for report definition evaluators.

    Implementations are **not** required to subclass this protocol; they only
    need to expose a matching ``evaluate`` method.
    """

    def evaluate(self, definition: ReportDefinition, context: dict[str, Any]) -> ReportData:
        """Evaluate *definition* with the given parameter values.

        Parameters
        ----------
        definition:
            The definition attached to the request.
        context:
            Declared parameter defaults overlaid with the request's values.

        Returns
        -------
        ReportData
            Renderer independent data sets.

        Raises
        ------
        EvaluationError
            For data problems, query failures or missing dependencies.
        """
        ...
