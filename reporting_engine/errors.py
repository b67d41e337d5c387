"""Exception taxonomy for the reporting engine.

Evaluation and rendering failures raised by collaborators are captured into
a failed :class:`~reporting_engine.models.report.Report` on the asynchronous
path.  Only the synchronous ``run_report`` path lets :class:`EvaluationError`
reach its caller.
"""

from __future__ import annotations


class ReportingError(Exception):
    """Base exception for all reporting engine errors."""


class EvaluationError(ReportingError):
    """A report definition could not be evaluated.

    Raised by definition evaluators for data problems, query failures or
    missing dependencies.
    """

    def __init__(self, message: str, *, request_uuid: str | None = None) -> None:
        super().__init__(message)
        self.request_uuid = request_uuid


class RenderError(ReportingError):
    """Artifact generation failed after a successful evaluation."""


class NotFoundError(ReportingError):
    """A lookup by identifier found nothing."""


class CapacityRejectedError(ReportingError):
    """Admission was refused for capacity reasons.

    The pending queue is unbounded, so queuing never raises this; it exists
    for collaborators that impose their own limits.
    """


class InvalidStateError(ReportingError):
    """An operation is not valid for the current lifecycle state."""


class InvalidRequestError(ReportingError, ValueError):
    """A request violates the execution contract.

    Examples are a missing report definition or a rendering mode naming a
    renderer that is not registered.
    """


class ConfigurationError(ReportingError):
    """Scheduler configuration is unusable."""
