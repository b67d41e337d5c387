"""Report request models and the request lifecycle.

A ``ReportRequest`` moves through

    REQUESTED -> QUEUED -> PROCESSING -> COMPLETED | FAILED

with ``REQUESTED -> PROCESSING`` used by the synchronous path.  Transitions
never go backwards except through :meth:`ReportRequest.requeue`.  The
``saved`` flag is orthogonal to the status.
"""

from __future__ import annotations

import uuid as uuid_lib
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from reporting_engine.errors import InvalidStateError
from reporting_engine.models.definition import ReportDefinition


class Priority(str, Enum):
    """Scheduling priority, ordered HIGHEST > HIGH > NORMAL > LOW."""

    HIGHEST = "HIGHEST"
    HIGH = "HIGH"
    NORMAL = "NORMAL"
    LOW = "LOW"

    @property
    def rank(self) -> int:
        """Sort rank; lower ranks are dequeued first."""
        return _PRIORITY_RANKS[self]


_PRIORITY_RANKS = {
    Priority.HIGHEST: 0,
    Priority.HIGH: 1,
    Priority.NORMAL: 2,
    Priority.LOW: 3,
}


class RequestStatus(str, Enum):
    """Lifecycle state of a report request."""

    REQUESTED = "REQUESTED"
    QUEUED = "QUEUED"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in (RequestStatus.COMPLETED, RequestStatus.FAILED)


_ALLOWED_TRANSITIONS: dict[RequestStatus, frozenset[RequestStatus]] = {
    RequestStatus.REQUESTED: frozenset({RequestStatus.QUEUED, RequestStatus.PROCESSING}),
    RequestStatus.QUEUED: frozenset({RequestStatus.PROCESSING}),
    RequestStatus.PROCESSING: frozenset({RequestStatus.COMPLETED, RequestStatus.FAILED}),
    RequestStatus.COMPLETED: frozenset(),
    RequestStatus.FAILED: frozenset(),
}

_REQUEUEABLE = frozenset({RequestStatus.PROCESSING, RequestStatus.COMPLETED, RequestStatus.FAILED})


def _utcnow() -> datetime:
    return datetime.now(UTC)


class RenderingModeRef(BaseModel):
    """Persisted reference to a rendering mode: renderer name plus argument."""

    model_config = ConfigDict(frozen=True)

    renderer_type: str = Field(..., min_length=1, description="Registry name of the renderer.")
    argument: str = Field(default="", description="Output-format argument passed to the renderer.")

    @property
    def descriptor(self) -> str:
        """Return the ``renderer_type!argument`` string form."""
        return f"{self.renderer_type}!{self.argument}"

    @classmethod
    def from_descriptor(cls, descriptor: str) -> RenderingModeRef:
        """Parse a ``renderer_type!argument`` string."""
        renderer_type, _, argument = descriptor.partition("!")
        return cls(renderer_type=renderer_type, argument=argument)


class ReportRequest(BaseModel):
    """A request to produce one report.

    The ``uuid`` is assigned when the request is first submitted and can not
    be changed afterwards.
    """

    model_config = ConfigDict(validate_assignment=True)

    uuid: str | None = Field(
        default=None,
        description="Globally unique identifier, assigned on submission.",
    )
    report_definition: ReportDefinition | None = Field(
        default=None,
        description="The definition to evaluate.",
    )
    parameters: dict[str, Any] = Field(
        default_factory=dict,
        description="Parameter values passed to the evaluator.",
    )
    rendering_mode: RenderingModeRef | None = Field(
        default=None,
        description="How to render the evaluated data; None means data only.",
    )
    priority: Priority = Field(default=Priority.NORMAL)
    status: RequestStatus = Field(default=RequestStatus.REQUESTED)
    requested_by: str | None = Field(default=None)
    requested_on: datetime | None = Field(default=None)
    evaluate_start_datetime: datetime | None = Field(default=None)
    evaluate_complete_datetime: datetime | None = Field(default=None)
    render_complete_datetime: datetime | None = Field(default=None)
    saved: bool = Field(
        default=False,
        description="Saved requests are never removed by the retention sweep.",
    )
    description: str | None = Field(default=None, description="Optional user supplied label.")

    @field_validator(
        "requested_on",
        "evaluate_start_datetime",
        "evaluate_complete_datetime",
        "render_complete_datetime",
    )
    @classmethod
    def _coerce_utc(cls, value: datetime | None) -> datetime | None:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value

    def __setattr__(self, name: str, value: Any) -> None:
        if name == "uuid":
            current = self.__dict__.get("uuid")
            if current is not None and value != current:
                raise InvalidStateError(f"Request uuid is immutable once set (current {current}, got {value}).")
        super().__setattr__(name, value)

    def ensure_uuid(self) -> str:
        """Assign a fresh uuid if none is set and return it."""
        if self.uuid is None:
            self.uuid = str(uuid_lib.uuid4())
        return self.uuid

    def ensure_requested_on(self, now: datetime | None = None) -> datetime:
        if self.requested_on is None:
            self.requested_on = now or _utcnow()
        return self.requested_on

    def transition_to(self, status: RequestStatus) -> None:
        """Move to *status*, rejecting backward or skipped transitions."""
        if status not in _ALLOWED_TRANSITIONS[self.status]:
            raise InvalidStateError(
                f"Request {self.uuid} can not move from {self.status.value} to {status.value}."
            )
        self.status = status

    def requeue(self) -> None:
        """Explicitly send a processed request back to the queue.

        Clears the execution timestamps of the previous run.
        """
        if self.status not in _REQUEUEABLE:
            raise InvalidStateError(f"Request {self.uuid} in state {self.status.value} can not be re-queued.")
        self.status = RequestStatus.QUEUED
        self.evaluate_start_datetime = None
        self.evaluate_complete_datetime = None
        self.render_complete_datetime = None

    @property
    def definition_uuid(self) -> str | None:
        return self.report_definition.uuid if self.report_definition is not None else None


_EPOCH = datetime.min.replace(tzinfo=UTC)


def queue_sort_key(request: ReportRequest) -> tuple[int, datetime, str]:
    """Dequeue ordering: priority descending, then oldest request first.

    The uuid is the final tie-breaker so the order is total.  Stores only
    see persisted fields and sort with this key; the scheduler's pending
    queue breaks the same ties by submission order instead, and
    ``ReportService.get_queued_report_requests`` reports that order.
    """
    return (request.priority.rank, request.requested_on or _EPOCH, request.uuid or "")
