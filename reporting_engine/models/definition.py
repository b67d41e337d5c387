"""Reference model for externally authored report definitions."""

from __future__ import annotations

import uuid
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ReportDefinition(BaseModel):
    """The parts of a report definition the scheduler needs to know about.

    Definitions are authored and stored elsewhere; the engine only carries
    enough of them to hand to the evaluator and to let renderers decide
    whether they can handle the definition's output.
    """

    model_config = ConfigDict(frozen=True)

    uuid: str = Field(
        default_factory=lambda: str(uuid.uuid4()),
        min_length=1,
        description="Stable identifier of the definition.",
    )
    name: str = Field(..., min_length=1, description="Human readable name.")
    description: str | None = Field(default=None)
    output_type: str = Field(
        default="tabular",
        min_length=1,
        description="Kind of data the definition evaluates to.",
    )
    parameters: dict[str, Any] = Field(
        default_factory=dict,
        description="Declared parameter names mapped to their default values.",
    )
