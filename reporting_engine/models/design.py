"""Report design models.

A design binds a report definition to a renderer type together with the
renderer's configuration properties and any resource files it needs (for
example a spreadsheet template).
"""

from __future__ import annotations

import uuid

from pydantic import BaseModel, ConfigDict, Field


class ReportDesignResource(BaseModel):
    """A file attached to a report design."""

    model_config = ConfigDict(ser_json_bytes="base64", val_json_bytes="base64")

    name: str = Field(..., min_length=1)
    extension: str | None = None
    content_type: str | None = None
    contents: bytes = b""


class ReportDesign(BaseModel):
    """Persisted binding of a report definition to a renderer type."""

    id: int | None = Field(default=None, description="Store assigned identifier.")
    uuid: str = Field(default_factory=lambda: str(uuid.uuid4()), min_length=1)
    name: str = Field(..., min_length=1)
    description: str | None = None
    report_definition_uuid: str = Field(..., min_length=1)
    renderer_type: str = Field(..., min_length=1)
    properties: dict[str, str] = Field(default_factory=dict)
    resources: list[ReportDesignResource] = Field(default_factory=list)
    retired: bool = False

    def get_resource(self, name: str) -> ReportDesignResource | None:
        for resource in self.resources:
            if resource.name == name:
                return resource
        return None
