from __future__ import annotations

from pydantic import BaseModel, Field


class Attachment(BaseModel):
    """File attached to a CRM record."""

    id: str
    name: str | None = None
    type: str | None = None  # MIME type as declared on upload
    size: int | None = Field(default=None, ge=0)
    field: str | None = None  # e.g., "images" or "cPrimaryImage"
    parent_type: str | None = None
    parent_id: str | None = None
    source_id: str | None = None  # copies share the source file of the original

    @property
    def storage_id(self) -> str:
        return self.source_id or self.id


class RealEstateProperty(BaseModel):
    id: str
    name: str | None = None
    status: str = "Draft"
    primary_image_id: str | None = None
