from __future__ import annotations

from pydantic import BaseModel, Field


class SizeClass(BaseModel):
    """Named bounding box a thumbnail must fit into."""

    name: str
    max_width: int = Field(..., ge=1)
    max_height: int = Field(..., ge=1)


class ThumbnailResult(BaseModel):
    content: bytes
    content_type: str
    cache_hit: bool = False
