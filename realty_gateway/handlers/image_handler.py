"""Public image delivery for published property listings."""
from __future__ import annotations

import logging
from typing import BinaryIO, Iterator
from urllib.parse import quote

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response, StreamingResponse

from realty_gateway.config import Settings, get_settings
from realty_gateway.dependencies import get_blob_store, get_crm_db, get_thumbnail_service
from realty_gateway.models import Attachment, RealEstateProperty
from realty_gateway.services.storage import BlobStore
from realty_gateway.services.thumbnails import InvalidSizeError, SourceNotFoundError, ThumbnailService

router = APIRouter()
logger = logging.getLogger(__name__)

CACHE_CONTROL = "public, max-age=31536000, immutable"
PRIMARY_IMAGE_FIELD = "cPrimaryImage"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def resolve_property(crm_db, attachment: Attachment, settings: Settings) -> RealEstateProperty | None:
    if attachment.parent_type == settings.property_entity_type and attachment.parent_id:
        # attachment-multiple fields point at the property directly
        return crm_db.get_property(attachment.parent_id)
    if attachment.field == PRIMARY_IMAGE_FIELD:
        return crm_db.find_property_by_primary_image(attachment.id)
    return None


def check_public_access(crm_db, attachment: Attachment, settings: Settings) -> None:
    if attachment.field not in settings.public_image_fields:
        raise HTTPException(status_code=403, detail="Access denied.")

    prop = resolve_property(crm_db, attachment, settings)
    if prop is None:
        raise HTTPException(status_code=403, detail="Parent entity not found.")

    if prop.status != settings.published_status:
        raise HTTPException(status_code=403, detail="Property not published.")


def content_disposition(file_name: str) -> str:
    safe_name = file_name.replace("\\", "\\\\").replace('"', '\\"')
    try:
        safe_name.encode("ascii")
    except UnicodeEncodeError:
        # Header values must be latin-1; send an ASCII fallback plus the RFC 5987 form
        fallback = safe_name.encode("ascii", "replace").decode("ascii")
        return f"inline; filename=\"{fallback}\"; filename*=UTF-8''{quote(file_name)}"
    return f'inline; filename="{safe_name}"'


def _headers(content_type: str, file_name: str, length: int) -> dict[str, str]:
    return {
        "Content-Type": content_type,
        "Content-Length": str(length),
        "Content-Disposition": content_disposition(file_name),
        "Cache-Control": CACHE_CONTROL,
    }


def _iter_file(fh: BinaryIO, chunk_size: int = 64 * 1024) -> Iterator[bytes]:
    with fh:
        while chunk := fh.read(chunk_size):
            yield chunk


# ---------------------------------------------------------------------------
# GET image
# ---------------------------------------------------------------------------


# Sync route: FastAPI runs it in the threadpool, so decoding never blocks the loop
@router.get("/api/v1/RealEstate/image/{attachment_id}")
def get_public_image(
    attachment_id: str,
    size: str | None = Query(None, description="Size class name, e.g. small or large"),
    settings: Settings = Depends(get_settings),
    crm_db=Depends(get_crm_db),
    originals: BlobStore = Depends(get_blob_store),
    thumbnails: ThumbnailService = Depends(get_thumbnail_service),
):
    attachment = crm_db.get_attachment(attachment_id)
    if attachment is None:
        raise HTTPException(status_code=404, detail="Image not found.")

    check_public_access(crm_db, attachment, settings)

    source_id = attachment.storage_id
    if not originals.exists(source_id):
        raise HTTPException(status_code=404, detail="File not found.")

    file_type = attachment.type or "application/octet-stream"
    file_name = attachment.name or "image"

    if size and thumbnails.is_resizable(file_type):
        try:
            thumb = thumbnails.get_thumbnail(source_id, file_type, size)
        except InvalidSizeError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except SourceNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc

        if thumb is not None:
            return Response(
                content=thumb.content,
                headers=_headers(thumb.content_type, f"{size}-{file_name}", len(thumb.content)),
            )
        logger.info("Serving original for %s: thumbnail unavailable (size=%s)", attachment_id, size)

    length = originals.size(source_id)
    return StreamingResponse(
        _iter_file(originals.open(source_id)),
        media_type=file_type,
        headers=_headers(file_type, file_name, length),
    )
