"""FastAPI dependency providers.

Long-lived clients are created lazily and cached; tests swap them out via
``app.dependency_overrides``.
"""
from __future__ import annotations

from functools import lru_cache

from fastapi import Depends

from realty_gateway.config import Settings, get_settings
from realty_gateway.services.crm_db import CrmDB, initialise_firebase
from realty_gateway.services.lead_capture import CaptureService
from realty_gateway.services.storage import BlobStore, GcsBlobStore, LocalBlobStore
from realty_gateway.services.thumbnail_cache import FileThumbnailCache, GcsThumbnailCache, ThumbnailCache
from realty_gateway.services.thumbnails import ThumbnailService


@lru_cache()
def get_crm_db() -> CrmDB:
    initialise_firebase(get_settings())
    return CrmDB()


@lru_cache()
def get_blob_store() -> BlobStore:
    settings = get_settings()
    if settings.storage_backend == "gcs":
        return GcsBlobStore(settings.bucket_name, prefix=settings.upload_prefix)
    return LocalBlobStore(settings.upload_dir)


@lru_cache()
def get_thumbnail_cache() -> ThumbnailCache:
    settings = get_settings()
    if settings.storage_backend == "gcs":
        return GcsThumbnailCache(settings.bucket_name)
    return FileThumbnailCache(settings.thumbs_root)


def get_thumbnail_service(
    settings: Settings = Depends(get_settings),
    originals: BlobStore = Depends(get_blob_store),
    cache: ThumbnailCache = Depends(get_thumbnail_cache),
) -> ThumbnailService:
    return ThumbnailService.from_settings(settings, originals, cache)


def get_capture_service(crm_db=Depends(get_crm_db)) -> CaptureService:
    return CaptureService(crm_db)
