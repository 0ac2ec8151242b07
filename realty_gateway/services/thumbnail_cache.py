"""Key-value caches for generated thumbnails.

Reads are authoritative: once a key holds bytes they are served as-is.
Writes are best effort: ``put`` reports failure by returning ``False``
and never raises for storage errors, since the caller already holds the
bytes it tried to store.
"""
from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Protocol, runtime_checkable

from google.api_core import exceptions as gcs_exceptions
from google.cloud import storage

logger = logging.getLogger(__name__)


@runtime_checkable
class ThumbnailCache(Protocol):
    def get(self, key: str) -> bytes | None:
        ...

    def put(self, key: str, data: bytes) -> bool:
        ...


def thumbnail_cache_key(namespace: str, source_id: str, size_name: str) -> str:
    """Return the cache key ``<namespace>/<source_id>_<size_name>``."""

    return f"{namespace}/{source_id}_{size_name}"


class FileThumbnailCache:
    """Thumbnails stored as files, the key being a path relative to ``root``."""

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root)

    def _key_to_path(self, key: str) -> Path:
        parts = Path(key).parts
        if not parts or Path(key).is_absolute() or ".." in parts:
            raise ValueError("Invalid cache key: %r" % key)
        return self._root.joinpath(*parts)

    def get(self, key: str) -> bytes | None:
        path = self._key_to_path(key)
        if path.is_file():
            return path.read_bytes()
        return None

    def put(self, key: str, data: bytes) -> bool:
        path = self._key_to_path(key)
        tmp_name = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            # Write then rename so concurrent readers never see a partial file
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.")
            with os.fdopen(fd, "wb") as fh:
                fh.write(data)
            os.replace(tmp_name, path)
            tmp_name = None
        except OSError as exc:
            logger.warning("Failed to write thumbnail cache entry %s: %s", key, exc)
            return False
        finally:
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    pass
        return True


class GcsThumbnailCache:
    """Thumbnails stored as objects in a Google Cloud Storage bucket."""

    def __init__(self, bucket_name: str, *, client: storage.Client | None = None) -> None:
        self._client = client or storage.Client()
        self._bucket = self._client.bucket(bucket_name)

    def get(self, key: str) -> bytes | None:
        try:
            return self._bucket.blob(key).download_as_bytes()
        except gcs_exceptions.NotFound:
            return None

    def put(self, key: str, data: bytes) -> bool:
        try:
            self._bucket.blob(key).upload_from_string(data)
        except Exception as exc:  # pylint: disable=broad-except
            logger.warning("Failed to write thumbnail cache entry %s: %s", key, exc)
            return False
        return True
