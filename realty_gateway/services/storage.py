"""Blob storage for original attachment files.

Originals are addressed by their *source id*. Two backends are provided:

    local:  {upload_dir}/{source_id}
    gcs:    gs://{bucket_name}/{upload_prefix}/{source_id}

Both expose the same three methods (``exists``, ``open``, ``size``) so
callers never depend on where the bytes physically live.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import BinaryIO, Protocol, runtime_checkable

from google.cloud import storage

logger = logging.getLogger(__name__)


@runtime_checkable
class BlobStore(Protocol):
    def exists(self, source_id: str) -> bool:
        ...

    def open(self, source_id: str) -> BinaryIO:
        ...

    def size(self, source_id: str) -> int:
        ...


def _check_source_id(source_id: str) -> str:
    if not source_id or "/" in source_id or "\\" in source_id or source_id in (".", ".."):
        raise ValueError("Invalid source id: %r" % source_id)
    return source_id


class LocalBlobStore:
    """Originals stored as flat files under a root directory."""

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root)

    def _path(self, source_id: str) -> Path:
        return self._root / _check_source_id(source_id)

    def exists(self, source_id: str) -> bool:
        return self._path(source_id).is_file()

    def open(self, source_id: str) -> BinaryIO:
        return self._path(source_id).open("rb")

    def size(self, source_id: str) -> int:
        return self._path(source_id).stat().st_size


class GcsBlobStore:  # pylint: disable=too-few-public-methods
    """Originals stored as objects in a Google Cloud Storage bucket."""

    def __init__(self, bucket_name: str, *, prefix: str = "upload", client: storage.Client | None = None) -> None:
        self._client = client or storage.Client()
        self._bucket = self._client.bucket(bucket_name)
        self._prefix = prefix.strip("/")
        if not self._bucket.exists():  # pragma: no cover
            logger.warning("GCS bucket '%s' does not exist or access denied.", bucket_name)

    def _blob(self, source_id: str) -> storage.Blob:
        name = _check_source_id(source_id)
        if self._prefix:
            name = f"{self._prefix}/{name}"
        return self._bucket.blob(name)

    def exists(self, source_id: str) -> bool:
        return self._blob(source_id).exists()

    def open(self, source_id: str) -> BinaryIO:
        return self._blob(source_id).open("rb")

    def size(self, source_id: str) -> int:
        blob = self._blob(source_id)
        blob.reload()
        return blob.size or 0
