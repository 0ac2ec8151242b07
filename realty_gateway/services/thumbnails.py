"""On-the-fly thumbnail generation for stored images.

A thumbnail is identified by ``(source_id, size_name)`` and cached under
``{namespace}/{source_id}_{size_name}``. Cached entries are never
re-derived: a replaced original must get a new source id.

Thumbnailing is best effort. Whenever the service returns ``None`` the
caller is expected to serve the original file unchanged.
"""
from __future__ import annotations

import io
import logging
from typing import Mapping, Sequence, Tuple

from PIL import Image, UnidentifiedImageError

from realty_gateway.config import DEFAULT_IMAGE_SIZES, DEFAULT_RESIZABLE_FILE_TYPES, Settings
from realty_gateway.models import SizeClass, ThumbnailResult
from realty_gateway.services.storage import BlobStore
from realty_gateway.services.thumbnail_cache import ThumbnailCache, thumbnail_cache_key

logger = logging.getLogger(__name__)

JPEG_QUALITY = 90
GIF_TRANSPARENT_INDEX = 255

# Pillow format names for every MIME type we know how to decode and re-encode
_PIL_FORMATS: dict[str, str] = {
    "image/jpeg": "JPEG",
    "image/png": "PNG",
    "image/gif": "GIF",
    "image/webp": "WEBP",
}

# Formats rendered onto a transparent canvas instead of an opaque one
_ALPHA_FORMATS = {"PNG", "GIF", "WEBP"}


class ThumbnailError(Exception):
    """Base class for thumbnail errors surfaced to the caller."""


class InvalidSizeError(ThumbnailError, ValueError):
    """Raised when a size name is not in the configured size table."""

    def __init__(self, size_name: str, available: Sequence[str]):
        self.size_name = size_name
        self.available = list(available)
        super().__init__(f"Invalid size: {size_name}. Available: {', '.join(self.available)}")


class SourceNotFoundError(ThumbnailError):
    """Raised when the original file is missing from storage."""

    def __init__(self, source_id: str):
        self.source_id = source_id
        super().__init__("File not found on disk.")


def compute_target_size(orig_width: int, orig_height: int, max_width: int, max_height: int) -> Tuple[int, int]:
    """Fit ``orig_width x orig_height`` into ``max_width x max_height``.

    Never upscales. The longer original side drives the scale factor; if the
    other side still overflows its bound, that side drives instead. Results
    are truncated, so either may come out as 0 for extreme aspect ratios.
    """

    if orig_width <= max_width and orig_height <= max_height:
        return orig_width, orig_height

    if orig_width > orig_height:
        width = max_width
        height = int(orig_height / (orig_width / max_width))
        if height > max_height:
            height = max_height
            width = int(orig_width / (orig_height / max_height))
    else:
        height = max_height
        width = int(orig_width / (orig_height / max_height))
        if width > max_width:
            width = max_width
            height = int(orig_height / (orig_width / max_width))

    return width, height


def _save_gif(canvas: Image.Image, buffer: io.BytesIO) -> None:
    # GIF has one-bit transparency: 255 colours plus a reserved transparent index
    paletted = canvas.convert("RGB").quantize(colors=GIF_TRANSPARENT_INDEX)
    mask = canvas.getchannel("A").point(lambda alpha: 255 if alpha < 128 else 0)
    paletted.paste(GIF_TRANSPARENT_INDEX, mask=mask)
    paletted.save(buffer, format="GIF", transparency=GIF_TRANSPARENT_INDEX)


def _render(image: Image.Image, pil_format: str, size: Tuple[int, int]) -> bytes:
    buffer = io.BytesIO()
    if pil_format in _ALPHA_FORMATS:
        resized = image.convert("RGBA").resize(size, Image.Resampling.LANCZOS)
        # Start fully transparent and copy pixels (alpha included) over it
        canvas = Image.new("RGBA", size, (255, 255, 255, 0))
        canvas.paste(resized, (0, 0))
        if pil_format == "GIF":
            _save_gif(canvas, buffer)
        else:
            canvas.save(buffer, format=pil_format)
    else:
        resized = image.convert("RGB").resize(size, Image.Resampling.LANCZOS)
        resized.save(buffer, format=pil_format, quality=JPEG_QUALITY)
    return buffer.getvalue()


class ThumbnailService:
    """Resize stored originals to named size classes, caching the result."""

    def __init__(
        self,
        originals: BlobStore,
        cache: ThumbnailCache,
        *,
        sizes: Mapping[str, Sequence[int]] | None = None,
        resizable_types: Sequence[str] | None = None,
        namespace: str = "thumbs",
    ) -> None:
        self._originals = originals
        self._cache = cache
        self._namespace = namespace
        sizes = DEFAULT_IMAGE_SIZES if sizes is None else sizes
        self._sizes = {
            name: SizeClass(name=name, max_width=box[0], max_height=box[1]) for name, box in sizes.items()
        }
        self._resizable_types = frozenset(
            DEFAULT_RESIZABLE_FILE_TYPES if resizable_types is None else resizable_types
        )

    @classmethod
    def from_settings(cls, settings: Settings, originals: BlobStore, cache: ThumbnailCache) -> "ThumbnailService":
        return cls(
            originals,
            cache,
            sizes=settings.image_sizes,
            resizable_types=settings.resizable_file_types,
            namespace=settings.thumbs_namespace,
        )

    # ------------------------------------------------------------------
    # Public helpers
    # ------------------------------------------------------------------

    @property
    def size_names(self) -> list[str]:
        return list(self._sizes)

    def size_class(self, size_name: str) -> SizeClass:
        try:
            return self._sizes[size_name]
        except KeyError:
            raise InvalidSizeError(size_name, self.size_names) from None

    def is_resizable(self, mime_type: str | None) -> bool:
        return mime_type in self._resizable_types

    def cache_key(self, source_id: str, size_name: str) -> str:
        return thumbnail_cache_key(self._namespace, source_id, size_name)

    def get_thumbnail(self, source_id: str, mime_type: str, size_name: str) -> ThumbnailResult | None:
        """Return the thumbnail of ``source_id`` for ``size_name``.

        Returns ``None`` when the image cannot be thumbnailed (unsupported
        type, undecodable data, degenerate target size).

        Raises
        ------
        InvalidSizeError
            ``size_name`` is not a configured size class.
        SourceNotFoundError
            Nothing is cached and the original is missing from storage.
        """

        size_class = self.size_class(size_name)
        pil_format = _PIL_FORMATS.get(mime_type)
        if not self.is_resizable(mime_type) or pil_format is None:
            logger.debug("Not resizing %s: unsupported type %s", source_id, mime_type)
            return None

        key = self.cache_key(source_id, size_name)
        cached = self._cache.get(key)
        if cached is not None:
            return ThumbnailResult(content=cached, content_type=mime_type, cache_hit=True)

        if not self._originals.exists(source_id):
            raise SourceNotFoundError(source_id)

        with self._originals.open(source_id) as fh:
            original = fh.read()

        content = self._create_thumbnail(source_id, original, pil_format, size_class)
        if content is None:
            return None

        if not self._cache.put(key, content):
            logger.warning("Thumbnail %s was generated but not cached", key)
        else:
            logger.info("Generated thumbnail %s (%d bytes)", key, len(content))

        return ThumbnailResult(content=content, content_type=mime_type)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _create_thumbnail(
        self, source_id: str, original: bytes, pil_format: str, size_class: SizeClass
    ) -> bytes | None:
        try:
            with Image.open(io.BytesIO(original), formats=[pil_format]) as img:
                img.load()
                target = compute_target_size(img.width, img.height, size_class.max_width, size_class.max_height)
                if target[0] < 1 or target[1] < 1:
                    logger.info(
                        "Degenerate thumbnail size %sx%s for %s (%s)", target[0], target[1], source_id, size_class.name
                    )
                    return None
                return _render(img, pil_format, target)
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as exc:
            logger.warning("Cannot decode image %s as %s: %s", source_id, pil_format, exc)
            return None
