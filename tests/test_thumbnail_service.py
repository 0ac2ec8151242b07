"""Tests for ThumbnailService: cache flow, codecs and soft failures."""

import io

import pytest
from PIL import Image

from realty_gateway.services.thumbnails import (
    InvalidSizeError,
    SourceNotFoundError,
    ThumbnailService,
)


class FailingCache:
    """Cache whose writes always fail."""

    def __init__(self):
        self.put_calls = 0

    def get(self, key):
        return None

    def put(self, key, data):
        self.put_calls += 1
        return False


class BrokenStore:
    """Blob store that reports a file but cannot read it."""

    def exists(self, source_id):
        return True

    def open(self, source_id):
        raise PermissionError("denied")

    def size(self, source_id):
        return 0


def _dimensions(content: bytes):
    with Image.open(io.BytesIO(content)) as img:
        return img.size


@pytest.mark.parametrize(
    "mime_type, fmt, expected_format",
    [
        ("image/jpeg", "JPEG", "JPEG"),
        ("image/png", "PNG", "PNG"),
        ("image/gif", "GIF", "GIF"),
        ("image/webp", "WEBP", "WEBP"),
    ],
)
def test_resizes_every_supported_format_within_box(
    thumbnail_service, upload_dir, make_image, mime_type, fmt, expected_format
):
    (upload_dir / "src1").write_bytes(make_image(fmt, size=(1000, 500)))

    result = thumbnail_service.get_thumbnail("src1", mime_type, "medium")

    assert result is not None
    assert result.content_type == mime_type
    assert result.cache_hit is False
    with Image.open(io.BytesIO(result.content)) as img:
        assert img.format == expected_format
        assert img.size == (128, 64)


def test_never_upscales(thumbnail_service, upload_dir, make_image):
    (upload_dir / "tiny").write_bytes(make_image("PNG", size=(50, 40)))

    result = thumbnail_service.get_thumbnail("tiny", "image/png", "large")

    assert _dimensions(result.content) == (50, 40)


def test_second_request_is_served_from_cache(thumbnail_service, upload_dir, make_image, thumb_cache):
    (upload_dir / "src2").write_bytes(make_image("JPEG", size=(800, 600)))

    first = thumbnail_service.get_thumbnail("src2", "image/jpeg", "small")
    # the original is no longer needed once cached
    (upload_dir / "src2").unlink()
    second = thumbnail_service.get_thumbnail("src2", "image/jpeg", "small")

    assert second.cache_hit is True
    assert second.content == first.content
    assert thumb_cache.get("thumbs/src2_small") == first.content


def test_cache_hit_keeps_declared_type(originals, thumb_cache):
    thumb_cache.put("thumbs/abc_small", b"cached-bytes")
    service = ThumbnailService(originals, thumb_cache)

    result = service.get_thumbnail("abc", "image/webp", "small")

    assert result.content == b"cached-bytes"
    assert result.content_type == "image/webp"


def test_png_transparency_is_preserved(thumbnail_service, upload_dir):
    img = Image.new("RGBA", (400, 200), (0, 0, 0, 0))
    img.paste(Image.new("RGBA", (200, 200), (255, 0, 0, 255)), (200, 0))
    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    (upload_dir / "alpha").write_bytes(buffer.getvalue())

    result = thumbnail_service.get_thumbnail("alpha", "image/png", "medium")

    with Image.open(io.BytesIO(result.content)) as thumb:
        thumb = thumb.convert("RGBA")
        assert thumb.size == (128, 64)
        assert thumb.getpixel((10, 32))[3] == 0
        assert thumb.getpixel((118, 32)) == (255, 0, 0, 255)


def test_webp_transparency_is_preserved(thumbnail_service, upload_dir):
    img = Image.new("RGBA", (400, 200), (0, 0, 0, 0))
    img.paste(Image.new("RGBA", (200, 200), (255, 0, 0, 255)), (200, 0))
    buffer = io.BytesIO()
    img.save(buffer, format="WEBP")
    (upload_dir / "alpha_webp").write_bytes(buffer.getvalue())

    result = thumbnail_service.get_thumbnail("alpha_webp", "image/webp", "medium")

    with Image.open(io.BytesIO(result.content)) as thumb:
        assert thumb.format == "WEBP"
        thumb = thumb.convert("RGBA")
        assert thumb.size == (128, 64)
        assert thumb.getpixel((10, 32))[3] == 0
        red, green, _, alpha = thumb.getpixel((118, 32))
        assert alpha == 255
        assert red > 200 and green < 60


def test_gif_transparency_is_preserved(thumbnail_service, upload_dir):
    img = Image.new("P", (400, 200), 0)
    img.putpalette([255, 255, 255, 255, 0, 0] + [0, 0, 0] * 254)
    img.paste(1, (200, 0, 400, 200))
    buffer = io.BytesIO()
    img.save(buffer, format="GIF", transparency=0)
    (upload_dir / "alpha_gif").write_bytes(buffer.getvalue())

    result = thumbnail_service.get_thumbnail("alpha_gif", "image/gif", "medium")

    with Image.open(io.BytesIO(result.content)) as thumb:
        assert thumb.format == "GIF"
        assert "transparency" in thumb.info
        thumb = thumb.convert("RGBA")
        assert thumb.size == (128, 64)
        assert thumb.getpixel((10, 32))[3] == 0
        red, green, _, alpha = thumb.getpixel((118, 32))
        assert alpha == 255
        assert red > 200 and green < 60


def test_invalid_size_lists_available_names(thumbnail_service):
    with pytest.raises(InvalidSizeError) as exc_info:
        thumbnail_service.get_thumbnail("src", "image/png", "huge")

    assert exc_info.value.available == ["small", "medium", "large", "x-large", "xx-large"]
    assert str(exc_info.value) == "Invalid size: huge. Available: small, medium, large, x-large, xx-large"


def test_custom_size_table(originals, thumb_cache, upload_dir, make_image):
    (upload_dir / "src3").write_bytes(make_image("PNG", size=(300, 200)))
    service = ThumbnailService(originals, thumb_cache, sizes={"banner": (100, 50)})

    result = service.get_thumbnail("src3", "image/png", "banner")

    assert _dimensions(result.content) == (75, 50)
    with pytest.raises(InvalidSizeError):
        service.get_thumbnail("src3", "image/png", "small")


def test_missing_original_is_not_found(thumbnail_service):
    with pytest.raises(SourceNotFoundError):
        thumbnail_service.get_thumbnail("missing", "image/png", "small")


def test_unsupported_type_is_a_noop(thumbnail_service, upload_dir, make_image):
    (upload_dir / "bmp").write_bytes(make_image("BMP", size=(300, 300)))

    assert thumbnail_service.get_thumbnail("bmp", "image/bmp", "small") is None


def test_whitelisted_type_without_codec_is_a_noop(originals, thumb_cache, upload_dir, make_image):
    (upload_dir / "tif").write_bytes(make_image("TIFF", size=(300, 300)))
    service = ThumbnailService(originals, thumb_cache, resizable_types=["image/tiff"])

    assert service.get_thumbnail("tif", "image/tiff", "small") is None


def test_type_outside_configured_whitelist_is_a_noop(originals, thumb_cache, upload_dir, make_image):
    (upload_dir / "src4").write_bytes(make_image("PNG", size=(300, 300)))
    service = ThumbnailService(originals, thumb_cache, resizable_types=["image/jpeg"])

    assert service.get_thumbnail("src4", "image/png", "small") is None


def test_corrupt_image_is_a_noop(thumbnail_service, upload_dir, thumb_cache):
    (upload_dir / "junk").write_bytes(b"definitely not a png")

    assert thumbnail_service.get_thumbnail("junk", "image/png", "small") is None
    assert thumb_cache.get("thumbs/junk_small") is None


def test_mismatched_declared_type_is_a_noop(thumbnail_service, upload_dir, make_image):
    (upload_dir / "liar").write_bytes(make_image("PNG", size=(300, 300)))

    assert thumbnail_service.get_thumbnail("liar", "image/jpeg", "small") is None


def test_degenerate_target_is_a_noop(thumbnail_service, upload_dir, make_image):
    (upload_dir / "strip").write_bytes(make_image("PNG", size=(2000, 1)))

    assert thumbnail_service.get_thumbnail("strip", "image/png", "small") is None


def test_cache_write_failure_still_returns_bytes(originals, upload_dir, make_image):
    (upload_dir / "src5").write_bytes(make_image("JPEG", size=(640, 480)))
    cache = FailingCache()
    service = ThumbnailService(originals, cache)

    result = service.get_thumbnail("src5", "image/jpeg", "small")

    assert result is not None
    assert _dimensions(result.content) == (64, 48)
    assert cache.put_calls == 1


def test_storage_errors_propagate(thumb_cache):
    service = ThumbnailService(BrokenStore(), thumb_cache)

    with pytest.raises(PermissionError):
        service.get_thumbnail("src", "image/png", "small")


def test_from_settings_uses_configured_tables(originals, thumb_cache):
    from realty_gateway.config import Settings

    settings = Settings(
        image_sizes={"thumb": (32, 32)},
        resizable_file_types=["image/png"],
        thumbs_namespace="previews",
    )
    service = ThumbnailService.from_settings(settings, originals, thumb_cache)

    assert service.size_names == ["thumb"]
    assert service.is_resizable("image/png")
    assert not service.is_resizable("image/jpeg")
    assert service.cache_key("abc", "thumb") == "previews/abc_thumb"
