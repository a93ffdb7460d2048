"""Tests for sighting photo normalization.

Images are generated in memory with Pillow, embedded as base64 and run
through normalize_image; the output is decoded again to check its format
and dimensions.
"""

from __future__ import annotations

import base64
import io

import pytest
from PIL import Image

from tigerhall.core import errors
from tigerhall.services import image


COLORS = {"RGB": (200, 120, 40), "RGBA": (200, 120, 40, 128)}


def _encoded(
    fmt: str,
    size: tuple[int, int] = (640, 480),
    mode: str = "RGB",
) -> str:
    buf = io.BytesIO()
    Image.new(mode, size, color=COLORS[mode]).save(buf, format=fmt)
    return base64.b64encode(buf.getvalue()).decode("ascii")


def _open(data_uri: str) -> Image.Image:
    _, body = data_uri.split(",", 1)
    return Image.open(io.BytesIO(base64.b64decode(body)))


def test_png_data_uri_is_resized() -> None:
    """PNG input keeps its prefix and becomes 250x200."""
    source = image.PNG.prefix + _encoded("PNG")
    result = image.normalize_image(source)

    assert result.startswith("data:image/png;base64,")
    assert result != source
    with _open(result) as img:
        assert img.format == "PNG"
        assert img.size == (250, 200)


def test_jpeg_data_uri_is_resized() -> None:
    """JPEG input keeps its prefix and becomes 250x200."""
    source = image.JPEG.prefix + _encoded("JPEG", size=(100, 300))
    result = image.normalize_image(source)

    assert result.startswith("data:image/jpeg;base64,")
    with _open(result) as img:
        assert img.format == "JPEG"
        assert img.size == (250, 200)


def test_bare_base64_is_treated_as_png() -> None:
    """Without a prefix the payload is decoded as PNG and gains the prefix."""
    result = image.normalize_image(_encoded("PNG", size=(32, 32)))

    assert result.startswith(image.PNG.prefix)
    with _open(result) as img:
        assert img.size == (250, 200)


def test_palette_png_is_resized() -> None:
    """Palette images are converted before resampling."""
    buf = io.BytesIO()
    Image.new("RGB", (50, 40), color=(10, 200, 30)).convert("P").save(buf, format="PNG")
    source = image.PNG.prefix + base64.b64encode(buf.getvalue()).decode("ascii")

    with _open(image.normalize_image(source)) as img:
        assert img.size == (250, 200)


def test_rgba_png_under_jpeg_prefix_is_rejected() -> None:
    """Bytes must match the codec named by the prefix."""
    source = image.JPEG.prefix + _encoded("PNG", mode="RGBA")
    with pytest.raises(errors.ImageDecodeError):
        image.normalize_image(source)


def test_invalid_base64_is_decode_error() -> None:
    """Malformed base64 raises ImageDecodeError."""
    with pytest.raises(errors.ImageDecodeError, match="base64"):
        image.normalize_image(image.PNG.prefix + "not*base64!")


def test_non_image_bytes_is_decode_error() -> None:
    """Valid base64 that is not an image raises ImageDecodeError."""
    payload = base64.b64encode(b"definitely not a png").decode("ascii")
    with pytest.raises(errors.ImageDecodeError):
        image.normalize_image(payload)


def test_decode_error_is_image_processing_error() -> None:
    """Callers can catch every normalization failure as one kind."""
    assert issubclass(errors.ImageDecodeError, errors.ImageProcessingError)
    assert issubclass(errors.ImageEncodeError, errors.ImageProcessingError)


def test_encode_failure_is_encode_error(monkeypatch: pytest.MonkeyPatch) -> None:
    """Encoder failures raise ImageEncodeError."""

    def broken_save(*_args: object, **_kwargs: object) -> None:
        raise OSError("encoder unavailable")

    source = image.PNG.prefix + _encoded("PNG", size=(8, 8))
    monkeypatch.setattr(Image.Image, "save", broken_save)
    with pytest.raises(errors.ImageEncodeError):
        image.normalize_image(source)


def test_detect_format() -> None:
    """Prefixes select the format; anything else is PNG."""
    assert image.detect_format("data:image/jpeg;base64,abc") == (image.JPEG, "abc")
    assert image.detect_format("data:image/png;base64,abc") == (image.PNG, "abc")
    assert image.detect_format("abc") == (image.PNG, "abc")


def test_sixteen_bit_grayscale_is_scaled_not_clipped() -> None:
    """16-bit samples are scaled to 8 bits instead of saturating."""
    buf = io.BytesIO()
    Image.new("I;16", (60, 40), color=1000).save(buf, format="PNG")
    source = image.PNG.prefix + base64.b64encode(buf.getvalue()).decode("ascii")

    with _open(image.normalize_image(source)) as img:
        assert img.mode == "L"
        assert img.size == (250, 200)
        low, high = img.getextrema()
    # 1000 / 256 is just under 4
    assert 2 <= low <= high <= 5


def test_sixteen_bit_grayscale_keeps_brightness() -> None:
    """Bright 16-bit samples map to proportionally bright 8-bit samples."""
    buf = io.BytesIO()
    Image.new("I;16", (60, 40), color=51200).save(buf, format="PNG")
    source = image.PNG.prefix + base64.b64encode(buf.getvalue()).decode("ascii")

    with _open(image.normalize_image(source)) as img:
        low, high = img.getextrema()
    assert 195 <= low <= high <= 205
