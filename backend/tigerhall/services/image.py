"""Thumbnail normalization for base64-embedded sighting photos.

Sighting photos arrive as data URIs (``data:image/png;base64,...`` or
``data:image/jpeg;base64,...``) or as bare base64, which is treated as PNG.
normalize_image decodes the photo, resizes it to exactly 250x200 pixels
with Lanczos resampling (aspect ratio is not preserved), re-encodes it in
the detected format and returns it as a data URI with that format's prefix.

The function keeps no state and is safe to call from concurrent requests.

Example:
    Normalize an uploaded JPEG:
        >>> from tigerhall.services.image import normalize_image
        >>> thumb = normalize_image("data:image/jpeg;base64,/9j/4AAQSkZJRg...")
        >>> thumb.startswith("data:image/jpeg;base64,")
        True
"""

from __future__ import annotations

import base64
import binascii
import dataclasses
import io

from PIL import Image, UnidentifiedImageError

from tigerhall.core import errors

TARGET_SIZE = (250, 200)
JPEG_QUALITY = 80

# single-channel modes wider than 8 bits per sample
HIGH_DEPTH_MODES = ("I", "I;16", "I;16B", "I;16L", "I;16N")


@dataclasses.dataclass(frozen=True)
class ImageFormat:
    """A supported image format and its data URI prefix."""

    name: str
    prefix: str
    modes: tuple[str, ...]
    fallback_mode: str


PNG = ImageFormat(
    name="PNG",
    prefix="data:image/png;base64,",
    modes=("1", "L", "LA", "RGB", "RGBA"),
    fallback_mode="RGBA",
)
JPEG = ImageFormat(
    name="JPEG",
    prefix="data:image/jpeg;base64,",
    modes=("L", "RGB", "CMYK"),
    fallback_mode="RGB",
)


def detect_format(data: str) -> tuple[ImageFormat, str]:
    """Split a payload into its format and base64 body.

    Args:
        data: Data URI or bare base64 string.

    Returns:
        Tuple of (format, base64 body). Bare base64 is reported as PNG.
    """
    for fmt in (PNG, JPEG):
        if data.startswith(fmt.prefix):
            return fmt, data[len(fmt.prefix):]
    return PNG, data


def _decode(body: str, fmt: ImageFormat) -> Image.Image:
    try:
        raw = base64.b64decode("".join(body.split()), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise errors.ImageDecodeError(f"invalid base64 image data: {exc}") from exc

    try:
        img = Image.open(io.BytesIO(raw), formats=[fmt.name])
        img.load()
    except (
        UnidentifiedImageError,
        Image.DecompressionBombError,
        OSError,
        ValueError,
    ) as exc:
        raise errors.ImageDecodeError(
            f"cannot decode {fmt.name} image: {exc}"
        ) from exc
    return img


def _encode(img: Image.Image, fmt: ImageFormat) -> bytes:
    buf = io.BytesIO()
    try:
        if fmt is JPEG:
            img.save(buf, format=fmt.name, quality=JPEG_QUALITY)
        else:
            img.save(buf, format=fmt.name)
    except (OSError, ValueError, KeyError) as exc:
        raise errors.ImageEncodeError(
            f"cannot encode {fmt.name} image: {exc}"
        ) from exc
    return buf.getvalue()


def _to_eight_bit(img: Image.Image) -> Image.Image:
    """Scale 16-bit grayscale samples down to 8-bit grayscale."""
    return img.convert("I").point(lambda v: v * (1 / 256)).convert("L")


def normalize_image(data: str) -> str:
    """Resize a base64 image to 250x200 and return it as a data URI.

    Args:
        data: ``data:image/png;base64,...``, ``data:image/jpeg;base64,...``
            or bare base64 (read as PNG).

    Returns:
        Data URI of the same detected format holding the resized image.

    Raises:
        ImageDecodeError: If the base64 or the image bytes are malformed
            for the detected format.
        ImageEncodeError: If the resized image cannot be re-encoded.
    """
    fmt, body = detect_format(data)
    with _decode(body, fmt) as img:
        try:
            # palette and high bit-depth modes do not resample or encode cleanly
            if img.mode in fmt.modes:
                source = img
            elif img.mode in HIGH_DEPTH_MODES:
                source = _to_eight_bit(img)
            else:
                source = img.convert(fmt.fallback_mode)
            resized = source.resize(TARGET_SIZE, Image.Resampling.LANCZOS)
        except (OSError, ValueError) as exc:
            raise errors.ImageDecodeError(
                f"cannot resample {img.mode} image: {exc}"
            ) from exc

    encoded = base64.b64encode(_encode(resized, fmt)).decode("ascii")
    return fmt.prefix + encoded
