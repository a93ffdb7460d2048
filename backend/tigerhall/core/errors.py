"""Error kinds raised by the sighting service and its adapters.

Every failure the service can surface is a subclass of SightingError, one
class per kind, so callers (and tests) can tell exactly which stage
rejected a request. Adapters convert library exceptions (psycopg2, redis,
Pillow) into these kinds with ``raise ... from exc`` at their boundary.

Example:
    Distinguish a business-rule rejection from a storage failure:
        >>> from tigerhall.core import errors
        >>> try:
        ...     service.create_sighting(ctx, sighting)
        ... except errors.DistanceExceededError as e:
        ...     print(f"too far: {e.distance:.2f} km")
        ... except errors.StorageError:
        ...     raise
"""

from __future__ import annotations


class SightingError(Exception):
    """Base class for every error raised by the tiger sighting core."""


class InvalidInputError(SightingError):
    """A tiger or sighting failed structural validation."""


class NotFoundError(SightingError):
    """A referenced tiger does not exist."""


class DistanceExceededError(SightingError):
    """A sighting is too far from the tiger's last known position.

    Attributes:
        distance: Computed great-circle distance in kilometres.
        limit: Maximum accepted distance in kilometres.
    """

    def __init__(self, distance: float, limit: float) -> None:
        super().__init__(
            f"distance exceeds {limit:.2f} km. Distance: {distance:.2f}"
        )
        self.distance = distance
        self.limit = limit


class ImageProcessingError(SightingError):
    """The attached image could not be normalized."""


class ImageDecodeError(ImageProcessingError):
    """Malformed base64 or image bytes the detected codec cannot read."""


class ImageEncodeError(ImageProcessingError):
    """The resized image could not be re-encoded."""


class StorageError(SightingError):
    """Failure from the relational store or the cache."""


class SerializationError(StorageError):
    """A cached value could not be encoded to or decoded from JSON."""


class DeadlineExceededError(SightingError):
    """The request deadline passed before the work could complete."""
