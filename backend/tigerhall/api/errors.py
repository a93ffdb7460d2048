"""Translation of service error kinds into HTTP responses."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from fastapi import responses

from tigerhall.core import errors

if TYPE_CHECKING:
    import fastapi

# most specific first; the first isinstance match wins
STATUS_CODES: tuple[tuple[type[errors.SightingError], int], ...] = (
    (errors.InvalidInputError, 400),
    (errors.NotFoundError, 404),
    (errors.DistanceExceededError, 422),
    (errors.ImageProcessingError, 422),
    (errors.DeadlineExceededError, 504),
    (errors.StorageError, 500),
)


def status_code_for(exc: errors.SightingError) -> int:
    """Return the HTTP status for an error kind (500 when unknown)."""
    for error_type, status_code in STATUS_CODES:
        if isinstance(exc, error_type):
            return status_code
    return 500


async def sighting_error_handler(
    _request: fastapi.Request,
    exc: errors.SightingError,
) -> responses.JSONResponse:
    """Render a SightingError as ``{"detail": ..., "error": ...}``.

    Storage failures are reported without their underlying message.
    DistanceExceededError responses also carry the computed distance.
    """
    status_code = status_code_for(exc)
    content: dict[str, Any] = {
        "error": type(exc).__name__,
        "detail": "Internal storage error" if status_code == 500 else str(exc),
    }
    if isinstance(exc, errors.DistanceExceededError):
        content["distance"] = round(exc.distance, 2)
    return responses.JSONResponse(status_code=status_code, content=content)
