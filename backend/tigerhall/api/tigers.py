"""Tiger and sighting REST API endpoints.

This module maps HTTP requests onto TigerSightingService. It only decodes
request bodies, builds the per-request context and encodes responses;
every business rule lives in the service. Error kinds raised by the service
are turned into status codes by the handler in tigerhall.api.errors.

Request body fields default to their zero values so that a missing field
reaches the service validator (400) instead of failing schema parsing.

Example:
    Create a tiger and record a sighting:
        >>> client.post("/v1/tigers", json={
        ...     "name": "Raja",
        ...     "date_of_birth": "2019-05-01T00:00:00Z",
        ...     "last_seen_timestamp": "2024-01-01T08:00:00Z",
        ...     "last_seen_latitude": -6.18,
        ...     "last_seen_longitude": 108.0,
        ... })
        >>> client.post("/v1/tigers/1/sightings", json={
        ...     "seen_at": "2024-01-02T08:00:00Z",
        ...     "latitude": -6.181,
        ...     "longitude": 108.001,
        ...     "image_data": "data:image/png;base64,iVBORw0KGgo...",
        ... })
        >>> client.get("/v1/tigers/1/sightings").json()
        >>> # Returns: {"data": [{"id": 1, "seen_at": "...", ...}]}
"""

from __future__ import annotations

import datetime
import functools
import logging
import uuid
from typing import Any, TypedDict

import fastapi
import pydantic

from tigerhall.core import config, context, logs
from tigerhall.db import cache, database
from tigerhall.db import models as db_models
from tigerhall.services import sighting as sighting_service

logger = logging.getLogger(__name__)

router = fastapi.APIRouter(prefix="/v1/tigers", tags=["tigers"])

REQUEST_ID_HEADER = "X-Request-ID"


def _as_utc(value: datetime.datetime | None) -> datetime.datetime | None:
    """Read timestamps without an offset as UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=datetime.UTC)
    return value


class TigerCreate(pydantic.BaseModel):
    name: str = ""
    date_of_birth: datetime.datetime | None = None
    last_seen_timestamp: datetime.datetime | None = None
    last_seen_latitude: float = 0.0
    last_seen_longitude: float = 0.0

    @pydantic.field_validator("date_of_birth", "last_seen_timestamp")
    @classmethod
    def timestamps_as_utc(
        cls, value: datetime.datetime | None
    ) -> datetime.datetime | None:
        return _as_utc(value)


class SightingCreate(pydantic.BaseModel):
    seen_at: datetime.datetime | None = None
    latitude: float = 0.0
    longitude: float = 0.0
    image_data: str = ""

    @pydantic.field_validator("seen_at")
    @classmethod
    def seen_at_as_utc(
        cls, value: datetime.datetime | None
    ) -> datetime.datetime | None:
        return _as_utc(value)


class MessageResponse(TypedDict):
    message: str
    id: int


@functools.lru_cache
def get_service() -> sighting_service.TigerSightingService:
    """Build the process-wide service from settings.

    The PostgreSQL repository and the Redis client are created once and
    shared by every request.

    Returns:
        TigerSightingService wired to production adapters.
    """
    settings = config.get_settings()
    return sighting_service.TigerSightingService(
        database.get_sighting_repository(settings),
        cache.get_cache_repository(settings),
    )


def get_context(
    request: fastapi.Request,
    settings: config.Settings = fastapi.Depends(config.get_settings),  # noqa: B008
) -> context.RequestContext:
    """Build the request context with the configured deadline.

    The logger is tagged with the ``X-Request-ID`` header, or a fresh id
    when the client sent none.
    """
    request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
    request_logger = logs.RequestLoggerAdapter(
        logger, {"request_id": request_id}
    )
    request_logger.info("start handler %s %s", request.method, request.url.path)
    return context.RequestContext.with_timeout(
        settings.request_timeout_seconds,
        logger=request_logger,
    )


def _tiger_response(tiger: db_models.Tiger) -> dict[str, Any]:
    return tiger.to_dict()


def _sighting_response(sighting: db_models.Sighting) -> dict[str, Any]:
    return sighting.to_dict()


@router.get("")
def list_tigers(
    ctx: context.RequestContext = fastapi.Depends(get_context),  # noqa: B008
    service: sighting_service.TigerSightingService = fastapi.Depends(  # noqa: B008
        get_service
    ),
) -> dict[str, list[dict[str, Any]]]:
    """List all tigers, most recently seen first.

    Returns:
        ``{"data": [...]}`` with one entry per tiger.
    """
    tigers = service.get_tigers(ctx)
    return {"data": [_tiger_response(tiger) for tiger in tigers]}


@router.post("", status_code=201)
def create_tiger(
    body: TigerCreate,
    ctx: context.RequestContext = fastapi.Depends(get_context),  # noqa: B008
    service: sighting_service.TigerSightingService = fastapi.Depends(  # noqa: B008
        get_service
    ),
) -> MessageResponse:
    """Create a tiger.

    Returns:
        Confirmation message and the new tiger's id.
    """
    tiger = db_models.Tiger(
        name=body.name,
        date_of_birth=body.date_of_birth,
        last_seen_timestamp=body.last_seen_timestamp,
        last_seen_latitude=body.last_seen_latitude,
        last_seen_longitude=body.last_seen_longitude,
    )
    service.create_tiger(ctx, tiger)
    return MessageResponse(message="Successfully create new tiger", id=tiger.id)


@router.get("/{tiger_id}/sightings")
def list_sightings(
    tiger_id: int,
    ctx: context.RequestContext = fastapi.Depends(get_context),  # noqa: B008
    service: sighting_service.TigerSightingService = fastapi.Depends(  # noqa: B008
        get_service
    ),
) -> dict[str, list[dict[str, Any]]]:
    """List the sightings of a tiger, latest first.

    Returns:
        ``{"data": [...]}`` with one entry per sighting.
    """
    sightings = service.get_sightings_by_tiger_id(ctx, tiger_id)
    return {"data": [_sighting_response(s) for s in sightings]}


@router.post("/{tiger_id}/sightings", status_code=201)
def create_sighting(
    tiger_id: int,
    body: SightingCreate,
    ctx: context.RequestContext = fastapi.Depends(get_context),  # noqa: B008
    settings: config.Settings = fastapi.Depends(config.get_settings),  # noqa: B008
    service: sighting_service.TigerSightingService = fastapi.Depends(  # noqa: B008
        get_service
    ),
) -> MessageResponse:
    """Record a sighting of a tiger.

    Returns:
        Confirmation message and the new sighting's id.

    Raises:
        HTTPException: If the image payload exceeds the configured size
            (413 status code).
    """
    if len(body.image_data) > settings.max_image_data_bytes:
        raise fastapi.HTTPException(
            status_code=413,
            detail="Image too large",
        )

    sighting = db_models.Sighting(
        tiger_id=tiger_id,
        seen_at=body.seen_at,
        latitude=body.latitude,
        longitude=body.longitude,
        image_data=body.image_data,
    )
    service.create_sighting(ctx, sighting)
    return MessageResponse(
        message="Successfully create new sighting",
        id=sighting.id,
    )
