"""Tiger sighting use cases.

TigerSightingService implements the four operations exposed to clients:
listing tigers, creating a tiger, listing a tiger's sightings and recording
a sighting. Reads go through the read-through cache; writes invalidate the
cache keys they affect.

Recording a sighting runs these stages in order, each failing with its own
error kind:

1. structural validation (InvalidInputError),
2. tiger lookup (NotFoundError),
3. distance check against the tiger's last known position
   (DistanceExceededError when more than 5 km away),
4. image normalization to 250x200 (ImageProcessingError),
5. sighting insert and tiger last-seen update (StorageError),
6. cache invalidation (best effort, never raises).

Stages 2 to 5 run inside one repository transaction and the tiger row is
locked on lookup, so a failed update leaves no orphan sighting and two
concurrent sightings of one tiger cannot interleave their updates.

Example:
    Wire the service with in-memory adapters:
        >>> from tigerhall.core import context
        >>> from tigerhall.db import cache, database
        >>> service = TigerSightingService(
        ...     database.InMemorySightingRepository(),
        ...     cache.CacheRepository(cache.InMemoryCacheClient()),
        ... )
        >>> service.get_tigers(context.RequestContext.background())
        []
"""

from __future__ import annotations

import datetime
from typing import TYPE_CHECKING, Any

from tigerhall.core import errors
from tigerhall.db import models as db_models
from tigerhall.services import geo, image, validator

if TYPE_CHECKING:
    from tigerhall.core import context
    from tigerhall.db import cache as db_cache
    from tigerhall.db import database

MODULE_NAME = "sighting"
MODULE_VERSION = "v1"
BASE_KEY = f"{MODULE_NAME}:{MODULE_VERSION}:"
GET_TIGERS_KEY = BASE_KEY + "sighting:get-tigers"
GET_SIGHTINGS_BY_TIGER_ID_KEY = BASE_KEY + "sighting:get-sightings-by-tiger:{}"

CACHE_TTL = datetime.timedelta(minutes=1)
MAX_SIGHTING_DISTANCE_KM = 5.0


def sightings_key(tiger_id: int) -> str:
    """Cache key of the sighting list for one tiger."""
    return GET_SIGHTINGS_BY_TIGER_ID_KEY.format(tiger_id)


def _encode_tigers(tigers: list[db_models.Tiger]) -> list[dict[str, Any]]:
    return [tiger.to_dict() for tiger in tigers]


def _decode_tigers(data: list[dict[str, Any]]) -> list[db_models.Tiger]:
    return [db_models.Tiger.from_dict(item) for item in data]


def _encode_sightings(
    sightings: list[db_models.Sighting],
) -> list[dict[str, Any]]:
    return [sighting.to_dict() for sighting in sightings]


def _decode_sightings(data: list[dict[str, Any]]) -> list[db_models.Sighting]:
    return [db_models.Sighting.from_dict(item) for item in data]


class TigerSightingService:
    """Business logic for tigers and their sightings.

    The service keeps no per-request state; all state lives in the
    repository and the cache, so one instance serves concurrent requests.
    """

    def __init__(
        self,
        repo: database.SightingRepositoryProtocol,
        cache: db_cache.CacheRepository,
    ) -> None:
        """Initialize the service with its collaborators.

        Args:
            repo: Persistence for tigers and sightings.
            cache: Read-through cache for list queries.
        """
        self._repo = repo
        self._cache = cache

    def get_tigers(self, ctx: context.RequestContext) -> list[db_models.Tiger]:
        """List tigers, most recently seen first.

        Args:
            ctx: Request context.

        Returns:
            Tigers from the cache, or from the repository on a miss.

        Raises:
            StorageError: If the cache or the repository fails.
        """
        ctx.logger.debug("start service get_tigers")
        try:
            return self._cache.fetch(
                ctx,
                GET_TIGERS_KEY,
                CACHE_TTL,
                lambda: self._repo.get_tigers(ctx),
                encode=_encode_tigers,
                decode=_decode_tigers,
            )
        except errors.SightingError as exc:
            ctx.logger.warning("get_tigers failed: %s", exc)
            raise

    def create_tiger(
        self,
        ctx: context.RequestContext,
        tiger: db_models.Tiger,
    ) -> None:
        """Validate and store a new tiger.

        On success ``tiger`` carries its assigned ID and audit timestamps.

        Args:
            ctx: Request context.
            tiger: Tiger to create.

        Raises:
            InvalidInputError: If the tiger fails validation.
            StorageError: If the insert fails.
        """
        ctx.logger.debug("start service create_tiger")
        try:
            validator.validate_tiger(tiger)
        except errors.InvalidInputError as exc:
            ctx.logger.warning("rejected tiger: %s", exc)
            raise

        try:
            self._repo.create_tiger(ctx, tiger)
        except errors.SightingError as exc:
            ctx.logger.warning("create_tiger failed: %s", exc)
            raise

        self._invalidate(ctx, GET_TIGERS_KEY)

    def get_sightings_by_tiger_id(
        self,
        ctx: context.RequestContext,
        tiger_id: int,
    ) -> list[db_models.Sighting]:
        """List the sightings of one tiger, latest first.

        Args:
            ctx: Request context.
            tiger_id: Identifier of the tiger.

        Returns:
            Sightings from the cache, or from the repository on a miss.

        Raises:
            StorageError: If the cache or the repository fails.
        """
        ctx.logger.debug("start service get_sightings_by_tiger_id %d", tiger_id)
        try:
            return self._cache.fetch(
                ctx,
                sightings_key(tiger_id),
                CACHE_TTL,
                lambda: self._repo.get_sightings_by_tiger_id(ctx, tiger_id),
                encode=_encode_sightings,
                decode=_decode_sightings,
            )
        except errors.SightingError as exc:
            ctx.logger.warning("get_sightings_by_tiger_id failed: %s", exc)
            raise

    def create_sighting(
        self,
        ctx: context.RequestContext,
        sighting: db_models.Sighting,
    ) -> None:
        """Record a sighting and move the tiger's last-seen state to it.

        On success ``sighting.image_data`` holds the normalized 250x200
        image and the sighting carries its assigned ID.

        Args:
            ctx: Request context.
            sighting: Sighting to record.

        Raises:
            InvalidInputError: If the sighting fails validation.
            NotFoundError: If the tiger does not exist.
            DistanceExceededError: If the sighting is more than 5 km from
                the tiger's last known position.
            ImageProcessingError: If the image cannot be normalized.
            StorageError: If a repository write fails; nothing is kept.
        """
        ctx.logger.debug("start service create_sighting")
        try:
            validator.validate_sighting(sighting)
        except errors.InvalidInputError as exc:
            ctx.logger.warning("rejected sighting: %s", exc)
            raise

        try:
            with self._repo.transaction():
                self._record_sighting(ctx, sighting)
        except errors.SightingError as exc:
            ctx.logger.warning("create_sighting failed: %s", exc)
            raise

        self._invalidate(ctx, sightings_key(sighting.tiger_id), GET_TIGERS_KEY)

    def _record_sighting(
        self,
        ctx: context.RequestContext,
        sighting: db_models.Sighting,
    ) -> None:
        tiger = self._repo.get_tiger_by_id(ctx, sighting.tiger_id, for_update=True)

        distance = geo.haversine_km(
            tiger.last_seen_latitude,
            tiger.last_seen_longitude,
            sighting.latitude,
            sighting.longitude,
        )
        if distance > MAX_SIGHTING_DISTANCE_KM:
            raise errors.DistanceExceededError(distance, MAX_SIGHTING_DISTANCE_KM)

        sighting.image_data = image.normalize_image(sighting.image_data)

        ctx.check()
        self._repo.create_sighting(ctx, sighting)

        tiger.last_seen_timestamp = sighting.seen_at
        tiger.last_seen_latitude = sighting.latitude
        tiger.last_seen_longitude = sighting.longitude
        self._repo.update_tiger(ctx, tiger)

    def _invalidate(self, ctx: context.RequestContext, *keys: str) -> None:
        """Delete cache keys; failures only leave entries until their TTL."""
        try:
            self._cache.delete(ctx, *keys)
        except errors.SightingError as exc:
            ctx.logger.warning("cache invalidation of %s failed: %s", keys, exc)
