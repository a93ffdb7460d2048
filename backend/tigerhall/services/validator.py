"""Structural validation of tigers and sightings.

Checks run in a fixed order and stop at the first failure, raising
InvalidInputError. Timestamps that are unset, Python's zero datetime or
the Unix epoch all count as "not provided": clients that omit a timestamp
field typically send the epoch, which must not be accepted as a real date.
"""

from __future__ import annotations

import datetime
from typing import TYPE_CHECKING

from tigerhall.core import errors

if TYPE_CHECKING:
    from tigerhall.db import models as db_models

_ZERO_TIME = datetime.datetime.min.replace(tzinfo=datetime.UTC)
_EPOCH = datetime.datetime(1970, 1, 1, tzinfo=datetime.UTC)


def is_unset_time(value: datetime.datetime | None) -> bool:
    """Whether a timestamp is absent, the zero datetime or the epoch.

    Naive datetimes are read as UTC.
    """
    if value is None:
        return True
    if value.tzinfo is None:
        value = value.replace(tzinfo=datetime.UTC)
    return value in (_ZERO_TIME, _EPOCH)


def _valid_latitude(value: float) -> bool:
    return -90.0 <= value <= 90.0


def _valid_longitude(value: float) -> bool:
    return -180.0 <= value <= 180.0


def validate_tiger(tiger: db_models.Tiger) -> None:
    """Check a tiger before it is stored.

    Args:
        tiger: Tiger to check.

    Raises:
        InvalidInputError: On the first failing check, in order: empty name,
            unset date of birth, unset last-seen timestamp, latitude outside
            [-90, 90], longitude outside [-180, 180].
    """
    if not tiger.name:
        raise errors.InvalidInputError("name cannot be empty")
    if is_unset_time(tiger.date_of_birth):
        raise errors.InvalidInputError("date of birth cannot be empty")
    if is_unset_time(tiger.last_seen_timestamp):
        raise errors.InvalidInputError("last seen timestamp cannot be empty")
    if not _valid_latitude(tiger.last_seen_latitude):
        raise errors.InvalidInputError("not a valid latitude")
    if not _valid_longitude(tiger.last_seen_longitude):
        raise errors.InvalidInputError("not a valid longitude")


def validate_sighting(sighting: db_models.Sighting) -> None:
    """Check a sighting before any lookup or storage.

    Args:
        sighting: Sighting to check.

    Raises:
        InvalidInputError: On the first failing check, in order: missing
            tiger id, unset seen-at, latitude outside [-90, 90], longitude
            outside [-180, 180], empty image data.
    """
    if not sighting.tiger_id:
        raise errors.InvalidInputError("tiger id cannot be 0")
    if is_unset_time(sighting.seen_at):
        raise errors.InvalidInputError("seen_at cannot be empty")
    if not _valid_latitude(sighting.latitude):
        raise errors.InvalidInputError("not a valid latitude")
    if not _valid_longitude(sighting.longitude):
        raise errors.InvalidInputError("not a valid longitude")
    if not sighting.image_data:
        raise errors.InvalidInputError(
            "image data should contain valid base64 image format"
        )
