"""Data models for tigers and their sightings.

This module defines the two entities the service records. A Tiger carries
its "last seen" state (timestamp, latitude, longitude), which always
reflects the most recent accepted Sighting. A Sighting is one observed and
photographed occurrence of a tiger; its image is always stored in the
normalized 250x200 form.

Both models convert to and from JSON-compatible dictionaries. That form is
what the read-through cache stores.

Example:
    Creating a Tiger and its first Sighting:
        >>> import datetime
        >>> from tigerhall.db.models import Sighting, Tiger
        >>> now = datetime.datetime.now(tz=datetime.UTC)
        >>> tiger = Tiger(
        ...     name="Raja",
        ...     date_of_birth=datetime.datetime(2019, 5, 1, tzinfo=datetime.UTC),
        ...     last_seen_timestamp=now,
        ...     last_seen_latitude=-6.18,
        ...     last_seen_longitude=108.00,
        ... )
        >>> sighting = Sighting(
        ...     tiger_id=1,
        ...     seen_at=now,
        ...     latitude=-6.181,
        ...     longitude=108.002,
        ...     image_data="data:image/png;base64,iVBORw0KGgo...",
        ... )
"""

from __future__ import annotations

import dataclasses
import datetime
from typing import Any


def _dump_time(value: datetime.datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _load_time(value: object) -> datetime.datetime | None:
    if value is None:
        return None
    if isinstance(value, datetime.datetime):
        return value
    return datetime.datetime.fromisoformat(str(value))


@dataclasses.dataclass
class Tiger:
    """A tracked tiger and its last known position.

    Attributes:
        name: Non-empty tiger name.
        date_of_birth: Birth date; None means "not provided".
        last_seen_timestamp: Time of the most recent accepted sighting.
        last_seen_latitude: Latitude of the most recent sighting (-90..90).
        last_seen_longitude: Longitude of the most recent sighting
            (-180..180).
        id: Identifier assigned by persistence, 0 until stored.
        created_at: Insert timestamp, set by persistence.
        updated_at: Last update timestamp, set by persistence.
    """

    name: str
    date_of_birth: datetime.datetime | None
    last_seen_timestamp: datetime.datetime | None
    last_seen_latitude: float
    last_seen_longitude: float
    id: int = 0
    created_at: datetime.datetime | None = None
    updated_at: datetime.datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-compatible dictionary with ISO-8601 timestamps."""
        return {
            "id": self.id,
            "name": self.name,
            "date_of_birth": _dump_time(self.date_of_birth),
            "last_seen_timestamp": _dump_time(self.last_seen_timestamp),
            "last_seen_latitude": self.last_seen_latitude,
            "last_seen_longitude": self.last_seen_longitude,
            "created_at": _dump_time(self.created_at),
            "updated_at": _dump_time(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Tiger:
        """Build a Tiger from the output of to_dict()."""
        return cls(
            id=int(data.get("id") or 0),
            name=str(data["name"]),
            date_of_birth=_load_time(data.get("date_of_birth")),
            last_seen_timestamp=_load_time(data.get("last_seen_timestamp")),
            last_seen_latitude=float(data["last_seen_latitude"]),
            last_seen_longitude=float(data["last_seen_longitude"]),
            created_at=_load_time(data.get("created_at")),
            updated_at=_load_time(data.get("updated_at")),
        )


@dataclasses.dataclass
class Sighting:
    """A single photographed occurrence of a tiger.

    Attributes:
        tiger_id: Identifier of the owning tiger.
        seen_at: When the tiger was seen.
        latitude: Sighting latitude (-90..90).
        longitude: Sighting longitude (-180..180).
        image_data: Base64 image, data-URI prefixed once normalized.
        id: Identifier assigned by persistence, 0 until stored.
        created_at: Insert timestamp, set by persistence.
        updated_at: Last update timestamp, set by persistence.
    """

    tiger_id: int
    seen_at: datetime.datetime | None
    latitude: float
    longitude: float
    image_data: str
    id: int = 0
    created_at: datetime.datetime | None = None
    updated_at: datetime.datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-compatible dictionary with ISO-8601 timestamps."""
        return {
            "id": self.id,
            "tiger_id": self.tiger_id,
            "seen_at": _dump_time(self.seen_at),
            "latitude": self.latitude,
            "longitude": self.longitude,
            "image_data": self.image_data,
            "created_at": _dump_time(self.created_at),
            "updated_at": _dump_time(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Sighting:
        """Build a Sighting from the output of to_dict()."""
        return cls(
            id=int(data.get("id") or 0),
            tiger_id=int(data["tiger_id"]),
            seen_at=_load_time(data.get("seen_at")),
            latitude=float(data["latitude"]),
            longitude=float(data["longitude"]),
            image_data=str(data["image_data"]),
            created_at=_load_time(data.get("created_at")),
            updated_at=_load_time(data.get("updated_at")),
        )
