"""Database helpers and repositories for tigers and sightings."""

from __future__ import annotations

import contextlib
import contextvars
import copy
import datetime
import threading
from typing import TYPE_CHECKING, Protocol, cast

import psycopg2
import psycopg2.extensions
import psycopg2.extras

from tigerhall.core import errors
from tigerhall.db import models as db_models

if TYPE_CHECKING:
    from collections.abc import Iterator

    from tigerhall.core import config
    from tigerhall.core import context


def _cast[T](value: object, dtype: type[T]) -> T | None:  # type: ignore[misc]
    """Cast a value to a specific type, returning None if value is None."""
    if value is None:
        return None

    return cast(T, value)


def _now() -> datetime.datetime:
    return datetime.datetime.now(tz=datetime.UTC)


class SightingRepositoryProtocol(Protocol):
    """Protocol interface for storing and retrieving tigers and sightings.

    Implementations provide persistence for Tiger and Sighting objects,
    supporting both in-memory (testing) and PostgreSQL (production)
    backends. Every data operation takes the request context first.
    """

    def get_tigers(self, ctx: context.RequestContext) -> list[db_models.Tiger]: ...

    def get_tiger_by_id(
        self,
        ctx: context.RequestContext,
        tiger_id: int,
        *,
        for_update: bool = False,
    ) -> db_models.Tiger: ...

    def create_tiger(
        self,
        ctx: context.RequestContext,
        tiger: db_models.Tiger,
    ) -> None: ...

    def update_tiger(
        self,
        ctx: context.RequestContext,
        tiger: db_models.Tiger,
    ) -> None: ...

    def get_sightings_by_tiger_id(
        self,
        ctx: context.RequestContext,
        tiger_id: int,
    ) -> list[db_models.Sighting]: ...

    def create_sighting(
        self,
        ctx: context.RequestContext,
        sighting: db_models.Sighting,
    ) -> None: ...

    def transaction(self) -> contextlib.AbstractContextManager[None]: ...


class InMemorySightingRepository(SightingRepositoryProtocol):
    """Simple in-memory store for tests and local development.

    Stores tigers and sightings in dictionaries guarded by a re-entrant
    lock. ``transaction()`` holds the lock for its whole body and restores
    a snapshot if the body raises. Data is lost when the process exits.
    """

    def __init__(self) -> None:
        """Initialize an empty in-memory repository."""
        self._tigers: dict[int, db_models.Tiger] = {}
        self._sightings: dict[int, db_models.Sighting] = {}
        self._next_tiger_id = 1
        self._next_sighting_id = 1
        self._lock = threading.RLock()

    @contextlib.contextmanager
    def transaction(self) -> Iterator[None]:
        """Run the body atomically, rolling back every write on error."""
        with self._lock:
            snapshot = (
                copy.deepcopy(self._tigers),
                copy.deepcopy(self._sightings),
                self._next_tiger_id,
                self._next_sighting_id,
            )
            try:
                yield
            except BaseException:
                (
                    self._tigers,
                    self._sightings,
                    self._next_tiger_id,
                    self._next_sighting_id,
                ) = snapshot
                raise

    def get_tigers(self, ctx: context.RequestContext) -> list[db_models.Tiger]:
        """Get all tigers, most recently seen first.

        Args:
            ctx: Request context.

        Returns:
            Copies of the stored tigers.
        """
        ctx.check()
        with self._lock:
            tigers = [copy.deepcopy(t) for t in self._tigers.values()]
        return sorted(
            tigers,
            key=lambda t: t.last_seen_timestamp or datetime.datetime.min.replace(
                tzinfo=datetime.UTC
            ),
            reverse=True,
        )

    def get_tiger_by_id(
        self,
        ctx: context.RequestContext,
        tiger_id: int,
        *,
        for_update: bool = False,
    ) -> db_models.Tiger:
        """Retrieve a tiger by ID.

        Args:
            ctx: Request context.
            tiger_id: Identifier of the tiger.
            for_update: Accepted for protocol parity; the lock held by
                ``transaction()`` already serializes writers.

        Returns:
            A copy of the stored tiger.

        Raises:
            NotFoundError: If no tiger has this ID.
        """
        ctx.check()
        with self._lock:
            tiger = self._tigers.get(tiger_id)
            if tiger is None:
                raise errors.NotFoundError(f"tiger {tiger_id} not found")
            return copy.deepcopy(tiger)

    def create_tiger(
        self,
        ctx: context.RequestContext,
        tiger: db_models.Tiger,
    ) -> None:
        """Store a new tiger, assigning its ID and audit timestamps."""
        ctx.check()
        with self._lock:
            now = _now()
            tiger.id = self._next_tiger_id
            tiger.created_at = now
            tiger.updated_at = now
            self._next_tiger_id += 1
            self._tigers[tiger.id] = copy.deepcopy(tiger)

    def update_tiger(
        self,
        ctx: context.RequestContext,
        tiger: db_models.Tiger,
    ) -> None:
        """Update the last-seen fields of a stored tiger.

        Raises:
            NotFoundError: If no tiger has this ID.
        """
        ctx.check()
        with self._lock:
            stored = self._tigers.get(tiger.id)
            if stored is None:
                raise errors.NotFoundError(f"tiger {tiger.id} not found")
            stored.last_seen_timestamp = tiger.last_seen_timestamp
            stored.last_seen_latitude = tiger.last_seen_latitude
            stored.last_seen_longitude = tiger.last_seen_longitude
            stored.updated_at = _now()
            tiger.updated_at = stored.updated_at

    def get_sightings_by_tiger_id(
        self,
        ctx: context.RequestContext,
        tiger_id: int,
    ) -> list[db_models.Sighting]:
        """Get the sightings of a tiger, latest first."""
        ctx.check()
        with self._lock:
            sightings = [
                copy.deepcopy(s)
                for s in self._sightings.values()
                if s.tiger_id == tiger_id
            ]
        return sorted(
            sightings,
            key=lambda s: s.seen_at or datetime.datetime.min.replace(
                tzinfo=datetime.UTC
            ),
            reverse=True,
        )

    def create_sighting(
        self,
        ctx: context.RequestContext,
        sighting: db_models.Sighting,
    ) -> None:
        """Store a new sighting, assigning its ID and audit timestamps.

        Raises:
            NotFoundError: If the owning tiger does not exist.
        """
        ctx.check()
        with self._lock:
            if sighting.tiger_id not in self._tigers:
                raise errors.NotFoundError(
                    f"tiger {sighting.tiger_id} not found"
                )
            now = _now()
            sighting.id = self._next_sighting_id
            sighting.created_at = now
            sighting.updated_at = now
            self._next_sighting_id += 1
            self._sightings[sighting.id] = copy.deepcopy(sighting)


class PostgresSightingRepository(SightingRepositoryProtocol):
    """PostgreSQL-backed repository for tigers and sightings.

    Persists to tables ``sighting.tiger`` and ``sighting.sighting``.
    Automatically creates the schema and tables on initialization. Rows
    whose ``deleted_at`` is set are treated as deleted and never returned.

    Calls made inside ``transaction()`` share one connection and commit or
    roll back together; calls made outside it each use their own
    short-lived connection.
    """

    CREATE_SCHEMA_SQL = """
    CREATE SCHEMA IF NOT EXISTS sighting;

    CREATE TABLE IF NOT EXISTS sighting.tiger (
      id SERIAL PRIMARY KEY,
      name TEXT NOT NULL,
      date_of_birth TIMESTAMPTZ NOT NULL,
      last_seen_timestamp TIMESTAMPTZ NOT NULL,
      last_seen_latitude DOUBLE PRECISION NOT NULL,
      last_seen_longitude DOUBLE PRECISION NOT NULL,
      created_at TIMESTAMPTZ,
      updated_at TIMESTAMPTZ,
      deleted_at TIMESTAMPTZ
    );

    CREATE TABLE IF NOT EXISTS sighting.sighting (
      id SERIAL PRIMARY KEY,
      tiger_id INTEGER NOT NULL REFERENCES sighting.tiger (id),
      seen_at TIMESTAMPTZ NOT NULL,
      latitude DOUBLE PRECISION NOT NULL,
      longitude DOUBLE PRECISION NOT NULL,
      image_data TEXT NOT NULL,
      created_at TIMESTAMPTZ,
      updated_at TIMESTAMPTZ,
      deleted_at TIMESTAMPTZ
    );

    CREATE INDEX IF NOT EXISTS sighting_tiger_id_seen_at_idx
      ON sighting.sighting (tiger_id, seen_at DESC);
    """

    TIGER_COLUMNS = (
        "id, name, date_of_birth, last_seen_timestamp, last_seen_latitude, "
        "last_seen_longitude, created_at, updated_at"
    )
    SIGHTING_COLUMNS = (
        "id, tiger_id, seen_at, latitude, longitude, image_data, "
        "created_at, updated_at"
    )

    def __init__(self, settings: config.Settings) -> None:
        """Initialize repository with database settings.

        Args:
            settings: Application settings containing database connection URL.
        """
        self.settings = settings
        self._active: contextvars.ContextVar[
            psycopg2.extensions.connection | None
        ] = contextvars.ContextVar(f"tigerhall_tx_{id(self)}", default=None)
        self._ensure_schema()

    def _connection(self) -> psycopg2.extensions.connection:
        """Create a new database connection.

        Returns:
            psycopg2 connection object.
        """
        return psycopg2.connect(self.settings.database_url)

    def _ensure_schema(self) -> None:
        """Ensure the sighting schema and its tables exist.

        Called automatically on initialization.

        Raises:
            StorageError: If the database cannot be reached.
        """
        try:
            conn = self._connection()
            try:
                with conn, conn.cursor() as cur:
                    cur.execute(self.CREATE_SCHEMA_SQL)
            finally:
                conn.close()
        except psycopg2.Error as exc:
            raise errors.StorageError(f"cannot prepare schema: {exc}") from exc

    @contextlib.contextmanager
    def transaction(self) -> Iterator[None]:
        """Share one connection across the body and commit once.

        Nested calls join the outer transaction.

        Raises:
            StorageError: If connecting or committing fails.
        """
        if self._active.get() is not None:
            yield
            return

        try:
            conn = self._connection()
        except psycopg2.Error as exc:
            raise errors.StorageError(f"cannot connect: {exc}") from exc

        token = self._active.set(conn)
        try:
            with conn:
                yield
        except psycopg2.Error as exc:
            raise errors.StorageError(f"transaction failed: {exc}") from exc
        finally:
            self._active.reset(token)
            conn.close()

    @contextlib.contextmanager
    def _cursor(
        self,
        ctx: context.RequestContext,
    ) -> Iterator[psycopg2.extras.RealDictCursor]:
        """Yield a dict cursor bound to the request deadline.

        Uses the connection of the enclosing transaction when there is one.

        Raises:
            DeadlineExceededError: If the deadline already passed.
            StorageError: On any psycopg2 failure.
        """
        ctx.check()
        active = self._active.get()
        try:
            if active is not None:
                with active.cursor(
                    cursor_factory=psycopg2.extras.RealDictCursor
                ) as cur:
                    self._apply_deadline(cur, ctx)
                    yield cur
                return

            conn = self._connection()
            try:
                with conn, conn.cursor(
                    cursor_factory=psycopg2.extras.RealDictCursor
                ) as cur:
                    self._apply_deadline(cur, ctx)
                    yield cur
            finally:
                conn.close()
        except psycopg2.Error as exc:
            raise errors.StorageError(f"query failed: {exc}") from exc

    @staticmethod
    def _apply_deadline(
        cur: psycopg2.extensions.cursor,
        ctx: context.RequestContext,
    ) -> None:
        """Abort statements that outlive the request deadline."""
        remaining = ctx.remaining()
        if remaining is None:
            return
        cur.execute(
            "SET LOCAL statement_timeout = %s",
            (max(1, int(remaining * 1000)),),
        )

    def get_tigers(self, ctx: context.RequestContext) -> list[db_models.Tiger]:
        with self._cursor(ctx) as cur:
            cur.execute(
                f"SELECT {self.TIGER_COLUMNS} FROM sighting.tiger "
                "WHERE deleted_at IS NULL ORDER BY last_seen_timestamp DESC"
            )
            return [
                self._tiger_from_row(cast(dict[str, object], row))
                for row in cur.fetchall()
            ]

    def get_tiger_by_id(
        self,
        ctx: context.RequestContext,
        tiger_id: int,
        *,
        for_update: bool = False,
    ) -> db_models.Tiger:
        query = (
            f"SELECT {self.TIGER_COLUMNS} FROM sighting.tiger "
            "WHERE id = %s AND deleted_at IS NULL"
        )
        if for_update:
            query += " FOR UPDATE"
        with self._cursor(ctx) as cur:
            cur.execute(query, (tiger_id,))
            row = cur.fetchone()
        if row is None:
            raise errors.NotFoundError(f"tiger {tiger_id} not found")
        return self._tiger_from_row(cast(dict[str, object], row))

    def create_tiger(
        self,
        ctx: context.RequestContext,
        tiger: db_models.Tiger,
    ) -> None:
        now = _now()
        tiger.created_at = now
        tiger.updated_at = now
        row = self._tiger_to_row(tiger)
        with self._cursor(ctx) as cur:
            cur.execute(
                """
                INSERT INTO sighting.tiger (
                    name, date_of_birth, last_seen_timestamp,
                    last_seen_latitude, last_seen_longitude,
                    created_at, updated_at
                ) VALUES (%(name)s, %(date_of_birth)s,
                    %(last_seen_timestamp)s, %(last_seen_latitude)s,
                    %(last_seen_longitude)s, %(created_at)s, %(updated_at)s)
                RETURNING id;
                """,
                row,
            )
            inserted = cast(dict[str, object], cur.fetchone())
        tiger.id = int(cast(int, inserted["id"]))

    def update_tiger(
        self,
        ctx: context.RequestContext,
        tiger: db_models.Tiger,
    ) -> None:
        tiger.updated_at = _now()
        with self._cursor(ctx) as cur:
            cur.execute(
                """
                UPDATE sighting.tiger SET
                    last_seen_timestamp = %(last_seen_timestamp)s,
                    last_seen_latitude = %(last_seen_latitude)s,
                    last_seen_longitude = %(last_seen_longitude)s,
                    updated_at = %(updated_at)s
                WHERE id = %(id)s AND deleted_at IS NULL;
                """,
                self._tiger_to_row(tiger),
            )
            updated = cur.rowcount
        if updated == 0:
            raise errors.NotFoundError(f"tiger {tiger.id} not found")

    def get_sightings_by_tiger_id(
        self,
        ctx: context.RequestContext,
        tiger_id: int,
    ) -> list[db_models.Sighting]:
        with self._cursor(ctx) as cur:
            cur.execute(
                f"SELECT {self.SIGHTING_COLUMNS} FROM sighting.sighting "
                "WHERE tiger_id = %s AND deleted_at IS NULL "
                "ORDER BY seen_at DESC",
                (tiger_id,),
            )
            return [
                self._sighting_from_row(cast(dict[str, object], row))
                for row in cur.fetchall()
            ]

    def create_sighting(
        self,
        ctx: context.RequestContext,
        sighting: db_models.Sighting,
    ) -> None:
        now = _now()
        sighting.created_at = now
        sighting.updated_at = now
        with self._cursor(ctx) as cur:
            cur.execute(
                """
                INSERT INTO sighting.sighting (
                    tiger_id, seen_at, latitude, longitude, image_data,
                    created_at, updated_at
                ) VALUES (%(tiger_id)s, %(seen_at)s, %(latitude)s,
                    %(longitude)s, %(image_data)s, %(created_at)s,
                    %(updated_at)s)
                RETURNING id;
                """,
                self._sighting_to_row(sighting),
            )
            inserted = cast(dict[str, object], cur.fetchone())
        sighting.id = int(cast(int, inserted["id"]))

    @staticmethod
    def _tiger_to_row(tiger: db_models.Tiger) -> dict[str, object]:
        """Convert a Tiger to a parameter dictionary for SQL.

        Args:
            tiger: Tiger to convert.

        Returns:
            Dictionary suitable for parameterized SQL insertion.
        """
        return {
            "id": tiger.id,
            "name": tiger.name,
            "date_of_birth": tiger.date_of_birth,
            "last_seen_timestamp": tiger.last_seen_timestamp,
            "last_seen_latitude": tiger.last_seen_latitude,
            "last_seen_longitude": tiger.last_seen_longitude,
            "created_at": tiger.created_at,
            "updated_at": tiger.updated_at,
        }

    @staticmethod
    def _tiger_from_row(row: dict[str, object]) -> db_models.Tiger:
        """Convert a database row dictionary to a Tiger.

        Args:
            row: Dictionary from database query result.

        Returns:
            Tiger with all fields populated.
        """
        return db_models.Tiger(
            id=int(cast(int, row["id"])),
            name=str(row["name"]),
            date_of_birth=_cast(row.get("date_of_birth"), datetime.datetime),
            last_seen_timestamp=_cast(
                row.get("last_seen_timestamp"), datetime.datetime
            ),
            last_seen_latitude=float(cast(float, row["last_seen_latitude"])),
            last_seen_longitude=float(cast(float, row["last_seen_longitude"])),
            created_at=_cast(row.get("created_at"), datetime.datetime),
            updated_at=_cast(row.get("updated_at"), datetime.datetime),
        )

    @staticmethod
    def _sighting_to_row(sighting: db_models.Sighting) -> dict[str, object]:
        """Convert a Sighting to a parameter dictionary for SQL."""
        return {
            "id": sighting.id,
            "tiger_id": sighting.tiger_id,
            "seen_at": sighting.seen_at,
            "latitude": sighting.latitude,
            "longitude": sighting.longitude,
            "image_data": sighting.image_data,
            "created_at": sighting.created_at,
            "updated_at": sighting.updated_at,
        }

    @staticmethod
    def _sighting_from_row(row: dict[str, object]) -> db_models.Sighting:
        """Convert a database row dictionary to a Sighting."""
        return db_models.Sighting(
            id=int(cast(int, row["id"])),
            tiger_id=int(cast(int, row["tiger_id"])),
            seen_at=_cast(row.get("seen_at"), datetime.datetime),
            latitude=float(cast(float, row["latitude"])),
            longitude=float(cast(float, row["longitude"])),
            image_data=str(row["image_data"]),
            created_at=_cast(row.get("created_at"), datetime.datetime),
            updated_at=_cast(row.get("updated_at"), datetime.datetime),
        )


def get_sighting_repository(
    settings: config.Settings,
) -> SightingRepositoryProtocol:
    """Factory function to create a sighting repository.

    Args:
        settings: Application settings for database connection.

    Returns:
        PostgresSightingRepository instance for production use.
    """
    return PostgresSightingRepository(settings)
