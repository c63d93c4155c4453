"""Geocode cache stores.

``CacheStore`` is the interface the resolver depends on.  Two implementations
are provided:

* ``SQLAlchemyCacheStore``: the durable ``geocode_cache`` table, written with
  a dialect-aware ``INSERT ... ON CONFLICT DO UPDATE`` so concurrent writers of
  one fingerprint resolve to last-writer-wins at the database.
* ``MemoizingCacheStore``: an in-process TTL layer in front of another store,
  saving a database round trip for addresses seen recently.

Only real provider results and manual overrides are ever written; keeping
fallback coordinates out of the cache is the resolver's job.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from datetime import UTC, datetime

from cachetools import TTLCache
from loguru import logger
from sqlalchemy import delete, func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from directory_api.lib.geocoder.base import CoordinatePair
from directory_api.models.geocode_cache import GeocodeCache


class CacheIOError(Exception):
    """Raised when the underlying cache storage cannot be read or written."""


@dataclass(frozen=True)
class GeocodeCacheEntry:
    """A cached, real geocoding result."""

    fingerprint: str
    original_address: str
    coordinates: CoordinatePair
    created_at: datetime
    updated_at: datetime
    origin: str = "database"


@dataclass(frozen=True)
class MemoryCacheStats:
    """Counters for the in-process cache layer."""

    hits: int
    misses: int
    size: int


@dataclass(frozen=True)
class CacheStats:
    """Aggregate statistics for a cache store."""

    total_entries: int
    oldest_entry: datetime | None = None
    newest_entry: datetime | None = None
    last_updated: datetime | None = None
    memory: MemoryCacheStats | None = None


class CacheStore(ABC):
    """Key/value store from address fingerprint to coordinates."""

    @abstractmethod
    async def get(self, fingerprint: str) -> GeocodeCacheEntry | None:
        """Return the entry for ``fingerprint``, or None on a miss.

        Raises:
            CacheIOError: On storage failure (a miss never raises).
        """

    @abstractmethod
    async def put(self, fingerprint: str, original_address: str, coordinates: CoordinatePair) -> GeocodeCacheEntry:
        """Insert or refresh the entry for ``fingerprint``.

        ``original_address`` is kept from the first write; later writes refresh
        coordinates and ``updated_at``.

        Raises:
            CacheIOError: On storage failure.
        """

    @abstractmethod
    async def stats(self) -> CacheStats:
        """Return entry count and age bounds."""

    @abstractmethod
    async def clear(self) -> int:
        """Delete every entry and return how many were removed."""


def _as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on round-trip)."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)


class SQLAlchemyCacheStore(CacheStore):
    """Durable cache backed by the ``geocode_cache`` table.

    Every operation opens its own short-lived session from the injected
    factory, so one store instance can be shared by concurrent resolutions.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get(self, fingerprint: str) -> GeocodeCacheEntry | None:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(GeocodeCache).where(GeocodeCache.address_fingerprint == fingerprint)
                )
                row = result.scalar_one_or_none()
        except (SQLAlchemyError, OSError) as e:
            raise CacheIOError(f"Cache lookup failed: {e}") from e

        if row is None:
            return None
        return GeocodeCacheEntry(
            fingerprint=row.address_fingerprint,
            original_address=row.original_address,
            coordinates=CoordinatePair(latitude=row.latitude, longitude=row.longitude),
            created_at=_as_utc(row.created_at),  # type: ignore[arg-type]
            updated_at=_as_utc(row.updated_at),  # type: ignore[arg-type]
        )

    async def put(self, fingerprint: str, original_address: str, coordinates: CoordinatePair) -> GeocodeCacheEntry:
        now = datetime.now(UTC)
        try:
            async with self._session_factory() as session:
                insert = pg_insert if session.bind.dialect.name == "postgresql" else sqlite_insert
                stmt = insert(GeocodeCache).values(
                    address_fingerprint=fingerprint,
                    original_address=original_address,
                    latitude=coordinates.latitude,
                    longitude=coordinates.longitude,
                    created_at=now,
                    updated_at=now,
                )
                stmt = stmt.on_conflict_do_update(
                    index_elements=[GeocodeCache.address_fingerprint],
                    set_={
                        "latitude": stmt.excluded.latitude,
                        "longitude": stmt.excluded.longitude,
                        "updated_at": stmt.excluded.updated_at,
                    },
                ).returning(
                    GeocodeCache.original_address,
                    GeocodeCache.created_at,
                    GeocodeCache.updated_at,
                )
                result = await session.execute(stmt)
                row = result.one()
                await session.commit()
        except (SQLAlchemyError, OSError) as e:
            raise CacheIOError(f"Cache write failed: {e}") from e

        logger.debug(f"Cached geocode for fingerprint {fingerprint[:12]}")
        return GeocodeCacheEntry(
            fingerprint=fingerprint,
            original_address=row.original_address,
            coordinates=coordinates,
            created_at=_as_utc(row.created_at),  # type: ignore[arg-type]
            updated_at=_as_utc(row.updated_at),  # type: ignore[arg-type]
        )

    async def stats(self) -> CacheStats:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(
                        func.count(GeocodeCache.address_fingerprint).label("total_entries"),
                        func.min(GeocodeCache.created_at).label("oldest_entry"),
                        func.max(GeocodeCache.created_at).label("newest_entry"),
                        func.max(GeocodeCache.updated_at).label("last_updated"),
                    )
                )
                row = result.one()
        except (SQLAlchemyError, OSError) as e:
            raise CacheIOError(f"Cache statistics query failed: {e}") from e

        return CacheStats(
            total_entries=row.total_entries,
            oldest_entry=_as_utc(row.oldest_entry),
            newest_entry=_as_utc(row.newest_entry),
            last_updated=_as_utc(row.last_updated),
        )

    async def clear(self) -> int:
        try:
            async with self._session_factory() as session:
                result = await session.execute(delete(GeocodeCache))
                await session.commit()
        except (SQLAlchemyError, OSError) as e:
            raise CacheIOError(f"Cache clear failed: {e}") from e
        removed = result.rowcount or 0
        logger.info(f"Cleared {removed} geocode cache entries")
        return removed


class MemoizingCacheStore(CacheStore):
    """In-process TTL cache in front of another store.

    Memory is populated from inner-store hits and after successful inner
    writes, so it never holds anything the durable store rejected.  Writes made
    to the inner store by other processes are not seen here until the local
    copy expires, so ``ttl`` bounds how stale an entry can be.
    """

    def __init__(self, inner: CacheStore, maxsize: int = 10_000, ttl: float = 300) -> None:
        self._inner = inner
        self._memory: TTLCache[str, GeocodeCacheEntry] = TTLCache(maxsize=maxsize, ttl=ttl)
        self._hits = 0
        self._misses = 0

    async def get(self, fingerprint: str) -> GeocodeCacheEntry | None:
        entry = self._memory.get(fingerprint)
        if entry is not None:
            self._hits += 1
            return replace(entry, origin="memory")

        self._misses += 1
        entry = await self._inner.get(fingerprint)
        if entry is not None:
            self._memory[fingerprint] = entry
        return entry

    async def put(self, fingerprint: str, original_address: str, coordinates: CoordinatePair) -> GeocodeCacheEntry:
        entry = await self._inner.put(fingerprint, original_address, coordinates)
        self._memory[fingerprint] = entry
        return entry

    async def stats(self) -> CacheStats:
        inner_stats = await self._inner.stats()
        return replace(
            inner_stats,
            memory=MemoryCacheStats(hits=self._hits, misses=self._misses, size=len(self._memory)),
        )

    async def clear(self) -> int:
        self._memory.clear()
        return await self._inner.clear()
