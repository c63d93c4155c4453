"""Shared test fixtures: settings, async SQLite engine, stub provider, and in-memory cache store."""

import asyncio
from collections.abc import AsyncGenerator
from datetime import UTC, datetime

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from directory_api.core.config import Settings
from directory_api.lib.geocoder.base import BaseGeocodeProvider, CoordinatePair
from directory_api.lib.geocoder.cache import CacheIOError, CacheStats, CacheStore, GeocodeCacheEntry
from directory_api.lib.geocoder.resolver import GeocodeResolver
from directory_api.models.base import Base

MONTREAL = CoordinatePair(latitude=45.5017, longitude=-73.5673)
MAIN_ST = CoordinatePair(latitude=45.50, longitude=-73.57)

_AsyncClient = httpx.AsyncClient


def garbled_gzip_client(**kwargs: object) -> httpx.AsyncClient:
    """Real ``AsyncClient`` whose every response claims gzip but carries a plain body."""
    transport = httpx.MockTransport(
        lambda request: httpx.Response(200, headers={"content-encoding": "gzip"}, content=b"definitely not gzip")
    )
    return _AsyncClient(transport=transport, **kwargs)  # type: ignore[arg-type]


class StubProvider(BaseGeocodeProvider):
    """Scriptable provider that records every call.

    Outcomes are taken from ``queue`` first (in order), then ``results`` keyed
    by the exact address received, then ``default``.  An outcome that is an
    exception instance is raised.  When ``gate`` is set, calls block until it
    is released.
    """

    def __init__(self, name: str = "stub", rate_limit_delay: float = 0.0) -> None:
        self.name = name
        self.calls: list[str] = []
        self.queue: list[CoordinatePair | Exception] = []
        self.results: dict[str, CoordinatePair | Exception] = {}
        self.default: CoordinatePair | Exception = MAIN_ST
        self.gate: asyncio.Event | None = None
        self.delay = 0.0
        self._rate_limit_delay = rate_limit_delay

    @property
    def provider_name(self) -> str:
        return self.name

    @property
    def rate_limit_delay(self) -> float:
        return self._rate_limit_delay

    async def geocode(self, address: str) -> CoordinatePair:
        self.calls.append(address)
        if self.gate is not None:
            await self.gate.wait()
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.queue:
            outcome = self.queue.pop(0)
        else:
            outcome = self.results.get(address, self.default)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class DictCacheStore(CacheStore):
    """In-memory ``CacheStore`` with switchable read/write failures."""

    def __init__(self) -> None:
        self.entries: dict[str, GeocodeCacheEntry] = {}
        self.fail_reads = False
        self.fail_writes = False
        self.put_count = 0

    async def get(self, fingerprint: str) -> GeocodeCacheEntry | None:
        if self.fail_reads:
            raise CacheIOError("read failed")
        return self.entries.get(fingerprint)

    async def put(self, fingerprint: str, original_address: str, coordinates: CoordinatePair) -> GeocodeCacheEntry:
        if self.fail_writes:
            raise CacheIOError("write failed")
        self.put_count += 1
        now = datetime.now(UTC)
        existing = self.entries.get(fingerprint)
        entry = GeocodeCacheEntry(
            fingerprint=fingerprint,
            original_address=existing.original_address if existing else original_address,
            coordinates=coordinates,
            created_at=existing.created_at if existing else now,
            updated_at=now,
        )
        self.entries[fingerprint] = entry
        return entry

    async def stats(self) -> CacheStats:
        if self.fail_reads:
            raise CacheIOError("read failed")
        created = [e.created_at for e in self.entries.values()]
        return CacheStats(
            total_entries=len(self.entries),
            oldest_entry=min(created, default=None),
            newest_entry=max(created, default=None),
            last_updated=max((e.updated_at for e in self.entries.values()), default=None),
        )

    async def clear(self) -> int:
        removed = len(self.entries)
        self.entries.clear()
        return removed


@pytest.fixture
def settings() -> Settings:
    """Test application settings."""
    return Settings(
        _env_file=None,  # type: ignore[call-arg]
        database_url="sqlite+aiosqlite:///:memory:",
        geocoder_google_api_key="test-key",
        geocoder_retry_attempts=1,
        geocoder_retry_backoff=0.0,
        geocoder_dispatch_interval=0.0,
    )


@pytest.fixture
async def async_engine() -> AsyncGenerator[AsyncEngine]:
    """Create an in-memory async SQLite engine with the schema applied."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False, poolclass=StaticPool)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(async_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test engine."""
    return async_sessionmaker(async_engine, expire_on_commit=False)


@pytest.fixture
def stub_provider() -> StubProvider:
    """A provider that resolves every address to MAIN_ST unless scripted otherwise."""
    return StubProvider()


@pytest.fixture
def dict_cache() -> DictCacheStore:
    """An empty in-memory cache store."""
    return DictCacheStore()


@pytest.fixture
def resolver(stub_provider: StubProvider, dict_cache: DictCacheStore) -> GeocodeResolver:
    """Resolver over the stub provider and in-memory cache, no retries."""
    return GeocodeResolver(stub_provider, dict_cache, MONTREAL, timeout=1.0, retry_attempts=1, retry_backoff=0.0)
