"""Single-address resolution: normalize, cache lookup, coalesced provider call, cache write, fallback.

Success is cached and fallback never is.  A quota hit or network failure
returns the configured fallback coordinate to the caller but leaves the cache
untouched, so the next resolution of that address goes back to the provider.
"""

import asyncio
from dataclasses import dataclass
from functools import partial

from loguru import logger

from directory_api.lib.geocoder.address import address_fingerprint, clean_address, normalize_address
from directory_api.lib.geocoder.base import (
    BaseGeocodeProvider,
    CoordinatePair,
    GeocodingProviderError,
    ProviderMisconfiguredError,
    ProviderUnavailableError,
)
from directory_api.lib.geocoder.cache import CacheIOError, CacheStore, GeocodeCacheEntry

FALLBACK_SOURCE = "fallback"


@dataclass(frozen=True)
class Resolution:
    """Outcome of resolving one address."""

    coordinates: CoordinatePair
    cached: bool
    fallback: bool
    source: str
    fallback_reason: str | None = None


class GeocodeResolver:
    """Resolves addresses through a cache and an upstream provider.

    Concurrent resolutions of the same fingerprint share one in-flight task,
    so at most one provider call per address is outstanding at a time.  The
    shared task is shielded: a caller that gives up does not cancel the
    resolution for the others, and a successful result still reaches the cache.

    Args:
        provider: Upstream geocoding provider.
        cache: Store for successful results.
        fallback: Coordinate returned when the provider cannot resolve an address.
        timeout: Upper bound in seconds for one provider call.
        retry_attempts: Attempts per resolution when the provider is unavailable.
        retry_backoff: Base delay between attempts; doubles after each one.
    """

    def __init__(
        self,
        provider: BaseGeocodeProvider,
        cache: CacheStore,
        fallback: CoordinatePair,
        *,
        timeout: float = 10.0,
        retry_attempts: int = 1,
        retry_backoff: float = 0.5,
    ) -> None:
        if retry_attempts < 1:
            msg = "retry_attempts must be >= 1"
            raise ValueError(msg)
        self.provider = provider
        self.cache = cache
        self.fallback = fallback
        self._timeout = timeout
        self._retry_attempts = retry_attempts
        self._retry_backoff = retry_backoff
        self._in_flight: dict[str, asyncio.Task[Resolution]] = {}

    @property
    def in_flight(self) -> int:
        """Number of fingerprints currently being resolved."""
        return len(self._in_flight)

    async def resolve(self, raw_address: str) -> Resolution:
        """Resolve one address.

        Args:
            raw_address: Freeform address text.

        Returns:
            The resolution, flagged ``cached`` or ``fallback`` as appropriate.

        Raises:
            InvalidAddressError: Blank input; raised before any I/O.
            ProviderMisconfiguredError: Provider credentials are missing or rejected.
        """
        address = clean_address(raw_address)
        fingerprint = address_fingerprint(normalize_address(address))

        task = self._in_flight.get(fingerprint)
        if task is None:
            task = asyncio.create_task(self._resolve_fingerprint(fingerprint, address))
            self._in_flight[fingerprint] = task
            task.add_done_callback(partial(self._forget, fingerprint))
        else:
            logger.debug(f"Joining in-flight resolution for fingerprint {fingerprint[:12]}")

        return await asyncio.shield(task)

    async def save(self, raw_address: str, coordinates: CoordinatePair) -> GeocodeCacheEntry:
        """Write a manually supplied coordinate for an address, bypassing the provider.

        Raises:
            InvalidAddressError: Blank input.
            CacheIOError: The override could not be stored.
        """
        address = clean_address(raw_address)
        fingerprint = address_fingerprint(normalize_address(address))
        entry = await self.cache.put(fingerprint, address, coordinates)
        logger.info(f"Stored manual geocode override for fingerprint {fingerprint[:12]}")
        return entry

    def _forget(self, fingerprint: str, task: asyncio.Task[Resolution]) -> None:
        if self._in_flight.get(fingerprint) is task:
            del self._in_flight[fingerprint]
        # Mark the exception retrieved even if every waiter went away
        if not task.cancelled() and task.exception() is not None:
            logger.debug(f"Resolution for fingerprint {fingerprint[:12]} ended with {task.exception()!r}")

    async def _resolve_fingerprint(self, fingerprint: str, address: str) -> Resolution:
        entry = await self._lookup(fingerprint)
        if entry is not None:
            return Resolution(coordinates=entry.coordinates, cached=True, fallback=False, source=entry.origin)

        try:
            coordinates = await self._call_provider(address)
        except ProviderMisconfiguredError as e:
            logger.error(f"Geocoding provider misconfigured: {e}")
            raise
        except GeocodingProviderError as e:
            logger.warning(f"Geocoding fell back for fingerprint {fingerprint[:12]} ({e.kind}): {e.message}")
            return Resolution(
                coordinates=self.fallback,
                cached=False,
                fallback=True,
                source=FALLBACK_SOURCE,
                fallback_reason=e.kind,
            )

        try:
            await self.cache.put(fingerprint, address, coordinates)
        except CacheIOError as e:
            logger.warning(f"Geocode result not cached for fingerprint {fingerprint[:12]}: {e}")

        return Resolution(
            coordinates=coordinates,
            cached=False,
            fallback=False,
            source=self.provider.provider_name,
        )

    async def _lookup(self, fingerprint: str) -> GeocodeCacheEntry | None:
        try:
            return await self.cache.get(fingerprint)
        except CacheIOError as e:
            logger.warning(f"Cache lookup failed, treating as miss: {e}")
            return None

    async def _call_provider(self, address: str) -> CoordinatePair:
        """Call the provider with a per-attempt timeout, retrying only unavailability."""
        attempt = 1
        while True:
            try:
                async with asyncio.timeout(self._timeout):
                    return await self.provider.geocode(address)
            except TimeoutError as e:
                if attempt >= self._retry_attempts:
                    raise ProviderUnavailableError(
                        self.provider.provider_name, f"No response within {self._timeout}s"
                    ) from e
            except ProviderUnavailableError:
                if attempt >= self._retry_attempts:
                    raise

            delay = self._retry_backoff * (2 ** (attempt - 1))
            logger.debug(f"Provider unavailable (attempt {attempt}/{self._retry_attempts}), retrying in {delay}s")
            await asyncio.sleep(delay)
            attempt += 1
