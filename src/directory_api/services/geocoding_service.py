"""Geocoding service: route-facing orchestration over the resolver and cache store."""

from loguru import logger

from directory_api.lib.geocoder import BatchResolver, CoordinatePair, GeocodeResolver
from directory_api.schemas.geocoding import (
    BatchGeocodeItem,
    BatchGeocodeResponse,
    CacheStatsResponse,
    GeocodeResponse,
    SaveResultResponse,
)


class BatchTooLargeError(ValueError):
    """Raised when a batch request exceeds the configured maximum size."""

    def __init__(self, size: int, limit: int) -> None:
        self.size = size
        self.limit = limit
        super().__init__(f"Maximum {limit} addresses per batch (got {size})")


async def geocode_address(resolver: GeocodeResolver, address: str) -> GeocodeResponse:
    """Resolve a single address.

    Args:
        resolver: The shared resolver.
        address: Raw freeform address from the client.

    Returns:
        The response body; ``fallback`` is set when the provider could not
        resolve the address.

    Raises:
        InvalidAddressError: Blank input.
        ProviderMisconfiguredError: Provider credentials are missing or rejected.
    """
    resolution = await resolver.resolve(address)
    return GeocodeResponse.from_resolution(address.strip(), resolution)


async def batch_geocode(batch: BatchResolver, addresses: list[str], max_size: int) -> BatchGeocodeResponse:
    """Resolve a list of addresses, preserving order and duplicates.

    Args:
        batch: The shared batch resolver.
        addresses: Raw addresses, resolved in order.
        max_size: Largest accepted batch.

    Returns:
        One result per input address, in input order.

    Raises:
        BatchTooLargeError: More than ``max_size`` addresses were submitted.
        ProviderMisconfiguredError: Provider credentials are missing or rejected.
    """
    if len(addresses) > max_size:
        raise BatchTooLargeError(len(addresses), max_size)

    logger.info(f"Batch geocoding {len(addresses)} addresses")
    outcomes = await batch.resolve_all(addresses)
    return BatchGeocodeResponse(results=[BatchGeocodeItem.from_outcome(o) for o in outcomes])


async def get_cache_stats(resolver: GeocodeResolver) -> CacheStatsResponse:
    """Return cache statistics, including resolutions currently in flight.

    Raises:
        CacheIOError: The cache could not be queried.
    """
    stats = await resolver.cache.stats()
    return CacheStatsResponse.from_stats(stats, in_flight=resolver.in_flight)


async def save_result(
    resolver: GeocodeResolver,
    studio_id: str,
    address: str,
    latitude: float,
    longitude: float,
) -> SaveResultResponse:
    """Store a manually supplied coordinate for ``address`` on behalf of a studio.

    Subsequent resolutions of any equivalent address return this coordinate
    as a cache hit.

    Raises:
        InvalidAddressError: Blank address.
        ValueError: Coordinates out of range.
        CacheIOError: The override could not be stored.
    """
    coordinates = CoordinatePair(latitude=latitude, longitude=longitude)
    entry = await resolver.save(address, coordinates)
    logger.info(f"Saved geocode override for studio {studio_id}")
    return SaveResultResponse.from_entry(studio_id, entry)
