"""Geocoder library: address resolution with a durable positive-result cache.

Public API:
    - normalize_address / clean_address: Canonicalize freeform address text
    - address_fingerprint / fingerprint_for: SHA-256 cache keys
    - CoordinatePair: Latitude/longitude value type
    - BaseGeocodeProvider: Abstract provider interface
    - GoogleMapsProvider: Google Maps provider
    - NominatimProvider: OpenStreetMap Nominatim provider
    - GeocodingProviderError and subclasses: Provider error taxonomy
    - CacheStore / SQLAlchemyCacheStore / MemoizingCacheStore: Cache stores
    - GeocodeResolver: Single-address resolution with coalescing and fallback
    - BatchResolver: Ordered, paced bulk resolution
    - get_provider / build_provider / build_cache_store / build_resolvers: Factories
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from loguru import logger

from directory_api.lib.geocoder.address import (
    address_fingerprint,
    clean_address,
    fingerprint_for,
    normalize_address,
)
from directory_api.lib.geocoder.base import (
    BaseGeocodeProvider,
    CoordinatePair,
    GeocodingProviderError,
    InvalidAddressError,
    NoResultsError,
    ProviderMisconfiguredError,
    ProviderUnavailableError,
    QuotaExceededError,
)
from directory_api.lib.geocoder.batch import BatchOutcome, BatchResolver
from directory_api.lib.geocoder.cache import (
    CacheIOError,
    CacheStats,
    CacheStore,
    GeocodeCacheEntry,
    MemoizingCacheStore,
    MemoryCacheStats,
    SQLAlchemyCacheStore,
)
from directory_api.lib.geocoder.google_maps import GoogleMapsProvider
from directory_api.lib.geocoder.nominatim import NominatimProvider
from directory_api.lib.geocoder.resolver import GeocodeResolver, Resolution

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from directory_api.core.config import Settings

# Provider registry: all known providers
_PROVIDERS: dict[str, type[BaseGeocodeProvider]] = {
    "google": GoogleMapsProvider,
    "nominatim": NominatimProvider,
}


def get_available_providers() -> list[str]:
    """Return the names of all registered providers, sorted."""
    return sorted(_PROVIDERS.keys())


def get_provider(provider: str = "google", **kwargs: Any) -> BaseGeocodeProvider:
    """Get a provider instance by name.

    Args:
        provider: Provider name (e.g., "google").
        **kwargs: Forwarded to the provider constructor (e.g., ``timeout=2.0``).

    Returns:
        An instance of the requested provider.

    Raises:
        ValueError: If the provider is not registered.
    """
    cls = _PROVIDERS.get(provider)
    if cls is None:
        msg = f"Unknown geocoder provider: {provider!r}. Available: {get_available_providers()}"
        raise ValueError(msg)
    return cls(**kwargs)


def build_provider(settings: Settings) -> BaseGeocodeProvider:
    """Instantiate the provider selected by ``settings.geocoder_provider``.

    A provider that lacks credentials is logged and still returned; it reports
    ``ProviderMisconfiguredError`` on first use so the failure is loud and
    attributable rather than a startup crash.
    """
    provider_kwargs: dict[str, dict[str, Any]] = {
        "google": {
            "api_key": settings.geocoder_google_api_key,
            "timeout": settings.geocoder_timeout,
            "region": settings.geocoder_google_region,
        },
        "nominatim": {
            "timeout": settings.geocoder_timeout,
            "email": settings.geocoder_nominatim_email,
            "user_agent": settings.geocoder_nominatim_user_agent,
        },
    }
    name = settings.geocoder_provider
    provider = get_provider(name, **provider_kwargs.get(name, {}))
    if provider.requires_api_key and not provider.is_configured:
        logger.warning(f"Geocoder provider {name!r} has no API key; geocoding requests will fail until one is set")
    return provider


def build_cache_store(settings: Settings, session_factory: async_sessionmaker[AsyncSession]) -> CacheStore:
    """Durable store, wrapped in the in-process layer unless it is disabled."""
    store: CacheStore = SQLAlchemyCacheStore(session_factory)
    if settings.geocoder_memory_cache_size > 0:
        store = MemoizingCacheStore(
            store,
            maxsize=settings.geocoder_memory_cache_size,
            ttl=settings.geocoder_memory_cache_ttl,
        )
    return store


def build_resolvers(
    settings: Settings,
    cache: CacheStore,
    provider: BaseGeocodeProvider | None = None,
) -> tuple[GeocodeResolver, BatchResolver]:
    """Wire a resolver and a batch resolver sharing one cache and in-flight table."""
    resolver = GeocodeResolver(
        provider or build_provider(settings),
        cache,
        CoordinatePair(
            latitude=settings.geocoder_fallback_latitude,
            longitude=settings.geocoder_fallback_longitude,
        ),
        timeout=settings.geocoder_timeout,
        retry_attempts=settings.geocoder_retry_attempts,
        retry_backoff=settings.geocoder_retry_backoff,
    )
    batch = BatchResolver(
        resolver,
        concurrency=settings.geocoder_batch_concurrency,
        dispatch_interval=settings.geocoder_dispatch_interval,
    )
    return resolver, batch


__all__ = [
    "BaseGeocodeProvider",
    "BatchOutcome",
    "BatchResolver",
    "CacheIOError",
    "CacheStats",
    "CacheStore",
    "CoordinatePair",
    "GeocodeCacheEntry",
    "GeocodeResolver",
    "GeocodingProviderError",
    "GoogleMapsProvider",
    "InvalidAddressError",
    "MemoizingCacheStore",
    "MemoryCacheStats",
    "NoResultsError",
    "NominatimProvider",
    "ProviderMisconfiguredError",
    "ProviderUnavailableError",
    "QuotaExceededError",
    "Resolution",
    "SQLAlchemyCacheStore",
    "address_fingerprint",
    "build_cache_store",
    "build_provider",
    "build_resolvers",
    "clean_address",
    "fingerprint_for",
    "get_available_providers",
    "get_provider",
    "normalize_address",
]
