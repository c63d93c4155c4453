"""Abstract provider interface, coordinate type, and geocoding error taxonomy."""

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class CoordinatePair:
    """A WGS84 latitude/longitude pair."""

    latitude: float
    longitude: float

    def __post_init__(self) -> None:
        if not (math.isfinite(self.latitude) and math.isfinite(self.longitude)):
            msg = f"coordinates must be finite, got ({self.latitude}, {self.longitude})"
            raise ValueError(msg)
        if not (-90 <= self.latitude <= 90):
            msg = f"latitude must be between -90 and 90, got {self.latitude}"
            raise ValueError(msg)
        if not (-180 <= self.longitude <= 180):
            msg = f"longitude must be between -180 and 180, got {self.longitude}"
            raise ValueError(msg)


class InvalidAddressError(ValueError):
    """Raised for empty or whitespace-only address input, before any I/O."""


class GeocodingProviderError(Exception):
    """Base class for failures reported by an upstream geocoding provider.

    Args:
        provider_name: Name of the failing provider.
        message: Human-readable error description.
        status_code: Optional HTTP status code from the provider.
    """

    #: Short machine-readable kind, surfaced in API error payloads.
    kind = "provider_error"

    def __init__(self, provider_name: str, message: str, status_code: int | None = None) -> None:
        self.provider_name = provider_name
        self.message = message
        self.status_code = status_code
        super().__init__(f"{provider_name}: {message}")


class QuotaExceededError(GeocodingProviderError):
    """The upstream rate or quota limit was hit."""

    kind = "quota_exceeded"


class NoResultsError(GeocodingProviderError):
    """The address was accepted upstream but could not be mapped to a location."""

    kind = "no_results"


class ProviderUnavailableError(GeocodingProviderError):
    """Network failure, timeout, malformed response, or upstream 5xx."""

    kind = "unavailable"


class ProviderMisconfiguredError(GeocodingProviderError):
    """Missing or rejected credentials. Never degraded to a fallback."""

    kind = "misconfigured"


class BaseGeocodeProvider(ABC):
    """Abstract upstream geocoder. Implementations are stateless and never retry."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Unique name identifying this provider."""

    @property
    def requires_api_key(self) -> bool:
        """Whether this provider requires an API key to function."""
        return False

    @property
    def is_configured(self) -> bool:
        """Whether this provider has all required configuration (e.g., API keys)."""
        return True

    @property
    def rate_limit_delay(self) -> float:
        """Minimum delay in seconds between requests (for rate-limited providers)."""
        return 0.0

    @abstractmethod
    async def geocode(self, address: str) -> CoordinatePair:
        """Geocode a single address.

        Args:
            address: Address text as submitted by the caller.

        Returns:
            The resolved coordinates.

        Raises:
            QuotaExceededError: Upstream limit hit.
            NoResultsError: No match for the address.
            ProviderUnavailableError: Transport, timeout, or service error.
            ProviderMisconfiguredError: Credentials missing or rejected.
        """
