"""Google Maps Geocoding API provider.

Uses the Google Maps Geocoding API
(https://developers.google.com/maps/documentation/geocoding/)
for address-to-coordinate resolution. Requires a server-side API key.
"""

import httpx
from loguru import logger

from directory_api.lib.geocoder.base import (
    BaseGeocodeProvider,
    CoordinatePair,
    NoResultsError,
    ProviderMisconfiguredError,
    ProviderUnavailableError,
    QuotaExceededError,
)

GOOGLE_API_URL = "https://maps.googleapis.com/maps/api/geocode/json"
DEFAULT_TIMEOUT = 10.0

_QUOTA_STATUSES = frozenset({"OVER_QUERY_LIMIT", "OVER_DAILY_LIMIT"})
_NO_RESULT_STATUSES = frozenset({"ZERO_RESULTS", "INVALID_REQUEST"})


class GoogleMapsProvider(BaseGeocodeProvider):
    """Google Maps geocoder provider."""

    def __init__(
        self,
        api_key: str | None,
        timeout: float = DEFAULT_TIMEOUT,
        region: str = "ca",
    ) -> None:
        self._api_key = api_key or ""
        self._timeout = timeout
        self._region = region

    @property
    def provider_name(self) -> str:
        return "google"

    @property
    def requires_api_key(self) -> bool:
        return True

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key)

    async def geocode(self, address: str) -> CoordinatePair:
        """Geocode an address using the Google Maps API.

        Args:
            address: Address string.

        Returns:
            Coordinates of the best match.

        Raises:
            ProviderMisconfiguredError: No API key, or the key was rejected.
            QuotaExceededError: Google reported a query or daily limit.
            NoResultsError: Google found no match.
            ProviderUnavailableError: On transport, service, or parsing errors.
        """
        if not self.is_configured:
            raise ProviderMisconfiguredError("google", "GEOCODER_GOOGLE_API_KEY is not configured")

        params = {
            "address": address,
            "key": self._api_key,
            "region": self._region,
        }

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.get(GOOGLE_API_URL, params=params)
                response.raise_for_status()

            data = response.json()
        except httpx.TimeoutException as e:
            logger.warning("Google Maps geocoder timeout for address (redacted)")
            raise ProviderUnavailableError("google", "Geocoding request timed out") from e
        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            logger.warning(f"Google Maps geocoder HTTP error {status_code}")
            if status_code == 429:
                raise QuotaExceededError("google", "Provider rate limit reached", status_code=status_code) from e
            if status_code in (401, 403):
                raise ProviderMisconfiguredError(
                    "google", f"Provider rejected credentials (HTTP {status_code})", status_code=status_code
                ) from e
            raise ProviderUnavailableError(
                "google", f"Provider returned HTTP {status_code}", status_code=status_code
            ) from e
        except httpx.RequestError as e:
            logger.warning(f"Google Maps geocoder request error: {type(e).__name__}")
            raise ProviderUnavailableError("google", "Request to geocoding provider failed") from e
        except ValueError as e:
            logger.warning("Google Maps geocoder returned a non-JSON body")
            raise ProviderUnavailableError("google", "Provider returned a malformed response") from e

        return self._parse_response(data)

    def _parse_response(self, data: object) -> CoordinatePair:
        """Parse a Google Maps API response body.

        Args:
            data: Decoded JSON response.

        Returns:
            Coordinates of the first result.

        Raises:
            GeocodingProviderError: Subclass matching the API status.
        """
        if not isinstance(data, dict):
            raise ProviderUnavailableError("google", "Provider returned a malformed response")

        api_status = data.get("status", "UNKNOWN")
        detail = data.get("error_message", api_status)

        if api_status in _NO_RESULT_STATUSES:
            raise NoResultsError("google", f"No match ({api_status})")
        if api_status in _QUOTA_STATUSES:
            raise QuotaExceededError("google", f"API error: {detail}")
        if api_status == "REQUEST_DENIED":
            raise ProviderMisconfiguredError("google", f"API error: {detail}")
        if api_status != "OK":
            raise ProviderUnavailableError("google", f"Unexpected API status: {api_status}")

        results = data.get("results") or []
        if not results:
            raise NoResultsError("google", "No match (empty results)")

        try:
            location = results[0]["geometry"]["location"]
            return CoordinatePair(latitude=float(location["lat"]), longitude=float(location["lng"]))
        except (KeyError, ValueError, TypeError) as e:
            logger.warning(f"Failed to parse Google Maps response: {e}")
            raise ProviderUnavailableError("google", f"Failed to parse response: {e}") from e
