"""OpenStreetMap Nominatim geocoder provider.

Uses the Nominatim API (https://nominatim.org/release-docs/develop/api/Search/)
for address-to-coordinate resolution. Free but rate-limited to 1 req/sec.
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

NOMINATIM_API_URL = "https://nominatim.openstreetmap.org/search"
DEFAULT_TIMEOUT = 10.0
DEFAULT_USER_AGENT = "directory-api/0.1"


class NominatimProvider(BaseGeocodeProvider):
    """OpenStreetMap Nominatim geocoder provider."""

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        email: str = "",
        user_agent: str = DEFAULT_USER_AGENT,
    ) -> None:
        self._timeout = timeout
        self._email = email
        self._user_agent = user_agent

    @property
    def provider_name(self) -> str:
        return "nominatim"

    @property
    def rate_limit_delay(self) -> float:
        return 1.0

    async def geocode(self, address: str) -> CoordinatePair:
        """Geocode an address using the Nominatim API.

        Args:
            address: Address string.

        Returns:
            Coordinates of the best match.

        Raises:
            QuotaExceededError: HTTP 429 from the public instance.
            ProviderMisconfiguredError: HTTP 403 (blocked or missing identity).
            NoResultsError: Empty result list.
            ProviderUnavailableError: On transport or service errors.
        """
        params: dict[str, str | int] = {
            "q": address,
            "format": "json",
            "limit": 1,
        }
        if self._email:
            params["email"] = self._email

        headers = {"User-Agent": self._user_agent}

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.get(NOMINATIM_API_URL, params=params, headers=headers)
                response.raise_for_status()

            data = response.json()
        except httpx.TimeoutException as e:
            logger.warning("Nominatim geocoder timeout for address (redacted)")
            raise ProviderUnavailableError("nominatim", "Geocoding request timed out") from e
        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            logger.warning(f"Nominatim geocoder HTTP error {status_code}")
            if status_code == 429:
                raise QuotaExceededError("nominatim", "Provider rate limit reached", status_code=status_code) from e
            if status_code == 403:
                raise ProviderMisconfiguredError(
                    "nominatim", "Provider refused the request (check user agent/email)", status_code=status_code
                ) from e
            raise ProviderUnavailableError(
                "nominatim", f"Provider returned HTTP {status_code}", status_code=status_code
            ) from e
        except httpx.RequestError as e:
            logger.warning(f"Nominatim geocoder request error: {type(e).__name__}")
            raise ProviderUnavailableError("nominatim", "Request to geocoding provider failed") from e
        except ValueError as e:
            raise ProviderUnavailableError("nominatim", "Provider returned a malformed response") from e

        return self._parse_response(data)

    def _parse_response(self, data: object) -> CoordinatePair:
        """Parse Nominatim API response (a list of places) into coordinates."""
        if not isinstance(data, list):
            raise ProviderUnavailableError("nominatim", "Provider returned a malformed response")
        if not data:
            raise NoResultsError("nominatim", "No match")

        best = data[0]
        try:
            return CoordinatePair(latitude=float(best["lat"]), longitude=float(best["lon"]))
        except (KeyError, ValueError, TypeError) as e:
            logger.warning(f"Failed to parse Nominatim response: {e}")
            raise ProviderUnavailableError("nominatim", f"Failed to parse response: {e}") from e
