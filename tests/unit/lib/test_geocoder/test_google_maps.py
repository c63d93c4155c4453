"""Unit tests for the Google Maps geocoder provider."""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from directory_api.lib.geocoder.base import (
    NoResultsError,
    ProviderMisconfiguredError,
    ProviderUnavailableError,
    QuotaExceededError,
)
from directory_api.lib.geocoder.google_maps import GOOGLE_API_URL, GoogleMapsProvider
from tests.conftest import garbled_gzip_client

ADDRESS = "1234 Main St, Montreal, Quebec"


def _ok_response(lat: float = 45.5, lng: float = -73.57) -> MagicMock:
    response = MagicMock()
    response.status_code = 200
    response.json.return_value = {
        "status": "OK",
        "results": [{"geometry": {"location": {"lat": lat, "lng": lng}}}],
    }
    response.raise_for_status = MagicMock()
    return response


def _http_error(status_code: int) -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.raise_for_status.side_effect = httpx.HTTPStatusError(
        f"HTTP {status_code}", request=MagicMock(), response=response
    )
    return response


class TestGoogleMapsResponseParsing:
    """Tests for Google Maps API response parsing."""

    def setup_method(self) -> None:
        self.provider = GoogleMapsProvider(api_key="test-key")

    def test_successful_match(self) -> None:
        data = {"status": "OK", "results": [{"geometry": {"location": {"lat": 45.5, "lng": -73.57}}}]}
        result = self.provider._parse_response(data)
        assert result.latitude == pytest.approx(45.5)
        assert result.longitude == pytest.approx(-73.57)

    def test_first_result_wins(self) -> None:
        data = {
            "status": "OK",
            "results": [
                {"geometry": {"location": {"lat": 1.0, "lng": 2.0}}},
                {"geometry": {"location": {"lat": 3.0, "lng": 4.0}}},
            ],
        }
        assert self.provider._parse_response(data).latitude == pytest.approx(1.0)

    @pytest.mark.parametrize("status", ["ZERO_RESULTS", "INVALID_REQUEST"])
    def test_no_results_statuses(self, status: str) -> None:
        with pytest.raises(NoResultsError):
            self.provider._parse_response({"status": status})

    @pytest.mark.parametrize("status", ["OVER_QUERY_LIMIT", "OVER_DAILY_LIMIT"])
    def test_quota_statuses(self, status: str) -> None:
        with pytest.raises(QuotaExceededError, match="API error"):
            self.provider._parse_response({"status": status, "error_message": "Quota exceeded"})

    def test_request_denied_is_misconfigured(self) -> None:
        with pytest.raises(ProviderMisconfiguredError, match="Invalid API key"):
            self.provider._parse_response({"status": "REQUEST_DENIED", "error_message": "Invalid API key"})

    def test_unknown_status_is_unavailable(self) -> None:
        with pytest.raises(ProviderUnavailableError, match="Unexpected API status"):
            self.provider._parse_response({"status": "UNKNOWN_ERROR"})

    def test_empty_results_is_no_results(self) -> None:
        with pytest.raises(NoResultsError):
            self.provider._parse_response({"status": "OK", "results": []})

    def test_missing_geometry_is_unavailable(self) -> None:
        with pytest.raises(ProviderUnavailableError, match="Failed to parse"):
            self.provider._parse_response({"status": "OK", "results": [{"formatted_address": "x"}]})

    def test_out_of_range_coordinates_are_unavailable(self) -> None:
        data = {"status": "OK", "results": [{"geometry": {"location": {"lat": 123.0, "lng": 0.0}}}]}
        with pytest.raises(ProviderUnavailableError, match="Failed to parse"):
            self.provider._parse_response(data)

    def test_non_dict_body_is_unavailable(self) -> None:
        with pytest.raises(ProviderUnavailableError):
            self.provider._parse_response(["not", "a", "dict"])


class TestGoogleMapsProviderHttp:
    """Tests for GoogleMapsProvider HTTP handling and error translation."""

    async def test_successful_geocode(self) -> None:
        provider = GoogleMapsProvider(api_key="test-key", region="ca")
        with patch("httpx.AsyncClient.get", new_callable=AsyncMock, return_value=_ok_response()) as mock_get:
            result = await provider.geocode(ADDRESS)

        assert result.latitude == pytest.approx(45.5)
        args, kwargs = mock_get.call_args
        assert args[0] == GOOGLE_API_URL
        assert kwargs["params"] == {"address": ADDRESS, "key": "test-key", "region": "ca"}

    async def test_missing_key_raises_without_http(self) -> None:
        provider = GoogleMapsProvider(api_key=None)
        with (
            patch("httpx.AsyncClient.get", new_callable=AsyncMock) as mock_get,
            pytest.raises(ProviderMisconfiguredError, match="GEOCODER_GOOGLE_API_KEY"),
        ):
            await provider.geocode(ADDRESS)
        mock_get.assert_not_called()

    async def test_timeout_is_unavailable(self) -> None:
        provider = GoogleMapsProvider(api_key="test-key", timeout=0.1)
        with (
            patch("httpx.AsyncClient.get", new_callable=AsyncMock, side_effect=httpx.TimeoutException("timed out")),
            pytest.raises(ProviderUnavailableError, match="timed out"),
        ):
            await provider.geocode(ADDRESS)

    async def test_connection_error_is_unavailable(self) -> None:
        provider = GoogleMapsProvider(api_key="test-key")
        with (
            patch("httpx.AsyncClient.get", new_callable=AsyncMock, side_effect=httpx.ConnectError("refused")),
            pytest.raises(ProviderUnavailableError, match="failed"),
        ):
            await provider.geocode(ADDRESS)

    @pytest.mark.parametrize(
        "error",
        [
            httpx.DecodingError("Error -3 while decompressing data"),
            httpx.TooManyRedirects("Exceeded maximum allowed redirects."),
        ],
    )
    async def test_non_transport_request_errors_are_unavailable(self, error: httpx.RequestError) -> None:
        provider = GoogleMapsProvider(api_key="test-key")
        with (
            patch("httpx.AsyncClient.get", new_callable=AsyncMock, side_effect=error),
            pytest.raises(ProviderUnavailableError),
        ):
            await provider.geocode(ADDRESS)

    async def test_undecodable_gzip_body_is_unavailable(self) -> None:
        provider = GoogleMapsProvider(api_key="test-key")
        with (
            patch("httpx.AsyncClient", side_effect=garbled_gzip_client),
            pytest.raises(ProviderUnavailableError) as exc_info,
        ):
            await provider.geocode(ADDRESS)
        assert isinstance(exc_info.value.__cause__, httpx.DecodingError)

    async def test_http_429_is_quota(self) -> None:
        provider = GoogleMapsProvider(api_key="test-key")
        with (
            patch("httpx.AsyncClient.get", new_callable=AsyncMock, return_value=_http_error(429)),
            pytest.raises(QuotaExceededError) as exc_info,
        ):
            await provider.geocode(ADDRESS)
        assert exc_info.value.status_code == 429

    @pytest.mark.parametrize("status_code", [401, 403])
    async def test_http_auth_errors_are_misconfigured(self, status_code: int) -> None:
        provider = GoogleMapsProvider(api_key="test-key")
        with (
            patch("httpx.AsyncClient.get", new_callable=AsyncMock, return_value=_http_error(status_code)),
            pytest.raises(ProviderMisconfiguredError),
        ):
            await provider.geocode(ADDRESS)

    @pytest.mark.parametrize("status_code", [400, 500, 503])
    async def test_other_http_errors_are_unavailable(self, status_code: int) -> None:
        provider = GoogleMapsProvider(api_key="test-key")
        with (
            patch("httpx.AsyncClient.get", new_callable=AsyncMock, return_value=_http_error(status_code)),
            pytest.raises(ProviderUnavailableError),
        ):
            await provider.geocode(ADDRESS)

    async def test_malformed_json_is_unavailable(self) -> None:
        provider = GoogleMapsProvider(api_key="test-key")
        response = _ok_response()
        response.json.side_effect = ValueError("Expecting value")
        with (
            patch("httpx.AsyncClient.get", new_callable=AsyncMock, return_value=response),
            pytest.raises(ProviderUnavailableError, match="malformed"),
        ):
            await provider.geocode(ADDRESS)


class TestGoogleMapsProperties:
    """Tests for GoogleMapsProvider base properties."""

    def test_provider_name(self) -> None:
        assert GoogleMapsProvider(api_key="key").provider_name == "google"

    def test_requires_api_key(self) -> None:
        assert GoogleMapsProvider(api_key="key").requires_api_key is True

    def test_is_configured_with_key(self) -> None:
        assert GoogleMapsProvider(api_key="valid-key").is_configured is True

    def test_is_not_configured_without_key(self) -> None:
        assert GoogleMapsProvider(api_key="").is_configured is False

    def test_no_rate_limit_delay(self) -> None:
        assert GoogleMapsProvider(api_key="key").rate_limit_delay == 0.0
