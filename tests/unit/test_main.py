"""Tests for the FastAPI application factory module."""

import json
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from directory_api.core.config import Settings
from directory_api.lib.geocoder import BatchResolver, GeocodeResolver, MemoizingCacheStore
from directory_api.main import create_app, lifespan


class TestCreateApp:
    """Tests for create_app."""

    @pytest.fixture
    def app(self, settings: Settings):
        return create_app(settings)

    def test_app_is_created(self, app) -> None:
        assert app.title == "Directory Geocoding API"
        assert app.state.settings.geocoder_google_api_key == "test-key"

    def test_settings_loaded_when_omitted(self, settings: Settings) -> None:
        with patch("directory_api.main.get_settings", return_value=settings) as mock_settings:
            app = create_app()
        mock_settings.assert_called_once()
        assert app.state.settings is settings

    def test_routes_mounted_under_prefix(self, app) -> None:
        paths = {route.path for route in app.routes}
        assert "/api/geocoding/geocode" in paths
        assert "/api/geocoding/batch-geocode" in paths
        assert "/api/geocoding/cache-stats" in paths
        assert "/api/geocoding/save-result" in paths

    def test_app_has_openapi_schema(self, app) -> None:
        client = TestClient(app, raise_server_exceptions=False)
        response = client.get("/openapi.json")
        assert response.status_code == 200
        assert response.json()["info"]["title"] == "Directory Geocoding API"

    async def test_value_error_handler_returns_400(self, app) -> None:
        handler = app.exception_handlers.get(ValueError)
        assert handler is not None
        response = await handler(None, ValueError("latitude must be between -90 and 90"))
        assert response.status_code == 400
        assert json.loads(response.body) == {"success": False, "error": "latitude must be between -90 and 90"}


class TestLifespan:
    """Tests for the application lifespan."""

    async def test_lifespan_builds_components(self, settings: Settings) -> None:
        app = create_app(settings)
        async with lifespan(app):
            assert isinstance(app.state.resolver, GeocodeResolver)
            assert isinstance(app.state.batch_resolver, BatchResolver)
            assert app.state.batch_resolver.resolver is app.state.resolver
            assert isinstance(app.state.resolver.cache, MemoizingCacheStore)
            assert app.state.resolver.provider.provider_name == "google"

    async def test_lifespan_disposes_engine(self, settings: Settings) -> None:
        app = create_app(settings)
        with patch("sqlalchemy.ext.asyncio.AsyncEngine.dispose") as mock_dispose:
            async with lifespan(app):
                pass
        mock_dispose.assert_awaited_once()
