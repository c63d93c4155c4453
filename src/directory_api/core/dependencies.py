"""FastAPI dependency injection for settings and the geocoding components.

The resolver, batch resolver and cache store are built once in the
application lifespan and stored on ``app.state``; these dependencies hand
them to route handlers.
"""

from fastapi import Request

from directory_api.core.config import Settings
from directory_api.lib.geocoder import BatchResolver, GeocodeResolver


def get_app_settings(request: Request) -> Settings:
    """Return the settings the application was created with."""
    return request.app.state.settings


def get_resolver(request: Request) -> GeocodeResolver:
    """Return the shared single-address resolver."""
    return request.app.state.resolver


def get_batch_resolver(request: Request) -> BatchResolver:
    """Return the shared batch resolver."""
    return request.app.state.batch_resolver
