"""Root API router and middleware registration."""

from fastapi import APIRouter, FastAPI

from directory_api.api.middleware import SecurityHeadersMiddleware, setup_cors
from directory_api.core.config import Settings


def create_router(settings: Settings) -> APIRouter:
    """Create the root API router mounted at ``settings.api_prefix``.

    Args:
        settings: Application settings.

    Returns:
        Configured API router.
    """
    from directory_api.api.v1.geocoding import geocoding_router

    root_router = APIRouter(prefix=settings.api_prefix)
    root_router.include_router(geocoding_router)
    return root_router


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Register all middleware on the FastAPI app."""
    setup_cors(app, settings)
    app.add_middleware(SecurityHeadersMiddleware)
