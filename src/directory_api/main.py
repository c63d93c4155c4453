"""FastAPI application factory.

Creates the FastAPI app with lifespan management, exception handlers,
and OpenAPI metadata.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from directory_api.core.config import Settings, get_settings
from directory_api.core.database import build_engine, build_session_factory
from directory_api.core.logging import setup_logging
from directory_api.lib.geocoder import build_cache_store, build_resolvers


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Build the engine, cache store and resolvers on startup; dispose the engine on shutdown."""
    settings: Settings = app.state.settings
    setup_logging(settings.log_level, settings.log_dir, json_output=settings.log_json)

    engine = build_engine(settings.database_url, schema=settings.database_schema)
    cache = build_cache_store(settings, build_session_factory(engine))
    resolver, batch_resolver = build_resolvers(settings, cache)

    app.state.engine = engine
    app.state.resolver = resolver
    app.state.batch_resolver = batch_resolver

    yield

    await engine.dispose()


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Settings to use; loaded from the environment when omitted.

    Returns:
        Configured FastAPI application instance.
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="Directory Geocoding API",
        description="Address geocoding with a durable cache for the artist, studio and gallery directory",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings

    # Register exception handlers
    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={"success": False, "error": str(exc)},
        )

    # Register middleware and routers
    from directory_api.api.router import create_router, setup_middleware

    setup_middleware(app, settings)
    app.include_router(create_router(settings))

    return app
