"""Geocoding API endpoints: single-address geocode, batch geocode, cache stats, and manual overrides."""

from typing import Annotated

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from loguru import logger

from directory_api.core.config import Settings
from directory_api.core.dependencies import get_app_settings, get_batch_resolver, get_resolver
from directory_api.lib.geocoder import (
    BatchResolver,
    CacheIOError,
    GeocodeResolver,
    InvalidAddressError,
    ProviderMisconfiguredError,
)
from directory_api.schemas.geocoding import (
    BatchGeocodeRequest,
    BatchGeocodeResponse,
    CacheStatsResponse,
    ErrorResponse,
    GeocodeRequest,
    GeocodeResponse,
    SaveResultRequest,
    SaveResultResponse,
)
from directory_api.services.geocoding_service import (
    BatchTooLargeError,
    batch_geocode,
    geocode_address,
    get_cache_stats,
    save_result,
)

geocoding_router = APIRouter(tags=["geocoding"])

_MISCONFIGURED_MESSAGE = "Geocoding service is not configured. Contact the administrator."
_CACHE_UNAVAILABLE_MESSAGE = "Geocode cache is temporarily unavailable. Please retry later."


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=message).model_dump())


@geocoding_router.post(
    "/geocode",
    response_model=GeocodeResponse,
    responses={422: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
)
async def geocode_endpoint(
    request: GeocodeRequest,
    resolver: Annotated[GeocodeResolver, Depends(get_resolver)],
) -> GeocodeResponse | JSONResponse:
    """Geocode a single freeform address, falling back to the default location when unresolvable."""
    try:
        return await geocode_address(resolver, request.address)
    except InvalidAddressError as e:
        return _error(status.HTTP_422_UNPROCESSABLE_ENTITY, str(e))
    except ProviderMisconfiguredError as e:
        logger.error(f"Geocode request rejected: {e}")
        return _error(status.HTTP_503_SERVICE_UNAVAILABLE, _MISCONFIGURED_MESSAGE)


@geocoding_router.post(
    "/batch-geocode",
    response_model=BatchGeocodeResponse,
    responses={422: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
)
async def batch_geocode_endpoint(
    request: BatchGeocodeRequest,
    batch: Annotated[BatchResolver, Depends(get_batch_resolver)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> BatchGeocodeResponse | JSONResponse:
    """Geocode a list of addresses; results are returned in request order."""
    try:
        return await batch_geocode(batch, request.addresses, settings.geocoder_batch_max_size)
    except BatchTooLargeError as e:
        return _error(status.HTTP_422_UNPROCESSABLE_ENTITY, str(e))
    except ProviderMisconfiguredError as e:
        logger.error(f"Batch geocode request rejected: {e}")
        return _error(status.HTTP_503_SERVICE_UNAVAILABLE, _MISCONFIGURED_MESSAGE)


@geocoding_router.get(
    "/cache-stats",
    response_model=CacheStatsResponse,
    responses={503: {"model": ErrorResponse}},
)
async def cache_stats_endpoint(
    resolver: Annotated[GeocodeResolver, Depends(get_resolver)],
) -> CacheStatsResponse | JSONResponse:
    """Return geocode cache statistics."""
    try:
        return await get_cache_stats(resolver)
    except CacheIOError as e:
        logger.error(f"Cache statistics unavailable: {e}")
        return _error(status.HTTP_503_SERVICE_UNAVAILABLE, _CACHE_UNAVAILABLE_MESSAGE)


@geocoding_router.post(
    "/save-result",
    response_model=SaveResultResponse,
    responses={422: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
)
async def save_result_endpoint(
    request: SaveResultRequest,
    resolver: Annotated[GeocodeResolver, Depends(get_resolver)],
) -> SaveResultResponse | JSONResponse:
    """Store a known coordinate for a studio address, overriding any cached result."""
    try:
        return await save_result(
            resolver,
            studio_id=request.studio_id,
            address=request.address,
            latitude=request.latitude,
            longitude=request.longitude,
        )
    except InvalidAddressError as e:
        return _error(status.HTTP_422_UNPROCESSABLE_ENTITY, str(e))
    except CacheIOError as e:
        logger.error(f"Manual geocode override failed: {e}")
        return _error(status.HTTP_503_SERVICE_UNAVAILABLE, _CACHE_UNAVAILABLE_MESSAGE)
