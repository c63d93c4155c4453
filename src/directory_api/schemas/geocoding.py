"""Pydantic v2 schemas for the geocoding endpoints."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from directory_api.lib.geocoder import BatchOutcome, CacheStats, GeocodeCacheEntry, Resolution


class Location(BaseModel):
    """A WGS84 point in the ``{lat, lng}`` shape map clients expect."""

    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class ErrorResponse(BaseModel):
    """Failure body shared by every geocoding endpoint."""

    success: bool = False
    error: str = Field(description="Human-readable error message")


# --- Single-address geocoding ---


class GeocodeRequest(BaseModel):
    """Request for POST /geocode."""

    address: str = Field(..., max_length=500, description="Freeform address to geocode")


class GeocodeResponse(BaseModel):
    """Response for POST /geocode.

    ``fallback`` is true when the provider could not resolve the address and
    the configured default location was returned instead; such results are
    never cached.
    """

    success: bool = True
    address: str
    location: Location
    cached: bool
    fallback: bool
    source: str | None = None
    fallback_reason: str | None = None

    @classmethod
    def from_resolution(cls, address: str, resolution: Resolution) -> "GeocodeResponse":
        return cls(
            address=address,
            location=Location(lat=resolution.coordinates.latitude, lng=resolution.coordinates.longitude),
            cached=resolution.cached,
            fallback=resolution.fallback,
            source=resolution.source,
            fallback_reason=resolution.fallback_reason,
        )


# --- Batch geocoding ---


class BatchGeocodeRequest(BaseModel):
    """Request for POST /batch-geocode."""

    addresses: list[str] = Field(..., min_length=1, description="Freeform addresses, resolved in order")


class BatchGeocodeItem(BaseModel):
    """One positional entry of a batch response."""

    success: bool
    address: str
    location: Location | None = None
    cached: bool = False
    fallback: bool = False
    source: str | None = None
    error: str | None = None

    @classmethod
    def from_outcome(cls, outcome: BatchOutcome) -> "BatchGeocodeItem":
        resolution = outcome.resolution
        if resolution is None:
            return cls(success=False, address=outcome.address, error=outcome.error)
        return cls(
            success=True,
            address=outcome.address,
            location=Location(lat=resolution.coordinates.latitude, lng=resolution.coordinates.longitude),
            cached=resolution.cached,
            fallback=resolution.fallback,
            source=resolution.source,
        )


class BatchGeocodeResponse(BaseModel):
    """Response for POST /batch-geocode; ``results`` matches the request order."""

    success: bool = True
    results: list[BatchGeocodeItem]


# --- Cache statistics ---


class MemoryCacheStatsResponse(BaseModel):
    """In-process cache counters."""

    hits: int
    misses: int
    size: int


class CacheStatsResponse(BaseModel):
    """Response for GET /cache-stats."""

    success: bool = True
    total_entries: int
    oldest_entry: datetime | None = None
    newest_entry: datetime | None = None
    last_updated: datetime | None = None
    memory: MemoryCacheStatsResponse | None = None
    in_flight: int = 0

    @classmethod
    def from_stats(cls, stats: CacheStats, in_flight: int = 0) -> "CacheStatsResponse":
        memory = None
        if stats.memory is not None:
            memory = MemoryCacheStatsResponse(
                hits=stats.memory.hits,
                misses=stats.memory.misses,
                size=stats.memory.size,
            )
        return cls(
            total_entries=stats.total_entries,
            oldest_entry=stats.oldest_entry,
            newest_entry=stats.newest_entry,
            last_updated=stats.last_updated,
            memory=memory,
            in_flight=in_flight,
        )


# --- Manual override ---


class SaveResultRequest(BaseModel):
    """Request for POST /save-result: store a known coordinate for an address."""

    model_config = ConfigDict(populate_by_name=True)

    studio_id: str = Field(..., alias="studioId", min_length=1)
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    address: str = Field(..., max_length=500)


class SaveResultResponse(BaseModel):
    """Response for POST /save-result."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    studio_id: str = Field(..., alias="studioId")
    address: str
    location: Location
    updated_at: datetime

    @classmethod
    def from_entry(cls, studio_id: str, entry: GeocodeCacheEntry) -> "SaveResultResponse":
        return cls(
            studio_id=studio_id,
            address=entry.original_address,
            location=Location(lat=entry.coordinates.latitude, lng=entry.coordinates.longitude),
            updated_at=entry.updated_at,
        )
