"""Application configuration via Pydantic Settings.

All configuration is loaded from environment variables following 12-factor principles.
"""

import re

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str = Field(
        description="SQLAlchemy async connection string (postgresql+asyncpg or sqlite+aiosqlite)",
    )
    database_schema: str | None = Field(
        default=None,
        description="PostgreSQL schema for isolated environments (e.g., pr_42)",
    )

    @field_validator("database_schema")
    @classmethod
    def validate_database_schema(cls, v: str | None) -> str | None:
        if v is None:
            return None
        if not re.match(r"^[a-z_][a-z0-9_]{0,62}$", v):
            msg = "Invalid database_schema: must match ^[a-z_][a-z0-9_]{0,62}$"
            raise ValueError(msg)
        return v

    # Geocoding: provider selection
    geocoder_provider: str = Field(
        default="google",
        description="Upstream geocoding provider (google or nominatim)",
    )

    @field_validator("geocoder_provider")
    @classmethod
    def validate_geocoder_provider(cls, v: str) -> str:
        return v.strip().lower()

    geocoder_timeout: float = Field(
        default=10.0,
        description="Timeout in seconds for a single upstream geocoding call",
        gt=0,
    )
    geocoder_retry_attempts: int = Field(
        default=2,
        description="Attempts per address when the provider is unavailable (1 disables retry)",
        ge=1,
        le=5,
    )
    geocoder_retry_backoff: float = Field(
        default=0.5,
        description="Base delay in seconds between retry attempts (doubles per attempt)",
        ge=0,
    )

    # Geocoding: Google Maps
    geocoder_google_api_key: str | None = Field(
        default=None,
        description="Google Maps Geocoding API key (server-side key)",
    )
    geocoder_google_region: str = Field(
        default="ca",
        description="ccTLD region bias passed to the Google Geocoding API",
    )

    # Geocoding: Nominatim (OpenStreetMap)
    geocoder_nominatim_email: str = Field(
        default="",
        description="Email for Nominatim usage policy compliance",
    )
    geocoder_nominatim_user_agent: str = Field(
        default="directory-api/0.1",
        description="User-Agent header sent to Nominatim",
    )

    # Geocoding: fallback location
    geocoder_fallback_latitude: float = Field(
        default=45.5017,
        description="Latitude returned when an address cannot be resolved upstream",
        ge=-90,
        le=90,
    )
    geocoder_fallback_longitude: float = Field(
        default=-73.5673,
        description="Longitude returned when an address cannot be resolved upstream",
        ge=-180,
        le=180,
    )

    # Geocoding: batch pacing
    geocoder_batch_max_size: int = Field(
        default=50,
        description="Maximum number of addresses accepted in one batch request",
        gt=0,
        le=1000,
    )
    geocoder_batch_concurrency: int = Field(
        default=5,
        description="Maximum batch items resolving at the same time",
        gt=0,
    )
    geocoder_dispatch_interval: float = Field(
        default=0.1,
        description="Minimum seconds between dispatching two batch items",
        ge=0,
    )

    # Geocoding: in-process memo in front of the database cache
    geocoder_memory_cache_size: int = Field(
        default=10_000,
        description="Maximum entries held in the in-process cache (0 disables it)",
        ge=0,
    )
    geocoder_memory_cache_ttl: int = Field(
        default=300,
        description=(
            "Seconds an entry stays in the in-process cache. Overrides saved by another worker or by the CLI "
            "are only seen by this process once its copy expires"
        ),
        gt=0,
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    log_dir: str | None = Field(
        default=None,
        description="Directory for log files (enables file logging with 24h rotation when set)",
    )
    log_json: bool = Field(
        default=False,
        description="Write stderr logs as serialized JSON records",
    )

    # CORS
    cors_origins: str = Field(
        default="",
        description="Comma-separated list of allowed CORS origins (must be explicitly configured)",
    )
    cors_origin_regex: str = Field(
        default="",
        description="Regex pattern for allowed CORS origins",
    )

    @property
    def cors_origin_list(self) -> list[str]:
        """Parse CORS origins string into a list."""
        if not self.cors_origins.strip():
            return []
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    # API
    api_prefix: str = Field(
        default="/api/geocoding",
        description="Prefix for the geocoding routes",
    )


def get_settings() -> Settings:
    """Create and return application settings."""
    return Settings()  # type: ignore[call-arg]
