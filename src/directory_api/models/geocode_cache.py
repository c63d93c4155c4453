"""GeocodeCache model: permanent store of real geocoding results keyed by address fingerprint."""

from sqlalchemy import Double, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from directory_api.models.base import Base, TimestampMixin

# Hex length of the SHA-256 address fingerprint
FINGERPRINT_LENGTH = 64


class GeocodeCache(Base, TimestampMixin):
    """One resolved (never fallback) coordinate pair per normalized address."""

    __tablename__ = "geocode_cache"

    address_fingerprint: Mapped[str] = mapped_column(String(FINGERPRINT_LENGTH), primary_key=True)
    original_address: Mapped[str] = mapped_column(Text, nullable=False)
    latitude: Mapped[float] = mapped_column(Double, nullable=False)
    longitude: Mapped[float] = mapped_column(Double, nullable=False)

    __table_args__ = (Index("ix_geocode_cache_updated_at", "updated_at"),)
