"""ORM model registry: import all models so Alembic autogenerate discovers them."""

from directory_api.models.geocode_cache import GeocodeCache

__all__ = [
    "GeocodeCache",
]
