"""Geocoding CLI commands: resolve addresses, manual overrides, and cache administration."""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

import typer

from directory_api.core.config import get_settings
from directory_api.core.database import build_engine, build_session_factory
from directory_api.lib.geocoder import (
    BatchResolver,
    CacheIOError,
    CoordinatePair,
    GeocodeResolver,
    InvalidAddressError,
    ProviderMisconfiguredError,
    build_cache_store,
    build_provider,
    build_resolvers,
)

geocode_app = typer.Typer()


@asynccontextmanager
async def _open_resolvers() -> AsyncIterator[tuple[GeocodeResolver, BatchResolver]]:
    """Build a resolver pair over a fresh engine, disposing the engine afterwards."""
    settings = get_settings()
    engine = build_engine(settings.database_url, schema=settings.database_schema)
    try:
        cache = build_cache_store(settings, build_session_factory(engine))
        yield build_resolvers(settings, cache, build_provider(settings))
    finally:
        await engine.dispose()


@geocode_app.command("address")
def geocode_address(
    address: str = typer.Argument(..., help="Freeform address to geocode"),
) -> None:
    """Resolve one address and print its coordinates."""
    asyncio.run(_geocode_address(address))


@geocode_app.command("batch")
def batch_geocode(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="File with one address per line"),  # noqa: B008
) -> None:
    """Resolve every address in FILE, in order. Blank lines and lines starting with # are skipped."""
    addresses = [
        line.strip()
        for line in file.read_text(encoding="utf-8").splitlines()
        if line.strip() and not line.lstrip().startswith("#")
    ]
    if not addresses:
        typer.echo("No addresses found.")
        raise typer.Exit(code=1)
    asyncio.run(_batch_geocode(addresses))


@geocode_app.command("save")
def save_override(
    address: str = typer.Argument(..., help="Address the coordinates belong to"),
    lat: float = typer.Option(..., "--lat", min=-90, max=90, help="Latitude (-90 to 90)"),
    lng: float = typer.Option(..., "--lng", min=-180, max=180, help="Longitude (-180 to 180)"),
    studio_id: str | None = typer.Option(None, "--studio-id", help="Studio the address belongs to"),
) -> None:
    """Store a known coordinate for an address, overriding any cached result."""
    asyncio.run(_save_override(address, lat, lng, studio_id))


@geocode_app.command("stats")
def cache_stats() -> None:
    """Show geocode cache statistics."""
    asyncio.run(_cache_stats())


@geocode_app.command("clear-cache")
def clear_cache(
    yes: bool = typer.Option(False, "--yes", help="Confirm deletion of every cached result"),  # noqa: FBT001
) -> None:
    """Delete every cached geocode result."""
    if not yes:
        typer.echo("Refusing to clear the geocode cache without --yes.")
        raise typer.Exit(code=1)
    asyncio.run(_clear_cache())


async def _geocode_address(address: str) -> None:
    """Async implementation of single-address geocoding."""
    async with _open_resolvers() as (resolver, _batch):
        try:
            resolution = await resolver.resolve(address)
        except InvalidAddressError as e:
            typer.echo(f"Invalid address: {e}", err=True)
            raise typer.Exit(code=1) from e
        except ProviderMisconfiguredError as e:
            typer.echo(f"Geocoding provider misconfigured: {e}", err=True)
            raise typer.Exit(code=1) from e

    lat, lng = resolution.coordinates.latitude, resolution.coordinates.longitude
    typer.echo(f"Lat/Lng:  {lat}, {lng}")
    typer.echo(f"Source:   {resolution.source}")
    typer.echo(f"Cached:   {'yes' if resolution.cached else 'no'}")
    if resolution.fallback:
        typer.echo(f"Fallback: yes ({resolution.fallback_reason})")


async def _batch_geocode(addresses: list[str]) -> None:
    """Async implementation of file-driven batch geocoding."""
    async with _open_resolvers() as (_resolver, batch):
        try:
            outcomes = await batch.resolve_all(addresses)
        except ProviderMisconfiguredError as e:
            typer.echo(f"Geocoding provider misconfigured: {e}", err=True)
            raise typer.Exit(code=1) from e

    cached = fallbacks = failed = 0
    for index, outcome in enumerate(outcomes, start=1):
        resolution = outcome.resolution
        if resolution is None:
            failed += 1
            typer.echo(f"{index:>4}  ERROR  {outcome.error}  {outcome.address}")
            continue
        cached += resolution.cached
        fallbacks += resolution.fallback
        flag = "FALLBK" if resolution.fallback else ("CACHED" if resolution.cached else "NEW")
        coords = f"{resolution.coordinates.latitude:.6f}, {resolution.coordinates.longitude:.6f}"
        typer.echo(f"{index:>4}  {flag:<6} {coords}  {outcome.address}")

    typer.echo("\nBatch geocoding complete:")
    typer.echo(f"  Addresses:  {len(outcomes)}")
    typer.echo(f"  Cache hits: {cached}")
    typer.echo(f"  Fallbacks:  {fallbacks}")
    typer.echo(f"  Failed:     {failed}")


async def _save_override(address: str, lat: float, lng: float, studio_id: str | None) -> None:
    """Async implementation of manual override entry."""
    async with _open_resolvers() as (resolver, _batch):
        try:
            entry = await resolver.save(address, CoordinatePair(latitude=lat, longitude=lng))
        except InvalidAddressError as e:
            typer.echo(f"Invalid address: {e}", err=True)
            raise typer.Exit(code=1) from e
        except CacheIOError as e:
            typer.echo(f"Could not store override: {e}", err=True)
            raise typer.Exit(code=1) from e

    typer.echo(f"Override saved: {entry.fingerprint[:12]}")
    if studio_id:
        typer.echo(f"  Studio:  {studio_id}")
    typer.echo(f"  Address: {entry.original_address}")
    typer.echo(f"  Lat/Lng: {lat}, {lng}")


async def _cache_stats() -> None:
    """Async implementation of cache statistics."""
    async with _open_resolvers() as (resolver, _batch):
        try:
            stats = await resolver.cache.stats()
        except CacheIOError as e:
            typer.echo(f"Cache unavailable: {e}", err=True)
            raise typer.Exit(code=1) from e

    typer.echo("Geocode cache:")
    typer.echo(f"  Total entries: {stats.total_entries}")
    typer.echo(f"  Oldest entry:  {stats.oldest_entry or '-'}")
    typer.echo(f"  Newest entry:  {stats.newest_entry or '-'}")
    typer.echo(f"  Last updated:  {stats.last_updated or '-'}")


async def _clear_cache() -> None:
    """Async implementation of cache purge."""
    async with _open_resolvers() as (resolver, _batch):
        try:
            removed = await resolver.cache.clear()
        except CacheIOError as e:
            typer.echo(f"Cache unavailable: {e}", err=True)
            raise typer.Exit(code=1) from e
    typer.echo(f"Removed {removed} cached geocode results.")
