"""Geocoding resolution and cache service for the artist, studio and gallery directory."""

__version__ = "0.1.0"
