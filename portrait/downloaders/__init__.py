"""
Elevation data providers.

A provider takes (bounds, zoom, cache_dir) and returns the path of a
GeoTIFF covering the bounds; the loader does the clipping.
"""

from .terrain_tiles import fetch_terrain_mosaic

__all__ = ['fetch_terrain_mosaic']
