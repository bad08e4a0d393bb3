"""
Tile geometry and filename utilities for the web-mercator terrain tile grid.

This module handles all tile-related geometric calculations:
- Converting lon/lat to XYZ tile indices at a zoom level
- Calculating tile coverage for a bounding box
- Tile bounds in degrees
- Cache filenames for downloaded tiles

Terrain tiles follow the standard slippy-map scheme: 2^z x 2^z tiles,
x increasing east from -180, y increasing south from ~85.05N.
"""

import math
from typing import List, Tuple

# Web-mercator latitude limit
MAX_LATITUDE = 85.0511287798


def lonlat_to_tile(lon: float, lat: float, zoom: int) -> Tuple[int, int]:
    """
    Tile (x, y) containing a lon/lat point at the given zoom.

    Points on the east/south edge of the world are clamped into the last tile.
    """
    lat = max(-MAX_LATITUDE, min(MAX_LATITUDE, lat))
    n = 2 ** zoom
    x = int((lon + 180.0) / 360.0 * n)
    lat_rad = math.radians(lat)
    y = int((1.0 - math.asinh(math.tan(lat_rad)) / math.pi) / 2.0 * n)
    return min(max(x, 0), n - 1), min(max(y, 0), n - 1)


def tile_bounds(x: int, y: int, zoom: int) -> Tuple[float, float, float, float]:
    """
    (west, south, east, north) in degrees for a tile.
    """
    n = 2 ** zoom
    west = x / n * 360.0 - 180.0
    east = (x + 1) / n * 360.0 - 180.0
    north = math.degrees(math.atan(math.sinh(math.pi * (1 - 2 * y / n))))
    south = math.degrees(math.atan(math.sinh(math.pi * (1 - 2 * (y + 1) / n))))
    return (west, south, east, north)


def calculate_tiles(bounds: Tuple[float, float, float, float], zoom: int) -> List[Tuple[int, int]]:
    """
    Calculate list of (x, y) tiles needed to cover bounds at a zoom level.

    Args:
        bounds: (west, south, east, north) in degrees
        zoom: Tile zoom level (0-15 for terrain tiles)

    Returns:
        Tiles ordered north-to-south, then west-to-east
    """
    west, south, east, north = bounds
    if west >= east or south >= north:
        raise ValueError(f"Invalid bounds: {bounds}")

    x_min, y_min = lonlat_to_tile(west, north, zoom)
    x_max, y_max = lonlat_to_tile(east, south, zoom)

    tiles = []
    for y in range(y_min, y_max + 1):
        for x in range(x_min, x_max + 1):
            tiles.append((x, y))
    return tiles


def tile_filename(x: int, y: int, zoom: int) -> str:
    """
    Cache filename for a tile: z{zoom}_x{x}_y{y}.tif
    """
    return f"z{zoom}_x{x}_y{y}.tif"
