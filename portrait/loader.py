"""
Elevation grid loading: query the terrain provider for the boundary's
extent and clip the result to the exact boundary polygon.
"""
import time
from pathlib import Path
from typing import Callable, Tuple, Union

import geopandas as gpd
import numpy as np
import rasterio
from rasterio.errors import RasterioIOError
from rasterio.mask import mask as rasterio_mask
from shapely.geometry import mapping as shapely_mapping

from portrait.borders import boundary_bounds_wgs84, dissolve_boundary, validate_boundary
from portrait.config import DEFAULT_CACHE_DIR, DEFAULT_ELEVATION_ZOOM
from portrait.data_types import ElevationGrid
from portrait.downloaders import fetch_terrain_mosaic
from portrait.errors import DataError
from portrait.types import Stage

# (bounds_wgs84, zoom, cache_dir) -> GeoTIFF path
TerrainProvider = Callable[[Tuple[float, float, float, float], int, Path], Path]


def clip_raster_to_boundary(raster_path: Union[str, Path], boundary: gpd.GeoDataFrame) -> ElevationGrid:
    """
    Clip a GeoTIFF to the exact boundary polygon.

    Cells outside the polygon (and source nodata cells) become NaN. The
    result is cropped to the polygon's bounding window.

    Raises:
        DataError: Unreadable raster, no overlap, or raster not covering the boundary
    """
    try:
        with rasterio.open(raster_path) as src:
            boundary_reproj = boundary.to_crs(src.crs)
            geoms = [shapely_mapping(dissolve_boundary(boundary_reproj))]

            try:
                out_image, out_transform = rasterio_mask(src, geoms, crop=True, filled=False)
            except ValueError as e:
                raise DataError(f"Boundary does not overlap elevation raster: {e}",
                                stage=Stage.LOADER) from e

            crs = src.crs
            pixel_x, pixel_y = abs(src.transform.a), abs(src.transform.e)
    except RasterioIOError as e:
        raise DataError(f"Cannot read elevation raster {raster_path}: {e}", stage=Stage.LOADER) from e

    band = np.ma.masked_invalid(out_image[0].astype('float64'))
    values = band.filled(np.nan)
    grid = ElevationGrid(values=values, transform=out_transform, crs=crs, boundary=boundary)

    # Grid bounds must contain the boundary (allow one pixel for edge snapping)
    west, south, east, north = grid.bounds
    b_west, b_south, b_east, b_north = boundary_reproj.total_bounds
    if (b_west < west - pixel_x or b_east > east + pixel_x or
            b_south < south - pixel_y or b_north > north + pixel_y):
        raise DataError(
            f"Elevation raster does not cover the boundary: raster {grid.bounds}, "
            f"boundary {tuple(boundary_reproj.total_bounds)}",
            stage=Stage.LOADER
        )

    return grid


def load_elevation(boundary: gpd.GeoDataFrame,
                   zoom: int = DEFAULT_ELEVATION_ZOOM,
                   cache_dir: Union[str, Path] = DEFAULT_CACHE_DIR,
                   provider: TerrainProvider = fetch_terrain_mosaic) -> ElevationGrid:
    """
    Elevation grid clipped to the boundary.

    Args:
        boundary: Region polygon(s) with a CRS
        zoom: Zoom/resolution level of the query
        cache_dir: Provider cache directory
        provider: Terrain provider returning a GeoTIFF for the bounds

    Returns:
        ElevationGrid in the provider's CRS; cells outside the polygon are NaN
    """
    step_start = time.time()
    boundary = validate_boundary(boundary)
    bounds = boundary_bounds_wgs84(boundary)
    print(f"[*] Querying elevation for bounds "
          f"({bounds[0]:.3f}, {bounds[1]:.3f}) to ({bounds[2]:.3f}, {bounds[3]:.3f}) at zoom {zoom}",
          flush=True)

    raster_path = provider(bounds, zoom, Path(cache_dir))

    print("[*] Clipping to boundary...", flush=True)
    grid = clip_raster_to_boundary(raster_path, boundary)

    print(f"   - Grid: {grid.width} x {grid.height} cells, "
          f"{grid.valid_count:,} with data", flush=True)
    print(f"   Time: {time.time() - step_start:.2f}s", flush=True)
    return grid


def downsample_grid(grid: ElevationGrid, factor: int) -> ElevationGrid:
    """
    Every `factor`-th row and column, for quick experiments on large grids.
    """
    if factor < 1:
        raise ValueError(f"factor must be >= 1, got {factor}")
    if factor == 1:
        return grid
    values = grid.values[::factor, ::factor]
    transform = grid.transform * rasterio.Affine.scale(factor)
    return ElevationGrid(values=values, transform=transform, crs=grid.crs, boundary=grid.boundary)
