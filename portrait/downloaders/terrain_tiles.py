"""
AWS Terrain Tiles downloader.

Direct access to the Mapzen/Tilezen terrain tiles in the public AWS
open-data bucket. No authentication required.

Tile format: 512x512 GeoTIFF, web-mercator (EPSG:3857), int16 meters
URL pattern: https://s3.amazonaws.com/elevation-tiles-prod/geotiff/{z}/{x}/{y}.tif

Coverage: global, zoom 0-14
"""

from pathlib import Path
from typing import List, Tuple

import numpy as np
import rasterio
import requests
from rasterio.errors import RasterioIOError
from rasterio.merge import merge
from tqdm import tqdm

from portrait.errors import DataError
from portrait.tile_geometry import calculate_tiles, tile_filename
from portrait.types import Stage

TILE_URL = "https://s3.amazonaws.com/elevation-tiles-prod/geotiff/{z}/{x}/{y}.tif"
MAX_ZOOM = 14
# Refuse queries that would pull more than this many tiles
MAX_TILES = 400


def construct_tile_url(x: int, y: int, zoom: int) -> str:
    return TILE_URL.format(z=zoom, x=x, y=y)


def download_tile(x: int, y: int, zoom: int, output_path: Path, timeout: int = 120) -> None:
    """
    Download a single terrain tile.

    Writes to a temporary file first and moves it into place only once it
    opens as a GeoTIFF.

    Raises:
        DataError: On HTTP failure, timeout, or an unreadable tile
    """
    url = construct_tile_url(x, y, zoom)

    try:
        response = requests.get(url, stream=True, timeout=timeout)
    except requests.Timeout as e:
        raise DataError(f"Download timeout after {timeout}s: {url}", stage=Stage.LOADER) from e
    except requests.RequestException as e:
        raise DataError(f"Download failed: {url}: {e}", stage=Stage.LOADER) from e

    if response.status_code != 200:
        raise DataError(f"Unexpected status {response.status_code}: {url}", stage=Stage.LOADER)

    temp_path = output_path.with_suffix('.tmp')
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(temp_path, 'wb') as f:
        for chunk in response.iter_content(chunk_size=8192):
            if chunk:
                f.write(chunk)

    # Verify it's a valid GeoTIFF
    try:
        with rasterio.open(temp_path) as src:
            _ = src.bounds
            _ = src.crs
    except RasterioIOError as e:
        temp_path.unlink()
        raise DataError(f"Invalid GeoTIFF from {url}: {e}", stage=Stage.LOADER) from e

    temp_path.replace(output_path)


def download_tiles(bounds: Tuple[float, float, float, float], zoom: int, tiles_dir: Path) -> List[Path]:
    """
    Download (or reuse cached) tiles covering bounds.

    Args:
        bounds: (west, south, east, north) in degrees
        zoom: Zoom level
        tiles_dir: Cache directory

    Returns:
        Paths of all covering tiles
    """
    if not 0 <= zoom <= MAX_ZOOM:
        raise DataError(f"Zoom {zoom} outside terrain tile range 0-{MAX_ZOOM}", stage=Stage.LOADER)

    tiles = calculate_tiles(bounds, zoom)
    if len(tiles) > MAX_TILES:
        raise DataError(
            f"Query needs {len(tiles)} tiles at zoom {zoom} (limit {MAX_TILES}); use a lower zoom",
            stage=Stage.LOADER
        )

    paths = []
    cached = 0
    print(f"   - {len(tiles)} tile(s) at zoom {zoom}", flush=True)
    for x, y in tqdm(tiles, desc="   terrain tiles", unit="tile"):
        tile_path = tiles_dir / str(zoom) / tile_filename(x, y, zoom)
        if tile_path.exists():
            cached += 1
        else:
            download_tile(x, y, zoom, tile_path)
        paths.append(tile_path)

    print(f"   - {cached} from cache, {len(tiles) - cached} downloaded", flush=True)
    return paths


def merge_tiles(tile_paths: List[Path], output_path: Path) -> Path:
    """
    Merge tiles into a single float32 GeoTIFF with NaN nodata.
    """
    src_files = []
    try:
        for p in tile_paths:
            src_files.append(rasterio.open(p))

        mosaic, out_transform = merge(src_files, nodata=np.nan, dtype='float32')

        out_meta = src_files[0].meta.copy()
        out_meta.update({
            "driver": "GTiff",
            "height": mosaic.shape[1],
            "width": mosaic.shape[2],
            "transform": out_transform,
            "dtype": 'float32',
            "count": mosaic.shape[0],
            "nodata": np.nan
        })

        output_path.parent.mkdir(parents=True, exist_ok=True)
        with rasterio.open(output_path, "w", **out_meta) as dest:
            dest.write(mosaic)
    except RasterioIOError as e:
        raise DataError(f"Tile merge failed: {e}", stage=Stage.LOADER) from e
    finally:
        for src in src_files:
            src.close()

    return output_path


def fetch_terrain_mosaic(bounds: Tuple[float, float, float, float], zoom: int,
                         cache_dir: Path) -> Path:
    """
    Terrain provider: one GeoTIFF covering bounds at the given zoom.

    Args:
        bounds: (west, south, east, north) in degrees (EPSG:4326)
        zoom: Zoom level
        cache_dir: Tile and mosaic cache directory

    Returns:
        Path to the merged mosaic
    """
    cache_dir = Path(cache_dir)
    west, south, east, north = bounds
    mosaic_path = cache_dir / f"mosaic_z{zoom}_{west:.4f}_{south:.4f}_{east:.4f}_{north:.4f}.tif"
    if mosaic_path.exists():
        print(f"   - Mosaic from cache: {mosaic_path.name}", flush=True)
        return mosaic_path

    tile_paths = download_tiles(bounds, zoom, cache_dir / "tiles")
    return merge_tiles(tile_paths, mosaic_path)
