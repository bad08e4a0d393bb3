"""
Shared fixtures: synthetic rasters and boundaries, a fake rasterizer, and
a small poster configuration. Nothing here touches the network.
"""
from pathlib import Path

import geopandas as gpd
import numpy as np
import pytest
import rasterio
from PIL import Image
from rasterio.transform import from_origin
from shapely.geometry import Polygon, box

from portrait.rendering import Rasterizer
from portrait.settings import PosterConfig

# Synthetic raster covers this extent at 0.01 degree resolution
RASTER_WEST, RASTER_NORTH = -112.3, 36.3
RASTER_RES = 0.01
RASTER_SIZE = 40


def write_geotiff(path: Path, values: np.ndarray, west: float = RASTER_WEST,
                  north: float = RASTER_NORTH, res: float = RASTER_RES,
                  crs: str = "EPSG:4326") -> Path:
    """Single-band float32 GeoTIFF with NaN nodata."""
    with rasterio.open(
        path, 'w', driver='GTiff',
        height=values.shape[0], width=values.shape[1], count=1,
        dtype='float32', crs=crs, nodata=np.nan,
        transform=from_origin(west, north, res, res),
    ) as dst:
        dst.write(values.astype('float32'), 1)
    return path


@pytest.fixture
def elevation_tif(tmp_path):
    """Tilted plane from 1000 m (north-west) rising east and south."""
    rows, cols = np.mgrid[0:RASTER_SIZE, 0:RASTER_SIZE]
    values = 1000.0 + rows * 10.0 + cols * 5.0
    return write_geotiff(tmp_path / "elevation.tif", values)


@pytest.fixture
def nodata_tif(tmp_path):
    values = np.full((RASTER_SIZE, RASTER_SIZE), np.nan)
    return write_geotiff(tmp_path / "nodata.tif", values)


@pytest.fixture
def boundary():
    """Pentagon well inside the synthetic raster."""
    poly = Polygon([(-112.2, 36.0), (-112.0, 36.0), (-112.0, 36.15),
                    (-112.1, 36.2), (-112.2, 36.15)])
    return gpd.GeoDataFrame({'name': ['park']}, geometry=[poly], crs="EPSG:4326")


@pytest.fixture
def boundary_file(tmp_path, boundary):
    path = tmp_path / "park.geojson"
    boundary.to_file(path, driver="GeoJSON")
    return path


@pytest.fixture
def reference_boundaries():
    """Three 'states' around the park."""
    states = [box(-114.0, 35.0, -112.0, 37.0), box(-112.0, 35.0, -110.0, 37.0),
              box(-114.0, 37.0, -110.0, 39.0)]
    return gpd.GeoDataFrame({'name': ['a', 'b', 'c']}, geometry=states, crs="EPSG:4326")


@pytest.fixture
def env_light(tmp_path):
    path = tmp_path / "env" / "studio.hdr"
    path.parent.mkdir()
    path.write_bytes(b"#?RADIANCE\n")
    return path


class FakeRasterizer(Rasterizer):
    """Writes a flat image of the requested size and records each call."""

    def __init__(self, color=(200, 180, 150)):
        self.color = color
        self.calls = []

    def render(self, context, heightmap, texture, params, size, output_path):
        self.calls.append({'size': size, 'base_dim': params.base_dim, 'path': output_path,
                           'shape': heightmap.shape})
        output_path.parent.mkdir(parents=True, exist_ok=True)
        Image.new('RGB', size, self.color).save(output_path)


@pytest.fixture
def fake_rasterizer():
    return FakeRasterizer()


@pytest.fixture
def poster_config(tmp_path, env_light):
    """
    Small, fast configuration using the font bundled with matplotlib.

    Text sizes and offsets keep their defaults and are scaled down to the
    400px canvas by the pipeline.
    """
    return PosterConfig(
        region_name="Test Park",
        output_root=str(tmp_path / "plots"),
        cache_dir=str(tmp_path / "cache"),
        environment_light=str(env_light),
        font_family="DejaVu Sans",
        preview_base_dim=80,
        final_base_dim=400,
        icon_path=None,
    )
