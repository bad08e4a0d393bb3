"""
Handles boundary loading: the region polygon that drives the poster, and
the Natural Earth administrative boundaries drawn in the locator inset.
"""
import pickle
from pathlib import Path
from typing import Tuple, Union

import geopandas as gpd
from shapely.ops import unary_union

from portrait.errors import DataError
from portrait.types import Stage


def read_boundary(path: Union[str, Path]) -> gpd.GeoDataFrame:
    """
    Read the region boundary from a vector file (shapefile, GeoPackage, GeoJSON).

    Args:
        path: Vector file with at least one polygon and a CRS

    Returns:
        GeoDataFrame of the boundary features

    Raises:
        DataError: Missing file, no CRS, or empty geometry
    """
    path = Path(path)
    if not path.exists():
        raise DataError(f"Boundary file not found: {path}", stage=Stage.LOADER)

    try:
        boundary = gpd.read_file(path)
    except Exception as e:
        # pyogrio/fiona raise their own DataSourceError types
        raise DataError(f"Cannot read boundary file {path}: {e}", stage=Stage.LOADER) from e

    return validate_boundary(boundary)


def validate_boundary(boundary: gpd.GeoDataFrame) -> gpd.GeoDataFrame:
    """Raise DataError unless the boundary has a CRS and non-empty geometry."""
    if boundary.crs is None:
        raise DataError("Boundary has no CRS", stage=Stage.LOADER)
    boundary = boundary[boundary.geometry.notna()]
    if boundary.empty or boundary.geometry.is_empty.all():
        raise DataError("Boundary geometry is empty", stage=Stage.LOADER)
    return boundary


def boundary_bounds_wgs84(boundary: gpd.GeoDataFrame) -> Tuple[float, float, float, float]:
    """(west, south, east, north) of the boundary in EPSG:4326."""
    west, south, east, north = boundary.to_crs("EPSG:4326").total_bounds
    return (float(west), float(south), float(east), float(north))


def dissolve_boundary(boundary: gpd.GeoDataFrame):
    """Single shapely geometry for all boundary features."""
    return unary_union(list(boundary.geometry))


class BorderManager:
    """
    Manages Natural Earth administrative boundary data.
    Provides caching and per-country queries.
    """

    def __init__(self, cache_dir: str = "data/.cache/borders"):
        """
        Initialize the border manager.

        Args:
            cache_dir: Directory to cache downloaded border data
        """
        self.cache_dir = Path(cache_dir)
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self._state_data = None
        self._state_resolution = None

    def load_state_borders(self, resolution: str = '110m') -> gpd.GeoDataFrame:
        """
        Natural Earth admin_1 (states/provinces) at the given resolution.

        Kept in memory for the life of the manager and pickled under
        cache_dir, so the download happens once per resolution.
        """
        if self._state_data is not None and self._state_resolution == resolution:
            return self._state_data

        cache_file = self.cache_dir / f"ne_{resolution}_admin_1.pkl"
        if cache_file.exists():
            print(f"   - Reading admin_1 borders from {cache_file}", flush=True)
            with open(cache_file, 'rb') as f:
                states = pickle.load(f)
        else:
            states = self._download_state_borders(resolution)
            with open(cache_file, 'wb') as f:
                pickle.dump(states, f)
            print(f"   - Cached admin_1 borders to {cache_file}", flush=True)

        self._state_data = states
        self._state_resolution = resolution
        return states

    @staticmethod
    def _download_state_borders(resolution: str) -> gpd.GeoDataFrame:
        ne_url = (f"https://naciscdn.org/naturalearth/{resolution}/cultural/"
                  f"ne_{resolution}_admin_1_states_provinces.zip")
        print(f"   - Downloading Natural Earth {resolution} admin_1 borders...", flush=True)
        try:
            return gpd.read_file(ne_url)
        except Exception as e:
            raise DataError(f"Cannot load Natural Earth admin_1 borders: {e}", stage=Stage.INSET) from e

    def get_states_in_country(self, country_name: str, resolution: str = '110m') -> gpd.GeoDataFrame:
        """
        All admin_1 polygons of a country (case-insensitive match on 'admin').

        Raises:
            DataError: If the country has no states in the dataset
        """
        states = self.load_state_borders(resolution)
        country_states = states[states['admin'].str.lower() == country_name.lower()]

        if country_states.empty:
            raise DataError(f"Country '{country_name}' not found in state database", stage=Stage.INSET)

        return country_states


def get_border_manager() -> BorderManager:
    """
    Get a singleton BorderManager instance.

    Returns:
        BorderManager instance
    """
    if not hasattr(get_border_manager, '_instance'):
        get_border_manager._instance = BorderManager()
    return get_border_manager._instance
