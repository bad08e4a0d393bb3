"""
Derived physical metrics (area, elevation range) and their text layers.
"""
import time
from typing import List, Tuple

import geopandas as gpd
import numpy as np

from portrait import config
from portrait.data_types import DerivedMetrics, ElevationGrid, Layer, TextContent
from portrait.errors import DataError
from portrait.types import Gravity, LayerRole, Stage


def boundary_area_sq_mi(boundary: gpd.GeoDataFrame, area_factor: float = config.AREA_FACTOR) -> float:
    """
    Area of the boundary polygon(s) in square miles.

    Computed in an equal-area projection so geographic and projected
    inputs give the same answer.

    Raises:
        DataError: No CRS or empty geometry
    """
    if boundary.crs is None:
        raise DataError("Boundary has no CRS; cannot compute area", stage=Stage.ANNOTATE)
    if boundary.empty or boundary.geometry.is_empty.all():
        raise DataError("Boundary geometry is empty; cannot compute area", stage=Stage.ANNOTATE)

    area_m2 = float(boundary.to_crs(config.EQUAL_AREA_CRS).geometry.area.sum())
    return area_m2 * area_factor


def elevation_range_ft(values: np.ndarray, feet_per_meter: float = config.FEET_PER_METER) -> float:
    """
    Max minus min valid elevation, converted from meters to feet.

    Raises:
        DataError: If every cell is no-data
    """
    valid_data = values[~np.isnan(values)]
    if len(valid_data) == 0:
        raise DataError("No valid elevation data found", stage=Stage.ANNOTATE)
    return float(np.max(valid_data) - np.min(valid_data)) * feet_per_meter


def format_count(value: float) -> str:
    """Round to the nearest integer and group thousands: 1904.6 -> '1,905'."""
    return f"{int(round(value)):,}"


def compute_metrics(grid: ElevationGrid, boundary: gpd.GeoDataFrame,
                    area_factor: float = config.AREA_FACTOR,
                    feet_per_meter: float = config.FEET_PER_METER) -> DerivedMetrics:
    """DerivedMetrics for a grid and the boundary it was clipped to."""
    return DerivedMetrics(
        area_sq_mi=boundary_area_sq_mi(boundary, area_factor),
        elevation_range_ft=elevation_range_ft(grid.values, feet_per_meter),
    )


def metric_layers(metrics: DerivedMetrics, font_family: str, color: str,
                  size: int = config.SUBTITLE_SIZE,
                  area_offset: Tuple[int, int] = config.AREA_OFFSET,
                  elevation_offset: Tuple[int, int] = config.ELEVATION_OFFSET) -> List[Layer]:
    """Subtitle text layers: area first, then elevation range."""
    area_text = f"Area: {format_count(metrics.area_sq_mi)} sq mi"
    elevation_text = f"Elevation Range: {format_count(metrics.elevation_range_ft)} ft"
    return [
        Layer(role=LayerRole.SUBTITLE,
              content=TextContent(area_text, font_family, size, color),
              gravity=Gravity.WEST, offset=area_offset),
        Layer(role=LayerRole.SUBTITLE,
              content=TextContent(elevation_text, font_family, size, color),
              gravity=Gravity.WEST, offset=elevation_offset),
    ]


def annotate_metrics(grid: ElevationGrid, boundary: gpd.GeoDataFrame, font_family: str,
                     color: str, size: int = config.SUBTITLE_SIZE,
                     area_factor: float = config.AREA_FACTOR,
                     feet_per_meter: float = config.FEET_PER_METER,
                     area_offset: Tuple[int, int] = config.AREA_OFFSET,
                     elevation_offset: Tuple[int, int] = config.ELEVATION_OFFSET
                     ) -> Tuple[DerivedMetrics, List[Layer]]:
    """
    Compute metrics and build their text layers.

    Returns:
        (DerivedMetrics, [area layer, elevation range layer])
    """
    step_start = time.time()
    print("[*] Computing area and elevation range...", flush=True)
    metrics = compute_metrics(grid, boundary, area_factor, feet_per_meter)
    layers = metric_layers(metrics, font_family, color, size, area_offset, elevation_offset)
    print(f"   - Area: {format_count(metrics.area_sq_mi)} sq mi", flush=True)
    print(f"   - Elevation range: {format_count(metrics.elevation_range_ft)} ft", flush=True)
    print(f"   Time: {time.time() - step_start:.2f}s", flush=True)
    return metrics, layers
