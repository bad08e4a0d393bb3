"""
Tests for area / elevation-range metrics and their text layers.
"""
import geopandas as gpd
import numpy as np
import pytest
from shapely.geometry import box

from portrait.data_types import DerivedMetrics, ElevationGrid
from portrait.errors import DataError
from portrait.metrics import (
    annotate_metrics, boundary_area_sq_mi, compute_metrics, elevation_range_ft,
    format_count, metric_layers
)
from portrait.types import Gravity, LayerRole, Stage


def _grid(values):
    return ElevationGrid(values=np.array(values, dtype=float), transform=None, crs=None)


class TestElevationRange:

    def test_range_in_feet(self):
        assert elevation_range_ft(np.array([[1000.0, 1500.0]])) == pytest.approx(500 * 3.281)

    def test_ignores_nodata(self):
        values = np.array([[np.nan, 100.0], [200.0, np.nan]])
        assert elevation_range_ft(values) == pytest.approx(100 * 3.281)

    def test_constant_grid_is_zero(self):
        assert elevation_range_ft(np.full((3, 4), 812.0)) == 0.0

    def test_never_negative(self):
        rng = np.random.default_rng(7)
        for _ in range(20):
            values = rng.normal(0, 500, size=(5, 5))
            values[rng.random((5, 5)) < 0.3] = np.nan
            if np.isnan(values).all():
                continue
            assert elevation_range_ft(values) >= 0

    def test_all_nodata(self):
        with pytest.raises(DataError) as exc_info:
            elevation_range_ft(np.full((2, 2), np.nan))
        assert exc_info.value.stage == Stage.ANNOTATE


class TestBoundaryArea:

    def test_square_degree_patch(self, boundary):
        """The test pentagon is roughly 0.2 x 0.2 degrees near 36N minus two corners."""
        area = boundary_area_sq_mi(boundary)
        assert 110 < area < 150

    def test_projection_independent(self, boundary):
        a = boundary_area_sq_mi(boundary)
        b = boundary_area_sq_mi(boundary.to_crs("EPSG:3857"))
        assert a == pytest.approx(b, rel=1e-3)

    def test_known_area(self):
        """One square mile drawn in an equal-area CRS."""
        side = 2_589_988 ** 0.5
        gdf = gpd.GeoDataFrame(geometry=[box(0, 0, side, side)], crs="EPSG:6933")
        assert boundary_area_sq_mi(gdf) == pytest.approx(1.0)

    def test_no_crs(self):
        with pytest.raises(DataError):
            boundary_area_sq_mi(gpd.GeoDataFrame(geometry=[box(0, 0, 1, 1)]))

    def test_empty(self):
        with pytest.raises(DataError):
            boundary_area_sq_mi(gpd.GeoDataFrame(geometry=[], crs="EPSG:4326"))


class TestFormatting:

    def test_thousands_separator(self):
        assert format_count(1904.6) == "1,905"
        assert format_count(6093.2) == "6,093"
        assert format_count(12.4) == "12"
        assert format_count(1234567) == "1,234,567"

    def test_layer_text(self):
        layers = metric_layers(DerivedMetrics(1904.4, 6093.6), "DejaVu Sans", "#591c19")
        assert [layer.content.text for layer in layers] == [
            "Area: 1,904 sq mi", "Elevation Range: 6,094 ft"
        ]

    def test_layer_placement(self):
        area, elevation = metric_layers(DerivedMetrics(1, 1), "DejaVu Sans", "#591c19", size=110)
        assert area.role == elevation.role == LayerRole.SUBTITLE
        assert area.gravity == elevation.gravity == Gravity.WEST
        assert area.offset == (1200, -1000)
        assert elevation.offset == (1200, -1300)
        assert area.content.size == 110
        assert area.content.color == "#591c19"


class TestAnnotate:

    def test_metrics_and_layers(self, boundary):
        grid = _grid([[100.0, 300.0], [np.nan, 200.0]])
        metrics, layers = annotate_metrics(grid, boundary, "DejaVu Sans", "#000000")
        assert metrics.elevation_range_ft == pytest.approx(200 * 3.281)
        assert metrics.area_sq_mi > 0
        assert len(layers) == 2

    def test_all_nodata_grid(self, boundary):
        with pytest.raises(DataError):
            compute_metrics(_grid(np.full((3, 3), np.nan)), boundary)

    def test_custom_factors(self, boundary):
        metrics = compute_metrics(_grid([[0.0, 10.0]]), boundary, area_factor=1e-6, feet_per_meter=1.0)
        assert metrics.elevation_range_ft == 10.0
        # km^2 when area_factor is 1e-6
        assert 300 < metrics.area_sq_mi < 400
