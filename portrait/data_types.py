"""
Strict data type definitions for the terrain-portrait project.

This module defines all data structures passed between pipeline stages,
with validation and clear documentation of expected formats.

DATA FLOW:
    Boundary + terrain tiles -> ElevationGrid
         ->
    AspectPlan + Palette -> SceneParameters -> base raster
         ->
    DerivedMetrics + inset raster -> Layer list
         ->
    ComposedImage -> final poster

Every type is immutable once built; stages hand new values forward instead
of mutating shared state.
"""

from dataclasses import dataclass, field
from typing import Any, Tuple, Union

import numpy as np
from PIL import Image
from rasterio.transform import array_bounds

from portrait.types import Gravity, LayerRole


# ============================================================================
# STAGE 1: ELEVATION (Loader output)
# ============================================================================

@dataclass(frozen=True, eq=False)
class ElevationGrid:
    """
    Elevation samples clipped to a boundary polygon.

    VALIDATION:
    - Array must be 2D with at least one cell
    - Cells hold a finite elevation (meters) or the no-data sentinel (NaN)
    - The array is made read-only on construction
    """
    values: np.ndarray
    transform: Any          # rasterio Affine for the clipped window
    crs: Any                # CRS of the raster the samples came from
    boundary: Any = None    # GeoDataFrame used for the clip

    def __post_init__(self):
        """Validate the grid and freeze the array."""
        values = np.array(self.values, dtype=np.float64)
        if values.ndim != 2:
            raise ValueError(f"Elevation grid must be 2D, got shape {values.shape}")
        if values.size == 0:
            raise ValueError("Elevation grid is empty")
        if np.isinf(values).any():
            raise ValueError("Elevation grid contains infinite values")
        values.setflags(write=False)
        object.__setattr__(self, "values", values)

    @property
    def nodata(self) -> float:
        return np.nan

    @property
    def height(self) -> int:
        """Number of rows."""
        return self.values.shape[0]

    @property
    def width(self) -> int:
        """Number of columns."""
        return self.values.shape[1]

    @property
    def valid_mask(self) -> np.ndarray:
        return ~np.isnan(self.values)

    @property
    def valid_count(self) -> int:
        return int(self.valid_mask.sum())

    @property
    def bounds(self) -> Tuple[float, float, float, float]:
        """(west, south, east, north) in the grid CRS."""
        return array_bounds(self.height, self.width, self.transform)


# ============================================================================
# STAGE 2: LAYOUT AND PALETTE
# ============================================================================

@dataclass(frozen=True)
class AspectPlan:
    """
    Share of a square reference canvas assigned to each axis.

    Both ratios are in (0, 1]; the smaller one is floored at 0.75.
    """
    width_ratio: float
    height_ratio: float

    def __post_init__(self):
        for name in ("width_ratio", "height_ratio"):
            value = getattr(self, name)
            if not 0 < value <= 1:
                raise ValueError(f"{name} must be in (0, 1], got {value}")

    def window_size(self, base_dim: int) -> Tuple[int, int]:
        """Pixel (width, height) for a canvas whose longer side is base_dim."""
        return (int(round(base_dim * self.width_ratio)),
                int(round(base_dim * self.height_ratio)))


@dataclass(frozen=True)
class Palette:
    """
    Discrete colour stops plus the continuous ramp interpolated from them.

    Colours are '#rrggbb' strings. Stop 1 is the primary text colour,
    stop 2 the accent.
    """
    name: str
    stops: Tuple[str, ...]
    ramp: Tuple[str, ...]

    def __post_init__(self):
        if len(self.stops) < 1:
            raise ValueError(f"Palette '{self.name}' has no colour stops")
        if len(self.ramp) < 1:
            raise ValueError(f"Palette '{self.name}' has an empty ramp")

    @property
    def text_color(self) -> str:
        return self.stops[0]

    @property
    def accent_color(self) -> str:
        return self.stops[1] if len(self.stops) > 1 else self.stops[0]

    def ramp_array(self) -> np.ndarray:
        """Ramp as an (N, 3) uint8 array."""
        return np.array([_hex_to_rgb(c) for c in self.ramp], dtype=np.uint8)


# ============================================================================
# STAGE 3: SCENE
# ============================================================================

@dataclass(frozen=True)
class SceneParameters:
    """Render configuration; fixed for a run."""
    zscale: float
    phi: float
    theta: float
    zoom: float
    samples: int
    environment_light: str
    intensity: float
    rotation: float
    base_dim: int

    def __post_init__(self):
        if self.zscale <= 0:
            raise ValueError(f"zscale must be positive, got {self.zscale}")
        if self.zoom <= 0:
            raise ValueError(f"zoom must be positive, got {self.zoom}")
        if self.samples < 1:
            raise ValueError(f"samples must be >= 1, got {self.samples}")
        if self.intensity < 0:
            raise ValueError(f"intensity must be >= 0, got {self.intensity}")
        if self.base_dim < 1:
            raise ValueError(f"base_dim must be >= 1, got {self.base_dim}")


# ============================================================================
# STAGE 4: ANNOTATION
# ============================================================================

@dataclass(frozen=True)
class DerivedMetrics:
    """Physical metrics shown under the title."""
    area_sq_mi: float
    elevation_range_ft: float

    def __post_init__(self):
        if self.area_sq_mi < 0:
            raise ValueError(f"Invalid area: {self.area_sq_mi}")
        if self.elevation_range_ft < 0:
            raise ValueError(f"Invalid elevation range: {self.elevation_range_ft}")


@dataclass(frozen=True)
class TextContent:
    """A styled line of text, drawn with a registered font family."""
    text: str
    font_family: str
    size: int
    color: str
    weight: int = 400


@dataclass(frozen=True, eq=False)
class Layer:
    """
    A raster or text fragment placed relative to a gravity anchor.

    Layers are drawn in LayerRole order; within a role, in the order given.
    """
    role: LayerRole
    content: Union[Image.Image, TextContent]
    gravity: Gravity
    offset: Tuple[int, int] = (0, 0)
    opacity: float = 1.0

    def __post_init__(self):
        if not 0 <= self.opacity <= 1:
            raise ValueError(f"opacity must be in [0, 1], got {self.opacity}")
        object.__setattr__(self, "role", LayerRole(self.role))
        object.__setattr__(self, "gravity", Gravity(self.gravity))

    @property
    def is_text(self) -> bool:
        return isinstance(self.content, TextContent)


# ============================================================================
# STAGE 5: COMPOSITE
# ============================================================================

@dataclass(frozen=True, eq=False)
class ComposedImage:
    """
    The base raster plus every layer applied so far.

    Never mutated: applying a layer yields a new ComposedImage.
    """
    image: Image.Image
    applied: Tuple[LayerRole, ...] = field(default_factory=tuple)

    @property
    def size(self) -> Tuple[int, int]:
        return self.image.size


def _hex_to_rgb(color: str) -> Tuple[int, int, int]:
    color = color.lstrip('#')
    return tuple(int(color[i:i + 2], 16) for i in (0, 2, 4))


def hex_to_rgba(color: str, opacity: float = 1.0) -> Tuple[int, int, int, int]:
    """'#rrggbb' -> (r, g, b, a) with a scaled from opacity."""
    r, g, b = _hex_to_rgb(color)
    return (r, g, b, int(round(255 * opacity)))
