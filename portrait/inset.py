"""
Locator inset: the region's surroundings drawn as outlines, with a circle
marking where the region sits, on a transparent background.
"""
import time
from pathlib import Path
from typing import Tuple, Union

import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt
import geopandas as gpd
from PIL import Image

from portrait import config
from portrait.borders import dissolve_boundary
from portrait.data_types import Layer
from portrait.errors import DataError, FatalRenderError
from portrait.types import Gravity, LayerRole, Stage


def locator_buffer(boundary: gpd.GeoDataFrame, radius_m: float,
                   crs: str = config.INSET_CRS) -> gpd.GeoDataFrame:
    """
    Circle of radius_m meters around the boundary centroid, in `crs`.

    The centroid is taken in the projected CRS, not in degrees.
    """
    projected = boundary.to_crs(crs)
    centroid = dissolve_boundary(projected).centroid
    return gpd.GeoDataFrame(geometry=[centroid.buffer(radius_m)], crs=crs)


def scale_to_width(image: Image.Image, width: int) -> Image.Image:
    """Resize to the given width, preserving aspect ratio."""
    w, h = image.size
    height = max(1, int(round(width * h / w)))
    return image.resize((width, height), Image.LANCZOS)


def render_locator_map(references: gpd.GeoDataFrame, boundary: gpd.GeoDataFrame,
                       output_path: Path, line_color: str, marker_color: str,
                       radius_m: float = config.LOCATOR_BUFFER_METERS,
                       crs: str = config.INSET_CRS,
                       figsize: Tuple[float, float] = config.INSET_FIGSIZE,
                       dpi: int = config.INSET_DPI) -> Path:
    """
    Draw reference outlines plus the locator circle to a transparent PNG.

    Raises:
        DataError: No references, or geometry that cannot be projected
        FatalRenderError: Drawing or writing the PNG failed
    """
    if references is None or references.empty:
        raise DataError("No reference boundaries for the locator inset", stage=Stage.INSET)
    for label, frame in (("reference boundaries", references), ("region boundary", boundary)):
        if frame.crs is None:
            raise DataError(f"No CRS on the {label}; cannot project to {crs}", stage=Stage.INSET)

    try:
        refs = references.to_crs(crs)
        spot = locator_buffer(boundary, radius_m, crs)
    except (ValueError, RuntimeError) as e:
        # pyproj's CRSError is a RuntimeError
        raise DataError(f"Cannot project inset geometry to {crs}: {e}", stage=Stage.INSET) from e

    fig = plt.figure(figsize=figsize, dpi=dpi)
    try:
        ax = fig.add_axes([0, 0, 1, 1])
        refs.boundary.plot(ax=ax, color=line_color, linewidth=config.INSET_LINE_WIDTH)
        spot.boundary.plot(ax=ax, color=marker_color, linewidth=config.INSET_LINE_WIDTH * 2)
        ax.set_aspect('equal')
        ax.set_axis_off()

        output_path.parent.mkdir(parents=True, exist_ok=True)
        fig.savefig(output_path, dpi=dpi, transparent=True)
    except (OSError, ValueError) as e:
        raise FatalRenderError(f"Locator map render failed: {e}", stage=Stage.INSET) from e
    finally:
        plt.close(fig)

    return output_path


def build_inset(boundary: gpd.GeoDataFrame, references: gpd.GeoDataFrame,
                output_path: Union[str, Path], line_color: str, marker_color: str,
                target_width: int = config.INSET_TARGET_WIDTH,
                radius_m: float = config.LOCATOR_BUFFER_METERS,
                crs: str = config.INSET_CRS,
                offset: Tuple[int, int] = config.INSET_OFFSET) -> Layer:
    """
    Render the locator map, scale it to target_width, and wrap it as a Layer.

    The file at output_path is left at the scaled size.

    Returns:
        Layer anchored east
    """
    step_start = time.time()
    output_path = Path(output_path)
    print(f"[*] Building locator inset ({radius_m / 1000:.0f} km marker) -> {output_path}", flush=True)

    render_locator_map(references, boundary, output_path, line_color, marker_color,
                       radius_m=radius_m, crs=crs)

    with Image.open(output_path) as raw:
        inset = scale_to_width(raw.convert('RGBA'), target_width)
    inset.save(output_path)

    print(f"   - Inset: {inset.size[0]} x {inset.size[1]} pixels", flush=True)
    print(f"   Time: {time.time() - step_start:.2f}s", flush=True)
    return Layer(role=LayerRole.INSET, content=inset, gravity=Gravity.EAST, offset=offset)
