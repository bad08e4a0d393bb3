"""
Handles rendering of the shaded heightfield scene and raster output.

The scene is built here (palette-shaded heightfield, camera, lighting) and
handed to a rasterizer that writes the PNG. Only one render context may be
open at a time; it is always released when the render returns or fails.
"""
import time
from pathlib import Path
from typing import List, Optional, Tuple, Union

import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt
import numpy as np
from matplotlib.colors import LightSource
from PIL import Image

from portrait.config import (
    BACKGROUND_COLOR, ENVIRONMENT_LIGHT_ALTITUDE, ENVIRONMENT_LIGHT_AZIMUTH,
    MAX_SURFACE_CELLS, RENDER_DPI
)
from portrait.data_types import AspectPlan, ElevationGrid, Palette, SceneParameters
from portrait.errors import FatalRenderError
from portrait.types import Stage


def height_shade(values: np.ndarray, ramp: np.ndarray) -> np.ndarray:
    """
    Colour each cell from the ramp by its normalized elevation.

    Args:
        values: 2D elevations, NaN = no data
        ramp: (N, 3) uint8 colours, lowest elevation first

    Returns:
        (rows, cols, 4) uint8 RGBA texture; no-data cells are fully transparent
    """
    valid = ~np.isnan(values)
    texture = np.zeros(values.shape + (4,), dtype=np.uint8)
    if not valid.any():
        return texture

    z_min = np.nanmin(values)
    z_range = np.nanmax(values) - z_min
    if z_range > 0:
        normalized = (values - z_min) / z_range
    else:
        normalized = np.zeros_like(values)

    idx = np.clip(np.round(np.nan_to_num(normalized) * (len(ramp) - 1)), 0, len(ramp) - 1).astype(int)
    texture[..., :3] = ramp[idx]
    texture[..., 3] = np.where(valid, 255, 0)
    return texture


class RenderContext:
    """
    Exclusive handle on the render window.

    Entering while another context is open is a FatalRenderError. Every
    figure created through the context is closed on exit, success or not.
    """
    _active: Optional["RenderContext"] = None

    def __init__(self):
        self._figures: List[plt.Figure] = []

    @classmethod
    def is_open(cls) -> bool:
        return cls._active is not None

    def __enter__(self) -> "RenderContext":
        if RenderContext._active is not None:
            raise FatalRenderError(
                "A render context is already open; close it before starting another render",
                stage=Stage.RENDER
            )
        RenderContext._active = self
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        for fig in self._figures:
            plt.close(fig)
        self._figures = []
        RenderContext._active = None

    def figure(self, size: Tuple[int, int], dpi: int, facecolor: str) -> plt.Figure:
        """New figure of exactly size=(width, height) pixels at dpi."""
        if RenderContext._active is not self:
            raise FatalRenderError("Render context is not open", stage=Stage.RENDER)
        width, height = size
        fig = plt.figure(figsize=(width / dpi, height / dpi), dpi=dpi, facecolor=facecolor)
        self._figures.append(fig)
        return fig


class Rasterizer:
    """
    Turns a heightfield, its texture and scene parameters into a PNG.

    Implementations raise FatalRenderError (or OSError/ValueError/RuntimeError,
    which the scene renderer converts) when they cannot produce the image.
    """

    def render(self, context: RenderContext, heightmap: np.ndarray, texture: np.ndarray,
               params: SceneParameters, size: Tuple[int, int], output_path: Path) -> None:
        raise NotImplementedError


class MatplotlibRasterizer(Rasterizer):
    """
    Software rasterizer built on matplotlib's 3D surface plot.

    The environment map is reduced to a single directional key light: its
    rotation turns the light azimuth, its intensity scales shading contrast.
    """

    def __init__(self, dpi: int = RENDER_DPI, background_color: str = BACKGROUND_COLOR,
                 max_cells: int = MAX_SURFACE_CELLS):
        self.dpi = dpi
        self.background_color = background_color
        self.max_cells = max_cells

    def render(self, context: RenderContext, heightmap: np.ndarray, texture: np.ndarray,
               params: SceneParameters, size: Tuple[int, int], output_path: Path) -> None:
        env_path = Path(params.environment_light)
        if not env_path.exists():
            raise FatalRenderError(f"Environment light not found: {env_path}", stage=Stage.RENDER)

        # plot_surface needs at least 2x2 vertices
        if heightmap.shape[0] < 2 or heightmap.shape[1] < 2:
            reps = (2 if heightmap.shape[0] < 2 else 1, 2 if heightmap.shape[1] < 2 else 1)
            heightmap = np.tile(heightmap, reps)
            texture = np.tile(texture, reps + (1,))

        rows, cols = heightmap.shape
        Z = heightmap / params.zscale
        z_floor = np.nanmin(Z) if np.any(~np.isnan(Z)) else 0.0
        Z_filled = np.where(np.isnan(Z), z_floor, Z)

        # Light the palette texture
        ls = LightSource(azdeg=(ENVIRONMENT_LIGHT_AZIMUTH + params.rotation) % 360,
                         altdeg=ENVIRONMENT_LIGHT_ALTITUDE)
        rgb = ls.shade_rgb(texture[..., :3] / 255.0, Z_filled, blend_mode='soft',
                           fraction=params.intensity)
        facecolors = np.dstack([rgb, texture[..., 3] / 255.0])

        # North up: row 0 at the top of the y axis
        X, Y = np.meshgrid(np.arange(cols), np.arange(rows)[::-1])

        fig = context.figure(size, self.dpi, self.background_color)
        ax = fig.add_axes([0, 0, 1, 1], projection='3d', facecolor=self.background_color)
        ax.plot_surface(X, Y, np.ma.masked_invalid(Z), facecolors=facecolors, linewidth=0,
                        antialiased=params.samples > 1, shade=False,
                        rcount=min(rows, self.max_cells), ccount=min(cols, self.max_cells))

        z_range = float(np.nanmax(Z_filled) - z_floor)
        ax.set_box_aspect((cols, rows, max(z_range, 1e-6)), zoom=1.0 / params.zoom)
        # theta rotates the scene; 0 looks from the south with north up
        ax.view_init(elev=params.phi, azim=params.theta - 90)
        ax.set_axis_off()

        output_path.parent.mkdir(parents=True, exist_ok=True)
        fig.savefig(output_path, dpi=self.dpi, facecolor=self.background_color, edgecolor='none')
        enforce_image_size(output_path, size)


def enforce_image_size(image_path: Path, size: Tuple[int, int]) -> None:
    """Resample the file in place if it is not exactly size=(width, height)."""
    with Image.open(image_path) as img:
        if img.size == tuple(size):
            return
        resized = img.resize(size, Image.LANCZOS)
    resized.save(image_path)


def render_scene(grid: ElevationGrid, palette: Palette, plan: AspectPlan,
                 params: SceneParameters, output_path: Union[str, Path],
                 rasterizer: Optional[Rasterizer] = None) -> Path:
    """
    Render the shaded heightfield to a PNG of base_dim x AspectPlan pixels.

    Args:
        grid: Elevation grid (meters)
        palette: Resolved palette; its ramp colours the surface
        plan: Aspect plan for the canvas
        params: Scene parameters, including base_dim
        output_path: PNG to write
        rasterizer: Defaults to MatplotlibRasterizer

    Returns:
        The written path

    Raises:
        FatalRenderError: Rasterizer failure, missing lighting resource,
                          wrong output size, or a render context already open
    """
    step_start = time.time()
    output_path = Path(output_path)
    rasterizer = rasterizer or MatplotlibRasterizer()
    size = plan.window_size(params.base_dim)

    print(f"[*] Rendering {size[0]} x {size[1]} scene -> {output_path}", flush=True)
    print(f"   - zscale {params.zscale}, phi {params.phi}, theta {params.theta}, "
          f"zoom {params.zoom}, samples {params.samples}", flush=True)

    texture = height_shade(grid.values, palette.ramp_array())

    with RenderContext() as context:
        try:
            rasterizer.render(context, np.array(grid.values), texture, params, size, output_path)
        except FatalRenderError:
            raise
        except Exception as e:
            raise FatalRenderError(f"Rasterizer failed: {type(e).__name__}: {e}", stage=Stage.RENDER) from e

    if not output_path.exists():
        raise FatalRenderError(f"Rasterizer reported success but wrote no file: {output_path}",
                               stage=Stage.RENDER)
    with Image.open(output_path) as img:
        written = img.size
    if written != size:
        raise FatalRenderError(f"Rendered {written[0]} x {written[1]}, expected {size[0]} x {size[1]}",
                               stage=Stage.RENDER)

    print(f"   - Saved: {output_path}", flush=True)
    print(f"   Time: {time.time() - step_start:.2f}s", flush=True)
    return output_path
