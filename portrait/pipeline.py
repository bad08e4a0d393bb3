"""
End-to-end poster pipeline: boundary file in, annotated poster out.

Stages run strictly in order; each consumes the previous stage's output
and any failure aborts the run with the stage that raised it. Files
already written (preview, high-res base, inset) stay on disk but the
final poster is only written by the last stage.
"""
import io
import time
from contextlib import redirect_stdout
from pathlib import Path
from typing import Dict, Optional, Union

import geopandas as gpd

from portrait.borders import get_border_manager, read_boundary
from portrait.compositor import caption_layer, compose, icon_layer, title_layers
from portrait.config import (
    AREA_OFFSET, CAPTION_OFFSET, ELEVATION_OFFSET, ICON_OFFSET, INSET_OFFSET, NAME_OFFSET, TITLE_OFFSET
)
from portrait.errors import ConfigError
from portrait.inset import build_inset
from portrait.layout import plan_for_grid
from portrait.loader import TerrainProvider, load_elevation
from portrait.metrics import annotate_metrics
from portrait.palettes import resolve_palette
from portrait.rendering import Rasterizer, render_scene
from portrait.settings import PosterConfig
from portrait.types import Stage

TOTAL_STAGES = 7


def _banner(number: int, title: str) -> None:
    print(f"\n{'=' * 70}", flush=True)
    print(f"  STEP {number}/{TOTAL_STAGES}: {title}", flush=True)
    print(f"{'=' * 70}", flush=True)


def _check_output_path(config: PosterConfig, output_path: Path) -> None:
    """The poster must not replace the base raster or an intermediate."""
    protected = {config.preview_path.resolve(), config.highres_path.resolve(),
                 config.inset_path.resolve()}
    if output_path.resolve() in protected:
        raise ConfigError(f"Output path {output_path} would overwrite an intermediate raster",
                          stage=Stage.COMPOSITE)


def run_pipeline(config: PosterConfig,
                 boundary_path: Union[str, Path],
                 output_path: Union[str, Path],
                 provider: Optional[TerrainProvider] = None,
                 rasterizer: Optional[Rasterizer] = None,
                 reference_boundaries: Optional[gpd.GeoDataFrame] = None,
                 quiet: bool = False) -> Dict[str, object]:
    """
    Build the poster.

    Args:
        config: Run configuration
        boundary_path: Vector file with the region polygon
        output_path: Where the final poster PNG goes
        provider: Terrain provider (defaults to AWS Terrain Tiles)
        rasterizer: Scene rasterizer (defaults to MatplotlibRasterizer)
        reference_boundaries: Outlines for the locator inset; defaults to
                              the Natural Earth admin-1 polygons of
                              config.inset_country
        quiet: Suppress progress output

    Returns:
        Dict with 'preview', 'highres', 'inset', 'poster' paths (preview is
        None when skipped) and 'metrics'

    Raises:
        ConfigError, DataError, FatalRenderError: each labelled with its stage
    """
    if quiet:
        with redirect_stdout(io.StringIO()):
            return run_pipeline(config, boundary_path, output_path, provider, rasterizer,
                                reference_boundaries, quiet=False)

    start = time.time()
    output_path = Path(output_path)

    # Identifiers and numeric ranges first: nothing is fetched or rendered
    # with a bad configuration
    config = config.validate()
    _check_output_path(config, output_path)
    palette = resolve_palette(config.palette, config.ramp_length)

    print(f"\n{'=' * 70}", flush=True)
    print(f" POSTER PIPELINE: {config.region_name}", flush=True)
    print(f"{'=' * 70}", flush=True)
    print(f"Boundary: {boundary_path}", flush=True)
    print(f"Palette: {palette.name} ({len(palette.stops)} stops)", flush=True)
    print(f"Output: {output_path}", flush=True)

    result: Dict[str, object] = {
        "preview": None,
        "highres": None,
        "inset": None,
        "poster": None,
        "metrics": None,
    }

    # Stage 1: elevation
    _banner(1, "LOAD ELEVATION")
    boundary = read_boundary(boundary_path)
    load_kwargs = {"zoom": config.elevation_zoom, "cache_dir": config.cache_dir}
    if provider is not None:
        load_kwargs["provider"] = provider
    grid = load_elevation(boundary, **load_kwargs)

    # Stage 2: layout
    _banner(2, "PLAN LAYOUT")
    plan = plan_for_grid(grid)
    print(f"   - Width ratio {plan.width_ratio:.3f}, height ratio {plan.height_ratio:.3f}", flush=True)
    print(f"   - Text colour {palette.text_color}, accent {palette.accent_color}", flush=True)

    # Stage 3: scene
    _banner(3, "RENDER SCENE")
    if config.render_preview:
        result["preview"] = render_scene(grid, palette, plan,
                                         config.scene_parameters(config.preview_base_dim),
                                         config.preview_path, rasterizer)
    else:
        print("[*] Skipping preview render", flush=True)
    result["highres"] = render_scene(grid, palette, plan,
                                     config.scene_parameters(config.final_base_dim),
                                     config.highres_path, rasterizer)

    # Stage 4: metrics
    _banner(4, "ANNOTATE METRICS")
    metrics, subtitle_layers = annotate_metrics(
        grid, boundary, config.font_family, palette.text_color,
        size=config.scaled(config.subtitle_size), area_factor=config.area_factor,
        feet_per_meter=config.feet_per_meter,
        area_offset=config.scaled_offset(AREA_OFFSET),
        elevation_offset=config.scaled_offset(ELEVATION_OFFSET)
    )
    result["metrics"] = metrics

    # Stage 5: inset
    _banner(5, "LOCATOR INSET")
    if reference_boundaries is None:
        print(f"[*] Loading reference boundaries for {config.inset_country}...", flush=True)
        reference_boundaries = get_border_manager().get_states_in_country(config.inset_country)
    inset = build_inset(boundary, reference_boundaries, config.inset_path,
                        line_color=palette.text_color, marker_color=palette.accent_color,
                        target_width=config.scaled(config.inset_width), radius_m=config.locator_buffer_m,
                        crs=config.inset_crs, offset=config.scaled_offset(INSET_OFFSET))
    result["inset"] = config.inset_path

    # Stage 6: text and icon layers
    _banner(6, "BUILD LAYERS")
    print(f"[*] Placement scaled by {config.layout_scale:.3f} for a {config.final_base_dim}px canvas",
          flush=True)
    layers = title_layers(config.title_text, config.region_name, config.font_family,
                          palette.text_color, config.scaled(config.title_size),
                          config.scaled(config.name_size),
                          config.scaled_offset(TITLE_OFFSET), config.scaled_offset(NAME_OFFSET))
    layers.extend(subtitle_layers)
    layers.append(inset)
    if config.caption_text:
        layers.append(caption_layer(config.caption_text, config.font_family,
                                    palette.text_color, config.scaled(config.caption_size),
                                    config.scaled_offset(CAPTION_OFFSET)))
    if config.icon_path:
        layers.append(icon_layer(config.icon_path, palette.text_color,
                                 config.scaled(config.icon_height), config.scaled_offset(ICON_OFFSET)))
    print(f"[*] {len(layers)} layers ready", flush=True)

    # Stage 7: composite
    _banner(7, "COMPOSITE")
    compose(result["highres"], layers, output_path, config.font_dir)
    result["poster"] = output_path

    print(f"\n{'=' * 70}", flush=True)
    print(f" PIPELINE COMPLETE! ({time.time() - start:.1f}s)", flush=True)
    print(f"{'=' * 70}", flush=True)
    print("\nFiles created:", flush=True)
    if result["preview"] is not None:
        print(f"  Preview: {result['preview']}", flush=True)
    print(f"  High-res: {result['highres']}", flush=True)
    print(f"  Inset: {result['inset']}", flush=True)
    print(f"  Poster: {result['poster']}", flush=True)

    return result
