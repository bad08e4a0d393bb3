"""
Run configuration for the poster pipeline.

Values come from portrait.config defaults, optionally overlaid with the
"poster" section of settings.json, then validated once, before any data
is fetched or rendered. Nothing here changes during a run.
"""
import json
import re
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from portrait import config
from portrait.data_types import SceneParameters
from portrait.errors import ConfigError
from portrait.fonts import DEFAULT_FONT_DIR, validate_font_family
from portrait.palettes import validate_palette_name
from portrait.types import Stage

# JSON types accepted for each declared field type
_ACCEPTED_TYPES = {
    str: (str,),
    int: (int,),
    float: (int, float),
    bool: (bool,),
    Optional[str]: (str, type(None)),
}


@dataclass(frozen=True)
class PosterConfig:
    """Everything the pipeline needs besides the boundary file and output path."""
    region_name: str = "Grand Canyon National Park"
    title_text: str = "A Portrait of"
    caption_text: str = "Data from AWS Terrain Tiles and USGS"

    # data
    elevation_zoom: int = config.DEFAULT_ELEVATION_ZOOM
    cache_dir: str = config.DEFAULT_CACHE_DIR
    output_root: str = config.DEFAULT_OUTPUT_ROOT

    # palette
    palette: str = config.DEFAULT_PALETTE
    ramp_length: int = config.RAMP_LENGTH

    # scene
    zscale: float = config.DEFAULT_ZSCALE
    phi: float = config.DEFAULT_PHI
    theta: float = config.DEFAULT_THETA
    zoom: float = config.DEFAULT_ZOOM
    samples: int = config.DEFAULT_SAMPLES
    preview_base_dim: int = config.PREVIEW_BASE_DIM
    final_base_dim: int = config.FINAL_BASE_DIM
    render_preview: bool = True
    environment_light: str = config.DEFAULT_ENVIRONMENT_LIGHT
    light_intensity: float = config.DEFAULT_LIGHT_INTENSITY
    light_rotation: float = config.DEFAULT_LIGHT_ROTATION

    # metrics
    area_factor: float = config.AREA_FACTOR
    feet_per_meter: float = config.FEET_PER_METER

    # typography
    font_family: str = config.DEFAULT_FONT_FAMILY
    font_dir: str = DEFAULT_FONT_DIR
    title_size: int = config.TITLE_SIZE
    name_size: int = config.NAME_SIZE
    subtitle_size: int = config.SUBTITLE_SIZE
    caption_size: int = config.CAPTION_SIZE

    # inset
    locator_buffer_m: float = config.LOCATOR_BUFFER_METERS
    inset_width: int = config.INSET_TARGET_WIDTH
    inset_country: str = config.DEFAULT_INSET_COUNTRY
    inset_crs: str = config.INSET_CRS

    # icon
    icon_path: Optional[str] = config.DEFAULT_ICON_PATH
    icon_height: int = config.ICON_HEIGHT

    def validate(self) -> "PosterConfig":
        """
        Check identifiers against the closed tables and numeric ranges.

        Returns self so it can be chained after construction.
        """
        self._check_types()
        validate_palette_name(self.palette)
        validate_font_family(self.font_family)

        positive = {
            'ramp_length': Stage.PALETTE,
            'zscale': Stage.RENDER,
            'zoom': Stage.RENDER,
            'samples': Stage.RENDER,
            'preview_base_dim': Stage.RENDER,
            'final_base_dim': Stage.RENDER,
            'area_factor': Stage.ANNOTATE,
            'feet_per_meter': Stage.ANNOTATE,
            'title_size': Stage.COMPOSITE,
            'name_size': Stage.COMPOSITE,
            'subtitle_size': Stage.COMPOSITE,
            'caption_size': Stage.COMPOSITE,
            'icon_height': Stage.COMPOSITE,
            'locator_buffer_m': Stage.INSET,
            'inset_width': Stage.INSET,
            'elevation_zoom': Stage.LOADER,
        }
        for name, stage in positive.items():
            value = getattr(self, name)
            if value <= 0:
                raise ConfigError(f"'{name}' must be positive, got {value}", stage=stage)

        if self.light_intensity < 0:
            raise ConfigError(f"'light_intensity' must be >= 0, got {self.light_intensity}",
                              stage=Stage.RENDER)
        if not self.region_name.strip():
            raise ConfigError("'region_name' must not be empty", stage=Stage.COMPOSITE)
        return self

    def _check_types(self) -> None:
        for f in fields(self):
            value = getattr(self, f.name)
            accepted = _ACCEPTED_TYPES[f.type]
            # bool is an int subclass; true/false is not a number here
            if isinstance(value, bool) and bool not in accepted or not isinstance(value, accepted):
                expected = " or ".join(t.__name__ for t in accepted)
                raise ConfigError(f"'{f.name}' must be {expected}, got {value!r}",
                                  stage=Stage.LOADER)

    # --- derived values ---

    @property
    def layout_scale(self) -> float:
        """Final canvas size relative to the canvas the placement defaults are laid out for."""
        return self.final_base_dim / config.REFERENCE_BASE_DIM

    def scaled(self, value: int) -> int:
        """A pixel size on the final canvas, never below 1."""
        return max(1, int(round(value * self.layout_scale)))

    def scaled_offset(self, offset: Tuple[int, int]) -> Tuple[int, int]:
        return tuple(int(round(v * self.layout_scale)) for v in offset)

    @property
    def slug(self) -> str:
        """Filename-safe form of the region name."""
        return re.sub(r'[^a-z0-9]+', '_', self.region_name.lower()).strip('_')

    @property
    def preview_path(self) -> Path:
        return Path(self.output_root) / f"{self.slug}_preview.png"

    @property
    def highres_path(self) -> Path:
        return Path(self.output_root) / f"{self.slug}_highres.png"

    @property
    def inset_path(self) -> Path:
        return Path(self.output_root) / f"{self.slug}_inset.png"

    def scene_parameters(self, base_dim: int) -> SceneParameters:
        return SceneParameters(
            zscale=self.zscale,
            phi=self.phi,
            theta=self.theta,
            zoom=self.zoom,
            samples=self.samples,
            environment_light=self.environment_light,
            intensity=self.light_intensity,
            rotation=self.light_rotation,
            base_dim=base_dim,
        )

    def with_overrides(self, **overrides: Any) -> "PosterConfig":
        """Copy with some fields replaced, validated."""
        _check_keys(overrides)
        return replace(self, **overrides).validate()


def _check_keys(values: Dict[str, Any]) -> None:
    known = {f.name for f in fields(PosterConfig)}
    unknown = sorted(set(values) - known)
    if unknown:
        raise ConfigError(f"Unknown poster setting(s): {', '.join(unknown)}", stage=Stage.LOADER)


def load_settings(settings_file: str = "settings.json",
                  overrides: Optional[Dict[str, Any]] = None) -> PosterConfig:
    """
    Build a validated PosterConfig.

    Args:
        settings_file: JSON file; only its "poster" section is read.
                       A missing file means defaults.
        overrides: Values applied on top of the file (e.g. from the CLI)

    Raises:
        ConfigError: Invalid JSON, unknown keys, or invalid values
    """
    values: Dict[str, Any] = {}
    settings_path = Path(settings_file)

    if settings_path.exists():
        try:
            with open(settings_path, 'r', encoding='utf-8') as f:
                settings = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid JSON in {settings_file}: {e}", stage=Stage.LOADER) from e
        if not isinstance(settings, dict):
            raise ConfigError(f"{settings_file} must contain a JSON object", stage=Stage.LOADER)
        section = settings.get('poster', {})
        if not isinstance(section, dict):
            raise ConfigError(f"'poster' section in {settings_file} must be an object",
                              stage=Stage.LOADER)
        values.update(section)

    if overrides:
        values.update({k: v for k, v in overrides.items() if v is not None})

    _check_keys(values)
    return PosterConfig(**values).validate()

