"""
Font registry for poster typography.

Families are a closed table checked when the configuration loads; the
font files themselves are opened at draw time, and a missing file is a
FatalRenderError (a poster with substitute typography is not a result).
"""
from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Union

import matplotlib
from PIL import ImageFont

from portrait.errors import ConfigError, FatalRenderError
from portrait.types import Stage

DEFAULT_FONT_DIR = "fonts"

# family -> {weight: filename}
FONT_REGISTRY: Dict[str, Dict[int, str]] = {
    'Cinzel Decorative': {
        400: 'CinzelDecorative-Regular.ttf',
        700: 'CinzelDecorative-Bold.ttf',
    },
    'Cinzel': {
        400: 'Cinzel-Regular.ttf',
        700: 'Cinzel-Bold.ttf',
    },
    'DejaVu Sans': {
        400: 'DejaVuSans.ttf',
        700: 'DejaVuSans-Bold.ttf',
    },
}

# Families whose files ship with matplotlib rather than the font directory
BUNDLED_FAMILIES = {'DejaVu Sans'}


def list_font_families() -> List[str]:
    return sorted(FONT_REGISTRY)


def validate_font_family(family: str) -> None:
    """Raise ConfigError if family is not registered."""
    if family not in FONT_REGISTRY:
        raise ConfigError(
            f"Unknown font family '{family}'. Available: {', '.join(list_font_families())}",
            stage=Stage.COMPOSITE
        )


def resolve_font_path(family: str, weight: int = 400,
                      font_dir: Union[str, Path] = DEFAULT_FONT_DIR) -> Path:
    """
    Map (family, weight) to a font file path.

    Unregistered weights fall back to the regular (400) face.
    """
    validate_font_family(family)
    faces = FONT_REGISTRY[family]
    filename = faces.get(weight, faces[400])
    if family in BUNDLED_FAMILIES:
        return Path(matplotlib.get_data_path()) / 'fonts' / 'ttf' / filename
    return Path(font_dir) / filename


@lru_cache(maxsize=32)
def _truetype(path: str, size: int) -> ImageFont.FreeTypeFont:
    return ImageFont.truetype(path, size)


def load_font(family: str, size: int, weight: int = 400,
              font_dir: Union[str, Path] = DEFAULT_FONT_DIR) -> ImageFont.FreeTypeFont:
    """
    Open a registered font at the given pixel size.

    Raises:
        ConfigError: Unknown family
        FatalRenderError: Font file missing or unreadable
    """
    path = resolve_font_path(family, weight, font_dir)
    if not path.exists():
        raise FatalRenderError(
            f"Font file for '{family}' (weight {weight}) not found: {path}",
            stage=Stage.COMPOSITE
        )
    try:
        return _truetype(str(path), size)
    except OSError as e:
        raise FatalRenderError(f"Cannot load font {path}: {e}", stage=Stage.COMPOSITE) from e
