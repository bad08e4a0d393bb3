"""
Named colour palettes and ramp derivation.

The palette table is closed: names are validated when the configuration is
loaded, and an unknown name is a ConfigError before anything is rendered.
Stops are the MetBrewer palettes (Blake R. Mills), in their published order.
"""
from typing import Dict, List, Tuple

from matplotlib.colors import LinearSegmentedColormap, to_hex

from portrait.config import RAMP_LENGTH
from portrait.data_types import Palette
from portrait.errors import ConfigError
from portrait.types import Stage

PALETTES: Dict[str, Tuple[str, ...]] = {
    'Archambault': ('#88a0dc', '#381a61', '#7c4b73', '#ed968c', '#ab3329', '#e78429', '#f9d14a'),
    'Cassatt1': ('#b1615c', '#d88782', '#e3aba7', '#edd7d9', '#c9c9dd', '#9d9dc7', '#8282aa', '#5a5a83'),
    'Cross': ('#c969a1', '#ce4441', '#ee8577', '#eb7926', '#ffbb44', '#859b6c', '#62929a', '#004f63', '#122451'),
    'Demuth': ('#591c19', '#9b332b', '#b64f32', '#d39a2d', '#f7c267', '#b9b9b8', '#8b8b99', '#5d6174', '#41485f', '#262d42'),
    'Greek': ('#3c0d03', '#8d1c06', '#e67424', '#ed9b49', '#f5c34d'),
    'Hokusai1': ('#6d2f20', '#b75347', '#df7e66', '#e09351', '#edc775', '#94b594', '#224b5e'),
    'Hokusai2': ('#abc9c8', '#72aeb6', '#4692b0', '#2f70a1', '#134b73', '#0a3351'),
    'Isfahan1': ('#4e3910', '#845d29', '#d8c29d', '#4fb6ca', '#178f92', '#175f5d', '#1d1f54'),
    'Johnson': ('#a00e00', '#d04e00', '#f6c200', '#0086a8', '#132b69'),
    'OKeeffe2': ('#fbe3c2', '#f2c88f', '#ecb27d', '#e69c6b', '#d37750', '#b9563f', '#92351e'),
    'Tam': ('#ffd353', '#ffb242', '#ef8737', '#de4f33', '#bb292c', '#9f2d55', '#62205f', '#341648'),
    'Troy': ('#421401', '#6c1d0e', '#8b3a2b', '#c27668', '#7ba0b4', '#44728c', '#235070', '#0a2d46'),
    'VanGogh3': ('#e7e5cc', '#c2d6a4', '#9cc184', '#669d62', '#447243', '#1f5b25', '#1e3d14', '#192813'),
}


def list_palettes() -> List[str]:
    """Sorted palette names."""
    return sorted(PALETTES)


def validate_palette_name(name: str) -> None:
    """Raise ConfigError if name is not in the palette table."""
    if name not in PALETTES:
        raise ConfigError(
            f"Unknown palette '{name}'. Available: {', '.join(list_palettes())}",
            stage=Stage.PALETTE
        )


def interpolate_ramp(stops: Tuple[str, ...], length: int = RAMP_LENGTH) -> Tuple[str, ...]:
    """
    Linearly interpolate colour stops (in RGB) into a ramp of `length` colours.

    The first and last ramp entries equal the first and last stops.
    """
    if length < 1:
        raise ConfigError(f"Ramp length must be >= 1, got {length}", stage=Stage.PALETTE)
    colors = list(stops) if len(stops) > 1 else [stops[0], stops[0]]
    cmap = LinearSegmentedColormap.from_list('ramp', colors, N=length)
    return tuple(to_hex(cmap(i)) for i in range(length))


def resolve_palette(name: str, ramp_length: int = RAMP_LENGTH) -> Palette:
    """
    Resolve a named palette into its stops and a continuous ramp.

    Args:
        name: Key into PALETTES (case-sensitive, e.g. 'Demuth')
        ramp_length: Number of interpolated colours (default 256)

    Returns:
        Palette with the original stops preserved

    Raises:
        ConfigError: If the name is unknown
    """
    validate_palette_name(name)
    stops = PALETTES[name]
    return Palette(name=name, stops=stops, ramp=interpolate_ramp(stops, ramp_length))
