"""
Final poster composition.

Layers are placed ImageMagick-style: a gravity anchor plus a pixel offset,
where positive x moves away from a west/east edge and positive y away from
a north/south edge. For centred axes the offset is added directly.

Layers are always drawn in LayerRole order (title, subtitle, inset,
caption, icon) whatever order they are supplied in.
"""
import tempfile
import time
from pathlib import Path
from typing import Iterable, List, Tuple, Union

from PIL import Image, ImageDraw

from portrait import config
from portrait.data_types import ComposedImage, Layer, TextContent, hex_to_rgba
from portrait.errors import FatalRenderError
from portrait.fonts import DEFAULT_FONT_DIR, load_font
from portrait.types import Gravity, LayerRole, Stage

_WEST = {Gravity.NORTH_WEST, Gravity.WEST, Gravity.SOUTH_WEST}
_EAST = {Gravity.NORTH_EAST, Gravity.EAST, Gravity.SOUTH_EAST}
_NORTH = {Gravity.NORTH_WEST, Gravity.NORTH, Gravity.NORTH_EAST}
_SOUTH = {Gravity.SOUTH_WEST, Gravity.SOUTH, Gravity.SOUTH_EAST}


def gravity_position(canvas_size: Tuple[int, int], item_size: Tuple[int, int],
                     gravity: Gravity, offset: Tuple[int, int] = (0, 0)) -> Tuple[int, int]:
    """
    Top-left pixel of an item placed on the canvas.

    Args:
        canvas_size: (width, height) of the canvas
        item_size: (width, height) of the item
        gravity: Anchor
        offset: (x, y) pixel offset from the anchor

    Returns:
        (x, y); may fall partly or wholly outside the canvas
    """
    canvas_w, canvas_h = canvas_size
    item_w, item_h = item_size
    ox, oy = offset
    gravity = Gravity(gravity)

    if gravity in _WEST:
        x = ox
    elif gravity in _EAST:
        x = canvas_w - item_w - ox
    else:
        x = (canvas_w - item_w) // 2 + ox

    if gravity in _NORTH:
        y = oy
    elif gravity in _SOUTH:
        y = canvas_h - item_h - oy
    else:
        y = (canvas_h - item_h) // 2 + oy

    return x, y


def with_opacity(image: Image.Image, opacity: float) -> Image.Image:
    """Copy of an RGBA image with its alpha channel scaled by opacity."""
    image = image.convert('RGBA')
    if opacity >= 1:
        return image
    alpha = image.getchannel('A').point(lambda a: int(round(a * opacity)))
    image.putalpha(alpha)
    return image


def render_text(content: TextContent, font_dir: Union[str, Path] = DEFAULT_FONT_DIR) -> Image.Image:
    """Text drawn onto a tight transparent RGBA patch."""
    font = load_font(content.font_family, content.size, content.weight, font_dir)
    left, top, right, bottom = font.getbbox(content.text)
    patch = Image.new('RGBA', (max(1, right - left), max(1, bottom - top)), (0, 0, 0, 0))
    draw = ImageDraw.Draw(patch)
    draw.text((-left, -top), content.text, font=font, fill=hex_to_rgba(content.color))
    return patch


def apply_layer(composed: ComposedImage, layer: Layer,
                font_dir: Union[str, Path] = DEFAULT_FONT_DIR) -> ComposedImage:
    """
    New ComposedImage with one layer drawn over the current one.

    Parts of the layer beyond the canvas edge are clipped.

    Raises:
        FatalRenderError: The layer would not touch the canvas at all
    """
    if layer.is_text:
        patch = render_text(layer.content, font_dir)
    else:
        patch = layer.content
    patch = with_opacity(patch, layer.opacity)

    x, y = gravity_position(composed.size, patch.size, layer.gravity, layer.offset)
    canvas_w, canvas_h = composed.size
    if x >= canvas_w or y >= canvas_h or x + patch.size[0] <= 0 or y + patch.size[1] <= 0:
        raise FatalRenderError(
            f"{layer.role} layer at ({x}, {y}) lies entirely outside the "
            f"{canvas_w} x {canvas_h} canvas", stage=Stage.COMPOSITE)
    overlay = Image.new('RGBA', composed.size, (0, 0, 0, 0))
    # paste clips anything that falls off the canvas
    overlay.paste(patch, (x, y))
    image = Image.alpha_composite(composed.image, overlay)
    return ComposedImage(image=image, applied=composed.applied + (layer.role,))


def order_layers(layers: Iterable[Layer]) -> List[Layer]:
    """Layers in draw order; ties keep their given order."""
    return sorted(layers, key=lambda layer: layer.role.draw_rank)


def compose(base_path: Union[str, Path], layers: Iterable[Layer], output_path: Union[str, Path],
            font_dir: Union[str, Path] = DEFAULT_FONT_DIR) -> ComposedImage:
    """
    Draw every layer over the base raster and write the result.

    The base raster is only read. output_path must differ from it and from
    every intermediate raster; callers are responsible for that.

    Raises:
        FatalRenderError: Unreadable base raster, missing font, or write failure
    """
    step_start = time.time()
    base_path = Path(base_path)
    output_path = Path(output_path)

    try:
        with Image.open(base_path) as base:
            composed = ComposedImage(image=base.convert('RGBA'))
    except OSError as e:
        raise FatalRenderError(f"Cannot read base raster {base_path}: {e}", stage=Stage.COMPOSITE) from e

    print(f"[*] Compositing {composed.size[0]} x {composed.size[1]} poster...", flush=True)
    for layer in order_layers(layers):
        composed = apply_layer(composed, layer, font_dir)
        label = layer.content.text if layer.is_text else f"{layer.content.size[0]}x{layer.content.size[1]} raster"
        print(f"   - {layer.role}: {label} ({layer.gravity})", flush=True)

    try:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        composed.image.save(output_path)
    except OSError as e:
        raise FatalRenderError(f"Cannot write poster {output_path}: {e}", stage=Stage.COMPOSITE) from e

    print(f"   - Saved: {output_path}", flush=True)
    print(f"   Time: {time.time() - step_start:.2f}s", flush=True)
    return composed


# ============================================================================
# Layer builders
# ============================================================================

def title_layers(title_text: str, region_name: str, font_family: str, color: str,
                 title_size: int = config.TITLE_SIZE,
                 name_size: int = config.NAME_SIZE,
                 title_offset: Tuple[int, int] = config.TITLE_OFFSET,
                 name_offset: Tuple[int, int] = config.NAME_OFFSET) -> List[Layer]:
    """'A Portrait of' above the region name, both anchored north."""
    return [
        Layer(role=LayerRole.TITLE,
              content=TextContent(title_text, font_family, title_size, color),
              gravity=Gravity.NORTH, offset=title_offset),
        Layer(role=LayerRole.TITLE,
              content=TextContent(region_name, font_family, name_size, color,
                                  weight=config.NAME_WEIGHT),
              gravity=Gravity.NORTH, offset=name_offset),
    ]


def caption_layer(caption_text: str, font_family: str, color: str,
                  size: int = config.CAPTION_SIZE,
                  offset: Tuple[int, int] = config.CAPTION_OFFSET) -> Layer:
    return Layer(role=LayerRole.CAPTION,
                 content=TextContent(caption_text, font_family, size, color),
                 gravity=Gravity.SOUTH, offset=offset,
                 opacity=config.CAPTION_OPACITY)


def tint_icon(icon: Image.Image, color: str, opacity: float = config.ICON_OPACITY) -> Image.Image:
    """Solid-colour silhouette of the icon, keeping its alpha shape."""
    icon = icon.convert('RGBA')
    tinted = Image.new('RGBA', icon.size, hex_to_rgba(color))
    tinted.putalpha(icon.getchannel('A'))
    return with_opacity(tinted, opacity)


def rasterize_svg(svg_path: Path, png_path: Path, height: int) -> Path:
    """Render a vector icon to a PNG of the given pixel height."""
    import cairosvg

    cairosvg.svg2png(url=str(svg_path), write_to=str(png_path), output_height=height)
    return png_path


def icon_layer(icon_path: Union[str, Path], color: str,
               height: int = config.ICON_HEIGHT,
               offset: Tuple[int, int] = config.ICON_OFFSET) -> Layer:
    """
    Attribution icon tinted with the text colour, scaled to height.

    SVG icons are rasterized at the target height into a temporary
    directory that is removed before this returns. Raster icons are read
    directly.

    Raises:
        FatalRenderError: Icon file missing, unreadable or not rasterizable
    """
    icon_path = Path(icon_path)
    if not icon_path.exists():
        raise FatalRenderError(f"Icon not found: {icon_path}", stage=Stage.COMPOSITE)

    try:
        if icon_path.suffix.lower() == '.svg':
            with tempfile.TemporaryDirectory(prefix="portrait_icon_") as tmp_dir:
                png_path = rasterize_svg(icon_path, Path(tmp_dir) / "icon.png", height)
                with Image.open(png_path) as raw:
                    tinted = tint_icon(raw, color)
        else:
            with Image.open(icon_path) as raw:
                tinted = tint_icon(raw, color)
    except (OSError, ValueError, SyntaxError, ImportError) as e:
        raise FatalRenderError(f"Cannot rasterize icon {icon_path}: {e}", stage=Stage.COMPOSITE) from e

    w, h = tinted.size
    if h != height:
        width = max(1, int(round(w * height / h)))
        tinted = tinted.resize((width, height), Image.LANCZOS)

    return Layer(role=LayerRole.ICON, content=tinted, gravity=Gravity.SOUTH, offset=offset)
