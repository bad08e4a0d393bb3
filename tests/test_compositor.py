"""
Tests for gravity placement, layer ordering and the final composite.
"""
import random
import tempfile
from pathlib import Path

import pytest
from PIL import Image

from portrait import compositor, config
from portrait.compositor import (
    apply_layer, caption_layer, compose, gravity_position, icon_layer, order_layers,
    render_text, tint_icon, title_layers, with_opacity
)
from portrait.data_types import ComposedImage, Layer, TextContent
from portrait.errors import FatalRenderError
from portrait.types import Gravity, LayerRole, Stage

try:
    import cairosvg  # noqa: F401
    HAVE_CAIRO = True
except (ImportError, OSError):
    HAVE_CAIRO = False

CANVAS = (1000, 800)
ITEM = (100, 50)
ICON_SVG = Path(__file__).parent.parent / "icons" / "attribution.svg"


class TestGravityPosition:
    """ImageMagick-style anchor plus offset."""

    @pytest.mark.parametrize("gravity, offset, expected", [
        (Gravity.NORTH_WEST, (0, 0), (0, 0)),
        (Gravity.NORTH, (0, 200), (450, 200)),
        (Gravity.NORTH_EAST, (10, 10), (890, 10)),
        (Gravity.WEST, (10, -20), (10, 355)),
        (Gravity.CENTER, (0, 0), (450, 375)),
        (Gravity.EAST, (10, 20), (890, 395)),
        (Gravity.SOUTH_WEST, (5, 5), (5, 745)),
        (Gravity.SOUTH, (-530, 65), (-80, 685)),
        (Gravity.SOUTH_EAST, (5, 5), (895, 745)),
    ])
    def test_positions(self, gravity, offset, expected):
        assert gravity_position(CANVAS, ITEM, gravity, offset) == expected

    def test_accepts_string_gravity(self):
        assert gravity_position(CANVAS, ITEM, "south", (0, 50)) == (450, 700)

    def test_poster_west_subtitle(self):
        """Area line on a 6000x4500 canvas sits 1000px above centre."""
        x, y = gravity_position((6000, 4500), (1400, 130), Gravity.WEST, (1200, -1000))
        assert x == 1200
        assert y == (4500 - 130) // 2 - 1000


def _square(role, size, color):
    return Layer(role=role, content=Image.new('RGBA', (size, size), color),
                 gravity=Gravity.CENTER)


class TestLayerOrder:

    def test_order_layers_by_role(self):
        layers = [_square(r, 10, 'red') for r in
                  (LayerRole.ICON, LayerRole.TITLE, LayerRole.CAPTION, LayerRole.INSET, LayerRole.SUBTITLE)]
        assert [layer.role for layer in order_layers(layers)] == list(LayerRole)

    def test_ties_keep_given_order(self):
        first = _square(LayerRole.TITLE, 10, 'red')
        second = _square(LayerRole.TITLE, 10, 'blue')
        assert order_layers([second, first]) == [second, first]

    def test_draw_precedence_regardless_of_input_order(self, tmp_path):
        """
        Nested centred squares: if roles were drawn out of order a larger
        square would hide a smaller one. Each ring must show its own colour.
        """
        base = tmp_path / "base.png"
        Image.new('RGB', (200, 200), 'white').save(base)
        markers = {
            LayerRole.TITLE: (100, (255, 0, 0, 255)),
            LayerRole.SUBTITLE: (80, (0, 255, 0, 255)),
            LayerRole.INSET: (60, (0, 0, 255, 255)),
            LayerRole.CAPTION: (40, (255, 255, 0, 255)),
            LayerRole.ICON: (20, (255, 0, 255, 255)),
        }
        rng = random.Random(3)
        for _ in range(5):
            layers = [_square(role, size, color) for role, (size, color) in markers.items()]
            rng.shuffle(layers)
            result = compose(base, layers, tmp_path / "out.png")
            image = result.image
            assert image.getpixel((100, 100)) == markers[LayerRole.ICON][1]
            assert image.getpixel((115, 100)) == markers[LayerRole.CAPTION][1]
            assert image.getpixel((125, 100)) == markers[LayerRole.INSET][1]
            assert image.getpixel((135, 100)) == markers[LayerRole.SUBTITLE][1]
            assert image.getpixel((145, 100)) == markers[LayerRole.TITLE][1]
            assert image.getpixel((5, 5)) == (255, 255, 255, 255)
            assert result.applied == tuple(LayerRole)


class TestApplyLayer:

    def test_returns_new_image(self):
        composed = ComposedImage(image=Image.new('RGBA', (50, 50), 'white'))
        layer = Layer(role=LayerRole.ICON, content=Image.new('RGBA', (10, 10), 'black'),
                      gravity=Gravity.NORTH_WEST)
        result = apply_layer(composed, layer)
        assert result is not composed
        assert composed.image.getpixel((0, 0)) == (255, 255, 255, 255)
        assert result.image.getpixel((0, 0)) == (0, 0, 0, 255)
        assert result.applied == (LayerRole.ICON,)

    def test_partly_off_canvas_is_clipped(self):
        composed = ComposedImage(image=Image.new('RGBA', (50, 50), 'white'))
        layer = Layer(role=LayerRole.INSET, content=Image.new('RGBA', (20, 20), 'black'),
                      gravity=Gravity.EAST, offset=(-10, 0))
        result = apply_layer(composed, layer)
        assert result.size == (50, 50)
        assert result.image.getpixel((49, 25)) == (0, 0, 0, 255)
        assert result.image.getpixel((39, 25)) == (255, 255, 255, 255)

    @pytest.mark.parametrize("gravity, offset", [
        (Gravity.EAST, (1200, -1000)),
        (Gravity.WEST, (1200, 0)),
        (Gravity.NORTH, (0, -30)),
        (Gravity.SOUTH, (0, 60)),
    ])
    def test_wholly_off_canvas_is_fatal(self, gravity, offset):
        composed = ComposedImage(image=Image.new('RGBA', (50, 50), 'white'))
        layer = Layer(role=LayerRole.SUBTITLE, content=Image.new('RGBA', (20, 20), 'black'),
                      gravity=gravity, offset=offset)
        with pytest.raises(FatalRenderError, match="outside") as exc_info:
            apply_layer(composed, layer)
        assert exc_info.value.stage == Stage.COMPOSITE

    def test_reference_offsets_need_scaling_on_smaller_canvas(self, tmp_path):
        """The default elevation-range offset misses a 3000px canvas entirely."""
        base = tmp_path / "base.png"
        Image.new('RGB', (3000, 2250), 'white').save(base)
        layer = Layer(role=LayerRole.SUBTITLE,
                      content=TextContent("Elevation Range: 6,094 ft", "DejaVu Sans", 110, "#000000"),
                      gravity=Gravity.WEST, offset=config.ELEVATION_OFFSET)
        with pytest.raises(FatalRenderError):
            compose(base, [layer], tmp_path / "out.png")
        assert not (tmp_path / "out.png").exists()

    def test_half_opacity(self):
        composed = ComposedImage(image=Image.new('RGBA', (10, 10), (255, 255, 255, 255)))
        layer = Layer(role=LayerRole.CAPTION, content=Image.new('RGBA', (10, 10), (0, 0, 0, 255)),
                      gravity=Gravity.CENTER, opacity=0.5)
        r, g, b, a = apply_layer(composed, layer).image.getpixel((5, 5))
        assert 120 <= r <= 135
        assert a == 255


class TestText:

    def test_render_text_patch(self):
        patch = render_text(TextContent("Area: 1,904 sq mi", "DejaVu Sans", 40, "#591c19"))
        assert patch.mode == 'RGBA'
        assert patch.size[0] > patch.size[1] > 0
        colors = {c[:3] for _, c in patch.getcolors(maxcolors=patch.size[0] * patch.size[1])
                  if c[3] == 255}
        assert (0x59, 0x1c, 0x19) in colors

    def test_title_layers(self):
        title, name = title_layers("A Portrait of", "Grand Canyon National Park",
                                   "DejaVu Sans", "#591c19")
        assert title.gravity == name.gravity == Gravity.NORTH
        assert title.offset == (0, 200)
        assert name.offset == (0, 400)
        assert title.content.size == 125
        assert name.content.size == 200
        assert name.content.weight == 700

    def test_caption_layer(self):
        layer = caption_layer("Data from AWS Terrain Tiles and USGS", "DejaVu Sans", "#591c19")
        assert layer.role == LayerRole.CAPTION
        assert layer.gravity == Gravity.SOUTH
        assert layer.offset == (0, 50)
        assert layer.opacity == 0.5
        assert layer.content.size == 75

    def test_caption_drawn_at_half_alpha(self, tmp_path):
        base = tmp_path / "base.png"
        Image.new('RGBA', (600, 200), (0, 0, 0, 0)).save(base)
        layer = caption_layer("Caption", "DejaVu Sans", "#ffffff", size=40)
        result = compose(base, [layer], tmp_path / "out.png")
        assert 0 < result.image.getchannel('A').getextrema()[1] <= 128

    def test_missing_font_is_fatal(self, tmp_path):
        base = tmp_path / "base.png"
        Image.new('RGB', (100, 100), 'white').save(base)
        layer = Layer(role=LayerRole.TITLE,
                      content=TextContent("Title", "Cinzel Decorative", 20, "#000000"),
                      gravity=Gravity.NORTH)
        with pytest.raises(FatalRenderError) as exc_info:
            compose(base, [layer], tmp_path / "out.png", font_dir=tmp_path / "no_fonts")
        assert exc_info.value.stage == Stage.COMPOSITE
        assert not (tmp_path / "out.png").exists()


class TestIcon:

    @pytest.fixture
    def icon_file(self, tmp_path):
        icon = Image.new('RGBA', (200, 100), (0, 0, 0, 0))
        for x in range(50, 150):
            for y in range(20, 80):
                icon.putpixel((x, y), (10, 20, 30, 255))
        path = tmp_path / "icon.png"
        icon.save(path)
        return path

    def test_tint_keeps_shape(self):
        icon = Image.new('RGBA', (4, 4), (0, 0, 0, 0))
        icon.putpixel((1, 1), (0, 0, 0, 255))
        tinted = tint_icon(icon, "#591c19", opacity=1.0)
        assert tinted.getpixel((1, 1)) == (0x59, 0x1c, 0x19, 255)
        assert tinted.getpixel((0, 0))[3] == 0

    def test_icon_layer(self, icon_file):
        layer = icon_layer(icon_file, "#591c19")
        assert layer.role == LayerRole.ICON
        assert layer.gravity == Gravity.SOUTH
        assert layer.offset == (-530, 65)
        assert layer.content.size == (150, 75)
        # solid centre of the glyph at half opacity
        assert 126 <= layer.content.getchannel('A').getpixel((75, 37)) <= 130

    def test_svg_rasterized_in_scoped_temp_dir(self, tmp_path, monkeypatch):
        scratch = tmp_path / "scratch"
        scratch.mkdir()
        monkeypatch.setattr(tempfile, "tempdir", str(scratch))
        svg = tmp_path / "icon.svg"
        svg.write_text('<svg xmlns="http://www.w3.org/2000/svg" width="4" height="2"/>')
        seen = []

        def fake_rasterize(svg_path, png_path, height):
            seen.append((svg_path, png_path, height))
            Image.new('RGBA', (2 * height, height), (0, 0, 0, 255)).save(png_path)
            return png_path

        monkeypatch.setattr(compositor, "rasterize_svg", fake_rasterize)
        layer = icon_layer(svg, "#591c19", height=30)

        (svg_path, png_path, height), = seen
        assert svg_path == svg
        assert height == 30
        assert png_path.parent.parent == scratch
        assert not png_path.exists()
        assert list(scratch.iterdir()) == []
        assert layer.content.size == (60, 30)

    def test_raster_icon_needs_no_temp_file(self, tmp_path, icon_file, monkeypatch):
        scratch = tmp_path / "scratch"
        scratch.mkdir()
        monkeypatch.setattr(tempfile, "tempdir", str(scratch))
        monkeypatch.setattr(compositor, "rasterize_svg", None)
        icon_layer(icon_file, "#591c19")
        assert list(scratch.iterdir()) == []

    @pytest.mark.skipif(not HAVE_CAIRO, reason="cairosvg or the cairo library is not installed")
    def test_default_svg_icon(self):
        layer = icon_layer(ICON_SVG, "#591c19", height=60)
        assert layer.content.size[1] == 60
        alpha = layer.content.getchannel('A')
        assert 0 < alpha.getextrema()[1] <= 128
        assert alpha.getpixel((0, 0)) == 0

    def test_unreadable_svg(self, tmp_path, monkeypatch):
        svg = tmp_path / "broken.svg"
        svg.write_text("not svg")

        def failing_rasterize(svg_path, png_path, height):
            raise ValueError("no root element")

        monkeypatch.setattr(compositor, "rasterize_svg", failing_rasterize)
        with pytest.raises(FatalRenderError) as exc_info:
            icon_layer(svg, "#000000")
        assert exc_info.value.stage == Stage.COMPOSITE

    def test_missing_icon(self, tmp_path):
        with pytest.raises(FatalRenderError) as exc_info:
            icon_layer(tmp_path / "nope.png", "#000000")
        assert exc_info.value.stage == Stage.COMPOSITE

    def test_with_opacity_copy(self):
        image = Image.new('RGBA', (2, 2), (1, 2, 3, 200))
        faded = with_opacity(image, 0.5)
        assert faded.getpixel((0, 0))[3] == 100
        assert image.getpixel((0, 0))[3] == 200


class TestCompose:

    def test_base_raster_untouched(self, tmp_path):
        base = tmp_path / "highres.png"
        Image.new('RGB', (100, 100), 'white').save(base)
        before = base.read_bytes()
        layer = Layer(role=LayerRole.ICON, content=Image.new('RGBA', (10, 10), 'black'),
                      gravity=Gravity.CENTER)
        out = tmp_path / "poster.png"
        compose(base, [layer], out)
        assert base.read_bytes() == before
        with Image.open(out) as img:
            assert img.size == (100, 100)

    def test_unreadable_base(self, tmp_path):
        with pytest.raises(FatalRenderError):
            compose(tmp_path / "missing.png", [], tmp_path / "out.png")
