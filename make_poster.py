"""
Render an annotated terrain portrait poster for one region.

Usage:
    python make_poster.py data/boundaries/gcnp.shp plots/gcnp_fully_annotated.png
    python make_poster.py park.gpkg poster.png --name "Zion National Park" --palette Hokusai2
    python make_poster.py park.geojson poster.png --no-preview --final-dim 3000
    python make_poster.py --list-palettes
"""
import argparse
import sys
from pathlib import Path

from portrait.errors import PipelineError
from portrait.fonts import list_font_families
from portrait.palettes import list_palettes
from portrait.pipeline import run_pipeline
from portrait.settings import load_settings


def main():
    parser = argparse.ArgumentParser(
        description='Render an annotated 3D terrain poster from a boundary file',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python make_poster.py gcnp.shp plots/gcnp_fully_annotated.png
    python make_poster.py park.gpkg poster.png --name "Zion National Park"
    python make_poster.py park.gpkg poster.png --palette Hokusai2 --zscale 5

Defaults come from the "poster" section of settings.json (see
settings.example.json); command-line options override them.

Intermediate rasters are written under the output root (default plots/):
    <region>_preview.png, <region>_highres.png, <region>_inset.png
        """
    )
    parser.add_argument('boundary', nargs='?', help='Boundary vector file (shapefile, GeoPackage, GeoJSON)')
    parser.add_argument('output', nargs='?', help='Final poster PNG path')
    parser.add_argument('--settings', default='settings.json',
                        help='Settings file (default: settings.json)')
    parser.add_argument('--name', dest='region_name', help='Region name used in the title')
    parser.add_argument('--palette', help='Named palette (see --list-palettes)')
    parser.add_argument('--font', dest='font_family', help='Font family (see --list-fonts)')
    parser.add_argument('--zscale', type=float, help='Height exaggeration divisor')
    parser.add_argument('--zoom-level', dest='elevation_zoom', type=int,
                        help='Terrain tile zoom level for the elevation query')
    parser.add_argument('--final-dim', dest='final_base_dim', type=int,
                        help='Longer side of the high-res render in pixels')
    parser.add_argument('--samples', type=int, help='Render quality samples')
    parser.add_argument('--icon', dest='icon_path', help='Attribution icon (SVG, or PNG with transparency)')
    parser.add_argument('--output-root', help='Directory for intermediate rasters')
    parser.add_argument('--no-preview', action='store_true', help='Skip the 800px preview render')
    parser.add_argument('--list-palettes', action='store_true', help='List available palettes')
    parser.add_argument('--list-fonts', action='store_true', help='List available font families')

    args = parser.parse_args()

    if args.list_palettes:
        print("\nAvailable palettes:")
        for name in list_palettes():
            print(f"  {name}")
        return 0
    if args.list_fonts:
        print("\nAvailable font families:")
        for family in list_font_families():
            print(f"  {family}")
        return 0

    if not args.boundary or not args.output:
        parser.error("boundary and output are required")

    overrides = {
        'region_name': args.region_name,
        'palette': args.palette,
        'font_family': args.font_family,
        'zscale': args.zscale,
        'elevation_zoom': args.elevation_zoom,
        'final_base_dim': args.final_base_dim,
        'samples': args.samples,
        'icon_path': args.icon_path,
        'output_root': args.output_root,
    }
    if args.no_preview:
        overrides['render_preview'] = False

    try:
        config = load_settings(args.settings, overrides)
        run_pipeline(config, Path(args.boundary), Path(args.output))
    except PipelineError as e:
        print(f"\n[!] Pipeline aborted at stage '{e.stage}': {e.message}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
