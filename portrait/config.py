"""
Central configuration for the terrain-portrait project.

This is the single source of truth for default values.
"""

# Where intermediate and final rasters land. Intermediates are overwritten
# on each run; the high-res base raster is never overwritten by compositing.
DEFAULT_OUTPUT_ROOT = "plots"

# Tile cache for downloaded terrain tiles
DEFAULT_CACHE_DIR = "data/.cache/terrain_tiles"

# Web-mercator zoom level for the elevation query (~150m/pixel at zoom 10)
DEFAULT_ELEVATION_ZOOM = 10

# --- Layout ---
# No axis may be rendered below this fraction of the longer side
MIN_ASPECT_RATIO = 0.75

# --- Palette ---
DEFAULT_PALETTE = "Demuth"
RAMP_LENGTH = 256

# --- Scene ---
DEFAULT_ZSCALE = 10.0          # horizontal units per unit of height
DEFAULT_PHI = 90.0             # camera elevation, 90 = straight down
DEFAULT_THETA = 0.0            # rotation of the scene about the vertical axis
DEFAULT_ZOOM = 0.7
DEFAULT_SAMPLES = 300
PREVIEW_BASE_DIM = 800
FINAL_BASE_DIM = 6000

# Environment lighting
DEFAULT_ENVIRONMENT_LIGHT = "env/phalzer_forest_01_4k.hdr"
DEFAULT_LIGHT_INTENSITY = 1.5
DEFAULT_LIGHT_ROTATION = 180.0
# Key light altitude used when the environment map is reduced to a directional light
ENVIRONMENT_LIGHT_ALTITUDE = 45.0
# Azimuth of the key light before the environment rotation is applied
ENVIRONMENT_LIGHT_AZIMUTH = 315.0
# Matplotlib rasterizer settings
BACKGROUND_COLOR = "#ffffff"
RENDER_DPI = 100
# Surface mesh density cap per axis; larger grids are sampled down by matplotlib
MAX_SURFACE_CELLS = 1200

# --- Metrics ---
SQ_METERS_PER_SQ_MILE = 2_589_988
AREA_FACTOR = 1 / SQ_METERS_PER_SQ_MILE
FEET_PER_METER = 3.281
# World Cylindrical Equal Area, used for boundary area
EQUAL_AREA_CRS = "EPSG:6933"

# --- Typography ---
DEFAULT_FONT_FAMILY = "Cinzel Decorative"
TITLE_SIZE = 125
NAME_SIZE = 200
SUBTITLE_SIZE = 110
CAPTION_SIZE = 75
CAPTION_OPACITY = 0.5
NAME_WEIGHT = 700

# --- Locator inset ---
LOCATOR_BUFFER_METERS = 100_000
INSET_TARGET_WIDTH = 1333
INSET_CRS = "EPSG:3347"
INSET_FIGSIZE = (4 * 1.5, 3 * 1.5)   # inches
INSET_DPI = 300
INSET_LINE_WIDTH = 0.6         # points
DEFAULT_INSET_COUNTRY = "United States of America"

# --- Attribution icon ---
ICON_HEIGHT = 75
ICON_OPACITY = 0.5
DEFAULT_ICON_PATH = "icons/attribution.svg"

# --- Placement ---
# Text sizes, inset width, icon height and gravity offsets are given in pixels
# for a canvas whose longer side is REFERENCE_BASE_DIM; other final sizes
# scale them proportionally
REFERENCE_BASE_DIM = 6000
TITLE_OFFSET = (0, 200)
NAME_OFFSET = (0, 400)
AREA_OFFSET = (1200, -1000)
ELEVATION_OFFSET = (1200, -1300)
INSET_OFFSET = (1200, -1000)
CAPTION_OFFSET = (0, 50)
ICON_OFFSET = (-530, 65)
