"""
Aspect-ratio planning for the rendered scene.

The render canvas is a square of side base_dim; each axis gets the share
of it that matches the grid shape, except that no axis drops below
MIN_ASPECT_RATIO so long thin regions don't render as slivers.
"""
from portrait.config import MIN_ASPECT_RATIO
from portrait.data_types import AspectPlan, ElevationGrid


def plan_aspect(width: int, height: int, floor: float = MIN_ASPECT_RATIO) -> AspectPlan:
    """
    Derive normalized width/height ratios from a grid shape.

    Args:
        width: Grid width in cells (columns), >= 1
        height: Grid height in cells (rows), >= 1
        floor: Minimum ratio for the shorter axis

    Returns:
        AspectPlan with max ratio 1.0 and min ratio >= floor

    Example:
        plan_aspect(100, 200) -> AspectPlan(width_ratio=0.75, height_ratio=1.0)
    """
    longest = max(width, height)
    wr = width / longest
    hr = height / longest

    # Only one ratio can be short: the longer axis always normalizes to 1.0
    assert max(wr, hr) == 1.0, f"Normalization failed for {width}x{height}"

    if min(wr, hr) < floor:
        if wr < floor:
            wr = floor
        else:
            hr = floor

    return AspectPlan(width_ratio=wr, height_ratio=hr)


def plan_for_grid(grid: ElevationGrid, floor: float = MIN_ASPECT_RATIO) -> AspectPlan:
    """AspectPlan for an ElevationGrid's (width, height)."""
    return plan_aspect(grid.width, grid.height, floor)
