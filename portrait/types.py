"""
Type definitions for the terrain-portrait project.

This module contains enums used throughout the codebase.
"""

from enum import Enum


class Stage(str, Enum):
    """
    Pipeline stage labels.

    Every PipelineError carries one of these so the caller knows which
    stage to resume from. Inherits from str so it prints and compares
    as a plain string.
    """
    LOADER = "loader"
    LAYOUT = "layout"
    PALETTE = "palette"
    RENDER = "render"
    ANNOTATE = "annotate"
    INSET = "inset"
    COMPOSITE = "composite"

    def __str__(self) -> str:
        """Return the string value for easy printing."""
        return self.value


class Gravity(str, Enum):
    """
    Anchor points on a canvas for relative layer placement.

    Offsets are applied inward from the anchor: +x moves away from the
    east/west edge it is pinned to, +y moves away from the north/south
    edge. On the centred axis, +x moves right and +y moves down.
    """
    NORTH_WEST = "northwest"
    NORTH = "north"
    NORTH_EAST = "northeast"
    WEST = "west"
    CENTER = "center"
    EAST = "east"
    SOUTH_WEST = "southwest"
    SOUTH = "south"
    SOUTH_EAST = "southeast"

    def __str__(self) -> str:
        return self.value


class LayerRole(str, Enum):
    """
    Purpose of a composite layer. Declaration order is draw order.
    """
    TITLE = "title"
    SUBTITLE = "subtitle"
    INSET = "inset"
    CAPTION = "caption"
    ICON = "icon"

    def __str__(self) -> str:
        return self.value

    @property
    def draw_rank(self) -> int:
        """Position of this role in the fixed composite order."""
        return list(LayerRole).index(self)
