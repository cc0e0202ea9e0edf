"""
Mystery Mosaic
==============

Turn a photograph into a paint-by-numbers tile mosaic: a fixed grid in
which every cell holds one index into a small colour palette.

- **Median-cut** palette derivation
- **nearest / perceptual / lab** colour matching
- **square / circle / triangle / hexagon** tessellations, rendered
  colored, numbered or split at any resolution
"""

__version__ = "1.0.0"

from mystery_mosaic.color_utils import (
    DEFAULT_PALETTE,
    hex_to_rgb,
    parse_palette,
    rgb_to_hex,
    rgb_to_lab,
)
from mystery_mosaic.config import (
    ColorMatching,
    MosaicConfig,
    MosaicConfigError,
    MosaicSettings,
    RenderMode,
    Sampling,
    TileShape,
)
from mystery_mosaic.grid import MosaicResult, build_mosaic, compute_grid_dimensions
from mystery_mosaic.image_io import load_pixels, render_export, render_preview
from mystery_mosaic.matching import closest_index, match_colors
from mystery_mosaic.palette import extract_palette, median_cut
from mystery_mosaic.rendering import PillowSurface, RasterSurface, render_mosaic, tile_path

__all__ = [
    "DEFAULT_PALETTE",
    "ColorMatching",
    "MosaicConfig",
    "MosaicConfigError",
    "MosaicResult",
    "MosaicSettings",
    "PillowSurface",
    "RasterSurface",
    "RenderMode",
    "Sampling",
    "TileShape",
    "build_mosaic",
    "closest_index",
    "compute_grid_dimensions",
    "extract_palette",
    "hex_to_rgb",
    "load_pixels",
    "match_colors",
    "median_cut",
    "parse_palette",
    "render_export",
    "render_mosaic",
    "render_preview",
    "rgb_to_hex",
    "rgb_to_lab",
    "tile_path",
]
