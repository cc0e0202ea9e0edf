"""Grid construction: physical settings → per-cell palette indices."""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from typing import Any

import numpy as np
from PIL import Image

from mystery_mosaic.color_utils import freeze_palette
from mystery_mosaic.config import (
    MM_PER_INCH,
    MosaicConfigError,
    MosaicSettings,
    Sampling,
)
from mystery_mosaic.matching import match_colors

logger = logging.getLogger(__name__)

_RESAMPLE = {
    Sampling.POINT: Image.NEAREST,
    Sampling.AREA: Image.BOX,
}


@dataclass(frozen=True, eq=False)
class MosaicResult:
    """Index grid plus summary counts.

    Attributes:
        grid:        (grid_height, grid_width) read-only array of palette indices.
        used_colors: Number of distinct indices present in ``grid``.
        total_tiles: ``grid_width * grid_height``.
    """

    grid: np.ndarray
    used_colors: int
    total_tiles: int

    @property
    def grid_width(self) -> int:
        return int(self.grid.shape[1])

    @property
    def grid_height(self) -> int:
        return int(self.grid.shape[0])

    @property
    def grid_dimensions(self) -> tuple[int, int]:
        return self.grid_width, self.grid_height

    def used_indices(self) -> list[int]:
        """Distinct indices in the grid, ascending."""
        return [int(i) for i in np.unique(self.grid)]

    def to_dict(self) -> dict[str, Any]:
        return {
            "grid": self.grid.tolist(),
            "usedColors": self.used_colors,
            "totalTiles": self.total_tiles,
            "gridDimensions": {"width": self.grid_width, "height": self.grid_height},
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MosaicResult:
        grid = np.array(data["grid"], dtype=np.int64)
        if grid.ndim != 2 or grid.size == 0:
            msg = f"Grid must be a non-empty list of equal-length rows, got shape {grid.shape}"
            raise MosaicConfigError(msg)
        dims = data.get("gridDimensions")
        if dims and grid.shape != (dims["height"], dims["width"]):
            msg = (
                f"Grid shape {grid.shape[::-1]} does not match "
                f"gridDimensions {dims['width']}x{dims['height']}"
            )
            raise MosaicConfigError(msg)
        return _make_result(grid)


def compute_grid_dimensions(settings: MosaicSettings) -> tuple[int, int]:
    """Tiles across and down for the canvas at the given tile size.

    Raises:
        MosaicConfigError: If the tile is too large for either axis.
    """
    tiles_per_inch = MM_PER_INCH / settings.tile_size
    width = math.floor(settings.canvas_width * tiles_per_inch)
    height = math.floor(settings.canvas_height * tiles_per_inch)
    if width < 1 or height < 1:
        msg = (
            f"Tile size {settings.tile_size:g} mm is too large for a "
            f"{settings.canvas_width:g}x{settings.canvas_height:g} in canvas "
            f"(grid would be {width}x{height})"
        )
        raise MosaicConfigError(msg)
    return width, height


def sample_cells(
    pixels: np.ndarray,
    width: int,
    height: int,
    sampling: Sampling | str = Sampling.POINT,
) -> np.ndarray:
    """Resample an image to exactly one colour per cell.

    Args:
        pixels:   (H, W, 3|4) uint8 image. Alpha is dropped.
        width:    Grid columns.
        height:   Grid rows.
        sampling: ``"point"`` (nearest neighbour) or ``"area"`` (box average).

    Returns:
        (height, width, 3) uint8 array.
    """
    rgb = np.ascontiguousarray(np.asarray(pixels, dtype=np.uint8)[..., :3])
    img = Image.fromarray(rgb)
    img = img.resize((width, height), _RESAMPLE[Sampling(sampling)])
    return np.array(img, dtype=np.uint8)


def build_mosaic(
    pixels: np.ndarray,
    settings: MosaicSettings,
    palette: np.ndarray,
) -> MosaicResult:
    """Assign every grid cell the closest palette index.

    Identical inputs always produce an identical result.

    Args:
        pixels:   (H, W, 3|4) uint8 decoded image.
        settings: Validated mosaic settings.
        palette:  (K, 3) uint8 palette, 1 <= K <= 64.

    Returns:
        :class:`MosaicResult` with a (grid_height, grid_width) index grid.
    """
    palette = freeze_palette(palette)
    width, height = compute_grid_dimensions(settings)
    logger.info(
        "Grid %dx%d = %d tiles (%s, %s sampling)",
        width, height, width * height,
        settings.color_matching.value, settings.sampling.value,
    )

    t0 = time.perf_counter()
    cells = sample_cells(pixels, width, height, settings.sampling)
    indices = match_colors(cells.reshape(-1, 3), palette, settings.color_matching)
    result = _make_result(indices.reshape(height, width))
    logger.info(
        "Matched %d tiles to %d/%d colours  (%.2f s)",
        result.total_tiles, result.used_colors, len(palette), time.perf_counter() - t0,
    )
    return result


def _make_result(grid: np.ndarray) -> MosaicResult:
    grid = np.array(grid, dtype=np.int64)
    grid.flags.writeable = False
    return MosaicResult(
        grid=grid,
        used_colors=len(np.unique(grid)),
        total_tiles=int(grid.size),
    )
