"""Tile rasterisation shared by on-screen preview and print export.

Every offset and size is a fraction of the tile dimensions, so the same
grid rendered at 800 px wide or at 300 DPI gives self-similar output.
The one exception is the square inset and the stroke width, which are
1 surface unit regardless of scale.
"""

from __future__ import annotations

import math
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

import numpy as np
from PIL import Image, ImageDraw, ImageFont

from mystery_mosaic.color_utils import rgb_to_hex
from mystery_mosaic.config import MosaicConfigError, MosaicSettings, RenderMode, TileShape

RGB = tuple[int, int, int]

BLACK: RGB = (0, 0, 0)
WHITE: RGB = (255, 255, 255)

SQUARE_INSET = 1.0
STROKE_WIDTH = 1.0
CIRCLE_RADIUS_RATIO = 0.85
HEX_RADIUS_RATIO = 0.9

# Numerals relative to min(tile_w, tile_h)
PREVIEW_FONT_SCALE = 0.6
EXPORT_FONT_SCALE = 0.4

LEGEND_MARGIN = 20
LEGEND_PADDING = 10
LEGEND_WIDTH = 200
LEGEND_ROW_HEIGHT = 30
LEGEND_SWATCH = 20
LEGEND_FONT_SIZE = 14

_FONT_PATH = "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf"


# -- Paths -------------------------------------------------------------


@dataclass(frozen=True)
class Polygon:
    points: tuple[tuple[float, float], ...]


@dataclass(frozen=True)
class Ellipse:
    cx: float
    cy: float
    rx: float
    ry: float

    @property
    def bbox(self) -> tuple[float, float, float, float]:
        return (self.cx - self.rx, self.cy - self.ry, self.cx + self.rx, self.cy + self.ry)


TilePath = Polygon | Ellipse


def rectangle(x: float, y: float, w: float, h: float) -> Polygon:
    return Polygon(((x, y), (x + w, y), (x + w, y + h), (x, y + h)))


# -- Surfaces ----------------------------------------------------------


class RasterSurface(Protocol):
    """Anything the rasteriser can draw on."""

    width: int
    height: int

    def fill_path(self, path: TilePath, color: RGB) -> None: ...

    def stroke_path(self, path: TilePath, color: RGB, line_width: float = 1.0) -> None: ...

    def draw_text(
        self,
        position: tuple[float, float],
        text: str,
        size: float,
        color: RGB,
        align: str = "center",
    ) -> None: ...


class PillowSurface:
    """:class:`RasterSurface` backed by an RGB ``PIL.Image``."""

    _ANCHORS = {"center": "mm", "left": "lm"}

    def __init__(self, width: int, height: int, background: RGB = WHITE) -> None:
        self.width = width
        self.height = height
        self.image = Image.new("RGB", (width, height), background)
        self._draw = ImageDraw.Draw(self.image)
        self._fonts: dict[int, ImageFont.ImageFont | ImageFont.FreeTypeFont] = {}

    def fill_path(self, path: TilePath, color: RGB) -> None:
        if isinstance(path, Ellipse):
            self._draw.ellipse(path.bbox, fill=color)
        else:
            self._draw.polygon(path.points, fill=color)

    def stroke_path(self, path: TilePath, color: RGB, line_width: float = 1.0) -> None:
        width = max(1, round(line_width))
        if isinstance(path, Ellipse):
            self._draw.ellipse(path.bbox, outline=color, width=width)
        else:
            self._draw.polygon(path.points, outline=color, width=width)

    def draw_text(
        self,
        position: tuple[float, float],
        text: str,
        size: float,
        color: RGB,
        align: str = "center",
    ) -> None:
        font = self._font(max(1, round(size)))
        self._draw.text(position, text, fill=color, font=font, anchor=self._ANCHORS[align])

    def save(self, path: str | Path) -> None:
        self.image.save(path)

    def to_array(self) -> np.ndarray:
        return np.array(self.image, dtype=np.uint8)

    def _font(self, size: int) -> ImageFont.ImageFont | ImageFont.FreeTypeFont:
        if size not in self._fonts:
            try:
                self._fonts[size] = ImageFont.truetype(_FONT_PATH, size)
            except OSError:
                self._fonts[size] = ImageFont.load_default(size=size)
        return self._fonts[size]


# -- Tessellation ------------------------------------------------------


def is_apex_up(row: int, col: int) -> bool:
    """Triangle orientation alternates like a checkerboard."""
    return (row + col) % 2 == 0


def _square(row: int, col: int, x: float, y: float, w: float, h: float) -> TilePath:
    inset = SQUARE_INSET
    return rectangle(x + inset, y + inset, w - 2 * inset, h - 2 * inset)


def _circle(row: int, col: int, x: float, y: float, w: float, h: float) -> TilePath:
    r = CIRCLE_RADIUS_RATIO * min(w, h) / 2
    offset = r if row % 2 else 0.0  # brick packing
    return Ellipse(x + w / 2 + offset, y + h / 2, r, r)


def _triangle(row: int, col: int, x: float, y: float, w: float, h: float) -> TilePath:
    # Base spans two cells and the pitch is one cell (half a base), so each
    # triangle shares its slanted edges with the neighbours on either side.
    cx = x + w / 2
    top, bottom = y, y + h
    if is_apex_up(row, col):
        return Polygon(((cx, top), (cx + w, bottom), (cx - w, bottom)))
    return Polygon(((cx - w, top), (cx + w, top), (cx, bottom)))


def _hexagon(row: int, col: int, x: float, y: float, w: float, h: float) -> TilePath:
    r = HEX_RADIUS_RATIO * min(w, h) / 2
    offset = w / 2 if row % 2 else 0.0  # odd rows shift by half a pitch
    cx = x + w / 2 + offset
    cy = y + h / 2
    return Polygon(tuple(
        (cx + r * math.cos(i * math.pi / 3), cy + r * math.sin(i * math.pi / 3))
        for i in range(6)
    ))


_SHAPES: dict[TileShape, Callable[[int, int, float, float, float, float], TilePath]] = {
    TileShape.SQUARE: _square,
    TileShape.CIRCLE: _circle,
    TileShape.TRIANGLE: _triangle,
    TileShape.HEXAGON: _hexagon,
}


def tile_path(
    shape: TileShape | str,
    row: int,
    col: int,
    tile_w: float,
    tile_h: float,
) -> TilePath:
    """Outline of the tile at (*row*, *col*) for a grid of *tile_w* x *tile_h* cells."""
    return _SHAPES[TileShape(shape)](row, col, col * tile_w, row * tile_h, tile_w, tile_h)


# -- Render modes ------------------------------------------------------


def _colored(surface: RasterSurface, path: TilePath, color: RGB,
             label: str, center: tuple[float, float], font_size: float) -> None:
    surface.fill_path(path, color)
    surface.stroke_path(path, BLACK, STROKE_WIDTH)


def _numbered(surface: RasterSurface, path: TilePath, color: RGB,
              label: str, center: tuple[float, float], font_size: float) -> None:
    surface.stroke_path(path, BLACK, STROKE_WIDTH)
    surface.draw_text(center, label, font_size, BLACK)


def _split(surface: RasterSurface, path: TilePath, color: RGB,
           label: str, center: tuple[float, float], font_size: float) -> None:
    _colored(surface, path, color, label, center, font_size)
    surface.draw_text(center, label, font_size, BLACK)


_MODES = {
    RenderMode.COLORED: _colored,
    RenderMode.NUMBERED: _numbered,
    RenderMode.SPLIT: _split,
}


def render_mosaic(
    surface: RasterSurface,
    grid: np.ndarray,
    palette: np.ndarray,
    settings: MosaicSettings,
    mode: RenderMode | str = RenderMode.COLORED,
    legend: bool = False,
    font_scale: float = PREVIEW_FONT_SCALE,
) -> None:
    """Draw an index grid onto *surface*.

    Args:
        surface:    Caller-owned drawing target; only drawn on.
        grid:       (rows, cols) palette indices.
        palette:    (K, 3) RGB palette.
        settings:   Supplies the tile shape.
        mode:       ``"colored"``, ``"numbered"`` or ``"split"``.
        legend:     Add the used-colour key in the top-right corner.
        font_scale: Numeral size as a fraction of the smaller tile side.
    """
    grid = np.asarray(grid)
    rows, cols = grid.shape
    colors = [tuple(int(v) for v in c) for c in np.asarray(palette).reshape(-1, 3)]
    if grid.size and (grid.min() < 0 or grid.max() >= len(colors)):
        msg = f"Grid holds indices outside the {len(colors)}-colour palette"
        raise MosaicConfigError(msg)

    draw = _MODES[RenderMode(mode)]
    shape = settings.tile_shape
    tile_w = surface.width / cols
    tile_h = surface.height / rows
    font_size = font_scale * min(tile_w, tile_h)

    for row in range(rows):
        for col in range(cols):
            idx = int(grid[row, col])
            center = (col * tile_w + tile_w / 2, row * tile_h + tile_h / 2)
            path = tile_path(shape, row, col, tile_w, tile_h)
            draw(surface, path, colors[idx], str(idx + 1), center, font_size)

    if legend:
        draw_legend(surface, grid, palette)


def draw_legend(surface: RasterSurface, grid: np.ndarray, palette: np.ndarray) -> None:
    """Bordered key of every index used in *grid*, ascending."""
    used = [int(i) for i in np.unique(np.asarray(grid))]
    colors = np.asarray(palette).reshape(-1, 3)

    x = surface.width - LEGEND_WIDTH - LEGEND_MARGIN
    y0 = LEGEND_MARGIN
    panel = rectangle(
        x - LEGEND_PADDING,
        y0 - LEGEND_PADDING,
        LEGEND_WIDTH + 2 * LEGEND_PADDING,
        len(used) * LEGEND_ROW_HEIGHT + 2 * LEGEND_PADDING,
    )
    surface.fill_path(panel, WHITE)
    surface.stroke_path(panel, BLACK, STROKE_WIDTH)

    for i, idx in enumerate(used):
        y = y0 + i * LEGEND_ROW_HEIGHT
        color = tuple(int(v) for v in colors[idx])
        swatch = rectangle(x, y, LEGEND_SWATCH, LEGEND_SWATCH)
        surface.fill_path(swatch, color)
        surface.stroke_path(swatch, BLACK, STROKE_WIDTH)
        surface.draw_text(
            (x + LEGEND_SWATCH + 10, y + LEGEND_SWATCH / 2),
            f"{idx + 1}: {rgb_to_hex(*color)}",
            LEGEND_FONT_SIZE,
            BLACK,
            align="left",
        )


# -- Surface sizes -----------------------------------------------------


def compute_preview_size(grid_width: int, grid_height: int,
                         viewport_width: int = 800) -> tuple[int, int]:
    """Viewport-wide surface with the grid's aspect ratio."""
    return viewport_width, max(1, int(viewport_width * grid_height / grid_width))


def compute_export_size(settings: MosaicSettings, dpi: int = 300) -> tuple[int, int]:
    """Print surface: canvas inches x *dpi*, rounded half-up."""
    return (
        math.floor(settings.canvas_width * dpi + 0.5),
        math.floor(settings.canvas_height * dpi + 0.5),
    )
