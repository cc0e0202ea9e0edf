"""Image loading, preview/export rendering and result persistence."""

from __future__ import annotations

import json
import logging
import time
from pathlib import Path

import numpy as np
from PIL import Image

from mystery_mosaic.color_utils import palette_to_hex, parse_palette
from mystery_mosaic.config import MosaicSettings, RenderMode
from mystery_mosaic.grid import MosaicResult
from mystery_mosaic.rendering import (
    EXPORT_FONT_SCALE,
    PREVIEW_FONT_SCALE,
    WHITE,
    PillowSurface,
    compute_export_size,
    compute_preview_size,
    render_mosaic,
)

logger = logging.getLogger(__name__)


def fit_to_canvas(
    image_width: int,
    image_height: int,
    canvas_width: int,
    canvas_height: int,
) -> tuple[int, int, int, int]:
    """Letterbox placement ``(x, y, w, h)`` of an image inside a canvas.

    The image keeps its aspect ratio and is centred along the spare axis.
    """
    image_aspect = image_width / image_height
    canvas_aspect = canvas_width / canvas_height
    if image_aspect > canvas_aspect:
        w = canvas_width
        h = max(1, round(canvas_width / image_aspect))
        return 0, (canvas_height - h) // 2, w, h
    h = canvas_height
    w = max(1, round(canvas_height * image_aspect))
    return (canvas_width - w) // 2, 0, w, h


def load_rgb(path: str | Path) -> np.ndarray:
    """Decode an image as-is into an (H, W, 3) uint8 array."""
    return np.array(Image.open(path).convert("RGB"), dtype=np.uint8)


def load_pixels(
    path: str | Path,
    settings: MosaicSettings,
    dpi: int = 300,
) -> np.ndarray:
    """Decode an image onto a white canvas shaped like the print.

    Returns:
        (canvas_height * dpi, canvas_width * dpi, 3) uint8 array.
    """
    img = Image.open(path).convert("RGB")
    cw, ch = compute_export_size(settings, dpi)
    x, y, w, h = fit_to_canvas(img.width, img.height, cw, ch)

    canvas = Image.new("RGB", (cw, ch), WHITE)
    canvas.paste(img.resize((w, h), Image.LANCZOS), (x, y))
    logger.debug("Loaded %s (%dx%d) onto %dx%d canvas", path, img.width, img.height, cw, ch)
    return np.array(canvas, dtype=np.uint8)


def render_preview(
    result: MosaicResult,
    palette: np.ndarray,
    settings: MosaicSettings,
    mode: RenderMode | str = RenderMode.COLORED,
    viewport_width: int = 800,
) -> PillowSurface:
    """Viewport-wide render with large numerals and no legend."""
    w, h = compute_preview_size(result.grid_width, result.grid_height, viewport_width)
    surface = PillowSurface(w, h)
    render_mosaic(surface, result.grid, palette, settings, mode, font_scale=PREVIEW_FONT_SCALE)
    return surface


def render_export(
    result: MosaicResult,
    palette: np.ndarray,
    settings: MosaicSettings,
    mode: RenderMode | str = RenderMode.COLORED,
    legend: bool = False,
    dpi: int = 300,
) -> PillowSurface:
    """Print-resolution render (canvas inches x *dpi*)."""
    w, h = compute_export_size(settings, dpi)
    logger.info("Rendering %s export at %dx%d px (%d DPI) …", RenderMode(mode).value, w, h, dpi)
    t0 = time.perf_counter()
    surface = PillowSurface(w, h)
    render_mosaic(
        surface, result.grid, palette, settings, mode,
        legend=legend, font_scale=EXPORT_FONT_SCALE,
    )
    logger.info("Export rendered  (%.1f s)", time.perf_counter() - t0)
    return surface


def save_surface(surface: PillowSurface, path: str | Path) -> None:
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    surface.save(path)


def save_result(
    path: str | Path,
    result: MosaicResult,
    settings: MosaicSettings,
    palette: np.ndarray,
) -> None:
    """Write settings, palette and grid as one JSON record."""
    record = {
        "settings": settings.to_dict(),
        "colorPalette": palette_to_hex(palette),
        "processedData": result.to_dict(),
    }
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    Path(path).write_text(json.dumps(record))


def load_result(path: str | Path) -> tuple[MosaicResult, MosaicSettings, np.ndarray]:
    """Inverse of :func:`save_result`."""
    record = json.loads(Path(path).read_text())
    settings = MosaicSettings.from_dict(record["settings"]).validate()
    palette = parse_palette(record["colorPalette"])
    result = MosaicResult.from_dict(record["processedData"])
    return result, settings, palette
