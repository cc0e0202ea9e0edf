"""Centralised configuration via frozen dataclasses and closed enums."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any


class MosaicConfigError(ValueError):
    """Invalid settings, palette size or degenerate grid."""


class TileShape(str, Enum):
    SQUARE = "square"
    CIRCLE = "circle"
    TRIANGLE = "triangle"
    HEXAGON = "hexagon"


class ColorMatching(str, Enum):
    NEAREST = "nearest"
    PERCEPTUAL = "perceptual"
    LAB = "lab"


class RenderMode(str, Enum):
    COLORED = "colored"
    NUMBERED = "numbered"
    SPLIT = "split"


class Sampling(str, Enum):
    """How the source image is reduced to one colour per cell."""

    POINT = "point"
    AREA = "area"


MM_PER_INCH = 25.4

CANVAS_RANGE = (1.0, 20.0)  # inches
TILE_SIZE_RANGE = (1.0, 20.0)  # mm


@dataclass(frozen=True)
class MosaicSettings:
    """Physical canvas and tile parameters for one mosaic.

    Attributes:
        canvas_width:   Canvas width in inches (1-20).
        canvas_height:  Canvas height in inches (1-20).
        tile_size:      Tile edge in millimetres (1-20).
        tile_shape:     Tessellation used when rendering.
        color_matching: Distance metric used to pick palette entries.
        anti_aliasing:  Accepted for compatibility, no effect.
        dithering:      Accepted for compatibility, no effect.
        sampling:       "point" (nearest-neighbour) or "area" (box average).
    """

    canvas_width: float = 8.5
    canvas_height: float = 11.0
    tile_size: float = 4.0
    tile_shape: TileShape = TileShape.SQUARE
    color_matching: ColorMatching = ColorMatching.NEAREST
    anti_aliasing: bool = True
    dithering: bool = False
    sampling: Sampling = Sampling.POINT

    def __post_init__(self) -> None:
        # Accept plain strings from JSON / CLI input
        object.__setattr__(self, "tile_shape", TileShape(self.tile_shape))
        object.__setattr__(self, "color_matching", ColorMatching(self.color_matching))
        object.__setattr__(self, "sampling", Sampling(self.sampling))

    def validate(self) -> MosaicSettings:
        """Raise :class:`MosaicConfigError` unless every field is in range."""
        checks = [
            ("canvas_width", self.canvas_width, CANVAS_RANGE),
            ("canvas_height", self.canvas_height, CANVAS_RANGE),
            ("tile_size", self.tile_size, TILE_SIZE_RANGE),
        ]
        for name, value, (lo, hi) in checks:
            if not math.isfinite(value) or not lo <= value <= hi:
                msg = f"{name} must be a finite number in [{lo:g}, {hi:g}], got {value!r}"
                raise MosaicConfigError(msg)
        return self

    def to_dict(self) -> dict[str, Any]:
        return {
            "canvasWidth": self.canvas_width,
            "canvasHeight": self.canvas_height,
            "tileSize": self.tile_size,
            "tileShape": self.tile_shape.value,
            "colorMatching": self.color_matching.value,
            "antiAliasing": self.anti_aliasing,
            "dithering": self.dithering,
            "sampling": self.sampling.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MosaicSettings:
        defaults = cls()
        return cls(
            canvas_width=float(data.get("canvasWidth", defaults.canvas_width)),
            canvas_height=float(data.get("canvasHeight", defaults.canvas_height)),
            tile_size=float(data.get("tileSize", defaults.tile_size)),
            tile_shape=data.get("tileShape", defaults.tile_shape),
            color_matching=data.get("colorMatching", defaults.color_matching),
            anti_aliasing=bool(data.get("antiAliasing", defaults.anti_aliasing)),
            dithering=bool(data.get("dithering", defaults.dithering)),
            sampling=data.get("sampling", defaults.sampling),
        )


@dataclass(frozen=True)
class MosaicConfig:
    """Host-side parameters for loading, previewing and exporting.

    Attributes:
        dpi:                 Print resolution for export surfaces.
        preview_width:       Width in pixels of the on-screen preview.
        palette_size:        Colour count when auto-deriving a palette.
        max_palette_samples: Upper bound on pixels fed to median-cut.
        output_format:       Image format for saved files.
        output_dir:          Folder for results.
    """

    dpi: int = 300
    preview_width: int = 800
    palette_size: int = 24
    max_palette_samples: int = 250_000
    output_format: str = "png"
    output_dir: Path = field(default_factory=lambda: Path("output"))

    SUPPORTED_EXTENSIONS: frozenset[str] = frozenset(
        {".jpg", ".jpeg", ".png", ".bmp", ".tiff", ".tif", ".webp", ".gif"}
    )
