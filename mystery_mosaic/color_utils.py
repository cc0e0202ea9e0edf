"""Colour parsing and sRGB → linear → XYZ → CIELAB conversion."""

from __future__ import annotations

import re
from collections.abc import Sequence

import numpy as np

from mystery_mosaic.config import MosaicConfigError

MAX_PALETTE_SIZE = 64

# D65 reference white
REF_X, REF_Y, REF_Z = 95.047, 100.000, 108.883

_HEX_RE = re.compile(r"#?([0-9a-fA-F]{2})([0-9a-fA-F]{2})([0-9a-fA-F]{2})")

DEFAULT_PALETTE = [
    "#FF6B6B", "#4ECDC4", "#45B7D1", "#96CEB4", "#FFEAA7", "#DDA0DD",
    "#FFA07A", "#98D8C8", "#F7DC6F", "#BB8FCE", "#85C1E9", "#F8C471",
    "#82E0AA", "#F1948A", "#85929E", "#D5A6BD", "#A9CCE3", "#F9E79F",
    "#ABEBC6", "#F5B7B1", "#AEB6BF", "#E8DAEF", "#D6EAF8", "#FCF3CF",
]


def hex_to_rgb(hex_str: str) -> tuple[int, int, int]:
    """Parse ``'#RRGGBB'`` (``#`` optional) into an RGB triple.

    Anything malformed parses as black instead of raising.
    """
    m = _HEX_RE.fullmatch(hex_str) if isinstance(hex_str, str) else None
    if m is None:
        return (0, 0, 0)
    return tuple(int(part, 16) for part in m.groups())  # type: ignore[return-value]


def rgb_to_hex(r: int, g: int, b: int) -> str:
    return f"#{int(r):02X}{int(g):02X}{int(b):02X}"


# -- Lab chain ---------------------------------------------------------


def srgb_to_linear(rgb: np.ndarray) -> np.ndarray:
    """Gamma-decode 0-255 sRGB values to linear 0-1."""
    v = np.asarray(rgb, dtype=np.float64) / 255.0
    return np.where(v > 0.04045, ((v + 0.055) / 1.055) ** 2.4, v / 12.92)


def linear_to_xyz(linear: np.ndarray) -> np.ndarray:
    """Scale linear channels by the D65 white point."""
    return np.asarray(linear, dtype=np.float64) * np.array([REF_X, REF_Y, REF_Z])


def xyz_to_lab(xyz: np.ndarray) -> np.ndarray:
    """Piecewise cube-root transform relative to D65."""
    t = np.asarray(xyz, dtype=np.float64) / np.array([REF_X, REF_Y, REF_Z])
    f = np.where(t >= 0.008856, np.cbrt(t), 7.787 * t + 16.0 / 116.0)
    fx, fy, fz = f[..., 0], f[..., 1], f[..., 2]
    return np.stack([116.0 * fy - 16.0, 500.0 * (fx - fy), 200.0 * (fy - fz)], axis=-1)


def rgb_to_lab(rgb: np.ndarray | Sequence[int] | int, g: int | None = None,
               b: int | None = None) -> np.ndarray:
    """Convert ``(..., 3)`` 0-255 RGB to CIELAB.

    Also accepts three scalars: ``rgb_to_lab(255, 255, 255)`` → ``[100, 0, 0]``.
    """
    if g is not None and b is not None:
        rgb = (rgb, g, b)
    return xyz_to_lab(linear_to_xyz(srgb_to_linear(rgb)))


# -- Palettes ----------------------------------------------------------


def parse_palette(hex_colors: Sequence[str]) -> np.ndarray:
    """Turn a list of hex strings into a read-only ``(K, 3)`` uint8 palette."""
    if not 1 <= len(hex_colors) <= MAX_PALETTE_SIZE:
        msg = f"Palette must hold 1-{MAX_PALETTE_SIZE} colours, got {len(hex_colors)}"
        raise MosaicConfigError(msg)
    return freeze_palette(np.array([hex_to_rgb(h) for h in hex_colors], dtype=np.uint8))


def freeze_palette(palette: np.ndarray) -> np.ndarray:
    """Validate shape / size and return an immutable uint8 copy."""
    arr = np.array(palette, dtype=np.uint8).reshape(-1, 3)
    if not 1 <= len(arr) <= MAX_PALETTE_SIZE:
        msg = f"Palette must hold 1-{MAX_PALETTE_SIZE} colours, got {len(arr)}"
        raise MosaicConfigError(msg)
    arr.flags.writeable = False
    return arr


def palette_to_hex(palette: np.ndarray) -> list[str]:
    return [rgb_to_hex(*c) for c in np.asarray(palette).reshape(-1, 3)]
