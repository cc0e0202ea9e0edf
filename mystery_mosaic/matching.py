"""Palette matching: distance metrics and closest-index lookup."""

from __future__ import annotations

from collections.abc import Callable, Sequence

import numpy as np
from scipy.spatial.distance import cdist

from mystery_mosaic.color_utils import rgb_to_lab
from mystery_mosaic.config import ColorMatching


def _euclidean(colors: np.ndarray, palette: np.ndarray) -> np.ndarray:
    return cdist(colors, palette, metric="euclidean")


def _redmean(colors: np.ndarray, palette: np.ndarray) -> np.ndarray:
    """Weighted RGB distance that leans on the mean red level."""
    c = colors[:, np.newaxis, :]
    p = palette[np.newaxis, :, :]
    rmean = (c[..., 0] + p[..., 0]) / 2.0
    d = p - c
    wr = 2.0 + rmean / 256.0
    wb = 2.0 + (255.0 - rmean) / 256.0
    return np.sqrt(wr * d[..., 0] ** 2 + 4.0 * d[..., 1] ** 2 + wb * d[..., 2] ** 2)


def _lab(colors: np.ndarray, palette: np.ndarray) -> np.ndarray:
    return cdist(rgb_to_lab(colors), rgb_to_lab(palette), metric="euclidean")


_METRICS: dict[ColorMatching, Callable[[np.ndarray, np.ndarray], np.ndarray]] = {
    ColorMatching.NEAREST: _euclidean,
    ColorMatching.PERCEPTUAL: _redmean,
    ColorMatching.LAB: _lab,
}


def compute_cost_matrix(
    colors: np.ndarray,
    palette: np.ndarray,
    metric: ColorMatching | str = ColorMatching.NEAREST,
    chunk_size: int = 4096,
) -> np.ndarray:
    """Distance from every colour to every palette entry.

    Args:
        colors:  (N, 3) RGB.
        palette: (K, 3) RGB.
        metric:  ``"nearest"``, ``"perceptual"`` or ``"lab"``.
        chunk_size: Rows computed per batch (controls peak RAM).

    Returns:
        (N, K) float64 cost matrix.
    """
    dist = _METRICS[ColorMatching(metric)]
    c = np.asarray(colors, dtype=np.float64).reshape(-1, 3)
    p = np.asarray(palette, dtype=np.float64).reshape(-1, 3)

    cost = np.empty((len(c), len(p)), dtype=np.float64)
    for i in range(0, len(c), chunk_size):
        j = min(i + chunk_size, len(c))
        cost[i:j] = dist(c[i:j], p)
    return cost


def match_colors(
    colors: np.ndarray,
    palette: np.ndarray,
    metric: ColorMatching | str = ColorMatching.NEAREST,
) -> np.ndarray:
    """Index of the closest palette entry for each colour.

    ``argmin`` keeps the first minimum, so ties go to the lowest index.

    Returns:
        (N,) int64 array of palette indices.
    """
    return np.argmin(compute_cost_matrix(colors, palette, metric), axis=1)


def closest_index(
    color: Sequence[int] | np.ndarray,
    palette: np.ndarray,
    metric: ColorMatching | str = ColorMatching.NEAREST,
) -> int:
    """Palette index nearest to a single RGB colour."""
    return int(match_colors(np.asarray(color).reshape(1, 3), palette, metric)[0])
