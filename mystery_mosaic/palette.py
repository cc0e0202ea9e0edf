"""Palette derivation by median-cut quantisation."""

from __future__ import annotations

import logging
import math

import numpy as np

from mystery_mosaic.config import MosaicConfigError

logger = logging.getLogger(__name__)


def median_cut(pixels: np.ndarray, target_count: int) -> np.ndarray:
    """Reduce a pixel population to *target_count* representative colours.

    The bucket is split along the channel with the widest range, at the
    median of a stable sort on that channel. The left half is asked for
    ``ceil(k / 2)`` colours and the right half for the rest; leaf colours
    are channel means rounded half-up.

    Args:
        pixels: (N, 3) RGB values. Extra channels (alpha) are ignored.
        target_count: Number of colours to produce, >= 1.

    Returns:
        (target_count, 3) uint8 array, left buckets first.
    """
    if target_count < 1:
        msg = f"target_count must be >= 1, got {target_count}"
        raise MosaicConfigError(msg)
    arr = np.asarray(pixels)
    if arr.size == 0:
        bucket = np.empty((0, 3), dtype=np.int64)
    else:
        bucket = arr.reshape(-1, arr.shape[-1])[:, :3].astype(np.int64)
    return np.array(_split(bucket, target_count), dtype=np.uint8)


def _split(bucket: np.ndarray, k: int) -> list[tuple[int, int, int]]:
    # A bucket of 0 or 1 pixels cannot be divided; repeat its colour so the
    # palette length stays exactly k.
    if k == 1 or len(bucket) < 2:
        return [_average(bucket)] * k

    ranges = bucket.max(axis=0) - bucket.min(axis=0)
    axis = int(np.argmax(ranges))  # first of equal ranges: r, then g, then b

    ordered = bucket[np.argsort(bucket[:, axis], kind="stable")]
    median = len(ordered) // 2
    left_k = math.ceil(k / 2)

    return _split(ordered[:median], left_k) + _split(ordered[median:], k - left_k)


def _average(bucket: np.ndarray) -> tuple[int, int, int]:
    if len(bucket) == 0:
        return (0, 0, 0)
    mean = np.floor(bucket.mean(axis=0) + 0.5).astype(int)
    return (int(mean[0]), int(mean[1]), int(mean[2]))


def extract_palette(
    pixels: np.ndarray,
    num_colors: int,
    max_samples: int = 250_000,
) -> np.ndarray:
    """Derive a palette from a decoded image.

    Large images are thinned with a fixed stride before median-cut so the
    result is deterministic for a given input.

    Args:
        pixels: (H, W, 3|4) uint8 image.
        num_colors: Desired palette size.
        max_samples: Upper bound on pixels handed to median-cut.

    Returns:
        (num_colors, 3) uint8 array.
    """
    flat = np.asarray(pixels).reshape(-1, np.asarray(pixels).shape[-1])[:, :3]
    step = max(1, math.ceil(len(flat) / max_samples))
    sample = flat[::step]
    logger.info(
        "Median-cut: %d colours from %d of %d pixels", num_colors, len(sample), len(flat),
    )
    return median_cut(sample, num_colors)
