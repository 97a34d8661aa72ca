"""Histogram construction and Otsu's optimal global threshold."""

import logging
from typing import Optional

import numpy as np

from receipt_capture.pixels import PixelBuffer

LOGGER = logging.getLogger(__name__)

BINS = 256


def build_histogram(buffer: PixelBuffer) -> np.ndarray:
    """Count the red channel into 256 bins.

    After :func:`receipt_capture.enhance.enhance` all three colour channels
    hold the same grayscale value, so red stands in for luminance.
    """
    red = buffer.pixels[..., 0].reshape(-1)
    return np.bincount(red, minlength=BINS).astype(np.int64)


def otsu_threshold(histogram: np.ndarray, total: Optional[int] = None) -> int:
    """Return the threshold that maximises between-class variance.

    Candidates where the background class is still empty are skipped and the
    scan stops once the foreground class empties, so all-black and all-white
    inputs return 0 instead of dividing by zero.  On ties the first candidate
    wins.
    """
    if len(histogram) != BINS:
        raise ValueError(f"Expected {BINS} bins, got {len(histogram)}")
    hist = [int(count) for count in histogram]
    if total is None:
        total = sum(hist)

    sum_total = sum(t * count for t, count in enumerate(hist))
    sum_bg = 0
    weight_bg = 0
    best_variance = 0.0
    best_t = 0

    for t in range(BINS):
        weight_bg += hist[t]
        if weight_bg == 0:
            continue
        weight_fg = total - weight_bg
        if weight_fg == 0:
            break

        sum_bg += t * hist[t]
        mean_bg = sum_bg / weight_bg
        mean_fg = (sum_total - sum_bg) / weight_fg

        variance = weight_bg * weight_fg * (mean_bg - mean_fg) ** 2
        if variance > best_variance:
            best_variance = variance
            best_t = t

    return best_t


def solve_threshold(buffer: PixelBuffer) -> int:
    histogram = build_histogram(buffer)
    threshold = otsu_threshold(histogram, buffer.width * buffer.height)
    LOGGER.debug(
        "Otsu threshold %d (non-empty bins=%d)", threshold, int(np.count_nonzero(histogram))
    )
    return threshold
