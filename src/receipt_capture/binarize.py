"""Soft two-tone remap driven by the solved Otsu threshold.

This is not pure black/white segmentation.  Hard binarisation erased the
anti-aliased edges of thin receipt glyphs, so ink pixels keep part of their
tone and, in soft mode, paper never reaches pure white.

Mode       Effective threshold       Ink (below)            Paper (at/above)
---------  ------------------------  ---------------------  ------------------
strong     min(200, t + 10)          floor(v * 0.6)         255
soft       clamp(t - 5, 140, 185)    floor(v * 0.8 + 10)    min(242, v + 15)
original   -                         unchanged              unchanged
"""

import numpy as np

from receipt_capture.enhance import EnhancementMode
from receipt_capture.pixels import PixelBuffer

STRONG_BIAS = 10
STRONG_CEILING = 200
SOFT_BIAS = -5
SOFT_RANGE = (140, 185)
SOFT_PAPER_MAX = 242


def effective_threshold(threshold: int, mode: EnhancementMode) -> int:
    if mode is EnhancementMode.STRONG:
        return min(STRONG_CEILING, threshold + STRONG_BIAS)
    if mode is EnhancementMode.SOFT:
        low, high = SOFT_RANGE
        return min(high, max(low, threshold + SOFT_BIAS))
    return threshold


def binarize(buffer: PixelBuffer, threshold: int, mode: EnhancementMode) -> PixelBuffer:
    """Remap the grayscale *buffer* around *threshold* according to *mode*.

    ``ORIGINAL`` returns *buffer* itself.  Other modes read the red channel,
    write the same value to R, G and B, and leave alpha alone.
    """
    if mode is EnhancementMode.ORIGINAL:
        return buffer

    value = buffer.pixels[..., 0].astype(np.float64)
    cutoff = effective_threshold(threshold, mode)
    ink = value < cutoff

    if mode is EnhancementMode.STRONG:
        remapped = np.where(ink, np.floor(value * 0.6), 255.0)
    else:
        remapped = np.where(ink, np.floor(value * 0.8 + 10), np.minimum(SOFT_PAPER_MAX, value + 15))

    gray = np.clip(remapped, 0, 255).astype(np.uint8)
    out = np.empty_like(buffer.pixels)
    out[..., 0] = gray
    out[..., 1] = gray
    out[..., 2] = gray
    out[..., 3] = buffer.pixels[..., 3]
    return PixelBuffer.from_array(out)
