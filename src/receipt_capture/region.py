"""Printed-content bounding box detection.

The capture pipeline does not crop: users asked to see the whole frame they
photographed.  The detector stays available as a standalone capability for a
future crop-assist view, so ``pipeline.process_capture`` never calls it.

Detection runs on a stride-sampled grid so a 12 MP photo is not visited pixel
by pixel:

1. Luminance pass: every sampled pixel darker than the threshold grows the box.
2. Gradient pass: for each sampled column, the first vertical jump larger than
   the delta threshold seen from the top (and from the bottom) grows the box;
   the same is done per sampled row from the left and the right.

A degenerate box falls back to a 10 % inset of the frame, then a safety margin
is added on every side.
"""

import logging
import math
from dataclasses import dataclass

import numpy as np

from receipt_capture.pixels import PixelBuffer

LOGGER = logging.getLogger(__name__)

DEFAULT_MARGIN = 0.03
FALLBACK_INSET = 0.1
MIN_DELTA = 30
DELTA_RATIO = 0.4


@dataclass(frozen=True)
class BoundingBox:
    top: int
    bottom: int
    left: int
    right: int

    @property
    def width(self) -> int:
        return self.right - self.left

    @property
    def height(self) -> int:
        return self.bottom - self.top

    def contains(self, other: "BoundingBox") -> bool:
        return (
            self.top <= other.top
            and self.left <= other.left
            and self.bottom >= other.bottom
            and self.right >= other.right
        )


def sampling_stride(width: int) -> int:
    return max(1, min(1600, width) // 150)


def delta_threshold(threshold: int) -> int:
    return max(MIN_DELTA, math.floor(threshold * DELTA_RATIO))


def fallback_box(width: int, height: int) -> BoundingBox:
    return BoundingBox(
        top=math.floor(height * FALLBACK_INSET),
        bottom=math.floor(height * (1 - FALLBACK_INSET)),
        left=math.floor(width * FALLBACK_INSET),
        right=math.floor(width * (1 - FALLBACK_INSET)),
    )


def detect_content_region(
    buffer: PixelBuffer, threshold: int, margin: float = DEFAULT_MARGIN
) -> BoundingBox:
    """Estimate where printed content sits in the grayscale *buffer*."""
    width, height = buffer.width, buffer.height
    values = buffer.pixels[..., 0].astype(np.int16)
    step = sampling_stride(width)
    delta = delta_threshold(threshold)

    top, bottom, left, right = height, 0, width, 0

    # Luminance pass
    ys, xs = np.nonzero(values[::step, ::step] < threshold)
    if ys.size:
        top = min(top, int(ys.min()) * step)
        bottom = max(bottom, int(ys.max()) * step)
        left = min(left, int(xs.min()) * step)
        right = max(right, int(xs.max()) * step)

    # Gradient pass, columns: top and bottom edges
    for x in range(step * 2, width - step * 2, step):
        for y in range(step, height - step, step):
            if abs(int(values[y, x]) - int(values[y - step, x])) > delta:
                top = min(top, y - step)
                break
        for y in range(height - step, step, -step):
            below = int(values[y + step, x]) if y + step < height else 255
            if abs(int(values[y, x]) - below) > delta:
                bottom = max(bottom, y + step)
                break

    # Gradient pass, rows: left and right edges
    for y in range(step * 2, height - step * 2, step):
        for x in range(step, width - step, step):
            if abs(int(values[y, x]) - int(values[y, x - step])) > delta:
                left = min(left, x - step)
                break
        for x in range(width - step, step, -step):
            beside = int(values[y, x + step]) if x + step < width else 255
            if abs(int(values[y, x]) - beside) > delta:
                right = max(right, x + step)
                break

    if top >= bottom or left >= right:
        LOGGER.debug("No content edges found; using %.0f%% inset box", FALLBACK_INSET * 100)
        box = fallback_box(width, height)
        top, bottom, left, right = box.top, box.bottom, box.left, box.right

    margin_x = math.floor(width * margin)
    margin_y = math.floor(height * margin)
    box = BoundingBox(
        top=max(0, top - margin_y),
        bottom=min(height, bottom + margin_y),
        left=max(0, left - margin_x),
        right=min(width, right + margin_x),
    )
    LOGGER.debug("Content region %s (stride=%d, delta=%d)", box, step, delta)
    return box


def crop(buffer: PixelBuffer, box: BoundingBox) -> PixelBuffer:
    if box.width <= 0 or box.height <= 0:
        raise ValueError(f"Cannot crop to an empty region: {box}")
    region = buffer.pixels[box.top:box.bottom, box.left:box.right]
    return PixelBuffer.from_array(region.copy())
