"""Bounded-size copies for the extraction payload."""

import logging

from PIL import Image

from receipt_capture.pixels import PixelBuffer

LOGGER = logging.getLogger(__name__)

MAX_EXTRACTION_SIDE = 1024


def bounded_size(width: int, height: int, max_side: int) -> tuple[int, int]:
    longest = max(width, height)
    if longest <= max_side:
        return width, height
    scale = max_side / longest
    return max(1, round(width * scale)), max(1, round(height * scale))


def downsample(buffer: PixelBuffer, max_side: int = MAX_EXTRACTION_SIDE) -> PixelBuffer:
    """Shrink *buffer* so its longest side is at most *max_side*.

    Aspect ratio is kept.  Buffers already in bounds are returned as is;
    nothing is ever upscaled.
    """
    if max_side <= 0:
        raise ValueError(f"max_side must be positive, got {max_side}")

    new_size = bounded_size(buffer.width, buffer.height, max_side)
    if new_size == buffer.size:
        return buffer

    LOGGER.debug("Downsampling %s -> %s", buffer.size, new_size)
    resized = buffer.to_image().resize(new_size, Image.LANCZOS)
    return PixelBuffer.from_image(resized)
