"""Capture processing pipeline.

Turns the raw bytes of a receipt photo into the processed image shown for
confirmation and archived next to the original, and into the small JPEG sent
for field extraction.

Pipeline
--------
1. Decode          bytes to an upright RGBA buffer; non-images are rejected.

2. Enhance         BT.601 grayscale plus a contrast/brightness stretch chosen
                   by the enhancement mode.

3. Threshold       256-bin histogram and Otsu's between-class-variance
                   maximum.

4. Binarize        soft two-tone remap around the threshold.  Ink keeps part
                   of its tone so anti-aliased strokes survive.

Extraction payload
------------------
The processed buffer is downsampled to at most 1024 px on its longest side
and encoded at quality 0.8.  The archival copy is never downsampled.

Intentionally omitted
---------------------
* Cropping: ``region.detect_content_region`` works, but the whole captured
  frame is kept.
"""

import logging
import time
from dataclasses import dataclass
from typing import Optional

from receipt_capture.binarize import binarize
from receipt_capture.codec import ARCHIVE_QUALITY, EXTRACTION_QUALITY, decode, encode
from receipt_capture.enhance import EnhancementMode, enhance
from receipt_capture.pixels import PixelBuffer
from receipt_capture.resample import MAX_EXTRACTION_SIDE, downsample
from receipt_capture.threshold import solve_threshold

LOGGER = logging.getLogger(__name__)


@dataclass
class ProcessedCapture:
    original: PixelBuffer
    processed: PixelBuffer
    mode: EnhancementMode
    threshold: Optional[int] = None
    elapsed_seconds: float = 0.0


def process_buffer(buffer: PixelBuffer, mode: EnhancementMode) -> tuple[PixelBuffer, Optional[int]]:
    """Run enhance → threshold → binarize on an already decoded buffer."""
    if mode is EnhancementMode.ORIGINAL:
        return buffer, None
    gray = enhance(buffer, mode)
    threshold = solve_threshold(gray)
    return binarize(gray, threshold, mode), threshold


def process_capture(
    data: bytes, mode: EnhancementMode, media_type: Optional[str] = None
) -> ProcessedCapture:
    """Decode *data* and produce the processed confirmation image."""
    start = time.perf_counter()
    original = decode(data, media_type)
    processed, threshold = process_buffer(original, mode)
    elapsed = time.perf_counter() - start
    LOGGER.info(
        "Processed %dx%d capture in %.2fs (mode=%s, threshold=%s)",
        original.width,
        original.height,
        elapsed,
        mode.value,
        threshold,
    )
    return ProcessedCapture(
        original=original,
        processed=processed,
        mode=mode,
        threshold=threshold,
        elapsed_seconds=elapsed,
    )


def encode_for_archive(buffer: PixelBuffer) -> bytes:
    return encode(buffer, ARCHIVE_QUALITY)


def build_extraction_payload(buffer: PixelBuffer, max_side: int = MAX_EXTRACTION_SIDE) -> bytes:
    """Downsample *buffer* and encode it as the JPEG sent for extraction."""
    payload = encode(downsample(buffer, max_side), EXTRACTION_QUALITY)
    LOGGER.debug("Extraction payload is %d bytes", len(payload))
    return payload
