"""Decoding captured bytes into pixel buffers and encoding them back to JPEG.

Decoding
--------
The caller passes the media type the file was declared with (browser upload,
``mimetypes`` guess, HTTP header).  Anything not declared as ``image/*`` is
rejected as :class:`UnsupportedFormat` before Pillow ever sees it.  Streams
Pillow cannot identify are also :class:`UnsupportedFormat`; streams it
identifies but cannot finish reading are :class:`DecodeFailure`.

Encoding
--------
JPEG only.  Quality is expressed as a factor in ``(0, 1]`` like a canvas
``toBlob`` call and mapped onto Pillow's 1–100 scale.  Lossy output is not
byte-stable across Pillow/libjpeg versions, so callers should compare sizes
and pixel similarity rather than bytes.
"""

import base64
import io
import logging
from typing import Optional

from PIL import Image, ImageOps, UnidentifiedImageError

from receipt_capture.errors import DecodeFailure, UnsupportedFormat
from receipt_capture.pixels import PixelBuffer

LOGGER = logging.getLogger(__name__)

ARCHIVE_QUALITY = 0.92
EXTRACTION_QUALITY = 0.8


def decode(data: bytes, media_type: Optional[str] = None) -> PixelBuffer:
    """Decode *data* into an upright RGBA :class:`PixelBuffer`."""
    if media_type is not None and not media_type.lower().startswith("image/"):
        raise UnsupportedFormat(f"Expected an image, got {media_type!r}")
    if not data:
        raise UnsupportedFormat("Empty input")

    try:
        img = Image.open(io.BytesIO(data))
    except UnidentifiedImageError as e:
        raise UnsupportedFormat("Unrecognised image format") from e
    except Image.DecompressionBombError as e:
        raise UnsupportedFormat(f"Image too large to decode safely: {e}") from e

    try:
        img.load()
        # Phone cameras store rotation in EXIF rather than in the pixels.
        img = ImageOps.exif_transpose(img)
        buffer = PixelBuffer.from_image(img)
    except (OSError, SyntaxError, ValueError) as e:
        raise DecodeFailure(f"Could not decode {img.format or 'image'} stream: {e}") from e

    LOGGER.debug("Decoded %s image %dx%d", img.format, buffer.width, buffer.height)
    return buffer


def encode(buffer: PixelBuffer, quality: float) -> bytes:
    """Serialise *buffer* as JPEG at *quality* (a factor in ``(0, 1]``)."""
    if not 0 < quality <= 1:
        raise ValueError(f"quality must be in (0, 1], got {quality}")

    img = buffer.to_image().convert("RGB")
    buf = io.BytesIO()
    img.save(buf, format="JPEG", quality=max(1, round(quality * 100)))
    return buf.getvalue()


def to_data_url(image_bytes: bytes, media_type: str = "image/jpeg") -> str:
    b64 = base64.standard_b64encode(image_bytes).decode("utf-8")
    return f"data:{media_type};base64,{b64}"
