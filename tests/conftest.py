"""Shared fixtures for the test suite.

All fixtures here produce real image bytes / real buffers so tests exercise
actual code paths rather than hand-crafted stubs.
"""

import io
from pathlib import Path

import numpy as np
import pytest
from click.testing import CliRunner
from PIL import Image, ImageDraw

from receipt_capture.pixels import PixelBuffer


def encode_image(img: Image.Image, fmt: str = "PNG") -> bytes:
    buf = io.BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


def gray_buffer(values: np.ndarray, alpha: int = 255) -> PixelBuffer:
    """Build an RGBA buffer whose R, G and B all equal *values* (an (h, w) array)."""
    values = np.asarray(values, dtype=np.uint8)
    rgba = np.empty(values.shape + (4,), dtype=np.uint8)
    rgba[..., 0] = values
    rgba[..., 1] = values
    rgba[..., 2] = values
    rgba[..., 3] = alpha
    return PixelBuffer.from_array(rgba)


def receipt_image(width: int = 400, height: int = 300, box=(150, 125, 250, 175)) -> Image.Image:
    """White page with a solid black rectangle (left, top, right, bottom exclusive)."""
    img = Image.new("RGB", (width, height), color=(255, 255, 255))
    left, top, right, bottom = box
    ImageDraw.Draw(img).rectangle((left, top, right - 1, bottom - 1), fill=(0, 0, 0))
    return img


# ── CLI runner ─────────────────────────────────────────────────────────────


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


# ── Image fixtures ─────────────────────────────────────────────────────────


@pytest.fixture
def png_bytes() -> bytes:
    """A real, valid 10×10 red PNG image as raw bytes."""
    return encode_image(Image.new("RGB", (10, 10), color=(255, 0, 0)))


@pytest.fixture
def receipt_png() -> bytes:
    """A 400×300 white page with a 100×50 black block in the middle."""
    return encode_image(receipt_image())


@pytest.fixture
def receipt_file(tmp_path: Path, receipt_png: bytes) -> Path:
    path = tmp_path / "ticket.png"
    path.write_bytes(receipt_png)
    return path


@pytest.fixture
def text_file(tmp_path: Path) -> Path:
    path = tmp_path / "notes.txt"
    path.write_text("not a receipt")
    return path


@pytest.fixture
def noisy_buffer() -> PixelBuffer:
    """A 64×48 buffer of reproducible random colour noise with varied alpha."""
    rng = np.random.default_rng(1234)
    return PixelBuffer.from_array(rng.integers(0, 256, size=(48, 64, 4), dtype=np.uint8))
