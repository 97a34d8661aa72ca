"""RGBA pixel buffer shared by every pipeline stage."""

from dataclasses import dataclass

import numpy as np
from PIL import Image

CHANNELS = 4


@dataclass
class PixelBuffer:
    """Row-major RGBA samples with known dimensions.

    ``data`` is a flat ``uint8`` array whose length is always
    ``width * height * 4``.  Stages either hand back the same buffer untouched
    or build a new one; nothing rewrites part of a buffer in place.
    """

    width: int
    height: int
    data: np.ndarray

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Invalid buffer dimensions {self.width}x{self.height}")
        self.data = np.ascontiguousarray(self.data, dtype=np.uint8).reshape(-1)
        expected = self.width * self.height * CHANNELS
        if self.data.size != expected:
            raise ValueError(
                f"Buffer holds {self.data.size} samples, expected {expected} "
                f"for {self.width}x{self.height} RGBA"
            )

    @property
    def pixels(self) -> np.ndarray:
        """A ``(height, width, 4)`` view over ``data``."""
        return self.data.reshape(self.height, self.width, CHANNELS)

    @property
    def size(self) -> tuple[int, int]:
        return self.width, self.height

    @classmethod
    def from_array(cls, array: np.ndarray) -> "PixelBuffer":
        if array.ndim != 3 or array.shape[2] != CHANNELS:
            raise ValueError(f"Expected an (h, w, 4) array, got shape {array.shape}")
        height, width = array.shape[:2]
        return cls(width=width, height=height, data=array.reshape(-1))

    @classmethod
    def from_image(cls, image: Image.Image) -> "PixelBuffer":
        rgba = image if image.mode == "RGBA" else image.convert("RGBA")
        return cls.from_array(np.asarray(rgba, dtype=np.uint8))

    def to_image(self) -> Image.Image:
        return Image.frombytes("RGBA", (self.width, self.height), self.data.tobytes())

    def copy(self) -> "PixelBuffer":
        return PixelBuffer(width=self.width, height=self.height, data=self.data.copy())
