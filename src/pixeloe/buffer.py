"""
Owned RGBA8 raster shared by every pipeline stage.
"""

from dataclasses import dataclass
from typing import Union

import numpy as np
from numpy.typing import NDArray
from PIL import Image

from .errors import ConfigurationError

# Per-pixel importance in [0, 1], shape (height, width)
WeightMap = NDArray[np.float32]


@dataclass(frozen=True, eq=False)
class PixelBuffer:
    """Row-major RGBA8 image, unpremultiplied alpha, shape (height, width, 4)"""

    data: np.ndarray

    def __post_init__(self) -> None:
        data = self.data
        if data.ndim != 3 or data.shape[2] != 4:
            raise ConfigurationError(f"Expected (H, W, 4) RGBA data, got shape {data.shape}")
        if data.shape[0] <= 0 or data.shape[1] <= 0:
            raise ConfigurationError(f"Image has no pixels: {data.shape[1]}x{data.shape[0]}")
        if data.dtype != np.uint8:
            raise ConfigurationError(f"Expected uint8 samples, got {data.dtype}")

    @property
    def width(self) -> int:
        return int(self.data.shape[1])

    @property
    def height(self) -> int:
        return int(self.data.shape[0])

    @property
    def rgb(self) -> np.ndarray:
        """View of the colour channels, shape (height, width, 3)"""
        return self.data[:, :, :3]

    @property
    def alpha(self) -> np.ndarray:
        return self.data[:, :, 3]

    def copy(self) -> "PixelBuffer":
        return PixelBuffer(self.data.copy())

    def with_rgb(self, rgb: np.ndarray) -> "PixelBuffer":
        """New buffer with replaced colour channels and this buffer's alpha"""
        result = self.data.copy()
        result[:, :, :3] = rgb
        return PixelBuffer(result)

    @classmethod
    def blank(cls, width: int, height: int) -> "PixelBuffer":
        if width <= 0 or height <= 0:
            raise ConfigurationError(f"Invalid dimensions: {width}x{height}")
        return cls(np.zeros((height, width, 4), dtype=np.uint8))

    @classmethod
    def from_array(cls, array: np.ndarray) -> "PixelBuffer":
        """
        Build a buffer from an (H, W, 3|4) array.

        Float arrays are treated as [0, 1] and scaled to 8 bits, other integer
        types as 0..255 and clamped; RGB input gets an opaque alpha channel.
        """
        if array.ndim == 4:
            if array.shape[0] != 1:
                raise ConfigurationError("Batch dimension is not supported")
            array = array[0]
        if array.ndim != 3:
            raise ConfigurationError(f"Unsupported array shape: {array.shape}")

        if np.issubdtype(array.dtype, np.floating):
            array = np.clip(np.floor(array * 255 + 0.5), 0, 255).astype(np.uint8)
        elif array.dtype != np.uint8:
            array = np.clip(array, 0, 255).astype(np.uint8)

        h, w, c = array.shape
        if c == 4:
            data = array.copy()
        elif c == 3:
            data = np.concatenate([array, np.full((h, w, 1), 255, dtype=np.uint8)], axis=2)
        else:
            raise ConfigurationError(f"Unsupported number of channels: {c}")
        return cls(np.ascontiguousarray(data))

    @classmethod
    def from_bytes(cls, width: int, height: int, raw: Union[bytes, bytearray]) -> "PixelBuffer":
        if width <= 0 or height <= 0:
            raise ConfigurationError(f"Invalid dimensions: {width}x{height}")
        expected = width * height * 4
        if len(raw) != expected:
            raise ConfigurationError(f"Expected {expected} bytes for {width}x{height} RGBA, got {len(raw)}")
        data = np.frombuffer(bytes(raw), dtype=np.uint8).reshape(height, width, 4)
        return cls(data.copy())

    @classmethod
    def from_pil(cls, image: Image.Image) -> "PixelBuffer":
        if image.mode != "RGBA":
            image = image.convert("RGBA")
        return cls(np.array(image, dtype=np.uint8))

    def to_bytes(self) -> bytes:
        return self.data.tobytes()

    def to_pil(self) -> Image.Image:
        return Image.fromarray(self.data)
