import numpy as np
import pytest

from pixeloe.buffer import PixelBuffer


def _solid(width, height, color):
    """Uniform buffer; color is RGB or RGBA"""
    rgba = tuple(color) + (255,) * (4 - len(color))
    data = np.empty((height, width, 4), dtype=np.uint8)
    data[:] = rgba
    return PixelBuffer(data)


@pytest.fixture
def rng():
    return np.random.default_rng(1234)


@pytest.fixture
def noise_image(rng):
    """Random opaque 24x20 image"""
    rgb = rng.integers(0, 256, size=(20, 24, 3), dtype=np.uint8)
    return PixelBuffer.from_array(rgb)


@pytest.fixture
def line_image():
    """Light background crossed by a one pixel dark line"""
    data = np.full((32, 32, 4), 220, dtype=np.uint8)
    data[:, :, 3] = 255
    data[16, :, :3] = 20
    return PixelBuffer(data)


@pytest.fixture
def gradient_image():
    """Horizontal RGB gradient, 64x48"""
    x = np.linspace(0, 255, 64)
    data = np.zeros((48, 64, 4), dtype=np.uint8)
    data[:, :, 0] = x[None, :].astype(np.uint8)
    data[:, :, 1] = (255 - x)[None, :].astype(np.uint8)
    data[:, :, 2] = 128
    data[:, :, 3] = 255
    return PixelBuffer(data)


@pytest.fixture
def solid():
    """Factory for uniform buffers"""
    return _solid
