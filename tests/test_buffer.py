import numpy as np
import pytest
from PIL import Image

from pixeloe.buffer import PixelBuffer
from pixeloe.errors import ConfigurationError


def test_from_array_adds_opaque_alpha():
    rgb = np.zeros((3, 5, 3), dtype=np.uint8)
    buf = PixelBuffer.from_array(rgb)
    assert (buf.width, buf.height) == (5, 3)
    assert np.all(buf.alpha == 255)


def test_from_array_scales_floats():
    arr = np.full((2, 2, 4), 0.5, dtype=np.float32)
    buf = PixelBuffer.from_array(arr)
    assert np.all(buf.data == 128)


@pytest.mark.parametrize("dtype", [np.int64, np.uint16, np.int32])
def test_from_array_keeps_integer_levels(dtype):
    arr = np.array([[[0, 17, 128], [200, 255, 300]]], dtype=dtype)
    buf = PixelBuffer.from_array(arr)
    assert buf.rgb.tolist() == [[[0, 17, 128], [200, 255, 255]]]
    assert np.all(buf.alpha == 255)


def test_from_array_strips_single_batch():
    arr = np.zeros((1, 2, 2, 4), dtype=np.uint8)
    assert PixelBuffer.from_array(arr).data.shape == (2, 2, 4)


def test_from_array_rejects_bad_channels():
    with pytest.raises(ConfigurationError):
        PixelBuffer.from_array(np.zeros((2, 2, 2), dtype=np.uint8))


def test_bytes_roundtrip_and_length_check():
    raw = bytes(range(16))
    buf = PixelBuffer.from_bytes(2, 2, raw)
    assert buf.to_bytes() == raw
    with pytest.raises(ConfigurationError):
        PixelBuffer.from_bytes(2, 2, raw[:-1])


@pytest.mark.parametrize("width,height", [(0, 2), (2, 0), (-1, 3)])
def test_non_positive_dimensions(width, height):
    with pytest.raises(ConfigurationError):
        PixelBuffer.blank(width, height)


def test_pil_conversion_keeps_pixels(noise_image):
    pil = noise_image.to_pil()
    assert pil.mode == "RGBA"
    assert np.array_equal(PixelBuffer.from_pil(pil).data, noise_image.data)


def test_from_pil_converts_rgb():
    pil = Image.new("RGB", (4, 3), (10, 20, 30))
    buf = PixelBuffer.from_pil(pil)
    assert tuple(buf.data[0, 0]) == (10, 20, 30, 255)


def test_copy_is_independent(noise_image):
    clone = noise_image.copy()
    clone.data[0, 0, 0] ^= 0xFF
    assert clone.data[0, 0, 0] != noise_image.data[0, 0, 0]


def test_with_rgb_keeps_alpha():
    data = np.zeros((2, 2, 4), dtype=np.uint8)
    data[:, :, 3] = 77
    buf = PixelBuffer(data).with_rgb(np.full((2, 2, 3), 9, dtype=np.uint8))
    assert np.all(buf.rgb == 9)
    assert np.all(buf.alpha == 77)
