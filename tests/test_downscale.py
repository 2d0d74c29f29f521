import importlib
import tracemalloc

import numpy as np
import pytest

from pixeloe.buffer import PixelBuffer
from pixeloe.config import DownscaleMode
from pixeloe.downscale import (
    _contrast_pixels,
    center_downscale,
    contrast_downscale,
    downscale,
    k_centroid_downscale,
    nearest_upscale,
    resize,
    target_dimensions,
)
from pixeloe.errors import ConfigurationError

downscale_module = importlib.import_module("pixeloe.downscale")


def gray_block(levels, alpha=255):
    block = np.zeros((1, len(levels), 4), dtype=np.uint8)
    block[0, :, :3] = np.array(levels)[:, None]
    block[0, :, 3] = alpha
    return block


@pytest.mark.parametrize(
    "size,target,expected",
    [((64, 48), 16, (17, 13)), ((100, 100), 10, (10, 10)), ((1000, 1), 4, (1000, 1))],
)
def test_target_dimensions(size, target, expected):
    assert target_dimensions(size[0], size[1], target) == expected


def test_target_dimensions_rejects_non_positive():
    with pytest.raises(ConfigurationError):
        target_dimensions(10, 10, 0)


@pytest.mark.parametrize(
    "levels,expected",
    [
        ([10, 200, 200, 200], 200),  # skewed bright: brightest sample
        ([10, 10, 10, 200], 10),  # skewed dark: darkest sample
        ([0, 0, 100, 110, 255], 100),  # neither rule applies: middle sample
    ],
)
def test_contrast_selection_rule(levels, expected):
    pixel = _contrast_pixels(gray_block(levels))[0]
    assert np.all(np.abs(pixel[:3].astype(int) - expected) <= 1)
    assert pixel[3] == 255


def test_contrast_alpha_is_block_median():
    block = gray_block([50, 50, 50, 50])
    block[0, :, 3] = [0, 0, 0, 255]
    assert _contrast_pixels(block)[0, 3] == 0


def test_contrast_downscale_uniform(solid):
    image = solid(40, 30, (90, 140, 200))
    result = contrast_downscale(image, 10)
    assert (result.width, result.height) == target_dimensions(40, 30, 10)
    assert np.all(np.abs(result.rgb.astype(int) - [90, 140, 200]) <= 1)
    assert np.all(result.alpha == 255)


def test_contrast_downscale_partial_edge_blocks(rng):
    image = PixelBuffer.from_array(rng.integers(0, 256, size=(10, 10, 3), dtype=np.uint8))
    result = contrast_downscale(image, 4)
    assert (result.width, result.height) == (4, 4)


def test_k_centroid_uniform_is_exact(solid):
    image = solid(32, 32, (12, 200, 77))
    result = k_centroid_downscale(image, 8, 2)
    assert (result.width, result.height) == (8, 8)
    assert np.all(result.rgb == [12, 200, 77])


def test_k_centroid_keeps_cluster_at_block_center():
    data = np.zeros((4, 4, 4), dtype=np.uint8)
    data[:, :, 3] = 255
    data[1::2, :, :3] = 255  # odd rows white, even rows black
    result = k_centroid_downscale(PixelBuffer(data), 2, 2)
    assert np.all(result.rgb == 0)

    result = k_centroid_downscale(PixelBuffer(data[::-1].copy()), 2, 2)
    assert np.all(result.rgb == 255)


def test_k_centroid_uses_mean_when_k_covers_block():
    data = np.zeros((2, 2, 4), dtype=np.uint8)
    data[:, :, 3] = 255
    data[1, :, :3] = 255
    result = k_centroid_downscale(PixelBuffer(data), 1, 4)
    assert np.all(result.rgb == 128)


def test_k_centroid_target_larger_than_image(noise_image):
    result = k_centroid_downscale(noise_image, 64, 2)
    assert (result.width, result.height) == target_dimensions(noise_image.width, noise_image.height, 64)


def test_k_centroid_batches_match_single_pass(rng, monkeypatch):
    data = rng.integers(0, 256, size=(90, 70, 4), dtype=np.uint8)
    image = PixelBuffer(data)
    whole = k_centroid_downscale(image, 12, 3)
    monkeypatch.setattr(downscale_module, "KMEANS_BATCH_PIXELS", 1)
    assert np.array_equal(k_centroid_downscale(image, 12, 3).data, whole.data)


def test_k_centroid_memory_is_bounded(rng):
    image = PixelBuffer(rng.integers(0, 256, size=(1200, 1200, 4), dtype=np.uint8))
    tracemalloc.start()
    try:
        k_centroid_downscale(image, 128, 4)
        _, peak = tracemalloc.get_traced_memory()
    finally:
        tracemalloc.stop()
    # 1.44M pixels clustered at once would need well over 100 MB of temporaries
    assert peak < 48 * 1024 * 1024


def test_k_centroid_rejects_k_below_one(noise_image):
    with pytest.raises(ConfigurationError):
        k_centroid_downscale(noise_image, 4, 0)


def test_center_downscale_picks_block_centers():
    data = np.zeros((4, 4, 4), dtype=np.uint8)
    data[:, :, 0] = np.arange(16).reshape(4, 4)
    data[:, :, 3] = 255
    result = center_downscale(PixelBuffer(data), 2)
    assert np.array_equal(result.data[:, :, 0], [[5, 7], [13, 15]])


@pytest.mark.parametrize("mode", list(DownscaleMode))
def test_downscale_dispatch(gradient_image, mode):
    result = downscale(gradient_image, 16, mode)
    assert (result.width, result.height) == (17, 13)


def test_downscale_accepts_strings(gradient_image):
    assert downscale(gradient_image, 8, "k_centroid").width == target_dimensions(64, 48, 8)[0]
    with pytest.raises(ConfigurationError):
        downscale(gradient_image, 8, "bicubic")


def test_resize_rejects_adaptive_modes(gradient_image):
    with pytest.raises(ConfigurationError):
        resize(gradient_image, 10, 10, DownscaleMode.CONTRAST)
    assert resize(gradient_image, 10, 7, "lanczos").data.shape == (7, 10, 4)


def test_nearest_upscale(noise_image):
    result = nearest_upscale(noise_image, 3)
    assert (result.width, result.height) == (noise_image.width * 3, noise_image.height * 3)
    assert np.array_equal(result.data[::3, ::3], noise_image.data)
    with pytest.raises(ConfigurationError):
        nearest_upscale(noise_image, 0)
