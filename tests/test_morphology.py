import numpy as np
import pytest

from pixeloe.buffer import PixelBuffer
from pixeloe.errors import ConfigurationError
from pixeloe.morphology import (
    EXPANSION_KERNEL,
    KERNELS,
    SMOOTHING_KERNEL,
    circle_kernel,
    closing,
    dilate,
    dilate_with_kernel,
    erode,
    erode_with_kernel,
    get_kernel,
    opening,
)


def test_dilate_erode_monotonic(noise_image):
    dilated = dilate(noise_image, EXPANSION_KERNEL, 1)
    eroded = erode(noise_image, EXPANSION_KERNEL, 1)
    assert np.all(dilated.data >= noise_image.data)
    assert np.all(eroded.data <= noise_image.data)


@pytest.mark.parametrize("index", sorted(KERNELS))
def test_fractional_kernels_monotonic(noise_image, index):
    assert np.all(dilate_with_kernel(noise_image, index).data >= noise_image.data)
    assert np.all(erode_with_kernel(noise_image, index).data <= noise_image.data)


def test_single_bright_pixel_grows_to_cross():
    data = np.zeros((5, 5, 4), dtype=np.uint8)
    data[2, 2] = 255
    grown = dilate(PixelBuffer(data), SMOOTHING_KERNEL, 1).data[:, :, 0]
    expected = np.zeros((5, 5), dtype=np.uint8)
    expected[2, 1:4] = 255
    expected[1:4, 2] = 255
    assert np.array_equal(grown, expected)


def test_borders_replicate():
    data = np.zeros((3, 3, 4), dtype=np.uint8)
    data[0, 0] = 200
    eroded = erode(PixelBuffer(data), EXPANSION_KERNEL, 1)
    assert np.all(eroded.data == 0)
    dilated = dilate(PixelBuffer(data), EXPANSION_KERNEL, 1)
    assert np.all(dilated.data[:2, :2] == 200)
    assert np.all(dilated.data[2, :] == 0)


def test_iterations_zero_returns_copy(noise_image):
    result = dilate(noise_image, EXPANSION_KERNEL, 0)
    assert np.array_equal(result.data, noise_image.data)
    assert result.data is not noise_image.data


def test_iterations_match_repeated_calls(noise_image):
    twice = dilate(dilate(noise_image, EXPANSION_KERNEL, 1), EXPANSION_KERNEL, 1)
    assert np.array_equal(dilate(noise_image, EXPANSION_KERNEL, 2).data, twice.data)


def test_negative_iterations_rejected(noise_image):
    with pytest.raises(ConfigurationError):
        erode(noise_image, EXPANSION_KERNEL, -1)


def test_fractional_dilate_of_uniform_image_is_identity():
    data = np.full((6, 6, 4), 100, dtype=np.uint8)
    result = dilate_with_kernel(PixelBuffer(data), 2)
    assert np.all(result.data == 100)


@pytest.mark.parametrize("op", [opening, closing])
def test_opening_closing_reach_fixed_point(noise_image, op):
    current = noise_image
    for _ in range(20):
        following = op(current, EXPANSION_KERNEL, 1)
        if np.array_equal(following.data, current.data):
            break
        current = following
    assert np.array_equal(op(current, EXPANSION_KERNEL, 1).data, current.data)


def test_opening_removes_isolated_bright_pixel():
    data = np.zeros((7, 7, 4), dtype=np.uint8)
    data[3, 3, :3] = 255
    assert np.all(opening(PixelBuffer(data)).data[:, :, :3] == 0)


def test_closing_fills_isolated_dark_pixel():
    data = np.full((7, 7, 4), 255, dtype=np.uint8)
    data[3, 3, :3] = 0
    assert np.all(closing(PixelBuffer(data)).data == 255)


def test_circle_kernel_shape_and_center():
    kernel = circle_kernel(2.5)
    assert kernel.shape == (5, 5)
    assert kernel[2, 2] == 1.0
    assert np.all((kernel >= 0) & (kernel <= 1))
    assert np.array_equal(kernel, kernel.T)


def test_predefined_kernel_sizes():
    sizes = {index: get_kernel(index).shape[0] for index in KERNELS}
    assert sizes == {1: 3, 2: 3, 3: 3, 4: 5, 5: 5, 6: 7}


def test_predefined_kernels_are_read_only():
    with pytest.raises(ValueError):
        KERNELS[1][0, 0] = 0.5


@pytest.mark.parametrize("index", [0, 7, -1])
def test_unknown_kernel_index(index):
    with pytest.raises(ConfigurationError):
        get_kernel(index)


def test_invalid_kernel_rejected(noise_image):
    with pytest.raises(ConfigurationError):
        dilate(noise_image, np.ones((2, 3)), 1)
    with pytest.raises(ConfigurationError):
        dilate(noise_image, np.zeros((3, 3)), 1)


HALF_CROSS = np.array([[0.0, 0.5, 0.0], [0.5, 1.0, 0.5], [0.0, 0.5, 0.0]])


def test_fractional_dilate_exact_values():
    data = np.zeros((5, 5, 4), dtype=np.uint8)
    data[2, 2] = 255
    grown = dilate(PixelBuffer(data), HALF_CROSS, 1).data[:, :, 0]
    expected = np.zeros((5, 5), dtype=np.uint8)
    expected[2, 1:4] = 128
    expected[1:4, 2] = 128
    expected[2, 2] = 255
    assert np.array_equal(grown, expected)


def test_fractional_erode_exact_values():
    data = np.full((5, 5, 4), 255, dtype=np.uint8)
    data[2, 2] = 0
    shrunk = erode(PixelBuffer(data), HALF_CROSS, 1).data[:, :, 0]
    expected = np.full((5, 5), 255, dtype=np.uint8)
    expected[2, 1:4] = 128
    expected[1:4, 2] = 128
    expected[2, 2] = 0
    assert np.array_equal(shrunk, expected)
