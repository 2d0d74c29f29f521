import cv2
import numpy as np

from pixeloe.color_space import hsv_to_rgb, lab_to_rgb, luminance, rgb_to_hsv, rgb_to_lab


def test_luminance_extremes():
    rgb = np.array([[0, 0, 0], [255, 255, 255], [255, 0, 0]])
    lum = luminance(rgb)
    assert lum[0] == 0
    assert abs(lum[1] - 1.0) < 1e-9
    assert abs(lum[2] - 0.299) < 1e-9


def test_lab_white_and_black():
    lab = rgb_to_lab(np.array([[255, 255, 255], [0, 0, 0]]))
    assert abs(lab[0, 0] - 100) < 0.05
    assert np.all(np.abs(lab[0, 1:]) < 0.05)
    assert np.all(np.abs(lab[1]) < 0.05)


def test_lab_recovers_rgb(rng):
    rgb = rng.integers(0, 256, size=(500, 3))
    back = lab_to_rgb(rgb_to_lab(rgb))
    assert back.dtype == np.uint8
    assert np.abs(back.astype(int) - rgb).max() <= 1


def test_hsv_recovers_rgb(rng):
    rgb = rng.integers(0, 256, size=(500, 3))
    back = hsv_to_rgb(rgb_to_hsv(rgb))
    assert np.abs(back.astype(int) - rgb).max() <= 1


def test_hsv_primary_hues():
    hsv = rgb_to_hsv(np.array([[255, 0, 0], [0, 255, 0], [0, 0, 255], [128, 128, 128]]))
    assert np.allclose(hsv[:3, 0], [0, 120, 240])
    assert hsv[3, 1] == 0


def test_lab_agrees_with_opencv_8bit_ranges(rng):
    rgb = rng.integers(0, 256, size=(20, 20, 3), dtype=np.uint8)
    lab = rgb_to_lab(rgb)
    cv_lab = cv2.cvtColor(rgb, cv2.COLOR_RGB2LAB).astype(np.float64)
    assert np.abs(lab[..., 0] * 255 / 100 - cv_lab[..., 0]).max() <= 1
    assert np.abs(lab[..., 1:] + 128 - cv_lab[..., 1:]).max() <= 1


def test_conversions_keep_leading_shape():
    assert rgb_to_lab(np.zeros((2, 3, 4, 3))).shape == (2, 3, 4, 3)
    assert rgb_to_hsv(np.zeros((5, 3))).shape == (5, 3)
    assert lab_to_rgb(np.zeros((0, 3))).shape == (0, 3)
