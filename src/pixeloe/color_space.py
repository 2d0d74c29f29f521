"""
Colour space conversions.

All functions are vectorized over the leading axes: RGB input is (..., 3) with
values in [0, 255]; LAB uses L in [0, 100] and the D65 white point. The
conversions run through OpenCV's float32 paths.
"""

import cv2
import numpy as np

from .mathutils import to_uint8

# Rec. 601 weights used for the luminance channel of the weight map
LUMA_WEIGHTS = np.array([0.299, 0.587, 0.114])


def _convert(values: np.ndarray, code: int) -> np.ndarray:
    """cv2.cvtColor over an arbitrary (..., 3) float array"""
    values = np.asarray(values, dtype=np.float32)
    if values.size == 0:
        return np.zeros(values.shape, dtype=np.float64)
    # cvtColor wants an image, so flatten the leading axes into a single row
    converted = cv2.cvtColor(np.ascontiguousarray(values.reshape(1, -1, 3)), code)
    return converted.reshape(values.shape).astype(np.float64)


def luminance(rgb: np.ndarray) -> np.ndarray:
    """Approximate luminance in [0, 1]"""
    return (np.asarray(rgb, dtype=np.float64) @ LUMA_WEIGHTS) / 255.0  # type: ignore[no-any-return]


def rgb_to_lab(rgb: np.ndarray) -> np.ndarray:
    """Convert 8-bit sRGB to CIE L*a*b*"""
    return _convert(np.asarray(rgb, dtype=np.float32) / 255.0, cv2.COLOR_RGB2LAB)


def lab_to_rgb(lab: np.ndarray) -> np.ndarray:
    """Convert CIE L*a*b* back to 8-bit sRGB, rounded and clamped"""
    return to_uint8(_convert(lab, cv2.COLOR_LAB2RGB) * 255.0)


def rgb_to_hsv(rgb: np.ndarray) -> np.ndarray:
    """Hue in degrees [0, 360), saturation and value in [0, 1]"""
    return _convert(np.asarray(rgb, dtype=np.float32) / 255.0, cv2.COLOR_RGB2HSV)


def hsv_to_rgb(hsv: np.ndarray) -> np.ndarray:
    """Inverse of rgb_to_hsv, returns uint8 RGB"""
    hsv = np.array(hsv, dtype=np.float64)
    hsv[..., 0] %= 360.0
    return to_uint8(_convert(hsv, cv2.COLOR_HSV2RGB) * 255.0)
