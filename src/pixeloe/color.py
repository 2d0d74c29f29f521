"""
Colour correction and styling applied around the pixelization stages.
"""

import logging
import math

import cv2
import numpy as np

from .buffer import PixelBuffer
from .color_space import hsv_to_rgb, lab_to_rgb, rgb_to_hsv, rgb_to_lab
from .config import SharpenMode, parse_enum
from .errors import ConfigurationError
from .mathutils import to_uint8

logger = logging.getLogger(__name__)

_LAPLACIAN = np.array([[0, -1, 0], [-1, 4, -1], [0, -1, 0]], dtype=np.float64)


def _wavelet_decomposition(channel: np.ndarray, levels: int):
    """Split into accumulated high frequencies and the remaining low band"""
    high = np.zeros_like(channel)
    current = channel
    for i in range(1, levels + 1):
        size = 2 * (2**i) + 1
        low = cv2.blur(current, (size, size), borderType=cv2.BORDER_REPLICATE)
        high += current - low
        current = low
    return high, current


def wavelet_colorfix(source: np.ndarray, target: np.ndarray, level: int = 5) -> np.ndarray:
    """Source detail on top of the target's low-frequency colour, per RGB channel"""
    src = source.astype(np.float64)
    tgt = target.astype(np.float64)
    out = np.empty_like(src)
    for c in range(src.shape[2]):
        high, _ = _wavelet_decomposition(np.ascontiguousarray(src[..., c]), level)
        _, low = _wavelet_decomposition(np.ascontiguousarray(tgt[..., c]), level)
        out[..., c] = high + low
    return to_uint8(out)


def match_color(source: PixelBuffer, target: PixelBuffer, level: int = 5) -> PixelBuffer:
    """
    Pull the colour distribution of source towards target.

    Args:
        source: Image to correct
        target: Reference image of the same size
        level: Number of wavelet levels used for the low-frequency transfer

    Returns:
        Corrected copy of source, alpha unchanged
    """
    if (source.width, source.height) != (target.width, target.height):
        raise ConfigurationError(
            f"Cannot match {source.width}x{source.height} against {target.width}x{target.height}"
        )
    src_lab = rgb_to_lab(source.rgb).reshape(-1, 3)
    tgt_lab = rgb_to_lab(target.rgb).reshape(-1, 3)

    src_mean, src_std = src_lab.mean(axis=0), src_lab.std(axis=0)
    tgt_mean, tgt_std = tgt_lab.mean(axis=0), tgt_lab.std(axis=0)
    src_std = np.where(src_std == 0, 1.0, src_std)

    matched = (src_lab - src_mean) / src_std * tgt_std + tgt_mean
    rgb = lab_to_rgb(matched).reshape(source.height, source.width, 3)

    result = wavelet_colorfix(rgb, target.rgb, level)
    logger.debug(f"Colour matched {source.width}x{source.height} with {level} wavelet levels")
    return source.with_rgb(result)


def color_styling(image: PixelBuffer, saturation: float = 1.0, contrast: float = 1.0) -> PixelBuffer:
    """Scale saturation and stretch value around mid-grey"""
    hsv = rgb_to_hsv(image.rgb)
    hsv[..., 1] = np.clip(hsv[..., 1] * saturation, 0.0, 1.0)
    hsv[..., 2] = np.clip(hsv[..., 2] * contrast - (contrast - 1) * 0.5, 0.0, 1.0)
    return image.with_rgb(hsv_to_rgb(hsv))


def unsharp_mask(image: PixelBuffer, amount: float = 1.0, radius: int = 1) -> PixelBuffer:
    if radius < 1:
        return image.copy()
    size = 2 * radius + 1
    rgb = np.ascontiguousarray(image.rgb)
    blurred = cv2.GaussianBlur(rgb, (size, size), radius / 3, borderType=cv2.BORDER_REPLICATE)
    original = rgb.astype(np.float64)
    sharpened = original + amount * (original - blurred.astype(np.float64))
    return image.with_rgb(to_uint8(sharpened))


def laplacian_sharpen(image: PixelBuffer, strength: float = 0.5) -> PixelBuffer:
    original = image.rgb.astype(np.float64)
    response = cv2.filter2D(original, -1, _LAPLACIAN, borderType=cv2.BORDER_REPLICATE)
    edges = np.clip(np.floor(response + 0.5), 0, 255)
    return image.with_rgb(to_uint8(original + strength * edges))


def sharpen(image: PixelBuffer, mode: SharpenMode = SharpenMode.NONE, strength: float = 1.0) -> PixelBuffer:
    mode = parse_enum(SharpenMode, mode)
    if strength < 0:
        raise ConfigurationError(f"strength must be >= 0, got {strength}")
    if mode is SharpenMode.NONE:
        return image.copy()
    if mode is SharpenMode.UNSHARP:
        return unsharp_mask(image, strength, int(math.ceil(strength)))
    if mode is SharpenMode.LAPLACIAN:
        return laplacian_sharpen(image, strength * 0.5)
    raise ConfigurationError(f"Unhandled sharpen mode: {mode}")
