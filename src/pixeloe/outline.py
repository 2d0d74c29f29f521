"""
Outline expansion.

Thin dark (or bright) strokes would vanish when the image is reduced, so
before downscaling each pixel is blended between an eroded and a dilated copy
of the image. The blend weight comes from local luminance statistics: pixels
darker than their surroundings lean towards erosion, which thickens dark
lines, and bright details lean towards dilation.
"""

import logging
import time
from typing import Optional, Tuple

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view

from .backends import MorphologyBackend, get_backend
from .buffer import PixelBuffer, WeightMap
from .color_space import luminance
from .errors import ConfigurationError
from .mathutils import sigmoid, to_uint8
from .morphology import EXPANSION_KERNEL, SMOOTHING_KERNEL, dilate, erode

logger = logging.getLogger(__name__)


def default_stride(patch_size: int) -> int:
    return max(1, (patch_size // 4) * 2)


def _grid_windows(values: np.ndarray, half: int, stride: int) -> np.ndarray:
    """Clamped (2*half+1)^2 windows centred on every stride-th pixel, shape (gy, gx, side, side)"""
    side = 2 * half + 1
    padded = np.pad(values, half, mode="edge")
    return sliding_window_view(padded, (side, side))[::stride, ::stride]  # type: ignore[no-any-return]


def _fill_blocks(grid: np.ndarray, stride: int, shape: Tuple[int, int]) -> np.ndarray:
    """Every pixel of the stride x stride block at a grid origin takes that origin's value"""
    h, w = shape
    return np.repeat(np.repeat(grid, stride, axis=0), stride, axis=1)[:h, :w]  # type: ignore[no-any-return]


def expansion_weight(
    image: PixelBuffer,
    patch_size: int = 16,
    stride: Optional[int] = None,
    avg_scale: float = 10.0,
    dist_scale: float = 3.0,
) -> WeightMap:
    """
    Per-pixel erosion weight in [0, 1].

    Args:
        image: Source buffer
        patch_size: Half-extent of the median window; min/max use half of it
        stride: Grid spacing of the statistics, derived from patch_size if None
        avg_scale: Influence of the local median brightness
        dist_scale: Influence of the bright/dark spread around the median

    Returns:
        float32 map of shape (height, width), min-max normalized unless constant
    """
    if patch_size <= 0:
        raise ConfigurationError(f"patch_size must be > 0, got {patch_size}")
    stride = default_stride(patch_size) if stride is None else stride
    if stride <= 0:
        raise ConfigurationError(f"stride must be > 0, got {stride}")

    lum = luminance(image.rgb)
    median_windows = _grid_windows(lum, patch_size, stride)
    extent_windows = _grid_windows(lum, patch_size // 2, stride)

    gy, gx = median_windows.shape[:2]
    avg = np.empty((gy, gx))
    # Row by row keeps the flattened median windows small
    for row in range(gy):
        avg[row] = np.median(median_windows[row].reshape(gx, -1), axis=1)
    hi = extent_windows.max(axis=(2, 3))
    lo = extent_windows.min(axis=(2, 3))

    bright = hi - avg
    dark = avg - lo
    raw = (avg - 0.5) * avg_scale - (bright - dark) * dist_scale
    weight = _fill_blocks(sigmoid(raw), stride, lum.shape)

    w_min, w_max = weight.min(), weight.max()
    if w_max > w_min:
        weight = (weight - w_min) / (w_max - w_min)
    return weight.astype(np.float32)  # type: ignore[no-any-return]


def orig_weight(weight: WeightMap) -> WeightMap:
    """Share of the untouched original in the final blend, in (0, 0.25)"""
    return (sigmoid((np.asarray(weight, dtype=np.float64) - 0.5) * 5) * 0.25).astype(np.float32)  # type: ignore[no-any-return]


def expand(
    image: PixelBuffer,
    erode_iters: int = 2,
    dilate_iters: int = 2,
    patch_size: int = 16,
    avg_scale: float = 10.0,
    dist_scale: float = 3.0,
    backend: Optional[MorphologyBackend] = None,
) -> Tuple[PixelBuffer, WeightMap]:
    """
    Thicken outlines so they survive downscaling.

    Returns the expanded buffer and a diagnostic map of how strongly each
    pixel was pushed towards erosion or dilation.
    """
    if erode_iters < 0 or dilate_iters < 0:
        raise ConfigurationError(f"Iterations must be >= 0, got erode={erode_iters} dilate={dilate_iters}")
    start_time = time.time()
    backend = get_backend(backend)

    weight = expansion_weight(image, patch_size, default_stride(patch_size), avg_scale, dist_scale)
    original_share = orig_weight(weight)[..., None].astype(np.float64)
    w = weight[..., None].astype(np.float64)

    eroded = erode(image, EXPANSION_KERNEL, erode_iters, backend).data.astype(np.float64)
    dilated = dilate(image, EXPANSION_KERNEL, dilate_iters, backend).data.astype(np.float64)
    blended = eroded * w + dilated * (1.0 - w)
    blended = blended * (1.0 - original_share) + image.data.astype(np.float64) * original_share
    result = PixelBuffer(to_uint8(blended))

    result = erode(result, SMOOTHING_KERNEL, erode_iters, backend)
    result = dilate(result, SMOOTHING_KERNEL, dilate_iters * 2, backend)
    result = erode(result, SMOOTHING_KERNEL, erode_iters, backend)

    strength = to_uint8(np.abs(weight.astype(np.float64) * 2 - 1) * 255)
    strength = backend.dilate(strength, EXPANSION_KERNEL, dilate_iters)
    diagnostic = (strength.astype(np.float32) / 255.0).astype(np.float32)

    elapsed = (time.time() - start_time) * 1000
    logger.info(f"Outline expansion: {image.width}x{image.height}, erode={erode_iters}, dilate={dilate_iters}, {elapsed:.1f}ms")
    return result, diagnostic
