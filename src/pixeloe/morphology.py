"""
Grey-level morphology on RGBA buffers and the predefined structuring elements.
"""

import logging
import math
from typing import Dict, Optional

import numpy as np

from .backends import MorphologyBackend, get_backend
from .buffer import PixelBuffer
from .errors import ConfigurationError

logger = logging.getLogger(__name__)


def _freeze(kernel: np.ndarray) -> np.ndarray:
    kernel = np.asarray(kernel, dtype=np.float64)
    kernel.setflags(write=False)
    return kernel


def circle_kernel(r: float) -> np.ndarray:
    """
    Anti-aliased disc of radius ``r`` on a (2*floor(r)+1) square grid.

    Each cell is sampled at its four corners and four edge midpoints; cells
    fully inside the radius get 1, cells straddling it get the fraction of
    the distance range that lies inside.
    """
    int_r = int(math.floor(r))
    size = 2 * int_r + 1
    kernel = np.zeros((size, size), dtype=np.float64)
    offsets = [(-0.5, -0.5), (-0.5, 0.5), (0.5, -0.5), (0.5, 0.5), (0, 0.5), (0, -0.5), (0.5, 0), (-0.5, 0)]

    for i in range(size):
        for j in range(size):
            distances = [math.hypot(i + di - int_r, j + dj - int_r) for di, dj in offsets]
            far, near = max(distances), min(distances)
            if far <= r:
                kernel[i, j] = 1.0
            elif near <= r:
                kernel[i, j] = (r - near) / (far - near)
    return kernel


EXPANSION_KERNEL = _freeze(np.ones((3, 3)))
SMOOTHING_KERNEL = _freeze(np.array([[0, 1, 0], [1, 1, 1], [0, 1, 0]]))

KERNELS: Dict[int, np.ndarray] = {
    1: _freeze(circle_kernel(1)),
    2: _freeze(circle_kernel(1.5)),
    3: _freeze(circle_kernel(2)[1:4, 1:4]),
    4: _freeze(circle_kernel(2.5)),
    5: _freeze(circle_kernel(3)[1:6, 1:6]),
    6: _freeze(circle_kernel(3.5)),
}


def get_kernel(index: int) -> np.ndarray:
    """Predefined circular kernel 1-6"""
    if index not in KERNELS:
        raise ConfigurationError(f"Unknown kernel index {index}, expected one of {sorted(KERNELS)}")
    return KERNELS[index]


def dilate(
    image: PixelBuffer,
    kernel: Optional[np.ndarray] = None,
    iterations: int = 1,
    backend: Optional[MorphologyBackend] = None,
) -> PixelBuffer:
    """Per-channel dilation with replicated borders; all four channels, alpha included"""
    kernel = EXPANSION_KERNEL if kernel is None else kernel
    return PixelBuffer(get_backend(backend).dilate(image.data, kernel, iterations))


def erode(
    image: PixelBuffer,
    kernel: Optional[np.ndarray] = None,
    iterations: int = 1,
    backend: Optional[MorphologyBackend] = None,
) -> PixelBuffer:
    """Per-channel erosion with replicated borders; all four channels, alpha included"""
    kernel = EXPANSION_KERNEL if kernel is None else kernel
    return PixelBuffer(get_backend(backend).erode(image.data, kernel, iterations))


def dilate_with_kernel(
    image: PixelBuffer, index: int, iterations: int = 1, backend: Optional[MorphologyBackend] = None
) -> PixelBuffer:
    return dilate(image, get_kernel(index), iterations, backend)


def erode_with_kernel(
    image: PixelBuffer, index: int, iterations: int = 1, backend: Optional[MorphologyBackend] = None
) -> PixelBuffer:
    return erode(image, get_kernel(index), iterations, backend)


def opening(
    image: PixelBuffer,
    kernel: Optional[np.ndarray] = None,
    iterations: int = 1,
    backend: Optional[MorphologyBackend] = None,
) -> PixelBuffer:
    """Erode then dilate; removes bright details smaller than the kernel"""
    return dilate(erode(image, kernel, iterations, backend), kernel, iterations, backend)


def closing(
    image: PixelBuffer,
    kernel: Optional[np.ndarray] = None,
    iterations: int = 1,
    backend: Optional[MorphologyBackend] = None,
) -> PixelBuffer:
    """Dilate then erode; fills dark details smaller than the kernel"""
    return erode(dilate(image, kernel, iterations, backend), kernel, iterations, backend)
