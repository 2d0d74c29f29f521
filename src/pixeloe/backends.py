"""
Interchangeable implementations of the heavy image primitives.

CpuBackend is the numpy reference and the default. OpenCVBackend accelerates
flat (binary) structuring elements; FallbackBackend retries any accelerated
failure on the CPU so callers never see a BackendError.
"""

import logging
from typing import Any, Optional

import cv2
import numpy as np

from .config import Backend, parse_enum
from .downscale import contrast_downscale_array
from .errors import BackendError, ConfigurationError
from .mathutils import to_uint8

logger = logging.getLogger(__name__)


def check_kernel(kernel: np.ndarray) -> np.ndarray:
    """Validate a structuring element and return it as a float array"""
    kernel = np.asarray(kernel, dtype=np.float64)
    if kernel.ndim != 2 or kernel.shape[0] != kernel.shape[1] or kernel.shape[0] == 0:
        raise ConfigurationError(f"Kernel must be a non-empty square matrix, got shape {kernel.shape}")
    if np.any(kernel < 0) or np.any(kernel > 1):
        raise ConfigurationError("Kernel weights must lie in [0, 1]")
    if not np.any(kernel > 0):
        raise ConfigurationError("Kernel has no enabled cells")
    return kernel


def is_binary_kernel(kernel: np.ndarray) -> bool:
    return bool(np.all(kernel[kernel > 0] == 1))


def _check_iterations(iterations: int) -> None:
    if iterations < 0:
        raise ConfigurationError(f"iterations must be >= 0, got {iterations}")


def morph_reference(data: np.ndarray, kernel: np.ndarray, iterations: int, dilate: bool) -> np.ndarray:
    """
    Grey-level dilation/erosion with replicated borders.

    Works on (H, W) or (H, W, C) uint8 arrays. Flat kernels take the plain
    extremum; fractional weights shift each normalized sample by
    ``w - 1`` (dilate) or ``1 - w`` (erode) before the extremum.
    """
    kernel = check_kernel(kernel)
    _check_iterations(iterations)

    size = kernel.shape[0]
    half = size // 2
    h, w = data.shape[:2]
    cells = [(ky, kx, float(kernel[ky, kx])) for ky in range(size) for kx in range(size) if kernel[ky, kx] > 0]
    binary = is_binary_kernel(kernel)
    pad = ((half, size - 1 - half), (half, size - 1 - half)) + ((0, 0),) * (data.ndim - 2)
    reduce = np.maximum if dilate else np.minimum

    result = data.copy()
    for _ in range(iterations):
        padded = np.pad(result, pad, mode="edge")
        if binary:
            acc = None
            for ky, kx, _weight in cells:
                window = padded[ky : ky + h, kx : kx + w]
                acc = window.copy() if acc is None else reduce(acc, window)
            result = acc
        else:
            normalized = padded.astype(np.float64) / 255.0
            acc = None
            for ky, kx, weight in cells:
                shift = weight - 1.0 if dilate else 1.0 - weight
                adjusted = normalized[ky : ky + h, kx : kx + w] + shift
                acc = adjusted if acc is None else reduce(acc, adjusted)
            result = to_uint8(np.clip(acc, 0.0, 1.0) * 255.0)
    return result  # type: ignore[no-any-return]


class MorphologyBackend:
    """Interface shared by all backends; arrays in, arrays out"""

    name = "abstract"

    def dilate(self, data: np.ndarray, kernel: np.ndarray, iterations: int) -> np.ndarray:
        raise NotImplementedError

    def erode(self, data: np.ndarray, kernel: np.ndarray, iterations: int) -> np.ndarray:
        raise NotImplementedError

    def contrast_downscale(self, data: np.ndarray, target_size: int) -> np.ndarray:
        raise NotImplementedError


class CpuBackend(MorphologyBackend):
    name = "cpu"

    def dilate(self, data: np.ndarray, kernel: np.ndarray, iterations: int) -> np.ndarray:
        return morph_reference(data, kernel, iterations, dilate=True)

    def erode(self, data: np.ndarray, kernel: np.ndarray, iterations: int) -> np.ndarray:
        return morph_reference(data, kernel, iterations, dilate=False)

    def contrast_downscale(self, data: np.ndarray, target_size: int) -> np.ndarray:
        return contrast_downscale_array(data, target_size)


class OpenCVBackend(CpuBackend):
    """OpenCV morphology for flat kernels; fractional kernels use the CPU path"""

    name = "opencv"

    def _morph(self, data: np.ndarray, kernel: np.ndarray, iterations: int, dilate: bool) -> np.ndarray:
        kernel = check_kernel(kernel)
        _check_iterations(iterations)
        if not is_binary_kernel(kernel):
            return morph_reference(data, kernel, iterations, dilate)

        flat = (kernel > 0).astype(np.uint8)
        op = cv2.dilate if dilate else cv2.erode
        result = np.ascontiguousarray(data)
        try:
            # One pass per iteration so non-rectangular kernels match the reference
            for _ in range(iterations):
                result = op(result, flat, iterations=1, borderType=cv2.BORDER_REPLICATE)
        except cv2.error as e:
            raise BackendError(f"OpenCV {'dilate' if dilate else 'erode'} failed: {e}") from e
        if iterations == 0:
            result = result.copy()
        return result.reshape(data.shape)

    def dilate(self, data: np.ndarray, kernel: np.ndarray, iterations: int) -> np.ndarray:
        return self._morph(data, kernel, iterations, dilate=True)

    def erode(self, data: np.ndarray, kernel: np.ndarray, iterations: int) -> np.ndarray:
        return self._morph(data, kernel, iterations, dilate=False)


class FallbackBackend(MorphologyBackend):
    """Run on ``primary``; on BackendError log and retry on ``fallback``"""

    def __init__(self, primary: MorphologyBackend, fallback: Optional[MorphologyBackend] = None):
        self.primary = primary
        self.fallback = fallback or CpuBackend()
        self.name = primary.name

    def _call(self, method: str, *args: Any) -> np.ndarray:
        try:
            return getattr(self.primary, method)(*args)  # type: ignore[no-any-return]
        except BackendError as e:
            logger.warning(f"{self.primary.name} backend failed in {method}, falling back to {self.fallback.name}: {e}")
            return getattr(self.fallback, method)(*args)  # type: ignore[no-any-return]

    def dilate(self, data: np.ndarray, kernel: np.ndarray, iterations: int) -> np.ndarray:
        return self._call("dilate", data, kernel, iterations)

    def erode(self, data: np.ndarray, kernel: np.ndarray, iterations: int) -> np.ndarray:
        return self._call("erode", data, kernel, iterations)

    def contrast_downscale(self, data: np.ndarray, target_size: int) -> np.ndarray:
        return self._call("contrast_downscale", data, target_size)


_DEFAULT_BACKEND = CpuBackend()


def get_backend(name: Any = None) -> MorphologyBackend:
    """Backend instance for a Backend enum/string; None gives the CPU reference"""
    if name is None or isinstance(name, MorphologyBackend):
        return name or _DEFAULT_BACKEND
    backend = parse_enum(Backend, name)
    if backend is Backend.CPU:
        return _DEFAULT_BACKEND
    if backend is Backend.OPENCV:
        return FallbackBackend(OpenCVBackend())
    raise ConfigurationError(f"Unhandled backend: {backend}")
