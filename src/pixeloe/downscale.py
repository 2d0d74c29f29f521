"""
Downscaling strategies.

contrast and k-centroid are the adaptive reductions that keep thin dark/bright
details alive; center, nearest, bilinear and lanczos are plain resamplers.
"""

import logging
import math
from typing import TYPE_CHECKING, Iterator, Optional, Tuple

import cv2
import numpy as np

from .buffer import PixelBuffer
from .color_space import lab_to_rgb, rgb_to_lab
from .config import DownscaleMode, parse_enum
from .errors import ConfigurationError
from .mathutils import round_half_up, to_uint8

if TYPE_CHECKING:
    from .backends import MorphologyBackend

logger = logging.getLogger(__name__)

_CV2_INTERPOLATION = {
    DownscaleMode.NEAREST: cv2.INTER_NEAREST,
    DownscaleMode.BILINEAR: cv2.INTER_LINEAR,
    DownscaleMode.LANCZOS: cv2.INTER_LANCZOS4,
}

# Pixel samples clustered together in k_centroid_downscale; bounds the
# (blocks, n, k, 3) distance temporaries
KMEANS_BATCH_PIXELS = 1 << 16


def target_dimensions(width: int, height: int, target_size: int) -> Tuple[int, int]:
    """
    Output (width, height) whose pixel count is about target_size**2 while
    keeping the aspect ratio.
    """
    if target_size <= 0:
        raise ConfigurationError(f"target_size must be > 0, got {target_size}")
    if width <= 0 or height <= 0:
        raise ConfigurationError(f"Invalid dimensions: {width}x{height}")
    ratio = width / height
    target_h = max(1, int(math.floor(math.sqrt(target_size * target_size / ratio))))
    target_w = max(1, int(math.floor(target_h * ratio)))
    return target_w, target_h


def _contrast_pixels(blocks: np.ndarray) -> np.ndarray:
    """
    One representative RGBA pixel per block, blocks shaped (B, n, 4).

    Luminance comes from the block's min, max or middle sample depending on
    how the distribution is skewed; chroma and alpha are block medians.
    """
    lab = rgb_to_lab(blocks[..., :3])
    lum = lab[..., 0]
    n = lum.shape[1]

    med = np.median(lum, axis=1)
    avg = lum.mean(axis=1)
    hi = lum.max(axis=1)
    lo = lum.min(axis=1)

    pick_min = (med < avg) & ((hi - med) > (med - lo))
    pick_max = (med > avg) & ((hi - med) < (med - lo))
    choice = np.where(pick_min, lum.argmin(axis=1), np.where(pick_max, lum.argmax(axis=1), n // 2))
    selected = lum[np.arange(lum.shape[0]), choice]

    chroma = np.median(lab[..., 1:], axis=1)
    rgb = lab_to_rgb(np.concatenate([selected[:, None], chroma], axis=1))
    alpha = to_uint8(np.median(blocks[..., 3].astype(np.float64), axis=1))
    return np.concatenate([rgb, alpha[:, None]], axis=1)


def _edge_blocks(h: int, w: int, patch: int) -> Iterator[Tuple[int, int]]:
    """Origins of the partial blocks along the bottom and right edges"""
    full_h, full_w = (h // patch) * patch, (w // patch) * patch
    for y0 in range(0, h, patch):
        for x0 in range(0, w, patch):
            if y0 >= full_h or x0 >= full_w:
                yield y0, x0


def contrast_downscale_array(data: np.ndarray, target_size: int) -> np.ndarray:
    """Contrast-aware reduction of an (H, W, 4) uint8 array"""
    h, w = data.shape[:2]
    target_w, target_h = target_dimensions(w, h, target_size)
    patch = max(1, int(round_half_up(h / target_h)), int(round_half_up(w / target_w)))

    filled = np.empty_like(data)
    ny, nx = h // patch, w // patch
    if ny and nx:
        region = data[: ny * patch, : nx * patch]
        blocks = region.reshape(ny, patch, nx, patch, 4).transpose(0, 2, 1, 3, 4).reshape(ny * nx, patch * patch, 4)
        values = _contrast_pixels(blocks).reshape(ny, nx, 4)
        filled[: ny * patch, : nx * patch] = np.repeat(np.repeat(values, patch, axis=0), patch, axis=1)

    for y0, x0 in _edge_blocks(h, w, patch):
        block = data[y0 : y0 + patch, x0 : x0 + patch]
        value = _contrast_pixels(block.reshape(1, -1, 4))[0]
        filled[y0 : y0 + patch, x0 : x0 + patch] = value

    logger.debug(f"Contrast downscale: {w}x{h} -> {target_w}x{target_h}, patch {patch}")
    return cv2.resize(filled, (target_w, target_h), interpolation=cv2.INTER_NEAREST)  # type: ignore[no-any-return]


def contrast_downscale(
    image: PixelBuffer, target_size: int, backend: Optional["MorphologyBackend"] = None
) -> PixelBuffer:
    """Downscale preserving local contrast extremes"""
    if backend is None:
        data = contrast_downscale_array(image.data, target_size)
    else:
        data = backend.contrast_downscale(image.data, target_size)
    return PixelBuffer(np.ascontiguousarray(data))


def _block_kmeans(pixels: np.ndarray, k: int, max_iterations: int = 10) -> np.ndarray:
    """
    Deterministic K-means run independently on every block.

    Args:
        pixels: Float array (B, n, 3)
        k: Number of clusters per block
        max_iterations: Upper bound on update rounds

    Returns:
        Rounded centroids (B, k, 3)
    """
    lo = pixels.min(axis=1)
    hi = pixels.max(axis=1)
    t = np.linspace(0.0, 1.0, k) if k > 1 else np.zeros(1)
    centroids = lo[:, None, :] + t[None, :, None] * (hi - lo)[:, None, :]

    active = np.ones(pixels.shape[0], dtype=bool)
    clusters = np.arange(k)
    for iteration in range(max_iterations):
        if not active.any():
            break
        distances = ((pixels[:, :, None, :] - centroids[:, None, :, :]) ** 2).sum(axis=-1)
        onehot = (distances.argmin(axis=-1)[..., None] == clusters).astype(np.float64)
        counts = onehot.sum(axis=1)
        means = np.einsum("bnk,bnc->bkc", onehot, pixels) / np.maximum(counts, 1)[..., None]

        assigned = counts > 0
        moved = ((means - centroids) ** 2).sum(axis=-1)
        converged = ~np.any(assigned & (moved > 1.0), axis=1)

        # Empty clusters keep their position
        update = assigned & active[:, None]
        centroids = np.where(update[..., None], round_half_up(means), centroids)
        active &= ~converged
        logger.debug(f"k-centroid iteration {iteration}: {int(active.sum())} blocks still moving")
    return centroids


def _k_centroid_blocks(blocks: np.ndarray, k: int, ph: int, pw: int) -> Tuple[np.ndarray, np.ndarray]:
    """RGB (B, 3) and alpha (B,) picked for a batch of (B, ph * pw, 4) blocks"""
    pixels = blocks[..., :3].astype(np.float64)
    if k >= ph * pw:
        rgb = to_uint8(pixels.mean(axis=1))
    else:
        centroids = _block_kmeans(pixels, k)
        center = pixels[:, ((ph - 1) // 2) * pw + (pw - 1) // 2]
        nearest = ((centroids - center[:, None, :]) ** 2).sum(axis=-1).argmin(axis=1)
        rgb = centroids[np.arange(len(centroids)), nearest].astype(np.uint8)
    alpha = to_uint8(np.median(blocks[..., 3].astype(np.float64), axis=1))
    return rgb, alpha


def k_centroid_downscale(image: PixelBuffer, target_size: int, k: int = 2) -> PixelBuffer:
    """
    Downscale by clustering each block and keeping the cluster nearest its center.

    Blocks are clustered a few block rows at a time so memory stays bounded
    by KMEANS_BATCH_PIXELS rather than the image size.

    Args:
        image: Source buffer
        target_size: Approximate side length of the output
        k: Clusters per block, at least 1

    Returns:
        Buffer of target_dimensions(width, height, target_size)
    """
    if k < 1:
        raise ConfigurationError(f"k must be >= 1, got {k}")
    h, w = image.height, image.width
    target_w, target_h = target_dimensions(w, h, target_size)
    ph = min(h, max(1, h // target_h))
    pw = min(w, max(1, w // target_w))
    n = ph * pw

    # Block starts are clamped so every block has the full ph x pw size
    starts_y = np.minimum(np.arange(target_h) * ph, h - ph)
    starts_x = np.minimum(np.arange(target_w) * pw, w - pw)
    cols = starts_x[:, None] + np.arange(pw)

    result = np.empty((target_h, target_w, 4), dtype=np.uint8)
    rows_per_batch = max(1, KMEANS_BATCH_PIXELS // (target_w * n))
    for y0 in range(0, target_h, rows_per_batch):
        y1 = min(target_h, y0 + rows_per_batch)
        rows = starts_y[y0:y1, None] + np.arange(ph)
        blocks = image.data[rows[:, None, :, None], cols[None, :, None, :]].reshape(-1, n, 4)
        rgb, alpha = _k_centroid_blocks(blocks, k, ph, pw)
        result[y0:y1, :, :3] = rgb.reshape(y1 - y0, target_w, 3)
        result[y0:y1, :, 3] = alpha.reshape(y1 - y0, target_w)

    logger.debug(f"k-centroid downscale: {w}x{h} -> {target_w}x{target_h}, block {pw}x{ph}, k={k}")
    return PixelBuffer(result)


def center_downscale(image: PixelBuffer, target_size: int) -> PixelBuffer:
    """Keep the pixel at the center of each block"""
    h, w = image.height, image.width
    target_w, target_h = target_dimensions(w, h, target_size)
    ph = max(1, h // target_h)
    pw = max(1, w // target_w)
    ys = np.clip(np.arange(target_h) * ph + ph // 2, 0, h - 1)
    xs = np.clip(np.arange(target_w) * pw + pw // 2, 0, w - 1)
    return PixelBuffer(np.ascontiguousarray(image.data[ys[:, None], xs[None, :]]))


def resize(image: PixelBuffer, width: int, height: int, mode: DownscaleMode = DownscaleMode.NEAREST) -> PixelBuffer:
    """Resample with OpenCV; mode is one of nearest, bilinear or lanczos"""
    mode = parse_enum(DownscaleMode, mode)
    if mode not in _CV2_INTERPOLATION:
        raise ConfigurationError(f"{mode.value} is not a resampling filter")
    if width <= 0 or height <= 0:
        raise ConfigurationError(f"Invalid dimensions: {width}x{height}")
    data = cv2.resize(image.data, (width, height), interpolation=_CV2_INTERPOLATION[mode])
    return PixelBuffer(np.ascontiguousarray(data))


def downscale(
    image: PixelBuffer,
    target_size: int,
    mode: DownscaleMode = DownscaleMode.CONTRAST,
    k_centroids: int = 2,
    backend: Optional["MorphologyBackend"] = None,
) -> PixelBuffer:
    """Reduce image to about target_size**2 pixels with the chosen strategy"""
    mode = parse_enum(DownscaleMode, mode)
    if mode is DownscaleMode.CONTRAST:
        result = contrast_downscale(image, target_size, backend)
    elif mode is DownscaleMode.K_CENTROID:
        result = k_centroid_downscale(image, target_size, k_centroids)
    elif mode is DownscaleMode.CENTER:
        result = center_downscale(image, target_size)
    elif mode in _CV2_INTERPOLATION:
        target_w, target_h = target_dimensions(image.width, image.height, target_size)
        result = resize(image, target_w, target_h, mode)
    else:
        raise ConfigurationError(f"Unhandled downscale mode: {mode}")

    logger.info(f"Downscaled ({mode.value}): {image.width}x{image.height} -> {result.width}x{result.height}")
    return result


def nearest_upscale(image: PixelBuffer, scale: int) -> PixelBuffer:
    """Integer nearest-neighbour enlargement"""
    if scale < 1:
        raise ConfigurationError(f"scale must be >= 1, got {scale}")
    if scale == 1:
        return image.copy()
    data = np.repeat(np.repeat(image.data, scale, axis=0), scale, axis=1)
    return PixelBuffer(np.ascontiguousarray(data))
