"""
Palette generation, nearest-colour mapping and dithering.
"""

import logging
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np

from .buffer import PixelBuffer, WeightMap
from .config import DitherMethod, is_power_of_two, parse_enum
from .errors import ConfigurationError
from .palettes import parse_hex_palette, resolve_palette, rgb_to_hex

logger = logging.getLogger(__name__)

# Floyd-Steinberg neighbours: (dy, dx, weight)
_DIFFUSION = ((0, 1, 7 / 16), (1, -1, 3 / 16), (1, 0, 5 / 16), (1, 1, 1 / 16))


def _squared_distances(points: np.ndarray, centers: np.ndarray) -> np.ndarray:
    """(N, C) x (K, C) -> (N, K) squared Euclidean distances"""
    points = np.asarray(points, dtype=np.float64)
    centers = np.asarray(centers, dtype=np.float64)
    d = (points**2).sum(axis=1)[:, None] - 2.0 * points @ centers.T + (centers**2).sum(axis=1)[None, :]
    return np.maximum(d, 0.0)  # type: ignore[no-any-return]


def _interpolate(lo: np.ndarray, hi: np.ndarray, count: int) -> np.ndarray:
    t = np.linspace(0.0, 1.0, count) if count > 1 else np.zeros(1)
    return lo[None, :] + t[:, None] * (hi - lo)[None, :]  # type: ignore[no-any-return]


def generate_centroids(pixels: np.ndarray, n: int) -> np.ndarray:
    """
    Deterministic K-means seeds spread between the per-channel min and max.

    Below 8 centroids they sit on the min-max diagonal. From 8 upwards,
    n // 4 seeds are spread along each channel axis (other channels at
    their minimum) and the remainder along the diagonal.
    """
    if n < 1:
        raise ConfigurationError(f"Number of centroids must be >= 1, got {n}")
    pixels = np.asarray(pixels, dtype=np.float64)
    lo = pixels.min(axis=0)
    hi = pixels.max(axis=0)
    if n < 8:
        return _interpolate(lo, hi, n)

    base = n // 4
    seeds = []
    for channel in range(pixels.shape[1]):
        for i in range(1, base + 1):
            seed = lo.copy()
            seed[channel] = lo[channel] + i / (base + 1) * (hi[channel] - lo[channel])
            seeds.append(seed)
    diagonal = _interpolate(lo, hi, n - pixels.shape[1] * base)
    return np.vstack([np.array(seeds), diagonal])


def nearest_color(colors: np.ndarray, palette: np.ndarray) -> np.ndarray:
    """Index of the closest palette entry for every colour; ties go to the first entry"""
    colors = np.asarray(colors).reshape(-1, 3)
    return _squared_distances(colors, palette).argmin(axis=1)  # type: ignore[no-any-return]


def kmeans(
    pixels: np.ndarray,
    n: int,
    weights: Optional[np.ndarray] = None,
    max_iterations: int = 50,
    tolerance: float = 1 / 256,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Weighted K-means from deterministic seeds.

    Args:
        pixels: (N, 3) colours
        n: Number of clusters
        weights: Optional (N,) per-pixel weights, default 1
        max_iterations: Upper bound on update rounds
        tolerance: Stop once the summed absolute centroid movement drops below this

    Returns:
        Float centroids (n, 3) and the label of every pixel against them
    """
    pixels = np.asarray(pixels, dtype=np.float64)
    w = np.ones(len(pixels)) if weights is None else np.asarray(weights, dtype=np.float64).ravel()
    centroids = generate_centroids(pixels, n)
    clusters = np.arange(n)

    for iteration in range(max_iterations):
        labels = _squared_distances(pixels, centroids).argmin(axis=1)
        onehot = (labels[:, None] == clusters) * w[:, None]
        counts = onehot.sum(axis=0)
        sums = onehot.T @ pixels
        updated = np.where(counts[:, None] > 0, sums / np.maximum(counts, 1e-12)[:, None], centroids)

        change = float(np.abs(updated - centroids).sum())
        centroids = updated
        logger.debug(f"kmeans iteration {iteration}: change {change:.5f}")
        if change < tolerance:
            break

    labels = _squared_distances(pixels, centroids).argmin(axis=1)
    return centroids, labels


def _as_weight_vector(weights: Optional[np.ndarray], image: PixelBuffer) -> Optional[np.ndarray]:
    if weights is None:
        return None
    weights = np.asarray(weights, dtype=np.float64)
    count = image.width * image.height
    if weights.shape == (image.height, image.width) or weights.shape == (count,):
        return weights.ravel()
    raise ConfigurationError(
        f"Weights of shape {weights.shape} do not match a {image.width}x{image.height} image"
    )


def generate_palette(image: PixelBuffer, num_colors: int, weights: Optional[WeightMap] = None) -> np.ndarray:
    """At most num_colors RGB entries (uint8, shape (n, 3)) describing the image"""
    if num_colors < 1:
        raise ConfigurationError(f"num_colors must be >= 1, got {num_colors}")
    w = _as_weight_vector(weights, image)
    pixels = image.rgb.reshape(-1, 3)

    unique, first_seen = np.unique(pixels, axis=0, return_index=True)
    if len(unique) <= num_colors:
        palette = pixels[np.sort(first_seen)]
        logger.debug(f"Image has {len(palette)} colours, no clustering needed")
        return palette.copy()

    centroids, labels = kmeans(pixels, num_colors, w)
    used = np.unique(labels)
    palette = np.clip(np.floor(centroids[used] + 0.5), 0, 255).astype(np.uint8)
    logger.info(f"Generated palette: {len(palette)} colours (requested {num_colors})")
    return palette


def generate_bayer_matrix(n: int) -> np.ndarray:
    """
    Integer Bayer threshold matrix of size n.

    Each level places four scaled copies of the previous one, offset by the
    2x2 base pattern [[0, 2], [3, 1]].
    """
    if n < 2 or not is_power_of_two(n):
        raise ConfigurationError(f"Bayer size must be a power of two >= 2, got {n}")
    if n == 2:
        return np.array([[0, 2], [3, 1]], dtype=np.int64)
    smaller = generate_bayer_matrix(n // 2)
    return np.block([[4 * smaller, 4 * smaller + 2], [4 * smaller + 3, 4 * smaller + 1]])  # type: ignore[no-any-return]


def normalized_bayer_matrix(n: int) -> np.ndarray:
    return generate_bayer_matrix(n) / float(n * n)  # type: ignore[no-any-return]


def _validate_palette(palette: np.ndarray) -> np.ndarray:
    palette = np.asarray(palette)
    if palette.ndim != 2 or palette.shape[1] != 3 or len(palette) == 0:
        raise ConfigurationError(f"Palette must be a non-empty (n, 3) array, got shape {palette.shape}")
    return palette.astype(np.uint8)


def quantize_image(image: PixelBuffer, palette: np.ndarray) -> PixelBuffer:
    """Map every pixel to its nearest palette colour"""
    palette = _validate_palette(palette)
    indices = nearest_color(image.rgb.reshape(-1, 3), palette)
    return image.with_rgb(palette[indices].reshape(image.height, image.width, 3))


def ordered_dither(image: PixelBuffer, palette: np.ndarray, pattern_size: int = 8) -> PixelBuffer:
    """Choose between the two nearest palette colours using a tiled Bayer threshold"""
    palette = _validate_palette(palette)
    threshold = normalized_bayer_matrix(pattern_size)
    if len(palette) == 1:
        return quantize_image(image, palette)

    h, w = image.height, image.width
    tiled = np.tile(threshold, (h // pattern_size + 1, w // pattern_size + 1))[:h, :w].ravel()

    distances = np.sqrt(_squared_distances(image.rgb.reshape(-1, 3), palette))
    order = np.argsort(distances, axis=1, kind="stable")[:, :2]
    rows = np.arange(len(order))
    first, second = distances[rows, order[:, 0]], distances[rows, order[:, 1]]
    total = first + second
    ratio = np.divide(first, total, out=np.zeros_like(total), where=total > 0)

    # Exact matches always keep their own colour
    use_first = (tiled > ratio) | (first == 0)
    chosen = np.where(use_first, order[:, 0], order[:, 1])
    return image.with_rgb(palette[chosen].reshape(h, w, 3))


def error_diffusion_dither(image: PixelBuffer, palette: np.ndarray) -> PixelBuffer:
    """Floyd-Steinberg in raster order; alpha is left untouched"""
    palette = _validate_palette(palette)
    palette_f = palette.astype(np.float64)
    h, w = image.height, image.width
    work = image.rgb.astype(np.float64)
    out = np.empty((h, w, 3), dtype=np.uint8)

    for y in range(h):
        for x in range(w):
            pixel = work[y, x]
            index = int(((palette_f - pixel) ** 2).sum(axis=1).argmin())
            out[y, x] = palette[index]
            error = pixel - palette_f[index]
            for dy, dx, weight in _DIFFUSION:
                ny, nx = y + dy, x + dx
                if 0 <= ny < h and 0 <= nx < w:
                    work[ny, nx] = np.clip(work[ny, nx] + error * weight, 0, 255)
    return image.with_rgb(out)


def apply_palette(
    image: PixelBuffer,
    palette: np.ndarray,
    method: DitherMethod = DitherMethod.NONE,
    pattern_size: int = 8,
) -> PixelBuffer:
    method = parse_enum(DitherMethod, method)
    if method is DitherMethod.NONE:
        return quantize_image(image, palette)
    if method is DitherMethod.ORDERED:
        return ordered_dither(image, palette, pattern_size)
    if method is DitherMethod.ERROR_DIFFUSION:
        return error_diffusion_dither(image, palette)
    raise ConfigurationError(f"Unhandled dither method: {method}")


def quantize_and_dither(
    image: PixelBuffer,
    num_colors: int,
    method: DitherMethod = DitherMethod.NONE,
    weights: Optional[WeightMap] = None,
    pattern_size: int = 8,
) -> PixelBuffer:
    """Reduce the image to num_colors colours, optionally dithered"""
    method = parse_enum(DitherMethod, method)
    palette = generate_palette(image, num_colors, weights)
    result = apply_palette(image, palette, method, pattern_size)
    logger.info(f"Quantized to {len(palette)} colours ({method.value})")
    return result


def quantize_to_palette(
    image: PixelBuffer,
    colors: Union[str, Sequence[str]],
    method: DitherMethod = DitherMethod.NONE,
    pattern_size: int = 8,
) -> PixelBuffer:
    """Map the image onto a predefined palette name or a fixed list of hex colours"""
    palette = parse_hex_palette(resolve_palette(colors))
    logger.info(f"Mapping to fixed palette of {len(palette)} colours")
    return apply_palette(image, palette, method, pattern_size)


def extract_palette(image: PixelBuffer) -> List[str]:
    """Distinct colours of the image as sorted hex strings"""
    unique = np.unique(image.rgb.reshape(-1, 3), axis=0)
    return sorted(rgb_to_hex(color) for color in unique)
