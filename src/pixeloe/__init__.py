"""Turn arbitrary images into pixel art"""

from .backends import CpuBackend, FallbackBackend, MorphologyBackend, OpenCVBackend, get_backend
from .buffer import PixelBuffer, WeightMap
from .config import Backend, DitherMethod, DownscaleMode, PixelizeConfig, SharpenMode
from .downscale import (
    center_downscale,
    contrast_downscale,
    downscale,
    k_centroid_downscale,
    nearest_upscale,
    resize,
    target_dimensions,
)
from .errors import BackendError, ConfigurationError, PixelizeError
from .morphology import (
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
from .outline import expand, expansion_weight, orig_weight
from .palettes import PREDEFINED_PALETTES, ColorPalette, get_palette_by_name, parse_hex_palette, palette_names
from .pipeline import ProcessingManifest, process_image, stylize
from .quantize import (
    generate_bayer_matrix,
    generate_palette,
    nearest_color,
    quantize_and_dither,
    quantize_to_palette,
)

__version__ = "0.1.0"
