"""
Pipeline configuration.

Mode strings from the CLI or callers are coerced into the enums below; any
unknown value is a ConfigurationError raised at construction time.
"""

from dataclasses import dataclass, fields, replace
from enum import Enum
from typing import Any, Optional, Sequence, Type, TypeVar, Union

from .errors import ConfigurationError
from .palettes import parse_hex_palette, resolve_palette

E = TypeVar("E", bound=Enum)


class DownscaleMode(str, Enum):
    CONTRAST = "contrast"
    K_CENTROID = "k-centroid"
    CENTER = "center"
    NEAREST = "nearest"
    BILINEAR = "bilinear"
    LANCZOS = "lanczos"


class DitherMethod(str, Enum):
    NONE = "none"
    ORDERED = "ordered"
    ERROR_DIFFUSION = "error-diffusion"


class SharpenMode(str, Enum):
    NONE = "none"
    UNSHARP = "unsharp"
    LAPLACIAN = "laplacian"


class Backend(str, Enum):
    CPU = "cpu"
    OPENCV = "opencv"


def parse_enum(enum_type: Type[E], value: Any) -> E:
    """Coerce a string (underscores accepted for dashes) into enum_type"""
    if isinstance(value, enum_type):
        return value
    if isinstance(value, str):
        key = value.strip().lower().replace("_", "-")
        for member in enum_type:
            if member.value == key:
                return member
    choices = ", ".join(m.value for m in enum_type)
    raise ConfigurationError(f"Unknown {enum_type.__name__} '{value}' (expected one of: {choices})")


def is_power_of_two(n: int) -> bool:
    return n > 0 and (n & (n - 1)) == 0


@dataclass(frozen=True)
class PixelizeConfig:
    """Options for the full stylize pipeline"""

    # Outline expansion
    thickness: int = 3  # erode/dilate iterations, 0 disables expansion
    patch_size: int = 16
    avg_scale: float = 10.0
    dist_scale: float = 3.0

    # Downscaling
    downscale: bool = True
    downscale_mode: DownscaleMode = DownscaleMode.CONTRAST
    target_size: int = 256
    k_centroids: int = 2

    # Quantization
    quantize: bool = False
    num_colors: int = 32
    # Predefined palette name or hex colours, replaces the generated palette
    palette: Optional[Union[str, Sequence[str]]] = None
    dither_method: DitherMethod = DitherMethod.NONE
    bayer_size: int = 8

    # Colour post-processing
    color_matching: bool = False
    contrast: float = 1.0
    saturation: float = 1.0
    sharpen_mode: SharpenMode = SharpenMode.NONE
    sharpen_strength: float = 1.0
    upscale: int = 1

    # Execution
    max_pixels: Optional[int] = None  # pre-resize larger inputs to this pixel budget
    backend: Backend = Backend.CPU

    def __post_init__(self) -> None:
        # frozen: coerce enum fields through object.__setattr__
        object.__setattr__(self, "downscale_mode", parse_enum(DownscaleMode, self.downscale_mode))
        object.__setattr__(self, "dither_method", parse_enum(DitherMethod, self.dither_method))
        object.__setattr__(self, "sharpen_mode", parse_enum(SharpenMode, self.sharpen_mode))
        object.__setattr__(self, "backend", parse_enum(Backend, self.backend))
        if self.palette is not None:
            object.__setattr__(self, "palette", resolve_palette(self.palette))
        self.validate()

    def validate(self) -> None:
        if self.thickness < 0:
            raise ConfigurationError(f"thickness must be >= 0, got {self.thickness}")
        if self.patch_size <= 0:
            raise ConfigurationError(f"patch_size must be > 0, got {self.patch_size}")
        if self.target_size <= 0:
            raise ConfigurationError(f"target_size must be > 0, got {self.target_size}")
        if self.k_centroids < 1:
            raise ConfigurationError(f"k_centroids must be >= 1, got {self.k_centroids}")
        if self.num_colors < 1:
            raise ConfigurationError(f"num_colors must be >= 1, got {self.num_colors}")
        if self.bayer_size < 2 or not is_power_of_two(self.bayer_size):
            raise ConfigurationError(f"bayer_size must be a power of two >= 2, got {self.bayer_size}")
        if self.upscale < 1:
            raise ConfigurationError(f"upscale must be >= 1, got {self.upscale}")
        if self.max_pixels is not None and self.max_pixels <= 0:
            raise ConfigurationError(f"max_pixels must be > 0, got {self.max_pixels}")
        if self.contrast < 0 or self.saturation < 0:
            raise ConfigurationError("contrast and saturation must be non-negative")
        if self.sharpen_strength < 0:
            raise ConfigurationError(f"sharpen_strength must be >= 0, got {self.sharpen_strength}")
        if self.palette is not None:
            parse_hex_palette(self.palette)

    def replace(self, **changes: Any) -> "PixelizeConfig":
        """Validated copy with some fields changed"""
        known = {f.name for f in fields(self)}
        unknown = set(changes) - known
        if unknown:
            raise ConfigurationError(f"Unknown option(s): {', '.join(sorted(unknown))}")
        return replace(self, **changes)
