import pytest

from pixeloe.config import Backend, DitherMethod, DownscaleMode, PixelizeConfig, SharpenMode, parse_enum
from pixeloe.errors import ConfigurationError


def test_defaults():
    config = PixelizeConfig()
    assert config.thickness == 3
    assert config.patch_size == 16
    assert config.target_size == 256
    assert config.downscale_mode is DownscaleMode.CONTRAST
    assert config.dither_method is DitherMethod.NONE
    assert config.sharpen_mode is SharpenMode.NONE
    assert config.backend is Backend.CPU
    assert config.quantize is False
    assert config.max_pixels is None


def test_strings_are_coerced():
    config = PixelizeConfig(downscale_mode="k_centroid", dither_method="Error-Diffusion", backend="opencv")
    assert config.downscale_mode is DownscaleMode.K_CENTROID
    assert config.dither_method is DitherMethod.ERROR_DIFFUSION
    assert config.backend is Backend.OPENCV


def test_palette_list_becomes_tuple():
    assert PixelizeConfig(palette=["#000000"]).palette == ("#000000",)


@pytest.mark.parametrize(
    "changes",
    [
        {"thickness": -1},
        {"patch_size": 0},
        {"target_size": 0},
        {"k_centroids": 0},
        {"num_colors": 0},
        {"bayer_size": 6},
        {"upscale": 0},
        {"max_pixels": 0},
        {"sharpen_strength": -0.5},
        {"palette": []},
        {"palette": ["#12345"]},
        {"palette": ["#000000", "not a colour"]},
        {"palette": "no-such-palette"},
        {"dither_method": "atkinson"},
        {"downscale_mode": "bicubic"},
        {"backend": "webgl"},
    ],
)
def test_invalid_options(changes):
    with pytest.raises(ConfigurationError):
        PixelizeConfig(**changes)


def test_configuration_error_is_value_error():
    with pytest.raises(ValueError):
        PixelizeConfig(patch_size=-3)


def test_replace_validates():
    config = PixelizeConfig()
    assert config.replace(num_colors=8).num_colors == 8
    assert config.num_colors == 32
    with pytest.raises(ConfigurationError):
        config.replace(num_colors=0)
    with pytest.raises(ConfigurationError):
        config.replace(colour_count=3)


def test_parse_enum_passes_members_through():
    assert parse_enum(SharpenMode, SharpenMode.UNSHARP) is SharpenMode.UNSHARP


def test_palette_name_resolves_to_hex():
    config = PixelizeConfig(palette="gameboy")
    assert config.palette == ("#0f380f", "#306230", "#8bac0f", "#9bbc0f")


def test_malformed_palette_rejected_before_processing():
    with pytest.raises(ConfigurationError, match="Invalid hex colour"):
        PixelizeConfig(palette=("#ffffff", "#zz0000"))
