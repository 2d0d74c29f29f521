#!/usr/bin/env python3
"""
End-to-end pixelization: outline expansion, downscaling, quantization and the
command-line driver around them.
"""

import json
import logging
import math
import time
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Dict, Optional, Tuple, Union

import cv2
import numpy as np
from numpy.typing import NDArray
from PIL import Image

from .backends import get_backend
from .buffer import PixelBuffer, WeightMap
from .color import color_styling, match_color, sharpen
from .config import Backend, DitherMethod, DownscaleMode, PixelizeConfig, SharpenMode
from .downscale import downscale, nearest_upscale, resize
from .outline import expand
from .palettes import get_palette_by_name, palette_names
from .quantize import extract_palette, quantize_and_dither, quantize_to_palette

logger = logging.getLogger(__name__)


@dataclass
class ProcessingManifest:
    """Stores metadata about the image processing pipeline"""

    original_size: Tuple[int, int]
    final_size: Tuple[int, int]
    processing_steps: Dict
    processing_time_ms: int
    timestamp: str


def limit_pixels(image: PixelBuffer, max_pixels: Optional[int]) -> PixelBuffer:
    """Bilinear pre-resize so the image holds at most max_pixels pixels"""
    count = image.width * image.height
    if max_pixels is None or count <= max_pixels:
        return image.copy()
    scale = math.sqrt(max_pixels / count)
    width = max(1, int(image.width * scale))
    height = max(1, int(image.height * scale))
    logger.info(f"Large image ({image.width}x{image.height}), resizing to {width}x{height}")
    return resize(image, width, height, DownscaleMode.BILINEAR)


def resize_weights(weights: WeightMap, image: PixelBuffer) -> WeightMap:
    """Bring a weight map to the size of image"""
    if weights.shape == (image.height, image.width):
        return weights
    resized = cv2.resize(weights.astype(np.float32), (image.width, image.height), interpolation=cv2.INTER_LINEAR)
    return np.clip(resized, 0.0, 1.0).astype(np.float32)  # type: ignore[no-any-return]


def stylize(image: PixelBuffer, config: Optional[PixelizeConfig] = None) -> Tuple[PixelBuffer, Optional[WeightMap]]:
    """
    Run the full pixelization pipeline.

    Args:
        image: Source buffer
        config: Pipeline options, defaults to PixelizeConfig()

    Returns:
        The stylized buffer and, when outline expansion ran, its weight map
        at the resolution of the (pre-resized) input
    """
    config = config or PixelizeConfig()
    backend = get_backend(config.backend)

    current = limit_pixels(image, config.max_pixels)
    reference = current
    weights: Optional[WeightMap] = None

    if config.thickness > 0:
        current, weights = expand(
            current,
            config.thickness,
            config.thickness,
            config.patch_size,
            config.avg_scale,
            config.dist_scale,
            backend,
        )

    if config.sharpen_mode is not SharpenMode.NONE:
        current = sharpen(current, config.sharpen_mode, config.sharpen_strength)

    if config.color_matching:
        current = match_color(current, reference)

    if config.downscale:
        current = downscale(current, config.target_size, config.downscale_mode, config.k_centroids, backend)

    if config.palette:
        current = quantize_to_palette(current, config.palette, config.dither_method, config.bayer_size)
    elif config.quantize:
        quant_weights = resize_weights(weights, current) if weights is not None else None
        current = quantize_and_dither(
            current, config.num_colors, config.dither_method, quant_weights, config.bayer_size
        )

    if config.contrast != 1.0 or config.saturation != 1.0:
        current = color_styling(current, config.saturation, config.contrast)

    if config.upscale > 1:
        current = nearest_upscale(current, config.upscale)

    return current, weights


def load_image(source: Union[str, Image.Image, NDArray, PixelBuffer]) -> PixelBuffer:
    """Accept a path, PIL image, numpy array or PixelBuffer"""
    if isinstance(source, PixelBuffer):
        return source
    if isinstance(source, str):
        with Image.open(source) as pil_image:
            return PixelBuffer.from_pil(pil_image)
    if isinstance(source, Image.Image):
        return PixelBuffer.from_pil(source)
    if isinstance(source, np.ndarray):
        return PixelBuffer.from_array(source)
    raise TypeError(f"Unsupported image source: {type(source).__name__}")


def process_image(
    source: Union[str, Image.Image, NDArray, PixelBuffer],
    config: Optional[PixelizeConfig] = None,
) -> Dict[str, Any]:
    """
    Load, stylize and describe an image

    Args:
        source: Path to input image, PIL image, numpy array or PixelBuffer
        config: Pipeline options

    Returns:
        Dictionary with the PIL image, the output buffer, the weight map,
        the output palette and a ProcessingManifest
    """
    config = config or PixelizeConfig()
    start_time = time.time()

    image = load_image(source)
    original_size = (image.width, image.height)
    logger.info(f"Processing image: {original_size[0]}x{original_size[1]}")

    result, weights = stylize(image, config)
    palette = extract_palette(result)
    processing_time = int((time.time() - start_time) * 1000)

    manifest = ProcessingManifest(
        original_size=original_size,
        final_size=(result.width, result.height),
        processing_steps={
            "pre_resize": {"max_pixels": config.max_pixels},
            "outline_expansion": {
                "thickness": config.thickness,
                "patch_size": config.patch_size,
                "avg_scale": config.avg_scale,
                "dist_scale": config.dist_scale,
                "applied": config.thickness > 0,
            },
            "sharpen": {"mode": config.sharpen_mode.value, "strength": config.sharpen_strength},
            "color_matching": config.color_matching,
            "downscaling": {
                "mode": config.downscale_mode.value,
                "target_size": config.target_size,
                "k_centroids": config.k_centroids,
                "applied": config.downscale,
            },
            "color_quantization": {
                "num_colors": config.num_colors,
                "dither": config.dither_method.value,
                "fixed_palette": len(config.palette) if config.palette else None,
                "applied": config.quantize or bool(config.palette),
                "final_colors": len(palette),
            },
            "styling": {"contrast": config.contrast, "saturation": config.saturation},
            "upscale": config.upscale,
            "backend": config.backend.value,
        },
        processing_time_ms=processing_time,
        timestamp=datetime.now().isoformat(),
    )

    logger.info(f"Processing complete in {processing_time}ms")

    return {"image": result.to_pil(), "buffer": result, "weights": weights, "palette": palette, "manifest": manifest}


def save_weights(weights: WeightMap, path: str) -> None:
    """Write a weight map as an 8-bit greyscale image"""
    gray = np.clip(np.floor(weights * 255 + 0.5), 0, 255).astype(np.uint8)
    Image.fromarray(gray).save(path)


def main() -> None:
    """Main entry point for the command-line interface"""
    import argparse
    import os
    import sys

    parser = argparse.ArgumentParser(
        description="Turn images into pixel art",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  pixeloe input.png                              # Basic processing
  pixeloe input.png -o output.png --upscale 4    # Enlarge the result 4x
  pixeloe input.png -m k-centroid -k 3           # Cluster based downscaling
  pixeloe input.png -c 16 --dither ordered       # 16 colours, Bayer dithering
  pixeloe input.png --palette pico8.txt          # Map onto a fixed palette
  pixeloe input.png --palette gameboy           # Map onto a predefined palette
        """,
    )

    parser.add_argument("input", help="Input image file")
    parser.add_argument(
        "-o", "--output", default="output.png", help="Output image file (default: output.png)"
    )
    parser.add_argument("--target-size", type=int, default=256, help="Approximate output side length (default: 256)")
    parser.add_argument("--no-downscale", action="store_true", help="Skip downscaling")
    parser.add_argument("--thickness", type=int, default=3, help="Outline expansion iterations, 0 disables (default: 3)")
    parser.add_argument("--patch-size", type=int, default=16, help="Weight map patch size (default: 16)")
    parser.add_argument(
        "-m",
        "--mode",
        choices=[m.value for m in DownscaleMode],
        default=DownscaleMode.CONTRAST.value,
        help="Downscaling method (default: contrast)",
    )
    parser.add_argument("-k", "--k-centroids", type=int, default=2, help="Clusters per block for k-centroid (default: 2)")
    parser.add_argument("-c", "--colors", type=int, help="Quantize to this many colors")
    parser.add_argument(
        "--palette",
        help=f"Fixed palette: a file of hex colors (one per line) or a predefined name ({', '.join(palette_names())})",
    )
    parser.add_argument(
        "--dither",
        choices=[m.value for m in DitherMethod],
        default=DitherMethod.NONE.value,
        help="Dithering method used when quantizing (default: none)",
    )
    parser.add_argument("--bayer-size", type=int, default=8, help="Ordered dither matrix size (default: 8)")
    parser.add_argument("--color-match", action="store_true", help="Match colors back to the input")
    parser.add_argument("--contrast", type=float, default=1.0, help="Contrast factor (default: 1.0)")
    parser.add_argument("--saturation", type=float, default=1.0, help="Saturation factor (default: 1.0)")
    parser.add_argument(
        "--sharpen",
        choices=[m.value for m in SharpenMode],
        default=SharpenMode.NONE.value,
        help="Sharpen before downscaling (default: none)",
    )
    parser.add_argument("--sharpen-strength", type=float, default=1.0, help="Sharpen strength (default: 1.0)")
    parser.add_argument("--upscale", type=int, default=1, help="Nearest-neighbour upscale factor (default: 1)")
    parser.add_argument("--max-pixels", type=int, help="Pre-resize inputs larger than this many pixels")
    parser.add_argument(
        "--backend",
        choices=[m.value for m in Backend],
        default=Backend.CPU.value,
        help="Morphology backend (default: cpu)",
    )
    parser.add_argument("--weights-output", help="Also save the outline weight map to this file")
    parser.add_argument("--quiet", "-q", action="store_true", help="Suppress output")
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose output")

    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO)
    if args.quiet:
        logging.getLogger().setLevel(logging.ERROR)
    elif args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    fixed_palette = None
    if args.palette:
        if os.path.isfile(args.palette):
            with open(args.palette) as f:
                fixed_palette = [line.strip() for line in f if line.strip().startswith("#")]
        elif get_palette_by_name(args.palette) is not None:
            fixed_palette = args.palette
        else:
            logger.error(f"Palette '{args.palette}' is neither a file nor a predefined palette")
            sys.exit(1)

    try:
        config = PixelizeConfig(
            thickness=args.thickness,
            patch_size=args.patch_size,
            downscale=not args.no_downscale,
            downscale_mode=args.mode,
            target_size=args.target_size,
            k_centroids=args.k_centroids,
            quantize=args.colors is not None,
            num_colors=args.colors if args.colors is not None else 32,
            palette=fixed_palette,
            dither_method=args.dither,
            bayer_size=args.bayer_size,
            color_matching=args.color_match,
            contrast=args.contrast,
            saturation=args.saturation,
            sharpen_mode=args.sharpen,
            sharpen_strength=args.sharpen_strength,
            upscale=args.upscale,
            max_pixels=args.max_pixels,
            backend=args.backend,
        )
        result = process_image(args.input, config)

        result["image"].save(args.output)
        if args.weights_output and result["weights"] is not None:
            save_weights(result["weights"], args.weights_output)

        if not args.quiet:
            manifest = result["manifest"]
            print("✓ Processing complete!")
            print(f"  Input: {args.input} ({manifest.original_size[0]}x{manifest.original_size[1]})")
            print(f"  Output: {args.output} ({manifest.final_size[0]}x{manifest.final_size[1]})")
            print(f"  Colors: {manifest.processing_steps['color_quantization']['final_colors']}")
            print(f"  Time: {manifest.processing_time_ms}ms")

            if args.verbose:
                print("\nProcessing Manifest:")
                print(json.dumps(asdict(manifest), indent=2))

    except Exception as e:
        logger.error(f"Error processing image: {e}")
        if args.verbose:
            import traceback

            traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":
    main()
