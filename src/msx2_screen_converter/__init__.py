"""MSX2 bitmap screen converter.

This module converts images into MSX2/MSX2+ SCREEN 5, 7, 8 and 12 BSAVE
binaries (plus the matching palette file for the 16-colour modes). It can be
invoked through the CLI (``python -m msx2_screen_converter``) or imported to
convert a single image into bytes.
"""

from .colors import (
    YJK,
    closest_index,
    perceived_luminance,
    rgb_to_screen8,
    rgb_to_yjk,
    screen8_to_rgb,
    yjk_to_rgb,
)
from .converter import (
    BSAVE_HEADER,
    ConversionResult,
    ConvertOptions,
    ImageSource,
    PixelBuffer,
    ScreenMode,
    convert_file,
    convert_image,
    convert_pixels,
)
from .errors import ConversionError
from .filters import FILTERS, apply_filter
from .palette import (
    PALETTE_TAG_CONVERTER,
    PALETTE_TAG_OPTIMIZER,
    PaletteMethod,
    build_cluster_palette,
    build_histogram_palette,
    decode_palette_file,
    encode_palette_file,
)

__all__ = [
    "BSAVE_HEADER",
    "FILTERS",
    "PALETTE_TAG_CONVERTER",
    "PALETTE_TAG_OPTIMIZER",
    "YJK",
    "ConversionError",
    "ConversionResult",
    "ConvertOptions",
    "ImageSource",
    "PaletteMethod",
    "PixelBuffer",
    "ScreenMode",
    "apply_filter",
    "build_cluster_palette",
    "build_histogram_palette",
    "closest_index",
    "convert_file",
    "convert_image",
    "convert_pixels",
    "decode_palette_file",
    "encode_palette_file",
    "perceived_luminance",
    "rgb_to_screen8",
    "rgb_to_yjk",
    "screen8_to_rgb",
    "yjk_to_rgb",
]
