"""Core conversion logic for the MSX2 screen converter."""

# Reference: MSX2 / MSX2+ bitmap screens produced here
# Mode       | Resolution | Colours            | Payload
# -----------|------------|--------------------|----------------------------------------------
# SCREEN 5   | 256×212    | 16 of 512 palette  | 4bpp, 2 pixels/byte (left pixel in high nibble)
# SCREEN 7   | 512×212    | 16 of 512 palette  | 4bpp, split into two BSAVE files (rows 0-105, 106-211)
# SCREEN 8   | 256×212    | 256 fixed (GRB332) | 1 byte/pixel
# SCREEN 12  | 256×212    | 19268 (YJK)        | 4 Y bytes then 1 shared J/K byte per 4 pixels
#
# Every image file starts with the 7-byte BSAVE header FE 00 00 00 D4 00 00.

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from PIL import Image

from .colors import (
    RGBA,
    Color,
    Palette,
    closest_index,
    rgb_to_screen8,
    rgb_to_yjk,
    round_half_up,
    screen8_to_rgb,
    yjk_to_rgb,
)
from .errors import ConversionError
from .filters import apply_filter
from .palette import PaletteMethod, build_palette, encode_palette_file

BSAVE_HEADER = bytes([0xFE, 0x00, 0x00, 0x00, 0xD4, 0x00, 0x00])
YJK_GROUP_WIDTH = 4


class ScreenMode(str, Enum):
    SCREEN5 = "screen5"
    SCREEN7 = "screen7"
    SCREEN8 = "screen8"
    SCREEN12 = "screen12"

    @classmethod
    def parse(cls, value: "ScreenMode | str") -> "ScreenMode":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError as exc:
            raise ConversionError(f"Unsupported mode: {value}") from exc

    @property
    def width(self) -> int:
        return 512 if self is ScreenMode.SCREEN7 else 256

    @property
    def height(self) -> int:
        return 212

    @property
    def size(self) -> Tuple[int, int]:
        return (self.width, self.height)


@dataclass
class ConvertOptions:
    """Options for mode selection, palette building and pre-processing."""

    mode: str = "screen5"
    # Accepted for compatibility; neither flag changes the output.
    dithering: bool = False
    keep_aspect_ratio: bool = False
    palette_method: str = "histogram"  # histogram, cluster
    filter_name: str | None = None
    filter_strength: float | None = None


@dataclass(frozen=True)
class PixelBuffer:
    width: int
    height: int
    pixels: Tuple[RGBA, ...]

    @classmethod
    def from_image(cls, image: Image.Image) -> "PixelBuffer":
        rgba = image.convert("RGBA")
        width, height = rgba.size
        return cls(width, height, tuple(rgba.get_flattened_data()))

    @classmethod
    def from_rgb(cls, width: int, height: int, rgb_values: Sequence[Color]) -> "PixelBuffer":
        return cls(width, height, tuple((r, g, b, 255) for r, g, b in rgb_values))

    @classmethod
    def filled(cls, width: int, height: int, color: Color) -> "PixelBuffer":
        r, g, b = color
        return cls(width, height, ((r, g, b, 255),) * (width * height))

    def rgb_values(self) -> List[Color]:
        return [(p[0], p[1], p[2]) for p in self.pixels]

    def to_image(self) -> Image.Image:
        image = Image.new("RGBA", (self.width, self.height))
        image.putdata([(p[0], p[1], p[2], 255) for p in self.pixels])
        return image


class ImageSource:
    """Pixel source backed by a Pillow image, resampled on demand."""

    def __init__(self, image: Image.Image):
        self.image = image

    def fetch(self, width: int, height: int) -> PixelBuffer:
        image = self.image.convert("RGBA")
        if image.size != (width, height):
            image = image.resize((width, height), Image.LANCZOS)
        return PixelBuffer.from_image(image)


@dataclass(frozen=True)
class ConversionResult:
    mode: ScreenMode
    files: Mapping[str, bytes]
    preview: PixelBuffer
    palette: Optional[Palette] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "files", MappingProxyType(dict(self.files)))


def _encode_nibbles(
    rgb_values: Sequence[Color],
    width: int,
    rows: range,
    palette: Palette,
    preview: List[Color],
) -> bytes:
    data = bytearray(BSAVE_HEADER)
    for y in rows:
        row_offset = y * width
        for x in range(0, width, 2):
            i = row_offset + x
            left = closest_index(rgb_values[i], palette)
            right = closest_index(rgb_values[i + 1], palette)
            data.append((left << 4) | right)
            preview[i] = palette[left]
            preview[i + 1] = palette[right]
    return bytes(data)


def _build_palette(rgb_values: Sequence[Color], options: ConvertOptions) -> Tuple[Palette, int]:
    method = PaletteMethod.parse(options.palette_method)
    return build_palette(rgb_values, method), method.file_tag


def encode_screen5(pixels: PixelBuffer, options: ConvertOptions) -> ConversionResult:
    rgb_values = pixels.rgb_values()
    palette, tag = _build_palette(rgb_values, options)
    preview: List[Color] = list(rgb_values)

    image = _encode_nibbles(rgb_values, pixels.width, range(pixels.height), palette, preview)

    return ConversionResult(
        mode=ScreenMode.SCREEN5,
        files={"s50": image, "pal": encode_palette_file(palette, tag)},
        preview=PixelBuffer.from_rgb(pixels.width, pixels.height, preview),
        palette=palette,
    )


def encode_screen7(pixels: PixelBuffer, options: ConvertOptions) -> ConversionResult:
    """Encode a 512x212 image as two half-screen BSAVE files.

    The top 106 rows go to ``s70`` and the bottom 106 rows to ``s71``. Each
    half carries its own copy of the image header; both share one palette.
    """

    rgb_values = pixels.rgb_values()
    palette, tag = _build_palette(rgb_values, options)
    preview: List[Color] = list(rgb_values)

    split = pixels.height // 2
    top = _encode_nibbles(rgb_values, pixels.width, range(0, split), palette, preview)
    bottom = _encode_nibbles(
        rgb_values, pixels.width, range(split, pixels.height), palette, preview
    )

    return ConversionResult(
        mode=ScreenMode.SCREEN7,
        files={"s70": top, "s71": bottom, "pal": encode_palette_file(palette, tag)},
        preview=PixelBuffer.from_rgb(pixels.width, pixels.height, preview),
        palette=palette,
    )


def encode_screen8(pixels: PixelBuffer, options: ConvertOptions) -> ConversionResult:
    data = bytearray(BSAVE_HEADER)
    preview: List[Color] = []
    for rgb in pixels.rgb_values():
        value = rgb_to_screen8(rgb)
        data.append(value)
        preview.append(screen8_to_rgb(value))

    return ConversionResult(
        mode=ScreenMode.SCREEN8,
        files={"sc8": bytes(data)},
        preview=PixelBuffer.from_rgb(pixels.width, pixels.height, preview),
    )


def encode_screen12(pixels: PixelBuffer, options: ConvertOptions) -> ConversionResult:
    """Encode YJK data: per-pixel luma with chroma averaged over 4 pixels.

    The shared byte keeps five bits of J but only the low three bits of K.
    """

    rgb_values = pixels.rgb_values()
    data = bytearray(BSAVE_HEADER)
    preview: List[Color] = list(rgb_values)

    for y in range(pixels.height):
        row_offset = y * pixels.width
        for x in range(0, pixels.width, YJK_GROUP_WIDTH):
            start = row_offset + x
            group = [rgb_to_yjk(rgb) for rgb in rgb_values[start : start + YJK_GROUP_WIDTH]]
            avg_j = round_half_up(sum(v.j for v in group) / YJK_GROUP_WIDTH)
            avg_k = round_half_up(sum(v.k for v in group) / YJK_GROUP_WIDTH)

            for offset, value in enumerate(group):
                data.append(value.y)
                preview[start + offset] = yjk_to_rgb(value.y, avg_j, avg_k)

            data.append(((avg_j & 0x1F) << 3) | (avg_k & 0x07))

    return ConversionResult(
        mode=ScreenMode.SCREEN12,
        files={"sc12": bytes(data)},
        preview=PixelBuffer.from_rgb(pixels.width, pixels.height, preview),
    )


Encoder = Callable[[PixelBuffer, ConvertOptions], ConversionResult]

ENCODERS: Dict[ScreenMode, Encoder] = {
    ScreenMode.SCREEN5: encode_screen5,
    ScreenMode.SCREEN7: encode_screen7,
    ScreenMode.SCREEN8: encode_screen8,
    ScreenMode.SCREEN12: encode_screen12,
}


def convert_pixels(pixels: PixelBuffer, options: ConvertOptions | None = None) -> ConversionResult:
    """Encode a pixel buffer already sized for the selected mode."""

    options = options or ConvertOptions()
    mode = ScreenMode.parse(options.mode)
    return ENCODERS[mode](pixels, options)


def convert_image(image: Image.Image, options: ConvertOptions | None = None) -> ConversionResult:
    """Filter, resample and encode an in-memory image."""

    options = options or ConvertOptions()
    mode = ScreenMode.parse(options.mode)
    PaletteMethod.parse(options.palette_method)

    if options.filter_name:
        image = apply_filter(image, options.filter_name, options.filter_strength)

    pixels = ImageSource(image).fetch(mode.width, mode.height)
    return convert_pixels(pixels, options)


def convert_file(path: str | Path, options: ConvertOptions | None = None) -> ConversionResult:
    path = Path(path)
    try:
        with Image.open(path) as img:
            return convert_image(img, options)
    except FileNotFoundError as exc:
        raise ConversionError(f"Input file not found: {path}") from exc
    except OSError as exc:
        raise ConversionError(f"Failed to read image: {path}") from exc
