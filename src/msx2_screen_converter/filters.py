"""Optional pre-processing applied to the source image before conversion."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, List

from PIL import Image, ImageEnhance, ImageFilter, ImageOps

from .colors import clamp, round_half_up
from .errors import ConversionError


@dataclass(frozen=True)
class FilterSpec:
    name: str
    minimum: float
    maximum: float
    default: float


def _truncate(value: float) -> int:
    return clamp(round_half_up(value), 0, 255)


def _rgb_lut(red: List[int], green: List[int], blue: List[int]) -> List[int]:
    return red + green + blue


def sharpen_kernel(strength: float) -> ImageFilter.Kernel:
    """Return the 3x3 sharpen kernel ``0,-1,0,-1,5,-1,0,-1,0`` mixed with the source.

    ``p + (conv - p) * strength`` is folded into the weights, so the result is
    clamped once, after the mix, and edge overshoot is kept.
    """

    s = strength
    return ImageFilter.Kernel((3, 3), (0, -s, 0, -s, 1 + 4 * s, -s, 0, -s, 0), scale=1)


def sharpen(image: Image.Image, strength: float) -> Image.Image:
    """Sharpen by ``strength``; 0 returns the source, values above 1 extrapolate.

    Pixels outside the image count as black, so the border is sharpened too.
    """

    width, height = image.size
    padded = ImageOps.expand(image, border=1, fill=(0, 0, 0))
    return padded.filter(sharpen_kernel(strength)).crop((1, 1, width + 1, height + 1))


def contrast(image: Image.Image, value: float) -> Image.Image:
    denominator = 255 * (259 - value * 255)
    if denominator == 0:
        raise ConversionError(f"Contrast value {value} is out of range")
    factor = (259 * (value * 255 + 255)) / denominator
    lut = [_truncate(factor * (level - 128) + 128) for level in range(256)]
    return image.point(_rgb_lut(lut, lut, lut))


def gamma(image: Image.Image, value: float) -> Image.Image:
    if value <= 0:
        raise ConversionError("Gamma must be greater than 0")
    inv_gamma = 1 / value
    lut = [_truncate(255 * (level / 255) ** inv_gamma) for level in range(256)]
    return image.point(_rgb_lut(lut, lut, lut))


def saturation(image: Image.Image, value: float) -> Image.Image:
    return ImageEnhance.Color(image).enhance(value)


def temperature(image: Image.Image, value: float) -> Image.Image:
    temp = value * 0.1
    identity = list(range(256))
    red = [_truncate(level * (1 + temp)) for level in range(256)]
    blue = [_truncate(level * (1 - temp)) for level in range(256)]
    return image.point(_rgb_lut(red, identity, blue))


FILTERS: Dict[str, FilterSpec] = {
    "sharpen": FilterSpec("sharpen", 0.0, 2.0, 0.15),
    "contrast": FilterSpec("contrast", -3.0, 3.0, 1.0),
    "gamma": FilterSpec("gamma", 0.0, 4.0, 1.0),
    "saturation": FilterSpec("saturation", -4.0, 4.0, 1.0),
    "temperature": FilterSpec("temperature", 0.1539, 3.0, 1.0),
}

_APPLY: Dict[str, Callable[[Image.Image, float], Image.Image]] = {
    "sharpen": sharpen,
    "contrast": contrast,
    "gamma": gamma,
    "saturation": saturation,
    "temperature": temperature,
}


def apply_filter(image: Image.Image, name: str, strength: float | None = None) -> Image.Image:
    """Run one named filter over ``image`` and return a new RGB image."""

    key = name.lower()
    if key not in FILTERS:
        raise ConversionError(f"Unknown filter: {name}")
    if strength is None:
        strength = FILTERS[key].default
    return _APPLY[key](image.convert("RGB"), strength)
