"""Colour math shared by the MSX2 screen encoders."""

# Reference: MSX2 / MSX2+ colour formats handled here
# Format                | Bits per pixel | Layout
# ----------------------|----------------|--------------------------------------------------
# Palette entry (V9938) | 9 (2 bytes)    | byte 0 = 0RRR0BBB, byte 1 = 00000GGG
# SCREEN 8 (GRB332)     | 8              | GGGRRRBB
# SCREEN 12 (YJK)       | 8 (per pixel)  | Y per pixel, J/K shared by 4 horizontal pixels

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Sequence, Tuple

Color = Tuple[int, int, int]
RGBA = Tuple[int, int, int, int]
Palette = Tuple[Color, ...]

PALETTE_SIZE = 16

_PERCEIVED_LUMINANCE_WEIGHTS = (0.299, 0.587, 0.114)

YJK_Y_MAX = 31
YJK_CHROMA_MIN = -16
YJK_CHROMA_MAX = 15


@dataclass(frozen=True)
class YJK:
    y: int
    j: int
    k: int


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves going towards positive infinity."""
    return int(math.floor(value + 0.5))


def clamp(value, low, high):
    return max(low, min(high, value))


def perceived_luminance(color: Color) -> float:
    r, g, b = color
    wr, wg, wb = _PERCEIVED_LUMINANCE_WEIGHTS
    return r * wr + g * wg + b * wb


def sort_by_luminance(colors: Sequence[Color]) -> Palette:
    return tuple(sorted(colors, key=perceived_luminance))


def closest_index(rgb: Sequence[int], palette: Sequence[Color]) -> int:
    """
    Return the palette index closest to ``rgb``.
    Distances are squared channel differences weighted by perceived
    luminance. The scan keeps the first entry reaching the minimum, so equal
    palette entries resolve to the lowest index.
    """
    r, g, b = rgb[0], rgb[1], rgb[2]
    wr, wg, wb = _PERCEIVED_LUMINANCE_WEIGHTS
    best_idx = 0
    best_dist = float("inf")
    for i, (pr, pg, pb) in enumerate(palette):
        dr = r - pr
        dg = g - pg
        db = b - pb
        dist = dr * dr * wr + dg * dg * wg + db * db * wb
        if dist < best_dist:
            best_idx = i
            best_dist = dist
    return best_idx


def rgb_to_yjk(rgb: Sequence[int]) -> YJK:
    r, g, b = rgb[0], rgb[1], rgb[2]
    y = round_half_up(0.299 * r + 0.587 * g + 0.114 * b)
    j = round_half_up(-0.169 * r - 0.331 * g + 0.5 * b)
    k = round_half_up(0.5 * r - 0.419 * g - 0.081 * b)
    return YJK(
        y=clamp(round_half_up(y / 8), 0, YJK_Y_MAX),
        j=clamp(j, YJK_CHROMA_MIN, YJK_CHROMA_MAX),
        k=clamp(k, YJK_CHROMA_MIN, YJK_CHROMA_MAX),
    )


def yjk_to_rgb(y: int, j: int, k: int) -> Color:
    """Rebuild RGB from a 5-bit luma and the chroma pair shared by its group.

    Green depends on ``(j + k) / 2`` and can land on a half; it is rounded to
    the nearest integer (ties to even) before clamping.
    """

    base = y * 8
    r = clamp(base + k, 0, 255)
    g = clamp(int(round(base - (j + k) / 2)), 0, 255)
    b = clamp(base + j, 0, 255)
    return (r, g, b)


def rgb_to_screen8(rgb: Sequence[int]) -> int:
    r, g, b = rgb[0], rgb[1], rgb[2]
    gr = clamp(r // 32, 0, 7)
    gg = clamp(g // 32, 0, 7)
    gb = clamp(b // 64, 0, 3)
    # G occupies the high bits (GRB332)
    return (gg << 5) | (gr << 2) | gb


def screen8_to_rgb(value: int) -> Color:
    g = ((value >> 5) & 0x07) * 32
    r = ((value >> 2) & 0x07) * 32
    b = (value & 0x03) * 64
    return (r, g, b)


def pack_rgb(color: Color) -> int:
    r, g, b = color
    return (r << 16) | (g << 8) | b


def unpack_rgb(value: int) -> Color:
    return ((value >> 16) & 0xFF, (value >> 8) & 0xFF, value & 0xFF)
