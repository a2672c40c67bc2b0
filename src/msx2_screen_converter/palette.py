"""Palette construction and V9938 palette file encoding."""

from __future__ import annotations

from enum import Enum
from typing import Dict, Iterable, List, Sequence

from .colors import (
    PALETTE_SIZE,
    Color,
    Palette,
    pack_rgb,
    round_half_up,
    sort_by_luminance,
    unpack_rgb,
)
from .errors import ConversionError

HISTOGRAM_CAPACITY = 256
HISTOGRAM_MASK = 0xE0

# 8-bit channel -> 3-bit level step used by the cluster builder
MSX_LEVEL_STEP = 255 / 7

PALETTE_HEADER_SIZE = 7
PALETTE_FILE_SIZE = PALETTE_HEADER_SIZE + PALETTE_SIZE * 2
PALETTE_TAG_CONVERTER = 0x1B
PALETTE_TAG_OPTIMIZER = 0xFA


class PaletteMethod(str, Enum):
    HISTOGRAM = "histogram"
    CLUSTER = "cluster"

    @classmethod
    def parse(cls, value: "PaletteMethod | str") -> "PaletteMethod":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError as exc:
            raise ConversionError(f"Unknown palette method: {value}") from exc

    @property
    def file_tag(self) -> int:
        if self is PaletteMethod.CLUSTER:
            return PALETTE_TAG_OPTIMIZER
        return PALETTE_TAG_CONVERTER


def build_histogram_palette(rgb_values: Iterable[Sequence[int]]) -> Palette:
    """Pick the 16 most frequent colours after cutting each channel to 3 bits.

    Buckets are kept in first-seen order up to ``HISTOGRAM_CAPACITY``; colours
    that would open a new bucket beyond that are ignored. Selection takes the
    highest count, preferring the earlier bucket on ties, then zeroes that
    count so it cannot win twice. Once every count is zero the first bucket is
    repeated, which is how images with fewer than 16 colours fill the palette.
    """

    counts: Dict[int, int] = {}
    for rgb in rgb_values:
        key = pack_rgb(
            (rgb[0] & HISTOGRAM_MASK, rgb[1] & HISTOGRAM_MASK, rgb[2] & HISTOGRAM_MASK)
        )
        if key in counts:
            counts[key] += 1
        elif len(counts) < HISTOGRAM_CAPACITY:
            counts[key] = 1

    buckets = list(counts)
    remaining = [counts[key] for key in buckets]

    picked: List[Color] = []
    for _ in range(PALETTE_SIZE):
        max_count = 0
        max_index = 0
        for i, count in enumerate(remaining):
            if count > max_count:
                max_count = count
                max_index = i
        if buckets:
            picked.append(unpack_rgb(buckets[max_index]))
            remaining[max_index] = 0
        else:
            picked.append((0, 0, 0))

    return sort_by_luminance(picked)


def _to_msx_level(value: int) -> int:
    return round_half_up(value / MSX_LEVEL_STEP) & 0x07


def _from_msx_level(level: int) -> int:
    return round_half_up(level * MSX_LEVEL_STEP)


class _Cluster:
    __slots__ = ("r", "g", "b", "count")

    def __init__(self) -> None:
        self.r = 0
        self.g = 0
        self.b = 0
        self.count = 0

    def distance(self, r: int, g: int, b: int) -> float:
        dr = self.r / self.count - r
        dg = self.g / self.count - g
        db = self.b / self.count - b
        return dr * dr + dg * dg + db * db

    def add(self, r: int, g: int, b: int) -> None:
        self.r += r
        self.g += g
        self.b += b
        self.count += 1

    def to_msx_color(self) -> Color:
        if self.count == 0:
            return (0, 0, 0)
        mean = (
            round_half_up(self.r / self.count),
            round_half_up(self.g / self.count),
            round_half_up(self.b / self.count),
        )
        return tuple(_from_msx_level(_to_msx_level(c)) for c in mean)  # type: ignore[return-value]


def build_cluster_palette(rgb_values: Iterable[Sequence[int]]) -> Palette:
    """Group pixels into 16 clusters in a single pass over the image.

    Each pixel seeds the next unused cluster while any remain, then joins the
    cluster whose running mean is nearest in plain RGB distance. There is no
    second pass, so the outcome depends on pixel order. Cluster means are
    snapped to the 3-bit MSX levels and expanded back to 8 bits.
    """

    clusters = [_Cluster() for _ in range(PALETTE_SIZE)]
    for rgb in rgb_values:
        r, g, b = rgb[0], rgb[1], rgb[2]
        best = 0
        best_dist = float("inf")
        for i, cluster in enumerate(clusters):
            if cluster.count == 0:
                best = i
                break
            dist = cluster.distance(r, g, b)
            if dist < best_dist:
                best_dist = dist
                best = i
        clusters[best].add(r, g, b)

    return sort_by_luminance([cluster.to_msx_color() for cluster in clusters])


_BUILDERS = {
    PaletteMethod.HISTOGRAM: build_histogram_palette,
    PaletteMethod.CLUSTER: build_cluster_palette,
}


def build_palette(
    rgb_values: Iterable[Sequence[int]], method: PaletteMethod | str = PaletteMethod.HISTOGRAM
) -> Palette:
    return _BUILDERS[PaletteMethod.parse(method)](rgb_values)


def palette_file_header(tag: int) -> bytes:
    return bytes([0xFE, 0x00, 0x00, 0x80, tag & 0xFF, 0x00, 0x00])


def encode_palette_file(palette: Sequence[Color], tag: int = PALETTE_TAG_CONVERTER) -> bytes:
    """Encode a 16-colour palette as a BSAVE'd V9938 palette table.

    The V9938 palette expects two bytes per colour entry:

    * Byte 0: ``0RRR0BBB`` (upper 3 bits = red, lower 3 bits = blue)
    * Byte 1: ``00000GGG`` (lower 3 bits = green)

    Each field takes the top 3 bits of the 8-bit channel.
    """

    data = bytearray(palette_file_header(tag))
    for r, g, b in palette[:PALETTE_SIZE]:
        data.append(((r >> 5) << 4) | (b >> 5))
        data.append(g >> 5)
    return bytes(data)


def decode_palette_file(data: bytes) -> Palette:
    """Read a palette file back into 8-bit colours (levels spread over 0-255)."""

    if len(data) != PALETTE_FILE_SIZE:
        raise ConversionError(
            f"Palette file must be {PALETTE_FILE_SIZE} bytes, got {len(data)}"
        )
    if data[:4] != bytes([0xFE, 0x00, 0x00, 0x80]):
        raise ConversionError("Palette file header is not a BSAVE palette table")

    colors: List[Color] = []
    body = data[PALETTE_HEADER_SIZE:]
    for i in range(PALETTE_SIZE):
        rb = body[i * 2]
        g = body[i * 2 + 1]
        levels = ((rb >> 4) & 0x07, g & 0x07, rb & 0x07)
        colors.append(tuple(_from_msx_level(v) for v in levels))  # type: ignore[misc]
    return tuple(colors)
