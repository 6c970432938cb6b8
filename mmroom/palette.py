"""
Colour translation between the source (C64) colour indices stored in room
resources and the display target's colour values, plus RGB approximations
used for PNG previews.
"""

from __future__ import annotations

import dataclasses
from typing import Callable, Dict, Sequence, Tuple


RGB = Tuple[int, int, int]

# C64 colour index -> TED colour byte (luminance in bits 6..4, hue in bits 3..0).
C64_TO_PLUS4 = [
    0x00,  # black
    0x71,  # white
    0x32,  # red
    0x63,  # cyan
    0x44,  # purple
    0x45,  # green
    0x26,  # blue
    0x67,  # yellow
    0x48,  # orange
    0x29,  # brown
    0x52,  # light red
    0x31,  # dark grey
    0x41,  # grey
    0x65,  # light green
    0x46,  # light blue
    0x51,  # light grey
]

# "Pepto" C64 palette.
C64_RGB: Sequence[RGB] = (
    (0x00, 0x00, 0x00),
    (0xFF, 0xFF, 0xFF),
    (0x68, 0x37, 0x2B),
    (0x70, 0xA4, 0xB2),
    (0x6F, 0x3D, 0x86),
    (0x58, 0x8D, 0x43),
    (0x35, 0x28, 0x79),
    (0xB8, 0xC7, 0x6F),
    (0x6F, 0x4F, 0x25),
    (0x43, 0x39, 0x00),
    (0x9A, 0x67, 0x59),
    (0x44, 0x44, 0x44),
    (0x6C, 0x6C, 0x6C),
    (0x9A, 0xD2, 0x84),
    (0x6C, 0x5E, 0xB5),
    (0x95, 0x95, 0x95),
)

# TED hues at a middle luminance; hue 1 is handled as a grey ramp.
_TED_HUE_RGB: Sequence[RGB] = (
    (0x00, 0x00, 0x00),
    (0x80, 0x80, 0x80),
    (0x88, 0x39, 0x32),
    (0x67, 0xB6, 0xBD),
    (0x8B, 0x3F, 0x96),
    (0x55, 0xA0, 0x49),
    (0x40, 0x31, 0x8D),
    (0xBF, 0xCE, 0x72),
    (0x8B, 0x54, 0x29),
    (0x57, 0x42, 0x00),
    (0x6E, 0x8C, 0x1E),
    (0xB8, 0x69, 0x62),
    (0x28, 0x82, 0x78),
    (0x64, 0x78, 0xDC),
    (0x32, 0x32, 0xB4),
    (0x96, 0xDC, 0x78),
)


def _clamp8(v: float) -> int:
    return max(0, min(255, int(round(v))))


def ted_to_rgb(value: int) -> RGB:
    hue = value & 0x0F
    lum = (value >> 4) & 0x07
    if hue == 0:
        return (0, 0, 0)
    if hue == 1:
        g = 0x20 + lum * 0x1F
        return (g, g, g)
    scale = 0.45 + lum * 0.11
    r, g, b = _TED_HUE_RGB[hue]
    return (_clamp8(r * scale), _clamp8(g * scale), _clamp8(b * scale))


def c64_to_rgb(value: int) -> RGB:
    return C64_RGB[value & 0x0F]


@dataclasses.dataclass(frozen=True)
class Palette:
    """Injected translator: source colour index -> display colour value."""

    name: str
    table: Sequence[int]
    to_rgb: Callable[[int], RGB]

    def translate(self, index: int) -> int:
        # Source colours only use the low nibble.
        return self.table[index & 0x0F]

    def rgb(self, value: int) -> RGB:
        return self.to_rgb(value)


PLUS4 = Palette(name="plus4", table=tuple(C64_TO_PLUS4), to_rgb=ted_to_rgb)
C64 = Palette(name="c64", table=tuple(range(16)), to_rgb=c64_to_rgb)

PALETTES: Dict[str, Palette] = {p.name: p for p in (PLUS4, C64)}


def get_palette(name: str) -> Palette:
    try:
        return PALETTES[name.lower()]
    except KeyError:
        raise ValueError(f"Unknown palette '{name}', expected one of: {','.join(sorted(PALETTES))}") from None
