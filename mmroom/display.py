"""
Display sinks and PNG previews.

A display sink takes a background colour as soon as a room's metadata is
known, and a finished screen once every layer decoded. Tile definitions are
8x8 1bpp glyphs, 8 bytes per tile, most significant bit leftmost.
"""

from __future__ import annotations

import pathlib
from typing import List, Optional

import numpy as np
from PIL import Image

from .palette import Palette
from .viewport import Screen


GLYPH_SIZE = 8
GLYPH_COUNT = 256


class ScreenSink:
    """In-memory sink; keeps the last presented screen."""

    def __init__(self) -> None:
        self.background: Optional[int] = None
        self.screen: Optional[Screen] = None
        self.backgrounds: List[int] = []
        self.frames = 0

    def set_background(self, value: int) -> None:
        self.background = value
        self.backgrounds.append(value)

    def present(self, screen: Screen) -> None:
        self.screen = screen.copy()
        self.frames += 1


def glyph_bits(tile_defs: bytes) -> np.ndarray:
    """(256, 8, 8) array of set pixels; missing glyphs are blank."""
    raw = np.zeros(GLYPH_COUNT * GLYPH_SIZE, dtype=np.uint8)
    data = np.frombuffer(bytes(tile_defs[: GLYPH_COUNT * GLYPH_SIZE]), dtype=np.uint8)
    raw[: data.size] = data
    bits = np.unpackbits(raw.reshape(GLYPH_COUNT, GLYPH_SIZE), axis=1)
    return bits.reshape(GLYPH_COUNT, GLYPH_SIZE, GLYPH_SIZE).astype(bool)


def _rgb_table(palette: Palette) -> np.ndarray:
    return np.array([palette.rgb(v) for v in range(256)], dtype=np.uint8)


def render_screen(
    screen: Screen,
    tile_defs: bytes,
    palette: Palette,
    foreground: Optional[int] = None,
    scale: int = 1,
) -> Image.Image:
    """Rasterise ``screen`` with the room's glyphs.

    Cells whose attribute is zero are drawn with ``foreground`` (default: the
    palette's translation of white), which is what an unmerged colour layer
    leaves behind.
    """
    glyphs = glyph_bits(tile_defs)
    rgb = _rgb_table(palette)
    if foreground is None:
        foreground = palette.translate(1)
    attrs = np.where(screen.attrs == 0, foreground, screen.attrs).astype(np.uint8)
    rows, cols = screen.rows, screen.cols
    cell_bits = glyphs[screen.chars]  # rows, cols, 8, 8
    pixels = cell_bits.transpose(0, 2, 1, 3).reshape(rows * GLYPH_SIZE, cols * GLYPH_SIZE)
    fg = np.repeat(np.repeat(rgb[attrs], GLYPH_SIZE, axis=0), GLYPH_SIZE, axis=1)
    bg = np.broadcast_to(rgb[screen.background & 0xFF], fg.shape)
    out = np.where(pixels[:, :, None], fg, bg).astype(np.uint8)
    img = Image.fromarray(out)
    if scale > 1:
        img = img.resize((img.width * scale, img.height * scale), resample=Image.NEAREST)
    return img


def render_tileset(tile_defs: bytes, per_row: int = 16, scale: int = 1) -> Image.Image:
    glyphs = glyph_bits(tile_defs)
    rows = (GLYPH_COUNT + per_row - 1) // per_row
    sheet = np.zeros((rows * GLYPH_SIZE, per_row * GLYPH_SIZE), dtype=np.uint8)
    for i in range(GLYPH_COUNT):
        y, x = divmod(i, per_row)
        sheet[y * GLYPH_SIZE : (y + 1) * GLYPH_SIZE, x * GLYPH_SIZE : (x + 1) * GLYPH_SIZE] = glyphs[i] * 255
    img = Image.fromarray(sheet)
    if scale > 1:
        img = img.resize((img.width * scale, img.height * scale), resample=Image.NEAREST)
    return img


def save_png(img: Image.Image, out_path: pathlib.Path) -> None:
    out_path.parent.mkdir(parents=True, exist_ok=True)
    img.save(out_path)


class PngSink(ScreenSink):
    """Sink that writes each presented screen to a PNG file."""

    def __init__(self, out_path: pathlib.Path, tile_defs: bytearray, palette: Palette, scale: int = 1) -> None:
        super().__init__()
        self.out_path = out_path
        self.tile_defs = tile_defs
        self.palette = palette
        self.scale = scale

    def present(self, screen: Screen) -> None:
        super().present(screen)
        save_png(render_screen(screen, self.tile_defs, self.palette, scale=self.scale), self.out_path)
