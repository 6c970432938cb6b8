from __future__ import annotations

import dataclasses
from typing import Callable, Optional, Protocol

import numpy as np

from .config import RenderConfig
from .palette import Palette


# (current attribute cells, decoded colour cells) -> new attribute cells
ColorMerge = Callable[[np.ndarray, np.ndarray], np.ndarray]


@dataclasses.dataclass
class Screen:
    """Character/attribute display buffer handed to the display sink."""

    chars: np.ndarray
    attrs: np.ndarray
    background: int = 0

    @classmethod
    def blank(cls, cfg: RenderConfig) -> "Screen":
        shape = (cfg.screen_rows, cfg.screen_cols)
        return cls(
            chars=np.full(shape, cfg.clear_char, dtype=np.uint8),
            attrs=np.full(shape, cfg.clear_attr, dtype=np.uint8),
        )

    @property
    def rows(self) -> int:
        return int(self.chars.shape[0])

    @property
    def cols(self) -> int:
        return int(self.chars.shape[1])

    def copy(self) -> "Screen":
        return Screen(chars=self.chars.copy(), attrs=self.attrs.copy(), background=self.background)


class DisplaySink(Protocol):
    def set_background(self, value: int) -> None:
        ...

    def present(self, screen: Screen) -> None:
        ...


def palette_merge(palette: Palette) -> ColorMerge:
    """Merge that replaces each attribute with the translated cell colour."""
    table = np.array([palette.translate(i) for i in range(16)], dtype=np.uint8)

    def _merge(_attrs: np.ndarray, colors: np.ndarray) -> np.ndarray:
        return table[colors & 0x0F]

    return _merge


def _rows(layer: bytearray, room_width: int, viewport_width: int, viewport_height: int) -> np.ndarray:
    # Rows advance by the room width, not the viewport width.
    src = np.frombuffer(layer, dtype=np.uint8, count=room_width * viewport_height)
    return src.reshape(viewport_height, room_width)[:, :viewport_width]


def project(
    tile_matrix: bytearray,
    color_layer: bytearray,
    room_width: int,
    room_height: int,
    viewport_width: int,
    viewport_height: int,
    dest: Screen,
    row_offset: int = 1,
    color_merge: Optional[ColorMerge] = None,
) -> Screen:
    """Copy the top-left viewport of the decoded layers into ``dest``.

    Without ``color_merge`` the attribute channel is left as it is.
    """
    if viewport_width > room_width or viewport_height > room_height:
        raise ValueError(
            f"Viewport {viewport_width}x{viewport_height} larger than room {room_width}x{room_height}"
        )
    if viewport_width > dest.cols or row_offset + viewport_height > dest.rows:
        raise ValueError(
            f"Viewport {viewport_width}x{viewport_height} at row {row_offset} does not fit {dest.cols}x{dest.rows} screen"
        )
    needed = room_width * viewport_height
    if len(tile_matrix) < needed or len(color_layer) < needed:
        raise ValueError(f"Layers hold {len(tile_matrix)}/{len(color_layer)} bytes, viewport needs {needed}")
    rows = slice(row_offset, row_offset + viewport_height)
    cols = slice(0, viewport_width)
    dest.chars[rows, cols] = _rows(tile_matrix, room_width, viewport_width, viewport_height)
    if color_merge is not None:
        colors = _rows(color_layer, room_width, viewport_width, viewport_height)
        dest.attrs[rows, cols] = color_merge(dest.attrs[rows, cols], colors)
    return dest
