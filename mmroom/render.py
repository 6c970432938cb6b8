from __future__ import annotations

from typing import Optional

from .config import RenderConfig
from .palette import Palette
from .room import RoomBuffers, RoomMeta, load_room
from .viewport import ColorMerge, DisplaySink, Screen, project


def render_buffers(
    buffers: RoomBuffers,
    meta: RoomMeta,
    cfg: RenderConfig,
    color_merge: Optional[ColorMerge] = None,
) -> Screen:
    screen = Screen.blank(cfg)
    screen.background = meta.background
    project(
        buffers.tile_matrix,
        buffers.color,
        room_width=meta.width,
        room_height=meta.height,
        viewport_width=min(cfg.viewport_cols, meta.width),
        viewport_height=min(cfg.viewport_rows, meta.height),
        dest=screen,
        row_offset=cfg.viewport_row_offset,
        color_merge=color_merge,
    )
    return screen


def load_and_render(
    resource: bytes,
    palette: Palette,
    sink: DisplaySink,
    cfg: Optional[RenderConfig] = None,
    buffers: Optional[RoomBuffers] = None,
    color_merge: Optional[ColorMerge] = None,
) -> Screen:
    """Decode one room resource and present its viewport on ``sink``.

    Raises a DecodeError subclass on malformed input. The sink only sees a
    screen once every layer decoded, so a failed load leaves it untouched
    apart from the background colour.
    """
    if cfg is None:
        cfg = RenderConfig()
    if buffers is None:
        buffers = RoomBuffers.allocate(cfg)
    meta = load_room(resource, palette, buffers, sink)
    screen = render_buffers(buffers, meta, cfg, color_merge)
    sink.present(screen)
    return screen
