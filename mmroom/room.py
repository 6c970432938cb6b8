"""
Room resource reader.

A room resource is a 4-byte outer header (u16 size, u8 type, u8 index)
followed by the room base. Relative to the base:
- +0x00 width, +0x01 height, +0x02 video flag, +0x03..0x05 background colours
- +0x06 tile definitions, +0x08 tile matrix, +0x0A colour layer,
  +0x0C mask layer, +0x0E mask indexes (u16 LE offsets from the base)

Each layer offset points at an independent compressed stream (see codec).
Mask layers are located but never decoded.
"""

from __future__ import annotations

import dataclasses
import struct
from typing import Dict, Optional, Sequence, Tuple

from .codec import DICT_SIZE, Decoder, compress
from .config import RenderConfig
from .errors import DecodeError, InvalidOffset, TruncatedResource
from .materialize import fill_fixed, fill_shaped
from .palette import Palette
from .viewport import DisplaySink


RESOURCE_HEADER_SIZE = 4
RESOURCE_TYPE_ROOM = 3

META_WIDTH = 0x00
META_HEIGHT = 0x01
META_VIDEO_FLAG = 0x02
META_BG0 = 0x03
META_TILE_DEFS = 0x06
META_TILE_MATRIX = 0x08
META_COLOR = 0x0A
META_MASK = 0x0C
META_MASK_INDEX = 0x0E
META_SIZE = 0x10

MIN_RESOURCE_SIZE = RESOURCE_HEADER_SIZE + META_SIZE

ROOM_HEIGHT = 17

TILE_DEFS = "tile_defs"
TILE_MATRIX = "tile_matrix"
COLOR = "color"
MASK = "mask"
MASK_INDEX = "mask_index"

LAYER_FIELDS: Dict[str, int] = {
    TILE_DEFS: META_TILE_DEFS,
    TILE_MATRIX: META_TILE_MATRIX,
    COLOR: META_COLOR,
    MASK: META_MASK,
    MASK_INDEX: META_MASK_INDEX,
}

DECODED_LAYERS = (TILE_DEFS, TILE_MATRIX, COLOR)


@dataclasses.dataclass(frozen=True)
class ResourceHeader:
    size: int
    type: int
    index: int


@dataclasses.dataclass
class RoomMeta:
    width: int
    height: int
    video_flag: int
    raw_colors: Tuple[int, int, int]
    colors: Tuple[int, int, int]
    offsets: Dict[str, int]

    @property
    def background(self) -> int:
        return self.colors[0]

    @property
    def cells(self) -> int:
        return self.width * self.height

    def stream_pos(self, field: str) -> int:
        return RESOURCE_HEADER_SIZE + self.offsets[field]


@dataclasses.dataclass
class RoomBuffers:
    """Destination buffers owned for the lifetime of one room."""

    tile_defs: bytearray
    tile_matrix: bytearray
    color: bytearray
    meta: Optional[RoomMeta] = None

    @classmethod
    def allocate(cls, cfg: RenderConfig) -> "RoomBuffers":
        return cls(
            tile_defs=bytearray(cfg.tile_defs_size),
            tile_matrix=bytearray(cfg.layer_capacity),
            color=bytearray(cfg.layer_capacity),
        )

    def layer(self, field: str) -> bytearray:
        if field == TILE_DEFS:
            return self.tile_defs
        if field == TILE_MATRIX:
            return self.tile_matrix
        if field == COLOR:
            return self.color
        raise ValueError(f"Layer '{field}' has no decode buffer")


def parse_resource_header(resource: bytes) -> ResourceHeader:
    if len(resource) < RESOURCE_HEADER_SIZE:
        raise TruncatedResource(f"Resource is {len(resource)} bytes, outer header needs {RESOURCE_HEADER_SIZE}")
    size, rtype, index = struct.unpack_from("<HBB", resource, 0)
    if rtype != RESOURCE_TYPE_ROOM:
        raise DecodeError(f"Resource type {rtype} is not a room (expected {RESOURCE_TYPE_ROOM})")
    if size > len(resource):
        raise TruncatedResource(f"Header declares 0x{size:04X} bytes, only 0x{len(resource):04X} present")
    return ResourceHeader(size=size, type=rtype, index=index)


def _resource_length(resource: bytes) -> int:
    # Bytes past the declared size are not part of the resource.
    if len(resource) < 2:
        return len(resource)
    return min(len(resource), struct.unpack_from("<H", resource, 0)[0])


def parse_metadata(resource: bytes, palette: Palette) -> RoomMeta:
    limit = _resource_length(resource)
    if limit < MIN_RESOURCE_SIZE:
        raise TruncatedResource(
            f"Room resource is 0x{limit:04X} bytes, metadata needs 0x{MIN_RESOURCE_SIZE:04X}"
        )
    base = RESOURCE_HEADER_SIZE
    width = resource[base + META_WIDTH]
    height = resource[base + META_HEIGHT]
    video_flag = resource[base + META_VIDEO_FLAG]
    raw_colors = tuple(resource[base + META_BG0 : base + META_BG0 + 3])
    offsets = {
        name: struct.unpack_from("<H", resource, base + rel)[0]
        for name, rel in LAYER_FIELDS.items()
    }
    for name in DECODED_LAYERS:
        pos = base + offsets[name]
        if pos + DICT_SIZE > limit:
            raise InvalidOffset(
                f"{name} offset 0x{offsets[name]:04X} lies outside the 0x{limit:04X} byte resource"
            )
    return RoomMeta(
        width=width,
        height=height,
        video_flag=video_flag,
        raw_colors=raw_colors,  # type: ignore[arg-type]
        colors=tuple(palette.translate(c) for c in raw_colors),  # type: ignore[arg-type]
        offsets=offsets,
    )


def load_layer(
    resource: bytes,
    meta: RoomMeta,
    field: str,
    dest: bytearray,
    expected_size: int,
    shape: Optional[Tuple[int, int]] = None,
) -> int:
    dec = Decoder(resource, meta.stream_pos(field))
    if shape is None:
        return fill_fixed(dec, dest, count=expected_size)
    width, height = shape
    if width * height != expected_size:
        raise ValueError(f"Shape {width}x{height} does not match expected size {expected_size}")
    return fill_shaped(dec, dest, width, height)


def load_room(
    resource: bytes,
    palette: Palette,
    buffers: RoomBuffers,
    sink: Optional[DisplaySink] = None,
) -> RoomMeta:
    """Decode the three displayed layers of ``resource`` into ``buffers``.

    The room background goes to ``sink`` as soon as the metadata is known,
    before any layer decodes. The layers are staged and only copied into
    ``buffers`` once all three decoded, so a failed load leaves the previous
    room intact.
    """
    header = parse_resource_header(resource)
    resource = resource[: header.size]
    meta = parse_metadata(resource, palette)
    if sink is not None:
        sink.set_background(meta.background)
    shape = (meta.width, meta.height)
    layers = (
        (TILE_DEFS, len(buffers.tile_defs), None),
        (TILE_MATRIX, meta.cells, shape),
        (COLOR, meta.cells, shape),
    )
    staged = []
    for name, size, layer_shape in layers:
        scratch = bytearray(len(buffers.layer(name)))
        written = load_layer(resource, meta, name, scratch, size, layer_shape)
        staged.append((name, scratch, written))
    for name, scratch, written in staged:
        buffers.layer(name)[:written] = scratch[:written]
    buffers.meta = meta
    return meta


def build_room_resource(
    tile_defs: bytes,
    tile_matrix: bytes,
    colors: bytes,
    width: int,
    height: int = ROOM_HEIGHT,
    index: int = 0,
    bg: Sequence[int] = (0, 0, 0),
    video_flag: int = 0,
) -> bytes:
    """Assemble a room resource from raw layers (mask offsets are left at 0)."""
    if not 0 < width <= 0xFF or not 0 < height <= 0xFF:
        raise ValueError(f"Room dimensions out of range: {width}x{height}")
    cells = width * height
    if len(tile_matrix) != cells or len(colors) != cells:
        raise ValueError(
            f"Layer sizes {len(tile_matrix)}/{len(colors)} do not match {width}x{height}={cells}"
        )
    if len(bg) != 3:
        raise ValueError("Exactly three background colours are required")
    body = bytearray(META_SIZE)
    body[META_WIDTH] = width
    body[META_HEIGHT] = height
    body[META_VIDEO_FLAG] = video_flag & 0xFF
    body[META_BG0 : META_BG0 + 3] = bytes(c & 0xFF for c in bg)
    for name, raw in ((TILE_DEFS, tile_defs), (TILE_MATRIX, tile_matrix), (COLOR, colors)):
        struct.pack_into("<H", body, LAYER_FIELDS[name], len(body))
        body += compress(bytes(raw))
    size = RESOURCE_HEADER_SIZE + len(body)
    if size > 0xFFFF:
        raise ValueError(f"Room resource too large: 0x{size:X} bytes")
    return struct.pack("<HBB", size, RESOURCE_TYPE_ROOM, index & 0xFF) + bytes(body)
