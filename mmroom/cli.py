#!/usr/bin/env python3
"""
Room resource tools.

Current capabilities:
- Report a room resource's header, metadata and layer offsets.
- Decompress or compress a single dictionary/RLE stream.
- Decode a room and export its viewport (and tile set) to PNG.
- Dump decoded layers, build room resources from raw layers.
- Scan a folder of ROOMnn files, or browse it in a viewer window.
"""

from __future__ import annotations

import argparse
import json
import pathlib
from typing import Any, Dict, List, Optional

from .codec import compress, decompress
from .config import RenderConfig, load_config
from .display import PngSink, render_tileset, save_png
from .errors import DecodeError
from .loader import RoomDirectory
from .palette import PALETTES, get_palette
from .render import load_and_render
from .room import (
    DECODED_LAYERS,
    ROOM_HEIGHT,
    RoomBuffers,
    build_room_resource,
    load_room,
    parse_metadata,
    parse_resource_header,
)
from .viewport import palette_merge


def _emit(report: Dict[str, Any], json_path: Optional[str] = None) -> None:
    text = json.dumps(report, indent=2)
    if json_path:
        pathlib.Path(json_path).write_text(text, encoding="utf-8")
    print(text)


def _resolve_config(args: argparse.Namespace) -> RenderConfig:
    cfg = load_config(pathlib.Path(args.config)) if getattr(args, "config", None) else RenderConfig()
    if getattr(args, "palette", None):
        cfg.palette = args.palette
    if getattr(args, "scale", None) is not None:
        cfg.scale = int(args.scale)
    return cfg.validate()


def _parse_colors(spec: str) -> List[int]:
    vals = [int(tok, 0) for tok in spec.replace(";", ",").split(",") if tok.strip()]
    if len(vals) != 3:
        raise ValueError(f"Expected three background colours, got: {spec}")
    return vals


def cmd_room_info(args: argparse.Namespace) -> int:
    raw = pathlib.Path(args.room).read_bytes()
    palette = get_palette(args.palette)
    header = parse_resource_header(raw)
    meta = parse_metadata(raw, palette)
    report = {
        "room": args.room,
        "size": header.size,
        "file_size": len(raw),
        "index": header.index,
        "width": meta.width,
        "height": meta.height,
        "video_flag": meta.video_flag,
        "colors_raw": list(meta.raw_colors),
        "colors": [f"0x{c:02X}" for c in meta.colors],
        "offsets": {k: f"0x{v:04X}" for k, v in meta.offsets.items()},
        "cells": meta.cells,
    }
    _emit(report, args.json)
    return 0


def cmd_decompress_stream(args: argparse.Namespace) -> int:
    data = pathlib.Path(args.input).read_bytes()
    off = int(args.offset, 0)
    size = int(args.size, 0) if args.size else None
    dec = decompress(data, off, size)
    out = pathlib.Path(args.out)
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_bytes(dec)
    _emit({"input": args.input, "offset": f"0x{off:04X}", "out": str(out), "decompressed_size": len(dec)})
    return 0


def cmd_pack_stream(args: argparse.Namespace) -> int:
    raw = pathlib.Path(args.input).read_bytes()
    packed = compress(raw)
    out = pathlib.Path(args.out)
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_bytes(packed)
    ratio = (len(packed) / len(raw)) if raw else 0.0
    _emit(
        {
            "input": args.input,
            "out": str(out),
            "raw_size": len(raw),
            "compressed_size": len(packed),
            "dictionary": packed[:4].hex(),
            "ratio": round(ratio, 4),
        }
    )
    return 0


def cmd_render_room(args: argparse.Namespace) -> int:
    cfg = _resolve_config(args)
    palette = get_palette(cfg.palette)
    raw = pathlib.Path(args.room).read_bytes()
    buffers = RoomBuffers.allocate(cfg)
    out = pathlib.Path(args.out)
    sink = PngSink(out, buffers.tile_defs, palette, scale=cfg.scale)
    merge = palette_merge(palette) if args.color_merge == "palette" else None
    load_and_render(raw, palette, sink, cfg, buffers, color_merge=merge)
    report: Dict[str, Any] = {"room": args.room, "out": str(out), "palette": palette.name}
    if args.tiles_out:
        tiles_out = pathlib.Path(args.tiles_out)
        save_png(render_tileset(buffers.tile_defs, scale=cfg.scale), tiles_out)
        report["tiles_out"] = str(tiles_out)
    if buffers.meta is not None:
        report["width"] = buffers.meta.width
        report["height"] = buffers.meta.height
        report["background"] = f"0x{buffers.meta.background:02X}"
    _emit(report)
    return 0


def cmd_dump_layers(args: argparse.Namespace) -> int:
    cfg = _resolve_config(args)
    palette = get_palette(cfg.palette)
    raw = pathlib.Path(args.room).read_bytes()
    buffers = RoomBuffers.allocate(cfg)
    meta = load_room(raw, palette, buffers)
    out_dir = pathlib.Path(args.outdir)
    out_dir.mkdir(parents=True, exist_ok=True)
    stem = pathlib.Path(args.room).stem
    files: Dict[str, str] = {}
    for name in DECODED_LAYERS:
        data = buffers.layer(name)
        size = len(data) if name == "tile_defs" else meta.cells
        path = out_dir / f"{stem}_{name}.bin"
        path.write_bytes(bytes(data[:size]))
        files[name] = str(path)
    manifest = {
        "room": args.room,
        "width": meta.width,
        "height": meta.height,
        "offsets": {k: f"0x{v:04X}" for k, v in meta.offsets.items()},
        "files": files,
    }
    out_manifest = out_dir / f"{stem}_manifest.json"
    out_manifest.write_text(json.dumps(manifest, indent=2), encoding="utf-8")
    _emit({"outdir": str(out_dir), "manifest": str(out_manifest), "count": len(files)})
    return 0


def cmd_build_room(args: argparse.Namespace) -> int:
    tiles = pathlib.Path(args.tiles).read_bytes()
    matrix = pathlib.Path(args.matrix).read_bytes()
    colors = pathlib.Path(args.colors).read_bytes()
    resource = build_room_resource(
        tile_defs=tiles,
        tile_matrix=matrix,
        colors=colors,
        width=int(args.width),
        height=int(args.height),
        index=int(args.index),
        bg=_parse_colors(args.bg),
        video_flag=int(args.video_flag),
    )
    out = pathlib.Path(args.out)
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_bytes(resource)
    _emit({"out": str(out), "size": len(resource), "width": int(args.width), "height": int(args.height)})
    return 0


def cmd_scan_rooms(args: argparse.Namespace) -> int:
    cfg = _resolve_config(args)
    palette = get_palette(cfg.palette)
    rooms = RoomDirectory(pathlib.Path(args.dir))
    buffers = RoomBuffers.allocate(cfg)
    recs: List[Dict[str, Any]] = []
    for idx, path in rooms.available().items():
        rec: Dict[str, Any] = {"index": idx, "path": str(path)}
        try:
            meta = load_room(path.read_bytes(), palette, buffers)
        except DecodeError as err:
            rec.update({"ok": False, "kind": err.kind, "error": str(err)})
        else:
            rec.update({"ok": True, "width": meta.width, "height": meta.height})
        recs.append(rec)
    report = {
        "dir": args.dir,
        "rooms": recs,
        "count": len(recs),
        "failed_count": sum(1 for r in recs if not r["ok"]),
    }
    _emit(report, args.json)
    return 0


def cmd_view(args: argparse.Namespace) -> int:
    from .viewer import run_viewer

    cfg = _resolve_config(args)
    return run_viewer(pathlib.Path(args.dir), int(args.room), cfg)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Room resource decoder and viewport renderer")
    sub = p.add_subparsers(dest="cmd", required=True)
    palettes = sorted(PALETTES)

    pri = sub.add_parser("room-info", help="Report room header, metadata and layer offsets")
    pri.add_argument("--room", required=True, help="Path to room resource (with 4-byte header)")
    pri.add_argument("--palette", default="plus4", choices=palettes, help="Colour translation target")
    pri.add_argument("--json", help="Optional output JSON path")
    pri.set_defaults(func=cmd_room_info)

    pds = sub.add_parser("decompress-stream", help="Decompress a single stream at a file offset")
    pds.add_argument("--input", required=True, help="Input binary path")
    pds.add_argument("--offset", default="0", help="Stream offset (hex or int, default: 0)")
    pds.add_argument("--size", help="Decompressed size (hex or int, default: until end of input)")
    pds.add_argument("--out", required=True, help="Output decompressed binary path")
    pds.set_defaults(func=cmd_decompress_stream)

    pps = sub.add_parser("pack-stream", help="Compress a raw binary into a dictionary/RLE stream")
    pps.add_argument("--input", required=True, help="Raw binary path")
    pps.add_argument("--out", required=True, help="Output stream path")
    pps.set_defaults(func=cmd_pack_stream)

    prr = sub.add_parser("render-room", help="Decode a room and export its viewport to PNG")
    prr.add_argument("--room", required=True, help="Path to room resource")
    prr.add_argument("--out", required=True, help="Output PNG path")
    prr.add_argument("--tiles-out", help="Optional tile set PNG path")
    prr.add_argument("--config", help="Config file (.json/.yaml/.yml)")
    prr.add_argument("--palette", choices=palettes, help="Colour translation target (default: from config)")
    prr.add_argument("--scale", type=int, help="Integer PNG scale factor (default: from config)")
    prr.add_argument(
        "--color-merge",
        default="none",
        choices=("none", "palette"),
        help="Apply the colour layer to cell attributes (default: none)",
    )
    prr.set_defaults(func=cmd_render_room)

    pdl = sub.add_parser("dump-layers", help="Write decoded tile definitions, tile matrix and colour layer")
    pdl.add_argument("--room", required=True, help="Path to room resource")
    pdl.add_argument("--outdir", required=True, help="Output folder")
    pdl.add_argument("--config", help="Config file (.json/.yaml/.yml)")
    pdl.set_defaults(func=cmd_dump_layers)

    pbr = sub.add_parser("build-room", help="Assemble a room resource from raw layers")
    pbr.add_argument("--tiles", required=True, help="Raw tile definitions binary")
    pbr.add_argument("--matrix", required=True, help="Raw tile matrix binary (width*height)")
    pbr.add_argument("--colors", required=True, help="Raw colour layer binary (width*height)")
    pbr.add_argument("--width", required=True, type=int, help="Room width in tiles")
    pbr.add_argument("--height", type=int, default=ROOM_HEIGHT, help=f"Room height in tiles (default: {ROOM_HEIGHT})")
    pbr.add_argument("--index", type=int, default=0, help="Room index stored in the header")
    pbr.add_argument("--bg", default="0,0,0", help="Three background colours, comma separated")
    pbr.add_argument("--video-flag", type=lambda x: int(x, 0), default=0, help="Video flag byte")
    pbr.add_argument("--out", required=True, help="Output resource path")
    pbr.set_defaults(func=cmd_build_room)

    psr = sub.add_parser("scan-rooms", help="Decode every ROOMnn file in a folder and report status")
    psr.add_argument("--dir", required=True, help="Folder with ROOMnn files")
    psr.add_argument("--config", help="Config file (.json/.yaml/.yml)")
    psr.add_argument("--json", help="Optional output JSON path")
    psr.set_defaults(func=cmd_scan_rooms)

    pv = sub.add_parser("view", help="Browse rooms in a window (Space reload, Left/Right change room, Q quit)")
    pv.add_argument("--dir", required=True, help="Folder with ROOMnn files")
    pv.add_argument("--room", type=int, default=0, help="Start room (default: 0)")
    pv.add_argument("--config", help="Config file (.json/.yaml/.yml)")
    pv.add_argument("--palette", choices=palettes, help="Colour translation target (default: from config)")
    pv.add_argument("--scale", type=int, help="Integer display scale (default: from config)")
    pv.set_defaults(func=cmd_view)

    return p


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        return int(args.func(args))
    except DecodeError as err:
        print(json.dumps({"error": str(err), "kind": err.kind}, indent=2))
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
