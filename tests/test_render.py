import json
import pathlib
import struct
import tempfile
import unittest

import numpy as np
from PIL import Image

from mmroom.cli import main
from mmroom.config import RenderConfig, config_from_mapping, load_config
from mmroom.display import PngSink, ScreenSink, glyph_bits, render_screen, render_tileset
from mmroom.errors import DecodeError
from mmroom.loader import ROOM_MAX_INDEX, RoomDirectory, next_room, prev_room, room_filename
from mmroom.palette import PLUS4, get_palette, ted_to_rgb
from mmroom.render import load_and_render
from mmroom.room import RoomBuffers, build_room_resource
from mmroom.viewport import Screen


def make_room(width=45, height=17, index=0):
    cells = width * height
    tiles = bytes(0xFF if (i // 8) % 2 else 0x00 for i in range(0x800))
    matrix = bytes((i * 3) & 0xFF for i in range(cells))
    colors = bytes(i % 16 for i in range(cells))
    return build_room_resource(tiles, matrix, colors, width, height, index=index, bg=(1, 2, 3)), matrix


class TestLoadAndRender(unittest.TestCase):
    def test_viewport_on_screen(self):
        res, matrix = make_room()
        sink = ScreenSink()
        screen = load_and_render(res, PLUS4, sink)
        expected = np.frombuffer(matrix, dtype=np.uint8).reshape(17, 45)[:, :40]
        self.assertTrue((screen.chars[1:18] == expected).all())
        self.assertTrue((screen.chars[0] == 0x20).all())
        self.assertTrue((screen.chars[18:] == 0x20).all())
        self.assertEqual(screen.background, 0x71)
        self.assertEqual(sink.frames, 1)
        self.assertEqual(sink.backgrounds, [0x71])
        self.assertTrue((sink.screen.chars == screen.chars).all())

    def test_narrow_room(self):
        res, matrix = make_room(width=5)
        screen = load_and_render(res, PLUS4, ScreenSink())
        self.assertEqual(screen.chars[1, :5].tolist(), list(matrix[:5]))
        self.assertEqual(screen.chars[2, :5].tolist(), list(matrix[5:10]))
        self.assertTrue((screen.chars[1, 5:] == 0x20).all())

    def test_error_keeps_previous_screen(self):
        res, _ = make_room()
        sink = ScreenSink()
        load_and_render(res, PLUS4, sink)
        before = sink.screen
        bad = bytearray(res)
        struct.pack_into("<H", bad, 4 + 0x08, 0xFFF0)
        with self.assertRaises(DecodeError):
            load_and_render(bytes(bad), PLUS4, sink)
        self.assertEqual(sink.frames, 1)
        self.assertIs(sink.screen, before)

    def test_buffers_reused(self):
        cfg = RenderConfig()
        buffers = RoomBuffers.allocate(cfg)
        first, _ = make_room(width=60)
        second, matrix = make_room(width=41)
        load_and_render(first, PLUS4, ScreenSink(), cfg, buffers)
        screen = load_and_render(second, PLUS4, ScreenSink(), cfg, buffers)
        self.assertEqual(buffers.meta.width, 41)
        self.assertEqual(screen.chars[2, :40].tolist(), list(matrix[41:81]))


class TestDisplay(unittest.TestCase):
    def test_glyph_bits(self):
        tiles = bytearray(0x800)
        tiles[8] = 0x80
        bits = glyph_bits(tiles)
        self.assertEqual(bits.shape, (256, 8, 8))
        self.assertTrue(bits[1, 0, 0])
        self.assertFalse(bits[1, 0, 1])
        self.assertFalse(bits[0].any())

    def test_short_tile_defs_pad_blank(self):
        bits = glyph_bits(b"\xff" * 16)
        self.assertTrue(bits[1].all())
        self.assertFalse(bits[2].any())

    def test_render_screen(self):
        cfg = RenderConfig()
        screen = Screen.blank(cfg)
        screen.chars[:] = 0
        screen.chars[0, 1] = 1
        screen.attrs[0, 1] = 0x32
        tiles = bytearray(0x800)
        tiles[8:16] = b"\xff" * 8
        img = render_screen(screen, tiles, PLUS4, scale=2)
        self.assertEqual(img.size, (40 * 8 * 2, 25 * 8 * 2))
        self.assertEqual(img.getpixel((0, 0)), (0, 0, 0))
        self.assertEqual(img.getpixel((8 * 2, 0)), ted_to_rgb(0x32))

    def test_unmerged_cells_use_default_foreground(self):
        screen = Screen.blank(RenderConfig())
        screen.chars[:] = 1
        tiles = bytearray(0x800)
        tiles[8:16] = b"\xff" * 8
        img = render_screen(screen, tiles, PLUS4)
        self.assertEqual(img.getpixel((3, 3)), ted_to_rgb(PLUS4.translate(1)))

    def test_render_tileset(self):
        img = render_tileset(bytes(0x800), scale=3)
        self.assertEqual(img.size, (128 * 3, 128 * 3))

    def test_png_sink(self):
        res, _ = make_room()
        with tempfile.TemporaryDirectory() as tmp:
            out = pathlib.Path(tmp) / "sub" / "room.png"
            buffers = RoomBuffers.allocate(RenderConfig())
            sink = PngSink(out, buffers.tile_defs, PLUS4)
            load_and_render(res, PLUS4, sink, buffers=buffers)
            with Image.open(out) as img:
                self.assertEqual(img.size, (320, 200))


class TestConfig(unittest.TestCase):
    def test_json(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = pathlib.Path(tmp) / "cfg.json"
            path.write_text(json.dumps({"viewport_cols": 32, "palette": "c64"}), encoding="utf-8")
            cfg = load_config(path)
        self.assertEqual(cfg.viewport_cols, 32)
        self.assertEqual(cfg.palette, "c64")
        self.assertEqual(cfg.viewport_rows, 17)

    def test_yaml_hex_strings(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = pathlib.Path(tmp) / "cfg.yaml"
            path.write_text("layer_capacity: '0x400'\ntile_defs_size: 2048\n", encoding="utf-8")
            cfg = load_config(path)
        self.assertEqual(cfg.layer_capacity, 0x400)
        self.assertEqual(cfg.tile_defs_size, 2048)

    def test_root_must_be_mapping(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = pathlib.Path(tmp) / "cfg.yml"
            path.write_text("- 1\n- 2\n", encoding="utf-8")
            with self.assertRaises(ValueError):
                load_config(path)

    def test_unknown_key(self):
        with self.assertRaises(ValueError):
            config_from_mapping({"viewport_colz": 3})

    def test_viewport_must_fit(self):
        with self.assertRaises(ValueError):
            config_from_mapping({"viewport_rows": 25})
        with self.assertRaises(ValueError):
            config_from_mapping({"viewport_cols": 41})

    def test_unknown_palette(self):
        with self.assertRaises(ValueError):
            get_palette("vic20")


class TestLoader(unittest.TestCase):
    def test_filenames(self):
        self.assertEqual(room_filename(0), "ROOM00")
        self.assertEqual(room_filename(54), "ROOM54")
        with self.assertRaises(ValueError):
            room_filename(ROOM_MAX_INDEX + 1)

    def test_navigation_wraps(self):
        self.assertEqual(next_room(0), 1)
        self.assertEqual(next_room(ROOM_MAX_INDEX), 0)
        self.assertEqual(prev_room(0), ROOM_MAX_INDEX)
        self.assertEqual(prev_room(10), 9)

    def test_directory(self):
        with tempfile.TemporaryDirectory() as tmp:
            root = pathlib.Path(tmp)
            (root / "ROOM00").write_bytes(b"a")
            (root / "room02.bin").write_bytes(b"b")
            (root / "notes.txt").write_text("x", encoding="utf-8")
            rooms = RoomDirectory(root)
            self.assertEqual(rooms.indices(), [0, 2])
            self.assertEqual(rooms.read(2), b"b")
            with self.assertRaises(FileNotFoundError):
                rooms.read(1)


class TestCli(unittest.TestCase):
    def test_build_info_render(self):
        with tempfile.TemporaryDirectory() as tmp:
            root = pathlib.Path(tmp)
            (root / "tiles.bin").write_bytes(bytes(range(256)) * 8)
            (root / "matrix.bin").write_bytes(bytes(i & 0xFF for i in range(50 * 17)))
            (root / "colors.bin").write_bytes(bytes(50 * 17))
            room = root / "rooms" / "ROOM04"
            rc = main([
                "build-room",
                "--tiles", str(root / "tiles.bin"),
                "--matrix", str(root / "matrix.bin"),
                "--colors", str(root / "colors.bin"),
                "--width", "50",
                "--index", "4",
                "--bg", "6,0,1",
                "--out", str(room),
            ])
            self.assertEqual(rc, 0)
            info = root / "info.json"
            self.assertEqual(main(["room-info", "--room", str(room), "--json", str(info)]), 0)
            report = json.loads(info.read_text(encoding="utf-8"))
            self.assertEqual(report["width"], 50)
            self.assertEqual(report["index"], 4)
            png = root / "out.png"
            tiles_png = root / "tiles.png"
            rc = main(["render-room", "--room", str(room), "--out", str(png), "--tiles-out", str(tiles_png), "--scale", "1"])
            self.assertEqual(rc, 0)
            self.assertTrue(png.exists())
            self.assertTrue(tiles_png.exists())
            self.assertEqual(main(["dump-layers", "--room", str(room), "--outdir", str(root / "dump")]), 0)
            self.assertEqual((root / "dump" / "ROOM04_tile_matrix.bin").read_bytes(), (root / "matrix.bin").read_bytes())
            scan = root / "scan.json"
            self.assertEqual(main(["scan-rooms", "--dir", str(root / "rooms"), "--json", str(scan)]), 0)
            scan_report = json.loads(scan.read_text(encoding="utf-8"))
            self.assertEqual(scan_report["count"], 1)
            self.assertEqual(scan_report["failed_count"], 0)

    def test_pack_and_decompress(self):
        with tempfile.TemporaryDirectory() as tmp:
            root = pathlib.Path(tmp)
            raw = b"\x00" * 300 + bytes(range(100))
            (root / "raw.bin").write_bytes(raw)
            self.assertEqual(main(["pack-stream", "--input", str(root / "raw.bin"), "--out", str(root / "packed.bin")]), 0)
            self.assertEqual(main(["decompress-stream", "--input", str(root / "packed.bin"), "--out", str(root / "unpacked.bin")]), 0)
            self.assertEqual((root / "unpacked.bin").read_bytes(), raw)

    def test_zero_scale_rejected(self):
        res, _ = make_room()
        with tempfile.TemporaryDirectory() as tmp:
            room = pathlib.Path(tmp) / "ROOM00"
            room.write_bytes(res)
            with self.assertRaises(ValueError):
                main(["render-room", "--room", str(room), "--out", str(pathlib.Path(tmp) / "out.png"), "--scale", "0"])

    def test_decode_error_exit_code(self):
        with tempfile.TemporaryDirectory() as tmp:
            room = pathlib.Path(tmp) / "ROOM00"
            room.write_bytes(struct.pack("<HBB", 8, 3, 0) + b"\x28\x11\x00\x00")
            self.assertEqual(main(["room-info", "--room", str(room)]), 1)


if __name__ == "__main__":
    unittest.main()
