#!/usr/bin/env python3
"""
Room viewer window.

Keys: Space reloads the current room, Left/Right step through rooms with
wraparound, Q quits. A room that fails to load is reported in the status
line and the previous picture stays up.
"""

from __future__ import annotations

import pathlib
import tkinter as tk
from tkinter import ttk
from typing import Optional

from PIL import Image, ImageTk

from .config import RenderConfig
from .display import ScreenSink, render_screen
from .errors import DecodeError
from .loader import RoomDirectory, next_room, prev_room
from .palette import get_palette
from .render import load_and_render
from .room import RoomBuffers


VIEW_BG = "#0a0a0a"
VIEW_FG = "#d4d4d4"
VIEW_ERR = "#ff5050"


class RoomSession:
    """Current room index plus the decode state shared by every reload."""

    def __init__(self, rooms: RoomDirectory, cfg: RenderConfig, start: int = 0):
        self.rooms = rooms
        self.cfg = cfg
        self.palette = get_palette(cfg.palette)
        self.buffers = RoomBuffers.allocate(cfg)
        self.sink = ScreenSink()
        self.current = start
        self.image: Optional[Image.Image] = None

    def load(self) -> Image.Image:
        raw = self.rooms.read(self.current)
        screen = load_and_render(raw, self.palette, self.sink, self.cfg, self.buffers)
        self.image = render_screen(screen, self.buffers.tile_defs, self.palette, scale=self.cfg.scale)
        return self.image

    def step(self, delta: int) -> None:
        self.current = next_room(self.current) if delta > 0 else prev_room(self.current)


class RoomViewer:
    def __init__(self, root: tk.Tk, session: RoomSession):
        self.root = root
        self.session = session
        self._photo: Optional[ImageTk.PhotoImage] = None
        root.title("Room viewer")
        root.configure(bg=VIEW_BG)
        self.canvas = tk.Label(root, bg=VIEW_BG)
        self.canvas.pack(side="top", padx=6, pady=6)
        self.status_var = tk.StringVar(value="")
        self.status = ttk.Label(root, textvariable=self.status_var)
        self.status.pack(side="bottom", fill="x", padx=6, pady=(0, 6))
        root.bind("<space>", lambda _e: self.reload())
        root.bind("<Left>", lambda _e: self.change(-1))
        root.bind("<Right>", lambda _e: self.change(1))
        root.bind("<KeyPress-q>", lambda _e: root.destroy())
        root.bind("<KeyPress-Q>", lambda _e: root.destroy())

    def _set_status(self, msg: str, error: bool = False) -> None:
        self.status_var.set(msg)
        self.status.configure(foreground=VIEW_ERR if error else VIEW_FG)

    def reload(self) -> None:
        idx = self.session.current
        try:
            img = self.session.load()
        except (DecodeError, OSError) as err:
            self._set_status(f"Room {idx:02d}: {err}", error=True)
            return
        self._photo = ImageTk.PhotoImage(img)
        self.canvas.configure(image=self._photo)
        meta = self.session.buffers.meta
        dims = f"{meta.width}x{meta.height}" if meta is not None else "?"
        self._set_status(f"Room {idx:02d} ({dims})  Space=reload  Left/Right=change room  Q=quit")

    def change(self, delta: int) -> None:
        self.session.step(delta)
        self.reload()


def run_viewer(folder: pathlib.Path, start: int, cfg: RenderConfig) -> int:
    session = RoomSession(RoomDirectory(folder), cfg, start)
    root = tk.Tk()
    viewer = RoomViewer(root, session)
    viewer.reload()
    root.mainloop()
    return 0
