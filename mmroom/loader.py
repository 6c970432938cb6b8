from __future__ import annotations

import pathlib
import re
from typing import Dict, List


ROOM_MAX_INDEX = 0x36
ROOM_FILE_RE = re.compile(r"^ROOM(\d\d)$", re.IGNORECASE)


def room_filename(index: int) -> str:
    if not 0 <= index <= ROOM_MAX_INDEX:
        raise ValueError(f"Room index out of range: {index} (0..{ROOM_MAX_INDEX})")
    return f"ROOM{index:02d}"


def next_room(index: int) -> int:
    return 0 if index >= ROOM_MAX_INDEX else index + 1


def prev_room(index: int) -> int:
    return ROOM_MAX_INDEX if index <= 0 else index - 1


class RoomDirectory:
    """Raw byte provider backed by a folder of ROOMnn files."""

    def __init__(self, root: pathlib.Path):
        self.root = pathlib.Path(root)

    def path_for(self, index: int) -> pathlib.Path:
        name = room_filename(index)
        plain = self.root / name
        if plain.exists():
            return plain
        # Tolerate lowercase names and a .bin suffix from extraction tools.
        for cand in (self.root / name.lower(), self.root / f"{name}.bin", self.root / f"{name.lower()}.bin"):
            if cand.exists():
                return cand
        return plain

    def read(self, index: int) -> bytes:
        path = self.path_for(index)
        if not path.exists():
            raise FileNotFoundError(f"Room file not found: {path}")
        return path.read_bytes()

    def available(self) -> Dict[int, pathlib.Path]:
        found: Dict[int, pathlib.Path] = {}
        if not self.root.is_dir():
            return found
        for p in sorted(self.root.iterdir()):
            m = ROOM_FILE_RE.match(p.stem if p.suffix.lower() == ".bin" else p.name)
            if m and p.is_file():
                idx = int(m.group(1))
                if idx <= ROOM_MAX_INDEX:
                    found.setdefault(idx, p)
        return found

    def indices(self) -> List[int]:
        return sorted(self.available())
