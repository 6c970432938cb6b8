from __future__ import annotations

import dataclasses
import json
import pathlib
from typing import Any, Dict

import yaml


@dataclasses.dataclass
class RenderConfig:
    screen_cols: int = 40
    screen_rows: int = 25
    viewport_cols: int = 40
    viewport_rows: int = 17
    # Row 0 holds the message bar.
    viewport_row_offset: int = 1
    tile_defs_size: int = 0x800
    # Large enough for 255 x 17 tiles.
    layer_capacity: int = 0x1100
    clear_char: int = 0x20
    clear_attr: int = 0x00
    palette: str = "plus4"
    scale: int = 2

    def validate(self) -> "RenderConfig":
        if self.viewport_cols > self.screen_cols:
            raise ValueError(f"viewport_cols {self.viewport_cols} exceeds screen_cols {self.screen_cols}")
        if self.viewport_row_offset + self.viewport_rows > self.screen_rows:
            raise ValueError(
                f"viewport rows {self.viewport_row_offset}+{self.viewport_rows} exceed screen_rows {self.screen_rows}"
            )
        if self.tile_defs_size <= 0 or self.layer_capacity <= 0:
            raise ValueError("Buffer sizes must be > 0")
        if self.scale <= 0:
            raise ValueError("scale must be > 0")
        return self


def _to_int(v: Any) -> int:
    if isinstance(v, bool):
        raise ValueError(f"Expected int-like value, got: {type(v).__name__}")
    if isinstance(v, int):
        return int(v)
    if isinstance(v, str):
        return int(v, 0)
    raise ValueError(f"Expected int-like value, got: {type(v).__name__}")


def _load_mapping(path: pathlib.Path) -> Dict[str, Any]:
    ext = path.suffix.lower()
    text = path.read_text(encoding="utf-8")
    if ext == ".json":
        data = json.loads(text)
    else:
        data = yaml.safe_load(text)
    if not isinstance(data, dict):
        raise ValueError("Config root must be a mapping/object")
    return data


def config_from_mapping(data: Dict[str, Any], base: RenderConfig | None = None) -> RenderConfig:
    cfg = dataclasses.replace(base) if base is not None else RenderConfig()
    known = {f.name: f for f in dataclasses.fields(RenderConfig)}
    for key, value in data.items():
        field = known.get(key)
        if field is None:
            raise ValueError(f"Unknown config key '{key}'")
        if field.type == "str":
            setattr(cfg, key, str(value))
        else:
            setattr(cfg, key, _to_int(value))
    return cfg.validate()


def load_config(path: pathlib.Path) -> RenderConfig:
    return config_from_mapping(_load_mapping(path))
