"""Settings storage for build defaults and external tool configuration."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any


SETTINGS_PATH = Path(
    os.environ.get(
        "MKIMG_SETTINGS_PATH",
        Path.home() / ".config" / "mkimg" / "settings.json",
    )
)

# Default values - use these constants instead of hardcoding values elsewhere
DEFAULT_IMAGE_NAME = "default.img"
DEFAULT_SECTOR_SIZE = 512
DEFAULT_FIRST_SECTOR = 2048

DEFAULT_SETTINGS: dict[str, Any] = {
    "image_name": DEFAULT_IMAGE_NAME,
    "sector_size": DEFAULT_SECTOR_SIZE,
    "first_sector": DEFAULT_FIRST_SECTOR,
    "fat_volume_label": None,
    "mkfs_fat_command": "mkfs.fat",
    "mmd_command": "mmd",
    "mcopy_command": "mcopy",
    "debug": False,
    "log_dir": None,
}


@dataclass
class SettingsStore:
    values: dict[str, Any] = field(default_factory=dict)


settings_store = SettingsStore()


def load_settings() -> None:
    settings_store.values = dict(DEFAULT_SETTINGS)
    if not SETTINGS_PATH.exists():
        return
    try:
        data = json.loads(SETTINGS_PATH.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError):
        return
    if isinstance(data, dict):
        settings_store.values.update(data)


def get_setting(key: str, default: Any | None = None) -> Any:
    return settings_store.values.get(key, default)


def get_bool(key: str, default: bool = False) -> bool:
    return bool(get_setting(key, default))


def get_int(key: str, default: int = 0) -> int:
    value = get_setting(key, default)
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


load_settings()
