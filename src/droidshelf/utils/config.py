"""Helpers for loading the user configuration file (~/.droidshelf/config.json)."""

from __future__ import annotations

import json
import locale
from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

CONFIG_DIR = Path.home() / ".droidshelf"
CONFIG_FILE = CONFIG_DIR / "config.json"

ICON_CACHE_DIRNAME = "icons"
SCRATCH_DIRNAME = "tmp"
PREFERENCES_FILENAME = "preferences.json"


@lru_cache(maxsize=1)
def load_config() -> dict[str, Any]:
    """Load configuration data from disk (cached)."""

    if not CONFIG_FILE.exists():
        return {}

    try:
        raw = CONFIG_FILE.read_text()
    except OSError:
        return {}

    try:
        data = json.loads(raw)
    except ValueError:
        return {}

    if isinstance(data, dict):
        return data

    return {}


def get_config_value(key: str, default: Any | None = None) -> Any | None:
    """Fetch a configuration value by key."""

    return load_config().get(key, default)


def reload_config() -> None:
    """Force the cached configuration to be reloaded on next access."""

    load_config.cache_clear()


def default_label_locales() -> list[str]:
    """Derive badging locale qualifiers from the system locale.

    ``en_US`` yields ``["en-US", "en"]``; an unknown locale yields ``[]``.
    """

    try:
        language_code = locale.getlocale()[0]
    except ValueError:
        language_code = None

    if not language_code or language_code in ("C", "POSIX"):
        return []

    parts = language_code.split("_")
    locales = []
    if len(parts) > 1:
        locales.append(f"{parts[0]}-{parts[1]}")
    locales.append(parts[0])
    return locales


class Settings(BaseModel):
    """Effective runtime settings."""

    cache_dir: Path = CONFIG_DIR
    """Root directory for caches and scratch workspaces."""

    icon_cache_dir: Path | None = None
    """Directory holding one icon file per package."""

    preferences_path: Path | None = None
    """JSON preferences file holding the label cache."""

    aapt2_path: str | None = None
    """Explicit aapt2 binary, overriding PATH and SDK lookup."""

    adb_path: str | None = None
    """Explicit adb binary, overriding PATH lookup."""

    label_locales: list[str] = Field(default_factory=default_label_locales)
    """Badging locale qualifiers preferred over the generic label."""

    tool_timeout: float = 60.0
    """Timeout in seconds for adb shell and aapt2 invocations."""

    pull_timeout: float = 180.0
    """Timeout in seconds for a single adb pull."""

    compose_adaptive_icons: bool = True
    """Composite adaptive icons into one PNG when Pillow is available."""

    @property
    def icon_dir(self) -> Path:
        return self.icon_cache_dir or self.cache_dir / ICON_CACHE_DIRNAME

    @property
    def scratch_dir(self) -> Path:
        return self.cache_dir / SCRATCH_DIRNAME

    @property
    def prefs_path(self) -> Path:
        return self.preferences_path or self.cache_dir / PREFERENCES_FILENAME


def load_settings(**overrides: Any) -> Settings:
    """Build Settings from the config file, with keyword overrides on top."""

    data = {k: v for k, v in load_config().items() if k in Settings.model_fields}
    data.update({k: v for k, v in overrides.items() if v is not None})
    return Settings.model_validate(data)
