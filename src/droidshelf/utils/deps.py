"""Discovery of the adb and aapt2 binaries."""

from __future__ import annotations

import os
import shutil
from pathlib import Path
from typing import Final

from droidshelf.utils.android_sdk import find_aapt2
from droidshelf.utils.config import get_config_value

# Shown when a tool cannot be found
TOOL_INSTALL_HINTS: dict[str, str] = {
    "adb": "https://developer.android.com/tools/releases/platform-tools",
    "aapt2": (
        "Part of Android SDK build-tools; set DROIDSHELF_AAPT2, "
        "configure ~/.droidshelf/config.json (aapt2_path), or set ANDROID_HOME"
    ),
}

AAPT2_ENV_VAR: Final[str] = "DROIDSHELF_AAPT2"
AAPT2_CONFIG_KEY: Final[str] = "aapt2_path"
ADB_CONFIG_KEY: Final[str] = "adb_path"


def _resolve_binary(raw_value: str | None) -> str | None:
    if not raw_value:
        return None

    candidate = Path(raw_value).expanduser()
    if candidate.is_file():
        return str(candidate)

    return shutil.which(raw_value)


def get_adb_command(explicit: str | None = None) -> str | None:
    """Resolve the adb binary via explicit path/config/PATH."""

    cfg_value = get_config_value(ADB_CONFIG_KEY)
    for raw in (explicit, cfg_value if isinstance(cfg_value, str) else None):
        if resolved := _resolve_binary(raw):
            return resolved

    return shutil.which("adb")


def get_aapt2_command(explicit: str | None = None) -> str | None:
    """Resolve the aapt2 binary via explicit path/env/config/PATH/SDK."""

    cfg_value = get_config_value(AAPT2_CONFIG_KEY)
    for raw in (
        explicit,
        os.environ.get(AAPT2_ENV_VAR),
        cfg_value if isinstance(cfg_value, str) else None,
    ):
        if resolved := _resolve_binary(raw):
            return resolved

    if on_path := shutil.which("aapt2"):
        return on_path

    sdk_binary = find_aapt2()
    return str(sdk_binary) if sdk_binary else None
