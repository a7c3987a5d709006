"""Locate Android SDK build-tools binaries."""

import os
import platform
from collections.abc import Iterator
from pathlib import Path

SDK_ENV_VARS = ("ANDROID_HOME", "ANDROID_SDK_ROOT")
MIN_BUILD_TOOLS = (28, 0, 0)


def default_sdk_locations() -> list[Path]:
    """Where Android Studio installs the SDK on this platform."""
    home = Path.home()
    system = platform.system()
    if system == "Darwin":
        return [home / "Library" / "Android" / "sdk", Path("/opt/android-sdk")]
    if system == "Windows":
        return [home / "AppData" / "Local" / "Android" / "Sdk", Path("C:/Android/sdk")]
    return [home / "Android" / "Sdk", home / "android-sdk", Path("/opt/android-sdk")]


def sdk_roots() -> Iterator[Path]:
    """Existing SDK roots: environment variables first, then defaults."""
    candidates = [Path(v) for var in SDK_ENV_VARS if (v := os.environ.get(var))]
    seen: set[Path] = set()
    for root in candidates + default_sdk_locations():
        if root not in seen and root.is_dir():
            seen.add(root)
            yield root


def _parse_version(name: str) -> tuple[int, ...] | None:
    try:
        return tuple(int(part) for part in name.split("."))
    except ValueError:
        # preview builds such as "35.0.0-rc1"
        return None


def build_tools_dirs(
    sdk_root: Path, min_version: tuple[int, ...] = MIN_BUILD_TOOLS
) -> list[Path]:
    """Version directories under ``build-tools``, newest first."""
    root = sdk_root / "build-tools"
    if not root.is_dir():
        return []

    versions = []
    for child in root.iterdir():
        version = _parse_version(child.name)
        if child.is_dir() and version is not None and version >= min_version:
            versions.append((version, child))
    return [path for _, path in sorted(versions, reverse=True)]


def find_aapt2() -> Path | None:
    """Newest aapt2 found in any SDK root, or None."""
    name = "aapt2.exe" if platform.system() == "Windows" else "aapt2"
    for sdk_root in sdk_roots():
        for build_tools in build_tools_dirs(sdk_root):
            candidate = build_tools / name
            if candidate.is_file():
                return candidate
    return None
