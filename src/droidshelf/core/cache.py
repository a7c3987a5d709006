"""Durable label and icon caches keyed by package."""

import json
import logging
import re
import shutil
from pathlib import Path
from typing import Any

from droidshelf.exceptions import ConversionFailure

logger = logging.getLogger(__name__)

LABEL_CACHE_KEY = "__appLabels"
ICON_EXTENSIONS = (".svg", ".png", ".webp", ".jpg", ".jpeg")

UNSAFE_ID_RE = re.compile(r"[^\w.\-]+")


def sanitize_package_id(package: str) -> str:
    """Make a package name safe to use as a file name."""
    return UNSAFE_ID_RE.sub("_", package.strip())


class LabelCache:
    """Package labels stored under ``__appLabels`` in the preferences file.

    The file is read on first access and rewritten whole on every update.
    Other keys in the preferences file are preserved.
    """

    def __init__(self, prefs_path: Path):
        self.prefs_path = prefs_path
        self._labels: dict[str, str] | None = None

    def _read_prefs(self) -> dict[str, Any]:
        if not self.prefs_path.exists():
            return {}
        try:
            data = json.loads(self.prefs_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable preferences %s: %s", self.prefs_path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def _write_prefs(self, prefs: dict[str, Any]) -> None:
        self.prefs_path.parent.mkdir(parents=True, exist_ok=True)
        self.prefs_path.write_text(
            json.dumps(prefs, indent=2, ensure_ascii=False), encoding="utf-8"
        )

    @property
    def labels(self) -> dict[str, str]:
        if self._labels is None:
            stored = self._read_prefs().get(LABEL_CACHE_KEY)
            self._labels = (
                {k: v for k, v in stored.items() if isinstance(v, str) and v}
                if isinstance(stored, dict)
                else {}
            )
        return self._labels

    def get(self, package: str) -> str | None:
        return self.labels.get(sanitize_package_id(package))

    def __contains__(self, package: object) -> bool:
        return isinstance(package, str) and self.get(package) is not None

    def snapshot(self) -> frozenset[str]:
        """Packages with a resolved label, as an immutable set."""
        return frozenset(self.labels)

    def remember(self, package: str, label: str) -> None:
        """Store a non-empty label and persist the preferences file."""
        label = label.strip()
        if not label:
            return

        key = sanitize_package_id(package)
        self.labels[key] = label

        prefs = self._read_prefs()
        prefs[LABEL_CACHE_KEY] = dict(self.labels)
        self._write_prefs(prefs)


class IconCache:
    """One icon file per package, named by the sanitized package id."""

    def __init__(self, icon_dir: Path):
        self.icon_dir = icon_dir
        self._paths: dict[str, Path] = {}

    def _candidates(self, key: str) -> list[Path]:
        return [self.icon_dir / f"{key}{ext}" for ext in ICON_EXTENSIONS]

    def lookup(self, package: str) -> Path | None:
        """Return the cached icon, probing extensions in a fixed order."""
        key = sanitize_package_id(package)
        if key in self._paths:
            if self._paths[key].is_file():
                return self._paths[key]
            del self._paths[key]

        for candidate in self._candidates(key):
            if candidate.is_file():
                self._paths[key] = candidate
                return candidate
        return None

    def store(self, package: str, source: Path) -> Path:
        """Copy ``source`` into the cache, replacing any other extension.

        Returns:
            The cached file path.

        Raises:
            ConversionFailure: If the source has an unsupported extension.
        """
        extension = source.suffix.lower()
        if extension not in ICON_EXTENSIONS:
            raise ConversionFailure(f"Unsupported icon extension: {source.name}")

        key = sanitize_package_id(package)
        destination = self.icon_dir / f"{key}{extension}"

        for candidate in self._candidates(key):
            if candidate != destination:
                candidate.unlink(missing_ok=True)

        self.icon_dir.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(source, destination)
        self._paths[key] = destination
        logger.debug("Cached icon for %s at %s", package, destination)
        return destination

    def url_for(self, package: str) -> str:
        """``file://`` URL of the cached icon, or an empty string."""
        path = self.lookup(package)
        return path.resolve().as_uri() if path else ""
