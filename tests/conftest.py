"""pytest configuration file."""

from pathlib import Path

import pytest
from fakes import write_apk

from droidshelf.models.apk import ApkFile, ApkRole
from droidshelf.utils.config import Settings


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(cache_dir=tmp_path / "cache", label_locales=["es-ES", "es"])


@pytest.fixture
def apk_factory(tmp_path: Path):
    """Build APK archives and wrap them as pulled ApkFile records."""

    def make(
        name: str,
        entries: dict[str, bytes | str],
        role: ApkRole = ApkRole.BASE,
    ) -> ApkFile:
        path = write_apk(tmp_path / "pulled" / name, entries)
        return ApkFile(
            remote_path=f"/data/app/com.example.app-1/{name}",
            local_path=path,
            role=role,
        )

    return make
