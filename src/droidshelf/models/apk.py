"""Pydantic models for pulled APKs and the archive entries resolved in them."""

from enum import StrEnum
from pathlib import Path

from pydantic import BaseModel, ConfigDict


class ApkRole(StrEnum):
    """Whether an APK is the base archive or one of its splits."""

    BASE = "base"
    SPLIT = "split"


class EntryFormat(StrEnum):
    """Archive entry formats the resolver can return."""

    PNG = "png"
    WEBP = "webp"
    JPG = "jpg"
    JPEG = "jpeg"
    XML = "xml"
    XML_FLAT = "xml.flat"
    SVG = "svg"

    @property
    def is_raster(self) -> bool:
        return self in RASTER_FORMATS

    @classmethod
    def from_entry(cls, entry_path: str) -> "EntryFormat | None":
        """Detect the format from an entry name, or None if unsupported."""
        lower = entry_path.lower()
        for fmt in cls:
            if lower.endswith(f".{fmt.value}"):
                return fmt
        return None


RASTER_FORMATS = frozenset(
    {EntryFormat.PNG, EntryFormat.WEBP, EntryFormat.JPG, EntryFormat.JPEG}
)


class ApkFile(BaseModel):
    """An APK pulled from the device into a scratch workspace."""

    model_config = ConfigDict(frozen=True)

    remote_path: str
    """Path of the APK on the device (from ``pm path``)."""

    local_path: Path
    """Local copy inside the extraction workspace."""

    role: ApkRole = ApkRole.SPLIT

    @property
    def is_base(self) -> bool:
        return self.role == ApkRole.BASE


class PulledApks(BaseModel):
    """APKs pulled for one extraction attempt, base first."""

    package_name: str
    workspace: Path
    apks: list[ApkFile]

    @property
    def base(self) -> ApkFile | None:
        for apk in self.apks:
            if apk.is_base:
                return apk
        return self.apks[0] if self.apks else None

    @property
    def remote_paths(self) -> set[str]:
        return {apk.remote_path for apk in self.apks}


class ResolvedResourceEntry(BaseModel):
    """A concrete archive entry that a resource reference resolved to."""

    model_config = ConfigDict(frozen=True)

    apk: ApkFile
    entry_path: str
    format: EntryFormat
