"""Resolve resource references to archive entries across base and split APKs."""

import logging
import re
from collections.abc import Sequence
from pathlib import PurePosixPath

from droidshelf.core.archive import ApkArchive
from droidshelf.core.resources import ResourceTableCache, normalize_resource_id
from droidshelf.models.apk import ApkFile, EntryFormat, ResolvedResourceEntry
from droidshelf.models.resource import (
    ById,
    ByPath,
    ByTypeName,
    ColorLiteral,
    ResourceName,
    ResourceReference,
    Rgba,
)

logger = logging.getLogger(__name__)

RASTER_EXTENSIONS = (".png", ".webp", ".jpg", ".jpeg")
DEFAULT_EXTENSIONS = (".png", ".webp", ".xml", ".xml.flat", ".jpg", ".jpeg")
LAYER_EXTENSIONS = (".png", ".webp", ".jpg", ".jpeg", ".xml", ".xml.flat")

DENSITY_SCORES: dict[str, int] = {
    "xxxhdpi": 640,
    "xxhdpi": 480,
    "xhdpi": 320,
    "anydpi": 300,
    "hdpi": 240,
    "tvdpi": 213,
    "nodpi": 200,
    "mdpi": 160,
    "ldpi": 120,
}
NUMERIC_DPI_RE = re.compile(r"^(\d+)dpi$")

PLATFORM_COLORS: dict[str, str] = {
    "transparent": "#00000000",
    "black": "#FF000000",
    "white": "#FFFFFFFF",
}
# android.R.color ids, as printed for references in decoded binary XML
PLATFORM_COLOR_IDS: dict[str, str] = {
    "0106000b": "white",
    "0106000c": "black",
    "0106000d": "transparent",
}

HEX_COLOR_RE = re.compile(r"^#([0-9a-fA-F]{3,4}|[0-9a-fA-F]{6}|[0-9a-fA-F]{8})$")
RESOURCE_ID_RE = re.compile(r"^0x[0-9a-fA-F]+$")
# Binary XML decoders print references as "@7F080001"
BARE_RESOURCE_ID_RE = re.compile(r"^[0-9a-fA-F]{8}$")


def parse_hex_color(value: str) -> Rgba | None:
    """Parse an Android color literal into ``(r, g, b, a)``.

    Android orders alpha first: ``#RGB``, ``#ARGB``, ``#RRGGBB``,
    ``#AARRGGBB``.
    """
    match = HEX_COLOR_RE.match(value.strip())
    if not match:
        return None

    digits = match.group(1)
    if len(digits) in (3, 4):
        digits = "".join(ch * 2 for ch in digits)
    if len(digits) == 6:
        digits = "ff" + digits

    a, r, g, b = (int(digits[i : i + 2], 16) for i in range(0, 8, 2))
    return r, g, b, a


def parse_resource_value(raw: str | None) -> ResourceReference | None:
    """Classify a raw attribute or badging value as a resource reference.

    Returns None for empty values, ``@null``, theme attributes and
    malformed ``@`` references.
    """
    if not raw:
        return None
    value = raw.strip()
    if not value or value.startswith("?"):
        return None

    if value.startswith("#"):
        return ColorLiteral(color=value) if parse_hex_color(value) else None

    if not value.startswith("@"):
        return ByPath(path=value)

    body = value[1:].lstrip("+").lstrip("*")
    if RESOURCE_ID_RE.match(body) or BARE_RESOURCE_ID_RE.match(body):
        return ById(resource_id=normalize_resource_id(body))

    platform = False
    if ":" in body:
        namespace, body = body.split(":", 1)
        platform = namespace == "android"

    if platform and BARE_RESOURCE_ID_RE.match(body):
        color_name = PLATFORM_COLOR_IDS.get(body.lower())
        if color_name is None:
            return None
        return ByTypeName(type="color", name=color_name, platform=True)

    segments = body.split("/")
    if len(segments) != 2 or not all(segments):
        return None

    res_type, name = segments
    if res_type == "ref" and RESOURCE_ID_RE.match(name):
        return ById(resource_id=normalize_resource_id(name))

    return ByTypeName(type=res_type, name=name, platform=platform)


def platform_color(reference: ResourceReference) -> str | None:
    """Map ``@android:color/{transparent,black,white}`` to ARGB hex."""
    if (
        isinstance(reference, ByTypeName)
        and reference.platform
        and reference.type == "color"
    ):
        return PLATFORM_COLORS.get(reference.name)
    return None


def density_score(entry_path: str) -> int:
    """Score an entry by the density qualifier of its resource directory."""
    parts = PurePosixPath(entry_path).parts
    if len(parts) < 2:
        return 0

    for qualifier in parts[-2].split("-")[1:]:
        if qualifier in DENSITY_SCORES:
            return DENSITY_SCORES[qualifier]
        if match := NUMERIC_DPI_RE.match(qualifier):
            return int(match.group(1))

    return 0


def find_typed_entry(
    entries: Sequence[str], res_type: str, name: str, extensions: Sequence[str]
) -> str | None:
    """Find the best ``res/<type>(-<qualifiers>)/<name><ext>`` entry.

    Candidates are ranked by extension priority (earlier in ``extensions``
    wins), then density score, then path, all descending.
    """
    best: tuple[int, int, str] | None = None

    for entry in entries:
        parts = entry.split("/")
        if len(parts) != 3 or parts[0] != "res":
            continue
        directory, file_name = parts[1], parts[2]
        if directory != res_type and not directory.startswith(f"{res_type}-"):
            continue

        for index, ext in enumerate(extensions):
            if file_name == f"{name}{ext}":
                rank = (len(extensions) - index, density_score(entry), entry)
                if best is None or rank > best:
                    best = rank
                break

    return best[2] if best else None


def find_path_entry(entries: Sequence[str], path: str) -> str | None:
    """Exact entry match, then the first entry with the same file name."""
    normalized = path.lstrip("/")
    if normalized in entries:
        return normalized

    base_name = PurePosixPath(normalized).name
    for entry in entries:
        if entry == base_name or entry.endswith(f"/{base_name}"):
            return entry

    return None


class ResourceResolver:
    """Finds the archive entry a reference points to.

    APK order takes priority over in-APK ranking: the first APK (base first)
    with any candidate supplies the result.
    """

    def __init__(self, archive: ApkArchive, tables: ResourceTableCache):
        self.archive = archive
        self.tables = tables

    async def lookup_id(
        self, resource_id: str, apks: Sequence[ApkFile]
    ) -> ResourceName | None:
        """Look a numeric id up in each APK's table in order."""
        for apk in apks:
            table = await self.tables.get(apk.local_path)
            if name := table.lookup(resource_id):
                return name
        return None

    async def to_type_name(
        self, reference: ResourceReference, apks: Sequence[ApkFile]
    ) -> ResourceReference | None:
        """Replace a ById reference with its ByTypeName form."""
        if not isinstance(reference, ById):
            return reference

        name = await self.lookup_id(reference.resource_id, apks)
        if name is None:
            logger.debug("Resource id 0x%s not in any table", reference.resource_id)
            return None
        return ByTypeName(type=name.type, name=name.name)

    async def resolve(
        self,
        reference: ResourceReference,
        apks: Sequence[ApkFile],
        preferred_extensions: Sequence[str] = DEFAULT_EXTENSIONS,
    ) -> ResolvedResourceEntry | None:
        """Resolve a reference to an archive entry, or None on a miss.

        Platform references and color literals never resolve to entries;
        callers handle them before calling.
        """
        working = await self.to_type_name(reference, apks)
        if working is None or isinstance(working, ColorLiteral):
            return None
        if isinstance(working, ByTypeName) and working.platform:
            return None

        extensions = tuple(preferred_extensions) or DEFAULT_EXTENSIONS

        for apk in apks:
            entries = self.archive.list_entries(apk.local_path)
            if isinstance(working, ByPath):
                match = find_path_entry(entries, working.path)
            else:
                match = find_typed_entry(
                    entries, working.type, working.name, extensions
                )

            if match is None:
                continue

            entry_format = EntryFormat.from_entry(match)
            if entry_format is None:
                logger.debug("Unsupported entry format: %s", match)
                continue

            return ResolvedResourceEntry(apk=apk, entry_path=match, format=entry_format)

        return None

    async def lookup_color(
        self, reference: ResourceReference, apks: Sequence[ApkFile]
    ) -> str | None:
        """Answer a reference with a color literal without touching archives.

        Covers inline literals, mapped platform colors, and colors whose
        value the resource tables printed inline.
        """
        if isinstance(reference, ColorLiteral):
            return reference.color

        working = await self.to_type_name(reference, apks)
        if not isinstance(working, ByTypeName):
            return None
        if working.platform:
            return platform_color(working)

        name = ResourceName(type=working.type, name=working.name)
        for apk in apks:
            table = await self.tables.get(apk.local_path)
            if color := table.color_for(name):
                return color
        return None
