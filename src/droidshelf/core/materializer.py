"""Turn resolved archive entries into icon layers.

Rasters are extracted as-is, vector drawables become SVG, and small XML
wrappers (``<bitmap>``, ``<inset>``, layer ``<item>``) are followed to the
drawable they point at. The chain of wrappers is bounded by
``MAX_INDIRECTION_DEPTH``.
"""

import logging
import xml.etree.ElementTree as ET
from collections.abc import Sequence
from pathlib import Path, PurePosixPath

from droidshelf.core.aapt import Aapt2
from droidshelf.core.archive import ApkArchive
from droidshelf.core.resolver import (
    DEFAULT_EXTENSIONS,
    ResourceResolver,
    parse_hex_color,
    parse_resource_value,
)
from droidshelf.core.vector import (
    ANDROID_NS,
    color_references,
    convert_vector_drawable,
)
from droidshelf.exceptions import ConversionFailure, ProcessError
from droidshelf.models.apk import ApkFile, EntryFormat, ResolvedResourceEntry
from droidshelf.models.resource import (
    ColorLayer,
    IconLayer,
    RasterLayer,
    ResourceReference,
    VectorLayer,
)

logger = logging.getLogger(__name__)

MAX_INDIRECTION_DEPTH = 8
INDIRECTION_TAGS = ("bitmap", "item", "inset")
SOURCE_ATTRIBUTES = ("drawable", "src")

# Little-endian RES_XML_TYPE chunk header of compiled XML
AXML_MAGIC = b"\x03\x00\x08\x00"


def _android(name: str) -> str:
    return f"{{{ANDROID_NS}}}{name}"


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def find_source_reference(root: ET.Element) -> str | None:
    """First ``android:drawable``/``android:src`` on an indirection tag.

    Tags are checked in ``INDIRECTION_TAGS`` order, each anywhere in the
    document (the root included).
    """
    elements = list(root.iter())
    for tag in INDIRECTION_TAGS:
        for elem in elements:
            if _local_name(elem.tag) != tag:
                continue
            for attr in SOURCE_ATTRIBUTES:
                if value := elem.get(_android(attr)):
                    return value
    return None


def find_inline_color(root: ET.Element) -> str | None:
    """An ``android:color``/``value`` attribute or ``<color>`` text."""
    for elem in root.iter():
        for key in (_android("color"), "value", _android("value")):
            if value := elem.get(key):
                return value.strip()
        if _local_name(elem.tag) == "color" and elem.text and elem.text.strip():
            return elem.text.strip()
    return None


def decode_binary_xml(data: bytes) -> str:
    """Decode compiled Android XML to text with pyaxmlparser.

    Raises:
        ConversionFailure: If the buffer is not valid compiled XML.
    """
    from pyaxmlparser.axmlprinter import AXMLPrinter

    try:
        printer = AXMLPrinter(data)
        xml = printer.get_xml()
    except Exception as e:  # pyaxmlparser raises bare exceptions on bad input
        raise ConversionFailure(f"Could not decode binary XML: {e}") from e

    if not xml:
        raise ConversionFailure("Binary XML decoded to an empty document")
    return xml.decode("utf-8", errors="replace") if isinstance(xml, bytes) else xml


class DrawableMaterializer:
    """Materializes drawables of one extraction attempt into its workspace.

    Args:
        archive: Archive access layer shared with the resolver.
        resolver: Resolver used to follow references found inside XML.
        workspace: Scratch directory owned by the extraction attempt.
        aapt: aapt2 wrapper, needed only for ``.xml.flat`` entries.
    """

    def __init__(
        self,
        archive: ApkArchive,
        resolver: ResourceResolver,
        workspace: Path,
        aapt: Aapt2 | None = None,
    ):
        self.archive = archive
        self.resolver = resolver
        self.workspace = workspace
        self.aapt = aapt
        self._svg_count = 0

    def _scratch_dir(self, entry: ResolvedResourceEntry) -> Path:
        return self.workspace / "entries" / entry.apk.local_path.stem

    async def materialize(
        self,
        entry: ResolvedResourceEntry,
        apks: Sequence[ApkFile],
        depth: int = 0,
    ) -> IconLayer | None:
        """Produce an icon layer for a resolved entry, or None on a miss.

        Raises:
            ConversionFailure: If the drawable chain is deeper than
                ``MAX_INDIRECTION_DEPTH`` or a vector cannot be converted.
        """
        if depth > MAX_INDIRECTION_DEPTH:
            raise ConversionFailure(
                f"Drawable indirection deeper than {MAX_INDIRECTION_DEPTH}: "
                f"{entry.entry_path}"
            )

        logger.debug("Materializing %s (depth %d)", entry.entry_path, depth)

        if entry.format.is_raster:
            path = self.archive.extract_entry(
                entry.apk.local_path, entry.entry_path, self._scratch_dir(entry)
            )
            return RasterLayer(path=path, format=entry.format)

        if entry.format == EntryFormat.SVG:
            path = self.archive.extract_entry(
                entry.apk.local_path, entry.entry_path, self._scratch_dir(entry)
            )
            return VectorLayer(svg_path=path)

        xml_text = await self.load_xml(entry)
        return await self.materialize_xml(
            xml_text, apks, depth, source=entry.entry_path
        )

    async def load_xml(self, entry: ResolvedResourceEntry) -> str:
        """Return the text XML of an ``xml`` or ``xml.flat`` entry.

        Raises:
            ConversionFailure: If the entry cannot be turned into text XML.
        """
        if entry.format == EntryFormat.XML_FLAT:
            if self.aapt is None:
                raise ConversionFailure(
                    f"aapt2 is required to convert {entry.entry_path}"
                )
            source = self.archive.extract_entry(
                entry.apk.local_path, entry.entry_path, self._scratch_dir(entry)
            )
            destination = source.with_name(f"{source.name}.converted.xml")
            try:
                return await self.aapt.convert_to_xml(source, destination)
            except ProcessError as e:
                raise ConversionFailure(
                    f"aapt2 could not convert {entry.entry_path}: {e}"
                ) from e

        data = self.archive.read_entry(entry.apk.local_path, entry.entry_path)
        if data.startswith(AXML_MAGIC):
            return decode_binary_xml(data)
        return data.decode("utf-8", errors="replace")

    async def materialize_xml(
        self,
        xml_text: str,
        apks: Sequence[ApkFile],
        depth: int = 0,
        source: str = "drawable",
    ) -> IconLayer | None:
        """Inspect drawable XML: vector, indirection, then inline color."""
        try:
            root = ET.fromstring(xml_text)
        except ET.ParseError as e:
            raise ConversionFailure(f"Malformed XML in {source}: {e}") from e

        if _local_name(root.tag) == "vector":
            return await self._vector_layer(xml_text, apks, source)

        if raw := find_source_reference(root):
            reference = parse_resource_value(raw)
            if reference is not None:
                layer = await self.materialize_reference(
                    reference, apks, DEFAULT_EXTENSIONS, depth + 1
                )
                if layer is not None:
                    return layer
            logger.debug("Unresolved drawable reference %r in %s", raw, source)

        if raw_color := find_inline_color(root):
            reference = parse_resource_value(raw_color)
            color = (
                await self.resolver.lookup_color(reference, apks)
                if reference is not None
                else None
            )
            if color and (rgba := parse_hex_color(color)):
                return ColorLayer(rgba=rgba)

        return None

    async def materialize_reference(
        self,
        reference: ResourceReference,
        apks: Sequence[ApkFile],
        extensions: Sequence[str] = DEFAULT_EXTENSIONS,
        depth: int = 0,
    ) -> IconLayer | None:
        """Resolve a reference and materialize what it points at.

        Colors (literals, platform colors, table colors) are answered without
        touching the archives.
        """
        if depth > MAX_INDIRECTION_DEPTH:
            raise ConversionFailure(
                f"Drawable indirection deeper than {MAX_INDIRECTION_DEPTH}"
            )

        color = await self.resolver.lookup_color(reference, apks)
        if color and (rgba := parse_hex_color(color)):
            return ColorLayer(rgba=rgba)

        entry = await self.resolver.resolve(reference, apks, extensions)
        if entry is None:
            return None
        return await self.materialize(entry, apks, depth)

    async def _vector_layer(
        self, xml_text: str, apks: Sequence[ApkFile], source: str
    ) -> VectorLayer:
        colors: dict[str, str] = {}
        for raw in color_references(xml_text):
            reference = parse_resource_value(raw)
            if reference is None:
                continue
            if color := await self.resolver.lookup_color(reference, apks):
                colors[raw] = color

        self._svg_count += 1
        stem = PurePosixPath(source).name.split(".", 1)[0] or "drawable"
        name = f"{self._svg_count}_{stem}"
        xml_path = self.workspace / "vectors" / f"{name}.xml"
        xml_path.parent.mkdir(parents=True, exist_ok=True)
        xml_path.write_text(xml_text, encoding="utf-8")

        svg_path = convert_vector_drawable(
            xml_path, self.workspace / "svg" / f"{name}.svg", colors
        )
        return VectorLayer(svg_path=svg_path)
