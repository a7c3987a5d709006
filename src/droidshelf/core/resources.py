"""Resource tables built from ``aapt2 dump resources`` output."""

import logging
import re
from collections.abc import Mapping
from pathlib import Path
from types import MappingProxyType

from droidshelf.core.aapt import Aapt2
from droidshelf.exceptions import ProcessError
from droidshelf.models.resource import ResourceName

logger = logging.getLogger(__name__)

# aapt2: "resource 0x7f0d0000 mipmap/ic_launcher"
# aapt:  "resource 0x7f0d0000 com.example:mipmap/ic_launcher: t=0x03 ..."
RESOURCE_LINE_RE = re.compile(
    r"^\s*resource\s+0x([0-9a-fA-F]+)\s+(?:[\w.]+:)?([\w.\-]+)/([^\s:]+):?"
)
# "  () #ff3ddc84" or "  (night-v8) #ff000000"
VALUE_LINE_RE = re.compile(r"^\s*\(([^)]*)\)\s+(#[0-9a-fA-F]{3,8})\s*$")


def normalize_resource_id(raw: str) -> str:
    """``@0x7F0D0000`` / ``0x7f0d0000`` -> ``7f0d0000``."""
    value = raw.strip().lstrip("@").lower()
    if value.startswith("0x"):
        value = value[2:]
    return value


def parse_resource_line(line: str) -> tuple[str, ResourceName] | None:
    """Parse one ``resource 0x<id> <type>/<name>`` line."""
    match = RESOURCE_LINE_RE.match(line)
    if not match:
        return None
    resource_id, res_type, name = match.groups()
    return resource_id.lower(), ResourceName(type=res_type, name=name)


def parse_value_line(line: str) -> tuple[str, str] | None:
    """Parse one ``(<config>) #color`` value line into ``(config, color)``."""
    match = VALUE_LINE_RE.match(line)
    if not match:
        return None
    return match.group(1).strip(), match.group(2)


class ResourceTable:
    """Immutable ``id -> (type, name)`` mapping for one APK.

    Inline color values printed under a resource line are kept too, so a
    ``@color/...`` reference can be answered without an archive entry.
    """

    def __init__(
        self,
        names: Mapping[str, ResourceName] | None = None,
        colors: Mapping[ResourceName, str] | None = None,
    ):
        self._names = MappingProxyType(dict(names or {}))
        self._colors = MappingProxyType(dict(colors or {}))

    def __len__(self) -> int:
        return len(self._names)

    def __contains__(self, resource_id: object) -> bool:
        return isinstance(resource_id, str) and (
            normalize_resource_id(resource_id) in self._names
        )

    def lookup(self, resource_id: str) -> ResourceName | None:
        return self._names.get(normalize_resource_id(resource_id))

    def color_for(self, name: ResourceName) -> str | None:
        return self._colors.get(name)

    @classmethod
    def parse(cls, output: str) -> "ResourceTable":
        """Build a table from dump output.

        For colors, the default configuration ``()`` wins over qualified ones;
        otherwise the first value printed is kept.
        """
        names: dict[str, ResourceName] = {}
        colors: dict[ResourceName, str] = {}
        default_colors: set[ResourceName] = set()
        current: ResourceName | None = None

        for line in output.splitlines():
            if parsed := parse_resource_line(line):
                resource_id, current = parsed
                names.setdefault(resource_id, current)
                continue

            if current is None or not (value := parse_value_line(line)):
                continue

            config, color = value
            if current in default_colors:
                continue
            if config == "":
                colors[current] = color
                default_colors.add(current)
            else:
                colors.setdefault(current, color)

        return cls(names, colors)


def parse_resource_table(output: str) -> ResourceTable:
    return ResourceTable.parse(output)


class ResourceTableCache:
    """Builds each APK's table once and keeps it for the process lifetime."""

    def __init__(self, aapt: Aapt2):
        self.aapt = aapt
        self._tables: dict[Path, ResourceTable] = {}

    async def get(self, apk_path: Path) -> ResourceTable:
        """Return the table for an APK, dumping it on first use.

        A failed dump is logged and cached as an empty table.
        """
        key = apk_path.resolve()
        if key in self._tables:
            return self._tables[key]

        try:
            output = await self.aapt.dump_resources(apk_path)
            table = parse_resource_table(output)
        except ProcessError as e:
            logger.warning("Could not dump resources of %s: %s", apk_path.name, e)
            table = ResourceTable()

        self._tables[key] = table
        return table

    def forget(self, apk_path: Path) -> None:
        self._tables.pop(apk_path.resolve(), None)
