"""Parsers for ``aapt2 dump badging`` output.

Each line shape has its own pattern and function so they can be tested in
isolation. Badging lines look like::

    package: name='com.example.app' versionCode='42' versionName='1.4'
    application-label:'Example'
    application-label-es:'Ejemplo'
    application-icon-160:'res/mipmap-mdpi-v4/ic_launcher.png'
    application-icon-65535:'res/mipmap-anydpi-v26/ic_launcher.xml'
    application: label='Example' icon='res/mipmap-mdpi-v4/ic_launcher.png'
"""

import re
from collections.abc import Iterable

from droidshelf.models.package import BadgingIcon

QUOTED_VALUE = r"'((?:\\'|[^'])*)'"

LABEL_LINE_RE = re.compile(
    r"^application-label(?:-([\w-]+))?:" + QUOTED_VALUE + r"\s*$"
)
ICON_LINE_RE = re.compile(r"^application-icon-(\d+):" + QUOTED_VALUE + r"\s*$")
APPLICATION_ICON_ATTR_RE = re.compile(r"^application:.*?\bicon=" + QUOTED_VALUE)


def _lines(output: str) -> list[str]:
    return [line.strip() for line in output.splitlines() if line.strip()]


def unescape(value: str) -> str:
    """Undo badging's quote escaping (``\\'`` -> ``'``)."""
    return value.replace("\\'", "'")


def parse_label_line(line: str) -> tuple[str | None, str] | None:
    """Parse one ``application-label[-<locale>]`` line.

    Returns:
        ``(locale, label)`` with ``locale`` None for the generic line, or
        None if the line is not a label line.
    """
    match = LABEL_LINE_RE.match(line.strip())
    if not match:
        return None
    return match.group(1), unescape(match.group(2))


def parse_label(output: str, locales: Iterable[str] = ()) -> str | None:
    """Extract the application label from badging output.

    A localized line for one of ``locales`` (in the given order) wins over
    the generic ``application-label`` line; within each, the first line wins.

    Returns:
        The label, or None if no usable label line exists.
    """
    generic: str | None = None
    localized: dict[str, str] = {}

    for line in _lines(output):
        parsed = parse_label_line(line)
        if parsed is None:
            continue
        locale, label = parsed
        if not label.strip():
            continue
        if locale is None:
            if generic is None:
                generic = label
        else:
            localized.setdefault(locale.lower(), label)

    for locale in locales:
        if label := localized.get(locale.lower()):
            return label

    return generic


def parse_icon_line(line: str) -> BadgingIcon | None:
    """Parse one ``application-icon-<density>`` line."""
    match = ICON_LINE_RE.match(line.strip())
    if not match:
        return None
    value = unescape(match.group(2))
    if not value:
        return None
    return BadgingIcon(density=int(match.group(1)), value=value)


def parse_application_icons(output: str) -> list[BadgingIcon]:
    """Extract icon candidates in dump order.

    Falls back to the ``icon='...'`` attribute of the ``application:`` line
    (reported with density 0) when no ``application-icon-*`` lines exist.
    """
    icons = []
    fallback: BadgingIcon | None = None

    for line in _lines(output):
        if icon := parse_icon_line(line):
            icons.append(icon)
        elif fallback is None and (match := APPLICATION_ICON_ATTR_RE.match(line)):
            if value := unescape(match.group(1)):
                fallback = BadgingIcon(density=0, value=value)

    if not icons and fallback is not None:
        icons.append(fallback)

    return icons


def _best(icons: list[BadgingIcon]) -> BadgingIcon:
    best = icons[0]
    for icon in icons[1:]:
        if icon.score > best.score:
            best = icon
    return best


def select_best_icon(
    icons: list[BadgingIcon], raster_only: bool = False
) -> BadgingIcon | None:
    """Pick the icon reference to resolve.

    The any-density sentinel outranks every numeric density; ties keep the
    earliest line. With ``raster_only``, raster candidates are preferred and
    the full list is used only when there are none.
    """
    if not icons:
        return None

    if raster_only:
        rasters = [icon for icon in icons if icon.is_raster]
        if rasters:
            return _best(rasters)

    return _best(icons)
