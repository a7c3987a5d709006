"""Convert Android VectorDrawable XML to SVG."""

from __future__ import annotations

import re
import xml.etree.ElementTree as ET
from collections.abc import Mapping
from pathlib import Path

from droidshelf.exceptions import ConversionFailure

ANDROID_NS = "http://schemas.android.com/apk/res/android"
AAPT_NS = "http://schemas.android.com/aapt"
SVG_NS = "http://www.w3.org/2000/svg"

FILL_RULES = {
    "evenOdd": "evenodd",
    "nonZero": "nonzero",
    "0": "evenodd",
    "1": "nonzero",
}
LINE_CAPS = {"0": "butt", "1": "round", "2": "square"}
LINE_JOINS = {"0": "miter", "1": "round", "2": "bevel"}
DIMENSION_RE = re.compile(r"^\s*([0-9.]+)")
ARGB_RE = re.compile(r"^#([0-9a-fA-F]{3,4}|[0-9a-fA-F]{6}|[0-9a-fA-F]{8})$")


def _a(name: str) -> str:
    return f"{{{ANDROID_NS}}}{name}"


def _attr(elem: ET.Element, name: str, default: str | None = None) -> str | None:
    return elem.get(_a(name), default)


def _float(elem: ET.Element, name: str, default: float) -> float:
    value = _attr(elem, name)
    if value is None:
        return default
    match = DIMENSION_RE.match(value)
    if not match:
        raise ConversionFailure(f"Invalid number for android:{name}: {value!r}")
    return float(match.group(1))


def _fmt(value: float) -> str:
    return f"{value:g}"


def _split_color(value: str) -> tuple[str, float] | None:
    """``#AARRGGBB`` -> (``#RRGGBB``, opacity)."""
    match = ARGB_RE.match(value.strip())
    if not match:
        return None
    digits = match.group(1)
    if len(digits) in (3, 4):
        digits = "".join(ch * 2 for ch in digits)
    if len(digits) == 6:
        digits = "ff" + digits
    return f"#{digits[2:].lower()}", int(digits[:2], 16) / 255


class _Converter:
    def __init__(self, colors: Mapping[str, str]):
        self.colors = colors
        self.defs = ET.Element("defs")
        self._ids = 0

    def next_id(self, prefix: str) -> str:
        self._ids += 1
        return f"{prefix}{self._ids}"

    def resolve_color(self, value: str | None) -> str | None:
        if value is None:
            return None
        value = value.strip()
        if value.startswith(("@", "?")):
            return self.colors.get(value)
        return value

    def convert(self, root: ET.Element) -> ET.Element:
        if root.tag != "vector":
            raise ConversionFailure(f"Expected <vector> root, got <{root.tag}>")

        vp_width = _float(root, "viewportWidth", 0)
        vp_height = _float(root, "viewportHeight", 0)
        if vp_width <= 0 or vp_height <= 0:
            raise ConversionFailure("Vector drawable has no viewport size")

        svg = ET.Element(
            "svg",
            {
                "xmlns": SVG_NS,
                "width": _fmt(_float(root, "width", vp_width)),
                "height": _fmt(_float(root, "height", vp_height)),
                "viewBox": f"0 0 {_fmt(vp_width)} {_fmt(vp_height)}",
            },
        )
        container = svg
        alpha = _float(root, "alpha", 1.0)
        if alpha < 1.0:
            container = ET.SubElement(svg, "g", {"opacity": _fmt(alpha)})

        self.convert_children(root, container)

        if len(self.defs):
            svg.insert(0, self.defs)
        return svg

    def convert_children(self, source: ET.Element, target: ET.Element) -> None:
        for child in source:
            if child.tag == "group":
                self.convert_group(child, target)
            elif child.tag == "path":
                self.convert_path(child, target)
            elif child.tag == "clip-path":
                # A clip-path clips the siblings that follow it.
                clip_id = self.next_id("clip")
                clip = ET.SubElement(self.defs, "clipPath", {"id": clip_id})
                ET.SubElement(clip, "path", {"d": _attr(child, "pathData", "") or ""})
                target = ET.SubElement(target, "g", {"clip-path": f"url(#{clip_id})"})

    def convert_group(self, group: ET.Element, target: ET.Element) -> None:
        pivot_x = _float(group, "pivotX", 0)
        pivot_y = _float(group, "pivotY", 0)
        translate_x = _float(group, "translateX", 0)
        translate_y = _float(group, "translateY", 0)
        rotation = _float(group, "rotation", 0)
        scale_x = _float(group, "scaleX", 1)
        scale_y = _float(group, "scaleY", 1)

        transforms = []
        if translate_x + pivot_x or translate_y + pivot_y:
            transforms.append(
                f"translate({_fmt(translate_x + pivot_x)},"
                f"{_fmt(translate_y + pivot_y)})"
            )
        if rotation:
            transforms.append(f"rotate({_fmt(rotation)})")
        if scale_x != 1 or scale_y != 1:
            transforms.append(f"scale({_fmt(scale_x)},{_fmt(scale_y)})")
        if pivot_x or pivot_y:
            transforms.append(f"translate({_fmt(-pivot_x)},{_fmt(-pivot_y)})")

        attrs = {"transform": " ".join(transforms)} if transforms else {}
        self.convert_children(group, ET.SubElement(target, "g", attrs))

    def convert_path(self, path: ET.Element, target: ET.Element) -> None:
        attrs = {"d": _attr(path, "pathData", "") or ""}

        fill = self.paint(path, "fillColor", "fillAlpha")
        attrs.update(fill or {"fill": "none"})
        if fill_type := _attr(path, "fillType"):
            attrs["fill-rule"] = FILL_RULES.get(fill_type, "nonzero")

        stroke = self.paint(path, "strokeColor", "strokeAlpha", svg_prefix="stroke")
        if stroke:
            attrs.update(stroke)
            attrs["stroke-width"] = _fmt(_float(path, "strokeWidth", 0))
            if cap := _attr(path, "strokeLineCap"):
                attrs["stroke-linecap"] = LINE_CAPS.get(cap, cap)
            if join := _attr(path, "strokeLineJoin"):
                attrs["stroke-linejoin"] = LINE_JOINS.get(join, join)
            if _attr(path, "strokeMiterLimit") is not None:
                attrs["stroke-miterlimit"] = _fmt(_float(path, "strokeMiterLimit", 4))

        ET.SubElement(target, "path", attrs)

    def paint(
        self,
        path: ET.Element,
        color_attr: str,
        alpha_attr: str,
        svg_prefix: str = "fill",
    ) -> dict[str, str] | None:
        alpha = _float(path, alpha_attr, 1.0)

        gradient = self.inline_gradient(path, color_attr)
        if gradient is not None:
            paint = {svg_prefix: f"url(#{gradient})"}
            if alpha < 1.0:
                paint[f"{svg_prefix}-opacity"] = _fmt(alpha)
            return paint

        color = self.resolve_color(_attr(path, color_attr))
        if not color or not (split := _split_color(color)):
            return None
        rgb, opacity = split
        if opacity * alpha <= 0:
            return None

        paint = {svg_prefix: rgb}
        if opacity * alpha < 1.0:
            paint[f"{svg_prefix}-opacity"] = _fmt(round(opacity * alpha, 4))
        return paint

    def inline_gradient(self, path: ET.Element, color_attr: str) -> str | None:
        """Convert an ``<aapt:attr name="android:<attr>"><gradient>`` child."""
        for attr in path.findall(f"{{{AAPT_NS}}}attr"):
            if attr.get("name") != f"android:{color_attr}":
                continue
            gradient = attr.find("gradient")
            if gradient is not None:
                return self.convert_gradient(gradient)
        return None

    def convert_gradient(self, gradient: ET.Element) -> str:
        kind = _attr(gradient, "type", "linear")
        gradient_id = self.next_id("gradient")

        if kind in ("radial", "1"):
            elem = ET.SubElement(
                self.defs,
                "radialGradient",
                {
                    "id": gradient_id,
                    "gradientUnits": "userSpaceOnUse",
                    "cx": _fmt(_float(gradient, "centerX", 0)),
                    "cy": _fmt(_float(gradient, "centerY", 0)),
                    "r": _fmt(_float(gradient, "gradientRadius", 0)),
                },
            )
        elif kind in ("linear", "0"):
            elem = ET.SubElement(
                self.defs,
                "linearGradient",
                {
                    "id": gradient_id,
                    "gradientUnits": "userSpaceOnUse",
                    "x1": _fmt(_float(gradient, "startX", 0)),
                    "y1": _fmt(_float(gradient, "startY", 0)),
                    "x2": _fmt(_float(gradient, "endX", 0)),
                    "y2": _fmt(_float(gradient, "endY", 0)),
                },
            )
        else:
            raise ConversionFailure(f"Unsupported gradient type: {kind!r}")

        stops: list[tuple[float, str | None]] = []
        items = gradient.findall("item")
        if items:
            for item in items:
                stops.append((_float(item, "offset", 0), _attr(item, "color")))
        else:
            stops.append((0.0, _attr(gradient, "startColor")))
            if _attr(gradient, "centerColor"):
                stops.append((0.5, _attr(gradient, "centerColor")))
            stops.append((1.0, _attr(gradient, "endColor")))

        for offset, raw_color in stops:
            color = self.resolve_color(raw_color)
            rgb, opacity = (color and _split_color(color)) or ("#000000", 1.0)
            stop = {"offset": _fmt(offset), "stop-color": rgb}
            if opacity < 1.0:
                stop["stop-opacity"] = _fmt(round(opacity, 4))
            ET.SubElement(elem, "stop", stop)

        return gradient_id


def color_references(xml_text: str) -> set[str]:
    """Collect ``@``/``?`` color references a vector needs resolved."""
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError:
        return set()

    refs = set()
    for elem in root.iter():
        for key, value in elem.attrib.items():
            if key.startswith(f"{{{ANDROID_NS}}}") and key.endswith("Color"):
                if value.startswith("@"):
                    refs.add(value)
            elif key == _a("color") and value.startswith("@"):
                refs.add(value)
    return refs


def vector_to_svg(xml_text: str, colors: Mapping[str, str] | None = None) -> str:
    """Convert VectorDrawable XML text to an SVG document string.

    Args:
        xml_text: Text XML whose root is ``<vector>``.
        colors: Pre-resolved values for ``@color/...`` references.

    Raises:
        ConversionFailure: If the input is empty, malformed or not a vector.
    """
    if not xml_text.strip():
        raise ConversionFailure("Vector drawable is empty")

    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError as e:
        raise ConversionFailure(f"Malformed vector drawable: {e}") from e

    svg = _Converter(colors or {}).convert(root)
    return ET.tostring(svg, encoding="unicode")


def convert_vector_drawable(
    xml_path: Path, svg_path: Path, colors: Mapping[str, str] | None = None
) -> Path:
    """Convert a VectorDrawable file to an SVG file.

    Raises:
        ConversionFailure: If the input is unreadable, empty or malformed.
    """
    try:
        xml_text = xml_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ConversionFailure(f"Could not read {xml_path}: {e}") from e

    svg_text = vector_to_svg(xml_text, colors)
    svg_path.parent.mkdir(parents=True, exist_ok=True)
    svg_path.write_text(svg_text, encoding="utf-8")
    return svg_path
