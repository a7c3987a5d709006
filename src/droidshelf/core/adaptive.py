"""Flatten adaptive icons (background + foreground) into one cached image."""

import logging
import re
import xml.etree.ElementTree as ET
from collections.abc import Sequence
from pathlib import Path

from droidshelf.core.cache import IconCache, sanitize_package_id
from droidshelf.core.compositor import CANVAS_SIZE, Compositor
from droidshelf.core.materializer import DrawableMaterializer
from droidshelf.core.resolver import LAYER_EXTENSIONS, parse_resource_value
from droidshelf.exceptions import ConversionFailure, ResolutionMiss
from droidshelf.models.apk import ApkFile
from droidshelf.models.resource import (
    ColorLayer,
    IconLayer,
    RasterLayer,
    VectorLayer,
)

logger = logging.getLogger(__name__)

LAYER_ATTR_RE = re.compile(
    r"""android:(?:drawable|src)\s*=\s*(?:"([^"]+)"|'([^']+)')""", re.IGNORECASE
)
ADAPTIVE_ROOT_RE = re.compile(r"<adaptive-icon\b", re.IGNORECASE)


def _block_re(tag: str) -> re.Pattern[str]:
    return re.compile(
        rf"<{tag}\b([^>]*?)>(.*?)</{tag}\s*>", re.IGNORECASE | re.DOTALL
    )


def _self_closing_re(tag: str) -> re.Pattern[str]:
    return re.compile(rf"<{tag}\b([^>]*?)/>", re.IGNORECASE | re.DOTALL)


def extract_layer_reference(xml_text: str, tag: str) -> str | None:
    """Return the drawable reference of ``<background>``/``<foreground>``.

    The first self-closing or block occurrence of the tag is used. Its
    ``android:drawable``/``android:src`` attribute wins; a block without one
    yields the first such attribute of a nested drawable, then an inline
    ``android:color``.
    """
    if not xml_text or not tag:
        return None

    candidates = []
    if match := _self_closing_re(tag).search(xml_text):
        candidates.append((match.start(), match.group(1), ""))
    if match := _block_re(tag).search(xml_text):
        candidates.append((match.start(), match.group(1), match.group(2)))
    if not candidates:
        return None

    _, attrs, body = min(candidates, key=lambda c: c[0])
    if attr := LAYER_ATTR_RE.search(attrs):
        return attr.group(1) or attr.group(2)

    if attr := LAYER_ATTR_RE.search(body):
        return attr.group(1) or attr.group(2)

    color = re.search(
        r"""android:color\s*=\s*(?:"([^"]+)"|'([^']+)')""", body, re.IGNORECASE
    )
    if color:
        return color.group(1) or color.group(2)
    return None


def is_adaptive_icon(xml_text: str) -> bool:
    return ADAPTIVE_ROOT_RE.search(xml_text) is not None


def write_color_svg(
    layer: ColorLayer, destination: Path, size: int = CANVAS_SIZE
) -> Path:
    """Write a solid swatch of ``layer`` as a square SVG."""
    r, g, b, a = layer.rgba
    svg = ET.Element(
        "svg",
        {
            "xmlns": "http://www.w3.org/2000/svg",
            "width": str(size),
            "height": str(size),
            "viewBox": f"0 0 {size} {size}",
        },
    )
    rect = {
        "width": str(size),
        "height": str(size),
        "fill": f"#{r:02x}{g:02x}{b:02x}",
    }
    if a < 255:
        rect["fill-opacity"] = f"{a / 255:.4g}"
    ET.SubElement(svg, "rect", rect)

    destination.parent.mkdir(parents=True, exist_ok=True)
    destination.write_text(ET.tostring(svg, encoding="unicode"), encoding="utf-8")
    return destination


class AdaptiveIconComposer:
    """Composes adaptive icons and stores the result in the icon cache.

    With a compositor, the background and foreground are flattened onto a
    square PNG. Without one, or when compositing fails, the foreground alone
    is cached.
    """

    def __init__(
        self,
        materializer: DrawableMaterializer,
        compositor: Compositor | None,
        icon_cache: IconCache,
    ):
        self.materializer = materializer
        self.compositor = compositor
        self.icon_cache = icon_cache

    async def _layer(
        self, xml_text: str, tag: str, apks: Sequence[ApkFile]
    ) -> IconLayer | None:
        raw = extract_layer_reference(xml_text, tag)
        if raw is None:
            logger.debug("Adaptive icon has no %s layer", tag)
            return None

        reference = parse_resource_value(raw)
        if reference is None:
            logger.debug("Unparseable %s reference: %r", tag, raw)
            return None

        return await self.materializer.materialize_reference(
            reference, apks, LAYER_EXTENSIONS, depth=1
        )

    async def compose(
        self, xml_text: str, apks: Sequence[ApkFile], package: str
    ) -> Path:
        """Compose the adaptive icon described by ``xml_text``.

        Returns:
            Path of the cached icon file.

        Raises:
            ResolutionMiss: If the foreground layer cannot be resolved.
            ConversionFailure: If the foreground cannot be materialized.
        """
        foreground = await self._layer(xml_text, "foreground", apks)
        if foreground is None:
            raise ResolutionMiss(f"No foreground layer resolved for {package}")

        try:
            background = await self._layer(xml_text, "background", apks)
        except ConversionFailure as e:
            logger.warning("Dropping background of %s: %s", package, e)
            background = None

        scratch = self.materializer.workspace / "adaptive"
        if self.compositor is not None:
            destination = scratch / f"{sanitize_package_id(package)}.png"
            try:
                output = self.compositor.compose(background, foreground, destination)
            except ConversionFailure as e:
                logger.warning("Caching the foreground of %s alone: %s", package, e)
            else:
                return self.icon_cache.store(package, output)

        return self.store_layer(foreground, package, scratch)

    def store_layer(self, layer: IconLayer, package: str, scratch: Path) -> Path:
        """Cache a single layer; color layers become an SVG swatch."""
        if isinstance(layer, RasterLayer):
            return self.icon_cache.store(package, layer.path)
        if isinstance(layer, VectorLayer):
            return self.icon_cache.store(package, layer.svg_path)

        destination = scratch / f"{sanitize_package_id(package)}.svg"
        swatch = write_color_svg(layer, destination)
        return self.icon_cache.store(package, swatch)

