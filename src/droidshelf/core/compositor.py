"""Optional image compositing capability backed by Pillow and cairosvg."""

from __future__ import annotations

import functools
import io
import logging
from pathlib import Path
from typing import Protocol

from droidshelf.exceptions import ConversionFailure
from droidshelf.models.resource import ColorLayer, IconLayer, RasterLayer, VectorLayer

logger = logging.getLogger(__name__)

CANVAS_SIZE = 512


class Compositor(Protocol):
    """Flattens icon layers into a single square PNG."""

    def compose(
        self,
        background: IconLayer | None,
        foreground: IconLayer,
        destination: Path,
        size: int = CANVAS_SIZE,
    ) -> Path:
        """Draw ``foreground`` centered over ``background`` and save a PNG."""
        ...


class PillowCompositor:
    """Compositor using Pillow.

    The background image is scaled to cover the canvas and center-cropped;
    the foreground image is scaled to fit inside it, keeping aspect ratio
    and alpha. SVG layers are rasterized with cairosvg at canvas size first.
    Color layers fill the whole canvas.
    """

    def _open_rgba(self, layer: RasterLayer):
        import PIL.Image

        try:
            with PIL.Image.open(layer.path) as im:
                im.load()
                return im.convert("RGBA")
        except (
            PIL.UnidentifiedImageError,
            PIL.Image.DecompressionBombError,
            OSError,
        ) as e:
            raise ConversionFailure(f"Unable to load {layer.path.name}: {e}") from e

    def _rasterize(self, layer: VectorLayer, size: int):
        import PIL.Image

        try:
            import cairosvg
        except (ImportError, OSError) as e:
            # cairosvg raises OSError when the cairo library is missing
            raise ConversionFailure(f"cairosvg is unavailable: {e}") from e

        try:
            data = cairosvg.svg2png(
                url=str(layer.svg_path), output_width=size, output_height=size
            )
        except Exception as e:  # cairosvg raises assorted errors on bad SVG
            raise ConversionFailure(
                f"Unable to rasterize {layer.svg_path.name}: {e}"
            ) from e
        with PIL.Image.open(io.BytesIO(data)) as im:
            return im.convert("RGBA")

    def _image(self, layer: RasterLayer | VectorLayer, size: int):
        if isinstance(layer, VectorLayer):
            return self._rasterize(layer, size)
        return self._open_rgba(layer)

    def compose(
        self,
        background: IconLayer | None,
        foreground: IconLayer,
        destination: Path,
        size: int = CANVAS_SIZE,
    ) -> Path:
        import PIL.Image
        import PIL.ImageOps

        box = (size, size)
        if isinstance(background, (RasterLayer, VectorLayer)):
            canvas = PIL.ImageOps.fit(
                self._image(background, size), box, PIL.Image.Resampling.LANCZOS
            )
        elif isinstance(background, ColorLayer):
            canvas = PIL.Image.new("RGBA", box, background.rgba)
        else:
            canvas = PIL.Image.new("RGBA", box, (0, 0, 0, 0))

        if isinstance(foreground, (RasterLayer, VectorLayer)):
            image = PIL.ImageOps.contain(
                self._image(foreground, size), box, PIL.Image.Resampling.LANCZOS
            )
            offset = ((size - image.width) // 2, (size - image.height) // 2)
            canvas.alpha_composite(image, dest=offset)
        elif isinstance(foreground, ColorLayer):
            canvas.alpha_composite(PIL.Image.new("RGBA", box, foreground.rgba))

        destination.parent.mkdir(parents=True, exist_ok=True)
        try:
            canvas.save(destination, "PNG")
        except OSError as e:
            raise ConversionFailure(f"Unable to write {destination}: {e}") from e
        return destination


@functools.lru_cache(maxsize=None)
def have_pillow() -> bool:
    """Memoised check for Pillow."""
    try:
        import PIL.Image
        import PIL.ImageOps

        PIL.Image.Image
        PIL.ImageOps.contain
    except (ImportError, AttributeError):
        logger.warning("Unable to import Pillow; adaptive icons will not be composited")
        return False
    return True


def get_compositor(enabled: bool = True) -> Compositor | None:
    """Return the compositing capability, or None when disabled or unavailable."""
    if not enabled or not have_pillow():
        return None
    return PillowCompositor()
