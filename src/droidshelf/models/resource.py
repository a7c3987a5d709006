"""Pydantic models for resource references and materialized icon layers."""

from pathlib import Path
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from droidshelf.models.apk import EntryFormat


class ResourceName(BaseModel):
    """A ``type/name`` pair from a resource table."""

    model_config = ConfigDict(frozen=True)

    type: str
    name: str

    def __str__(self) -> str:
        return f"{self.type}/{self.name}"


class ById(BaseModel):
    """Numeric reference such as ``@0x7f0d0000``."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["id"] = "id"
    resource_id: str
    """Lower-case hex id without the ``0x`` prefix."""


class ByTypeName(BaseModel):
    """Symbolic reference such as ``@mipmap/ic_launcher``."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["type_name"] = "type_name"
    type: str
    name: str
    platform: bool = False
    """True for framework resources (``@android:color/white``)."""

    def __str__(self) -> str:
        prefix = "android:" if self.platform else ""
        return f"@{prefix}{self.type}/{self.name}"


class ByPath(BaseModel):
    """Reference already given as an archive path (``res/mipmap-hdpi/ic.png``)."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["path"] = "path"
    path: str


class ColorLiteral(BaseModel):
    """Inline hex color; terminal, needs no lookup."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["literal"] = "literal"
    color: str


ResourceReference = Annotated[
    Union[ById, ByTypeName, ByPath, ColorLiteral],
    Field(discriminator="kind"),
]

Rgba = tuple[int, int, int, int]


class RasterLayer(BaseModel):
    """Raster image extracted into the workspace."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["raster"] = "raster"
    path: Path
    format: EntryFormat


class VectorLayer(BaseModel):
    """Vector drawable converted to SVG."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["vector"] = "vector"
    svg_path: Path


class ColorLayer(BaseModel):
    """Solid color fill."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["color"] = "color"
    rgba: Rgba


IconLayer = Annotated[
    Union[RasterLayer, VectorLayer, ColorLayer],
    Field(discriminator="kind"),
]
