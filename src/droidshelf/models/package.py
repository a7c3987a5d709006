"""Pydantic models for package listings, extraction tasks and their events."""

from enum import StrEnum

from pydantic import BaseModel, ConfigDict

ANY_DENSITY = 65535
"""Badging density sentinel for density-independent icons."""


class BadgingIcon(BaseModel):
    """One ``application-icon-<density>`` line from a badging dump."""

    model_config = ConfigDict(frozen=True)

    density: int
    value: str

    @property
    def score(self) -> float:
        return float("inf") if self.density == ANY_DENSITY else float(self.density)

    @property
    def is_raster(self) -> bool:
        return self.value.lower().endswith((".png", ".webp", ".jpg", ".jpeg"))


class TaskKind(StrEnum):
    """Which extraction queue a task belongs to."""

    LABEL = "label"
    ICON = "icon"


class TaskStatus(StrEnum):
    """Lifecycle of an extraction task."""

    QUEUED = "queued"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class ExtractionTask(BaseModel):
    """A queued request to resolve one package's label or icon."""

    package: str
    kind: TaskKind
    status: TaskStatus = TaskStatus.QUEUED

    @property
    def settled(self) -> bool:
        return self.status in (TaskStatus.COMPLETED, TaskStatus.FAILED)


class PackageListing(BaseModel):
    """One row of the package list handed to the UI."""

    package: str
    """Full package name (e.g., com.example.app)."""

    display_name: str
    """Cached label, or the package name while unresolved."""

    has_label: bool
    icon_url: str = ""
    """``file://`` URL of the cached icon, empty when missing."""

    has_icon: bool = False


class LabelUpdate(BaseModel):
    """Payload of ``label_extraction_updated``."""

    package: str
    name: str
    success: bool


class IconUpdate(BaseModel):
    """Payload of ``icon_extraction_updated``."""

    package: str
    icon_url: str
    success: bool


class EventName(StrEnum):
    """Events emitted to the UI layer."""

    LABEL_STARTED = "label_extraction_started"
    LABEL_UPDATED = "label_extraction_updated"
    ICON_STARTED = "icon_extraction_started"
    ICON_UPDATED = "icon_extraction_updated"
