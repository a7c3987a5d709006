"""Resolution service: label and icon pipelines behind two work queues."""

from __future__ import annotations

import contextlib
import logging
import tempfile
from collections.abc import Iterable, Iterator
from pathlib import Path

from droidshelf.core.aapt import Aapt2
from droidshelf.core.adaptive import AdaptiveIconComposer, is_adaptive_icon
from droidshelf.core.adb import ADBWrapper, is_base_apk
from droidshelf.core.archive import ApkArchive
from droidshelf.core.badging import (
    parse_application_icons,
    parse_label,
    select_best_icon,
)
from droidshelf.core.cache import IconCache, LabelCache, sanitize_package_id
from droidshelf.core.compositor import Compositor, get_compositor
from droidshelf.core.materializer import DrawableMaterializer
from droidshelf.core.queue import EventEmitter, ExtractionQueue
from droidshelf.core.resolver import (
    DEFAULT_EXTENSIONS,
    RASTER_EXTENSIONS,
    ResourceResolver,
    parse_resource_value,
)
from droidshelf.core.resources import ResourceTableCache
from droidshelf.exceptions import (
    DroidshelfError,
    ProcessError,
    ResolutionMiss,
    ToolNotFoundError,
)
from droidshelf.models.apk import EntryFormat, PulledApks
from droidshelf.models.package import (
    EventName,
    IconUpdate,
    LabelUpdate,
    PackageListing,
    TaskKind,
)
from droidshelf.utils.config import Settings, load_settings
from droidshelf.utils.deps import (
    TOOL_INSTALL_HINTS,
    get_aapt2_command,
    get_adb_command,
)

logger = logging.getLogger(__name__)


def pick_base_path(remote_paths: list[str]) -> str:
    """The ``base.apk`` path, or the first path if none is named so."""
    return next((path for path in remote_paths if is_base_apk(path)), remote_paths[0])


class ResolutionService:
    """Owns the caches, queues and tools of one launcher session.

    Labels are resolved first; a package only enters the icon queue once
    its label is known. Every processed package emits an ``*_updated``
    event, also on failure.
    """

    def __init__(
        self,
        settings: Settings,
        adb: ADBWrapper,
        aapt: Aapt2 | None,
        compositor: Compositor | None = None,
        *,
        events: EventEmitter | None = None,
        archive: ApkArchive | None = None,
    ):
        self.settings = settings
        self.adb = adb
        self.aapt = aapt
        self.compositor = compositor
        self.events = events or EventEmitter()
        self.archive = archive or ApkArchive()

        self.tables = ResourceTableCache(aapt) if aapt is not None else None
        self.resolver = (
            ResourceResolver(self.archive, self.tables)
            if self.tables is not None
            else None
        )

        self.label_cache = LabelCache(settings.prefs_path)
        self.icon_cache = IconCache(settings.icon_dir)

        self.label_queue = ExtractionQueue(
            TaskKind.LABEL,
            self._process_label,
            should_enqueue=lambda package: package not in self.label_cache,
        )
        self.icon_queue = ExtractionQueue(
            TaskKind.ICON,
            self._process_icon,
            should_enqueue=lambda package: self.icon_cache.lookup(package) is None,
        )

    @classmethod
    def from_settings(
        cls, settings: Settings | None = None, device_id: str | None = None
    ) -> ResolutionService:
        """Build a service with tools discovered from settings and PATH.

        Raises:
            ToolNotFoundError: If adb cannot be found.
        """
        settings = settings or load_settings()

        adb_command = get_adb_command(settings.adb_path)
        if adb_command is None:
            raise ToolNotFoundError("adb", TOOL_INSTALL_HINTS["adb"])

        aapt_command = get_aapt2_command(settings.aapt2_path)
        if aapt_command is None:
            logger.warning(
                "aapt2 not found: icon extraction is disabled and labels are "
                "read with pyaxmlparser"
            )

        adb = ADBWrapper(
            device_id,
            adb=adb_command,
            timeout=settings.tool_timeout,
            pull_timeout=settings.pull_timeout,
        )
        aapt = (
            Aapt2(aapt_command, timeout=settings.tool_timeout) if aapt_command else None
        )
        compositor = get_compositor(settings.compose_adaptive_icons)
        return cls(settings, adb, aapt, compositor)

    @property
    def icons_enabled(self) -> bool:
        return self.aapt is not None

    # Workspaces

    @contextlib.contextmanager
    def workspace(self, package: str) -> Iterator[Path]:
        """Per-attempt scratch directory, removed on every exit path."""
        root = self.settings.scratch_dir
        root.mkdir(parents=True, exist_ok=True)
        prefix = f"{sanitize_package_id(package)}-"
        with tempfile.TemporaryDirectory(prefix=prefix, dir=root) as tmp:
            yield Path(tmp)

    def forget(self, pulled: PulledApks) -> None:
        """Drop cached archive indexes and tables of a removed workspace."""
        for apk in pulled.apks:
            self.archive.forget(apk.local_path)
            if self.tables is not None:
                self.tables.forget(apk.local_path)

    # Listing

    async def list_packages_for_current_device(self) -> list[PackageListing]:
        """List user packages with cached labels and icons.

        Cache misses are queued for background extraction.

        Raises:
            DeviceNotFoundError: If no single usable device is connected.
        """
        await self.adb.ensure_device()
        packages = await self.adb.list_packages()

        listings = [self.listing_for(package) for package in packages]

        self.queue_labels(p.package for p in listings if not p.has_label)
        self.queue_icons(p.package for p in listings if not p.has_icon)
        return listings

    def listing_for(self, package: str) -> PackageListing:
        """Listing row built from the caches alone."""
        label = self.label_cache.get(package)
        icon_url = self.icon_cache.url_for(package)
        return PackageListing(
            package=package,
            display_name=label or package,
            has_label=label is not None,
            icon_url=icon_url,
            has_icon=bool(icon_url),
        )

    def queue_labels(self, packages: Iterable[str]) -> list[str]:
        return self.label_queue.enqueue(packages)

    def queue_icons(
        self, packages: Iterable[str], labels: frozenset[str] | None = None
    ) -> list[str]:
        """Queue icon extraction for packages whose label is resolved.

        Args:
            packages: Candidate packages.
            labels: Sanitized ids with a resolved label; defaults to a
                snapshot of the label cache.
        """
        if not self.icons_enabled:
            return []
        resolved = self.label_cache.snapshot() if labels is None else labels
        return self.icon_queue.enqueue(
            packages, gate=lambda package: sanitize_package_id(package) in resolved
        )

    async def wait_idle(self) -> None:
        """Wait until both queues are drained."""
        while self.label_queue.busy or self.icon_queue.busy:
            await self.label_queue.wait_idle()
            await self.icon_queue.wait_idle()

    # Labels

    async def _process_label(self, package: str) -> bool:
        if cached := self.label_cache.get(package):
            self.events.emit(
                EventName.LABEL_UPDATED,
                LabelUpdate(package=package, name=cached, success=True),
            )
            return True

        self.events.emit(EventName.LABEL_STARTED, package)

        label = None
        try:
            label = await self.extract_label(package)
        except (DroidshelfError, OSError) as e:
            logger.warning("Could not extract the label of %s: %s", package, e)
        except Exception:
            logger.warning("Label extraction crashed for %s", package, exc_info=True)

        if label:
            self.label_cache.remember(package, label)

        final = self.label_cache.get(package)
        self.events.emit(
            EventName.LABEL_UPDATED,
            LabelUpdate(package=package, name=final or package, success=bool(final)),
        )
        if final:
            self.queue_icons([package])
        return bool(final)

    async def get_label(self, package: str) -> str | None:
        """Cached label, extracting and caching it on a miss."""
        if cached := self.label_cache.get(package):
            return cached
        label = await self.extract_label(package)
        if label:
            self.label_cache.remember(package, label)
        return self.label_cache.get(package)

    async def extract_label(self, package: str) -> str | None:
        """Pull the base APK and read its application label."""
        remote_paths = await self.adb.get_apk_paths(package)
        base_remote = pick_base_path(remote_paths)

        with self.workspace(package) as workspace:
            pulled = await self.adb.pull_apks(package, [base_remote], workspace)
            try:
                base = pulled.base
                if base is None:
                    return None
                return await self.label_from_apk(base.local_path)
            finally:
                self.forget(pulled)

    async def label_from_apk(self, apk_path: Path) -> str | None:
        if self.aapt is not None:
            output = await self.aapt.dump_badging(apk_path)
            return parse_label(output, self.settings.label_locales)

        from pyaxmlparser import APK

        try:
            label = APK(str(apk_path)).application
        except Exception as e:  # pyaxmlparser raises bare exceptions on bad input
            raise ResolutionMiss(f"pyaxmlparser could not read {apk_path.name}") from e
        if not isinstance(label, str):
            return None
        return label.strip() or None

    # Icons

    async def _process_icon(self, package: str) -> bool:
        if self.icon_cache.lookup(package) is not None:
            self.events.emit(
                EventName.ICON_UPDATED,
                IconUpdate(
                    package=package,
                    icon_url=self.icon_cache.url_for(package),
                    success=True,
                ),
            )
            return True

        self.events.emit(EventName.ICON_STARTED, package)

        icon_path = None
        try:
            icon_path = await self.extract_icon(package)
        except (DroidshelfError, OSError) as e:
            logger.warning("Could not extract the icon of %s: %s", package, e)
        except Exception:
            logger.warning("Icon extraction crashed for %s", package, exc_info=True)

        icon_url = self.icon_cache.url_for(package) if icon_path else ""
        self.events.emit(
            EventName.ICON_UPDATED,
            IconUpdate(package=package, icon_url=icon_url, success=bool(icon_url)),
        )
        return bool(icon_url)

    async def get_icon(self, package: str) -> Path:
        """Cached icon path, extracting it on a miss.

        Raises:
            DroidshelfError: If extraction fails.
        """
        if cached := self.icon_cache.lookup(package):
            return cached
        return await self.extract_icon(package)

    async def extract_icon(self, package: str) -> Path:
        """Resolve, materialize and cache a package's icon.

        A raster-only pass over the base APK runs first; the splits are
        only pulled when it finds nothing.

        Raises:
            ToolNotFoundError: If aapt2 is unavailable.
            ResolutionMiss: If no icon could be located.
            ConversionFailure: If the icon could not be converted.
        """
        if not self.icons_enabled:
            raise ToolNotFoundError("aapt2", TOOL_INSTALL_HINTS["aapt2"])

        remote_paths = await self.adb.get_apk_paths(package)
        base_remote = pick_base_path(remote_paths)

        with self.workspace(package) as workspace:
            pulled = await self.adb.pull_apks(package, [base_remote], workspace)
            try:
                if path := await self.resolve_icon(package, pulled, raster_only=True):
                    return path

                remaining = [p for p in remote_paths if p != base_remote]
                if remaining:
                    pulled = await self.adb.pull_apks(
                        package, remaining, workspace, existing=pulled
                    )

                path = await self.resolve_icon(package, pulled)
                if path is None:
                    raise ResolutionMiss(f"No icon found for {package}")
                return path
            finally:
                self.forget(pulled)

    async def resolve_icon(
        self, package: str, pulled: PulledApks, raster_only: bool = False
    ) -> Path | None:
        """One resolution pass over the pulled APKs.

        The raster-only pass returns None instead of raising.
        """
        if self.aapt is None or self.resolver is None:
            raise ToolNotFoundError("aapt2", TOOL_INSTALL_HINTS["aapt2"])

        base = pulled.base
        if base is None:
            return None

        try:
            output = await self.aapt.dump_badging(base.local_path)
        except ProcessError:
            if raster_only:
                return None
            raise

        best = select_best_icon(parse_application_icons(output), raster_only)
        reference = parse_resource_value(best.value) if best else None
        if reference is None:
            if raster_only:
                return None
            raise ResolutionMiss(f"No usable icon reference for {package}")

        extensions = RASTER_EXTENSIONS if raster_only else DEFAULT_EXTENSIONS
        entry = await self.resolver.resolve(reference, pulled.apks, extensions)
        if entry is None or (raster_only and not entry.format.is_raster):
            if raster_only:
                return None
            raise ResolutionMiss(f"Icon {best.value} not found for {package}")

        materializer = DrawableMaterializer(
            self.archive, self.resolver, pulled.workspace, self.aapt
        )
        composer = AdaptiveIconComposer(materializer, self.compositor, self.icon_cache)

        if entry.format.is_raster or entry.format == EntryFormat.SVG:
            layer = await materializer.materialize(entry, pulled.apks)
        else:
            xml_text = await materializer.load_xml(entry)
            if is_adaptive_icon(xml_text):
                return await composer.compose(xml_text, pulled.apks, package)
            layer = await materializer.materialize_xml(
                xml_text, pulled.apks, source=entry.entry_path
            )

        if layer is None:
            raise ResolutionMiss(f"Icon {entry.entry_path} of {package} is empty")
        return composer.store_layer(layer, package, pulled.workspace)

    # Launching

    async def launch(self, package: str) -> None:
        await self.adb.ensure_device()
        await self.adb.launch_app(package)
