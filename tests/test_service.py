"""End-to-end tests of the resolution service against a fake device."""

from pathlib import Path

import PIL.Image
import pytest
from fakes import ANDROID_NS, FakeAapt, FakeADB, png_bytes, write_apk

from droidshelf.core.compositor import CANVAS_SIZE, PillowCompositor
from droidshelf.core.service import ResolutionService, pick_base_path
from droidshelf.exceptions import (
    PackageNotFoundError,
    ResolutionMiss,
    ToolNotFoundError,
)
from droidshelf.models.package import EventName, IconUpdate, LabelUpdate

APP = "com.example.app"
SPLIT_APP = "com.example.split"
BROKEN = "com.example.broken"
NO_ICON = "com.example.noicon"

BADGING = """\
package: name='com.example.app' versionCode='1' versionName='1.0'
application-label:'Example'
application-label-es:'Ejemplo'
application-icon-160:'res/mipmap-mdpi-v4/ic_launcher.png'
application-icon-480:'res/mipmap-xxhdpi-v4/ic_launcher.png'
"""
SPLIT_BADGING = """\
package: name='com.example.split' versionCode='1' versionName='1.0'
application-label:'Split'
application-icon-65535:'res/mipmap-anydpi-v26/ic_launcher.xml'
"""
NO_ICON_BADGING = """\
package: name='com.example.noicon' versionCode='1' versionName='1.0'
application-label:'No Icon'
application-icon-480:'res/mipmap-xxhdpi-v4/missing.png'
"""
SPLIT_RESOURCES = """\
    resource 0x7f010000 color/ic_launcher_background
      () #FF00FF00
    resource 0x7f0d0001 mipmap/ic_launcher_foreground
"""
ADAPTIVE = f"""\
<adaptive-icon xmlns:android="{ANDROID_NS}">
    <background android:drawable="@color/ic_launcher_background"/>
    <foreground android:drawable="@0x7f0d0001"/>
</adaptive-icon>
"""


def _remote(package: str, name: str) -> str:
    return f"/data/app/{package}-1/{name}"


@pytest.fixture
def device(tmp_path: Path) -> FakeADB:
    root = tmp_path / "device"
    files = {
        _remote(APP, "base.apk"): write_apk(
            root / APP / "base.apk",
            {
                "res/mipmap-mdpi-v4/ic_launcher.png": png_bytes((48, 48)),
                "res/mipmap-xxhdpi-v4/ic_launcher.png": png_bytes((144, 144)),
            },
        ),
        _remote(SPLIT_APP, "base.apk"): write_apk(
            root / SPLIT_APP / "base.apk",
            {"res/mipmap-anydpi-v26/ic_launcher.xml": ADAPTIVE},
        ),
        _remote(SPLIT_APP, "split_config.xxhdpi.apk"): write_apk(
            root / SPLIT_APP / "split_config.xxhdpi.apk",
            {
                "res/mipmap-xxhdpi-v4/ic_launcher_foreground.png": png_bytes(
                    (100, 100), inset=25
                )
            },
        ),
        _remote(BROKEN, "base.apk"): write_apk(root / BROKEN / "base.apk", {}),
        _remote(NO_ICON, "base.apk"): write_apk(root / NO_ICON / "base.apk", {}),
    }
    packages = {
        APP: [_remote(APP, "base.apk")],
        SPLIT_APP: [
            _remote(SPLIT_APP, "base.apk"),
            _remote(SPLIT_APP, "split_config.xxhdpi.apk"),
        ],
        BROKEN: [_remote(BROKEN, "base.apk")],
        NO_ICON: [_remote(NO_ICON, "base.apk")],
    }
    return FakeADB(packages, files)


@pytest.fixture
def aapt() -> FakeAapt:
    return FakeAapt(
        badging={APP: BADGING, SPLIT_APP: SPLIT_BADGING, NO_ICON: NO_ICON_BADGING},
        resources={SPLIT_APP: SPLIT_RESOURCES},
    )


@pytest.fixture
def service(settings, device, aapt) -> ResolutionService:
    return ResolutionService(settings, device, aapt, PillowCompositor())


@pytest.fixture
def events(service):
    received = []
    service.events.subscribe_all(lambda *args: received.append(args))
    return received


def _for(events, package):
    result = []
    for event, payload in events:
        name = payload if isinstance(payload, str) else payload.package
        if name == package:
            result.append((event, payload))
    return result


def test_pick_base_path():
    paths = ["/data/app/x/split_a.apk", "/data/app/x/base.apk"]
    assert pick_base_path(paths) == "/data/app/x/base.apk"
    assert pick_base_path(["/data/app/x/only.apk"]) == "/data/app/x/only.apk"


class TestListing:
    @pytest.mark.asyncio
    async def test_initial_listing_uses_package_names(self, service):
        listings = await service.list_packages_for_current_device()

        expected = sorted([APP, SPLIT_APP, BROKEN, NO_ICON])
        assert [p.package for p in listings] == expected
        for listing in listings:
            assert listing.display_name == listing.package
            assert not listing.has_label
            assert not listing.has_icon
            assert listing.icon_url == ""

        await service.wait_idle()

    @pytest.mark.asyncio
    async def test_label_then_icon_events(self, service, events):
        await service.list_packages_for_current_device()
        await service.wait_idle()

        app_events = _for(events, APP)
        assert [event for event, _ in app_events] == [
            EventName.LABEL_STARTED,
            EventName.LABEL_UPDATED,
            EventName.ICON_STARTED,
            EventName.ICON_UPDATED,
        ]
        label_update = app_events[1][1]
        assert label_update == LabelUpdate(package=APP, name="Ejemplo", success=True)
        icon_update = app_events[3][1]
        assert isinstance(icon_update, IconUpdate)
        assert icon_update.success
        assert icon_update.icon_url.startswith("file://")

        listing = service.listing_for(APP)
        assert listing.display_name == "Ejemplo"
        assert listing.has_label
        assert listing.has_icon

    @pytest.mark.asyncio
    async def test_highest_density_raster_is_cached(self, service):
        path = await service.get_icon(APP)

        assert path == service.icon_cache.icon_dir / f"{APP}.png"
        with PIL.Image.open(path) as image:
            assert image.size == (144, 144)

    @pytest.mark.asyncio
    async def test_label_failure_is_reported_without_icon(self, service, events):
        await service.list_packages_for_current_device()
        await service.wait_idle()

        broken = _for(events, BROKEN)
        assert [event for event, _ in broken] == [
            EventName.LABEL_STARTED,
            EventName.LABEL_UPDATED,
        ]
        assert broken[1][1] == LabelUpdate(package=BROKEN, name=BROKEN, success=False)
        assert not service.listing_for(BROKEN).has_label
        assert BROKEN not in service.icon_queue.tasks

    @pytest.mark.asyncio
    async def test_icon_failure_is_reported(self, service, events):
        await service.list_packages_for_current_device()
        await service.wait_idle()

        updates = [p for e, p in _for(events, NO_ICON) if e == EventName.ICON_UPDATED]
        assert updates == [IconUpdate(package=NO_ICON, icon_url="", success=False)]
        assert service.listing_for(NO_ICON).display_name == "No Icon"
        assert not service.listing_for(NO_ICON).has_icon

    @pytest.mark.asyncio
    async def test_second_listing_queues_nothing_resolved(self, service, events):
        await service.list_packages_for_current_device()
        await service.wait_idle()
        before = len(events)

        listings = {
            p.package: p for p in await service.list_packages_for_current_device()
        }
        await service.wait_idle()

        assert listings[APP].has_label and listings[APP].has_icon
        resolved = {APP, SPLIT_APP, NO_ICON}
        assert not any(
            (p if isinstance(p, str) else p.package) in resolved
            and e in (EventName.LABEL_STARTED, EventName.LABEL_UPDATED)
            for e, p in events[before:]
        )
        assert not _for(events[before:], APP)

    @pytest.mark.asyncio
    async def test_workspaces_are_removed(self, service, settings):
        await service.list_packages_for_current_device()
        await service.wait_idle()

        assert list(settings.scratch_dir.iterdir()) == []

    @pytest.mark.asyncio
    async def test_unexpected_icon_error_still_reports(
        self, service, events, monkeypatch
    ):
        async def crash(package):
            raise RuntimeError("decoder exploded")

        monkeypatch.setattr(service, "extract_icon", crash)

        service.queue_icons([APP], labels=frozenset({APP}))
        await service.wait_idle()

        assert [e for e, _ in _for(events, APP)] == [
            EventName.ICON_STARTED,
            EventName.ICON_UPDATED,
        ]
        assert _for(events, APP)[1][1] == IconUpdate(
            package=APP, icon_url="", success=False
        )

    @pytest.mark.asyncio
    async def test_unexpected_label_error_still_reports(
        self, service, events, monkeypatch
    ):
        async def crash(package):
            raise RuntimeError("decoder exploded")

        monkeypatch.setattr(service, "extract_label", crash)

        service.queue_labels([APP])
        await service.wait_idle()

        assert _for(events, APP) == [
            (EventName.LABEL_STARTED, APP),
            (
                EventName.LABEL_UPDATED,
                LabelUpdate(package=APP, name=APP, success=False),
            ),
        ]

    @pytest.mark.asyncio
    async def test_oversized_adaptive_layer_still_caches_icon(
        self, service, events, monkeypatch
    ):
        monkeypatch.setattr(PIL.Image, "MAX_IMAGE_PIXELS", 1000)

        service.queue_icons([SPLIT_APP], labels=frozenset({SPLIT_APP}))
        await service.wait_idle()

        updates = [
            p for e, p in _for(events, SPLIT_APP) if e == EventName.ICON_UPDATED
        ]
        assert len(updates) == 1
        assert updates[0].success
        assert service.icon_cache.lookup(SPLIT_APP).suffix == ".png"


class TestIcons:
    @pytest.mark.asyncio
    async def test_cached_icon_needs_no_tools(self, service, device, aapt):
        first = await service.get_icon(APP)
        device_calls, aapt_calls = len(device.calls), len(aapt.calls)

        second = await service.get_icon(APP)

        assert first == second
        assert len(device.calls) == device_calls
        assert len(aapt.calls) == aapt_calls

    @pytest.mark.asyncio
    async def test_adaptive_icon_with_foreground_in_split(self, service, device):
        path = await service.get_icon(SPLIT_APP)

        pulls = [call[1] for call in device.calls if call[0] == "pull"]
        assert pulls == [
            _remote(SPLIT_APP, "base.apk"),
            _remote(SPLIT_APP, "split_config.xxhdpi.apk"),
        ]
        assert path.suffix == ".png"
        with PIL.Image.open(path) as image:
            rgba = image.convert("RGBA")
        center = CANVAS_SIZE // 2
        assert rgba.getpixel((0, 0)) == (0, 255, 0, 255)
        assert rgba.getpixel((center, center)) == (255, 0, 0, 255)

    @pytest.mark.asyncio
    async def test_raster_in_base_skips_split_pull(self, service, device):
        await service.get_icon(APP)

        pulls = [call[1] for call in device.calls if call[0] == "pull"]
        assert pulls == [_remote(APP, "base.apk")]

    @pytest.mark.asyncio
    async def test_failed_extraction_cleans_up(self, service, settings):
        with pytest.raises(ResolutionMiss):
            await service.extract_icon(NO_ICON)

        assert service.icon_cache.lookup(NO_ICON) is None
        assert list(settings.scratch_dir.iterdir()) == []

    @pytest.mark.asyncio
    async def test_unknown_package(self, service):
        with pytest.raises(PackageNotFoundError):
            await service.get_icon("com.example.missing")

    @pytest.mark.asyncio
    async def test_icons_disabled_without_aapt(self, settings, device):
        service = ResolutionService(settings, device, None)

        assert not service.icons_enabled
        assert service.queue_icons([APP], labels=frozenset({APP})) == []
        with pytest.raises(ToolNotFoundError):
            await service.extract_icon(APP)


class TestLabels:
    @pytest.mark.asyncio
    async def test_get_label_caches(self, service, aapt):
        assert await service.get_label(APP) == "Ejemplo"
        calls = len(aapt.calls)

        assert await service.get_label(APP) == "Ejemplo"
        assert len(aapt.calls) == calls
        assert APP in service.label_cache.snapshot()

    @pytest.mark.asyncio
    async def test_labels_survive_restart(self, settings, device, aapt, service):
        await service.get_label(APP)

        restarted = ResolutionService(settings, device, aapt)
        assert restarted.listing_for(APP).display_name == "Ejemplo"


@pytest.mark.asyncio
async def test_launch(service, device):
    await service.launch(APP)
    assert ("launch", APP) in device.calls


def test_from_settings_requires_adb(settings, monkeypatch):
    monkeypatch.setattr("droidshelf.core.service.get_adb_command", lambda _: None)
    with pytest.raises(ToolNotFoundError):
        ResolutionService.from_settings(settings)
