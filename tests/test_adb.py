"""Tests for the ADB wrapper with a patched subprocess runner."""

from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from droidshelf.core.adb import ADBWrapper, is_base_apk, normalize_remote_path
from droidshelf.exceptions import (
    APKPullError,
    DeviceNotFoundError,
    PackageNotFoundError,
    ProcessError,
)
from droidshelf.models.apk import ApkRole
from droidshelf.models.device import DeviceState
from droidshelf.utils.process import ProcessResult

DEVICES = """\
List of devices attached
emulator-5554          device product:sdk_gphone64 model:Pixel_7 device:emu64a
"""


def result(stdout: str = "", returncode: int = 0) -> ProcessResult:
    return ProcessResult(
        command=["adb"], returncode=returncode, stdout=stdout, stderr=""
    )


def patched(*outputs):
    side_effect = [o if isinstance(o, Exception) else result(o) for o in outputs]
    return patch("droidshelf.core.adb.run_tool", new=AsyncMock(side_effect=side_effect))


@pytest.mark.asyncio
async def test_list_devices():
    with patched(DEVICES + "0123abcd   unauthorized usb:1-1\n") as run:
        devices = await ADBWrapper().list_devices()

    assert [d.id for d in devices] == ["emulator-5554", "0123abcd"]
    assert devices.devices[0].model == "Pixel_7"
    assert devices.devices[0].product == "sdk_gphone64"
    assert devices.devices[1].state == DeviceState.UNAUTHORIZED
    assert run.await_args.args[0] == ["adb", "devices", "-l"]


@pytest.mark.asyncio
async def test_ensure_device_selects_single_device():
    adb = ADBWrapper()
    with patched(DEVICES):
        device = await adb.ensure_device()

    assert device.id == "emulator-5554"
    assert adb.device_id == "emulator-5554"


@pytest.mark.parametrize(
    "output, message",
    [
        ("List of devices attached\n", "No ADB devices"),
        (DEVICES + "other   device\n", "Multiple devices"),
        ("List of devices attached\nx   unauthorized\n", "unauthorized"),
    ],
)
@pytest.mark.asyncio
async def test_ensure_device_errors(output, message):
    with patched(output), pytest.raises(DeviceNotFoundError, match=message):
        await ADBWrapper().ensure_device()


@pytest.mark.asyncio
async def test_commands_target_the_selected_device():
    with patched("package:com.b\npackage:com.a\npackage:com.a\n") as run:
        packages = await ADBWrapper("emulator-5554").list_packages()

    assert packages == ["com.a", "com.b"]
    command = run.await_args.args[0]
    assert command[:3] == ["adb", "-s", "emulator-5554"]
    assert command[-1] == "-3"


@pytest.mark.asyncio
async def test_apk_paths_are_normalized_and_cached():
    output = (
        "package:/data/app/com.a-1/base.apk\n"
        "package:/data/app/com.a-1/split_config.xxhdpi.apk\n"
    )
    adb = ADBWrapper("emulator-5554")
    with patched(output) as run:
        first = await adb.get_apk_paths("com.a")
        second = await adb.get_apk_paths("com.a")

    assert first == [
        "/data/app/com.a-1/base.apk",
        "/data/app/com.a-1/split_config.xxhdpi.apk",
    ]
    assert second == first
    assert run.await_count == 1


@pytest.mark.asyncio
async def test_apk_paths_of_unknown_package():
    with patched(ProcessError(["adb"], 1, "")):
        with pytest.raises(PackageNotFoundError):
            await ADBWrapper("emulator-5554").get_apk_paths("com.missing")

    with patched(""):
        with pytest.raises(PackageNotFoundError):
            await ADBWrapper("emulator-5554").get_apk_paths("com.empty")


@pytest.mark.asyncio
async def test_pull_failure(tmp_path: Path):
    with patched(ProcessError(["adb"], 1, "remote object does not exist")):
        with pytest.raises(APKPullError):
            await ADBWrapper("emulator-5554").pull("/x/base.apk", tmp_path / "a.apk")

    with patched(""):
        with pytest.raises(APKPullError, match="file not found"):
            await ADBWrapper("emulator-5554").pull("/x/base.apk", tmp_path / "b.apk")


class RecordingADB(ADBWrapper):
    async def pull(self, remote_path: str, local_path: Path) -> Path:
        local_path.parent.mkdir(parents=True, exist_ok=True)
        local_path.write_bytes(b"")
        return local_path


@pytest.mark.asyncio
async def test_pull_apks_orders_base_first_and_extends(tmp_path: Path):
    adb = RecordingADB("emulator-5554")
    splits = [
        "/data/app/com.a-1/split_config.xxhdpi.apk",
        "/data/app/com.a-1/split_config.arm64_v8a.apk",
    ]

    pulled = await adb.pull_apks("com.a", ["/data/app/com.a-1/base.apk"], tmp_path)
    assert [apk.local_path.name for apk in pulled.apks] == ["base.apk"]

    pulled = await adb.pull_apks(
        "com.a", splits + ["/data/app/com.a-1/base.apk"], tmp_path, existing=pulled
    )

    assert [apk.local_path.name for apk in pulled.apks] == [
        "base.apk",
        "split_config.arm64_v8a.apk",
        "split_config.xxhdpi.apk",
    ]
    assert pulled.base.role == ApkRole.BASE
    assert pulled.remote_paths == set(splits) | {"/data/app/com.a-1/base.apk"}


@pytest.mark.asyncio
async def test_pull_apks_without_base_promotes_first(tmp_path: Path):
    adb = RecordingADB("emulator-5554")

    pulled = await adb.pull_apks("com.a", ["/data/app/com.a-1/only.apk"], tmp_path)

    assert pulled.base is not None
    assert pulled.base.local_path.name == "only.apk"


@pytest.mark.asyncio
async def test_launch_app():
    with patched("Events injected: 1") as run:
        await ADBWrapper("emulator-5554").launch_app("com.example.app")

    command = run.await_args.args[0]
    assert "monkey" in command
    assert "com.example.app" in command


@pytest.mark.asyncio
async def test_launch_rejects_invalid_package():
    with pytest.raises(PackageNotFoundError):
        await ADBWrapper("emulator-5554").launch_app("com.example; reboot")


def test_remote_path_helpers():
    assert normalize_remote_path(" package:/data/app/x/base.apk ") == (
        "/data/app/x/base.apk"
    )
    assert is_base_apk("/data/app/x/base.apk")
    assert not is_base_apk("/data/app/x/split_config.en.apk")
