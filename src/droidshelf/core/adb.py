"""Async ADB wrapper for device, package and APK access."""

import logging
import re
from pathlib import Path, PurePosixPath

from droidshelf.exceptions import (
    APKPullError,
    PackageNotFoundError,
    ProcessError,
)
from droidshelf.models.apk import ApkFile, ApkRole, PulledApks
from droidshelf.models.device import Device, DeviceList
from droidshelf.utils.process import run_tool

logger = logging.getLogger(__name__)

PACKAGE_NAME_RE = re.compile(r"^[\w.]+$")
BASE_APK_RE = re.compile(r"base\.apk$", re.IGNORECASE)


def normalize_remote_path(raw: str) -> str:
    """Strip the ``package:`` prefix ``pm path`` puts on each line."""
    value = raw.strip()
    if value.startswith("package:"):
        value = value[len("package:") :].strip()
    return value


def is_base_apk(remote_path: str) -> bool:
    return bool(BASE_APK_RE.search(remote_path))


class ADBWrapper:
    """Wrapper for ADB commands, one instance per launcher session."""

    def __init__(
        self,
        device_id: str | None = None,
        *,
        adb: str = "adb",
        timeout: float | None = 60.0,
        pull_timeout: float | None = 180.0,
    ):
        """Initialize ADB wrapper.

        Args:
            device_id: Optional device ID to target. If None, ensure_device()
                selects the single connected device.
            adb: adb executable.
            timeout: Timeout for shell commands, in seconds.
            pull_timeout: Timeout for a single ``adb pull``, in seconds.
        """
        self.device_id = device_id
        self.adb = adb
        self.timeout = timeout
        self.pull_timeout = pull_timeout
        self._apk_paths: dict[str, list[str]] = {}

    async def _adb(
        self, *args: str, check: bool = True, timeout: float | None = None
    ) -> list[str]:
        """Run an ADB command against the target device and return output lines."""
        cmd = [self.adb]
        if self.device_id:
            cmd.extend(["-s", self.device_id])
        cmd.extend(args)

        result = await run_tool(cmd, check=check, timeout=timeout or self.timeout)
        return result.lines

    async def list_devices(self) -> DeviceList:
        """List all devices known to the adb server."""
        # Run without device selector
        result = await run_tool([self.adb, "devices", "-l"], timeout=self.timeout)
        return DeviceList.parse(result.stdout)

    async def ensure_device(self) -> Device:
        """Ensure exactly one usable device is targeted and return it.

        Raises:
            DeviceNotFoundError: If no device is connected, several are
                connected without a selection, or the device is unusable.
        """
        device = (await self.list_devices()).select(self.device_id)
        self.device_id = device.id
        return device

    async def list_packages(self, include_system: bool = False) -> list[str]:
        """List packages installed for user 0.

        Args:
            include_system: If True, include system packages.

        Returns:
            Sorted, de-duplicated package names.
        """
        cmd = ["shell", "pm", "list", "packages", "--user", "0"]
        if not include_system:
            cmd.append("-3")

        packages: set[str] = set()
        for line in await self._adb(*cmd):
            value = line.strip()
            if value.startswith("package:"):
                value = value[len("package:") :]
            name = re.split(r"[\s/]+", value.strip())[0]
            if name and PACKAGE_NAME_RE.match(name):
                packages.add(name)

        return sorted(packages)

    async def get_apk_paths(self, package_name: str) -> list[str]:
        """Get the on-device APK paths of a package (base and splits).

        Results are cached for the lifetime of the wrapper.

        Raises:
            PackageNotFoundError: If ``pm path`` fails or lists nothing.
        """
        package_name = package_name.strip()
        if package_name in self._apk_paths:
            return self._apk_paths[package_name]

        try:
            lines = await self._adb("shell", "pm", "path", package_name)
        except ProcessError as exc:
            raise PackageNotFoundError(package_name) from exc

        paths: list[str] = []
        for line in lines:
            remote = normalize_remote_path(line)
            if remote and remote not in paths:
                paths.append(remote)

        if not paths:
            raise PackageNotFoundError(package_name)

        self._apk_paths[package_name] = paths
        return paths

    async def pull(self, remote_path: str, local_path: Path) -> Path:
        """Pull a single file from the device.

        Raises:
            APKPullError: If the pull fails or leaves no file behind.
        """
        local_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            await self._adb(
                "pull", remote_path, str(local_path), timeout=self.pull_timeout
            )
        except ProcessError as e:
            raise APKPullError(f"Failed to pull {remote_path}: {e}") from e

        if not local_path.is_file():
            raise APKPullError(f"Pull succeeded but file not found: {local_path}")

        return local_path

    async def pull_apks(
        self,
        package_name: str,
        remote_paths: list[str],
        workspace: Path,
        existing: PulledApks | None = None,
    ) -> PulledApks:
        """Pull APKs into a workspace, extending an earlier pull if given.

        The base APK is saved as ``base.apk``; name clashes among splits get
        a numeric prefix. The returned list is ordered base first, then by
        local file name.
        """
        apks = list(existing.apks) if existing else []
        seen = {apk.remote_path for apk in apks}
        used_names = {apk.local_path.name for apk in apks}
        fallback_index = len(apks)

        for index, raw in enumerate(remote_paths):
            remote = normalize_remote_path(raw)
            if not remote or remote in seen:
                continue

            remote_name = PurePosixPath(remote).name or f"split_{index}.apk"
            preferred = "base.apk" if is_base_apk(remote_name) else remote_name
            file_name = preferred
            while file_name in used_names:
                fallback_index += 1
                file_name = f"{fallback_index}_{preferred}"

            local_path = await self.pull(remote, workspace / file_name)
            role = ApkRole.BASE if is_base_apk(remote) else ApkRole.SPLIT
            apks.append(ApkFile(remote_path=remote, local_path=local_path, role=role))
            seen.add(remote)
            used_names.add(file_name)

        if apks and not any(apk.is_base for apk in apks):
            first = apks[0]
            apks[0] = first.model_copy(update={"role": ApkRole.BASE})

        apks.sort(key=lambda apk: (0 if apk.is_base else 1, apk.local_path.name))
        logger.debug("Pulled %d APK(s) for %s", len(apks), package_name)

        return PulledApks(package_name=package_name, workspace=workspace, apks=apks)

    async def launch_app(self, package_name: str) -> None:
        """Launch a package's launcher activity via monkey."""
        if not PACKAGE_NAME_RE.match(package_name.strip()):
            raise PackageNotFoundError(package_name)

        await self._adb(
            "shell",
            "monkey",
            "-p",
            package_name.strip(),
            "-c",
            "android.intent.category.LAUNCHER",
            "1",
        )
