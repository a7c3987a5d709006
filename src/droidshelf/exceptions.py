"""Typed exception hierarchy for droidshelf."""


class DroidshelfError(Exception):
    """Base exception for all droidshelf errors."""

    pass


class ToolNotFoundError(DroidshelfError):
    """Raised when a required external tool is not installed."""

    def __init__(self, tool: str, install_hint: str | None = None):
        self.tool = tool
        self.install_hint = install_hint
        message = f"Required tool not found: {tool}"
        if install_hint:
            message += f"\nInstall: {install_hint}"
        super().__init__(message)


class ProcessError(DroidshelfError):
    """Raised when a subprocess command fails."""

    def __init__(self, command: list[str], returncode: int, stderr: str):
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
        cmd_str = " ".join(command)
        super().__init__(f"Command failed (exit {returncode}): {cmd_str}\n{stderr}")


class ADBError(DroidshelfError):
    """Raised when an ADB command fails."""

    pass


class DeviceNotFoundError(ADBError):
    """Raised when no device, several devices, or an unusable device is connected."""

    pass


class PackageNotFoundError(ADBError):
    """Raised when a package is not found on the device."""

    def __init__(self, package: str):
        self.package = package
        super().__init__(f"No APKs found for package: {package}")


class APKPullError(ADBError):
    """Raised when pulling an APK from device fails."""

    pass


class ArchiveError(DroidshelfError):
    """Raised when an APK archive cannot be listed or read."""

    pass


class EntryNotFoundError(ArchiveError):
    """Raised when an entry is missing from an APK archive."""

    def __init__(self, apk_path: str, entry: str):
        self.apk_path = apk_path
        self.entry = entry
        super().__init__(f"Entry not found in {apk_path}: {entry}")


class ResolutionMiss(DroidshelfError):
    """Raised when no label or icon could be located for a package."""

    pass


class ConversionFailure(DroidshelfError):
    """Raised when a drawable cannot be converted or composited."""

    pass
