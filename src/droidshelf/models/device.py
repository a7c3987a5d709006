"""Pydantic models for Android devices as reported by ``adb devices -l``."""

from enum import StrEnum

from pydantic import BaseModel

from droidshelf.exceptions import DeviceNotFoundError

DEVICES_HEADER = "List of devices attached"


class DeviceState(StrEnum):
    """ADB device connection state."""

    DEVICE = "device"
    OFFLINE = "offline"
    UNAUTHORIZED = "unauthorized"
    NO_PERMISSIONS = "no permissions"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, raw: str) -> "DeviceState":
        try:
            return cls(raw.lower())
        except ValueError:
            return cls.UNKNOWN


class Device(BaseModel):
    """One device line of ``adb devices -l``."""

    id: str
    state: DeviceState
    model: str | None = None
    product: str | None = None

    @classmethod
    def from_line(cls, line: str) -> "Device | None":
        """Parse ``<serial> <state> [key:value ...]``.

        Returns None for lines that do not describe a device, such as the
        daemon start-up notices.
        """
        parts = line.split()
        if len(parts) < 2 or parts[0].startswith("*"):
            return None

        state, details = parts[1], parts[2:]
        if state == "no" and details[:1] == ["permissions"]:
            state, details = "no permissions", details[1:]

        props = dict(part.split(":", 1) for part in details if ":" in part)
        return cls(
            id=parts[0],
            state=DeviceState.parse(state),
            model=props.get("model"),
            product=props.get("product"),
        )

    @property
    def is_available(self) -> bool:
        """Check if device is available for commands."""
        return self.state == DeviceState.DEVICE

    def unavailable_reason(self) -> str:
        """Explain why the device cannot take commands."""
        if self.state == DeviceState.UNAUTHORIZED:
            return (
                f"Device {self.id} is unauthorized: accept USB debugging on the device"
            )
        return f"Device {self.id} is {self.state.value}"


class DeviceList(BaseModel):
    """Devices known to the adb server."""

    devices: list[Device]

    @classmethod
    def parse(cls, output: str) -> "DeviceList":
        devices = []
        for line in output.splitlines():
            if line.startswith(DEVICES_HEADER):
                continue
            if device := Device.from_line(line):
                devices.append(device)
        return cls(devices=devices)

    def __len__(self) -> int:
        return len(self.devices)

    def __iter__(self):  # type: ignore[override]
        return iter(self.devices)

    @property
    def available(self) -> list[Device]:
        return [d for d in self.devices if d.is_available]

    def select(self, device_id: str | None = None) -> Device:
        """Pick the device to target.

        With ``device_id`` that device is required; without, exactly one
        device must be connected.

        Raises:
            DeviceNotFoundError: If the device is missing or unusable, or if
                several are connected and none was chosen.
        """
        if device_id:
            matches = [d for d in self.devices if d.id == device_id]
            if not matches:
                raise DeviceNotFoundError(f"Device not found: {device_id}")
            device = matches[0]
        elif not self.devices:
            raise DeviceNotFoundError("No ADB devices connected")
        elif len(self.devices) > 1:
            ids = ", ".join(d.id for d in self.devices)
            raise DeviceNotFoundError(
                f"Multiple devices connected: {ids}. Connect only one "
                "or use --device to choose."
            )
        else:
            device = self.devices[0]

        if not device.is_available:
            raise DeviceNotFoundError(device.unavailable_reason())
        return device
