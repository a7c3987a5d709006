"""CLI commands for device management."""

import asyncio

import typer

from droidshelf.core.adb import ADBWrapper
from droidshelf.exceptions import DroidshelfError, ToolNotFoundError
from droidshelf.models.device import DeviceList
from droidshelf.utils.config import load_settings
from droidshelf.utils.deps import TOOL_INSTALL_HINTS, get_adb_command
from droidshelf.utils.output import console

app = typer.Typer(no_args_is_help=True)

COLUMNS = [("ID", "cyan"), ("State", None), ("Model", None), ("Product", None)]


def _list_devices() -> DeviceList:
    settings = load_settings()
    adb = get_adb_command(settings.adb_path)
    if adb is None:
        raise ToolNotFoundError("adb", TOOL_INSTALL_HINTS["adb"])
    wrapper = ADBWrapper(adb=adb, timeout=settings.tool_timeout)
    return asyncio.run(wrapper.list_devices())


@app.command("list")
def list_devices(
    json_output: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output as JSON.",
    ),
) -> None:
    """List connected Android devices."""
    console.set_json_mode(json_output)

    try:
        devices = _list_devices()
    except DroidshelfError as e:
        console.print_error(str(e))
        raise typer.Exit(1) from None

    if json_output:
        console.print_json(
            [
                {**d.model_dump(mode="json"), "available": d.is_available}
                for d in devices
            ]
        )
        return

    if not len(devices):
        console.print_warning("No devices connected")
        raise typer.Exit(1)

    def state(device) -> str:
        color = "green" if device.is_available else "red"
        return f"[{color}]{device.state.value}[/{color}]"

    console.print_table(
        "Connected Devices",
        COLUMNS,
        (
            (d.id, state(d), d.model or "-", d.product or "-")
            for d in devices
        ),
    )
    console.print_info(f"{len(devices.available)} device(s) available")
