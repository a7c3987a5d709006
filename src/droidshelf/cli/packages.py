"""CLI commands for package labels, icons and launching."""

import asyncio
from collections.abc import Coroutine
from typing import Any, TypeVar

import typer

from droidshelf.core.service import ResolutionService
from droidshelf.exceptions import DroidshelfError
from droidshelf.models.package import EventName, IconUpdate, LabelUpdate, PackageListing
from droidshelf.utils.output import console

app = typer.Typer(no_args_is_help=True)

T = TypeVar("T")

DEVICE_OPTION = typer.Option(
    None,
    "--device",
    "-d",
    help="Target device ID.",
)
JSON_OPTION = typer.Option(
    False,
    "--json",
    "-j",
    help="Output as JSON.",
)


def _run(coro: Coroutine[Any, Any, T]) -> T:
    """Run a coroutine, turning droidshelf errors into exit code 1."""
    try:
        return asyncio.run(coro)
    except DroidshelfError as e:
        console.print_error(str(e))
        raise typer.Exit(1) from None


def _service(device: str | None) -> ResolutionService:
    try:
        return ResolutionService.from_settings(device_id=device)
    except DroidshelfError as e:
        console.print_error(str(e))
        raise typer.Exit(1) from None


def _print_listings(listings: list[PackageListing]) -> None:
    def row(listing: PackageListing) -> tuple[str, str, str]:
        label = listing.display_name if listing.has_label else "[dim]-[/dim]"
        icon = "[green]yes[/green]" if listing.has_icon else "[red]no[/red]"
        return listing.package, label, icon

    console.print_table(
        "Packages",
        [("Package", "cyan"), ("Label", None), ("Icon", None)],
        map(row, listings),
    )
    labelled = sum(1 for listing in listings if listing.has_label)
    console.print_info(f"{len(listings)} package(s), {labelled} labelled")


def _report_progress(event: EventName, payload: Any) -> None:
    if isinstance(payload, LabelUpdate) and not payload.success:
        console.print_warning(f"No label for {payload.package}")
    elif isinstance(payload, IconUpdate) and not payload.success:
        console.print_warning(f"No icon for {payload.package}")


@app.command("list")
def list_packages(
    device: str | None = DEVICE_OPTION,
    wait: bool = typer.Option(
        False,
        "--wait",
        "-w",
        help="Wait for label and icon extraction to finish.",
    ),
    json_output: bool = JSON_OPTION,
) -> None:
    """List user packages with their cached labels and icons."""
    console.set_json_mode(json_output)
    service = _service(device)
    if wait:
        service.events.subscribe(EventName.LABEL_UPDATED, _report_progress)
        service.events.subscribe(EventName.ICON_UPDATED, _report_progress)

    async def collect() -> list[PackageListing]:
        listings = await service.list_packages_for_current_device()
        if not wait:
            return listings
        with console.status("Resolving labels and icons..."):
            await service.wait_idle()
        return [service.listing_for(listing.package) for listing in listings]

    listings = _run(collect())

    if json_output:
        console.print_json([listing.model_dump() for listing in listings])
        return

    _print_listings(listings)


@app.command("label")
def label(
    package: str = typer.Argument(..., help="Package name."),
    device: str | None = DEVICE_OPTION,
    json_output: bool = JSON_OPTION,
) -> None:
    """Resolve and cache a package's label."""
    console.set_json_mode(json_output)
    service = _service(device)

    async def resolve() -> str | None:
        await service.adb.ensure_device()
        return await service.get_label(package)

    name = _run(resolve())

    if json_output:
        console.print_json(
            {"package": package, "name": name or package, "success": bool(name)}
        )
    elif name:
        console.print_success(f"{package}: {name}")
    else:
        console.print_error(f"No label found for {package}")

    if not name:
        raise typer.Exit(1)


@app.command("icon")
def icon(
    package: str = typer.Argument(..., help="Package name."),
    device: str | None = DEVICE_OPTION,
    json_output: bool = JSON_OPTION,
) -> None:
    """Resolve and cache a package's icon."""
    console.set_json_mode(json_output)
    service = _service(device)

    async def resolve() -> str:
        await service.adb.ensure_device()
        await service.get_icon(package)
        return service.icon_cache.url_for(package)

    with console.status(f"Extracting icon of {package}..."):
        icon_url = _run(resolve())

    if json_output:
        console.print_json(
            {"package": package, "icon_url": icon_url, "success": True}
        )
        return

    console.print_success(f"Icon cached: {icon_url}")


@app.command("launch")
def launch(
    package: str = typer.Argument(..., help="Package name."),
    device: str | None = DEVICE_OPTION,
) -> None:
    """Launch a package's launcher activity."""
    service = _service(device)
    _run(service.launch(package))
    console.print_success(f"Launched {package}")
