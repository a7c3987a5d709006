"""Root CLI application for droidshelf."""

from pathlib import Path

import typer

from droidshelf import __version__
from droidshelf.cli import device, packages
from droidshelf.utils.log import setup_logging

app = typer.Typer(
    name="droidshelf",
    help="List, label and launch the apps of a connected Android device.",
    no_args_is_help=True,
)

# Register subcommands
app.add_typer(device.app, name="device", help="Manage connected Android devices")
app.add_typer(packages.app, name="packages", help="Resolve and launch packages")


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"droidshelf {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Log every external command.",
    ),
    log_file: Path | None = typer.Option(
        None,
        "--log-file",
        help="Also write a debug log to this file.",
    ),
) -> None:
    """droidshelf - package labels and icons from an ADB device."""
    setup_logging(verbose=verbose, log_file=log_file)


if __name__ == "__main__":
    app()
