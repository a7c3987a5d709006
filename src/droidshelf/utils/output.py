"""Rich console helpers for terminal output."""

import json
from collections.abc import Iterable, Sequence
from contextlib import AbstractContextManager, nullcontext
from typing import Any

from rich.console import Console as RichConsole
from rich.table import Table

Column = tuple[str, str | None]


class Console:
    """Wrapper around rich.Console for droidshelf commands.

    Stdout carries results only: tables normally, one JSON document with
    ``--json``. Errors, warnings and spinners go to stderr.
    """

    def __init__(self) -> None:
        self._console = RichConsole()
        self._stderr = RichConsole(stderr=True)
        self._json_mode = False

    def set_json_mode(self, enabled: bool) -> None:
        """Enable or disable JSON mode (suppresses rich output)."""
        self._json_mode = enabled

    @property
    def json_mode(self) -> bool:
        return self._json_mode

    def print(self, *args: Any, **kwargs: Any) -> None:
        """Print to console (suppressed in JSON mode)."""
        if not self._json_mode:
            self._console.print(*args, **kwargs)

    def print_json(self, data: Any) -> None:
        self._console.print_json(json.dumps(data, default=str))

    def print_table(
        self, title: str, columns: Sequence[Column], rows: Iterable[Sequence[str]]
    ) -> None:
        """Render rows under ``(header, style)`` columns."""
        table = Table(title=title)
        for header, style in columns:
            table.add_column(header, style=style)
        for row in rows:
            table.add_row(*row)
        self.print(table)

    def print_success(self, message: str) -> None:
        if not self._json_mode:
            self._console.print(f"[green]✓[/green] {message}")

    def print_error(self, message: str) -> None:
        """Print an error message in red, also in JSON mode."""
        self._stderr.print(f"[red]✗[/red] {message}")

    def print_info(self, message: str) -> None:
        if not self._json_mode:
            self._console.print(f"[blue]ℹ[/blue] {message}")

    def print_warning(self, message: str) -> None:
        self._stderr.print(f"[yellow]⚠[/yellow] {message}")

    def status(self, message: str) -> AbstractContextManager[Any]:
        """Spinner on stderr; does nothing in JSON mode."""
        if self._json_mode:
            return nullcontext()
        return self._stderr.status(message)


console = Console()
