"""Console output helpers for the CLI."""

import json
from contextlib import contextmanager
from typing import Any, Iterator, Optional

from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.table import Table
from rich.text import Text

from .models import Theme


class OutputFormatter:
    """Prints user-facing messages, tables and JSON.

    Messages are printed without rich markup so server messages and paths
    are shown verbatim.
    """

    def __init__(self, json_output: bool = False, quiet: bool = False):
        """Initialize the formatter.

        Args:
            json_output: Emit machine readable JSON instead of tables
            quiet: Suppress informational messages
        """
        self.json_output = json_output
        self.quiet = quiet
        self.console = Console(highlight=False, soft_wrap=True)
        self.err_console = Console(stderr=True, highlight=False, soft_wrap=True)

    def print(self, message: str = "") -> None:
        self.console.print(message, markup=False)

    def info(self, message: str) -> None:
        if not self.quiet and not self.json_output:
            self.console.print(message, markup=False)

    def success(self, message: str) -> None:
        if not self.quiet and not self.json_output:
            self.console.print(message, style="green", markup=False)

    def warning(self, message: str) -> None:
        if not self.quiet:
            self.err_console.print(message, style="yellow", markup=False)

    def error(self, message: str) -> None:
        self.err_console.print(message, style="bold red", markup=False)

    def output_json(self, data: Any) -> None:
        # Bypass rich so the output stays valid JSON
        self.console.file.write(json.dumps(data, indent=2, ensure_ascii=False) + "\n")

    @contextmanager
    def progress(self, description: str) -> Iterator[None]:
        """Show a spinner while a long step runs.

        Args:
            description: Text shown next to the spinner
        """
        if self.quiet or self.json_output:
            yield
            return
        with Progress(
            SpinnerColumn(),
            TextColumn("{task.description}"),
            TimeElapsedColumn(),
            console=self.console,
            transient=True,
        ) as progress:
            progress.add_task(description, total=None)
            yield

    def print_summary(self, title: str, rows: list[tuple[str, str]]) -> None:
        """Print a titled list of key/value rows."""
        if self.quiet or self.json_output:
            return
        self.console.print(title, style="bold", markup=False)
        for key, value in rows:
            self.console.print(f"  {key}: {value}", markup=False)

    def print_themes(self, themes: list[Theme], current_id: Optional[str] = None) -> None:
        """Show the themes of the account.

        Args:
            themes: Themes to show
            current_id: The configured THEME_ID, highlighted when present
        """
        if self.json_output:
            self.output_json([theme.to_dict() for theme in themes])
            return

        if not themes:
            self.warning("No themes found or unexpected response format")
            return

        table = Table(title="Available themes", show_lines=False)
        table.add_column("#", justify="right")
        table.add_column("Name")
        table.add_column("ID", no_wrap=True)
        table.add_column("Status")
        table.add_column("Created")
        for index, theme in enumerate(themes, start=1):
            style = "bold green" if current_id and theme.id == current_id else None
            table.add_row(
                str(index),
                Text(theme.name),
                theme.id,
                theme.status or "N/A",
                theme.created_at or "N/A",
                style=style,
            )
        self.console.print(table)
