"""Output system with strict stdout/stderr discipline.

Follows `clig.dev <https://clig.dev/>`_ conventions:

* **stdout** -- primary data only (the ``status`` report). This is what
  downstream tools pipe and parse.
* **stderr** -- all diagnostics (progress, warnings, errors) and the
  interactive instructions of the OAuth2 flow.
* **Colour control** -- respects ``NO_COLOR``, ``TERM=dumb``, and the
  ``--no-color`` CLI flag.

The module exposes two layers:

1. :class:`OutputManager` -- holds the Rich consoles and the
   quiet/verbose/JSON flags. Created once in :func:`~gateauth.app.main_callback`
   and installed via :func:`set_output`.
2. Module-level functions (:func:`info`, :func:`warning`, :func:`debug`,
   ...) that delegate to the global instance so the auth stages can report
   progress without passing the manager around.
"""

from __future__ import annotations

import json
import os
import sys
from typing import Any, Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table


class OutputManager:
    """Central manager for CLI output.

    Args:
        json_output: Render data on stdout as JSON instead of a Rich table.
        no_color: Disable all colour and Rich markup.
        quiet: Suppress informational messages on stderr.
        verbose: Enable debug-level messages on stderr.
    """

    def __init__(
        self,
        json_output: bool = False,
        no_color: bool = False,
        quiet: bool = False,
        verbose: bool = False,
    ) -> None:
        self._json = json_output
        self._no_color = no_color or _should_disable_color()
        self._quiet = quiet
        self._verbose = verbose

        self._stdout = Console(file=sys.stdout, no_color=self._no_color)
        self._stderr = Console(file=sys.stderr, no_color=self._no_color, stderr=True)

    @property
    def is_quiet(self) -> bool:
        return self._quiet

    @property
    def is_verbose(self) -> bool:
        return self._verbose

    # ------------------------------------------------------------------ #
    # Data output (stdout)
    # ------------------------------------------------------------------ #

    def print_data(self, text: str) -> None:
        """Print raw text to stdout."""
        print(text, file=sys.stdout, flush=True)

    def print_mapping(self, data: dict[str, Any], title: Optional[str] = None) -> None:
        """Print a flat key/value report to stdout.

        JSON mode emits an object; plain mode (no colour) emits
        tab-separated lines; otherwise a two-column Rich table.
        """
        if self._json:
            self.print_data(json.dumps(data, indent=2, ensure_ascii=False, default=str))
        elif self._no_color:
            for key, value in data.items():
                self.print_data(f"{key}\t{_display(value)}")
        else:
            table = Table(title=title, show_header=False)
            table.add_column("field", style="bold cyan")
            table.add_column("value")
            for key, value in data.items():
                table.add_row(key, _display(value))
            self._stdout.print(table)

    # ------------------------------------------------------------------ #
    # Diagnostics (stderr)
    # ------------------------------------------------------------------ #

    def info(self, message: str) -> None:
        """Print an informational message to stderr. Suppressed by ``--quiet``."""
        if not self._quiet:
            self._emit(message, escape(message))

    def notice(self, message: str) -> None:
        """Print a message the user must act on. Never suppressed."""
        self._emit(message, f"[bold]{escape(message)}[/bold]")

    def success(self, message: str) -> None:
        """Print a green success message to stderr. Suppressed by ``--quiet``."""
        if not self._quiet:
            self._emit(message, f"[green]{escape(message)}[/green]")

    def warning(self, message: str) -> None:
        """Print a yellow warning to stderr. NOT suppressed by ``--quiet``."""
        self._emit(f"Warning: {message}", f"[yellow]Warning:[/yellow] {escape(message)}")

    def error(self, message: str) -> None:
        """Print a bold-red error to stderr. Never suppressed."""
        self._emit(f"Error: {message}", f"[bold red]Error:[/bold red] {escape(message)}")

    def debug(self, message: str) -> None:
        """Print a debug message to stderr. Only shown with ``--verbose``."""
        if self._verbose:
            self._emit(f"[debug] {message}", f"[dim]\\[debug] {escape(message)}[/dim]")

    def _emit(self, plain: str, markup: str) -> None:
        if self._no_color:
            print(plain, file=sys.stderr, flush=True)
        else:
            self._stderr.print(markup, highlight=False, soft_wrap=True)


def _display(value: Any) -> str:
    if value is None:
        return "-"
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v) for v in value) or "-"
    return str(value)


def _should_disable_color() -> bool:
    """Return ``True`` when ``NO_COLOR`` is set (any value) or ``TERM=dumb``."""
    if os.environ.get("NO_COLOR") is not None:
        return True
    return os.environ.get("TERM") == "dumb"


# ------------------------------------------------------------------ #
# Global output instance (set during app startup)
# ------------------------------------------------------------------ #

_output: Optional[OutputManager] = None


def get_output() -> OutputManager:
    """Return the global :class:`OutputManager`, creating a default one lazily."""
    global _output
    if _output is None:
        _output = OutputManager()
    return _output


def set_output(output: OutputManager) -> None:
    """Install *output* as the global :class:`OutputManager` instance."""
    global _output
    _output = output


def reset_output() -> None:
    """Reset the global :class:`OutputManager` to ``None``.

    Used by the test suite to drop console references to streams that a
    ``CliRunner`` has since closed.
    """
    global _output
    _output = None


# ------------------------------------------------------------------ #
# Convenience functions that use the global instance
# ------------------------------------------------------------------ #


def print_data(text: str) -> None:
    get_output().print_data(text)


def print_mapping(data: dict[str, Any], title: Optional[str] = None) -> None:
    get_output().print_mapping(data, title)


def info(message: str) -> None:
    get_output().info(message)


def notice(message: str) -> None:
    get_output().notice(message)


def success(message: str) -> None:
    get_output().success(message)


def warning(message: str) -> None:
    get_output().warning(message)


def error(message: str) -> None:
    get_output().error(message)


def debug(message: str) -> None:
    get_output().debug(message)
