"""Terminal prompts used by the interactive auth stages.

Stages call these through the module (``prompts.ask(...)``) so tests can
replace a single function.
"""

from __future__ import annotations

import getpass
import sys

import typer

from gateauth.exceptions import ConfigurationError


def is_interactive() -> bool:
    """Return ``True`` if stdin is a terminal we can prompt on."""
    return sys.stdin.isatty()


def ask(label: str, hide_input: bool = False) -> str:
    """Prompt for a single line of input.

    Password-style input (``hide_input=True``) is read without echo via
    :func:`getpass.getpass`. An empty answer returns ``""``.

    Raises:
        ConfigurationError: If stdin is not a TTY.
    """
    if not is_interactive():
        raise ConfigurationError(
            f"Cannot prompt for {label.lower()}: stdin is not a TTY"
        )
    if hide_input:
        return getpass.getpass(f"{label}: ").strip()
    return typer.prompt(label, default="", show_default=False).strip()
