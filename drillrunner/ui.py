"""Coloured status lines for the terminal."""

from __future__ import annotations

import os

from rich.console import Console
from rich.text import Text


def no_emoji() -> bool:
    """Return True when the NO_EMOJI environment variable is set."""
    return "NO_EMOJI" in os.environ


def _console() -> Console:
    return Console(highlight=False, soft_wrap=True, emoji=False, markup=False)


def _report(icon: str, fallback: str, message: str, style: str) -> None:
    mark = fallback if no_emoji() else icon
    _console().print(Text(f"{mark} {message}", style=style))


def warn(message: str) -> None:
    """Print a red warning line."""
    _report("⚠️ ", "!", message, "red")


def success(message: str) -> None:
    """Print a green success line."""
    _report("✅", "✓", message, "green")