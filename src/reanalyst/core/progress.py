"""Terminal feedback for rea commands.

Everything here writes to stderr through one Rich console, leaving stdout to
command results (``--json`` output in particular). While a spinner is shown,
console log handlers are muted so log lines do not tear through it.
"""

from __future__ import annotations

import sys
from collections.abc import Iterator
from contextlib import contextmanager

from rich.console import Console

_console = Console(stderr=True)

_MARKERS = {
    "success": "[green]✓[/green] ",
    "error": "[red]✗[/red] ",
    "warning": "[yellow]![/yellow] ",
    "info": "  ",
}

# Nesting depth of active spinners; shared by every task on the loop
_muted = 0


def is_console_suppressed() -> bool:
    return _muted > 0


@contextmanager
def suppress_console_logs() -> Iterator[None]:
    global _muted
    _muted += 1
    try:
        yield
    finally:
        _muted -= 1


def get_console() -> Console:
    return _console


def status(message: str, *, style: str = "info") -> None:
    """Print one status line, prefixed with a marker for style."""
    _console.print(f"{_MARKERS.get(style, '')}{message}", highlight=False)


def pluralize(count: int, singular: str, plural: str | None = None) -> str:
    """``1 diagnostic`` / ``3 diagnostics``."""
    word = singular if count == 1 else (plural or f"{singular}s")
    return f"{count} {word}"


@contextmanager
def spinner(message: str) -> Iterator[None]:
    """Show a spinner on a TTY, a single "message..." line otherwise."""
    if not sys.stderr.isatty():
        _console.print(f"{message}...", highlight=False)
        yield
        return
    with suppress_console_logs(), _console.status(f"[cyan]{message}[/cyan]", spinner="dots"):
        yield
