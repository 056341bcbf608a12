"""
Colored status lines for the operator.

Log records go through the logging module; these lines are the
human-facing progress trail printed before each step that can fail.
"""
from __future__ import annotations

from typing import Optional

from rich.console import Console

_STYLES: dict[str, tuple[str, str]] = {
    "step":    ("blue", "➤"),
    "info":    ("cyan", "ℹ"),
    "success": ("green", "✓"),
    "warning": ("yellow", "⚠"),
    "error":   ("bold red", "✗"),
}


class StatusPrinter:
    """Prints header/step/info/success/warning/error lines."""

    def __init__(self, quiet: bool = False, console: Optional[Console] = None) -> None:
        self.quiet = quiet
        self.console = console or Console(highlight=False)
        self.warnings: int = 0
        self.errors: int = 0

    def header(self, title: str) -> None:
        if not self.quiet:
            self.console.print()
            self.console.print(f"=== {title} ===", style="bold magenta", markup=False)

    def _line(self, kind: str, message: str) -> None:
        if kind == "warning":
            self.warnings += 1
        elif kind == "error":
            self.errors += 1
        if self.quiet:
            return
        style, icon = _STYLES[kind]
        self.console.print(f"{icon} {message}", style=style, markup=False)

    def step(self, message: str) -> None:
        self._line("step", message)

    def info(self, message: str) -> None:
        self._line("info", message)

    def success(self, message: str) -> None:
        self._line("success", message)

    def warning(self, message: str) -> None:
        self._line("warning", message)

    def error(self, message: str) -> None:
        self._line("error", message)
