# acpkg/lifecycle/prompts.py
from __future__ import annotations
import sys
from collections.abc import Callable
from typing import TextIO

__all__ = ["Reporter", "Prompter"]



class Reporter:
    """
    User-facing output of a command (stdout). Diagnostics go through logging instead.
    """
    def __init__(self, stream: TextIO | None = None, *, quiet: bool = False) -> None:
        self.stream = stream if stream is not None else sys.stdout
        self.quiet = quiet
        self.warnings: list[str] = []

    def _write(self, text: str) -> None:
        if not self.quiet:
            print(text, file=self.stream)

    def info(self, text: str = "") -> None:
        self._write(text)

    def item(self, text: str, *, marker: str = "-") -> None:
        self._write(f"  {marker} {text}")

    def success(self, text: str) -> None:
        self._write(f"✓ {text}")

    def warn(self, text: str) -> None:
        self.warnings.append(text)
        self._write(f"⚠ {text}")

    def error(self, text: str) -> None:
        self._write(f"✗ {text}")



class Prompter:
    """
    Confirmation and free-text questions.

    Rules:
      • autoYes (-y) answers every confirmation with yes
      • without a terminal, confirmations take their default and questions
        get an empty answer
    """
    def __init__(
        self,
        *,
        autoYes: bool = False,
        interactive: bool | None = None,
        inputFn: Callable[[str], str] | None = None,
    ) -> None:
        self.autoYes = autoYes
        self.interactive = sys.stdin.isatty() if interactive is None else interactive
        self._input = inputFn or input

    def confirm(self, question: str, *, default: bool = False) -> bool:
        if self.autoYes:
            return True
        if not self.interactive:
            return default
        hint = "Y/n" if default else "y/N"
        try:
            reply = self._input(f"{question} ({hint}) ").strip().lower()
        except EOFError:
            return default
        if not reply:
            return default
        return reply in ("y", "yes")

    def ask(self, question: str, *, default: str = "") -> str:
        if not self.interactive:
            return default
        try:
            reply = self._input(f"{question}: ").strip()
        except EOFError:
            return default
        return reply or default
