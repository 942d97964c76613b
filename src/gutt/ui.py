"""Presentation-layer contract and the terminal implementation built on rich."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.text import Text

APP_TITLE = "gutt"


class Presenter(Protocol):
    """Blocking prompt primitives consumed by the pipeline.

    ``None`` from :meth:`prompt_text` or :meth:`select_one` means the operator
    backed out; callers treat it exactly like declining.
    """

    def message(self, text: str) -> None: ...

    def confirm(self, text: str) -> bool: ...

    def prompt_text(self, label: str, default: str = "") -> str | None: ...

    def select_one(self, title: str, options: Sequence[tuple[str, str]]) -> str | None: ...

    def show_text(self, title: str, text: str) -> None: ...


class ConsolePresenter:
    """Interactive terminal prompts.  Ctrl-C / Ctrl-D at a prompt count as cancel."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def message(self, text: str) -> None:
        if not text.strip():
            return
        self.console.print(Panel(Text(text), title=APP_TITLE, expand=False))

    def confirm(self, text: str) -> bool:
        self.console.print(Text(text))
        try:
            return bool(Confirm.ask("Proceed?", default=False, console=self.console))
        except (KeyboardInterrupt, EOFError):
            self.console.print()
            return False

    def prompt_text(self, label: str, default: str = "") -> str | None:
        # Console.input returns the line as typed; Prompt.ask would strip it.
        prompt = Text(label)
        if default:
            prompt.append(f" ({default})", style="cyan")
        prompt.append(": ")
        try:
            typed = self.console.input(prompt)
        except (KeyboardInterrupt, EOFError):
            self.console.print()
            return None
        return typed if typed else default

    def select_one(self, title: str, options: Sequence[tuple[str, str]]) -> str | None:
        if not options:
            return None
        self.console.print(Text(title, style="bold"))
        for idx, (_key, label) in enumerate(options, start=1):
            self.console.print(f"  {idx:>2}. {escape(label)}")
        choices = [str(idx) for idx in range(1, len(options) + 1)] + ["q"]
        try:
            picked = Prompt.ask(
                "Select (q to go back)", choices=choices, show_choices=False, console=self.console
            )
        except (KeyboardInterrupt, EOFError):
            self.console.print()
            return None
        if picked == "q":
            return None
        return options[int(picked) - 1][0]

    def show_text(self, title: str, text: str) -> None:
        if not text.strip():
            return
        self.console.print(Panel(Text(text.rstrip()), title=escape(title), expand=False))
