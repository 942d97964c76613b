"""Boolean (default-deny) and typed-phrase confirmation primitives."""

from __future__ import annotations

import logging

from gutt.policy import ActionDescriptor
from gutt.repo_state import format_summary
from gutt.schemas import RepoState
from gutt.ui import Presenter

logger = logging.getLogger(__name__)


def confirm_boolean(ui: Presenter, text: str) -> bool:
    """Ask a yes/no question whose default is No.

    Declining and backing out of the prompt are the same answer.
    """
    try:
        answer = ui.confirm(text)
    except (KeyboardInterrupt, EOFError):
        answer = False
    return answer is True


def confirm_phrase(ui: Presenter, prompt: str, phrase: str) -> bool:
    """Require the operator to retype *phrase* exactly.

    The comparison is exact: no trimming, no case folding.  Empty or
    cancelled input is a refusal.
    """
    try:
        typed = ui.prompt_text(f"{prompt}\n\nType exactly:\n{phrase}", "")
    except (KeyboardInterrupt, EOFError):
        typed = None
    if typed is None or typed == "":
        logger.info("Phrase confirmation cancelled")
        return False
    if typed != phrase:
        logger.info("Phrase confirmation mismatch")
        return False
    return True


def guarded_prompt(descriptor: ActionDescriptor) -> str:
    text = f"{descriptor.label}?"
    if descriptor.description:
        text += f"\n\n{descriptor.description}"
    return text


def confirm_preflight(ui: Presenter, state: RepoState, descriptor: ActionDescriptor) -> bool:
    """Show the repository summary and action description, then confirm (default No)."""
    ui.show_text(f"DANGER: {descriptor.label}", format_summary(state))
    return confirm_boolean(ui, f"DANGER: {guarded_prompt(descriptor)}")
