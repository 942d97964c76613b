"""Precondition gates evaluated before any prompt or side effect."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from gutt.repo_state import snapshot
from gutt.schemas import RepoState

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GateResult:
    """``Ok`` or ``Refused(reason)``."""

    ok: bool
    reason: str = ""

    @classmethod
    def passed(cls) -> GateResult:
        return cls(ok=True)

    @classmethod
    def refused(cls, reason: str) -> GateResult:
        return cls(ok=False, reason=reason)


def require_clean(
    repo_path: str | Path,
    action_label: str,
    *,
    state: RepoState | None = None,
) -> GateResult:
    """Refuse when the working tree has tracked or untracked changes."""
    current = state if state is not None else snapshot(repo_path)
    if not current.is_dirty:
        return GateResult.passed()
    logger.info("Refusing %s: %d uncommitted change(s)", action_label, current.dirty_count)
    return GateResult.refused(
        f"Refusing to run: {action_label}\n\n"
        f"Repo has uncommitted changes ({current.dirty_count} file(s)).\n"
        "Commit or stash first."
    )


def require_branch(state: RepoState, action_label: str) -> GateResult:
    """Refuse on a detached HEAD."""
    if not state.detached:
        return GateResult.passed()
    return GateResult.refused(
        f"Refusing to run: {action_label}\n\nHEAD is detached.\nCheck out a branch first."
    )


def require_upstream(state: RepoState, action_label: str) -> GateResult:
    """Refuse when the current branch has no tracking ref."""
    if state.upstream is not None:
        return GateResult.passed()
    return GateResult.refused(
        f"Refusing to run: {action_label}\n\n"
        f"No upstream is set for '{state.branch}'.\n"
        "Set an upstream (tracking) branch first."
    )


def require_remote(state: RepoState, action_label: str) -> GateResult:
    """Refuse when no remote is configured."""
    if state.remotes:
        return GateResult.passed()
    return GateResult.refused(
        f"Refusing to run: {action_label}\n\n"
        "No remotes are configured for this repo.\n"
        "Add a remote first (for example: origin)."
    )
