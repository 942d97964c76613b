"""Advisory repository-state snapshots for preflight display and gating."""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path
from typing import TypeVar

from gutt import git_tools
from gutt.git_tools import GitError
from gutt.schemas import DETACHED, RepoState

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _degrade(query: Callable[[], T], fallback: T, label: str) -> T:
    """Run *query*, returning *fallback* when git fails."""
    try:
        return query()
    except GitError as exc:
        logger.debug("snapshot: %s unavailable (%s)", label, exc)
        return fallback


def snapshot(repo_path: str | Path) -> RepoState:
    """Return a fresh :class:`RepoState`.  Never raises for git failures.

    Each field is queried independently; a failing query degrades only that
    field to its ``None``/unknown/zero sentinel.
    """
    repo = Path(repo_path)
    branch = _degrade(lambda: git_tools.current_branch(repo), None, "branch") or DETACHED
    upstream_ref = _degrade(lambda: git_tools.upstream(repo), None, "upstream")

    ahead: int | None = None
    behind: int | None = None
    if upstream_ref is not None:
        counts = _degrade(lambda: git_tools.ahead_behind(repo, upstream_ref), None, "ahead/behind")
        if counts is not None:
            ahead, behind = counts

    return RepoState(
        path=str(repo),
        branch=branch,
        upstream=upstream_ref,
        ahead=ahead,
        behind=behind,
        dirty_count=len(_degrade(lambda: git_tools.status_entries(repo), [], "status")),
        staged_count=len(_degrade(lambda: git_tools.staged_paths(repo), [], "staged")),
        untracked_count=len(_degrade(lambda: git_tools.untracked_paths(repo), [], "untracked")),
        stash_count=_degrade(lambda: git_tools.stash_count(repo), 0, "stash"),
        last_commit=_degrade(lambda: git_tools.last_commit(repo), None, "last commit"),
        remotes=_degrade(lambda: git_tools.remote_urls(repo), [], "remotes"),
    )


def _count(value: int | None) -> str:
    return "?" if value is None else str(value)


def format_summary(state: RepoState) -> str:
    """Render the preflight block shown before guarded actions."""
    lines = [
        f"Repo:      {state.path}",
        f"Branch:    {state.branch}",
        f"Upstream:  {state.upstream or '(none)'}",
        f"Ahead:     {_count(state.ahead)}",
        f"Behind:    {_count(state.behind)}",
        "",
        f"Changes:   {state.dirty_count} file(s) changed",
        f"Staged:    {state.staged_count} file(s) staged",
        f"Untracked: {state.untracked_count} file(s) untracked",
        f"Stash:     {state.stash_count} item(s)",
        "",
        f"Last:      {state.last_commit or '(no commits yet)'}",
    ]
    if state.remotes:
        lines.extend(["", "Remotes:", *state.remotes])
    return "\n".join(lines)
