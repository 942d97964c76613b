"""Typed git queries used by the pipeline for its own decisions.

Every helper here either returns a plain Python value (ints, strings, small
dataclasses) or raises :class:`GitError`.  Mutating commands whose output is
shown to the operator go through :mod:`gutt.runner` instead.
"""

from __future__ import annotations

import logging
import os
import subprocess
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

KNOWN_GOOD_PATTERN = "gutt/known-good-*"


def _git_subprocess_isolation_kwargs() -> dict[str, object]:
    """Return kwargs that prevent child console events from reaching the parent on Windows."""
    if os.name != "nt":
        return {}
    new_pg = int(getattr(subprocess, "CREATE_NEW_PROCESS_GROUP", 0))
    no_win = int(getattr(subprocess, "CREATE_NO_WINDOW", 0))
    flags = new_pg | no_win
    return {"creationflags": flags} if flags else {}


class GitError(RuntimeError):
    """Raised when a git command fails unexpectedly."""


def _run_git(
    *args: str,
    cwd: Path,
    check: bool = True,
    timeout: int = 30,
) -> subprocess.CompletedProcess[str]:
    """Run a git command and return the CompletedProcess."""
    cmd = ["git", *args]
    logger.debug("git %s (cwd=%s)", " ".join(args), cwd)
    try:
        result = subprocess.run(
            cmd,
            cwd=cwd,
            capture_output=True,
            text=True,
            timeout=timeout,
            **_git_subprocess_isolation_kwargs(),
        )
    except (OSError, subprocess.TimeoutExpired) as exc:
        raise GitError(f"`git {' '.join(args)}` could not run: {exc}") from exc
    if check and result.returncode != 0:
        raise GitError(
            f"`git {' '.join(args)}` failed (rc={result.returncode}): {result.stderr.strip()}"
        )
    return result


def _split_z(raw: str) -> list[str]:
    return [part for part in raw.split("\x00") if part]


# ---------------------------------------------------------------------------
# Repository discovery
# ---------------------------------------------------------------------------


def repo_root(path: str | Path) -> Path | None:
    """Return the top-level directory of the repository containing *path*."""
    candidate = Path(path)
    if not candidate.is_dir():
        return None
    try:
        out = _run_git("rev-parse", "--show-toplevel", cwd=candidate).stdout.strip()
    except GitError:
        return None
    return Path(out) if out else None


def has_commits(repo: str | Path) -> bool:
    """Return True when HEAD resolves to a commit."""
    result = _run_git("rev-parse", "--verify", "--quiet", "HEAD", cwd=Path(repo), check=False)
    return result.returncode == 0


def has_parent_commit(repo: str | Path) -> bool:
    """Return True when ``HEAD~1`` exists."""
    result = _run_git("rev-parse", "--verify", "--quiet", "HEAD~1", cwd=Path(repo), check=False)
    return result.returncode == 0


# ---------------------------------------------------------------------------
# Working tree status
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StatusEntry:
    """One row of ``git status --porcelain``."""

    index: str
    worktree: str
    path: str
    orig_path: str | None = None

    @property
    def untracked(self) -> bool:
        return self.index == "?" and self.worktree == "?"

    @property
    def staged(self) -> bool:
        return self.index not in (" ", "?", "!")


def parse_status_z(raw: str) -> list[StatusEntry]:
    """Parse ``git status --porcelain=v1 -z`` output into entries."""
    fields = raw.split("\x00")
    entries: list[StatusEntry] = []
    idx = 0
    while idx < len(fields):
        field = fields[idx]
        idx += 1
        if len(field) < 4:
            continue
        x, y, path = field[0], field[1], field[3:]
        orig: str | None = None
        if x in ("R", "C") and idx < len(fields):
            orig = fields[idx] or None
            idx += 1
        entries.append(StatusEntry(index=x, worktree=y, path=path, orig_path=orig))
    return entries


def status_entries(repo: str | Path) -> list[StatusEntry]:
    """Return porcelain status entries (tracked changes and untracked files)."""
    raw = _run_git("status", "--porcelain=v1", "-z", cwd=Path(repo)).stdout
    return parse_status_z(raw)


def staged_paths(repo: str | Path) -> list[str]:
    """Return paths staged in the index relative to HEAD."""
    return _split_z(_run_git("diff", "--cached", "--name-only", "-z", cwd=Path(repo)).stdout)


def untracked_paths(repo: str | Path) -> list[str]:
    """Return untracked, non-ignored paths."""
    raw = _run_git("ls-files", "--others", "--exclude-standard", "-z", cwd=Path(repo)).stdout
    return _split_z(raw)


def stash_entries(repo: str | Path) -> list[tuple[str, str]]:
    """Return ``(ref, subject)`` for each stash entry, newest first."""
    out = _run_git("stash", "list", "--format=%gd%x00%gs", cwd=Path(repo)).stdout
    entries = []
    for line in out.splitlines():
        ref, _, subject = line.partition("\x00")
        if ref.strip():
            entries.append((ref.strip(), subject))
    return entries


def stash_count(repo: str | Path) -> int:
    """Return the number of stash entries."""
    return len(stash_entries(repo))


# ---------------------------------------------------------------------------
# Branch and upstream
# ---------------------------------------------------------------------------


def current_branch(repo: str | Path) -> str | None:
    """Return the checked-out branch name, or ``None`` on a detached HEAD."""
    result = _run_git("symbolic-ref", "--quiet", "--short", "HEAD", cwd=Path(repo), check=False)
    name = result.stdout.strip()
    if result.returncode != 0 or not name or name == "HEAD":
        return None
    return name


def upstream(repo: str | Path) -> str | None:
    """Return the tracking ref of the current branch (``origin/main``) or ``None``."""
    result = _run_git(
        "rev-parse",
        "--abbrev-ref",
        "--symbolic-full-name",
        "@{u}",
        cwd=Path(repo),
        check=False,
    )
    value = result.stdout.strip()
    if result.returncode != 0 or not value:
        return None
    return value


def ahead_behind(repo: str | Path, upstream_ref: str) -> tuple[int, int]:
    """Return ``(ahead, behind)`` of HEAD relative to *upstream_ref*."""
    out = _run_git(
        "rev-list",
        "--left-right",
        "--count",
        f"{upstream_ref}...HEAD",
        cwd=Path(repo),
    ).stdout.split()
    if len(out) != 2:
        raise GitError(f"Unexpected rev-list output: {out!r}")
    behind, ahead = (int(value) for value in out)
    return ahead, behind


def branch_exists(repo: str | Path, branch: str) -> bool:
    result = _run_git(
        "show-ref", "--verify", "--quiet", f"refs/heads/{branch}", cwd=Path(repo), check=False
    )
    return result.returncode == 0


def local_branches(repo: str | Path) -> list[str]:
    out = _run_git("branch", "--format=%(refname:short)", cwd=Path(repo)).stdout
    return [line.strip() for line in out.splitlines() if line.strip()]


def primary_branch(repo: str | Path) -> str:
    """Best-effort detection of the primary branch name.

    Prefers local ``main`` then ``master``, then ``origin/HEAD``, and falls
    back to ``main``.
    """
    for name in ("main", "master"):
        if branch_exists(repo, name):
            return name
    result = _run_git(
        "symbolic-ref", "-q", "refs/remotes/origin/HEAD", cwd=Path(repo), check=False
    )
    sym = result.stdout.strip()
    if result.returncode == 0 and sym:
        return sym.rsplit("/", 1)[-1]
    return "main"


def is_valid_branch_name(repo: str | Path, name: str) -> bool:
    if not name or name == "HEAD":
        return False
    result = _run_git("check-ref-format", "--branch", name, cwd=Path(repo), check=False)
    return result.returncode == 0


# ---------------------------------------------------------------------------
# Commits and remotes
# ---------------------------------------------------------------------------


def head_sha(repo: str | Path, *, short: bool = True) -> str:
    """Return the SHA of HEAD (short by default)."""
    args = ["rev-parse", "--short", "HEAD"] if short else ["rev-parse", "HEAD"]
    return _run_git(*args, cwd=Path(repo)).stdout.strip()


def last_commit(repo: str | Path) -> str | None:
    """Return ``"<short> <subject> (<date>)"`` for HEAD, or ``None`` without commits."""
    result = _run_git(
        "log", "-1", "--pretty=format:%h %s (%ad)", "--date=short", cwd=Path(repo), check=False
    )
    text = result.stdout.strip()
    if result.returncode != 0 or not text:
        return None
    return text


def commit_subject(repo: str | Path, rev: str = "HEAD") -> str:
    return _run_git("log", "-1", "--pretty=%s", rev, cwd=Path(repo)).stdout.strip()


def log_oneline(repo: str | Path, revspec: str, *, limit: int | None = None) -> list[str]:
    args = ["log", "--oneline", "--decorate"]
    if limit is not None:
        args.append(f"-{limit}")
    args.append(revspec)
    out = _run_git(*args, cwd=Path(repo), check=False).stdout
    return [line for line in out.splitlines() if line.strip()]


def remotes(repo: str | Path) -> list[str]:
    out = _run_git("remote", cwd=Path(repo), check=False).stdout
    return [line.strip() for line in out.splitlines() if line.strip()]


def remote_urls(repo: str | Path, *, limit: int = 6) -> list[str]:
    """Return unique ``"<name>  <url>"`` lines from ``git remote -v``."""
    out = _run_git("remote", "-v", cwd=Path(repo), check=False).stdout
    seen: list[str] = []
    for line in out.splitlines():
        parts = line.split()
        if len(parts) < 2:
            continue
        entry = f"{parts[0]}  {parts[1]}"
        if entry not in seen:
            seen.append(entry)
    return sorted(seen)[:limit]


def default_remote(repo: str | Path) -> str | None:
    """Return ``origin`` when configured, else the first remote, else ``None``."""
    names = remotes(repo)
    if "origin" in names:
        return "origin"
    return names[0] if names else None


def conflicted_paths(repo: str | Path) -> list[str]:
    out = _run_git("diff", "--name-only", "--diff-filter=U", "-z", cwd=Path(repo), check=False)
    return _split_z(out.stdout)


# ---------------------------------------------------------------------------
# Tags
# ---------------------------------------------------------------------------


def is_valid_tag_name(repo: str | Path, name: str) -> bool:
    """Return True when ``refs/tags/<name>`` is a well-formed ref."""
    if not name:
        return False
    result = _run_git("check-ref-format", f"refs/tags/{name}", cwd=Path(repo), check=False)
    return result.returncode == 0


def tag_exists(repo: str | Path, name: str) -> bool:
    result = _run_git(
        "show-ref", "--verify", "--quiet", f"refs/tags/{name}", cwd=Path(repo), check=False
    )
    return result.returncode == 0


def tags_at_head(repo: str | Path, pattern: str | None = None) -> list[str]:
    """Return tags pointing at HEAD, optionally filtered by a glob *pattern*."""
    args = ["tag", "--points-at", "HEAD"]
    if pattern:
        args.append(pattern)
    result = _run_git(*args, cwd=Path(repo), check=False)
    if result.returncode != 0:
        return []
    return [line.strip() for line in result.stdout.splitlines() if line.strip()]


def list_tags(repo: str | Path, pattern: str | None = None) -> list[str]:
    """Return tag names, most recently created first."""
    args = ["tag", "--list", "--sort=-creatordate"]
    if pattern:
        args.append(pattern)
    out = _run_git(*args, cwd=Path(repo), check=False).stdout
    return [line.strip() for line in out.splitlines() if line.strip()]


def tag_commit(repo: str | Path, name: str) -> str | None:
    result = _run_git("rev-parse", f"{name}^{{commit}}", cwd=Path(repo), check=False)
    value = result.stdout.strip()
    return value if result.returncode == 0 and value else None


def create_tag(
    repo: str | Path,
    name: str,
    *,
    message: str | None = None,
    force: bool = False,
) -> subprocess.CompletedProcess[str]:
    """Create a tag at HEAD.  Annotated when *message* is given.

    Returns the CompletedProcess without raising so callers can report the
    failure text (commonly a name collision).
    """
    args = ["tag"]
    if force:
        args.append("-f")
    if message is not None:
        args.extend(["-a", name, "-m", message])
    else:
        args.append(name)
    result = _run_git(*args, cwd=Path(repo), check=False)
    if result.returncode == 0:
        logger.info("Created tag %s in %s", name, repo)
    else:
        logger.warning("Tag %s could not be created: %s", name, result.stderr.strip())
    return result
