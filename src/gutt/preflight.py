"""Startup readiness checks shared by the CLI subcommands."""

from __future__ import annotations

import os
import shutil
from dataclasses import dataclass
from pathlib import Path

from gutt import git_tools
from gutt.git_tools import GitError


@dataclass(frozen=True)
class PreflightCheck:
    """A single readiness check result."""

    category: str
    key: str
    label: str
    status: str
    detail: str
    hint: str = ""

    def to_dict(self) -> dict[str, str]:
        return {
            "category": self.category,
            "key": self.key,
            "label": self.label,
            "status": self.status,
            "detail": self.detail,
            "hint": self.hint,
        }


@dataclass(frozen=True)
class PreflightReport:
    """Structured readiness output for one repository."""

    checks: list[PreflightCheck]
    repo_path: str
    resolved_repo_path: str

    @property
    def summary(self) -> dict[str, int]:
        counts = {"pass": 0, "warn": 0, "fail": 0}
        for check in self.checks:
            if check.status in counts:
                counts[check.status] += 1
        return counts

    @property
    def ready(self) -> bool:
        return self.summary["fail"] == 0

    def failure_messages(self) -> list[str]:
        messages: list[str] = []
        for check in self.checks:
            if check.status != "fail":
                continue
            messages.append(f"{check.label}: {check.hint or check.detail}")
        return messages

    def to_dict(self) -> dict[str, object]:
        return {
            "repo_path": self.repo_path,
            "resolved_repo_path": self.resolved_repo_path,
            "checks": [c.to_dict() for c in self.checks],
            "summary": self.summary,
            "ready": self.ready,
        }


def binary_exists(binary: str) -> bool:
    """Return ``True`` when an executable exists for *binary*."""
    binary = os.path.expandvars(os.path.expanduser(str(binary or "").strip()))
    if not binary:
        return False
    try:
        candidate = Path(binary)
        if candidate.is_file():
            return os.access(candidate, os.X_OK)
    except OSError:
        pass
    return shutil.which(binary) is not None


def running_as_root() -> bool:
    geteuid = getattr(os, "geteuid", None)
    return geteuid is not None and geteuid() == 0


def _user_check() -> PreflightCheck:
    if running_as_root():
        return PreflightCheck(
            category="environment",
            key="not_root",
            label="Running as a regular user",
            status="fail",
            detail="Refusing to run as root.",
            hint="Run gutt as your normal user (no sudo).",
        )
    return PreflightCheck(
        category="environment",
        key="not_root",
        label="Running as a regular user",
        status="pass",
        detail="Effective user is not root.",
    )


def _git_check(git_binary: str) -> PreflightCheck:
    ok = binary_exists(git_binary)
    return PreflightCheck(
        category="environment",
        key="git",
        label="git binary available",
        status="pass" if ok else "fail",
        detail=f"Configured binary: {git_binary}",
        hint="" if ok else "Install git and make sure it is on PATH.",
    )


def _repo_checks(raw_repo: str) -> tuple[list[PreflightCheck], str]:
    if not raw_repo:
        return (
            [
                PreflightCheck(
                    category="repository",
                    key="git_repo",
                    label="Git repository detected",
                    status="warn",
                    detail="No repository path set.",
                    hint="Provide --repo or run inside a git repository.",
                )
            ],
            "",
        )

    path = Path(raw_repo).expanduser()
    if not path.is_dir():
        return (
            [
                PreflightCheck(
                    category="repository",
                    key="git_repo",
                    label="Git repository detected",
                    status="fail",
                    detail=f"Not a directory: {path}",
                    hint="Point --repo at an existing folder.",
                )
            ],
            str(path),
        )

    try:
        root = git_tools.repo_root(path)
    except GitError as exc:
        root = None
        detail = str(exc)
    else:
        detail = f"Not inside a git work tree: {path}"
    if root is None:
        return (
            [
                PreflightCheck(
                    category="repository",
                    key="git_repo",
                    label="Git repository detected",
                    status="fail",
                    detail=detail,
                    hint="Run 'git init' or select a folder that contains a .git directory.",
                )
            ],
            str(path.resolve()),
        )

    checks = [
        PreflightCheck(
            category="repository",
            key="git_repo",
            label="Git repository detected",
            status="pass",
            detail=f"Work tree root: {root}",
        )
    ]
    if not os.access(root, os.W_OK):
        checks.append(
            PreflightCheck(
                category="repository",
                key="writable",
                label="Repository is writable",
                status="fail",
                detail=f"No write access to {root}",
                hint="Use a writable local clone.",
            )
        )
    else:
        checks.append(
            PreflightCheck(
                category="repository",
                key="writable",
                label="Repository is writable",
                status="pass",
                detail=str(root),
            )
        )
    return checks, str(root)


def build_preflight_report(
    *,
    repo_path: str | Path | None,
    git_binary: str = "git",
) -> PreflightReport:
    """Build a readiness report for the environment and *repo_path*."""
    git_binary = str(git_binary or "git").strip() or "git"
    raw_repo = str(repo_path or "").strip()

    checks = [_user_check(), _git_check(git_binary)]
    if checks[-1].status == "pass":
        repo_checks, resolved = _repo_checks(raw_repo)
    else:
        resolved = raw_repo
        repo_checks = [
            PreflightCheck(
                category="repository",
                key="git_repo",
                label="Git repository detected",
                status="warn",
                detail="Skipped until git is available.",
            )
        ]
    checks.extend(repo_checks)
    return PreflightReport(checks=checks, repo_path=raw_repo, resolved_repo_path=resolved)
