"""Shared pytest configuration, scripted presenter, and throwaway git repositories."""

from __future__ import annotations

import subprocess
from collections.abc import Callable, Iterable, Sequence
from pathlib import Path

import pytest


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "unit: fast isolated unit tests")
    config.addinivalue_line("markers", "integration: filesystem/subprocess integration tests")
    config.addinivalue_line("markers", "slow: expensive tests")


def pytest_collection_modifyitems(items: list[pytest.Item]) -> None:
    """Run fast unit tests first, integration tests second, slow tests last."""

    def sort_key(item: pytest.Item) -> tuple[int, str]:
        if item.get_closest_marker("slow"):
            return (2, item.nodeid)
        if item.get_closest_marker("integration"):
            return (1, item.nodeid)
        return (0, item.nodeid)

    items.sort(key=sort_key)


@pytest.fixture(autouse=True)
def _isolated_config_dir(monkeypatch: pytest.MonkeyPatch, tmp_path_factory) -> None:
    """Keep every test away from the real ~/.config/gutt."""
    monkeypatch.setenv("GUTT_CONFIG_DIR", str(tmp_path_factory.mktemp("gutt-config")))


# ---------------------------------------------------------------------------
# Scripted presenter
# ---------------------------------------------------------------------------


class ScriptedPresenter:
    """Presenter that answers prompts from queues and records every call.

    Exhausted queues answer the way an operator backing out would: ``False``
    for confirms, ``None`` for text and selections.
    """

    def __init__(
        self,
        confirms: Iterable[bool] = (),
        texts: Iterable[str | None] = (),
        selections: Iterable[str | None] = (),
    ) -> None:
        self.confirms = list(confirms)
        self.texts = list(texts)
        self.selections = list(selections)
        self.events: list[tuple[str, str]] = []
        self.messages: list[str] = []
        self.shown: list[tuple[str, str]] = []

    def message(self, text: str) -> None:
        self.events.append(("message", text))
        self.messages.append(text)

    def confirm(self, text: str) -> bool:
        self.events.append(("confirm", text))
        return self.confirms.pop(0) if self.confirms else False

    def prompt_text(self, label: str, default: str = "") -> str | None:
        self.events.append(("prompt_text", label))
        return self.texts.pop(0) if self.texts else None

    def select_one(self, title: str, options: Sequence[tuple[str, str]]) -> str | None:
        self.events.append(("select_one", title))
        return self.selections.pop(0) if self.selections else None

    def show_text(self, title: str, text: str) -> None:
        self.events.append(("show_text", title))
        self.shown.append((title, text))

    def prompts(self, kind: str) -> list[str]:
        return [text for event, text in self.events if event == kind]


@pytest.fixture
def presenter() -> Callable[..., ScriptedPresenter]:
    return ScriptedPresenter


# ---------------------------------------------------------------------------
# Git repositories
# ---------------------------------------------------------------------------


def run_git(repo: Path, *args: str) -> str:
    result = subprocess.run(
        ["git", *args], cwd=repo, check=True, capture_output=True, text=True
    )
    return result.stdout.strip()


def init_repo(repo: Path) -> Path:
    repo.mkdir(parents=True, exist_ok=True)
    run_git(repo, "init")
    run_git(repo, "symbolic-ref", "HEAD", "refs/heads/main")
    run_git(repo, "config", "user.name", "Test User")
    run_git(repo, "config", "user.email", "test@example.com")
    run_git(repo, "config", "commit.gpgsign", "false")
    run_git(repo, "config", "tag.gpgsign", "false")
    return repo


def commit_file(repo: Path, name: str, content: str, message: str | None = None) -> str:
    path = repo / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    run_git(repo, "add", name)
    run_git(repo, "commit", "-m", message or f"update {name}")
    return run_git(repo, "rev-parse", "HEAD")


@pytest.fixture
def git() -> Callable[..., str]:
    return run_git


@pytest.fixture
def commit() -> Callable[..., str]:
    return commit_file


@pytest.fixture
def repo(tmp_path: Path) -> Path:
    """A repository on ``main`` with one commit and no remotes."""
    path = init_repo(tmp_path / "repo")
    commit_file(path, "README.md", "hello\n", "initial commit")
    return path


@pytest.fixture
def cloned_repo(tmp_path: Path) -> tuple[Path, Path]:
    """Return ``(work, peer)``: two clones of one bare remote, both tracking origin/main."""
    seed = init_repo(tmp_path / "seed")
    commit_file(seed, "README.md", "hello\n", "initial commit")
    remote = tmp_path / "remote.git"
    run_git(tmp_path, "clone", "--bare", str(seed), str(remote))

    clones = []
    for name in ("work", "peer"):
        run_git(tmp_path, "clone", str(remote), name)
        clone = tmp_path / name
        run_git(clone, "config", "user.name", "Test User")
        run_git(clone, "config", "user.email", "test@example.com")
        run_git(clone, "config", "commit.gpgsign", "false")
        run_git(clone, "config", "tag.gpgsign", "false")
        clones.append(clone)
    return clones[0], clones[1]
