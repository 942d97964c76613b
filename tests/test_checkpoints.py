"""Tests for checkpoint tag creation and offers."""

from __future__ import annotations

import datetime as dt
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import patch

import pytest

from gutt import git_tools
from gutt.checkpoints import (
    CheckpointManager,
    backup_name,
    known_good_message,
    known_good_name,
    pre_danger_name,
)
from gutt.errors import CheckpointCreationFailed, UserCancelled
from gutt.schemas import CheckpointKind, Policy

NOW = dt.datetime(2024, 5, 17, 9, 30, 15)


def _manager(ui, **policy) -> CheckpointManager:
    return CheckpointManager(ui, Policy(**policy), clock=lambda: NOW)


def test_tag_names_follow_namespace():
    assert known_good_name(NOW) == "gutt/known-good-20240517-0930"
    assert backup_name(NOW) == "gutt/backup-20240517-093015"
    assert pre_danger_name("sqm", NOW) == "gutt/safety-sqm-20240517-093015"


def test_known_good_message_embeds_note_only_when_given():
    assert known_good_message("main", "abc123") == (
        "Known-good state marked by gutt\nBranch: main\nCommit: abc123"
    )
    assert known_good_message("main", "abc123", "release").endswith("\n\nNote: release")


def test_offer_backup_respects_policy_toggle(presenter, tmp_path: Path):
    ui = presenter(confirms=[True])
    with patch("gutt.git_tools.create_tag") as create_tag:
        assert _manager(ui, offer_backup_tag=False).offer_backup(tmp_path) is None
    create_tag.assert_not_called()
    assert ui.events == []


def test_offer_backup_reports_failure_without_raising(presenter, tmp_path: Path):
    ui = presenter(confirms=[True])
    failed = SimpleNamespace(returncode=128, stderr="fatal: bad object", stdout="")
    with patch("gutt.git_tools.create_tag", return_value=failed):
        assert _manager(ui).offer_backup(tmp_path) is None
    assert "Failed to create local tag" in ui.messages[-1]


def test_create_pre_danger_raises_on_failure(presenter, tmp_path: Path):
    failed = SimpleNamespace(returncode=128, stderr="fatal: no HEAD", stdout="")
    with patch("gutt.git_tools.create_tag", return_value=failed):
        with pytest.raises(CheckpointCreationFailed) as excinfo:
            _manager(presenter()).create_pre_danger(tmp_path, "before-forcepush")
    assert excinfo.value.name == "gutt/safety-before-forcepush-20240517-093015"
    assert "no HEAD" in str(excinfo.value)


@pytest.mark.integration
def test_offer_known_good_creates_annotated_tag(presenter, repo: Path, git):
    ui = presenter(confirms=[True], texts=["gutt/known-good-20240517-0930", "before refactor"])
    checkpoint = _manager(ui).offer_known_good(repo)

    assert checkpoint is not None
    assert checkpoint.kind is CheckpointKind.KNOWN_GOOD
    assert git_tools.tags_at_head(repo, git_tools.KNOWN_GOOD_PATTERN) == [checkpoint.name]
    body = git(repo, "tag", "-l", "--format=%(contents)", checkpoint.name)
    assert "Branch: main" in body
    assert "Note: before refactor" in body
    assert ui.messages[-1] == f"Created known-good tag:\n\n{checkpoint.name}"


@pytest.mark.integration
def test_offer_known_good_never_prompts_when_tag_at_head(presenter, repo: Path):
    git_tools.create_tag(repo, "gutt/known-good-existing", message="x")
    ui = presenter(confirms=[True], texts=["gutt/known-good-other", ""])

    assert _manager(ui).offer_known_good(repo) is None
    assert ui.events == []


@pytest.mark.integration
def test_second_offer_at_same_head_is_skipped(presenter, repo: Path):
    ui = presenter(confirms=[True, True], texts=["gutt/known-good-a", "", "gutt/known-good-b", ""])
    manager = _manager(ui)

    assert manager.offer_known_good(repo) is not None
    prompts_after_first = len(ui.events)
    assert manager.offer_known_good(repo) is None
    assert len(ui.events) == prompts_after_first


@pytest.mark.integration
def test_mark_known_good_twice_with_distinct_names(presenter, repo: Path):
    ui = presenter(texts=["gutt/known-good-a", "", "gutt/known-good-b", ""])
    manager = _manager(ui)

    first = manager.mark_known_good(repo)
    second = manager.mark_known_good(repo)

    assert {first.name, second.name} == {"gutt/known-good-a", "gutt/known-good-b"}
    assert sorted(git_tools.tags_at_head(repo, git_tools.KNOWN_GOOD_PATTERN)) == [
        "gutt/known-good-a",
        "gutt/known-good-b",
    ]
    assert [c.name for c in manager.list_known_good(repo)] != []


@pytest.mark.integration
def test_mark_known_good_name_collision_raises(presenter, repo: Path):
    git_tools.create_tag(repo, "gutt/known-good-a", message="x")
    ui = presenter(texts=["gutt/known-good-a", "never asked"])
    with pytest.raises(CheckpointCreationFailed, match="tag already exists"):
        _manager(ui).mark_known_good(repo)
    assert ui.prompts("prompt_text") == ["Known-good tag name"]


@pytest.mark.integration
def test_mark_known_good_cancel_and_invalid_name(presenter, repo: Path):
    with pytest.raises(UserCancelled):
        _manager(presenter(texts=[None])).mark_known_good(repo)
    with pytest.raises(CheckpointCreationFailed, match="invalid tag name"):
        _manager(presenter(texts=["bad..name"])).mark_known_good(repo)
    assert git_tools.list_tags(repo) == []


@pytest.mark.integration
def test_offer_known_good_reports_collision_and_continues(presenter, repo: Path, commit):
    git_tools.create_tag(repo, "gutt/known-good-a", message="x")
    commit(repo, "next.txt", "n\n")
    ui = presenter(confirms=[True], texts=["gutt/known-good-a", ""])

    assert _manager(ui).offer_known_good(repo) is None
    assert ui.messages[-1].startswith("Failed to create known-good tag:\n\ngutt/known-good-a")


@pytest.mark.integration
def test_offer_backup_force_overwrites_same_second(presenter, repo: Path, commit):
    manager = _manager(presenter(confirms=[True, True]))
    first = manager.offer_backup(repo)
    commit(repo, "next.txt", "n\n")
    second = manager.offer_backup(repo)

    assert first is not None and second is not None
    assert first.name == second.name
    assert git_tools.tag_commit(repo, second.name) == git_tools.head_sha(repo, short=False)
