"""Tests for precondition gates."""

from __future__ import annotations

from pathlib import Path

import pytest

from gutt import gate
from gutt.schemas import RepoState


def _state(**overrides) -> RepoState:
    values = {"path": "/r", "branch": "main", "upstream": "origin/main", "ahead": 0, "behind": 0}
    values.update(overrides)
    return RepoState(**values)


def test_require_clean_passes_on_clean_state():
    verdict = gate.require_clean("/r", "Force push", state=_state())
    assert verdict.ok is True
    assert verdict.reason == ""


def test_require_clean_names_action_and_count():
    verdict = gate.require_clean("/r", "Force push", state=_state(dirty_count=3))
    assert verdict.ok is False
    assert "Refusing to run: Force push" in verdict.reason
    assert "3 file(s)" in verdict.reason
    assert "Commit or stash first." in verdict.reason


def test_untracked_only_counts_as_dirty():
    verdict = gate.require_clean("/r", "Pull", state=_state(dirty_count=1, untracked_count=1))
    assert verdict.ok is False


def test_require_branch_refuses_detached_head():
    assert gate.require_branch(_state(), "Undo").ok is True
    verdict = gate.require_branch(_state(branch="DETACHED"), "Undo")
    assert verdict.ok is False
    assert "detached" in verdict.reason


def test_require_upstream_and_remote():
    assert gate.require_upstream(_state(), "Pull").ok is True
    refused = gate.require_upstream(_state(upstream=None), "Pull")
    assert refused.ok is False
    assert "No upstream is set for 'main'" in refused.reason

    assert gate.require_remote(_state(remotes=["origin  /tmp/x"]), "Fetch").ok is True
    assert gate.require_remote(_state(), "Fetch").ok is False


@pytest.mark.integration
def test_require_clean_snapshots_when_no_state_given(repo: Path):
    assert gate.require_clean(repo, "Pull").ok is True
    (repo / "untracked.txt").write_text("x\n", encoding="utf-8")
    assert gate.require_clean(repo, "Pull").ok is False
