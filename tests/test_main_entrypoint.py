"""Tests for CLI entrypoint dispatch and command handlers."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

import gutt.__main__ as main_module
from gutt.actions import ActionId
from gutt.config import DEFAULTS, ConfigStore
from gutt.schemas import ActionResult


@pytest.fixture
def not_root(monkeypatch):
    monkeypatch.setattr("gutt.preflight.running_as_root", lambda: False)


def test_main_entrypoint_source_is_ascii_safe() -> None:
    source_text = Path(main_module.__file__).read_text(encoding="utf-8")
    assert source_text.isascii()


def test_main_without_command_prints_help(capsys) -> None:
    rc = main_module.main([])
    captured = capsys.readouterr()
    assert rc == 1
    assert "usage: gutt" in captured.err


def test_actions_lists_catalog(capsys) -> None:
    assert main_module.main(["actions"]) == 0
    out = capsys.readouterr().out
    for action_id in ActionId:
        assert action_id.value in out
    assert "destructive" in out


def test_run_rejects_unknown_action(capsys, not_root) -> None:
    assert main_module.main(["run", "yolo"]) == 1
    assert "Unknown action 'yolo'" in capsys.readouterr().err


def test_run_fails_preflight_outside_repository(capsys, not_root, tmp_path: Path) -> None:
    rc = main_module.main(["run", "status", "--repo", str(tmp_path)])
    assert rc == 1
    assert "Preflight failed" in capsys.readouterr().err


def test_run_refuses_root(capsys, monkeypatch, repo: Path) -> None:
    monkeypatch.setattr("gutt.preflight.running_as_root", lambda: True)
    assert main_module.main(["status", "--repo", str(repo)]) == 1
    assert "Run gutt as your normal user" in capsys.readouterr().err


@pytest.mark.integration
def test_run_maps_result_to_exit_code(monkeypatch, not_root, repo: Path) -> None:
    seen: dict[str, object] = {}

    def fake_run_action(runner, action_id, path):
        seen["action"] = action_id
        seen["repo"] = Path(path)
        return ActionResult.failed("nope") if action_id is ActionId.PUSH else ActionResult.cancelled()

    monkeypatch.setattr(main_module, "run_action", fake_run_action)

    assert main_module.main(["run", "push", "--repo", str(repo)]) == 1
    assert seen["action"] is ActionId.PUSH
    assert seen["repo"].resolve() == repo.resolve()
    assert main_module.main(["run", "force-push", "--repo", str(repo)]) == 0
    assert seen["action"] is ActionId.FORCE_PUSH


@pytest.mark.integration
def test_status_prints_summary(capsys, not_root, repo: Path) -> None:
    assert main_module.main(["status", "--repo", str(repo)]) == 0
    out = capsys.readouterr().out
    assert "Branch:    main" in out
    assert "initial commit" in out


@pytest.mark.integration
def test_doctor_json(capsys, not_root, repo: Path) -> None:
    assert main_module.main(["doctor", "--repo", str(repo), "--json"]) == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["ready"] is True


@pytest.mark.integration
def test_menu_stops_when_restart_required(monkeypatch, not_root, repo: Path) -> None:
    picks = iter(["status", "fetch"])
    restart = ActionResult.success().model_copy(update={"restart_required": True})
    results = iter([ActionResult.success(), restart])
    ran: list[ActionId] = []

    class FakePresenter:
        def show_text(self, title, text):
            pass

        def select_one(self, title, options):
            return next(picks)

    def fake_run_action(runner, action_id, path):
        ran.append(action_id)
        return next(results)

    monkeypatch.setattr(main_module, "ConsolePresenter", FakePresenter)
    monkeypatch.setattr(main_module, "run_action", fake_run_action)

    assert main_module.main(["menu", "--repo", str(repo)]) == 0
    assert ran == [ActionId.STATUS, ActionId.FETCH]


def test_config_set_get_and_show(capsys) -> None:
    assert main_module.main(["config", "set", "offer_backup_tag_before_danger", "false"]) == 0
    assert main_module.main(["config", "set", "confirm_phrase_forcepush", "DO IT"]) == 0
    capsys.readouterr()

    assert main_module.main(["config", "get", "offer_backup_tag_before_danger"]) == 0
    assert capsys.readouterr().out.strip() == "False"

    assert main_module.main(["config"]) == 0
    out = capsys.readouterr().out
    assert "confirm_phrase_forcepush: DO IT" in out
    assert "'offer_backup_tag': False" in out


@pytest.mark.parametrize(
    ("key", "raw", "field"),
    [
        ("confirm_phrase_forcepush", "yes", "confirm_phrase"),
        ("confirm_phrase_forcepush", "123", "confirm_phrase"),
        ("default_pull_mode", "rebase", "pull_mode"),
    ],
)
def test_config_set_keeps_string_values_verbatim(key, raw, field) -> None:
    assert main_module.main(["config", "set", key, raw]) == 0

    store = ConfigStore()
    assert store.load()[key] == raw
    assert getattr(store.policy(), field) == raw


def test_config_path_creates_file_with_defaults(capsys) -> None:
    assert main_module.main(["config", "path"]) == 0

    path = Path(capsys.readouterr().out.strip())
    assert path == ConfigStore().path
    assert ConfigStore(path).load() == DEFAULTS


def test_config_get_unknown_key(capsys) -> None:
    assert main_module.main(["config", "get", "nope"]) == 1
    assert "Unknown key: nope" in capsys.readouterr().err
