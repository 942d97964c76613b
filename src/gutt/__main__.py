"""CLI entrypoint for gutt."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

import yaml

from gutt.actions import DESCRIPTORS, ActionId, parse_action_id, run_action
from gutt.config import DEFAULTS, STRING_KEYS, ConfigStore
from gutt.preflight import PreflightReport, build_preflight_report
from gutt.repo_state import format_summary, snapshot
from gutt.runner import ActionRunner
from gutt.schemas import ActionStatus
from gutt.ui import ConsolePresenter, Presenter


def _load_dotenv() -> None:
    """Load .env from cwd, its parent, or package root so it's found regardless of cwd."""
    try:
        from dotenv import load_dotenv
    except ImportError:
        return
    # Package root = directory containing pyproject.toml / .env (parent of src/)
    _package_root = Path(__file__).resolve().parent.parent.parent
    for dir_ in (Path.cwd(), Path.cwd().parent, _package_root):
        env_file = dir_ / ".env"
        if env_file.is_file():
            load_dotenv(env_file)
            return
    load_dotenv()


_load_dotenv()

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    """Build and return the command-line parser for all supported modes."""
    p = argparse.ArgumentParser(
        prog="gutt",
        description="gutt - guarded git operations with confirmations and safety tags.",
    )
    p.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    sub = p.add_subparsers(dest="command")

    def _repo_arg(parser: argparse.ArgumentParser) -> None:
        parser.add_argument(
            "--repo", default=".", help="Path inside the target git repository (default: cwd)"
        )

    run_p = sub.add_parser("run", help="Run one action through the guarded pipeline.")
    run_p.add_argument("action", help="Action id (see 'gutt actions').")
    _repo_arg(run_p)

    status_p = sub.add_parser("status", help="Print the repository summary.")
    _repo_arg(status_p)

    sub.add_parser("actions", help="List available actions and their risk tiers.")

    menu_p = sub.add_parser("menu", help="Interactive action menu.")
    _repo_arg(menu_p)

    doctor_p = sub.add_parser("doctor", help="Check that gutt can run here.")
    _repo_arg(doctor_p)
    doctor_p.add_argument("--json", action="store_true", help="Print the report as JSON")

    config_p = sub.add_parser("config", help="Show or change persisted settings.")
    config_sub = config_p.add_subparsers(dest="config_command")
    config_sub.add_parser("show", help="Print effective settings.")
    config_sub.add_parser("path", help="Print the config file path, creating it with defaults.")
    get_p = config_sub.add_parser("get", help="Print one setting.")
    get_p.add_argument("key")
    set_p = config_sub.add_parser("set", help="Change one setting.")
    set_p.add_argument("key")
    set_p.add_argument("value")
    return p


def _print_doctor_report(report: PreflightReport) -> None:
    """Print a human-readable diagnostics report."""
    print("\n  gutt - Setup Diagnostics")
    print("  " + "=" * 58)
    print(f"  Repository: {report.resolved_repo_path or '(not provided)'}")

    for check in report.checks:
        status = {"pass": "PASS", "warn": "WARN", "fail": "FAIL"}.get(check.status, "INFO")
        print(f"\n  [{status}] {check.label}")
        print(f"    {check.detail}")
        if check.hint and check.status != "pass":
            print(f"    Fix: {check.hint}")

    summary = report.summary
    print("\n  " + "-" * 58)
    print(f"  Summary: {summary['pass']} pass, {summary['warn']} warn, {summary['fail']} fail")
    print(f"  Ready:   {'yes' if report.ready else 'no'}")


def _preflight_repo(raw_repo: str) -> Path | None:
    """Resolve the repository root, printing failures to stderr."""
    report = build_preflight_report(repo_path=raw_repo)
    if not report.ready:
        print("Preflight failed:", file=sys.stderr)
        for message in report.failure_messages():
            print(f"  - {message}", file=sys.stderr)
        return None
    return Path(report.resolved_repo_path)


def _make_runner(ui: Presenter) -> ActionRunner:
    return ActionRunner(ui, ConfigStore().policy())


def _run_one(args: argparse.Namespace) -> int:
    try:
        action_id = parse_action_id(args.action)
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    repo = _preflight_repo(args.repo)
    if repo is None:
        return 1
    result = run_action(_make_runner(ConsolePresenter()), action_id, repo)
    return 1 if result.status is ActionStatus.FAILED else 0


def _run_status(args: argparse.Namespace) -> int:
    repo = _preflight_repo(args.repo)
    if repo is None:
        return 1
    print(format_summary(snapshot(repo)))
    return 0


def _list_actions() -> int:
    for action_id in ActionId:
        descriptor = DESCRIPTORS[action_id]
        print(f"  {action_id.value:<20} {descriptor.risk_tier.value:<12} {descriptor.label}")
    return 0


def _run_menu(args: argparse.Namespace) -> int:
    """Loop over the action menu until the operator quits or a restart is needed."""
    repo = _preflight_repo(args.repo)
    if repo is None:
        return 1
    ui = ConsolePresenter()
    runner = _make_runner(ui)
    options = [
        (a.value, f"[{DESCRIPTORS[a].risk_tier.value}] {DESCRIPTORS[a].label}") for a in ActionId
    ]
    while True:
        ui.show_text("Repository", format_summary(snapshot(repo)))
        picked = ui.select_one("Choose an action", options)
        if picked is None:
            return 0
        result = run_action(runner, ActionId(picked), repo)
        if result.restart_required:
            return 0


def _run_doctor(args: argparse.Namespace) -> int:
    """Run setup diagnostics and print the report."""
    report = build_preflight_report(repo_path=args.repo)
    if args.json:
        print(json.dumps(report.to_dict(), indent=2))
    else:
        _print_doctor_report(report)
    return 0 if report.ready else 1


def _run_config(args: argparse.Namespace) -> int:
    store = ConfigStore()
    command = getattr(args, "config_command", None) or "show"
    if command == "path":
        print(store.ensure_file())
        return 0
    if command == "get":
        value = store.get(args.key)
        if value is None:
            print(f"Unknown key: {args.key}", file=sys.stderr)
            return 1
        print(value)
        return 0
    if command == "set":
        if args.key not in DEFAULTS:
            logger.warning("Storing unrecognized key %s", args.key)
        if args.key in STRING_KEYS:
            store.set(args.key, args.value)
            return 0
        try:
            value = yaml.safe_load(args.value)
        except yaml.YAMLError:
            value = args.value
        store.set(args.key, args.value if value is None else value)
        return 0
    for key in DEFAULTS:
        print(f"{key}: {store.get(key)}")
    print(f"# policy: {store.policy().model_dump()}")
    return 0


def main(argv: list[str] | None = None) -> int:
    """Parse arguments and dispatch to the appropriate mode."""
    parser = _build_parser()
    args = parser.parse_args(argv)
    level = logging.DEBUG if getattr(args, "verbose", False) else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
        datefmt="%H:%M:%S",
    )
    if args.command == "run":
        return _run_one(args)
    if args.command == "status":
        return _run_status(args)
    if args.command == "actions":
        return _list_actions()
    if args.command == "menu":
        return _run_menu(args)
    if args.command == "doctor":
        return _run_doctor(args)
    if args.command == "config":
        return _run_config(args)

    parser.print_help(sys.stderr)
    return 1


if __name__ == "__main__":
    sys.exit(main())
