"""The guarded execution wrapper shared by every mutating action.

One call to :meth:`ActionRunner.run` walks::

    Idle -> precondition gates -> risk tier -> confirmation stages
         -> execute -> Success | Failed | Cancelled

exactly once.  Nothing mutating runs until every gate and prompt has passed,
and no cancellation is offered after the underlying command has started.
"""

from __future__ import annotations

import functools
import logging
import subprocess
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Union

from gutt import gate
from gutt.checkpoints import CheckpointManager
from gutt.gate import GateResult
from gutt.confirm import confirm_boolean, confirm_phrase, confirm_preflight, guarded_prompt
from gutt.errors import CheckpointCreationFailed, CommandFailed, PreconditionFailed, UserCancelled
from gutt.file_io import read_text_lossy, scratch_file
from gutt.git_tools import GitError
from gutt.policy import ActionDescriptor, ConfirmStage, confirmation_plan
from gutt.repo_state import snapshot
from gutt.schemas import ActionResult, ActionStatus, Policy, RepoState
from gutt.ui import Presenter

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommandOutcome:
    """Exit code and merged stdout/stderr of one subprocess."""

    exit_code: int
    output: str = ""

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


def execute_command(
    argv: Sequence[str],
    cwd: str | Path,
    *,
    capture: bool = True,
) -> CommandOutcome:
    """Run *argv* in *cwd*, spooling merged output through a scratch file.

    With ``capture=False`` the child inherits the terminal (editors, pagers)
    and no output is returned.
    """
    logger.debug("exec %s (cwd=%s)", " ".join(argv), cwd)
    if not capture:
        try:
            completed = subprocess.run(list(argv), cwd=cwd, check=False)
        except OSError as exc:
            return CommandOutcome(exit_code=127, output=str(exc))
        return CommandOutcome(exit_code=completed.returncode)

    with scratch_file() as out_path:
        try:
            with out_path.open("wb") as handle:
                completed = subprocess.run(
                    list(argv),
                    cwd=cwd,
                    stdout=handle,
                    stderr=subprocess.STDOUT,
                    stdin=subprocess.DEVNULL,
                    check=False,
                )
        except OSError as exc:
            return CommandOutcome(exit_code=127, output=str(exc))
        return CommandOutcome(exit_code=completed.returncode, output=read_text_lossy(out_path))


Executor = Callable[[Sequence[str], Path], CommandOutcome]


@dataclass
class ActionContext:
    """Everything a multi-step flow needs once the pipeline has let it run."""

    repo: Path
    descriptor: ActionDescriptor
    state: RepoState
    ui: Presenter
    policy: Policy
    checkpoints: CheckpointManager
    runner: ActionRunner

    def git(self, *args: str, show: bool = True, capture: bool = True) -> CommandOutcome:
        """Run a git subcommand and optionally display its output."""
        if capture:
            outcome = self.runner.executor(["git", *args], self.repo)
        else:
            outcome = execute_command(["git", *args], self.repo, capture=False)
        if show and outcome.output.strip():
            self.ui.show_text(f"git {' '.join(args)}", outcome.output)
        return outcome

    def git_checked(self, *args: str, show: bool = True) -> CommandOutcome:
        """Like :meth:`git` but raise :class:`CommandFailed` on a nonzero exit."""
        outcome = self.git(*args, show=show)
        if not outcome.ok:
            raise CommandFailed(
                f"git {' '.join(args)} failed (exit {outcome.exit_code}).",
                exit_code=outcome.exit_code,
                output=outcome.output,
            )
        return outcome

    def ask(self, label: str, default: str = "") -> str:
        """Prompt for text; backing out raises :class:`UserCancelled`."""
        value = self.ui.prompt_text(label, default)
        if value is None:
            raise UserCancelled()
        return value

    def pick(self, title: str, options: Sequence[tuple[str, str]]) -> str:
        value = self.ui.select_one(title, options)
        if value is None:
            raise UserCancelled()
        return value

    def confirm(self, text: str) -> bool:
        return confirm_boolean(self.ui, text)


Flow = Callable[[ActionContext], ActionResult]
Command = Union[Sequence[str], Flow]
Precheck = Callable[[Path, RepoState], GateResult]


class ActionRunner:
    """Runs one guarded action per call and reports its outcome."""

    def __init__(
        self,
        ui: Presenter,
        policy: Policy,
        *,
        checkpoints: CheckpointManager | None = None,
        executor: Executor | None = None,
    ) -> None:
        self.ui = ui
        self.policy = policy
        self.checkpoints = checkpoints or CheckpointManager(ui, policy)
        self.executor: Executor = executor or execute_command

    def run(
        self,
        descriptor: ActionDescriptor,
        repo_path: str | Path,
        command: Command,
        *,
        prechecks: Sequence[Precheck] = (),
    ) -> ActionResult:
        """Run *command* behind the gates and prompts *descriptor* calls for.

        *prechecks* are action-specific gates evaluated after the descriptor's
        own, still before any prompt.
        """
        repo = Path(repo_path)
        logger.info("Action %s requested in %s", descriptor.id, repo)
        state = snapshot(repo)

        refusal = self._check_preconditions(descriptor, repo, state, prechecks)
        if refusal is not None:
            result = ActionResult.failed(refusal, output=refusal, exit_code=None)
        elif not self._confirm(descriptor, repo, state):
            result = ActionResult.cancelled()
        else:
            result = self._execute(descriptor, repo, state, command)
        return self._finish(descriptor, result)

    # -- stages --------------------------------------------------------------

    def _check_preconditions(
        self,
        descriptor: ActionDescriptor,
        repo: Path,
        state: RepoState,
        prechecks: Sequence[Precheck],
    ) -> str | None:
        checks: list[Callable[[], GateResult]] = []
        if descriptor.requires_branch:
            checks.append(lambda: gate.require_branch(state, descriptor.label))
        if descriptor.requires_clean_tree:
            checks.append(lambda: gate.require_clean(repo, descriptor.label, state=state))
        if descriptor.requires_upstream:
            checks.append(lambda: gate.require_upstream(state, descriptor.label))
        if descriptor.requires_remote:
            checks.append(lambda: gate.require_remote(state, descriptor.label))
        checks.extend(functools.partial(check, repo, state) for check in prechecks)
        for check in checks:
            try:
                verdict = check()
            except GitError as exc:
                return f"Refusing to run: {descriptor.label}\n\n{exc}"
            if not verdict.ok:
                return verdict.reason
        return None

    def _confirm(self, descriptor: ActionDescriptor, repo: Path, state: RepoState) -> bool:
        for stage in confirmation_plan(descriptor):
            if stage is ConfirmStage.CONFIRM:
                if not confirm_boolean(self.ui, guarded_prompt(descriptor)):
                    return False
            elif stage is ConfirmStage.PREFLIGHT_CONFIRM:
                if not confirm_preflight(self.ui, state, descriptor):
                    return False
            elif stage is ConfirmStage.CHECKPOINT_OFFER:
                self._offer_checkpoints(repo)
            elif stage is ConfirmStage.PHRASE_CONFIRM:
                if not confirm_phrase(
                    self.ui,
                    f"Final confirmation required.\n\n{descriptor.label}\n\n"
                    "This rewrites history and cannot be undone by gutt.",
                    self.policy.confirm_phrase,
                ):
                    return False
            else:
                raise AssertionError(f"Unhandled confirmation stage: {stage}")
        return True

    def _offer_checkpoints(self, repo: Path) -> None:
        # Advisory: a git failure here is reported and the action goes on.
        for offer in (self.checkpoints.offer_known_good, self.checkpoints.offer_backup):
            try:
                offer(repo)
            except GitError as exc:
                logger.warning("Checkpoint offer failed in %s: %s", repo, exc)
                self.ui.message(
                    f"Could not create a checkpoint tag:\n\n{exc}\n\nContinuing without it."
                )

    def _execute(
        self,
        descriptor: ActionDescriptor,
        repo: Path,
        state: RepoState,
        command: Command,
    ) -> ActionResult:
        if not callable(command):
            outcome = self.executor(list(command), repo)
            self.ui.show_text(descriptor.label, outcome.output)
            return ActionResult.from_exit_code(outcome.exit_code, outcome.output)

        ctx = ActionContext(
            repo=repo,
            descriptor=descriptor,
            state=state,
            ui=self.ui,
            policy=self.policy,
            checkpoints=self.checkpoints,
            runner=self,
        )
        try:
            return command(ctx)
        except UserCancelled as exc:
            return ActionResult.cancelled(str(exc) or "Cancelled.")
        except PreconditionFailed as exc:
            return ActionResult.failed(str(exc), output=str(exc), exit_code=None)
        except CommandFailed as exc:
            return ActionResult.failed(str(exc), output=exc.output, exit_code=exc.exit_code)
        except CheckpointCreationFailed as exc:
            return ActionResult.failed(str(exc), exit_code=None)
        except GitError as exc:
            return ActionResult.failed(str(exc), exit_code=None)

    def _finish(self, descriptor: ActionDescriptor, result: ActionResult) -> ActionResult:
        update: dict[str, object] = {"action_id": descriptor.id}
        if result.ok and descriptor.alters_shell_integration:
            update["restart_required"] = True
        final = result.model_copy(update=update)

        if final.status is ActionStatus.SUCCESS:
            logger.info("Action %s succeeded", descriptor.id)
            if final.message:
                self.ui.message(final.message)
        elif final.status is ActionStatus.CANCELLED:
            logger.info("Action %s cancelled", descriptor.id)
            self.ui.message(f"{descriptor.label}: cancelled. Nothing was changed.")
        else:
            logger.warning("Action %s failed: %s", descriptor.id, final.message)
            reason = final.message or "Command failed."
            self.ui.message(f"{descriptor.label} failed.\n\n{reason}")

        if final.restart_required:
            self.ui.message(
                "Restart required.\n\nShell integration changed. "
                "Open a new terminal and rerun gutt."
            )
        return final
