"""Catalog of supported actions: descriptors, prechecks, and handlers.

Every :class:`ActionId` maps to exactly one descriptor and one handler.  A
handler is either a fixed git argv or a flow taking an
:class:`~gutt.runner.ActionContext`.  Flows only start once the runner's gates
and prompts have passed; anything they still need to ask happens before their
first mutating git call.
"""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path

from gutt import git_tools
from gutt.errors import (
    CheckpointCreationFailed,
    CommandFailed,
    PreconditionFailed,
    UserCancelled,
)
from gutt.gate import GateResult
from gutt.policy import ActionDescriptor, RiskTier
from gutt.runner import ActionContext, ActionRunner, Command, CommandOutcome, Precheck
from gutt.schemas import ActionResult, ActionStatus, RepoState

logger = logging.getLogger(__name__)


class ActionId(str, Enum):
    STATUS = "status"
    FETCH = "fetch"
    PULL = "pull"
    PULL_SAFE_UPDATE = "pull_safe_update"
    PUSH = "push"
    STASH_PUSH = "stash_push"
    STASH_DROP = "stash_drop"
    MERGE_BRANCH = "merge_branch"
    DELETE_BRANCH = "delete_branch"
    MARK_KNOWN_GOOD = "mark_known_good"
    LIST_CHECKPOINTS = "list_checkpoints"
    CLEAN_UNTRACKED = "clean_untracked"
    DISCARD_FILE = "discard_file"
    INTERACTIVE_REBASE = "interactive_rebase"
    UNDO_LAST_SOFT = "undo_last_soft"
    AMEND_LAST = "amend_last"
    FORCE_PUSH = "force_push"
    REWRITE_BASELINE = "rewrite_baseline"
    SQUASH_MERGE = "squash_merge"


DESCRIPTORS: dict[ActionId, ActionDescriptor] = {
    ActionId.STATUS: ActionDescriptor(
        id=ActionId.STATUS.value,
        label="Show status",
        risk_tier=RiskTier.SAFE,
        description="git status",
    ),
    ActionId.FETCH: ActionDescriptor(
        id=ActionId.FETCH.value,
        label="Fetch all remotes",
        risk_tier=RiskTier.SAFE,
        description="git fetch --all --prune",
        requires_remote=True,
    ),
    ActionId.PULL: ActionDescriptor(
        id=ActionId.PULL.value,
        label="Pull (configured mode)",
        risk_tier=RiskTier.GUARDED,
        description="git pull using default_pull_mode (ff-only, merge or rebase).",
        requires_clean_tree=True,
        requires_branch=True,
        requires_upstream=True,
    ),
    ActionId.PULL_SAFE_UPDATE: ActionDescriptor(
        id=ActionId.PULL_SAFE_UPDATE.value,
        label="Pull (safe mode, fast-forward only)",
        risk_tier=RiskTier.GUARDED,
        description=(
            "1) Update remote tracking refs:\n   git fetch --all --prune\n"
            "2) Fast-forward only update (no merges/rebases):\n   git merge --ff-only <upstream>"
        ),
        requires_clean_tree=True,
        requires_branch=True,
        requires_upstream=True,
    ),
    ActionId.PUSH: ActionDescriptor(
        id=ActionId.PUSH.value,
        label="Push current branch",
        risk_tier=RiskTier.GUARDED,
        description="git push (sets upstream on first push).",
        requires_branch=True,
        requires_remote=True,
    ),
    ActionId.STASH_PUSH: ActionDescriptor(
        id=ActionId.STASH_PUSH.value,
        label="Stash changes (including untracked)",
        risk_tier=RiskTier.GUARDED,
        description="git stash push -u",
    ),
    ActionId.STASH_DROP: ActionDescriptor(
        id=ActionId.STASH_DROP.value,
        label="Drop a stash entry",
        risk_tier=RiskTier.GUARDED,
        description="git stash drop <stash>. The dropped changes are not kept anywhere.",
    ),
    ActionId.MERGE_BRANCH: ActionDescriptor(
        id=ActionId.MERGE_BRANCH.value,
        label="Merge a branch into the current branch",
        risk_tier=RiskTier.GUARDED,
        description="git merge <branch>. Conflicts are reported, never auto-resolved.",
        requires_clean_tree=True,
        requires_branch=True,
    ),
    ActionId.DELETE_BRANCH: ActionDescriptor(
        id=ActionId.DELETE_BRANCH.value,
        label="Delete a local branch",
        risk_tier=RiskTier.GUARDED,
        description="git branch -d <branch>. The current and primary branches are refused.",
        requires_clean_tree=True,
    ),
    ActionId.MARK_KNOWN_GOOD: ActionDescriptor(
        id=ActionId.MARK_KNOWN_GOOD.value,
        label="Mark current commit as known-good",
        risk_tier=RiskTier.GUARDED,
        description="Creates an annotated gutt/known-good-* tag at HEAD.",
    ),
    ActionId.LIST_CHECKPOINTS: ActionDescriptor(
        id=ActionId.LIST_CHECKPOINTS.value,
        label="List known-good tags",
        risk_tier=RiskTier.SAFE,
    ),
    ActionId.CLEAN_UNTRACKED: ActionDescriptor(
        id=ActionId.CLEAN_UNTRACKED.value,
        label="Delete untracked files",
        risk_tier=RiskTier.DESTRUCTIVE,
        description="git clean -fd (a dry run is shown first). This cannot be undone.",
        offers_checkpoint=True,
    ),
    ActionId.DISCARD_FILE: ActionDescriptor(
        id=ActionId.DISCARD_FILE.value,
        label="Discard changes to a file",
        risk_tier=RiskTier.DESTRUCTIVE,
        description=(
            "git restore --worktree --staged -- <file>. Staged and unstaged edits to the "
            "chosen file are lost."
        ),
        offers_checkpoint=True,
    ),
    ActionId.INTERACTIVE_REBASE: ActionDescriptor(
        id=ActionId.INTERACTIVE_REBASE.value,
        label="Interactive rebase",
        risk_tier=RiskTier.DESTRUCTIVE,
        description="git rebase -i <base>. This rewrites history.",
        requires_clean_tree=True,
        requires_branch=True,
        offers_checkpoint=True,
    ),
    ActionId.UNDO_LAST_SOFT: ActionDescriptor(
        id=ActionId.UNDO_LAST_SOFT.value,
        label="Undo last commit (soft reset)",
        risk_tier=RiskTier.DESTRUCTIVE,
        description=(
            "git reset --soft HEAD~1. This rewrites history; the undone changes stay staged.\n"
            "If the commit was already pushed you will likely need force-with-lease."
        ),
        requires_clean_tree=True,
        requires_branch=True,
        requires_typed_phrase=True,
        offers_checkpoint=True,
    ),
    ActionId.AMEND_LAST: ActionDescriptor(
        id=ActionId.AMEND_LAST.value,
        label="Amend last commit",
        risk_tier=RiskTier.DESTRUCTIVE,
        description=(
            "git commit --amend. This rewrites the last commit.\n"
            "If it was already pushed you will likely need force-with-lease."
        ),
        requires_branch=True,
        requires_typed_phrase=True,
        offers_checkpoint=True,
    ),
    ActionId.FORCE_PUSH: ActionDescriptor(
        id=ActionId.FORCE_PUSH.value,
        label="Force push (with lease)",
        risk_tier=RiskTier.DESTRUCTIVE,
        description=(
            "git push --force-with-lease <remote> HEAD:<branch>. This can overwrite remote "
            "history.\nA local safety tag is created automatically before the push."
        ),
        requires_clean_tree=True,
        requires_branch=True,
        requires_upstream=True,
        requires_typed_phrase=True,
        offers_checkpoint=True,
    ),
    ActionId.REWRITE_BASELINE: ActionDescriptor(
        id=ActionId.REWRITE_BASELINE.value,
        label="Rewrite history to a single baseline commit",
        risk_tier=RiskTier.DESTRUCTIVE,
        description=(
            "Replaces the current branch with one commit holding the current tree.\n"
            "If the remote already has commits you may need a force push afterwards."
        ),
        requires_clean_tree=True,
        requires_branch=True,
        requires_typed_phrase=True,
        offers_checkpoint=True,
    ),
    ActionId.SQUASH_MERGE: ActionDescriptor(
        id=ActionId.SQUASH_MERGE.value,
        label="Squash merge current branch into main",
        risk_tier=RiskTier.DESTRUCTIVE,
        description=(
            "Switches to the primary branch, fast-forwards it, tags it, then creates ONE "
            "commit from this branch with git merge --squash."
        ),
        requires_clean_tree=True,
        requires_branch=True,
        offers_checkpoint=True,
    ),
}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _from_outcome(outcome: CommandOutcome, success: str, failure: str) -> ActionResult:
    if outcome.ok:
        return ActionResult.success(success, output=outcome.output)
    return ActionResult.failed(failure, output=outcome.output, exit_code=outcome.exit_code)


def _fetch_all(ctx: ActionContext, purpose: str) -> ActionResult | None:
    """Fetch every remote; return a failed result when that is impossible."""
    outcome = ctx.git("fetch", "--all", "--prune", show=False)
    if outcome.ok:
        return None
    ctx.ui.show_text("git fetch --all --prune", outcome.output)
    return ActionResult.failed(
        f"Fetch failed. {purpose} aborted.", output=outcome.output, exit_code=outcome.exit_code
    )


def _switch(ctx: ActionContext, branch: str) -> CommandOutcome:
    outcome = ctx.git("switch", branch, show=False)
    if not outcome.ok:
        outcome = ctx.git("checkout", branch, show=False)
    return outcome


# ---------------------------------------------------------------------------
# Prechecks
# ---------------------------------------------------------------------------


def _needs_parent_commit(repo: Path, state: RepoState) -> GateResult:
    if not git_tools.has_commits(repo):
        return GateResult.refused("No commits found in this repo.\n\nNothing to undo.")
    if not git_tools.has_parent_commit(repo):
        return GateResult.refused(
            "This repo has only a single commit.\n\nUndo last commit (soft) needs HEAD~1."
        )
    return GateResult.passed()


def _needs_commits(repo: Path, state: RepoState) -> GateResult:
    if git_tools.has_commits(repo):
        return GateResult.passed()
    return GateResult.refused("No commits yet. Nothing to rewrite.")


def _needs_feature_branch(repo: Path, state: RepoState) -> GateResult:
    main = git_tools.primary_branch(repo)
    if state.branch == main:
        return GateResult.refused(
            f"Refusing to squash-merge.\n\nYou are already on '{main}'.\n\n"
            "Switch to a feature branch first."
        )
    if not git_tools.branch_exists(repo, main):
        return GateResult.refused(f"Primary branch '{main}' does not exist locally.")
    if not git_tools.log_oneline(repo, f"{main}..{state.branch}"):
        return GateResult.refused(
            f"Nothing to squash-merge.\n\nNo commits found in:\n  {main}..{state.branch}"
        )
    return GateResult.passed()


def _needs_commit_to_amend(repo: Path, state: RepoState) -> GateResult:
    if git_tools.has_commits(repo):
        return GateResult.passed()
    return GateResult.refused("No commits yet. Nothing to amend.")


def _needs_tracked_changes(repo: Path, state: RepoState) -> GateResult:
    if git_tools.has_commits(repo) and _discardable(repo):
        return GateResult.passed()
    return GateResult.refused("No changes to discard.")


def _needs_stash(repo: Path, state: RepoState) -> GateResult:
    if state.stash_count:
        return GateResult.passed()
    return GateResult.refused("No stashes found.")


def _discardable(repo: Path) -> list[git_tools.StatusEntry]:
    return [entry for entry in git_tools.status_entries(repo) if not entry.untracked]


PRECHECKS: dict[ActionId, tuple[Precheck, ...]] = {
    ActionId.STASH_DROP: (_needs_stash,),
    ActionId.DISCARD_FILE: (_needs_tracked_changes,),
    ActionId.AMEND_LAST: (_needs_commit_to_amend,),
    ActionId.UNDO_LAST_SOFT: (_needs_parent_commit,),
    ActionId.REWRITE_BASELINE: (_needs_commits,),
    ActionId.INTERACTIVE_REBASE: (_needs_commits,),
    ActionId.SQUASH_MERGE: (_needs_feature_branch,),
}


# ---------------------------------------------------------------------------
# Flows
# ---------------------------------------------------------------------------


def fetch_all(ctx: ActionContext) -> ActionResult:
    outcome = ctx.git("fetch", "--all", "--prune")
    return _from_outcome(outcome, "Fetch completed successfully.", "Fetch failed.")


_PULL_ARGS: dict[str, tuple[str, ...]] = {
    "ff-only": ("pull", "--ff-only"),
    "merge": ("pull", "--no-rebase"),
    "rebase": ("pull", "--rebase"),
}


def pull(ctx: ActionContext) -> ActionResult:
    outcome = ctx.git(*_PULL_ARGS[ctx.policy.pull_mode])
    return _from_outcome(
        outcome,
        f"Pull completed ({ctx.policy.pull_mode}).",
        "Pull failed. Review the output for details.",
    )


def pull_safe_update(ctx: ActionContext) -> ActionResult:
    """Fetch, then fast-forward only; divergence is reported, never merged."""
    upstream_ref = ctx.state.upstream
    if upstream_ref is None:
        raise PreconditionFailed(f"No upstream is set for '{ctx.state.branch}'.")

    failure = _fetch_all(ctx, "Pull")
    if failure is not None:
        return failure

    ahead, behind = git_tools.ahead_behind(ctx.repo, upstream_ref)
    if behind == 0:
        if ahead:
            return ActionResult.success(
                f"No pull needed.\n\nYou are ahead of upstream by {ahead} commit(s)."
            )
        return ActionResult.success("Already up to date (no commits to pull).")

    if ahead:
        return ActionResult.failed(
            "Pull aborted.\n\nYour branch has diverged from upstream.\n\n"
            f"Ahead:  {ahead}\nBehind: {behind}\n\n"
            "A merge or rebase is required, and gutt will not do that automatically.",
            exit_code=None,
        )

    outcome = ctx.git("merge", "--ff-only", upstream_ref)
    return _from_outcome(
        outcome,
        "Pull completed successfully (fast-forward only).",
        "Pull aborted.\n\nA fast-forward update was not possible.\n"
        "A merge or rebase would be required.",
    )


def push(ctx: ActionContext) -> ActionResult:
    branch = ctx.state.branch
    if ctx.state.upstream is not None:
        args: tuple[str, ...] = ("push",)
    else:
        remote = git_tools.default_remote(ctx.repo)
        if remote is None:
            raise PreconditionFailed("No remotes found.\n\nAdd a remote first (for example: origin).")
        if not ctx.confirm(
            f"No upstream is set for this branch.\n\nBranch: {branch}\n\n"
            f"Set upstream to {remote}/{branch} and push now?\n\n"
            f"This will run:\n  git push -u {remote} {branch}"
        ):
            raise UserCancelled()
        args = ("push", "-u", remote, branch)

    if ctx.policy.auto_fetch_before_push:
        failure = _fetch_all(ctx, "Push")
        if failure is not None:
            return failure

    outcome = ctx.git(*args)
    return _from_outcome(
        outcome, "Push completed successfully.", "Push failed.\n\nReview the output for details."
    )


def stash_push(ctx: ActionContext) -> ActionResult:
    if not ctx.state.is_dirty:
        return ActionResult.success("No changes to stash.")
    message = ctx.ask("Stash message (optional)", "").strip()
    args = ["stash", "push", "-u"]
    if message:
        args.extend(["-m", message])
    return _from_outcome(ctx.git(*args), "Changes stashed.", "Stash failed.")


def stash_drop(ctx: ActionContext) -> ActionResult:
    entries = git_tools.stash_entries(ctx.repo)
    target = ctx.pick(
        "Select a stash to drop", [(ref, f"{ref}  {subject}") for ref, subject in entries]
    )
    subject = dict(entries).get(target, "")
    if not ctx.confirm(f"Drop stash:\n\n{target}  {subject}\n\nProceed?"):
        raise UserCancelled()
    return _from_outcome(
        ctx.git("stash", "drop", target), f"Dropped {target}.", f"Could not drop {target}."
    )


def merge_branch(ctx: ActionContext) -> ActionResult:
    current = ctx.state.branch
    candidates = [b for b in git_tools.local_branches(ctx.repo) if b != current]
    if not candidates:
        raise PreconditionFailed("No other local branches to merge.")
    target = ctx.pick(f"Merge which branch into '{current}'?", [(b, b) for b in candidates])

    outcome = ctx.git("merge", target)
    if outcome.ok:
        return ActionResult.success(f"Merged '{target}' into '{current}'.", output=outcome.output)
    if git_tools.conflicted_paths(ctx.repo):
        return ActionResult.failed(
            "Merge conflicts detected.\n\ngutt will not auto-resolve conflicts.\n"
            "Resolve them, then stage and commit, or abort with:\n  git merge --abort",
            output=outcome.output,
            exit_code=outcome.exit_code,
        )
    return ActionResult.failed("Merge failed.", output=outcome.output, exit_code=outcome.exit_code)


def delete_branch(ctx: ActionContext) -> ActionResult:
    current = ctx.state.branch
    main = git_tools.primary_branch(ctx.repo)
    candidates = [b for b in git_tools.local_branches(ctx.repo) if b not in (current, main)]
    if not candidates:
        raise PreconditionFailed(
            f"No deletable branches.\n\nThe current branch and '{main}' are never deleted."
        )
    target = ctx.pick("Select a local branch to delete", [(b, b) for b in candidates])
    if not ctx.confirm(
        f"Delete local branch:\n\n{target}\n\n"
        "This removes the branch name, not commits reachable from other refs."
    ):
        raise UserCancelled()
    return _from_outcome(
        ctx.git("branch", "-d", target),
        f"Deleted branch '{target}'.",
        f"Could not delete '{target}' (it may not be fully merged).",
    )


def mark_known_good(ctx: ActionContext) -> ActionResult:
    checkpoint = ctx.checkpoints.mark_known_good(ctx.repo)
    message = (
        f"Created known-good tag:\n\n  Tag   : {checkpoint.name}\n"
        f"  Branch: {ctx.state.branch}\n  Commit: {checkpoint.target_commit}"
    )
    if "origin" not in git_tools.remotes(ctx.repo):
        return ActionResult.success(message + "\n\nNo origin remote; the tag is local only.")
    if not ctx.confirm(f"Push this tag to origin now?\n\nTag: {checkpoint.name}"):
        return ActionResult.success(message)
    outcome = ctx.git("push", "origin", checkpoint.name)
    return _from_outcome(
        outcome,
        message + "\n\nTag pushed to origin.",
        f"Tag {checkpoint.name} was created locally, but pushing it to origin failed.",
    )


def list_checkpoints(ctx: ActionContext) -> ActionResult:
    checkpoints = ctx.checkpoints.list_known_good(ctx.repo)
    if not checkpoints:
        return ActionResult.success("No known-good tags found.\n\nExpected pattern: gutt/known-good-*")
    try:
        head = git_tools.head_sha(ctx.repo, short=False)
    except git_tools.GitError:
        head = ""
    lines = [f"{'TAG':<34} {'COMMIT':<10} HEAD", "-" * 50]
    for checkpoint in checkpoints:
        at_head = "YES" if head and checkpoint.target_commit == head else "no"
        lines.append(f"{checkpoint.name:<34} {checkpoint.target_commit[:8]:<10} {at_head}")
    ctx.ui.show_text("Known-good tags (most recent first)", "\n".join(lines))
    return ActionResult.success()


def clean_untracked(ctx: ActionContext) -> ActionResult:
    preview = ctx.git("clean", "-nd", show=False)
    if not preview.ok:
        return ActionResult.failed(
            "Dry run failed.", output=preview.output, exit_code=preview.exit_code
        )
    if not preview.output.strip():
        return ActionResult.success("Nothing to clean.")
    ctx.ui.show_text("git clean -nd (dry run)", preview.output)
    if not ctx.confirm("Delete the untracked files listed in the dry run?\n\nThis cannot be undone."):
        raise UserCancelled()
    return _from_outcome(ctx.git("clean", "-fd"), "Untracked files removed.", "git clean failed.")


def discard_file(ctx: ActionContext) -> ActionResult:
    entries = {entry.path: entry for entry in _discardable(ctx.repo)}
    target = ctx.pick(
        "Select a file to discard changes (restore from HEAD)",
        [(path, f"{e.index}{e.worktree} {path}") for path, e in entries.items()],
    )
    entry = entries[target]
    if not ctx.confirm(f"Discard all changes to:\n\n{target}\n\nThis cannot be undone."):
        raise UserCancelled()
    # A staged rename is restored at both ends.
    paths = [entry.path] + ([entry.orig_path] if entry.orig_path else [])
    return _from_outcome(
        ctx.git("restore", "--worktree", "--staged", "--", *paths),
        f"Discarded changes to '{target}'.",
        f"Could not restore '{target}'. Nothing was discarded.",
    )


def interactive_rebase(ctx: ActionContext) -> ActionResult:
    base = ctx.ask("Rebase onto (e.g. HEAD~5 or a commit hash)", "HEAD~5").strip()
    if not base:
        raise UserCancelled()
    outcome = ctx.git("rebase", "-i", base, capture=False)
    return _from_outcome(
        outcome,
        "Rebase completed.",
        "Rebase stopped.\n\nResolve the problem, then run:\n"
        "  git rebase --continue\nor abandon it with:\n  git rebase --abort",
    )


def undo_last_soft(ctx: ActionContext) -> ActionResult:
    ctx.git_checked("reset", "--soft", "HEAD~1")
    ctx.git("status", "-sb")
    return ActionResult.success(
        "Last commit undone.\n\nIts changes are staged and ready to be recommitted."
    )


def amend_last(ctx: ActionContext) -> ActionResult:
    ctx.git("log", "-1", "--oneline", "--decorate")
    mode = ctx.pick(
        f"Amend last commit: {git_tools.commit_subject(ctx.repo)}",
        [("keep", "Keep commit message (no edit)"), ("edit", "Edit commit message (open editor)")],
    )
    if ctx.state.is_dirty and ctx.confirm(
        "Include ALL current changes (stage everything) before amending?\n\nDefault is NO."
    ):
        ctx.git_checked("add", "-A", show=False)
    if mode == "keep":
        outcome = ctx.git("commit", "--amend", "--no-edit")
    else:
        outcome = ctx.git("commit", "--amend", capture=False)
    return _from_outcome(
        outcome,
        f"Amended last commit:\n\n{git_tools.commit_subject(ctx.repo)}",
        "Amend failed. The last commit was not rewritten.",
    )


def force_push(ctx: ActionContext) -> ActionResult:
    upstream_ref = ctx.state.upstream
    if upstream_ref is None or "/" not in upstream_ref:
        raise PreconditionFailed("No upstream set.\n\nSet upstream first.")
    remote, _, branch_ref = upstream_ref.partition("/")

    # Refresh tracking info so the lease compares against the real remote tip.
    ctx.git("fetch", remote, "--prune", show=False)

    try:
        tag = ctx.checkpoints.create_pre_danger(ctx.repo, "before-forcepush")
    except CheckpointCreationFailed as exc:
        return ActionResult.failed(f"Refusing to continue.\n\n{exc}", exit_code=None)
    ctx.ui.message(f"Safety tag created:\n\n{tag.name}\n\nProceeding with push (with lease).")

    outcome = ctx.git("push", f"--{ctx.policy.force_push_mode}", remote, f"HEAD:{branch_ref}")
    return _from_outcome(
        outcome,
        f"Force push to {upstream_ref} completed.\n\nSafety tag: {tag.name}",
        f"Force push failed. Nothing on the remote was overwritten by gutt.\n\nSafety tag: {tag.name}",
    )


def rewrite_baseline(ctx: ActionContext) -> ActionResult:
    message = ctx.ask("Single baseline commit message", "Initial commit").strip()
    if not message:
        return ActionResult.failed("Empty commit message refused.", exit_code=None)
    temp_branch = ctx.ask("Temporary orphan branch name", "gutt-baseline").strip()
    if not temp_branch:
        raise UserCancelled()
    if not git_tools.is_valid_branch_name(ctx.repo, temp_branch) or git_tools.branch_exists(
        ctx.repo, temp_branch
    ):
        return ActionResult.failed(
            f"Invalid or existing branch name:\n\n{temp_branch}", exit_code=None
        )

    current = ctx.state.branch
    orphaned = ctx.git("checkout", "--orphan", temp_branch, show=False)
    if not orphaned.ok:
        return ActionResult.failed(
            f"Could not create orphan branch '{temp_branch}'. Nothing was changed.",
            output=orphaned.output,
            exit_code=orphaned.exit_code,
        )
    try:
        ctx.git_checked("add", "-A", show=False)
        ctx.git_checked("commit", "-m", message, show=False)
        ctx.git_checked("branch", "-M", temp_branch, current, show=False)
    except CommandFailed as exc:
        return ActionResult.failed(
            f"Baseline rewrite FAILED: {exc}\n\n{_abandon_orphan(ctx, current, temp_branch)}",
            output=exc.output,
            exit_code=exc.exit_code,
        )
    return ActionResult.success(
        f"Baseline rewrite done locally on '{current}'.\n\n"
        "If the remote already has history, use: Force push (with lease)."
    )


def _abandon_orphan(ctx: ActionContext, current: str, temp_branch: str) -> str:
    """Return to *current* after a half-finished rewrite and describe the outcome.

    The tree was clean on entry, so forcing the checkout loses nothing.
    """
    back = ctx.git("checkout", "-f", current, show=False)
    if back.ok and git_tools.branch_exists(ctx.repo, temp_branch):
        back = ctx.git("branch", "-D", temp_branch, show=False)
    if back.ok:
        return f"Switched back to '{current}'. Its history is untouched and nothing was changed."
    return (
        f"The repository WAS changed: it is on orphan branch '{temp_branch}' with the tree staged.\n"
        f"The original branch '{current}' is untouched. To go back, run:\n"
        f"  git checkout -f {current} && git branch -D {temp_branch}"
    )


def squash_merge(ctx: ActionContext) -> ActionResult:
    """Squash the current feature branch into the primary branch as one commit."""
    branch = ctx.state.branch
    main = git_tools.primary_branch(ctx.repo)
    commits = git_tools.log_oneline(ctx.repo, f"{main}..{branch}")
    ctx.ui.show_text(
        f"Commits to squash from '{branch}' into '{main}'",
        "\n".join(commits) + "\n\nIf conflicts happen, abort with: git merge --abort",
    )
    message = ctx.ask("Final squash commit message", f"Squash merge {branch}").strip()
    if not message:
        raise UserCancelled()

    switched = _switch(ctx, main)
    if not switched.ok:
        return ActionResult.failed(
            f"Failed to switch to '{main}'.", output=switched.output, exit_code=switched.exit_code
        )

    if git_tools.upstream(ctx.repo) is not None:
        updated = run_action(ctx.runner, ActionId.PULL_SAFE_UPDATE, ctx.repo)
        if not updated.ok:
            _switch(ctx, branch)
            note = f"Squash merge stopped before merging. Back on '{branch}'."
            if updated.status is ActionStatus.CANCELLED:
                return ActionResult.cancelled(note)
            return ActionResult.failed(
                f"'{main}' could not be fast-forwarded cleanly.\n\n{note}", exit_code=None
            )
    else:
        logger.info("'%s' has no upstream; skipping the safe pull", main)

    try:
        tag = ctx.checkpoints.create_pre_danger(ctx.repo, "sqm")
    except CheckpointCreationFailed as exc:
        _switch(ctx, branch)
        return ActionResult.failed(f"Refusing to continue.\n\n{exc}", exit_code=None)

    merged = ctx.git("merge", "--squash", branch)
    if not merged.ok:
        return ActionResult.failed(
            f"Squash merge FAILED (likely conflicts).\n\nRepo is now in a merge state on '{main}'.\n"
            "Resolve conflicts then commit, or abort with: git merge --abort\n\n"
            f"Safety tag: {tag.name}",
            output=merged.output,
            exit_code=merged.exit_code,
        )
    committed = ctx.git("commit", "-m", message)
    if not committed.ok:
        return ActionResult.failed(
            "Commit failed.\n\nThe squashed changes are still staged. Fix the issue and commit "
            f"manually.\n\nSafety tag: {tag.name}",
            output=committed.output,
            exit_code=committed.exit_code,
        )

    if ctx.confirm(f"Delete local branch '{branch}' now that it is merged?"):
        if not ctx.git("branch", "-d", branch, show=False).ok:
            ctx.git("branch", "-D", branch, show=False)
    if git_tools.remotes(ctx.repo) and ctx.confirm(f"Push '{main}' now?"):
        run_action(ctx.runner, ActionId.PUSH, ctx.repo)

    return ActionResult.success(
        f"Squash-merged '{branch}' into '{main}'.\n\nSafety tag: {tag.name}"
    )


HANDLERS: dict[ActionId, Command] = {
    ActionId.STATUS: ("git", "status"),
    ActionId.FETCH: fetch_all,
    ActionId.PULL: pull,
    ActionId.PULL_SAFE_UPDATE: pull_safe_update,
    ActionId.PUSH: push,
    ActionId.STASH_PUSH: stash_push,
    ActionId.STASH_DROP: stash_drop,
    ActionId.MERGE_BRANCH: merge_branch,
    ActionId.DELETE_BRANCH: delete_branch,
    ActionId.MARK_KNOWN_GOOD: mark_known_good,
    ActionId.LIST_CHECKPOINTS: list_checkpoints,
    ActionId.CLEAN_UNTRACKED: clean_untracked,
    ActionId.DISCARD_FILE: discard_file,
    ActionId.INTERACTIVE_REBASE: interactive_rebase,
    ActionId.UNDO_LAST_SOFT: undo_last_soft,
    ActionId.AMEND_LAST: amend_last,
    ActionId.FORCE_PUSH: force_push,
    ActionId.REWRITE_BASELINE: rewrite_baseline,
    ActionId.SQUASH_MERGE: squash_merge,
}

_unmapped = [a.value for a in ActionId if a not in DESCRIPTORS or a not in HANDLERS]
if _unmapped:
    raise RuntimeError(f"Actions without a descriptor or handler: {', '.join(_unmapped)}")


def parse_action_id(value: str) -> ActionId:
    """Resolve an action id, accepting dashes for underscores."""
    key = str(value or "").strip().lower().replace("-", "_")
    try:
        return ActionId(key)
    except ValueError as exc:
        known = ", ".join(a.value for a in ActionId)
        raise ValueError(f"Unknown action '{value}'. Known actions: {known}") from exc


def run_action(runner: ActionRunner, action_id: ActionId, repo: str | Path) -> ActionResult:
    """Run a catalog action through *runner*."""
    return runner.run(
        DESCRIPTORS[action_id],
        repo,
        HANDLERS[action_id],
        prechecks=PRECHECKS.get(action_id, ()),
    )
