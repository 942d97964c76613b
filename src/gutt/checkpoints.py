"""Checkpoint tags: known-good markers, backup tags, and pre-danger safety tags.

Offers made here are advisory.  A declined offer or a failed tag creation is
reported to the operator and never aborts the calling pipeline.  The explicit
creators (:meth:`CheckpointManager.mark_known_good` and
:meth:`CheckpointManager.create_pre_danger`) raise instead, for flows where the
tag is the point of the action or a mandatory safety net.
"""

from __future__ import annotations

import datetime as dt
import logging
from collections.abc import Callable
from pathlib import Path

from gutt import git_tools
from gutt.confirm import confirm_boolean
from gutt.errors import CheckpointCreationFailed, UserCancelled
from gutt.git_tools import KNOWN_GOOD_PATTERN, GitError
from gutt.schemas import DETACHED, Checkpoint, CheckpointKind, Policy
from gutt.ui import Presenter

logger = logging.getLogger(__name__)

TAG_NAMESPACE = "gutt"


def known_good_name(now: dt.datetime) -> str:
    return f"{TAG_NAMESPACE}/known-good-{now.strftime('%Y%m%d-%H%M')}"


def backup_name(now: dt.datetime) -> str:
    return f"{TAG_NAMESPACE}/backup-{now.strftime('%Y%m%d-%H%M%S')}"


def pre_danger_name(purpose: str, now: dt.datetime) -> str:
    return f"{TAG_NAMESPACE}/safety-{purpose}-{now.strftime('%Y%m%d-%H%M%S')}"


def known_good_message(branch: str, commit: str, note: str = "") -> str:
    message = f"Known-good state marked by gutt\nBranch: {branch}\nCommit: {commit}"
    if note:
        message += f"\n\nNote: {note}"
    return message


class CheckpointManager:
    """Creates checkpoint tags in a repository's ref namespace."""

    def __init__(
        self,
        ui: Presenter,
        policy: Policy,
        *,
        clock: Callable[[], dt.datetime] = dt.datetime.now,
    ) -> None:
        self.ui = ui
        self.policy = policy
        self.clock = clock

    # -- queries -------------------------------------------------------------

    def has_known_good_at_head(self, repo: str | Path) -> bool:
        return bool(git_tools.tags_at_head(repo, KNOWN_GOOD_PATTERN))

    def list_known_good(self, repo: str | Path) -> list[Checkpoint]:
        """Return known-good checkpoints, newest first."""
        return [
            Checkpoint(
                name=name,
                kind=CheckpointKind.KNOWN_GOOD,
                target_commit=git_tools.tag_commit(repo, name) or "",
            )
            for name in git_tools.list_tags(repo, KNOWN_GOOD_PATTERN)
        ]

    # -- offers --------------------------------------------------------------

    def offer_known_good(self, repo: str | Path) -> Checkpoint | None:
        """Offer a known-good tag unless one already points at HEAD."""
        if self.has_known_good_at_head(repo):
            logger.debug("Known-good tag already at HEAD; skipping offer")
            return None
        if not confirm_boolean(
            self.ui,
            "No known-good tag points at current HEAD.\n\n"
            "Create one now? (Recommended)\n\n"
            "This stays local unless you push tags.",
        ):
            return None
        try:
            checkpoint = self.mark_known_good(repo)
        except UserCancelled:
            return None
        except CheckpointCreationFailed as exc:
            self.ui.message(
                f"Failed to create known-good tag:\n\n{exc.name}\n\n{exc.detail}\n\n"
                "(If the tag already exists, choose a different name.)"
            )
            return None
        self.ui.message(f"Created known-good tag:\n\n{checkpoint.name}")
        return checkpoint

    def mark_known_good(self, repo: str | Path) -> Checkpoint:
        """Prompt for a name and note, then create an annotated known-good tag.

        Raises :class:`UserCancelled` when a prompt is backed out of and
        :class:`CheckpointCreationFailed` for invalid or colliding names.
        """
        name = self.ui.prompt_text("Known-good tag name", known_good_name(self.clock()))
        if name is None or not name.strip():
            raise UserCancelled()
        name = name.strip()
        if not git_tools.is_valid_tag_name(repo, name):
            raise CheckpointCreationFailed(name, "invalid tag name")
        if git_tools.tag_exists(repo, name):
            raise CheckpointCreationFailed(name, "tag already exists")
        note = self.ui.prompt_text("Optional note (can be blank)", "")
        if note is None:
            raise UserCancelled()

        branch = self._branch(repo)
        commit = self._head(repo)
        message = known_good_message(branch, commit, note.strip())
        result = git_tools.create_tag(repo, name, message=message)
        if result.returncode != 0:
            raise CheckpointCreationFailed(name, result.stderr.strip())
        return Checkpoint(
            name=name,
            kind=CheckpointKind.KNOWN_GOOD,
            target_commit=commit,
            annotation_message=message,
            created_at=self.clock().isoformat(),
        )

    def offer_backup(self, repo: str | Path) -> Checkpoint | None:
        """Offer a timestamped backup tag when the policy enables it."""
        if not self.policy.offer_backup_tag:
            return None
        name = backup_name(self.clock())
        if not confirm_boolean(
            self.ui,
            f"Create a local safety tag before proceeding?\n\nTag: {name}\n\n"
            "(This stays local unless you push tags.)",
        ):
            return None
        result = git_tools.create_tag(repo, name, force=True)
        if result.returncode != 0:
            self.ui.message(f"Failed to create local tag:\n\n{name}\n\n{result.stderr.strip()}")
            return None
        self.ui.message(f"Created local tag:\n\n{name}")
        return Checkpoint(
            name=name,
            kind=CheckpointKind.BACKUP,
            target_commit=self._head(repo),
            created_at=self.clock().isoformat(),
        )

    # -- mandatory -----------------------------------------------------------

    def create_pre_danger(self, repo: str | Path, purpose: str) -> Checkpoint:
        """Create a forced safety tag at HEAD, raising when that is impossible."""
        name = pre_danger_name(purpose, self.clock())
        result = git_tools.create_tag(repo, name, force=True)
        if result.returncode != 0:
            raise CheckpointCreationFailed(name, result.stderr.strip())
        return Checkpoint(
            name=name,
            kind=CheckpointKind.PRE_DANGER,
            target_commit=self._head(repo),
            created_at=self.clock().isoformat(),
        )

    # -- helpers -------------------------------------------------------------

    @staticmethod
    def _branch(repo: str | Path) -> str:
        try:
            return git_tools.current_branch(repo) or DETACHED
        except GitError:
            return "?"

    @staticmethod
    def _head(repo: str | Path) -> str:
        try:
            return git_tools.head_sha(repo)
        except GitError:
            return "?"
