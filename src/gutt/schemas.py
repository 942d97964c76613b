"""Pydantic models for structured data passed through the pipeline."""

from __future__ import annotations

import datetime as dt
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

DETACHED = "DETACHED"

PullMode = Literal["ff-only", "merge", "rebase"]

# ---------------------------------------------------------------------------
# Repository state
# ---------------------------------------------------------------------------


class RepoState(BaseModel):
    """Advisory snapshot of a repository, recomputed for every pipeline run.

    ``ahead``/``behind`` are ``None`` (unknown) whenever ``upstream`` is
    ``None`` or the comparison failed.
    """

    model_config = ConfigDict(frozen=True)

    path: str
    branch: str = DETACHED
    upstream: str | None = None
    ahead: int | None = None
    behind: int | None = None
    dirty_count: int = Field(default=0, ge=0)
    staged_count: int = Field(default=0, ge=0)
    untracked_count: int = Field(default=0, ge=0)
    stash_count: int = Field(default=0, ge=0)
    last_commit: str | None = None
    remotes: list[str] = Field(default_factory=list)

    @property
    def detached(self) -> bool:
        return self.branch == DETACHED

    @property
    def is_dirty(self) -> bool:
        return self.dirty_count > 0

    @property
    def tracking_known(self) -> bool:
        """True only when ahead/behind can drive a forward-progress decision."""
        return self.upstream is not None and self.ahead is not None and self.behind is not None

    @property
    def diverged(self) -> bool:
        return self.tracking_known and bool(self.ahead) and bool(self.behind)


# ---------------------------------------------------------------------------
# Checkpoints
# ---------------------------------------------------------------------------


class CheckpointKind(str, Enum):
    """Why a checkpoint tag exists."""

    KNOWN_GOOD = "known_good"
    BACKUP = "backup"
    PRE_DANGER = "pre_danger"


class Checkpoint(BaseModel):
    """A tag recorded as a rollback reference."""

    model_config = ConfigDict(frozen=True)

    name: str
    kind: CheckpointKind
    target_commit: str = ""
    annotation_message: str | None = None
    created_at: str = Field(default_factory=lambda: dt.datetime.now(dt.timezone.utc).isoformat())


# ---------------------------------------------------------------------------
# Action results
# ---------------------------------------------------------------------------


class ActionStatus(str, Enum):
    """Terminal outcome of one pipeline run."""

    SUCCESS = "success"
    CANCELLED = "cancelled"
    FAILED = "failed"


class ActionResult(BaseModel):
    """Result of a single guarded action.  Never mutated after construction."""

    model_config = ConfigDict(frozen=True)

    status: ActionStatus
    action_id: str = ""
    exit_code: int | None = None
    captured_output: str = ""
    message: str = ""
    restart_required: bool = False

    @property
    def ok(self) -> bool:
        return self.status is ActionStatus.SUCCESS

    @classmethod
    def success(cls, message: str = "", *, output: str = "", exit_code: int = 0) -> ActionResult:
        return cls(
            status=ActionStatus.SUCCESS,
            exit_code=exit_code,
            captured_output=output,
            message=message,
        )

    @classmethod
    def cancelled(cls, message: str = "Cancelled.") -> ActionResult:
        return cls(status=ActionStatus.CANCELLED, message=message)

    @classmethod
    def failed(cls, message: str, *, output: str = "", exit_code: int | None = 1) -> ActionResult:
        return cls(
            status=ActionStatus.FAILED,
            exit_code=exit_code,
            captured_output=output,
            message=message,
        )

    @classmethod
    def from_exit_code(cls, exit_code: int, output: str = "") -> ActionResult:
        """Map a process exit code to a result: 0 succeeds, anything else fails."""
        if exit_code == 0:
            return cls.success(output=output)
        return cls.failed(f"Command exited with code {exit_code}.", output=output, exit_code=exit_code)


# ---------------------------------------------------------------------------
# Policy
# ---------------------------------------------------------------------------

DEFAULT_CONFIRM_PHRASE = "OVERWRITE REMOTE"


class Policy(BaseModel):
    """Immutable policy toggles threaded into the pipeline at construction."""

    model_config = ConfigDict(frozen=True)

    offer_backup_tag: bool = True
    confirm_phrase: str = Field(default=DEFAULT_CONFIRM_PHRASE, min_length=1)
    pull_mode: PullMode = "ff-only"
    auto_fetch_before_push: bool = True
    force_push_mode: Literal["force-with-lease"] = "force-with-lease"
