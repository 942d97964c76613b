"""Exception types raised inside guarded action flows."""

from __future__ import annotations


class UserCancelled(Exception):
    """Raised when the operator declines or backs out of a prompt.

    Not an error: the runner maps it to a cancelled result and never reports
    it as a failure.
    """


class PreconditionFailed(Exception):
    """Raised when a repository precondition is unmet before any side effect."""


class CommandFailed(Exception):
    """Raised when an underlying git command exits nonzero."""

    def __init__(self, message: str, *, exit_code: int = 1, output: str = "") -> None:
        super().__init__(message)
        self.exit_code = exit_code
        self.output = output


class CheckpointCreationFailed(Exception):
    """Raised when a checkpoint tag could not be created."""

    def __init__(self, name: str, detail: str = "") -> None:
        super().__init__(f"Failed to create tag {name}: {detail}".rstrip(": "))
        self.name = name
        self.detail = detail
