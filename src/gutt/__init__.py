"""gutt - guarded git operations with confirmations and safety tags."""

from importlib.metadata import PackageNotFoundError, version

from gutt.schemas import ActionResult, ActionStatus, Checkpoint, Policy, RepoState

__all__ = ["ActionResult", "ActionStatus", "Checkpoint", "Policy", "RepoState"]

try:
    __version__ = version("gutt")
except PackageNotFoundError:
    __version__ = "0.0.0"
