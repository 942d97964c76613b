"""Static action descriptors and the risk-tier guard policy."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class RiskTier(str, Enum):
    """Static risk classification of an action."""

    SAFE = "safe"
    GUARDED = "guarded"
    DESTRUCTIVE = "destructive"


class ConfirmStage(str, Enum):
    """One step of the confirmation sequence walked before execution."""

    CONFIRM = "confirm"
    PREFLIGHT_CONFIRM = "preflight_confirm"
    CHECKPOINT_OFFER = "checkpoint_offer"
    PHRASE_CONFIRM = "phrase_confirm"


@dataclass(frozen=True)
class ActionDescriptor:
    """Static metadata for one supported operation."""

    id: str
    label: str
    risk_tier: RiskTier
    description: str = ""
    requires_clean_tree: bool = False
    requires_typed_phrase: bool = False
    offers_checkpoint: bool = False
    requires_branch: bool = False
    requires_upstream: bool = False
    requires_remote: bool = False
    alters_shell_integration: bool = False

    def __post_init__(self) -> None:
        if self.risk_tier is not RiskTier.DESTRUCTIVE and (
            self.requires_typed_phrase or self.offers_checkpoint
        ):
            raise ValueError(
                f"{self.id}: phrase confirmation and checkpoint offers are destructive-tier only"
            )


def classify(descriptor: ActionDescriptor) -> RiskTier:
    """Return the risk tier of *descriptor*.  Driven only by static fields."""
    return descriptor.risk_tier


def confirmation_plan(descriptor: ActionDescriptor) -> tuple[ConfirmStage, ...]:
    """Return the ordered confirmation stages for *descriptor*.

    - safe: nothing, execute immediately
    - guarded: one default-No boolean confirm
    - destructive: preflight summary with confirm, then the checkpoint offer
      when offered, then the typed phrase when required
    """
    tier = classify(descriptor)
    if tier is RiskTier.SAFE:
        return ()
    if tier is RiskTier.GUARDED:
        return (ConfirmStage.CONFIRM,)
    stages = [ConfirmStage.PREFLIGHT_CONFIRM]
    if descriptor.offers_checkpoint:
        stages.append(ConfirmStage.CHECKPOINT_OFFER)
    if descriptor.requires_typed_phrase:
        stages.append(ConfirmStage.PHRASE_CONFIRM)
    return tuple(stages)
