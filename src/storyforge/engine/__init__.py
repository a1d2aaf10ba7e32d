"""Turn engine for StoryForge.

This module turns untrusted AI output into consistent game state and
drives the asynchronous request cycle of each turn.

Submodules:
    dice: d20 checks and risk assessment (d20 library)
    classifiers: Item classification and stat inference from names
    progression: Effective stats, max HP, experience and effect decay
    normalizer: Raw AI output (JSON or delimited text) to TurnDelta
    reconciler: TurnDelta merged into CharacterState
    context: Request context snapshot sent to the story generator
    lifecycle: Request fencing, cancel and retry

Example:
    >>> from storyforge.engine import TurnController, TurnStatus
    >>>
    >>> controller = TurnController(state, generator)
    >>> outcome = await controller.take_turn("I open the door")
    >>> if outcome.status == TurnStatus.APPLIED:
    ...     print(controller.state.history[-1].text)
"""

from __future__ import annotations

# =============================================================================
# Dice Rolling
# =============================================================================
from storyforge.engine.dice import (
    DiceRoller,
    RiskAssessment,
    RiskLevel,
    assess_risk,
    resolve_check,
    roll_d20,
)

# =============================================================================
# Classification
# =============================================================================
from storyforge.engine.classifiers import (
    ItemClassification,
    KeywordItemClassifier,
    classify_item,
    infer_stat,
)

# =============================================================================
# Progression
# =============================================================================
from storyforge.engine.progression import (
    ExperienceOutcome,
    award_success,
    compute_effective_stats,
    decrement_effects,
    effective_stats,
    is_heroic_blocked,
    preview_stats,
    recompute_max_hp,
)

# =============================================================================
# Normalization and Reconciliation
# =============================================================================
from storyforge.engine.normalizer import ResponseNormalizer, normalize, parse_bonus_string
from storyforge.engine.reconciler import ReconcileResult, StateReconciler, reconcile

# =============================================================================
# Turn Lifecycle
# =============================================================================
from storyforge.engine.context import StoryContext, build_story_context, build_transcript
from storyforge.engine.lifecycle import (
    RequestFence,
    TurnController,
    TurnOutcome,
    TurnParams,
    TurnStatus,
)


__all__ = [
    # Dice
    "DiceRoller",
    "RiskAssessment",
    "RiskLevel",
    "assess_risk",
    "resolve_check",
    "roll_d20",
    # Classification
    "ItemClassification",
    "KeywordItemClassifier",
    "classify_item",
    "infer_stat",
    # Progression
    "ExperienceOutcome",
    "award_success",
    "compute_effective_stats",
    "decrement_effects",
    "effective_stats",
    "is_heroic_blocked",
    "preview_stats",
    "recompute_max_hp",
    # Normalization and reconciliation
    "ResponseNormalizer",
    "normalize",
    "parse_bonus_string",
    "ReconcileResult",
    "StateReconciler",
    "reconcile",
    # Lifecycle
    "StoryContext",
    "build_story_context",
    "build_transcript",
    "RequestFence",
    "TurnController",
    "TurnOutcome",
    "TurnParams",
    "TurnStatus",
]
