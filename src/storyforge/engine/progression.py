"""Progression tracking: derived stats, experience and max HP.

Effective stats are never stored. They are recomputed on every read from
base stats, equipped gear bonuses and active effect modifiers.
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import dataclass

from storyforge.core.constants import EXP_THRESHOLD
from storyforge.core.logging import get_logger
from storyforge.models.character import (
    EquippedGear,
    InventoryItem,
    StatBlock,
    StatMap,
    StatusEffect,
    max_hp_for,
)
from storyforge.models.enums import GameStatus, StatType
from storyforge.models.state import CharacterState
from storyforge.models.turn import LevelUpEvent


logger = get_logger(__name__)


# =============================================================================
# Derived Stats
# =============================================================================


def compute_effective_stats(
    base: StatBlock,
    equipped: EquippedGear,
    effects: Iterable[StatusEffect],
    preview_item: InventoryItem | None = None,
) -> StatBlock:
    """Layer gear bonuses and effect modifiers onto base stats.

    Args:
        base: Base stats.
        equipped: Currently equipped gear.
        effects: Active status effects.
        preview_item: Candidate item shown in place of the occupant of its
            slot. Misc items have no slot and are ignored.

    Returns:
        The effective stat block.
    """
    preview_slot = preview_item.slot if preview_item is not None else None
    stats = base
    for slot, item in equipped.occupied():
        if slot is preview_slot:
            continue
        stats = stats.plus(item.bonuses)
    if preview_slot is not None and preview_item is not None:
        stats = stats.plus(preview_item.bonuses)
    for effect in effects:
        stats = stats.plus(effect.stat_modifiers)
    return stats


def effective_stats(state: CharacterState) -> StatBlock:
    """Effective stats of a character."""
    return compute_effective_stats(state.base_stats, state.equipped, state.active_effects)


def preview_stats(state: CharacterState, item: InventoryItem) -> StatBlock:
    """Effective stats as they would be with ``item`` equipped.

    Args:
        state: Current character state.
        item: Candidate item, usually one from the bag.

    Returns:
        Stats with the item substituted into its slot; current effective
        stats for misc items.
    """
    return compute_effective_stats(
        state.base_stats, state.equipped, state.active_effects, preview_item=item
    )


# =============================================================================
# Max HP
# =============================================================================


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves rounded up."""
    return math.floor(value + 0.5)


def recompute_max_hp(state: CharacterState) -> CharacterState:
    """Recompute max HP from effective CON, preserving the HP fraction.

    When max HP changes, current HP is rescaled to the same fraction of the
    new maximum and clamped into ``[0, new_max]``. A rescale that lands on 0
    ends the game as lost.

    Args:
        state: Character state whose gear, effects or CON may have changed.

    Returns:
        The state with ``max_hp`` and ``hp`` updated, or the same state when
        max HP is unchanged.
    """
    new_max = max_hp_for(effective_stats(state).CON)
    old_max = state.max_hp
    if new_max == old_max:
        return state

    new_hp = min(new_max, max(0, round_half_up(state.hp * new_max / old_max)))
    update: dict[str, object] = {"max_hp": new_max, "hp": new_hp}
    if new_hp == 0 and state.game_status is GameStatus.ONGOING:
        update["game_status"] = GameStatus.LOST

    logger.debug(
        "Max HP recomputed",
        old_max=old_max,
        new_max=new_max,
        old_hp=state.hp,
        new_hp=new_hp,
    )
    return state.model_copy(update=update)


# =============================================================================
# Experience
# =============================================================================


@dataclass(frozen=True)
class ExperienceOutcome:
    """Result of awarding one successful check.

    Attributes:
        stats: Base stats after any level-up.
        experience: Experience counters after the award.
        level_up: The level-up event, when the threshold was reached.
    """

    stats: StatBlock
    experience: StatMap
    level_up: LevelUpEvent | None = None


def award_success(stats: StatBlock, experience: StatMap, stat: StatType) -> ExperienceOutcome:
    """Record a successful check on one axis.

    Reaching the threshold resets the counter and raises the base stat by 1.

    Args:
        stats: Current base stats.
        experience: Current experience counters.
        stat: The axis the check was made against.

    Returns:
        The ExperienceOutcome.
    """
    counters = dict(experience)
    gained = counters.get(stat, 0) + 1
    if gained < EXP_THRESHOLD:
        counters[stat] = gained
        return ExperienceOutcome(stats=stats, experience=counters)

    counters[stat] = 0
    old_value = stats.get(stat)
    event = LevelUpEvent(stat=stat, old_value=old_value, new_value=old_value + 1)
    logger.info("Level up", stat=stat.value, old_value=old_value, new_value=old_value + 1)
    return ExperienceOutcome(
        stats=stats.with_value(stat, old_value + 1),
        experience=counters,
        level_up=event,
    )


# =============================================================================
# Effects
# =============================================================================


def decrement_effects(effects: Iterable[StatusEffect]) -> list[StatusEffect]:
    """Age effects by one turn.

    Args:
        effects: Active effects.

    Returns:
        Copies with ``duration - 1``; expired entries dropped.
    """
    aged = (effect.model_copy(update={"duration": effect.duration - 1}) for effect in effects)
    return [effect for effect in aged if effect.duration > 0]


def blocking_effect(state: CharacterState) -> StatusEffect | None:
    """The first active effect that blocks heroic actions, if any."""
    return next((e for e in state.active_effects if e.blocks_heroic_actions), None)


def is_heroic_blocked(state: CharacterState) -> bool:
    """Whether an active effect blocks heroic actions."""
    return blocking_effect(state) is not None


__all__ = [
    "compute_effective_stats",
    "effective_stats",
    "preview_stats",
    "max_hp_for",
    "round_half_up",
    "recompute_max_hp",
    "ExperienceOutcome",
    "award_success",
    "decrement_effects",
    "blocking_effect",
    "is_heroic_blocked",
]
