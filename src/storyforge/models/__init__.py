"""Pydantic V2 schemas for storyforge.

Submodules:
    enums: Enumeration types (StatType, ItemType, GameStatus, etc.)
    character: Stat blocks, items, equipment, status effects and NPCs
    turn: Rolls, choices and story turns
    state: The CharacterState root aggregate
    delta: The normalized TurnDelta

Example:
    >>> from storyforge.models import create_character, StatType
    >>> state = create_character()
    >>> state.base_stats.get(StatType.STR)
    10
"""

from __future__ import annotations

# =============================================================================
# Enumerations
# =============================================================================
from storyforge.models.enums import (
    EffectType,
    EquipSlot,
    GameStatus,
    ItemType,
    NPCCondition,
    NPCType,
    StatType,
)

# =============================================================================
# Character Sheet
# =============================================================================
from storyforge.models.base import IdFactory, StoryModel, new_id
from storyforge.models.character import (
    NPC,
    EquippedGear,
    InventoryItem,
    StatBlock,
    StatMap,
    StatusEffect,
    ability_modifier,
    empty_experience,
    max_hp_for,
)

# =============================================================================
# Turns, State and Deltas
# =============================================================================
from storyforge.models.turn import (
    ChoiceData,
    HeroicActionContext,
    LevelUpEvent,
    RollResult,
    StoryTurn,
)
from storyforge.models.state import CharacterState, create_character
from storyforge.models.delta import (
    ActionResult,
    EffectProposal,
    ItemProposal,
    NPCProposal,
    NPCUpdate,
    TurnDelta,
)


__all__ = [
    # Enums
    "StatType",
    "EquipSlot",
    "ItemType",
    "EffectType",
    "NPCType",
    "NPCCondition",
    "GameStatus",
    # Base
    "StoryModel",
    "IdFactory",
    "new_id",
    # Character sheet
    "StatMap",
    "StatBlock",
    "InventoryItem",
    "EquippedGear",
    "StatusEffect",
    "NPC",
    "ability_modifier",
    "empty_experience",
    "max_hp_for",
    # Turns
    "RollResult",
    "LevelUpEvent",
    "ChoiceData",
    "HeroicActionContext",
    "StoryTurn",
    # State
    "CharacterState",
    "create_character",
    # Deltas
    "ItemProposal",
    "EffectProposal",
    "NPCProposal",
    "NPCUpdate",
    "ActionResult",
    "TurnDelta",
]
