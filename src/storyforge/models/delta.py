"""Canonical normalized AI output.

A ``TurnDelta`` is what the response normalizer produces and the state
reconciler consumes. Every field has a safe default, so an empty delta is a
valid "nothing happened" response.
"""

from __future__ import annotations

from pydantic import Field

from storyforge.models.base import StoryModel
from storyforge.models.character import StatMap
from storyforge.models.enums import EffectType, GameStatus, ItemType, NPCCondition, NPCType, StatType
from storyforge.models.turn import ChoiceData


class ItemProposal(StoryModel):
    """An item the AI wants to add.

    ``type`` and ``bonuses`` are hints; the item classifier fills in
    whatever the AI left out.
    """

    name: str
    type: ItemType | None = None
    description: str | None = None
    bonuses: StatMap = Field(default_factory=dict)


class EffectProposal(StoryModel):
    """A status effect the AI wants to apply."""

    name: str
    type: EffectType = EffectType.BUFF
    duration: int
    stat_modifiers: StatMap = Field(default_factory=dict)
    blocks_heroic_actions: bool = False


class NPCProposal(StoryModel):
    """An NPC the AI is introducing."""

    name: str
    type: NPCType = NPCType.UNKNOWN
    condition: NPCCondition = NPCCondition.HEALTHY
    description: str | None = None


class NPCUpdate(StoryModel):
    """A condition (and optional disposition) change for a known NPC."""

    name: str
    condition: NPCCondition
    type: NPCType | None = None


class ActionResult(StoryModel):
    """The AI's self-reported resolution of a heroic action."""

    stat: StatType
    difficulty: int
    base: int = Field(ge=1, le=20)
    total: int
    is_success: bool


class TurnDelta(StoryModel):
    """Mechanical consequences of one AI response.

    Attributes:
        narrative: Story text for the turn.
        choices: Options offered to the player next.
        hp_change: Signed HP change.
        game_status: Status the AI reports.
        quest_update: New objective, or None for no change.
        inventory_added: Items to add.
        inventory_removed: Item names to remove from the bag or a slot.
        equip: Item names to move from the bag into their slot.
        unequip: Item names to move from their slot into the bag.
        stats_update: Requested base stat deltas.
        new_effects: Status effects to apply.
        npcs_added: NPCs to introduce.
        npcs_updated: NPC condition changes.
        npcs_removed: NPC names to remove.
        action_result: Heroic action resolution, if any.
    """

    narrative: str = ""
    choices: list[ChoiceData] = Field(default_factory=list)
    hp_change: int = 0
    game_status: GameStatus = GameStatus.ONGOING
    quest_update: str | None = None
    inventory_added: list[ItemProposal] = Field(default_factory=list)
    inventory_removed: list[str] = Field(default_factory=list)
    equip: list[str] = Field(default_factory=list)
    unequip: list[str] = Field(default_factory=list)
    stats_update: StatMap = Field(default_factory=dict)
    new_effects: list[EffectProposal] = Field(default_factory=list)
    npcs_added: list[NPCProposal] = Field(default_factory=list)
    npcs_updated: list[NPCUpdate] = Field(default_factory=list)
    npcs_removed: list[str] = Field(default_factory=list)
    action_result: ActionResult | None = None


__all__ = [
    "ItemProposal",
    "EffectProposal",
    "NPCProposal",
    "NPCUpdate",
    "ActionResult",
    "TurnDelta",
]
