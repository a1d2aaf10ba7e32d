"""Pydantic V2 schemas for story turns, rolls and choices."""

from __future__ import annotations

from pydantic import Field

from storyforge.models.base import StoryModel, new_id
from storyforge.models.character import NPC, InventoryItem, StatMap, StatusEffect
from storyforge.models.enums import StatType


class RollResult(StoryModel):
    """Immutable record of one check.

    Attributes:
        base: The natural d20 result (1-20).
        modifier: Stat modifier applied to the roll.
        total: ``base + modifier``.
        difficulty: The DC the total had to meet.
        is_success: ``total >= difficulty``.
        stat_type: The stat the check was made against.
    """

    base: int = Field(ge=1, le=20)
    modifier: int
    total: int
    difficulty: int
    is_success: bool
    stat_type: StatType


class LevelUpEvent(StoryModel):
    """A +1 base stat increase earned through experience."""

    stat: StatType
    old_value: int
    new_value: int


class ChoiceData(StoryModel):
    """A choice offered to the player.

    A choice with a ``type`` and a positive ``difficulty`` triggers a check.
    A difficulty of 0 marks a deliberately check-free choice.
    """

    text: str
    type: StatType | None = None
    difficulty: int | None = None

    @property
    def has_check(self) -> bool:
        """Whether choosing this option requires a roll."""
        return self.type is not None and bool(self.difficulty)


class HeroicActionContext(StoryModel):
    """Roll context of a freeform heroic action.

    The AI resolves the action itself and reports the outcome through the
    delta's ``action_result``.

    Attributes:
        text: The player's freeform action.
        item: Item the player is using, if any.
        roll: A raw d20 the AI is asked to use.
    """

    text: str
    item: InventoryItem | None = None
    roll: int = Field(ge=1, le=20)


class StoryTurn(StoryModel):
    """One immutable history entry.

    User turns carry the player's text and any roll they made; AI turns
    carry the narrative, the offered choices and every delta category that
    was actually applied.
    """

    id: str = Field(default_factory=new_id)
    text: str
    is_user_turn: bool
    roll_result: RollResult | None = None
    level_up_event: LevelUpEvent | None = None
    choices: list[ChoiceData] = Field(default_factory=list)
    stats_updated: StatMap = Field(default_factory=dict)
    inventory_added: list[InventoryItem] = Field(default_factory=list)
    inventory_removed: list[str] = Field(default_factory=list)
    new_effects: list[StatusEffect] = Field(default_factory=list)
    npc_updates: list[NPC] = Field(default_factory=list)

    def transcript_line(self) -> str:
        """Format this turn as one line of the AI request transcript.

        Returns:
            ``User: text`` or ``DM: text`` with the roll outcome appended
            when the turn carries one.
        """
        speaker = "User" if self.is_user_turn else "DM"
        line = f"{speaker}: {self.text}"
        roll = self.roll_result
        if roll is not None:
            outcome = "Success" if roll.is_success else "Fail"
            line += (
                f" [Rolled {roll.total} on {roll.stat_type.value} vs DC {roll.difficulty}: {outcome}]"
            )
        return line


__all__ = [
    "RollResult",
    "LevelUpEvent",
    "ChoiceData",
    "HeroicActionContext",
    "StoryTurn",
]
