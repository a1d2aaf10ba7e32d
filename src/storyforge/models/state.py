"""The ``CharacterState`` root aggregate.

CharacterState is the single authoritative game state. It is an immutable
value: the reconciler and progression tracker return updated copies rather
than patching fields in place.

Example:
    >>> from storyforge.models import create_character, StatBlock
    >>> state = create_character(StatBlock(CON=12), quest="Find the lost crown")
    >>> state.max_hp
    110
"""

from __future__ import annotations

from collections.abc import Mapping

from pydantic import AliasChoices, Field, field_validator

from storyforge.core.config import GameSettings
from storyforge.core.constants import CUSTOM_ACTION_BUDGET, MIN_STAT_VALUE
from storyforge.core.exceptions import ValidationError
from storyforge.models.base import StoryModel
from storyforge.models.character import (
    NPC,
    EquippedGear,
    InventoryItem,
    StatBlock,
    StatMap,
    StatusEffect,
    empty_experience,
    max_hp_for,
)
from storyforge.models.enums import GameStatus, StatType
from storyforge.models.turn import StoryTurn


class CharacterState(StoryModel):
    """Root game state aggregate.

    Attributes:
        base_stats: Seven-axis base stats, each at least 1.
        starting_stats: Snapshot of base stats at creation.
        stat_experience: Per-axis success counters below the level-up threshold.
        hp: Current HP in ``[0, max_hp]``.
        max_hp: Max HP derived from effective CON.
        hp_history: HP after each resolved turn.
        inventory: Unequipped bag contents (at most 8).
        equipped: Weapon, armor and accessory slots.
        active_effects: Status effects in application order.
        npcs: NPCs the story has introduced.
        current_quest: Current objective.
        custom_actions_remaining: Heroic actions left this game.
        game_status: Ongoing, won or lost; terminal states never revert.
        history: Append-only log of story turns.
        genre: Adventure genre passed to the AI.
        final_summary: Epilogue summary, once the game is over.
        final_storyboard: Opaque storyboard image reference.
    """

    base_stats: StatBlock = Field(
        default_factory=StatBlock,
        validation_alias=AliasChoices("baseStats", "base_stats", "stats"),
    )
    starting_stats: StatBlock = Field(default_factory=StatBlock)
    stat_experience: StatMap = Field(default_factory=empty_experience)
    hp: int = Field(ge=0)
    max_hp: int = Field(ge=1)
    hp_history: list[int] = Field(default_factory=list)
    inventory: list[InventoryItem] = Field(default_factory=list)
    equipped: EquippedGear = Field(default_factory=EquippedGear)
    active_effects: list[StatusEffect] = Field(default_factory=list)
    npcs: list[NPC] = Field(default_factory=list)
    current_quest: str = ""
    custom_actions_remaining: int = Field(
        default=CUSTOM_ACTION_BUDGET,
        ge=0,
        validation_alias=AliasChoices(
            "customActionsRemaining",
            "custom_actions_remaining",
            "customChoicesRemaining",
        ),
    )
    game_status: GameStatus = GameStatus.ONGOING
    history: list[StoryTurn] = Field(default_factory=list)
    genre: str | None = None
    final_summary: str | None = None
    final_storyboard: str | None = None

    @field_validator("stat_experience", mode="after")
    @classmethod
    def fill_missing_axes(cls, value: StatMap) -> StatMap:
        """Backfill experience counters for axes absent from older saves."""
        return {stat: value.get(stat, 0) for stat in StatType}

    @field_validator("npcs", "inventory", "active_effects", "history", "hp_history", mode="before")
    @classmethod
    def none_as_empty(cls, value: object) -> object:
        """Treat an explicit null collection as empty."""
        return [] if value is None else value

    @property
    def is_over(self) -> bool:
        """Whether the game reached a terminal status."""
        return self.game_status.is_terminal

    def find_npc(self, name: str) -> NPC | None:
        """Find an NPC by case-insensitive name."""
        return next((npc for npc in self.npcs if npc.matches(name)), None)


def create_character(
    stats: StatBlock | Mapping[StatType, int] | None = None,
    *,
    quest: str = "",
    genre: str | None = None,
    custom_action_budget: int | None = None,
    settings: GameSettings | None = None,
) -> CharacterState:
    """Create a fresh character at full health.

    Args:
        stats: Starting base stats; omitted axes default to 10.
        quest: Opening objective.
        genre: Adventure genre; the configured default when None.
        custom_action_budget: Heroic actions granted for the whole game;
            the configured budget when None.
        settings: Game settings supplying the defaults; loaded from the
            environment when None.

    Returns:
        A new ongoing CharacterState with empty inventory and history.

    Raises:
        ValidationError: If a starting stat is below 1.
    """
    if stats is None:
        base = StatBlock()
    elif isinstance(stats, StatBlock):
        base = stats
    else:
        base = StatBlock(**{StatType(stat).value: value for stat, value in stats.items()})
    for stat, value in base.as_dict().items():
        if value < MIN_STAT_VALUE:
            raise ValidationError(
                f"Starting {stat.full_name} must be at least {MIN_STAT_VALUE}",
                field_name=stat.value,
                invalid_value=value,
            )
    if genre is None or custom_action_budget is None:
        defaults = settings or GameSettings()
        genre = defaults.genre if genre is None else genre
        if custom_action_budget is None:
            custom_action_budget = defaults.custom_action_budget
    max_hp = max_hp_for(base.CON)
    return CharacterState(
        base_stats=base,
        starting_stats=base,
        stat_experience=empty_experience(),
        hp=max_hp,
        max_hp=max_hp,
        hp_history=[max_hp],
        current_quest=quest,
        custom_actions_remaining=custom_action_budget,
        genre=genre,
    )


__all__ = [
    "CharacterState",
    "create_character",
]
