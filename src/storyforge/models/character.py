"""Pydantic V2 schemas for the character sheet building blocks.

Stat blocks, inventory items, equipment slots, status effects and NPCs.
The root ``CharacterState`` aggregate lives in ``storyforge.models.state``.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping

from pydantic import BaseModel, ConfigDict, Field

from storyforge.core.constants import BASE_HP, DEFAULT_STAT_VALUE, HP_PER_CON_MODIFIER, MIN_MAX_HP
from storyforge.models.base import StoryModel, new_id
from storyforge.models.enums import EffectType, EquipSlot, ItemType, NPCCondition, NPCType, StatType


StatMap = dict[StatType, int]
"""Partial per-axis integer map (bonuses, modifiers, stat deltas)."""


def ability_modifier(value: int) -> int:
    """Calculate the modifier for a stat value.

    Every two points above or below 10 shift the modifier by one, rounding
    toward negative infinity.

    Args:
        value: The effective stat value.

    Returns:
        The stat modifier.

    Example:
        >>> ability_modifier(12)
        1
        >>> ability_modifier(9)
        -1
        >>> ability_modifier(7)
        -2
    """
    return (value - 10) // 2


def max_hp_for(constitution: int) -> int:
    """Calculate max HP from an effective CON value.

    Args:
        constitution: Effective CON (base plus gear and effects).

    Returns:
        ``100 + 10 * modifier``, never below 1.
    """
    return max(MIN_MAX_HP, BASE_HP + HP_PER_CON_MODIFIER * ability_modifier(constitution))


# =============================================================================
# Stats
# =============================================================================


class StatBlock(BaseModel):
    """A full seven-axis stat map.

    Field names are the stat abbreviations so the block serializes as
    ``{"STR": 10, "DEX": 10, ...}``.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    STR: int = DEFAULT_STAT_VALUE
    DEX: int = DEFAULT_STAT_VALUE
    CON: int = DEFAULT_STAT_VALUE
    INT: int = DEFAULT_STAT_VALUE
    CHA: int = DEFAULT_STAT_VALUE
    PER: int = DEFAULT_STAT_VALUE
    LUK: int = DEFAULT_STAT_VALUE

    def get(self, stat: StatType) -> int:
        """Get the value of one axis."""
        return getattr(self, stat.value)

    def modifier(self, stat: StatType) -> int:
        """Get the ability modifier of one axis."""
        return ability_modifier(self.get(stat))

    def with_value(self, stat: StatType, value: int) -> StatBlock:
        """Return a copy with one axis replaced."""
        return self.model_copy(update={stat.value: value})

    def plus(self, modifiers: Mapping[StatType, int] | None) -> StatBlock:
        """Return a copy with a partial stat map added per axis.

        Args:
            modifiers: Additive per-axis values; missing axes add nothing.

        Returns:
            The summed stat block.
        """
        if not modifiers:
            return self
        return self.model_copy(
            update={stat.value: self.get(stat) + amount for stat, amount in modifiers.items()}
        )

    def as_dict(self) -> StatMap:
        """Return the block as a StatType-keyed dict in axis order."""
        return {stat: self.get(stat) for stat in StatType}


def empty_experience() -> StatMap:
    """Experience counters for a fresh character (all axes at zero)."""
    return {stat: 0 for stat in StatType}


# =============================================================================
# Items and Equipment
# =============================================================================


class InventoryItem(StoryModel):
    """An item in the bag or an equipment slot.

    Attributes:
        id: Unique, stable identifier.
        name: Display name; removal matches it case-insensitively.
        type: Item category, which decides the slot it may occupy.
        bonuses: Additive stat bonuses granted while equipped.
        description: Optional flavor text.
    """

    id: str = Field(default_factory=new_id)
    name: str
    type: ItemType = ItemType.MISC
    bonuses: StatMap = Field(default_factory=dict)
    description: str | None = None

    @property
    def slot(self) -> EquipSlot | None:
        """Slot this item may occupy, or None for misc items."""
        return self.type.slot

    def matches(self, name: str) -> bool:
        """Case-insensitive name comparison."""
        return self.name.strip().lower() == name.strip().lower()


class EquippedGear(StoryModel):
    """The three equipment slots, each empty or holding one item."""

    weapon: InventoryItem | None = None
    armor: InventoryItem | None = None
    accessory: InventoryItem | None = None

    def get(self, slot: EquipSlot) -> InventoryItem | None:
        """Get the occupant of a slot."""
        return getattr(self, slot.value)

    def with_slot(self, slot: EquipSlot, item: InventoryItem | None) -> EquippedGear:
        """Return a copy with one slot replaced (None clears it)."""
        return self.model_copy(update={slot.value: item})

    def occupied(self) -> Iterator[tuple[EquipSlot, InventoryItem]]:
        """Iterate over filled slots in weapon, armor, accessory order."""
        for slot in EquipSlot:
            item = self.get(slot)
            if item is not None:
                yield slot, item

    def item_ids(self) -> set[str]:
        """Ids of all equipped items."""
        return {item.id for _, item in self.occupied()}


# =============================================================================
# Status Effects and NPCs
# =============================================================================


class StatusEffect(StoryModel):
    """A temporary buff or debuff.

    Attributes:
        id: Unique identifier.
        name: Display name. Effects with the same name stack.
        type: Buff or debuff.
        duration: Turns remaining; the effect expires at 0.
        stat_modifiers: Additive stat modifiers while active.
        blocks_heroic_actions: Whether heroic actions are unavailable.
    """

    id: str = Field(default_factory=new_id)
    name: str
    type: EffectType = EffectType.BUFF
    duration: int
    stat_modifiers: StatMap = Field(default_factory=dict)
    blocks_heroic_actions: bool = False


class NPC(StoryModel):
    """A non-player character the story has introduced."""

    id: str = Field(default_factory=new_id)
    name: str
    type: NPCType = NPCType.UNKNOWN
    condition: NPCCondition = NPCCondition.UNKNOWN
    description: str | None = None

    def matches(self, name: str) -> bool:
        """Case-insensitive name comparison."""
        return self.name.strip().lower() == name.strip().lower()


__all__ = [
    "StatMap",
    "ability_modifier",
    "max_hp_for",
    "StatBlock",
    "empty_experience",
    "InventoryItem",
    "EquippedGear",
    "StatusEffect",
    "NPC",
]
