"""Enumeration types for storyforge.

Stat axes, item and equipment classification, status effects, NPC
disposition and game status. All enums are StrEnums so they serialize to
their wire values directly.
"""

from __future__ import annotations

from enum import StrEnum


class StatType(StrEnum):
    """The seven character attribute axes."""

    STR = "STR"
    DEX = "DEX"
    CON = "CON"
    INT = "INT"
    CHA = "CHA"
    PER = "PER"
    LUK = "LUK"

    @property
    def full_name(self) -> str:
        """Get the full name of the stat.

        Returns:
            Full stat name (e.g., 'Strength' for STR).
        """
        return _STAT_NAMES[self]

    @classmethod
    def parse(cls, value: object) -> StatType | None:
        """Parse a loosely formatted stat name.

        Accepts any casing and surrounding whitespace or brackets. Returns
        None for anything that is not one of the seven axes (including
        the literal ``NONE``).

        Args:
            value: Raw value from AI output or a save file.

        Returns:
            The matching StatType, or None.
        """
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        cleaned = value.strip().strip("[]()").strip().upper()
        try:
            return cls(cleaned)
        except ValueError:
            return None


_STAT_NAMES: dict[StatType, str] = {
    StatType.STR: "Strength",
    StatType.DEX: "Dexterity",
    StatType.CON: "Constitution",
    StatType.INT: "Intelligence",
    StatType.CHA: "Charisma",
    StatType.PER: "Perception",
    StatType.LUK: "Luck",
}


class EquipSlot(StrEnum):
    """The three equipment slots."""

    WEAPON = "weapon"
    ARMOR = "armor"
    ACCESSORY = "accessory"


class ItemType(StrEnum):
    """Inventory item categories."""

    WEAPON = "weapon"
    ARMOR = "armor"
    ACCESSORY = "accessory"
    MISC = "misc"

    @property
    def slot(self) -> EquipSlot | None:
        """Equipment slot this item type occupies, or None for misc items."""
        if self is ItemType.MISC:
            return None
        return EquipSlot(self.value)

    @classmethod
    def parse(cls, value: object) -> ItemType | None:
        """Parse a loosely formatted item type, returning None when unknown."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


class EffectType(StrEnum):
    """Status effect polarity."""

    BUFF = "buff"
    DEBUFF = "debuff"


class NPCType(StrEnum):
    """NPC disposition toward the player."""

    FRIENDLY = "Friendly"
    HOSTILE = "Hostile"
    NEUTRAL = "Neutral"
    UNKNOWN = "Unknown"


class NPCCondition(StrEnum):
    """NPC physical condition."""

    HEALTHY = "Healthy"
    INJURED = "Injured"
    DYING = "Dying"
    DEAD = "Dead"
    UNKNOWN = "Unknown"


class GameStatus(StrEnum):
    """Game status. Any non-ongoing status is terminal."""

    ONGOING = "ongoing"
    WON = "won"
    LOST = "lost"

    @property
    def is_terminal(self) -> bool:
        """Check whether the game has ended.

        Returns:
            True for won or lost.
        """
        return self is not GameStatus.ONGOING


__all__ = [
    "StatType",
    "EquipSlot",
    "ItemType",
    "EffectType",
    "NPCType",
    "NPCCondition",
    "GameStatus",
]
