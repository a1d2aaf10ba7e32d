"""Keyword-driven item classifier and stat inferrer.

Both collaborators are pure functions of their text input (the generic
accessory fallback aside, which draws from an injectable random source).
The engine accepts any callable with the same shape, so deployments can
swap in their own heuristics.

Example:
    >>> classify_item("Rusty Greataxe")
    ItemClassification(type=<ItemType.WEAPON: 'weapon'>, bonuses={<StatType.STR: 'STR'>: 1})
    >>> infer_stat("Sneak past the guards")
    <StatType.DEX: 'DEX'>
"""

from __future__ import annotations

import random
import re
from collections.abc import Callable
from dataclasses import dataclass, field

from storyforge.models.character import StatMap
from storyforge.models.enums import ItemType, StatType


@dataclass(frozen=True)
class ItemClassification:
    """Classifier verdict for an item name.

    Attributes:
        type: Item category.
        bonuses: Stat bonuses the item grants when equipped.
    """

    type: ItemType
    bonuses: StatMap = field(default_factory=dict)


ItemClassifier = Callable[[str], ItemClassification]
StatInferrer = Callable[[str], "StatType | None"]


# =============================================================================
# Item Classification
# =============================================================================

_WEAPON = re.compile(
    r"sword|axe|dagger|blade|spear|mace|hammer|bow|staff|wand|pipe|bar|club|stick|rock|stone|"
    r"brick|shiv|knife|glass|shard|wrench|crowbar|bat|pistol|rifle|gun|blaster|saber|claws"
)
_ARMOR = re.compile(
    r"shield|armor|mail|plate|helmet|robe|cloak|vest|jacket|coat|shirt|tunic|boots|gloves|"
    r"bracers|pants|greaves|suit|garb"
)
_ACCESSORY = re.compile(
    r"ring|amulet|necklace|charm|gem|stone|talisman|watch|goggles|glasses|monocle|crown|tiara|"
    r"belt|scarf|pendant|orb|device|gadget"
)

# Weapon bonuses, first match wins; anything else gets STR +1
_WEAPON_RULES: tuple[tuple[re.Pattern[str], StatMap], ...] = (
    (
        re.compile(r"heavy|great|hammer|axe|mace|club|pipe|bar|wrench|crowbar|bat|rock|brick"),
        {StatType.STR: 2},
    ),
    (
        re.compile(r"dagger|bow|rapier|knife|shiv|spear|pistol|rifle|gun|blaster"),
        {StatType.DEX: 2},
    ),
    (re.compile(r"staff|wand|tome|saber"), {StatType.INT: 2}),
)

# Armor bonuses, first match wins; anything else gets CON +1
_ARMOR_RULES: tuple[tuple[re.Pattern[str], StatMap], ...] = (
    (re.compile(r"plate|heavy|mail|metal|riot"), {StatType.CON: 2, StatType.DEX: -1}),
    (re.compile(r"robe|cloak|wizard|mage"), {StatType.INT: 1, StatType.CON: 1}),
)

# Accessory bonuses, first match wins; anything else gets a random stat
_ACCESSORY_RULES: tuple[tuple[re.Pattern[str], StatMap], ...] = (
    (re.compile(r"strength|power|muscle|bear"), {StatType.STR: 1}),
    (re.compile(r"dexterity|swift|cat|thief|speed"), {StatType.DEX: 1}),
    (re.compile(r"health|vitality|life|heart"), {StatType.CON: 1}),
    (re.compile(r"intelligence|mind|wisdom|owl|fox|smart"), {StatType.INT: 1}),
    (re.compile(r"charisma|charm|king|leader|eagle|gold"), {StatType.CHA: 1}),
    (re.compile(r"watch|gadget|device"), {StatType.INT: 1}),
)
_GENERIC_ACCESSORY_STATS = (StatType.STR, StatType.DEX, StatType.CON, StatType.INT, StatType.CHA)

_POOR_QUALITY = re.compile(r"rusty|broken|cracked|shoddy|old")
_FINE_QUALITY = re.compile(
    r"magic|enchanted|legendary|flaming|divine|masterwork|high-tech|plasma|laser"
)


def _first_rule(
    name: str,
    rules: tuple[tuple[re.Pattern[str], StatMap], ...],
) -> StatMap | None:
    for pattern, bonuses in rules:
        if pattern.search(name):
            return dict(bonuses)
    return None


class KeywordItemClassifier:
    """Classify items by keywords in their name.

    Type is decided by weapon, then armor, then accessory keywords. Bonuses
    follow per-type keyword rules. Poor-quality words reduce the primary
    bonus (never below 1); fine-quality words raise it, or grant CHA +1 to
    an item with no bonus.

    Args:
        rng: Random source for generic accessories.
    """

    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng or random.Random()

    def __call__(self, name: str) -> ItemClassification:
        lowered = name.lower()

        if _WEAPON.search(lowered):
            item_type = ItemType.WEAPON
            bonuses = _first_rule(lowered, _WEAPON_RULES) or {StatType.STR: 1}
        elif _ARMOR.search(lowered):
            item_type = ItemType.ARMOR
            bonuses = _first_rule(lowered, _ARMOR_RULES) or {StatType.CON: 1}
        elif _ACCESSORY.search(lowered):
            item_type = ItemType.ACCESSORY
            bonuses = _first_rule(lowered, _ACCESSORY_RULES) or {
                self._rng.choice(_GENERIC_ACCESSORY_STATS): 1
            }
        else:
            item_type = ItemType.MISC
            bonuses = {}

        if bonuses and _POOR_QUALITY.search(lowered):
            primary = next(iter(bonuses))
            bonuses[primary] = max(1, bonuses[primary] - 1)

        if _FINE_QUALITY.search(lowered):
            if bonuses:
                primary = next(iter(bonuses))
                bonuses[primary] += 1
            else:
                bonuses[StatType.CHA] = 1

        return ItemClassification(type=item_type, bonuses=bonuses)


_default_classifier = KeywordItemClassifier()


def classify_item(name: str) -> ItemClassification:
    """Classify an item name with the shared keyword classifier.

    Args:
        name: Item name as written by the AI.

    Returns:
        The ItemClassification.
    """
    return _default_classifier(name)


# =============================================================================
# Stat Inference
# =============================================================================

# Checked in order; the first axis with a keyword hit wins
_STAT_KEYWORDS: tuple[tuple[StatType, re.Pattern[str]], ...] = (
    (
        StatType.CHA,
        re.compile(
            r"\b(persuad|convinc|negotiat|lie|bluff|charm|intimidat|talk|bargain|decei|"
            r"perform|flatter|plead|command|befriend)"
        ),
    ),
    (
        StatType.INT,
        re.compile(
            r"\b(stud|read|analy|investigat|research|deciph|solve|recall|examin|hack|"
            r"spell|cast|identify|craft|repair)"
        ),
    ),
    (
        StatType.PER,
        re.compile(
            r"\b(look|search|listen|notice|spot|scout|observ|perceiv|track|sens|watch|"
            r"inspect|peek)"
        ),
    ),
    (
        StatType.DEX,
        re.compile(
            r"\b(sneak|dodg|hide|steal|pick|jump|leap|run|flee|evad|acrobat|stealth|aim|"
            r"shoot|throw|slip|balanc)"
        ),
    ),
    (
        StatType.STR,
        re.compile(
            r"\b(attack|fight|forc|push|lift|break|smash|climb|strik|bash|punch|charg|"
            r"swing|grab|wrestl|kick)"
        ),
    ),
    (
        StatType.CON,
        re.compile(
            r"\b(endur|resist|surviv|withstand|hold|drink|eat|march|brace|tough|rest)"
        ),
    ),
    (
        StatType.LUK,
        re.compile(r"\b(gambl|luck|chance|guess|pray|hope|random|coin|dice|bet)"),
    ),
)


def infer_stat(text: str) -> StatType | None:
    """Infer the stat a choice would test from its text.

    Args:
        text: Choice text.

    Returns:
        The inferred StatType, or None when no keyword matches.
    """
    lowered = text.lower()
    for stat, pattern in _STAT_KEYWORDS:
        if pattern.search(lowered):
            return stat
    return None


__all__ = [
    "ItemClassification",
    "ItemClassifier",
    "StatInferrer",
    "KeywordItemClassifier",
    "classify_item",
    "infer_stat",
]
