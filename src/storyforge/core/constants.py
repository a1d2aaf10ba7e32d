"""Game-rule constants for storyforge.

These values are fixed rules of the game rather than deployment settings;
tunables that a deployment may change live in ``storyforge.core.config``.
"""

from __future__ import annotations

# =============================================================================
# Hit Points
# =============================================================================

BASE_HP = 100
"""Max HP of a character whose effective CON modifier is 0."""

HP_PER_CON_MODIFIER = 10
"""Max HP gained (or lost) per point of CON modifier."""

MIN_MAX_HP = 1
"""Lower bound for max HP so the HP ratio is always defined."""

# =============================================================================
# Stats and Progression
# =============================================================================

DEFAULT_STAT_VALUE = 10
"""Starting value of every stat axis (modifier 0)."""

MIN_STAT_VALUE = 1
"""Base stats never drop below this."""

EXP_THRESHOLD = 3
"""Successful checks on one axis needed for a +1 level-up."""

STAT_UPDATE_MIN = -2
"""Largest per-event decrease an AI stat update may request."""

STAT_UPDATE_MAX = 5
"""Largest per-event increase an AI stat update may request."""

# =============================================================================
# Inventory
# =============================================================================

INVENTORY_CAPACITY = 8
"""Hard cap on unequipped bag contents."""

# =============================================================================
# Checks
# =============================================================================

D20_SIDES = 20

MIN_SUCCESS_CHANCE = 5.0
"""Risk display floor in percent (a natural 1 is always possible)."""

MAX_SUCCESS_CHANCE = 95.0
"""Risk display cap in percent."""

DEFAULT_DIFFICULTY_RANGE = (8, 12)
"""Inclusive DC range assigned to checks the AI left without a difficulty."""

# =============================================================================
# Turns
# =============================================================================

CUSTOM_ACTION_BUDGET = 3
"""Heroic actions available per game; never replenished mid-game."""

HISTORY_WINDOW = 5
"""History entries included in the AI request transcript."""

DEFAULT_EFFECT_DURATION = 3
"""Duration in turns when the AI omits or garbles one."""

SUMMARY_UNAVAILABLE = "Summary unavailable."

# =============================================================================
# Persistence
# =============================================================================

SAVE_FORMAT_VERSION = "1.5"


__all__ = [
    "BASE_HP",
    "HP_PER_CON_MODIFIER",
    "MIN_MAX_HP",
    "DEFAULT_STAT_VALUE",
    "MIN_STAT_VALUE",
    "EXP_THRESHOLD",
    "STAT_UPDATE_MIN",
    "STAT_UPDATE_MAX",
    "INVENTORY_CAPACITY",
    "D20_SIDES",
    "MIN_SUCCESS_CHANCE",
    "MAX_SUCCESS_CHANCE",
    "DEFAULT_DIFFICULTY_RANGE",
    "CUSTOM_ACTION_BUDGET",
    "HISTORY_WINDOW",
    "DEFAULT_EFFECT_DURATION",
    "SUMMARY_UNAVAILABLE",
    "SAVE_FORMAT_VERSION",
]
