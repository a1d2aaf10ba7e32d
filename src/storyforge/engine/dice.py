"""Dice and check resolution.

Checks are a single d20 plus the stat modifier against a difficulty class.
Draws go through the d20 library by default; an injected ``random.Random``
(or a pre-drawn base value) makes them reproducible for tests.

Example:
    >>> from storyforge.engine.dice import resolve_check
    >>> from storyforge.models import StatType
    >>> result = resolve_check(14, 12, StatType.DEX, base=11)
    >>> (result.modifier, result.total, result.is_success)
    (2, 13, True)
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from enum import StrEnum

import d20

from storyforge.core.constants import D20_SIDES, MAX_SUCCESS_CHANCE, MIN_SUCCESS_CHANCE
from storyforge.core.exceptions import DiceRollError
from storyforge.core.logging import get_logger
from storyforge.models.character import ability_modifier
from storyforge.models.enums import StatType
from storyforge.models.turn import RollResult


logger = get_logger(__name__)


class RiskLevel(StrEnum):
    """Display label for a check's success chance."""

    DANGEROUS = "Dangerous"
    RISKY = "Risky"
    LIKELY_SUCCESS = "Likely Success"


@dataclass(frozen=True)
class RiskAssessment:
    """Success estimate for a check, for display next to a choice.

    Attributes:
        chance: Success chance in percent, clamped to [5, 95].
        label: Risk label for the chance.
        modifier: The stat modifier the chance was computed with.
    """

    chance: float
    label: RiskLevel
    modifier: int


class DiceRoller:
    """d20 roller with optional deterministic draws.

    Example:
        >>> roller = DiceRoller(seed=42)
        >>> 1 <= roller.roll_d20() <= 20
        True
    """

    def __init__(self, *, seed: int | None = None, rng: random.Random | None = None) -> None:
        """Initialize the dice roller.

        Args:
            seed: Optional seed; creates a private ``random.Random``.
            rng: Optional random source to draw from. Takes precedence over seed.
        """
        if rng is None and seed is not None:
            rng = random.Random(seed)
        self._rng = rng
        logger.debug("DiceRoller initialized", seed=seed, injected_rng=rng is not None)

    def roll_d20(self) -> int:
        """Draw a natural d20 result.

        Returns:
            An integer in 1..20.

        Raises:
            DiceRollError: If the d20 library fails to roll.
        """
        if self._rng is not None:
            return self._rng.randint(1, D20_SIDES)
        try:
            return d20.roll(f"1d{D20_SIDES}").total
        except d20.RollError as exc:
            raise DiceRollError(f"Failed to roll: {exc}", expression=f"1d{D20_SIDES}") from exc

    def randint(self, low: int, high: int) -> int:
        """Draw an integer uniformly from ``low..high`` inclusive."""
        if self._rng is not None:
            return self._rng.randint(low, high)
        if low == high:
            return low
        return low - 1 + d20.roll(f"1d{high - low + 1}").total

    def resolve_check(
        self,
        stat_value: int,
        difficulty: int,
        stat_type: StatType,
        *,
        base: int | None = None,
    ) -> RollResult:
        """Resolve a check against a difficulty class.

        Args:
            stat_value: The effective stat value.
            difficulty: The DC to meet or exceed.
            stat_type: The stat being tested.
            base: Pre-drawn natural roll; drawn from this roller when None.

        Returns:
            The immutable RollResult.

        Raises:
            DiceRollError: If ``base`` is outside 1..20.
        """
        if base is None:
            base = self.roll_d20()
        elif not 1 <= base <= D20_SIDES:
            raise DiceRollError(
                f"Natural roll must be between 1 and {D20_SIDES}, got {base}",
                expression=str(base),
            )

        modifier = ability_modifier(stat_value)
        total = base + modifier
        result = RollResult(
            base=base,
            modifier=modifier,
            total=total,
            difficulty=difficulty,
            is_success=total >= difficulty,
            stat_type=stat_type,
        )

        logger.info(
            "Check resolved",
            stat=stat_type.value,
            base=base,
            modifier=modifier,
            total=total,
            difficulty=difficulty,
            is_success=result.is_success,
        )
        return result


# =============================================================================
# Convenience Functions
# =============================================================================

_default_roller: DiceRoller | None = None


def _get_roller() -> DiceRoller:
    global _default_roller
    if _default_roller is None:
        _default_roller = DiceRoller()
    return _default_roller


def roll_d20() -> int:
    """Draw a natural d20 with the shared default roller."""
    return _get_roller().roll_d20()


def resolve_check(
    stat_value: int,
    difficulty: int,
    stat_type: StatType,
    *,
    base: int | None = None,
    roller: DiceRoller | None = None,
) -> RollResult:
    """Resolve a check with an optional roller or pre-drawn base.

    Args:
        stat_value: The effective stat value.
        difficulty: The DC to meet or exceed.
        stat_type: The stat being tested.
        base: Pre-drawn natural roll.
        roller: Roller to draw from; the shared default when None.

    Returns:
        The immutable RollResult.
    """
    return (roller or _get_roller()).resolve_check(stat_value, difficulty, stat_type, base=base)


def assess_risk(difficulty: int, stat_value: int) -> RiskAssessment:
    """Estimate the success chance of a check.

    The natural-roll space is mapped linearly to a percentage and clamped
    to [5, 95]; natural 1 and 20 get no special treatment.

    Args:
        difficulty: The DC of the check.
        stat_value: The effective stat value.

    Returns:
        The RiskAssessment.

    Example:
        >>> assess_risk(11, 10).chance
        50.0
    """
    modifier = ability_modifier(stat_value)
    raw = ((21 - (difficulty - modifier)) / D20_SIDES) * 100
    chance = min(MAX_SUCCESS_CHANCE, max(MIN_SUCCESS_CHANCE, raw))
    if chance <= 30:
        label = RiskLevel.DANGEROUS
    elif chance <= 60:
        label = RiskLevel.RISKY
    else:
        label = RiskLevel.LIKELY_SUCCESS
    return RiskAssessment(chance=chance, label=label, modifier=modifier)


__all__ = [
    "RiskLevel",
    "RiskAssessment",
    "DiceRoller",
    "roll_d20",
    "resolve_check",
    "assess_risk",
]
