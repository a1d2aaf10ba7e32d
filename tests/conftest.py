"""Pytest configuration and shared fixtures.

This module provides common fixtures and configuration for all tests
in the StoryForge test suite.
"""

from __future__ import annotations

import asyncio
import itertools
import random
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

import pytest

from storyforge.core.config import GameSettings
from storyforge.engine.classifiers import ItemClassification
from storyforge.engine.dice import DiceRoller
from storyforge.engine.normalizer import ResponseNormalizer
from storyforge.engine.reconciler import StateReconciler
from storyforge.models import (
    CharacterState,
    InventoryItem,
    ItemType,
    StatType,
    create_character,
)


if TYPE_CHECKING:
    from collections.abc import Generator

    from storyforge.engine.context import StoryContext


# =============================================================================
# Configuration Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def reset_settings_cache() -> Generator[None, None, None]:
    """Reset the settings cache before and after each test."""
    from storyforge.core.config import clear_settings_cache

    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def mock_env_vars(monkeypatch: pytest.MonkeyPatch) -> dict[str, str]:
    """Set up mock environment variables for testing.

    Returns:
        Dictionary of environment variables that were set.
    """
    env_vars = {
        "STORYFORGE_OPENROUTER_API_KEY": "test-openrouter-key",
        "STORYFORGE_DEBUG": "true",
        "STORYFORGE_LOG_LEVEL": "DEBUG",
        "STORYFORGE_GAME_WIRE_FORMAT": "structured",
    }
    for key, value in env_vars.items():
        monkeypatch.setenv(key, value)
    return env_vars


@pytest.fixture
def game_settings() -> GameSettings:
    """Game settings with dice rolls on and the delimited wire format."""
    return GameSettings(wire_format="delimited", enable_dice_rolls=True)


# =============================================================================
# Deterministic Collaborators
# =============================================================================


class LoadedDie:
    """Random source whose ``randint`` always returns one value."""

    def __init__(self, value: int) -> None:
        self.value = value

    def randint(self, low: int, high: int) -> int:
        return min(high, max(low, self.value))

    def choice(self, options: Any) -> Any:
        return options[0]


def fake_classify(name: str) -> ItemClassification:
    """Tiny classifier with predictable verdicts for tests."""
    lowered = name.lower()
    if "sword" in lowered:
        return ItemClassification(ItemType.WEAPON, {StatType.STR: 1})
    if "armor" in lowered:
        return ItemClassification(ItemType.ARMOR, {StatType.CON: 2})
    if "amulet" in lowered:
        return ItemClassification(ItemType.ACCESSORY, {StatType.CON: 2})
    return ItemClassification(ItemType.MISC, {})


@pytest.fixture
def id_factory() -> Callable[[], str]:
    """Sequential ids (``id-1``, ``id-2`` ...)."""
    counter = itertools.count(1)
    return lambda: f"id-{next(counter)}"


@pytest.fixture
def reconciler(id_factory: Callable[[], str]) -> StateReconciler:
    """Reconciler with the test classifier and sequential ids."""
    return StateReconciler(classifier=fake_classify, id_factory=id_factory)


@pytest.fixture
def normalizer() -> ResponseNormalizer:
    """Normalizer with a seeded random source."""
    return ResponseNormalizer(rng=random.Random(7))


@pytest.fixture
def dice_roller() -> DiceRoller:
    """Create a DiceRoller with a fixed seed for reproducible tests."""
    return DiceRoller(seed=42)


@pytest.fixture
def loaded_roller() -> Callable[[int], DiceRoller]:
    """Factory for rollers that always roll the given natural value."""
    return lambda value: DiceRoller(rng=LoadedDie(value))


# =============================================================================
# State Fixtures
# =============================================================================


@pytest.fixture
def fresh_state() -> CharacterState:
    """A new CON 10 character at 100/100 HP."""
    return create_character(quest="Find the lost crown", genre="Fantasy")


def make_item(
    name: str,
    item_type: ItemType = ItemType.MISC,
    bonuses: dict[StatType, int] | None = None,
    *,
    item_id: str | None = None,
) -> InventoryItem:
    """Build an inventory item with a readable id."""
    return InventoryItem(
        id=item_id or f"item-{name.lower().replace(' ', '-')}",
        name=name,
        type=item_type,
        bonuses=bonuses or {},
    )


@pytest.fixture
def full_bag_state(fresh_state: CharacterState) -> CharacterState:
    """A character carrying exactly eight misc items."""
    items = [make_item(f"Trinket {n}") for n in range(1, 9)]
    return fresh_state.model_copy(update={"inventory": items})


# =============================================================================
# Story Generator Fixtures
# =============================================================================


class ScriptedGenerator:
    """Story generator that replays scripted responses.

    A scripted entry may be a response (text or mapping), an exception to
    raise, or an ``asyncio.Future`` to await before answering.
    """

    def __init__(self, responses: list[Any] | None = None, *, summary: Any = "The hero won.") -> None:
        self.responses = list(responses or [])
        self.summary = summary
        self.contexts: list[StoryContext] = []
        self.summary_logs: list[str] = []

    async def generate(self, context: StoryContext) -> Any:
        self.contexts.append(context)
        response = self.responses.pop(0)
        if isinstance(response, asyncio.Future):
            response = await response
        if isinstance(response, BaseException):
            raise response
        return response

    async def summarize(self, log_text: str) -> str:
        self.summary_logs.append(log_text)
        if isinstance(self.summary, BaseException):
            raise self.summary
        return self.summary


@pytest.fixture
def scripted_generator() -> type[ScriptedGenerator]:
    """The ScriptedGenerator class, for tests that build their own script."""
    return ScriptedGenerator


@pytest.fixture
def make_item_fn() -> Callable[..., InventoryItem]:
    """Expose ``make_item`` to test modules."""
    return make_item
