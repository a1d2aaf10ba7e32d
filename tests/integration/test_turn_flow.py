"""Integration tests for the turn lifecycle.

Covers request fencing under cancel and double submission, and a short
adventure played from the first choice to the epilogue.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any

from storyforge.core.config import GameSettings
from storyforge.core.exceptions import AIConnectionError
from storyforge.engine import (
    DiceRoller,
    ResponseNormalizer,
    StateReconciler,
    TurnController,
    TurnOutcome,
    TurnStatus,
)
from storyforge.models import CharacterState, GameStatus, ItemType, StatType


class TestRequestFencing:
    """A late response must never touch state after a newer request."""

    def test_cancelled_response_is_discarded(
        self,
        fresh_state: CharacterState,
        scripted_generator: type,
        reconciler: StateReconciler,
        normalizer: ResponseNormalizer,
        game_settings: GameSettings,
    ) -> None:
        """Cancel A, issue B, then let A arrive: only B is applied."""

        async def scenario() -> tuple[TurnController, TurnOutcome, TurnOutcome]:
            slow = asyncio.get_running_loop().create_future()
            generator = scripted_generator(
                [slow, "### NARRATIVE\nThe bridge holds.\n### UPDATES\nHP: -5"]
            )
            controller = TurnController(
                fresh_state,
                generator,
                normalizer=normalizer,
                reconciler=reconciler,
                settings=game_settings,
            )

            task_a = asyncio.create_task(controller.take_turn("Jump the gap"))
            await asyncio.sleep(0)
            assert controller.is_loading

            controller.cancel()
            outcome_b = await controller.take_turn("Cross the bridge")

            slow.set_result("### NARRATIVE\nYou fall.\n### UPDATES\nHP: -100\nSTATUS: lost")
            outcome_a = await task_a
            return controller, outcome_a, outcome_b

        controller, outcome_a, outcome_b = asyncio.run(scenario())

        assert outcome_a.status is TurnStatus.SUPERSEDED
        assert outcome_b.status is TurnStatus.APPLIED
        assert outcome_a.request_id < outcome_b.request_id
        assert controller.status is TurnStatus.APPLIED
        state = controller.state
        assert [turn.text for turn in state.history] == [
            "Jump the gap",
            "Cross the bridge",
            "The bridge holds.",
        ]
        assert state.hp == 95
        assert state.game_status is GameStatus.ONGOING

    def test_double_submit_keeps_latest(
        self,
        fresh_state: CharacterState,
        scripted_generator: type,
        reconciler: StateReconciler,
        normalizer: ResponseNormalizer,
        game_settings: GameSettings,
    ) -> None:
        """A second submit without cancel also supersedes the first."""

        async def scenario() -> tuple[TurnController, TurnOutcome]:
            slow = asyncio.get_running_loop().create_future()
            generator = scripted_generator([slow, "### NARRATIVE\nSecond answer."])
            controller = TurnController(
                fresh_state,
                generator,
                normalizer=normalizer,
                reconciler=reconciler,
                settings=game_settings,
            )

            task_a = asyncio.create_task(controller.take_turn("First"))
            await asyncio.sleep(0)
            await controller.take_turn("Second")
            slow.set_result(AIConnectionError("Timed out"))
            return controller, await task_a

        controller, outcome_a = asyncio.run(scenario())

        assert outcome_a.status is TurnStatus.SUPERSEDED
        assert controller.status is TurnStatus.APPLIED
        assert controller.retry_available is False
        assert controller.state.history[-1].text == "Second answer."


class TestAdventure:
    """A short adventure from the first choice to the epilogue."""

    def test_play_through(
        self,
        fresh_state: CharacterState,
        scripted_generator: type,
        reconciler: StateReconciler,
        normalizer: ResponseNormalizer,
        game_settings: GameSettings,
        loaded_roller: Callable[[int], DiceRoller],
    ) -> None:
        """Loot, equip, level up through checks and win."""
        responses: list[Any] = [
            "### NARRATIVE\nA chest sits in the corner.\n"
            "### CHOICES\n1. [Force the chest] | STR | 10\n"
            "### UPDATES\nITEM_ADD: Leather Armor | armor | Worn | CON:2",
            "### NARRATIVE\nThe lid cracks open.\n"
            "### CHOICES\n1. [Force the next door] | STR | 10\n"
            "### UPDATES\nEQUIP: Leather Armor\nHP: -20",
            {
                "narrative": "The door gives way.",
                "choices": [{"text": "Force the gate", "type": "STR", "difficulty": 10}],
            },
            {"narrative": "The gate falls and the crown is yours.", "game_status": "won"},
        ]
        generator = scripted_generator(responses, summary="A strong hero claimed the crown.")
        controller = TurnController(
            fresh_state,
            generator,
            normalizer=normalizer,
            reconciler=reconciler,
            roller=loaded_roller(12),
            settings=game_settings,
        )
        endings: list[CharacterState] = []
        controller.add_game_over_callback(endings.append)

        async def play() -> str:
            await controller.take_turn("Look around")
            for _ in range(3):
                await controller.choose(controller.current_choices[0])
            return await controller.summarize()

        summary = asyncio.run(play())
        state = controller.state

        assert state.game_status is GameStatus.WON
        assert state.equipped.armor is not None
        assert state.equipped.armor.type is ItemType.ARMOR
        assert state.inventory == []
        assert state.max_hp == 110
        assert state.hp == 88
        assert state.base_stats.STR == 11
        assert state.stat_experience[StatType.STR] == 0
        assert state.history[-1].level_up_event is None
        assert state.history[-2].level_up_event is not None
        assert "> USER: Force the gate [ROLL: 12 vs DC 10] [LEVEL UP: STR 10->11]" in generator.summary_logs[0]
        assert state.hp_history == [100, 100, 88, 88, 88]
        assert len(state.history) == 8
        assert summary == "A strong hero claimed the crown."
        assert state.final_summary == summary
        assert len(endings) == 1
