"""Tests for the turn lifecycle controller."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any

import pytest
import structlog
from structlog.testing import capture_logs

from storyforge.core.config import GameSettings
from storyforge.core.constants import SUMMARY_UNAVAILABLE
from storyforge.core.exceptions import (
    AIConnectionError,
    AIResponseError,
    HeroicActionError,
    InvalidGameStateError,
    TurnManagementError,
)
from storyforge.engine.dice import DiceRoller
from storyforge.engine.lifecycle import RequestFence, TurnController, TurnOutcome, TurnStatus
from storyforge.engine.normalizer import ResponseNormalizer
from storyforge.engine.reconciler import StateReconciler
from storyforge.models import (
    CharacterState,
    ChoiceData,
    EquippedGear,
    GameStatus,
    InventoryItem,
    ItemType,
    StatType,
    StatusEffect,
)


HALL = "### NARRATIVE\nYou enter the hall.\n### CHOICES\n1. [Open the door] | STR | 10\n2. [Wait] | NONE | 0"


@pytest.fixture
def make_controller(
    normalizer: ResponseNormalizer,
    reconciler: StateReconciler,
    dice_roller: DiceRoller,
    game_settings: GameSettings,
) -> Callable[..., TurnController]:
    """Factory for controllers wired with deterministic collaborators."""

    def factory(state: CharacterState, generator: Any, **overrides: Any) -> TurnController:
        options: dict[str, Any] = {
            "normalizer": normalizer,
            "reconciler": reconciler,
            "roller": dice_roller,
            "settings": game_settings,
        }
        options.update(overrides)
        return TurnController(state, generator, **options)

    return factory


class TestRequestFence:
    """Tests for request id fencing."""

    def test_issue_and_invalidate(self) -> None:
        """Test only the latest issued id is current."""
        fence = RequestFence()
        assert fence.current == 0

        first = fence.issue()
        assert fence.is_current(first)

        fence.invalidate()
        assert not fence.is_current(first)

        second = fence.issue()
        assert second > first
        assert fence.is_current(second)


class TestTakeTurn:
    """Tests for committing a turn and applying the response."""

    def test_applied(
        self,
        make_controller: Callable[..., TurnController],
        fresh_state: CharacterState,
        scripted_generator: type,
    ) -> None:
        """Test a successful request appends user and AI turns."""
        generator = scripted_generator([HALL])
        controller = make_controller(fresh_state, generator)

        outcome = asyncio.run(controller.take_turn("Look around"))

        assert outcome.status is TurnStatus.APPLIED
        assert outcome.request_id == 1
        assert controller.status is TurnStatus.APPLIED
        assert controller.is_loading is False
        assert controller.retry_available is False
        texts = [(turn.is_user_turn, turn.text) for turn in controller.state.history]
        assert texts == [(True, "Look around"), (False, "You enter the hall.")]
        assert [choice.text for choice in controller.current_choices] == ["Open the door", "Wait"]
        assert outcome.turn == controller.state.history[-1]
        assert generator.contexts[0].user_text == "Look around"
        assert generator.contexts[0].transcript == ""

    def test_game_over_rejects_turns(
        self,
        make_controller: Callable[..., TurnController],
        fresh_state: CharacterState,
        scripted_generator: type,
    ) -> None:
        """Test no turn can be taken after the game ends."""
        state = fresh_state.model_copy(update={"game_status": GameStatus.WON})
        controller = make_controller(state, scripted_generator([HALL]))

        with pytest.raises(InvalidGameStateError):
            asyncio.run(controller.take_turn("Look around"))

        assert controller.state.history == []

    def test_effects_age_at_issuance(
        self,
        make_controller: Callable[..., TurnController],
        fresh_state: CharacterState,
        scripted_generator: type,
    ) -> None:
        """Test effects tick down when the turn is issued."""
        effects = [
            StatusEffect(name="Haste", duration=1, stat_modifiers={StatType.DEX: 2}),
            StatusEffect(name="Poisoned", duration=3),
        ]
        state = fresh_state.model_copy(update={"active_effects": effects})
        generator = scripted_generator([HALL])
        controller = make_controller(state, generator)

        asyncio.run(controller.take_turn("Look around"))

        assert [(e.name, e.duration) for e in controller.state.active_effects] == [("Poisoned", 2)]
        assert [e.name for e in generator.contexts[0].effects] == ["Poisoned"]
        assert generator.contexts[0].stats.DEX == 10

    def test_callbacks(
        self,
        make_controller: Callable[..., TurnController],
        fresh_state: CharacterState,
        scripted_generator: type,
    ) -> None:
        """Test turn callbacks fire per turn and game-over callbacks once."""
        generator = scripted_generator(["### NARRATIVE\nA trap!\n### UPDATES\nHP: -150"])
        controller = make_controller(fresh_state, generator)
        outcomes: list[TurnOutcome] = []
        endings: list[CharacterState] = []
        controller.add_turn_callback(outcomes.append)
        controller.add_game_over_callback(endings.append)

        asyncio.run(controller.take_turn("Step forward"))

        assert len(outcomes) == 1
        assert len(endings) == 1
        assert endings[0].game_status is GameStatus.LOST
        assert controller.state.hp == 0

    def test_request_id_bound_while_generating(
        self,
        make_controller: Callable[..., TurnController],
        fresh_state: CharacterState,
        scripted_generator: type,
    ) -> None:
        """Test log entries emitted by the generator carry the request id."""
        seen: list[dict[str, Any]] = []

        class RecordingGenerator(scripted_generator):  # type: ignore[misc,valid-type]
            async def generate(self, context: Any) -> Any:
                seen.append(structlog.contextvars.get_contextvars())
                return await super().generate(context)

        controller = make_controller(fresh_state, RecordingGenerator([HALL]))

        asyncio.run(controller.take_turn("Look around"))

        assert seen == [{"request_id": 1}]
        assert "request_id" not in structlog.contextvars.get_contextvars()


class TestChoose:
    """Tests for choosing an offered option."""

    def test_check_is_resolved_locally(
        self,
        make_controller: Callable[..., TurnController],
        fresh_state: CharacterState,
        scripted_generator: type,
        loaded_roller: Callable[[int], DiceRoller],
    ) -> None:
        """Test a choice with a stat and DC rolls before the request."""
        generator = scripted_generator([HALL])
        controller = make_controller(fresh_state, generator, roller=loaded_roller(15))

        asyncio.run(controller.choose(ChoiceData(text="Force the door", type=StatType.STR, difficulty=12)))

        user_turn = controller.state.history[0]
        assert user_turn.roll_result is not None
        assert (user_turn.roll_result.base, user_turn.roll_result.total) == (15, 15)
        assert user_turn.roll_result.is_success is True
        assert generator.contexts[0].roll_result == user_turn.roll_result
        assert controller.state.stat_experience[StatType.STR] == 1

    def test_check_uses_effective_stats(
        self,
        make_controller: Callable[..., TurnController],
        fresh_state: CharacterState,
        scripted_generator: type,
        loaded_roller: Callable[[int], DiceRoller],
        make_item_fn: Callable[..., InventoryItem],
    ) -> None:
        """Test gear bonuses feed the check modifier."""
        axe = make_item_fn("Great Axe", ItemType.WEAPON, {StatType.STR: 4})
        state = fresh_state.model_copy(update={"equipped": EquippedGear(weapon=axe)})
        controller = make_controller(state, scripted_generator([HALL]), roller=loaded_roller(9))

        asyncio.run(controller.choose(ChoiceData(text="Smash the gate", type=StatType.STR, difficulty=11)))

        roll = controller.state.history[0].roll_result
        assert roll is not None
        assert (roll.modifier, roll.total, roll.is_success) == (2, 11, True)

    def test_zero_difficulty_skips_roll(
        self,
        make_controller: Callable[..., TurnController],
        fresh_state: CharacterState,
        scripted_generator: type,
    ) -> None:
        """Test a DC of 0 marks a check-free choice."""
        controller = make_controller(fresh_state, scripted_generator([HALL]))

        asyncio.run(controller.choose(ChoiceData(text="Wait", type=StatType.CON, difficulty=0)))

        assert controller.state.history[0].roll_result is None

    def test_dice_disabled(
        self,
        make_controller: Callable[..., TurnController],
        fresh_state: CharacterState,
        scripted_generator: type,
    ) -> None:
        """Test no checks are rolled when dice are turned off."""
        controller = make_controller(
            fresh_state,
            scripted_generator([HALL]),
            settings=GameSettings(enable_dice_rolls=False),
        )

        asyncio.run(controller.choose(ChoiceData(text="Force the door", type=StatType.STR, difficulty=12)))

        assert controller.state.history[0].roll_result is None


class TestHeroicAction:
    """Tests for freeform heroic actions."""

    RESOLVED = (
        "### NARRATIVE\nYou swing across the hall.\n"
        "### ACTION_RESULT\nSTAT: DEX\nDC: 12\nBASE: 17\nTOTAL: 17\nSUCCESS: true"
    )

    def test_spends_budget_and_rolls(
        self,
        make_controller: Callable[..., TurnController],
        fresh_state: CharacterState,
        scripted_generator: type,
        loaded_roller: Callable[[int], DiceRoller],
        make_item_fn: Callable[..., InventoryItem],
    ) -> None:
        """Test a heroic action sends the raw roll and the item used."""
        rope = make_item_fn("Rope")
        state = fresh_state.model_copy(update={"inventory": [rope]})
        generator = scripted_generator([self.RESOLVED])
        controller = make_controller(state, generator, roller=loaded_roller(17))

        outcome = asyncio.run(controller.perform_heroic_action("Swing from the chandelier", rope.id))

        action = generator.contexts[0].custom_action
        assert action is not None
        assert (action.text, action.roll, action.item) == ("Swing from the chandelier", 17, rope)
        assert controller.state.custom_actions_remaining == 2
        assert outcome.turn is not None
        assert outcome.turn.roll_result is not None
        assert outcome.turn.roll_result.stat_type is StatType.DEX
        assert controller.state.stat_experience[StatType.DEX] == 1

    def test_equipped_item_is_found(
        self,
        make_controller: Callable[..., TurnController],
        fresh_state: CharacterState,
        scripted_generator: type,
        make_item_fn: Callable[..., InventoryItem],
    ) -> None:
        """Test the item may come from an equipment slot."""
        sword = make_item_fn("Steel Sword", ItemType.WEAPON, {StatType.STR: 1})
        state = fresh_state.model_copy(update={"equipped": EquippedGear(weapon=sword)})
        generator = scripted_generator([self.RESOLVED])
        controller = make_controller(state, generator)

        asyncio.run(controller.perform_heroic_action("Cleave the rope", sword.id))

        assert generator.contexts[0].custom_action.item == sword

    def test_budget_exhausted(
        self,
        make_controller: Callable[..., TurnController],
        fresh_state: CharacterState,
        scripted_generator: type,
    ) -> None:
        """Test no heroic action is allowed with an empty budget."""
        state = fresh_state.model_copy(update={"custom_actions_remaining": 0})
        controller = make_controller(state, scripted_generator([self.RESOLVED]))

        with pytest.raises(HeroicActionError) as exc_info:
            asyncio.run(controller.perform_heroic_action("Fly"))

        assert exc_info.value.details["remaining"] == 0
        assert controller.state.history == []

    def test_blocked_by_effect(
        self,
        make_controller: Callable[..., TurnController],
        fresh_state: CharacterState,
        scripted_generator: type,
    ) -> None:
        """Test a blocking effect prevents heroic actions without spending one."""
        stunned = StatusEffect(name="Stunned", duration=2, blocks_heroic_actions=True)
        state = fresh_state.model_copy(update={"active_effects": [stunned]})
        controller = make_controller(state, scripted_generator([self.RESOLVED]))

        with pytest.raises(HeroicActionError) as exc_info:
            asyncio.run(controller.perform_heroic_action("Break free"))

        assert exc_info.value.details["blocking_effect"] == "Stunned"
        assert controller.state.custom_actions_remaining == 3


class TestFailureAndRetry:
    """Tests for failed requests, retry and cancel."""

    def test_failure_keeps_user_turn(
        self,
        make_controller: Callable[..., TurnController],
        fresh_state: CharacterState,
        scripted_generator: type,
    ) -> None:
        """Test a failed request leaves the committed user turn and allows retry."""
        controller = make_controller(fresh_state, scripted_generator([AIConnectionError("Offline")]))

        outcome = asyncio.run(controller.take_turn("Look around"))

        assert outcome.status is TurnStatus.FAILED
        assert outcome.error == "Offline"
        assert controller.status is TurnStatus.FAILED
        assert controller.is_loading is False
        assert controller.retry_available is True
        assert [turn.text for turn in controller.state.history] == ["Look around"]

    def test_retry_replays_context_without_aging_again(
        self,
        make_controller: Callable[..., TurnController],
        fresh_state: CharacterState,
        scripted_generator: type,
    ) -> None:
        """Test a retry reuses the snapshotted context and effects."""
        state = fresh_state.model_copy(update={"active_effects": [StatusEffect(name="Poisoned", duration=3)]})
        generator = scripted_generator([AIResponseError("Empty"), HALL])
        controller = make_controller(state, generator)

        async def play() -> TurnOutcome:
            await controller.take_turn("Look around")
            return await controller.retry()

        outcome = asyncio.run(play())

        assert outcome.status is TurnStatus.APPLIED
        assert outcome.request_id == 2
        assert generator.contexts[0] is generator.contexts[1]
        assert [e.duration for e in controller.state.active_effects] == [2]
        assert [turn.text for turn in controller.state.history] == ["Look around", "You enter the hall."]

    def test_retry_without_turn(
        self,
        make_controller: Callable[..., TurnController],
        fresh_state: CharacterState,
        scripted_generator: type,
    ) -> None:
        """Test retry needs an issued turn."""
        controller = make_controller(fresh_state, scripted_generator([]))

        with pytest.raises(TurnManagementError):
            asyncio.run(controller.retry())

    def test_retry_after_applied_turn(
        self,
        make_controller: Callable[..., TurnController],
        fresh_state: CharacterState,
        scripted_generator: type,
    ) -> None:
        """Test an applied turn cannot be replayed."""
        generator = scripted_generator([HALL, HALL])
        controller = make_controller(fresh_state, generator)
        asyncio.run(controller.take_turn("Look around"))
        history = controller.state.history

        with pytest.raises(TurnManagementError):
            asyncio.run(controller.retry())

        assert controller.state.history == history
        assert controller.status is TurnStatus.APPLIED
        assert len(generator.contexts) == 1

    def test_unexpected_generator_error(
        self,
        make_controller: Callable[..., TurnController],
        fresh_state: CharacterState,
        scripted_generator: type,
    ) -> None:
        """Test a non-AI exception fails the turn instead of leaving it loading."""
        controller = make_controller(fresh_state, scripted_generator([RuntimeError("boom"), HALL]))

        with capture_logs() as logs:
            outcome = asyncio.run(controller.take_turn("Look around"))

        assert outcome.status is TurnStatus.FAILED
        assert outcome.error == "boom"
        assert controller.status is TurnStatus.FAILED
        assert controller.is_loading is False
        assert controller.retry_available is True
        assert any(entry["event"] == "Story generator raised unexpectedly" for entry in logs)

        retried = asyncio.run(controller.retry())

        assert retried.status is TurnStatus.APPLIED
        assert [turn.text for turn in controller.state.history] == ["Look around", "You enter the hall."]

    def test_cancel(
        self,
        make_controller: Callable[..., TurnController],
        fresh_state: CharacterState,
        scripted_generator: type,
    ) -> None:
        """Test cancel invalidates the fence and offers a retry."""
        controller = make_controller(fresh_state, scripted_generator([AIConnectionError("Offline")]))
        asyncio.run(controller.take_turn("Look around"))
        before = controller.request_id

        controller.cancel()

        assert controller.request_id == before + 1
        assert controller.status is TurnStatus.CANCELLED
        assert controller.is_loading is False
        assert controller.retry_available is True

    def test_restore(
        self,
        make_controller: Callable[..., TurnController],
        fresh_state: CharacterState,
        scripted_generator: type,
    ) -> None:
        """Test restoring a state resets the controller."""
        controller = make_controller(fresh_state, scripted_generator([AIConnectionError("Offline")]))
        asyncio.run(controller.take_turn("Look around"))
        choices = [ChoiceData(text="Go north")]

        controller.restore(fresh_state, choices)

        assert controller.state is fresh_state
        assert controller.current_choices == choices
        assert controller.status is TurnStatus.IDLE
        assert controller.retry_available is False
        assert controller.last_params is None


class TestSummarize:
    """Tests for the end-of-game epilogue."""

    def test_ongoing_game_rejected(
        self,
        make_controller: Callable[..., TurnController],
        fresh_state: CharacterState,
        scripted_generator: type,
    ) -> None:
        """Test summaries are only written for finished games."""
        controller = make_controller(fresh_state, scripted_generator([]))

        with pytest.raises(InvalidGameStateError):
            asyncio.run(controller.summarize())

    def test_summary_stored(
        self,
        make_controller: Callable[..., TurnController],
        fresh_state: CharacterState,
        scripted_generator: type,
    ) -> None:
        """Test the epilogue is generated from the adventure log."""
        generator = scripted_generator(["### NARRATIVE\nThe crown is yours.\n### UPDATES\nSTATUS: won"])
        controller = make_controller(fresh_state, generator)

        async def play() -> str:
            await controller.take_turn("Grab the crown")
            return await controller.summarize()

        summary = asyncio.run(play())

        assert summary == "The hero won."
        assert controller.state.final_summary == "The hero won."
        assert "> USER: Grab the crown" in generator.summary_logs[0]
        assert "DM: The crown is yours." in generator.summary_logs[0]

    def test_summary_failure_uses_placeholder(
        self,
        make_controller: Callable[..., TurnController],
        fresh_state: CharacterState,
        scripted_generator: type,
    ) -> None:
        """Test a failed summary stores a placeholder."""
        state = fresh_state.model_copy(update={"game_status": GameStatus.LOST, "hp": 0})
        generator = scripted_generator([], summary=AIConnectionError("Offline"))
        controller = make_controller(state, generator)

        assert asyncio.run(controller.summarize()) == SUMMARY_UNAVAILABLE
        assert controller.state.final_summary == SUMMARY_UNAVAILABLE
