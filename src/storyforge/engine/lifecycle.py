"""Turn lifecycle controller.

The controller owns the single ``CharacterState`` and the asynchronous
request/response cycle of each turn:

- Each request is tagged with a strictly increasing id from a RequestFence
- A response whose id is no longer current is received and discarded
- Cancelling advances the fence without aborting the in-flight call
- Retrying replays the snapshotted parameters of the last issued turn

All state mutation happens synchronously on the success path of the current
request, so no locking is needed.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

from storyforge.core.config import GameSettings, get_settings
from storyforge.core.constants import SUMMARY_UNAVAILABLE
from storyforge.core.exceptions import (
    AIConnectionError,
    AIControlError,
    AIResponseError,
    HeroicActionError,
    InvalidGameStateError,
    TurnManagementError,
)
from storyforge.core.logging import get_logger, request_context
from storyforge.engine.context import StoryContext, build_story_context
from storyforge.engine.dice import DiceRoller
from storyforge.engine.normalizer import ResponseNormalizer
from storyforge.engine.progression import (
    blocking_effect,
    decrement_effects,
    effective_stats,
    recompute_max_hp,
)
from storyforge.engine.reconciler import StateReconciler
from storyforge.models.character import InventoryItem, StatusEffect
from storyforge.models.state import CharacterState
from storyforge.models.turn import ChoiceData, HeroicActionContext, RollResult, StoryTurn
from storyforge.storage.save_file import export_adventure_log


if TYPE_CHECKING:
    from storyforge.dm.generator import StoryGenerator

logger = get_logger(__name__)


# =============================================================================
# Request Fencing
# =============================================================================


class RequestFence:
    """Monotonic request ids; only the latest issued id is current."""

    def __init__(self) -> None:
        self._current = 0

    @property
    def current(self) -> int:
        """The id of the current request (0 before any request)."""
        return self._current

    def issue(self) -> int:
        """Advance the fence and return the new current id."""
        self._current += 1
        return self._current

    def invalidate(self) -> None:
        """Advance the fence so no outstanding id is current."""
        self._current += 1

    def is_current(self, request_id: int) -> bool:
        """Whether ``request_id`` is still the current request."""
        return request_id == self._current


# =============================================================================
# Turn Status
# =============================================================================


class TurnStatus(StrEnum):
    """Status of a turn attempt."""

    IDLE = "idle"
    """No turn has been issued yet."""

    REQUESTING = "requesting"
    """Waiting on the story generator."""

    APPLIED = "applied"
    """The response was reconciled into the state."""

    CANCELLED = "cancelled"
    """The player stopped the request; its response will be discarded."""

    SUPERSEDED = "superseded"
    """The response arrived after a newer request was issued."""

    FAILED = "failed"
    """The request failed; the turn can be retried."""


@dataclass(frozen=True)
class TurnParams:
    """Snapshot of one issued turn, replayed verbatim on retry.

    Attributes:
        user_text: The player's input.
        roll_result: Resolved check for a standard choice.
        custom_action: Heroic action payload.
        story_arc: Optional story-arc override.
        effects: Effects after the issuance decrement.
        context: The request context sent to the generator.
    """

    user_text: str
    context: StoryContext
    roll_result: RollResult | None = None
    custom_action: HeroicActionContext | None = None
    story_arc: str | None = None
    effects: tuple[StatusEffect, ...] = ()


@dataclass
class TurnOutcome:
    """Result of one request.

    Attributes:
        status: How the request ended.
        request_id: The fence id the request was issued under.
        turn: The appended AI turn, when applied.
        warnings: Sub-operations the reconciler dropped.
        error: Error message, when failed.
    """

    status: TurnStatus
    request_id: int
    turn: StoryTurn | None = None
    warnings: list[str] = field(default_factory=list)
    error: str = ""


# =============================================================================
# Turn Controller
# =============================================================================


class TurnController:
    """Drive the request/response cycle of an adventure.

    Attributes:
        state: The authoritative character state.
        status: Status of the latest turn attempt.
        current_choices: Choices offered by the last applied turn.
    """

    def __init__(
        self,
        state: CharacterState,
        generator: StoryGenerator,
        *,
        normalizer: ResponseNormalizer | None = None,
        reconciler: StateReconciler | None = None,
        roller: DiceRoller | None = None,
        settings: GameSettings | None = None,
        choices: list[ChoiceData] | None = None,
    ) -> None:
        """Initialize the controller.

        Args:
            state: Starting state, fresh or loaded from a save.
            generator: Story generation collaborator.
            normalizer: Response normalizer.
            reconciler: State reconciler.
            roller: Dice roller for checks and heroic actions.
            settings: Game settings; the application settings when None.
            choices: Choices on offer, when resuming a saved game.
        """
        self._settings = settings or get_settings().game
        self._generator = generator
        self._normalizer = normalizer or ResponseNormalizer(
            difficulty_range=self._settings.difficulty_range
        )
        self._reconciler = reconciler or StateReconciler()
        self._roller = roller or DiceRoller()
        self._fence = RequestFence()

        self._state = state
        self._choices: list[ChoiceData] = list(choices or [])
        self._status = TurnStatus.IDLE
        self._loading = False
        self._retry_available = False
        self._last_params: TurnParams | None = None
        self._game_over_notified = state.is_over

        self._turn_callbacks: list[Callable[[TurnOutcome], None]] = []
        self._game_over_callbacks: list[Callable[[CharacterState], None]] = []

        logger.info(
            "TurnController initialized",
            turns=len(state.history),
            wire_format=self._settings.wire_format,
        )

    # -------------------------------------------------------------------------
    # Read-only views
    # -------------------------------------------------------------------------

    @property
    def state(self) -> CharacterState:
        """The current character state."""
        return self._state

    @property
    def status(self) -> TurnStatus:
        """Status of the latest turn attempt."""
        return self._status

    @property
    def is_loading(self) -> bool:
        """Whether a current request is in flight."""
        return self._loading

    @property
    def retry_available(self) -> bool:
        """Whether the last turn can be retried."""
        return self._retry_available and self._last_params is not None

    @property
    def current_choices(self) -> list[ChoiceData]:
        """Choices offered by the last applied turn."""
        return list(self._choices)

    @property
    def last_params(self) -> TurnParams | None:
        """Parameters of the last issued turn."""
        return self._last_params

    @property
    def request_id(self) -> int:
        """The current fence id."""
        return self._fence.current

    # -------------------------------------------------------------------------
    # Callbacks
    # -------------------------------------------------------------------------

    def add_turn_callback(self, callback: Callable[[TurnOutcome], None]) -> None:
        """Register a callback invoked after each applied turn."""
        self._turn_callbacks.append(callback)

    def add_game_over_callback(self, callback: Callable[[CharacterState], None]) -> None:
        """Register a callback invoked once when the game ends."""
        self._game_over_callbacks.append(callback)

    # -------------------------------------------------------------------------
    # Player actions
    # -------------------------------------------------------------------------

    async def take_turn(
        self,
        user_text: str,
        *,
        roll_result: RollResult | None = None,
        custom_action: HeroicActionContext | None = None,
        story_arc: str | None = None,
    ) -> TurnOutcome:
        """Commit the player's turn and request the AI's answer.

        The user turn is appended immediately. Effects are aged once here,
        so a retry of this turn does not age them again.

        Args:
            user_text: The player's input.
            roll_result: Resolved check for a standard choice.
            custom_action: Heroic action payload.
            story_arc: Optional story-arc override.

        Returns:
            The TurnOutcome of the request.

        Raises:
            InvalidGameStateError: If the game is already over.
        """
        self._ensure_ongoing()

        state = self._state
        effects = decrement_effects(state.active_effects)
        context = build_story_context(
            state,
            user_text,
            effects=effects,
            roll_result=roll_result,
            custom_action=custom_action,
            story_arc=story_arc,
            history_window=self._settings.history_window,
            wire_format=self._settings.wire_format,
        )

        user_turn = StoryTurn(text=user_text, is_user_turn=True, roll_result=roll_result)
        committed = state.model_copy(
            update={"history": [*state.history, user_turn], "active_effects": effects}
        )
        self._state = recompute_max_hp(committed)
        self._choices = []

        self._last_params = TurnParams(
            user_text=user_text,
            context=context,
            roll_result=roll_result,
            custom_action=custom_action,
            story_arc=story_arc,
            effects=tuple(effects),
        )
        return await self._request(self._last_params)

    async def choose(self, choice: ChoiceData) -> TurnOutcome:
        """Pick one of the offered choices.

        When dice rolls are enabled and the choice names a stat and a DC,
        the check is resolved locally before the AI is asked to narrate it.

        Args:
            choice: The chosen option.

        Returns:
            The TurnOutcome of the request.
        """
        self._ensure_ongoing()

        roll_result = None
        if self._settings.enable_dice_rolls and choice.has_check:
            stat_value = effective_stats(self._state).get(choice.type)
            roll_result = self._roller.resolve_check(stat_value, choice.difficulty, choice.type)
        return await self.take_turn(choice.text, roll_result=roll_result)

    async def perform_heroic_action(
        self,
        text: str,
        item_id: str | None = None,
        *,
        story_arc: str | None = None,
    ) -> TurnOutcome:
        """Attempt a freeform heroic action.

        Spends one heroic action and rolls a raw d20 for the AI to resolve
        the action with.

        Args:
            text: The player's freeform action.
            item_id: Id of a carried or equipped item the player uses.
            story_arc: Optional story-arc override.

        Returns:
            The TurnOutcome of the request.

        Raises:
            InvalidGameStateError: If the game is already over.
            HeroicActionError: If no heroic actions remain or an effect
                blocks them.
        """
        self._ensure_ongoing()

        state = self._state
        if state.custom_actions_remaining <= 0:
            raise HeroicActionError("No heroic actions remaining", remaining=0)
        blocker = blocking_effect(state)
        if blocker is not None:
            raise HeroicActionError(
                f"Heroic actions are blocked by {blocker.name}",
                remaining=state.custom_actions_remaining,
                blocking_effect=blocker.name,
            )

        item = self._find_item(item_id) if item_id else None
        action = HeroicActionContext(text=text, item=item, roll=self._roller.roll_d20())
        self._state = state.model_copy(
            update={"custom_actions_remaining": state.custom_actions_remaining - 1}
        )
        logger.info(
            "Heroic action",
            roll=action.roll,
            item=item.name if item else None,
            remaining=self._state.custom_actions_remaining,
        )
        return await self.take_turn(text, custom_action=action, story_arc=story_arc)

    def cancel(self) -> None:
        """Stop waiting for the in-flight request.

        The underlying call is not aborted; its response is discarded when
        it arrives.
        """
        self._fence.invalidate()
        self._loading = False
        self._retry_available = True
        self._status = TurnStatus.CANCELLED
        logger.info("Turn cancelled", request_id=self._fence.current)

    async def retry(self) -> TurnOutcome:
        """Replay the last issued turn under a new request id.

        Returns:
            The TurnOutcome of the request.

        Raises:
            TurnManagementError: If the last turn did not fail or get cancelled.
            InvalidGameStateError: If the adventure is over.
        """
        if not self.retry_available:
            raise TurnManagementError("No turn to retry", details={"status": self._status.value})
        self._ensure_ongoing()
        logger.info("Retrying turn", user_text=self._last_params.user_text)
        return await self._request(self._last_params)

    def restore(self, state: CharacterState, choices: list[ChoiceData] | None = None) -> None:
        """Replace the state, e.g. after loading a save.

        Any in-flight request is invalidated.
        """
        self._fence.invalidate()
        self._state = state
        self._choices = list(choices or [])
        self._loading = False
        self._retry_available = False
        self._last_params = None
        self._status = TurnStatus.IDLE
        self._game_over_notified = state.is_over
        logger.info("State restored", turns=len(state.history), status=state.game_status.value)

    async def summarize(self) -> str:
        """Write the epilogue summary of a finished game.

        Returns:
            The stored summary, or a placeholder if the generator failed.

        Raises:
            InvalidGameStateError: If the game is still ongoing.
        """
        if not self._state.is_over:
            raise InvalidGameStateError(
                "Cannot summarize an ongoing game",
                current_state=self._state.game_status.value,
                expected_states=["won", "lost"],
            )

        try:
            summary = await self._generator.summarize(export_adventure_log(self._state))
        except AIControlError as exc:
            logger.warning("Summary generation failed", error=str(exc))
            summary = SUMMARY_UNAVAILABLE

        self._state = self._state.model_copy(update={"final_summary": summary or SUMMARY_UNAVAILABLE})
        return self._state.final_summary

    # -------------------------------------------------------------------------
    # Request cycle
    # -------------------------------------------------------------------------

    async def _request(self, params: TurnParams) -> TurnOutcome:
        request_id = self._fence.issue()
        self._loading = True
        self._retry_available = False
        self._status = TurnStatus.REQUESTING

        try:
            with request_context(request_id=request_id):
                raw = await self._generator.generate(params.context)
        except Exception as exc:
            return self._fail(request_id, exc)

        if not self._fence.is_current(request_id):
            logger.info("Discarding superseded response", request_id=request_id)
            return TurnOutcome(status=TurnStatus.SUPERSEDED, request_id=request_id)

        delta = self._normalizer.normalize(raw)
        roll_context = params.roll_result if params.roll_result is not None else params.custom_action
        result = self._reconciler.reconcile(self._state, delta, roll_context)

        self._state = result.state
        self._choices = list(result.turn.choices)
        self._loading = False
        self._retry_available = False
        self._status = TurnStatus.APPLIED

        outcome = TurnOutcome(
            status=TurnStatus.APPLIED,
            request_id=request_id,
            turn=result.turn,
            warnings=list(result.warnings),
        )
        logger.info(
            "Turn applied",
            request_id=request_id,
            hp=self._state.hp,
            choices=len(self._choices),
            game_status=self._state.game_status.value,
        )

        for callback in self._turn_callbacks:
            callback(outcome)
        if self._state.is_over and not self._game_over_notified:
            self._game_over_notified = True
            for callback in self._game_over_callbacks:
                callback(self._state)

        return outcome

    def _fail(self, request_id: int, exc: Exception) -> TurnOutcome:
        if not self._fence.is_current(request_id):
            logger.info("Discarding superseded failure", request_id=request_id, error=str(exc))
            return TurnOutcome(status=TurnStatus.SUPERSEDED, request_id=request_id)

        if isinstance(exc, AIResponseError):
            logger.error("AI returned unusable content", request_id=request_id, error=str(exc))
        elif isinstance(exc, AIConnectionError):
            logger.error("AI transport failure", request_id=request_id, error=str(exc))
        elif isinstance(exc, AIControlError):
            logger.error("AI request failed", request_id=request_id, error=str(exc))
        else:
            logger.exception(
                "Story generator raised unexpectedly", request_id=request_id, error=str(exc)
            )

        self._loading = False
        self._retry_available = True
        self._status = TurnStatus.FAILED
        return TurnOutcome(status=TurnStatus.FAILED, request_id=request_id, error=str(exc))

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _ensure_ongoing(self) -> None:
        if self._state.is_over:
            raise InvalidGameStateError(
                "The adventure is over",
                current_state=self._state.game_status.value,
                expected_states=["ongoing"],
            )

    def _find_item(self, item_id: str) -> InventoryItem | None:
        for item in self._state.inventory:
            if item.id == item_id:
                return item
        for _, item in self._state.equipped.occupied():
            if item.id == item_id:
                return item
        return None


__all__ = [
    "RequestFence",
    "TurnStatus",
    "TurnParams",
    "TurnOutcome",
    "TurnController",
]
