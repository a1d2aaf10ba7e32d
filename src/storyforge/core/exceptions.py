"""Exception hierarchy for storyforge.

Every error derives from StoryForgeError. Subclasses name the keyword
context they accept in ``context_fields``; those values land in the
``details`` mapping, skipping any left as None.

Malformed AI output has no exception here: the response normalizer absorbs
it and never raises.

Example:
    >>> from storyforge.core.exceptions import SaveFileError
    >>> raise SaveFileError("Invalid save file format", source_file="adventure.json")
"""

from __future__ import annotations

from typing import Any, ClassVar


class StoryForgeError(Exception):
    """Base exception for all storyforge errors.

    Attributes:
        message: Human-readable error description.
        details: Structured context for logs and callers.
    """

    context_fields: ClassVar[tuple[str, ...]] = ()

    def __init__(self, message: str, *, details: dict[str, Any] | None = None, **context: Any) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error description.
            details: Extra context merged under the keyword context.
            **context: Values for the fields in ``context_fields``.

        Raises:
            TypeError: If a keyword is not a context field of this class.
        """
        unknown = sorted(set(context) - self.accepted_fields())
        if unknown:
            raise TypeError(f"{type(self).__name__} got unexpected context: {', '.join(unknown)}")

        self.message = message
        self.details: dict[str, Any] = dict(details or {})
        self.details.update((key, value) for key, value in context.items() if value is not None)
        super().__init__(message)

    @classmethod
    def accepted_fields(cls) -> set[str]:
        """Context keywords accepted by this class and its bases."""
        return {name for klass in cls.__mro__ for name in vars(klass).get("context_fields", ())}

    def __str__(self) -> str:
        if not self.details:
            return self.message
        rendered = ", ".join(f"{key}={value!r}" for key, value in self.details.items())
        return f"{self.message} [{rendered}]"

    def __repr__(self) -> str:
        return f"{type(self).__name__}(message={self.message!r}, details={self.details!r})"


# =============================================================================
# Turn Engine
# =============================================================================


class GameEngineError(StoryForgeError):
    """Base exception for turn engine errors."""


class InvalidGameStateError(GameEngineError):
    """An operation is not allowed in the current game status.

    Raised when a turn is submitted after the game was won or lost, or when
    an ongoing game is asked for its epilogue.
    """

    context_fields = ("current_state", "expected_states")


class DiceRollError(GameEngineError):
    """A check cannot be resolved from its inputs."""

    context_fields = ("expression",)


class TurnManagementError(GameEngineError):
    """A turn cannot be issued, retried or cancelled."""


class HeroicActionError(TurnManagementError):
    """No heroic action is available: none remain, or an effect blocks them."""

    context_fields = ("remaining", "blocking_effect")


# =============================================================================
# Story Generation
# =============================================================================


class AIControlError(StoryForgeError):
    """Base exception for story-generation failures."""

    context_fields = ("model", "provider")


class AIConnectionError(AIControlError):
    """The story-generation service could not be reached. Retryable."""


class AIResponseError(AIControlError):
    """The service answered without usable content."""


class AIRateLimitError(AIConnectionError):
    """The service refused the request for rate limiting. Retryable."""

    context_fields = ("retry_after_seconds",)


# =============================================================================
# Configuration, Validation and Persistence
# =============================================================================


class ConfigurationError(StoryForgeError):
    """Application configuration is missing or invalid."""

    context_fields = ("config_key",)


class ValidationError(StoryForgeError):
    """Caller-supplied data failed validation."""

    context_fields = ("field_name", "invalid_value")


class PersistenceError(StoryForgeError):
    """Base exception for save and export errors."""


class SaveFileError(PersistenceError):
    """A save file cannot be read, parsed or validated.

    Loading never mutates a running game, so callers keep their prior state
    when this is raised.
    """

    context_fields = ("source_file",)


__all__ = [
    "StoryForgeError",
    "GameEngineError",
    "InvalidGameStateError",
    "DiceRollError",
    "TurnManagementError",
    "HeroicActionError",
    "AIControlError",
    "AIConnectionError",
    "AIResponseError",
    "AIRateLimitError",
    "ConfigurationError",
    "ValidationError",
    "PersistenceError",
    "SaveFileError",
]
