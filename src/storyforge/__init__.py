"""StoryForge - AI-narrated RPG turn engine.

The player makes narrative choices; a language model narrates the outcome and
reports its mechanical consequences. StoryForge turns that untrusted output
into a consistent game state.

- Python owns TRUTH (CharacterState, dice rolls via d20, invariants)
- The LLM handles NARRATIVE and proposes changes as a TurnDelta
- Only the reconciler applies a delta, and only for the current request

Example:
    >>> from storyforge import TurnController, OpenAIStoryGenerator, create_character
    >>>
    >>> state = create_character(quest="Find the lost crown", genre="Fantasy")
    >>> controller = TurnController(state, OpenAIStoryGenerator())
    >>> outcome = await controller.take_turn("I enter the ruined keep")
    >>> print(controller.state.history[-1].text)

Modules:
    core: Configuration, logging, and base exceptions.
    models: Pydantic V2 schemas for state, turns and deltas.
    engine: Normalizer, reconciler, progression, dice and turn lifecycle.
    dm: Prompts and the story-generation client.
    storage: Save files and adventure log export.
"""

from __future__ import annotations

# Core
from storyforge.core.config import Settings, get_settings
from storyforge.core.exceptions import StoryForgeError
from storyforge.core.logging import configure_logging, get_logger

# Models
from storyforge.models import (
    CharacterState,
    ChoiceData,
    StoryTurn,
    TurnDelta,
    create_character,
)

# Engine
from storyforge.engine import (
    ResponseNormalizer,
    StateReconciler,
    TurnController,
    TurnStatus,
    normalize,
    reconcile,
)

# Story generation
from storyforge.dm import OpenAIStoryGenerator, StoryGenerator

# Storage
from storyforge.storage import export_adventure_log, load_save, read_save, write_save


__version__ = "0.1.0"
__all__ = [
    # Version info
    "__version__",
    # Core
    "StoryForgeError",
    "Settings",
    "get_settings",
    "configure_logging",
    "get_logger",
    # Models
    "CharacterState",
    "ChoiceData",
    "StoryTurn",
    "TurnDelta",
    "create_character",
    # Engine
    "ResponseNormalizer",
    "StateReconciler",
    "TurnController",
    "TurnStatus",
    "normalize",
    "reconcile",
    # DM
    "OpenAIStoryGenerator",
    "StoryGenerator",
    # Storage
    "export_adventure_log",
    "load_save",
    "read_save",
    "write_save",
]
