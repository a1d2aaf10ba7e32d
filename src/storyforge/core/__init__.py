"""Settings, structured logging and the storyforge exception hierarchy.

Everything here is importable from ``storyforge.core`` directly; engine and
storage modules import from the submodules to keep import order explicit.
"""

from __future__ import annotations

from storyforge.core.config import (
    AIProviderSettings,
    GameSettings,
    Settings,
    StorageSettings,
    clear_settings_cache,
    get_settings,
)
from storyforge.core.exceptions import (
    AIConnectionError,
    AIControlError,
    AIRateLimitError,
    AIResponseError,
    ConfigurationError,
    DiceRollError,
    GameEngineError,
    HeroicActionError,
    InvalidGameStateError,
    PersistenceError,
    SaveFileError,
    StoryForgeError,
    TurnManagementError,
    ValidationError,
)
from storyforge.core.logging import (
    bind_context,
    clear_context,
    configure_from_settings,
    configure_logging,
    get_logger,
    request_context,
    unbind_context,
)


__all__ = [
    "AIProviderSettings",
    "GameSettings",
    "StorageSettings",
    "Settings",
    "get_settings",
    "clear_settings_cache",
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
    "configure_logging",
    "configure_from_settings",
    "get_logger",
    "bind_context",
    "unbind_context",
    "clear_context",
    "request_context",
]
