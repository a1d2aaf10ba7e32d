"""Configuration management for storyforge.

Settings come from environment variables and an optional ``.env`` file via
pydantic-settings. Each section has its own prefix; API keys are SecretStr.

Example:
    >>> from storyforge.core.config import get_settings
    >>> settings = get_settings()
    >>> print(settings.game.wire_format)
    'delimited'

Environment Variables:
    STORYFORGE_OPENROUTER_API_KEY: OpenRouter API key
    STORYFORGE_OPENAI_API_KEY: OpenAI API key
    STORYFORGE_STORY_MODEL: Model used for story steps
    STORYFORGE_SAVE_PATH: Directory for save files
    STORYFORGE_GAME_WIRE_FORMAT: 'delimited' or 'structured'
    STORYFORGE_LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    STORYFORGE_LOG_FILE: Optional log file path
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from storyforge.core.constants import (
    CUSTOM_ACTION_BUDGET,
    DEFAULT_DIFFICULTY_RANGE,
    HISTORY_WINDOW,
)
from storyforge.core.exceptions import ConfigurationError


OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"

DEFAULT_STORY_MODEL = "google/gemini-2.0-flash-001"


def _env_config(prefix: str, **extra: str) -> SettingsConfigDict:
    """Settings config shared by every section, differing only in prefix."""
    return SettingsConfigDict(
        env_prefix=prefix,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        **extra,
    )


class AIProviderSettings(BaseSettings):
    """Story-generation provider.

    OpenRouter is the primary provider and may start without a key; the
    generator reports the missing key when it is constructed. Choosing the
    direct OpenAI provider requires its key up front.
    """

    model_config = _env_config("STORYFORGE_")

    openrouter_api_key: SecretStr | None = None
    openai_api_key: SecretStr | None = None
    default_provider: Literal["openrouter", "openai"] = "openrouter"
    base_url: str | None = Field(default=None, description="OpenAI-compatible endpoint override")
    story_model: str = DEFAULT_STORY_MODEL
    summary_model: str = DEFAULT_STORY_MODEL
    temperature: float = Field(default=0.9, ge=0.0, le=2.0)
    max_retries: int = Field(default=3, ge=0, le=10, description="Retries after the first attempt")
    timeout_seconds: float = Field(default=60.0, gt=0, le=300)

    @model_validator(mode="after")
    def validate_api_key_for_provider(self) -> "AIProviderSettings":
        """Reject the OpenAI provider without its key.

        Raises:
            ConfigurationError: If OpenAI is selected without an API key.
        """
        if self.default_provider == "openai" and not self.openai_api_key:
            raise ConfigurationError(
                "OpenAI is the default provider but STORYFORGE_OPENAI_API_KEY is not set",
                config_key="openai_api_key",
            )
        return self

    @property
    def resolved_base_url(self) -> str | None:
        """Endpoint for the configured provider (None means the SDK default)."""
        if self.base_url:
            return self.base_url
        return OPENROUTER_BASE_URL if self.default_provider == "openrouter" else None

    @property
    def api_key(self) -> SecretStr | None:
        """API key for the configured provider."""
        if self.default_provider == "openrouter":
            return self.openrouter_api_key
        return self.openai_api_key


class GameSettings(BaseSettings):
    """Turn engine behavior.

    Attributes:
        wire_format: Response format requested from the AI.
        enable_dice_rolls: Resolve checks locally for choices with a stat.
        history_window: History entries sent with each request.
        custom_action_budget: Heroic actions granted to a new character.
        difficulty_min: Lowest DC assigned to checks missing one.
        difficulty_max: Highest DC assigned to checks missing one.
        genre: Default genre for new adventures.
    """

    model_config = _env_config("STORYFORGE_GAME_")

    wire_format: Literal["delimited", "structured"] = "delimited"
    enable_dice_rolls: bool = True
    history_window: int = Field(default=HISTORY_WINDOW, ge=1, le=50)
    custom_action_budget: int = Field(default=CUSTOM_ACTION_BUDGET, ge=0, le=10)
    difficulty_min: int = Field(default=DEFAULT_DIFFICULTY_RANGE[0], ge=1, le=30)
    difficulty_max: int = Field(default=DEFAULT_DIFFICULTY_RANGE[1], ge=1, le=30)
    genre: str = "Fantasy"

    @model_validator(mode="after")
    def validate_difficulty_range(self) -> "GameSettings":
        """Reject an inverted DC range."""
        if self.difficulty_min > self.difficulty_max:
            raise ConfigurationError(
                f"difficulty_min ({self.difficulty_min}) must not exceed "
                f"difficulty_max ({self.difficulty_max})",
                config_key="difficulty_min",
            )
        return self

    @property
    def difficulty_range(self) -> tuple[int, int]:
        """Inclusive DC range as a tuple."""
        return (self.difficulty_min, self.difficulty_max)


class StorageSettings(BaseSettings):
    """Save file location."""

    model_config = _env_config("STORYFORGE_")

    save_path: Path = Field(default=Path("data/saves"), description="Directory for save files")

    @field_validator("save_path", mode="after")
    @classmethod
    def ensure_directory_exists(cls, value: Path) -> Path:
        """Create the save directory if it is missing."""
        value.mkdir(parents=True, exist_ok=True)
        return value


class Settings(BaseSettings):
    """Application settings with one nested section per concern.

    Attributes:
        app_name: Application name.
        app_version: Application version string.
        debug: Human-readable console logs instead of JSON lines.
        log_level: Minimum logging level.
        log_file: Optional file that also receives log records.
        ai: Story-generation provider settings.
        game: Turn engine settings.
        storage: Save file settings.
    """

    model_config = _env_config("STORYFORGE_", env_nested_delimiter="__")

    app_name: str = "StoryForge"
    app_version: str = "0.1.0"
    debug: bool = False
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_file: Path | None = None

    ai: AIProviderSettings = Field(default_factory=AIProviderSettings)
    game: GameSettings = Field(default_factory=GameSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)

    @property
    def is_production(self) -> bool:
        """True unless debug mode is on."""
        return not self.debug


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load the application settings once and cache them.

    Raises:
        ConfigurationError: If configuration is missing or invalid.
    """
    try:
        return Settings()
    except ConfigurationError:
        raise
    except Exception as exc:
        raise ConfigurationError(
            f"Failed to load application settings: {exc}",
            details={"original_error": str(exc)},
        ) from exc


def clear_settings_cache() -> None:
    """Forget the cached settings so the next access reloads them."""
    get_settings.cache_clear()


__all__ = [
    "OPENROUTER_BASE_URL",
    "AIProviderSettings",
    "GameSettings",
    "StorageSettings",
    "Settings",
    "get_settings",
    "clear_settings_cache",
]
