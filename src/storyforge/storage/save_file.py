"""JSON save files and the plain-text adventure log.

Provides:
- Save file building, serialization and loading
- Adventure log export (``> USER:`` / ``DM:`` transcript with epilogue)

Save file layout::

    {
      "gameState": {...},
      "currentChoices": [...],
      "settings": {...},
      "timestamp": 1700000000000,
      "version": "1.5"
    }
"""

from __future__ import annotations

import json
import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationInfo, field_validator
from pydantic import ValidationError as PydanticValidationError

from storyforge.core.constants import SAVE_FORMAT_VERSION
from storyforge.core.exceptions import SaveFileError
from storyforge.core.logging import get_logger
from storyforge.models.base import StoryModel
from storyforge.models.state import CharacterState
from storyforge.models.turn import ChoiceData, StoryTurn


logger = get_logger(__name__)

REQUIRED_KEYS = ("gameState", "currentChoices")

LOG_SEPARATOR = "-------------------"


# =============================================================================
# Data Classes
# =============================================================================


class SaveData(StoryModel):
    """Serialized form of a saved game."""

    game_state: CharacterState
    current_choices: list[ChoiceData] = Field(default_factory=list)
    settings: dict[str, Any] = Field(default_factory=dict)
    timestamp: int = 0
    version: str = SAVE_FORMAT_VERSION

    @field_validator("settings", "current_choices", mode="before")
    @classmethod
    def none_as_empty(cls, value: object, info: ValidationInfo) -> object:
        """Treat a null settings block or choice list as empty."""
        if value is None:
            return {} if info.field_name == "settings" else []
        return value


@dataclass(frozen=True)
class LoadedGame:
    """Result of loading a save file.

    Attributes:
        state: The restored character state.
        choices: Choices that were on offer when the game was saved.
        settings: Opaque UI settings stored with the save.
        timestamp: Save time in milliseconds since the epoch.
        version: Save format version.
    """

    state: CharacterState
    choices: list[ChoiceData] = field(default_factory=list)
    settings: dict[str, Any] = field(default_factory=dict)
    timestamp: int = 0
    version: str = SAVE_FORMAT_VERSION


# =============================================================================
# Saving
# =============================================================================


def _settings_dict(settings: BaseModel | Mapping[str, Any] | None) -> dict[str, Any]:
    if settings is None:
        return {}
    if isinstance(settings, BaseModel):
        return settings.model_dump(mode="json")
    return dict(settings)


def build_save(
    state: CharacterState,
    choices: Sequence[ChoiceData] = (),
    settings: BaseModel | Mapping[str, Any] | None = None,
    *,
    timestamp: int | None = None,
) -> SaveData:
    """Build a save file payload.

    Args:
        state: State to save.
        choices: Choices currently on offer.
        settings: UI or game settings to store alongside the state.
        timestamp: Save time in milliseconds; now when None.

    Returns:
        The SaveData.
    """
    return SaveData(
        game_state=state,
        current_choices=list(choices),
        settings=_settings_dict(settings),
        timestamp=int(time.time() * 1000) if timestamp is None else timestamp,
        version=SAVE_FORMAT_VERSION,
    )


def dumps_save(save: SaveData) -> str:
    """Serialize a save file to pretty-printed JSON."""
    return json.dumps(save.to_wire(), indent=2)


def write_save(
    path: str | Path,
    state: CharacterState,
    choices: Sequence[ChoiceData] = (),
    settings: BaseModel | Mapping[str, Any] | None = None,
) -> Path:
    """Write a save file to disk.

    Args:
        path: Target file path. Parent directories are created.
        state: State to save.
        choices: Choices currently on offer.
        settings: Settings to store alongside the state.

    Returns:
        The written path.

    Raises:
        SaveFileError: If the file cannot be written.
    """
    target = Path(path)
    text = dumps_save(build_save(state, choices, settings))
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(text, encoding="utf-8")
    except OSError as exc:
        raise SaveFileError(f"Failed to write save file: {exc}", source_file=str(target)) from exc

    logger.info("Game saved", path=str(target), turns=len(state.history))
    return target


# =============================================================================
# Loading
# =============================================================================


def load_save(data: str | bytes | Mapping[str, Any], *, source_file: str | None = None) -> LoadedGame:
    """Load a save file.

    Loading builds a new value, so a failure leaves the caller's current
    state untouched.

    Args:
        data: JSON text, bytes or an already-decoded mapping.
        source_file: Path used in error messages.

    Returns:
        The LoadedGame.

    Raises:
        SaveFileError: If the input is not JSON, lacks ``gameState`` or
            ``currentChoices``, or holds an invalid state.
    """
    if isinstance(data, (str, bytes)):
        try:
            payload = json.loads(data)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise SaveFileError(f"Save file is not valid JSON: {exc}", source_file=source_file) from exc
    else:
        payload = data

    if not isinstance(payload, Mapping):
        raise SaveFileError("Invalid save file format", source_file=source_file)

    missing = [key for key in REQUIRED_KEYS if payload.get(key) is None]
    if missing:
        raise SaveFileError(
            "Invalid save file format",
            source_file=source_file,
            details={"missing": missing},
        )

    try:
        save = SaveData.model_validate(payload)
    except PydanticValidationError as exc:
        raise SaveFileError(
            f"Save file holds an invalid game state: {exc.error_count()} error(s)",
            source_file=source_file,
            details={"errors": exc.errors(include_url=False)},
        ) from exc

    logger.info("Game loaded", version=save.version, turns=len(save.game_state.history))
    return LoadedGame(
        state=save.game_state,
        choices=list(save.current_choices),
        settings=dict(save.settings),
        timestamp=save.timestamp,
        version=save.version,
    )


def read_save(path: str | Path) -> LoadedGame:
    """Load a save file from disk.

    Raises:
        SaveFileError: If the file cannot be read or is invalid.
    """
    source = Path(path)
    try:
        text = source.read_text(encoding="utf-8")
    except OSError as exc:
        raise SaveFileError(f"Failed to read save file: {exc}", source_file=str(source)) from exc
    return load_save(text, source_file=str(source))


# =============================================================================
# Adventure Log
# =============================================================================


def _log_entry(turn: StoryTurn) -> str:
    if not turn.is_user_turn:
        return f"DM: {turn.text}\n{LOG_SEPARATOR}\n"

    line = f"> USER: {turn.text}"
    if turn.roll_result is not None:
        line += f" [ROLL: {turn.roll_result.total} vs DC {turn.roll_result.difficulty}]"
    if turn.level_up_event is not None:
        event = turn.level_up_event
        line += f" [LEVEL UP: {event.stat.value} {event.old_value}->{event.new_value}]"
    return line + "\n"


def export_adventure_log(state: CharacterState) -> str:
    """Render the history as a plain-text adventure log.

    Args:
        state: State whose history to export.

    Returns:
        The log text, with an epilogue section when a final summary exists.
    """
    content = "\n".join(_log_entry(turn) for turn in state.history)
    if state.final_summary:
        content += f"\n=== EPILOGUE ===\n{state.final_summary}\n"
    return content


__all__ = [
    "SaveData",
    "LoadedGame",
    "build_save",
    "dumps_save",
    "write_save",
    "load_save",
    "read_save",
    "export_adventure_log",
]
