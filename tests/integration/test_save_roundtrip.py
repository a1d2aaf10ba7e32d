"""Integration tests for saving and resuming an adventure."""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from storyforge.core.config import GameSettings, StorageSettings
from storyforge.core.exceptions import SaveFileError
from storyforge.engine import ResponseNormalizer, StateReconciler, TurnController, TurnStatus
from storyforge.models import CharacterState, NPCType, StatType
from storyforge.storage import export_adventure_log, read_save, write_save


OPENING = (
    "### NARRATIVE\nA hooded stranger waves you over.\n"
    "### CHOICES\n1. [Ask about the crown] | CHA | 11\n2. [Leave] | NONE | 0\n"
    "### UPDATES\nITEM_ADD: Old Map | misc | Faded ink | NONE\n"
    "EFFECT_ADD: Inspired | buff | 3 | CHA:1 | false\n"
    "NPC_ADD: Stranger | Neutral | Healthy | Hooded figure"
)


class TestSaveRoundTrip:
    """Saved games resume exactly where they stopped."""

    def test_resume_after_save(
        self,
        tmp_path: Path,
        fresh_state: CharacterState,
        scripted_generator: type,
        reconciler: StateReconciler,
        normalizer: ResponseNormalizer,
        game_settings: GameSettings,
    ) -> None:
        """Play a turn, save it, load it into a new controller and continue."""
        storage = StorageSettings(save_path=tmp_path / "saves")
        first = TurnController(
            fresh_state,
            scripted_generator([OPENING]),
            normalizer=normalizer,
            reconciler=reconciler,
            settings=game_settings,
        )
        asyncio.run(first.take_turn("Enter the tavern"))

        path = write_save(
            storage.save_path / "tavern.json",
            first.state,
            first.current_choices,
            game_settings,
        )
        loaded = read_save(path)

        assert loaded.state == first.state
        assert loaded.choices == first.current_choices
        assert loaded.settings["wire_format"] == "delimited"
        assert loaded.state.find_npc("stranger").type is NPCType.NEUTRAL

        generator = scripted_generator(["### NARRATIVE\nThe stranger smiles.\n### UPDATES\nHP: -3"])
        second = TurnController(
            loaded.state,
            generator,
            normalizer=normalizer,
            reconciler=reconciler,
            settings=GameSettings(enable_dice_rolls=False),
            choices=loaded.choices,
        )
        outcome = asyncio.run(second.choose(second.current_choices[1]))

        assert outcome.status is TurnStatus.APPLIED
        assert "User: Enter the tavern" in generator.contexts[0].transcript
        assert "DM: A hooded stranger waves you over." in generator.contexts[0].transcript
        assert second.state.hp == 97
        assert [(e.name, e.duration) for e in second.state.active_effects] == [("Inspired", 2)]
        assert second.state.stat_experience == loaded.state.stat_experience
        assert len(second.state.history) == 4

    def test_failed_load_keeps_current_game(
        self,
        tmp_path: Path,
        fresh_state: CharacterState,
        scripted_generator: type,
        game_settings: GameSettings,
    ) -> None:
        """A corrupt save raises and the running game is unaffected."""
        corrupt = tmp_path / "corrupt.json"
        corrupt.write_text('{"gameState": {"hp": "lots"}, "currentChoices": []}', encoding="utf-8")
        controller = TurnController(fresh_state, scripted_generator([]), settings=game_settings)

        with pytest.raises(SaveFileError):
            loaded = read_save(corrupt)
            controller.restore(loaded.state, loaded.choices)

        assert controller.state is fresh_state

    def test_exported_log_matches_history(
        self,
        fresh_state: CharacterState,
        scripted_generator: type,
        reconciler: StateReconciler,
        normalizer: ResponseNormalizer,
        game_settings: GameSettings,
    ) -> None:
        """The adventure log lists every turn in order."""
        controller = TurnController(
            fresh_state,
            scripted_generator([OPENING]),
            normalizer=normalizer,
            reconciler=reconciler,
            settings=game_settings,
        )
        asyncio.run(controller.take_turn("Enter the tavern"))

        log = export_adventure_log(controller.state)

        assert log.index("> USER: Enter the tavern") < log.index("DM: A hooded stranger")
        assert controller.state.inventory[0].name == "Old Map"
        assert controller.state.base_stats.get(StatType.CHA) == 10
