"""Request context sent to the story-generation service.

The context is a snapshot taken when a turn is issued. It is built from the
state at issuance time plus the decremented effects snapshot, so a retry
replays exactly what the original request saw.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from dataclasses import dataclass, field

from storyforge.core.constants import HISTORY_WINDOW
from storyforge.engine.progression import compute_effective_stats
from storyforge.models.character import NPC, EquippedGear, StatBlock, StatusEffect
from storyforge.models.state import CharacterState
from storyforge.models.turn import HeroicActionContext, RollResult, StoryTurn


def build_transcript(history: Sequence[StoryTurn], window: int = HISTORY_WINDOW) -> str:
    """Format the last ``window`` history entries as a compact transcript.

    Args:
        history: Story turns, oldest first.
        window: Number of trailing entries to include.

    Returns:
        One ``User:``/``DM:`` line per entry, with roll outcomes annotated.
    """
    recent = list(history)[-window:] if window > 0 else []
    return "\n".join(turn.transcript_line() for turn in recent)


def _format_bonuses(bonuses: dict) -> str:
    return json.dumps({stat.value: amount for stat, amount in bonuses.items()})


@dataclass(frozen=True)
class StoryContext:
    """Everything the AI needs to write the next story step.

    Attributes:
        transcript: Recent history transcript.
        user_text: The player's latest input.
        quest: Current objective.
        hp: Current HP.
        max_hp: Current max HP.
        stats: Effective stats under the snapshotted effects.
        inventory: Names of unequipped bag items.
        equipped: Equipped gear.
        effects: Snapshotted (already decremented) effects.
        npcs: Known NPCs.
        genre: Adventure genre.
        roll_result: Resolved check for a standard choice.
        custom_action: Heroic action payload.
        story_arc: Optional story-arc override.
        wire_format: Response format to request.
    """

    transcript: str
    user_text: str
    quest: str
    hp: int
    max_hp: int
    stats: StatBlock
    inventory: list[str] = field(default_factory=list)
    equipped: EquippedGear = field(default_factory=EquippedGear)
    effects: list[StatusEffect] = field(default_factory=list)
    npcs: list[NPC] = field(default_factory=list)
    genre: str | None = None
    roll_result: RollResult | None = None
    custom_action: HeroicActionContext | None = None
    story_arc: str | None = None
    wire_format: str = "delimited"

    def _equipped_lines(self) -> list[str]:
        weapon, armor, accessory = self.equipped.weapon, self.equipped.armor, self.equipped.accessory
        lines = [
            f"[MAIN HAND]: {weapon.name} ({_format_bonuses(weapon.bonuses)})"
            if weapon
            else "[MAIN HAND]: Empty (Unarmed)"
        ]
        if armor:
            lines.append(f"[BODY]: {armor.name} ({_format_bonuses(armor.bonuses)})")
        if accessory:
            lines.append(f"[TRINKET]: {accessory.name} ({_format_bonuses(accessory.bonuses)})")
        return lines

    def _action_lines(self) -> list[str]:
        if self.custom_action is not None:
            action = self.custom_action
            item_name = action.item.name if action.item else "None"
            return [
                f'User performs a HEROIC CUSTOM ACTION: "{action.text}"',
                f"User claims to be using Item: {item_name} "
                "(VERIFY this is equipped/owned before allowing bonuses).",
                "",
                "[INTERNAL RESOLUTION REQUIRED]",
                "1. Choose the most relevant STAT for this action.",
                "2. Set a DC (5 = Easy, 15 = Hard, 25 = Impossible).",
                f"3. Use the RAW DIE ROLL provided: {action.roll}",
                f"4. Calculate: Total = {action.roll} + (Stat Modifier).",
                "5. Narrate the outcome and report it as the action result.",
            ]

        lines = [f'User\'s Latest Choice: "{self.user_text}"']
        roll = self.roll_result
        if roll is not None:
            lines += [
                "",
                "[ACTION RESOLUTION]",
                f"- Skill Check: {roll.stat_type.value}",
                f"- Difficulty Class (DC): {roll.difficulty}",
                f"- Calculation: Roll({roll.base}) + Mod({roll.modifier}) = Total({roll.total})",
                f"- Result: {'SUCCESS' if roll.is_success else 'FAILURE'}",
                "",
                "(Narrate the outcome based on this result.)",
            ]
        return lines

    def to_prompt_text(self) -> str:
        """Convert to text suitable for the LLM user message."""
        stats = ", ".join(f"{stat.value} {value}" for stat, value in self.stats.as_dict().items())
        lines = [
            "[GAME STATE]",
            f"Genre: {self.genre or 'Fantasy'}",
            f"Health: {self.hp} / {self.max_hp}",
            f'Quest: "{self.quest}"',
            f"Stats: {stats}",
        ]
        if self.story_arc:
            lines.append(f"Story Arc: {self.story_arc}")

        lines += ["", "[EQUIPPED_GEAR (ACTIVE)]", *self._equipped_lines()]
        lines += [
            "",
            "[BACKPACK_CONTENTS (INACTIVE - Must Equip to Use)]",
            json.dumps(self.inventory),
        ]

        if self.effects:
            lines += ["", "[ACTIVE_EFFECTS]"]
            for effect in self.effects:
                blocked = ", blocks heroic actions" if effect.blocks_heroic_actions else ""
                lines.append(
                    f"- {effect.name} ({effect.type.value}, {effect.duration} turns left{blocked})"
                )

        if self.npcs:
            lines += ["", "[KNOWN_NPCS]"]
            for npc in self.npcs:
                lines.append(f"- {npc.name}: {npc.type.value}, {npc.condition.value}")

        lines += ["", "[RECENT_HISTORY]", self.transcript or "(The adventure begins.)"]
        lines += ["", "[PLAYER_ACTION]", *self._action_lines()]
        lines += ["", "Based on the above, generate the next story segment in the requested format."]
        return "\n".join(lines)


def build_story_context(
    state: CharacterState,
    user_text: str,
    *,
    effects: Sequence[StatusEffect] | None = None,
    roll_result: RollResult | None = None,
    custom_action: HeroicActionContext | None = None,
    story_arc: str | None = None,
    history_window: int = HISTORY_WINDOW,
    wire_format: str = "delimited",
) -> StoryContext:
    """Snapshot the state into a request context.

    Args:
        state: Current state. Its history should not yet include the user
            turn being answered.
        user_text: The player's latest input.
        effects: Effects snapshot to report; the state's effects when None.
        roll_result: Resolved check for a standard choice.
        custom_action: Heroic action payload.
        story_arc: Optional story-arc override.
        history_window: Number of history entries in the transcript.
        wire_format: Response format to request.

    Returns:
        The StoryContext.
    """
    snapshot = list(state.active_effects if effects is None else effects)
    return StoryContext(
        transcript=build_transcript(state.history, history_window),
        user_text=user_text,
        quest=state.current_quest,
        hp=state.hp,
        max_hp=state.max_hp,
        stats=compute_effective_stats(state.base_stats, state.equipped, snapshot),
        inventory=[item.name for item in state.inventory],
        equipped=state.equipped,
        effects=snapshot,
        npcs=list(state.npcs),
        genre=state.genre,
        roll_result=roll_result,
        custom_action=custom_action,
        story_arc=story_arc,
        wire_format=wire_format,
    )


__all__ = [
    "StoryContext",
    "build_story_context",
    "build_transcript",
]
