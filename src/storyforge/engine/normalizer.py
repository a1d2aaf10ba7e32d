"""Response normalizer: raw AI output to a validated TurnDelta.

Two wire shapes are accepted:

* Structured: a mapping (or a JSON object string, optionally inside a
  markdown code fence) using the JSON response keys (``inventory_added``,
  ``equipment_update``, ``npcs_update`` ...). Every field is coerced on its
  own; unknown enum values fall back to defaults and malformed list entries
  are dropped.
* Delimited text: ``### HEADER`` sections (NARRATIVE, CHOICES, UPDATES,
  ACTION_RESULT) with pipe-separated fields.

The normalizer is the only place malformed AI output is absorbed: it never
raises, and anything it cannot read degrades to the TurnDelta defaults.

Example:
    >>> normalizer = ResponseNormalizer()
    >>> delta = normalizer.normalize("### NARRATIVE\\nThe door creaks.\\n### UPDATES\\nHP: -3")
    >>> (delta.narrative, delta.hp_change)
    ('The door creaks.', -3)
"""

from __future__ import annotations

import json
import random
import re
from collections.abc import Mapping
from enum import StrEnum
from typing import Any, TypeVar

from storyforge.core.constants import DEFAULT_DIFFICULTY_RANGE, DEFAULT_EFFECT_DURATION
from storyforge.core.logging import get_logger
from storyforge.engine.classifiers import StatInferrer, infer_stat
from storyforge.models.character import StatMap
from storyforge.models.delta import (
    ActionResult,
    EffectProposal,
    ItemProposal,
    NPCProposal,
    NPCUpdate,
    TurnDelta,
)
from storyforge.models.enums import (
    EffectType,
    GameStatus,
    ItemType,
    NPCCondition,
    NPCType,
    StatType,
)
from storyforge.models.turn import ChoiceData


logger = get_logger(__name__)

E = TypeVar("E", bound=StrEnum)

_SECTION = re.compile(
    r"###\s*([A-Za-z_]+)[^\n]*(?:\n|\Z)(.*?)(?=###\s*[A-Za-z_]+|\Z)",
    re.DOTALL,
)
_ENUMERATION = re.compile(r"^\s*(?:\d+\s*[.):-]|[-*•])\s*")
_BRACKETED = re.compile(r"^\[(.*)\]$", re.DOTALL)
_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")
_ANY_INT = re.compile(r"[+-]?\d+")
_BONUS = re.compile(r"\b(STR|DEX|CON|INT|CHA|PER|LUK)\b\s*[:=]?\s*([+-]?\d+)", re.IGNORECASE)
_STAT_NAME = re.compile(r"\b(STR|DEX|CON|INT|CHA|PER|LUK)\b", re.IGNORECASE)

_TRUE_WORDS = frozenset({"true", "yes", "y", "1", "success", "succeeded"})

# Substitute for missing action-result numbers
_FALLBACK_DIFFICULTY = 10


# =============================================================================
# Coercion Helpers
# =============================================================================


def _as_int(value: Any) -> int | None:
    """Read an integer the way a lenient parser would (``"+5 HP"`` -> 5)."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value == value else None
    if isinstance(value, str):
        match = _LEADING_INT.match(value)
        return int(match.group(1)) if match else None
    return None


def _as_text(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_WORDS
    return False


def _as_list(value: Any) -> list[Any]:
    if isinstance(value, (list, tuple)):
        return list(value)
    return []


def _is_placeholder(value: str | None) -> bool:
    """True for empty values and the literal ``NONE`` used as a no-op."""
    return value is None or value.strip().strip("[]").strip().upper() in {"", "NONE"}


def _entity_name(value: Any) -> str | None:
    """An entity name, or None when absent or a ``NONE`` placeholder."""
    text = _as_text(value)
    if text is None or _is_placeholder(text):
        return None
    return text


def _parse_enum(enum_cls: type[E], value: Any) -> E | None:
    """Case-insensitive lookup of a StrEnum member by value."""
    if isinstance(value, enum_cls):
        return value
    text = _as_text(value)
    if text is None:
        return None
    wanted = text.strip("[]").strip().lower()
    for member in enum_cls:
        if member.value.lower() == wanted:
            return member
    return None


def parse_bonus_string(text: str | None) -> StatMap:
    """Parse a tolerant bonus string such as ``"STR:1, DEX -1"``.

    Repeated axes are summed.

    Args:
        text: Bonus string from AI output.

    Returns:
        The parsed stat map, empty for ``NONE`` or unparseable text.
    """
    bonuses: StatMap = {}
    if _is_placeholder(text):
        return bonuses
    for stat_name, amount in _BONUS.findall(text or ""):
        stat = StatType(stat_name.upper())
        bonuses[stat] = bonuses.get(stat, 0) + int(amount)
    return bonuses


def _parse_split_bonuses(stats_text: str, values_text: str) -> StatMap:
    """Parse the ``STR, PER | 2, 1`` form where names and values are split."""
    names = [StatType(name.upper()) for name in _STAT_NAME.findall(stats_text)]
    values = [_as_int(part) for part in values_text.split(",")]
    bonuses: StatMap = {}
    for stat, amount in zip(names, values):
        if amount is not None:
            bonuses[stat] = bonuses.get(stat, 0) + amount
    return bonuses


def _parse_stat_map(value: Any) -> StatMap:
    """Parse a stat map given as a mapping or as a bonus string."""
    if isinstance(value, str):
        return parse_bonus_string(value)
    if not isinstance(value, Mapping):
        return {}
    bonuses: StatMap = {}
    for key, amount in value.items():
        stat = StatType.parse(key)
        number = _as_int(amount)
        if stat is None or number is None:
            logger.debug("Dropping unreadable stat entry", key=key, value=amount)
            continue
        bonuses[stat] = number
    return bonuses


def _parse_status(value: Any) -> GameStatus:
    return _parse_enum(GameStatus, value) or GameStatus.ONGOING


def _parse_duration(value: Any) -> int:
    duration = _as_int(value)
    if duration is None or duration <= 0:
        return DEFAULT_EFFECT_DURATION
    return duration


def _parse_difficulty(value: Any) -> int | None:
    """A choice DC. An explicit zero or less is kept as 0, meaning no check."""
    if isinstance(value, str):
        match = _ANY_INT.search(value)
        value = match.group(0) if match else None
    difficulty = _as_int(value)
    if difficulty is None:
        return None
    return max(0, difficulty)


def _build_action_result(
    stat: Any,
    difficulty: Any,
    base: Any,
    total: Any,
    success: Any,
) -> ActionResult | None:
    """Assemble an action result, or None when the stat is not a valid axis.

    Missing numbers are filled from each other so the record stays usable:
    the natural roll is clamped into 1..20, a missing total equals the roll,
    and a missing success flag is derived from total against DC.
    """
    stat_type = StatType.parse(stat)
    if stat_type is None:
        if stat is not None:
            logger.debug("Dropping action result with unknown stat", stat=stat)
        return None

    base_value = _as_int(base)
    total_value = _as_int(total)
    if base_value is None:
        base_value = total_value if total_value is not None else 1
    base_value = min(20, max(1, base_value))
    if total_value is None:
        total_value = base_value
    dc = _as_int(difficulty)
    if dc is None:
        dc = _FALLBACK_DIFFICULTY
    is_success = _as_bool(success) if success is not None else total_value >= dc

    return ActionResult(
        stat=stat_type,
        difficulty=dc,
        base=base_value,
        total=total_value,
        is_success=is_success,
    )


def _strip_json_fence(text: str) -> str:
    """Remove a surrounding markdown code fence, if present."""
    stripped = text.strip()
    if stripped.startswith("```"):
        lines = stripped.split("\n")
        if lines[0].startswith("```"):
            lines = lines[1:]
        if lines and lines[-1].strip() == "```":
            lines = lines[:-1]
        stripped = "\n".join(lines).strip()
    return stripped


def _extract_json_object(text: str) -> dict[str, Any] | None:
    """Decode ``text`` as a JSON object, or return None if it is not one."""
    candidate = _strip_json_fence(text)
    if not (candidate.startswith("{") and candidate.endswith("}")):
        return None
    try:
        payload = json.loads(candidate)
    except json.JSONDecodeError as exc:
        logger.debug("Response looked like JSON but did not decode", error=str(exc))
        return None
    return payload if isinstance(payload, dict) else None


# =============================================================================
# Normalizer
# =============================================================================


class ResponseNormalizer:
    """Convert untrusted AI output into a TurnDelta.

    Args:
        inferrer: Guesses the stat a choice tests from its text.
        rng: Random source for DCs assigned to choices that lack one.
        difficulty_range: Inclusive range for assigned DCs.
    """

    def __init__(
        self,
        *,
        inferrer: StatInferrer | None = None,
        rng: random.Random | None = None,
        difficulty_range: tuple[int, int] = DEFAULT_DIFFICULTY_RANGE,
    ) -> None:
        self._inferrer = inferrer or infer_stat
        self._rng = rng or random.Random()
        self._difficulty_range = difficulty_range

    def normalize(self, raw: str | Mapping[str, Any] | None) -> TurnDelta:
        """Normalize one AI response.

        Args:
            raw: Response text or an already-decoded mapping.

        Returns:
            The validated TurnDelta. Never raises for malformed input.
        """
        try:
            if isinstance(raw, Mapping):
                delta = self._from_structured(raw)
            elif isinstance(raw, str):
                payload = _extract_json_object(raw)
                if payload is not None:
                    delta = self._from_structured(payload)
                else:
                    delta = self._from_delimited(raw)
            else:
                logger.warning("Unsupported AI response type", type=type(raw).__name__)
                delta = TurnDelta()
        except Exception as exc:
            # Last-resort guard: a bug here must not cost the player their turn
            logger.warning("AI response normalization failed, using defaults", error=str(exc))
            delta = TurnDelta(narrative=raw.strip() if isinstance(raw, str) else "")

        return self._finalize_choices(delta)

    # -------------------------------------------------------------------------
    # Choice post-processing
    # -------------------------------------------------------------------------

    def _finalize_choices(self, delta: TurnDelta) -> TurnDelta:
        if not delta.choices:
            return delta
        low, high = self._difficulty_range
        finalized: list[ChoiceData] = []
        for choice in delta.choices:
            stat = choice.type
            if stat is None:
                stat = self._inferrer(choice.text)
                if stat is not None:
                    logger.debug("Inferred stat for choice", text=choice.text, stat=stat.value)
            difficulty = choice.difficulty
            if stat is not None and difficulty is None:
                difficulty = self._rng.randint(low, high)
                logger.debug("Assigned difficulty to choice", text=choice.text, difficulty=difficulty)
            finalized.append(choice.model_copy(update={"type": stat, "difficulty": difficulty}))
        return delta.model_copy(update={"choices": finalized})

    # -------------------------------------------------------------------------
    # Structured mode
    # -------------------------------------------------------------------------

    def _from_structured(self, data: Mapping[str, Any]) -> TurnDelta:
        equipment = data.get("equipment_update")
        equipment = equipment if isinstance(equipment, Mapping) else {}
        npcs = data.get("npcs_update")
        npcs = npcs if isinstance(npcs, Mapping) else {}
        action = data.get("action_result")

        action_result = None
        if isinstance(action, Mapping):
            action_result = _build_action_result(
                action.get("stat"),
                action.get("difficulty"),
                action.get("base_roll", action.get("base")),
                action.get("total"),
                action.get("is_success"),
            )

        return TurnDelta(
            narrative=_as_text(data.get("narrative")) or "",
            choices=self._structured_choices(data.get("choices")),
            hp_change=_as_int(data.get("hp_change")) or 0,
            game_status=_parse_status(data.get("game_status")),
            quest_update=self._quest(data.get("quest_update")),
            inventory_added=self._structured_items(data.get("inventory_added")),
            inventory_removed=self._names(data.get("inventory_removed")),
            equip=self._names(equipment.get("equip", data.get("equip"))),
            unequip=self._names(equipment.get("unequip", data.get("unequip"))),
            stats_update=_parse_stat_map(data.get("stats_update")),
            new_effects=self._structured_effects(data.get("new_effects")),
            npcs_added=self._structured_npc_adds(npcs.get("add")),
            npcs_updated=self._structured_npc_updates(npcs.get("update")),
            npcs_removed=self._names(npcs.get("remove")),
            action_result=action_result,
        )

    @staticmethod
    def _quest(value: Any) -> str | None:
        quest = _as_text(value)
        if quest is None or quest.upper() == "SAME":
            return None
        return quest

    @staticmethod
    def _names(value: Any) -> list[str]:
        if isinstance(value, str):
            value = [value]
        names = []
        for entry in _as_list(value):
            name = _entity_name(entry)
            if name is not None:
                names.append(name)
        return names

    @staticmethod
    def _structured_choices(value: Any) -> list[ChoiceData]:
        choices: list[ChoiceData] = []
        for entry in _as_list(value):
            if isinstance(entry, str):
                entry = {"text": entry}
            if not isinstance(entry, Mapping):
                logger.debug("Dropping malformed choice", entry=entry)
                continue
            text = _as_text(entry.get("text"))
            if text is None:
                logger.debug("Dropping choice without text", entry=dict(entry))
                continue
            choices.append(
                ChoiceData(
                    text=text,
                    type=StatType.parse(entry.get("type")),
                    difficulty=_parse_difficulty(entry.get("difficulty")),
                )
            )
        return choices

    @staticmethod
    def _structured_items(value: Any) -> list[ItemProposal]:
        items: list[ItemProposal] = []
        for entry in _as_list(value):
            if isinstance(entry, str):
                entry = {"name": entry}
            if not isinstance(entry, Mapping):
                logger.debug("Dropping malformed item", entry=entry)
                continue
            name = _entity_name(entry.get("name"))
            if name is None:
                continue
            description = _as_text(entry.get("description"))
            items.append(
                ItemProposal(
                    name=name,
                    type=ItemType.parse(entry.get("type")),
                    description=None if _is_placeholder(description) else description,
                    bonuses=_parse_stat_map(entry.get("bonuses")),
                )
            )
        return items

    @staticmethod
    def _structured_effects(value: Any) -> list[EffectProposal]:
        effects: list[EffectProposal] = []
        for entry in _as_list(value):
            if not isinstance(entry, Mapping):
                logger.debug("Dropping malformed effect", entry=entry)
                continue
            name = _entity_name(entry.get("name"))
            if name is None:
                continue
            modifiers = entry.get("statModifiers", entry.get("stat_modifiers"))
            blocks = entry.get("blocksHeroicActions", entry.get("blocks_heroic_actions"))
            effects.append(
                EffectProposal(
                    name=name,
                    type=_parse_enum(EffectType, entry.get("type")) or EffectType.DEBUFF,
                    duration=_parse_duration(entry.get("duration")),
                    stat_modifiers=_parse_stat_map(modifiers),
                    blocks_heroic_actions=_as_bool(blocks),
                )
            )
        return effects

    @staticmethod
    def _structured_npc_adds(value: Any) -> list[NPCProposal]:
        added: list[NPCProposal] = []
        for entry in _as_list(value):
            if not isinstance(entry, Mapping):
                logger.debug("Dropping malformed NPC", entry=entry)
                continue
            name = _entity_name(entry.get("name"))
            if name is None:
                continue
            added.append(
                NPCProposal(
                    name=name,
                    type=_parse_enum(NPCType, entry.get("type")) or NPCType.UNKNOWN,
                    condition=_parse_enum(NPCCondition, entry.get("condition"))
                    or NPCCondition.HEALTHY,
                    description=_as_text(entry.get("description")),
                )
            )
        return added

    @staticmethod
    def _structured_npc_updates(value: Any) -> list[NPCUpdate]:
        updates: list[NPCUpdate] = []
        for entry in _as_list(value):
            if not isinstance(entry, Mapping):
                logger.debug("Dropping malformed NPC update", entry=entry)
                continue
            name = _entity_name(entry.get("name"))
            condition = _parse_enum(NPCCondition, entry.get("condition"))
            if name is None or condition is None:
                logger.debug("Dropping NPC update without name or condition", entry=dict(entry))
                continue
            updates.append(
                NPCUpdate(
                    name=name,
                    condition=condition,
                    type=_parse_enum(NPCType, entry.get("status", entry.get("type"))),
                )
            )
        return updates

    # -------------------------------------------------------------------------
    # Delimited-text mode
    # -------------------------------------------------------------------------

    def _from_delimited(self, text: str) -> TurnDelta:
        sections: dict[str, str] = {}
        for match in _SECTION.finditer(text):
            sections[match.group(1).upper()] = match.group(2).strip()

        narrative = sections.get("NARRATIVE") or text.strip()
        if "NARRATIVE" not in sections:
            logger.debug("No NARRATIVE section, using raw text", sections=sorted(sections))

        fields: dict[str, Any] = {
            "narrative": narrative,
            "choices": self._delimited_choices(sections.get("CHOICES", "")),
        }
        fields.update(self._delimited_updates(sections.get("UPDATES", "")))
        fields["action_result"] = self._delimited_action_result(sections.get("ACTION_RESULT", ""))
        return TurnDelta(**fields)

    @staticmethod
    def _delimited_choices(block: str) -> list[ChoiceData]:
        choices: list[ChoiceData] = []
        for line in block.splitlines():
            if not line.strip():
                continue
            parts = [part.strip() for part in _ENUMERATION.sub("", line, count=1).split("|")]
            bracketed = _BRACKETED.match(parts[0])
            choice_text = (bracketed.group(1) if bracketed else parts[0]).strip()
            if not choice_text:
                continue
            choices.append(
                ChoiceData(
                    text=choice_text,
                    type=StatType.parse(parts[1]) if len(parts) > 1 else None,
                    difficulty=_parse_difficulty(parts[2]) if len(parts) > 2 else None,
                )
            )
        return choices

    def _delimited_updates(self, block: str) -> dict[str, Any]:
        fields: dict[str, Any] = {}
        items: list[ItemProposal] = []
        removed: list[str] = []
        equip: list[str] = []
        unequip: list[str] = []
        effects: list[EffectProposal] = []
        stats_update: StatMap = {}
        npcs_added: list[NPCProposal] = []
        npcs_updated: list[NPCUpdate] = []
        npcs_removed: list[str] = []

        for line in block.splitlines():
            key, sep, value = line.strip().partition(":")
            if not sep:
                continue
            key = key.strip().upper()
            value = value.strip()
            parts = [part.strip() for part in value.split("|")]

            if key == "HP":
                fields["hp_change"] = _as_int(value) or 0
            elif key == "STATUS":
                fields["game_status"] = _parse_status(value)
            elif key == "QUEST":
                fields["quest_update"] = self._quest(value)
            elif key == "ITEM_ADD":
                item = self._delimited_item(parts)
                if item is not None:
                    items.append(item)
            elif key == "ITEM_REMOVE":
                removed.extend(self._names(value))
            elif key == "EQUIP":
                equip.extend(self._names(value))
            elif key == "UNEQUIP":
                unequip.extend(self._names(value))
            elif key == "EFFECT_ADD":
                effect = self._delimited_effect(parts)
                if effect is not None:
                    effects.append(effect)
            elif key == "STAT_UPDATE":
                for stat, amount in parse_bonus_string(value).items():
                    stats_update[stat] = stats_update.get(stat, 0) + amount
            elif key == "NPC_ADD":
                npc = self._delimited_npc_add(parts)
                if npc is not None:
                    npcs_added.append(npc)
            elif key == "NPC_UPDATE":
                update = self._delimited_npc_update(parts)
                if update is not None:
                    npcs_updated.append(update)
            elif key == "NPC_REMOVE":
                npcs_removed.extend(self._names(value))
            else:
                logger.debug("Ignoring unknown update key", key=key)

        fields.update(
            inventory_added=items,
            inventory_removed=removed,
            equip=equip,
            unequip=unequip,
            new_effects=effects,
            stats_update=stats_update,
            npcs_added=npcs_added,
            npcs_updated=npcs_updated,
            npcs_removed=npcs_removed,
        )
        return fields

    @staticmethod
    def _delimited_item(parts: list[str]) -> ItemProposal | None:
        name = _entity_name(parts[0])
        if name is None:
            return None
        description = parts[2] if len(parts) > 2 and not _is_placeholder(parts[2]) else None
        bonuses: StatMap = {}
        if len(parts) > 4 and not _is_placeholder(parts[4]) and not _BONUS.search(parts[3]):
            bonuses = _parse_split_bonuses(parts[3], parts[4])
        elif len(parts) > 3:
            bonuses = parse_bonus_string(parts[3])
        return ItemProposal(
            name=name,
            type=ItemType.parse(parts[1]) if len(parts) > 1 else None,
            description=description,
            bonuses=bonuses,
        )

    @staticmethod
    def _delimited_effect(parts: list[str]) -> EffectProposal | None:
        name = _entity_name(parts[0])
        if name is None:
            return None
        return EffectProposal(
            name=name,
            type=(_parse_enum(EffectType, parts[1]) if len(parts) > 1 else None) or EffectType.DEBUFF,
            duration=_parse_duration(parts[2] if len(parts) > 2 else None),
            stat_modifiers=parse_bonus_string(parts[3]) if len(parts) > 3 else {},
            blocks_heroic_actions=_as_bool(parts[4]) if len(parts) > 4 else False,
        )

    @staticmethod
    def _delimited_npc_add(parts: list[str]) -> NPCProposal | None:
        name = _entity_name(parts[0])
        if name is None:
            return None
        npc_type = _parse_enum(NPCType, parts[1]) if len(parts) > 1 else None
        condition = _parse_enum(NPCCondition, parts[2]) if len(parts) > 2 else None
        description = parts[3] if len(parts) > 3 and not _is_placeholder(parts[3]) else None
        return NPCProposal(
            name=name,
            type=npc_type or NPCType.UNKNOWN,
            condition=condition or NPCCondition.HEALTHY,
            description=description,
        )

    @staticmethod
    def _delimited_npc_update(parts: list[str]) -> NPCUpdate | None:
        name = _entity_name(parts[0])
        condition = _parse_enum(NPCCondition, parts[1]) if len(parts) > 1 else None
        if name is None or condition is None:
            return None
        return NPCUpdate(
            name=name,
            condition=condition,
            type=_parse_enum(NPCType, parts[2]) if len(parts) > 2 else None,
        )

    @staticmethod
    def _delimited_action_result(block: str) -> ActionResult | None:
        if not block:
            return None
        values: dict[str, str] = {}
        for line in block.splitlines():
            key, sep, value = line.partition(":")
            if sep:
                values[key.strip().upper()] = value.strip()
        return _build_action_result(
            values.get("STAT"),
            values.get("DC"),
            values.get("BASE"),
            values.get("TOTAL"),
            values.get("SUCCESS"),
        )


_default_normalizer: ResponseNormalizer | None = None


def normalize(raw: str | Mapping[str, Any] | None) -> TurnDelta:
    """Normalize with a shared default normalizer.

    Args:
        raw: Response text or an already-decoded mapping.

    Returns:
        The validated TurnDelta.
    """
    global _default_normalizer
    if _default_normalizer is None:
        _default_normalizer = ResponseNormalizer()
    return _default_normalizer.normalize(raw)


__all__ = [
    "ResponseNormalizer",
    "normalize",
    "parse_bonus_string",
]
