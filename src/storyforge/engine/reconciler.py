"""State reconciler: merge a TurnDelta into CharacterState.

Reconciliation is a pure function of the current state, the normalized
delta and the roll context (plus the id factory used for new entities).
Steps run in a fixed order because later steps read the results of
earlier ones:

1. item intake            7. base stat update
2. item removal           8. effect intake
3. capacity enforcement   9. NPC merge
4. equip / unequip        10. roll and experience resolution
5. HP update              11. turn assembly
6. status resolution

Lookups that miss (unknown item, unknown NPC, empty slot) are no-ops, so
the function is total over every TurnDelta.

Example:
    >>> result = reconcile(state, TurnDelta(narrative="You rest.", hp_change=5))
    >>> result.state.history[-1].text
    'You rest.'
"""

from __future__ import annotations

from dataclasses import dataclass

from storyforge.core.constants import (
    INVENTORY_CAPACITY,
    MIN_STAT_VALUE,
    STAT_UPDATE_MAX,
    STAT_UPDATE_MIN,
)
from storyforge.core.logging import get_logger
from storyforge.engine.classifiers import ItemClassifier, classify_item
from storyforge.engine.progression import award_success, recompute_max_hp
from storyforge.models.base import IdFactory, new_id
from storyforge.models.character import (
    NPC,
    EquippedGear,
    InventoryItem,
    StatBlock,
    StatMap,
    StatusEffect,
)
from storyforge.models.delta import ItemProposal, TurnDelta
from storyforge.models.enums import GameStatus, ItemType
from storyforge.models.state import CharacterState
from storyforge.models.turn import HeroicActionContext, LevelUpEvent, RollResult, StoryTurn


logger = get_logger(__name__)

RollContext = RollResult | HeroicActionContext | None


@dataclass(frozen=True)
class ReconcileResult:
    """Outcome of one reconcile pass.

    Attributes:
        state: The new character state, with ``turn`` appended to history.
        turn: The AI story turn that was appended.
        warnings: Sub-operations that were dropped or truncated.
    """

    state: CharacterState
    turn: StoryTurn
    warnings: tuple[str, ...] = ()


class StateReconciler:
    """Apply normalized AI deltas to character state.

    Args:
        classifier: Turns AI item names into types and bonuses.
        id_factory: Produces ids for new items, effects, NPCs and turns.
    """

    def __init__(
        self,
        *,
        classifier: ItemClassifier | None = None,
        id_factory: IdFactory | None = None,
    ) -> None:
        self._classify = classifier or classify_item
        self._new_id = id_factory or new_id

    def reconcile(
        self,
        state: CharacterState,
        delta: TurnDelta,
        roll_context: RollContext = None,
    ) -> ReconcileResult:
        """Merge one delta into the state.

        Args:
            state: Current character state.
            delta: Normalized AI output.
            roll_context: The player's resolved check, or the heroic action
                context when the AI resolves the action itself.

        Returns:
            The ReconcileResult.
        """
        warnings: list[str] = []

        # 1. Item intake
        new_items = [self._materialize(proposal) for proposal in delta.inventory_added]
        inventory = [*state.inventory, *new_items]

        # 2. Item removal (bag and slots)
        inventory, equipped, removed_names = self._remove_items(
            inventory, state.equipped, delta.inventory_removed
        )

        # 3. Capacity enforcement
        if len(inventory) > INVENTORY_CAPACITY:
            dropped = [item.name for item in inventory[INVENTORY_CAPACITY:]]
            warnings.append(f"Inventory overflow, discarded: {', '.join(dropped)}")
            logger.warning("Inventory overflow, items discarded", dropped=dropped)
            inventory = inventory[:INVENTORY_CAPACITY]

        # 4. Equip / unequip
        inventory, equipped = self._apply_equipment(
            inventory, equipped, delta.equip, delta.unequip, warnings
        )

        # 5. HP update
        hp = min(state.max_hp, max(0, state.hp + delta.hp_change))

        # 6. Status resolution (terminal states never revert)
        if state.game_status.is_terminal:
            game_status = state.game_status
        elif hp == 0:
            game_status = GameStatus.LOST
        else:
            game_status = delta.game_status

        # 7. Base stat update
        base_stats, stats_applied = self._apply_stat_updates(state.base_stats, delta.stats_update)

        # 8. Effect intake (same-name effects stack)
        new_effects = [
            StatusEffect(
                id=self._new_id(),
                name=proposal.name,
                type=proposal.type,
                duration=proposal.duration,
                stat_modifiers=dict(proposal.stat_modifiers),
                blocks_heroic_actions=proposal.blocks_heroic_actions,
            )
            for proposal in delta.new_effects
        ]

        # 9. NPC merge
        npcs, npc_updates = self._merge_npcs(state.npcs, delta)

        # 10. Roll and experience resolution
        experience = dict(state.stat_experience)
        turn_roll: RollResult | None = None
        level_up: LevelUpEvent | None = None
        if isinstance(roll_context, RollResult):
            check = roll_context
        elif delta.action_result is not None:
            result = delta.action_result
            turn_roll = RollResult(
                base=result.base,
                modifier=result.total - result.base,
                total=result.total,
                difficulty=result.difficulty,
                is_success=result.is_success,
                stat_type=result.stat,
            )
            check = turn_roll
        else:
            check = None
        if check is not None and check.is_success:
            outcome = award_success(base_stats, experience, check.stat_type)
            base_stats, experience, level_up = outcome.stats, outcome.experience, outcome.level_up

        # A standard check belongs to the committed user turn that carries it
        history = list(state.history)
        if level_up is not None and turn_roll is None and history and history[-1].is_user_turn:
            history[-1] = history[-1].model_copy(update={"level_up_event": level_up})
            turn_level_up = None
        else:
            turn_level_up = level_up

        kept_ids = {item.id for item in inventory} | equipped.item_ids()
        turn = StoryTurn(
            id=self._new_id(),
            text=delta.narrative,
            is_user_turn=False,
            roll_result=turn_roll,
            level_up_event=turn_level_up,
            choices=list(delta.choices),
            stats_updated=stats_applied,
            inventory_added=[item for item in new_items if item.id in kept_ids],
            inventory_removed=removed_names,
            new_effects=new_effects,
            npc_updates=npc_updates,
        )

        updated = state.model_copy(
            update={
                "inventory": inventory,
                "equipped": equipped,
                "hp": hp,
                "game_status": game_status,
                "base_stats": base_stats,
                "stat_experience": experience,
                "active_effects": [*state.active_effects, *new_effects],
                "npcs": npcs,
                "current_quest": delta.quest_update or state.current_quest,
            }
        )
        # Gear, effects and level-ups may all have moved effective CON
        updated = recompute_max_hp(updated)

        # 11. Turn assembly
        updated = updated.model_copy(
            update={
                "hp_history": [*state.hp_history, updated.hp],
                "history": [*history, turn],
            }
        )

        if updated.is_over and not state.is_over:
            logger.info("Game over", status=updated.game_status.value, hp=updated.hp)
        logger.debug(
            "Delta reconciled",
            hp=updated.hp,
            max_hp=updated.max_hp,
            inventory=len(updated.inventory),
            effects=len(updated.active_effects),
            warnings=len(warnings),
        )
        return ReconcileResult(state=updated, turn=turn, warnings=tuple(warnings))

    # -------------------------------------------------------------------------
    # Steps
    # -------------------------------------------------------------------------

    def _materialize(self, proposal: ItemProposal) -> InventoryItem:
        """Build an inventory item from an AI proposal.

        The classifier decides type and bonuses unless the AI named a
        specific equippable type or gave explicit bonuses.
        """
        verdict = self._classify(proposal.name)
        item_type = proposal.type if proposal.type not in (None, ItemType.MISC) else verdict.type
        bonuses = dict(proposal.bonuses) if proposal.bonuses else dict(verdict.bonuses)
        return InventoryItem(
            id=self._new_id(),
            name=proposal.name,
            type=item_type,
            bonuses=bonuses,
            description=proposal.description,
        )

    @staticmethod
    def _remove_items(
        inventory: list[InventoryItem],
        equipped: EquippedGear,
        names: list[str],
    ) -> tuple[list[InventoryItem], EquippedGear, list[str]]:
        if not names:
            return inventory, equipped, []

        wanted = {name.strip().lower() for name in names}
        matched: set[str] = set()

        kept: list[InventoryItem] = []
        for item in inventory:
            key = item.name.strip().lower()
            if key in wanted:
                matched.add(key)
            else:
                kept.append(item)

        for slot, item in equipped.occupied():
            key = item.name.strip().lower()
            if key in wanted:
                matched.add(key)
                equipped = equipped.with_slot(slot, None)

        unmatched = [name for name in names if name.strip().lower() not in matched]
        if unmatched:
            logger.debug("Removal targets not owned", names=unmatched)
        return kept, equipped, [name for name in names if name.strip().lower() in matched]

    @staticmethod
    def _apply_equipment(
        inventory: list[InventoryItem],
        equipped: EquippedGear,
        equip: list[str],
        unequip: list[str],
        warnings: list[str],
    ) -> tuple[list[InventoryItem], EquippedGear]:
        for name in equip:
            index = next((i for i, item in enumerate(inventory) if item.matches(name)), None)
            if index is None:
                logger.debug("Equip target not in inventory", name=name)
                continue
            item = inventory[index]
            slot = item.slot
            if slot is None:
                logger.debug("Equip target has no slot", name=name, type=item.type.value)
                continue
            # The displaced occupant takes the freed bag position
            occupant = equipped.get(slot)
            inventory = [
                *inventory[:index],
                *([occupant] if occupant is not None else []),
                *inventory[index + 1 :],
            ]
            equipped = equipped.with_slot(slot, item)

        for name in unequip:
            found = next(((s, item) for s, item in equipped.occupied() if item.matches(name)), None)
            if found is None:
                logger.debug("Unequip target not equipped", name=name)
                continue
            if len(inventory) >= INVENTORY_CAPACITY:
                warnings.append(f"Inventory full, kept {name} equipped")
                logger.warning("Unequip skipped, inventory full", name=name)
                continue
            slot, item = found
            inventory = [*inventory, item]
            equipped = equipped.with_slot(slot, None)

        return inventory, equipped

    @staticmethod
    def _apply_stat_updates(base: StatBlock, requested: StatMap) -> tuple[StatBlock, StatMap]:
        applied: StatMap = {}
        for stat, amount in requested.items():
            bounded = min(STAT_UPDATE_MAX, max(STAT_UPDATE_MIN, amount))
            old_value = base.get(stat)
            new_value = max(MIN_STAT_VALUE, old_value + bounded)
            if new_value == old_value:
                continue
            base = base.with_value(stat, new_value)
            applied[stat] = new_value - old_value
        return base, applied

    def _merge_npcs(self, current: list[NPC], delta: TurnDelta) -> tuple[list[NPC], list[NPC]]:
        npcs = list(current)
        touched: list[NPC] = []

        def index_of(name: str) -> int | None:
            return next((i for i, npc in enumerate(npcs) if npc.matches(name)), None)

        for proposal in delta.npcs_added:
            index = index_of(proposal.name)
            if index is None:
                npc = NPC(
                    id=self._new_id(),
                    name=proposal.name,
                    type=proposal.type,
                    condition=proposal.condition,
                    description=proposal.description,
                )
                npcs.append(npc)
            else:
                existing = npcs[index]
                npc = existing.model_copy(
                    update={
                        "type": proposal.type,
                        "condition": proposal.condition,
                        "description": proposal.description or existing.description,
                    }
                )
                npcs[index] = npc
            touched.append(npc)

        for update in delta.npcs_updated:
            index = index_of(update.name)
            if index is None:
                logger.debug("NPC update target unknown", name=update.name)
                continue
            patch: dict[str, object] = {"condition": update.condition}
            if update.type is not None:
                patch["type"] = update.type
            npcs[index] = npcs[index].model_copy(update=patch)
            touched.append(npcs[index])

        if delta.npcs_removed:
            removed = set(delta.npcs_removed)
            npcs = [npc for npc in npcs if npc.name not in removed]

        return npcs, touched


def reconcile(
    state: CharacterState,
    delta: TurnDelta,
    roll_context: RollContext = None,
    *,
    classifier: ItemClassifier | None = None,
    id_factory: IdFactory | None = None,
) -> ReconcileResult:
    """Merge one delta into the state with a one-off reconciler.

    Args:
        state: Current character state.
        delta: Normalized AI output.
        roll_context: Resolved check or heroic action context.
        classifier: Item classifier; the keyword classifier when None.
        id_factory: Id factory; UUID4 strings when None.

    Returns:
        The ReconcileResult.
    """
    return StateReconciler(classifier=classifier, id_factory=id_factory).reconcile(
        state, delta, roll_context
    )


__all__ = [
    "RollContext",
    "ReconcileResult",
    "StateReconciler",
    "reconcile",
]
