"""Skill effect applier.

apply_skill() resolves one validated cast against in-memory combatants and
returns the ordered events it produced.  Sequence:

  1. cost is paid and the cooldown is set
  2. skill_used
  3. each effect on the skill, in EFFECT_ORDER:
     move, teleport, pull, push, barrier, self_debuff, bonus, armor_shred,
     damage, status, power_drain, heal, cleanse, revive, power_gain

Combatants are mutated in place (ORM rows in practice); the caller owns the
transaction that persists them together with the events.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable

from tactica.combat import statuses as ledger
from tactica.combat.damage import absorb_damage, compute_damage, roll_status, status_apply_chance
from tactica.combat.effects import (
    EFFECT_TYPES,
    ArmorShredEffect,
    BarrierEffect,
    BonusEffect,
    CleanseEffect,
    DamageEffect,
    Effect,
    HealEffect,
    MoveEffect,
    PowerDrainEffect,
    PowerGainEffect,
    PullEffect,
    PushEffect,
    ReviveEffect,
    SelfDebuffEffect,
    StatusEffect,
    TeleportEffect,
)
from tactica.combat.grid import (
    DEFAULT_COLS,
    DEFAULT_ROWS,
    Point,
    advance_along_line,
    in_bounds,
    move_toward,
    occupied_cells,
    step_away,
)
from tactica.combat.skills import SkillDefinition
from tactica.combat.targeting import TargetResolution
from tactica.data.builtin_skills import BASIC_MOVE
from tactica.errors import ConflictError

logger = logging.getLogger(__name__)


@dataclass
class CombatEvent:
    event_type: str
    actor_combatant_id: int | None
    payload: dict[str, Any] = field(default_factory=dict)


@dataclass
class Cast:
    seed: int
    turn_number: int
    actor: Any
    skill: SkillDefinition
    resolution: TargetResolution
    combatants: list
    blocked: set[Point] = field(default_factory=set)
    cols: int = DEFAULT_COLS
    rows: int = DEFAULT_ROWS
    # Namespaces RNG labels, e.g. "tick:<session>:" for NPC turns
    label_prefix: str = ""

    @property
    def label_base(self) -> str:
        return f"{self.label_prefix}turn:{self.turn_number}:actor:{self.actor.id}:skill:{self.skill.id}"


def move_marker(turn_number: int) -> str:
    return f"turn:{turn_number}"


def has_moved_this_turn(actor, turn_number: int) -> bool:
    entry = ledger.find_status(actor.statuses, ledger.MOVE_SPENT_ID)
    return entry is not None and entry.data.get("turn_marker") == move_marker(turn_number)


class _Applier:
    def __init__(self, cast: Cast):
        self.cast = cast
        self.actor = cast.actor
        self.events: list[CombatEvent] = []
        # A bonus held before the cast powers this cast's damage; one granted by it waits for a later cast
        self.pending_crit_bonus = ledger.crit_bonus_amount(cast.actor.statuses) > 0
        self.bonus_utility = ledger.effective_utility(cast.actor.utility, cast.actor.statuses)
        self.granted_crit_bonus = False

    def emit(self, event_type: str, **payload: Any) -> None:
        self.events.append(CombatEvent(event_type, self.actor.id, payload))

    def _set_actor_status(self, status_id: str, expires: int | None, data: dict) -> None:
        self.actor.statuses = ledger.set_status(self.actor.statuses, status_id, expires, data)

    def _move_target(self, target, dest: Point, forced: str) -> None:
        if dest == (target.x, target.y):
            return
        origin = {"x": target.x, "y": target.y}
        target.x, target.y = dest
        self.emit(
            "moved",
            target_combatant_id=target.id,
            **{"from": origin},
            to={"x": dest[0], "y": dest[1]},
            forced=forced,
        )

    # -- prelude -------------------------------------------------------------

    def pay_and_announce(self) -> None:
        skill, cast, actor = self.cast.skill, self.cast, self.actor
        actor.power = max(0, actor.power - skill.cost_amount)
        if skill.id != BASIC_MOVE:
            actor.statuses = ledger.remove_status(actor.statuses, ledger.MOVE_SPENT_ID)
        if skill.cooldown_turns > 0:
            actor.statuses = ledger.set_cooldown(actor.statuses, skill.id, cast.turn_number + skill.cooldown_turns)

        res = cast.resolution
        if res.combatant is not None:
            target = {"kind": "combatant", "combatant_id": res.combatant.id, "x": res.point[0], "y": res.point[1]}
        else:
            target = {"kind": "tile", "x": res.point[0], "y": res.point[1]}
        self.emit(
            "skill_used",
            skill_id=skill.id,
            skill_name=skill.name,
            targeting=skill.targeting,
            at={"x": actor.x, "y": actor.y},
            target=target,
            target_count=len(res.effect_targets),
            cost=skill.cost_amount,
            cooldown_turns=skill.cooldown_turns,
        )

    # -- movement ------------------------------------------------------------

    def on_move(self, effect: MoveEffect) -> None:
        cast, actor = self.cast, self.actor
        res = cast.resolution
        if res.combatant is not None and res.combatant.id != actor.id:
            goal = (res.combatant.x, res.combatant.y)
        else:
            goal = res.point
        start = (actor.x, actor.y)
        occupied = occupied_cells(cast.combatants, exclude_id=actor.id)
        dest, steps = move_toward(start, goal, effect.dash_tiles, cast.blocked, occupied, cast.cols, cast.rows)
        is_basic_move = cast.skill.id == BASIC_MOVE
        if is_basic_move and steps <= 0:
            raise ConflictError("Cannot move to selected tile", code="move_blocked")
        if steps > 0:
            actor.x, actor.y = dest
            self.emit(
                "moved",
                **{"from": {"x": start[0], "y": start[1]}},
                to={"x": dest[0], "y": dest[1]},
                dash_tiles=effect.dash_tiles,
                tiles_used=steps,
            )
        if is_basic_move:
            self._set_actor_status(
                ledger.MOVE_SPENT_ID,
                None,
                {"turn_marker": move_marker(cast.turn_number), "budget": effect.dash_tiles, "tiles_used": steps},
            )

    def on_teleport(self, effect: TeleportEffect) -> None:
        point = self.cast.resolution.point
        if not in_bounds(point, self.cast.cols, self.cast.rows):
            logger.debug("teleport to %s is off the board", point)
            return
        occupied = occupied_cells(self.cast.combatants, exclude_id=self.actor.id)
        if point in self.cast.blocked or point in occupied:
            return
        start = {"x": self.actor.x, "y": self.actor.y}
        self.actor.x, self.actor.y = point
        self.emit("moved", **{"from": start}, to={"x": point[0], "y": point[1]}, teleport=True)

    def on_pull(self, effect: PullEffect) -> None:
        for target in self.cast.resolution.displaced_targets:
            occupied = occupied_cells(self.cast.combatants, exclude_id=target.id)
            dest = advance_along_line(
                (target.x, target.y), (self.actor.x, self.actor.y), effect.tiles, self.cast.blocked, occupied
            )
            self._move_target(target, dest, "pull")

    def on_push(self, effect: PushEffect) -> None:
        for target in self.cast.resolution.displaced_targets:
            occupied = occupied_cells(self.cast.combatants, exclude_id=target.id)
            dest = step_away(
                (self.actor.x, self.actor.y), (target.x, target.y), effect.tiles, self.cast.blocked, occupied
            )
            self._move_target(target, dest, "push")

    # -- self buffs ----------------------------------------------------------

    def on_barrier(self, effect: BarrierEffect) -> None:
        turn = self.cast.turn_number
        self.actor.armor = max(0, self.actor.armor + effect.amount)
        self._set_actor_status(
            "barrier", turn + effect.duration_turns, {"amount": effect.amount, "source_skill_id": self.cast.skill.id}
        )
        self.emit(
            "status_applied",
            target_combatant_id=self.actor.id,
            status={"id": "barrier", "amount": effect.amount, "duration_turns": effect.duration_turns},
        )
        if effect.guard:
            self._set_actor_status("guard", turn + 1, {"amount": effect.amount, "source_skill_id": self.cast.skill.id})
            self.emit(
                "status_applied",
                target_combatant_id=self.actor.id,
                status={"id": "guard", "amount": effect.amount, "duration_turns": 1},
            )

    def on_self_debuff(self, effect: SelfDebuffEffect) -> None:
        self._set_actor_status(
            effect.id, self.cast.turn_number + effect.duration_turns, {"intensity": effect.intensity}
        )
        self.emit(
            "status_applied",
            target_combatant_id=self.actor.id,
            status={"id": effect.id, "duration_turns": effect.duration_turns, "self": True},
        )

    def on_bonus(self, effect: BonusEffect) -> None:
        amount = effect.utility_amount
        self._set_actor_status(ledger.CRIT_BONUS_ID, None, {"amount": amount, "source_skill_id": self.cast.skill.id})
        self.granted_crit_bonus = True
        self.emit(
            "status_applied",
            target_combatant_id=self.actor.id,
            status={"id": ledger.CRIT_BONUS_ID, "amount": amount, "uses": 1},
        )

    # -- offense -------------------------------------------------------------

    def on_armor_shred(self, effect: ArmorShredEffect) -> None:
        for target in self.cast.resolution.effect_targets:
            target.armor = max(0, target.armor - effect.amount)
            self.emit(
                "armor_shred", target_combatant_id=target.id, amount=effect.amount, armor_after=target.armor
            )

    def on_damage(self, effect: DamageEffect) -> None:
        cast, actor = self.cast, self.actor
        utility = self.bonus_utility if self.pending_crit_bonus else actor.utility
        for target in cast.resolution.effect_targets:
            if not target.is_alive:
                continue
            roll = compute_damage(
                cast.seed,
                f"{cast.label_base}:t:{target.id}",
                level=actor.level,
                offense=actor.offense,
                mobility=actor.mobility,
                utility=utility,
                weapon_power=actor.weapon_power,
                skill_mult=effect.skill_mult,
                resist=target.resist + target.armor,
            )
            shield = absorb_damage(target.armor, target.hp, roll.final_damage)
            target.armor = shield.armor_after
            target.hp = shield.hp_after
            if shield.died:
                target.is_alive = False
            logger.debug("damage %s -> %s: %s", actor.id, target.id, roll)
            self.emit(
                "damage",
                source_combatant_id=actor.id,
                target_combatant_id=target.id,
                skill_id=cast.skill.id,
                roll=roll.to_dict(),
                shield_absorbed=shield.absorbed,
                damage_to_hp=shield.to_hp,
                hp_after=shield.hp_after,
                armor_after=shield.armor_after,
            )
            if shield.died:
                self.emit(
                    "death",
                    target_combatant_id=target.id,
                    by={"combatant_id": actor.id, "skill_id": cast.skill.id},
                )
        if self.pending_crit_bonus:
            if not self.granted_crit_bonus:
                actor.statuses = ledger.remove_status(actor.statuses, ledger.CRIT_BONUS_ID)
            self.pending_crit_bonus = False

    def on_status(self, effect: StatusEffect) -> None:
        cast, actor = self.cast, self.actor
        for target in cast.resolution.effect_targets:
            if not target.is_alive:
                continue
            if effect.guaranteed:
                applied = True
            else:
                chance = status_apply_chance(actor.control, actor.utility, target.resist)
                roll, applied = roll_status(cast.seed, cast.label_base, effect.id, target.id, chance)
                self.emit(
                    "status_roll",
                    target_combatant_id=target.id,
                    status_id=effect.id,
                    chance=chance,
                    roll=roll,
                    applied=applied,
                )
            if not applied:
                continue
            target.statuses = ledger.set_status(
                target.statuses,
                effect.id,
                cast.turn_number + effect.duration_turns,
                effect.status_data(cast.skill.id),
                stacks=effect.stacks,
            )
            self.emit(
                "status_applied",
                target_combatant_id=target.id,
                status={"id": effect.id, "duration_turns": effect.duration_turns, "stacks": effect.stacks},
            )

    def on_power_drain(self, effect: PowerDrainEffect) -> None:
        total = 0
        for target in self.cast.resolution.effect_targets:
            drained = min(max(0, target.power), effect.amount)
            target.power = max(0, target.power) - drained
            total += drained
            self.emit("power_drain", target_combatant_id=target.id, amount=drained, power_after=target.power)
        if total > 0:
            self.actor.power = min(self.actor.power_max, self.actor.power + total)
            self.emit(
                "power_gain", target_combatant_id=self.actor.id, amount=total, power_after=self.actor.power
            )

    # -- support -------------------------------------------------------------

    def on_heal(self, effect: HealEffect) -> None:
        for target in self.cast.resolution.ally_targets:
            if not target.is_alive:
                continue
            target.hp = min(target.hp_max, target.hp + effect.amount)
            self.emit("healed", target_combatant_id=target.id, amount=effect.amount, hp_after=target.hp)

    def on_cleanse(self, effect: CleanseEffect) -> None:
        ids = list(effect.ids) if effect.ids is not None else None
        for target in self.cast.resolution.ally_targets:
            target.statuses = ledger.strip_statuses(target.statuses, ids)
            self.emit("cleanse", target_combatant_id=target.id, ids=ids if ids else "all_non_cd")

    def on_revive(self, effect: ReviveEffect) -> None:
        for target in self.cast.resolution.revive_targets:
            target.is_alive = True
            target.hp = min(target.hp_max, max(1, effect.amount))
            self.emit("revive", target_combatant_id=target.id, hp_after=target.hp)

    def on_power_gain(self, effect: PowerGainEffect) -> None:
        self.actor.power = min(self.actor.power_max, self.actor.power + effect.amount)
        self.emit(
            "power_gain", target_combatant_id=self.actor.id, amount=effect.amount, power_after=self.actor.power
        )


_HANDLERS: dict[type, Callable[[_Applier, Any], None]] = {
    MoveEffect: _Applier.on_move,
    TeleportEffect: _Applier.on_teleport,
    PullEffect: _Applier.on_pull,
    PushEffect: _Applier.on_push,
    BarrierEffect: _Applier.on_barrier,
    SelfDebuffEffect: _Applier.on_self_debuff,
    BonusEffect: _Applier.on_bonus,
    ArmorShredEffect: _Applier.on_armor_shred,
    DamageEffect: _Applier.on_damage,
    StatusEffect: _Applier.on_status,
    PowerDrainEffect: _Applier.on_power_drain,
    HealEffect: _Applier.on_heal,
    CleanseEffect: _Applier.on_cleanse,
    ReviveEffect: _Applier.on_revive,
    PowerGainEffect: _Applier.on_power_gain,
}

_missing = set(EFFECT_TYPES) - set(_HANDLERS)
if _missing:
    raise RuntimeError(f"No applier handler for effects: {sorted(t.__name__ for t in _missing)}")


def _ordered(effects: tuple[Effect, ...]) -> list[Effect]:
    rank = {t: i for i, t in enumerate(EFFECT_TYPES)}
    return sorted(effects, key=lambda e: rank[type(e)])


def apply_skill(cast: Cast) -> list[CombatEvent]:
    applier = _Applier(cast)
    applier.pay_and_announce()
    for effect in _ordered(cast.skill.effects):
        _HANDLERS[type(effect)](applier, effect)
    return applier.events
