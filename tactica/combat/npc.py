"""Decision making for AI-controlled turns.

Every choice is seeded from the session seed and the turn number so a tick
replays identically.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import cmp_to_key
from typing import Sequence

from tactica.combat import boss as boss_rules
from tactica.combat.effects import BarrierEffect, DamageEffect, StatusEffect
from tactica.combat.grid import manhattan
from tactica.combat.rng import rng_int
from tactica.combat.skills import SkillDefinition, TargetingSpec
from tactica.data.builtin_skills import (
    BASIC_ATTACK,
    BASIC_DEFEND,
    BASIC_RECOVER_MP,
    build_builtin_skill,
    defend_amount,
)

NPC_SWIPE = "npc_swipe"
NPC_DEFEND_SUPPORT_FACTOR = 0.12

# Companion thresholds
COMPANION_DEFEND_HP_PCT = 0.35
COMPANION_RECOVER_MP_PCT = 0.3

HP_PCT_TOLERANCE = 0.001


def is_party(combatant) -> bool:
    return combatant.player_id is not None


def opponents_of(actor, combatants: Sequence) -> list:
    return [c for c in combatants if c.is_alive and c.id != actor.id and is_party(c) != is_party(actor)]


def _hp_pct(c) -> float:
    return boss_rules.hp_fraction(c.hp, c.hp_max)


def primary_target(seed: int, turn_number: int, actor, opponents: Sequence):
    """Weakest opponent by HP fraction, then nearest, then lowest id; seeded pick among the top two."""
    if not opponents:
        return None

    def compare(a, b) -> int:
        diff = _hp_pct(a) - _hp_pct(b)
        if abs(diff) > HP_PCT_TOLERANCE:
            return -1 if diff < 0 else 1
        da, db = manhattan(actor, a), manhattan(actor, b)
        if da != db:
            return da - db
        return a.id - b.id

    ranked = sorted(opponents, key=cmp_to_key(compare))
    top = ranked[:2]
    return top[rng_int(seed, f"tick:{turn_number}:target_pick", 0, len(top) - 1)]


def companion_skill(actor) -> str:
    if _hp_pct(actor) <= COMPANION_DEFEND_HP_PCT:
        return BASIC_DEFEND
    if actor.power_max > 0 and actor.power / actor.power_max <= COMPANION_RECOVER_MP_PCT:
        return BASIC_RECOVER_MP
    return BASIC_ATTACK


def _npc_attack(skill_key: str, name: str, mult: float, vulnerable: bool) -> SkillDefinition:
    effects: tuple = (DamageEffect(skill_mult=mult),)
    if vulnerable:
        effects += (
            StatusEffect(id=boss_rules.VULNERABLE_STATUS, duration_turns=boss_rules.VULNERABLE_TURNS, guaranteed=True),
        )
    return SkillDefinition(
        id=skill_key,
        name=name,
        targeting="single",
        spec=TargetingSpec(shape="single"),
        range_tiles=0,
        effects=effects,
        builtin=True,
    )


def npc_skill(skill_key: str, actor, target=None) -> SkillDefinition:
    """SkillDefinition an AI actor casts for ``skill_key``."""
    if skill_key == BASIC_DEFEND:
        amount = defend_amount(actor.defense, actor.support, NPC_DEFEND_SUPPORT_FACTOR)
        return SkillDefinition(
            id=BASIC_DEFEND,
            name="Defend",
            targeting="self",
            spec=TargetingSpec(shape="self", friendly_fire=True),
            range_tiles=0,
            effects=(BarrierEffect(amount=amount, duration_turns=1, guard=True),),
            builtin=True,
        )
    if skill_key == BASIC_RECOVER_MP:
        return build_builtin_skill(BASIC_RECOVER_MP, actor)
    if skill_key == NPC_SWIPE:
        return _npc_attack(NPC_SWIPE, "Savage Swipe", 1.1, False)
    target_pct = _hp_pct(target) if target is not None else 1.0
    return _npc_attack(
        skill_key,
        skill_key.replace("_", " "),
        boss_rules.skill_multiplier(skill_key, target_pct),
        boss_rules.applies_vulnerable(skill_key),
    )


@dataclass
class NpcPlan:
    skill: SkillDefinition
    targets: list
    primary: object | None


def plan_turn(seed: int, turn_number: int, actor, combatants: Sequence, boss_pool=None) -> NpcPlan | None:
    """What an AI actor does this turn, or None if it has nobody to fight.

    ``boss_pool`` is the active phase's skill pool when the actor is a boss.
    """
    opponents = opponents_of(actor, combatants)
    if not opponents:
        return None
    target = primary_target(seed, turn_number, actor, opponents)

    if is_party(actor):
        key = companion_skill(actor)
    elif boss_pool is not None:
        key = boss_rules.pick_boss_skill(seed, turn_number, boss_pool)
    else:
        key = NPC_SWIPE

    skill = npc_skill(key, actor, target)
    if skill.spec.shape == "self":
        targets = [actor]
    elif boss_rules.hits_all_opponents(key):
        targets = list(opponents)
    else:
        targets = [target]
    return NpcPlan(skill=skill, targets=targets, primary=target)
