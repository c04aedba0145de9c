"""Skills every combatant can use without owning them.

Numbers scale off the caster's stats at cast time, so each definition is
built per actor rather than stored.
"""

from tactica.combat.effects import BarrierEffect, DamageEffect, MoveEffect, PowerGainEffect
from tactica.combat.grid import Metric
from tactica.combat.skills import SkillDefinition, TargetingSpec

BASIC_ATTACK = "basic_attack"
BASIC_DEFEND = "basic_defend"
BASIC_RECOVER_MP = "basic_recover_mp"
BASIC_MOVE = "basic_move"

BUILTIN_SKILL_IDS = (BASIC_ATTACK, BASIC_DEFEND, BASIC_RECOVER_MP, BASIC_MOVE)

MOVE_RANGE_TILES = 14


def move_budget(mobility: int) -> int:
    return max(2, min(6, mobility // 20 + 2))


def attack_range(mobility: int) -> int:
    return max(1, min(6, mobility // 20 + 2))


def defend_amount(defense: int, support: int, support_factor: float = 0.10) -> int:
    return max(4, int(defense * 0.22) + int(support * support_factor))


def recover_amount(utility: int, support: int) -> int:
    return max(6, int(utility * 0.18) + int(support * 0.12))


def build_builtin_skill(skill_id: str, actor) -> SkillDefinition | None:
    """SkillDefinition for ``skill_id`` scaled to ``actor``, or None if it is not a built-in."""
    if skill_id == BASIC_MOVE:
        return SkillDefinition(
            id=BASIC_MOVE,
            name="Move",
            targeting="tile",
            spec=TargetingSpec(shape="tile", metric=Metric.manhattan, friendly_fire=True),
            range_tiles=MOVE_RANGE_TILES,
            effects=(MoveEffect(dash_tiles=move_budget(actor.mobility)),),
            character_id=actor.character_id,
            builtin=True,
            ends_turn=False,
        )
    if skill_id == BASIC_ATTACK:
        reach = attack_range(actor.mobility)
        return SkillDefinition(
            id=BASIC_ATTACK,
            name="Attack",
            targeting="single",
            spec=TargetingSpec(shape="single", metric=Metric.manhattan, length=reach, requires_los=True),
            range_tiles=reach,
            effects=(DamageEffect(skill_mult=1.0),),
            character_id=actor.character_id,
            builtin=True,
        )
    if skill_id == BASIC_DEFEND:
        return SkillDefinition(
            id=BASIC_DEFEND,
            name="Defend",
            targeting="self",
            spec=TargetingSpec(shape="self", blocks_on_walls=False, friendly_fire=True),
            range_tiles=0,
            effects=(
                BarrierEffect(amount=defend_amount(actor.defense, actor.support), duration_turns=1, guard=True),
            ),
            character_id=actor.character_id,
            builtin=True,
        )
    if skill_id == BASIC_RECOVER_MP:
        return SkillDefinition(
            id=BASIC_RECOVER_MP,
            name="Recover MP",
            targeting="self",
            spec=TargetingSpec(shape="self", blocks_on_walls=False, friendly_fire=True),
            range_tiles=0,
            effects=(PowerGainEffect(amount=recover_amount(actor.utility, actor.support)),),
            character_id=actor.character_id,
            builtin=True,
        )
    return None
