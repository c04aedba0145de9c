"""Skill effect applier: cost/cooldown prelude, effect order and each effect handler."""

import copy

import pytest

from tactica.combat import statuses as ledger
from tactica.combat.applier import Cast, apply_skill, has_moved_this_turn
from tactica.combat.effects import (
    BonusEffect,
    CleanseEffect,
    DamageEffect,
    HealEffect,
    PowerDrainEffect,
    PushEffect,
    ReviveEffect,
    StatusEffect,
    TeleportEffect,
)
from tactica.combat.skills import SkillDefinition, TargetingSpec
from tactica.combat.targeting import TargetRequest, resolve_targets
from tactica.data.builtin_skills import BASIC_DEFEND, BASIC_MOVE, build_builtin_skill
from tactica.errors import ConflictError
from helpers import make_combatant


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _skill(effects, targeting="single", range_tiles=3, cooldown_turns=0, cost=0, skill_id="7", **spec):
    spec.setdefault("shape", targeting)
    return SkillDefinition(
        id=skill_id,
        name="Test Skill",
        targeting=targeting,
        spec=TargetingSpec(**spec),
        range_tiles=range_tiles,
        effects=tuple(effects),
        cooldown_turns=cooldown_turns,
        cost_amount=cost,
        character_id=1,
    )


def _cast(actor, skill, request, combatants, blocked=None, turn=1, seed=1234):
    blocked = blocked or set()
    resolution = resolve_targets(actor, skill, request, combatants, blocked)
    return apply_skill(
        Cast(
            seed=seed,
            turn_number=turn,
            actor=actor,
            skill=skill,
            resolution=resolution,
            combatants=combatants,
            blocked=blocked,
        )
    )


def _types(events):
    return [e.event_type for e in events]


def _at(combatant) -> TargetRequest:
    return TargetRequest(kind="combatant", combatant_id=combatant.id)


SELF = TargetRequest(kind="self")


# ---------------------------------------------------------------------------
# Prelude
# ---------------------------------------------------------------------------

class TestCostAndCooldown:
    def test_cost_paid_and_cooldown_set(self):
        actor = make_combatant(1, player_id=1, power=50)
        enemy = make_combatant(2, x=1, y=0)
        skill = _skill([DamageEffect()], cooldown_turns=2, cost=10)
        events = _cast(actor, skill, _at(enemy), [actor, enemy], turn=5)
        assert actor.power == 40
        assert events[0].event_type == "skill_used"
        assert events[0].payload["cost"] == 10
        # Usable again two turns later, not one
        assert ledger.cooldown_remaining(actor.statuses, "7", 6) == 1
        assert ledger.cooldown_remaining(actor.statuses, "7", 7) == 0

    def test_skill_used_describes_target(self):
        actor = make_combatant(1, player_id=1)
        enemy = make_combatant(2, x=2, y=0)
        events = _cast(actor, _skill([DamageEffect()]), _at(enemy), [actor, enemy])
        payload = events[0].payload
        assert payload["target"] == {"kind": "combatant", "combatant_id": 2, "x": 2, "y": 0}
        assert payload["target_count"] == 1
        assert payload["at"] == {"x": 0, "y": 0}


# ---------------------------------------------------------------------------
# Damage
# ---------------------------------------------------------------------------

class TestDamage:
    def test_damage_event_matches_target_hp(self):
        actor = make_combatant(1, player_id=1)
        enemy = make_combatant(2, x=2, y=0, hp=300)
        events = _cast(actor, _skill([DamageEffect(skill_mult=1.0)]), _at(enemy), [actor, enemy])
        damage = [e for e in events if e.event_type == "damage"]
        assert len(damage) == 1
        payload = damage[0].payload
        assert payload["target_combatant_id"] == 2
        assert enemy.hp == 300 - payload["roll"]["final_damage"]
        assert payload["hp_after"] == enemy.hp

    def test_armor_soaks_before_hp(self):
        actor = make_combatant(1, player_id=1)
        enemy = make_combatant(2, x=1, y=0, hp=300, armor=10)
        events = _cast(actor, _skill([DamageEffect()]), _at(enemy), [actor, enemy])
        payload = next(e.payload for e in events if e.event_type == "damage")
        final = payload["roll"]["final_damage"]
        assert payload["roll"]["resist"] == 10
        assert payload["shield_absorbed"] == min(10, final)
        assert payload["shield_absorbed"] + payload["damage_to_hp"] == final
        assert enemy.armor == max(0, 10 - final)

    def test_lethal_damage_emits_death(self):
        actor = make_combatant(1, player_id=1)
        enemy = make_combatant(2, x=1, y=0, hp=1)
        events = _cast(actor, _skill([DamageEffect()]), _at(enemy), [actor, enemy])
        assert _types(events)[-1] == "death"
        assert not enemy.is_alive
        assert enemy.hp == 0

    def test_replay_is_deterministic(self):
        actor = make_combatant(1, player_id=1)
        enemy = make_combatant(2, x=1, y=0, hp=300)
        first = _cast(actor, _skill([DamageEffect()]), _at(enemy), [actor, enemy])

        actor2 = make_combatant(1, player_id=1)
        enemy2 = make_combatant(2, x=1, y=0, hp=300)
        second = _cast(actor2, _skill([DamageEffect()]), _at(enemy2), [actor2, enemy2])
        assert [e.payload for e in first] == [e.payload for e in second]


class TestCritBonus:
    def test_bonus_consumed_by_next_damage(self):
        actor = make_combatant(1, player_id=1)
        enemy = make_combatant(2, x=1, y=0, hp=500)
        combatants = [actor, enemy]
        _cast(actor, _skill([BonusEffect(crit_chance_add=0.2)], targeting="self", range_tiles=0), SELF, combatants)
        assert ledger.crit_bonus_amount(actor.statuses) == 20

        events = _cast(actor, _skill([DamageEffect()]), _at(enemy), combatants, turn=2)
        roll = next(e.payload["roll"] for e in events if e.event_type == "damage")
        assert roll["crit_chance"] == pytest.approx(0.02 + (10 + 30) / 400)
        assert ledger.find_status(actor.statuses, ledger.CRIT_BONUS_ID) is None

    def test_bonus_from_same_cast_survives(self):
        actor = make_combatant(1, player_id=1)
        enemy = make_combatant(2, x=1, y=0, hp=500)
        skill = _skill([BonusEffect(crit_chance_add=0.1), DamageEffect()])
        _cast(actor, skill, _at(enemy), [actor, enemy])
        assert ledger.crit_bonus_amount(actor.statuses) == 10

    def test_held_bonus_spent_when_cast_grants_another(self):
        actor = make_combatant(1, player_id=1)
        actor.statuses = ledger.set_status([], ledger.CRIT_BONUS_ID, None, {"amount": 50})
        enemy = make_combatant(2, x=1, y=0, hp=500)
        skill = _skill([BonusEffect(crit_chance_add=0.1), DamageEffect()])

        events = _cast(actor, skill, _at(enemy), [actor, enemy])
        roll = next(e.payload["roll"] for e in events if e.event_type == "damage")
        assert roll["crit_chance"] == pytest.approx(0.02 + (10 + 60) / 400)
        assert ledger.crit_bonus_amount(actor.statuses) == 10


# ---------------------------------------------------------------------------
# Other effects
# ---------------------------------------------------------------------------

class TestEffects:
    def test_push_moves_target_away(self):
        actor = make_combatant(1, player_id=1)
        enemy = make_combatant(2, x=1, y=0)
        events = _cast(actor, _skill([PushEffect(tiles=2)]), _at(enemy), [actor, enemy])
        assert (enemy.x, enemy.y) == (3, 0)
        moved = next(e for e in events if e.event_type == "moved")
        assert moved.payload["forced"] == "push"
        assert moved.payload["from"] == {"x": 1, "y": 0}

    def test_effects_resolve_in_fixed_order(self):
        actor = make_combatant(1, player_id=1)
        enemy = make_combatant(2, x=1, y=0, hp=500)
        skill = _skill([HealEffect(amount=5), DamageEffect(), PushEffect(tiles=1)])
        types = _types(_cast(actor, skill, _at(enemy), [actor, enemy]))
        assert types.index("skill_used") < types.index("moved") < types.index("damage")

    def test_defend_adds_barrier_and_guard(self):
        actor = make_combatant(1, player_id=1)
        skill = build_builtin_skill(BASIC_DEFEND, actor)
        _cast(actor, skill, SELF, [actor], turn=3)
        assert actor.armor == 4
        barrier = ledger.find_status(actor.statuses, "barrier")
        assert barrier.expires_turn == 4
        assert ledger.find_status(actor.statuses, "guard") is not None

    def test_guaranteed_status_skips_roll(self):
        actor = make_combatant(1, player_id=1)
        enemy = make_combatant(2, x=1, y=0)
        skill = _skill([StatusEffect(id="vulnerable", duration_turns=2, guaranteed=True)])
        types = _types(_cast(actor, skill, _at(enemy), [actor, enemy], turn=4))
        assert "status_roll" not in types
        assert ledger.find_status(enemy.statuses, "vulnerable").expires_turn == 6

    def test_probabilistic_status_logs_roll(self):
        actor = make_combatant(1, player_id=1)
        enemy = make_combatant(2, x=1, y=0)
        skill = _skill([StatusEffect(id="slow", duration_turns=2)])
        events = _cast(actor, skill, _at(enemy), [actor, enemy])
        roll = next(e for e in events if e.event_type == "status_roll")
        applied = ledger.find_status(enemy.statuses, "slow") is not None
        assert roll.payload["applied"] is applied
        assert roll.payload["chance"] == pytest.approx(0.15)

    def test_power_drain_moves_resource(self):
        actor = make_combatant(1, player_id=1, power=40, power_max=50)
        enemy = make_combatant(2, x=1, y=0, power=20)
        _cast(actor, _skill([PowerDrainEffect(amount=15)]), _at(enemy), [actor, enemy])
        assert enemy.power == 5
        assert actor.power == 50

    def test_heal_capped(self):
        actor = make_combatant(1, player_id=1, hp=95, hp_max=100)
        _cast(actor, _skill([HealEffect(amount=20)], targeting="self", range_tiles=0), SELF, [actor])
        assert actor.hp == 100

    def test_cleanse_all_keeps_cooldowns(self):
        statuses = ledger.set_status([], "burn", 9)
        statuses = ledger.set_cooldown(statuses, "fireball", 9)
        actor = make_combatant(1, player_id=1, statuses=statuses)
        _cast(actor, _skill([CleanseEffect()], targeting="self", range_tiles=0), SELF, [actor])
        assert [s["id"] for s in actor.statuses] == ["cd:fireball"]

    def test_cleanse_by_id(self):
        statuses = ledger.set_status([], "burn", 9)
        statuses = ledger.set_status(statuses, "slow", 9)
        actor = make_combatant(1, player_id=1, statuses=statuses)
        skill = _skill([CleanseEffect(ids=("burn",))], targeting="self", range_tiles=0)
        _cast(actor, skill, SELF, [actor])
        assert [s["id"] for s in actor.statuses] == ["slow"]

    def test_revive_only_dead_allies(self):
        actor = make_combatant(1, player_id=1)
        fallen = make_combatant(2, player_id=1, x=2, y=0, hp=0, is_alive=False)
        skill = _skill([ReviveEffect(amount=20)], targeting="area", range_tiles=4, radius=0)
        events = _cast(actor, skill, TargetRequest(kind="tile", x=2, y=0), [actor, fallen])
        assert fallen.is_alive
        assert fallen.hp == 20
        assert "revive" in _types(events)

    def test_teleport_lands_on_open_tile(self):
        actor = make_combatant(1, player_id=1)
        skill = _skill([TeleportEffect()], targeting="tile", range_tiles=4)
        events = _cast(actor, skill, TargetRequest(kind="tile", x=3, y=0), [actor])
        assert (actor.x, actor.y) == (3, 0)
        assert "moved" in _types(events)

    def test_teleport_off_the_board_stays_put(self):
        actor = make_combatant(1, player_id=1)
        skill = _skill([TeleportEffect()], targeting="tile", range_tiles=4)
        events = _cast(actor, skill, TargetRequest(kind="tile", x=-3, y=0), [actor])
        assert (actor.x, actor.y) == (0, 0)
        assert "moved" not in _types(events)


class TestMove:
    def test_move_spends_budget(self):
        actor = make_combatant(1, player_id=1)
        skill = build_builtin_skill(BASIC_MOVE, actor)
        events = _cast(actor, skill, TargetRequest(kind="tile", x=2, y=0), [actor], turn=3)
        assert (actor.x, actor.y) == (2, 0)
        assert "moved" in _types(events)
        assert has_moved_this_turn(actor, 3)
        assert not has_moved_this_turn(actor, 4)

    def test_blocked_move_is_a_conflict(self):
        actor = make_combatant(1, player_id=1)
        skill = build_builtin_skill(BASIC_MOVE, actor)
        with pytest.raises(ConflictError) as exc:
            _cast(actor, skill, TargetRequest(kind="tile", x=1, y=0), [actor], blocked={(1, 0)})
        assert exc.value.code == "move_blocked"

    def test_acting_clears_move_marker(self):
        actor = make_combatant(1, player_id=1)
        enemy = make_combatant(2, x=3, y=0, hp=500)
        _cast(actor, build_builtin_skill(BASIC_MOVE, actor), TargetRequest(kind="tile", x=1, y=0), [actor, enemy])
        assert has_moved_this_turn(actor, 1)
        _cast(actor, _skill([DamageEffect()]), _at(enemy), [actor, enemy])
        assert ledger.find_status(actor.statuses, ledger.MOVE_SPENT_ID) is None

    def test_input_statuses_not_mutated(self):
        original = ledger.set_status([], "burn", 9)
        actor = make_combatant(1, player_id=1, statuses=copy.deepcopy(original))
        _cast(actor, _skill([CleanseEffect()], targeting="self", range_tiles=0), SELF, [actor])
        assert original == ledger.set_status([], "burn", 9)
