"""AI turn planning: target choice, companion and boss skill selection."""

from tactica.combat import boss as boss_rules
from tactica.combat.effects import BarrierEffect, DamageEffect, StatusEffect
from tactica.combat.npc import NPC_SWIPE, companion_skill, npc_skill, opponents_of, plan_turn, primary_target
from tactica.data.builtin_skills import BASIC_ATTACK, BASIC_DEFEND, BASIC_RECOVER_MP
from tactica.models.combat_session import EntityType
from helpers import make_combatant


class TestTargeting:
    def test_opponents_exclude_dead_and_own_side(self):
        npc = make_combatant(1)
        other_npc = make_combatant(2)
        hero = make_combatant(3, player_id=1)
        corpse = make_combatant(4, player_id=2, is_alive=False)
        assert opponents_of(npc, [npc, other_npc, hero, corpse]) == [hero]

    def test_primary_target_among_two_weakest(self):
        npc = make_combatant(1)
        weakest = make_combatant(2, player_id=1, hp=10)
        weak = make_combatant(3, player_id=2, hp=20)
        healthy = make_combatant(4, player_id=3, hp=90)
        for turn in range(20):
            picked = primary_target(5, turn, npc, [healthy, weak, weakest])
            assert picked in (weakest, weak)

    def test_primary_target_tie_breaks_on_distance(self):
        npc = make_combatant(1)
        near = make_combatant(2, player_id=1, x=1, y=0)
        mid = make_combatant(3, player_id=2, x=2, y=0)
        far = make_combatant(4, player_id=3, x=9, y=0)
        for turn in range(20):
            assert primary_target(5, turn, npc, [far, mid, near]) in (near, mid)

    def test_primary_target_deterministic(self):
        npc = make_combatant(1)
        a = make_combatant(2, player_id=1, hp=10)
        b = make_combatant(3, player_id=2, hp=10, x=0, y=0)
        assert primary_target(9, 3, npc, [a, b]) is primary_target(9, 3, npc, [a, b])

    def test_no_opponents(self):
        assert primary_target(1, 1, make_combatant(1), []) is None


class TestSkillChoice:
    def test_companion_defends_when_hurt(self):
        assert companion_skill(make_combatant(1, player_id=1, hp=30, hp_max=100)) == BASIC_DEFEND

    def test_companion_recovers_when_drained(self):
        assert companion_skill(make_combatant(1, player_id=1, power=10, power_max=50)) == BASIC_RECOVER_MP

    def test_companion_attacks_otherwise(self):
        assert companion_skill(make_combatant(1, player_id=1)) == BASIC_ATTACK

    def test_npc_defend_uses_higher_support_factor(self):
        actor = make_combatant(1, defense=40, support=50)
        skill = npc_skill(BASIC_DEFEND, actor)
        barrier = skill.effects[0]
        assert isinstance(barrier, BarrierEffect)
        assert barrier.amount == int(40 * 0.22) + int(50 * 0.12)

    def test_swipe(self):
        skill = npc_skill(NPC_SWIPE, make_combatant(1))
        assert skill.name == "Savage Swipe"
        assert skill.effects == (DamageEffect(skill_mult=1.1),)

    def test_boss_mark_applies_vulnerable(self):
        skill = npc_skill(boss_rules.BOSS_MARK, make_combatant(1), make_combatant(2, player_id=1))
        damage, status = skill.effects
        assert damage.skill_mult == 0.85
        assert isinstance(status, StatusEffect)
        assert status.id == "vulnerable"
        assert status.guaranteed

    def test_boss_execute_scales_with_target_hp(self):
        low = make_combatant(2, player_id=1, hp=30, hp_max=100)
        skill = npc_skill(boss_rules.BOSS_EXECUTE, make_combatant(1), low)
        assert skill.effects[0].skill_mult == 2.0


class TestPlanTurn:
    def test_plain_npc_swipes_primary(self):
        npc = make_combatant(1)
        hero = make_combatant(2, player_id=1)
        plan = plan_turn(3, 1, npc, [npc, hero])
        assert plan.skill.id == NPC_SWIPE
        assert plan.targets == [hero]
        assert plan.primary is hero

    def test_boss_cleave_hits_everyone(self):
        boss = make_combatant(1)
        heroes = [make_combatant(2, player_id=1), make_combatant(3, player_id=2, x=4, y=4)]
        plan = plan_turn(3, 1, boss, [boss, *heroes], boss_pool=(boss_rules.BOSS_CLEAVE,))
        assert plan.skill.id == boss_rules.BOSS_CLEAVE
        assert plan.targets == heroes

    def test_companion_defend_targets_self(self):
        companion = make_combatant(1, player_id=1, hp=10, entity_type=EntityType.summon)
        enemy = make_combatant(2)
        plan = plan_turn(3, 1, companion, [companion, enemy])
        assert plan.skill.id == BASIC_DEFEND
        assert plan.targets == [companion]

    def test_nobody_to_fight(self):
        npc = make_combatant(1)
        assert plan_turn(3, 1, npc, [npc, make_combatant(2)]) is None
