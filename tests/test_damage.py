"""Damage resolver: formulas, seeded rolls and armor absorption."""

import pytest

from tactica.combat.damage import (
    absorb_damage,
    attack_rating,
    compute_damage,
    crit_chance,
    crit_mult,
    max_hp,
    max_power_bar,
    mitigate,
    power_at_level,
    round_half_up,
    status_apply_chance,
)


class TestFormulas:
    def test_attack_rating(self):
        assert attack_rating(1, 10, 0) == 19

    def test_attack_rating_clamps_inputs(self):
        assert attack_rating(500, 500, 0) == attack_rating(99, 100, 0)

    def test_crit_chance_and_mult(self):
        assert crit_chance(10, 10) == pytest.approx(0.07)
        assert crit_chance(100, 100) == pytest.approx(0.52)
        assert crit_mult(10, 10) == pytest.approx(1.6)
        assert crit_mult(100, 100) == pytest.approx(2.5)

    def test_mitigation(self):
        assert mitigate(100, 0) == 100
        assert mitigate(100, 100) == 50
        assert mitigate(100, -20) == 100

    def test_status_chance_is_clamped(self):
        assert status_apply_chance(10, 10, 0) == pytest.approx(0.15)
        assert status_apply_chance(100, 100, 0) == 0.95
        assert status_apply_chance(0, 0, 100) == 0.05

    def test_round_half_up(self):
        assert round_half_up(2.5) == 3
        assert round_half_up(3.5) == 4
        assert round_half_up(2.49) == 2

    def test_max_hp(self):
        assert max_hp(1, 10, 10) == 144

    def test_power_curve_endpoints(self):
        assert power_at_level(1) == pytest.approx(1.0)
        assert power_at_level(99) == pytest.approx(1_000_000)
        assert max_power_bar(99, 50, 50) > max_power_bar(1, 50, 50)


class TestComputeDamage:
    def _roll(self, label="turn:1:actor:1:skill:basic_attack:t:2", **overrides):
        params = dict(
            level=1, offense=10, mobility=10, utility=10, weapon_power=0, skill_mult=1.0, resist=0
        )
        params.update(overrides)
        return compute_damage(99, label, **params)

    def test_deterministic(self):
        assert self._roll() == self._roll()

    def test_label_independence(self):
        rolls = {self._roll(label=f"turn:{i}:t:2").spread for i in range(10)}
        assert len(rolls) > 1

    def test_spread_within_ten_percent(self):
        for i in range(50):
            roll = self._roll(label=f"spread:{i}")
            assert -0.1 <= roll.spread <= 0.1

    def test_positive_damage_is_at_least_one(self):
        roll = self._roll(skill_mult=0.01, resist=10_000)
        assert roll.final_damage == 1

    def test_zero_multiplier_deals_nothing(self):
        assert self._roll(skill_mult=0).final_damage == 0

    def test_crit_applies_multiplier(self):
        for i in range(300):
            roll = self._roll(label=f"crit:{i}", mobility=100, utility=100)
            if roll.is_crit:
                base = roll.base_before_spread * (1 + roll.spread)
                assert roll.pre_mitigation == pytest.approx(base * roll.crit_mult)
                break
        else:
            pytest.fail("expected at least one crit at 52% chance")

    def test_to_dict_has_intermediates(self):
        data = self._roll().to_dict()
        assert {"attack_rating", "spread", "is_crit", "crit_chance", "final_damage"} <= set(data)


class TestArmorAbsorb:
    def test_armor_partially_absorbs(self):
        result = absorb_damage(armor=10, hp=30, raw=15)
        assert result.armor_after == 0
        assert result.to_hp == 5
        assert result.hp_after == 25
        assert not result.died

    def test_armor_fully_absorbs(self):
        result = absorb_damage(armor=20, hp=30, raw=15)
        assert result.armor_after == 5
        assert result.to_hp == 0
        assert result.hp_after == 30

    def test_lethal_damage(self):
        result = absorb_damage(armor=0, hp=10, raw=25)
        assert result.hp_after == 0
        assert result.died
