"""Damage and chance resolution.

Formulas (stats on a 0-100 scale, level 1-99):

  attack_rating  = round(14 + 1.55*level + 0.32*offense + 0.40*weapon_power)
  crit_chance    = clamp(0.02 + (mobility + utility)/400, 0.02, 0.60)
  crit_mult      = clamp(1.5 + (offense + utility)/200, 1.5, 3.0)
  mitigation     = raw * 100 / (100 + resist)
  status chance  = clamp(0.05 + (control + utility - resolve)/200, 0.05, 0.95)

Damage rolls use two independent seeded draws under the caller's label:
``<label>:spread`` for the +/-10% variance and ``<label>:crit`` for the crit.
Armor on the target counts as resist for mitigation and is then consumed as
a shield by ``absorb_damage``.
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass

from tactica.combat.rng import rng01

DAMAGE_SPREAD_PCT = 0.10
DEATH_EPSILON = 1e-4


def clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def attack_rating(level: int, offense: int, weapon_power: int) -> int:
    lvl = clamp(level, 1, 99)
    off = clamp(offense, 0, 100)
    return round_half_up(14 + lvl * 1.55 + off * 0.32 + max(0, weapon_power) * 0.40)


def max_hp(level: int, defense: int, support: int) -> int:
    lvl = clamp(level, 1, 99)
    return round_half_up(120 + lvl * 6.5 + clamp(defense, 0, 100) * 0.95 + clamp(support, 0, 100) * 0.75)


def power_at_level(level: int) -> float:
    """Exponential level curve from 1 at level 1 to 1e6 at level 99."""
    t = (clamp(level, 1, 99) - 1) / 98
    return math.exp(t * math.log(1_000_000))


def max_power_bar(level: int, utility: int, support: int) -> int:
    """Resource pool size; grows with the square root of the level curve."""
    pool = 50 + (math.sqrt(power_at_level(level)) * 0.5) * (1 + clamp(utility, 0, 100) / 200) * (
        1 + clamp(support, 0, 100) / 250
    )
    return int(math.floor(pool))


def mitigate(raw: float, resist: float) -> float:
    r = max(0.0, resist)
    return raw * 100.0 / (100.0 + r)


def crit_chance(mobility: int, utility: int) -> float:
    return clamp(0.02 + (clamp(mobility, 0, 100) + clamp(utility, 0, 100)) / 400.0, 0.02, 0.60)


def crit_mult(offense: int, utility: int) -> float:
    return clamp(1.5 + (clamp(offense, 0, 100) + clamp(utility, 0, 100)) / 200.0, 1.5, 3.0)


@dataclass(frozen=True)
class DamageRoll:
    """Every intermediate of one damage resolution, logged for replay and animation."""

    attack_rating: int
    base_before_spread: float
    spread: float
    pre_mitigation: float
    resist: float
    is_crit: bool
    crit_chance: float
    crit_mult: float
    final_damage: int

    def to_dict(self) -> dict:
        return asdict(self)


def compute_damage(
    seed: int,
    label: str,
    *,
    level: int,
    offense: int,
    mobility: int,
    utility: int,
    weapon_power: int,
    skill_mult: float,
    resist: float,
    spread_pct: float = DAMAGE_SPREAD_PCT,
) -> DamageRoll:
    rating = attack_rating(level, offense, weapon_power)
    base = rating * max(0.0, skill_mult)
    spread = (rng01(seed, f"{label}:spread") - 0.5) * 2 * clamp(spread_pct, 0.0, 0.5)
    pre = base * (1 + spread)

    cc = crit_chance(mobility, utility)
    cm = crit_mult(offense, utility)
    is_crit = rng01(seed, f"{label}:crit") < cc
    if is_crit:
        pre *= cm

    final = 0 if pre <= 0 else max(1, round_half_up(mitigate(pre, resist)))
    return DamageRoll(
        attack_rating=rating,
        base_before_spread=base,
        spread=spread,
        pre_mitigation=pre,
        resist=max(0.0, resist),
        is_crit=is_crit,
        crit_chance=cc,
        crit_mult=cm,
        final_damage=final,
    )


@dataclass(frozen=True)
class ShieldResult:
    absorbed: int
    to_hp: int
    armor_after: int
    hp_after: int
    died: bool


def absorb_damage(armor: int, hp: int, raw: int) -> ShieldResult:
    """Armor soaks damage first and is depleted by what it soaks; the rest hits hp."""
    raw = max(0, raw)
    absorbed = min(max(0, armor), raw)
    to_hp = raw - absorbed
    hp_after = max(0, hp - to_hp)
    return ShieldResult(
        absorbed=absorbed,
        to_hp=to_hp,
        armor_after=max(0, armor - absorbed),
        hp_after=hp_after,
        died=hp_after <= DEATH_EPSILON,
    )


def status_apply_chance(control: int, utility: int, target_resolve: int) -> float:
    c = clamp(control, 0, 100)
    u = clamp(utility, 0, 100)
    r = clamp(target_resolve, 0, 200)
    return clamp(0.05 + (c + u - r) / 200.0, 0.05, 0.95)


def roll_status(seed: int, label: str, status_id: str, target_id: int, chance: float) -> tuple[float, bool]:
    """Returns (roll, applied) for one status application attempt."""
    roll = rng01(seed, f"{label}:status:{status_id}:t:{target_id}")
    return roll, roll < chance
