"""Boss phase escalation and skill choice.

A boss template lists phases as ``{phase, hp_below_pct, skill_pool}``.  The
active phase is the highest one whose threshold the boss's HP fraction has
dropped to; it never goes back down even if the boss is healed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from tactica.combat.rng import rng_pick

logger = logging.getLogger(__name__)

DEFAULT_BOSS_SKILL = "boss_strike"
BOSS_EXECUTE = "boss_execute"
BOSS_CLEAVE = "boss_cleave"
BOSS_MARK = "boss_mark"
BOSS_VULN = "boss_vuln"
VULNERABLE_STATUS = "vulnerable"
VULNERABLE_TURNS = 2

EXECUTE_THRESHOLD = 0.4


@dataclass(frozen=True)
class BossPhase:
    phase: int
    hp_below_pct: float
    skill_pool: tuple[str, ...] = field(default_factory=tuple)


def parse_phases(phases_json) -> list[BossPhase]:
    phases: list[BossPhase] = []
    if not isinstance(phases_json, list):
        return phases
    for row in phases_json:
        if not isinstance(row, dict):
            continue
        try:
            phase = int(row.get("phase", 1))
            threshold = float(row.get("hp_below_pct", 1.0))
        except (TypeError, ValueError):
            logger.warning("Ignoring malformed boss phase %r", row)
            continue
        pool = row.get("skill_pool") or []
        phases.append(BossPhase(phase, threshold, tuple(str(s) for s in pool if isinstance(s, str))))
    return sorted(phases, key=lambda p: p.phase)


def hp_fraction(hp: float, hp_max: float) -> float:
    return max(0.0, hp) / max(1.0, hp_max)


def phase_for_hp(phases: list[BossPhase], hp_pct: float) -> int:
    reached = [p.phase for p in phases if hp_pct <= p.hp_below_pct]
    return max(reached) if reached else 1


def advance_phase(current_phase: int, phases: list[BossPhase], hp_pct: float) -> int:
    """New phase for the boss; monotonically non-decreasing."""
    return max(current_phase, phase_for_hp(phases, hp_pct))


def skill_pool(phases: list[BossPhase], phase: int) -> tuple[str, ...]:
    for p in phases:
        if p.phase == phase:
            return p.skill_pool
    return phases[0].skill_pool if phases else ()


def pick_boss_skill(seed: int, turn_number: int, pool: tuple[str, ...] | list[str]) -> str:
    if not pool:
        return DEFAULT_BOSS_SKILL
    return rng_pick(seed, f"tick:{turn_number}:boss:boss_skill", list(pool))


def skill_multiplier(skill_key: str, target_hp_pct: float) -> float:
    if skill_key == BOSS_EXECUTE:
        return 2.0 if target_hp_pct <= EXECUTE_THRESHOLD else 1.3
    if skill_key == BOSS_CLEAVE:
        return 1.35
    if skill_key == BOSS_MARK:
        return 0.85
    if skill_key == BOSS_VULN:
        return 0.95
    if skill_key == "basic_attack":
        return 1.0
    return 1.1


def applies_vulnerable(skill_key: str) -> bool:
    return skill_key in (BOSS_MARK, BOSS_VULN)


def hits_all_opponents(skill_key: str) -> bool:
    return skill_key == BOSS_CLEAVE
