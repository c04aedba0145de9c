"""Skill effect descriptors.

A skill's ``effects_json`` is a bag keyed by effect kind
(``{"damage": {"skill_mult": 1.2}, "push": {"tiles": 2}}``).  It is parsed
into a list of typed, frozen descriptors ordered by EFFECT_ORDER, which is
the order the applier resolves them in.  Malformed entries are dropped with
a warning rather than failing the cast; unknown keys are ignored.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Union, get_args

logger = logging.getLogger(__name__)


def _int(value: Any, minimum: int = 0) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise ValueError(f"expected a number, got {value!r}")
    return max(minimum, math.floor(value))


def _num(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise ValueError(f"expected a number, got {value!r}")
    return float(value)


@dataclass(frozen=True)
class MoveEffect:
    kind = "move"
    dash_tiles: int

    @classmethod
    def from_json(cls, data: dict) -> "MoveEffect":
        return cls(dash_tiles=_int(data["dash_tiles"]))


@dataclass(frozen=True)
class TeleportEffect:
    kind = "teleport"

    @classmethod
    def from_json(cls, data: dict) -> "TeleportEffect":
        return cls()


@dataclass(frozen=True)
class PullEffect:
    kind = "pull"
    tiles: int

    @classmethod
    def from_json(cls, data: dict) -> "PullEffect":
        return cls(tiles=_int(data["tiles"]))


@dataclass(frozen=True)
class PushEffect:
    kind = "push"
    tiles: int

    @classmethod
    def from_json(cls, data: dict) -> "PushEffect":
        return cls(tiles=_int(data["tiles"]))


@dataclass(frozen=True)
class BarrierEffect:
    kind = "barrier"
    amount: int
    duration_turns: int
    guard: bool = False

    @classmethod
    def from_json(cls, data: dict) -> "BarrierEffect":
        return cls(
            amount=_int(data["amount"]),
            duration_turns=_int(data["duration_turns"]),
            guard=bool(data.get("guard", False)),
        )


@dataclass(frozen=True)
class SelfDebuffEffect:
    kind = "self_debuff"
    id: str
    duration_turns: int
    intensity: float = 1.0

    @classmethod
    def from_json(cls, data: dict) -> "SelfDebuffEffect":
        if not isinstance(data.get("id"), str):
            raise ValueError("self_debuff.id must be a string")
        return cls(
            id=data["id"],
            duration_turns=_int(data.get("duration_turns", 0)),
            intensity=_num(data.get("intensity", 1)),
        )


@dataclass(frozen=True)
class BonusEffect:
    kind = "bonus"
    crit_chance_add: float

    @property
    def utility_amount(self) -> int:
        return max(0, math.floor(self.crit_chance_add * 100))

    @classmethod
    def from_json(cls, data: dict) -> "BonusEffect":
        return cls(crit_chance_add=_num(data["crit_chance_add"]))


@dataclass(frozen=True)
class ArmorShredEffect:
    kind = "armor_shred"
    amount: int

    @classmethod
    def from_json(cls, data: dict) -> "ArmorShredEffect":
        return cls(amount=_int(data["amount"]))


@dataclass(frozen=True)
class DamageEffect:
    kind = "damage"
    skill_mult: float = 1.0

    @classmethod
    def from_json(cls, data: dict) -> "DamageEffect":
        return cls(skill_mult=_num(data.get("skill_mult", 1.0)))


@dataclass(frozen=True)
class StatusEffect:
    """Applies ``id`` to each target on a seeded roll, or always when guaranteed.

    damage_per_turn / heal_per_turn make it tick at the start of the
    holder's turns.
    """

    kind = "status"
    id: str
    duration_turns: int
    stacks: int = 1
    damage_per_turn: float = 0.0
    heal_per_turn: float = 0.0
    guaranteed: bool = False

    def status_data(self, source_skill_id: str) -> dict:
        data: dict[str, Any] = {"source_skill_id": source_skill_id}
        if self.damage_per_turn:
            data["damage_per_turn"] = self.damage_per_turn
        if self.heal_per_turn:
            data["heal_per_turn"] = self.heal_per_turn
        return data

    @classmethod
    def from_json(cls, data: dict) -> "StatusEffect":
        if not isinstance(data.get("id"), str):
            raise ValueError("status.id must be a string")
        return cls(
            id=data["id"],
            duration_turns=_int(data["duration_turns"]),
            stacks=max(1, _int(data.get("stacks", 1))),
            damage_per_turn=max(0.0, _num(data.get("damage_per_turn", 0))),
            heal_per_turn=max(0.0, _num(data.get("heal_per_turn", 0))),
            guaranteed=bool(data.get("guaranteed", False)),
        )


@dataclass(frozen=True)
class PowerDrainEffect:
    kind = "power_drain"
    amount: int

    @classmethod
    def from_json(cls, data: dict) -> "PowerDrainEffect":
        return cls(amount=_int(data["amount"]))


@dataclass(frozen=True)
class HealEffect:
    kind = "heal"
    amount: int

    @classmethod
    def from_json(cls, data: dict) -> "HealEffect":
        return cls(amount=_int(data.get("amount", 0)))


@dataclass(frozen=True)
class CleanseEffect:
    kind = "cleanse"
    # None strips every non-cooldown status
    ids: tuple[str, ...] | None = None

    @classmethod
    def from_json(cls, data: dict) -> "CleanseEffect":
        ids = data.get("ids")
        return cls(ids=tuple(str(i) for i in ids) if isinstance(ids, list) else None)


@dataclass(frozen=True)
class ReviveEffect:
    kind = "revive"
    amount: int

    @classmethod
    def from_json(cls, data: dict) -> "ReviveEffect":
        return cls(amount=max(1, _int(data["amount"])))


@dataclass(frozen=True)
class PowerGainEffect:
    kind = "power_gain"
    amount: int

    @classmethod
    def from_json(cls, data: dict) -> "PowerGainEffect":
        return cls(amount=_int(data.get("amount", 0)))


Effect = Union[
    MoveEffect,
    TeleportEffect,
    PullEffect,
    PushEffect,
    BarrierEffect,
    SelfDebuffEffect,
    BonusEffect,
    ArmorShredEffect,
    DamageEffect,
    StatusEffect,
    PowerDrainEffect,
    HealEffect,
    CleanseEffect,
    ReviveEffect,
    PowerGainEffect,
]

# Resolution order
EFFECT_TYPES: tuple[type, ...] = get_args(Effect)
EFFECT_ORDER: tuple[str, ...] = tuple(t.kind for t in EFFECT_TYPES)
_BY_KIND: dict[str, type] = {t.kind: t for t in EFFECT_TYPES}

# Effects that need at least one enemy-side target
TARGETED_KINDS = frozenset({"damage", "status"})


def parse_effects(bag: dict | None) -> list[Effect]:
    """Typed descriptors for every recognised entry in ``bag``, in resolution order."""
    if not isinstance(bag, dict):
        return []
    effects: list[Effect] = []
    for kind in EFFECT_ORDER:
        data = bag.get(kind)
        if not isinstance(data, dict):
            continue
        try:
            effects.append(_BY_KIND[kind].from_json(data))
        except (KeyError, ValueError, TypeError) as exc:
            logger.warning("Ignoring malformed %s effect %r: %s", kind, data, exc)
    return effects
