"""Runtime view of a castable skill, independent of where it came from.

Stored skills (``tactica.models.skill.Skill``), built-ins and NPC/boss
attacks all become a SkillDefinition before they reach the applier.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field

from tactica.combat.effects import Effect, parse_effects
from tactica.combat.grid import Metric, parse_metric
from tactica.models.skill import Skill, SkillKind

USABLE_KINDS = frozenset({SkillKind.active, SkillKind.ultimate})


def _floor(value, default: int) -> int:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    return math.floor(number) if math.isfinite(number) else default


@dataclass(frozen=True)
class TargetingSpec:
    shape: str = "single"
    metric: Metric = Metric.manhattan
    radius: int = 1
    length: int = 1
    width: int = 1
    requires_los: bool = False
    blocks_on_walls: bool = True
    friendly_fire: bool = False

    @property
    def checks_los(self) -> bool:
        return self.requires_los and self.blocks_on_walls

    @classmethod
    def from_json(cls, data: dict | None, targeting: str, range_tiles: int) -> "TargetingSpec":
        data = data if isinstance(data, dict) else {}
        return cls(
            shape=str(data.get("shape") or targeting or "single"),
            metric=parse_metric(data.get("metric")),
            radius=max(0, _floor(data.get("radius", 1), 1)),
            length=max(1, _floor(data.get("length", range_tiles), max(1, range_tiles))),
            width=max(1, _floor(data.get("width", 1), 1)),
            requires_los=bool(data.get("requires_los", False)),
            blocks_on_walls=bool(data.get("blocks_on_walls", True)),
            friendly_fire=bool(data.get("friendly_fire", False)),
        )


@dataclass(frozen=True)
class SkillDefinition:
    id: str
    name: str
    targeting: str
    spec: TargetingSpec
    range_tiles: int
    effects: tuple[Effect, ...] = field(default_factory=tuple)
    kind: SkillKind = SkillKind.active
    cooldown_turns: int = 0
    cost_amount: int = 0
    cost_resource: str | None = None
    character_id: int | None = None
    builtin: bool = False
    # basic_move keeps the turn open
    ends_turn: bool = True

    @property
    def usable(self) -> bool:
        return self.kind in USABLE_KINDS

    def has_effect(self, kind: str) -> bool:
        return any(e.kind == kind for e in self.effects)

    @classmethod
    def from_model(cls, skill: Skill) -> "SkillDefinition":
        cost = skill.cost_json if isinstance(skill.cost_json, dict) else {}
        resource = cost.get("resource_id")
        return cls(
            id=str(skill.id),
            name=skill.name,
            kind=skill.kind,
            targeting=skill.targeting.value,
            spec=TargetingSpec.from_json(skill.targeting_json, skill.targeting.value, skill.range_tiles),
            range_tiles=skill.range_tiles,
            cooldown_turns=max(0, skill.cooldown_turns),
            cost_amount=max(0, _floor(cost.get("amount", 0), 0)),
            cost_resource=resource if isinstance(resource, str) else None,
            effects=tuple(parse_effects(skill.effects_json)),
            character_id=skill.character_id,
        )
