"""Target validation and expansion for a cast.

resolve_targets() runs every check that can reject a cast before anything
is mutated, in this order:

  1. referenced combatant missing or dead           -> NotFoundError
  2. self-only skill aimed elsewhere                -> ConflictError
     single-target skill aimed at an empty tile     -> ConflictError
  3. distance (skill metric) beyond range_tiles     -> ConflictError
  4. line of sight blocked (requires_los + walls)   -> ConflictError
  5. damage/status skill with nobody to hit         -> ConflictError
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

from tactica.combat.grid import Point, combatants_in_shape, distance_tiles, has_line_of_sight
from tactica.combat.effects import TARGETED_KINDS
from tactica.combat.skills import SkillDefinition
from tactica.errors import ConflictError, NotFoundError


@dataclass(frozen=True)
class TargetRequest:
    kind: str  # "self" | "combatant" | "tile"
    combatant_id: int | None = None
    x: int | None = None
    y: int | None = None


def allegiance_key(combatant) -> str:
    return f"party:{combatant.player_id}" if combatant.player_id is not None else "enemy"


def are_allies(a, b) -> bool:
    return allegiance_key(a) == allegiance_key(b)


@dataclass
class TargetResolution:
    actor: object
    point: Point
    combatant: object | None
    shape: str
    # Living combatants inside the shape, friendly fire applied
    filtered: list = field(default_factory=list)
    # Living combatants inside the shape, unfiltered
    in_shape: list = field(default_factory=list)
    # Dead combatants inside the shape
    fallen: list = field(default_factory=list)

    @property
    def effect_targets(self) -> list:
        """Who damage, status, armor shred and power drain land on."""
        if self.shape == "self":
            return list(self.filtered)
        return [t for t in self.filtered if t.id != self.actor.id]

    @property
    def displaced_targets(self) -> list:
        """Who pull and push move."""
        return [t for t in self.filtered if t.id != self.actor.id]

    @property
    def ally_targets(self) -> list:
        """Who heal and cleanse land on."""
        if self.shape == "self":
            return [self.actor]
        return [t for t in self.in_shape if t.id == self.actor.id or are_allies(self.actor, t)]

    @property
    def revive_targets(self) -> list:
        return [t for t in self.fallen if are_allies(self.actor, t)]


def _resolve_point(actor, request: TargetRequest, by_id: dict) -> tuple[Point, object | None]:
    if request.kind == "self":
        return (actor.x, actor.y), actor
    if request.kind == "combatant":
        target = by_id.get(request.combatant_id)
        if target is None or not target.is_alive:
            raise NotFoundError("Target not found", code="target_not_found")
        return (target.x, target.y), target
    point = (int(request.x), int(request.y))
    occupant = next((c for c in by_id.values() if c.is_alive and (c.x, c.y) == point), None)
    return point, occupant


def resolve_targets(
    actor,
    skill: SkillDefinition,
    request: TargetRequest,
    combatants: Sequence,
    blocked: set[Point],
) -> TargetResolution:
    by_id = {c.id: c for c in combatants}
    point, target = _resolve_point(actor, request, by_id)

    if skill.targeting == "self" and (target is None or target.id != actor.id):
        raise ConflictError("This skill can only target self", code="invalid_target")
    if skill.targeting == "single" and target is None:
        raise ConflictError("This skill requires an entity target", code="invalid_target")

    spec = skill.spec
    if distance_tiles(spec.metric, actor.x, actor.y, point[0], point[1]) > skill.range_tiles:
        raise ConflictError("Target out of range", code="out_of_range")
    if spec.checks_los and not has_line_of_sight((actor.x, actor.y), point, blocked):
        raise ConflictError("Line of sight blocked", code="line_of_sight")

    living = [c for c in combatants if c.is_alive]
    dead = [c for c in combatants if not c.is_alive]
    shape_args = dict(radius=spec.radius, length=spec.length, width=spec.width)
    in_shape = combatants_in_shape(spec.shape, spec.metric, actor, point, living, **shape_args)
    fallen = combatants_in_shape(spec.shape, spec.metric, actor, point, dead, **shape_args)
    if spec.friendly_fire:
        filtered = list(in_shape)
    else:
        filtered = [c for c in in_shape if c.id == actor.id or not are_allies(actor, c)]

    resolution = TargetResolution(
        actor=actor,
        point=point,
        combatant=target,
        shape=spec.shape,
        filtered=filtered,
        in_shape=in_shape,
        fallen=fallen,
    )
    if any(e.kind in TARGETED_KINDS for e in skill.effects) and not resolution.effect_targets:
        raise ConflictError("No valid targets in area", code="no_targets")
    return resolution


def fixed_targets(actor, targets: Sequence) -> TargetResolution:
    """Resolution for AI-chosen targets, which skip range and shape checks."""
    first = targets[0] if targets else actor
    shape = "self" if list(targets) == [actor] else "single"
    return TargetResolution(
        actor=actor,
        point=(first.x, first.y),
        combatant=first,
        shape=shape,
        filtered=list(targets),
        in_shape=list(targets),
        fallen=[],
    )
