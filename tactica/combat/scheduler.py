"""Turn scheduling and end-of-combat detection.

The turn order is fixed when combat starts and wraps modulo its length.
Dead combatants keep their slot; advancing skips them.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Sequence

from tactica.models.combat_session import EntityType


@dataclass(frozen=True)
class EndCheck:
    alive_players: int
    alive_npcs: int

    @property
    def ended(self) -> bool:
        return self.alive_players == 0 or self.alive_npcs == 0

    @property
    def won(self) -> bool:
        return self.alive_players > 0 and self.alive_npcs == 0

    def to_dict(self) -> dict:
        return {"alive_players": self.alive_players, "alive_npcs": self.alive_npcs, "won": self.won}


def check_end(combatants: Iterable) -> EndCheck:
    """Count living combatants on each side; summons never decide the fight."""
    players = npcs = 0
    for c in combatants:
        if not c.is_alive:
            continue
        if c.entity_type == EntityType.player:
            players += 1
        elif c.entity_type == EntityType.npc:
            npcs += 1
    return EndCheck(alive_players=players, alive_npcs=npcs)


def next_alive_index(order: Sequence[int], current_index: int, alive_ids: set[int]) -> int | None:
    """Index of the next living combatant after ``current_index``, wrapping.

    The current slot itself is considered last, so a lone survivor keeps the
    turn. Returns None when nobody in the order is alive.
    """
    n = len(order)
    if n == 0:
        return None
    for step in range(1, n + 1):
        idx = (current_index + step) % n
        if order[idx] in alive_ids:
            return idx
    return None
