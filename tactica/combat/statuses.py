"""Status ledger.

A combatant's statuses are an ordered list of entries
``{"id", "expires_turn", "stacks", "data"}`` stored as JSON.  Every helper
here is pure: it takes a list and returns a new one, so reassigning the
result to ``Combatant.statuses`` is what marks the column dirty.

Conventions:
  - ids starting with ``cd:`` are cooldowns and survive cleanse-all.
  - ``expires_turn`` is compared against the session's turn_number;
    ``None`` means the entry stays until removed.
  - setting an id that already exists replaces the old entry.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable

from tactica.combat.damage import round_half_up

COOLDOWN_PREFIX = "cd:"
CRIT_BONUS_ID = "crit_bonus"
MOVE_SPENT_ID = "move_spent"
UNKNOWN_COOLDOWN_REMAINING = 999


@dataclass
class StatusEntry:
    id: str
    expires_turn: int | None = None
    stacks: int = 1
    data: dict[str, Any] = field(default_factory=dict)

    @property
    def is_cooldown(self) -> bool:
        return self.id.startswith(COOLDOWN_PREFIX)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "expires_turn": self.expires_turn,
            "stacks": self.stacks,
            "data": dict(self.data),
        }


@dataclass
class StatusTickResult:
    statuses: list[dict[str, Any]]
    hp: int
    is_alive: bool
    damage: float = 0.0
    healing: float = 0.0
    expired: list[str] = field(default_factory=list)


def load_statuses(raw: Iterable[Any] | None) -> list[StatusEntry]:
    """Parse a stored status list, dropping malformed or id-less entries."""
    entries: list[StatusEntry] = []
    for item in raw or []:
        if not isinstance(item, dict):
            continue
        sid = str(item.get("id") or "").strip()
        if not sid:
            continue
        expires = item.get("expires_turn")
        data = item.get("data")
        entries.append(
            StatusEntry(
                id=sid,
                expires_turn=None if expires is None else int(expires),
                stacks=int(item.get("stacks") or 1),
                data=dict(data) if isinstance(data, dict) else {},
            )
        )
    return entries


def dump_statuses(entries: Iterable[StatusEntry]) -> list[dict[str, Any]]:
    return [e.to_dict() for e in entries]


def find_status(raw: Iterable[Any] | None, status_id: str) -> StatusEntry | None:
    for entry in load_statuses(raw):
        if entry.id == status_id:
            return entry
    return None


def set_status(
    raw: Iterable[Any] | None,
    status_id: str,
    expires_turn: int | None,
    data: dict[str, Any] | None = None,
    stacks: int = 1,
) -> list[dict[str, Any]]:
    entries = [e for e in load_statuses(raw) if e.id != status_id]
    entries.append(StatusEntry(status_id, expires_turn, stacks, dict(data or {})))
    return dump_statuses(entries)


def remove_status(raw: Iterable[Any] | None, status_id: str) -> list[dict[str, Any]]:
    return dump_statuses(e for e in load_statuses(raw) if e.id != status_id)


def strip_statuses(raw: Iterable[Any] | None, remove_ids: list[str] | None) -> list[dict[str, Any]]:
    """Cleanse.  ``None`` or ``[]`` strips everything except cooldowns; a list strips only those ids."""
    entries = load_statuses(raw)
    if not remove_ids:
        return dump_statuses(e for e in entries if e.is_cooldown)
    targets = set(remove_ids)
    return dump_statuses(e for e in entries if e.id not in targets)


# ---------------------------------------------------------------------------
# Cooldowns
# ---------------------------------------------------------------------------

def cooldown_id(skill_id: str) -> str:
    return f"{COOLDOWN_PREFIX}{skill_id}"


def cooldown_remaining(raw: Iterable[Any] | None, skill_id: str, turn_number: int) -> int:
    """Turns left before ``skill_id`` is usable again; 0 means ready."""
    entry = find_status(raw, cooldown_id(skill_id))
    if entry is None:
        return 0
    if entry.expires_turn is None:
        return UNKNOWN_COOLDOWN_REMAINING
    return max(0, entry.expires_turn - turn_number)


def set_cooldown(raw: Iterable[Any] | None, skill_id: str, expires_turn: int) -> list[dict[str, Any]]:
    return set_status(raw, cooldown_id(skill_id), expires_turn)


# ---------------------------------------------------------------------------
# Crit bonus
# ---------------------------------------------------------------------------

def crit_bonus_amount(raw: Iterable[Any] | None) -> float:
    total = 0.0
    for entry in load_statuses(raw):
        if entry.id == CRIT_BONUS_ID:
            try:
                total += float(entry.data.get("amount", 0))
            except (TypeError, ValueError):
                continue
    return total


def effective_utility(utility: int, raw: Iterable[Any] | None) -> int:
    """Utility after any pending crit bonus, clamped to 0..100."""
    return min(100, max(0, int(utility + crit_bonus_amount(raw))))


# ---------------------------------------------------------------------------
# Turn passes
# ---------------------------------------------------------------------------

def _is_expired(entry: StatusEntry, turn_number: int) -> bool:
    return entry.expires_turn is not None and entry.expires_turn <= turn_number


def _per_turn(entry: StatusEntry, key: str) -> float:
    try:
        return max(0.0, float(entry.data.get(key, 0) or 0)) * max(1, entry.stacks)
    except (TypeError, ValueError):
        return 0.0


def resolve_status_tick(
    raw: Iterable[Any] | None,
    hp: int,
    hp_max: int,
    turn_number: int,
    phase: str = "start",
) -> StatusTickResult:
    """Run the start- or end-of-turn pass.

    The start pass applies damage_per_turn / heal_per_turn (times stacks)
    from every entry, then both passes drop entries whose expiry has come.
    """
    entries = load_statuses(raw)
    dot = hot = 0.0
    if phase == "start":
        dot = sum(_per_turn(e, "damage_per_turn") for e in entries)
        hot = sum(_per_turn(e, "heal_per_turn") for e in entries)

    kept = [e for e in entries if not _is_expired(e, turn_number)]
    expired = [e.id for e in entries if _is_expired(e, turn_number)]

    new_hp = int(round_half_up(min(hp_max, max(0.0, hp - dot + hot))))
    return StatusTickResult(
        statuses=dump_statuses(kept),
        hp=new_hp,
        is_alive=new_hp > 0,
        damage=dot,
        healing=hot,
        expired=expired,
    )

