"""Reward collaborators called from combat settlement.

XP and loot are granted at most once per (character, combat session): XP is
guarded by an ``xp_applied`` progression event, loot by the loot_drops
unique constraint.  Loot rolls are seeded so a retried settlement produces
the same item.
"""

import logging
import math

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tactica.combat.damage import clamp, power_at_level
from tactica.combat.rng import rng_int, rng_pick
from tactica.models.character import Character, ProgressionEvent
from tactica.models.faction import Faction, FactionReputation, MemoryEvent, ReputationEvent
from tactica.models.item import InventoryEntry, Item, ItemContainer, LootDrop

logger = logging.getLogger(__name__)

MAX_LEVEL = 99
REP_LIMIT = 1000
STAT_CAP = 100
CORE_STATS = ("offense", "defense", "control", "support", "mobility", "utility")

LOOT_SLOTS = ["weapon", "armor", "ring", "trinket"]
NAMES_A = ["Ash", "Iron", "Dread", "Storm", "Velvet", "Blood", "Wyrm", "Night"]
NAMES_B = ["Edge", "Ward", "Pulse", "Maw", "Spur", "Bite", "Halo", "Crown"]

_POWER_FACTOR = {"legendary": 2.6}
_DROP_TIER = {"legendary": "boss"}
_BUDGET_POINTS = {"legendary": 40}


# ---------------------------------------------------------------------------
# XP
# ---------------------------------------------------------------------------

def xp_to_next_level(level: int) -> int:
    """XP needed to leave ``level``; 0 at the level cap."""
    if level >= MAX_LEVEL:
        return 0
    raw = 120 + (power_at_level(level + 1) - power_at_level(level)) / 250.0
    return int(clamp(math.floor(raw), 100, 500_000))


def apply_xp(character: Character, amount: int) -> dict:
    """Add XP, levelling up while the bar fills; each level adds one point to every core stat."""
    start_level = character.level
    xp = character.xp + max(0, amount)
    level = character.level
    while level < MAX_LEVEL:
        cap = xp_to_next_level(level)
        if xp < cap:
            break
        xp -= cap
        level += 1
    if level >= MAX_LEVEL:
        xp = 0
    gained = level - start_level
    for stat in CORE_STATS:
        setattr(character, stat, min(STAT_CAP, getattr(character, stat) + gained))
    character.level = level
    character.xp = xp
    return {"level": level, "xp": xp, "levels_gained": gained, "xp_to_next": xp_to_next_level(level)}


async def has_xp_award(db: AsyncSession, character_id: int, combat_session_id: int) -> bool:
    result = await db.execute(
        select(ProgressionEvent.id).where(
            ProgressionEvent.character_id == character_id,
            ProgressionEvent.event_type == "xp_applied",
            ProgressionEvent.combat_session_id == combat_session_id,
        )
    )
    return result.first() is not None


async def award_xp(
    db: AsyncSession, character: Character, combat_session_id: int, amount: int
) -> dict | None:
    """Grant combat XP once per session; None when it was already granted."""
    if await has_xp_award(db, character.id, combat_session_id):
        return None
    summary = apply_xp(character, amount)
    db.add(
        ProgressionEvent(
            character_id=character.id,
            event_type="xp_applied",
            combat_session_id=combat_session_id,
            payload={"amount": amount, "reason": "combat_settlement", **summary},
        )
    )
    await db.flush()
    logger.info("Character %s gained %s XP from combat %s", character.id, amount, combat_session_id)
    return summary


# ---------------------------------------------------------------------------
# Loot
# ---------------------------------------------------------------------------

def loot_rarity(xp_per: int) -> str:
    if xp_per > 420:
        return "legendary"
    if xp_per > 280:
        return "unique"
    return "magical"


def roll_loot(seed: int, character_id: int, level: int, rarity: str) -> dict:
    """Seeded item fields for a drop."""
    label = f"loot:{character_id}"
    slot = rng_pick(seed, f"{label}:slot", LOOT_SLOTS)
    name = f"{rng_pick(seed, f'{label}:a', NAMES_A)} {rng_pick(seed, f'{label}:b', NAMES_B)}"
    stat_mods = {
        "offense": rng_int(seed, f"{label}:off", 1, 8),
        "defense": rng_int(seed, f"{label}:def", 1, 8),
    }
    if slot == "weapon":
        stat_mods["weapon_power"] = rng_int(seed, f"{label}:wp", 2, 12)
    elif slot == "armor":
        stat_mods["armor_power"] = rng_int(seed, f"{label}:ap", 2, 10)
    else:
        stat_mods["utility"] = rng_int(seed, f"{label}:ut", 2, 10)
    return {
        "name": name,
        "slot": slot,
        "rarity": rarity,
        "stat_mods": stat_mods,
        "required_level": max(1, level - 1),
        "item_power": max(1, math.floor(level * _POWER_FACTOR.get(rarity, 1.8))),
        "drop_tier": _DROP_TIER.get(rarity, "elite"),
        "bind_policy": "unbound" if rarity == "magical" else "bind_on_equip",
    }


async def has_loot_award(db: AsyncSession, character_id: int, combat_session_id: int) -> bool:
    result = await db.execute(
        select(LootDrop.id).where(
            LootDrop.character_id == character_id,
            LootDrop.combat_session_id == combat_session_id,
        )
    )
    return result.first() is not None


async def grant_loot(
    db: AsyncSession,
    *,
    seed: int,
    campaign_id: int,
    combat_session_id: int,
    character: Character,
    rarity: str,
    source: str,
) -> Item | None:
    """Create one item in the character's backpack; None if this session already dropped one."""
    if await has_loot_award(db, character.id, combat_session_id):
        return None
    fields = roll_loot(seed, character.id, max(1, character.level), rarity)
    item = Item(campaign_id=campaign_id, owner_character_id=character.id, **fields)
    db.add(item)
    await db.flush()
    db.add(InventoryEntry(character_id=character.id, item_id=item.id, container=ItemContainer.backpack))
    db.add(
        LootDrop(
            campaign_id=campaign_id,
            combat_session_id=combat_session_id,
            character_id=character.id,
            item_id=item.id,
            source=source,
            rarity=rarity,
            budget_points=_BUDGET_POINTS.get(rarity, 24),
            payload={"character_id": character.id, "generated_by": source},
        )
    )
    await db.flush()
    logger.info("Loot %r (%s) dropped for character %s", item.name, rarity, character.id)
    return item


# ---------------------------------------------------------------------------
# Reputation and memory
# ---------------------------------------------------------------------------

async def primary_faction(db: AsyncSession, campaign_id: int) -> Faction | None:
    result = await db.execute(
        select(Faction).where(Faction.campaign_id == campaign_id).order_by(Faction.id).limit(1)
    )
    return result.scalar_one_or_none()


async def apply_reputation_delta(
    db: AsyncSession,
    *,
    campaign_id: int,
    faction_id: int,
    player_id: int,
    delta: int,
    severity: int,
    evidence: dict,
) -> int | None:
    if delta == 0:
        return None
    delta = int(clamp(delta, -REP_LIMIT, REP_LIMIT))
    db.add(
        ReputationEvent(
            campaign_id=campaign_id,
            faction_id=faction_id,
            player_id=player_id,
            delta=delta,
            severity=int(clamp(severity, 1, 5)),
            evidence=evidence,
        )
    )
    result = await db.execute(
        select(FactionReputation).where(
            FactionReputation.faction_id == faction_id,
            FactionReputation.player_id == player_id,
        )
    )
    row = result.scalar_one_or_none()
    if row is None:
        row = FactionReputation(campaign_id=campaign_id, faction_id=faction_id, player_id=player_id, rep=0)
        db.add(row)
    row.rep = int(clamp(row.rep + delta, -REP_LIMIT, REP_LIMIT))
    await db.flush()
    return row.rep


async def append_memory_event(
    db: AsyncSession, *, campaign_id: int, player_id: int, category: str, severity: int, payload: dict
) -> MemoryEvent:
    event = MemoryEvent(
        campaign_id=campaign_id,
        player_id=player_id,
        category=category,
        severity=int(clamp(severity, 1, 5)),
        payload=payload,
    )
    db.add(event)
    await db.flush()
    return event
