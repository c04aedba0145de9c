"""Combat service: session lifecycle for the tactical combat engine.

Lifecycle:
  start_combat  -> combatants, turn order, combat board, round_start/turn_start
  use_skill     -> validate the caller's turn, cast, end-of-turn pass, advance
  tick_combat   -> run AI-controlled turns until a player must act
  settle        -> once one side has no living members (settlement_service)

Every entry point works on one AsyncSession and only flushes; the router
commits on success and rolls back on any error, so a rejected request
leaves no partial state behind.  use_skill and tick_combat first claim
the session version, so of two requests racing for one turn the later
one gets a conflict.

Turn bookkeeping: ``current_turn_index`` points into the fixed turn order,
``turn_number`` counts turns taken and drives status expiry, cooldowns and
RNG labels.  Advancing runs the start-of-turn status pass for the new actor;
acting runs the end-of-turn pass for the actor.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from tactica.combat import boss as boss_rules
from tactica.combat import statuses as ledger
from tactica.combat.applier import Cast, apply_skill, has_moved_this_turn
from tactica.combat.damage import clamp, max_hp, max_power_bar
from tactica.combat.grid import Point, in_bounds
from tactica.combat.npc import plan_turn
from tactica.combat.rng import rng_int
from tactica.combat.scheduler import check_end, next_alive_index
from tactica.combat.skills import SkillDefinition
from tactica.combat.targeting import TargetRequest, fixed_targets, resolve_targets
from tactica.config import settings
from tactica.data.builtin_skills import BASIC_MOVE, build_builtin_skill
from tactica.errors import AccessDeniedError, ConflictError, InvalidRequestError, NotFoundError
from tactica.models.board import Board
from tactica.models.boss import BossInstance, BossTemplate
from tactica.models.campaign import Campaign
from tactica.models.character import Character
from tactica.models.combat_session import Combatant, CombatSession, CombatStatus, EntityType, TurnOrder
from tactica.models.item import InventoryEntry, Item, ItemContainer
from tactica.models.skill import Skill
from tactica.models.user import User
from tactica.services.board_service import (
    blocked_tiles,
    board_grid,
    get_active_board,
    get_combat_board,
    open_combat_board,
)
from tactica.services.campaign_service import latest_characters_by_player
from tactica.services.event_service import append_event, append_events
from tactica.services.settlement_service import settle_combat

logger = logging.getLogger(__name__)

DEFAULT_BOARD_SEED = 12345
MAX_SEED = 2_147_483_647
CORE_STATS = ("offense", "defense", "control", "support", "mobility", "utility")

ENEMY_NAME = "Ink Ghoul"
ENEMY_HP = 100
BOSS_HP = 260


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

@dataclass
class CombatState:
    """Everything a turn needs, loaded once per step."""
    combat: CombatSession
    combatants: list[Combatant]
    order: list[int]
    board: Board | None
    blocked: set[Point]
    cols: int
    rows: int

    @property
    def by_id(self) -> dict[int, Combatant]:
        return {c.id: c for c in self.combatants}

    @property
    def current_actor(self) -> Combatant | None:
        if not self.order:
            return None
        idx = self.combat.current_turn_index % len(self.order)
        return self.by_id.get(self.order[idx])

    @property
    def alive_ids(self) -> set[int]:
        return {c.id for c in self.combatants if c.is_alive}


async def get_combat_session(db: AsyncSession, campaign_id: int, session_id: int) -> CombatSession:
    result = await db.execute(
        select(CombatSession).where(CombatSession.id == session_id, CombatSession.campaign_id == campaign_id)
    )
    combat = result.scalar_one_or_none()
    if combat is None:
        raise NotFoundError("Combat session not found", code="combat_not_found")
    return combat


async def get_active_combat(db: AsyncSession, campaign_id: int) -> CombatSession | None:
    result = await db.execute(
        select(CombatSession)
        .where(CombatSession.campaign_id == campaign_id, CombatSession.status == CombatStatus.active)
        .order_by(CombatSession.id.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def claim_session(db: AsyncSession, combat: CombatSession) -> None:
    """Bump the session version, or fail if another request already moved it on."""
    result = await db.execute(
        update(CombatSession)
        .where(CombatSession.id == combat.id, CombatSession.version == combat.version)
        .values(version=CombatSession.version + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        logger.info("Combat %s changed under a concurrent request", combat.id)
        raise ConflictError("Combat was updated by another request", code="concurrent_update")
    set_committed_value(combat, "version", combat.version + 1)


async def load_state(db: AsyncSession, combat: CombatSession) -> CombatState:
    result = await db.execute(
        select(Combatant).where(Combatant.combat_session_id == combat.id).order_by(Combatant.id)
    )
    combatants = list(result.scalars().all())
    result = await db.execute(
        select(TurnOrder).where(TurnOrder.combat_session_id == combat.id).order_by(TurnOrder.turn_index)
    )
    order = [row.combatant_id for row in result.scalars().all()]
    board = await get_combat_board(db, combat.id)
    cols, rows = board_grid(board, settings.board_width, settings.board_height)
    return CombatState(
        combat=combat,
        combatants=combatants,
        order=order,
        board=board,
        blocked=blocked_tiles(board),
        cols=cols,
        rows=rows,
    )


async def load_skill(db: AsyncSession, skill_id: str, actor: Combatant) -> SkillDefinition:
    builtin = build_builtin_skill(skill_id, actor)
    if builtin is not None:
        return builtin
    if not skill_id.isdigit():
        raise NotFoundError("Skill not found", code="skill_not_found")
    result = await db.execute(select(Skill).where(Skill.id == int(skill_id)))
    skill = result.scalar_one_or_none()
    if skill is None:
        raise NotFoundError("Skill not found", code="skill_not_found")
    return SkillDefinition.from_model(skill)


async def get_boss_instance(db: AsyncSession, combat_session_id: int, combatant_id: int) -> BossInstance | None:
    result = await db.execute(
        select(BossInstance).where(
            BossInstance.combat_session_id == combat_session_id,
            BossInstance.combatant_id == combatant_id,
        )
    )
    return result.scalar_one_or_none()


# ---------------------------------------------------------------------------
# Start
# ---------------------------------------------------------------------------

async def equipment_bonuses(db: AsyncSession, character_id: int) -> dict[str, float]:
    """Summed stat_mods of every item the character has equipped."""
    result = await db.execute(
        select(Item.stat_mods)
        .join(InventoryEntry, InventoryEntry.item_id == Item.id)
        .where(
            InventoryEntry.character_id == character_id,
            InventoryEntry.container == ItemContainer.equipment,
        )
    )
    totals: dict[str, float] = {}
    for mods in result.scalars().all():
        if not isinstance(mods, dict):
            continue
        for key, value in mods.items():
            try:
                totals[key] = totals.get(key, 0.0) + float(value)
            except (TypeError, ValueError):
                continue
    return totals


def _player_combatant(
    combat: CombatSession, character: Character, bonuses: dict[str, float], slot: int, rows: int
) -> Combatant:
    stats = {
        key: int(clamp(getattr(character, key) + bonuses.get(key, 0), 0, 100)) for key in CORE_STATS
    }
    hp_cap = max(1, int(max_hp(character.level, stats["defense"], stats["support"]) + max(0, bonuses.get("hp_max", 0))))
    power_cap = max(
        0,
        int(max_power_bar(character.level, stats["utility"], stats["support"]) + max(0, bonuses.get("power_max", 0))),
    )
    initiative = int(clamp(stats["mobility"] + rng_int(combat.seed, f"init:player:{character.id}", 0, 25), 0, 999))
    return Combatant(
        combat_session_id=combat.id,
        entity_type=EntityType.player,
        player_id=character.player_id,
        character_id=character.id,
        name=character.name,
        level=character.level,
        weapon_power=int(max(0, bonuses.get("weapon_power", 0))),
        armor=int(max(0, bonuses.get("armor", 0))),
        resist=int(max(0, bonuses.get("resist", 0))),
        hp=hp_cap,
        hp_max=hp_cap,
        power=power_cap,
        power_max=power_cap,
        x=1,
        y=min(rows - 1, 1 + slot),
        initiative=initiative,
        is_alive=True,
        statuses=[],
        **stats,
    )


def _enemy_combatant(combat: CombatSession, index: int, level: int, cols: int, rows: int) -> Combatant:
    seed = combat.seed
    base = 35 + rng_int(seed, f"enemy:base:{index}", 0, 25)

    def stat(label: str, lo: int, hi: int) -> int:
        return int(clamp(base + rng_int(seed, f"enemy:{label}:{index}", lo, hi), 0, 100))

    mobility = stat("mob", -5, 10)
    return Combatant(
        combat_session_id=combat.id,
        entity_type=EntityType.npc,
        player_id=None,
        character_id=None,
        name=f"{ENEMY_NAME} {index + 1}",
        level=level,
        offense=stat("off", -5, 15),
        defense=stat("def", -5, 15),
        control=stat("ctl", -10, 10),
        support=stat("sup", -10, 10),
        mobility=mobility,
        utility=stat("uti", -10, 10),
        weapon_power=0,
        armor=0,
        resist=0,
        hp=ENEMY_HP,
        hp_max=ENEMY_HP,
        power=0,
        power_max=0,
        x=min(cols - 1, 8 + rng_int(seed, f"enemy:x:{index}", 0, 2)),
        y=min(rows - 1, 1 + index),
        initiative=int(clamp(mobility + rng_int(seed, f"init:enemy:{index}", 0, 25), 0, 999)),
        is_alive=True,
        statuses=[],
    )


def generate_walls(seed: int, cols: int, rows: int) -> list[Point]:
    walls: list[Point] = []
    for i in range(rng_int(seed, "walls:count", 3, 6)):
        point = (rng_int(seed, f"walls:x:{i}", 2, 7), rng_int(seed, f"walls:y:{i}", 1, 4))
        if point not in walls and in_bounds(point, cols, rows):
            walls.append(point)
    return walls


async def start_combat(
    db: AsyncSession,
    campaign: Campaign,
    *,
    reason: str | None = None,
    seed: int | None = None,
    boss_template_id: int | None = None,
) -> dict:
    if await get_active_combat(db, campaign.id) is not None:
        raise ConflictError("Combat is already active in this campaign", code="combat_active")

    characters = await latest_characters_by_player(db, campaign.id)
    if not characters:
        raise InvalidRequestError("No character found for this campaign", code="character_missing")

    template = None
    if boss_template_id is not None:
        result = await db.execute(select(BossTemplate).where(BossTemplate.id == boss_template_id))
        template = result.scalar_one_or_none()
        if template is None:
            raise NotFoundError("Boss template not found", code="boss_template_not_found")

    previous_board = await get_active_board(db, campaign.id)
    if seed is None:
        board_seed = (previous_board.state_json or {}).get("seed") if previous_board is not None else None
        if not isinstance(board_seed, int):
            board_seed = DEFAULT_BOARD_SEED
        now_seed = int(time.time()) % MAX_SEED
        seed = rng_int(board_seed + now_seed, f"combat_seed:{campaign.id}", 0, MAX_SEED)

    cols, rows = settings.board_width, settings.board_height
    combat = CombatSession(
        campaign_id=campaign.id,
        seed=seed,
        status=CombatStatus.active,
        current_turn_index=0,
        turn_number=0,
        reason=reason,
    )
    db.add(combat)
    await db.flush()

    combatants: list[Combatant] = []
    for slot, character in enumerate(characters):
        bonuses = await equipment_bonuses(db, character.id)
        combatants.append(_player_combatant(combat, character, bonuses, slot, rows))

    level = max(c.level for c in characters)
    enemy_count = rng_int(seed, f"enemy_count:{combat.id}", 2, 4)
    enemies = [_enemy_combatant(combat, i, level, cols, rows) for i in range(enemy_count)]
    if template is not None:
        enemies[0].name = template.name
        enemies[0].hp = enemies[0].hp_max = BOSS_HP
    combatants.extend(enemies)
    db.add_all(combatants)
    await db.flush()

    if template is not None:
        db.add(
            BossInstance(
                combat_session_id=combat.id,
                combatant_id=enemies[0].id,
                boss_template_id=template.id,
                current_phase=1,
            )
        )

    ordered = sorted(combatants, key=lambda c: (-c.initiative, c.name))
    db.add_all(
        TurnOrder(combat_session_id=combat.id, turn_index=idx, combatant_id=c.id) for idx, c in enumerate(ordered)
    )

    walls = generate_walls(seed, cols, rows)
    await open_combat_board(
        db, campaign.id, combat.id, seed=seed, cols=cols, rows=rows, blocked=walls, reason=reason
    )

    first = ordered[0]
    await append_event(
        db,
        combat,
        "round_start",
        {
            "round_index": 0,
            "initiative_snapshot": [
                {"combatant_id": c.id, "name": c.name, "initiative": c.initiative} for c in ordered
            ],
        },
    )
    await append_event(db, combat, "turn_start", {"actor_combatant_id": first.id}, first.id)

    logger.info(
        "Combat %s started in campaign %s: seed=%s players=%s enemies=%s",
        combat.id,
        campaign.id,
        seed,
        len(characters),
        enemy_count,
    )
    return {
        "ok": True,
        "combat_session_id": combat.id,
        "seed": seed,
        "turn_order": [c.id for c in ordered],
        "current_actor_combatant_id": first.id,
    }


# ---------------------------------------------------------------------------
# Turn passes
# ---------------------------------------------------------------------------

async def _status_pass(db: AsyncSession, state: CombatState, actor: Combatant, phase: str) -> None:
    combat = state.combat
    tick = ledger.resolve_status_tick(actor.statuses, actor.hp, actor.hp_max, combat.turn_number, phase)
    actor.statuses = tick.statuses
    if phase == "start":
        actor.hp = tick.hp
    if tick.damage or tick.healing or tick.expired:
        await append_event(
            db,
            combat,
            "status_tick",
            {
                "target_combatant_id": actor.id,
                "phase": phase,
                "damage": tick.damage,
                "healing": tick.healing,
                "hp_after": actor.hp,
                "expired": tick.expired,
            },
            actor.id,
        )
    if phase == "start" and not tick.is_alive and actor.is_alive:
        actor.is_alive = False
        await append_event(
            db, combat, "death", {"target_combatant_id": actor.id, "by": {"status_tick": True}}, actor.id
        )


async def end_of_turn(db: AsyncSession, state: CombatState, actor: Combatant) -> None:
    await _status_pass(db, state, actor, "end")


async def advance_turn(db: AsyncSession, state: CombatState) -> Combatant | None:
    """Move to the next living combatant and open its turn.

    Returns the new actor, or None when nobody is left to act or the
    start-of-turn pass ended the fight.
    """
    combat = state.combat
    previous = state.current_actor
    await append_event(
        db,
        combat,
        "turn_end",
        {"actor_combatant_id": previous.id if previous is not None else None},
        previous.id if previous is not None else None,
    )
    while True:
        idx = next_alive_index(state.order, combat.current_turn_index, state.alive_ids)
        if idx is None:
            return None
        combat.current_turn_index = idx
        combat.turn_number += 1
        actor = state.by_id[state.order[idx]]
        await _status_pass(db, state, actor, "start")
        if actor.is_alive:
            await append_event(db, combat, "turn_start", {"actor_combatant_id": actor.id}, actor.id)
            return actor
        if check_end(state.combatants).ended:
            return None


# ---------------------------------------------------------------------------
# Use skill
# ---------------------------------------------------------------------------

async def use_skill(
    db: AsyncSession,
    campaign_id: int,
    session_id: int,
    user: User,
    *,
    actor_combatant_id: int,
    skill_id: str,
    target: TargetRequest,
) -> dict:
    combat = await get_combat_session(db, campaign_id, session_id)
    if combat.status != CombatStatus.active:
        raise ConflictError("Combat is not active", code="combat_inactive")
    await claim_session(db, combat)
    state = await load_state(db, combat)

    actor = state.current_actor
    if actor is None or actor.id != actor_combatant_id:
        raise ConflictError("Not your turn", code="not_your_turn")
    if not actor.is_alive:
        raise ConflictError("Actor is dead", code="actor_dead")
    if actor.player_id != user.id:
        raise AccessDeniedError("You do not control this combatant", code="not_your_combatant")

    skill = await load_skill(db, skill_id, actor)
    if not skill.usable:
        raise ConflictError("Skill is not usable in combat", code="skill_not_usable")
    if not skill.builtin and skill.character_id != actor.character_id:
        raise AccessDeniedError("Skill does not belong to this combatant", code="skill_not_owned")

    turn = combat.turn_number
    if skill.id == BASIC_MOVE and has_moved_this_turn(actor, turn):
        raise ConflictError("Move already used this turn", code="move_spent")
    remaining = ledger.cooldown_remaining(actor.statuses, skill.id, turn)
    if remaining > 0:
        raise ConflictError(f"Skill is on cooldown ({remaining} turns remaining)", code="on_cooldown")
    if skill.cost_amount > actor.power:
        raise ConflictError("Not enough power", code="insufficient_power")

    resolution = resolve_targets(actor, skill, target, state.combatants, state.blocked)
    events = apply_skill(
        Cast(
            seed=combat.seed,
            turn_number=turn,
            actor=actor,
            skill=skill,
            resolution=resolution,
            combatants=state.combatants,
            blocked=state.blocked,
            cols=state.cols,
            rows=state.rows,
        )
    )
    await append_events(db, combat, events)
    logger.info(
        "Combat %s turn %s: %s used %s (%s events)", combat.id, turn, actor.id, skill.id, len(events)
    )

    if not skill.ends_turn:
        return {
            "ok": True,
            "moved": True,
            "next_turn_index": combat.current_turn_index,
            "next_actor_combatant_id": actor.id,
        }

    await end_of_turn(db, state, actor)
    if check_end(state.combatants).ended:
        outcome = await settle_combat(db, combat, state.combatants, "combat_use_skill")
        return {"ok": True, "ended": True, "outcome": outcome}

    next_actor = await advance_turn(db, state)
    if next_actor is None:
        outcome = await settle_combat(db, combat, state.combatants, "combat_use_skill")
        return {"ok": True, "ended": True, "outcome": outcome}
    return {
        "ok": True,
        "next_turn_index": combat.current_turn_index,
        "next_actor_combatant_id": next_actor.id,
    }


# ---------------------------------------------------------------------------
# Tick
# ---------------------------------------------------------------------------

async def _boss_pool(db: AsyncSession, state: CombatState, actor: Combatant) -> tuple[str, ...] | None:
    """Active phase skill pool for a boss actor (after any phase shift), else None."""
    instance = await get_boss_instance(db, state.combat.id, actor.id)
    if instance is None:
        return None
    result = await db.execute(select(BossTemplate).where(BossTemplate.id == instance.boss_template_id))
    template = result.scalar_one_or_none()
    phases = boss_rules.parse_phases(template.phases_json if template is not None else [])
    hp_pct = boss_rules.hp_fraction(actor.hp, actor.hp_max)
    phase = boss_rules.advance_phase(instance.current_phase, phases, hp_pct)
    if phase != instance.current_phase:
        instance.current_phase = phase
        await append_event(
            db,
            state.combat,
            "phase_shift",
            {"combatant_id": actor.id, "phase": phase, "hp_pct": round(hp_pct, 4)},
            actor.id,
        )
        logger.info("Boss %s entered phase %s at %.0f%% hp", actor.id, phase, hp_pct * 100)
    return boss_rules.skill_pool(phases, instance.current_phase)


async def tick_combat(db: AsyncSession, campaign_id: int, session_id: int, max_steps: int = 1) -> dict:
    combat = await get_combat_session(db, campaign_id, session_id)
    if combat.status == CombatStatus.active:
        await claim_session(db, combat)
    ticks = 0
    requires_player_action = False

    for _ in range(max_steps):
        if combat.status != CombatStatus.active:
            break
        state = await load_state(db, combat)
        actor = state.current_actor

        if actor is None or not actor.is_alive:
            if await advance_turn(db, state) is None:
                await settle_combat(db, combat, state.combatants, "combat_tick")
                break
            continue
        if actor.entity_type == EntityType.player:
            requires_player_action = True
            break

        pool = await _boss_pool(db, state, actor)
        plan = plan_turn(combat.seed, combat.turn_number, actor, state.combatants, pool)
        if plan is None:
            await settle_combat(db, combat, state.combatants, "combat_tick")
            break

        events = apply_skill(
            Cast(
                seed=combat.seed,
                turn_number=combat.turn_number,
                actor=actor,
                skill=plan.skill,
                resolution=fixed_targets(actor, plan.targets),
                combatants=state.combatants,
                blocked=state.blocked,
                cols=state.cols,
                rows=state.rows,
                label_prefix=f"tick:{combat.id}:",
            )
        )
        await append_events(db, combat, events)
        await end_of_turn(db, state, actor)
        ticks += 1
        logger.debug("Combat %s tick: %s used %s", combat.id, actor.id, plan.skill.id)

        if check_end(state.combatants).ended or await advance_turn(db, state) is None:
            await settle_combat(db, combat, state.combatants, "combat_tick")
            break

    ended = combat.status != CombatStatus.active
    next_actor_id = None
    if not ended:
        state = await load_state(db, combat)
        current = state.current_actor
        next_actor_id = current.id if current is not None else None
        if current is not None and current.entity_type == EntityType.player and current.is_alive:
            requires_player_action = True

    return {
        "ok": True,
        "ticks": ticks,
        "ended": ended,
        "requires_player_action": requires_player_action,
        "current_turn_index": combat.current_turn_index,
        "next_actor_combatant_id": next_actor_id,
    }


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

async def get_state(db: AsyncSession, campaign_id: int, session_id: int) -> CombatState:
    combat = await get_combat_session(db, campaign_id, session_id)
    return await load_state(db, combat)
