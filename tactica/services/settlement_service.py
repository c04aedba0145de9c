"""End-of-combat settlement.

settle_combat() closes a session whose end condition holds: it records the
outcome, hands out XP and loot to surviving player characters, nudges
faction reputation and campaign memory, restores the pre-combat board and
appends ``combat_end``.  Reputation and memory writes are best effort: each
runs in a savepoint and a failure is logged, not raised.
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tactica.combat.scheduler import check_end
from tactica.errors import sanitize_error
from tactica.models.character import Character
from tactica.models.combat_session import CombatSession, CombatStatus, EntityType
from tactica.services import reward_service
from tactica.services.board_service import close_combat_board
from tactica.services.event_service import append_event

logger = logging.getLogger(__name__)

VICTORY_REP_DELTA = 6
DEFEAT_REP_DELTA = -4


def xp_per_survivor(won: bool, total_combatants: int, npcs_alive: int) -> int:
    if not won:
        return 0
    return 180 + total_combatants * 35 + (220 if npcs_alive == 0 else 0)


async def _get_character(db: AsyncSession, character_id: int) -> Character | None:
    result = await db.execute(select(Character).where(Character.id == character_id))
    return result.scalar_one_or_none()


async def _best_effort(db: AsyncSession, combat: CombatSession, step: str, coro_factory) -> None:
    try:
        async with db.begin_nested():
            await coro_factory()
    except SQLAlchemyError as exc:
        logger.warning(
            "Combat %s settlement %s failed: %s", combat.id, step, sanitize_error(exc)["message"]
        )


async def settle_combat(db: AsyncSession, combat: CombatSession, combatants: list, source: str) -> dict:
    end = check_end(combatants)
    won = end.won
    xp_per = xp_per_survivor(won, len(combatants), end.alive_npcs)

    combat.status = CombatStatus.ended
    combat.ended_at = datetime.now(timezone.utc)
    combat.outcome = {**end.to_dict(), "xp_per": xp_per}

    faction = await reward_service.primary_faction(db, combat.campaign_id)
    xp_total = 0
    loot_names: list[str] = []

    players = [c for c in combatants if c.entity_type == EntityType.player]
    if won:
        for player in players:
            if not player.is_alive or player.character_id is None:
                continue
            character = await _get_character(db, player.character_id)
            if character is None:
                continue
            xp_result = await reward_service.award_xp(db, character, combat.id, xp_per)
            if xp_result is not None:
                xp_total += xp_per
                await append_event(
                    db, combat, "xp_gain", {"character_id": character.id, "amount": xp_per, "result": xp_result}
                )
            item = await reward_service.grant_loot(
                db,
                seed=combat.seed,
                campaign_id=combat.campaign_id,
                combat_session_id=combat.id,
                character=character,
                rarity=reward_service.loot_rarity(xp_per),
                source=source,
            )
            if item is not None:
                loot_names.append(item.name)
                await append_event(
                    db,
                    combat,
                    "loot_drop",
                    {"character_id": character.id, "item_id": item.id, "rarity": item.rarity, "name": item.name},
                )
            if player.player_id is None or (xp_result is None and item is None):
                continue

            evidence = {
                "reason": "combat_victory",
                "combat_session_id": combat.id,
                "xp_awarded": xp_per,
                "loot_item_id": item.id if item is not None else None,
            }

            async def record_victory(player_id=player.player_id, evidence=evidence):
                if faction is not None:
                    await reward_service.apply_reputation_delta(
                        db,
                        campaign_id=combat.campaign_id,
                        faction_id=faction.id,
                        player_id=player_id,
                        delta=VICTORY_REP_DELTA,
                        severity=2,
                        evidence=evidence,
                    )
                await reward_service.append_memory_event(
                    db,
                    campaign_id=combat.campaign_id,
                    player_id=player_id,
                    category="quest_thread",
                    severity=2,
                    payload={
                        **evidence,
                        "type": "combat_victory",
                        "faction_id": faction.id if faction is not None else None,
                        "faction_name": faction.name if faction is not None else None,
                    },
                )

            await _best_effort(db, combat, "victory record", record_victory)
    else:
        for player in players:
            if player.player_id is None:
                continue

            async def record_setback(player=player):
                await reward_service.append_memory_event(
                    db,
                    campaign_id=combat.campaign_id,
                    player_id=player.player_id,
                    category="quest_thread",
                    severity=3,
                    payload={"type": "combat_setback", "combat_session_id": combat.id, "survived": player.is_alive},
                )
                if faction is not None:
                    await reward_service.apply_reputation_delta(
                        db,
                        campaign_id=combat.campaign_id,
                        faction_id=faction.id,
                        player_id=player.player_id,
                        delta=DEFEAT_REP_DELTA,
                        severity=2,
                        evidence={"reason": "combat_loss", "combat_session_id": combat.id},
                    )

            await _best_effort(db, combat, "setback record", record_setback)

    resolution = {"won": won, "xp_gained": xp_total, "loot": loot_names[:8]}
    await close_combat_board(db, combat.campaign_id, combat.id, resolution)
    await append_event(db, combat, "combat_end", end.to_dict())

    logger.info(
        "Combat %s settled: won=%s players=%s npcs=%s xp_per=%s",
        combat.id,
        won,
        end.alive_players,
        end.alive_npcs,
        xp_per,
    )
    return end.to_dict()
