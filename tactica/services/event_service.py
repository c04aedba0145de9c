"""Append-only combat event log.

Sequences are per session and strictly increasing; the unique constraint on
(combat_session_id, sequence) rejects a concurrent writer that raced for
the same number.
"""

from typing import Iterable

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from tactica.combat.applier import CombatEvent
from tactica.models.action_event import ActionEvent
from tactica.models.combat_session import CombatSession


async def next_sequence(db: AsyncSession, combat_session_id: int) -> int:
    result = await db.execute(
        select(func.max(ActionEvent.sequence)).where(ActionEvent.combat_session_id == combat_session_id)
    )
    current = result.scalar_one_or_none()
    return (current or 0) + 1


async def append_event(
    db: AsyncSession,
    combat: CombatSession,
    event_type: str,
    payload: dict,
    actor_combatant_id: int | None = None,
) -> ActionEvent:
    event = ActionEvent(
        combat_session_id=combat.id,
        sequence=await next_sequence(db, combat.id),
        turn_index=combat.current_turn_index,
        turn_number=combat.turn_number,
        event_type=event_type,
        actor_combatant_id=actor_combatant_id,
        payload=payload,
    )
    db.add(event)
    await db.flush()
    return event


async def append_events(db: AsyncSession, combat: CombatSession, events: Iterable[CombatEvent]) -> int:
    count = 0
    for event in events:
        await append_event(db, combat, event.event_type, event.payload, event.actor_combatant_id)
        count += 1
    return count


async def list_events(
    db: AsyncSession, combat_session_id: int, after_sequence: int = 0, limit: int = 500
) -> list[ActionEvent]:
    result = await db.execute(
        select(ActionEvent)
        .where(ActionEvent.combat_session_id == combat_session_id, ActionEvent.sequence > after_sequence)
        .order_by(ActionEvent.sequence)
        .limit(limit)
    )
    return list(result.scalars().all())
