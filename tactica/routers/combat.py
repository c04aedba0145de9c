"""Combat router: start, tick, use-skill, state and event log.

Mutating routes are rate limited per client address and accept an
``X-Idempotency-Key`` header.  Each one commits once on success and rolls
back on any error; the idempotent response body is stored in that same
commit and replayed byte for byte on retry.
"""

import json
import logging
from typing import Awaitable, Callable

from fastapi import APIRouter, Depends, Header, Query, Request, Response
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tactica.combat.targeting import TargetRequest
from tactica.config import settings
from tactica.database import get_db
from tactica.dependencies import get_current_user
from tactica.errors import ConflictError
from tactica.models.user import User
from tactica.schemas.combat import (
    ActionEventResponse,
    CombatantResponse,
    CombatSessionResponse,
    CombatStateResponse,
    StartCombatRequest,
    TickRequest,
    TickResponse,
    UseSkillRequest,
)
from tactica.services.campaign_service import assert_campaign_access
from tactica.services.combat_service import get_combat_session, get_state, start_combat, tick_combat, use_skill
from tactica.services.event_service import list_events
from tactica.services.request_guard_service import (
    claim_idempotency_key,
    client_address,
    enforce_rate_limit,
    scoped_idempotency_key,
    store_idempotent_response,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/campaigns", tags=["combat"])


def _json_response(body: str, status_code: int = 200) -> Response:
    return Response(content=body, status_code=status_code, media_type="application/json")


async def _run_mutation(
    db: AsyncSession,
    idempotency_key: str | None,
    work: Callable[[], Awaitable[dict]],
) -> Response:
    try:
        if idempotency_key is not None:
            stored = await claim_idempotency_key(db, idempotency_key)
            if stored is not None:
                await db.rollback()
                return _json_response(stored.body, stored.status_code)
        result = await work()
        body = json.dumps(result, separators=(",", ":"))
        if idempotency_key is not None:
            await store_idempotent_response(db, idempotency_key, body)
        await db.commit()
    except IntegrityError:
        # a concurrent request wrote the same event sequence or key first
        await db.rollback()
        logger.info("Mutation lost a write race; reporting conflict")
        raise ConflictError("Combat was updated by another request", code="concurrent_update") from None
    except Exception:
        await db.rollback()
        raise
    return _json_response(body)


@router.post("/{campaign_id}/combat/start")
async def start_combat_endpoint(
    campaign_id: int,
    request: Request,
    body: StartCombatRequest | None = None,
    x_idempotency_key: str | None = Header(default=None),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    await enforce_rate_limit(db, "combat_start", client_address(request), settings.rate_limit_start)
    campaign = await assert_campaign_access(db, campaign_id, current_user)
    body = body or StartCombatRequest()
    key = scoped_idempotency_key(current_user.id, f"start:{campaign_id}", x_idempotency_key)
    return await _run_mutation(
        db,
        key,
        lambda: start_combat(
            db, campaign, reason=body.reason, seed=body.seed, boss_template_id=body.boss_template_id
        ),
    )


@router.post("/{campaign_id}/combat/{session_id}/tick", response_model=TickResponse)
async def tick_combat_endpoint(
    campaign_id: int,
    session_id: int,
    request: Request,
    body: TickRequest | None = None,
    x_idempotency_key: str | None = Header(default=None),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Run up to ``max_steps`` AI-controlled turns."""
    await enforce_rate_limit(db, "combat_tick", client_address(request), settings.rate_limit_tick)
    await assert_campaign_access(db, campaign_id, current_user)
    body = body or TickRequest()
    key = scoped_idempotency_key(current_user.id, f"tick:{session_id}", x_idempotency_key)

    async def run_ticks() -> dict:
        result = await tick_combat(db, campaign_id, session_id, body.max_steps)
        return TickResponse.model_validate(result).model_dump()

    return await _run_mutation(db, key, run_ticks)


@router.post("/{campaign_id}/combat/{session_id}/use-skill")
async def use_skill_endpoint(
    campaign_id: int,
    session_id: int,
    body: UseSkillRequest,
    request: Request,
    x_idempotency_key: str | None = Header(default=None),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Cast a skill for the combatant whose turn it is."""
    await enforce_rate_limit(db, "combat_use_skill", client_address(request), settings.rate_limit_use_skill)
    await assert_campaign_access(db, campaign_id, current_user)
    key = scoped_idempotency_key(current_user.id, f"use_skill:{session_id}", x_idempotency_key)
    target = TargetRequest(
        kind=body.target.kind,
        combatant_id=getattr(body.target, "combatant_id", None),
        x=getattr(body.target, "x", None),
        y=getattr(body.target, "y", None),
    )
    return await _run_mutation(
        db,
        key,
        lambda: use_skill(
            db,
            campaign_id,
            session_id,
            current_user,
            actor_combatant_id=body.actor_combatant_id,
            skill_id=body.skill_id,
            target=target,
        ),
    )


@router.get("/{campaign_id}/combat/{session_id}", response_model=CombatStateResponse)
async def get_combat_state_endpoint(
    campaign_id: int,
    session_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    await assert_campaign_access(db, campaign_id, current_user)
    state = await get_state(db, campaign_id, session_id)
    current = state.current_actor
    return CombatStateResponse(
        session=CombatSessionResponse.model_validate(state.combat),
        combatants=[CombatantResponse.model_validate(c) for c in state.combatants],
        turn_order=state.order,
        current_actor_combatant_id=current.id if current is not None else None,
        grid={"width": state.cols, "height": state.rows},
        blocked_tiles=[{"x": x, "y": y} for x, y in sorted(state.blocked)],
    )


@router.get("/{campaign_id}/combat/{session_id}/events", response_model=list[ActionEventResponse])
async def list_combat_events_endpoint(
    campaign_id: int,
    session_id: int,
    after: int = Query(default=0, ge=0, description="Only events with a greater sequence"),
    limit: int = Query(default=500, ge=1, le=1000),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Ordered action log for a session."""
    await assert_campaign_access(db, campaign_id, current_user)
    await get_combat_session(db, campaign_id, session_id)
    return await list_events(db, session_id, after_sequence=after, limit=limit)
