"""Direct service-level tests for rewards, request guards and the event log.

These call service functions directly via db_session (not via HTTP API).

Covers:
- reward_service.xp_to_next_level / apply_xp / award_xp (once per session)
- reward_service.loot_rarity / roll_loot / grant_loot (once per session)
- reward_service.apply_reputation_delta
- settlement_service.xp_per_survivor
- request_guard_service.enforce_rate_limit (fixed window)
- request_guard_service.claim_idempotency_key / store_idempotent_response
- event_service.append_event / list_events
- combat_service.claim_session (compare-and-set on the session version)
- combat router _run_mutation conflict mapping
"""

import pytest
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tactica.errors import ConflictError, RateLimitedError
from tactica.models.campaign import Campaign
from tactica.models.character import Character
from tactica.models.combat_session import CombatSession, CombatStatus
from tactica.models.faction import Faction, ReputationEvent
from tactica.models.item import InventoryEntry
from tactica.models.user import User
from tactica.routers.combat import _run_mutation
from tactica.services import request_guard_service, reward_service
from tactica.services.combat_service import claim_session
from tactica.services.event_service import append_event, list_events
from tactica.services.request_guard_service import (
    claim_idempotency_key,
    enforce_rate_limit,
    scoped_idempotency_key,
    store_idempotent_response,
)
from tactica.services.settlement_service import xp_per_survivor


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def _make_user(db: AsyncSession, tag: str) -> User:
    user = User(email=f"svc_{tag}@test.com", username=f"svc_{tag}", hashed_password="x")
    db.add(user)
    await db.flush()
    return user


async def _make_world(db: AsyncSession):
    """User, campaign, level 1 character and an active combat session."""
    user = await _make_user(db, "hero")
    campaign = Campaign(name="Svc", owner_id=user.id)
    db.add(campaign)
    await db.flush()
    character = Character(campaign_id=campaign.id, player_id=user.id, name="Hero")
    combat = CombatSession(campaign_id=campaign.id, seed=99, status=CombatStatus.active)
    db.add_all([character, combat])
    await db.flush()
    await db.refresh(character)
    return user, campaign, character, combat


def _transient_character(level=1, xp=0, stat=10) -> Character:
    return Character(
        level=level, xp=xp, offense=stat, defense=stat, control=stat, support=stat, mobility=stat, utility=stat
    )


# ---------------------------------------------------------------------------
# XP
# ---------------------------------------------------------------------------

class TestXp:
    def test_curve_bounds(self):
        assert reward_service.xp_to_next_level(1) >= 100
        assert reward_service.xp_to_next_level(50) >= reward_service.xp_to_next_level(1)
        assert reward_service.xp_to_next_level(reward_service.MAX_LEVEL) == 0

    def test_level_up_raises_every_stat(self):
        character = _transient_character()
        summary = reward_service.apply_xp(character, reward_service.xp_to_next_level(1) + 5)
        assert summary["levels_gained"] == 1
        assert character.level == 2
        assert character.xp == 5
        assert character.offense == 11
        assert character.utility == 11

    def test_partial_bar(self):
        character = _transient_character()
        summary = reward_service.apply_xp(character, 10)
        assert summary == {
            "level": 1,
            "xp": 10,
            "levels_gained": 0,
            "xp_to_next": reward_service.xp_to_next_level(1),
        }

    def test_stats_capped(self):
        character = _transient_character(stat=100)
        reward_service.apply_xp(character, 10_000)
        assert character.level > 2
        assert character.defense == 100

    def test_negative_amount_ignored(self):
        character = _transient_character(xp=40)
        reward_service.apply_xp(character, -500)
        assert character.xp == 40

    async def test_award_once_per_session(self, db_session: AsyncSession):
        _, _, character, combat = await _make_world(db_session)
        first = await reward_service.award_xp(db_session, character, combat.id, 50)
        assert first is not None
        assert await reward_service.award_xp(db_session, character, combat.id, 50) is None
        assert character.xp == 50

    def test_xp_per_survivor(self):
        assert xp_per_survivor(False, 4, 0) == 0
        assert xp_per_survivor(True, 4, 0) == 180 + 4 * 35 + 220
        assert xp_per_survivor(True, 4, 1) == 180 + 4 * 35


# ---------------------------------------------------------------------------
# Loot
# ---------------------------------------------------------------------------

class TestLoot:
    def test_rarity_thresholds(self):
        assert reward_service.loot_rarity(421) == "legendary"
        assert reward_service.loot_rarity(420) == "unique"
        assert reward_service.loot_rarity(281) == "unique"
        assert reward_service.loot_rarity(280) == "magical"

    def test_roll_is_seeded(self):
        assert reward_service.roll_loot(7, 3, 5, "unique") == reward_service.roll_loot(7, 3, 5, "unique")

    def test_roll_fields(self):
        loot = reward_service.roll_loot(7, 3, 5, "legendary")
        assert loot["slot"] in reward_service.LOOT_SLOTS
        assert loot["required_level"] == 4
        assert loot["item_power"] == 13
        assert loot["drop_tier"] == "boss"
        assert loot["bind_policy"] == "bind_on_equip"
        assert 1 <= loot["stat_mods"]["offense"] <= 8

    def test_magical_is_unbound(self):
        assert reward_service.roll_loot(1, 1, 1, "magical")["bind_policy"] == "unbound"

    async def test_grant_once_per_session(self, db_session: AsyncSession):
        _, campaign, character, combat = await _make_world(db_session)
        kwargs = dict(
            seed=combat.seed,
            campaign_id=campaign.id,
            combat_session_id=combat.id,
            character=character,
            rarity="magical",
            source="test",
        )
        item = await reward_service.grant_loot(db_session, **kwargs)
        assert item is not None
        assert item.owner_character_id == character.id
        assert await reward_service.grant_loot(db_session, **kwargs) is None

        entries = (await db_session.execute(select(InventoryEntry))).scalars().all()
        assert len(entries) == 1


# ---------------------------------------------------------------------------
# Reputation
# ---------------------------------------------------------------------------

class TestReputation:
    async def test_accumulates_and_clamps(self, db_session: AsyncSession):
        user, campaign, _, _ = await _make_world(db_session)
        faction = Faction(campaign_id=campaign.id, name="Ember Guild")
        db_session.add(faction)
        await db_session.flush()
        args = dict(campaign_id=campaign.id, faction_id=faction.id, player_id=user.id, severity=9, evidence={})

        assert await reward_service.apply_reputation_delta(db_session, delta=6, **args) == 6
        assert await reward_service.apply_reputation_delta(db_session, delta=-4, **args) == 2
        assert await reward_service.apply_reputation_delta(db_session, delta=5000, **args) == reward_service.REP_LIMIT
        assert await reward_service.apply_reputation_delta(db_session, delta=0, **args) is None

        events = (await db_session.execute(select(ReputationEvent))).scalars().all()
        assert [e.delta for e in events] == [6, -4, 1000]
        assert {e.severity for e in events} == {5}


# ---------------------------------------------------------------------------
# Request guards
# ---------------------------------------------------------------------------

class TestRateLimit:
    async def test_fixed_window(self, db_session: AsyncSession):
        assert await enforce_rate_limit(db_session, "tick", "1.2.3.4", 2, window_seconds=60, now=1000.0) == 1
        assert await enforce_rate_limit(db_session, "tick", "1.2.3.4", 2, window_seconds=60, now=1010.0) == 2
        with pytest.raises(RateLimitedError) as exc:
            await enforce_rate_limit(db_session, "tick", "1.2.3.4", 2, window_seconds=60, now=1020.0)
        assert exc.value.retry_after == 40

    async def test_window_resets(self, db_session: AsyncSession):
        await enforce_rate_limit(db_session, "tick", "1.2.3.4", 1, window_seconds=60, now=1000.0)
        assert await enforce_rate_limit(db_session, "tick", "1.2.3.4", 1, window_seconds=60, now=1061.0) == 1

    async def test_buckets_are_per_route_and_client(self, db_session: AsyncSession):
        await enforce_rate_limit(db_session, "tick", "1.2.3.4", 1, now=1000.0)
        assert await enforce_rate_limit(db_session, "start", "1.2.3.4", 1, now=1000.0) == 1
        assert await enforce_rate_limit(db_session, "tick", "5.6.7.8", 1, now=1000.0) == 1

    async def test_bucket_created_by_concurrent_request_is_reused(self, db_session: AsyncSession, monkeypatch):
        await enforce_rate_limit(db_session, "tick", "1.2.3.4", 5, window_seconds=60, now=1000.0)
        real_get = request_guard_service._get_bucket
        calls = []

        async def get_missing_first(db, key):
            calls.append(key)
            if len(calls) == 1:
                return None
            return await real_get(db, key)

        monkeypatch.setattr(request_guard_service, "_get_bucket", get_missing_first)
        assert await enforce_rate_limit(db_session, "tick", "1.2.3.4", 5, window_seconds=60, now=1010.0) == 2
        assert len(calls) == 2


class TestIdempotency:
    def test_scoped_key(self):
        assert scoped_idempotency_key(3, "tick:1", " abc ") == "3:tick:1:abc"
        assert scoped_idempotency_key(3, "tick:1", "   ") is None
        assert scoped_idempotency_key(3, "tick:1", None) is None

    async def test_claim_store_replay(self, db_session: AsyncSession):
        assert await claim_idempotency_key(db_session, "1:tick:1:k", now=1000.0) is None
        await store_idempotent_response(db_session, "1:tick:1:k", '{"ok":true}', now=1000.0)
        stored = await claim_idempotency_key(db_session, "1:tick:1:k", now=1005.0)
        assert stored is not None
        assert stored.body == '{"ok":true}'
        assert stored.status_code == 200

    async def test_in_flight_conflicts(self, db_session: AsyncSession):
        await claim_idempotency_key(db_session, "1:tick:1:k", now=1000.0)
        with pytest.raises(ConflictError) as exc:
            await claim_idempotency_key(db_session, "1:tick:1:k", now=1001.0)
        assert exc.value.code == "idempotency_in_flight"

    async def test_expired_record_is_reclaimed(self, db_session: AsyncSession):
        await claim_idempotency_key(db_session, "1:tick:1:k", now=1000.0)
        await store_idempotent_response(db_session, "1:tick:1:k", "{}", now=1000.0)
        assert await claim_idempotency_key(db_session, "1:tick:1:k", now=5000.0) is None


# ---------------------------------------------------------------------------
# Event log
# ---------------------------------------------------------------------------

class TestEventLog:
    async def test_sequences_increase(self, db_session: AsyncSession):
        _, _, _, combat = await _make_world(db_session)
        for kind in ("round_start", "turn_start", "turn_end"):
            await append_event(db_session, combat, kind, {})
        events = await list_events(db_session, combat.id)
        assert [e.sequence for e in events] == [1, 2, 3]
        assert [e.event_type for e in events] == ["round_start", "turn_start", "turn_end"]

    async def test_list_after(self, db_session: AsyncSession):
        _, _, _, combat = await _make_world(db_session)
        for kind in ("round_start", "turn_start", "turn_end"):
            await append_event(db_session, combat, kind, {})
        events = await list_events(db_session, combat.id, after_sequence=1, limit=1)
        assert [e.sequence for e in events] == [2]


# ---------------------------------------------------------------------------
# Concurrent writers
# ---------------------------------------------------------------------------

class TestConcurrentWriters:
    async def test_claim_bumps_version(self, db_session: AsyncSession):
        _, _, _, combat = await _make_world(db_session)
        start = combat.version
        await claim_session(db_session, combat)
        await claim_session(db_session, combat)
        assert combat.version == start + 2

    async def test_stale_version_conflicts(self, db_session: AsyncSession):
        _, _, _, combat = await _make_world(db_session)
        # another request claims the session behind this one's back
        await db_session.execute(
            update(CombatSession)
            .where(CombatSession.id == combat.id)
            .values(version=CombatSession.version + 1)
            .execution_options(synchronize_session=False)
        )
        with pytest.raises(ConflictError) as exc:
            await claim_session(db_session, combat)
        assert exc.value.code == "concurrent_update"

    async def test_integrity_error_becomes_conflict(self, db_session: AsyncSession):
        async def duplicate_users():
            db_session.add(User(email="dup@test.com", username="dup_a", hashed_password="x"))
            db_session.add(User(email="dup@test.com", username="dup_b", hashed_password="x"))
            await db_session.flush()
            return {}

        with pytest.raises(ConflictError) as exc:
            await _run_mutation(db_session, None, duplicate_users)
        assert exc.value.code == "concurrent_update"
        count = (await db_session.execute(select(func.count(User.id)))).scalar_one()
        assert count == 0
