from tactica.models.base import Base  # noqa: F401
from tactica.models.action_event import ActionEvent  # noqa: F401
from tactica.models.board import Board, BoardStatus, BoardTransition, BoardType  # noqa: F401
from tactica.models.boss import BossInstance, BossTemplate  # noqa: F401
from tactica.models.campaign import Campaign, CampaignMember  # noqa: F401
from tactica.models.character import Character, ProgressionEvent  # noqa: F401
from tactica.models.combat_session import (  # noqa: F401
    Combatant,
    CombatSession,
    CombatStatus,
    EntityType,
    TurnOrder,
)
from tactica.models.faction import Faction, FactionReputation, MemoryEvent, ReputationEvent  # noqa: F401
from tactica.models.item import InventoryEntry, Item, ItemContainer, LootDrop  # noqa: F401
from tactica.models.request_guard import IdempotencyRecord, RateLimitBucket  # noqa: F401
from tactica.models.skill import Skill, SkillKind, TargetingKind  # noqa: F401
from tactica.models.user import User  # noqa: F401
