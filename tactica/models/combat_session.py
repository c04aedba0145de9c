"""Combat session, combatant and turn order models."""

import enum
from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, Enum, ForeignKey, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from tactica.models.base import Base


class CombatStatus(str, enum.Enum):
    active = "active"
    ended = "ended"


class EntityType(str, enum.Enum):
    player = "player"
    npc = "npc"
    summon = "summon"


class CombatSession(Base):
    """One encounter.

    current_turn_index points into the turn order and wraps.  turn_number
    counts every turn taken and never wraps; status expiry and cooldowns
    are measured against it.  version is a compare-and-set counter that
    every mutating request bumps once.
    """

    __tablename__ = "combat_sessions"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    campaign_id: Mapped[int] = mapped_column(ForeignKey("campaigns.id"), nullable=False, index=True)
    seed: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[CombatStatus] = mapped_column(
        Enum(CombatStatus), nullable=False, default=CombatStatus.active
    )
    current_turn_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    turn_number: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1, server_default="1")
    reason: Mapped[str | None] = mapped_column(String(255), nullable=True, default=None)
    outcome: Mapped[dict | None] = mapped_column(JSON, nullable=True, default=None)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    ended_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, default=None)


class Combatant(Base):
    __tablename__ = "combatants"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    combat_session_id: Mapped[int] = mapped_column(
        ForeignKey("combat_sessions.id"), nullable=False, index=True
    )
    entity_type: Mapped[EntityType] = mapped_column(Enum(EntityType), nullable=False)
    # Owning user for player characters and their summons; None for enemies
    player_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True, default=None)
    character_id: Mapped[int | None] = mapped_column(
        ForeignKey("characters.id"), nullable=True, default=None
    )
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    offense: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    defense: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    control: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    support: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    mobility: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    utility: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    weapon_power: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # Depletable shield, absorbs damage before hp
    armor: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    resist: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    hp: Mapped[int] = mapped_column(Integer, nullable=False, default=100)
    hp_max: Mapped[int] = mapped_column(Integer, nullable=False, default=100)
    power: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    power_max: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    x: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    y: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    initiative: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_alive: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    # Ordered list of {id, expires_turn, stacks, data}
    statuses: Mapped[list] = mapped_column(JSON, nullable=False, default=list)


class TurnOrder(Base):
    __tablename__ = "turn_order"
    __table_args__ = (UniqueConstraint("combat_session_id", "turn_index", name="uq_turn_order_slot"),)

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    combat_session_id: Mapped[int] = mapped_column(
        ForeignKey("combat_sessions.id"), nullable=False, index=True
    )
    turn_index: Mapped[int] = mapped_column(Integer, nullable=False)
    combatant_id: Mapped[int] = mapped_column(ForeignKey("combatants.id"), nullable=False)
