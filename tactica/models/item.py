import enum
from datetime import datetime

from sqlalchemy import JSON, DateTime, Enum, ForeignKey, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from tactica.models.base import Base


class ItemContainer(str, enum.Enum):
    backpack = "backpack"
    equipment = "equipment"


class Item(Base):
    __tablename__ = "items"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    campaign_id: Mapped[int] = mapped_column(ForeignKey("campaigns.id"), nullable=False, index=True)
    owner_character_id: Mapped[int | None] = mapped_column(
        ForeignKey("characters.id"), nullable=True, default=None
    )
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    rarity: Mapped[str] = mapped_column(String(30), nullable=False)
    slot: Mapped[str] = mapped_column(String(30), nullable=False)
    # Additive bonuses keyed by combatant stat (offense, defense, ..., weapon_power, armor_power, resist, hp)
    stat_mods: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    item_power: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    required_level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    drop_tier: Mapped[str] = mapped_column(String(30), nullable=False, default="common")
    bind_policy: Mapped[str] = mapped_column(String(30), nullable=False, default="unbound")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class InventoryEntry(Base):
    __tablename__ = "inventory"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    character_id: Mapped[int] = mapped_column(ForeignKey("characters.id"), nullable=False, index=True)
    item_id: Mapped[int] = mapped_column(ForeignKey("items.id"), nullable=False)
    container: Mapped[ItemContainer] = mapped_column(
        Enum(ItemContainer), nullable=False, default=ItemContainer.backpack
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)


class LootDrop(Base):
    """At most one combat drop per (session, character)."""

    __tablename__ = "loot_drops"
    __table_args__ = (UniqueConstraint("combat_session_id", "character_id", name="uq_loot_drop_once"),)

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    campaign_id: Mapped[int] = mapped_column(ForeignKey("campaigns.id"), nullable=False, index=True)
    combat_session_id: Mapped[int] = mapped_column(ForeignKey("combat_sessions.id"), nullable=False)
    character_id: Mapped[int] = mapped_column(ForeignKey("characters.id"), nullable=False)
    item_id: Mapped[int] = mapped_column(ForeignKey("items.id"), nullable=False)
    source: Mapped[str] = mapped_column(String(50), nullable=False, default="combat")
    rarity: Mapped[str] = mapped_column(String(30), nullable=False)
    budget_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    payload: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
