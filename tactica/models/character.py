from datetime import datetime

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from tactica.models.base import Base


class Character(Base):
    """A player's persistent character.  Core stats are on a 0-100 scale."""

    __tablename__ = "characters"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    campaign_id: Mapped[int] = mapped_column(ForeignKey("campaigns.id"), nullable=False, index=True)
    player_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    xp: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    offense: Mapped[int] = mapped_column(Integer, nullable=False, default=10)
    defense: Mapped[int] = mapped_column(Integer, nullable=False, default=10)
    control: Mapped[int] = mapped_column(Integer, nullable=False, default=10)
    support: Mapped[int] = mapped_column(Integer, nullable=False, default=10)
    mobility: Mapped[int] = mapped_column(Integer, nullable=False, default=10)
    utility: Mapped[int] = mapped_column(Integer, nullable=False, default=10)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class ProgressionEvent(Base):
    """Audit row for XP grants; one xp_applied row per (character, combat session)."""

    __tablename__ = "progression_events"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    character_id: Mapped[int] = mapped_column(ForeignKey("characters.id"), nullable=False, index=True)
    event_type: Mapped[str] = mapped_column(String(50), nullable=False)
    combat_session_id: Mapped[int | None] = mapped_column(
        ForeignKey("combat_sessions.id"), nullable=True, index=True
    )
    payload: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
