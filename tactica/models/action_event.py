"""ActionEvent model: the append-only combat log."""

from datetime import datetime

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from tactica.models.base import Base


class ActionEvent(Base):
    """One entry in a session's event log.

    sequence is strictly increasing per session and is the canonical order.
    Rows are never updated or deleted.
    """

    __tablename__ = "action_events"
    __table_args__ = (UniqueConstraint("combat_session_id", "sequence", name="uq_action_event_sequence"),)

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    combat_session_id: Mapped[int] = mapped_column(
        ForeignKey("combat_sessions.id"), nullable=False, index=True
    )
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    turn_index: Mapped[int] = mapped_column(Integer, nullable=False)
    turn_number: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    event_type: Mapped[str] = mapped_column(String(50), nullable=False)
    actor_combatant_id: Mapped[int | None] = mapped_column(
        ForeignKey("combatants.id"), nullable=True, default=None
    )
    payload: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
