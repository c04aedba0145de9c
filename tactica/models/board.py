import enum
from datetime import datetime

from sqlalchemy import JSON, DateTime, Enum, ForeignKey, String, func
from sqlalchemy.orm import Mapped, mapped_column

from tactica.models.base import Base


class BoardType(str, enum.Enum):
    town = "town"
    dungeon = "dungeon"
    travel = "travel"
    combat = "combat"


class BoardStatus(str, enum.Enum):
    active = "active"
    archived = "archived"


class Board(Base):
    """A campaign map.  Exactly one board per campaign is active at a time."""

    __tablename__ = "boards"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    campaign_id: Mapped[int] = mapped_column(ForeignKey("campaigns.id"), nullable=False, index=True)
    board_type: Mapped[BoardType] = mapped_column(Enum(BoardType), nullable=False)
    status: Mapped[BoardStatus] = mapped_column(Enum(BoardStatus), nullable=False, default=BoardStatus.active)
    combat_session_id: Mapped[int | None] = mapped_column(
        ForeignKey("combat_sessions.id"), nullable=True, default=None
    )
    # Combat boards: {grid: {width, height}, blocked_tiles: [{x, y}], seed, return_board_id}
    state_json: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class BoardTransition(Base):
    __tablename__ = "board_transitions"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    campaign_id: Mapped[int] = mapped_column(ForeignKey("campaigns.id"), nullable=False, index=True)
    from_board_type: Mapped[BoardType | None] = mapped_column(Enum(BoardType), nullable=True)
    to_board_type: Mapped[BoardType] = mapped_column(Enum(BoardType), nullable=False)
    reason: Mapped[str] = mapped_column(String(100), nullable=False)
    payload: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
