"""Campaign boards: the active non-combat context and the combat board.

Starting combat archives whatever board is active and remembers it as
``return_board_id``; ending combat archives the combat board and brings the
remembered board back (or a fresh town board when there was none).
"""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tactica.combat.grid import Point, to_point_set
from tactica.models.board import Board, BoardStatus, BoardTransition, BoardType

logger = logging.getLogger(__name__)


async def get_board(db: AsyncSession, board_id: int) -> Board | None:
    result = await db.execute(select(Board).where(Board.id == board_id))
    return result.scalar_one_or_none()


async def get_active_board(db: AsyncSession, campaign_id: int) -> Board | None:
    result = await db.execute(
        select(Board)
        .where(Board.campaign_id == campaign_id, Board.status == BoardStatus.active)
        .order_by(Board.id.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def get_combat_board(db: AsyncSession, combat_session_id: int) -> Board | None:
    result = await db.execute(
        select(Board)
        .where(Board.combat_session_id == combat_session_id, Board.board_type == BoardType.combat)
        .order_by(Board.id.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


def board_grid(board: Board | None, default_cols: int, default_rows: int) -> tuple[int, int]:
    grid = (board.state_json or {}).get("grid", {}) if board is not None else {}
    try:
        return int(grid.get("width", default_cols)), int(grid.get("height", default_rows))
    except (TypeError, ValueError, AttributeError):
        return default_cols, default_rows


def blocked_tiles(board: Board | None) -> set[Point]:
    if board is None:
        return set()
    return to_point_set((board.state_json or {}).get("blocked_tiles") or [])


async def open_combat_board(
    db: AsyncSession,
    campaign_id: int,
    combat_session_id: int,
    *,
    seed: int,
    cols: int,
    rows: int,
    blocked: list[Point],
    reason: str | None = None,
) -> Board:
    previous = await get_active_board(db, campaign_id)
    if previous is not None:
        previous.status = BoardStatus.archived

    board = Board(
        campaign_id=campaign_id,
        board_type=BoardType.combat,
        status=BoardStatus.active,
        combat_session_id=combat_session_id,
        state_json={
            "grid": {"width": cols, "height": rows},
            "blocked_tiles": [{"x": x, "y": y} for x, y in blocked],
            "seed": seed,
            "return_board_id": previous.id if previous is not None else None,
        },
    )
    db.add(board)
    db.add(
        BoardTransition(
            campaign_id=campaign_id,
            from_board_type=previous.board_type if previous is not None else None,
            to_board_type=BoardType.combat,
            reason="combat_start",
            payload={"combat_session_id": combat_session_id, "reason": reason},
        )
    )
    await db.flush()
    return board


async def close_combat_board(
    db: AsyncSession, campaign_id: int, combat_session_id: int, resolution: dict
) -> Board:
    """Archive the combat board and reactivate the board combat started from."""
    combat_board = await get_combat_board(db, combat_session_id)
    return_board = None
    if combat_board is not None:
        combat_board.status = BoardStatus.archived
        combat_board.state_json = {**(combat_board.state_json or {}), "combat_resolution": resolution}
        return_id = (combat_board.state_json or {}).get("return_board_id")
        if return_id is not None:
            return_board = await get_board(db, int(return_id))

    if return_board is None or return_board.board_type == BoardType.combat:
        return_board = Board(
            campaign_id=campaign_id,
            board_type=BoardType.town,
            status=BoardStatus.active,
            state_json={},
        )
        db.add(return_board)
    else:
        return_board.status = BoardStatus.active

    db.add(
        BoardTransition(
            campaign_id=campaign_id,
            from_board_type=BoardType.combat,
            to_board_type=return_board.board_type,
            reason="combat_end",
            payload={"combat_session_id": combat_session_id, **resolution},
        )
    )
    await db.flush()
    logger.info(
        "Combat %s closed; campaign %s back on %s board %s",
        combat_session_id,
        campaign_id,
        return_board.board_type.value,
        return_board.id,
    )
    return return_board
