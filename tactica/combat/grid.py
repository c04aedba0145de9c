"""Grid geometry: distances, line tracing, LOS, shapes and forced movement.

Cells are (x, y) integer tuples.  Blocked tiles are walls; occupied tiles
are cells holding a living combatant.  Helpers that take a combatant list
only read ``x``, ``y`` and ``is_alive`` from each entry.
"""

from __future__ import annotations

import enum
import math
from typing import Iterable, Protocol, Sequence

Point = tuple[int, int]

DEFAULT_COLS = 14
DEFAULT_ROWS = 10


class Metric(str, enum.Enum):
    manhattan = "manhattan"
    chebyshev = "chebyshev"
    euclidean = "euclidean"


class Positioned(Protocol):
    x: int
    y: int


def parse_metric(value: object) -> Metric:
    """Unknown or missing metrics fall back to manhattan."""
    try:
        return Metric(value)
    except ValueError:
        return Metric.manhattan


def distance_tiles(metric: Metric, ax: int, ay: int, bx: int, by: int) -> float:
    dx = abs(bx - ax)
    dy = abs(by - ay)
    if metric == Metric.chebyshev:
        return max(dx, dy)
    if metric == Metric.euclidean:
        return math.hypot(dx, dy)
    return dx + dy


def manhattan(a: Positioned, b: Positioned) -> int:
    return abs(a.x - b.x) + abs(a.y - b.y)


def bresenham_line(x0: int, y0: int, x1: int, y1: int) -> list[Point]:
    """All cells from (x0, y0) to (x1, y1) inclusive, origin first."""
    points: list[Point] = []
    dx = abs(x1 - x0)
    dy = -abs(y1 - y0)
    sx = 1 if x0 < x1 else -1
    sy = 1 if y0 < y1 else -1
    err = dx + dy
    x, y = x0, y0
    while True:
        points.append((x, y))
        if x == x1 and y == y1:
            break
        e2 = 2 * err
        if e2 >= dy:
            err += dy
            x += sx
        if e2 <= dx:
            err += dx
            y += sy
    return points


def to_point_set(tiles: Iterable[dict | Sequence[int]]) -> set[Point]:
    """Normalise ``[{"x": 1, "y": 2}, ...]`` or ``[(1, 2), ...]`` into a set of cells."""
    result: set[Point] = set()
    for tile in tiles:
        if isinstance(tile, dict):
            result.add((int(tile["x"]), int(tile["y"])))
        else:
            result.add((int(tile[0]), int(tile[1])))
    return result


def occupied_cells(combatants: Iterable, exclude_id: int | None = None) -> set[Point]:
    return {
        (c.x, c.y)
        for c in combatants
        if c.is_alive and (exclude_id is None or c.id != exclude_id)
    }


def has_line_of_sight(a: Point, b: Point, blocked: set[Point]) -> bool:
    """True when no cell after the origin on the traced line is blocked."""
    return not any(p in blocked for p in bresenham_line(a[0], a[1], b[0], b[1])[1:])


# ---------------------------------------------------------------------------
# Forced movement
# ---------------------------------------------------------------------------

def advance_along_line(
    start: Point,
    end: Point,
    steps: int,
    blocked: set[Point],
    occupied: set[Point] | None = None,
) -> Point:
    """Walk up to ``steps`` cells toward ``end``, stopping before any blocked or occupied cell."""
    line = bresenham_line(start[0], start[1], end[0], end[1])
    if len(line) <= 1:
        return start
    max_idx = min(len(line) - 1, max(0, int(steps)))
    occupied = occupied or set()
    last = line[0]
    for p in line[1:max_idx + 1]:
        if p in blocked or p in occupied:
            break
        last = p
    return last


def _sign(n: int) -> int:
    return (n > 0) - (n < 0)


def step_away(
    origin: Point,
    target: Point,
    steps: int,
    blocked: set[Point],
    occupied: set[Point] | None = None,
) -> Point:
    """Where ``target`` lands after being pushed ``steps`` cells directly away from ``origin``."""
    steps = max(0, int(steps))
    end = (
        target[0] + _sign(target[0] - origin[0]) * steps,
        target[1] + _sign(target[1] - origin[1]) * steps,
    )
    return advance_along_line(target, end, steps, blocked, occupied)


def in_bounds(point: Point, cols: int = DEFAULT_COLS, rows: int = DEFAULT_ROWS) -> bool:
    return 0 <= point[0] < cols and 0 <= point[1] < rows


def _choose_move_step(
    current: Point,
    target: Point,
    blocked: set[Point],
    occupied: set[Point],
    cols: int,
    rows: int,
) -> Point | None:
    dx = target[0] - current[0]
    dy = target[1] - current[1]
    if dx == 0 and dy == 0:
        return None
    horizontal = (current[0] + _sign(dx), current[1])
    vertical = (current[0], current[1] + _sign(dy))
    candidates = [horizontal, vertical] if abs(dx) >= abs(dy) else [vertical, horizontal]
    for candidate in candidates:
        if candidate == current or not in_bounds(candidate, cols, rows):
            continue
        if candidate not in blocked and candidate not in occupied:
            return candidate
    return None


def move_toward(
    start: Point,
    target: Point,
    max_steps: int,
    blocked: set[Point],
    occupied: set[Point],
    cols: int = DEFAULT_COLS,
    rows: int = DEFAULT_ROWS,
) -> tuple[Point, int]:
    """Greedy single-axis steps toward ``target``.  Returns (final cell, steps taken)."""
    current = start
    taken = 0
    for _ in range(max(0, int(max_steps))):
        nxt = _choose_move_step(current, target, blocked, occupied, cols, rows)
        if nxt is None:
            break
        current = nxt
        taken += 1
    return current, taken


# ---------------------------------------------------------------------------
# Shapes
# ---------------------------------------------------------------------------

def combatants_in_shape(
    shape: str,
    metric: Metric,
    actor,
    target: Point,
    combatants: Sequence,
    radius: int = 1,
    length: int = 1,
    width: int = 1,
) -> list:
    """Combatants covered by ``shape`` aimed at ``target``.

    ``combatants`` is taken as-is; callers decide whether dead entries are
    included.  Result order follows the input order.
    """
    tx, ty = target
    if shape == "self":
        return [actor]
    if shape in ("single", "tile"):
        return [c for c in combatants if c.x == tx and c.y == ty][:1]
    if shape == "area":
        r = max(0, radius)
        return [c for c in combatants if distance_tiles(metric, c.x, c.y, tx, ty) <= r]
    if shape == "line":
        length = max(1, length)
        half = max(1, width) // 2
        points = bresenham_line(actor.x, actor.y, tx, ty)[:length + 1]
        return [
            c for c in combatants
            if any(max(abs(px - c.x), abs(py - c.y)) <= half for px, py in points)
        ]
    if shape == "cone":
        length = max(1, length)
        width = max(1, width)
        dir_x = tx - actor.x
        dir_y = ty - actor.y
        hits = []
        for c in combatants:
            dx = c.x - actor.x
            dy = c.y - actor.y
            if distance_tiles(metric, actor.x, actor.y, c.x, c.y) > length:
                continue
            if dir_x != 0 and _sign(dx) != _sign(dir_x):
                continue
            if dir_y != 0 and _sign(dy) != _sign(dir_y):
                continue
            if abs(abs(dx) - abs(dy)) <= width:
                hits.append(c)
        return hits
    return []
