"""Wave-propagation path finding over the maze collision layer.

The public functions take and return ``(x, y)`` coordinates, while the search
itself runs on a ``[row][col]`` grid, so coordinates are swapped on the way in
and swapped back on the way out. Saved paths depend on this convention and on
the fixed up/left/down/right backtracking order, so both must stay as they are.
"""

from __future__ import annotations

import math
from typing import List, Optional, Sequence, Tuple

from personaverse.errors import NoPathError, TileOutOfBoundsError


Coordinate = Tuple[int, int]
Grid = Sequence[Sequence[object]]

MAX_EXPANSION_ROUNDS = 150
"""Wave expansion rounds before the search gives up."""


def _make_step(distances: List[List[int]], blocked: List[List[int]], k: int) -> bool:
    """Mark every open, unvisited neighbour of a layer-``k`` cell with ``k + 1``.

    Returns ``True`` if at least one cell was marked.
    """

    rows = len(distances)
    marked = False
    for i in range(rows):
        cols = len(distances[i])
        for j in range(cols):
            if distances[i][j] != k:
                continue
            if i > 0 and distances[i - 1][j] == 0 and blocked[i - 1][j] == 0:
                distances[i - 1][j] = k + 1
                marked = True
            if j > 0 and distances[i][j - 1] == 0 and blocked[i][j - 1] == 0:
                distances[i][j - 1] = k + 1
                marked = True
            if i < rows - 1 and distances[i + 1][j] == 0 and blocked[i + 1][j] == 0:
                distances[i + 1][j] = k + 1
                marked = True
            if j < cols - 1 and distances[i][j + 1] == 0 and blocked[i][j + 1] == 0:
                distances[i][j + 1] = k + 1
                marked = True
    return marked


def _wave_path(
    grid: Grid,
    start: Coordinate,
    end: Coordinate,
    collision_block_id: object,
    max_rounds: int = MAX_EXPANSION_ROUNDS,
) -> List[Coordinate]:
    """Shortest path between ``(row, col)`` cells; both ends included."""

    height = len(grid)
    width = len(grid[0]) if height else 0
    for row, col in (start, end):
        if not (0 <= row < height and 0 <= col < width):
            raise TileOutOfBoundsError((col, row), width, height)

    blocked = [[1 if cell == collision_block_id else 0 for cell in row] for row in grid]
    distances = [[0] * len(row) for row in blocked]
    distances[start[0]][start[1]] = 1

    end_row, end_col = end
    k = 0
    rounds_left = max_rounds
    while distances[end_row][end_col] == 0:
        k += 1
        if not _make_step(distances, blocked, k):
            # The wave stopped spreading; further rounds cannot reach the end.
            break
        if rounds_left == 0:
            break
        rounds_left -= 1

    if distances[end_row][end_col] == 0:
        raise NoPathError((start[1], start[0]), (end[1], end[0]), k)

    ci, cj = end
    k = distances[ci][cj]
    path: List[Coordinate] = [(ci, cj)]
    while k > 1:
        if ci > 0 and distances[ci - 1][cj] == k - 1:
            ci -= 1
        elif cj > 0 and distances[ci][cj - 1] == k - 1:
            cj -= 1
        elif ci < height - 1 and distances[ci + 1][cj] == k - 1:
            ci += 1
        elif cj < width - 1 and distances[ci][cj + 1] == k - 1:
            cj += 1
        path.append((ci, cj))
        k -= 1

    path.reverse()
    return path


def path_finder(
    grid: Grid,
    start: Coordinate,
    end: Coordinate,
    collision_block_id: object,
) -> List[Coordinate]:
    """Return the ``(x, y)`` path from ``start`` to ``end``, both included.

    ``grid`` is the collision layer in ``[y][x]`` form; cells equal to
    ``collision_block_id`` are impassable.

    Raises:
        NoPathError: If the end is unreachable or the round cap is exhausted.
        TileOutOfBoundsError: If either end lies outside the grid.
    """

    path = _wave_path(grid, (start[1], start[0]), (end[1], end[0]), collision_block_id)
    return [(col, row) for row, col in path]


def closest_coordinate(curr: Coordinate, targets: Sequence[Coordinate]) -> Optional[Coordinate]:
    """Return the target with the smallest Euclidean distance to ``curr`` (first wins ties)."""

    closest: Optional[Coordinate] = None
    min_dist = math.inf
    for target in targets:
        dist = math.hypot(target[0] - curr[0], target[1] - curr[1])
        if dist < min_dist:
            min_dist = dist
            closest = target
    return closest


def path_finder_2(
    grid: Grid,
    start: Coordinate,
    end: Coordinate,
    collision_block_id: object,
) -> List[Coordinate]:
    """Path to whichever in-bounds neighbour of ``end`` is closest to ``start``."""

    height = len(grid)
    width = len(grid[0]) if height else 0
    x, y = end
    candidates = [(x, y + 1), (x, y - 1), (x - 1, y), (x + 1, y)]
    in_bounds = [c for c in candidates if 0 <= c[0] < width and 0 <= c[1] < height]
    target = closest_coordinate(start, in_bounds)
    if target is None:
        raise NoPathError(start, end, 0)
    return path_finder(grid, start, target, collision_block_id)


def path_finder_3(
    grid: Grid,
    start: Coordinate,
    end: Coordinate,
    collision_block_id: object,
) -> Optional[Tuple[List[Coordinate], List[Coordinate]]]:
    """Split the path between two personas so each walks half-way.

    Returns ``(a_path, b_path)`` where ``a_path`` starts at ``start`` and
    ``b_path`` starts at ``end``, or ``None`` when they are already adjacent.
    """

    curr_path = path_finder(grid, start, end, collision_block_id)
    if len(curr_path) <= 2:
        return None
    half = len(curr_path) // 2
    a_path = curr_path[:half]
    b_path = list(reversed(curr_path[half - 1:]))
    return a_path, b_path
