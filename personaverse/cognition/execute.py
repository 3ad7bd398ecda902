"""Execution: turn the planned action address into the next tile to stand on."""

from __future__ import annotations

import random
from typing import TYPE_CHECKING, List, Mapping, Optional, Sequence, Tuple

from personaverse.environment.maze import Coordinate, Maze
from personaverse.environment.path_finder import path_finder
from personaverse.errors import NoPathError
from personaverse.logging_utils import log_deterministic

if TYPE_CHECKING:
    from personaverse.persona import Persona


MAX_TARGET_CANDIDATES = 4

Execution = Tuple[Coordinate, Optional[str], str]


def _persona_target(persona: "Persona", maze: Maze, target: "Persona") -> List[Coordinate]:
    """Meet another persona half-way along the path between them."""
    curr_tile = persona.scratch.curr_tile
    potential_path = path_finder(maze.collision_maze, curr_tile, target.scratch.curr_tile, maze.collision_block_id)
    if len(potential_path) <= 2:
        return [potential_path[0]]

    mid = len(potential_path) // 2
    return [shortest_path_to_any(maze, curr_tile, potential_path[mid:mid + 2])[-1]]


def shortest_path_to_any(maze: Maze, start: Coordinate, tiles: Sequence[Coordinate]) -> List[Coordinate]:
    """Shortest path from ``start`` to any of ``tiles``; ties keep the earlier tile.

    Unreachable tiles are skipped. Raises ``NoPathError`` for the last tile
    tried when none of them can be reached.
    """
    path: Optional[List[Coordinate]] = None
    error: Optional[NoPathError] = None
    for tile in tiles:
        try:
            curr_path = path_finder(maze.collision_maze, start, tile, maze.collision_block_id)
        except NoPathError as exc:
            error = exc
            continue
        if path is None or len(curr_path) < len(path):
            path = curr_path
    if path is None:
        raise error or NoPathError(start, start, 0)
    return path


def resolve_target_tiles(
    persona: "Persona", maze: Maze, personas: Mapping[str, "Persona"], plan: str
) -> List[Coordinate]:
    """Candidate destination tiles for an action address.

    Handles ``<persona> name``, ``<waiting> x y``, ``...:<random>`` and plain
    addresses. Unknown addresses raise ``AddressNotFoundError``.
    """
    if "<persona>" in plan:
        return _persona_target(persona, maze, personas[plan.split("<persona>")[-1].strip()])
    if "<waiting>" in plan:
        _, x, y = plan.split()[:3]
        return [(int(x), int(y))]
    if "<random>" in plan:
        address = ":".join(plan.split(":")[:-1])
        return random.sample(sorted(maze.tiles_for_address(address)), 1)
    return sorted(maze.tiles_for_address(plan))


def _unoccupied(maze: Maze, tiles: Sequence[Coordinate], names: Sequence[str]) -> List[Coordinate]:
    free = [
        tile for tile in tiles if not any(event.subject in names for event in maze.access_tile(tile).events)
    ]
    return free or list(tiles)


def execute(persona: "Persona", maze: Maze, personas: Mapping[str, "Persona"], plan: str) -> Execution:
    """Advance one step toward the planned address.

    Returns ``(next_tile, pronunciatio, "<description> @ <address>")``. A new
    path is computed only when the action changed (or a random destination was
    reached); otherwise the stored path is consumed one tile per call.
    """
    scratch = persona.scratch
    if "<random>" in plan and not scratch.planned_path:
        scratch.act_path_set = False

    if not scratch.act_path_set:
        target_tiles = resolve_target_tiles(persona, maze, personas, plan)
        target_tiles = random.sample(target_tiles, min(len(target_tiles), MAX_TARGET_CANDIDATES))

        others = [name for name in personas if name != persona.name]
        target_tiles = _unoccupied(maze, target_tiles, others)

        path = shortest_path_to_any(maze, scratch.curr_tile, target_tiles)
        scratch.planned_path = list(path[1:])
        scratch.act_path_set = True
        log_deterministic(f"[{persona.name}] Path to {plan}: {len(scratch.planned_path)} step(s)")

    next_tile = scratch.curr_tile
    if scratch.planned_path:
        next_tile = scratch.planned_path[0]
        scratch.planned_path = scratch.planned_path[1:]

    description = f"{scratch.act_description} @ {scratch.act_address}"
    return next_tile, scratch.act_pronunciatio, description


__all__ = ["MAX_TARGET_CANDIDATES", "execute", "resolve_target_tiles", "shortest_path_to_any"]
