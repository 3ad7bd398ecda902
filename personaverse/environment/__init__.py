"""Tile world primitives: maze, world definitions and path finding."""

from .loader import load_world_definition
from .maze import SPAWN_PREFIX, Coordinate, Maze, Tile, TileEvent
from .path_finder import closest_coordinate, path_finder, path_finder_2, path_finder_3
from .schemas import DEFAULT_COLLISION_BLOCK_ID, WorldDefinition

__all__ = [
    "Coordinate",
    "DEFAULT_COLLISION_BLOCK_ID",
    "Maze",
    "SPAWN_PREFIX",
    "Tile",
    "TileEvent",
    "WorldDefinition",
    "closest_coordinate",
    "load_world_definition",
    "path_finder",
    "path_finder_2",
    "path_finder_3",
]
