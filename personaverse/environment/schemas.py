"""Pydantic schemas for world definitions.

A world definition is the static description a maze is built from: grid
dimensions plus five aligned, row-major id arrays and the dictionaries that
turn block ids into human-readable labels. Keeping it as a model lets loaders
and tests construct worlds without touching the filesystem.
"""

from __future__ import annotations

from typing import Dict, List

from pydantic import BaseModel, Field, model_validator


DEFAULT_COLLISION_BLOCK_ID = "32125"
"""Block id marking an impassable tile in the collision layer."""

EMPTY_BLOCK_ID = "0"


class WorldDefinition(BaseModel):
    """Static tile-map data needed to construct a ``Maze``."""

    maze_name: str
    width: int = Field(..., gt=0, description="Number of tile columns")
    height: int = Field(..., gt=0, description="Number of tile rows")
    tile_size: int = Field(32, description="Side length of a square tile in pixels")
    special_constraint: str = ""
    world: str = Field(..., description="Label of the world every tile belongs to")
    collision_block_id: str = DEFAULT_COLLISION_BLOCK_ID

    # Row-major flat arrays of block ids, each width * height long.
    collision: List[str]
    sector: List[str]
    arena: List[str]
    game_object: List[str]
    spawning_location: List[str]

    # Block id -> label lookups. Ids missing from a mapping mean "no label".
    sector_labels: Dict[str, str] = Field(default_factory=dict)
    arena_labels: Dict[str, str] = Field(default_factory=dict)
    game_object_labels: Dict[str, str] = Field(default_factory=dict)
    spawning_location_labels: Dict[str, str] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _check_layer_sizes(self) -> "WorldDefinition":
        expected = self.width * self.height
        for layer in ("collision", "sector", "arena", "game_object", "spawning_location"):
            size = len(getattr(self, layer))
            if size != expected:
                raise ValueError(
                    f"{layer} layer has {size} entries; expected {expected} "
                    f"for a {self.width}x{self.height} maze"
                )
        return self

    def rows(self, layer: str) -> List[List[str]]:
        """Reshape a flat layer into ``[row][col]`` (``[y][x]``) form."""

        flat = getattr(self, layer)
        return [flat[y * self.width:(y + 1) * self.width] for y in range(self.height)]
